from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
import os

DB_URL = os.getenv("DASHBOARD_DB_URL", "sqlite:///./dashboard.db")


def make_engine(url: str = DB_URL) -> Engine:
    # FastAPI runs sync routes in a threadpool; sqlite must allow cross-thread use.
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind: Engine = engine) -> None:
    """Create the key-value table if it does not exist yet."""
    from . import models  # noqa: F401  registers KeyValue on Base
    Base.metadata.create_all(bind=bind)
