from sqlalchemy import Column, String, Text, DateTime, func
from .database import Base

class KeyValue(Base):
    """One persisted entry of the dashboard's local key-value storage."""
    __tablename__ = "key_values"
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
