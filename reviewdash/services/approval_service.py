"""
Manager approvals and the public display built from them.

The approved review ids live in a key-value store under a single key, as a
JSON list. The store is injected so tests can run against InMemoryKeyValueStore
while the service uses the SQLAlchemy-backed SqlKeyValueStore.
"""

import base64
import binascii
import json
import logging
import math
from typing import Dict, Iterable, List, Optional, Protocol, Set

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import KeyValue
from ..schemas import CanonicalReview, PublicPayload
from ..utils.numbers import mean1

logger = logging.getLogger(__name__)

APPROVAL_KEY = "approvedReviews"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def clear(self, key: str) -> None:
        self.data.pop(key, None)


class SqlKeyValueStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[str]:
        row = self.db.query(KeyValue).filter_by(key=key).first()
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        try:
            row = self.db.query(KeyValue).filter_by(key=key).first()
            if row:
                row.value = value
            else:
                self.db.add(KeyValue(key=key, value=value))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def clear(self, key: str) -> None:
        try:
            self.db.query(KeyValue).filter_by(key=key).delete()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


class ApprovalStore:
    """Approved review ids, loaded once and written through on every change."""

    def __init__(self, kv: KeyValueStore, key: str = APPROVAL_KEY):
        self.kv = kv
        self.key = key
        self._ids: List[str] = self._load()

    def _load(self) -> List[str]:
        raw = self.kv.get(self.key)
        if raw is None:
            return []
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.info("Discarding unreadable %s value", self.key)
            return []
        if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
            logger.info("Discarding malformed %s value", self.key)
            return []
        return list(dict.fromkeys(value))

    def _persist(self) -> None:
        # Best effort: memory stays authoritative if the write fails.
        try:
            self.kv.set(self.key, json.dumps(self._ids))
        except Exception as e:
            logger.warning("Could not persist %s: %s", self.key, e)

    def read(self) -> Set[str]:
        return set(self._ids)

    def ids(self) -> List[str]:
        """Approved ids in approval order."""
        return list(self._ids)

    def is_approved(self, review_id: str) -> bool:
        return review_id in self._ids

    def toggle(self, review_id: str) -> None:
        if review_id in self._ids:
            self._ids = [x for x in self._ids if x != review_id]
        else:
            self._ids = self._ids + [review_id]
        self._persist()

    def clear(self) -> None:
        self._ids = []
        try:
            self.kv.clear(self.key)
        except Exception as e:
            logger.warning("Could not clear %s: %s", self.key, e)


# ------------------------------- Public display ------------------------------ #

def public_view(reviews: Iterable[CanonicalReview], approved: Iterable[str],
                listing_id: Optional[str] = None) -> List[CanonicalReview]:
    approved = set(approved)
    return [
        r for r in reviews
        if r.review_id in approved and (listing_id in (None, "", "all") or r.listing_id == listing_id)
    ]


def public_summary(visible: List[CanonicalReview]) -> Dict:
    return {
        "count": len(visible),
        "avg": mean1(r.rating_overall for r in visible if r.rating_overall is not None),
    }


def stars(score: Optional[float]) -> str:
    if score is None:
        return "—"
    filled = min(max(int(math.floor(score / 2 + 0.5)), 0), 5)
    return "★" * filled + "☆" * (5 - filled)


def encode_public_payload(listing_id: str, approved_ids: Iterable[str]) -> str:
    payload = PublicPayload(listing_id=listing_id, approved_ids=list(approved_ids))
    return base64.b64encode(payload.model_dump_json(by_alias=True).encode("utf-8")).decode("ascii")


def decode_public_payload(value: Optional[str]) -> Optional[PublicPayload]:
    """Payload from a ?pub= value, or None for anything undecodable."""
    if not value or not isinstance(value, str):
        return None
    # query parsing turns "+" into " "; also accept the URL-safe alphabet
    text = value.replace(" ", "+").replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    try:
        data = json.loads(base64.b64decode(text).decode("utf-8"))
        return PublicPayload.model_validate(data)
    except (binascii.Error, UnicodeDecodeError, ValueError, ValidationError):
        return None
