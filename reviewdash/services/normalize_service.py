import logging
import datetime as dt
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..schemas import CanonicalReview, CategoryRating, GoogleRaw, HostawayRaw, RawCategory, UNKNOWN_LISTING
from ..utils.numbers import mean1
from ..utils.text import clean_text, slugify

logger = logging.getLogger(__name__)

# Google reports 1-5 stars; canonical ratings live on 0-10.
GOOGLE_STAR_SCALE = 2.0


def to_iso(moment: dt.datetime) -> str:
    """UTC instant as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    m = moment.astimezone(dt.timezone.utc)
    return (f"{m.year:04d}-{m.month:02d}-{m.day:02d}T{m.hour:02d}:{m.minute:02d}:{m.second:02d}"
            f".{m.microsecond // 1000:03d}Z")


def parse_timestamp(value: Any) -> Optional[str]:
    # Hostaway sends "2020-08-21 22:45:14" with no offset; that is UTC.
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().replace(" ", "T", 1)
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        moment = dt.datetime.fromisoformat(text)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=dt.timezone.utc)
        return to_iso(moment)
    except (ValueError, OverflowError):
        return None


def epoch_to_iso(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return to_iso(dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc))
    except (ValueError, OverflowError, OSError):
        return None


def overall_rating(explicit: Optional[float], categories: Sequence[CategoryRating]) -> Optional[float]:
    """Explicit rating if in range, else the 1-decimal category mean, else None."""
    if explicit is not None and 0 <= explicit <= 10:
        return explicit
    derived = mean1(c.rating for c in categories)
    if derived is not None and 0 <= derived <= 10:
        return derived
    return None


def _categories(raw: Iterable[RawCategory]) -> List[CategoryRating]:
    return [CategoryRating(name=c.category, rating=c.rating)
            for c in raw if c.category is not None and c.rating is not None]


def _listing(name: Optional[str]) -> str:
    return clean_text(name or "") or UNKNOWN_LISTING


def from_hostaway(raw: HostawayRaw, position: int = 0) -> CanonicalReview:
    listing_name = _listing(raw.listing_name)
    categories = _categories(raw.review_category)
    return CanonicalReview(
        review_id=str(raw.id) if raw.id is not None else f"hostaway-{position}",
        listing_id=slugify(listing_name),
        listing_name=listing_name,
        channel="hostaway",
        type=raw.type,
        status=raw.status,
        rating_overall=overall_rating(raw.rating, categories),
        categories=categories,
        submitted_at=parse_timestamp(raw.submitted_at),
        guest_name=clean_text(raw.guest_name or "") or None,
        text=raw.public_review or "",
    )


def from_google(raw: GoogleRaw, position: int = 0) -> CanonicalReview:
    listing_name = _listing(raw.listing_name)
    # Place Details reviews carry no id of their own.
    id_parts = [
        "google",
        raw.place_id or slugify(listing_name),
        str(int(raw.time)) if raw.time is not None else str(position),
        slugify(raw.author_name or ""),
    ]
    stars = raw.rating * GOOGLE_STAR_SCALE if raw.rating is not None else None
    return CanonicalReview(
        review_id="-".join(p for p in id_parts if p),
        listing_id=slugify(listing_name),
        listing_name=listing_name,
        channel="google",
        rating_overall=overall_rating(stars, []),
        submitted_at=epoch_to_iso(raw.time),
        guest_name=clean_text(raw.author_name or "") or None,
        text=raw.text or "",
    )


_PROVIDERS = {
    "hostaway": (HostawayRaw, from_hostaway),
    "google": (GoogleRaw, from_google),
}


def _parse(model, record: Any):
    if isinstance(record, model):
        return record
    if not isinstance(record, Mapping):
        logger.debug("Non-object %s record replaced with empty defaults", model.provider)
        return model()
    try:
        return model.model_validate(dict(record))
    except ValidationError as e:
        logger.warning("Unreadable %s record, using defaults: %s", model.provider, e)
        return model()


def normalize(raw: Iterable[Any], channel: str = "hostaway") -> List[CanonicalReview]:
    """Map one provider's raw records to canonical reviews, one-to-one and in order."""
    try:
        model, mapper = _PROVIDERS[channel]
    except KeyError:
        raise ValueError(f"Unsupported review channel: {channel}")
    return [mapper(_parse(model, record), i) for i, record in enumerate(raw)]


def normalize_hostaway(raw: Iterable[Any]) -> List[CanonicalReview]:
    return normalize(raw, "hostaway")


def normalize_google(raw: Iterable[Any]) -> List[CanonicalReview]:
    return normalize(raw, "google")
