import datetime as dt
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from ..schemas import CanonicalReview, QueryParams
from .metrics_service import parse_iso

PRESET_DAYS = {"7d": 7, "30d": 30, "90d": 90}
END_OF_DAY = dt.time(23, 59, 59, 999000)
NEG_INF = float("-inf")

Window = Tuple[Optional[dt.datetime], Optional[dt.datetime]]


def time_window(params: QueryParams, now: Optional[dt.datetime] = None) -> Window:
    """Inclusive [start, end] for the active time filter; (None, None) when off.

    Presets run from midnight N days ago through the end of today in the clock's
    timezone. Custom dates are whole UTC days.
    """
    if params.time_preset == "all":
        return None, None
    if params.time_preset == "custom":
        utc = dt.timezone.utc
        start = dt.datetime.combine(params.custom_start, dt.time.min, tzinfo=utc) if params.custom_start else None
        end = dt.datetime.combine(params.custom_end, END_OF_DAY, tzinfo=utc) if params.custom_end else None
        return start, end
    now = now or dt.datetime.now(dt.timezone.utc)
    tz = now.tzinfo or dt.timezone.utc
    today = now.date()
    start = dt.datetime.combine(today - dt.timedelta(days=PRESET_DAYS[params.time_preset]), dt.time.min, tzinfo=tz)
    return start, dt.datetime.combine(today, END_OF_DAY, tzinfo=tz)


def in_window(review: CanonicalReview, start: Optional[dt.datetime], end: Optional[dt.datetime]) -> bool:
    submitted = parse_iso(review.submitted_at)
    if submitted is None:
        return False
    if start and submitted < start:
        return False
    if end and submitted > end:
        return False
    return True


def category_rating(review: CanonicalReview, name: Optional[str]) -> Optional[float]:
    if not name:
        return None
    for c in review.categories:
        if c.name == name:
            return c.rating
    return None


def matches(review: CanonicalReview, params: QueryParams, window: Window) -> bool:
    if params.listing not in ("", "all") and review.listing_id != params.listing:
        return False
    # null can never satisfy a positive threshold
    if params.min_rating > 0 and (review.rating_overall is None or review.rating_overall < params.min_rating):
        return False
    if params.categories and not any(c.name in params.categories for c in review.categories):
        return False
    if params.channels and review.channel not in params.channels:
        return False
    if params.time_preset != "all" and not in_window(review, *window):
        return False
    return True


def _date_key(r: CanonicalReview) -> float:
    submitted = parse_iso(r.submitted_at)
    return submitted.timestamp() if submitted else 0.0


def _rating_key(r: CanonicalReview) -> float:
    return r.rating_overall if r.rating_overall is not None else NEG_INF


def _channel_key(r: CanonicalReview) -> str:
    return r.channel or ""


def sort_key(params: QueryParams) -> Optional[Callable[[CanonicalReview], object]]:
    if params.sort_field == "date":
        return _date_key
    if params.sort_field == "rating":
        return _rating_key
    if params.sort_field == "channel":
        return _channel_key
    if not params.sort_category:
        return None

    def by_category(r: CanonicalReview) -> float:
        rating = category_rating(r, params.sort_category)
        return rating if rating is not None else NEG_INF
    return by_category


def filter_and_sort(reviews: Iterable[CanonicalReview], params: Optional[QueryParams] = None,
                    now: Optional[dt.datetime] = None) -> List[CanonicalReview]:
    """Visible review list, recomputed from the full collection on every call."""
    params = params or QueryParams()
    window = time_window(params, now)
    visible = [r for r in reviews if matches(r, params, window)]
    key = sort_key(params)
    if key is None:
        return visible
    # reverse=True keeps equal keys in their original order
    return sorted(visible, key=key, reverse=params.sort_dir == "desc")


# Dashboard control options

def listing_options(reviews: Iterable[CanonicalReview]) -> List[Tuple[str, str]]:
    names: Dict[str, str] = {}
    for r in reviews:
        names[r.listing_id] = r.listing_name
    return list(names.items())


def category_options(reviews: Iterable[CanonicalReview]) -> List[str]:
    return sorted({c.name for r in reviews for c in r.categories})


def channel_options(reviews: Iterable[CanonicalReview]) -> List[str]:
    return sorted({r.channel for r in reviews})
