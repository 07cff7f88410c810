import datetime as dt
from typing import Dict, Iterable, List, Optional
from ..schemas import CanonicalReview, IssueScore, ListingAggregate
from ..utils.numbers import mean1

RECENT_WINDOW = dt.timedelta(days=30)
TOP_ISSUES = 3


def parse_iso(value: Optional[str]) -> Optional[dt.datetime]:
    if not value:
        return None
    try:
        moment = dt.datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    return moment if moment.tzinfo else moment.replace(tzinfo=dt.timezone.utc)


def _top_issues(items: List[CanonicalReview]) -> List[IssueScore]:
    by_category: Dict[str, List[float]] = {}
    for r in items:
        for c in r.categories:
            by_category.setdefault(c.name, []).append(c.rating)
    scores = [IssueScore(name=name, avg=mean1(ratings)) for name, ratings in by_category.items()]
    # sorted() is stable, so equal means keep first-appearance order
    return sorted(scores, key=lambda s: s.avg)[:TOP_ISSUES]


def aggregate(reviews: Iterable[CanonicalReview], now: Optional[dt.datetime] = None) -> List[ListingAggregate]:
    """Per-listing summary of exactly the reviews given, best average first.

    Listings without any rating sort as if their average were 0.
    """
    now = now or dt.datetime.now(dt.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    by_listing: Dict[str, List[CanonicalReview]] = {}
    for r in reviews:
        by_listing.setdefault(r.listing_id, []).append(r)

    out = []
    for listing_id, items in by_listing.items():
        recent = 0
        for r in items:
            submitted = parse_iso(r.submitted_at)
            if submitted is not None and now - submitted <= RECENT_WINDOW:
                recent += 1
        out.append(ListingAggregate(
            listing_id=listing_id,
            listing_name=items[0].listing_name,
            review_count=len(items),
            avg_rating=mean1(r.rating_overall for r in items if r.rating_overall is not None),
            last30d_count=recent,
            top_issues=_top_issues(items),
        ))
    return sorted(out, key=lambda a: a.avg_rating or 0.0, reverse=True)
