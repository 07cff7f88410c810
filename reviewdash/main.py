from fastapi import FastAPI, Depends, Query
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlalchemy.orm import Session
from typing import List, Optional, get_args
from urllib.parse import quote, urlsplit
import datetime as dt
import logging, os
import requests
from .database import SessionLocal, init_db
from .schemas import (
    ApprovalsOut, CombinedReviewsOut, GoogleReviewsOut, PlaceResult, PublicLinkOut, QueryParams, ReviewsOut,
    SortDir, SortField, TimePreset, as_number,
)
from .collectors.hostaway_client import HostawayClient
from .collectors.google_client import GooglePlacesClient
from .services.metrics_service import aggregate
from .services.query_service import filter_and_sort, listing_options, category_options, channel_options
from .services.approval_service import (
    ApprovalStore, SqlKeyValueStore, public_view, public_summary, encode_public_payload, decode_public_payload,
)
from .services.review_service import load_hostaway, load_google, load_reviews
from .services import report_service

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="Review Aggregation Dashboard", version="1.0.0")

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_approval_store(db: Session = Depends(get_db)) -> ApprovalStore:
    return ApprovalStore(SqlKeyValueStore(db))

def get_hostaway_client() -> HostawayClient:
    return HostawayClient()

def get_google_client() -> GooglePlacesClient:
    return GooglePlacesClient()

def _date_or_none(value: str) -> Optional[dt.date]:
    try:
        return dt.date.fromisoformat(value) if value else None
    except ValueError:
        return None

def get_query_params(
    listing: str = "all",
    min_rating: str = "0",
    category: List[str] = Query(default=[]),
    channel: List[str] = Query(default=[]),
    time_preset: str = Query(default="all", alias="time"),
    start: str = "",
    end: str = "",
    sort_field: str = Query(default="date", alias="sort"),
    sort_dir: str = Query(default="desc", alias="dir"),
    sort_category: str = "",
) -> QueryParams:
    # Form input is lenient: anything unusable falls back to the default.
    rating = as_number(min_rating, allow_text=True) or 0.0
    return QueryParams(
        listing=listing or "all",
        min_rating=min(max(rating, 0.0), 10.0),
        categories=[c for c in category if c],
        channels=[c for c in channel if c],
        time_preset=time_preset if time_preset in get_args(TimePreset) else "all",
        custom_start=_date_or_none(start),
        custom_end=_date_or_none(end),
        sort_field=sort_field if sort_field in get_args(SortField) else "date",
        sort_dir=sort_dir if sort_dir in get_args(SortDir) else "desc",
        sort_category=sort_category or None,
    )

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})

def _local_path(target: str) -> bool:
    # Browsers read "//host" and "/\host" as protocol-relative URLs.
    if not target.startswith("/") or "\\" in target:
        return False
    parts = urlsplit(target)
    return not parts.scheme and not parts.netloc

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/api/reviews/hostaway", response_model=ReviewsOut)
def hostaway_reviews(client: HostawayClient = Depends(get_hostaway_client)):
    try:
        reviews = load_hostaway(client)
    except (OSError, ValueError, requests.RequestException) as e:
        logger.error(f"Hostaway load failed: {e}")
        return _error(500, "Failed to load or parse Hostaway mock data.")
    return ReviewsOut(reviews=reviews, aggregates=aggregate(reviews))

@app.get("/api/reviews/google", response_model=GoogleReviewsOut)
def google_reviews(place_id: List[str] = Query(default=[], alias="placeId"),
                   client: GooglePlacesClient = Depends(get_google_client)):
    place_ids = [p for p in place_id if p]
    if not place_ids or not client.api_key:
        return _error(400, "Missing placeId or GOOGLE_MAPS_API_KEY.")
    reviews, places = load_google(place_ids, client)
    ok = any(p["status"] == "success" for p in places)
    return GoogleReviewsOut(
        status="success" if ok else "error",
        reviews=reviews,
        aggregates=aggregate(reviews),
        places=[PlaceResult(place_id=p["placeId"], status=p["status"], meta=p.get("meta"), message=p.get("message"))
                for p in places],
    )

@app.get("/api/reviews", response_model=CombinedReviewsOut)
def all_reviews(hostaway: HostawayClient = Depends(get_hostaway_client),
                google: GooglePlacesClient = Depends(get_google_client)):
    reviews, errors = load_reviews(hostaway, google)
    if not reviews and errors:
        return _error(500, "Failed to load reviews.")
    return CombinedReviewsOut(reviews=reviews, aggregates=aggregate(reviews), errors=errors)

@app.get("/api/approvals", response_model=ApprovalsOut)
def approvals(store: ApprovalStore = Depends(get_approval_store)):
    return ApprovalsOut(approved_ids=store.ids())

@app.post("/api/approvals/{review_id}/toggle", response_model=ApprovalsOut)
def toggle_approval(review_id: str, store: ApprovalStore = Depends(get_approval_store)):
    store.toggle(review_id)
    return ApprovalsOut(approved_ids=store.ids())

@app.delete("/api/approvals", response_model=ApprovalsOut)
def clear_approvals(store: ApprovalStore = Depends(get_approval_store)):
    store.clear()
    return ApprovalsOut(approved_ids=[])

@app.get("/api/public-link", response_model=PublicLinkOut)
def public_link(listing_id: str = Query(..., alias="listingId"), store: ApprovalStore = Depends(get_approval_store)):
    pub = encode_public_payload(listing_id, store.ids())
    return PublicLinkOut(pub=pub, url=f"/?pub={quote(pub, safe='')}")

@app.get("/", response_class=HTMLResponse)
def dashboard(pub: Optional[str] = None,
              params: QueryParams = Depends(get_query_params),
              store: ApprovalStore = Depends(get_approval_store),
              hostaway: HostawayClient = Depends(get_hostaway_client),
              google: GooglePlacesClient = Depends(get_google_client)):
    reviews, errors = load_reviews(hostaway, google)
    if not reviews and errors:
        return HTMLResponse(report_service.failure_page(), status_code=502)
    aggregates = aggregate(reviews)

    payload = decode_public_payload(pub)
    if payload is not None:
        approved = set(payload.approved_ids)
        shown = [r for r in reviews if r.listing_id == payload.listing_id and r.review_id in approved]
        agg = next((a for a in aggregates if a.listing_id == payload.listing_id), None)
        name = shown[0].listing_name if shown else (agg.listing_name if agg else "Property")
        return HTMLResponse(report_service.listing_public_page(name, agg, shown))

    visible = filter_and_sort(reviews, params)
    return HTMLResponse(report_service.dashboard_page(
        aggregates, visible, params, store.read(),
        listing_options(reviews), category_options(reviews), channel_options(reviews),
    ))

@app.post("/approvals/toggle")
def toggle_from_dashboard(review_id: str, next_url: str = Query(default="/", alias="next"),
                          store: ApprovalStore = Depends(get_approval_store)):
    store.toggle(review_id)
    return RedirectResponse(next_url if _local_path(next_url) else "/", status_code=303)

@app.get("/public", response_class=HTMLResponse)
def public_display(listing: str = "all",
                   store: ApprovalStore = Depends(get_approval_store),
                   hostaway: HostawayClient = Depends(get_hostaway_client),
                   google: GooglePlacesClient = Depends(get_google_client)):
    reviews, errors = load_reviews(hostaway, google)
    if not reviews and errors:
        return HTMLResponse(report_service.failure_page(), status_code=502)
    visible = public_view(reviews, store.read(), listing)
    return HTMLResponse(report_service.public_page(visible, public_summary(visible), listing_options(reviews), listing))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("reviewdash.main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
