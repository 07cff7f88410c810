import logging
import os
import requests
from typing import Dict, List, Optional, Tuple
from ..schemas import CanonicalReview
from ..collectors.hostaway_client import HostawayClient
from ..collectors.google_client import GooglePlacesClient
from .normalize_service import normalize

logger = logging.getLogger(__name__)


def configured_place_ids() -> List[str]:
    return [p.strip() for p in os.getenv("GOOGLE_PLACE_IDS", "").split(",") if p.strip()]


def load_hostaway(client: Optional[HostawayClient] = None) -> List[CanonicalReview]:
    raw = (client or HostawayClient()).fetch()
    return normalize(raw, "hostaway")


def load_google(place_ids: List[str], client: Optional[GooglePlacesClient] = None) -> Tuple[List[CanonicalReview], List[Dict]]:
    """Normalized reviews from every place that answered, plus the per-place results."""
    places = (client or GooglePlacesClient()).fetch_many(place_ids)
    reviews: List[CanonicalReview] = []
    for p in places:
        if p["status"] == "success":
            reviews.extend(normalize(p["reviews"], "google"))
    return reviews, places


def load_reviews(hostaway: Optional[HostawayClient] = None,
                 google: Optional[GooglePlacesClient] = None) -> Tuple[List[CanonicalReview], List[str]]:
    """Both channels combined. Failures are collected, never raised."""
    reviews: List[CanonicalReview] = []
    errors: List[str] = []

    try:
        reviews.extend(load_hostaway(hostaway))
    except (OSError, ValueError, requests.RequestException) as e:
        logger.error(f"Hostaway load failed: {e}")
        errors.append("hostaway: Failed to load or parse Hostaway data.")

    google = google or GooglePlacesClient()
    place_ids = configured_place_ids()
    if place_ids and google.api_key:
        found, places = load_google(place_ids, google)
        reviews.extend(found)
        errors.extend(f"google {p['placeId']}: {p['message']}" for p in places if p["status"] != "success")

    return reviews, errors
