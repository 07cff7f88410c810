import logging
import os
import requests
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
FIELDS = "name,reviews,rating,user_ratings_total,url"


class GooglePlacesClient:
    """Place Details reviews. Google returns only a handful per place, not in date order."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None, max_workers: int = 4):
        self.api_key = api_key if api_key is not None else os.getenv("GOOGLE_MAPS_API_KEY", "")
        self.timeout = timeout or float(os.getenv("PROVIDER_TIMEOUT", "15"))
        self.max_workers = max_workers

    def fetch_place(self, place_id: str) -> Dict:
        r = requests.get(
            DETAILS_URL,
            params={"place_id": place_id, "fields": FIELDS, "key": self.api_key},
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            raise ValueError("Place Details body is not a JSON object")
        if data.get("status") not in (None, "OK"):
            raise ValueError(f"Place Details returned {data.get('status')}: {data.get('error_message', '')}".strip())
        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise ValueError("Place Details result is not a JSON object")
        name = result.get("name")
        reviews = []
        raw_reviews = result.get("reviews")
        for review in raw_reviews if isinstance(raw_reviews, list) else []:
            if isinstance(review, dict):
                reviews.append({**review, "placeId": place_id, "listingName": name})
        return {
            "placeId": place_id,
            "status": "success",
            "reviews": reviews,
            "meta": {
                "name": name,
                "rating": result.get("rating"),
                "total": result.get("user_ratings_total"),
                "url": result.get("url"),
            },
        }

    def _fetch_isolated(self, place_id: str) -> Dict:
        try:
            return self.fetch_place(place_id)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Google reviews for %s failed: %s", place_id, e)
            return {"placeId": place_id, "status": "error", "message": "Failed to fetch Google Place Details."}

    def fetch_many(self, place_ids: Iterable[str]) -> List[Dict]:
        """One entry per place id, in input order; a failing place never sinks the others."""
        place_ids = list(place_ids)
        if not place_ids:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(place_ids))) as pool:
            return list(pool.map(self._fetch_isolated, place_ids))
