import json
import logging
import os
import requests
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

API_BASE = os.getenv("HOSTAWAY_API_BASE", "https://api.hostaway.com/v1")
MOCK_PATH = os.getenv("HOSTAWAY_MOCK_PATH", str(Path(__file__).resolve().parents[2] / "data" / "hostaway_reviews.sample.json"))


def _review_list(data) -> List[Dict]:
    # The mock is either a bare array or the API envelope {"status", "result": [...]}
    if isinstance(data, dict):
        data = data.get("result")
    if not isinstance(data, list):
        raise ValueError("Hostaway payload is not an array of reviews")
    return data


class HostawayClient:
    """Reads Hostaway reviews from the live API when credentials are set, else from the mock file."""

    def __init__(self, account_id: Optional[str] = None, api_key: Optional[str] = None,
                 mock_path: Optional[str] = None, timeout: Optional[float] = None):
        self.account_id = account_id if account_id is not None else os.getenv("HOSTAWAY_ACCOUNT_ID")
        self.api_key = api_key if api_key is not None else os.getenv("HOSTAWAY_API_KEY")
        self.mock_path = mock_path or MOCK_PATH
        self.timeout = timeout or float(os.getenv("PROVIDER_TIMEOUT", "15"))

    @property
    def live(self) -> bool:
        return bool(self.account_id and self.api_key)

    def fetch(self) -> List[Dict]:
        if self.live:
            return self._fetch_api()
        return self._fetch_mock()

    def _fetch_mock(self) -> List[Dict]:
        with open(self.mock_path, "r", encoding="utf-8") as f:
            reviews = _review_list(json.load(f))
        logger.info("Loaded %d Hostaway reviews from %s", len(reviews), self.mock_path)
        return reviews

    def _access_token(self) -> str:
        r = requests.post(
            f"{API_BASE}/accessTokens",
            data={
                "grant_type": "client_credentials",
                "client_id": self.account_id,
                "client_secret": self.api_key,
                "scope": "general",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        token = r.json().get("access_token")
        if not token:
            raise ValueError("Hostaway did not return an access token")
        return token

    def _fetch_api(self) -> List[Dict]:
        token = self._access_token()
        r = requests.get(
            f"{API_BASE}/reviews",
            headers={"Authorization": f"Bearer {token}", "Cache-control": "no-cache"},
            timeout=self.timeout,
        )
        r.raise_for_status()
        reviews = _review_list(r.json())
        logger.info("Fetched %d Hostaway reviews for account %s", len(reviews), self.account_id)
        return reviews
