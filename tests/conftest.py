import datetime as dt
import json
import os
import tempfile

# The app creates its tables at import time; keep them out of the working tree.
os.environ.setdefault("DASHBOARD_DB_URL", "sqlite:///" + os.path.join(tempfile.mkdtemp(), "dashboard-test.db"))

import pytest

from reviewdash.schemas import CanonicalReview, CategoryRating
from reviewdash.utils.text import slugify

FIXED_NOW = dt.datetime(2024, 6, 10, 12, 0, 0, tzinfo=dt.timezone.utc)


def make_review(review_id, listing="Cozy Flat", rating=None, submitted_at=None, channel="hostaway",
                categories=(), text=""):
    return CanonicalReview(
        review_id=str(review_id),
        listing_id=slugify(listing),
        listing_name=listing,
        channel=channel,
        rating_overall=rating,
        categories=[CategoryRating(name=n, rating=r) for n, r in categories],
        submitted_at=submitted_at,
        text=text,
    )


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def hostaway_raw():
    return [
        {
            "id": 1,
            "type": "guest-to-host",
            "status": "published",
            "listingName": "Cozy Flat",
            "rating": None,
            "publicReview": "Lovely and clean.",
            "reviewCategory": [
                {"category": "cleanliness", "rating": 10},
                {"category": "location", "rating": 8},
            ],
            "submittedAt": "2024-05-01 10:00:00",
            "guestName": "Ana Lima",
        },
        {
            "id": 2,
            "type": "guest-to-host",
            "status": "published",
            "listingName": "Cozy Flat",
            "rating": 6,
            "publicReview": "Too noisy at night.",
            "reviewCategory": [{"category": "location", "rating": 4}],
            "submittedAt": "2024-06-08 09:00:00",
            "guestName": "Tom Reed",
        },
        {
            "id": "abc-3",
            "type": "host-to-guest",
            "status": "awaiting",
            "listingName": "Modern 2 Bed Flat!",
            "rating": None,
            "publicReview": None,
            "reviewCategory": [],
            "submittedAt": None,
            "guestName": None,
        },
    ]


@pytest.fixture
def mock_file(tmp_path, hostaway_raw):
    path = tmp_path / "hostaway.json"
    path.write_text(json.dumps({"status": "success", "result": hostaway_raw}), encoding="utf-8")
    return str(path)
