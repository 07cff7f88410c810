from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, ClassVar, List, Literal, Optional, Union
from datetime import date
import math

Channel = Literal["hostaway", "google"]

UNKNOWN_LISTING = "Unknown Listing"


def as_number(value: Any, allow_text: bool = False) -> Optional[float]:
    """Finite float from a loosely typed source value, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = float(value)
    elif allow_text and isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _text_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


# --------------------------------- Raw input -------------------------------- #

class _Raw(BaseModel):
    # Wrong-typed fields are blanked by "before" validators so parsing a raw
    # record never raises.
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class RawCategory(_Raw):
    category: Optional[str] = None
    rating: Optional[float] = None

    @field_validator("category", mode="before")
    @classmethod
    def blank_non_text(cls, v):
        return _text_or_none(v)

    @field_validator("rating", mode="before")
    @classmethod
    def rating_number(cls, v):
        return as_number(v, allow_text=True)


class HostawayRaw(_Raw):
    provider: ClassVar[str] = "hostaway"

    id: Optional[Union[int, str]] = None
    type: Optional[str] = None
    status: Optional[str] = None
    rating: Optional[float] = None
    public_review: Optional[str] = Field(default=None, alias="publicReview")
    review_category: List[RawCategory] = Field(default_factory=list, alias="reviewCategory")
    submitted_at: Optional[str] = Field(default=None, alias="submittedAt")
    guest_name: Optional[str] = Field(default=None, alias="guestName")
    listing_name: Optional[str] = Field(default=None, alias="listingName")
    channel: Optional[str] = None

    @field_validator(
        "type", "status", "public_review", "submitted_at", "guest_name", "listing_name", "channel",
        mode="before",
    )
    @classmethod
    def blank_non_text(cls, v):
        return _text_or_none(v)

    @field_validator("id", mode="before")
    @classmethod
    def source_id(cls, v):
        if isinstance(v, bool):
            return None
        if isinstance(v, float):
            return int(v) if v.is_integer() else str(v)
        return v if isinstance(v, (int, str)) else None

    @field_validator("rating", mode="before")
    @classmethod
    def rating_number(cls, v):
        return as_number(v)

    @field_validator("review_category", mode="before")
    @classmethod
    def category_dicts(cls, v):
        if not isinstance(v, list):
            return []
        return [c for c in v if isinstance(c, dict)]


class GoogleRaw(_Raw):
    """A Place Details review plus the place context the adapter attaches."""
    provider: ClassVar[str] = "google"

    author_name: Optional[str] = None
    author_url: Optional[str] = None
    language: Optional[str] = None
    rating: Optional[float] = None
    text: Optional[str] = None
    time: Optional[float] = None
    relative_time_description: Optional[str] = None
    place_id: Optional[str] = Field(default=None, alias="placeId")
    listing_name: Optional[str] = Field(default=None, alias="listingName")

    @field_validator(
        "author_name", "author_url", "language", "text", "relative_time_description",
        "place_id", "listing_name",
        mode="before",
    )
    @classmethod
    def blank_non_text(cls, v):
        return _text_or_none(v)

    @field_validator("rating", "time", mode="before")
    @classmethod
    def number_or_none(cls, v):
        return as_number(v)


# ------------------------------- Canonical shape ----------------------------- #

class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryRating(_Wire):
    name: str
    rating: float


class CanonicalReview(_Wire):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    review_id: str
    listing_id: str
    listing_name: str = UNKNOWN_LISTING
    channel: Channel
    type: Optional[str] = None
    status: Optional[str] = None
    rating_overall: Optional[float] = Field(default=None, ge=0, le=10)
    categories: List[CategoryRating] = Field(default_factory=list)
    submitted_at: Optional[str] = None
    guest_name: Optional[str] = None
    text: str = ""


class IssueScore(_Wire):
    name: str
    avg: float


class ListingAggregate(_Wire):
    listing_id: str
    listing_name: str
    review_count: int
    avg_rating: Optional[float] = None
    last30d_count: int = 0
    top_issues: List[IssueScore] = Field(default_factory=list)


# ------------------------------ Query / approval ----------------------------- #

TimePreset = Literal["all", "7d", "30d", "90d", "custom"]
SortField = Literal["date", "rating", "channel", "category"]
SortDir = Literal["asc", "desc"]


class QueryParams(_Wire):
    listing: str = "all"
    min_rating: float = Field(default=0.0, ge=0, le=10)
    categories: List[str] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    time_preset: TimePreset = "all"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    sort_field: SortField = "date"
    sort_dir: SortDir = "desc"
    sort_category: Optional[str] = None

    def cleared(self) -> "QueryParams":
        return QueryParams()


class PublicPayload(_Wire):
    listing_id: str
    approved_ids: List[str] = Field(default_factory=list)

    @field_validator("approved_ids", mode="before")
    @classmethod
    def missing_as_empty(cls, v):
        return [] if v is None else v


# ----------------------------------- API out --------------------------------- #

class ReviewsOut(_Wire):
    status: str = "success"
    reviews: List[CanonicalReview]
    aggregates: List[ListingAggregate]


class PlaceMeta(_Wire):
    name: Optional[str] = None
    rating: Optional[float] = None
    total: Optional[int] = None
    url: Optional[str] = None


class PlaceResult(_Wire):
    place_id: str
    status: str
    meta: Optional[PlaceMeta] = None
    message: Optional[str] = None


class GoogleReviewsOut(ReviewsOut):
    places: List[PlaceResult]


class CombinedReviewsOut(ReviewsOut):
    errors: List[str] = Field(default_factory=list)


class ApprovalsOut(_Wire):
    approved_ids: List[str]


class PublicLinkOut(BaseModel):
    pub: str
    url: str
