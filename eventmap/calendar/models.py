"""Data models for feed ingestion and geocoded events."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from eventmap.core.timezone_utils import now_utc as _now_utc


class FeedSource(BaseModel):
    """Configuration for one calendar feed."""

    feed_id: str = Field(..., description="Stable identifier, unique within the feed list")
    url: str = Field(..., description="ICS calendar URL")
    name: Optional[str] = Field(default=None, description="Human-readable name")
    timeout: float = Field(default=15.0, gt=0, description="HTTP timeout in seconds")


class RawFeedDocument(BaseModel):
    """Calendar document as returned by a feed, before normalization."""

    feed_id: str
    url: str
    content: str
    fetched_at: datetime = Field(default_factory=_now_utc)


class FetchFailureReason(str, Enum):
    """Why a feed produced no document."""

    INVALID_URL = "invalid_url"
    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    INVALID_CONTENT = "invalid_content"


class FetchFailure(BaseModel):
    """A feed that could not be fetched. A value, not an exception."""

    feed_id: str
    url: str
    reason: FetchFailureReason
    message: str
    status_code: Optional[int] = None

    model_config = ConfigDict(use_enum_values=True)


FetchOutcome = tuple[str, Union[RawFeedDocument, FetchFailure]]

IdentityKey = tuple[str, datetime, str]


class NormalizedEvent(BaseModel):
    """One concrete event occurrence in the common event model.

    ``start_time`` is always timezone-aware UTC. ``location_text`` is the raw
    venue text from the feed (empty when the feed gave none).
    """

    name: str
    start_time: datetime
    location_text: str = ""
    source_feed_id: str
    url: Optional[str] = None
    end_time: Optional[datetime] = None
    uid: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("datetime must be timezone-aware")
        return value.astimezone(timezone.utc)

    @property
    def identity_key(self) -> IdentityKey:
        """Key two occurrences share when they describe the same real event."""
        return (self.name.strip(), self.start_time, self.location_text.strip())

    @field_serializer("start_time", "end_time", when_used="json")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value is not None else None


class Coordinates(BaseModel):
    """A WGS84 point."""

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)

    model_config = ConfigDict(frozen=True)


class GeocodedEvent(NormalizedEvent):
    """A normalized event with resolved coordinates.

    ``coordinates`` is None when geocoding failed or the event had no location;
    such events are listed but never placed on the map.
    """

    coordinates: Optional[Coordinates] = None

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    @property
    def lat(self) -> Optional[float]:
        return self.coordinates.lat if self.coordinates else None

    @property
    def lng(self) -> Optional[float]:
        return self.coordinates.lng if self.coordinates else None

    @classmethod
    def from_normalized(
        cls, event: NormalizedEvent, coordinates: Optional[Coordinates]
    ) -> "GeocodedEvent":
        data = event.model_dump()
        data["coordinates"] = coordinates
        return cls(**data)


class NormalizationResult(BaseModel):
    """Result of normalizing one feed document."""

    feed_id: str
    parsed: bool
    events: list[NormalizedEvent] = Field(default_factory=list)
    skipped: int = 0
    warnings: list[str] = Field(default_factory=list)
    error_message: Optional[str] = None


class Landmark(BaseModel):
    """A static venue marker shown on the map independently of the event set."""

    name: str
    coordinates: Coordinates
    address: str = ""
    description: str = ""
    url: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        return f"landmark:{self.name}"
