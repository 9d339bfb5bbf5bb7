"""
Core data models for the StreamHub policy engine

Defines the persisted CommentRecord table plus the value objects exchanged by
the policy services: Location, ThemeDecision, VerificationChallenge and the
various result types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

UNKNOWN_REGION = "Unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Location(BaseModel):
    """
    Normalized location attached to a request or stored on a user record.

    Absence of a location is represented by ``None``, never by a Location whose
    region is "Unknown"; the placeholder is a real (if vague) location.
    """

    model_config = ConfigDict(frozen=True)

    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_known_region(self) -> bool:
        return bool(self.region) and self.region != UNKNOWN_REGION

    @classmethod
    def placeholder(cls, country: str = "IN") -> "Location":
        """Location used for loopback/private clients and as the last default"""
        return cls(
            country=country,
            region=UNKNOWN_REGION,
            city="localhost",
            latitude=20.5937,
            longitude=78.9629,
        )


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class ThemeDecision(BaseModel):
    """Per-request theme decision. Never persisted as authoritative state."""

    theme: Theme
    reason: str
    computed_at: datetime
    source: str = "policy"  # policy or preference
    hour: Optional[int] = None
    is_southern: Optional[bool] = None
    in_light_hours: Optional[bool] = None
    location: Optional[Location] = None


class ChallengePurpose(str, Enum):
    REGISTRATION = "registration"
    LOGIN = "login"


class DeliveryChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


@dataclass
class VerificationIdentity:
    """Who is being verified and how they can be reached"""

    key: str
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[Location] = None


@dataclass
class VerificationChallenge:
    key: str
    purpose: ChallengePurpose
    code: str
    expires_at: datetime
    channel: DeliveryChannel
    destination: str
    payload: Optional[Dict[str, Any]] = None
    delivered: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "purpose": self.purpose.value,
            "code": self.code,
            "expires_at": self.expires_at.isoformat(),
            "channel": self.channel.value,
            "destination": self.destination,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationChallenge":
        return cls(
            key=data["key"],
            purpose=ChallengePurpose(data["purpose"]),
            code=data["code"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            channel=DeliveryChannel(data["channel"]),
            destination=data["destination"],
            payload=data.get("payload"),
        )


class VerificationStatus(str, Enum):
    SUCCESS = "success"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    NOT_FOUND = "not_found"


@dataclass
class VerificationResult:
    status: VerificationStatus
    payload: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == VerificationStatus.SUCCESS


class DeletionReason(str, Enum):
    AUTO_DISLIKE = "auto_dislike"
    MANUAL = "manual"


class CommentRecord(SQLModel, table=True):
    """
    Comment stored after passing moderation.

    ``version`` is bumped on every update and used as the compare-and-swap
    token for reactions and translation writes.
    """

    __tablename__ = "comments"

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    video_id: str = Field(index=True, max_length=255)
    author_id: str = Field(index=True, max_length=255)
    text: str = Field(max_length=1000)
    original_text: str
    language: Optional[str] = Field(default=None, max_length=16)
    author_location: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column(JSON)
    )
    likes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    dislikes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    translations: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON))
    is_deleted: bool = Field(default=False)
    deleted_reason: Optional[str] = Field(default=None, max_length=32)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def like_count(self) -> int:
        return len(self.likes or [])

    @property
    def dislike_count(self) -> int:
        return len(self.dislikes or [])


@dataclass
class ReactionOutcome:
    """Result of a like or dislike toggle"""

    comment_id: str
    active: bool
    like_count: int
    dislike_count: int
    auto_deleted: bool = False
    is_deleted: bool = False
    deleted_reason: Optional[str] = None


@dataclass
class TranslationResult:
    text: str
    target_language: str
    source_language: Optional[str] = None
    cached: bool = False
    translated: bool = True


@dataclass
class ModerationVerdict:
    """Outcome of comment validation; ``reason`` is None when accepted"""

    reason: Optional[str] = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.reason is None
