"""Data models for the ceremony blueprint."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


def event_matches(requested: Optional[str], actual: Optional[str]) -> bool:
    """Return True if a record tagged with actual belongs to the requested event.

    Records without an event tag predate event types and match every event.
    """
    return requested is None or actual is None or requested == actual


class CeremonyStatus(Enum):
    """Lifecycle of a ceremony."""

    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"

    @classmethod
    def from_string(cls, value: Optional[str]) -> CeremonyStatus:
        """Parse a stored status, accepting the legacy "complete" spelling."""
        if value in ("complete", "completed"):
            return cls.COMPLETED
        for status in cls:
            if status.value == value:
                return status
        return cls.UPCOMING


class EventType(Enum):
    """Award shows known to the app."""

    OSCARS = ("oscars", "Academy Awards")
    EMMYS = ("emmys", "Emmy Awards")
    GOLDEN_GLOBES = ("goldenglobes", "Golden Globe Awards")
    GRAMMYS = ("grammys", "Grammy Awards")
    TONYS = ("tonys", "Tony Awards")
    SAG_AWARDS = ("sagawards", "SAG Awards")
    BAFTAS = ("baftas", "BAFTA Awards")
    OTHER = ("other", "Other")

    def __init__(self, slug: str, display_name: str) -> None:
        self.slug = slug
        self.display_name = display_name

    @classmethod
    def from_string(cls, value: Optional[str]) -> EventType:
        """Look up an event type by slug, falling back to OTHER."""
        for event_type in cls:
            if event_type.slug == value:
                return event_type
        return cls.OTHER


@dataclass(frozen=True)
class CurrentScope:
    """Categories keyed by ceremony year and optional event tag."""

    year: str
    event: Optional[str] = None


@dataclass(frozen=True)
class LegacyScope:
    """Categories stored as a sub-collection of one ceremony document."""

    ceremony_id: str


CategoryScope = Union[CurrentScope, LegacyScope]


@dataclass(frozen=True)
class Nominee:
    """A candidate within a category."""

    id: str
    title: str = ""
    subtitle: Optional[str] = None
    image_url: str = ""
    tmdb_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], nominee_id: Optional[str] = None) -> Nominee:
        """Build a nominee from an embedded map or a legacy document."""
        return cls(
            id=nominee_id or data.get("id", ""),
            title=data.get("title", ""),
            subtitle=data.get("subtitle"),
            image_url=data.get("imageUrl") or "",
            tmdb_id=data.get("tmdbId"),
        )

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Nominee:
        """Build a nominee from a legacy nominees sub-collection document."""
        return cls.from_dict(snapshot.to_dict() or {}, nominee_id=snapshot.id)


@dataclass(frozen=True)
class Category:
    """An award category and its embedded nominees."""

    id: str
    ceremony_year: str = ""
    event: Optional[str] = None
    name: str = ""
    display_order: int = 0
    winner_id: Optional[str] = None
    winner_announced_at: Optional[datetime] = None
    voting_locked: Optional[bool] = None
    voting_locked_at: Optional[datetime] = None
    hidden: Optional[bool] = None
    nominees: tuple[Nominee, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Category:
        """Build a category from a Firestore document snapshot."""
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            ceremony_year=str(data.get("ceremonyYear") or ""),
            event=data.get("event"),
            name=data.get("name", ""),
            display_order=int(data.get("displayOrder") or 0),
            winner_id=data.get("winnerId"),
            winner_announced_at=data.get("winnerAnnouncedAt"),
            voting_locked=data.get("votingLocked"),
            voting_locked_at=data.get("votingLockedAt"),
            hidden=data.get("hidden"),
            nominees=tuple(
                Nominee.from_dict(n) for n in data.get("nominees") or [] if n
            ),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    @property
    def is_voting_locked(self) -> bool:
        return self.voting_locked is True

    @property
    def is_hidden(self) -> bool:
        return self.hidden is True

    @property
    def has_winner(self) -> bool:
        return self.winner_id is not None

    @property
    def winner(self) -> Optional[Nominee]:
        """Return the winning nominee, or None if the winner id is unknown."""
        return self.nominee(self.winner_id)

    def nominee(self, nominee_id: Optional[str]) -> Optional[Nominee]:
        """Find a nominee of this category by id."""
        if nominee_id is None:
            return None
        return next((n for n in self.nominees if n.id == nominee_id), None)


@dataclass(frozen=True)
class Ceremony:
    """An award show instance."""

    id: str
    name: str = ""
    year: str = ""
    event: Optional[str] = None
    date: Optional[datetime] = None
    status: str = CeremonyStatus.UPCOMING.value
    hidden: bool = False
    category_count: Optional[int] = None

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Ceremony:
        """Build a ceremony from a Firestore document snapshot."""
        data = snapshot.to_dict() or {}
        count = data.get("categoryCount")
        return cls(
            id=snapshot.id,
            name=data.get("name", ""),
            year=str(data.get("year") or ""),
            event=data.get("event"),
            date=data.get("date"),
            status=data.get("status") or CeremonyStatus.UPCOMING.value,
            hidden=bool(data.get("hidden", False)),
            category_count=int(count) if count is not None else None,
        )

    @property
    def ceremony_status(self) -> CeremonyStatus:
        return CeremonyStatus.from_string(self.status)


@dataclass(frozen=True)
class EventTypeData:
    """An event type document managed by administrators."""

    id: str
    slug: str = ""
    display_name: str = ""
    color: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> EventTypeData:
        """Build an event type from a Firestore document snapshot."""
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            slug=data.get("slug", ""),
            display_name=data.get("displayName", ""),
            color=data.get("color"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )
