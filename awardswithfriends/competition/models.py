"""Data models for the competition blueprint."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from awardswithfriends.ceremony.models import CategoryScope, CurrentScope, LegacyScope


def vote_document_id(user_id: str, category_id: str) -> str:
    """Return the id of the single vote a user holds for a category."""
    return f"{user_id}_{category_id}"


def _parent_document_id(snapshot: Any) -> str:
    """Return the id of the document owning the snapshot's sub-collection."""
    parent = snapshot.reference.parent.parent
    return parent.id if parent is not None else ""


class CompetitionStatus(Enum):
    """Lifecycle of a competition."""

    OPEN = "open"
    LOCKED = "locked"
    COMPLETED = "completed"
    INACTIVE = "inactive"

    @classmethod
    def from_string(cls, value: Optional[str]) -> CompetitionStatus:
        """Parse a stored status; anything unrecognised is OPEN."""
        for status in cls:
            if status.value == value:
                return status
        return cls.OPEN


class CompetitionFilter(Enum):
    """Which of a user's competitions the home screen lists."""

    ALL = "all"
    MINE = "mine"
    JOINED = "joined"

    @classmethod
    def from_string(cls, value: Optional[str]) -> CompetitionFilter:
        for competition_filter in cls:
            if competition_filter.value == (value or "").lower():
                return competition_filter
        return cls.ALL


@dataclass(frozen=True)
class Competition:
    """A private group of users predicting one ceremony."""

    id: str
    name: str = ""
    ceremony_id: str = ""
    ceremony_year: str = ""
    event: Optional[str] = None
    invite_code: str = ""
    created_by: str = ""
    created_at: Optional[datetime] = None
    status: str = CompetitionStatus.OPEN.value
    participant_count: int = 0
    participant_ids: tuple[str, ...] = ()
    ceremony_name: str = ""
    event_type: str = ""
    hidden: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Competition:
        """Build a competition from a Firestore document snapshot."""
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            name=data.get("name", ""),
            ceremony_id=data.get("ceremonyId", ""),
            ceremony_year=str(data.get("ceremonyYear") or ""),
            event=data.get("event"),
            invite_code=(data.get("inviteCode") or "").upper(),
            created_by=data.get("createdBy", ""),
            created_at=data.get("createdAt"),
            status=data.get("status") or CompetitionStatus.OPEN.value,
            participant_count=int(data.get("participantCount") or 0),
            participant_ids=tuple(data.get("participantIds") or ()),
            ceremony_name=data.get("ceremonyName", ""),
            event_type=data.get("eventType", ""),
            hidden=bool(data.get("hidden", False)),
        )

    @property
    def competition_status(self) -> CompetitionStatus:
        return CompetitionStatus.from_string(self.status)

    @property
    def is_inactive(self) -> bool:
        return self.competition_status is CompetitionStatus.INACTIVE

    @property
    def category_scope(self) -> CategoryScope:
        """Resolve where this competition's categories are stored."""
        if self.ceremony_year:
            return CurrentScope(self.ceremony_year, self.event)
        return LegacyScope(self.ceremony_id)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        """Return True if user_id created this competition.

        This only drives what the UI offers; the callable functions enforce
        ownership themselves.
        """
        return bool(user_id) and self.created_by == user_id


@dataclass(frozen=True)
class Participant:
    """A user's membership record within one competition."""

    id: str
    competition_id: str = ""
    user_id: str = ""
    display_name: str = ""
    photo_url: Optional[str] = None
    score: int = 0
    total_votes: int = 0
    joined_at: Optional[datetime] = None
    blocked: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Participant:
        """Build a participant from a participants sub-collection document."""
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            competition_id=data.get("odCompetitionId") or _parent_document_id(snapshot),
            user_id=data.get("odUserId", ""),
            display_name=data.get("displayName", ""),
            photo_url=data.get("photoURL"),
            score=int(data.get("score") or 0),
            total_votes=int(data.get("totalVotes") or 0),
            joined_at=data.get("joinedAt"),
            blocked=data.get("blocked") is True,
        )


@dataclass(frozen=True)
class Vote:
    """One user's pick for one category within one competition."""

    id: str
    competition_id: str = ""
    user_id: str = ""
    category_id: str = ""
    nominee_id: str = ""
    voted_at: Optional[datetime] = None
    is_correct: Optional[bool] = None

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Vote:
        """Build a vote from a votes sub-collection document."""
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            competition_id=_parent_document_id(snapshot),
            user_id=data.get("odUserId", ""),
            category_id=data.get("categoryId", ""),
            nominee_id=data.get("nomineeId", ""),
            voted_at=data.get("votedAt"),
            is_correct=data.get("isCorrect"),
        )

    @property
    def voted_at_seconds(self) -> float:
        """Return the vote time as a POSIX timestamp; unknown times are 0."""
        if self.voted_at is None:
            return 0.0
        return self.voted_at.timestamp()
