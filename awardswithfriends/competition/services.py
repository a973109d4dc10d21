"""Service layer for competition-related operations."""

from __future__ import annotations

import string
from typing import TYPE_CHECKING, Any, Optional

from awardswithfriends.core.constants import FIELD_REQUIRES_PAYMENT, INVITE_CODE_LENGTH
from awardswithfriends.core.streams import LiveStream, combine_dynamic

from .models import Competition, CompetitionFilter, Participant

if TYPE_CHECKING:
    from awardswithfriends.data.firestore import FirestoreDataSource

INVITE_CODE_ALPHABET = frozenset(string.ascii_uppercase + string.digits)


class CompetitionMembershipResolver:
    """Derives the live list of competitions a user belongs to."""

    def __init__(self, queries: FirestoreDataSource) -> None:
        """Initialize the resolver with a live query source."""
        self.queries = queries

    def competitions_for_user(self, user_id: str) -> LiveStream[list[Competition]]:
        """Stream every competition user_id participates in.

        The participant index drives the set of per-competition listeners;
        when membership changes, listeners for competitions the user left are
        dropped and listeners for new ones are started. Deleted competitions
        are left out. A competition whose listener fails is skipped while the
        others keep updating; a failure of the index itself ends the stream.
        """
        return combine_dynamic(
            self.queries.participant_index(user_id), self.queries.competition
        ).map(lambda competitions: [c for c in competitions if c is not None])


class CompetitionService:
    """Service class for competition-related rules."""

    @staticmethod
    def normalize_invite_code(code: Optional[str]) -> str:
        """Uppercase an invite code and keep at most six letters or digits."""
        cleaned = [ch for ch in (code or "").upper() if ch in INVITE_CODE_ALPHABET]
        return "".join(cleaned[:INVITE_CODE_LENGTH])

    @staticmethod
    def is_valid_invite_code(code: str) -> bool:
        return len(code) == INVITE_CODE_LENGTH and all(
            ch in INVITE_CODE_ALPHABET for ch in code
        )

    @staticmethod
    def sort_for_home(competitions: list[Competition]) -> list[Competition]:
        """Sort active competitions first, each group newest first."""

        def created(competition: Competition) -> float:
            if competition.created_at is None:
                return 0.0
            return competition.created_at.timestamp()

        by_date = sorted(competitions, key=created, reverse=True)
        return sorted(by_date, key=lambda c: c.is_inactive)

    @staticmethod
    def filter_for_user(
        competitions: list[Competition],
        competition_filter: CompetitionFilter,
        user_id: Optional[str],
    ) -> list[Competition]:
        """Apply a home screen filter for user_id.

        Hidden competitions are never listed, and inactive ones only for
        their owner.
        """
        if not user_id:
            return list(competitions)
        visible = [
            c
            for c in competitions
            if not c.hidden and (not c.is_inactive or c.is_owned_by(user_id))
        ]
        if competition_filter is CompetitionFilter.MINE:
            return [c for c in visible if c.is_owned_by(user_id)]
        if competition_filter is CompetitionFilter.JOINED:
            return [c for c in visible if not c.is_owned_by(user_id)]
        return visible

    @staticmethod
    def rank_participants(participants: list[Participant]) -> list[Participant]:
        """Order a leaderboard by score, highest first. Blocked rows are dropped."""
        return sorted(
            (p for p in participants if not p.blocked),
            key=lambda p: p.score,
            reverse=True,
        )


class FeatureService:
    """Reads the remote feature flags that gate competitions."""

    def __init__(self, queries: FirestoreDataSource) -> None:
        """Initialize the service with a live query source."""
        self.queries = queries

    @staticmethod
    def parse_requires_payment(config: dict[str, Any]) -> bool:
        """Return the payment flag; anything but a stored boolean means True."""
        value = config.get(FIELD_REQUIRES_PAYMENT)
        return value if isinstance(value, bool) else True

    @staticmethod
    def can_access(requires_payment: bool, has_access: bool) -> bool:
        return not requires_payment or has_access

    def requires_payment(self) -> LiveStream[bool]:
        """Stream whether creating or joining competitions needs a purchase."""
        return self.queries.config().map(self.parse_requires_payment)
