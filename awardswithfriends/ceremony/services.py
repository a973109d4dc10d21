"""Service layer for ceremonies and ceremony-wide voting."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from functools import partial
from typing import TYPE_CHECKING, Optional

from awardswithfriends.competition.models import Competition, Vote
from awardswithfriends.competition.services import CompetitionMembershipResolver
from awardswithfriends.core.constants import VOTE_CONFIRMATION_TIMEOUT
from awardswithfriends.core.streams import (
    LiveStream,
    LiveValue,
    Subscription,
    combine_dynamic,
    just,
)

from .models import Category, CategoryScope, Ceremony, LegacyScope, Nominee, event_matches

if TYPE_CHECKING:
    from awardswithfriends.data.firestore import FirestoreDataSource
    from awardswithfriends.data.functions import CloudFunctionsDataSource

logger = logging.getLogger(__name__)


def _is_newer(vote: Vote, other: Vote) -> bool:
    """Return True if vote supersedes other.

    Later timestamps win. On equal timestamps the vote from the competition
    with the smaller id wins, so the outcome never depends on arrival order.
    """
    if vote.voted_at_seconds != other.voted_at_seconds:
        return vote.voted_at_seconds > other.voted_at_seconds
    return vote.competition_id < other.competition_id


def _attach_nominees(
    categories: list[Category], nominees: dict[str, list[Nominee]]
) -> list[Category]:
    return [
        replace(c, nominees=tuple(nominees.get(c.id) or c.nominees)) for c in categories
    ]


class VoteAggregator:
    """Reconciles a user's votes across competitions sharing a ceremony."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        resolver: Optional[CompetitionMembershipResolver] = None,
    ) -> None:
        """Initialize the aggregator."""
        self.queries = queries
        self.resolver = resolver or CompetitionMembershipResolver(queries)

    @staticmethod
    def matching_competitions(
        competitions: Iterable[Competition], year: str, event: Optional[str]
    ) -> list[Competition]:
        """Return the active competitions that predict the given ceremony.

        A competition without an event tag matches any requested event, and
        a request without an event matches every competition of that year.
        """
        return [
            c
            for c in competitions
            if c.ceremony_year == year
            and not c.is_inactive
            and event_matches(event, c.event)
        ]

    @staticmethod
    def latest_votes(votes: Iterable[Vote]) -> dict[str, Vote]:
        """Reduce votes to the most recent one per category."""
        latest: dict[str, Vote] = {}
        for vote in votes:
            current = latest.get(vote.category_id)
            if current is None or _is_newer(vote, current):
                latest[vote.category_id] = vote
        return latest

    @staticmethod
    def latest_vote(votes: Iterable[Optional[Vote]]) -> Optional[Vote]:
        """Return the most recent of votes, ignoring missing ones."""
        latest: Optional[Vote] = None
        for vote in votes:
            if vote is not None and (latest is None or _is_newer(vote, latest)):
                latest = vote
        return latest

    def matching_competition_ids(
        self, user_id: str, year: str, event: Optional[str]
    ) -> LiveStream[list[str]]:
        """Stream the ids of the user's competitions matching a ceremony."""
        return (
            self.resolver.competitions_for_user(user_id)
            .map(
                lambda competitions: [
                    c.id for c in self.matching_competitions(competitions, year, event)
                ]
            )
            .distinct()
        )

    def ceremony_votes(
        self, user_id: str, year: str, event: Optional[str]
    ) -> LiveStream[dict[str, Vote]]:
        """Stream the user's current pick per category for a ceremony.

        Emits {} straight away when no competition matches, and keeps
        following membership so later competitions are picked up.
        """
        return combine_dynamic(
            self.matching_competition_ids(user_id, year, event),
            lambda competition_id: self.queries.votes(competition_id, user_id),
        ).map(
            lambda vote_lists: self.latest_votes(
                vote for votes in vote_lists for vote in votes
            )
        )

    def category_vote(
        self, user_id: str, year: str, event: Optional[str], category_id: str
    ) -> LiveStream[Optional[Vote]]:
        """Stream the user's current pick for a single category."""
        return combine_dynamic(
            self.matching_competition_ids(user_id, year, event),
            lambda competition_id: self.queries.vote(
                competition_id, user_id, category_id
            ),
        ).map(self.latest_vote)


class CategoryCountEstimator:
    """Counts visible categories for ceremonies without a stored count.

    Each tracked ceremony gets its own categories listener, kept alive until
    close(). Counts are published to counts as each listener delivers.
    """

    def __init__(self, queries: FirestoreDataSource) -> None:
        """Initialize the estimator with no ceremonies tracked."""
        self.queries = queries
        self.counts: LiveValue[dict[str, int]] = LiveValue({})
        self._lock = threading.Lock()
        self._tracked: set[str] = set()
        self._subscriptions: list[Subscription] = []
        self._closed = False

    def track(self, ceremonies: Iterable[Ceremony]) -> None:
        """Start counting every ceremony that lacks a category count."""
        for ceremony in ceremonies:
            if ceremony.category_count is not None:
                continue
            with self._lock:
                if self._closed or ceremony.id in self._tracked:
                    continue
                self._tracked.add(ceremony.id)
            subscription = self.queries.categories(
                ceremony.year, ceremony.event
            ).subscribe(
                partial(self._publish, ceremony.id),
                partial(self._failed, ceremony.id),
            )
            with self._lock:
                if not self._closed:
                    self._subscriptions.append(subscription)
                    continue
            subscription.unsubscribe()

    def _publish(self, ceremony_id: str, categories: list[Category]) -> None:
        count = sum(1 for c in categories if not c.is_hidden)
        self.counts.update(lambda counts: {**counts, ceremony_id: count})

    def _failed(self, ceremony_id: str, exc: Exception) -> None:
        logger.error(f"Could not count categories for ceremony {ceremony_id}: {exc}")

    def close(self) -> None:
        """Stop every listener started by track()."""
        with self._lock:
            self._closed = True
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.unsubscribe()


class CeremonyService:
    """Category lookups and ceremony-wide vote submission."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        functions: CloudFunctionsDataSource,
        aggregator: Optional[VoteAggregator] = None,
        confirmation_timeout: float = VOTE_CONFIRMATION_TIMEOUT,
    ) -> None:
        """Initialize the service."""
        self.queries = queries
        self.functions = functions
        self.aggregator = aggregator or VoteAggregator(queries)
        self.confirmation_timeout = confirmation_timeout

    def categories_for_scope(self, scope: CategoryScope) -> LiveStream[list[Category]]:
        """Stream the categories stored under a competition's category scope."""
        if isinstance(scope, LegacyScope):
            return self.legacy_categories(scope.ceremony_id)
        return self.queries.categories(scope.year, scope.event)

    def legacy_categories(self, ceremony_id: str) -> LiveStream[list[Category]]:
        """Stream legacy categories with their nominee sub-collections."""

        def with_nominees(categories: list[Category]) -> LiveStream[list[Category]]:
            return combine_dynamic(
                just([c.id for c in categories]),
                lambda category_id: self.queries.legacy_nominees(
                    ceremony_id, category_id
                ).map(lambda nominees: (category_id, nominees)),
            ).map(lambda pairs: _attach_nominees(categories, dict(pairs)))

        return self.queries.legacy_categories(ceremony_id).switch_map(with_nominees)

    def cast_ceremony_vote(
        self,
        user_id: str,
        year: str,
        event: Optional[str],
        category_id: str,
        nominee_id: str,
    ) -> Optional[Vote]:
        """Cast a vote for every matching competition and wait for it to land.

        A failed command raises. Once the command succeeds, the user's vote
        for the category is watched until it shows nominee_id; the confirmed
        vote is returned, or None if it did not show up within the
        confirmation timeout. None still means the vote was accepted.
        """
        self.functions.cast_ceremony_vote(year, category_id, nominee_id)
        confirmation = self.aggregator.category_vote(user_id, year, event, category_id)
        try:
            return confirmation.first(
                lambda vote: vote is not None and vote.nominee_id == nominee_id,
                timeout=self.confirmation_timeout,
            )
        except Exception as e:
            logger.warning(f"Could not confirm vote for category {category_id}: {e}")
            return None
