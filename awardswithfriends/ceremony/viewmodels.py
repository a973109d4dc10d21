"""Live view models for the ceremony screens."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Optional

from awardswithfriends.competition.models import Competition, CompetitionStatus, Vote
from awardswithfriends.competition.services import (
    CompetitionMembershipResolver,
    FeatureService,
)
from awardswithfriends.core.viewmodel import ViewModel
from awardswithfriends.errors import CommandError

from .models import Category, Ceremony, EventTypeData, event_matches
from .services import CategoryCountEstimator

if TYPE_CHECKING:
    from awardswithfriends.data.firestore import FirestoreDataSource

    from .services import CeremonyService

logger = logging.getLogger(__name__)


def _date_key(ceremony: Ceremony) -> float:
    return ceremony.date.timestamp() if ceremony.date is not None else 0.0


@dataclass(frozen=True)
class CeremoniesState:
    ceremonies: tuple[Ceremony, ...] = ()
    event_types: dict[str, EventTypeData] = field(default_factory=dict)
    fetched_category_counts: dict[str, int] = field(default_factory=dict)
    selected_event: Optional[str] = None
    is_loading: bool = True
    error: Optional[str] = None


class CeremoniesViewModel(ViewModel[CeremoniesState]):
    """The list of ceremonies, newest first."""

    def __init__(self, queries: FirestoreDataSource) -> None:
        """Initialize the view model."""
        super().__init__(CeremoniesState())
        self.queries = queries
        self.estimator = CategoryCountEstimator(queries)

    def initialize(self) -> None:
        if not self._enter_scope("ceremonies"):
            return
        self._launch(self.queries.event_types().catch(), self._event_types_loaded)
        self._launch(
            self.queries.ceremonies(), self._ceremonies_loaded, self._ceremonies_failed
        )
        self._launch(
            self.estimator.counts,
            lambda counts: self._set_state(fetched_category_counts=counts),
        )

    def _event_types_loaded(self, event_types: list[EventTypeData]) -> None:
        self._set_state(event_types={et.slug: et for et in event_types})

    def _ceremonies_loaded(self, ceremonies: list[Ceremony]) -> None:
        ordered = sorted(ceremonies, key=_date_key, reverse=True)
        self._set_state(ceremonies=tuple(ordered), is_loading=False)
        self.estimator.track(ordered)

    def _ceremonies_failed(self, exc: Exception) -> None:
        logger.error(f"Error loading ceremonies: {exc}")
        self._set_state(error=str(exc), is_loading=False)

    def set_event_filter(self, event: Optional[str]) -> None:
        self._set_state(selected_event=event)

    def visible_ceremonies(self) -> list[Ceremony]:
        """Return the ceremonies to list, honouring the event filter."""
        state = self.state
        return [
            c
            for c in state.ceremonies
            if not c.hidden
            and (state.selected_event is None or c.event == state.selected_event)
        ]

    def category_count(self, ceremony: Ceremony) -> Optional[int]:
        """Return the stored category count, or the counted one if known."""
        if ceremony.category_count is not None:
            return ceremony.category_count
        return self.state.fetched_category_counts.get(ceremony.id)

    def close(self) -> None:
        super().close()
        self.estimator.close()


@dataclass(frozen=True)
class CeremonyDetailState:
    ceremony: Optional[Ceremony] = None
    ceremony_loaded: bool = False
    categories: tuple[Category, ...] = ()
    votes: dict[str, Vote] = field(default_factory=dict)
    is_loading: bool = True
    error: Optional[str] = None
    requires_payment: bool = True
    has_access: bool = False
    can_vote: bool = False
    open_competition_count: int = 0
    is_voting: bool = False
    vote_success: bool = False


class CeremonyDetailViewModel(ViewModel[CeremonyDetailState]):
    """One ceremony with its categories and the user's ceremony-wide picks."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        service: CeremonyService,
        resolver: CompetitionMembershipResolver,
        user_id: str,
        has_access: bool = False,
    ) -> None:
        """Initialize the view model for user_id."""
        super().__init__(CeremonyDetailState(has_access=has_access))
        self.queries = queries
        self.service = service
        self.resolver = resolver
        self.features = FeatureService(queries)
        self.user_id = user_id
        self.year = ""
        self.event: Optional[str] = None

    def initialize(self, ceremony_id: str, year: str, event: Optional[str]) -> None:
        """Start listening for a ceremony. Repeated calls for it are ignored."""
        if not self._enter_scope(ceremony_id, year, event):
            return
        self.year = year
        self.event = event
        self._state.set(CeremonyDetailState(has_access=self.state.has_access))

        self._launch(
            self.features.requires_payment(),
            self._payment_gate_loaded,
            lambda exc: self._payment_gate_loaded(True),
        )
        self._launch(
            self.queries.ceremony(ceremony_id),
            lambda ceremony: self._set_state(ceremony=ceremony, ceremony_loaded=True),
            lambda exc: self._set_state(error=str(exc)),
        )
        self._launch(
            self.queries.categories(year, event),
            self._categories_loaded,
            lambda exc: self._set_state(error=str(exc), is_loading=False),
        )
        self._launch(
            self.resolver.competitions_for_user(self.user_id).catch(),
            self._competitions_loaded,
        )
        self._launch(
            self.service.aggregator.ceremony_votes(self.user_id, year, event).catch(),
            lambda votes: self._set_state(votes=votes),
        )

    def _payment_gate_loaded(self, requires_payment: bool) -> None:
        self._state.update(
            lambda state: replace(
                state,
                requires_payment=requires_payment,
                can_vote=FeatureService.can_access(requires_payment, state.has_access),
            )
        )

    def set_access(self, has_access: bool) -> None:
        """Record whether the user owns the competitions entitlement."""
        self._state.update(
            lambda state: replace(
                state,
                has_access=has_access,
                can_vote=FeatureService.can_access(state.requires_payment, has_access),
            )
        )

    def _categories_loaded(self, categories: list[Category]) -> None:
        visible = sorted(
            (c for c in categories if not c.is_hidden), key=lambda c: c.display_order
        )
        self._set_state(categories=tuple(visible), is_loading=False)

    def _competitions_loaded(self, competitions: list[Competition]) -> None:
        open_count = sum(
            1
            for c in competitions
            if c.ceremony_year == self.year
            and c.competition_status is CompetitionStatus.OPEN
            and event_matches(self.event, c.event)
        )
        self._set_state(open_competition_count=open_count)

    def cast_ceremony_vote(self, category_id: str, nominee_id: str) -> bool:
        """Vote for nominee_id in every matching competition.

        Returns False if the vote was rejected. When the vote is confirmed
        in time it is written into votes right away; otherwise the next
        snapshot brings it in.
        """
        with self._lock:
            scope = self._scope
            year, event = self.year, self.event
        self._set_state(is_voting=True, error=None)
        try:
            confirmed = self.service.cast_ceremony_vote(
                self.user_id, year, event, category_id, nominee_id
            )
        except CommandError as e:
            self._set_state(is_voting=False, error=e.message)
            return False

        with self._lock:
            if self._scope != scope:
                return True
            if confirmed is None:
                self._set_state(is_voting=False, vote_success=True)
            else:
                self._state.update(
                    lambda state: replace(
                        state,
                        votes={**state.votes, category_id: confirmed},
                        is_voting=False,
                        vote_success=True,
                    )
                )
        return True
