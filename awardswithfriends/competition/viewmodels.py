"""Live view models for the competition screens."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Optional

from awardswithfriends.ceremony.models import (
    Category,
    CategoryScope,
    Ceremony,
    CeremonyStatus,
    CurrentScope,
    EventType,
    EventTypeData,
)
from awardswithfriends.core.constants import (
    DEFAULT_COMPETITION_NAME,
    INVITE_CODE_LENGTH,
    UNKNOWN_EVENT,
)
from awardswithfriends.core.streams import LiveStream, just
from awardswithfriends.core.viewmodel import ViewModel
from awardswithfriends.errors import CommandError

from .models import Competition, CompetitionFilter, Participant, Vote
from .services import (
    CompetitionMembershipResolver,
    CompetitionService,
    FeatureService,
)

if TYPE_CHECKING:
    from awardswithfriends.ceremony.services import CeremonyService
    from awardswithfriends.data.firestore import FirestoreDataSource
    from awardswithfriends.data.functions import CloudFunctionsDataSource

logger = logging.getLogger(__name__)


def _scope_of(competition: Optional[Competition]) -> Optional[CategoryScope]:
    return competition.category_scope if competition is not None else None


@dataclass(frozen=True)
class HomeState:
    competitions: tuple[Competition, ...] = ()
    event_types: dict[str, EventTypeData] = field(default_factory=dict)
    is_loading: bool = True
    filter: str = CompetitionFilter.ALL.value
    error: Optional[str] = None
    requires_payment: bool = True
    has_access: bool = False
    can_access: bool = False


class HomeViewModel(ViewModel[HomeState]):
    """The user's competitions."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        resolver: CompetitionMembershipResolver,
        user_id: str,
        has_access: bool = False,
    ) -> None:
        """Initialize the view model for user_id."""
        super().__init__(HomeState(has_access=has_access))
        self.queries = queries
        self.resolver = resolver
        self.features = FeatureService(queries)
        self.user_id = user_id

    def initialize(self) -> None:
        if not self._enter_scope("home"):
            return
        self._launch(
            self.resolver.competitions_for_user(self.user_id),
            self._competitions_loaded,
            self._competitions_failed,
        )
        self._launch(self.queries.event_types().catch(), self._event_types_loaded)
        self._launch(
            self.features.requires_payment(),
            self._payment_gate_loaded,
            lambda exc: self._payment_gate_loaded(True),
        )

    def _competitions_loaded(self, competitions: list[Competition]) -> None:
        self._set_state(
            competitions=tuple(CompetitionService.sort_for_home(competitions)),
            is_loading=False,
        )

    def _competitions_failed(self, exc: Exception) -> None:
        logger.error(f"Error loading competitions for {self.user_id}: {exc}")
        self._set_state(error=str(exc), is_loading=False)

    def _event_types_loaded(self, event_types: list[EventTypeData]) -> None:
        # Competitions refer to event types by slug or by document id.
        by_key: dict[str, EventTypeData] = {}
        for event_type in event_types:
            if event_type.slug:
                by_key[event_type.slug] = event_type
            if event_type.id:
                by_key[event_type.id] = event_type
        self._set_state(event_types=by_key)

    def _payment_gate_loaded(self, requires_payment: bool) -> None:
        self._state.update(
            lambda state: replace(
                state,
                requires_payment=requires_payment,
                can_access=FeatureService.can_access(requires_payment, state.has_access),
            )
        )

    def set_access(self, has_access: bool) -> None:
        """Record whether the user owns the competitions entitlement."""
        self._state.update(
            lambda state: replace(
                state,
                has_access=has_access,
                can_access=FeatureService.can_access(state.requires_payment, has_access),
            )
        )

    def set_filter(self, competition_filter: CompetitionFilter) -> None:
        self._set_state(filter=competition_filter.value)

    def filtered_competitions(self) -> list[Competition]:
        state = self.state
        return CompetitionService.filter_for_user(
            list(state.competitions),
            CompetitionFilter.from_string(state.filter),
            self.user_id,
        )

    def event_display_name(self, competition: Competition) -> str:
        """Return the display name of the event a competition predicts."""
        if competition.event is None:
            return UNKNOWN_EVENT
        event_type = self.state.event_types.get(competition.event)
        if event_type is not None and event_type.display_name:
            return event_type.display_name
        known = EventType.from_string(competition.event)
        if known is EventType.OTHER and competition.event != EventType.OTHER.slug:
            return UNKNOWN_EVENT
        return known.display_name

    def can_access_competitions(self) -> bool:
        return self.state.can_access

    def is_owner(self, competition: Competition) -> bool:
        return competition.is_owned_by(self.user_id)


@dataclass(frozen=True)
class CompetitionState:
    competition: Optional[Competition] = None
    categories: tuple[Category, ...] = ()
    votes: dict[str, Vote] = field(default_factory=dict)
    competition_loaded: bool = False
    is_loading: bool = True
    error: Optional[str] = None
    is_leaving: bool = False
    has_left: bool = False


class CompetitionViewModel(ViewModel[CompetitionState]):
    """One competition with its categories and the user's picks."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        service: CeremonyService,
        functions: CloudFunctionsDataSource,
        user_id: str,
    ) -> None:
        """Initialize the view model for user_id."""
        super().__init__(CompetitionState())
        self.queries = queries
        self.service = service
        self.functions = functions
        self.user_id = user_id
        self.competition_id = ""

    def initialize(self, competition_id: str) -> None:
        """Start listening for a competition. Repeated calls for it are ignored."""
        if not self._enter_scope(competition_id):
            return
        self.competition_id = competition_id
        self._state.set(CompetitionState())

        competition = self.queries.competition(competition_id).share()
        self._launch(
            competition,
            lambda c: self._set_state(competition=c, competition_loaded=True),
            self._failed,
        )
        # Categories follow the competition's scope, resolved once per change.
        categories = (
            competition.map(_scope_of)
            .distinct()
            .switch_map(self._categories_for)
        )
        self._launch(categories, self._categories_loaded, self._failed)
        self._launch(
            self.queries.votes(competition_id, self.user_id).catch(),
            lambda votes: self._set_state(votes={v.category_id: v for v in votes}),
        )

    def _categories_for(
        self, scope: Optional[CategoryScope]
    ) -> LiveStream[list[Category]]:
        if scope is None:
            return just([])
        stream = self.service.categories_for_scope(scope)
        if isinstance(scope, CurrentScope):
            return stream.map(lambda cats: [c for c in cats if not c.is_hidden])
        return stream

    def _categories_loaded(self, categories: list[Category]) -> None:
        ordered = sorted(categories, key=lambda c: c.display_order)
        self._set_state(categories=tuple(ordered), is_loading=False)

    def _failed(self, exc: Exception) -> None:
        self._set_state(error=str(exc), is_loading=False)

    def voted_count(self) -> int:
        state = self.state
        return sum(1 for c in state.categories if c.id in state.votes)

    def is_owner(self) -> bool:
        competition = self.state.competition
        return competition is not None and competition.is_owned_by(self.user_id)

    def voted_nominee_name(self, category: Category) -> Optional[str]:
        vote = self.state.votes.get(category.id)
        if vote is None:
            return None
        nominee = category.nominee(vote.nominee_id)
        return nominee.title if nominee is not None else None

    def leave(self) -> bool:
        """Leave the competition."""
        self._set_state(is_leaving=True)
        try:
            self.functions.leave_competition(self.competition_id)
        except CommandError as e:
            self._set_state(is_leaving=False, error=e.message)
            return False
        self._set_state(is_leaving=False, has_left=True)
        return True

    def delete(self) -> bool:
        """Delete the competition. The server only allows this for its owner."""
        try:
            self.functions.delete_competition(self.competition_id)
        except CommandError as e:
            self._set_state(error=e.message)
            return False
        return True

    def toggle_inactive(self) -> bool:
        """Flip the competition between inactive and active.

        The new status arrives through the competition listener.
        """
        competition = self.state.competition
        if competition is None:
            return False
        try:
            self.functions.set_competition_inactive(
                self.competition_id, not competition.is_inactive
            )
        except CommandError as e:
            self._set_state(error=e.message)
            return False
        return True


@dataclass(frozen=True)
class CategoryState:
    category: Optional[Category] = None
    current_vote: Optional[Vote] = None
    selected_nominee_id: Optional[str] = None
    is_loading: bool = True
    is_voting: bool = False
    error: Optional[str] = None
    vote_success: bool = False


class CategoryViewModel(ViewModel[CategoryState]):
    """One category of a competition and the user's pick for it."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        functions: CloudFunctionsDataSource,
        user_id: str,
    ) -> None:
        """Initialize the view model for user_id."""
        super().__init__(CategoryState())
        self.queries = queries
        self.functions = functions
        self.user_id = user_id
        self.competition_id = ""
        self.category_id = ""

    def initialize(self, competition_id: str, category_id: str) -> None:
        if not self._enter_scope(competition_id, category_id):
            return
        self.competition_id = competition_id
        self.category_id = category_id
        self._state.set(CategoryState())

        scopes = (
            self.queries.competition(competition_id).map(_scope_of).distinct().share()
        )
        self._launch(scopes, self._scope_resolved, self._failed)
        self._launch(
            scopes.switch_map(self._category_for),
            self._category_loaded,
            self._failed,
        )
        self._launch(
            self.queries.votes(competition_id, self.user_id).catch(),
            self._votes_loaded,
        )

    def _scope_resolved(self, scope: Optional[CategoryScope]) -> None:
        if scope is None:
            self._set_state(is_loading=False, error="Competition not found")
        elif not isinstance(scope, CurrentScope):
            # Legacy competitions have no category documents at the top level.
            self._set_state(is_loading=False, error="Category not found")

    def _category_for(
        self, scope: Optional[CategoryScope]
    ) -> LiveStream[Optional[Category]]:
        if isinstance(scope, CurrentScope):
            return self.queries.category(scope.year, scope.event, self.category_id)
        return just(None)

    def _category_loaded(self, category: Optional[Category]) -> None:
        self._state.update(
            lambda state: replace(
                state,
                category=category,
                is_loading=False,
                selected_nominee_id=state.selected_nominee_id
                or (state.current_vote.nominee_id if state.current_vote else None),
            )
        )

    def _votes_loaded(self, votes: list[Vote]) -> None:
        vote = next((v for v in votes if v.category_id == self.category_id), None)
        self._state.update(
            lambda state: replace(
                state,
                current_vote=vote,
                selected_nominee_id=state.selected_nominee_id
                or (vote.nominee_id if vote else None),
            )
        )

    def _failed(self, exc: Exception) -> None:
        self._set_state(error=str(exc), is_loading=False)

    def select_nominee(self, nominee_id: str) -> None:
        """Select a nominee; ignored once voting for the category is locked."""
        category = self.state.category
        if category is None or category.is_voting_locked:
            return
        self._set_state(selected_nominee_id=nominee_id)

    def can_vote(self) -> bool:
        state = self.state
        current = state.current_vote.nominee_id if state.current_vote else None
        return (
            state.selected_nominee_id is not None
            and not state.is_voting
            and state.selected_nominee_id != current
            and state.category is not None
            and not state.category.is_voting_locked
        )

    def has_existing_vote(self) -> bool:
        return self.state.current_vote is not None

    def cast_vote(self) -> bool:
        """Submit the selected nominee.

        Nothing is sent while voting is locked or when the selection matches
        the existing vote.
        """
        state = self.state
        if state.selected_nominee_id is None or state.category is None:
            return False
        if state.category.is_voting_locked:
            return False
        if state.current_vote and state.selected_nominee_id == state.current_vote.nominee_id:
            return False

        self._set_state(is_voting=True, error=None)
        try:
            self.functions.cast_vote(
                self.competition_id, self.category_id, state.selected_nominee_id
            )
        except CommandError as e:
            self._set_state(is_voting=False, error=e.message)
            return False
        self._set_state(is_voting=False, vote_success=True)
        return True


@dataclass(frozen=True)
class LeaderboardState:
    competition: Optional[Competition] = None
    participants: tuple[Participant, ...] = ()
    correct_picks: dict[str, int] = field(default_factory=dict)
    competition_loaded: bool = False
    is_loading: bool = True
    error: Optional[str] = None


class LeaderboardViewModel(ViewModel[LeaderboardState]):
    """Standings of one competition."""

    def __init__(self, queries: FirestoreDataSource, user_id: str) -> None:
        """Initialize the view model for user_id."""
        super().__init__(LeaderboardState())
        self.queries = queries
        self.user_id = user_id

    def initialize(self, competition_id: str) -> None:
        if not self._enter_scope(competition_id):
            return
        self._state.set(LeaderboardState())
        self._launch(
            self.queries.competition(competition_id),
            lambda competition: self._set_state(
                competition=competition, competition_loaded=True
            ),
            lambda exc: self._set_state(error=str(exc)),
        )
        self._launch(
            self.queries.participants(competition_id),
            lambda participants: self._set_state(
                participants=tuple(CompetitionService.rank_participants(participants)),
                is_loading=False,
            ),
            lambda exc: self._set_state(error=str(exc), is_loading=False),
        )
        self._launch(
            self.queries.all_votes(competition_id).catch(),
            self._votes_loaded,
        )

    def _votes_loaded(self, votes: list[Vote]) -> None:
        correct = Counter(v.user_id for v in votes if v.is_correct is True)
        self._set_state(correct_picks=dict(correct))

    @property
    def participant_total(self) -> int:
        return len(self.state.participants)

    def is_current_user(self, participant: Participant) -> bool:
        return self.user_id in (participant.id, participant.user_id)


@dataclass(frozen=True)
class JoinCompetitionState:
    code: str = ""
    is_loading: bool = False
    error: Optional[str] = None
    joined_competition_id: Optional[str] = None
    joined_competition_name: Optional[str] = None


class JoinCompetitionViewModel(ViewModel[JoinCompetitionState]):
    """Joining a competition by invite code."""

    def __init__(self, functions: CloudFunctionsDataSource) -> None:
        """Initialize the view model."""
        super().__init__(JoinCompetitionState())
        self.functions = functions

    def update_code(self, code: str) -> None:
        self._set_state(code=CompetitionService.normalize_invite_code(code))

    def is_code_valid(self) -> bool:
        return CompetitionService.is_valid_invite_code(self.state.code)

    def join(self) -> bool:
        """Join the competition the current code belongs to."""
        code = self.state.code
        if len(code) != INVITE_CODE_LENGTH:
            self._set_state(
                error=f"Please enter a {INVITE_CODE_LENGTH}-character invite code"
            )
            return False

        self._set_state(is_loading=True, error=None)
        try:
            result = self.functions.join_competition(code)
        except CommandError as e:
            self._set_state(
                is_loading=False, error=e.message or "Failed to join competition"
            )
            return False
        self._set_state(
            is_loading=False,
            joined_competition_id=result.get("competitionId"),
            joined_competition_name=result.get("competitionName")
            or DEFAULT_COMPETITION_NAME,
        )
        return True


@dataclass(frozen=True)
class CreateCompetitionState:
    name: str = ""
    ceremonies: tuple[Ceremony, ...] = ()
    selected_ceremony_id: Optional[str] = None
    is_loading: bool = True
    is_creating: bool = False
    error: Optional[str] = None
    created_competition_id: Optional[str] = None
    created_invite_code: Optional[str] = None


class CreateCompetitionViewModel(ViewModel[CreateCompetitionState]):
    """Creating a competition for an upcoming ceremony."""

    def __init__(
        self, queries: FirestoreDataSource, functions: CloudFunctionsDataSource
    ) -> None:
        """Initialize the view model."""
        super().__init__(CreateCompetitionState())
        self.queries = queries
        self.functions = functions

    def initialize(self) -> None:
        if not self._enter_scope("create"):
            return
        self._launch(
            self.queries.ceremonies(),
            self._ceremonies_loaded,
            lambda exc: self._set_state(error=str(exc), is_loading=False),
        )

    def _ceremonies_loaded(self, ceremonies: list[Ceremony]) -> None:
        active = tuple(
            c for c in ceremonies if c.ceremony_status is not CeremonyStatus.COMPLETED
        )
        self._state.update(
            lambda state: replace(
                state,
                ceremonies=active,
                selected_ceremony_id=state.selected_ceremony_id
                or (active[0].id if active else None),
                is_loading=False,
            )
        )

    def update_name(self, name: str) -> None:
        self._set_state(name=name)

    def select_ceremony(self, ceremony_id: str) -> None:
        self._set_state(selected_ceremony_id=ceremony_id)

    def selected_ceremony(self) -> Optional[Ceremony]:
        state = self.state
        return next(
            (c for c in state.ceremonies if c.id == state.selected_ceremony_id), None
        )

    def is_form_valid(self) -> bool:
        state = self.state
        return bool(state.name.strip()) and state.selected_ceremony_id is not None

    def create(self) -> bool:
        """Create a competition for the selected ceremony."""
        ceremony = self.selected_ceremony()
        if ceremony is None:
            self._set_state(error="Please choose a ceremony")
            return False
        name = self.state.name.strip()
        if not name:
            self._set_state(error="Please enter a competition name")
            return False

        self._set_state(is_creating=True, error=None)
        try:
            result = self.functions.create_competition(
                name, ceremony.year, ceremony.event
            )
        except CommandError as e:
            self._set_state(is_creating=False, error=e.message)
            return False
        self._set_state(
            is_creating=False,
            created_competition_id=result.get("competitionId"),
            created_invite_code=result.get("inviteCode"),
        )
        return True
