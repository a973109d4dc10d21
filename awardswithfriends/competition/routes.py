from __future__ import annotations

from typing import Any

from flask import current_app, g, jsonify, request

from awardswithfriends import context
from awardswithfriends.auth.decorators import login_required
from awardswithfriends.errors import NotFoundError, ValidationError
from awardswithfriends.utils import (
    api_response,
    command_response,
    state_payload,
    validate_form,
)

from . import bp
from .forms import CategoryVoteForm, CreateCompetitionForm, JoinCompetitionForm
from .models import CompetitionFilter
from .services import CompetitionMembershipResolver
from .viewmodels import (
    CategoryViewModel,
    CompetitionViewModel,
    CreateCompetitionViewModel,
    HomeViewModel,
    JoinCompetitionViewModel,
    LeaderboardViewModel,
)


def _load_timeout() -> float:
    return current_app.config["VIEW_LOAD_TIMEOUT"]


def _view(name, factory):
    """Return the signed-in user's cached view model called name."""
    return context.get_views().get(g.user["uid"], name, factory)


def _competition_view(competition_id: str) -> CompetitionViewModel:
    user_id = g.user["uid"]
    view = _view(
        f"competition:{competition_id}",
        lambda: CompetitionViewModel(
            context.get_queries(),
            context.get_ceremony_service(user_id),
            context.get_functions(user_id),
            user_id,
        ),
    )
    view.initialize(competition_id)
    return view


def _loaded_competition_view(competition_id: str) -> CompetitionViewModel:
    view = _competition_view(competition_id)
    state = view.wait_for(
        lambda s: (s.competition_loaded and not s.is_loading) or s.error is not None,
        _load_timeout(),
    )
    if state.competition is None:
        raise NotFoundError("Competition not found.")
    return view


@bp.route("/", methods=["GET"])
@login_required
def list_competitions() -> Any:
    """List the user's competitions for the home screen."""
    user_id = g.user["uid"]
    queries = context.get_queries()
    view = _view(
        "home",
        lambda: HomeViewModel(
            queries, CompetitionMembershipResolver(queries), user_id
        ),
    )
    view.set_access(g.user["competitions_access"])
    view.initialize()
    view.set_filter(CompetitionFilter.from_string(request.args.get("filter")))
    state = view.wait_for(lambda s: not s.is_loading, _load_timeout())
    competitions = [
        state_payload(
            competition,
            event_display_name=view.event_display_name(competition),
            is_owner=view.is_owner(competition),
        )
        for competition in view.filtered_competitions()
    ]
    return jsonify(
        {
            "competitions": competitions,
            "filter": state.filter,
            "is_loading": state.is_loading,
            "error": state.error,
            "requires_payment": state.requires_payment,
            "can_access": view.can_access_competitions(),
        }
    )


@bp.route("/join", methods=["POST"])
@login_required(access_required=True)
def join_competition() -> Any:
    """Join a competition with its invite code."""
    form = validate_form(JoinCompetitionForm())
    view = JoinCompetitionViewModel(context.get_functions(g.user["uid"]))
    view.update_code(form.invite_code.data)
    ok = view.join()
    state = view.state
    return command_response(
        ok,
        f"Joined {state.joined_competition_name}.",
        state.error,
        competition_id=state.joined_competition_id,
        competition_name=state.joined_competition_name,
    )


@bp.route("/create", methods=["POST"])
@login_required(access_required=True)
def create_competition() -> Any:
    """Create a competition for an upcoming ceremony."""
    form = validate_form(CreateCompetitionForm())
    user_id = g.user["uid"]
    view = _view(
        "create",
        lambda: CreateCompetitionViewModel(
            context.get_queries(), context.get_functions(user_id)
        ),
    )
    view.initialize()
    view.wait_for(lambda s: not s.is_loading, _load_timeout())
    view.update_name(form.name.data)
    if form.ceremony_id.data:
        view.select_ceremony(form.ceremony_id.data)
        if view.selected_ceremony() is None:
            raise ValidationError("Please choose an upcoming ceremony.")
    if not view.is_form_valid():
        raise ValidationError("Please choose a ceremony.")

    ok = view.create()
    state = view.state
    return command_response(
        ok,
        "Competition created.",
        state.error,
        competition_id=state.created_competition_id,
        invite_code=state.created_invite_code,
    )


@bp.route("/<string:competition_id>", methods=["GET"])
@login_required
def view_competition(competition_id):
    """Show a competition's categories with the user's picks."""
    view = _loaded_competition_view(competition_id)
    state = view.state
    categories = [
        state_payload(category, voted_nominee_name=view.voted_nominee_name(category))
        for category in state.categories
    ]
    return jsonify(
        state_payload(
            state,
            categories=categories,
            voted_count=view.voted_count(),
            is_owner=view.is_owner(),
        )
    )


@bp.route("/<string:competition_id>/leaderboard", methods=["GET"])
@login_required
def view_leaderboard(competition_id):
    """Show the competition's standings."""
    user_id = g.user["uid"]
    view = _view(
        f"leaderboard:{competition_id}",
        lambda: LeaderboardViewModel(context.get_queries(), user_id),
    )
    view.initialize(competition_id)
    state = view.wait_for(
        lambda s: (s.competition_loaded and not s.is_loading) or s.error is not None,
        _load_timeout(),
    )
    if state.competition is None and state.error is None:
        raise NotFoundError("Competition not found.")
    participants = [
        state_payload(
            participant,
            correct_picks=state.correct_picks.get(participant.user_id, 0),
            is_current_user=view.is_current_user(participant),
        )
        for participant in state.participants
    ]
    return jsonify(
        state_payload(
            state,
            participants=participants,
            participant_total=view.participant_total,
        )
    )


@bp.route(
    "/<string:competition_id>/categories/<string:category_id>",
    methods=["GET", "POST"],
)
@login_required
def view_category(competition_id, category_id):
    """Show one category, or vote in it."""
    user_id = g.user["uid"]
    view = _view(
        f"category:{competition_id}:{category_id}",
        lambda: CategoryViewModel(
            context.get_queries(), context.get_functions(user_id), user_id
        ),
    )
    view.initialize(competition_id, category_id)
    state = view.wait_for(lambda s: not s.is_loading, _load_timeout())
    if state.category is None:
        raise NotFoundError(state.error or "Category not found.")

    if request.method == "POST":
        form = validate_form(CategoryVoteForm())
        nominee_id = form.nominee_id.data
        if state.category.is_voting_locked:
            raise ValidationError("Voting is locked for this category.")
        if state.category.nominee(nominee_id) is None:
            raise ValidationError("Unknown nominee.")
        with view.command_lock:
            view.select_nominee(nominee_id)
            if not view.can_vote() and view.has_existing_vote():
                return jsonify(api_response("Vote unchanged."))
            ok = view.cast_vote()
        return command_response(
            ok, "Vote cast.", view.state.error, nominee_id=nominee_id
        )

    return jsonify(
        state_payload(
            state,
            can_vote=view.can_vote(),
            has_existing_vote=view.has_existing_vote(),
        )
    )


@bp.route("/<string:competition_id>/leave", methods=["POST"])
@login_required
def leave_competition(competition_id):
    view = _competition_view(competition_id)
    ok = view.leave()
    return command_response(ok, "Left the competition.", view.state.error)


@bp.route("/<string:competition_id>/delete", methods=["POST"])
@login_required
def delete_competition(competition_id):
    """Delete a competition. Only its owner may do this."""
    view = _loaded_competition_view(competition_id)
    ok = view.delete()
    return command_response(ok, "Competition deleted.", view.state.error)


@bp.route("/<string:competition_id>/inactive", methods=["POST"])
@login_required
def toggle_inactive(competition_id):
    """Switch a competition between inactive and active."""
    view = _loaded_competition_view(competition_id)
    was_inactive = view.state.competition.is_inactive
    ok = view.toggle_inactive()
    return command_response(
        ok,
        "Competition reactivated." if was_inactive else "Competition marked inactive.",
        view.state.error,
        inactive=not was_inactive,
    )
