from __future__ import annotations

from typing import Any, Optional

from flask import current_app, g, jsonify, request

from awardswithfriends import context
from awardswithfriends.auth.decorators import login_required
from awardswithfriends.competition.services import CompetitionMembershipResolver
from awardswithfriends.errors import NotFoundError, ValidationError
from awardswithfriends.utils import command_response, state_payload, validate_form

from . import bp
from .forms import CeremonyVoteForm
from .viewmodels import CeremoniesViewModel, CeremonyDetailViewModel


def _ceremonies_view() -> CeremoniesViewModel:
    queries = context.get_queries()
    view = context.get_views().get(
        g.user["uid"], "ceremonies", lambda: CeremoniesViewModel(queries)
    )
    view.initialize()
    return view


def _detail_view(
    ceremony_id: str, year: str, event: Optional[str]
) -> CeremonyDetailViewModel:
    user_id = g.user["uid"]
    queries = context.get_queries()
    view = context.get_views().get(
        user_id,
        f"ceremony:{ceremony_id}:{year}:{event or ''}",
        lambda: CeremonyDetailViewModel(
            queries,
            context.get_ceremony_service(user_id),
            CompetitionMembershipResolver(queries),
            user_id,
        ),
    )
    view.set_access(g.user["competitions_access"])
    view.initialize(ceremony_id, year, event)
    return view


@bp.route("/", methods=["GET"])
@login_required
def list_ceremonies() -> Any:
    """List ceremonies, newest first, optionally for one event."""
    view = _ceremonies_view()
    view.set_event_filter(request.args.get("event") or None)
    state = view.wait_for(
        lambda s: not s.is_loading, current_app.config["VIEW_LOAD_TIMEOUT"]
    )
    ceremonies = [
        {
            **state_payload(ceremony),
            "status": ceremony.ceremony_status.value,
            "category_count": view.category_count(ceremony),
        }
        for ceremony in view.visible_ceremonies()
    ]
    return jsonify(
        {
            "ceremonies": ceremonies,
            "event_types": state.event_types,
            "selected_event": state.selected_event,
            "is_loading": state.is_loading,
            "error": state.error,
        }
    )


@bp.route("/<string:ceremony_id>", methods=["GET"])
@login_required
def view_ceremony(ceremony_id):
    """Show a ceremony with its categories and the user's current picks."""
    year = request.args.get("year")
    if not year:
        raise ValidationError("year is required.")
    view = _detail_view(ceremony_id, year, request.args.get("event") or None)
    state = view.wait_for(
        lambda s: (not s.is_loading and s.ceremony_loaded) or s.error is not None,
        current_app.config["VIEW_LOAD_TIMEOUT"],
    )
    if state.ceremony is None and state.error is None:
        raise NotFoundError("Ceremony not found.")
    return jsonify(state_payload(state))


@bp.route("/<string:ceremony_id>/votes", methods=["POST"])
@login_required(access_required=True)
def cast_ceremony_vote(ceremony_id):
    """Vote for a nominee in every matching competition at once."""
    form = validate_form(CeremonyVoteForm())
    view = _detail_view(ceremony_id, form.year.data, form.event.data or None)
    ok = view.cast_ceremony_vote(form.category_id.data, form.nominee_id.data)
    state = view.state
    vote = state.votes.get(form.category_id.data)
    return command_response(
        ok,
        "Vote cast.",
        state.error,
        category_id=form.category_id.data,
        nominee_id=form.nominee_id.data,
        confirmed=vote is not None and vote.nominee_id == form.nominee_id.data,
        open_competition_count=state.open_competition_count,
    )
