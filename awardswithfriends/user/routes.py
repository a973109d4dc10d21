from __future__ import annotations

from typing import Any

from flask import current_app, g, jsonify

from awardswithfriends import context
from awardswithfriends.auth.decorators import login_required
from awardswithfriends.utils import command_response, state_payload, validate_form

from . import bp
from .forms import FcmTokenForm
from .viewmodels import ProfileViewModel


def _profile_view() -> ProfileViewModel:
    user_id = g.user["uid"]
    view = context.get_views().get(
        user_id,
        "profile",
        lambda: ProfileViewModel(
            context.get_queries(),
            context.get_functions(user_id),
            user_id,
            decoded_token=g.user["token"],
        ),
    )
    view.initialize()
    return view


@bp.route("/", methods=["GET"])
@login_required
def profile() -> Any:
    """Show the signed-in user's profile."""
    view = _profile_view()
    state = view.wait_for(
        lambda s: s.user is not None or s.error is not None,
        current_app.config["VIEW_LOAD_TIMEOUT"],
    )
    return jsonify(state_payload(state))


@bp.route("/fcm-token", methods=["POST"])
@login_required
def update_fcm_token() -> Any:
    """Register the device's push notification token."""
    form = validate_form(FcmTokenForm())
    view = _profile_view()
    ok = view.update_fcm_token(form.token.data)
    return command_response(ok, "Push token updated.", view.state.error)


@bp.route("/", methods=["DELETE"])
@login_required
def delete_account() -> Any:
    """Delete the account and everything stored for it."""
    user_id = g.user["uid"]
    view = _profile_view()
    ok = view.delete_account()
    if ok:
        context.forget_user(user_id)
        current_app.logger.info(f"Deleted account {user_id}.")
    return command_response(ok, "Account deleted.", view.state.error)
