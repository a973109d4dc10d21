from __future__ import annotations

from typing import Any

from firebase_admin import auth, firestore
from flask import current_app, g, jsonify, request

from awardswithfriends import context
from awardswithfriends.errors import AuthenticationError, ValidationError
from awardswithfriends.user.services import UserService

from . import bp
from .decorators import login_required


@bp.route("/session", methods=["POST"])
def session_login() -> Any:
    """Register a sign-in from a client holding a fresh Firebase ID token.

    The token is verified, the user document is created or refreshed, and
    the token is kept so callable functions can be invoked for the user.
    """
    id_token = (request.get_json(silent=True) or {}).get("idToken")
    if not id_token:
        raise ValidationError("idToken is required.")
    try:
        decoded_token = auth.verify_id_token(id_token)
    except Exception as e:
        current_app.logger.warning(f"Rejected ID token during session login: {e}")
        raise AuthenticationError("Invalid token.") from e

    uid = decoded_token["uid"]
    created = UserService.upsert_on_sign_in(firestore.client(), decoded_token)
    context.remember_token(uid, id_token)
    current_app.logger.info(f"User {uid} signed in (new account: {created}).")
    return jsonify(
        {
            "success": True,
            "message": "Signed in.",
            "data": {
                "uid": uid,
                "created": created,
                "provider": UserService.provider_display_name(decoded_token),
            },
        }
    )


@bp.route("/logout", methods=["POST"])
@login_required
def logout() -> Any:
    """Stop every live view held for the user.

    Signing out of Firebase itself happens on the client.
    """
    closed = context.forget_user(g.user["uid"])
    return jsonify(
        {"success": True, "message": "Signed out.", "data": {"closed_views": closed}}
    )
