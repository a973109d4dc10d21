"""Utility functions for the application."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from flask import current_app, jsonify

from awardswithfriends.core.types import APIResponse
from awardswithfriends.errors import ValidationError


def validate_form(form):
    """Validate a submitted form, raising ValidationError on the first problem."""
    if form.validate_on_submit():
        return form
    for field, errors in form.errors.items():
        for error in errors:
            raise ValidationError(f"Error in {getattr(form, field).label.text}: {error}")
    raise ValidationError()


def api_response(
    message: str = "", data: Optional[dict[str, Any]] = None, success: bool = True
) -> APIResponse:
    return {"success": success, "message": message, "data": data}


def command_response(ok: bool, message: str, error: Optional[str], **data: Any):
    """Answer a command issued through a view model.

    A rejected command is reported with the error the view model recorded.
    """
    if ok:
        return jsonify(api_response(message, data or None))
    current_app.logger.warning(f"Command failed: {error}")
    return (
        jsonify(api_response(error or "The request could not be completed.", success=False)),
        502,
    )


def state_payload(state: Any, **extra: Any) -> dict[str, Any]:
    """Flatten a view model state into a JSON-ready dict."""
    return {**asdict(state), **extra}
