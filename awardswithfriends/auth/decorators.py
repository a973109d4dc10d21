"""Decorators for the auth blueprint."""

from functools import wraps

from flask import current_app, g

from awardswithfriends import context
from awardswithfriends.errors import AuthenticationError, PermissionDeniedError


def _competitions_access_granted():
    """Check the caller against the remote payment flag.

    The flag is read once per request; if it cannot be read, payment is
    assumed to be required.
    """
    from awardswithfriends.competition.services import (  # noqa: PLC0415
        FeatureService,
    )

    try:
        requires_payment = (
            FeatureService(context.get_queries())
            .requires_payment()
            .first(timeout=current_app.config["VIEW_LOAD_TIMEOUT"])
        )
    except Exception as e:
        current_app.logger.warning(f"Could not read feature flags: {e}")
        requires_payment = None
    if requires_payment is None:
        requires_payment = True
    return FeatureService.can_access(
        requires_payment, g.user.get("competitions_access", False)
    )


def login_required(f=None, access_required=False):
    """Reject the request unless it carries a verified ID token.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(access_required=True)
    def paid_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if g.get("user") is None:
                raise AuthenticationError()
            if access_required and not _competitions_access_granted():
                raise PermissionDeniedError(
                    "Competitions require a purchase on this account."
                )
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
