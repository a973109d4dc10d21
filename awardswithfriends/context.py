"""Per-application access to data sources and live view models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from firebase_admin import firestore
from flask import current_app

from awardswithfriends.core.viewmodel import ViewRegistry

if TYPE_CHECKING:
    from awardswithfriends.ceremony.services import CeremonyService
    from awardswithfriends.data.firestore import FirestoreDataSource
    from awardswithfriends.data.functions import CloudFunctionsDataSource

QUERIES_EXTENSION = "awardswithfriends.queries"
VIEWS_EXTENSION = "awardswithfriends.views"
TOKENS_EXTENSION = "awardswithfriends.id_tokens"


def get_queries() -> FirestoreDataSource:
    """Return the application's live query source."""
    from awardswithfriends.data.firestore import (  # noqa: PLC0415
        FirestoreDataSource,
    )

    queries = current_app.extensions.get(QUERIES_EXTENSION)
    if queries is None:
        queries = FirestoreDataSource(firestore.client())
        current_app.extensions[QUERIES_EXTENSION] = queries
    return queries


def get_views() -> ViewRegistry:
    """Return the registry holding every user's live view models."""
    views = current_app.extensions.get(VIEWS_EXTENSION)
    if views is None:
        views = current_app.extensions.setdefault(
            VIEWS_EXTENSION,
            ViewRegistry(idle_timeout=current_app.config["VIEW_IDLE_TIMEOUT"]),
        )
    return views


def get_id_tokens() -> dict[str, str]:
    """Return the latest verified ID token per user."""
    return current_app.extensions.setdefault(TOKENS_EXTENSION, {})


def get_functions(user_id: str) -> CloudFunctionsDataSource:
    """Return a callable functions client acting as user_id.

    The client reads the user's most recent ID token on every call, so a
    cached view model keeps working after the token is refreshed.
    """
    from awardswithfriends.data.functions import (  # noqa: PLC0415
        CloudFunctionsDataSource,
        functions_base_url,
    )

    tokens = get_id_tokens()
    return CloudFunctionsDataSource(
        functions_base_url(current_app.config),
        lambda: tokens.get(user_id),
        timeout=current_app.config["FUNCTIONS_TIMEOUT"],
    )


def get_ceremony_service(user_id: str) -> CeremonyService:
    from awardswithfriends.ceremony.services import (  # noqa: PLC0415
        CeremonyService,
    )

    return CeremonyService(
        get_queries(),
        get_functions(user_id),
        confirmation_timeout=current_app.config["VOTE_CONFIRMATION_TIMEOUT"],
    )


def remember_token(user_id: str, id_token: str) -> None:
    """Keep the user's latest verified ID token and mark them active."""
    get_views().touch(user_id)
    get_id_tokens()[user_id] = id_token


def sweep_idle_views() -> list[str]:
    """Close idle views and drop the tokens of users who went quiet."""
    idle_users = get_views().sweep()
    tokens = get_id_tokens()
    for user_id in idle_users:
        tokens.pop(user_id, None)
    return idle_users


def forget_user(user_id: str) -> int:
    """Drop the user's token and close their live view models."""
    get_id_tokens().pop(user_id, None)
    return get_views().discard_user(user_id)
