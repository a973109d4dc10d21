"""Client for the game's Firebase callable functions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Optional

import requests

from awardswithfriends.core.constants import (
    DEFAULT_FUNCTIONS_REGION,
    DEFAULT_FUNCTIONS_TIMEOUT,
    FN_CAST_CEREMONY_VOTE,
    FN_CAST_VOTE,
    FN_CREATE_COMPETITION,
    FN_DELETE_ACCOUNT,
    FN_DELETE_COMPETITION,
    FN_JOIN_COMPETITION,
    FN_LEAVE_COMPETITION,
    FN_SET_COMPETITION_INACTIVE,
    FN_UPDATE_FCM_TOKEN,
)
from awardswithfriends.core.types import CommandResult
from awardswithfriends.errors import CommandError

logger = logging.getLogger(__name__)


def functions_base_url(config: Mapping[str, Any]) -> str:
    """Return the callable functions endpoint for an app config."""
    base_url = config.get("FUNCTIONS_BASE_URL")
    if base_url:
        return base_url.rstrip("/")
    region = config.get("FUNCTIONS_REGION") or DEFAULT_FUNCTIONS_REGION
    project_id = config.get("FIREBASE_PROJECT_ID")
    if not project_id:
        raise ValueError("FIREBASE_PROJECT_ID or FUNCTIONS_BASE_URL must be set.")
    return f"https://{region}-{project_id}.cloudfunctions.net"


class CloudFunctionsDataSource:
    """Invokes callable functions on behalf of one signed-in user.

    Every call is a single HTTPS request using the callable protocol. A
    failed call raises CommandError and is never retried.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], Optional[str]],
        timeout: float = DEFAULT_FUNCTIONS_TIMEOUT,
    ) -> None:
        """Initialize the client.

        token_provider returns the caller's current Firebase ID token.
        """
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout

    def call(self, name: str, data: Optional[dict[str, Any]] = None) -> Any:
        """Invoke the callable function name and return its result."""
        headers = {"Content-Type": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = requests.post(
                f"{self.base_url}/{name}",
                json={"data": data},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Callable {name} could not be reached: {e}")
            raise CommandError(name, "The server could not be reached.") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        error = body.get("error")
        if error or not response.ok:
            error = error if isinstance(error, dict) else {}
            status = error.get("status") or str(response.status_code)
            message = error.get("message") or "The request could not be completed."
            logger.warning(f"Callable {name} failed with {status}: {message}")
            raise CommandError(name, message, status)

        return body.get("result")

    def create_competition(
        self, name: str, ceremony_year: str, event: Optional[str] = None
    ) -> CommandResult:
        data = {"name": name, "ceremonyYear": ceremony_year}
        if event is not None:
            data["event"] = event
        return self.call(FN_CREATE_COMPETITION, data) or {}

    def join_competition(self, invite_code: str) -> CommandResult:
        return (
            self.call(FN_JOIN_COMPETITION, {"inviteCode": invite_code.upper()}) or {}
        )

    def leave_competition(self, competition_id: str) -> None:
        self.call(FN_LEAVE_COMPETITION, {"competitionId": competition_id})

    def delete_competition(self, competition_id: str) -> None:
        self.call(FN_DELETE_COMPETITION, {"competitionId": competition_id})

    def set_competition_inactive(self, competition_id: str, inactive: bool) -> None:
        self.call(
            FN_SET_COMPETITION_INACTIVE,
            {"competitionId": competition_id, "inactive": inactive},
        )

    def cast_vote(self, competition_id: str, category_id: str, nominee_id: str) -> None:
        self.call(
            FN_CAST_VOTE,
            {
                "competitionId": competition_id,
                "categoryId": category_id,
                "nomineeId": nominee_id,
            },
        )

    def cast_ceremony_vote(
        self, ceremony_year: str, category_id: str, nominee_id: str
    ) -> None:
        self.call(
            FN_CAST_CEREMONY_VOTE,
            {
                "ceremonyYear": ceremony_year,
                "categoryId": category_id,
                "nomineeId": nominee_id,
            },
        )

    def update_fcm_token(self, token: str) -> None:
        self.call(FN_UPDATE_FCM_TOKEN, {"token": token})

    def delete_account(self) -> None:
        self.call(FN_DELETE_ACCOUNT)
