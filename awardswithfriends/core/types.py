"""Core data types for the awardswithfriends application."""

from typing import Any, Dict, Optional, TypedDict  # noqa: UP035


class CommandResult(TypedDict, total=False):
    """Payload returned by a callable function."""

    competitionId: str
    competitionName: str
    inviteCode: str


class APIResponse(TypedDict):
    """Generic API response structure."""

    success: bool
    message: str
    data: Optional[Dict[str, Any]]  # noqa: UP006
