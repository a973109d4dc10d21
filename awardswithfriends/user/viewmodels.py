"""Live view model for the profile screen."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from awardswithfriends.core.viewmodel import ViewModel
from awardswithfriends.errors import CommandError

from .models import User
from .services import UserService

if TYPE_CHECKING:
    from awardswithfriends.data.firestore import FirestoreDataSource
    from awardswithfriends.data.functions import CloudFunctionsDataSource


@dataclass(frozen=True)
class ProfileState:
    user: Optional[User] = None
    provider: str = "Unknown"
    is_deleting: bool = False
    account_deleted: bool = False
    error: Optional[str] = None


class ProfileViewModel(ViewModel[ProfileState]):
    """The signed-in user's profile and account actions."""

    def __init__(
        self,
        queries: FirestoreDataSource,
        functions: CloudFunctionsDataSource,
        user_id: str,
        decoded_token: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize the view model for user_id."""
        super().__init__(
            ProfileState(provider=UserService.provider_display_name(decoded_token or {}))
        )
        self.queries = queries
        self.functions = functions
        self.user_id = user_id

    def initialize(self) -> None:
        if not self._enter_scope("profile"):
            return
        self._launch(
            self.queries.user(self.user_id),
            lambda user: self._set_state(user=user),
            lambda exc: self._set_state(error=str(exc)),
        )

    def update_fcm_token(self, token: str) -> bool:
        """Register the device's push token for the user."""
        try:
            UserService.update_fcm_token(self.functions, token)
        except CommandError as e:
            self._set_state(error=e.message)
            return False
        return True

    def delete_account(self) -> bool:
        """Delete the account; the view model stops listening afterwards."""
        self._set_state(is_deleting=True, error=None)
        try:
            UserService.delete_account(self.functions)
        except CommandError as e:
            self._set_state(is_deleting=False, error=e.message)
            return False
        self._set_state(is_deleting=False, account_deleted=True)
        self.close()
        return True
