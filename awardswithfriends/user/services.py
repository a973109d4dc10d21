"""Service layer for user accounts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from firebase_admin import firestore

from awardswithfriends.core.constants import USERS_COLLECTION

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from awardswithfriends.data.functions import CloudFunctionsDataSource

PROVIDER_NAMES = {
    "google.com": "Google",
    "apple.com": "Apple",
    "password": "Email",
}


class UserService:
    """Service class for user-related operations."""

    @staticmethod
    def default_display_name(name: Optional[str], email: Optional[str]) -> str:
        """Pick a display name, falling back to the email's local part."""
        if name:
            return name
        if email:
            return email.split("@")[0]
        return "User"

    @staticmethod
    def upsert_on_sign_in(db: Client, decoded_token: dict[str, Any]) -> bool:
        """Create or refresh the user document for a verified ID token.

        Returns True when a new document was created.
        """
        uid = decoded_token["uid"]
        email = decoded_token.get("email")
        name = decoded_token.get("name")
        picture = decoded_token.get("picture")

        user_ref = db.collection(USERS_COLLECTION).document(uid)
        if not user_ref.get().exists:
            user_ref.set(
                {
                    "uid": uid,
                    "email": email or "",
                    "displayName": UserService.default_display_name(name, email),
                    "photoURL": picture,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                }
            )
            return True

        updates: dict[str, Any] = {"updatedAt": firestore.SERVER_TIMESTAMP}
        if name:
            updates["displayName"] = name
        if picture:
            updates["photoURL"] = picture
        user_ref.update(updates)
        return False

    @staticmethod
    def provider_display_name(decoded_token: dict[str, Any]) -> str:
        """Return a readable name for the provider the user signed in with."""
        provider = (decoded_token.get("firebase") or {}).get("sign_in_provider")
        if not provider:
            return "Unknown"
        return PROVIDER_NAMES.get(provider, provider)

    @staticmethod
    def update_fcm_token(functions: CloudFunctionsDataSource, token: str) -> None:
        functions.update_fcm_token(token)

    @staticmethod
    def delete_account(functions: CloudFunctionsDataSource) -> None:
        """Delete the account and all of its data on the server."""
        functions.delete_account()
