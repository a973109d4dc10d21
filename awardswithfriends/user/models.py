"""Data models for the user blueprint."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class User:
    """A signed-in player."""

    uid: str
    email: str = ""
    display_name: str = ""
    photo_url: Optional[str] = None
    fcm_token: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> User:
        """Build a user from a Firestore document snapshot."""
        data = snapshot.to_dict() or {}
        return cls(
            uid=snapshot.id,
            email=data.get("email", ""),
            display_name=data.get("displayName", ""),
            photo_url=data.get("photoURL"),
            fcm_token=data.get("fcmToken"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )
