"""Live Firestore queries used by the game."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from firebase_admin import firestore

from awardswithfriends.ceremony.models import (
    Category,
    Ceremony,
    EventTypeData,
    Nominee,
    event_matches,
)
from awardswithfriends.competition.models import (
    Competition,
    Participant,
    Vote,
    vote_document_id,
)
from awardswithfriends.core.constants import (
    CATEGORIES_COLLECTION,
    CEREMONIES_COLLECTION,
    COMPETITIONS_COLLECTION,
    CONFIG_COLLECTION,
    EVENT_TYPES_COLLECTION,
    FEATURES_DOCUMENT,
    FIELD_CEREMONY_YEAR,
    FIELD_DATE,
    FIELD_DISPLAY_ORDER,
    FIELD_USER_ID,
    NOMINEES_COLLECTION,
    PARTICIPANTS_COLLECTION,
    USERS_COLLECTION,
    VOTES_COLLECTION,
)
from awardswithfriends.core.streams import LiveStream, Observer
from awardswithfriends.user.models import User

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

T = TypeVar("T")


def document_stream(
    ref: Any, parse: Callable[[DocumentSnapshot], T]
) -> LiveStream[Optional[T]]:
    """Listen to one document; a missing document is delivered as None."""

    def source(observer: Observer) -> Callable[[], None]:
        def on_snapshot(docs: list[Any], changes: Any, read_time: Any) -> None:
            snapshot = docs[0] if docs else None
            try:
                value = parse(snapshot) if snapshot is not None and snapshot.exists else None
            except Exception as e:
                observer.error(e)
                return
            observer.next(value)

        watch = ref.on_snapshot(on_snapshot)
        return watch.unsubscribe

    return LiveStream(source)


def query_stream(
    query: Any, parse: Callable[[list[DocumentSnapshot]], T]
) -> LiveStream[T]:
    """Listen to a query; every snapshot is parsed as a whole."""

    def source(observer: Observer) -> Callable[[], None]:
        def on_snapshot(docs: list[Any], changes: Any, read_time: Any) -> None:
            try:
                value = parse(docs)
            except Exception as e:
                observer.error(e)
                return
            observer.next(value)

        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe

    return LiveStream(source)


def _competition_ids(docs: list[DocumentSnapshot]) -> list[str]:
    """Return the distinct ids of the competitions owning participant docs."""
    ids: dict[str, None] = {}
    for doc in docs:
        parent = doc.reference.parent.parent
        if parent is not None:
            ids.setdefault(parent.id)
    return list(ids)


class FirestoreDataSource:
    """Read-only live view of the game's Firestore collections."""

    def __init__(self, db: Client) -> None:
        """Initialize the data source with a Firestore client."""
        self.db = db

    # Users

    def user(self, uid: str) -> LiveStream[Optional[User]]:
        return document_stream(
            self.db.collection(USERS_COLLECTION).document(uid), User.from_snapshot
        )

    # Competitions

    def competition(self, competition_id: str) -> LiveStream[Optional[Competition]]:
        return document_stream(
            self.db.collection(COMPETITIONS_COLLECTION).document(competition_id),
            Competition.from_snapshot,
        )

    def participant_index(self, user_id: str) -> LiveStream[list[str]]:
        """Stream the ids of every competition user_id participates in."""
        query = self.db.collection_group(PARTICIPANTS_COLLECTION).where(
            filter=firestore.FieldFilter(FIELD_USER_ID, "==", user_id)
        )
        return query_stream(query, _competition_ids)

    def participants(self, competition_id: str) -> LiveStream[list[Participant]]:
        """Stream a competition's participants, leaving out blocked ones."""
        query = (
            self.db.collection(COMPETITIONS_COLLECTION)
            .document(competition_id)
            .collection(PARTICIPANTS_COLLECTION)
        )
        return query_stream(
            query,
            lambda docs: [
                p for p in map(Participant.from_snapshot, docs) if not p.blocked
            ],
        )

    # Ceremonies

    def ceremonies(self) -> LiveStream[list[Ceremony]]:
        query = self.db.collection(CEREMONIES_COLLECTION).order_by(
            FIELD_DATE, direction=firestore.Query.ASCENDING
        )
        return query_stream(query, lambda docs: [Ceremony.from_snapshot(d) for d in docs])

    def ceremony(self, ceremony_id: str) -> LiveStream[Optional[Ceremony]]:
        return document_stream(
            self.db.collection(CEREMONIES_COLLECTION).document(ceremony_id),
            Ceremony.from_snapshot,
        )

    # Categories

    def categories(self, year: str, event: Optional[str]) -> LiveStream[list[Category]]:
        """Stream a ceremony's categories in display order.

        Only the year is filtered by the query; the event tag is matched
        here so no composite index is needed.
        """
        query = (
            self.db.collection(CATEGORIES_COLLECTION)
            .where(filter=firestore.FieldFilter(FIELD_CEREMONY_YEAR, "==", year))
            .order_by(FIELD_DISPLAY_ORDER)
        )
        return query_stream(
            query,
            lambda docs: [
                c
                for c in map(Category.from_snapshot, docs)
                if event_matches(event, c.event)
            ],
        )

    def category(
        self, year: str, event: Optional[str], category_id: str
    ) -> LiveStream[Optional[Category]]:
        return self.categories(year, event).map(
            lambda categories: next((c for c in categories if c.id == category_id), None)
        )

    def legacy_categories(self, ceremony_id: str) -> LiveStream[list[Category]]:
        """Stream categories stored under a ceremony document."""
        query = (
            self.db.collection(CEREMONIES_COLLECTION)
            .document(ceremony_id)
            .collection(CATEGORIES_COLLECTION)
            .order_by(FIELD_DISPLAY_ORDER)
        )
        return query_stream(query, lambda docs: [Category.from_snapshot(d) for d in docs])

    def legacy_nominees(
        self, ceremony_id: str, category_id: str
    ) -> LiveStream[list[Nominee]]:
        query = (
            self.db.collection(CEREMONIES_COLLECTION)
            .document(ceremony_id)
            .collection(CATEGORIES_COLLECTION)
            .document(category_id)
            .collection(NOMINEES_COLLECTION)
        )
        return query_stream(query, lambda docs: [Nominee.from_snapshot(d) for d in docs])

    # Votes

    def votes(self, competition_id: str, user_id: str) -> LiveStream[list[Vote]]:
        query = (
            self.db.collection(COMPETITIONS_COLLECTION)
            .document(competition_id)
            .collection(VOTES_COLLECTION)
            .where(filter=firestore.FieldFilter(FIELD_USER_ID, "==", user_id))
        )
        return query_stream(query, lambda docs: [Vote.from_snapshot(d) for d in docs])

    def all_votes(self, competition_id: str) -> LiveStream[list[Vote]]:
        query = (
            self.db.collection(COMPETITIONS_COLLECTION)
            .document(competition_id)
            .collection(VOTES_COLLECTION)
        )
        return query_stream(query, lambda docs: [Vote.from_snapshot(d) for d in docs])

    def vote(
        self, competition_id: str, user_id: str, category_id: str
    ) -> LiveStream[Optional[Vote]]:
        """Stream the single vote user_id holds for a category in a competition."""
        ref = (
            self.db.collection(COMPETITIONS_COLLECTION)
            .document(competition_id)
            .collection(VOTES_COLLECTION)
            .document(vote_document_id(user_id, category_id))
        )
        return document_stream(ref, Vote.from_snapshot)

    # Event types and feature flags

    def event_types(self) -> LiveStream[list[EventTypeData]]:
        return query_stream(
            self.db.collection(EVENT_TYPES_COLLECTION),
            lambda docs: [EventTypeData.from_snapshot(d) for d in docs],
        )

    def config(self) -> LiveStream[dict[str, Any]]:
        """Stream the feature flag document, or {} when it does not exist."""
        ref = self.db.collection(CONFIG_COLLECTION).document(FEATURES_DOCUMENT)
        return document_stream(ref, lambda snapshot: snapshot.to_dict() or {}).map(
            lambda data: data or {}
        )
