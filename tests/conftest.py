"""Common utilities for tests."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import MagicMock

from awardswithfriends.ceremony.models import Category, Ceremony, Nominee, event_matches
from awardswithfriends.competition.models import (
    Competition,
    Participant,
    Vote,
    vote_document_id,
)
from awardswithfriends.core.streams import LiveStream, Observer

PENDING = object()


class FakeSource:
    """A controllable live source standing in for one Firestore listener."""

    def __init__(self, value: Any = PENDING) -> None:
        self._lock = threading.Lock()
        self.value = value
        self.observers: list[Observer] = []
        self.subscribe_count = 0

    @property
    def active(self) -> int:
        with self._lock:
            return len(self.observers)

    def stream(self) -> LiveStream[Any]:
        def source(observer: Observer) -> Any:
            with self._lock:
                self.observers.append(observer)
                self.subscribe_count += 1
                value = self.value
            if value is not PENDING:
                observer.next(value)

            def cancel() -> None:
                with self._lock:
                    if observer in self.observers:
                        self.observers.remove(observer)

            return cancel

        return LiveStream(source)

    def emit(self, value: Any) -> None:
        with self._lock:
            self.value = value
            observers = list(self.observers)
        for observer in observers:
            observer.next(value)

    def fail(self, exc: Exception) -> None:
        with self._lock:
            observers, self.observers = self.observers, []
        for observer in observers:
            observer.error(exc)


class FakeQueries:
    """In-memory replacement for FirestoreDataSource.

    Every query is backed by a FakeSource created on first use; tests reach
    it with source() to push snapshots or failures.
    """

    DEFAULTS: dict[str, Any] = {
        "user": None,
        "competition": None,
        "participant_index": [],
        "participants": [],
        "ceremonies": [],
        "ceremony": None,
        "categories": [],
        "legacy_categories": [],
        "legacy_nominees": [],
        "votes": [],
        "all_votes": [],
        "vote": None,
        "event_types": [],
        "config": {},
    }

    def __init__(self) -> None:
        self.sources: dict[tuple[Any, ...], FakeSource] = {}

    def source(self, kind: str, *key: Any, initial: Any = None) -> FakeSource:
        """Return the source behind a query, creating it if needed.

        initial defaults to the query's empty value; pass PENDING for a
        listener that has not delivered yet.
        """
        full_key = (kind, *key)
        if full_key not in self.sources:
            value = self.DEFAULTS[kind] if initial is None else initial
            self.sources[full_key] = FakeSource(value)
        return self.sources[full_key]

    def active_listeners(self) -> int:
        return sum(source.active for source in self.sources.values())

    def user(self, uid: str) -> LiveStream[Any]:
        return self.source("user", uid).stream()

    def competition(self, competition_id: str) -> LiveStream[Any]:
        return self.source("competition", competition_id).stream()

    def participant_index(self, user_id: str) -> LiveStream[Any]:
        return self.source("participant_index", user_id).stream()

    def participants(self, competition_id: str) -> LiveStream[Any]:
        return (
            self.source("participants", competition_id)
            .stream()
            .map(lambda participants: [p for p in participants if not p.blocked])
        )

    def ceremonies(self) -> LiveStream[Any]:
        return self.source("ceremonies").stream()

    def ceremony(self, ceremony_id: str) -> LiveStream[Any]:
        return self.source("ceremony", ceremony_id).stream()

    def categories(self, year: str, event: Optional[str]) -> LiveStream[Any]:
        return (
            self.source("categories", year)
            .stream()
            .map(lambda cats: [c for c in cats if event_matches(event, c.event)])
        )

    def category(
        self, year: str, event: Optional[str], category_id: str
    ) -> LiveStream[Any]:
        return self.categories(year, event).map(
            lambda cats: next((c for c in cats if c.id == category_id), None)
        )

    def legacy_categories(self, ceremony_id: str) -> LiveStream[Any]:
        return self.source("legacy_categories", ceremony_id).stream()

    def legacy_nominees(self, ceremony_id: str, category_id: str) -> LiveStream[Any]:
        return self.source("legacy_nominees", ceremony_id, category_id).stream()

    def votes(self, competition_id: str, user_id: str) -> LiveStream[Any]:
        return self.source("votes", competition_id, user_id).stream()

    def all_votes(self, competition_id: str) -> LiveStream[Any]:
        return self.source("all_votes", competition_id).stream()

    def vote(
        self, competition_id: str, user_id: str, category_id: str
    ) -> LiveStream[Any]:
        return self.source("vote", competition_id, user_id, category_id).stream()

    def event_types(self) -> LiveStream[Any]:
        return self.source("event_types").stream()

    def config(self) -> LiveStream[Any]:
        return self.source("config").stream()


def at(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def make_competition(
    competition_id: str,
    year: str = "2025",
    event: Optional[str] = "oscars",
    status: str = "open",
    created_by: str = "owner",
    **fields: Any,
) -> Competition:
    return Competition(
        id=competition_id,
        name=fields.pop("name", f"Competition {competition_id}"),
        ceremony_year=year,
        event=event,
        status=status,
        created_by=created_by,
        **fields,
    )


def make_vote(
    competition_id: str,
    category_id: str,
    nominee_id: str,
    seconds: Optional[float] = None,
    user_id: str = "u1",
    **fields: Any,
) -> Vote:
    return Vote(
        id=vote_document_id(user_id, category_id),
        competition_id=competition_id,
        user_id=user_id,
        category_id=category_id,
        nominee_id=nominee_id,
        voted_at=at(seconds) if seconds is not None else None,
        **fields,
    )


def make_category(
    category_id: str,
    year: str = "2025",
    event: Optional[str] = "oscars",
    nominee_ids: tuple[str, ...] = ("n1", "n2"),
    **fields: Any,
) -> Category:
    return Category(
        id=category_id,
        ceremony_year=year,
        event=event,
        name=fields.pop("name", category_id.title()),
        nominees=tuple(Nominee(id=n, title=n.upper()) for n in nominee_ids),
        **fields,
    )


def make_ceremony(
    ceremony_id: str,
    year: str = "2025",
    event: Optional[str] = "oscars",
    **fields: Any,
) -> Ceremony:
    return Ceremony(id=ceremony_id, name=f"{event} {year}", year=year, event=event, **fields)


def make_participant(
    participant_id: str, score: int = 0, blocked: bool = False, **fields: Any
) -> Participant:
    return Participant(
        id=participant_id,
        user_id=fields.pop("user_id", participant_id),
        score=score,
        blocked=blocked,
        **fields,
    )


def mock_snapshot(doc_id: str, data: Optional[dict[str, Any]], parent_id: str = "") -> Any:
    """Build a MagicMock shaped like a Firestore DocumentSnapshot."""
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = data is not None
    snapshot.to_dict.return_value = data
    if parent_id:
        snapshot.reference.parent.parent.id = parent_id
    else:
        snapshot.reference.parent.parent = None
    return snapshot
