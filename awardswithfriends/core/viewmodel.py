"""Base classes for live view models."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import replace
from typing import Any, Generic, Optional, TypeVar

from .streams import LiveStream, LiveValue, Subscription

logger = logging.getLogger(__name__)

S = TypeVar("S")
V = TypeVar("V")


class ViewModel(Generic[S]):
    """Holds the live state of one screen for one user.

    State is a frozen dataclass kept in a LiveValue. Consumers only read it;
    it changes when a subscription launched by the view model delivers a new
    snapshot or when a command completes.
    """

    def __init__(self, initial_state: S) -> None:
        """Initialize the view model with its empty state."""
        self._state = LiveValue(initial_state)
        self._lock = threading.RLock()
        self.command_lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._scope: Optional[tuple[Hashable, ...]] = None
        self._generation = 0
        self._closed = False

    @property
    def state(self) -> S:
        """Return the current state snapshot."""
        return self._state.value

    @property
    def subscription_count(self) -> int:
        """Return the number of live subscriptions owned by this view model."""
        with self._lock:
            return sum(1 for s in self._subscriptions if not s.closed)

    def wait_for(self, predicate: Callable[[S], bool], timeout: float) -> S:
        """Block until the state satisfies predicate or timeout elapses.

        Returns the matching state, or the current one after a timeout.
        """
        state = self._state.first(predicate, timeout)
        return state if state is not None else self.state

    def _set_state(self, **changes: Any) -> S:
        return self._state.update(lambda state: replace(state, **changes))

    def _enter_scope(self, *scope: Hashable) -> bool:
        """Switch to a new scope, cancelling everything launched for the old one.

        Returns False and leaves the running subscriptions alone when the
        scope is the one already active.
        """
        with self._lock:
            if self._closed or scope == self._scope:
                return False
            self._scope = scope
            self._generation += 1
            previous, self._subscriptions = self._subscriptions, []
        for subscription in previous:
            subscription.unsubscribe()
        return True

    def _launch(
        self,
        stream: LiveStream[V],
        on_next: Callable[[V], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """Subscribe to stream for the lifetime of the current scope.

        Callbacks are dropped once the scope changes or the view model is
        closed.
        """
        with self._lock:
            generation = self._generation

        def guarded_next(value: V) -> None:
            with self._lock:
                if generation == self._generation:
                    on_next(value)

        def guarded_error(exc: Exception) -> None:
            with self._lock:
                if generation != self._generation:
                    return
                if on_error is None:
                    logger.warning(f"{type(self).__name__} stream failed: {exc}")
                else:
                    on_error(exc)

        subscription = stream.subscribe(guarded_next, guarded_error)
        with self._lock:
            if generation == self._generation and not self._closed:
                self._subscriptions.append(subscription)
                return subscription
        subscription.unsubscribe()
        return subscription

    def close(self) -> None:
        """Tear down every subscription. The view model stays readable."""
        with self._lock:
            self._closed = True
            self._generation += 1
            previous, self._subscriptions = self._subscriptions, []
        for subscription in previous:
            subscription.unsubscribe()


class ViewRegistry:
    """Keeps the live view models of every signed-in user.

    Views are keyed by user and by a name that includes the screen's scope,
    so concurrent requests for different scopes never share a view. With an
    idle_timeout, sweep() closes views nobody has asked for within that many
    seconds and reports which users have gone quiet altogether.
    """

    def __init__(
        self,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty registry."""
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._views: dict[tuple[str, str], ViewModel[Any]] = {}
        self._last_used: dict[tuple[str, str], float] = {}
        self._last_seen: dict[str, float] = {}

    def get(
        self, user_id: str, name: str, factory: Callable[[], ViewModel[Any]]
    ) -> ViewModel[Any]:
        """Return the user's view model for name, creating it on first use."""
        key = (user_id, name)
        with self._lock:
            view = self._views.get(key)
            if view is None:
                view = factory()
                self._views[key] = view
            now = self._clock()
            self._last_used[key] = now
            self._last_seen[user_id] = now
            return view

    def touch(self, user_id: str) -> None:
        """Mark user_id as active without fetching a view."""
        with self._lock:
            self._last_seen[user_id] = self._clock()

    def user_count(self) -> int:
        with self._lock:
            return len({user_id for user_id, _ in self._views})

    def sweep(self) -> list[str]:
        """Close views idle longer than idle_timeout.

        Returns the users that have not been seen within idle_timeout.
        """
        if self.idle_timeout is None:
            return []
        cutoff = self._clock() - self.idle_timeout
        with self._lock:
            stale = [key for key, used in self._last_used.items() if used < cutoff]
            views = []
            for key in stale:
                del self._last_used[key]
                views.append(self._views.pop(key))
            idle_users = [u for u, seen in self._last_seen.items() if seen < cutoff]
            for user_id in idle_users:
                del self._last_seen[user_id]
        for view in views:
            view.close()
        if views:
            logger.info(f"Closed {len(views)} idle views")
        return idle_users

    def discard_user(self, user_id: str) -> int:
        """Close and forget every view model held for user_id."""
        with self._lock:
            keys = [key for key in self._views if key[0] == user_id]
            views = [self._views.pop(key) for key in keys]
            for key in keys:
                self._last_used.pop(key, None)
            self._last_seen.pop(user_id, None)
        for view in views:
            view.close()
        return len(views)

    def close(self) -> None:
        """Close every view model in the registry."""
        with self._lock:
            views = list(self._views.values())
            self._views.clear()
            self._last_used.clear()
            self._last_seen.clear()
        for view in views:
            view.close()
