"""Push-based live streams built on top of real-time listeners.

Firestore delivers snapshots on its own listener threads, so every piece of
shared state in this module is guarded by a lock. Values from a listener
that has been replaced or removed are dropped, never forwarded.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Mapping
from functools import partial
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Source = Callable[["Observer"], Optional[Callable[[], None]]]


class Subscription:
    """Handle to an active listener. Unsubscribing more than once is a no-op."""

    def __init__(self, cancel: Optional[Callable[[], None]] = None) -> None:
        """Initialize the subscription with its teardown callable."""
        self._cancel = cancel
        self._lock = threading.Lock()
        self.closed = False

    def unsubscribe(self) -> None:
        """Tear down the underlying listener."""
        with self._lock:
            if self.closed:
                return
            self.closed = True
            cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()


class Observer:
    """Forwards values and errors to callbacks until it is closed."""

    def __init__(
        self,
        on_next: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """Initialize the observer."""
        self._on_next = on_next
        self._on_error = on_error
        self.closed = False

    def next(self, value: Any) -> None:
        """Deliver a value."""
        if not self.closed:
            self._on_next(value)

    def error(self, exc: Exception) -> None:
        """Deliver a terminal error."""
        if self.closed:
            return
        self.closed = True
        if self._on_error is None:
            logger.error(f"Unhandled live stream error: {exc}")
            return
        self._on_error(exc)


class LiveStream(Generic[T]):
    """A lazily started, push-based source of snapshots."""

    def __init__(self, source: Source) -> None:
        """Wrap a source callable.

        The source receives an Observer, starts producing values into it and
        returns a callable that stops production (or None).
        """
        self._source = source

    def subscribe(
        self,
        on_next: Callable[[T], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """Start listening and return the subscription handle."""
        observer = Observer(on_next, on_error)
        try:
            cancel = self._source(observer)
        except Exception as e:
            observer.error(e)
            cancel = None

        def teardown() -> None:
            observer.closed = True
            if cancel is not None:
                cancel()

        return Subscription(teardown)

    def map(self, fn: Callable[[T], U]) -> LiveStream[U]:
        """Transform every value with fn. A raising fn fails the stream."""

        def source(observer: Observer) -> Callable[[], None]:
            def on_next(value: T) -> None:
                try:
                    mapped = fn(value)
                except Exception as e:
                    observer.error(e)
                    return
                observer.next(mapped)

            return self.subscribe(on_next, observer.error).unsubscribe

        return LiveStream(source)

    def catch(
        self, handler: Optional[Callable[[Exception], None]] = None
    ) -> LiveStream[T]:
        """Swallow a failure instead of propagating it downstream."""

        def source(observer: Observer) -> Callable[[], None]:
            def on_error(exc: Exception) -> None:
                if handler is None:
                    logger.warning(f"Ignoring live stream error: {exc}")
                else:
                    handler(exc)

            return self.subscribe(observer.next, on_error).unsubscribe

        return LiveStream(source)

    def distinct(self) -> LiveStream[T]:
        """Drop values equal to the one emitted just before them."""

        def source(observer: Observer) -> Callable[[], None]:
            lock = threading.Lock()
            last: list[T] = []

            def on_next(value: T) -> None:
                with lock:
                    if last and last[0] == value:
                        return
                    last[:] = [value]
                observer.next(value)

            return self.subscribe(on_next, observer.error).unsubscribe

        return LiveStream(source)

    def share(self) -> LiveStream[T]:
        """Feed every subscriber from a single upstream listener.

        The first subscriber starts the upstream and the last one to leave
        stops it. A subscriber joining later receives the latest value first.
        """
        lock = threading.RLock()
        observers: list[Observer] = []
        latest: list[T] = []
        upstream: Optional[Subscription] = None
        started = False

        def on_next(value: T) -> None:
            with lock:
                latest[:] = [value]
                for observer in list(observers):
                    observer.next(value)

        def on_error(exc: Exception) -> None:
            nonlocal upstream, started
            with lock:
                failed = list(observers)
                observers.clear()
                latest.clear()
                upstream, started = None, False
            for observer in failed:
                observer.error(exc)

        def source(observer: Observer) -> Callable[[], None]:
            nonlocal upstream, started
            with lock:
                observers.append(observer)
                start = not started
                started = True
                if not start:
                    for value in latest:
                        observer.next(value)
            if start:
                subscription = self.subscribe(on_next, on_error)
                with lock:
                    if observers and upstream is None:
                        upstream, subscription = subscription, None
                if subscription is not None:
                    subscription.unsubscribe()

            def cancel() -> None:
                nonlocal upstream, started
                with lock:
                    if observer in observers:
                        observers.remove(observer)
                    if observers:
                        return
                    previous, upstream = upstream, None
                    started = False
                    latest.clear()
                if previous is not None:
                    previous.unsubscribe()

            return cancel

        return LiveStream(source)

    def switch_map(self, fn: Callable[[T], LiveStream[U]]) -> LiveStream[U]:
        """Map every value to an inner stream, following only the latest one.

        The previous inner subscription is cancelled before the next one is
        started, and any value it still delivers afterwards is dropped.
        """

        def source(observer: Observer) -> Callable[[], None]:
            lock = threading.RLock()
            generation = 0
            inner: Optional[Subscription] = None
            cancelled = False

            def on_outer(value: T) -> None:
                nonlocal generation, inner
                with lock:
                    generation += 1
                    current = generation
                    previous, inner = inner, None
                if previous is not None:
                    previous.unsubscribe()
                try:
                    stream = fn(value)
                except Exception as e:
                    observer.error(e)
                    return

                def on_inner(inner_value: U) -> None:
                    with lock:
                        if current == generation:
                            observer.next(inner_value)

                def on_inner_error(exc: Exception) -> None:
                    with lock:
                        if current == generation:
                            observer.error(exc)

                subscription = stream.subscribe(on_inner, on_inner_error)
                with lock:
                    if current == generation and not cancelled:
                        inner = subscription
                        return
                subscription.unsubscribe()

            outer = self.subscribe(on_outer, observer.error)

            def cancel() -> None:
                nonlocal generation, inner, cancelled
                with lock:
                    cancelled = True
                    generation += 1
                    previous, inner = inner, None
                outer.unsubscribe()
                if previous is not None:
                    previous.unsubscribe()

            return cancel

        return LiveStream(source)

    def first(
        self,
        predicate: Optional[Callable[[T], bool]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[T]:
        """Block until a value satisfies predicate; None when timeout elapses."""
        done = threading.Event()
        found: list[T] = []
        errors: list[Exception] = []

        def on_next(value: T) -> None:
            if done.is_set():
                return
            if predicate is None or predicate(value):
                found.append(value)
                done.set()

        def on_error(exc: Exception) -> None:
            errors.append(exc)
            done.set()

        subscription = self.subscribe(on_next, on_error)
        try:
            done.wait(timeout)
        finally:
            subscription.unsubscribe()
        if errors:
            raise errors[0]
        return found[0] if found else None


def just(value: T) -> LiveStream[T]:
    """Return a stream that emits value once and stays open."""

    def source(observer: Observer) -> None:
        observer.next(value)

    return LiveStream(source)


class LiveValue(LiveStream[T]):
    """Holds a current value and replays it to every new subscriber."""

    def __init__(self, initial: T) -> None:
        """Initialize with the first value."""
        self._lock = threading.RLock()
        self._value = initial
        self._observers: list[Observer] = []
        super().__init__(self._attach)

    def _attach(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)
            observer.next(self._value)

        def detach() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return detach

    @property
    def value(self) -> T:
        """Return the current value."""
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify subscribers."""
        with self._lock:
            self._value = value
            for observer in list(self._observers):
                observer.next(value)

    def update(self, fn: Callable[[T], T]) -> T:
        """Atomically replace the value with fn(current) and return it."""
        with self._lock:
            value = fn(self._value)
            self.set(value)
            return value


class _Member:
    """Bookkeeping for one keyed stream inside a StreamCombinator."""

    def __init__(self, key: Hashable) -> None:
        self.key = key
        self.value: Any = None
        self.ready = False
        self.failed = False
        self.subscription: Optional[Subscription] = None


class StreamCombinator:
    """Combines a changing, keyed set of live streams into one list stream.

    Every call to update() reconciles the requested keys against the active
    subscriptions: removed keys are unsubscribed and their last value is
    dropped, new keys are subscribed, unchanged keys keep their listener.
    The switch happens under the combinator lock, so no value from a removed
    member can be folded into a later emission.

    A combined list is emitted whenever a member emits or membership changes,
    once every live member has produced a value. An empty membership emits an
    empty list straight away. A failing member is logged and excluded; its
    siblings keep running.
    """

    def __init__(self, on_next: Callable[[list[Any]], None]) -> None:
        """Initialize the combinator with its downstream callback."""
        self._lock = threading.RLock()
        self._on_next = on_next
        self._members: dict[Hashable, _Member] = {}
        self._order: list[Hashable] = []
        self._started = False
        self._updating = False
        self._closed = False

    def update(self, streams: Mapping[Hashable, LiveStream[Any]]) -> None:
        """Switch membership to exactly the given keyed streams."""
        with self._lock:
            if self._closed:
                return
            order = list(streams)
            if self._started and order == self._order:
                return
            self._started = True
            removed = [
                self._members.pop(key) for key in list(self._members) if key not in streams
            ]
            self._order = order
            self._updating = True
            try:
                for key in order:
                    if key in self._members:
                        continue
                    member = _Member(key)
                    self._members[key] = member
                    member.subscription = streams[key].subscribe(
                        partial(self._member_value, member),
                        partial(self._member_failure, member),
                    )
            finally:
                self._updating = False
            self._emit()
        for member in removed:
            if member.subscription is not None:
                member.subscription.unsubscribe()

    def close(self) -> None:
        """Unsubscribe every member and stop emitting."""
        with self._lock:
            self._closed = True
            members = list(self._members.values())
            self._members.clear()
            self._order = []
        for member in members:
            if member.subscription is not None:
                member.subscription.unsubscribe()

    def _member_value(self, member: _Member, value: Any) -> None:
        with self._lock:
            if self._members.get(member.key) is not member:
                return
            member.value = value
            member.ready = True
            self._emit()

    def _member_failure(self, member: _Member, exc: Exception) -> None:
        with self._lock:
            if self._members.get(member.key) is not member:
                return
            member.failed = True
            logger.warning(f"Dropping failed live stream {member.key!r}: {exc}")
            self._emit()

    def _emit(self) -> None:
        if self._closed or self._updating:
            return
        members = [self._members[key] for key in self._order]
        if any(not m.ready and not m.failed for m in members):
            return
        self._on_next([m.value for m in members if not m.failed])


def combine_dynamic(
    keys: LiveStream[list[Hashable]],
    stream_for_key: Callable[[Hashable], LiveStream[Any]],
) -> LiveStream[list[Any]]:
    """Combine one live stream per key, where the key list is itself live.

    Each emission of keys reconciles the combinator's membership; keys that
    survive a change keep their existing listener.
    """

    def source(observer: Observer) -> Callable[[], None]:
        combinator = StreamCombinator(observer.next)

        def on_keys(key_list: list[Hashable]) -> None:
            combinator.update(
                {key: stream_for_key(key) for key in dict.fromkeys(key_list)}
            )

        subscription = keys.subscribe(on_keys, observer.error)

        def cancel() -> None:
            subscription.unsubscribe()
            combinator.close()

        return cancel

    return LiveStream(source)
