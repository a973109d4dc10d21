"""Tests for the live stream primitives."""

from __future__ import annotations

import unittest
from typing import Any

from awardswithfriends.ceremony.viewmodels import CeremoniesViewModel
from awardswithfriends.core.streams import LiveStream, LiveValue, combine_dynamic, just
from awardswithfriends.core.viewmodel import ViewRegistry
from tests.conftest import PENDING, FakeQueries, FakeSource


class TestLiveStream(unittest.TestCase):
    def test_live_value_replays_current_value(self) -> None:
        value = LiveValue(1)
        value.set(2)
        seen: list[int] = []
        value.subscribe(seen.append)
        value.set(3)
        self.assertEqual(seen, [2, 3])

    def test_unsubscribe_stops_delivery(self) -> None:
        value = LiveValue("a")
        seen: list[str] = []
        subscription = value.subscribe(seen.append)
        subscription.unsubscribe()
        subscription.unsubscribe()
        value.set("b")
        self.assertEqual(seen, ["a"])
        self.assertTrue(subscription.closed)

    def test_map_failure_is_delivered_as_error(self) -> None:
        errors: list[Exception] = []
        just(0).map(lambda v: 1 / v).subscribe(lambda v: None, errors.append)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], ZeroDivisionError)

    def test_distinct_drops_repeats(self) -> None:
        source = FakeSource(1)
        seen: list[int] = []
        source.stream().distinct().subscribe(seen.append)
        source.emit(1)
        source.emit(2)
        source.emit(2)
        source.emit(1)
        self.assertEqual(seen, [1, 2, 1])

    def test_catch_swallows_errors(self) -> None:
        source = FakeSource(PENDING)
        errors: list[Exception] = []
        source.stream().catch().subscribe(lambda v: None, errors.append)
        source.fail(RuntimeError("boom"))
        self.assertEqual(errors, [])

    def test_switch_map_follows_latest_inner_stream(self) -> None:
        outer = FakeSource("a")
        inners = {"a": FakeSource("a1"), "b": FakeSource("b1")}
        seen: list[str] = []
        subscription = (
            outer.stream().switch_map(lambda key: inners[key].stream()).subscribe(seen.append)
        )

        outer.emit("b")
        self.assertEqual(inners["a"].active, 0)
        inners["a"].emit("a2")
        inners["b"].emit("b2")
        self.assertEqual(seen, ["a1", "b1", "b2"])

        subscription.unsubscribe()
        self.assertEqual(outer.active, 0)
        self.assertEqual(inners["b"].active, 0)

    def test_share_uses_one_upstream_listener(self) -> None:
        source = FakeSource("a")
        shared = source.stream().share()
        first: list[str] = []
        second: list[str] = []
        one = shared.subscribe(first.append)
        two = shared.subscribe(second.append)
        self.assertEqual(source.subscribe_count, 1)

        source.emit("b")
        self.assertEqual(first, ["a", "b"])
        self.assertEqual(second, ["a", "b"])

        one.unsubscribe()
        self.assertEqual(source.active, 1)
        two.unsubscribe()
        self.assertEqual(source.active, 0)

    def test_share_restarts_after_last_subscriber_leaves(self) -> None:
        source = FakeSource(1)
        shared = source.stream().share()
        shared.subscribe(lambda v: None).unsubscribe()
        seen: list[int] = []
        shared.subscribe(seen.append)
        self.assertEqual(source.subscribe_count, 2)
        self.assertEqual(seen, [1])

    def test_first_returns_matching_value(self) -> None:
        value = LiveValue(1)
        self.assertEqual(value.first(lambda v: v == 1, timeout=0.1), 1)
        self.assertEqual(value._observers, [])

    def test_first_times_out_with_none(self) -> None:
        value = LiveValue(1)
        self.assertIsNone(value.first(lambda v: v == 2, timeout=0.05))

    def test_first_raises_stream_error(self) -> None:
        def broken(observer: Any) -> None:
            raise RuntimeError("listener failed")

        with self.assertRaises(RuntimeError):
            LiveStream(broken).first(timeout=0.1)


class TestCombineDynamic(unittest.TestCase):
    def setUp(self) -> None:
        self.keys = FakeSource(PENDING)
        self.members = {key: FakeSource(PENDING) for key in ("a", "b", "c")}
        self.seen: list[list[str]] = []
        self.subscription = combine_dynamic(
            self.keys.stream(), lambda key: self.members[key].stream()
        ).subscribe(self.seen.append)

    def test_empty_membership_emits_empty_list(self) -> None:
        self.keys.emit([])
        self.assertEqual(self.seen, [[]])

    def test_waits_for_every_member(self) -> None:
        self.keys.emit(["a", "b"])
        self.members["a"].emit("a1")
        self.assertEqual(self.seen, [])
        self.members["b"].emit("b1")
        self.assertEqual(self.seen, [["a1", "b1"]])

    def test_removed_member_is_unsubscribed_and_ignored(self) -> None:
        self.keys.emit(["a", "b"])
        self.members["a"].emit("a1")
        self.members["b"].emit("b1")

        self.keys.emit(["b"])
        self.assertEqual(self.members["a"].active, 0)
        self.assertEqual(self.seen[-1], ["b1"])

        self.members["a"].emit("a2")
        self.assertEqual(self.seen[-1], ["b1"])

    def test_surviving_member_keeps_its_listener(self) -> None:
        self.keys.emit(["a"])
        self.members["a"].emit("a1")
        self.keys.emit(["a", "c"])
        self.members["c"].emit("c1")
        self.assertEqual(self.members["a"].subscribe_count, 1)
        self.assertEqual(self.seen[-1], ["a1", "c1"])

    def test_failed_member_is_skipped(self) -> None:
        self.keys.emit(["a", "b"])
        self.members["a"].emit("a1")
        self.members["b"].fail(RuntimeError("permission denied"))
        self.assertEqual(self.seen[-1], ["a1"])
        self.members["a"].emit("a2")
        self.assertEqual(self.seen[-1], ["a2"])

    def test_unsubscribe_tears_down_everything(self) -> None:
        self.keys.emit(["a", "b", "c"])
        self.subscription.unsubscribe()
        self.assertEqual(self.keys.active, 0)
        for member in self.members.values():
            self.assertEqual(member.active, 0)


class TestViewRegistry(unittest.TestCase):
    def test_one_view_per_user_and_name(self) -> None:
        registry = ViewRegistry()
        first = registry.get("u1", "home", lambda: CeremoniesViewModel(FakeQueries()))
        again = registry.get("u1", "home", lambda: self.fail("factory called twice"))
        other = registry.get("u2", "home", lambda: CeremoniesViewModel(FakeQueries()))
        self.assertIs(first, again)
        self.assertIsNot(first, other)

    def test_discard_user_closes_their_views(self) -> None:
        queries = FakeQueries()
        registry = ViewRegistry()
        view = registry.get("u1", "ceremonies", lambda: CeremoniesViewModel(queries))
        view.initialize()
        self.assertGreater(queries.active_listeners(), 0)

        self.assertEqual(registry.discard_user("u1"), 1)
        self.assertEqual(queries.active_listeners(), 0)
        self.assertEqual(registry.discard_user("u1"), 0)

    def test_wait_for_returns_current_state_on_timeout(self) -> None:
        queries = FakeQueries()
        queries.source("ceremonies", initial=PENDING)
        view = CeremoniesViewModel(queries)
        view.initialize()
        state = view.wait_for(lambda s: not s.is_loading, 0.05)
        self.assertTrue(state.is_loading)
        view.close()

    def test_user_count_and_close(self) -> None:
        queries = FakeQueries()
        registry = ViewRegistry()
        registry.get("u1", "a", lambda: CeremoniesViewModel(queries)).initialize()
        registry.get("u1", "b", lambda: CeremoniesViewModel(queries))
        registry.get("u2", "a", lambda: CeremoniesViewModel(queries))
        self.assertEqual(registry.user_count(), 2)

        registry.close()
        self.assertEqual(registry.user_count(), 0)
        self.assertEqual(queries.active_listeners(), 0)

    def test_sweep_closes_idle_views(self) -> None:
        now = [0.0]
        queries = FakeQueries()
        registry = ViewRegistry(idle_timeout=60, clock=lambda: now[0])
        registry.get("u1", "old", lambda: CeremoniesViewModel(queries)).initialize()
        registry.touch("u2")
        now[0] = 50.0
        fresh = registry.get("u1", "fresh", lambda: CeremoniesViewModel(FakeQueries()))

        now[0] = 100.0
        self.assertEqual(registry.sweep(), ["u2"])
        self.assertEqual(queries.active_listeners(), 0)
        self.assertIs(registry.get("u1", "fresh", lambda: self.fail("recreated")), fresh)

        now[0] = 200.0
        self.assertEqual(registry.sweep(), ["u1"])
        self.assertEqual(registry.user_count(), 0)

    def test_sweep_without_timeout_keeps_everything(self) -> None:
        registry = ViewRegistry()
        registry.get("u1", "a", lambda: CeremoniesViewModel(FakeQueries()))
        self.assertEqual(registry.sweep(), [])
        self.assertEqual(registry.user_count(), 1)
