"""Tests for the ceremony view models."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from awardswithfriends.ceremony.services import CeremonyService
from awardswithfriends.ceremony.viewmodels import (
    CeremoniesViewModel,
    CeremonyDetailViewModel,
)
from awardswithfriends.competition.services import CompetitionMembershipResolver
from awardswithfriends.errors import CommandError
from tests.conftest import (
    FakeQueries,
    at,
    make_category,
    make_ceremony,
    make_competition,
    make_vote,
)

USER_ID = "u1"


class TestCeremoniesViewModel(unittest.TestCase):
    def setUp(self) -> None:
        self.queries = FakeQueries()
        self.view = CeremoniesViewModel(self.queries)

    def tearDown(self) -> None:
        self.view.close()

    def test_lists_newest_first_without_hidden(self) -> None:
        self.queries.source("ceremonies").emit(
            [
                make_ceremony("old", year="2023", date=at(100), category_count=10),
                make_ceremony("new", year="2025", date=at(300), category_count=10),
                make_ceremony("secret", year="2024", date=at(200), hidden=True),
            ]
        )
        self.view.initialize()

        self.assertFalse(self.view.state.is_loading)
        self.assertEqual([c.id for c in self.view.state.ceremonies], ["new", "secret", "old"])
        self.assertEqual([c.id for c in self.view.visible_ceremonies()], ["new", "old"])

    def test_event_filter(self) -> None:
        self.queries.source("ceremonies").emit(
            [
                make_ceremony("o", event="oscars", category_count=1),
                make_ceremony("e", event="emmys", category_count=1),
            ]
        )
        self.view.initialize()
        self.view.set_event_filter("emmys")
        self.assertEqual([c.id for c in self.view.visible_ceremonies()], ["e"])

    def test_counts_categories_when_count_is_missing(self) -> None:
        ceremony = make_ceremony("c", year="2025", event="oscars")
        self.queries.source("categories", "2025").emit(
            [
                make_category("a"),
                make_category("b"),
                make_category("h", hidden=True),
                make_category("x", event="emmys"),
            ]
        )
        self.queries.source("ceremonies").emit([ceremony])
        self.view.initialize()

        self.assertEqual(self.view.category_count(ceremony), 2)

    def test_stored_count_is_preferred(self) -> None:
        ceremony = make_ceremony("c", category_count=24)
        self.queries.source("ceremonies").emit([ceremony])
        self.view.initialize()
        self.assertEqual(self.view.category_count(ceremony), 24)
        self.assertEqual(self.queries.source("categories", "2025").subscribe_count, 0)

    def test_list_failure_sets_error(self) -> None:
        self.view.initialize()
        self.queries.source("ceremonies").fail(RuntimeError("offline"))
        self.assertEqual(self.view.state.error, "offline")
        self.assertFalse(self.view.state.is_loading)

    def test_close_stops_category_counting(self) -> None:
        self.queries.source("ceremonies").emit([make_ceremony("c")])
        self.view.initialize()
        self.view.close()
        self.assertEqual(self.queries.active_listeners(), 0)


class TestCeremonyDetailViewModel(unittest.TestCase):
    def setUp(self) -> None:
        self.queries = FakeQueries()
        self.functions = MagicMock()
        self.service = CeremonyService(
            self.queries, self.functions, confirmation_timeout=0.05
        )
        self.view = CeremonyDetailViewModel(
            self.queries,
            self.service,
            CompetitionMembershipResolver(self.queries),
            USER_ID,
        )
        self.queries.source("ceremony", "cer").emit(make_ceremony("cer"))
        self.queries.source("categories", "2025").emit(
            [
                make_category("b", display_order=2),
                make_category("a", display_order=1),
                make_category("h", hidden=True),
            ]
        )
        for competition in (
            make_competition("c1"),
            make_competition("c2", status="locked"),
            make_competition("c3", event=None),
        ):
            self.queries.source("competition", competition.id).emit(competition)
        self.queries.source("participant_index", USER_ID).emit(["c1", "c2", "c3"])

    def tearDown(self) -> None:
        self.view.close()

    def test_repeated_initialize_keeps_subscriptions(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        count = self.view.subscription_count
        listeners = self.queries.active_listeners()

        self.view.initialize("cer", "2025", "oscars")
        self.assertEqual(self.view.subscription_count, count)
        self.assertEqual(self.queries.active_listeners(), listeners)

    def test_new_scope_replaces_subscriptions(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        self.assertEqual(self.queries.source("votes", "c1", USER_ID).active, 1)

        self.view.initialize("cer", "2025", "emmys")
        self.assertEqual(self.queries.source("ceremony", "cer").active, 1)
        self.assertEqual(self.queries.source("votes", "c1", USER_ID).active, 0)
        self.assertEqual(self.queries.source("votes", "c3", USER_ID).active, 1)

    def test_loads_visible_categories_and_open_count(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        state = self.view.state
        self.assertEqual([c.id for c in state.categories], ["a", "b"])
        self.assertEqual(state.ceremony.id, "cer")
        self.assertEqual(state.open_competition_count, 2)
        self.assertFalse(state.is_loading)

    def test_missing_ceremony_counts_as_loaded(self) -> None:
        self.view.initialize("gone", "2025", "oscars")
        state = self.view.state
        self.assertTrue(state.ceremony_loaded)
        self.assertIsNone(state.ceremony)

    def test_votes_are_aggregated(self) -> None:
        vote = make_vote("c3", "a", "n2", 50)
        self.queries.source("votes", "c3", USER_ID).emit([vote])
        self.view.initialize("cer", "2025", "oscars")
        self.assertEqual(self.view.state.votes, {"a": vote})

    def test_can_vote_follows_payment_flag(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        self.assertTrue(self.view.state.requires_payment)
        self.assertFalse(self.view.state.can_vote)

        self.view.set_access(True)
        self.assertTrue(self.view.state.can_vote)

        self.view.set_access(False)
        self.queries.source("config").emit({"requiresPaymentForCompetitions": False})
        self.assertTrue(self.view.state.can_vote)

    def test_confirmed_vote_is_written_into_votes(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        confirmed = make_vote("c1", "a", "n1", 500)
        self.queries.source("vote", "c1", USER_ID, "a").emit(confirmed)

        self.assertTrue(self.view.cast_ceremony_vote("a", "n1"))
        self.functions.cast_ceremony_vote.assert_called_once_with("2025", "a", "n1")
        state = self.view.state
        self.assertEqual(state.votes["a"], confirmed)
        self.assertTrue(state.vote_success)
        self.assertFalse(state.is_voting)

    def test_unconfirmed_vote_still_succeeds(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        self.queries.source("vote", "c1", USER_ID, "a").emit(make_vote("c1", "a", "n2", 1))

        self.assertTrue(self.view.cast_ceremony_vote("a", "n1"))
        self.assertTrue(self.view.state.vote_success)
        self.assertIsNone(self.view.state.error)
        self.assertNotIn("a", self.view.state.votes)

    def test_rejected_vote_sets_error(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        self.functions.cast_ceremony_vote.side_effect = CommandError(
            "castCeremonyVote", "Voting is closed", "failed-precondition"
        )

        self.assertFalse(self.view.cast_ceremony_vote("a", "n1"))
        state = self.view.state
        self.assertEqual(state.error, "Voting is closed")
        self.assertFalse(state.is_voting)
        self.assertFalse(state.vote_success)
        self.assertEqual(state.votes, {})

    def test_close_releases_every_listener(self) -> None:
        self.view.initialize("cer", "2025", "oscars")
        self.view.close()
        self.assertEqual(self.view.subscription_count, 0)
        self.assertEqual(self.queries.active_listeners(), 0)
