"""Tests for CeremonyService."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from awardswithfriends.ceremony.models import LegacyScope, Nominee
from awardswithfriends.ceremony.services import CategoryCountEstimator, CeremonyService
from awardswithfriends.errors import CommandError
from tests.conftest import (
    FakeQueries,
    make_category,
    make_ceremony,
    make_competition,
    make_vote,
)

USER_ID = "u1"


class TestCeremonyService(unittest.TestCase):
    def setUp(self) -> None:
        self.queries = FakeQueries()
        self.functions = MagicMock()
        self.service = CeremonyService(
            self.queries, self.functions, confirmation_timeout=0.05
        )
        for competition in (make_competition("c1"), make_competition("c2")):
            self.queries.source("competition", competition.id).emit(competition)
        self.queries.source("participant_index", USER_ID).emit(["c1", "c2"])

    def test_vote_confirmed_when_it_lands(self) -> None:
        landed = make_vote("c2", "k", "n1", 100)
        self.queries.source("vote", "c2", USER_ID, "k").emit(landed)

        vote = self.service.cast_ceremony_vote(USER_ID, "2025", "oscars", "k", "n1")
        self.assertEqual(vote, landed)
        self.functions.cast_ceremony_vote.assert_called_once_with("2025", "k", "n1")
        self.assertEqual(self.queries.active_listeners(), 0)

    def test_unconfirmed_vote_returns_none(self) -> None:
        vote = self.service.cast_ceremony_vote(USER_ID, "2025", "oscars", "k", "n1")
        self.assertIsNone(vote)
        self.functions.cast_ceremony_vote.assert_called_once()

    def test_rejected_vote_raises(self) -> None:
        self.functions.cast_ceremony_vote.side_effect = CommandError(
            "castCeremonyVote", "Voting is locked for this category"
        )
        with self.assertRaises(CommandError):
            self.service.cast_ceremony_vote(USER_ID, "2025", "oscars", "k", "n1")
        self.assertEqual(self.queries.source("vote", "c1", USER_ID, "k").subscribe_count, 0)

    def test_legacy_categories_carry_their_nominees(self) -> None:
        self.queries.source("legacy_categories", "cer").emit(
            [make_category("a", nominee_ids=()), make_category("b", nominee_ids=())]
        )
        self.queries.source("legacy_nominees", "cer", "a").emit(
            [Nominee(id="x", title="X"), Nominee(id="y", title="Y")]
        )
        seen: list = []
        self.service.categories_for_scope(LegacyScope("cer")).subscribe(seen.append)

        categories = seen[-1]
        self.assertEqual([n.id for n in categories[0].nominees], ["x", "y"])
        self.assertEqual(categories[1].nominees, ())

        self.queries.source("legacy_nominees", "cer", "b").emit([Nominee(id="z")])
        self.assertEqual([n.id for n in seen[-1][1].nominees], ["z"])


class TestCategoryCountEstimator(unittest.TestCase):
    def test_counts_visible_categories_once_per_ceremony(self) -> None:
        queries = FakeQueries()
        queries.source("categories", "2025").emit(
            [make_category("a"), make_category("h", hidden=True)]
        )
        estimator = CategoryCountEstimator(queries)
        ceremony = make_ceremony("cer")

        estimator.track([ceremony, make_ceremony("stored", category_count=3)])
        estimator.track([ceremony])

        self.assertEqual(estimator.counts.value, {"cer": 1})
        self.assertEqual(queries.source("categories", "2025").subscribe_count, 1)

        estimator.close()
        self.assertEqual(queries.active_listeners(), 0)
        estimator.track([make_ceremony("late")])
        self.assertEqual(queries.active_listeners(), 0)
