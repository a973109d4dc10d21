import unittest
from unittest.mock import MagicMock, patch

from awardswithfriends import create_app
from tests.conftest import FakeQueries

USER_ID = "u1"
VALID_TOKEN = "valid-id-token"  # nosec


class RouteTestCase(unittest.TestCase):
    """Runs the app against in-memory queries and a mocked functions client."""

    competitions_access = True

    def setUp(self):
        self.queries = FakeQueries()
        self.functions = MagicMock()
        self.decoded_token = {
            "uid": USER_ID,
            "email": "casey@example.com",
            "name": "Casey",
            "competitionsAccess": self.competitions_access,
            "firebase": {"sign_in_provider": "google.com"},
        }

        patchers = {
            "verify_id_token": patch(
                "firebase_admin.auth.verify_id_token", side_effect=self._verify
            ),
            "get_queries": patch(
                "awardswithfriends.context.get_queries", return_value=self.queries
            ),
            "get_functions": patch(
                "awardswithfriends.context.get_functions", return_value=self.functions
            ),
        }
        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

        self.app = create_app(
            {
                "TESTING": True,
                "FIREBASE_PROJECT_ID": "demo",
                "VIEW_LOAD_TIMEOUT": 0.1,
                "VOTE_CONFIRMATION_TIMEOUT": 0.05,
            }
        )
        self.client = self.app.test_client()
        self.addCleanup(self._close_views)

    def _verify(self, token):
        if token != VALID_TOKEN:
            raise ValueError("Token signature invalid")
        return self.decoded_token

    def _close_views(self):
        views = self.app.extensions.get("awardswithfriends.views")
        if views is not None:
            views.close()

    @property
    def auth_headers(self):
        return {"Authorization": f"Bearer {VALID_TOKEN}"}
