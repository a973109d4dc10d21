"""Live query and command sources backed by Firebase."""

from .firestore import FirestoreDataSource
from .functions import CloudFunctionsDataSource

__all__ = ["CloudFunctionsDataSource", "FirestoreDataSource"]
