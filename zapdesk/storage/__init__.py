"""Storage layer - Firestore and in-memory implementations."""

from zapdesk.storage.base import StorageBackend
from zapdesk.storage.firestore import FirestoreStorage
from zapdesk.storage.memory import InMemoryStorage

__all__ = ["StorageBackend", "FirestoreStorage", "InMemoryStorage"]
