"""Abstract base class for the document store holding courier orders."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class StoreError(Exception):
    """Raised when the document store cannot complete a read or write."""


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Field value replaced by the store's own clock when a write is applied.
SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass
class Document:
    """A document read from the store.

    ``path`` is slash separated and relative to the database root, e.g.
    ``users/u1/orders/o1`` or ``orders/o1``.
    """

    path: str
    data: dict = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def segments(self) -> list[str]:
        return self.path.split("/")


class DocumentStore(ABC):
    """Base class that every document store backend must implement."""

    @abstractmethod
    def get_document(self, path: str) -> dict | None:
        """Read a single document.

        Args:
            path: Document path, e.g. ``users/u1/orders/o1``.

        Returns:
            The document fields, or None if the document does not exist.
        """

    @abstractmethod
    def list_documents(self, collection: str) -> list[Document]:
        """Return every document of a top-level collection."""

    @abstractmethod
    def query_collection_group(self, collection_id: str) -> list[Document]:
        """Return documents from every collection named *collection_id*.

        This includes the top-level collection of that name as well as
        subcollections at any depth.
        """

    @abstractmethod
    def update_document(self, path: str, fields: dict) -> None:
        """Merge *fields* into an existing document.

        Values equal to ``SERVER_TIMESTAMP`` are set by the store.

        Raises:
            StoreError: If the document does not exist or the write fails.
        """
