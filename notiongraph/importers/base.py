"""
Base remote store interface for notiongraph.

This module defines the abstract capability the crawler and extractor use to
read pages, blocks, databases and search results from the remote content store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class RemoteStoreError(Exception):
    """Raised when a call to the remote content store fails."""


class ObjectNotFoundError(RemoteStoreError):
    """
    Raised when the store reports an object as missing.

    The store answers "not found" both for deleted objects and for objects
    that have not been shared with the integration.
    """


@dataclass
class ListPage:
    """
    One page of a cursor-paginated listing.
    """
    results: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "ListPage":
        return cls(
            results=list(payload.get("results") or []),
            has_more=bool(payload.get("has_more")),
            next_cursor=payload.get("next_cursor"),
        )


class BaseRemoteStore(ABC):
    """
    Abstract base class for remote content stores.

    Every listing is paginated with an opaque cursor and a has_more flag.
    Implementations raise ObjectNotFoundError for missing or unshared objects
    and RemoteStoreError for any other failure.
    """

    DEFAULT_PAGE_SIZE = 100

    @abstractmethod
    async def get_document(self, document_id: str) -> Dict[str, Any]:
        """
        Retrieve one page record.

        Args:
            document_id: The page identifier

        Returns:
            The raw page record
        """
        pass

    @abstractmethod
    async def list_child_blocks(
        self,
        block_id: str,
        cursor: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> ListPage:
        """
        List the direct children of a page or block.

        Args:
            block_id: The parent page or block identifier
            cursor: Continuation cursor from the previous page, if any
            page_size: Maximum number of results to return

        Returns:
            One page of raw block records
        """
        pass

    @abstractmethod
    async def get_database_schema(self, database_id: str) -> Dict[str, Any]:
        """Retrieve a database record, including its property schema."""
        pass

    @abstractmethod
    async def query_database(
        self,
        database_id: str,
        cursor: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> ListPage:
        """List the items of a database."""
        pass

    @abstractmethod
    async def search(
        self,
        cursor: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_by_edit_time: bool = True,
        filter_kind: Optional[str] = "page"
    ) -> ListPage:
        """
        Search the whole workspace.

        Args:
            cursor: Continuation cursor from the previous page, if any
            page_size: Maximum number of results to return
            sort_by_edit_time: Sort by most recently edited first
            filter_kind: Restrict results to one object kind ("page" or "database")

        Returns:
            One page of raw records
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
