"""Remote content stores the crawler reads from."""

from .base import BaseRemoteStore, ListPage, ObjectNotFoundError, RemoteStoreError
from .mock import MockStore
from .notion_api import NotionAPIStore

__all__ = [
    "BaseRemoteStore",
    "ListPage",
    "ObjectNotFoundError",
    "RemoteStoreError",
    "MockStore",
    "NotionAPIStore",
]
