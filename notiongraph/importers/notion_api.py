"""
Notion REST API store for notiongraph.

This module implements the remote store capability on top of the public Notion
API using an asynchronous httpx client.
"""

import os
import httpx
import logging
from typing import Any, Dict, Optional

from ..config import ConfigManager, config as default_config
from .base import BaseRemoteStore, ListPage, ObjectNotFoundError, RemoteStoreError


class NotionAPIStore(BaseRemoteStore):
    """
    Reads pages, blocks, databases and search results from the Notion API.

    This class does no throttling of its own; callers wait on the shared
    RateLimiter before every call.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.notion.com/v1",
        api_version: str = "2022-06-28",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the Notion store.

        Args:
            token: Integration token sent as a bearer credential
            base_url: API root URL
            api_version: Value of the Notion-Version header
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Notion-Version": api_version,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: Optional[ConfigManager] = None) -> "NotionAPIStore":
        """
        Build a store from configuration, reading the token from the environment.

        Raises:
            RemoteStoreError: If the token environment variable is not set
        """
        config = config or default_config
        token = os.environ.get(config.token_env)
        if not token:
            raise RemoteStoreError(f"Environment variable {config.token_env} is not set")
        return cls(
            token=token,
            base_url=config.api_base_url,
            api_version=config.api_version,
            timeout=config.api_timeout,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make a request to the Notion API.

        Raises:
            ObjectNotFoundError: If Notion reports the object as missing or unshared
            RemoteStoreError: For any other transport or HTTP failure
        """
        try:
            response = await self.client.request(method, path, params=params, json=body)
            response.raise_for_status()
            return response.json()

        except ValueError as e:
            raise RemoteStoreError(f"Notion returned an unreadable response: {path}") from e
        except httpx.HTTPStatusError as e:
            code = None
            try:
                code = e.response.json().get("code")
            except ValueError:
                pass
            if e.response.status_code == 404 or code == "object_not_found":
                raise ObjectNotFoundError(f"Notion object not found: {path}") from e
            raise RemoteStoreError(f"Notion request failed ({e.response.status_code} {code}): {path}") from e
        except httpx.RequestError as e:
            raise RemoteStoreError(f"Failed to connect to Notion: {e}") from e

    @staticmethod
    def _pagination(cursor: Optional[str], page_size: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page_size": page_size}
        if cursor:
            params["start_cursor"] = cursor
        return params

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/pages/{document_id}")

    async def list_child_blocks(
        self,
        block_id: str,
        cursor: Optional[str] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE
    ) -> ListPage:
        payload = await self._request(
            "GET", f"/blocks/{block_id}/children", params=self._pagination(cursor, page_size)
        )
        return ListPage.from_api(payload)

    async def get_database_schema(self, database_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/databases/{database_id}")

    async def query_database(
        self,
        database_id: str,
        cursor: Optional[str] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE
    ) -> ListPage:
        payload = await self._request(
            "POST", f"/databases/{database_id}/query", body=self._pagination(cursor, page_size)
        )
        return ListPage.from_api(payload)

    async def search(
        self,
        cursor: Optional[str] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE,
        sort_by_edit_time: bool = True,
        filter_kind: Optional[str] = "page"
    ) -> ListPage:
        body = self._pagination(cursor, page_size)
        if sort_by_edit_time:
            body["sort"] = {"direction": "descending", "timestamp": "last_edited_time"}
        if filter_kind:
            body["filter"] = {"property": "object", "value": filter_kind}

        logging.debug(f"Searching Notion workspace (cursor={cursor})")
        payload = await self._request("POST", "/search", body=body)
        return ListPage.from_api(payload)
