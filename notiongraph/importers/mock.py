"""
Mock remote store for testing notiongraph.

This module provides an in-memory content store with the same paginated
interface as the Notion API, plus helpers for building raw records.
"""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..ids import normalize_id
from .base import BaseRemoteStore, ListPage, ObjectNotFoundError, RemoteStoreError


def text_span(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": {"content": text}, "plain_text": text}


def mention_span(page_id: str, text: str = "@page") -> Dict[str, Any]:
    return {
        "type": "mention",
        "mention": {"type": "page", "page": {"id": page_id}},
        "plain_text": text,
    }


def make_block(
    block_id: str,
    block_type: str = "paragraph",
    spans: Optional[List[Dict[str, Any]]] = None,
    has_children: bool = False,
    title: Optional[str] = None
) -> Dict[str, Any]:
    """Build a raw block record."""
    body: Dict[str, Any] = {}
    if title is not None:
        body["title"] = title
    else:
        body["rich_text"] = spans or []
    return {
        "object": "block",
        "id": block_id,
        "type": block_type,
        "has_children": has_children,
        block_type: body,
    }


def make_page(
    page_id: str,
    title: Optional[str] = None,
    last_edited_time: str = "2024-01-01T00:00:00.000Z",
    tags: Optional[List[str]] = None,
    status: Optional[str] = None,
    database_id: Optional[str] = None,
    relations: Optional[Dict[str, List[str]]] = None,
    url: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build a raw page record.

    Args:
        page_id: The page identifier
        title: Value of the title property; omitted when None
        last_edited_time: Edit timestamp
        tags: Options of a "Tags" multi-select property
        status: Option of a "Status" select property
        database_id: Parent database, making the page a database item
        relations: Relation property name -> target ids
        url: Page URL; derived from the id when None

    Returns:
        The raw page record
    """
    properties: Dict[str, Any] = {}
    if title is not None:
        properties["Name"] = {"id": "title", "type": "title", "title": [text_span(title)]}
    if tags is not None:
        properties["Tags"] = {"type": "multi_select", "multi_select": [{"name": tag} for tag in tags]}
    if status is not None:
        properties["Status"] = {"type": "select", "select": {"name": status}}
    for name, targets in (relations or {}).items():
        properties[name] = {"type": "relation", "relation": [{"id": target} for target in targets]}

    if database_id:
        parent = {"type": "database_id", "database_id": database_id}
    else:
        parent = {"type": "workspace", "workspace": True}

    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": last_edited_time,
        "url": url or f"https://www.notion.so/{normalize_id(page_id)}",
        "parent": parent,
        "properties": properties,
    }


def make_database(database_id: str, relation_properties: Iterable[str] = ()) -> Dict[str, Any]:
    """Build a raw database record with a title column and the given relation columns."""
    properties: Dict[str, Any] = {"Name": {"id": "title", "type": "title", "title": {}}}
    for name in relation_properties:
        properties[name] = {"type": "relation", "relation": {"database_id": database_id}}
    return {"object": "database", "id": database_id, "properties": properties}


def _paginate(items: List[Dict[str, Any]], cursor: Optional[str], page_size: int) -> ListPage:
    start = int(cursor) if cursor else 0
    end = start + page_size
    has_more = end < len(items)
    return ListPage(results=items[start:end], has_more=has_more, next_cursor=str(end) if has_more else None)


class MockStore(BaseRemoteStore):
    """
    In-memory remote store.

    All lookups are keyed by normalized id. Every call is appended to `calls`
    as (method, id) so tests can assert what was fetched.
    """

    SAMPLE_ROOT_ID = "root-0001"

    def __init__(self):
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.children: Dict[str, List[Dict[str, Any]]] = {}
        self.databases: Dict[str, Dict[str, Any]] = {}
        self.database_items: Dict[str, List[Dict[str, Any]]] = {}
        self.search_results: Optional[List[Dict[str, Any]]] = None
        self.failing: Set[str] = set()
        self.hidden: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []

    # Workspace setup

    def add_page(self, page: Dict[str, Any], blocks: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        self.pages[normalize_id(page["id"])] = page
        if blocks is not None:
            self.set_children(page["id"], blocks)
        return page

    def set_children(self, parent_id: str, blocks: List[Dict[str, Any]]) -> None:
        self.children[normalize_id(parent_id)] = blocks

    def add_database(self, database: Dict[str, Any], items: Optional[List[Dict[str, Any]]] = None) -> None:
        key = normalize_id(database["id"])
        self.databases[key] = database
        self.database_items[key] = items or []

    def hide(self, object_id: str) -> None:
        """Make an object answer "not found", as an unshared object does."""
        self.hidden.add(normalize_id(object_id))

    def fail(self, object_id: str) -> None:
        """Make every call touching an object raise a generic store error."""
        self.failing.add(normalize_id(object_id))

    def calls_for(self, method: str) -> List[str]:
        return [object_id for name, object_id in self.calls if name == method]

    def _check(self, method: str, object_id: str) -> str:
        self.calls.append((method, object_id))
        key = normalize_id(object_id)
        if key in self.failing:
            raise RemoteStoreError(f"Simulated failure for {object_id}")
        if key in self.hidden:
            raise ObjectNotFoundError(f"Object not found: {object_id}")
        return key

    # Remote store interface

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        key = self._check("get_document", document_id)
        if key not in self.pages:
            raise ObjectNotFoundError(f"Page not found: {document_id}")
        return self.pages[key]

    async def list_child_blocks(
        self,
        block_id: str,
        cursor: Optional[str] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE
    ) -> ListPage:
        key = self._check("list_child_blocks", block_id)
        return _paginate(self.children.get(key, []), cursor, page_size)

    async def get_database_schema(self, database_id: str) -> Dict[str, Any]:
        key = self._check("get_database_schema", database_id)
        if key not in self.databases:
            raise ObjectNotFoundError(f"Database not found: {database_id}")
        return self.databases[key]

    async def query_database(
        self,
        database_id: str,
        cursor: Optional[str] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE
    ) -> ListPage:
        key = self._check("query_database", database_id)
        if key not in self.databases:
            raise ObjectNotFoundError(f"Database not found: {database_id}")
        return _paginate(self.database_items.get(key, []), cursor, page_size)

    async def search(
        self,
        cursor: Optional[str] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE,
        sort_by_edit_time: bool = True,
        filter_kind: Optional[str] = "page"
    ) -> ListPage:
        self._check("search", cursor or "")
        if self.search_results is not None:
            results = list(self.search_results)
        else:
            results = [page for key, page in self.pages.items() if key not in self.hidden]
        if filter_kind:
            results = [item for item in results if item.get("object", "page") == filter_kind]
        if sort_by_edit_time:
            results.sort(key=lambda item: item.get("last_edited_time") or "", reverse=True)
        return _paginate(results, cursor, page_size)

    @classmethod
    def sample(cls) -> "MockStore":
        """
        Build a small sample workspace.

        The root page links to two child pages, one of which mentions the root
        back (a cycle). A child page embeds a projects database whose items
        relate to each other, and a journal page mentions a page that is not
        shared with the integration.
        """
        store = cls()

        store.add_page(make_page(cls.SAMPLE_ROOT_ID, title="Knowledge Base", tags=["hub"]), [
            make_block("b-root-1", "heading_1", [text_span("Knowledge Base")]),
            make_block("b-root-2", "paragraph", [text_span("Start at "), mention_span("people-0001")]),
            make_block("people-0001", "child_page", title="People"),
            make_block("projects-0001", "child_page", title="Projects"),
        ])
        store.add_page(make_page("people-0001", title="People", tags=["directory"]), [
            make_block("b-people-1", "bulleted_list_item", [text_span("Back to "), mention_span("root-0001")]),
            make_block("b-people-2", "to_do", [mention_span("journal-0001")], has_children=True),
        ])
        store.set_children("b-people-2", [
            make_block("b-people-3", "paragraph", [mention_span("hidden-0001")]),
        ])
        store.add_page(make_page("projects-0001", title="Projects", tags=["directory", "work"]), [
            make_block("db-0001", "child_database", title="Project Tracker"),
        ])
        store.add_database(make_database("db-0001", ["Depends On"]), [
            make_page("proj-a", title="Project A", tags=["work"], database_id="db-0001",
                      relations={"Depends On": ["proj-b"]}),
            make_page("proj-b", title="Project B", status="active", database_id="db-0001"),
        ])
        store.add_page(make_page("proj-b", title="Project B", status="active", database_id="db-0001"))
        store.add_page(make_page("journal-0001", title="Journal", last_edited_time="2024-02-01T00:00:00.000Z"), [
            make_block("b-journal-1", "numbered_list_item", [mention_span("proj-b")]),
        ])
        store.hide("hidden-0001")
        return store
