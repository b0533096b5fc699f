"""
Canonical data models for notiongraph.

This module defines the internal data structures that raw records from the
remote content store are converted into before crawling and extraction.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


EPOCH_ZERO = "1970-01-01T00:00:00.000Z"

# Block types whose rich text may carry inline page mentions
TEXT_BLOCK_TYPES = frozenset({
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
    "to_do",
})

CHILD_PAGE_BLOCK = "child_page"
CHILD_DATABASE_BLOCK = "child_database"


class PropertyKind(str, Enum):
    """The property kinds the extractor cares about; everything else is OTHER."""

    TITLE = "title"
    MULTI_SELECT = "multi_select"
    SELECT = "select"
    RELATION = "relation"
    OTHER = "other"


class RichTextSpan(BaseModel):
    """
    One span of rich text inside a block or a title property.
    """

    plain_text: str = Field(
        default="",
        description="The text content of the span"
    )

    mention_page_id: Optional[str] = Field(
        default=None,
        description="Target document id when the span is an inline page mention"
    )

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "RichTextSpan":
        mention_page_id = None
        if payload.get("type") == "mention":
            mention = payload.get("mention") or {}
            if mention.get("type") == "page":
                mention_page_id = (mention.get("page") or {}).get("id")
        return cls(plain_text=payload.get("plain_text") or "", mention_page_id=mention_page_id)


def _spans_text(spans: List[Dict[str, Any]]) -> str:
    return "".join(span.get("plain_text") or "" for span in spans)


def _parse_title(prop: "DocumentProperty", value: Any) -> None:
    if isinstance(value, list):
        prop.text = _spans_text(value)


def _parse_multi_select(prop: "DocumentProperty", value: Any) -> None:
    if isinstance(value, list):
        prop.options = [option["name"] for option in value if option.get("name")]


def _parse_select(prop: "DocumentProperty", value: Any) -> None:
    if isinstance(value, dict) and value.get("name"):
        prop.options = [value["name"]]


def _parse_relation(prop: "DocumentProperty", value: Any) -> None:
    # Database schemas carry a config object here, items carry the id list
    if isinstance(value, list):
        prop.relation_ids = [item["id"] for item in value if item.get("id")]


_PROPERTY_PARSERS: Dict[PropertyKind, Callable[["DocumentProperty", Any], None]] = {
    PropertyKind.TITLE: _parse_title,
    PropertyKind.MULTI_SELECT: _parse_multi_select,
    PropertyKind.SELECT: _parse_select,
    PropertyKind.RELATION: _parse_relation,
}


class DocumentProperty(BaseModel):
    """
    A structured property on a document or a database schema, reduced to the
    kinds used for titles, tags and relations.
    """

    name: str = Field(
        ...,
        description="The property name as shown in the content store"
    )

    kind: PropertyKind = Field(
        default=PropertyKind.OTHER,
        description="The property kind tag used for dispatch"
    )

    text: str = Field(
        default="",
        description="Concatenated plain text for title properties"
    )

    options: List[str] = Field(
        default_factory=list,
        description="Option names for select and multi-select properties"
    )

    relation_ids: List[str] = Field(
        default_factory=list,
        description="Target ids listed under a relation property"
    )

    @classmethod
    def from_api(cls, name: str, payload: Dict[str, Any]) -> "DocumentProperty":
        """
        Build a property from its API representation, dispatching on the type tag.

        Args:
            name: The property name (key in the properties map)
            payload: The raw property value, e.g. {"type": "select", "select": {...}}

        Returns:
            The parsed DocumentProperty
        """
        raw_type = payload.get("type")
        try:
            kind = PropertyKind(raw_type)
        except ValueError:
            kind = PropertyKind.OTHER

        prop = cls(name=name, kind=kind)
        parser = _PROPERTY_PARSERS.get(kind)
        if parser:
            parser(prop, payload.get(raw_type))
        return prop


def parse_properties(payload: Optional[Dict[str, Any]]) -> Dict[str, DocumentProperty]:
    """Parse a raw properties map into DocumentProperty objects keyed by name."""
    if not isinstance(payload, dict):
        return {}
    return {
        name: DocumentProperty.from_api(name, value)
        for name, value in payload.items()
        if isinstance(value, dict)
    }


class RawDocument(BaseModel):
    """
    A content item returned by the remote store: a page, a database item or a
    database (schema) record.
    """

    id: str = Field(
        ...,
        description="The identifier as formatted by the remote store"
    )

    object: str = Field(
        default="page",
        description="The record kind reported by the store (page or database)"
    )

    last_edited_time: Optional[str] = Field(
        default=None,
        description="The edit timestamp used for incremental sync"
    )

    url: Optional[str] = Field(
        default=None,
        description="Link to the item in the content store"
    )

    parent: Dict[str, Any] = Field(
        default_factory=dict,
        description="The raw parent reference"
    )

    properties: Dict[str, DocumentProperty] = Field(
        default_factory=dict,
        description="Structured properties keyed by property name"
    )

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "RawDocument":
        return cls(
            id=payload["id"],
            object=payload.get("object") or "page",
            last_edited_time=payload.get("last_edited_time"),
            url=payload.get("url"),
            parent=payload.get("parent") or {},
            properties=parse_properties(payload.get("properties")),
        )

    @property
    def parent_database_id(self) -> Optional[str]:
        """The database this document belongs to, if any."""
        return self.parent.get("database_id")

    def properties_of_kind(self, kind: PropertyKind) -> List[DocumentProperty]:
        return [prop for prop in self.properties.values() if prop.kind == kind]

    def title(self) -> Optional[str]:
        """Text of the first title property, or None when the document has none."""
        for prop in self.properties_of_kind(PropertyKind.TITLE):
            return prop.text
        return None

    def tags(self) -> List[str]:
        """Option names from every select and multi-select property, in property order."""
        tags: List[str] = []
        for prop in self.properties.values():
            if prop.kind in (PropertyKind.MULTI_SELECT, PropertyKind.SELECT):
                tags.extend(prop.options)
        return tags


class Block(BaseModel):
    """
    One content unit inside a document body.

    Blocks form a tree in the store; the block processor flattens that tree,
    so only the has_children flag survives here.
    """

    id: str = Field(
        ...,
        description="The block identifier"
    )

    type: str = Field(
        ...,
        description="The block type tag (paragraph, heading_1, child_page, ...)"
    )

    has_children: bool = Field(
        default=False,
        description="Whether the block has nested blocks of its own"
    )

    rich_text: List[RichTextSpan] = Field(
        default_factory=list,
        description="Rich text spans for text-bearing blocks"
    )

    title: Optional[str] = Field(
        default=None,
        description="Title carried by child_page and child_database blocks"
    )

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Block":
        block_type = payload.get("type") or "unsupported"
        body = payload.get(block_type) or {}
        spans = body.get("rich_text") if isinstance(body, dict) else None
        return cls(
            id=payload["id"],
            type=block_type,
            has_children=bool(payload.get("has_children")),
            rich_text=[RichTextSpan.from_api(span) for span in spans or []],
            title=body.get("title") if isinstance(body, dict) else None,
        )

    @property
    def plain_text(self) -> str:
        return "".join(span.plain_text for span in self.rich_text)

    def mentioned_page_ids(self) -> List[str]:
        """Ids of pages mentioned inline; empty for non-text block types."""
        if self.type not in TEXT_BLOCK_TYPES:
            return []
        return [span.mention_page_id for span in self.rich_text if span.mention_page_id]


class SyncState(BaseModel):
    """
    Persisted record of which documents were processed and at which edit time.
    """

    model_config = ConfigDict(populate_by_name=True)

    last_sync_time: str = Field(
        default=EPOCH_ZERO,
        alias="lastSyncTime",
        description="When the last crawl pass finished"
    )

    processed_pages: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        alias="processedPages",
        description="Normalized document id -> last processed edit timestamp"
    )
