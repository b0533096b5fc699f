"""
Graph models for notiongraph.

This module defines the mention records produced by block processing and the
node, edge and cluster structures written to the output graph document.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class MentionKind(str, Enum):
    """How a cross-document reference was discovered."""

    INLINE_MENTION = "mention"
    DATABASE_RELATION = "relation"


class NodeType(str, Enum):
    PAGE = "page"
    DATABASE_ITEM = "database_item"
    REFERENCED = "referenced"
    UNKNOWN = "unknown"


class Mention(BaseModel):
    """
    A directed reference from one document to another.
    """

    source_id: str = Field(
        ...,
        description="Document containing the reference"
    )

    target_id: str = Field(
        ...,
        description="Referenced document"
    )

    kind: MentionKind = Field(
        ...,
        description="Inline mention or database relation"
    )


class PageNode(BaseModel):
    """
    A graph vertex as written to the output document.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        ...,
        description="Normalized document id, unique within a graph"
    )

    label: str = Field(
        ...,
        description="Resolved document title"
    )

    url: str = Field(
        ...,
        description="Link to the document in the content store"
    )

    tags: Optional[List[str]] = Field(
        default=None,
        description="Tags from select and multi-select properties"
    )

    type: Optional[NodeType] = Field(
        default=None,
        description="How the node was discovered"
    )

    last_edited: Optional[str] = Field(
        default=None,
        alias="lastEdited",
        description="Edit timestamp of the crawled document"
    )


class Edge(BaseModel):
    """
    A directed edge between two normalized node ids.
    """

    source: str
    target: str
    type: MentionKind


class ClusterInfo(BaseModel):
    """
    A named group of node ids.
    """

    id: str
    label: str
    nodes: List[str] = Field(default_factory=list)


class ClusterSet(BaseModel):
    """The two independent clusterings of one graph."""

    model_config = ConfigDict(populate_by_name=True)

    by_tags: List[ClusterInfo] = Field(default_factory=list, alias="byTags")
    by_connections: List[ClusterInfo] = Field(default_factory=list, alias="byConnections")


class GraphData(BaseModel):
    """Nodes and edges produced by the graph extractor."""

    nodes: List[PageNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    def node_index(self) -> Dict[str, PageNode]:
        return {node.id: node for node in self.nodes}


class GraphDocument(BaseModel):
    """
    The output document consumed by the presentation layer.
    """

    nodes: List[PageNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    clusters: ClusterSet = Field(default_factory=ClusterSet)

    def to_json(self) -> str:
        """Serialize with camelCase keys, omitting unset optional fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
