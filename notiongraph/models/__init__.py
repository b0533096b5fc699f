"""Data models for notiongraph."""

from .canonical import (
    Block,
    DocumentProperty,
    PropertyKind,
    RawDocument,
    RichTextSpan,
    SyncState,
)
from .graph import (
    ClusterInfo,
    ClusterSet,
    Edge,
    GraphData,
    GraphDocument,
    Mention,
    MentionKind,
    NodeType,
    PageNode,
)
from .results import OperationResult, OperationStatus, RunStats

__all__ = [
    "Block",
    "DocumentProperty",
    "PropertyKind",
    "RawDocument",
    "RichTextSpan",
    "SyncState",
    "ClusterInfo",
    "ClusterSet",
    "Edge",
    "GraphData",
    "GraphDocument",
    "Mention",
    "MentionKind",
    "NodeType",
    "PageNode",
    "OperationResult",
    "OperationStatus",
    "RunStats",
]
