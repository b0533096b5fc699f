"""
notiongraph: Incremental Notion knowledge graph builder.

Crawls a Notion workspace, extracts the mention and relation graph between
pages, and clusters it for visualization.
"""

__version__ = "0.1.0"
__author__ = "notiongraph Project"

# Import main components
from .clustering import cluster_by_connections, cluster_by_tags, generate_clusters
from .database import DatabaseManager
from .extraction import BlockTreeProcessor, GraphExtractor, IgnorePolicy
from .importers import BaseRemoteStore, MockStore, NotionAPIStore
from .models import ClusterInfo, Edge, GraphDocument, PageNode
from .pipeline import GraphPipeline
from .ratelimit import RateLimiter
from .sync import PageCrawler, SyncStateStore

__all__ = [
    "cluster_by_connections",
    "cluster_by_tags",
    "generate_clusters",
    "DatabaseManager",
    "BlockTreeProcessor",
    "GraphExtractor",
    "IgnorePolicy",
    "BaseRemoteStore",
    "MockStore",
    "NotionAPIStore",
    "ClusterInfo",
    "Edge",
    "GraphDocument",
    "PageNode",
    "GraphPipeline",
    "RateLimiter",
    "PageCrawler",
    "SyncStateStore",
]
