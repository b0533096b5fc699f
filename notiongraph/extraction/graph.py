"""
Graph extraction for notiongraph.

This module turns crawled documents and the references found in their blocks
into deduplicated graph nodes and typed edges.
"""

import logging
from typing import Dict, List, Optional

from ..ids import normalize_id
from ..importers.base import BaseRemoteStore, ObjectNotFoundError
from ..models import (
    Block,
    Edge,
    GraphData,
    NodeType,
    OperationResult,
    PageNode,
    RawDocument,
    RunStats,
)
from ..ratelimit import RateLimiter
from .blocks import PERMISSION_HINT, BlockScan, BlockTreeProcessor


UNKNOWN_LABEL = "Unknown Page"


def notion_url(node_id: str) -> str:
    """Best-effort link for a document whose metadata could not be fetched."""
    return f"https://notion.so/{normalize_id(node_id)}"


class GraphExtractor:
    """
    Builds nodes and edges from crawled documents.

    The node map keyed by normalized id is the single source of truth for
    deduplication; a later document with the same id replaces the earlier node.
    Every edge target missing from the map gets a referenced or unknown node,
    so no edge ever points at a missing node.
    """

    def __init__(
        self,
        store: BaseRemoteStore,
        limiter: RateLimiter,
        processor: BlockTreeProcessor,
        stats: Optional[RunStats] = None
    ):
        self.store = store
        self.limiter = limiter
        self.processor = processor
        self.stats = stats if stats is not None else RunStats()

    async def extract(self, documents: List[RawDocument]) -> GraphData:
        """
        Extract graph data from a list of documents.

        Args:
            documents: Crawled documents

        Returns:
            GraphData with the deduplicated nodes and all edges
        """
        node_map: Dict[str, PageNode] = {}
        edges: List[Edge] = []

        logging.info(f"Extracting graph data from {len(documents)} pages...")

        for document in documents:
            try:
                scan = await self._scan(document)
                node = await self.build_node(document, scan.blocks)
                node_map[node.id] = node

                for mention in scan.mentions:
                    source_id = normalize_id(mention.source_id)
                    target_id = normalize_id(mention.target_id)
                    edges.append(Edge(source=source_id, target=target_id, type=mention.kind))

                    if target_id not in node_map:
                        node_map[target_id] = await self.resolve_reference(mention.target_id)

                self.stats.add(OperationResult.success("extract_page", document.id))

            except Exception as e:
                logging.error(f"Error processing page {document.id}: {e}")
                self.stats.add(OperationResult.failed("extract_page", document.id, str(e)))

        return GraphData(nodes=list(node_map.values()), edges=edges)

    async def _scan(self, document: RawDocument) -> BlockScan:
        try:
            return await self.processor.process(document.id)
        except Exception as e:
            logging.error(f"Error processing blocks for page {document.id}: {e}")
            self.stats.add(OperationResult.failed("process_blocks", document.id, str(e)))
            return BlockScan()

    async def build_node(self, document: RawDocument, blocks: Optional[List[Block]] = None) -> PageNode:
        """Build the node for a crawled document."""
        node_id = normalize_id(document.id)
        tags = document.tags()
        return PageNode(
            id=node_id,
            label=await self.resolve_title(document, blocks),
            url=document.url or notion_url(node_id),
            tags=tags or None,
            type=NodeType.DATABASE_ITEM if document.parent_database_id else NodeType.PAGE,
            last_edited=document.last_edited_time,
        )

    async def resolve_title(self, document: RawDocument, blocks: Optional[List[Block]] = None) -> str:
        """
        Resolve a document title.

        Uses the title property when present and non-empty, else the text of
        the document's first block if that block is a level-1 heading, else a
        synthesized "Untitled (<id prefix>)" label.

        Args:
            document: The document to title
            blocks: Already fetched blocks of the document; when None, only the
                first block is fetched

        Returns:
            The resolved title
        """
        title = document.title()
        if title:
            return title

        first_block: Optional[Block] = None
        if blocks is not None:
            first_block = blocks[0] if blocks else None
        else:
            try:
                first_block = await self.processor.fetch_first_block(document.id)
            except Exception as e:
                logging.error(f"Error getting title for page {document.id}: {e}")

        if first_block and first_block.type == "heading_1" and first_block.plain_text:
            return first_block.plain_text

        return f"Untitled ({document.id[:8]})"

    async def resolve_reference(self, target_id: str) -> PageNode:
        """
        Build a node for a mention target that was not crawled.

        Returns:
            A referenced node built from the target's metadata, or an unknown
            node when the metadata cannot be fetched
        """
        node_id = normalize_id(target_id)
        try:
            await self.limiter.wait()
            document = RawDocument.from_api(await self.store.get_document(target_id))
            node = PageNode(
                id=node_id,
                label=await self.resolve_title(document),
                url=document.url or notion_url(node_id),
                type=NodeType.REFERENCED,
            )
            self.stats.add(OperationResult.success("resolve_reference", target_id))
            return node

        except ObjectNotFoundError as e:
            logging.warning(f"Referenced page {target_id} not found or not shared with the integration. {PERMISSION_HINT}")
            self.stats.add(OperationResult.skipped("resolve_reference", target_id, f"not accessible: {e}"))
        except Exception as e:
            logging.error(f"Error fetching referenced page {target_id}: {e}")
            self.stats.add(OperationResult.failed("resolve_reference", target_id, str(e)))

        return PageNode(id=node_id, label=UNKNOWN_LABEL, url=notion_url(node_id), type=NodeType.UNKNOWN)
