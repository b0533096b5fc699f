"""
Graph build pipeline for notiongraph.

This module wires the crawl, extraction and clustering stages together for one
batch run and writes the resulting graph document for the presentation layer.
"""

import logging
from pathlib import Path
from typing import List, Optional

from .clustering import generate_clusters
from .config import ConfigManager, config as default_config
from .database import DatabaseManager
from .extraction import BlockTreeProcessor, GraphExtractor, IgnorePolicy
from .importers.base import BaseRemoteStore
from .models import GraphDocument, NodeType, PageNode, RunStats
from .ratelimit import RateLimiter
from .sync import PageCrawler, SyncStateStore


def write_graph_document(document: GraphDocument, output_path: str) -> Path:
    """
    Write a graph document as indented JSON, creating parent directories.

    Args:
        document: The graph document to write
        output_path: Destination file

    Returns:
        The written path
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(document.to_json())
    logging.info(f"Graph exported to {path}")
    return path


def log_permission_summary(nodes: List[PageNode]) -> int:
    """Log sharing instructions when some referenced pages could not be read."""
    unknown = sum(1 for node in nodes if node.type == NodeType.UNKNOWN)
    if unknown:
        logging.warning(f"Permission summary: {unknown} page(s) could not be fully accessed.")
        logging.warning("If pages or databases are reported as not found, make sure they are shared "
                        "with your Notion integration: open the page, click Share, choose "
                        "'Add people, groups, or integrations', select the integration and click Invite.")
    return unknown


class GraphPipeline:
    """
    Runs crawl -> extract -> cluster -> write for one invocation.

    The rate limiter and sync state store are created once per run and shared
    by every stage.
    """

    def __init__(
        self,
        store: BaseRemoteStore,
        config: Optional[ConfigManager] = None,
        state_path: Optional[str] = None,
        output_path: Optional[str] = None,
        database: Optional[DatabaseManager] = None,
        limiter: Optional[RateLimiter] = None
    ):
        """
        Initialize the pipeline.

        Args:
            store: Remote store to crawl
            config: Configuration (defaults to the global instance)
            state_path: Sync state file, overriding paths.state_file
            output_path: Graph output file, overriding paths.output_file
            database: Connected run ledger; runs are not recorded when None
            limiter: Rate limiter to use instead of one built from config
        """
        self.store = store
        self.config = config or default_config
        self.state_path = state_path or self.config.state_filename
        self.output_path = output_path or self.config.output_filename
        self.database = database
        self.limiter = limiter
        self.stats = RunStats()

    async def run(self, root_page_id: Optional[str] = None, full_resync: bool = False) -> Optional[GraphDocument]:
        """
        Build the graph.

        Args:
            root_page_id: Root of the hierarchy walk, overriding notion.root_page_id
            full_resync: Forget the recorded sync state and process every document

        Returns:
            The written GraphDocument, or None when no document needed processing
        """
        logging.info("Starting graph build process...")
        self.stats = RunStats()
        limiter = self.limiter or RateLimiter(self.config.rate_limit_ms)

        state_store = SyncStateStore(self.state_path)
        state_store.load()
        if full_resync:
            state_store.reset()

        processor = BlockTreeProcessor(
            self.store,
            limiter,
            policy=IgnorePolicy.from_config(self.config),
            stats=self.stats,
            page_size=self.config.page_size
        )
        crawler = PageCrawler(
            self.store,
            limiter,
            state_store,
            processor,
            stats=self.stats,
            page_size=self.config.page_size,
            search_sweep=self.config.search_sweep_enabled
        )

        run_id = self._start_run()
        documents = 0
        try:
            crawl = await crawler.crawl(root_page_id or self.config.root_page_id)
            documents = len(crawl.documents)
            if not crawl.documents:
                logging.info("No pages to process. Graph remains unchanged.")
                self._finish_run(run_id, documents=0)
                return None

            extractor = GraphExtractor(self.store, limiter, processor, stats=self.stats)
            graph = await extractor.extract(crawl.documents)
            logging.info(f"Built graph with {len(graph.nodes)} nodes and {len(graph.edges)} edges")

            clusters = generate_clusters(graph.nodes, graph.edges)
            logging.info(f"Generated {len(clusters.by_tags)} tag clusters and "
                         f"{len(clusters.by_connections)} connection clusters")

            document = GraphDocument(nodes=graph.nodes, edges=graph.edges, clusters=clusters)
            write_graph_document(document, self.output_path)

            logging.info(f"Run summary: {self.stats.succeeded} succeeded, {self.stats.skipped} skipped, "
                         f"{self.stats.failed} failed")
            log_permission_summary(graph.nodes)

            self._finish_run(run_id, documents=documents, nodes=len(graph.nodes), edges=len(graph.edges))
            return document

        except Exception as e:
            self._finish_run(run_id, documents=documents, success=False, error_message=str(e))
            raise

    def _start_run(self) -> Optional[int]:
        if not self.database:
            return None
        try:
            return self.database.start_run()
        except Exception as e:
            logging.warning(f"Failed to record run start: {e}")
            return None

    def _finish_run(self, run_id: Optional[int], documents: int = 0, nodes: int = 0, edges: int = 0,
                    success: bool = True, error_message: Optional[str] = None) -> None:
        if not self.database or run_id is None:
            return
        try:
            self.database.record_outcomes(run_id, self.stats.results)
            self.database.finish_run(run_id, self.stats, documents=documents, nodes=nodes, edges=edges,
                                     success=success, error_message=error_message)
        except Exception as e:
            logging.warning(f"Failed to record run {run_id}: {e}")
