"""
Page crawler for notiongraph.

This module walks the page hierarchy from a root page and then sweeps the
workspace search listing for recently edited pages, returning only documents
that are new or changed since the last recorded sync.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from ..ids import normalize_id
from ..importers.base import BaseRemoteStore, ObjectNotFoundError
from ..extraction.blocks import PERMISSION_HINT, BlockTreeProcessor
from ..models import OperationResult, RawDocument, RunStats
from ..models.canonical import CHILD_PAGE_BLOCK
from ..ratelimit import RateLimiter
from .state import SyncStateStore


class CrawlPhase(str, Enum):
    IDLE = "idle"
    HIERARCHY_WALK = "hierarchy_walk"
    SEARCH_SWEEP = "search_sweep"
    DONE = "done"


@dataclass
class CrawlResult:
    """Documents collected by one crawl, by phase."""
    hierarchy: List[RawDocument] = field(default_factory=list)
    search: List[RawDocument] = field(default_factory=list)

    @property
    def documents(self) -> List[RawDocument]:
        return self.hierarchy + self.search


class PageCrawler:
    """
    Collects new and changed documents from the remote store.

    Each document is fetched at most once per crawl, even when the hierarchy
    contains cycles or pages reachable along several paths.
    """

    def __init__(
        self,
        store: BaseRemoteStore,
        limiter: RateLimiter,
        state_store: SyncStateStore,
        processor: BlockTreeProcessor,
        stats: Optional[RunStats] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE,
        search_sweep: bool = True
    ):
        """
        Initialize the crawler.

        Args:
            store: Remote store to read from
            limiter: Rate limiter shared by all remote callers in the run
            state_store: Loaded sync state, updated in place while crawling
            processor: Block tree processor used to discover child pages
            stats: Run statistics to report operation outcomes to
            page_size: Page size for search listings
            search_sweep: Whether to run the recently-edited search pass
        """
        self.store = store
        self.limiter = limiter
        self.state_store = state_store
        self.processor = processor
        self.stats = stats if stats is not None else RunStats()
        self.page_size = page_size
        self.search_sweep_enabled = search_sweep
        self.phase = CrawlPhase.IDLE

    async def crawl(self, root_page_id: Optional[str]) -> CrawlResult:
        """
        Run the hierarchy walk and the search sweep, then persist the sync state.

        Args:
            root_page_id: Page the hierarchy walk starts from; None skips the walk

        Returns:
            CrawlResult with the documents to extract
        """
        result = CrawlResult()
        logging.info("Fetching pages from Notion...")

        try:
            self.phase = CrawlPhase.HIERARCHY_WALK
            if root_page_id:
                result.hierarchy = await self.walk_hierarchy(root_page_id)
                logging.info(f"Fetched {len(result.hierarchy)} pages from root page hierarchy")
            else:
                logging.warning("No root page configured. Skipping hierarchy walk.")

            if self.search_sweep_enabled:
                self.phase = CrawlPhase.SEARCH_SWEEP
                collected = {normalize_id(document.id) for document in result.hierarchy}
                result.search = await self.sweep_search(collected)
        finally:
            self.phase = CrawlPhase.DONE
            try:
                self.state_store.persist()
            except OSError as e:
                logging.error(f"Failed to save sync state: {e}")

        logging.info(f"Total pages to process: {len(result.documents)}")
        return result

    async def walk_hierarchy(self, root_page_id: str, visited: Optional[Set[str]] = None) -> List[RawDocument]:
        """
        Visit the root page and, for every new or changed page, its child pages.

        Unchanged pages contribute nothing and their children are not explored.

        Args:
            root_page_id: Page to start from
            visited: Normalized ids already visited; shared across the walk

        Returns:
            New or changed documents in depth-first visiting order
        """
        visited = visited if visited is not None else set()
        documents: List[RawDocument] = []
        pending = [root_page_id]

        while pending:
            page_id = pending.pop()
            key = normalize_id(page_id)
            if key in visited:
                continue
            visited.add(key)

            logging.info(f"Processing page {page_id}...")
            try:
                await self.limiter.wait()
                document = RawDocument.from_api(await self.store.get_document(page_id))

                if not self.state_store.should_process(document.id, document.last_edited_time):
                    self.stats.add(OperationResult.skipped("crawl_page", page_id, "unchanged since last sync"))
                    continue

                self.state_store.record(document.id, document.last_edited_time)
                blocks = await self.processor.fetch_all(document.id)

                child_ids: List[str] = []
                for block in blocks:
                    if block.type == CHILD_PAGE_BLOCK and block.id not in child_ids:
                        child_ids.append(block.id)

                documents.append(document)
                self.stats.add(OperationResult.success("crawl_page", page_id))
                pending.extend(reversed(child_ids))

            except ObjectNotFoundError as e:
                logging.warning(f"Page {page_id} not found or not shared with the integration. {PERMISSION_HINT}")
                self.stats.add(OperationResult.skipped("crawl_page", page_id, f"not accessible: {e}"))
            except Exception as e:
                logging.error(f"Error fetching page {page_id}: {e}")
                self.stats.add(OperationResult.failed("crawl_page", page_id, str(e)))

        return documents

    async def sweep_search(self, collected: Set[str]) -> List[RawDocument]:
        """
        Page through the workspace search, newest edits first, keeping pages
        not yet collected whose edit timestamp differs from the recorded one.

        Args:
            collected: Normalized ids already collected in this run; updated in place

        Returns:
            The kept documents
        """
        documents: List[RawDocument] = []
        cursor = None

        while True:
            try:
                await self.limiter.wait()
                page = await self.store.search(cursor=cursor, page_size=self.page_size,
                                               sort_by_edit_time=True, filter_kind="page")
            except Exception as e:
                logging.error(f"Error fetching pages: {e}")
                self.stats.add(OperationResult.failed("search", cursor or "start", str(e)))
                break

            kept = 0
            for item in page.results:
                try:
                    document = RawDocument.from_api(item)
                except (KeyError, ValueError) as e:
                    logging.error(f"Skipping malformed search result: {e}")
                    self.stats.add(OperationResult.failed("search_result", str(item.get("id")), str(e)))
                    continue

                key = normalize_id(document.id)
                if key in collected:
                    continue
                if not self.state_store.should_process(document.id, document.last_edited_time):
                    continue

                self.state_store.record(document.id, document.last_edited_time)
                collected.add(key)
                documents.append(document)
                self.stats.add(OperationResult.success("search_result", document.id))
                kept += 1

            logging.info(f"Fetched batch of {len(page.results)} pages, {kept} need updating")
            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor

        return documents
