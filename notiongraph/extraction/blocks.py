"""
Block tree processing for notiongraph.

This module fetches a document's block tree, flattens it, and extracts the
cross-document references it contains: inline page mentions in rich text and
relation properties of embedded databases.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..config import ConfigManager
from ..ids import normalize_id
from ..importers.base import BaseRemoteStore, ObjectNotFoundError
from ..models import Block, Mention, MentionKind, OperationResult, PropertyKind, RawDocument, RunStats
from ..models.canonical import CHILD_DATABASE_BLOCK
from ..ratelimit import RateLimiter


PERMISSION_HINT = ("Share the page or database with your Notion integration "
                   "(Share > Add people, groups, or integrations) to include it.")


@dataclass
class IgnorePolicy:
    """
    Decides which embedded databases are skipped during relation extraction.
    """
    ignored_database_ids: Set[str] = field(default_factory=set)
    ignore_inline_linked_databases: bool = False
    ignore_database_relations: bool = False

    def __post_init__(self):
        self.ignored_database_ids = {normalize_id(db_id) for db_id in self.ignored_database_ids}

    @classmethod
    def from_config(cls, config: ConfigManager) -> "IgnorePolicy":
        return cls(
            ignored_database_ids=set(config.ignored_database_ids),
            ignore_inline_linked_databases=config.ignore_inline_linked_databases,
            ignore_database_relations=config.ignore_database_relations,
        )

    def skip_reason(self, database_id: str) -> Optional[str]:
        """Return why a database is skipped, or None when it should be processed."""
        if normalize_id(database_id) in self.ignored_database_ids:
            return "database is in the ignore list"
        if self.ignore_inline_linked_databases:
            return "inline linked databases are ignored"
        if self.ignore_database_relations:
            return "database relations are ignored"
        return None


@dataclass
class BlockScan:
    """Flattened blocks of one document and the mentions found in them."""
    blocks: List[Block] = field(default_factory=list)
    mentions: List[Mention] = field(default_factory=list)


class BlockTreeProcessor:
    """
    Fetches and interprets block trees through the shared rate limiter.
    """

    def __init__(
        self,
        store: BaseRemoteStore,
        limiter: RateLimiter,
        policy: Optional[IgnorePolicy] = None,
        stats: Optional[RunStats] = None,
        page_size: int = BaseRemoteStore.DEFAULT_PAGE_SIZE
    ):
        """
        Initialize the block tree processor.

        Args:
            store: Remote store to read from
            limiter: Rate limiter shared with every other remote caller in the run
            policy: Embedded database ignore policy (defaults to processing all)
            stats: Run statistics to report operation outcomes to
            page_size: Page size for block and database listings
        """
        self.store = store
        self.limiter = limiter
        self.policy = policy or IgnorePolicy()
        self.stats = stats if stats is not None else RunStats()
        self.page_size = page_size

    async def _list_children(self, block_id: str) -> List[Block]:
        """List all direct children of a block, following pagination cursors."""
        children: List[Block] = []
        cursor = None

        while True:
            try:
                await self.limiter.wait()
                page = await self.store.list_child_blocks(block_id, cursor=cursor, page_size=self.page_size)
            except Exception as e:
                logging.error(f"Error fetching blocks for {block_id}: {e}")
                self.stats.add(OperationResult.failed("list_blocks", block_id, str(e)))
                break

            children.extend(Block.from_api(item) for item in page.results)
            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor

        return children

    async def fetch_all(self, document_id: str) -> List[Block]:
        """
        Fetch every block of a document, nested blocks included.

        Each block's direct children are listed together, followed by the
        subtrees of those children that have children of their own, in order.

        Args:
            document_id: The document whose block tree to fetch

        Returns:
            The flattened list of blocks
        """
        logging.info(f"Fetching blocks for page {document_id}...")
        blocks: List[Block] = []
        pending = [document_id]

        while pending:
            parent_id = pending.pop()
            children = await self._list_children(parent_id)
            blocks.extend(children)
            pending.extend(reversed([child.id for child in children if child.has_children]))

        return blocks

    async def fetch_first_block(self, document_id: str) -> Optional[Block]:
        """Fetch only the first top-level block of a document."""
        await self.limiter.wait()
        page = await self.store.list_child_blocks(document_id, page_size=1)
        if not page.results:
            return None
        return Block.from_api(page.results[0])

    async def process(self, document_id: str) -> BlockScan:
        """
        Fetch a document's blocks and extract its outgoing references.

        Args:
            document_id: The document to process

        Returns:
            BlockScan with the flattened blocks and the mentions they contain
        """
        scan = BlockScan(blocks=await self.fetch_all(document_id))

        for block in scan.blocks:
            for target_id in block.mentioned_page_ids():
                scan.mentions.append(Mention(
                    source_id=document_id,
                    target_id=target_id,
                    kind=MentionKind.INLINE_MENTION
                ))

            if block.type == CHILD_DATABASE_BLOCK:
                reason = self.policy.skip_reason(block.id)
                if reason:
                    logging.info(f"Skipping database {block.id}: {reason}")
                    self.stats.add(OperationResult.skipped("process_database", block.id, reason))
                    continue
                scan.mentions.extend(await self.process_database(block.id, document_id))

        return scan

    async def process_database(self, database_id: str, source_document_id: str) -> List[Mention]:
        """
        Collect the relation targets of every item in a database.

        Failures are logged and whatever was collected so far is returned.

        Args:
            database_id: The embedded database to read
            source_document_id: The document embedding the database

        Returns:
            Relation mentions from the source document to each target
        """
        relations: List[Mention] = []

        try:
            await self.limiter.wait()
            schema = RawDocument.from_api(await self.store.get_database_schema(database_id))
            relation_names = [prop.name for prop in schema.properties_of_kind(PropertyKind.RELATION)]
            if not relation_names:
                self.stats.add(OperationResult.success("process_database", database_id))
                return relations

            item_count = 0
            cursor = None
            while True:
                await self.limiter.wait()
                page = await self.store.query_database(database_id, cursor=cursor, page_size=self.page_size)

                for raw_item in page.results:
                    item = RawDocument.from_api(raw_item)
                    item_count += 1
                    for name in relation_names:
                        prop = item.properties.get(name)
                        if prop is None or prop.kind != PropertyKind.RELATION:
                            continue
                        for target_id in prop.relation_ids:
                            relations.append(Mention(
                                source_id=source_document_id,
                                target_id=target_id,
                                kind=MentionKind.DATABASE_RELATION
                            ))

                if not page.has_more or not page.next_cursor:
                    break
                cursor = page.next_cursor

            logging.info(f"Database {database_id}: {len(relations)} relations from {item_count} items")
            self.stats.add(OperationResult.success("process_database", database_id))

        except ObjectNotFoundError as e:
            logging.warning(f"Database {database_id} not found or not shared with the integration. {PERMISSION_HINT}")
            self.stats.add(OperationResult.skipped("process_database", database_id, f"not accessible: {e}"))
        except Exception as e:
            logging.error(f"Error processing database {database_id}: {e}")
            self.stats.add(OperationResult.failed("process_database", database_id, str(e)))

        return relations
