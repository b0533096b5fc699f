#!/usr/bin/env python3
"""
notiongraph - Incremental Notion Knowledge Graph Builder

Main entry point. Crawls the workspace, extracts the page graph, clusters it
and writes the graph document for the visualization front end.
"""

import asyncio
import logging
import sys
import argparse
from typing import Optional

from notiongraph import __version__
from notiongraph.config import ConfigManager, config
from notiongraph.database import DatabaseManager
from notiongraph.importers import BaseRemoteStore, MockStore, NotionAPIStore, RemoteStoreError
from notiongraph.models import GraphDocument
from notiongraph.pipeline import GraphPipeline


def setup_logging(cfg: ConfigManager = config):
    """Configure logging for the application."""
    level = getattr(logging, cfg.get("logging.level", "INFO").upper(), logging.INFO)
    format_str = cfg.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(cfg.log_filename)
        ]
    )


def create_store(importer_type: str, cfg: ConfigManager) -> BaseRemoteStore:
    """
    Create the remote store for the selected importer.

    Raises:
        RemoteStoreError: If the Notion token is not configured
    """
    if importer_type == "mock":
        logging.info("Using the built-in sample workspace")
        return MockStore.sample()
    return NotionAPIStore.from_config(cfg)


async def run_pipeline(importer_type: str, cfg: ConfigManager, full_resync: bool = False) -> Optional[GraphDocument]:
    """
    Build the graph once.

    Args:
        importer_type: "notion" or "mock"
        cfg: Configuration to run with
        full_resync: Ignore the recorded sync state

    Returns:
        The written graph document, or None if nothing changed
    """
    root_page_id = cfg.root_page_id
    if importer_type == "mock" and not root_page_id:
        root_page_id = MockStore.SAMPLE_ROOT_ID

    async with create_store(importer_type, cfg) as store:
        if not cfg.database_enabled:
            return await GraphPipeline(store, cfg).run(root_page_id, full_resync=full_resync)

        with DatabaseManager(cfg.database_filename) as db:
            db.initialize_database()
            return await GraphPipeline(store, cfg, database=db).run(root_page_id, full_resync=full_resync)


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="notiongraph - Incremental Notion Knowledge Graph Builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  # Incremental sync from notion.root_page_id
  python main.py --root-page 1fd13edac11f803b     # Start the hierarchy walk from another page
  python main.py --full                           # Ignore the sync state and process everything
  python main.py --importer mock                  # Build the graph of the built-in sample workspace
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to the configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--importer",
        choices=["notion", "mock"],
        default="notion",
        help="Content store to read from (default: notion)"
    )

    parser.add_argument(
        "--root-page",
        type=str,
        help="Root page id for the hierarchy walk (overrides notion.root_page_id)"
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Graph output file (overrides paths.output_file)"
    )

    parser.add_argument(
        "--full",
        action="store_true",
        help="Full resync: treat every document as changed"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"notiongraph {__version__}"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)
    cfg = ConfigManager(args.config) if args.config else config
    if args.root_page:
        cfg.set("notion.root_page_id", args.root_page)
    if args.output:
        cfg.set("paths.output_file", args.output)

    setup_logging(cfg)
    logging.info("Starting Notion Knowledge Graph Sync...")

    try:
        asyncio.run(run_pipeline(args.importer, cfg, full_resync=args.full))
        logging.info("Graph build completed successfully.")

    except KeyboardInterrupt:
        logging.info("Graph build interrupted by user")
        sys.exit(130)

    except RemoteStoreError as e:
        logging.error(f"Cannot reach the content store: {e}")
        sys.exit(1)

    except Exception as e:
        logging.error(f"Error building graph: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
