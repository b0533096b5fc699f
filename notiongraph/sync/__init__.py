"""Incremental crawling and sync state."""

from .state import SyncStateStore
from .crawler import CrawlPhase, CrawlResult, PageCrawler

__all__ = ["SyncStateStore", "CrawlPhase", "CrawlResult", "PageCrawler"]
