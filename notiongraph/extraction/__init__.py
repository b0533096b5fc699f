"""Block interpretation and graph extraction."""

from .blocks import BlockScan, BlockTreeProcessor, IgnorePolicy
from .graph import GraphExtractor

__all__ = ["BlockScan", "BlockTreeProcessor", "IgnorePolicy", "GraphExtractor"]
