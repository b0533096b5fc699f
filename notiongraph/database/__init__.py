"""DuckDB run ledger."""

from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
