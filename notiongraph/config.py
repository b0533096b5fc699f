"""
Configuration management for notiongraph.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized way to manage crawl, API and output settings without
changing code.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging


class ConfigManager:
    """
    Manages configuration loading and access for notiongraph.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}

            logging.info(f"Configuration loaded from {self.config_path}")

        except Exception as e:
            logging.error(f"Failed to load configuration: {e}")
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "notion": {
                "api_base_url": "https://api.notion.com/v1",
                "api_version": "2022-06-28",
                "token_env": "NOTION_TOKEN",
                "root_page_id": None,
                "timeout": 30.0,
                "page_size": 100
            },
            "crawl": {
                "rate_limit_ms": 350,
                "search_sweep": True,
                "ignored_database_ids": [],
                "ignore_inline_linked_databases": True,
                "ignore_database_relations": False
            },
            "paths": {
                "state_file": "sync_state.json",
                "output_file": "graph.json",
                "log_file": "notiongraph.log"
            },
            "database": {
                "enabled": True,
                "filename": "notiongraph.db"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "crawl.rate_limit_ms")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("notion.page_size")  # Returns 100
            config.get("paths.output_file")  # Returns "graph.json"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """
        Override a configuration value in memory using dot notation.

        Used by the command line to apply flags such as --root-page on top of
        the file configuration.
        """
        keys = key_path.split('.')
        target = self._config
        for key in keys[:-1]:
            if not isinstance(target.get(key), dict):
                target[key] = {}
            target = target[key]
        target[keys[-1]] = value

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def api_base_url(self) -> str:
        """Get the Notion API base URL."""
        return self.get("notion.api_base_url", "https://api.notion.com/v1")

    @property
    def api_version(self) -> str:
        """Get the Notion-Version header value."""
        return self.get("notion.api_version", "2022-06-28")

    @property
    def token_env(self) -> str:
        """Get the name of the environment variable holding the API token."""
        return self.get("notion.token_env", "NOTION_TOKEN")

    @property
    def root_page_id(self) -> Optional[str]:
        """Get the page the hierarchy walk starts from."""
        return self.get("notion.root_page_id")

    @property
    def api_timeout(self) -> float:
        """Get the HTTP timeout for API calls."""
        return self.get("notion.timeout", 30.0)

    @property
    def page_size(self) -> int:
        """Get the page size used for paginated API calls."""
        return self.get("notion.page_size", 100)

    @property
    def rate_limit_ms(self) -> int:
        """Get the minimum spacing between remote calls in milliseconds."""
        return self.get("crawl.rate_limit_ms", 350)

    @property
    def search_sweep_enabled(self) -> bool:
        """Whether the crawl runs the recently-edited search sweep."""
        return self.get("crawl.search_sweep", True)

    @property
    def ignored_database_ids(self) -> List[str]:
        """Get the database ids excluded from relation extraction."""
        return self.get("crawl.ignored_database_ids", []) or []

    @property
    def ignore_inline_linked_databases(self) -> bool:
        """Whether all embedded databases are skipped."""
        return self.get("crawl.ignore_inline_linked_databases", True)

    @property
    def ignore_database_relations(self) -> bool:
        """Whether only inline mentions produce edges."""
        return self.get("crawl.ignore_database_relations", False)

    @property
    def state_filename(self) -> str:
        """Get sync state file name."""
        return self.get("paths.state_file", "sync_state.json")

    @property
    def output_filename(self) -> str:
        """Get graph output file name."""
        return self.get("paths.output_file", "graph.json")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "notiongraph.log")

    @property
    def database_enabled(self) -> bool:
        """Whether runs are recorded in the DuckDB ledger."""
        return self.get("database.enabled", True)

    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("database.filename", "notiongraph.db")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
