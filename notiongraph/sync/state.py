"""
Sync state persistence for notiongraph.

This module keeps, per document, the edit timestamp seen on the last crawl so
that unchanged documents are skipped on the next run.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..ids import normalize_id
from ..models import SyncState


class SyncStateStore:
    """
    Loads, queries, updates and persists the sync state file.

    The in-memory state is written by a single crawl flow and needs no locking.
    """

    def __init__(self, state_path: str = "sync_state.json"):
        """
        Initialize the sync state store.

        Args:
            state_path: Path to the JSON state file
        """
        self.state_path = Path(state_path)
        self.state = SyncState()

    def load(self) -> SyncState:
        """
        Load the persisted state, starting fresh when it is missing or corrupt.

        Returns:
            The loaded (or fresh) SyncState
        """
        self.state = SyncState()
        if not self.state_path.exists():
            logging.info(f"No sync state at {self.state_path}. Starting fresh.")
            return self.state

        try:
            with open(self.state_path, 'r', encoding='utf-8') as f:
                loaded = SyncState.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError, OSError, UnicodeDecodeError) as e:
            logging.warning(f"Could not load sync state file {self.state_path}: {e}. Starting fresh.")
            return self.state

        loaded.processed_pages = {
            normalize_id(document_id): timestamp
            for document_id, timestamp in loaded.processed_pages.items()
        }
        self.state = loaded
        logging.info(f"Loaded sync state with {len(self.state.processed_pages)} documents "
                     f"(last sync {self.state.last_sync_time})")
        return self.state

    def should_process(self, document_id: str, edit_timestamp: Optional[str]) -> bool:
        """
        Check whether a document is new or changed since it was last recorded.

        Any difference in the timestamp counts as a change, including one that
        looks older than the recorded value.
        """
        key = normalize_id(document_id)
        if key not in self.state.processed_pages:
            return True
        return self.state.processed_pages[key] != edit_timestamp

    def record(self, document_id: str, edit_timestamp: Optional[str]) -> None:
        """Record the edit timestamp a document was processed at."""
        self.state.processed_pages[normalize_id(document_id)] = edit_timestamp

    def recorded_timestamp(self, document_id: str) -> Optional[str]:
        return self.state.processed_pages.get(normalize_id(document_id))

    def reset(self) -> None:
        """Forget every recorded document so the next crawl processes everything."""
        logging.info("Resetting sync state for a full resync")
        self.state = SyncState()

    def persist(self) -> None:
        """
        Write the full state to disk, replacing the previous file.

        The file is written to a temporary sibling first and moved into place.
        """
        self.state.last_sync_time = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self.state_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=self.state_path.parent, prefix=".sync_state_", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(self.state.model_dump_json(by_alias=True, indent=2))
            os.replace(tmp_path, self.state_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logging.info(f"Saved sync state for {len(self.state.processed_pages)} documents to {self.state_path}")
