"""
Database manager for notiongraph.

This module keeps an audit trail of sync runs in DuckDB: one row per run with
its totals, and one row per operation outcome recorded during the run.
"""

import duckdb
import logging
from datetime import datetime
from typing import Dict, List, Optional

from ..models import OperationResult, OperationStatus, RunStats


class DatabaseManager:
    """
    Manages the DuckDB run ledger.
    """

    def __init__(self, db_path: str = "notiongraph.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("CREATE SEQUENCE IF NOT EXISTS run_id_seq;")
        connection.execute("""
            CREATE TABLE IF NOT EXISTS sync_runs (
                run_id BIGINT PRIMARY KEY DEFAULT nextval('run_id_seq'),
                started_at TIMESTAMP NOT NULL,
                finished_at TIMESTAMP,
                success BOOLEAN,
                documents INTEGER DEFAULT 0,
                nodes INTEGER DEFAULT 0,
                edges INTEGER DEFAULT 0,
                succeeded INTEGER DEFAULT 0,
                skipped INTEGER DEFAULT 0,
                failed INTEGER DEFAULT 0,
                error_message TEXT
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS operation_outcomes (
                run_id BIGINT NOT NULL,
                subject_id VARCHAR NOT NULL,
                operation VARCHAR NOT NULL,
                status VARCHAR NOT NULL,
                reason TEXT
            )
        """)

    def start_run(self) -> int:
        """
        Open a new run record.

        Returns:
            The new run id
        """
        connection = self._require_connection()
        result = connection.execute("""
            INSERT INTO sync_runs (started_at) VALUES (?)
            RETURNING run_id
        """, [datetime.now()]).fetchone()
        return result[0]

    def record_outcomes(self, run_id: int, results: List[OperationResult]) -> int:
        """
        Store the operation outcomes of a run.

        Args:
            run_id: The run the outcomes belong to
            results: Outcomes to store

        Returns:
            Number of rows written
        """
        connection = self._require_connection()
        if not results:
            return 0
        connection.executemany("""
            INSERT INTO operation_outcomes (run_id, subject_id, operation, status, reason)
            VALUES (?, ?, ?, ?, ?)
        """, [
            [run_id, result.subject_id, result.operation, result.status.value, result.reason]
            for result in results
        ])
        return len(results)

    def finish_run(
        self,
        run_id: int,
        stats: RunStats,
        documents: int = 0,
        nodes: int = 0,
        edges: int = 0,
        success: bool = True,
        error_message: Optional[str] = None
    ) -> None:
        """
        Close a run record with its totals.

        Args:
            run_id: The run to close
            stats: Aggregated operation outcomes of the run
            documents: Documents returned by the crawl
            nodes: Nodes in the output graph
            edges: Edges in the output graph
            success: Whether the run completed
            error_message: Failure description for unsuccessful runs
        """
        connection = self._require_connection()
        connection.execute("""
            UPDATE sync_runs
            SET finished_at = ?, success = ?, documents = ?, nodes = ?, edges = ?,
                succeeded = ?, skipped = ?, failed = ?, error_message = ?
            WHERE run_id = ?
        """, [
            datetime.now(), success, documents, nodes, edges,
            stats.succeeded, stats.skipped, stats.failed, error_message, run_id
        ])

    def list_runs(self, limit: Optional[int] = None) -> List[Dict]:
        """
        List recorded runs, most recent first.

        Args:
            limit: Limit number of results

        Returns:
            List of run records
        """
        connection = self._require_connection()

        query = """
            SELECT run_id, started_at, finished_at, success, documents, nodes, edges,
                   succeeded, skipped, failed, error_message
            FROM sync_runs
            ORDER BY run_id DESC
        """
        if limit:
            query += f" LIMIT {int(limit)}"

        return [
            {
                "run_id": row[0],
                "started_at": row[1],
                "finished_at": row[2],
                "success": row[3],
                "documents": row[4],
                "nodes": row[5],
                "edges": row[6],
                "succeeded": row[7],
                "skipped": row[8],
                "failed": row[9],
                "error_message": row[10]
            }
            for row in connection.execute(query).fetchall()
        ]

    def get_outcomes(self, run_id: int, status: Optional[OperationStatus] = None) -> List[OperationResult]:
        """
        Retrieve the operation outcomes of a run.

        Args:
            run_id: The run to read
            status: Only return outcomes with this status

        Returns:
            The stored outcomes
        """
        connection = self._require_connection()

        query = """
            SELECT operation, subject_id, status, reason
            FROM operation_outcomes
            WHERE run_id = ?
        """
        params: List = [run_id]
        if status:
            query += " AND status = ?"
            params.append(status.value)

        return [
            OperationResult(row[0], row[1], OperationStatus(row[2]), row[3])
            for row in connection.execute(query, params).fetchall()
        ]
