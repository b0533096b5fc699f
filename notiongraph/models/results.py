"""
Per-operation outcomes for notiongraph runs.

Crawling and extraction never abort on a single failing item. Instead each
operation reports an OperationResult, and RunStats aggregates them so a run
can report how many items succeeded, were skipped, or failed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class OperationStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class OperationResult:
    """
    Outcome of one operation on one remote object.
    """
    operation: str
    subject_id: str
    status: OperationStatus
    reason: Optional[str] = None

    @classmethod
    def success(cls, operation: str, subject_id: str) -> "OperationResult":
        return cls(operation, subject_id, OperationStatus.SUCCESS)

    @classmethod
    def skipped(cls, operation: str, subject_id: str, reason: str) -> "OperationResult":
        return cls(operation, subject_id, OperationStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, operation: str, subject_id: str, reason: str) -> "OperationResult":
        return cls(operation, subject_id, OperationStatus.FAILED, reason)


@dataclass
class RunStats:
    """
    Collects operation results across the components of one run.
    """
    results: List[OperationResult] = field(default_factory=list)

    def add(self, result: OperationResult) -> OperationResult:
        self.results.append(result)
        return result

    def count(self, status: OperationStatus, operation: Optional[str] = None) -> int:
        return sum(
            1 for result in self.results
            if result.status == status and (operation is None or result.operation == operation)
        )

    @property
    def succeeded(self) -> int:
        return self.count(OperationStatus.SUCCESS)

    @property
    def skipped(self) -> int:
        return self.count(OperationStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(OperationStatus.FAILED)

    def failures(self) -> List[OperationResult]:
        return [result for result in self.results if result.status == OperationStatus.FAILED]

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Counts per operation and status, e.g. {"crawl_page": {"success": 3, ...}}."""
        table: Dict[str, Dict[str, int]] = {}
        for result in self.results:
            row = table.setdefault(result.operation, {status.value: 0 for status in OperationStatus})
            row[result.status.value] += 1
        return table
