"""Per-target results returned by the processing operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

__all__ = ['OutcomeStatus', 'TargetOutcome']


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TargetOutcome:
    """What happened to one dataset or group in one operation.

    Attributes
    ----------
    target : str
        Dataset path or group name.
    operation : str
        "reverse", "stats" or "export".
    status : OutcomeStatus
    output : str, optional
        Output path written (or found already present).
    reason : str, optional
        Why a target was skipped.
    error : str, optional
        Error message for failed targets.
    elapsed_seconds : float
    """
    target: str
    operation: str
    status: OutcomeStatus
    output: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    def as_record(self) -> dict:
        """Flat dict for DataFrame construction and ledger rows."""
        return {
            "target": self.target,
            "operation": self.operation,
            "status": self.status.value,
            "output": self.output,
            "reason": self.reason,
            "error": self.error,
            "elapsed_seconds": self.elapsed_seconds,
        }
