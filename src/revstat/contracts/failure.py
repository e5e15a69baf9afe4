"""Centralized failure policy and error taxonomy.

Two families of errors exist:

- ProcessingError and its subclasses describe why a single target (dataset or
  accumulator group) could not be processed. The orchestrator isolates them
  per target according to the configured FailurePolicy.
- ContractViolation signals a bug in the processing logic itself (a window
  that runs past the array, a batch size of zero reaching the core).
"""

from contextlib import contextmanager
from enum import Enum
from typing import Optional


class FailurePolicy(str, Enum):
    """What the orchestrator does when a target fails.

    FAIL_FAST: Re-raise immediately, aborting the run
    SKIP_TARGET (default): Log and record the failure, continue with the rest
    """
    FAIL_FAST = "fail_fast"
    SKIP_TARGET = "skip_target"


class ContractViolation(RuntimeError):
    """Raised when a processing invariant is violated.

    This indicates a bug in the engine, not bad input data. Bad input data
    raises one of the ProcessingError subclasses instead.
    """
    pass


class ProcessingError(RuntimeError):
    """Base class for per-target failures.

    Attributes
    ----------
    target : str or None
        Dataset path or group name that failed.
    operation : str or None
        Operation that failed: "reverse", "stats" or "export".
    """

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.target = target
        self.operation = operation

    def __str__(self) -> str:
        message = super().__str__()
        if self.operation and self.target:
            return f"[{self.operation}] {self.target}: {message}"
        if self.target:
            return f"{self.target}: {message}"
        return message


class MissingInput(ProcessingError):
    """A required input dataset does not exist in the store."""
    pass


class SizeMismatch(ProcessingError):
    """Dataset lengths disagree with each other or with width * height."""
    pass


class IOFailure(ProcessingError):
    """The underlying store rejected a read, write, create or rename."""
    pass


@contextmanager
def failure_context(target: str, operation: str):
    """Attach target and operation to ProcessingErrors raised inside the block.

    Store adapters only know the path they touched; the engine knows which
    operation it was running. Values already set on the error are kept.
    """
    try:
        yield
    except ProcessingError as e:
        if e.operation is None:
            e.operation = operation
        if e.target is None:
            e.target = target
        raise
