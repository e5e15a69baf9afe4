"""Engine contracts and the error taxonomy.

- failure: FailurePolicy, ContractViolation and the ProcessingError family
- base: require(), the single invariant enforcement helper
- arrays: layout checks for flat row-major datasets
"""

from revstat.contracts.failure import (
    ContractViolation,
    FailurePolicy,
    ProcessingError,
    MissingInput,
    SizeMismatch,
    IOFailure,
    failure_context,
)
from revstat.contracts.base import require
from revstat.contracts.arrays import assert_raster_layout, assert_accumulators_aligned

__all__ = [
    "ContractViolation",
    "FailurePolicy",
    "ProcessingError",
    "MissingInput",
    "SizeMismatch",
    "IOFailure",
    "failure_context",
    "require",
    "assert_raster_layout",
    "assert_accumulators_aligned",
]
