"""Layout contracts for flat row-major datasets.

A dataset of length N is only usable as a (height, width) raster when
N == width * height, and the three accumulators of one group must share a
single length. Violations are input problems, so they raise SizeMismatch
rather than ContractViolation.
"""

from typing import Dict, Optional

from revstat.contracts.failure import SizeMismatch


def assert_raster_layout(
    size: int,
    width: int,
    height: int,
    target: Optional[str] = None,
    operation: Optional[str] = None,
) -> None:
    """Require a flat dataset to hold exactly width * height elements."""
    if width < 0 or height < 0:
        raise SizeMismatch(
            f"Negative raster dimensions ({width} x {height})",
            target=target, operation=operation,
        )
    expected = width * height
    if size != expected:
        raise SizeMismatch(
            f"Dataset has {size} elements, expected {width} x {height} = {expected}",
            target=target, operation=operation,
        )


def assert_accumulators_aligned(
    sizes: Dict[str, int],
    target: Optional[str] = None,
    operation: Optional[str] = "stats",
) -> int:
    """Require all accumulator datasets of a group to have equal length.

    Parameters
    ----------
    sizes : dict
        Mapping of accumulator name (sum, sumsq, count) to element count.

    Returns
    -------
    int
        The common length.
    """
    distinct = set(sizes.values())
    if len(distinct) != 1:
        detail = ", ".join(f"{name}={size}" for name, size in sizes.items())
        raise SizeMismatch(
            f"Accumulator lengths disagree ({detail})",
            target=target, operation=operation,
        )
    return distinct.pop()
