"""Mirrored chunk windows for out-of-core row reversal.

A (height, width) raster stored row-major as a flat sequence is reversed
top-to-bottom by walking the top half in batches of rows. Each forward batch
is paired with the batch of rows that are its reflection about the
horizontal midline; the two are read together, reversed row-by-row, and
cross-written to each other's position.

For a forward batch starting at row ``yy`` with ``rows`` rows, the mirror
batch starts at row ``height - yy - rows``, so its last row is
``height - 1 - yy``. Iterating ``yy`` up to ``ceil(height / 2)`` keeps the
two windows disjoint, except for the middle row of an odd-height raster,
which is the single row both windows share in the final batch and lands on
itself.
"""

import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from revstat.contracts import require

__all__ = ['ChunkWindow', 'MirrorPair', 'iter_mirror_pairs', 'reverse_rows']


@dataclass(frozen=True)
class ChunkWindow:
    """Half-open flat index range [lower, upper)."""
    lower: int
    upper: int

    @property
    def length(self) -> int:
        return self.upper - self.lower

    @classmethod
    def for_rows(cls, first_row: int, rows: int, width: int) -> "ChunkWindow":
        """Window covering `rows` whole rows starting at `first_row`."""
        lower = first_row * width
        return cls(lower, lower + rows * width)


@dataclass(frozen=True)
class MirrorPair:
    """A forward window and its mirror-image window.

    Attributes
    ----------
    first_row : int
        First row of the forward window.
    mirror_row : int
        First row of the mirror window.
    rows : int
        Number of rows in each window.
    forward : ChunkWindow
    mirror : ChunkWindow
    """
    first_row: int
    mirror_row: int
    rows: int
    forward: ChunkWindow
    mirror: ChunkWindow


def iter_mirror_pairs(width: int, height: int, batch_rows: int) -> Iterator[MirrorPair]:
    """Yield the mirror pairs that together cover every row exactly once.

    Parameters
    ----------
    width : int
        Elements per row.
    height : int
        Number of rows.
    batch_rows : int
        Maximum rows per window (the I/O batch).

    Yields
    ------
    MirrorPair
        Pairs in increasing forward-row order. A raster with no rows yields
        nothing.

    Examples
    --------
    >>> [(p.first_row, p.mirror_row, p.rows) for p in iter_mirror_pairs(2, 5, 2)]
    [(0, 3, 2), (2, 2, 1)]
    """
    require(batch_rows >= 1, f"Row batch must be positive, got {batch_rows}")
    require(width >= 0 and height >= 0,
            f"Raster dimensions must be non-negative, got {width} x {height}")

    half = math.ceil(height / 2)
    for yy in range(0, half, batch_rows):
        rows = min(batch_rows, half - yy)
        mirror_row = height - yy - rows
        yield MirrorPair(
            first_row=yy,
            mirror_row=mirror_row,
            rows=rows,
            forward=ChunkWindow.for_rows(yy, rows, width),
            mirror=ChunkWindow.for_rows(mirror_row, rows, width),
        )


def reverse_rows(buffer: np.ndarray, rows: int, width: int) -> np.ndarray:
    """Return a copy of a flat row-major buffer with its rows in reverse order.

    Row ``i`` of the input becomes row ``rows - 1 - i`` of the output. The
    element order inside each row is preserved.

    Parameters
    ----------
    buffer : np.ndarray
        Flat buffer of exactly rows * width elements.
    rows : int
        Number of rows held in the buffer.
    width : int
        Elements per row.

    Returns
    -------
    np.ndarray
        New flat buffer of the same dtype and length.
    """
    require(buffer.ndim == 1, f"Expected a flat buffer, got {buffer.ndim} dims")
    require(buffer.size == rows * width,
            f"Buffer holds {buffer.size} elements, expected {rows} x {width}")

    out = np.empty_like(buffer)
    for i in range(rows):
        dest = rows - 1 - i
        out[dest * width:(dest + 1) * width] = buffer[i * width:(i + 1) * width]
    return out
