"""Out-of-core row reversal of flat row-major datasets.

Reverses the row order of a (height, width) raster stored as a 1-D HDF5
dataset, writing a new ``<name>_rev`` dataset. Only two batches of rows are
held in memory at a time, so datasets far larger than RAM can be flipped.
"""

import logging
import math
import time
from typing import Optional, TYPE_CHECKING

import numpy as np

from revstat.contracts import assert_raster_layout, failure_context
from revstat.core.guard import CompletionGuard
from revstat.core.mirror import iter_mirror_pairs, reverse_rows
from revstat.core.outcome import OutcomeStatus, TargetOutcome
from revstat.core.progress import ProgressCallback, log_progress
from revstat.store.h5store import ArrayStore

if TYPE_CHECKING:
    from revstat.schemas import InternalConfig

__all__ = ['ChunkedRowReverser']

logger = logging.getLogger(__name__)

OPERATION = "reverse"


class ChunkedRowReverser:
    """Reverse dataset rows with mirrored chunk passes.

    **Algorithm:**

    With ``half = ceil(height / 2)``, the top half is walked in batches of
    ``row_batch`` rows. Each forward batch and its mirror batch at the
    bottom are read, reversed row-by-row, and cross-written: the reversed
    mirror rows go to the forward position and vice versa. Top and bottom
    are processed in the same pass, so every row is read once and written
    once. The middle row of an odd-height raster is shared by the last pair
    and is written onto itself.

    **Idempotency:**

    If ``<name><suffix>`` already exists the dataset is skipped untouched.
    Output is staged under a temporary name and renamed only when complete,
    so an interrupted run never leaves a final-named partial output.

    **Memory:**

    Peak usage is about four buffers of ``row_batch * width`` elements
    (two reads, two reversed copies), independent of the dataset size.

    Example usage::

        reverser = ChunkedRowReverser(config)
        with ArrayStore("cerrado_100.h5") as store:
            outcome = reverser.reverse(store, "/ndvi/sum", width, height)
    """

    def __init__(self, config: "InternalConfig"):
        """Initialize reverser with validated configuration.

        Parameters
        ----------
        config : InternalConfig
            Uses ``reverse.row_batch``, ``reverse.suffix`` and
            ``store.staging_suffix``.
        """
        self.row_batch = config.reverse.row_batch
        self.suffix = config.reverse.suffix
        self.staging_suffix = config.store.staging_suffix

    def output_name(self, source: str) -> str:
        return source + self.suffix

    def reverse(self, store: ArrayStore, source: str, width: int, height: int,
                dtype=None, progress: Optional[ProgressCallback] = None) -> TargetOutcome:
        """Write a row-reversed copy of `source` to ``source + suffix``.

        Parameters
        ----------
        store : ArrayStore
            Open store holding the input; the output is created in it.
        source : str
            Absolute dataset path.
        width, height : int
            Raster dimensions; the dataset must hold width * height elements.
        dtype : numpy dtype, optional
            Element type used for reading and for the output dataset.
            Defaults to the source dataset's own type.
        progress : callable, optional
            ``progress(rows_done, half_height)`` reporter. Defaults to
            logging percentages.

        Returns
        -------
        TargetOutcome
            ``completed`` when the output was written, ``skipped`` when the
            source is itself a reversed dataset or the output already exists.

        Raises
        ------
        MissingInput
            If `source` does not exist.
        SizeMismatch
            If the source length is not width * height.
        IOFailure
            If the store rejects a read, write, create or rename.
        """
        output = self.output_name(source)

        if source.endswith(self.suffix):
            logger.debug("Not reversing %s: already a reversed dataset", source)
            return TargetOutcome(source, OPERATION, OutcomeStatus.SKIPPED,
                                 reason="reversed dataset")

        guard = CompletionGuard(store, self.staging_suffix)
        if guard.is_complete(output):
            logger.info("Skipping %s: %s already exists", source, output)
            return TargetOutcome(source, OPERATION, OutcomeStatus.SKIPPED,
                                 output=output, reason="output exists")

        start = time.time()
        with failure_context(source, OPERATION):
            size = store.size(source)
            assert_raster_layout(size, width, height, target=source, operation=OPERATION)
            dtype = np.dtype(dtype) if dtype is not None else store.dtype(source)

            logger.info("Reversing rows %s -> %s (%d x %d, %s)",
                        source, output, width, height, dtype.name)

            staging = guard.begin(output)
            store.create_dataset(staging, dtype, size)
            self._copy_mirrored(store, source, staging, width, height, dtype,
                                progress or log_progress(source, logger))
            guard.commit(output)

        return TargetOutcome(source, OPERATION, OutcomeStatus.COMPLETED, output=output,
                             elapsed_seconds=time.time() - start)

    def _copy_mirrored(self, store: ArrayStore, source: str, dest: str,
                       width: int, height: int, dtype, progress: ProgressCallback):
        """Cross-write every mirror pair from source into dest."""
        half = math.ceil(height / 2)

        for pair in iter_mirror_pairs(width, height, self.row_batch):
            progress(pair.first_row, half)

            forward = store.read_slice(source, pair.forward.lower, pair.forward.upper, dtype)
            mirror = store.read_slice(source, pair.mirror.lower, pair.mirror.upper, dtype)

            store.write_slice(dest, pair.forward.lower, reverse_rows(mirror, pair.rows, width))
            store.write_slice(dest, pair.mirror.lower, reverse_rows(forward, pair.rows, width))

        progress(half, half)
