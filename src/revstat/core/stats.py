"""Per-cell mean and standard deviation from running accumulators.

Each accumulator group holds three flat datasets of equal length: the sum of
observations, the sum of their squares, and the observation count. The
reducer streams them in fixed-size batches and writes two derived datasets:

    mean = sum / count
    var  = (sumsq - sum**2 / count) / (count - 1)      (sample variance)
    sd   = sqrt(var)

Cells without observations get ``sd = sd_sentinel`` (default -1) and
``mean = empty_mean_value`` (default NaN). Cells with exactly one
observation have no sample variance; their sd is NaN or the sentinel
depending on ``single_count_sd``. Negative variances produced by float32
cancellation are clamped to zero.
"""

import logging
import math
import time
from typing import Dict, Optional, Tuple, TYPE_CHECKING

import numpy as np

from revstat.contracts import assert_accumulators_aligned, failure_context
from revstat.core.guard import CompletionGuard
from revstat.core.outcome import OutcomeStatus, TargetOutcome
from revstat.core.progress import ProgressCallback, log_progress
from revstat.store.h5store import ArrayStore

if TYPE_CHECKING:
    from revstat.schemas import InternalConfig

__all__ = ['RunningStatsReducer']

logger = logging.getLogger(__name__)

OPERATION = "stats"


class RunningStatsReducer:
    """Reduce sum/sumsq/count accumulators to mean and sd datasets.

    The reducer reads the reversed accumulators of a group
    (``<group>/sum_rev``, ``<group>/sumsq_rev``, ``<group>/count_rev``) and
    writes ``<group>/mean_rev`` and ``<group>/sd_rev``. All arithmetic is
    float32. Memory use is bounded by a handful of ``batch_size`` buffers.

    **Idempotency:**

    The group is skipped when ``mean_rev`` exists. Both outputs are staged
    and committed sd first, mean last, so an existing mean implies an
    existing, complete sd.

    Example usage::

        reducer = RunningStatsReducer(config)
        with ArrayStore("cerrado_100.h5") as store:
            outcome = reducer.reduce(store, "/ndvi")
    """

    def __init__(self, config: "InternalConfig"):
        stats = config.stats
        self.batch_size = stats.batch_size
        self.sd_sentinel = np.float32(stats.sd_sentinel)
        self.empty_mean_value = np.float32(stats.empty_mean_value)
        self.single_count_sd = stats.single_count_sd
        self.names = {
            "sum": stats.sum_name,
            "sumsq": stats.sumsq_name,
            "count": stats.count_name,
            "mean": stats.mean_name,
            "sd": stats.sd_name,
        }
        self.suffix = config.reverse.suffix
        self.staging_suffix = config.store.staging_suffix

    def paths(self, group: str) -> Dict[str, str]:
        """Absolute dataset paths of a group's inputs and outputs."""
        group = group.rstrip("/")
        return {key: f"{group}/{name}{self.suffix}" for key, name in self.names.items()}

    def compute(self, sum_vals: np.ndarray, sumsq_vals: np.ndarray,
                count_vals: np.ndarray) -> Tuple[np.ndarray, np.ndarray, int]:
        """Mean and sd for one batch of accumulator values.

        Parameters
        ----------
        sum_vals, sumsq_vals : np.ndarray
            float32 first and second raw moments.
        count_vals : np.ndarray
            uint8 observation counts.

        Returns
        -------
        mean : np.ndarray
            float32 means.
        sd : np.ndarray
            float32 standard deviations with the sentinel applied.
        single : int
            Number of cells with exactly one observation.
        """
        # Masks come from the integer counts, before any float conversion.
        zero = count_vals == 0
        single = count_vals == 1

        sum_vals = np.asarray(sum_vals, dtype=np.float32)
        sumsq_vals = np.asarray(sumsq_vals, dtype=np.float32)
        count = count_vals.astype(np.float32)

        with np.errstate(divide="ignore", invalid="ignore"):
            mean = sum_vals / count
            variance = (sumsq_vals - sum_vals * sum_vals / count) / (count - np.float32(1))
            variance = np.maximum(variance, np.float32(0))
            sd = np.sqrt(variance)

        mean[zero] = self.empty_mean_value
        sd[single] = self.sd_sentinel if self.single_count_sd == "sentinel" else np.float32(np.nan)
        sd[zero] = self.sd_sentinel
        return mean, sd, int(np.count_nonzero(single))

    def reduce(self, store: ArrayStore, group: str,
               progress: Optional[ProgressCallback] = None) -> TargetOutcome:
        """Compute ``mean_rev`` and ``sd_rev`` for one accumulator group.

        Parameters
        ----------
        store : ArrayStore
            Open store holding the group.
        group : str
            Absolute group path, e.g. "/ndvi".
        progress : callable, optional
            ``progress(elements_done, total_elements)`` reporter.

        Returns
        -------
        TargetOutcome
            ``completed`` or ``skipped`` (mean output already exists).

        Raises
        ------
        MissingInput
            If any of the three accumulators is absent.
        SizeMismatch
            If the accumulators differ in length.
        IOFailure
            If the store rejects a read, write, create or rename.
        """
        paths = self.paths(group)
        guard = CompletionGuard(store, self.staging_suffix)

        if guard.is_complete(paths["mean"]):
            logger.info("Skipping %s: %s already exists", group, paths["mean"])
            return TargetOutcome(group, OPERATION, OutcomeStatus.SKIPPED,
                                 output=paths["mean"], reason="output exists")

        start = time.time()
        with failure_context(group, OPERATION):
            total = assert_accumulators_aligned(
                {key: store.size(paths[key]) for key in ("sum", "sumsq", "count")},
                target=group,
            )
            logger.info("Computing mean and sd for %s (%d cells, %d batches)",
                        group, total, math.ceil(total / self.batch_size))

            sd_staging = guard.begin(paths["sd"], replace=True)
            mean_staging = guard.begin(paths["mean"])
            store.create_dataset(sd_staging, np.float32, total)
            store.create_dataset(mean_staging, np.float32, total)

            single = self._reduce_batches(store, paths, mean_staging, sd_staging, total,
                                          progress or log_progress(group, logger))

            guard.commit(paths["sd"])
            guard.commit(paths["mean"])

        if single:
            logger.warning("%s: %d cells have a single observation; sd written as %s",
                           group, single,
                           "sentinel" if self.single_count_sd == "sentinel" else "NaN")

        return TargetOutcome(group, OPERATION, OutcomeStatus.COMPLETED, output=paths["mean"],
                             elapsed_seconds=time.time() - start)

    def _reduce_batches(self, store: ArrayStore, paths: Dict[str, str],
                        mean_dest: str, sd_dest: str, total: int,
                        progress: ProgressCallback) -> int:
        single_total = 0
        for lower in range(0, total, self.batch_size):
            progress(lower, total)
            upper = min(lower + self.batch_size, total)

            sum_vals = store.read_slice(paths["sum"], lower, upper, np.float32)
            sumsq_vals = store.read_slice(paths["sumsq"], lower, upper, np.float32)
            count_vals = store.read_slice(paths["count"], lower, upper, np.uint8)

            mean, sd, single = self.compute(sum_vals, sumsq_vals, count_vals)
            single_total += single

            store.write_slice(mean_dest, lower, mean)
            store.write_slice(sd_dest, lower, sd)

        progress(total, total)
        return single_total
