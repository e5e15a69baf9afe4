"""Sequential pipeline orchestration.

Walks the HDF5 store once, then runs three stages in order: row reversal of
every raw dataset, mean/sd reduction of every accumulator group, and GeoTIFF
export of each group's reversed count, mean and sd. Each target is processed
in its own error scope so one bad dataset does not abort the run.
"""

import time
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

import numpy as np
import pandas as pd

from revstat.contracts import FailurePolicy, ProcessingError
from revstat.core import (
    ChunkedRowReverser,
    OutcomeStatus,
    RunningStatsReducer,
    TargetOutcome,
)
from revstat.pipeline.ledger import RunLedger
from revstat.setup_directories import get_log_path
from revstat.store import ArrayStore, NodeInfo, RasterExporter, raster_dimensions

if TYPE_CHECKING:
    from revstat.schemas import InternalConfig

__all__ = ['PipelineOrchestrator']

logger = logging.getLogger(__name__)

RESULT_COLUMNS = ["target", "operation", "status", "output", "reason", "error",
                  "elapsed_seconds"]


class PipelineOrchestrator:
    """Runs the reverse / stats / export pipeline over one HDF5 store.

    This is the main entry point for running ``revstat``. It owns the store
    handle and the run ledger for the duration of a run.

    **Stages:**

    1. **Reverse**: Every dataset in the store (except staging leftovers) is
       passed to the ChunkedRowReverser. Datasets whose base name ends with
       ``pipeline.count_suffix`` are processed as uint8, everything else as
       float32. Already-reversed datasets and existing outputs are skipped.

    2. **Stats**: Every group holding accumulators is reduced to
       ``mean_rev`` / ``sd_rev`` by the RunningStatsReducer.

    3. **Export** (optional): For every group whose stats are available, the
       configured stats are written into copies of the template rasters.

    **Failure policy:**

    - ``skip_target`` (default): a failing target is logged, recorded in the
      ledger as failed, and the run continues.
    - ``fail_fast``: the failure is recorded and re-raised.

    **Raster dimensions:**

    ``store.width`` / ``store.height`` when both are configured, otherwise
    read from the byte template (or the float template).

    **Logging:**

    All output goes to both console and ``logs/revstat_pipeline.log``.

    Example usage::

        from revstat.pipeline.orchestrator import PipelineOrchestrator

        config = resolve_config(ParamConfig(), user_cfg, cli_cfg)
        output_dirs = setup_output_directories(config.base_dir)

        orch = PipelineOrchestrator(config, output_dirs)
        results = orch.run()
        print(results.groupby(["operation", "status"]).size())
    """

    def __init__(self, config: "InternalConfig", output_dirs: Dict[str, Path],
                 configure_logging: bool = True):
        """Initialize orchestrator with validated configuration.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration. ``store.h5_path`` must be set.
        output_dirs : dict
            Output directory paths (from setup_output_directories):
            - rasters: Exported GeoTIFFs
            - logs: Pipeline log and run ledger
        configure_logging : bool, optional
            If True (default), install file and console handlers on the root
            logger when the run starts.

        Raises
        ------
        ValueError
            If no HDF5 path is configured.
        """
        if not config.store.h5_path:
            raise ValueError("No HDF5 store configured (store.h5_path / H5_PATH)")

        self.config = config
        self.output_dirs = {key: Path(path) for key, path in output_dirs.items()}
        self.configure_logging = configure_logging
        self.failure_policy = FailurePolicy(config.pipeline.failure_policy)

        self.reverser = ChunkedRowReverser(config)
        self.reducer = RunningStatsReducer(config)
        self.exporter = RasterExporter(config)

        self.store: Optional[ArrayStore] = None
        self.ledger: Optional[RunLedger] = None
        self._outcomes: List[TargetOutcome] = []
        self._log_handlers: List[logging.Handler] = []

        self._stopped = False
        self._start_time = None

    def _setup_logging(self):
        """Configure root logger with file and console handlers."""
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)
        log_path = get_log_path(self.output_dirs)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        # File handler
        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        # Console handler
        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        self._log_handlers = [fh, ch]
        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def run(self) -> pd.DataFrame:
        """Run all stages once and return the per-target results.

        Returns
        -------
        pd.DataFrame
            One row per (target, operation) with columns target, operation,
            status, output, reason, error, elapsed_seconds.

        Raises
        ------
        ProcessingError
            Under ``fail_fast``, the first target failure. Under either
            policy, a store that cannot be opened.
        """
        if self.configure_logging:
            self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting revstat pipeline")
        logger.info("=" * 60)

        self._start_time = time.time()
        self._stopped = False
        self._outcomes = []

        ledger_path = self.output_dirs["logs"] / self.config.pipeline.ledger_filename
        self.ledger = RunLedger(ledger_path)

        try:
            self.store = ArrayStore(
                self.config.store.h5_path,
                mode="r+",
                compression=None if self.config.store.compression == "none" else "gzip",
                compression_level=self.config.store.compression_level,
            )
            width, height = self.resolve_dimensions()
            logger.info("Store: %s, raster %d x %d", self.config.store.h5_path, width, height)

            nodes = self.store.walk()
            datasets = self.select_datasets(nodes)
            groups = self.select_groups(nodes)

            self._reverse_all(datasets, width, height)
            stats_ok = self._reduce_all(groups)

            if self.config.export.enabled:
                self._export_all(groups, stats_ok)
            else:
                logger.info("Export disabled")
        finally:
            self.stop()

        return self.get_results()

    def resolve_dimensions(self) -> Tuple[int, int]:
        """Raster (width, height) from config or template raster."""
        store_cfg = self.config.store
        if store_cfg.width is not None and store_cfg.height is not None:
            return store_cfg.width, store_cfg.height

        template = self.config.export.byte_template or self.config.export.float_template
        if template is None:
            raise ValueError(
                "Raster dimensions unknown: set store.width/height or an export template"
            )
        return raster_dimensions(template)

    def select_datasets(self, nodes: List[NodeInfo]) -> List[str]:
        """Dataset paths to reverse, in walk order.

        Staging leftovers of an interrupted run are never inputs.
        """
        staging = self.config.store.staging_suffix
        return [node.path for node in nodes
                if not node.is_group and not node.path.endswith(staging)]

    def select_groups(self, nodes: List[NodeInfo]) -> List[str]:
        """Groups that directly hold at least one accumulator dataset."""
        stats_cfg = self.config.stats
        suffix = self.config.reverse.suffix
        accumulators = {stats_cfg.sum_name, stats_cfg.sumsq_name, stats_cfg.count_name}
        accumulators |= {name + suffix for name in accumulators}

        members: Dict[str, set] = {}
        for node in nodes:
            if node.is_group:
                members.setdefault(node.path, set())
            else:
                parent = node.path.rsplit("/", 1)[0] or "/"
                members.setdefault(parent, set()).add(node.name)

        return [group for group, names in members.items()
                if group != "/" and names & accumulators]

    def dtype_for(self, dataset: str):
        name = dataset.rsplit("/", 1)[-1]
        return np.uint8 if name.endswith(self.config.pipeline.count_suffix) else np.float32

    def _reverse_all(self, datasets: List[str], width: int, height: int):
        logger.info("Inverting dataset rows (%d datasets)", len(datasets))
        for i, dataset in enumerate(datasets, start=1):
            logger.info("Processing dataset: %s (%d of %d)", dataset, i, len(datasets))
            self._run_target(
                dataset, "reverse",
                lambda ds=dataset: self.reverser.reverse(
                    self.store, ds, width, height, dtype=self.dtype_for(ds)),
            )

    def _reduce_all(self, groups: List[str]) -> Dict[str, bool]:
        logger.info("Computing mean and sd (%d groups)", len(groups))
        ok = {}
        for i, group in enumerate(groups, start=1):
            logger.info("Processing group: %s (%d of %d)", group, i, len(groups))
            outcome = self._run_target(
                group, "stats",
                lambda g=group: self.reducer.reduce(self.store, g),
            )
            ok[group] = outcome.ok
        return ok

    def _export_all(self, groups: List[str], stats_ok: Dict[str, bool]):
        out_dir = self.output_dirs["rasters"]
        logger.info("Exporting rasters to %s", out_dir)
        for group in groups:
            for stat in self.config.export.stats:
                target = self.exporter.dataset_path(group, stat)
                if self.exporter.template_for(stat) is None:
                    logger.warning("No template raster for '%s'; not exporting %s", stat, target)
                    self._record(TargetOutcome(target, "export", OutcomeStatus.SKIPPED,
                                               reason="no template"))
                    continue
                if not stats_ok.get(group, False):
                    self._record(TargetOutcome(target, "export", OutcomeStatus.SKIPPED,
                                               reason="stats failed"))
                    continue
                self._run_target(
                    target, "export",
                    lambda g=group, s=stat: self.exporter.export_stat(self.store, g, s, out_dir),
                )

    def _run_target(self, target: str, operation: str,
                    func: Callable[[], TargetOutcome]) -> TargetOutcome:
        """Run one target in its own error scope and record the outcome."""
        try:
            outcome = func()
        except ProcessingError as e:
            outcome = TargetOutcome(target, operation, OutcomeStatus.FAILED, error=str(e))
            self._record(outcome)
            if self.failure_policy == FailurePolicy.FAIL_FAST:
                logger.error("Aborting run: %s", e)
                raise
            logger.error("Failed, continuing with next target: %s", e)
            return outcome

        self._record(outcome)
        return outcome

    def _record(self, outcome: TargetOutcome):
        self._outcomes.append(outcome)
        if self.ledger is not None:
            self.ledger.record(outcome, run_id=self.config.run_id)

    def get_results(self) -> pd.DataFrame:
        """Return the outcomes of the current run as a DataFrame.

        Empty DataFrame (with the result columns) if nothing ran yet.
        """
        return pd.DataFrame([o.as_record() for o in self._outcomes], columns=RESULT_COLUMNS)

    def stop(self):
        """Close the store and ledger and log the run summary.

        Called automatically when run() exits. Safe to call multiple times.
        """
        if self._stopped:
            return
        self._stopped = True

        if self.store is not None:
            self.store.close()
            self.store = None

        elapsed = time.time() - self._start_time if self._start_time else 0
        logger.info("=" * 60)
        logger.info("Pipeline stopped. Runtime: %.1f seconds", elapsed)

        if self._outcomes:
            summary = self.get_results().groupby(["operation", "status"]).size()
            for (operation, status), count in summary.items():
                logger.info("  %-8s %-9s %d", operation, status, count)

        if self.ledger is not None:
            stats = self.ledger.get_statistics()
            logger.info("Ledger: total=%d, completed=%d, skipped=%d, failed=%d",
                        stats.get('total', 0), stats.get('completed', 0),
                        stats.get('skipped', 0), stats.get('failed', 0))
            self.ledger.close()
            self.ledger = None

        logger.info("=" * 60)

        for handler in self._log_handlers:
            logging.getLogger().removeHandler(handler)
            handler.close()
        self._log_handlers = []
