"""GeoTIFF export of flat store datasets.

Derived datasets are written into copies of a template raster, so the output
inherits the template's georeferencing, data type and creation options
without the exporter having to know about any of them. The copy is opened
for update and band 1 is filled one window of rows at a time.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Optional, Tuple, Union, TYPE_CHECKING

import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.windows import Window

from revstat.contracts import IOFailure, MissingInput, assert_raster_layout, failure_context
from revstat.core.outcome import OutcomeStatus, TargetOutcome
from revstat.core.progress import ProgressCallback, log_progress
from revstat.store.h5store import ArrayStore

if TYPE_CHECKING:
    from revstat.schemas import InternalConfig

__all__ = ['RasterExporter', 'raster_dimensions']

logger = logging.getLogger(__name__)

OPERATION = "export"

PathLike = Union[str, Path]


def raster_dimensions(template: PathLike) -> Tuple[int, int]:
    """Return ``(width, height)`` of a raster file.

    Raises
    ------
    MissingInput
        If the file does not exist.
    IOFailure
        If rasterio cannot open it.
    """
    template = Path(template)
    if not template.exists():
        raise MissingInput("Template raster not found", target=str(template))
    try:
        with rasterio.open(template) as src:
            return src.width, src.height
    except RasterioError as e:
        raise IOFailure(f"Cannot read template raster: {e}", target=str(template)) from e


class RasterExporter:
    """Stream store datasets into single-band GeoTIFFs.

    Counts go into copies of the byte template, means and standard
    deviations into copies of the float template. Band 1 of the output
    receives the dataset reshaped to (height, width), written in windows of
    ``export.row_batch`` rows.

    Example usage::

        exporter = RasterExporter(config)
        with ArrayStore("cerrado_100.h5") as store:
            exporter.export_stat(store, "/ndvi", "mean", out_dir)
    """

    def __init__(self, config: "InternalConfig"):
        export = config.export
        self.row_batch = export.row_batch
        self.prefix = export.prefix
        self.float_template = export.float_template
        self.byte_template = export.byte_template
        self.stat_names = {
            "count": config.stats.count_name,
            "mean": config.stats.mean_name,
            "sd": config.stats.sd_name,
        }
        self.suffix = config.reverse.suffix

    def template_for(self, stat: str) -> Optional[str]:
        return self.byte_template if stat == "count" else self.float_template

    def output_path(self, out_dir: PathLike, group: str, stat: str) -> Path:
        """``<out_dir>/<prefix>_<group>_<stat>.tif``; nested groups join with '_'."""
        group_name = group.strip("/").replace("/", "_")
        return Path(out_dir) / f"{self.prefix}_{group_name}_{stat}.tif"

    def dataset_path(self, group: str, stat: str) -> str:
        return f"{group.rstrip('/')}/{self.stat_names[stat]}{self.suffix}"

    def export_stat(self, store: ArrayStore, group: str, stat: str, out_dir: PathLike,
                    progress: Optional[ProgressCallback] = None) -> TargetOutcome:
        """Export one of a group's reversed count, mean or sd datasets."""
        template = self.template_for(stat)
        target = f"{group.rstrip('/')}:{stat}"
        if template is None:
            raise MissingInput(f"No template raster configured for '{stat}'",
                               target=target, operation=OPERATION)
        return self.export(store, self.dataset_path(group, stat), template,
                           self.output_path(out_dir, group, stat), progress=progress)

    def export(self, store: ArrayStore, dataset: str, template: PathLike, out_path: PathLike,
               progress: Optional[ProgressCallback] = None) -> TargetOutcome:
        """Write `dataset` into band 1 of a fresh copy of `template`.

        Parameters
        ----------
        store : ArrayStore
            Store holding the dataset.
        dataset : str
            Absolute dataset path; its length must equal the template's
            width * height.
        template : str or Path
            Raster whose dimensions, type and georeferencing the output takes.
        out_path : str or Path
            Output file. An existing file is overwritten.
        progress : callable, optional
            ``progress(rows_done, height)`` reporter.

        Returns
        -------
        TargetOutcome
            Always ``completed``; failures raise.

        Raises
        ------
        MissingInput
            If the dataset or the template does not exist.
        SizeMismatch
            If the dataset length does not match the template raster.
        IOFailure
            If the template cannot be copied or the output cannot be written.
        """
        out_path = Path(out_path)
        start = time.time()

        with failure_context(dataset, OPERATION):
            width, height = raster_dimensions(template)
            assert_raster_layout(store.size(dataset), width, height,
                                 target=dataset, operation=OPERATION)

            logger.info("Exporting %s -> %s (%d x %d)", dataset, out_path, width, height)
            try:
                out_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(template, out_path)
            except OSError as e:
                raise IOFailure(f"Cannot copy template {template}: {e}",
                                target=str(out_path)) from e

            self._write_rows(store, dataset, out_path, width, height,
                             progress or log_progress(str(out_path.name), logger))

        return TargetOutcome(dataset, OPERATION, OutcomeStatus.COMPLETED, output=str(out_path),
                             elapsed_seconds=time.time() - start)

    def _write_rows(self, store: ArrayStore, dataset: str, out_path: Path,
                    width: int, height: int, progress: ProgressCallback):
        try:
            with rasterio.open(out_path, "r+") as dst:
                # Reading in the band's own type avoids a cast on write.
                dtype = np.dtype(dst.dtypes[0])
                for yy in range(0, height, self.row_batch):
                    progress(yy, height)
                    rows = min(self.row_batch, height - yy)
                    block = store.read_slice(dataset, yy * width, (yy + rows) * width, dtype)
                    dst.write(block.reshape(rows, width), 1, window=Window(0, yy, width, rows))
                progress(height, height)
        except RasterioError as e:
            raise IOFailure(f"Raster write failed: {e}", target=str(out_path)) from e
