"""HDF5 array store for flat row-major raster datasets.

Thin adapter over h5py exposing only what the processing engine needs:
member enumeration, existence tests, size/dtype queries, 1-D dataset
creation with optional gzip compression, flat slice reads and writes, and
rename/delete for commit-by-rename staging.

All h5py failures are translated into the revstat error taxonomy:
absent paths raise MissingInput, datasets that are not 1-D raise SizeMismatch,
and everything else raises IOFailure.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union
import logging

import h5py
import numpy as np

from revstat.contracts import MissingInput, IOFailure, SizeMismatch, require

__all__ = ['ArrayStore', 'NodeInfo']

logger = logging.getLogger(__name__)

_H5_ERRORS = (OSError, KeyError, ValueError, TypeError, RuntimeError)


@dataclass(frozen=True)
class NodeInfo:
    """One entry of a recursive store listing.

    Attributes
    ----------
    path : str
        Absolute path inside the file, e.g. "/ndvi/sum".
    kind : str
        "group" or "dataset".
    """
    path: str
    kind: str

    @property
    def name(self) -> str:
        """Last path component."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def is_group(self) -> bool:
        return self.kind == "group"


def _abs(path: str) -> str:
    return path if path.startswith("/") else "/" + path


class ArrayStore:
    """HDF5 file holding flat 1-D datasets addressed by absolute path.

    The store owns a single h5py.File handle for its lifetime. It is not
    thread-safe; the pipeline is strictly sequential and only one component
    touches the file at a time.

    Parameters
    ----------
    path : str or Path
        HDF5 file path.
    mode : str, optional
        h5py open mode (default "r+": read/write, file must exist).
    compression : str or None, optional
        Filter applied to newly created datasets ("gzip" or None).
    compression_level : int, optional
        gzip level for new datasets (default 1, as the accumulators are
        rewritten often and mostly compress on zero runs).

    Examples
    --------
    >>> with ArrayStore("cerrado_100.h5") as store:
    ...     for node in store.walk():
    ...         print(node.kind, node.path)
    ...     block = store.read_slice("/ndvi/sum", 0, 1000, dtype=np.float32)
    """

    def __init__(self, path: Union[str, Path], mode: str = "r+",
                 compression: Optional[str] = "gzip",
                 compression_level: int = 1):
        self.path = Path(path)
        self.mode = mode
        self.compression = compression
        self.compression_level = compression_level
        try:
            self._file = h5py.File(self.path, mode)
        except _H5_ERRORS as e:
            if not self.path.exists() and mode in ("r", "r+"):
                raise MissingInput("HDF5 file not found", target=str(self.path)) from e
            raise IOFailure(f"Cannot open HDF5 file: {e}", target=str(self.path)) from e
        logger.debug("Opened HDF5 store %s (mode=%s)", self.path, mode)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self):
        """Flush and close the file. Safe to call multiple times."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        """True if a group or dataset exists at path."""
        return _abs(path) in self._file

    def is_group(self, path: str) -> bool:
        path = _abs(path)
        return path in self._file and isinstance(self._file[path], h5py.Group)

    def member_names(self, path: str = "/") -> List[str]:
        """Direct children of a group, in HDF5 (alphabetical) order."""
        path = _abs(path)
        if not self.is_group(path):
            raise MissingInput("Group not found", target=path)
        return list(self._file[path].keys())

    def walk(self, path: str = "/") -> List[NodeInfo]:
        """Depth-first listing of every group and dataset below path.

        Each group is listed before its own members, so the result can be
        filtered into groups and datasets while keeping a stable order.
        """
        path = _abs(path)
        prefix = "" if path == "/" else path
        nodes = []
        for name in self.member_names(path):
            child = f"{prefix}/{name}"
            if self.is_group(child):
                nodes.append(NodeInfo(child, "group"))
                nodes.extend(self.walk(child))
            else:
                nodes.append(NodeInfo(child, "dataset"))
        return nodes

    # ------------------------------------------------------------------
    # Dataset metadata
    # ------------------------------------------------------------------

    def _dataset(self, path: str, operation: Optional[str] = None) -> h5py.Dataset:
        path = _abs(path)
        obj = self._file.get(path)
        if obj is None:
            raise MissingInput("Dataset not found", target=path, operation=operation)
        if not isinstance(obj, h5py.Dataset):
            raise MissingInput("Path is a group, not a dataset",
                               target=path, operation=operation)
        return obj

    def _flat_dataset(self, path: str) -> h5py.Dataset:
        ds = self._dataset(path)
        if ds.ndim != 1:
            raise SizeMismatch(f"Dataset is not 1-D (shape {ds.shape})", target=_abs(path))
        return ds

    def size(self, path: str) -> int:
        """Element count of a flat dataset. Other ranks raise SizeMismatch."""
        return int(self._flat_dataset(path).size)

    def dtype(self, path: str) -> np.dtype:
        return self._dataset(path).dtype

    # ------------------------------------------------------------------
    # Creation and I/O
    # ------------------------------------------------------------------

    def create_dataset(self, path: str, dtype, size: int) -> None:
        """Create a new 1-D dataset of `size` elements.

        Compression needs chunked storage, which HDF5 cannot allocate for an
        empty dataset, so zero-length datasets are created contiguous.
        """
        path = _abs(path)
        kwargs = {}
        if self.compression and size > 0:
            kwargs["compression"] = self.compression
            if self.compression == "gzip":
                kwargs["compression_opts"] = self.compression_level
        try:
            self._file.create_dataset(path, shape=(size,), dtype=np.dtype(dtype), **kwargs)
        except _H5_ERRORS as e:
            raise IOFailure(f"Cannot create dataset: {e}", target=path) from e
        logger.debug("Created dataset %s (%s x %d)", path, np.dtype(dtype).name, size)

    def read_slice(self, path: str, lower: int, upper: int, dtype=None) -> np.ndarray:
        """Read the half-open flat range [lower, upper) as a typed buffer.

        When dtype is given the conversion happens inside HDF5, so the
        returned buffer never exists in the on-disk type first.
        """
        ds = self._flat_dataset(path)
        require(0 <= lower <= upper <= ds.size,
                f"Read window [{lower}, {upper}) outside {_abs(path)} of size {ds.size}")
        try:
            if dtype is not None:
                return ds.astype(np.dtype(dtype))[lower:upper]
            return ds[lower:upper]
        except _H5_ERRORS as e:
            raise IOFailure(f"Read [{lower}, {upper}) failed: {e}", target=_abs(path)) from e

    def write_slice(self, path: str, lower: int, values: np.ndarray) -> None:
        """Write a flat buffer starting at element `lower`."""
        ds = self._flat_dataset(path)
        upper = lower + len(values)
        require(0 <= lower <= upper <= ds.size,
                f"Write window [{lower}, {upper}) outside {_abs(path)} of size {ds.size}")
        try:
            ds[lower:upper] = values
        except _H5_ERRORS as e:
            raise IOFailure(f"Write [{lower}, {upper}) failed: {e}", target=_abs(path)) from e

    def rename(self, source: str, dest: str) -> None:
        """Move a link inside the file (used to commit staged outputs)."""
        source, dest = _abs(source), _abs(dest)
        try:
            self._file.move(source, dest)
        except _H5_ERRORS as e:
            raise IOFailure(f"Cannot rename to {dest}: {e}", target=source) from e

    def delete(self, path: str) -> None:
        path = _abs(path)
        if path not in self._file:
            return
        try:
            del self._file[path]
        except _H5_ERRORS as e:
            raise IOFailure(f"Cannot delete: {e}", target=path) from e
        logger.debug("Deleted %s", path)
