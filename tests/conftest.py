"""Root-level pytest fixtures for the revstat test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture, plus factories for real HDF5 stores and GeoTIFF templates in
temporary directories. All tests must use these fixtures instead of creating
raw dict configs.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

import h5py
import numpy as np
import rasterio
from rasterio.transform import from_origin

from revstat.schemas import ParamConfig, UserConfig, resolve_config
from revstat.setup_directories import setup_output_directories
from revstat.store import ArrayStore


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.

    Examples
    --------
    >>> def test_reverser_init(internal_config):
    ...     reverser = ChunkedRowReverser(internal_config)
    ...     assert reverser.suffix == "_rev"
    """
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Use this when you need to override specific values for a test.
    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_small_batches(make_config):
    ...     config = make_config(row_batch=1, stats={"batch_size": 3})
    ...     assert config.reverse.row_batch == 1
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard revstat output directory structure (base, rasters, logs)."""
    return setup_output_directories(temp_dir / "output")


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def h5_path(temp_dir):
    return temp_dir / "store.h5"


@pytest.fixture
def h5_store(h5_path):
    """Empty, writable ArrayStore backed by a real HDF5 file."""
    store = ArrayStore(h5_path, mode="a")
    yield store
    store.close()


@pytest.fixture
def make_h5():
    """Factory writing flat datasets into an HDF5 file.

    Examples
    --------
    >>> make_h5(path, {"/ndvi/sum": np.ones(6, np.float32)})
    """
    def _make(path, datasets):
        with h5py.File(path, "a") as f:
            for name, values in datasets.items():
                values = np.asarray(values)
                f.create_dataset(name, data=values.reshape(-1))
        return Path(path)

    return _make


@pytest.fixture
def make_template(temp_dir):
    """Factory creating single-band GeoTIFF templates filled with zeros."""
    def _make(name, width, height, dtype="float32"):
        path = temp_dir / name
        profile = {
            "driver": "GTiff",
            "width": width,
            "height": height,
            "count": 1,
            "dtype": dtype,
            "crs": "EPSG:4326",
            "transform": from_origin(-50.0, -10.0, 0.01, 0.01),
        }
        with rasterio.open(path, "w", **profile) as dst:
            dst.write(np.zeros((height, width), dtype=dtype), 1)
        return path

    return _make
