"""revstat User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Advanced settings are in src/revstat/schemas/param.py

Usage:
    python scripts/run_pipeline.py scripts/user_config.py
    revstat-run scripts/user_config.py --skip-export
"""

CONFIG = {
    # ========================================================================
    # INPUT & OUTPUT
    # ========================================================================
    "H5_PATH": "cerrado_100.h5",   # HDF5 store with accumulator groups
    "BASE_DIR": "./output",        # Rasters, logs and ledger go here

    # ========================================================================
    # RASTER TEMPLATES
    # ========================================================================
    "BYTE_TEMPLATE": "base_byte.tif",    # uint8 template for counts
    "FLOAT_TEMPLATE": "base_float.tif",  # float32 template for mean/sd
    "OUTPUT_PREFIX": "100_cerrado",      # {prefix}_{group}_{stat}.tif
    "EXPORT": True,

    # Raster size; read from BYTE_TEMPLATE when not set
    "WIDTH": None,
    "HEIGHT": None,

    # ========================================================================
    # ENGINE SETTINGS
    # ========================================================================
    "ROW_BATCH": 100,          # Rows per mirrored read/write
    "STATS_BATCH": 1_000_000,  # Cells per mean/sd batch
    "SD_SENTINEL": -1,         # sd where count == 0

    "FAILURE_POLICY": "skip_target",  # or "fail_fast"
    "LOG_LEVEL": "INFO",

    # Advanced overrides mirror the expert sections, e.g.:
    # "stats": {"single_count_sd": "sentinel"},
}
