"""
Directory setup for the revstat pipeline.

Flat layout under one base directory:
- rasters/: exported GeoTIFFs, named {prefix}_{group}_{stat}.tif
- logs/: pipeline log, run ledger and persisted runtime configs
"""

from pathlib import Path
from datetime import datetime, timezone


def setup_output_directories(base_output_dir=None):
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, ./output in the current directory.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'rasters', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "rasters": base_output_dir / "rasters",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def get_log_path(output_dirs, name="revstat_pipeline"):
    """
    Get the pipeline log file path.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    name : str
        Log file stem

    Returns
    -------
    Path
        Full path: logs/{name}.log
    """
    log_dir = Path(output_dirs["logs"])
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"{name}.log"


def get_runtime_config_path(output_dirs, run_id=None):
    """
    Get the path the resolved configuration of a run is saved to.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    run_id : str, optional
        Run identifier. If None, the current UTC time (YYYYMMDD_HHMMSS).

    Returns
    -------
    Path
        Full path: logs/runtime_config_{run_id}.json

    Example
    -------
    >>> get_runtime_config_path(dirs, "20251126_221706")
    Path('output/logs/runtime_config_20251126_221706.json')
    """
    if run_id is None:
        run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Path(output_dirs["logs"]) / f"runtime_config_{run_id}.json"
