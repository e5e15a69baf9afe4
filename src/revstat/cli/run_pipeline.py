"""Pipeline runner behind the ``revstat-run`` command.

Argument parsing lives in build_parser()/main(); run_pipeline() does the
actual work and can be called directly from notebooks or other scripts.
"""

import sys
import json
import shutil
import logging
import argparse
import importlib.util
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

import pandas as pd

from revstat.setup_directories import setup_output_directories, get_runtime_config_path
from revstat.pipeline.orchestrator import PipelineOrchestrator
from revstat.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig, InternalConfig

__all__ = ['load_user_config_dict', 'build_config', 'run_pipeline', 'main']

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Execute a user config file and return its ``CONFIG`` dict.

    The dict is returned as written; validation happens in UserConfig.

    Parameters
    ----------
    config_path : str
        Python file defining ``CONFIG = {...}`` (see scripts/user_config.py).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file defines no dict whose name starts with ``CONFIG``.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("revstat_user_config", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    candidates = [getattr(module, name) for name in sorted(vars(module))
                  if name.startswith("CONFIG")]
    for obj in candidates:
        if isinstance(obj, dict):
            return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def build_config(user_config_path: str, cli_args: Optional[Dict[str, Any]] = None,
                 verbose: bool = False) -> InternalConfig:
    """Resolve Param < User < CLI into the runtime configuration.

    None values in `cli_args` mean "not given" and are dropped.
    """
    user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))

    cli_dict = {k: v for k, v in (cli_args or {}).items() if v is not None}
    if verbose:
        cli_dict.setdefault("log_level", "DEBUG")

    return resolve_config(ParamConfig(), user_cfg, CLIConfig.model_validate(cli_dict))


def _save_runtime_config(config: InternalConfig, output_dirs: Dict[str, Path]) -> Path:
    path = get_runtime_config_path(output_dirs, config.run_id)
    with open(path, "w") as f:
        json.dump(config.model_dump(), f, indent=2)
    return path


def _print_summary(config: InternalConfig, user_config_path: str):
    export = "on" if config.export.enabled else "off"
    print(f"\n{'='*60}")
    print("revstat: row reversal and running statistics")
    print('='*60)
    print(f"Config: {user_config_path}")
    print(f"Store:  {config.store.h5_path}")
    print(f"Export: {export}")
    print(f"Output: {config.base_dir}")
    print(f"Run:    {config.run_id}")
    print('='*60)


def run_pipeline(
    user_config_path: str,
    cli_args: Optional[Dict[str, Any]] = None,
    rerun: bool = False,
    verbose: bool = False
) -> pd.DataFrame:
    """Run reverse, stats and export over the configured HDF5 store.

    Parameters
    ----------
    user_config_path : str
        Python file with a ``CONFIG`` dict.
    cli_args : dict, optional
        Overrides with the CLIConfig keys (h5_path, base_dir, skip_export,
        fail_fast, log_level). None values are ignored.
    rerun : bool, optional
        Delete the output directory first. The HDF5 store is never
        touched, so outputs already in it are still skipped.
    verbose : bool, optional
        DEBUG logging, and print the fully resolved configuration.

    Returns
    -------
    pd.DataFrame
        One row per (target, operation); see PipelineOrchestrator.run().

    Raises
    ------
    FileNotFoundError
        If `user_config_path` does not exist.
    ValueError
        If the configuration is invalid or raster dimensions are unknown.
    ProcessingError
        If the store cannot be opened, or on the first failure under the
        fail_fast policy.

    Examples
    --------
    ::

        run_pipeline("scripts/user_config.py")

        run_pipeline(
            "scripts/user_config.py",
            cli_args={"h5_path": "/scratch/cerrado_100.h5", "skip_export": True},
        )
    """
    config = build_config(user_config_path, cli_args, verbose=verbose)

    if rerun and config.base_dir and Path(config.base_dir).exists():
        print(f"Cleaning output directory: {config.base_dir}")
        shutil.rmtree(config.base_dir)

    output_dirs = setup_output_directories(config.base_dir)
    config = config.model_copy(update={
        "run_id": datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S"),
        "base_dir": str(output_dirs["base"]),
    })
    saved = _save_runtime_config(config, output_dirs)

    _print_summary(config, user_config_path)
    if verbose:
        print(f"\nResolved configuration ({saved}):")
        print(json.dumps(config.model_dump(), indent=2))
        print('='*60)

    return PipelineOrchestrator(config, output_dirs).run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="revstat-run",
        description="Reverse HDF5 raster rows, compute mean/sd and export GeoTIFFs",
    )
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("--h5-path", help="Override the HDF5 store path")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--skip-export", action="store_true", help="Do not write GeoTIFFs")
    parser.add_argument("--fail-fast", action="store_true", help="Abort on the first failure")
    parser.add_argument("--rerun", action="store_true", help="Delete output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point. Returns 1 if any target failed, else 0."""
    args = build_parser().parse_args(argv)

    cli_args = {
        "h5_path": args.h5_path,
        "base_dir": args.base_dir,
        "skip_export": args.skip_export or None,
        "fail_fast": args.fail_fast or None,
    }

    results = run_pipeline(args.config, cli_args=cli_args, rerun=args.rerun,
                           verbose=args.verbose)

    failed = results[results["status"] == "failed"]
    if failed.empty:
        return 0

    print(f"\n{len(failed)} target(s) failed:")
    for row in failed.itertuples():
        print(f"  {row.error}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
