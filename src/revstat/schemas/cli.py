"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: input file, output directory, failure policy, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from revstat.schemas.base import RevstatBaseModel


class CLIConfig(RevstatBaseModel):
    """Command-line configuration overrides.
    
    Operational-only settings that override user and param configs.
    Highest priority in config resolution.
    
    Usage
    -----
        cli_cfg = CLIConfig(
            h5_path="/scratch/cerrado_100.h5",
            base_dir="/scratch/revstat_output",
            fail_fast=True,
        )
        
        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """
    
    h5_path: Optional[str] = None
    base_dir: Optional[str] = None
    skip_export: Optional[bool] = None
    fail_fast: Optional[bool] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None
    
    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.
        
        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}
        
        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)
        
        if self.h5_path is not None:
            overrides["store"] = {"h5_path": str(self.h5_path)}
        
        if self.skip_export:
            overrides["export"] = {"enabled": False}
        
        if self.fail_fast is not None:
            policy = "fail_fast" if self.fail_fast else "skip_target"
            overrides["pipeline"] = {"failure_policy": policy}
        
        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}
        
        return overrides
