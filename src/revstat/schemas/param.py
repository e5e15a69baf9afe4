"""ParamConfig: Expert defaults for the revstat pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

import math
from typing import Literal, Optional
from pydantic import Field, field_validator
from revstat.schemas.base import RevstatBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class StoreConfig(RevstatBaseModel):
    """HDF5 array store configuration."""
    h5_path: Optional[str] = None
    width: Optional[int] = Field(None, ge=0, description="Raster columns; read from a template if None")
    height: Optional[int] = Field(None, ge=0, description="Raster rows; read from a template if None")
    compression: Literal["gzip", "none"] = "gzip"
    compression_level: int = Field(1, ge=0, le=9, description="gzip level for new datasets")
    staging_suffix: str = Field(".partial", min_length=1,
                                description="Suffix of outputs still being written")


class ReverseConfig(RevstatBaseModel):
    """Row reversal configuration."""
    row_batch: int = Field(100, ge=1, description="Rows per mirrored read/write")
    suffix: str = Field("_rev", min_length=1)


class StatsConfig(RevstatBaseModel):
    """Running mean/sd reduction configuration."""
    batch_size: int = Field(1_000_000, ge=1, description="Elements per batch")
    sd_sentinel: float = Field(-1.0, description="sd written where count == 0")
    empty_mean_value: float = Field(math.nan, description="mean written where count == 0")
    single_count_sd: Literal["nan", "sentinel"] = "nan"
    sum_name: str = "sum"
    sumsq_name: str = "sumsq"
    count_name: str = "count"
    mean_name: str = "mean"
    sd_name: str = "sd"

    @field_validator("sd_sentinel", "empty_mean_value", mode="before")
    @classmethod
    def coerce_to_float(cls, v):
        """Allow int or float for fill values."""
        return float(v)


class ExportConfig(RevstatBaseModel):
    """GeoTIFF export configuration."""
    enabled: bool = True
    float_template: Optional[str] = None
    byte_template: Optional[str] = None
    prefix: str = "revstat"
    row_batch: int = Field(100, ge=1)
    stats: list[Literal["count", "mean", "sd"]] = Field(
        default_factory=lambda: ["count", "mean", "sd"]
    )


class PipelineConfig(RevstatBaseModel):
    """Orchestration configuration."""
    failure_policy: Literal["fail_fast", "skip_target"] = "skip_target"
    count_suffix: str = Field("count", description="Datasets ending with this are uint8")
    ledger_filename: str = "revstat_ledger.db"


class LoggingConfig(RevstatBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(RevstatBaseModel):
    """Complete expert configuration with all defaults.
    
    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.
    
    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:
    
        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)
    
    Runtime code only sees InternalConfig.
    """
    
    base_dir: Optional[str] = None
    store: StoreConfig = Field(default_factory=StoreConfig)
    reverse: ReverseConfig = Field(default_factory=ReverseConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
