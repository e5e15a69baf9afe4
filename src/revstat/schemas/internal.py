"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains explicit values for every parameter the engine uses.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict
from revstat.schemas.base import RevstatBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalStoreConfig(RevstatBaseModel):
    """Runtime store configuration.
    
    Note: h5_path may be None while configs are merged, but the orchestrator
    refuses to run without it.
    """
    h5_path: Optional[str]
    width: Optional[int] = Field(ge=0)
    height: Optional[int] = Field(ge=0)
    compression: Literal["gzip", "none"]
    compression_level: int = Field(ge=0, le=9)
    staging_suffix: str = Field(min_length=1)


class InternalReverseConfig(RevstatBaseModel):
    """Runtime row reversal configuration."""
    row_batch: int = Field(ge=1)
    suffix: str = Field(min_length=1)


class InternalStatsConfig(RevstatBaseModel):
    """Runtime mean/sd reduction configuration."""
    batch_size: int = Field(ge=1)
    sd_sentinel: float
    empty_mean_value: float
    single_count_sd: Literal["nan", "sentinel"]
    sum_name: str
    sumsq_name: str
    count_name: str
    mean_name: str
    sd_name: str


class InternalExportConfig(RevstatBaseModel):
    """Runtime GeoTIFF export configuration."""
    enabled: bool
    float_template: Optional[str]
    byte_template: Optional[str]
    prefix: str
    row_batch: int = Field(ge=1)
    stats: list[Literal["count", "mean", "sd"]]


class InternalPipelineConfig(RevstatBaseModel):
    """Runtime orchestration configuration."""
    failure_policy: Literal["fail_fast", "skip_target"]
    count_suffix: str
    ledger_filename: str


class InternalLoggingConfig(RevstatBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(RevstatBaseModel):
    """Authoritative runtime configuration.
    
    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters.
    
    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:
    
        def __init__(self, config: InternalConfig):
            self.row_batch = config.reverse.row_batch  # NOT .get()
            self.suffix = config.reverse.suffix
    
    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO type checking
    - NO validation
    
    All of that happens during config resolution, not in runtime code.
    """
    
    base_dir: Optional[str]
    store: InternalStoreConfig
    reverse: InternalReverseConfig
    stats: InternalStatsConfig
    export: InternalExportConfig
    pipeline: InternalPipelineConfig
    logging: InternalLoggingConfig
    run_id: Optional[str] = None
    
    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
