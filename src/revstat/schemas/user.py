"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., H5_PATH → h5_path, ROW_BATCH → row_batch).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, floats where ints are expected, etc.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from revstat.schemas.base import RevstatBaseModel


class UserStoreConfig(RevstatBaseModel):
    """User-facing store config."""
    h5_path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    compression: Optional[Literal["gzip", "none"]] = None
    compression_level: Optional[int] = None
    staging_suffix: Optional[str] = None

    @field_validator("compression", mode="before")
    @classmethod
    def normalize_compression(cls, v):
        """Accept None/"None"/"GZIP" spellings."""
        if v is None:
            return v
        v = str(v).lower().strip()
        return "none" if v in ("", "null") else v


class UserReverseConfig(RevstatBaseModel):
    """User-facing row reversal config."""
    row_batch: Optional[int] = None
    suffix: Optional[str] = None


class UserStatsConfig(RevstatBaseModel):
    """User-facing statistics config."""
    batch_size: Optional[int] = None
    sd_sentinel: Optional[float] = None
    empty_mean_value: Optional[float] = None
    single_count_sd: Optional[Literal["nan", "sentinel"]] = None
    sum_name: Optional[str] = None
    sumsq_name: Optional[str] = None
    count_name: Optional[str] = None
    mean_name: Optional[str] = None
    sd_name: Optional[str] = None

    @field_validator("single_count_sd", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        """Normalize policy names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserExportConfig(RevstatBaseModel):
    """User-facing export config."""
    enabled: Optional[bool] = None
    float_template: Optional[str] = None
    byte_template: Optional[str] = None
    prefix: Optional[str] = None
    row_batch: Optional[int] = None
    stats: Optional[list[Literal["count", "mean", "sd"]]] = None


class UserPipelineConfig(RevstatBaseModel):
    """User-facing orchestration config."""
    failure_policy: Optional[Literal["fail_fast", "skip_target"]] = None
    count_suffix: Optional[str] = None
    ledger_filename: Optional[str] = None

    @field_validator("failure_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        """Accept FAIL_FAST / skip-target spellings."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v


class UserConfig(RevstatBaseModel):
    """User configuration with flat aliases and nested overrides.
    
    Flat keys cover the settings most users touch; nested sections mirror
    ParamConfig for advanced overrides. Nested values win over flat ones.
    
    Examples
    --------
    >>> user = UserConfig.model_validate({
    ...     "H5_PATH": "cerrado_100.h5",
    ...     "BASE_DIR": "./output",
    ...     "FLOAT_TEMPLATE": "base_float.tif",
    ...     "BYTE_TEMPLATE": "base_byte.tif",
    ...     "OUTPUT_PREFIX": "100_cerrado",
    ... })
    >>> internal = resolve_config(ParamConfig(), user)
    >>> internal.export.prefix
    '100_cerrado'
    """
    
    # Top-level operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    h5_path: Optional[str] = Field(None, alias="H5_PATH")
    width: Optional[int] = Field(None, alias="WIDTH")
    height: Optional[int] = Field(None, alias="HEIGHT")
    
    # Engine settings (flat aliases)
    row_batch: Optional[int] = Field(None, alias="ROW_BATCH")
    stats_batch: Optional[int] = Field(None, alias="STATS_BATCH")
    sd_sentinel: Optional[float] = Field(None, alias="SD_SENTINEL")
    
    # Export settings (flat aliases)
    float_template: Optional[str] = Field(None, alias="FLOAT_TEMPLATE")
    byte_template: Optional[str] = Field(None, alias="BYTE_TEMPLATE")
    output_prefix: Optional[str] = Field(None, alias="OUTPUT_PREFIX")
    export_enabled: Optional[bool] = Field(None, alias="EXPORT")
    
    failure_policy: Optional[Literal["fail_fast", "skip_target"]] = Field(None, alias="FAILURE_POLICY")
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(
        None, alias="LOG_LEVEL"
    )
    
    # Nested overrides (advanced users)
    store: Optional[UserStoreConfig] = None
    reverse: Optional[UserReverseConfig] = None
    stats: Optional[UserStatsConfig] = None
    export: Optional[UserExportConfig] = None
    pipeline: Optional[UserPipelineConfig] = None
    
    model_config = RevstatBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("row_batch", "stats_batch", mode="before")
    @classmethod
    def coerce_batch_sizes(cls, v):
        """Accept 1e6 style floats for batch sizes."""
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v

    @field_validator("failure_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v
    
    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.
        
        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}
        
        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)
        
        # Store section
        store = {}
        if self.h5_path is not None:
            store["h5_path"] = str(self.h5_path)
        if self.width is not None:
            store["width"] = self.width
        if self.height is not None:
            store["height"] = self.height
        if self.store is not None:
            store.update(self.store.model_dump(exclude_none=True))
        if store:
            overrides["store"] = store
        
        # Reverse section
        reverse = {}
        if self.row_batch is not None:
            reverse["row_batch"] = self.row_batch
        if self.reverse is not None:
            reverse.update(self.reverse.model_dump(exclude_none=True))
        if reverse:
            overrides["reverse"] = reverse
        
        # Stats section
        stats = {}
        if self.stats_batch is not None:
            stats["batch_size"] = self.stats_batch
        if self.sd_sentinel is not None:
            stats["sd_sentinel"] = self.sd_sentinel
        if self.stats is not None:
            stats.update(self.stats.model_dump(exclude_none=True))
        if stats:
            overrides["stats"] = stats
        
        # Export section
        export = {}
        if self.float_template is not None:
            export["float_template"] = self.float_template
        if self.byte_template is not None:
            export["byte_template"] = self.byte_template
        if self.output_prefix is not None:
            export["prefix"] = self.output_prefix
        if self.export_enabled is not None:
            export["enabled"] = self.export_enabled
        if self.export is not None:
            export.update(self.export.model_dump(exclude_none=True))
        if export:
            overrides["export"] = export
        
        # Pipeline section
        pipeline = {}
        if self.failure_policy is not None:
            pipeline["failure_policy"] = self.failure_policy
        if self.pipeline is not None:
            pipeline.update(self.pipeline.model_dump(exclude_none=True))
        if pipeline:
            overrides["pipeline"] = pipeline
        
        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}
        
        return overrides
