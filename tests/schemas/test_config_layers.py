"""Test config resolution and validation with Pydantic."""

import math

import pytest
from pydantic import ValidationError

from revstat.schemas import ParamConfig, UserConfig, CLIConfig, InternalConfig, resolve_config
from revstat.schemas.resolve import deep_merge

pytestmark = pytest.mark.unit


class TestConfigResolution:
    """Test resolve_config() precedence and merging."""

    def test_resolve_config_all_defaults(self):
        """Resolving with no user/CLI overrides uses all ParamConfig defaults."""
        config = resolve_config(ParamConfig(), None, None)

        assert isinstance(config, InternalConfig)
        assert config.store.h5_path is None
        assert config.store.compression == "gzip"
        assert config.store.staging_suffix == ".partial"
        assert config.reverse.row_batch == 100
        assert config.reverse.suffix == "_rev"
        assert config.stats.batch_size == 1_000_000
        assert config.stats.sd_sentinel == -1.0
        assert math.isnan(config.stats.empty_mean_value)
        assert config.stats.single_count_sd == "nan"
        assert config.export.row_batch == 100
        assert config.export.stats == ["count", "mean", "sd"]
        assert config.pipeline.failure_policy == "skip_target"
        assert config.logging.level == "INFO"

    def test_user_flat_keys_override_param(self):
        user = UserConfig.model_validate({
            "H5_PATH": "cerrado_100.h5",
            "ROW_BATCH": 250,
            "STATS_BATCH": 1e5,
            "SD_SENTINEL": -9999,
            "OUTPUT_PREFIX": "100_cerrado",
            "WIDTH": 2137,
            "HEIGHT": 1088,
        })
        config = resolve_config(ParamConfig(), user, None)

        assert config.store.h5_path == "cerrado_100.h5"
        assert config.reverse.row_batch == 250
        assert config.stats.batch_size == 100_000
        assert config.stats.sd_sentinel == -9999.0
        assert config.export.prefix == "100_cerrado"
        assert (config.store.width, config.store.height) == (2137, 1088)

    def test_nested_user_values_win_over_flat(self):
        user = UserConfig.model_validate({
            "ROW_BATCH": 10,
            "reverse": {"row_batch": 20},
        })
        config = resolve_config(ParamConfig(), user, None)

        assert config.reverse.row_batch == 20

    def test_nested_merge_keeps_sibling_defaults(self):
        user = UserConfig(stats={"single_count_sd": "SENTINEL"})
        config = resolve_config(ParamConfig(), user, None)

        assert config.stats.single_count_sd == "sentinel"
        assert config.stats.batch_size == 1_000_000

    def test_cli_overrides_user(self):
        user = UserConfig.model_validate({"H5_PATH": "a.h5", "BASE_DIR": "/tmp/a"})
        cli = CLIConfig(h5_path="b.h5", skip_export=True, fail_fast=True, log_level="DEBUG")

        config = resolve_config(ParamConfig(), user, cli)

        assert config.store.h5_path == "b.h5"
        assert config.base_dir == "/tmp/a"
        assert config.export.enabled is False
        assert config.pipeline.failure_policy == "fail_fast"
        assert config.logging.level == "DEBUG"

    def test_cli_overrides_do_not_mutate_user(self):
        user = UserConfig.model_validate({"H5_PATH": "a.h5"})
        resolve_config(ParamConfig(), user, CLIConfig(h5_path="b.h5"))
        assert user.h5_path == "a.h5"

    def test_resolve_accepts_dicts(self):
        config = resolve_config({}, {"ROW_BATCH": 3}, {"base_dir": "/tmp/x"})
        assert config.reverse.row_batch == 3
        assert config.base_dir == "/tmp/x"


class TestValidation:

    def test_internal_config_is_frozen(self, internal_config):
        with pytest.raises(ValidationError):
            internal_config.base_dir = "/elsewhere"

    def test_zero_row_batch_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(row_batch=0), None)

    def test_zero_stats_batch_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(stats={"batch_size": 0}), None)

    def test_bad_policy_rejected(self):
        with pytest.raises(ValidationError):
            UserConfig.model_validate({"FAILURE_POLICY": "ignore"})

    def test_param_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ParamConfig(unknown_section={})

    def test_nested_user_section_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            UserConfig(reverse={"rows": 3})

    def test_negative_width_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(WIDTH=-1), None)


class TestUserNormalization:

    def test_unknown_keys_are_ignored(self):
        user = UserConfig.model_validate({"H5_PATH": "a.h5", "UNKNOWN_LEGACY": 12345})
        assert user.h5_path == "a.h5"
        assert not hasattr(user, "UNKNOWN_LEGACY")

    def test_policy_and_level_spellings(self):
        user = UserConfig.model_validate({"FAILURE_POLICY": "Fail-Fast", "LOG_LEVEL": "debug"})
        assert user.failure_policy == "fail_fast"
        assert user.log_level == "DEBUG"

    def test_compression_spelling(self):
        user = UserConfig(store={"compression": "GZIP"})
        assert user.store.compression == "gzip"

    def test_empty_user_has_no_overrides(self):
        assert UserConfig().to_internal_overrides() == {}


class TestCLIConfig:

    def test_empty_cli_has_no_overrides(self):
        assert CLIConfig().to_internal_overrides() == {}

    def test_fail_fast_false_means_skip_target(self):
        assert CLIConfig(fail_fast=False).to_internal_overrides() == {
            "pipeline": {"failure_policy": "skip_target"}
        }

    def test_skip_export_false_is_not_an_override(self):
        assert CLIConfig(skip_export=False).to_internal_overrides() == {}


def test_deep_merge():
    base = {"a": 1, "b": {"c": 2, "d": 3}}
    override = {"b": {"d": 4, "e": 5}, "f": 6}
    assert deep_merge(base, override) == {"a": 1, "b": {"c": 2, "d": 4, "e": 5}, "f": 6}
    assert base == {"a": 1, "b": {"c": 2, "d": 3}}
