"""Merge the three configuration layers into one InternalConfig.

``resolve_config()`` is the only place layers are combined. Each layer is
validated on its own first, then converted into a nested override dict and
laid over the expert defaults:

    ParamConfig  <  UserConfig  <  CLIConfig

The merged dict is validated once more as a frozen InternalConfig, so a
value that is fine in isolation but invalid at runtime (e.g. a zero batch
size coming from the user file) is still rejected.
"""

from typing import Union, Optional
from revstat.schemas.param import ParamConfig
from revstat.schemas.user import UserConfig
from revstat.schemas.cli import CLIConfig
from revstat.schemas.internal import InternalConfig


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Return a copy of `base` with each override laid over it in turn.

    Sections present in both are merged key by key, so overriding
    ``stats.sd_sentinel`` keeps the remaining ``stats`` defaults. Any other
    value is replaced outright. Inputs are not modified.

    Examples
    --------
    >>> deep_merge({"stats": {"batch_size": 10, "sd_sentinel": -1.0}},
    ...            {"stats": {"sd_sentinel": -9999.0}})
    {'stats': {'batch_size': 10, 'sd_sentinel': -9999.0}}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            current = result.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                result[key] = deep_merge(current, value)
            else:
                result[key] = value

    return result


def _as_model(cfg, model_cls):
    """Accept a model instance, a dict, or None for any layer."""
    if isinstance(cfg, model_cls):
        return cfg
    if not cfg:
        return model_cls()
    return model_cls.model_validate(cfg)


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Build the runtime configuration for one pipeline run.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert defaults. Every field has a value here.
    user_cfg : dict or UserConfig, optional
        Contents of the user's ``CONFIG`` dict. Only the keys it sets
        override the defaults.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides, applied last.

    Returns
    -------
    InternalConfig
        Validated and frozen.

    Raises
    ------
    ValidationError
        If a layer, or the merged result, is invalid.

    Examples
    --------
    >>> user = UserConfig(H5_PATH="cerrado_100.h5", ROW_BATCH=250)
    >>> config = resolve_config(ParamConfig(), user, {"fail_fast": True})
    >>> config.reverse.row_batch, config.pipeline.failure_policy
    (250, 'fail_fast')
    """
    param = _as_model(param_cfg, ParamConfig)
    user = _as_model(user_cfg, UserConfig)
    cli = _as_model(cli_cfg, CLIConfig)

    merged = deep_merge(
        param.model_dump(),
        user.to_internal_overrides(),
        cli.to_internal_overrides(),
    )
    return InternalConfig.model_validate(merged)
