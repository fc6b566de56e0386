"""Pydantic configuration schemas for arraydata.

All configuration validation, coercion, and normalization happens at
schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
QuantitationType : class
    One entry of a vendor quantitation type dictionary
"""

from arraydata.schemas.resolve import resolve_config
from arraydata.schemas.internal import InternalConfig
from arraydata.schemas.param import ParamConfig, QuantitationType
from arraydata.schemas.user import UserConfig
from arraydata.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'QuantitationType',
    'UserConfig',
    'CLIConfig',
]
