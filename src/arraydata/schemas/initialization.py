"""Complete runtime initialization for arraydata batch runs.

This module handles ALL initialization responsibilities:
- Configuration resolution (CLI > User > Param)
- Output directory setup
- Configuration persistence with run ID
- Returns fully ready InternalConfig for the orchestrator
"""

import importlib.util
import json
from pathlib import Path
from datetime import datetime, timezone

from arraydata.schemas.resolve import resolve_config
from arraydata.schemas.param import ParamConfig
from arraydata.schemas.user import UserConfig
from arraydata.schemas.cli import CLIConfig
from arraydata.schemas.internal import InternalConfig


def _load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def generate_run_id() -> str:
    """UTC timestamp identifying one batch run."""
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def _persist_runtime_config(config: InternalConfig, output_dir: Path) -> Path:
    """Save the resolved configuration next to the canonical files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    config_file = output_dir / f"runtime_config_{config.run_id}.json"

    config_dict = config.model_dump()
    config_dict["created_at"] = datetime.now(timezone.utc).isoformat()

    with open(config_file, 'w') as f:
        json.dump(config_dict, f, indent=2, default=str)

    print(f"Runtime config saved: {config_file}")
    return config_file


def init_runtime_config(args) -> InternalConfig:
    """Complete runtime initialization - single entry point for batch runs.

    Parameters
    ----------
    args : argparse.Namespace
        Command line arguments; ``config`` (optional user config file),
        ``input_dir``, ``output_dir``, ``data_type``, ``workers``,
        ``mage_tab`` and ``verbose`` are read when present.

    Returns
    -------
    InternalConfig
        Validated configuration with the output directory created and the
        run ID set.

    Examples
    --------
    >>> args = parser.parse_args()
    >>> config = init_runtime_config(args)
    >>> orchestrator = BatchOrchestrator(config)
    """
    param_cfg = ParamConfig()

    config_path = getattr(args, 'config', None)
    user_cfg = UserConfig.model_validate(_load_user_config_dict(config_path)) if config_path else UserConfig()

    cli_args = {
        k: v
        for k, v in {
            "input_dir": getattr(args, 'input_dir', None),
            "output_dir": getattr(args, 'output_dir', None),
            "data_type": getattr(args, 'data_type', None),
            "workers": getattr(args, 'workers', None),
            "data_matrix_header": "mage_tab" if getattr(args, 'mage_tab', False) else None,
            "log_level": "DEBUG" if getattr(args, 'verbose', False) else None,
        }.items()
        if v is not None
    }
    cli_cfg = CLIConfig.model_validate(cli_args)

    internal_config_dict = resolve_config(param_cfg, user_cfg, cli_cfg).model_dump()

    output_dir = internal_config_dict["pipeline"]["output_dir"]
    if not output_dir:
        raise ValueError("An output directory is required (--output-dir or OUTPUT_DIR)")

    internal_config_dict["run_id"] = generate_run_id()
    config = InternalConfig.model_validate(internal_config_dict)

    _persist_runtime_config(config, Path(output_dir))

    print(f"Runtime initialization complete. Run ID: {config.run_id}")

    return config


__all__ = ['init_runtime_config', 'generate_run_id']
