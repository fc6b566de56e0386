"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: input and output directories, declared data type, worker
count and verbosity.
"""

from pathlib import Path
from typing import Literal, Optional
from pydantic import Field, model_validator
from arraydata.schemas.base import ArrayDataBaseModel


class CLIConfig(ArrayDataBaseModel):
    """Command-line configuration overrides.

    Highest priority in config resolution.

    Notes
    -----
    Output must not be written into the input directory: canonical files
    would be picked up again as inputs on the next run.

    Usage
    -----
        cli_cfg = CLIConfig(
            input_dir="/data/raw",
            output_dir="/scratch/normalized",
            workers=8,
        )
        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    input_dir: Optional[str] = None
    output_dir: Optional[str] = None
    data_type: Optional[Literal["raw", "normalized", "transformed", "measured_data_matrix", "EXP"]] = None
    data_matrix_header: Optional[Literal["auto", "mage_tab", "single"]] = None
    workers: Optional[int] = Field(None, ge=1, le=64)
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    @model_validator(mode="after")
    def output_differs_from_input(self):
        """Reject writing canonical files back into the input directory."""
        if self.input_dir and self.output_dir:
            if Path(self.input_dir).resolve() == Path(self.output_dir).resolve():
                raise ValueError("output_dir must differ from input_dir")
        return self

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        pipeline = {}
        if self.input_dir is not None:
            pipeline["input_dir"] = str(self.input_dir)
        if self.output_dir is not None:
            pipeline["output_dir"] = str(self.output_dir)
        if self.data_type is not None:
            pipeline["data_type"] = self.data_type
        if self.workers is not None:
            pipeline["workers"] = self.workers
        if pipeline:
            overrides["pipeline"] = pipeline

        if self.data_matrix_header is not None:
            overrides["parser"] = {"data_matrix_header": self.data_matrix_header}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
