"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., OUTPUT_DIR -> output_dir, MAX_HEADER_LINES -> max_header_lines).

Users only specify what they want to override from the expert defaults.
Both uppercase and lowercase keys are accepted.
"""

from typing import Any, Literal, Optional
from pydantic import Field, field_validator
from arraydata.schemas.base import ArrayDataBaseModel


class UserParserConfig(ArrayDataBaseModel):
    """User-facing parser config."""
    max_header_lines: Optional[int] = None
    linebreak_chunk_size: Optional[int] = None
    md5_chunk_size: Optional[int] = None
    spool_max_size: Optional[int] = None
    min_block_extent: Optional[int] = None
    encoding: Optional[str] = None
    data_matrix_header: Optional[str] = None


class UserStatisticsConfig(ArrayDataBaseModel):
    """User-facing statistics config."""
    sampled_rows: Optional[list[int]] = None
    benford_subclass_pattern: Optional[str] = None
    capture_intensity_vector: Optional[bool] = None


class UserOutputConfig(ArrayDataBaseModel):
    """User-facing output config."""
    null_token: Optional[str] = None
    suffix: Optional[str] = None
    sort_rows: Optional[bool] = None
    sort_run_rows: Optional[int] = None


class UserPipelineConfig(ArrayDataBaseModel):
    """User-facing batch config."""
    input_dir: Optional[str] = None
    output_dir: Optional[str] = None
    data_type: Optional[str] = None
    workers: Optional[int] = None
    contract_policy: Optional[str] = None
    file_patterns: Optional[list[str]] = None


class UserConfig(ArrayDataBaseModel):
    """User-facing configuration schema.

    Usage
    -----
        user_cfg = UserConfig(
            output_dir="/data/normalized",
            data_type="raw",
            max_header_lines=2000,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Batch settings (flat aliases)
    input_dir: Optional[str] = Field(None, alias="INPUT_DIR")
    output_dir: Optional[str] = Field(None, alias="OUTPUT_DIR")
    data_type: Optional[Literal["raw", "normalized", "transformed", "measured_data_matrix", "EXP"]] = Field(
        None, alias="DATA_TYPE"
    )
    workers: Optional[int] = Field(None, alias="WORKERS")
    contract_policy: Optional[str] = Field(None, alias="CONTRACT_POLICY")

    # Parser settings (flat aliases)
    max_header_lines: Optional[int] = Field(None, alias="MAX_HEADER_LINES")
    encoding: Optional[str] = Field(None, alias="ENCODING")
    null_token: Optional[str] = Field(None, alias="NULL_TOKEN")
    log_level: Optional[str] = Field(None, alias="LOG_LEVEL")

    # Lookup tables; entries are merged over the bundled defaults
    formats: Optional[dict[str, list[str]]] = Field(None, alias="FORMATS")
    ignored_qts: Optional[list[str]] = Field(None, alias="IGNORED_QTS")
    quantitation_types: Optional[dict[str, dict[str, dict[str, Any]]]] = Field(
        None, alias="QUANTITATION_TYPES"
    )

    # Nested overrides (advanced users)
    parser: Optional[UserParserConfig] = None
    statistics: Optional[UserStatisticsConfig] = None
    output: Optional[UserOutputConfig] = None
    pipeline: Optional[UserPipelineConfig] = None

    model_config = ArrayDataBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v):
        """Accept 'Raw', ' NORMALIZED ' and friends; EXP stays upper case."""
        if isinstance(v, str):
            v = v.strip()
            return "EXP" if v.upper() == "EXP" else v.lower()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    @field_validator("contract_policy", mode="before")
    @classmethod
    def normalize_contract_policy(cls, v):
        """Accept 'Skip_File' or 'skip-file'."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.formats is not None:
            overrides["formats"] = self.formats
        if self.ignored_qts is not None:
            overrides["ignored_qts"] = self.ignored_qts
        if self.quantitation_types is not None:
            overrides["quantitation_types"] = self.quantitation_types

        # Pipeline section
        pipeline = {}
        if self.input_dir is not None:
            pipeline["input_dir"] = str(self.input_dir)
        if self.output_dir is not None:
            pipeline["output_dir"] = str(self.output_dir)
        if self.data_type is not None:
            pipeline["data_type"] = self.data_type
        if self.workers is not None:
            pipeline["workers"] = self.workers
        if self.contract_policy is not None:
            pipeline["contract_policy"] = self.contract_policy
        if self.pipeline is not None:
            pipeline.update(self.pipeline.model_dump(exclude_none=True))
        if pipeline:
            overrides["pipeline"] = pipeline

        # Parser section
        parser = {}
        if self.max_header_lines is not None:
            parser["max_header_lines"] = self.max_header_lines
        if self.encoding is not None:
            parser["encoding"] = self.encoding
        if self.parser is not None:
            parser.update(self.parser.model_dump(exclude_none=True))
        if parser:
            overrides["parser"] = parser

        # Output section
        output = {}
        if self.null_token is not None:
            output["null_token"] = self.null_token
        if self.output is not None:
            output.update(self.output.model_dump(exclude_none=True))
        if output:
            overrides["output"] = output

        if self.statistics is not None:
            statistics = self.statistics.model_dump(exclude_none=True)
            if statistics:
                overrides["statistics"] = statistics

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
