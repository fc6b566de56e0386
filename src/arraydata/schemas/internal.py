"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully
validated, frozen, and carries explicit values for everything the parsers
read. Heading tables, ignored QTs and QT dictionaries are threaded through
constructors from here; the parsers never consult module-level state.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict, field_validator
from arraydata.schemas.base import ArrayDataBaseModel
from arraydata.schemas.param import DataTypeName, LogLevel, QuantitationType
from arraydata.datafile.types import FormatType
from arraydata.contracts.failure import FailurePolicy


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalParserConfig(ArrayDataBaseModel):
    """Runtime parser limits."""
    max_header_lines: int
    linebreak_chunk_size: int
    md5_chunk_size: int
    spool_max_size: int
    min_block_extent: int
    encoding: str
    data_matrix_header: Literal["auto", "mage_tab", "single"]


class InternalStatisticsConfig(ArrayDataBaseModel):
    """Runtime statistics settings."""
    sampled_rows: list[int]
    benford_subclass_pattern: str
    capture_intensity_vector: bool


class InternalOutputConfig(ArrayDataBaseModel):
    """Runtime output configuration."""
    null_token: str
    suffix: str
    sort_rows: bool
    sort_run_rows: int = Field(ge=1)


class InternalPipelineConfig(ArrayDataBaseModel):
    """Runtime batch configuration.

    Note: input_dir and output_dir may stay None when files are handed to
    the orchestrator directly; the CLI validates them before a batch run.
    """
    input_dir: Optional[str]
    output_dir: Optional[str]
    data_type: DataTypeName
    workers: int = Field(ge=1, le=64)
    contract_policy: FailurePolicy
    file_patterns: list[str]
    tracker_filename: str
    summary_filename: str


class InternalLoggingConfig(ArrayDataBaseModel):
    """Runtime logging configuration."""
    level: LogLevel


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(ArrayDataBaseModel):
    """Authoritative runtime configuration.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.max_lines = config.parser.max_header_lines  # NOT .get()
            self.formats = config.formats

    Rules
    -----
    - NO .get() calls on config
    - NO fallback defaults
    - NO validation in runtime code

    All of that happens during config resolution.
    """

    formats: dict[str, list[str]]
    fgem_formats: list[str]
    ignored_qts: list[str]
    quantitation_types: dict[str, dict[str, QuantitationType]]
    parser: InternalParserConfig
    statistics: InternalStatisticsConfig
    output: InternalOutputConfig
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

    @field_validator("formats")
    @classmethod
    def formats_have_transforms(cls, v):
        """Every configured layout must name a known format type."""
        known = {f.value for f in FormatType}
        unknown = [name for name in v if name not in known]
        if unknown:
            raise ValueError(f"No transform for format(s): {unknown}")
        return v
