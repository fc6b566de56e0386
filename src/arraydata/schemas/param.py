"""ParamConfig: Expert defaults for arraydata.

This module defines the complete default configuration: the vendor
column-heading tables, the ignored quantitation types, the per-software
quantitation type dictionaries and every tunable parser limit. No runtime
code defines fallback values; this is the single source of truth.

Runtime code NEVER reads from ParamConfig directly - it only receives
InternalConfig.
"""

import re
from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from arraydata.schemas.base import ArrayDataBaseModel
from arraydata.schemas import defaults
from arraydata.contracts.failure import FailurePolicy


DataTypeName = Literal["raw", "normalized", "transformed", "measured_data_matrix", "EXP"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Nested Configuration Models
# =============================================================================

class QuantitationType(ArrayDataBaseModel):
    """Description of one vendor quantitation type column."""
    datatype: Literal["float", "integer", "boolean", "string_datatype"]
    subclass: Optional[str] = None
    channel: Optional[str] = None
    is_background: bool = False
    scale: Optional[str] = None


class ParserConfig(ArrayDataBaseModel):
    """Text and binary parser limits."""
    max_header_lines: int = Field(1000, ge=1, description="Header lines scanned before giving up")
    linebreak_chunk_size: int = Field(3_000_000, ge=1024, description="Bytes sampled for linebreak detection")
    md5_chunk_size: int = Field(65536, ge=1, description="Read size for whole-file digests")
    spool_max_size: int = Field(8 * 1024 * 1024, ge=0, description="In-memory size of the rewrite spool")
    min_block_extent: int = Field(10, ge=0, description="Block deltas at or below are left out of averages")
    encoding: str = "latin-1"
    data_matrix_header: Literal["auto", "mage_tab", "single"] = "auto"

    @field_validator("encoding", mode="before")
    @classmethod
    def normalize_encoding(cls, v):
        """Lowercase codec names."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class StatisticsConfig(ArrayDataBaseModel):
    """Streaming statistics pass settings."""
    sampled_rows: list[int] = Field(default_factory=lambda: list(defaults.SAMPLED_ROWS))
    benford_subclass_pattern: str = "Signal"
    capture_intensity_vector: bool = False

    @field_validator("sampled_rows")
    @classmethod
    def sort_sampled_rows(cls, v):
        """Row numbers are 1-based and kept sorted without repeats."""
        if any(n < 1 for n in v):
            raise ValueError("sampled_rows are 1-based row numbers")
        return sorted(set(v))


class OutputConfig(ArrayDataBaseModel):
    """Canonical output file configuration."""
    null_token: str = "null"
    suffix: str = ".normalized.txt"
    sort_rows: bool = True
    sort_run_rows: int = Field(100_000, ge=1, description="Rows held in memory per sorted run")


class PipelineConfig(ArrayDataBaseModel):
    """Batch processing configuration."""
    input_dir: Optional[str] = None
    output_dir: Optional[str] = None
    data_type: DataTypeName = "raw"
    workers: int = Field(4, ge=1, le=64)
    contract_policy: FailurePolicy = Field(
        FailurePolicy.FAIL_FAST, description="Stop the batch or fail only the file on a contract violation"
    )
    file_patterns: list[str] = Field(default_factory=lambda: ["*.txt", "*.gpr", "*.tsv", "*.CEL", "*.CHP", "*.EXP"])
    tracker_filename: str = "arraydata_files.db"
    summary_filename: str = "arraydata_summary.tsv"


class LoggingConfig(ArrayDataBaseModel):
    """Logging configuration."""
    level: LogLevel = "INFO"

    @field_validator("level", mode="before")
    @classmethod
    def uppercase_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v


def _check_patterns(patterns):
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid heading pattern {pattern!r}: {exc}") from exc
    return patterns


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(ArrayDataBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    formats: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in defaults.FORMAT_HEADINGS.items()}
    )
    fgem_formats: list[str] = Field(default_factory=lambda: list(defaults.FGEM_FORMATS))
    ignored_qts: list[str] = Field(default_factory=lambda: list(defaults.IGNORED_QTS))
    quantitation_types: dict[str, dict[str, QuantitationType]] = Field(
        default_factory=lambda: {
            software: {name: QuantitationType(**qt) for name, qt in table.items()}
            for software, table in defaults.QUANTITATION_TYPES.items()
        }
    )
    parser: ParserConfig = Field(default_factory=ParserConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("formats")
    @classmethod
    def generic_first(cls, v):
        """Generic must be tried before any vendor layout."""
        if not v or next(iter(v)) != "Generic":
            raise ValueError("formats must list 'Generic' first")
        for patterns in v.values():
            _check_patterns(patterns)
        return v

    @field_validator("ignored_qts")
    @classmethod
    def compile_ignored(cls, v):
        return _check_patterns(v)

    @model_validator(mode="after")
    def fgem_formats_are_known(self):
        missing = [name for name in self.fgem_formats if name not in self.formats]
        if missing:
            raise ValueError(f"fgem_formats not present in formats: {missing}")
        return self
