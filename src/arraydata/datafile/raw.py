"""RawDataFile: one data file moving through resolution, rewrite and statistics.

A RawDataFile owns the open source handle and every temporary spool
produced by coordinate transforms. Use it as a context manager so both are
released on the error path as well:

    with RawDataFile(path, config, data_type="raw") as datafile:
        result = datafile.parse(quantitation_types)

State changes in a fixed order: the header resolves the format and index
columns, a transform may rewrite the rows into canonical form, and the
statistics pass fills ``data_metrics``.
"""

import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from arraydata.contracts import (
    assert_header_resolved,
    assert_heading_alignment,
    assert_metrics_shape,
)
from arraydata.datafile import headers, statistics, transformers
from arraydata.datafile.linebreaks import LineReader, detect_linebreak, line_format_name
from arraydata.datafile.rewrite import strip_and_sort
from arraydata.datafile.types import DataType, FormatType
from arraydata.errors import HeadingCountMismatch, UnrecognizedFormat

logger = logging.getLogger(__name__)

__all__ = ['RawDataFile', 'ParseResult']

UNRECOGNIZED_HEADINGS = "Unable to detect supported data file column headings.\n"

_HYB_REF = re.compile(r'(?i)Hybridi[sz]ation')
_SCAN_REF = re.compile(r'(?i)Scan')
_NORM_REF = re.compile(r'(?i)Normali[sz]ation')
_EXP_SECTION = re.compile(r'\A\[\s*(.*?)\s*\]')


@dataclass
class ParseResult:
    """Structured outcome handed to downstream checks."""
    feature_coords: List[str]
    error_text: str
    format_type: str
    data_metrics: Dict[str, dict]
    qt_type: Optional[str]


class RawDataFile:
    """A single tab-delimited data file (or exported Affymetrix text).

    Parameters
    ----------
    path : str or Path
        Location of the file. Also used as its identity in messages.
    config : InternalConfig
        Resolved runtime configuration.
    data_type : str, optional
        Declared role: raw, normalized, transformed, measured_data_matrix
        or EXP. Defaults to ``config.pipeline.data_type``.
    name : str, optional
        Display name; defaults to the path basename.
    array_design_id : str, optional
        Array design accession carried through to results.
    stream : binary file object, optional
        Read from this stream instead of opening ``path``. The caller
        keeps ownership.
    format_type : str, optional
        Preset format (``Affymetrix`` for exported binary data). Skips
        header resolution.
    headings : list of str, optional
        Column headings matching a preset format.

    Notes
    -----
    Not thread-safe. Create one instance per file and per worker.
    """

    def __init__(self, path, config, data_type: Optional[str] = None, name: Optional[str] = None,
                 array_design_id: Optional[str] = None, stream=None,
                 format_type: Optional[str] = None, headings: Optional[List[str]] = None):
        self.path = Path(path)
        self.name = name or self.path.name
        self.config = config
        self.data_type = DataType(data_type or config.pipeline.data_type).value
        self.array_design_id = array_design_id
        self.encoding = config.parser.encoding

        self._owns_source = stream is None
        self._source = open(self.path, "rb") if stream is None else stream
        self._handles = []
        self._linebreak = None
        self._md5 = None
        self._preset_format = format_type
        self._preset_headings = list(headings or [])
        self.reader = None

        self.format_type = FormatType.UNKNOWN.value
        self.index_columns: List[int] = []
        self.column_headings: List[str] = []
        self.heading_qts: List[str] = []
        self.heading_hybs: List[List[str]] = []
        self.sdrf_id_column: Optional[str] = None

        self.row_count = 0
        self.not_null = 0
        self.test_data_line = ""
        self.data_metrics: Dict[str, dict] = {}
        self.qt_type: Optional[str] = None
        self.fail_columns: List[str] = []
        self.fail_hybs: List[str] = []
        self.warnings: List[str] = []
        self.layout_errors: List[str] = []
        self.intensity_vector: Dict[str, float] = {}
        self.exp_data: Dict[str, dict] = {}

    # ------------------------------------------------------------------
    # Resource handling
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        """Release temporary spools and, if owned, the source handle."""
        for handle in self._handles:
            handle.close()
        self._handles = []
        if self._owns_source and not self._source.closed:
            self._source.close()

    def new_spool(self):
        """A private temporary file for rewritten rows."""
        spool = tempfile.SpooledTemporaryFile(max_size=self.config.parser.spool_max_size, mode="w+b")
        self._handles.append(spool)
        return spool

    def use_stream(self, stream):
        """Read subsequent rows from ``stream``, starting at its beginning."""
        stream.seek(0)
        self.reader = LineReader(stream, self.linebreak_type, self.encoding)

    def use_path(self, path):
        """Read from a file written with a heading line; skip that line."""
        handle = open(path, "rb")
        self._handles.append(handle)
        self.use_stream(handle)
        self.reader.readline()

    def write_line(self, stream, line: str):
        stream.write((line + self.linebreak_type).encode(self.encoding))

    def write_fields(self, stream, fields):
        self.write_line(stream, "\t".join("" if f is None else str(f) for f in fields))

    def warn(self, message: str):
        """Record an advisory problem."""
        logger.warning(message)
        self.warnings.append(message)

    def add_error(self, message: str):
        """Record a layout problem; it is reported in the parse error text."""
        logger.error("%s: %s", self.name, message)
        self.layout_errors.append(message + "\n")

    # ------------------------------------------------------------------
    # File properties
    # ------------------------------------------------------------------

    @property
    def linebreak_type(self) -> str:
        """Detected line terminator; raises AmbiguousLinebreak."""
        if self._linebreak is None:
            self._linebreak = detect_linebreak(
                self._source, self.config.parser.linebreak_chunk_size, self.name
            )
        return self._linebreak

    @property
    def line_format(self) -> str:
        return line_format_name(self.linebreak_type)

    @property
    def md5_digest(self) -> str:
        """MD5 of the source bytes. Does not move any read position."""
        if self._md5 is None:
            self._md5 = statistics.file_md5(self._source, self.config.parser.md5_chunk_size)
        return self._md5

    @property
    def is_matrix(self) -> bool:
        return DataType(self.data_type).is_matrix

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def set_layout(self, format_type, index_columns, headings, heading_qts=None):
        """Replace format, index columns and headings together.

        ``heading_qts`` defaults to the non-index headings.
        """
        self.format_type = FormatType(format_type).value
        self.index_columns = list(index_columns)
        self.column_headings = list(headings)
        if heading_qts is None:
            heading_qts = headers.strip_discards(self.index_columns, self.column_headings)
        self.heading_qts = list(heading_qts)

    def resolve_header(self, fgem_only: bool = False):
        """Resolve headings from the current reader position."""
        resolution = headers.resolve_headings(
            self.reader,
            self.config.formats,
            self.config.fgem_formats,
            fgem_only=fgem_only,
            max_lines=self.config.parser.max_header_lines,
        )
        self.set_layout(resolution.format_type, resolution.index_columns, resolution.headings)
        return resolution

    def _rewind_source(self):
        self.use_stream(self._source)

    def parse_header(self) -> str:
        """Identify the file layout from its header.

        Combined data matrices use the two-line MAGE-TAB header when
        configured (or detected, in ``auto`` mode); otherwise their
        ``QT(hyb)`` headings are split after the index column is found.
        An unrecognized layout leaves the format ``Unknown`` with no index.

        Returns
        -------
        str
            The format type.
        """
        self._rewind_source()

        if self._preset_format:
            self.set_layout(self._preset_format, [], self._preset_headings)
            return self.format_type

        try:
            if self.is_matrix:
                self._parse_matrix_header()
            else:
                self.resolve_header()
        except UnrecognizedFormat as err:
            logger.info("%s: %s", self.name, err)
            self.set_layout(FormatType.UNKNOWN.value, [], [])
            return self.format_type

        assert_header_resolved(self.format_type, self.index_columns, self.column_headings)
        return self.format_type

    def _parse_matrix_header(self):
        mode = self.config.parser.data_matrix_header
        if mode == "mage_tab" or (mode == "auto" and headers.looks_like_mage_tab(self.reader)):
            resolution = headers.parse_data_matrix_header(self.reader)
            self.set_layout(resolution.format_type, resolution.index_columns,
                            resolution.headings, heading_qts=resolution.heading_qts)
            self.heading_hybs = resolution.heading_hybs
            self.sdrf_id_column = resolution.sdrf_id_column
            if resolution.format_type == FormatType.UNKNOWN.value:
                raise UnrecognizedFormat(resolution.lines_scanned)
            return

        self.resolve_header(fgem_only=self.data_type == DataType.TRANSFORMED.value)
        new_headings, qts, hybs = headers.parse_fgem_headings(self.column_headings, self.index_columns)
        assert_heading_alignment(qts, hybs)
        self.set_layout(self.format_type, self.index_columns, new_headings, heading_qts=qts)
        self.heading_hybs = hybs

    # ------------------------------------------------------------------
    # Rewrites
    # ------------------------------------------------------------------

    def fix_known_text_format(self) -> bool:
        return transformers.fix_known_text_format(self)

    def is_illumina_fgem(self) -> bool:
        """Illumina exports repeating ``hyb.QT`` headings are data matrices."""
        if self.format_type != FormatType.ILLUMINA.value:
            raise ValueError(f"is_illumina_fgem() called on {self.format_type} file {self.name}")
        return headers.is_illumina_fgem(self.column_headings)

    def rewrite_illumina_as_fgem(self):
        """Rewrite a multi-hyb Illumina export as an FGEM data matrix."""
        if not self.is_illumina_fgem():
            raise ValueError(f"{self.name} is not an Illumina multi-hyb data matrix")
        self.use_stream(transformers.fix_illumina(self))

        new_headings, qts, hybs = [], [], []
        for heading in self.column_headings:
            parts = headers.split_illumina_heading(heading)
            if parts:
                hyb, qt = parts
                new_headings.append(qt)
                qts.append(qt)
                hybs.append([hyb])
            else:
                new_headings.append(heading)
        assert_heading_alignment(qts, hybs)
        self.set_layout(FormatType.FGEM.value, self.index_columns, new_headings, heading_qts=qts)
        self.heading_hybs = hybs
        if self.data_type == DataType.RAW.value:
            self.data_type = DataType.MEASURED_DATA_MATRIX.value
        else:
            self.data_type = DataType.TRANSFORMED.value
        self.sdrf_id_column = "Hybridization Name"

    def strip_and_sort(self, output_path, keep_headings=None) -> int:
        """Write the canonical table and continue reading from it."""
        return strip_and_sort(
            self, output_path, keep_headings,
            null_token=self.config.output.null_token,
            sort=self.config.output.sort_rows,
            run_size=self.config.output.sort_run_rows,
            spool_max_size=self.config.parser.spool_max_size,
        )

    # ------------------------------------------------------------------
    # Checks and statistics
    # ------------------------------------------------------------------

    def is_ignored_qt(self, qt: str) -> bool:
        return any(headers.heading_regex(p).match(qt) for p in self.config.ignored_qts)

    def check_column_headings(self, quantitation_types=None, hyb_ids=None) -> str:
        """Classify the software and collect unrecognized headings and hyb ids.

        Raises
        ------
        HeadingCountMismatch
            For data matrices whose QT and hyb column counts differ.
        """
        if quantitation_types is None:
            quantitation_types = self.config.quantitation_types
        hyb_ids = hyb_ids or set()

        consensus = statistics.derive_consensus_software(
            self.column_headings, self.index_columns, quantitation_types, self.name
        )
        self.qt_type = consensus.software
        self.data_metrics = consensus.data_metrics

        failed = dict.fromkeys(
            h for h in self.heading_qts
            if not self.is_ignored_qt(h) and h not in self.data_metrics
        )
        self.fail_columns = list(failed)

        if self.is_matrix:
            missing = dict.fromkeys(i for column in self.heading_hybs for i in column if i not in hyb_ids)
            self.fail_hybs = list(missing)
            if len(self.heading_qts) != len(self.heading_hybs):
                raise HeadingCountMismatch(self.name, len(self.heading_qts), len(self.heading_hybs))

        return consensus.error_text

    def parse_datarows(self):
        """Run the statistics pass over the remaining rows."""
        affymetrix = self.format_type == FormatType.AFFYMETRIX.value
        stats_cfg = self.config.statistics
        result = statistics.parse_datarows(
            self.reader,
            self.column_headings,
            [] if affymetrix else self.index_columns,
            self.data_metrics,
            affymetrix=affymetrix,
            sampled_rows=stats_cfg.sampled_rows,
            benford_pattern=stats_cfg.benford_subclass_pattern,
            capture_intensity_vector=stats_cfg.capture_intensity_vector,
            name=str(self.path),
        )
        self.row_count += result.row_count
        self.not_null += result.not_null
        self.test_data_line += result.test_data_line
        self.warnings.extend(result.warnings)
        self.intensity_vector.update(result.intensity_vector)
        assert_metrics_shape(self.data_metrics)
        return result

    def _select_sdrf_ids(self, hyb_ids, norm_ids, scan_ids):
        id_type = self.sdrf_id_column
        if not id_type:
            return set(hyb_ids) | set(norm_ids), ""
        if _HYB_REF.search(id_type):
            return set(hyb_ids), ""
        if _SCAN_REF.search(id_type):
            return set(scan_ids), ""
        if _NORM_REF.search(id_type):
            return set(norm_ids), ""
        return set(), f'ID REF column "{id_type}" not recognized\n'

    def parse(self, quantitation_types=None, hyb_ids=(), norm_ids=(), scan_ids=(),
              output_path=None) -> ParseResult:
        """Resolve, rewrite and measure the whole file.

        Parameters
        ----------
        quantitation_types : dict, optional
            Software -> QT dictionary; defaults to the configured table.
        hyb_ids, norm_ids, scan_ids : iterable of str
            Identifiers known from the sample description, used to check
            data matrix column ids.
        output_path : str or Path, optional
            When given, the canonical table is written here after the
            coordinate rewrite and the statistics pass reads it back.

        Returns
        -------
        ParseResult
            Feature coordinates and error text are empty-safe; structural
            problems that stop the statistics pass are reported in
            ``error_text``.

        Raises
        ------
        AmbiguousLinebreak
            If the line terminator cannot be determined.
        HeadingCountMismatch
            If a data matrix has unequal QT and hyb column counts.
        """
        if self.data_type == DataType.EXP.value:
            self.parse_exp_file()
            return ParseResult([], "", self.format_type, {}, None)

        self.parse_header()
        error_text = ""
        if not self.index_columns and self.format_type != FormatType.AFFYMETRIX.value:
            error_text += UNRECOGNIZED_HEADINGS

        if self.format_type == FormatType.ILLUMINA.value and self.is_illumina_fgem():
            self.rewrite_illumina_as_fgem()
        else:
            self.fix_known_text_format()

        known_ids = set()
        if self.is_matrix:
            known_ids, id_error = self._select_sdrf_ids(hyb_ids, norm_ids, scan_ids)
            error_text += id_error

        feature_coords = []
        if not error_text:
            if output_path is not None:
                self.strip_and_sort(output_path)
            column_error = self.check_column_headings(quantitation_types, known_ids)
            rows = self.parse_datarows()
            feature_coords = rows.feature_coords
            error_text += column_error + rows.error_text
        error_text += "".join(self.layout_errors)

        logger.info("Parsed %s: format %s, %s rows, software %s",
                    self.name, self.format_type, self.row_count, self.qt_type)
        return ParseResult(feature_coords, error_text, self.format_type, self.data_metrics, self.qt_type)

    def parse_exp_file(self) -> Dict[str, dict]:
        """Read an Affymetrix EXP text file into ``{section: {key: value}}``."""
        self._rewind_source()
        section = "header"
        exp_data: Dict[str, dict] = {}
        for line in self.reader:
            match = _EXP_SECTION.match(line)
            if match:
                section = match.group(1)
                continue
            fields = headers.split_fields(line, keep_trailing=False)
            if not fields or not fields[0]:
                continue
            if len(fields) == 2:
                exp_data.setdefault(section, {})[fields[0]] = fields[1]
        self.exp_data = exp_data
        self.format_type = FormatType.AFFYMETRIX.value
        self.data_type = DataType.EXP.value
        return exp_data

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def percent_null(self) -> str:
        return statistics.percent_null(self.heading_qts, self.data_metrics, self.row_count, self.not_null)

    def duplicate_features(self, feature_coords) -> Dict[str, int]:
        return statistics.find_duplicates(feature_coords)

    def duplicate_headings(self) -> Dict[str, int]:
        return statistics.find_duplicates(self.column_headings)
