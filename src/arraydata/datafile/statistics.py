"""Streaming statistics and validation over normalized data rows.

The pass is single-threaded and row-streamed. For every column whose
heading is a known quantitation type it tracks running min/max, an error
count per problem message, and, for Signal subclasses, a Benford
leading-digit histogram.
"""

import copy
import hashlib
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from arraydata.datafile.headers import split_fields

logger = logging.getLogger(__name__)

__all__ = [
    'looks_like_number',
    'benford_digit',
    'ConsensusResult',
    'derive_consensus_software',
    'DatarowResult',
    'parse_datarows',
    'find_duplicates',
    'percent_null',
    'file_md5',
]

NULL_IN_NUMERIC = 'Null in numeric data field'
TEXT_IN_NUMERIC = 'Text in numeric data field'
BOOLEAN_NOT_01 = 'Boolean value not 0 or 1'
FLOAT_IN_NON_FLOAT = 'Floats in non-float data field'

_NUMBER = re.compile(
    r'\A\s*[-+]?(?:\d+\.?\d*(?:[eE][-+]?\d+)?|\.\d+(?:[eE][-+]?\d+)?)\s*\Z'
)
_BENFORD_STRIP = re.compile(r'\A\s*[0.-]*')


def looks_like_number(value) -> bool:
    """True for decimal and exponent notation, with optional sign."""
    return value is not None and bool(_NUMBER.match(value))


def benford_digit(value: str) -> int:
    """Leading significant digit of a numeric string; 0 when there is none."""
    stripped = _BENFORD_STRIP.sub('', value, count=1)
    first = stripped[:1]
    return int(first) if first.isdigit() else 0


@dataclass
class ConsensusResult:
    """Outcome of the software classification."""
    software: str
    data_metrics: Dict[str, dict]
    error_text: str = ""
    counts: Dict[str, int] = field(default_factory=dict)


def derive_consensus_software(headings: List[str], index_columns: List[int],
                              quantitation_types: dict, name: str = "") -> ConsensusResult:
    """Pick the QT dictionary that best explains the column headings.

    Each software scores one point per non-index heading (duplicates
    included) found in its dictionary. The first software to strictly
    beat the running best wins. Another software with the same non-zero
    score makes the file ``Ambiguous``, unless headings unknown to every
    dictionary outnumber the recognized ones, in which case a few common
    headings such as ``Flags`` should not force ambiguity and the file is
    left ``Unknown``.

    Parameters
    ----------
    headings : list of str
        Column headings of the file.
    index_columns : list of int
        Positions excluded from scoring.
    quantitation_types : dict
        Software name -> {QT name -> QuantitationType or dict}.
    name : str, optional
        File name for the ambiguity warning.

    Returns
    -------
    ConsensusResult
        ``data_metrics`` is a deep copy of the winning dictionary as plain
        dicts, or empty for Unknown/Ambiguous.
    """
    index_headings = {headings[i] for i in index_columns if i < len(headings)}
    file_qts = [h for h in headings if h not in index_headings]

    consensus = 'Unknown'
    counts = {software: 0 for software in quantitation_types}
    counts[consensus] = 0
    recognized = set()

    for software, qts in quantitation_types.items():
        for qt in file_qts:
            if qt in qts:
                counts[software] += 1
                recognized.add(qt)
        if counts[software] > counts[consensus]:
            consensus = software

    for software in quantitation_types:
        if (counts[software] == counts[consensus]
                and software != consensus
                and counts[consensus]):
            consensus = 'Ambiguous'
            break

    error_text = ""
    if consensus == 'Ambiguous':
        unknown = len(file_qts) - len(recognized)
        if unknown > len(recognized):
            consensus = 'Unknown'
        else:
            logger.warning("Ambiguous software type for file %s", name)
            error_text = "Ambiguous QuantitationTypes; unable to determine software type.\n"

    known = quantitation_types.get(consensus, {})
    data_metrics = {
        qt: (entry.model_dump() if hasattr(entry, "model_dump") else copy.deepcopy(dict(entry)))
        for qt, entry in known.items()
    }
    return ConsensusResult(consensus, data_metrics, error_text, counts)


@dataclass
class DatarowResult:
    """Accumulated output of the statistics pass."""
    feature_coords: List[str] = field(default_factory=list)
    error_text: str = ""
    row_count: int = 0
    not_null: int = 0
    test_data_line: str = ""
    warnings: List[str] = field(default_factory=list)
    intensity_vector: Dict[str, float] = field(default_factory=dict)


def _init_metrics(data_metrics, benford_regex):
    for metric in data_metrics.values():
        metric["min"] = None
        metric["max"] = None
        metric.setdefault("errors", {})
        subclass = metric.get("subclass")
        if subclass and benford_regex.search(subclass):
            metric["benford"] = np.zeros(10, dtype=np.int64)


def _count_error(metric, message):
    errors = metric["errors"]
    errors[message] = errors.get(message, 0) + 1


def _measured_signal(measured):
    channels = sorted(measured, key=str)
    if len(channels) == 2:
        numerator, denominator = channels
        if measured[denominator]:
            return measured[numerator] / measured[denominator]
        return float("nan")
    return sum(measured.values()) / len(channels)


def parse_datarows(reader, headings: List[str], index_columns: List[int],
                   data_metrics: Dict[str, dict], *, affymetrix: bool = False,
                   sampled_rows=(), benford_pattern: str = "Signal",
                   capture_intensity_vector: bool = False, name: str = "") -> DatarowResult:
    """Stream data rows and fill ``data_metrics`` in place.

    Parameters
    ----------
    reader : LineReader
        Positioned on the first data row.
    headings : list of str
        Column headings; columns beyond them are reported once each.
    index_columns : list of int
        Coordinate or identifier columns, joined with ``.`` per row.
    data_metrics : dict
        QT name -> metric dict from :func:`derive_consensus_software`.
    affymetrix : bool
        Exported CEL text: stop at the first blank line, skip the
        column checks and coordinates.
    sampled_rows : iterable of int
        1-based row numbers whose MD5 joins the test-data vector.
    benford_pattern : str
        Subclass regex that enables the leading-digit histogram.
    capture_intensity_vector : bool
        Keep a per-feature measured signal (ratio for two channels).
    name : str
        File name used in warnings.

    Returns
    -------
    DatarowResult
    """
    result = DatarowResult()
    sampled = set(sampled_rows)
    benford_regex = re.compile(benford_pattern)
    _init_metrics(data_metrics, benford_regex)
    bad_columns = set()
    errors = []

    for line in reader:
        if affymetrix and not line.strip():
            break

        result.row_count += 1
        if result.row_count in sampled:
            result.test_data_line += hashlib.md5(line.encode("latin-1", "replace")).hexdigest()

        if not line.strip():
            message = "Warning: Blank line at data row %s in file %s" % (result.row_count, name)
            logger.warning(message)
            result.warnings.append(message)
            continue

        if affymetrix:
            continue

        fields = split_fields(line)
        if index_columns:
            coords = [fields[i].strip() if i < len(fields) else "" for i in index_columns]
            result.feature_coords.append(".".join(coords))

        measured = {}
        for colno, value in enumerate(fields):
            if colno in bad_columns:
                continue
            if colno >= len(headings):
                errors.append("ERROR: data in column %s has no column heading!\n" % (colno + 1))
                bad_columns.add(colno)
                continue

            metric = data_metrics.get(headings[colno])
            if metric is None:
                continue

            datatype = metric.get("datatype")
            if datatype == "string_datatype":
                result.not_null += 1
                continue

            if not looks_like_number(value):
                _count_error(metric, NULL_IN_NUMERIC if value == "" else TEXT_IN_NUMERIC)
                continue

            number = float(value)
            if not math.isfinite(number):
                # Exponent overflow
                _count_error(metric, TEXT_IN_NUMERIC)
                continue

            if metric["min"] is None:
                metric["min"] = metric["max"] = number
            elif number < metric["min"]:
                metric["min"] = number
            elif number > metric["max"]:
                metric["max"] = number

            if datatype == "boolean" and number not in (0, 1):
                _count_error(metric, BOOLEAN_NOT_01)

            if number == 0:
                # Zeroes count as nulls
                continue

            result.not_null += 1
            if not number.is_integer() and datatype != "float":
                _count_error(metric, FLOAT_IN_NON_FLOAT)

            if "benford" in metric:
                metric["benford"][benford_digit(value)] += 1
                if capture_intensity_vector and metric.get("subclass") == "MeasuredSignal":
                    channel = metric.get("channel")
                    measured[channel] = measured.get(channel, 0.0) + (
                        -number if metric.get("is_background") else number
                    )

        if capture_intensity_vector and measured and index_columns:
            result.intensity_vector[result.feature_coords[-1]] = _measured_signal(measured)

    for metric in data_metrics.values():
        if "benford" in metric:
            metric["benford"] = metric["benford"].tolist()

    result.error_text = "".join(errors)
    return result


def find_duplicates(values) -> Dict[str, int]:
    """Values occurring more than once, with their occurrence counts."""
    return {value: n for value, n in Counter(values).items() if n > 1}


def percent_null(heading_qts: List[str], data_metrics: dict, row_count: int, not_null: int) -> str:
    """Share of empty or zero cells among recognized QT columns.

    Returns
    -------
    str
        Percentage formatted ``%.5f``, or ``N/A`` when nothing was counted.
    """
    columns = sum(1 for qt in heading_qts if qt in data_metrics)
    if columns and row_count and not_null:
        cells = columns * row_count
        return "%.5f" % (100 * (cells - not_null) / cells)
    return "N/A"


def file_md5(stream, chunk_size: int = 65536) -> str:
    """Hex MD5 of a whole binary stream; the read position is restored."""
    pos = stream.tell()
    digest = hashlib.md5()
    try:
        stream.seek(0)
        for chunk in iter(lambda: stream.read(chunk_size), b""):
            digest.update(chunk)
    finally:
        stream.seek(pos)
    return digest.hexdigest()
