"""Column heading resolution for tab-delimited data files.

The resolver walks header lines and compares each line's tab-split fields
against an ordered table of ``format name -> heading patterns``. The first
format whose patterns are all present wins, and the positions of the
matching columns become the file's index columns.

Two header layouts bypass the pattern table:

- single-line FGEM headings of the form ``QT(hyb1)(hyb2)``, whose index
  column is still found through the table;
- two-line MAGE-TAB data matrix headers (SDRF reference row, then design
  element type and QT names).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from arraydata.errors import UnrecognizedFormat
from arraydata.datafile.types import FormatType

logger = logging.getLogger(__name__)

__all__ = [
    'HeaderResolution',
    'strip_heading',
    'split_fields',
    'heading_regex',
    'find_column',
    'resolve_headings',
    'parse_fgem_headings',
    'looks_like_mage_tab',
    'parse_data_matrix_header',
    'is_illumina_fgem',
    'split_illumina_heading',
    'strip_discards',
]

_SURROUNDED = re.compile(r'\A["\s]*(.*?)["\s]*\Z', re.DOTALL)
_FGEM_HEADING = re.compile(r'\A\s*(.*?)\s*\((.*)\)\s*\Z', re.DOTALL)
_ILLUMINA_HEADING = re.compile(r'\A(.*)\.([^.]+)\Z', re.DOTALL)
_SDRF_REF = re.compile(r'(?i)\A\s*(Hybridi[sz]ation|Scan|Normali[sz]ation|Assay)\s*(Name|REF)\b')
_COMPOSITE_REF = re.compile(r'(?i)Composite *Element(?: *REF)?')
_REPORTER_REF = re.compile(r'(?i)Reporter(?: *REF)?')


@dataclass
class HeaderResolution:
    """Outcome of a header scan."""
    format_type: str
    index_columns: List[int]
    headings: List[str]
    lines_scanned: int = 0
    heading_qts: List[str] = field(default_factory=list)
    heading_hybs: List[List[str]] = field(default_factory=list)
    sdrf_id_column: Optional[str] = None


def strip_heading(value: str) -> str:
    """Remove surrounding whitespace and double quotes."""
    return _SURROUNDED.match(value).group(1)


def split_fields(line: str, keep_trailing: bool = True) -> List[str]:
    """Split a data line on tabs.

    With ``keep_trailing=False`` trailing empty fields are dropped, which
    is how the vendor rewrites treat ragged rows.
    """
    if line == "":
        return []
    fields = line.split("\t")
    if not keep_trailing:
        while fields and fields[-1] == "":
            fields.pop()
    return fields


_REGEX_CACHE = {}


def heading_regex(pattern: str):
    """Compile a heading pattern as a whole-field match."""
    compiled = _REGEX_CACHE.get(pattern)
    if compiled is None:
        if pattern == "":
            compiled = re.compile(r'\A\s*\Z')
        else:
            compiled = re.compile(r'\A\s*(?:' + pattern + r')\s*\Z')
        _REGEX_CACHE[pattern] = compiled
    return compiled


def find_column(headings: List[str], pattern: str) -> int:
    """Position of the first heading matching ``pattern``, or -1."""
    regex = heading_regex(pattern)
    for i, heading in enumerate(headings):
        if regex.match(heading):
            return i
    return -1


def strip_discards(index_columns: List[int], headings: List[str]) -> List[str]:
    """Headings that are not index columns, in original order."""
    discard = set(index_columns)
    return [h for i, h in enumerate(headings) if i not in discard]


def _match_format(headings, patterns):
    index = []
    for pattern in patterns:
        column = find_column(headings, pattern)
        if column == -1:
            return None
        index.append(column)
    return index


def resolve_headings(reader, formats: dict, fgem_formats: List[str],
                     fgem_only: bool = False, max_lines: int = 1000) -> HeaderResolution:
    """Scan header lines until a known column heading layout is found.

    Parameters
    ----------
    reader : LineReader
        Positioned where the scan should start. On success it is left on
        the first line after the heading line.
    formats : dict
        Ordered ``format name -> list of heading patterns``.
    fgem_formats : list of str
        Formats tried, first pattern only, when ``fgem_only`` is set.
    fgem_only : bool
        Single-identifier matrices: look for one identifier column only.
    max_lines : int
        Number of lines to scan before giving up.

    Returns
    -------
    HeaderResolution

    Raises
    ------
    UnrecognizedFormat
        If no layout matched within ``max_lines`` lines.
    """
    candidates = formats
    in_field_info = False
    field_index = None
    num_fields = 0
    lines = 0

    for line in reader:
        lines += 1
        headings = [strip_heading(h) for h in split_fields(line)]

        # ImaGene "Field Dimensions" block: several fields force the
        # per-field layout
        if re.search(r'(?i)End Field Dimensions', line):
            in_field_info = False
        if in_field_info and field_index is not None:
            if field_index < len(headings) and headings[field_index]:
                num_fields += 1
        if in_field_info and field_index is None:
            field_index = next((i for i, h in enumerate(headings) if h == "Field"), None)
        if re.search(r'(?i)Begin Field Dimensions', line):
            in_field_info = True
        if num_fields > 1 and FormatType.IMAGENE_FIELDS.value in formats:
            candidates = {FormatType.IMAGENE_FIELDS.value: formats[FormatType.IMAGENE_FIELDS.value]}

        if fgem_only:
            for name in fgem_formats:
                column = find_column(headings, formats[name][0])
                if column != -1:
                    logger.debug("Identifier column %s (%s) on header line %s", column, name, lines)
                    return HeaderResolution(name, [column], headings, lines,
                                            heading_qts=strip_discards([column], headings))
        else:
            for name, patterns in candidates.items():
                if not patterns:
                    continue
                index = _match_format(headings, patterns)
                if index is not None:
                    logger.debug("Matched %s headings on header line %s", name, lines)
                    return HeaderResolution(name, index, headings, lines,
                                            heading_qts=strip_discards(index, headings))

        if lines >= max_lines:
            break

    raise UnrecognizedFormat(lines)


def parse_fgem_headings(headings: List[str], index_columns: List[int]):
    """Split ``QT(hyb1)(hyb2)`` headings into QT names and hyb lists.

    Headings that do not parse are kept whole as both QT and hyb so the
    later membership checks report them.

    Returns
    -------
    tuple
        ``(new_headings, heading_qts, heading_hybs)``
    """
    index_headings = {headings[i] for i in index_columns}
    new_headings, qts, hybs = [], [], []
    for heading in headings:
        if heading in index_headings:
            new_headings.append(heading)
            continue
        match = _FGEM_HEADING.match(heading)
        if match:
            qt, hyb_string = match.groups()
            new_headings.append(qt)
            qts.append(qt)
            hybs.append(re.split(r'\)\s*\(', hyb_string))
        else:
            new_headings.append(heading)
            qts.append(heading)
            hybs.append([heading])
    return new_headings, qts, hybs


def looks_like_mage_tab(reader) -> bool:
    """True when the first two lines form a MAGE-TAB data matrix header.

    The reader position is restored.
    """
    pos = reader.tell()
    try:
        first = reader.readline()
        second = reader.readline()
    finally:
        reader.seek(pos)
    if first is None or second is None:
        return False
    first_field = split_fields(first.replace('"', ''))[:1]
    second_field = split_fields(second.replace('"', ''))[:1]
    return bool(
        first_field and second_field
        and _SDRF_REF.search(first_field[0])
        and (_COMPOSITE_REF.search(second_field[0]) or _REPORTER_REF.search(second_field[0]))
    )


def parse_data_matrix_header(reader) -> HeaderResolution:
    """Parse a two-line MAGE-TAB data matrix header.

    Line 1 holds the SDRF column reference followed by semicolon-joined
    hybridization ids per column; line 2 holds the design element type
    followed by QT names.
    """
    header1 = (reader.readline() or "").replace('"', '')
    header2 = (reader.readline() or "").replace('"', '')
    harry1 = split_fields(header1, keep_trailing=False)
    harry2 = split_fields(header2, keep_trailing=False)

    sdrf_colref = harry1[0] if harry1 else ""
    hybs = [value.split(";") for value in harry1[1:]]

    de_type = harry2[0] if harry2 else ""
    if _COMPOSITE_REF.search(de_type):
        de_type, name = "CompositeSequence Identifier", FormatType.FGEM_CS.value
    elif _REPORTER_REF.search(de_type):
        de_type, name = "Reporter Identifier", FormatType.FGEM.value
    else:
        return HeaderResolution(FormatType.UNKNOWN.value, [], harry2, 2,
                                heading_hybs=hybs, sdrf_id_column=sdrf_colref)

    qts = harry2[1:]
    return HeaderResolution(name, [0], [de_type] + qts, 2,
                            heading_qts=list(qts), heading_hybs=hybs,
                            sdrf_id_column=sdrf_colref)


def split_illumina_heading(heading: str):
    """``'hyb.QT'`` -> ``('hyb', 'QT')``; None when there is no period."""
    match = _ILLUMINA_HEADING.match(heading)
    if match and match.group(1) and match.group(2):
        return match.group(1), match.group(2)
    return None


def is_illumina_fgem(headings: List[str]) -> bool:
    """Illumina matrices repeat each QT once per hybridization."""
    seen = set()
    for heading in headings:
        match = _ILLUMINA_HEADING.match(heading)
        qt = match.group(2) if match else heading
        if qt and qt in seen:
            return True
        seen.add(qt)
    return False
