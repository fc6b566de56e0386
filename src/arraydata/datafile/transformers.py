"""Per-vendor coordinate transforms.

Each transform reads the data rows that follow a resolved header and
writes them to a private spool with the canonical coordinate block
(``MetaColumn, MetaRow, Column, Row`` or one identifier) first, followed by
the non-index columns in their original order and any fields beyond the
last heading. The file's layout is then rewritten to describe the spool.

Transforms take the open :class:`~arraydata.datafile.raw.RawDataFile` and
return the spool; :func:`fix_known_text_format` installs it.
"""

import logging
import os
import re
from collections import Counter

from arraydata.contracts import assert_canonical
from arraydata.datafile.blocks import (
    assign_genepix_layout,
    assign_scanalyze_layout,
    get_blocks,
    is_trailer_line,
    parse_block_number,
)
from arraydata.datafile.headers import split_fields, strip_discards
from arraydata.datafile.types import CANONICAL_HEADINGS, FormatType
from arraydata.errors import SectionParseError

logger = logging.getLogger(__name__)

__all__ = [
    'TRANSFORMS',
    'fix_known_text_format',
    'genericize',
    'reporter_genericize',
    'map_channel_to_fluor',
    'common_prefix',
    'common_suffix',
]

_SECTION_END = re.compile(r'(?i)\Aend ')
_SECTION_BOUNDARY = re.compile(r'(?i)\A(begin|end) ')
_SCANALYZE_CY = re.compile(r'(?is)\b(\w+)\b\s+IMAGE\s+.*Cy.*([35])')
_SCANALYZE_ALEXA = re.compile(r'(?is)\b(\w+)\b\s+IMAGE\s+.*Alexa(555|647)')
_CHANNEL_PREFIX = re.compile(r'(?i)\A(ch\d+)[ a-z]')
_CY3 = re.compile(r'(?i)cy(?:anine?)?[-_ ]*3')
_CY5 = re.compile(r'(?i)cy(?:anine?)?[-_ ]*5')
_IMAGENE_LABEL = re.compile(r'(?i)(?:\b|_)(cy[35]|alexa\d{3}|green|red)(?:\b|_)')
_ARRAYVISION_PAIR = re.compile(r'(\d+) - (\d+)')
_LG2_LABEL = re.compile(r'(\w+) ?- ?(\w+) ?: ?(\w+)(?: ?- ?(\w+))?')

DISCARDED_FOOTER = "WARNING: Possible data after END DATA marker is being discarded."


# =============================================================================
# Layout helpers
# =============================================================================

def genericize(datafile, extra_headings=()):
    """Describe the spool as a canonical four-coordinate Generic file."""
    headings = CANONICAL_HEADINGS + strip_discards(datafile.index_columns, datafile.column_headings)
    datafile.set_layout(FormatType.GENERIC.value, [0, 1, 2, 3], headings + list(extra_headings))


def reporter_genericize(datafile):
    """Describe the spool as a single-identifier FGEM file."""
    headings = ["Reporter Identifier"] + strip_discards(datafile.index_columns, datafile.column_headings)
    datafile.set_layout(FormatType.FGEM.value, [0], headings)


def _slice_minus_discards(datafile):
    discard = set(datafile.index_columns)
    last = len(datafile.column_headings) - 1
    return [i for i in range(last + 1) if i not in discard], last


def _field(fields, i):
    return fields[i] if i < len(fields) else ""


def _rebuild(fields, keep, last, coords):
    return list(coords) + [_field(fields, i) for i in keep] + fields[last + 1:]


def _rewrite(datafile, coords_for, skip_blank=False):
    """Write every remaining row with ``coords_for(fields)`` in front.

    Blank lines pass through unchanged unless ``skip_blank`` is set, so the
    statistics pass still reports them.
    """
    keep, last = _slice_minus_discards(datafile)
    spool = datafile.new_spool()
    for line in datafile.reader:
        if not line.strip():
            if not skip_blank:
                datafile.write_line(spool, line)
            continue
        fields = split_fields(line, keep_trailing=False)
        datafile.write_fields(spool, _rebuild(fields, keep, last, coords_for(fields)))
    return spool


def _index_values(datafile, fields, count):
    return [_field(fields, i) for i in datafile.index_columns[:count]]


def common_prefix(values):
    """Longest shared prefix that leaves every value non-empty."""
    if not values:
        return ""
    prefix = os.path.commonprefix(values)
    shortest = min(len(v) for v in values)
    return prefix[:max(shortest - 1, 0)] if len(prefix) >= shortest else prefix


def common_suffix(values):
    """Longest shared suffix that leaves every value non-empty."""
    return common_prefix([v[::-1] for v in values])[::-1]


def _strip_common(datafile, suffix=False):
    identifier, *headings = datafile.column_headings
    if suffix:
        cut = len(common_suffix(headings))
        headings = [h[:len(h) - cut] for h in headings]
    else:
        cut = len(common_prefix(headings))
        headings = [h[cut:] for h in headings]
    datafile.set_layout(datafile.format_type, datafile.index_columns, [identifier] + headings)


def map_channel_to_fluor(datafile, info):
    """Rewrite ``Ch1 ...`` style heading prefixes to dye names.

    Parameters
    ----------
    datafile : RawDataFile
    info : dict
        Lower-case channel (``ch1``) -> replacement text.
    """
    warned = set()
    headings = []
    for heading in datafile.column_headings:
        match = _CHANNEL_PREFIX.match(heading)
        if match:
            wanted = match.group(1).lower()
            if info.get(wanted):
                heading = info[wanted] + heading[len(wanted):]
            elif wanted not in warned:
                datafile.warn(
                    f"Warning: unable to parse channel {wanted} to fluorophore mapping from file header."
                )
                warned.add(wanted)
        headings.append(heading)
    datafile.set_layout(datafile.format_type, datafile.index_columns, headings)


def _discard_footer(datafile, ignore=None):
    for line in datafile.reader:
        if line.strip() and not (ignore and ignore.search(line)):
            datafile.warn(DISCARDED_FOOTER)
            break


# =============================================================================
# Block-grid vendors
# =============================================================================

def _scan_blocks(datafile):
    reader = datafile.reader
    start = reader.tell()
    rows = (split_fields(line) for line in reader if not is_trailer_line(line))
    blocks = get_blocks(rows, datafile.index_columns)
    reader.seek(start)
    return blocks


def _rewrite_blocks(datafile, blocks):
    index = datafile.index_columns
    keep, last = _slice_minus_discards(datafile)
    spool = datafile.new_spool()
    for line in datafile.reader:
        if is_trailer_line(line):
            continue
        if not line.strip():
            datafile.write_line(spool, line)
            continue
        fields = split_fields(line, keep_trailing=False)
        number = parse_block_number(_field(fields, index[0]))
        block = blocks.get(number) if number > 0 else None
        coords = [
            block.metacolumn if block else "",
            block.metarow if block else "",
            _field(fields, index[1]),
            _field(fields, index[2]),
        ]
        datafile.write_fields(spool, _rebuild(fields, keep, last, coords))
    genericize(datafile)
    return spool


def fix_genepix(datafile):
    """GenePix, ImaGene7 and ImaGeneFields: Block/Column/Row plus X/Y."""
    blocks = assign_genepix_layout(_scan_blocks(datafile), datafile.config.parser.min_block_extent)
    return _rewrite_blocks(datafile, blocks)


def fix_scanalyze(datafile):
    """ScanAlyze: GRID/COL/ROW plus LEFT/TOP, with CH1/CH2 remapping.

    ``REMARK`` lines naming a Cy3 or Alexa555 image put that channel in
    CH1 and the other dye in CH2.
    """
    reader = datafile.reader
    content_start = reader.tell()
    info = {}
    reader.rewind()
    while reader.tell() < content_start:
        line = reader.readline()
        if line is None:
            break
        match = _SCANALYZE_CY.search(line)
        if match:
            info[match.group(1).lower()] = "CH1" if match.group(2) == "3" else "CH2"
            continue
        match = _SCANALYZE_ALEXA.search(line)
        if match:
            info[match.group(1).lower()] = "CH1" if match.group(2) == "555" else "CH2"
    reader.seek(content_start)
    map_channel_to_fluor(datafile, info)

    blocks = _scan_blocks(datafile)
    for problem in assign_scanalyze_layout(blocks, datafile.config.parser.min_block_extent):
        datafile.add_error(problem)
    return _rewrite_blocks(datafile, blocks)


# =============================================================================
# Direct coordinate vendors
# =============================================================================

def fix_simple_mcmr(datafile):
    """Index columns 0..3 already hold MetaColumn, MetaRow, Column, Row."""
    spool = _rewrite(datafile, lambda fields: _index_values(datafile, fields, 4))
    genericize(datafile)
    return spool


def fix_agilent(datafile):
    def coords(fields):
        row, column = _index_values(datafile, fields, 2)
        return [1, 1, column, row]
    spool = _rewrite(datafile, coords)
    genericize(datafile)
    return spool


def fix_nimblescan(datafile):
    """NimbleScan feature/normalized and NimbleGen NASA: X is the column."""
    def coords(fields):
        column, row = _index_values(datafile, fields, 2)
        return [1, 1, column, row]
    spool = _rewrite(datafile, coords)
    genericize(datafile)
    return spool


def fix_codelink(datafile):
    def coords(fields):
        row, column = _index_values(datafile, fields, 2)
        return [1, 1, column, row]
    spool = _rewrite(datafile, coords, skip_blank=True)
    genericize(datafile)
    return spool


def fix_ucsfspot(datafile):
    """UCSF Spot pads coordinates with leading zeros."""
    def coords(fields):
        return [re.sub(r'\A0+', '', value) for value in _index_values(datafile, fields, 4)]
    spool = _rewrite(datafile, coords)
    genericize(datafile)
    return spool


def fix_arrayvision(datafile):
    """ArrayVision: ``"metarow - metacolumn"`` and ``"row - column"`` labels."""
    def coords(fields):
        primary, secondary = _index_values(datafile, fields, 2)
        outer = _ARRAYVISION_PAIR.search(primary)
        inner = _ARRAYVISION_PAIR.search(secondary)
        metarow, metacolumn = outer.groups() if outer else ("", "")
        row, column = inner.groups() if inner else ("", "")
        return [metacolumn, metarow, column, row]
    spool = _rewrite(datafile, coords)
    genericize(datafile)
    return spool


def _letter_number(value):
    return ord(value[0].upper()) - 64 if value else ""


def _digits(value):
    match = re.search(r'\d+', value or "")
    return match.group(0) if match else ""


def fix_arrayvision_lg2(datafile):
    """ArrayVision spot labels such as ``R1-C2:A-B``.

    Rows whose label does not parse carry a reporter name instead. The
    layout of the whole file follows the last row seen.
    """
    keep, last = _slice_minus_discards(datafile)
    spool = datafile.new_spool()
    feature_level = False
    for line in datafile.reader:
        if not line.strip():
            datafile.write_line(spool, line)
            continue
        fields = split_fields(line, keep_trailing=False)
        label = _field(fields, datafile.index_columns[0])
        match = _LG2_LABEL.search(label)
        if match:
            metarow_text, metacolumn_text, row_text, column_text = match.groups()
            coords = [
                _digits(metacolumn_text),
                _digits(metarow_text),
                _letter_number(column_text),
                _letter_number(row_text),
            ]
            feature_level = True
        else:
            coords = [label]
            feature_level = False
        datafile.write_fields(spool, _rebuild(fields, keep, last, coords))

    if feature_level:
        genericize(datafile)
    else:
        reporter_genericize(datafile)
    return spool


# =============================================================================
# Reporter-level vendors
# =============================================================================

def fix_illumina(datafile):
    """Identifier column first; every other column kept."""
    spool = _rewrite(datafile, lambda fields: _index_values(datafile, fields, 1))
    reporter_genericize(datafile)
    return spool


def fix_illumina_perhyb(datafile):
    """Per-hybridization Illumina exports prefix every QT with the hyb name."""
    spool = fix_illumina(datafile)
    if len(datafile.column_headings) - len(datafile.index_columns) > 1:
        _strip_common(datafile)
    return spool


def fix_appliedbiosystems(datafile):
    spool = fix_illumina(datafile)
    _strip_common(datafile, suffix=True)
    return spool


# =============================================================================
# Labelled and sectioned exports
# =============================================================================

def fix_imagene(datafile):
    """Single-channel ImaGene: the dye comes from the ``Image File`` line."""
    reader = datafile.reader
    content_start = reader.tell()
    label = None
    reader.rewind()
    while reader.tell() < content_start:
        line = reader.readline()
        if line is None:
            break
        if re.search(r'\bImage File\b', line):
            match = _IMAGENE_LABEL.search(line)
            label = match.group(1) if match else None
            if label:
                label = re.sub(r'(?i)cy', 'Cy', label, count=1)
                label = re.sub(r'(?i)alexa', 'Alexa', label, count=1)
                label = re.sub(r'(?i)red', 'Cy5', label, count=1)
                label = re.sub(r'(?i)green', 'Cy3', label, count=1)
    reader.seek(content_start)

    if label:
        index = set(datafile.index_columns)
        headings = [h if i in index else f"{h}_{label}" for i, h in enumerate(datafile.column_headings)]
        datafile.set_layout(datafile.format_type, datafile.index_columns, headings)
    else:
        datafile.warn(f"Warning: Unable to determine channel assignment for file {datafile.name}")
    return fix_simple_mcmr(datafile)


def _section_measurements(datafile, stop):
    """Read an auxiliary per-feature section keyed by its four coordinates.

    Returns
    -------
    tuple
        ``(measurements, headings, stop_line)`` where ``stop_line`` is the
        line that ended the section, if any.
    """
    reader = datafile.reader
    headings = list(datafile.column_headings)
    measurements = {}
    stop_line = None
    previous = reader.tell()
    while True:
        line = reader.readline()
        if line is None:
            break
        if stop.match(line):
            stop_line = line
            break
        previous = reader.tell()
        fields = split_fields(line, keep_trailing=False)
        key = ".".join(_index_values(datafile, fields, 4))
        measurements[key] = {heading: _field(fields, i) for i, heading in enumerate(headings)}
    return measurements, headings, stop_line, previous


def _parse_scanarray_image(reader):
    info_headings = split_fields(reader.readline() or "")
    info = {}
    while True:
        line = reader.readline()
        if line is None:
            break
        line = line.lower()
        if _SECTION_END.match(line):
            break
        values = split_fields(line)
        channel = dye = fallback = None
        for i, heading in enumerate(info_headings):
            value = _field(values, i)
            if not value or value == "0":
                continue
            if re.search(r'(?i)channel', heading):
                channel = value
            if re.search(r'(?i)fluorophore?', heading):
                dye = value
            if re.search(r'(?i)image', heading):
                fallback = fallback or value
        if dye:
            if _CY3.search(dye):
                dye = "Cy3"
            if _CY5.search(dye):
                dye = "Cy5"
            info[channel] = dye
        elif fallback:
            label = None
            if _CY3.search(fallback):
                label = "Cy3"
            if _CY5.search(fallback):
                label = "Cy5"
            info[channel] = label
    return info


def _parse_scanarray_header(datafile, content_start):
    reader = datafile.reader
    info, measurements, measurement_headings = {}, {}, []
    reader.rewind()
    while True:
        line = reader.readline()
        if line is None or reader.tell() > content_start:
            reader.seek(content_start)
            break
        match = re.match(r'(?i)begin (\w*)', line)
        if not match:
            continue
        kind = match.group(1)
        if re.search(r'(?i)image', kind):
            info = _parse_scanarray_image(reader)
        elif re.search(r'(?i)measurements', kind):
            reader.seek(content_start)
            measurements, measurement_headings, _, _ = _section_measurements(datafile, _SECTION_END)
            datafile.resolve_header()
            break
        elif re.search(r'(?i)data', kind):
            reader.seek(content_start)
            break
    return info, measurements, measurement_headings


def _append_measurements(row, coords, measurements, data_headings):
    extra = measurements.get(".".join(str(c) for c in coords))
    if extra:
        row.extend(extra[key] for key in sorted(extra) if key not in data_headings)
    return row


def fix_scanarray(datafile):
    """ScanArray and QuantArray sectioned exports.

    An ``IMAGE INFO`` section maps channels to dyes; an optional
    ``MEASUREMENTS`` section adds per-feature values that are appended to
    the matching ``DATA`` rows.
    """
    content_start = datafile.reader.tell()
    info, measurements, measurement_headings = _parse_scanarray_header(datafile, content_start)

    data_headings = set(datafile.column_headings)
    keep, last = _slice_minus_discards(datafile)
    spool = datafile.new_spool()
    for line in datafile.reader:
        if _SECTION_END.match(line):
            break
        if not line.strip():
            datafile.write_line(spool, line)
            continue
        fields = split_fields(line, keep_trailing=False)
        coords = _index_values(datafile, fields, 4)
        row = _rebuild(fields, keep, last, coords)
        datafile.write_fields(spool, _append_measurements(row, coords, measurements, data_headings))

    extra = [h for h in sorted(measurement_headings) if h not in data_headings]
    datafile.set_layout(datafile.format_type, datafile.index_columns,
                        datafile.column_headings + extra)
    map_channel_to_fluor(datafile, info)
    genericize(datafile)
    _discard_footer(datafile, ignore=re.compile(r'(?i)filter'))
    return spool


def _parse_imagene3_header(datafile, content_start):
    reader = datafile.reader
    measurements, measurement_headings, section_line = {}, [], None
    reader.rewind()
    while True:
        line = reader.readline()
        if line is None or reader.tell() > content_start:
            reader.seek(content_start)
            break
        match = re.match(r'(?i)begin (.*)', line)
        if not match:
            continue
        kind = match.group(1)
        if re.search(r'(?i)log +ratio +data', kind):
            reader.seek(content_start)
            measurements, measurement_headings, section_line, previous = _section_measurements(
                datafile, re.compile(r'(?i)\Abegin ')
            )
            reader.seek(previous)
            datafile.resolve_header()
            break
        if re.search(r'(?i)extracted data', kind):
            section_line = line
            reader.seek(content_start)
            break
    return measurements, measurement_headings, section_line


def fix_imagene3(datafile):
    """ImaGene 3 exports repeat each QT heading once per channel section.

    The ``Begin ...`` line above the headings names the sections; the nth
    occurrence of a heading is prefixed with the nth section name.

    Raises
    ------
    SectionParseError
        If the section line is missing or names too few sections.
    """
    content_start = datafile.reader.tell()
    measurements, measurement_headings, section_line = _parse_imagene3_header(datafile, content_start)
    if not section_line or not re.match(r'(?i)begin ', section_line):
        raise SectionParseError("Error: Unable to parse extracted data section headings.")
    sections = [f for f in section_line.split("\t") if f and f != "0"][1:]

    index = set(datafile.index_columns)
    headings = list(datafile.column_headings)
    seen = Counter()
    for i, heading in enumerate(headings):
        if i in index or not heading:
            continue
        n = seen[heading]
        if n >= len(sections):
            raise SectionParseError("Error: More duplicate column headings than there are data sections.")
        seen[heading] += 1
        headings[i] = f"{sections[n]} {heading}"

    data_headings = set(headings)
    keep = [i for i in range(len(headings)) if i not in index and headings[i]]
    last = len(headings) - 1
    spool = datafile.new_spool()
    for line in datafile.reader:
        if not line.strip():
            continue
        if _SECTION_BOUNDARY.match(line):
            break
        fields = split_fields(line, keep_trailing=False)
        coords = _index_values(datafile, fields, 4)
        row = _rebuild(fields, keep, last, coords)
        datafile.write_fields(spool, _append_measurements(row, coords, measurements, data_headings))

    extra = [h for h in sorted(measurement_headings) if h not in data_headings]
    _discard_footer(datafile)
    datafile.set_layout(FormatType.GENERIC.value, [0, 1, 2, 3],
                        CANONICAL_HEADINGS + [headings[i] for i in keep] + extra)
    return spool


TRANSFORMS = {
    FormatType.GENEPIX.value: fix_genepix,
    FormatType.IMAGENE7.value: fix_genepix,
    FormatType.IMAGENE_FIELDS.value: fix_genepix,
    FormatType.SCANALYZE.value: fix_scanalyze,
    FormatType.ARRAYVISION.value: fix_arrayvision,
    FormatType.ARRAYVISION_LG2.value: fix_arrayvision_lg2,
    FormatType.AGILENT.value: fix_agilent,
    FormatType.SCANARRAY.value: fix_scanarray,
    FormatType.QUANTARRAY.value: fix_scanarray,
    FormatType.SPOTFINDER.value: fix_simple_mcmr,
    FormatType.MEV.value: fix_simple_mcmr,
    FormatType.BLUEFUSE.value: fix_simple_mcmr,
    FormatType.CSIRO_SPOT.value: fix_simple_mcmr,
    FormatType.UCSFSPOT.value: fix_ucsfspot,
    FormatType.CODELINK.value: fix_codelink,
    FormatType.NIMBLESCAN_FEATURE.value: fix_nimblescan,
    FormatType.NIMBLESCAN_NORM.value: fix_nimblescan,
    FormatType.NIMBLEGEN_NASA.value: fix_nimblescan,
    FormatType.APPLIED_BIOSYSTEMS.value: fix_appliedbiosystems,
    FormatType.ILLUMINA.value: fix_illumina_perhyb,
    FormatType.IMAGENE.value: fix_imagene,
    FormatType.IMAGENE3.value: fix_imagene3,
}


def fix_known_text_format(datafile) -> bool:
    """Rewrite a vendor layout into canonical form, if it has a transform.

    Generic, FGEM, FGEM_CS, GEO and AffyNorm files already are canonical
    and pass through untouched.

    Returns
    -------
    bool
        True when the file now reads from a rewritten spool.
    """
    transform = TRANSFORMS.get(datafile.format_type)
    if transform is None:
        return False
    logger.debug("Rewriting %s as %s", datafile.name, datafile.format_type)
    spool = transform(datafile)
    datafile.use_stream(spool)
    assert_canonical(datafile.format_type, datafile.index_columns)
    return True
