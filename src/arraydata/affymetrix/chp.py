"""CHP probe set analysis results: GDAC (v8/v12/v13) and XDA.

A CHP file stores one record per probe set in CDF unit order but not the
probe set names, so ``export()`` and ``get_ded()`` need the matching CDF.
Enumerated calls are stored as byte codes and decoded on export.
"""

import logging
import re

from arraydata.affymetrix.binary import (
    read_ascii,
    read_float,
    read_floats,
    read_int8,
    read_int32,
    read_uint8,
    read_uint16,
    round_half_away,
)
from arraydata.affymetrix.parser import AffymetrixParser
from arraydata.errors import BinaryFormatError

logger = logging.getLogger(__name__)

__all__ = [
    'CHPParser',
    'GDACCHP',
    'CHPv8',
    'CHPv12',
    'CHPv13',
    'XDACHP',
    'CHP_EXPRESSION',
    'CHP_COMPARISON',
    'CHP_SNP',
    'CHP_SNP100',
    'format_chp_value',
]

CHP_EXPRESSION = [
    'ProbeSetName',
    'CHPPairs',
    'CHPPairsUsed',
    'CHPSignal',
    'CHPDetection',
    'CHPDetectionPvalue',
]

CHP_COMPARISON = CHP_EXPRESSION + [
    'CHPCommonPairs',
    'CHPSignalLogRatio',
    'CHPSignalLogRatioLow',
    'CHPSignalLogRatioHigh',
    'CHPChange',
    'CHPChangePvalue',
]

CHP_SNP = [
    'ProbeSetName',
    'CHPAllele',
    'CHPAllelePvalue',
    'CHPAlleleRAS1',
    'CHPAlleleRAS2',
]

CHP_SNP100 = [
    'ProbeSetName',
    'CHPAllele',
    'CHPAllelePvalue',
    'CHPAllelePvalueAA',
    'CHPAllelePvalueAB',
    'CHPAllelePvalueBB',
    'CHPAllelePvalueNoCall',
]

DETECTION_CALLS = ['Present', 'Marginal', 'Absent', 'No Call']

CHANGE_CALLS = [
    'null',
    'Increase',
    'Decrease',
    'Marginal Increase',
    'Marginal Decrease',
    'No change',
    'No call',
]

ALLELE_CALLS = [
    'NoCall', 'NoCall', 'NoCall', 'NoCall', 'NoCall', 'NoCall',
    'AA', 'BB', 'AB', 'AB_A', 'AB_B', 'NoCall',
]

_CALL_TABLES = {
    'CHPDetection': DETECTION_CALLS,
    'CHPChange': CHANGE_CALLS,
    'CHPAllele': ALLELE_CALLS,
}

_PRECISION = {
    'CHPSignal': 1,
    'CHPDetectionPvalue': 5,
    'CHPSignalLogRatio': 1,
    'CHPSignalLogRatioLow': 1,
    'CHPSignalLogRatioHigh': 1,
    'CHPChangePvalue': 5,
    'CHPAllelePvalue': 6,
    'CHPAlleleRAS1': 4,
    'CHPAlleleRAS2': 4,
    'CHPAllelePvalueAA': 6,
    'CHPAllelePvalueAB': 6,
    'CHPAllelePvalueBB': 6,
    'CHPAllelePvalueNoCall': 6,
}

# Probe sets above this count are SNP 100K-style genotyping arrays
LARGE_CHIP_THRESHOLD = 25000

_CHIP_NAME = re.compile(r'\A([\w-]*)')


def format_chp_value(qt: str, value) -> str:
    """Export text for one CHP value.

    Call codes become labels (``null`` when out of range), floats get
    their fixed precision and missing values become empty strings.
    """
    if value is None:
        return ''
    table = _CALL_TABLES.get(qt)
    if table is not None:
        return table[value] if 0 <= value < len(table) else 'null'
    precision = _PRECISION.get(qt)
    if precision is not None:
        return "%.*f" % (precision, value)
    return str(value)


def _probe_array_type(stream) -> str:
    text = read_ascii(stream, 256)
    first = re.split(r'[\r\n]+', text)[0]
    return _CHIP_NAME.match(first).group(1)


class CHPParser(AffymetrixParser):
    """Shared CHP behavior: export and composite sequence identifiers."""

    kind = 'CHP'

    def __init__(self, source):
        super().__init__(source)
        self.set_headings(CHP_EXPRESSION)
        self.data = []

    def parse(self):
        self.parse_header()
        self.parse_chp()
        return self

    def parse_header(self):
        self.check_magic()
        self.parse_chp_header()
        return self

    def parse_chp_header(self):
        raise NotImplementedError

    def parse_chp(self):
        raise NotImplementedError

    def _probesets(self, cdf):
        if not cdf.probeset_ids:
            cdf.parse()
        probesets = cdf.probeset_ids
        names = []
        for i in range(len(self.data)):
            name = probesets[i] if i < len(probesets) else None
            if not name:
                logger.warning(
                    "No CDF data for CHP unit %s of %s. Incorrect CDF file used?", i + 1, self.name
                )
            names.append(name or '')
        return names

    def export(self, output, cdf=None):
        """Write one row per probe set, named through ``cdf``.

        Parameters
        ----------
        output : text stream
            Destination for the tab-delimited rows.
        cdf : CDFParser
            Library file for the same array; parsed on demand.
        """
        if cdf is None:
            raise ValueError("CHP export needs the matching CDF parser")
        names = self._probesets(cdf)
        qts = self.headings[1:]
        for name, cell in zip(names, self.data):
            values = [name] + [format_chp_value(qt, cell.get(qt)) for qt in qts]
            output.write("\t".join(values) + "\n")

    def get_ded(self, cdf, chip_type=None):
        """Composite sequence identifiers in unit order."""
        chip_type = chip_type or self.chip_type or cdf.chip_type
        if not chip_type:
            raise ValueError(f"No chip type information available for {self.name}")
        return [
            f"Affymetrix:CompositeSequence:{chip_type}:{name}"
            for name in self._probesets(cdf)
        ]


class GDACCHP(CHPParser):
    """Binary CHP file written by MAS 5 ("GeneChip Sequence File").

    The version read from the header picks the concrete body parser; see
    :func:`arraydata.affymetrix.factory.make_parser`.
    """

    required_magic = 1701733703

    def _parse_params(self, paramstr: str):
        params = {}
        for param in paramstr.split():
            name, _, value = param.partition('=')
            params[name] = value
        self.add_parameters(params)

    def _parse_stats(self, statstr: str):
        stats = {}
        for statlist in statstr.split():
            prefix, _, valuestring = statlist.partition('=')
            for stat in valuestring.split(','):
                parts = stat.split(':')
                value = parts[-1]
                name = parts[-2] if len(parts) > 1 else None
                stats[f"{prefix} {name}" if name else prefix] = value
        self.add_stats(stats)

    def parse_chp_header(self):
        stream = self.stream
        stream.seek(0)
        label = read_ascii(stream, 22)
        if label != 'GeneChip Sequence File':
            raise BinaryFormatError(f"Error: unknown CHP file format: {label}")
        self.set_headings(CHP_EXPRESSION)
        self.version = read_int32(stream)

        if self.version == 8:
            self.algorithm = read_ascii(stream, read_int32(stream))
            self._parse_params(read_ascii(stream, read_int32(stream)))
            self.num_columns = read_int32(stream)
            self.num_rows = read_int32(stream)
            self.num_cells = read_int32(stream)
            max_cell_no = read_int32(stream)
            read_int32(stream)  # num_qc_cells
            stream.seek((max_cell_no + self.num_cells) * 8, 1)
            self.chip_type = _probe_array_type(stream)
            return

        if self.version not in (12, 13):
            raise BinaryFormatError(f"Error: Unrecognized CHP file version: {self.version}")

        self.algorithm = read_ascii(stream, read_int32(stream))
        read_ascii(stream, read_int32(stream))  # algorithm version
        self._parse_params(read_ascii(stream, read_int32(stream)))
        self._parse_stats(read_ascii(stream, read_int32(stream)))
        self.num_columns = read_int32(stream)
        self.num_rows = read_int32(stream)
        self.num_cells = read_int32(stream)

    def parse_chp(self):
        stream = self.stream
        max_cell_no = read_int32(stream)
        num_qc_cells = read_int32(stream)
        if self.num_cells > max_cell_no:
            raise BinaryFormatError("Error: Number of probe sets greater than the maximum possible!")

        unused = max_cell_no - self.num_cells
        stream.seek(4 * (2 * self.num_cells + unused), 1)  # cell numbers, num_pairs2
        cells = [{'type': read_int32(stream)} for _ in range(self.num_cells)]
        stream.seek(4 * (unused + self.num_cells), 1)  # num_probes

        self.chip_type = _probe_array_type(stream)
        read_ascii(stream, 256)  # parent CEL file
        read_ascii(stream, read_int32(stream))  # programmatic id

        for cell in cells:
            if cell['type'] == 3:
                self.parse_expression_cell(cell)
            elif cell['type'] == 2:
                raise BinaryFormatError("Error: Genotyping data file parsing not yet implemented for GDAC CHP.")
            else:
                raise BinaryFormatError(f"Error: Cell type {cell['type']} not known.")
        self.data = cells

        if read_int32(stream):
            raise BinaryFormatError("Error: Resequencing data file parsing not yet implemented.")
        for _ in range(num_qc_cells):
            num_probes = read_int32(stream)
            read_int32(stream)  # type
            stream.seek(24 * num_probes, 1)

    def parse_expression_cell(self, cell):
        raise NotImplementedError


class CHPv8(GDACCHP):
    """Version 8 headers are readable; the body layout is not supported."""

    def parse_chp(self):
        raise BinaryFormatError("Error: CHP file version 8 not fully supported.")


class CHPv12(GDACCHP):
    """MAS 5 expression results, optionally with a baseline comparison."""

    # Per pair: 12 four-byte fields and 4 one-byte flags
    _PAIR_SIZE = 52

    def parse_expression_cell(self, cell):
        stream = self.stream
        cell['CHPPairs'] = read_int32(stream)
        cell['CHPPairsUsed'] = read_int32(stream)
        stream.seek(20, 1)
        cell['CHPDetectionPvalue'] = round_half_away(read_float(stream), 5)
        read_float(stream)
        cell['CHPSignal'] = round_half_away(read_float(stream), 1)
        cell['CHPDetection'] = read_int32(stream)
        stream.seek(self._PAIR_SIZE * cell['CHPPairs'], 1)

        if read_int32(stream):
            if self.headings != CHP_COMPARISON:
                self.set_headings(CHP_COMPARISON)
            cell['CHPCommonPairs'] = read_int32(stream)
            stream.seek(12, 1)
            cell['CHPChange'] = read_int32(stream)
            cell['baseline_absent'] = read_int8(stream)
            read_int8(stream)
            stream.seek(8, 1)
            cell['CHPSignalLogRatioHigh'] = round_half_away(read_int32(stream) / 1000, 1)
            stream.seek(8, 1)
            cell['CHPSignalLogRatio'] = round_half_away(read_int32(stream) / 1000, 1)
            read_int32(stream)
            cell['CHPSignalLogRatioLow'] = round_half_away(read_int32(stream) / 1000, 1)
            cell['CHPChangePvalue'] = round_half_away(read_float(stream), 5)


class CHPv13(CHPv12):
    """Version 13 shares the version 12 record layout."""


class XDACHP(CHPParser):
    """Binary little-endian CHP file written by GCOS.

    Attributes
    ----------
    results_type : int
        0 expression, 1 genotyping, 2 resequencing, 3 universal.
    """

    required_magic = 65

    def __init__(self, source):
        super().__init__(source)
        self.results_type = None

    @property
    def large_chip(self) -> bool:
        return self.num_cells >= LARGE_CHIP_THRESHOLD

    def _read_pairs(self, count):
        stream = self.stream
        pairs = []
        for _ in range(count):
            name = read_ascii(stream, read_int32(stream))
            value = read_ascii(stream, read_int32(stream)).strip()
            pairs.append((name, value))
        return pairs

    def parse_chp_header(self):
        stream = self.stream
        stream.seek(4)
        self.set_headings(CHP_EXPRESSION)
        self.version = read_int32(stream)
        self.num_columns = read_uint16(stream)
        self.num_rows = read_uint16(stream)
        self.num_cells = read_int32(stream)
        read_int32(stream)  # num_qc_cells
        self.results_type = read_int32(stream)
        if self.results_type == 1:
            self.set_headings(CHP_SNP100 if self.large_chip else CHP_SNP)

        read_ascii(stream, read_int32(stream))  # programmatic id
        read_ascii(stream, read_int32(stream))  # parent CEL file
        self.chip_type = read_ascii(stream, read_int32(stream))
        self.algorithm = read_ascii(stream, read_int32(stream))
        read_ascii(stream, read_int32(stream))  # algorithm version

        self.add_parameters(dict(self._read_pairs(read_int32(stream))))

        stats = {}
        for name, value in self._read_pairs(read_int32(stream)):
            if ',' in value:
                # Compound values, e.g. Noise
                for substat in value.split(','):
                    subname, _, subval = substat.partition(':')
                    stats[f"{name} {subname}"] = subval
            else:
                stats[name] = value
        self.add_stats(stats)

    def parse_chp(self):
        stream = self.stream
        num_bkd_zones = read_int32(stream)
        read_float(stream)  # smooth factor
        stream.seek(12 * num_bkd_zones, 1)

        comparison = False
        if self.results_type == 0:
            comparison = read_uint8(stream) in (1, 3)
            if comparison:
                self.set_headings(CHP_COMPARISON)
        data_size = read_int32(stream)

        cells = []
        for _ in range(self.num_cells):
            cell = {}
            if self.results_type == 0:
                cell['CHPDetection'] = read_uint8(stream)
                cell['CHPDetectionPvalue'] = round_half_away(read_float(stream), 5)
                cell['CHPSignal'] = round_half_away(read_float(stream), 1)
                cell['CHPPairs'] = read_uint16(stream)
                cell['CHPPairsUsed'] = read_uint16(stream)
                if comparison:
                    cell['CHPChange'] = read_uint8(stream)
                    cell['CHPChangePvalue'] = round_half_away(read_float(stream), 5)
                    cell['CHPSignalLogRatio'] = round_half_away(read_float(stream), 1)
                    cell['CHPSignalLogRatioLow'] = round_half_away(read_float(stream), 1)
                    cell['CHPSignalLogRatioHigh'] = round_half_away(read_float(stream), 1)
                    cell['CHPCommonPairs'] = read_uint16(stream)
            elif self.results_type == 1:
                cell['CHPAllele'] = read_uint8(stream)
                cell['CHPAllelePvalue'] = read_float(stream)
                if self.large_chip:
                    cell['CHPAllelePvalueAA'] = read_float(stream)
                    cell['CHPAllelePvalueAB'] = read_float(stream)
                    cell['CHPAllelePvalueBB'] = read_float(stream)
                    cell['CHPAllelePvalueNoCall'] = read_float(stream)
                else:
                    cell['CHPAlleleRAS1'] = read_float(stream)
                    cell['CHPAlleleRAS2'] = read_float(stream)
                    stream.seek(8, 1)
            elif self.results_type == 2:
                length = read_int32(stream)
                cell['sequence'] = read_ascii(stream, length)
                cell['base_call_score'] = read_floats(stream, data_size - length - 4)
            elif self.results_type == 3:
                cell['bkd_value'] = read_float(stream)
            else:
                raise BinaryFormatError(f"Error: Unknown CHP results type {self.results_type}")
            cells.append(cell)
        self.data = cells
