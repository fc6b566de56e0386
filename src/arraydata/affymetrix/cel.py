"""CEL probe-level intensity files: text-tagged v3 and binary v4.

Both versions decode into the same store: ``"col\\trow"`` -> the five
value fields (mean, stdev, pixels, outlier, mask) already formatted for
export. Calvin CEL files live in :mod:`arraydata.affymetrix.calvin`.
"""

import logging
import re

import numpy as np

from arraydata.affymetrix.binary import (
    read_ascii,
    read_exact,
    read_int32,
    read_uint32,
)
from arraydata.affymetrix.parser import AffymetrixParser
from arraydata.errors import BinaryFormatError

logger = logging.getLogger(__name__)

__all__ = ['CELParser', 'CELv3', 'CELv4', 'CEL_HEADINGS']

CEL_HEADINGS = [
    'CELX',
    'CELY',
    'CELIntensity',
    'CELIntensityStdev',
    'CELPixels',
    'CELOutlier',
    'CELMask',
]

_CHIP_TYPE = re.compile(r'(?i) ([^ .]*).1sq ')

_V4_CELL = np.dtype([('mean', '<f4'), ('stdev', '<f4'), ('pixels', '<u2')])
_V4_SUBGRID = np.dtype([
    ('row', '<i4'), ('column', '<i4'),
    ('ul_x', '<f4'), ('ul_y', '<f4'), ('ur_x', '<f4'), ('ur_y', '<f4'),
    ('ll_x', '<f4'), ('ll_y', '<f4'), ('lr_x', '<f4'), ('lr_y', '<f4'),
    ('left_pos', '<i4'), ('top_pos', '<i4'), ('right_pos', '<i4'), ('bottom_pos', '<i4'),
])


def _cell_values(mean, stdev, pixels):
    return ["%.2f" % mean, "%.2f" % stdev, "%d" % pixels, "false", "false"]


class CELParser(AffymetrixParser):
    """Shared CEL behavior: the value store, flags, export and feature ids."""

    kind = 'CEL'

    def __init__(self, source):
        super().__init__(source)
        self.set_headings(CEL_HEADINGS)
        self.data = {}
        self.num_masked = None
        self.num_outliers = None
        self.num_modified = None
        self._ded = []

    def parse(self):
        self.parse_header()
        self.parse_body()
        return self

    def parse_header(self):
        self.check_magic()
        self.parse_cel_header()
        return self

    def parse_cel_header(self):
        raise NotImplementedError

    def parse_body(self):
        raise NotImplementedError

    def _flag(self, col, row, position):
        values = self.data.get(f"{col}\t{row}")
        if values is None:
            logger.debug("%s: flag for unknown cell (%s, %s) ignored", self.name, col, row)
            return
        values[position] = "true"

    def mark_outlier(self, col, row):
        self._flag(col, row, 3)

    def mark_masked(self, col, row):
        self._flag(col, row, 4)

    def export(self, output, *args):
        """Write ``col, row, mean, stdev, pixels, outlier, mask`` rows.

        Rows are ordered by their ``"col\\trow"`` text.
        """
        for coord in sorted(self.data):
            output.write(coord + "\t" + "\t".join(self.data[coord]) + "\n")

    def get_ded(self, chip_type=None):
        """Feature identifiers in export order.

        Raises
        ------
        ValueError
            When no chip type is known.
        """
        if not self._ded:
            chip_type = chip_type or self.chip_type
            if not chip_type:
                raise ValueError(f"No chip type information available for {self.name}")
            self._ded = [
                "Affymetrix:Feature:%s:Probe(%s,%s)" % ((chip_type,) + tuple(coord.split("\t")))
                for coord in sorted(self.data)
            ]
        return self._ded

    def parse_v3_header_tags(self, tagstr: str):
        """Read the ``key=value`` header block shared by v3 and v4."""
        tags = {}
        for line in re.split(r'[\r\n]+', tagstr):
            if not line:
                continue
            key, _, value = line.partition('=')
            tags[key] = value

        if not self.num_columns and tags.get('Cols'):
            self.num_columns = int(tags['Cols'])
        if not self.num_rows and tags.get('Rows'):
            self.num_rows = int(tags['Rows'])
        self.algorithm = tags.get('Algorithm') or 'Unknown'

        # Not documented, but DatHeader has always carried the chip type
        match = _CHIP_TYPE.search(tags.get('DatHeader', ''))
        if match:
            self.chip_type = match.group(1)
        else:
            logger.warning("No chip type found in DatHeader of %s", self.name)

        params = {}
        for param in tags.get('AlgorithmParameters', '').split(';'):
            if param:
                key, _, value = param.partition(':')
                params[key] = value
        self.add_parameters(params)

    def _record_counts(self):
        self.add_stats({
            'Number of Cells': self.num_cells,
            'Rows': self.num_rows,
            'Columns': self.num_columns,
        })
        self.check_dimensions()


class CELv3(CELParser):
    """Text CEL file (``[CEL]`` ... ``[MODIFIED]`` sections)."""

    required_magic = 1279607643
    _body = None

    def _lines(self):
        self.stream.seek(0)
        text = self.stream.read().decode('latin-1')
        return iter(text.replace('\r\n', '\n').replace('\r', '\n').split('\n'))

    @staticmethod
    def _skip_to(lines, section):
        for line in lines:
            if line.startswith(section):
                return line
        raise BinaryFormatError(f"Error: CEL section {section} not found")

    @staticmethod
    def _value(line):
        return line.split('=', 1)[1] if line and '=' in line else None

    def _expect(self, lines, heading, section):
        if next(lines, None) != heading:
            raise BinaryFormatError(f"Error: unrecognized CEL {section} column headings.")

    def parse_cel_header(self):
        lines = self._lines()
        label = next(lines, '')
        if label != '[CEL]':
            raise BinaryFormatError(f"Error: unknown CEL file format: {label}")
        self.version = self._value(next(lines, None))

        self._skip_to(lines, '[HEADER]')
        tags = []
        for line in lines:
            if not line.strip():
                break
            tags.append(line)
        self.parse_v3_header_tags("\n".join(tags))

        self._skip_to(lines, '[INTENSITY]')
        self.num_cells = int(self._value(next(lines, None)) or 0)
        self._record_counts()
        self._body = lines

    def _coords(self, lines):
        for line in lines:
            if not line.strip():
                return
            fields = line.split('\t')
            yield fields[0].strip(), fields[1].strip()

    def parse_body(self):
        if self._body is None:
            self.parse_header()
        lines = self._body
        self._expect(lines, "CellHeader=X\tY\tMEAN\tSTDV\tNPIXELS", '[INTENSITY]')
        data = {}
        for line in lines:
            if not line.strip():
                break
            fields = [f.strip() for f in line.strip(' ').split('\t')]
            data[f"{fields[0]}\t{fields[1]}"] = _cell_values(
                float(fields[2]), float(fields[3]), int(float(fields[4]))
            )
        self.data = data

        self._skip_to(lines, '[MASKS]')
        self.num_masked = int(self._value(next(lines, None)) or 0)
        self.add_stats({'Number Cells Masked': self.num_masked})
        self._expect(lines, "CellHeader=X\tY", '[MASKS]')
        for col, row in self._coords(lines):
            self.mark_masked(col, row)

        self._skip_to(lines, '[OUTLIERS]')
        self.num_outliers = int(self._value(next(lines, None)) or 0)
        self.add_stats({'Number Outlier Cells': self.num_outliers})
        self._expect(lines, "CellHeader=X\tY", '[OUTLIERS]')
        for col, row in self._coords(lines):
            self.mark_outlier(col, row)

        self._skip_to(lines, '[MODIFIED]')
        self.num_modified = int(self._value(next(lines, None)) or 0)
        self.add_stats({'Number Cells Modified': self.num_modified})
        if self.num_modified:
            logger.warning("%s: ignoring %s modified cells", self.name, self.num_modified)
        self._expect(lines, "CellHeader=X\tY\tORIGMEAN", '[MODIFIED]')


class CELv4(CELParser):
    """Binary little-endian CEL file written by GCOS."""

    required_magic = 64

    def __init__(self, source):
        super().__init__(source)
        self.cell_margin = None
        self.num_subgrids = None
        self.subgrids = []

    def _parse_v4_parameters(self, paramstr: str):
        params = {}
        for param in re.split(r'[;\s]+', paramstr):
            if param:
                key = re.split(r'[:=]', param)
                params[key[0]] = key[1] if len(key) > 1 else None
        self.add_parameters(params)

    def parse_cel_header(self):
        stream = self.stream
        stream.seek(4)
        self.version = read_int32(stream)
        self.num_columns = read_int32(stream)
        self.num_rows = read_int32(stream)
        self.num_cells = read_int32(stream)
        self._record_counts()

        self.parse_v3_header_tags(read_ascii(stream, read_int32(stream)))
        self.algorithm = read_ascii(stream, read_int32(stream))
        self._parse_v4_parameters(read_ascii(stream, read_int32(stream)))
        self.cell_margin = read_int32(stream)
        self.num_outliers = read_uint32(stream)
        self.num_masked = read_uint32(stream)
        self.num_subgrids = read_int32(stream)
        self.add_stats({
            'Number Cells Masked': self.num_masked,
            'Number Outlier Cells': self.num_outliers,
        })

    def parse_body(self):
        stream = self.stream
        count = self.num_rows * self.num_columns
        cells = np.frombuffer(read_exact(stream, count * _V4_CELL.itemsize), dtype=_V4_CELL)

        # Values are rounded to one decimal, halves away from zero
        def rounded(values):
            values = values.astype(np.float64)
            return np.trunc(values * 10 + 0.5 * np.sign(values)) / 10

        means = rounded(cells['mean'])
        stdevs = rounded(cells['stdev'])
        data = {}
        i = 0
        for row in range(self.num_rows):
            for col in range(self.num_columns):
                data[f"{col}\t{row}"] = _cell_values(means[i], stdevs[i], cells['pixels'][i])
                i += 1
        self.data = data

        for col, row in self._read_coords(self.num_masked):
            self.mark_masked(col, row)
        for col, row in self._read_coords(self.num_outliers):
            self.mark_outlier(col, row)

        grids = np.frombuffer(
            read_exact(stream, self.num_subgrids * _V4_SUBGRID.itemsize), dtype=_V4_SUBGRID
        )
        self.subgrids = [
            {name: grid[name].item() for name in _V4_SUBGRID.names} for grid in grids
        ]

    def _read_coords(self, count):
        pairs = np.frombuffer(read_exact(self.stream, count * 4), dtype='<u2').reshape(-1, 2)
        return [(int(col), int(row)) for col, row in pairs]
