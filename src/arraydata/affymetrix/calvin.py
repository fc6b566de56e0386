"""Command Console ("Calvin") generic data files: CEL and CHP.

A Calvin file is a small header (magic byte 59, version, group count and
first group offset) followed by a data header and a chain of data groups.
Each group chains data sets; a data set describes typed columns and
points at its row-major table. All values are big-endian and text is
UTF-16BE.

Metadata is read eagerly when the parser is created; rows are read on
export, seeking to each table and restoring the caller's position.
"""

import logging
import re
import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from arraydata.affymetrix.binary import (
    decode_wchar,
    read_be_float,
    read_be_int16,
    read_be_int32,
    read_be_uint16,
    read_be_uint32,
    read_exact,
    read_int8,
    read_string,
    read_uint8,
    read_wstring,
)
from arraydata.affymetrix.parser import AffymetrixParser
from arraydata.errors import BinaryFormatError

logger = logging.getLogger(__name__)

__all__ = [
    'CalvinParameter',
    'DataColumn',
    'DataSet',
    'DataGroup',
    'DataHeader',
    'CalvinFile',
    'CalvinCEL',
    'CalvinCHP',
    'decode_parameter',
]

CALVIN_MAGIC = 59
DATA_HEADER_OFFSET = 10

EXPRESSION_ANALYSIS = 'affymetrix-expression-probeset-analysis'


def _network_float(stream, size=None) -> str:
    return "%.5f" % read_be_float(stream)


# Column type code -> reader(stream, size)
_COLUMN_READERS: Dict[int, Callable] = {
    0: lambda stream, size: read_int8(stream),
    1: lambda stream, size: read_uint8(stream),
    2: lambda stream, size: read_be_int16(stream),
    3: lambda stream, size: read_be_uint16(stream),
    4: lambda stream, size: read_be_int32(stream),
    5: lambda stream, size: read_be_uint32(stream),
    6: _network_float,
    7: read_string,
    8: read_wstring,
}

_MIME_INTEGERS = {
    'text/x-calvin-integer-8': '>b',
    'text/x-calvin-unsigned-integer-8': '>B',
    'text/x-calvin-integer-16': '>h',
    'text/x-calvin-unsigned-integer-16': '>H',
    'text/x-calvin-integer-32': '>i',
    'text/x-calvin-unsigned-integer-32': '>I',
}


@dataclass
class CalvinParameter:
    """One typed name/value/MIME-type record."""
    name: str
    value: Any
    type: str


def decode_parameter(raw: bytes, mime_type: str):
    """Decode a parameter value by its MIME type.

    Integers are read from the start of the value field, floats become
    ``%.5f`` text and text values lose their NUL padding.

    Raises
    ------
    BinaryFormatError
        For an unknown MIME type or a value field too short for it.
    """
    try:
        if mime_type in _MIME_INTEGERS:
            fmt = _MIME_INTEGERS[mime_type]
            return struct.unpack(fmt, raw[:struct.calcsize(fmt)])[0]
        if mime_type == 'text/x-calvin-float':
            return "%.5f" % struct.unpack('>f', raw[:4])[0]
    except struct.error as err:
        raise BinaryFormatError(f"Short {mime_type} parameter value: {err}") from err
    if mime_type == 'text/plain':
        return decode_wchar(raw)
    if mime_type == 'text/ascii':
        return raw.decode('latin-1').rstrip('\x00')
    raise BinaryFormatError(f"Unrecognized MIME type: {mime_type}")


def _read_parameter(stream) -> CalvinParameter:
    name = read_wstring(stream)
    raw = read_exact(stream, read_be_int32(stream))
    mime_type = read_wstring(stream)
    return CalvinParameter(name, decode_parameter(raw, mime_type), mime_type)


def _read_parameters(stream) -> List[CalvinParameter]:
    return [_read_parameter(stream) for _ in range(read_be_int32(stream))]


@dataclass
class DataColumn:
    """Column description; ``size`` is the on-disk width in bytes."""
    name: str
    type: int
    size: int

    def __post_init__(self):
        if not self.name:
            raise BinaryFormatError("Error: Column name not set.")
        if self.type not in _COLUMN_READERS:
            raise BinaryFormatError(f"Error: Unrecognized column type {self.type}.")

    def read(self, stream):
        return _COLUMN_READERS[self.type](stream, self.size)


@dataclass
class DataSet:
    """Column layout and table location of one data set."""
    name: str
    data_table_start: int
    next_set_position: int
    num_data_rows: int
    columns: List[DataColumn] = field(default_factory=list)
    parameters: List[CalvinParameter] = field(default_factory=list)

    @classmethod
    def read(cls, stream, position: int) -> "DataSet":
        stream.seek(position)
        table_start = read_be_uint32(stream)
        next_position = read_be_uint32(stream)
        name = read_wstring(stream)
        parameters = _read_parameters(stream)
        columns = [
            DataColumn(read_wstring(stream), read_int8(stream), read_be_int32(stream))
            for _ in range(read_be_uint32(stream))
        ]
        num_rows = read_be_uint32(stream)
        return cls(name, table_start, next_position, num_rows, columns, parameters)

    @property
    def row_size(self) -> int:
        return sum(column.size for column in self.columns)

    def rows(self, stream):
        """Yield each row as a list of values; the stream position is restored."""
        pos = stream.tell()
        try:
            stream.seek(self.data_table_start)
            for _ in range(self.num_data_rows):
                yield [column.read(stream) for column in self.columns]
        finally:
            stream.seek(pos)

    def export(self, stream, output, value_mapping: Optional[Dict[int, dict]] = None):
        """Write the table as tab-delimited rows.

        ``value_mapping`` maps a column index to a code -> label dict;
        unmapped codes are written empty.
        """
        value_mapping = value_mapping or {}
        for row in self.rows(stream):
            values = []
            for i, value in enumerate(row):
                if i in value_mapping:
                    value = value_mapping[i].get(value, '')
                values.append(str(value))
            output.write("\t".join(values) + "\n")


@dataclass
class DataGroup:
    """Named chain of data sets."""
    name: str
    next_group_position: int
    data_sets: List[DataSet] = field(default_factory=list)

    @classmethod
    def read(cls, stream, position: int) -> "DataGroup":
        stream.seek(position)
        next_position = read_be_uint32(stream)
        set_position = read_be_uint32(stream)
        num_sets = read_be_int32(stream)
        name = read_wstring(stream)
        data_sets = []
        for i in range(num_sets):
            if i and not set_position:
                raise BinaryFormatError("Error: Data set gives no position for next set.")
            data_set = DataSet.read(stream, set_position)
            data_sets.append(data_set)
            set_position = data_set.next_set_position
        return cls(name, next_position, data_sets)

    def get_data_set(self, num: int) -> DataSet:
        if not 0 <= num < len(self.data_sets):
            raise BinaryFormatError(f"Error: No data set found for number {num}")
        return self.data_sets[num]


@dataclass
class DataHeader:
    """File provenance: data type, identifiers, parameters and parent headers."""
    data_type: str
    file_identifier: str
    creation_date: str
    locale: str
    parameters: List[CalvinParameter] = field(default_factory=list)
    parents: List["DataHeader"] = field(default_factory=list)

    @classmethod
    def read(cls, stream) -> "DataHeader":
        """Read a header (and its parents) from the current position."""
        data_type = read_string(stream)
        file_identifier = read_string(stream)
        creation_date = read_wstring(stream)
        locale = decode_wchar(read_exact(stream, 14))
        parameters = _read_parameters(stream)
        parents = [cls.read(stream) for _ in range(read_be_int32(stream))]
        return cls(data_type, file_identifier, creation_date, locale, parameters, parents)


class CalvinFile(AffymetrixParser):
    """Generic Calvin container with CEL/CHP-style summary attributes.

    Headings come from the columns of the first data set of the first
    group; ``affymetrix-algorithm-param-*`` and ``affymetrix-chipsummary-*``
    header parameters fill ``parameters`` and ``stats``.
    """

    required_magic = 315
    kind = 'Calvin'

    _ATTRIBUTES = {
        'affymetrix-algorithm-name': 'algorithm',
        'affymetrix-array-type': 'chip_type',
        'affymetrix-cel-cols': 'num_columns',
        'affymetrix-cel-rows': 'num_rows',
    }

    def __init__(self, source):
        super().__init__(source)
        self.data_groups: List[DataGroup] = []
        self.data_header: Optional[DataHeader] = None
        self.num_data_groups = None
        self._ded = []

    def check_magic(self):
        self.stream.seek(0)
        self.magic = read_uint8(self.stream)
        if self.magic != CALVIN_MAGIC:
            raise BinaryFormatError(f"Error: Unrecognized file magic number: {self.magic}")
        return self.magic

    def parse_header(self):
        """Read the file header, data header and group chain."""
        stream = self.stream
        pos = stream.tell()
        try:
            self.check_magic()
            self.version = read_uint8(stream)
            self.num_data_groups = read_be_int32(stream)
            group_position = read_be_uint32(stream)

            self.data_header = DataHeader.read(stream)

            groups = []
            for _ in range(self.num_data_groups):
                group = DataGroup.read(stream, group_position)
                groups.append(group)
                group_position = group.next_group_position
            self.data_groups = groups
        finally:
            stream.seek(pos)

        self._apply_header_parameters()
        self.set_headings([column.name for column in self.data_set.columns])
        return self

    def parse(self):
        """Rows are read on export; only the metadata is parsed here."""
        if self.data_header is None:
            self.parse_header()
        return self

    def _apply_header_parameters(self):
        for param in self.data_header.parameters:
            attr = self._ATTRIBUTES.get(param.name)
            if attr:
                value = param.value
                if attr in ('num_columns', 'num_rows'):
                    value = int(value)
                setattr(self, attr, value)
                continue
            match = re.match(r'affymetrix-algorithm-param-(.*)', param.name)
            if match:
                self.parameters[match.group(1)] = param.value
                continue
            match = re.match(r'affymetrix-chipsummary-(.*)', param.name)
            if match:
                self.stats[match.group(1)] = param.value

    def get_data_group(self, num: int) -> DataGroup:
        if not 0 <= num < len(self.data_groups):
            raise BinaryFormatError(f"Error: No data group found for number {num}")
        return self.data_groups[num]

    @property
    def data_set(self) -> DataSet:
        return self.get_data_group(0).get_data_set(0)

    def export(self, output, *args):
        self.parse()
        self.data_set.export(self.stream, output)

    def generate_ded(self) -> List[str]:
        raise NotImplementedError

    def get_ded(self, *args) -> List[str]:
        self.parse()
        if not self._ded:
            if not self.chip_type:
                raise ValueError(f"Chip type is not known for {self.name}")
            self._ded = self.generate_ded()
        return self._ded


class CalvinCEL(CalvinFile):
    """Calvin CEL: one data set per quantity plus outlier and mask lists."""

    kind = 'CEL'
    HEADINGS = ['Intensity', 'StdDev', 'Pixel', 'Outlier', 'Mask']

    def parse_header(self):
        super().parse_header()
        self.set_headings(self.HEADINGS)
        return self

    def export(self, output, *args):
        """Write intensity, stdev, pixels and the two flags per cell, row-major."""
        self.parse()
        values = []
        flags = {'Outlier': set(), 'Mask': set()}
        for data_set in self.get_data_group(0).data_sets:
            if data_set.name in flags:
                for row in data_set.rows(self.stream):
                    if len(row) >= 2 and row[0] is not None and row[1] is not None:
                        flags[data_set.name].add((row[0], row[1]))
            else:
                values.append(iter(["|".join(str(v) for v in row) for row in data_set.rows(self.stream)]))

        quantities = values[:3]
        for y in range(self.num_rows or 0):
            for x in range(self.num_columns or 0):
                fields = [next(column, '') for column in quantities]
                fields.append('true' if (x, y) in flags['Outlier'] else 'false')
                fields.append('true' if (x, y) in flags['Mask'] else 'false')
                output.write("\t".join(fields) + "\n")

    def generate_ded(self) -> List[str]:
        return [
            "Affymetrix:Feature:%s:Probe(%d,%d)" % (self.chip_type, x, y)
            for y in range(self.num_rows or 0)
            for x in range(self.num_columns or 0)
        ]


class CalvinCHP(CalvinFile):
    """Calvin CHP: probe set results in the first data set."""

    kind = 'CHP'

    def export(self, output, *args):
        """Write the result table; expression detection codes become labels."""
        self.parse()
        mapping = None
        if self.data_header.data_type == EXPRESSION_ANALYSIS:
            mapping = {1: {0: 'Present', 1: 'Marginal', 2: 'Absent'}}
        self.data_set.export(self.stream, output, mapping)

    def generate_ded(self) -> List[str]:
        return [
            f"Affymetrix:CompositeSequence:{self.chip_type}:{row[0]}"
            for row in self.data_set.rows(self.stream)
        ]
