"""CDF library files: probe set names in unit order.

Only what CHP export needs is kept from the probe-level layout: every
unit's name and number, plus (for XDA files) the block and probe
coordinates that come for free while walking the body.
"""

import logging
import re
from typing import List

from arraydata.affymetrix.binary import (
    read_ascii,
    read_int32,
    read_uint8,
    read_uint16,
)
from arraydata.affymetrix.parser import AffymetrixParser
from arraydata.errors import BinaryFormatError

logger = logging.getLogger(__name__)

__all__ = ['CDFParser', 'GDACCDF', 'XDACDF']

_UNIT_SECTION = re.compile(r'\[Unit\d+\]')
_NAME = re.compile(r'\AName=(.+)\Z')
_UNIT_NUMBER = re.compile(r'\AUnitNumber=(\d+)\Z')


class CDFParser(AffymetrixParser):
    """Base for CDF parsers; ``data`` is a list of unit dicts."""

    kind = 'CDF'

    def __init__(self, source):
        super().__init__(source)
        self.data = []
        self.num_qc_cells = None

    def parse_header(self):
        """CDF headers and bodies are read together."""
        return self.parse()

    def parse(self):
        self.check_magic()
        self.parse_cdf()
        return self

    def parse_cdf(self):
        raise NotImplementedError

    @property
    def probeset_ids(self) -> List[str]:
        return [unit.get('name') for unit in self.data]


class GDACCDF(CDFParser):
    """Text CDF file (``[CDF]`` with ``Version=GC3.0``)."""

    required_magic = 1178878811

    def _lines(self):
        self.stream.seek(0)
        text = self.stream.read().decode('latin-1')
        return iter(text.replace('\r\n', '\n').replace('\r', '\n').split('\n'))

    @staticmethod
    def _value(lines):
        line = next(lines, None)
        if line is None:
            raise BinaryFormatError("Premature end of CDF file.")
        return line.split('=', 1)[1] if '=' in line else ''

    @staticmethod
    def _find(lines, regex):
        for line in lines:
            match = regex.search(line)
            if match:
                return match
        raise BinaryFormatError("Premature end of CDF file.")

    def parse_cdf(self):
        lines = self._lines()
        label = next(lines, '')
        if label != '[CDF]':
            raise BinaryFormatError(f"Error: Unrecognized CDF file format: {label}")
        version = next(lines, '')
        version = version[len('Version='):] if version.startswith('Version=') else version
        if version != 'GC3.0':
            raise BinaryFormatError(f"Error: Unrecognized CDF file version: {version}")
        self.version = version

        self._find(lines, re.compile(r'\A\[Chip\]\Z'))
        self.chip_type = self._value(lines)
        self.num_columns = int(self._value(lines))
        self.num_rows = int(self._value(lines))
        self.num_cells = int(self._value(lines))
        self._value(lines)  # MaxUnit
        self.num_qc_cells = int(self._value(lines))

        units = []
        for _ in range(self.num_cells):
            self._find(lines, _UNIT_SECTION)
            unit_name = self._find(lines, _NAME).group(1)
            unit_no = self._find(lines, _UNIT_NUMBER).group(1)
            if unit_name == 'NONE':
                # Expression units name themselves in their first block
                self._find(lines, re.compile(r'\[Unit%s_Block\d+\]' % unit_no))
                unit_name = self._find(lines, _NAME).group(1)
            if not unit_name:
                raise BinaryFormatError(f"Error: No name for unit {unit_no}.")
            units.append({'cell_no': int(unit_no), 'name': unit_name})
        self.data = units
        logger.debug("Read %s units from %s", len(units), self.name)


class XDACDF(CDFParser):
    """Binary little-endian CDF file written by GCOS."""

    required_magic = 67

    def parse_cdf(self):
        stream = self.stream
        stream.seek(4)
        self.version = read_int32(stream)
        self.num_columns = read_uint16(stream)
        self.num_rows = read_uint16(stream)
        self.num_cells = read_int32(stream)
        self.num_qc_cells = read_int32(stream)
        read_ascii(stream, read_int32(stream))  # resequencing reference

        units = [
            {'name': read_ascii(stream, 64).rstrip('\x00')}
            for _ in range(self.num_cells)
        ]
        stream.seek(4 * (self.num_qc_cells + self.num_cells), 1)  # file positions

        for _ in range(self.num_qc_cells):
            read_uint16(stream)  # type
            num_probes = read_int32(stream)
            stream.seek(7 * num_probes, 1)

        for unit in units:
            unit['type'] = read_uint16(stream)
            read_uint8(stream)  # direction
            read_int32(stream)  # num_atoms
            num_blocks = read_int32(stream)
            unit['num_blocks'] = num_blocks
            read_int32(stream)  # num_cells
            unit['cell_no'] = read_int32(stream)
            read_uint8(stream)  # cells_per_atom

            blocks = []
            for _ in range(num_blocks):
                read_int32(stream)  # num_atoms
                num_cells = read_int32(stream)
                read_uint8(stream)  # cells_per_atom
                read_uint8(stream)  # direction
                read_int32(stream)  # atom1_pos
                read_int32(stream)  # atom2_pos
                block = {'name': read_ascii(stream, 64).rstrip('\x00'), 'coords': []}
                for _ in range(num_cells):
                    block['coords'].append({
                        'atom': read_int32(stream),
                        'x': read_uint16(stream),
                        'y': read_uint16(stream),
                        'pos': read_int32(stream),
                        'pbase': read_ascii(stream, 1),
                        'tbase': read_ascii(stream, 1),
                    })
                blocks.append(block)
            unit['blocks'] = blocks
        self.data = units
