"""EXP experiment description files (MAS 5 text format)."""

import logging
import re
from typing import Dict, List, Optional

from arraydata.affymetrix.parser import AffymetrixParser
from arraydata.datafile.linebreaks import LineReader, detect_linebreak
from arraydata.errors import SectionParseError

logger = logging.getLogger(__name__)

__all__ = ['EXPParser']

_LABEL = re.compile(r'\AAffymetrix GeneChip Experiment Information\s*\Z')
_VERSION = re.compile(r'\AVersion\t(\d+)')

_SAMPLE_FIELDS = {
    'Chip Type': 'chip_type',
    'Chip Lot': 'chip_lot',
    'Operator': 'operator',
}
_FLUIDICS_FIELDS = {
    'Protocol': 'protocol',
    'Station': 'station',
    'Module': 'module',
    'Hybridize Date': 'hyb_date',
}
_SCANNER_FIELDS = {
    'Pixel Size': 'pixel_size',
    'Filter': 'filter',
    'Scan Temperature': 'scan_temp',
    'Scan Date': 'scan_date',
    'Scanner ID': 'scanner_id',
    'Number of Scans': 'num_scans',
    'Scanner Type': 'scanner_type',
}


class EXPParser(AffymetrixParser):
    """Sample, fluidics and scanner settings recorded for one hybridization.

    Fluidics lines other than the four named settings are hybridization
    steps. They are kept in file order in ``hyb_parameters`` and added to
    ``parameters`` as ``HybridizationStep<n>-<protocol>`` (numbered from 0).
    """

    kind = 'EXP'

    def __init__(self, source, chunk_size: int = 3_000_000):
        super().__init__(source)
        self.chunk_size = chunk_size
        self.chip_lot: Optional[str] = None
        self.operator: Optional[str] = None
        self.protocol: Optional[str] = None
        self.station: Optional[str] = None
        self.module: Optional[str] = None
        self.hyb_date: Optional[str] = None
        self.pixel_size: Optional[str] = None
        self.filter: Optional[str] = None
        self.scan_temp: Optional[str] = None
        self.scan_date: Optional[str] = None
        self.scanner_id: Optional[str] = None
        self.num_scans: Optional[str] = None
        self.scanner_type: Optional[str] = None
        self.hyb_parameters: List[Dict[str, str]] = []

    def parse_header(self):
        return self.parse()

    @staticmethod
    def _section(reader, name):
        for line in reader:
            if line.startswith(f'[{name}]'):
                return
        raise SectionParseError(f"Error: EXP section [{name}] not found")

    @staticmethod
    def _settings(reader):
        for line in reader:
            if not line.strip():
                return
            fields = line.split('\t')
            yield fields[0], fields[1] if len(fields) > 1 else None

    def parse(self):
        """Read the three settings sections.

        Raises
        ------
        AmbiguousLinebreak
            If the line endings are mixed.
        SectionParseError
            If the label line is wrong or a section is missing.
        """
        linebreak = detect_linebreak(self.stream, self.chunk_size, self.name)
        self.stream.seek(0)
        reader = LineReader(self.stream, linebreak)

        label = reader.readline() or ''
        if not _LABEL.match(label):
            raise SectionParseError(f"Error: Unrecognized EXP file format: {label}")
        match = _VERSION.match(reader.readline() or '')
        self.version = match.group(1) if match else None

        self._section(reader, 'Sample Info')
        for key, value in self._settings(reader):
            if key in _SAMPLE_FIELDS:
                setattr(self, _SAMPLE_FIELDS[key], value)

        self._section(reader, 'Fluidics')
        step = 0
        for key, value in self._settings(reader):
            if key in _FLUIDICS_FIELDS:
                setattr(self, _FLUIDICS_FIELDS[key], value)
                continue
            self.add_parameters({f"HybridizationStep{step}-{self.protocol or ''}": value})
            self.hyb_parameters.append({key: value})
            step += 1

        self._section(reader, 'Scanner')
        for key, value in self._settings(reader):
            if key in _SCANNER_FIELDS:
                setattr(self, _SCANNER_FIELDS[key], value)

        logger.debug("Read EXP %s: chip %s, %s hyb steps", self.name, self.chip_type, step)
        return self

    def export(self, output, *args):
        """Rewrite the parsed settings in EXP layout, for checking."""
        def text(value):
            return '' if value is None else value

        output.write("Affymetrix GeneChip Experiment Information\n")
        output.write(f"Version\t{text(self.version)}\n\n")
        output.write("[Sample Info]\n")
        output.write(f"Chip Type\t{text(self.chip_type)}\n")
        output.write(f"Chip Lot\t{text(self.chip_lot)}\n")
        output.write(f"Operator\t{text(self.operator)}\n\n")
        output.write(f"[Fluidics]\nProtocol\t{text(self.protocol)}\n")
        for step in self.hyb_parameters:
            for key, value in step.items():
                output.write(f"{key}\t{text(value)}\n")
        output.write(f"Station\t{text(self.station)}\n")
        output.write(f"Module\t{text(self.module)}\n")
        output.write(f"Hybridize Date\t{text(self.hyb_date)}\n\n")
        output.write("[Scanner]\n")
        for key, attr in _SCANNER_FIELDS.items():
            output.write(f"{key}\t{text(getattr(self, attr))}\n")
