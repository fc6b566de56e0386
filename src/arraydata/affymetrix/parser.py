"""Common base for the Affymetrix file parsers.

Every parser owns one binary stream, checks the magic number at offset 0
against the value its class expects and exposes the fields shared across
CEL, CDF, CHP and EXP files. ``parse_header()`` only reads metadata and
may be called repeatedly; ``parse()`` reads header and body.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from arraydata.affymetrix.binary import read_int32
from arraydata.errors import BinaryFormatError

logger = logging.getLogger(__name__)

__all__ = ['AffymetrixParser', 'AFFY_QT_PREFIX', 'clean_values']

AFFY_QT_PREFIX = 'Affymetrix:QuantitationType:'


def clean_values(values: dict) -> dict:
    """Drop None and empty-string entries."""
    return {k: v for k, v in values.items() if v is not None and v != ''}


class AffymetrixParser:
    """Base class for one Affymetrix data or library file.

    Parameters
    ----------
    source : str, Path or binary file object
        File to parse. An open stream stays owned by the caller.

    Attributes
    ----------
    num_columns, num_rows, num_cells : int or None
        Array dimensions as recorded in the file.
    version : int or str or None
        File format version.
    algorithm, chip_type : str or None
        Analysis algorithm and array type name.
    parameters, stats : dict
        Algorithm parameters and summary statistics.
    headings : list of str
        Output column names written by ``export()``.
    qtd : list of str
        ``headings`` with the Affymetrix quantitation type prefix.
    """

    required_magic: Optional[int] = None
    kind = 'Affymetrix'

    def __init__(self, source):
        if isinstance(source, (str, Path)):
            self.path = Path(source)
            self.stream = open(self.path, 'rb')
            self._owns_stream = True
        else:
            self.path = Path(getattr(source, 'name', '<stream>'))
            self.stream = source
            self._owns_stream = False

        self.magic: Optional[int] = None
        self.num_columns: Optional[int] = None
        self.num_rows: Optional[int] = None
        self.num_cells: Optional[int] = None
        self.version = None
        self.algorithm: Optional[str] = None
        self.chip_type: Optional[str] = None
        self.parameters: Dict[str, str] = {}
        self.stats: Dict[str, str] = {}
        self.headings: List[str] = []
        self.qtd: List[str] = []
        self.data = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        if self._owns_stream and not self.stream.closed:
            self.stream.close()

    @property
    def name(self) -> str:
        return self.path.name

    def set_headings(self, headings):
        self.headings = list(headings)
        self.qtd = [AFFY_QT_PREFIX + h for h in self.headings]

    def add_parameters(self, values: dict):
        self.parameters.update(clean_values(values))

    def add_stats(self, values: dict):
        self.stats.update(clean_values(values))

    def check_magic(self):
        """Rewind, read the magic number and compare it with ``required_magic``."""
        self.stream.seek(0)
        self.magic = read_int32(self.stream)
        if self.required_magic is not None and self.magic != self.required_magic:
            raise BinaryFormatError(
                f"Error: Incorrect parser class used for {self.kind} type ({self.magic})"
            )
        return self.magic

    def check_dimensions(self):
        """Warn when the cell count disagrees with rows times columns."""
        if (self.num_cells is not None and self.num_rows is not None
                and self.num_columns is not None
                and self.num_cells != self.num_rows * self.num_columns):
            logger.warning(
                "Format error in %s: number of cells does not agree with row and column numbers",
                self.name,
            )

    def parse_header(self):
        raise NotImplementedError

    def parse(self):
        raise NotImplementedError

    def export(self, output, *args):
        """Write the parsed body as tab-delimited rows without a heading line."""
        raise NotImplementedError
