"""Pick the parser class for an Affymetrix file from its magic number."""

import logging
from pathlib import Path
from typing import Dict, Type

from arraydata.affymetrix.binary import read_int32
from arraydata.affymetrix.calvin import CalvinCEL, CalvinCHP
from arraydata.affymetrix.cdf import GDACCDF, XDACDF
from arraydata.affymetrix.cel import CELv3, CELv4
from arraydata.affymetrix.chp import CHPv8, CHPv12, CHPv13, GDACCHP, XDACHP
from arraydata.affymetrix.exp import EXPParser
from arraydata.affymetrix.parser import AffymetrixParser
from arraydata.errors import BinaryFormatError, UnrecognizedBinaryFormat

logger = logging.getLogger(__name__)

__all__ = ['make_parser', 'parser_class', 'read_magic', 'AFFYMETRIX_SUFFIXES']

CEL_TYPES: Dict[int, Type[AffymetrixParser]] = {
    1279607643: CELv3,
    64: CELv4,
    315: CalvinCEL,
}

CDF_TYPES: Dict[int, Type[AffymetrixParser]] = {
    1178878811: GDACCDF,
    67: XDACDF,
}

CHP_TYPES: Dict[int, Type[AffymetrixParser]] = {
    GDACCHP.required_magic: GDACCHP,
    65: XDACHP,
    315: CalvinCHP,
}

GDAC_CHP_VERSIONS: Dict[int, Type[AffymetrixParser]] = {
    8: CHPv8,
    12: CHPv12,
    13: CHPv13,
}

_TABLES = {
    '.cel': ('CEL', CEL_TYPES),
    '.cdf': ('CDF', CDF_TYPES),
    '.chp': ('CHP', CHP_TYPES),
}

AFFYMETRIX_SUFFIXES = ('.cel', '.cdf', '.chp', '.exp')


def read_magic(stream, offset: int = 0) -> int:
    """Little-endian int32 at ``offset``; the stream position is restored."""
    pos = stream.tell()
    try:
        stream.seek(offset)
        return read_int32(stream)
    finally:
        stream.seek(pos)


def parser_class(stream, suffix: str) -> Type[AffymetrixParser]:
    """Parser class for an open binary stream with the given file suffix.

    Raises
    ------
    UnrecognizedBinaryFormat
        For an unknown suffix, magic number or GDAC CHP version.
    """
    suffix = suffix.lower()
    if suffix == '.exp':
        return EXPParser
    if suffix not in _TABLES:
        raise UnrecognizedBinaryFormat(suffix, 'Affymetrix')

    kind, table = _TABLES[suffix]
    try:
        magic = read_magic(stream)
    except BinaryFormatError as err:
        raise UnrecognizedBinaryFormat('<empty>', kind) from err
    cls = table.get(magic)
    if cls is None:
        raise UnrecognizedBinaryFormat(magic, kind)

    if cls is GDACCHP:
        # Version follows the 22-byte "GeneChip Sequence File" label
        version = read_magic(stream, 22)
        cls = GDAC_CHP_VERSIONS.get(version)
        if cls is None:
            raise UnrecognizedBinaryFormat(version, 'GDAC CHP version')
    return cls


def make_parser(source) -> AffymetrixParser:
    """Open ``source`` with the parser its suffix and magic number call for.

    Parameters
    ----------
    source : str or Path
        Path to a CEL, CDF, CHP or EXP file.

    Returns
    -------
    AffymetrixParser
        An unparsed parser that owns its file handle.
    """
    path = Path(source)
    with open(path, 'rb') as stream:
        cls = parser_class(stream, path.suffix)
    logger.debug("Using %s for %s", cls.__name__, path.name)
    return cls(path)
