"""Affymetrix file parsers.

- cel: CEL v3 (text) and v4 (binary)
- cdf: CDF text and XDA library files
- chp: CHP GDAC and XDA analysis results
- exp: EXP experiment settings
- calvin: Command Console generic CEL and CHP
- factory: Parser selection by suffix and magic number
"""

from arraydata.affymetrix.factory import make_parser, parser_class
from arraydata.affymetrix.parser import AffymetrixParser, AFFY_QT_PREFIX

__all__ = [
    'make_parser',
    'parser_class',
    'AffymetrixParser',
    'AFFY_QT_PREFIX',
]
