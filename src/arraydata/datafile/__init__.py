"""Text data file handling.

- types: Format and data type enumerations
- linebreaks: Line terminator detection and line reading
- headers: Column heading recognition
- transformers: Per-format rewrites into the canonical layout
- blocks: Block layout normalization
- statistics: Data row parsing and metrics
- raw: RawDataFile, the per-file entry point

Only the type enumerations are imported here; import the rest from their
modules.
"""

from arraydata.datafile.types import DataType, FormatType

__all__ = ['DataType', 'FormatType']
