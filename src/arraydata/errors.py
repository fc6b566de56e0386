"""Typed errors raised while decoding microarray data files.

These are data problems (bad or unsupported input), not pipeline bugs.
Pipeline bugs raise ContractViolation (see arraydata.contracts).

Key distinction:
- DatafileError: the file cannot be decoded; skip it or abort the batch
- ContractViolation: a stage broke its own guarantees (programmer error)
- Row-level problems are never raised; they accumulate in the error text
"""

__all__ = [
    'DatafileError',
    'AmbiguousLinebreak',
    'UnrecognizedFormat',
    'UnrecognizedBinaryFormat',
    'HeadingCountMismatch',
    'BinaryFormatError',
    'SectionParseError',
]


class DatafileError(RuntimeError):
    """Base class for all fatal, per-file decoding errors."""
    pass


class AmbiguousLinebreak(DatafileError):
    """No single line terminator could be identified.

    Parameters
    ----------
    counts : dict
        Occurrence counts with keys ``unix``, ``dos`` and ``mac``.
    filename : str, optional
        Name of the offending file, used in the message.
    """

    def __init__(self, counts: dict, filename: str = ""):
        self.counts = dict(counts)
        self.filename = filename
        super().__init__(
            "ERROR: Cannot parse linebreaks for file %s (%s Unix, %s DOS, %s Mac)"
            % (filename, counts.get("unix", 0), counts.get("dos", 0), counts.get("mac", 0))
        )


class UnrecognizedFormat(DatafileError):
    """No known column heading layout was found in the file header."""

    def __init__(self, lines_scanned: int):
        self.lines_scanned = lines_scanned
        super().__init__(
            f"Unable to detect supported data file column headings "
            f"({lines_scanned} header lines scanned)"
        )


class UnrecognizedBinaryFormat(DatafileError):
    """The leading magic number does not map to a known parser."""

    def __init__(self, magic, kind: str = "binary"):
        self.magic = magic
        self.kind = kind
        super().__init__(f"Error: Unrecognized {kind} file type: {magic}")


class HeadingCountMismatch(DatafileError):
    """Quantitation type and hybridization column counts differ."""

    def __init__(self, name: str, num_qts: int, num_hybs: int):
        self.num_qts = num_qts
        self.num_hybs = num_hybs
        super().__init__(
            f"Error: Hyb and QT numbers differ for file {name} "
            f"({num_qts} QTs, {num_hybs} hyb columns)"
        )


class BinaryFormatError(DatafileError):
    """A binary file is truncated or its layout is inconsistent."""
    pass


class SectionParseError(DatafileError):
    """A sectioned text export (ImaGene3, ScanArray) is malformed."""
    pass
