"""Line terminator detection and terminator-aware line reading.

Vendor exports arrive with Unix, DOS or classic Mac line endings and
nothing downstream may assume ``\\n``. The detector samples the start of a
file and insists on exactly one terminator style; the LineReader then
splits the byte stream on that terminator while tracking byte offsets, so
callers can remember a line position and seek back to it.
"""

import logging
import os

from arraydata.errors import AmbiguousLinebreak
from arraydata.datafile.types import LINE_FORMATS

logger = logging.getLogger(__name__)

__all__ = [
    'count_linebreaks',
    'detect_linebreak',
    'line_format_name',
    'LineReader',
]


def count_linebreaks(sample: bytes) -> dict:
    """Count Unix, DOS and Mac terminators in a byte sample.

    ``\\r\\n`` pairs are counted once as DOS and never as Unix or Mac.

    Parameters
    ----------
    sample : bytes
        Raw bytes from the start of a file.

    Returns
    -------
    dict
        ``{'unix': int, 'dos': int, 'mac': int}``
    """
    dos = sample.count(b"\r\n")
    return {
        "unix": sample.count(b"\n") - dos,
        "dos": dos,
        "mac": sample.count(b"\r") - dos,
    }


def _read_sample(stream, chunk_size: int) -> bytes:
    pos = stream.tell()
    try:
        stream.seek(0)
        sample = stream.read(chunk_size)
        # Do not split a CRLF pair across the sample boundary
        if sample.endswith(b"\r"):
            sample += stream.read(1)
    finally:
        stream.seek(pos)
    return sample


def detect_linebreak(source, chunk_size: int = 3_000_000, filename: str = "") -> str:
    """Identify the line terminator used by a file.

    Parameters
    ----------
    source : str, Path or binary file object
        File to sample. A file object keeps its read position.
    chunk_size : int
        Number of leading bytes to sample.
    filename : str, optional
        Name used in the error message; defaults to the path basename.

    Returns
    -------
    str
        ``"\\n"``, ``"\\r\\n"`` or ``"\\r"``.

    Raises
    ------
    AmbiguousLinebreak
        If no terminator is present, or more than one style is present.
    """
    if isinstance(source, (str, os.PathLike)):
        filename = filename or os.path.basename(os.fspath(source))
        with open(source, "rb") as fh:
            sample = _read_sample(fh, chunk_size)
    else:
        sample = _read_sample(source, chunk_size)

    counts = count_linebreaks(sample)
    present = [kind for kind, n in counts.items() if n > 0]
    if len(present) != 1:
        raise AmbiguousLinebreak(counts, filename)

    linebreak = {"unix": "\n", "dos": "\r\n", "mac": "\r"}[present[0]]
    logger.debug("Linebreaks for %s: %s (%s)", filename or "<stream>", line_format_name(linebreak), counts)
    return linebreak


def line_format_name(linebreak) -> str:
    """Human-readable name for a terminator: Unix, DOS, Mac or Unknown."""
    return LINE_FORMATS.get(linebreak, "Unknown")


class LineReader:
    """Read decoded lines from a binary stream split on a fixed terminator.

    Lines are returned without their terminator (stray trailing CR/LF
    characters are removed as well). ``tell()`` gives the byte offset of
    the next unread line and ``seek()`` returns to such an offset.

    Parameters
    ----------
    stream : binary file object
        Seekable stream opened in binary mode.
    linebreak : str
        Terminator returned by :func:`detect_linebreak`.
    encoding : str
        Codec used to decode each line. ``latin-1`` maps every byte.
    chunk_size : int
        Read size used to fill the internal buffer.
    """

    def __init__(self, stream, linebreak: str, encoding: str = "latin-1", chunk_size: int = 65536):
        self.stream = stream
        self.linebreak = linebreak
        self.encoding = encoding
        self.chunk_size = chunk_size
        self._sep = linebreak.encode("ascii")
        self._buffer = b""
        self._offset = 0
        self._pos = stream.tell()
        self._eof = False

    def tell(self) -> int:
        return self._pos

    def seek(self, pos: int) -> None:
        self.stream.seek(pos)
        self._pos = pos
        self._buffer = b""
        self._offset = 0
        self._eof = False

    def rewind(self) -> None:
        self.seek(0)

    def readline(self):
        """Return the next line as ``str``, or None at end of stream."""
        sep = self._sep
        while True:
            idx = self._buffer.find(sep, self._offset)
            if idx >= 0:
                raw = self._buffer[self._offset:idx]
                end = idx + len(sep)
                self._pos += end - self._offset
                self._offset = end
                break
            if self._eof:
                if self._offset >= len(self._buffer):
                    return None
                raw = self._buffer[self._offset:]
                self._pos += len(raw)
                self._buffer = b""
                self._offset = 0
                break
            chunk = self.stream.read(self.chunk_size)
            if not chunk:
                self._eof = True
            else:
                # Consumed lines are dropped once per chunk
                self._buffer = self._buffer[self._offset:] + chunk
                self._offset = 0
        return raw.decode(self.encoding).rstrip("\r\n")

    def __iter__(self):
        while True:
            line = self.readline()
            if line is None:
                return
            yield line
