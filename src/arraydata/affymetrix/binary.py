"""Fixed-width primitive readers for Affymetrix binary files.

GDAC and XDA files store little-endian values. Command Console ("Calvin")
files store big-endian values and UTF-16BE text. Every reader consumes
exactly its width from the stream and raises BinaryFormatError on a short
read, so a truncated file never yields silently misaligned values.
"""

import struct

from arraydata.errors import BinaryFormatError

__all__ = [
    'read_exact',
    'read_int32',
    'read_uint32',
    'read_uint16',
    'read_uint8',
    'read_int8',
    'read_float',
    'read_floats',
    'read_ascii',
    'read_be_int16',
    'read_be_uint16',
    'read_be_int32',
    'read_be_uint32',
    'read_be_float',
    'read_string',
    'read_wstring',
    'decode_wchar',
    'round_half_away',
]

_LE_INT32 = struct.Struct('<i')
_LE_UINT32 = struct.Struct('<I')
_LE_UINT16 = struct.Struct('<H')
_LE_FLOAT = struct.Struct('<f')
_BE_INT16 = struct.Struct('>h')
_BE_UINT16 = struct.Struct('>H')
_BE_INT32 = struct.Struct('>i')
_BE_UINT32 = struct.Struct('>I')
_BE_FLOAT = struct.Struct('>f')


def read_exact(stream, size: int) -> bytes:
    """Read ``size`` bytes or fail."""
    if size < 0:
        raise BinaryFormatError(f"Negative field length {size}")
    data = stream.read(size)
    if len(data) != size:
        raise BinaryFormatError(
            f"Premature end of file: wanted {size} bytes, got {len(data)}"
        )
    return data


def _unpack(stream, fmt: struct.Struct):
    return fmt.unpack(read_exact(stream, fmt.size))[0]


# Little-endian (GDAC/XDA)

def read_int32(stream) -> int:
    return _unpack(stream, _LE_INT32)


def read_uint32(stream) -> int:
    return _unpack(stream, _LE_UINT32)


def read_uint16(stream) -> int:
    return _unpack(stream, _LE_UINT16)


def read_uint8(stream) -> int:
    return read_exact(stream, 1)[0]


def read_int8(stream) -> int:
    value = read_exact(stream, 1)[0]
    return value - 256 if value > 127 else value


def read_float(stream) -> float:
    return _unpack(stream, _LE_FLOAT)


def read_floats(stream, size: int):
    """Read ``size`` bytes as consecutive floats; trailing bytes are dropped."""
    data = read_exact(stream, size)
    count = size // 4
    return list(struct.unpack(f'<{count}f', data[:count * 4]))


def read_ascii(stream, length: int) -> str:
    """Fixed-length 8-bit text, decoded byte for byte."""
    return read_exact(stream, length).decode('latin-1')


# Big-endian (Calvin)

def read_be_int16(stream) -> int:
    return _unpack(stream, _BE_INT16)


def read_be_uint16(stream) -> int:
    return _unpack(stream, _BE_UINT16)


def read_be_int32(stream) -> int:
    return _unpack(stream, _BE_INT32)


def read_be_uint32(stream) -> int:
    return _unpack(stream, _BE_UINT32)


def read_be_float(stream) -> float:
    return _unpack(stream, _BE_FLOAT)


def read_string(stream, total: int = 0) -> str:
    """Length-prefixed 8-bit string.

    With ``total`` set the field has a fixed width of ``total`` bytes
    (prefix included) and the remainder is skipped.
    """
    length = read_be_int32(stream)
    value = read_ascii(stream, length)
    if total:
        stream.seek(total - (length + 4), 1)
    return value


def decode_wchar(data: bytes) -> str:
    """UTF-16BE text with trailing NUL characters removed."""
    return data.decode('utf-16-be', errors='replace').rstrip('\x00')


def read_wstring(stream, total: int = 0) -> str:
    """Length-prefixed UTF-16BE string; the prefix counts characters."""
    length = read_be_int32(stream) * 2
    value = decode_wchar(read_exact(stream, length))
    if total:
        stream.seek(total - (length + 4), 1)
    return value


def round_half_away(value: float, precision: int = 0) -> float:
    """Round halves away from zero, as the vendor tools print them."""
    factor = 10 ** precision
    sign = 1 if value > 0 else -1
    return int(value * factor + 0.5 * sign) / factor
