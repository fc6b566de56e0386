"""Fixed-width readers for Affymetrix binary files."""

import io
import struct

import pytest

from arraydata.affymetrix.binary import (
    decode_wchar,
    read_be_int16,
    read_exact,
    read_floats,
    read_int8,
    read_int32,
    read_string,
    read_uint16,
    read_wstring,
    round_half_away,
)
from arraydata.errors import BinaryFormatError

pytestmark = [pytest.mark.unit, pytest.mark.affymetrix]


def test_little_endian_integers():
    stream = io.BytesIO(struct.pack("<iH", -5, 513))
    assert read_int32(stream) == -5
    assert read_uint16(stream) == 513


def test_big_endian_and_signed_bytes():
    stream = io.BytesIO(struct.pack(">h", -2) + b"\xff")
    assert read_be_int16(stream) == -2
    assert read_int8(stream) == -1


def test_short_read_raises():
    with pytest.raises(BinaryFormatError, match="Premature end of file"):
        read_int32(io.BytesIO(b"\x01\x02"))


def test_negative_length_raises():
    with pytest.raises(BinaryFormatError, match="Negative field length"):
        read_exact(io.BytesIO(b""), -1)


def test_floats_drop_trailing_bytes():
    stream = io.BytesIO(struct.pack("<2f", 1.5, 2.0) + b"xy")
    assert read_floats(stream, 10) == [1.5, 2.0]


def test_fixed_width_string_skips_padding():
    stream = io.BytesIO(struct.pack(">i", 2) + b"ab" + b"\x00" * 4 + b"Z")

    assert read_string(stream, total=10) == "ab"
    assert stream.read(1) == b"Z"


def test_wide_string_counts_characters():
    stream = io.BytesIO(struct.pack(">i", 2) + "hi".encode("utf-16-be"))
    assert read_wstring(stream) == "hi"


def test_decode_wchar_strips_nul_padding():
    assert decode_wchar("en-US".encode("utf-16-be") + b"\x00\x00") == "en-US"


def test_round_half_away_from_zero():
    assert round_half_away(2.5) == 3.0
    assert round_half_away(-2.5) == -3.0
    assert round_half_away(0.125, 2) == 0.13
