"""Line terminator detection and the byte-offset line reader."""

import io

import pytest

from arraydata.datafile.linebreaks import (
    LineReader,
    count_linebreaks,
    detect_linebreak,
    line_format_name,
)
from arraydata.errors import AmbiguousLinebreak, DatafileError

pytestmark = pytest.mark.unit


class TestCountLinebreaks:

    def test_dos_pairs_counted_once(self):
        assert count_linebreaks(b"a\r\nb\r\nc") == {"unix": 0, "dos": 2, "mac": 0}

    def test_mixed_counts(self):
        assert count_linebreaks(b"a\nb\rc\r\n") == {"unix": 1, "dos": 1, "mac": 1}

    def test_empty_sample(self):
        assert count_linebreaks(b"") == {"unix": 0, "dos": 0, "mac": 0}


class TestDetectLinebreak:

    @pytest.mark.parametrize("linebreak, name", [("\n", "Unix"), ("\r\n", "DOS"), ("\r", "Mac")])
    def test_each_style_from_path(self, write_datafile, linebreak, name):
        path = write_datafile("lines.txt", ["a\tb", "1\t2"], linebreak=linebreak)

        detected = detect_linebreak(path)

        assert detected == linebreak
        assert line_format_name(detected) == name

    def test_stream_position_is_restored(self):
        stream = io.BytesIO(b"a\r\nb\r\nc\r\n")
        stream.seek(4)

        assert detect_linebreak(stream) == "\r\n"
        assert stream.tell() == 4

    def test_crlf_not_split_at_sample_boundary(self):
        """A sample ending on CR reads one more byte before counting."""
        stream = io.BytesIO(b"abc\r\ndef\r\n")
        assert detect_linebreak(stream, chunk_size=4) == "\r\n"

    def test_mixed_styles_are_ambiguous(self, write_datafile):
        path = write_datafile("mixed.txt", [])
        path.write_bytes(b"a\nb\r\nc\n")

        with pytest.raises(AmbiguousLinebreak) as excinfo:
            detect_linebreak(path)

        assert excinfo.value.counts == {"unix": 2, "dos": 1, "mac": 0}
        assert "mixed.txt" in str(excinfo.value)

    def test_no_linebreak_is_ambiguous(self):
        with pytest.raises(AmbiguousLinebreak, match="0 Unix, 0 DOS, 0 Mac"):
            detect_linebreak(io.BytesIO(b"one line only"), filename="single.txt")

    def test_ambiguous_is_datafile_error(self):
        assert issubclass(AmbiguousLinebreak, DatafileError)

    def test_unknown_format_name(self):
        assert line_format_name("\t") == "Unknown"


class TestLineReader:

    def test_reads_lines_without_terminator(self):
        reader = LineReader(io.BytesIO(b"a\tb\r\n1\t2\r\n"), "\r\n")
        assert list(reader) == ["a\tb", "1\t2"]

    def test_last_line_without_terminator(self):
        reader = LineReader(io.BytesIO(b"a\nb"), "\n")
        assert list(reader) == ["a", "b"]

    def test_readline_none_at_eof(self):
        reader = LineReader(io.BytesIO(b"a\n"), "\n")
        assert reader.readline() == "a"
        assert reader.readline() is None

    def test_tell_and_seek(self):
        reader = LineReader(io.BytesIO(b"first\rsecond\rthird\r"), "\r")
        reader.readline()
        pos = reader.tell()
        assert pos == 6

        assert reader.readline() == "second"
        reader.seek(pos)
        assert reader.readline() == "second"
        reader.rewind()
        assert reader.readline() == "first"

    def test_small_chunks(self):
        data = b"alpha\r\nbeta\r\ngamma\r\n"
        reader = LineReader(io.BytesIO(data), "\r\n", chunk_size=3)
        assert list(reader) == ["alpha", "beta", "gamma"]
        assert reader.tell() == len(data)

    def test_buffer_holds_one_chunk_of_unread_data(self):
        lines = [f"row{n}\t{n * 7}" for n in range(200)]
        data = "".join(line + "\r\n" for line in lines).encode("latin-1")
        longest = max(len(line) for line in lines)
        reader = LineReader(io.BytesIO(data), "\r\n", chunk_size=5)

        offset = 0
        for line in lines:
            assert reader.readline() == line
            offset += len(line) + 2
            assert reader.tell() == offset
            assert len(reader._buffer) <= 5 + longest + 2
        assert reader.readline() is None

    def test_seek_mid_chunk(self):
        reader = LineReader(io.BytesIO(b"a\nbb\nccc\n"), "\n", chunk_size=64)
        reader.readline()
        pos = reader.tell()
        assert reader.readline() == "bb"
        reader.seek(pos)
        assert list(reader) == ["bb", "ccc"]

    def test_latin1_decoding(self):
        reader = LineReader(io.BytesIO("Intensité\n".encode("latin-1")), "\n")
        assert reader.readline() == "Intensité"

    def test_starts_at_stream_position(self):
        stream = io.BytesIO(b"skip\nkeep\n")
        stream.seek(5)
        reader = LineReader(stream, "\n")
        assert reader.tell() == 5
        assert list(reader) == ["keep"]
