"""Tests for stream filter decoding."""

import base64
import zlib

import pytest

from bats_server.errors import PdfSyntaxError, TruncatedStream, UnsupportedFilter
from bats_server.pdf.filters import apply_predictor, decode


class TestDecode:
    """Tests for the filter chain."""

    def test_no_filters(self):
        assert decode(b"raw", []) == b"raw"

    def test_flate(self):
        assert decode(zlib.compress(b"BT ET"), ["FlateDecode"]) == b"BT ET"

    def test_ascii_hex(self):
        assert decode(b"48 65 6c 6c 6f>", ["ASCIIHexDecode"]) == b"Hello"

    def test_ascii85(self):
        encoded = base64.a85encode(b"Hello, PDF") + b"~>"
        assert decode(encoded, ["ASCII85Decode"]) == b"Hello, PDF"

    def test_chain_applies_in_order(self):
        encoded = zlib.compress(b"chained").hex().encode("ascii")
        assert decode(encoded, ["ASCIIHexDecode", "FlateDecode"]) == b"chained"

    def test_abbreviated_names(self):
        assert decode(zlib.compress(b"x"), ["Fl"]) == b"x"

    def test_unsupported_filter(self):
        with pytest.raises(UnsupportedFilter):
            decode(b"data", ["LZWDecode"])

    def test_corrupt_flate(self):
        with pytest.raises(TruncatedStream):
            decode(b"not zlib data", ["FlateDecode"])

    def test_invalid_ascii_hex(self):
        with pytest.raises(PdfSyntaxError):
            decode(b"zz>", ["ASCIIHexDecode"])

    def test_params_list_aligned_with_filters(self):
        rows = bytes([2, 1, 2, 2, 0, 0])
        encoded = zlib.compress(rows).hex().encode("ascii")
        params = [None, {"Predictor": 12, "Columns": 2}]
        assert decode(encoded, ["ASCIIHexDecode", "FlateDecode"], params) == bytes([1, 2, 1, 2])


class TestPredictors:
    """Tests for apply_predictor."""

    def test_no_params(self):
        assert apply_predictor(b"abc", None) == b"abc"

    def test_png_up(self):
        data = bytes([2, 1, 2, 3, 2, 1, 1, 1])
        assert apply_predictor(data, {"Predictor": 12, "Columns": 3}) == bytes([1, 2, 3, 2, 3, 4])

    def test_png_sub(self):
        data = bytes([1, 5, 1, 1])
        assert apply_predictor(data, {"Predictor": 11, "Columns": 3}) == bytes([5, 6, 7])

    def test_tiff(self):
        data = bytes([10, 1, 1])
        assert apply_predictor(data, {"Predictor": 2, "Columns": 3}) == bytes([10, 11, 12])

    def test_unknown_png_row_type(self):
        with pytest.raises(PdfSyntaxError):
            apply_predictor(bytes([9, 0]), {"Predictor": 12, "Columns": 1})

    def test_unsupported_predictor(self):
        with pytest.raises(UnsupportedFilter):
            apply_predictor(b"\x00", {"Predictor": 5})
