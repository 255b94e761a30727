"""Stream filter decoding."""

import base64
import binascii
import zlib
from typing import Any

from ..errors import PdfSyntaxError, TruncatedStream, UnsupportedFilter
from .lexer import WHITESPACE

# Abbreviated names are only legal in inline images but some writers use
# them everywhere.
_ALIASES = {
    "Fl": "FlateDecode",
    "AHx": "ASCIIHexDecode",
    "A85": "ASCII85Decode",
}


def _paeth(left: int, up: int, upper_left: int) -> int:
    estimate = left + up - upper_left
    dl = abs(estimate - left)
    du = abs(estimate - up)
    dul = abs(estimate - upper_left)
    if dl <= du and dl <= dul:
        return left
    if du <= dul:
        return up
    return upper_left


def _undo_png_predictor(data: bytes, colors: int, bits: int, columns: int) -> bytes:
    bpp = max(1, colors * bits // 8)
    row_len = (colors * bits * columns + 7) // 8
    stride = row_len + 1
    out = bytearray()
    previous = bytearray(row_len)
    for start in range(0, len(data), stride):
        kind = data[start]
        row = bytearray(data[start + 1 : start + stride])
        row.extend(b"\x00" * (row_len - len(row)))
        for i in range(row_len):
            left = row[i - bpp] if i >= bpp else 0
            up = previous[i]
            upper_left = previous[i - bpp] if i >= bpp else 0
            if kind == 1:
                row[i] = (row[i] + left) & 0xFF
            elif kind == 2:
                row[i] = (row[i] + up) & 0xFF
            elif kind == 3:
                row[i] = (row[i] + ((left + up) >> 1)) & 0xFF
            elif kind == 4:
                row[i] = (row[i] + _paeth(left, up, upper_left)) & 0xFF
            elif kind != 0:
                raise PdfSyntaxError(f"unknown PNG predictor row type {kind}")
        out.extend(row)
        previous = row
    return bytes(out)


def _undo_tiff_predictor(data: bytes, colors: int, bits: int, columns: int) -> bytes:
    if bits != 8:
        raise UnsupportedFilter(f"TIFF predictor with {bits} bits per component")
    row_len = colors * columns
    out = bytearray(data)
    for start in range(0, len(out), row_len):
        for i in range(start + colors, min(start + row_len, len(out))):
            out[i] = (out[i] + out[i - colors]) & 0xFF
    return bytes(out)


def apply_predictor(data: bytes, params: dict[str, Any] | None) -> bytes:
    """Reverse a /Predictor from /DecodeParms (1 means none)."""
    if not params:
        return data
    predictor = params.get("Predictor", 1)
    if predictor == 1:
        return data
    colors = params.get("Colors", 1)
    bits = params.get("BitsPerComponent", 8)
    columns = params.get("Columns", 1)
    if predictor == 2:
        return _undo_tiff_predictor(data, colors, bits, columns)
    if 10 <= predictor <= 15:
        return _undo_png_predictor(data, colors, bits, columns)
    raise UnsupportedFilter(f"unsupported predictor {predictor}")


def flate_decode(data: bytes) -> bytes:
    try:
        return zlib.decompress(data)
    except zlib.error as e:
        raise TruncatedStream(f"corrupt FlateDecode data: {e}") from e


def ascii_hex_decode(data: bytes) -> bytes:
    digits = bytes(c for c in data if c not in WHITESPACE)
    end = digits.find(b">")
    if end >= 0:
        digits = digits[:end]
    if len(digits) % 2:
        digits += b"0"
    try:
        return binascii.unhexlify(digits)
    except binascii.Error as e:
        raise PdfSyntaxError(f"invalid ASCIIHexDecode data: {e}") from e


def ascii85_decode(data: bytes) -> bytes:
    body = bytes(c for c in data if c not in WHITESPACE)
    if body.startswith(b"<~"):
        body = body[2:]
    end = body.find(b"~>")
    if end >= 0:
        body = body[:end]
    try:
        return base64.a85decode(body)
    except ValueError as e:
        raise PdfSyntaxError(f"invalid ASCII85Decode data: {e}") from e


_DECODERS = {
    "FlateDecode": flate_decode,
    "ASCIIHexDecode": ascii_hex_decode,
    "ASCII85Decode": ascii85_decode,
}


def decode(raw: bytes, filters: list[str], parms: Any = None) -> bytes:
    """Run ``raw`` through the filter chain.

    ``parms`` is the stream's /DecodeParms: a dict, a list aligned with
    ``filters``, or None.
    """
    if not isinstance(parms, list):
        parms = [parms] * len(filters)
    parms = parms + [None] * (len(filters) - len(parms))

    data = raw
    for name, params in zip(filters, parms):
        name = _ALIASES.get(name, name)
        decoder = _DECODERS.get(name)
        if decoder is None:
            raise UnsupportedFilter(f"unsupported stream filter /{name}")
        data = decoder(data)
        if name == "FlateDecode":
            data = apply_predictor(data, params if isinstance(params, dict) else None)
    return data


def flate_encode(data: bytes) -> bytes:
    return zlib.compress(data)
