"""Tokenizer and object reader for PDF syntax."""

import re
from typing import Any

from ..errors import PdfFormatError, PdfSyntaxError, TruncatedStream
from .objects import Keyword, PdfName, PdfRef, PdfString

WHITESPACE = b"\x00\t\n\x0c\r "

_REGULAR = re.compile(rb"[^\x00\t\n\x0c\r ()<>\[\]{}/%]+")
_NUMBER = re.compile(rb"[+-]?(?:\d+\.?\d*|\.\d+)")
_HEX_DIGITS = re.compile(rb"[0-9A-Fa-f]*")
_NAME_ESCAPE = re.compile(rb"#([0-9A-Fa-f]{2})")

_ESCAPES = {
    ord("n"): 0x0A,
    ord("r"): 0x0D,
    ord("t"): 0x09,
    ord("b"): 0x08,
    ord("f"): 0x0C,
    ord("("): 0x28,
    ord(")"): 0x29,
    ord("\\"): 0x5C,
}

_CONSTANTS = {"true": True, "false": False, "null": None}


def _unescape_name(raw: bytes) -> str:
    return _NAME_ESCAPE.sub(lambda m: bytes([int(m.group(1), 16)]), raw).decode("latin-1")


class Lexer:
    """Sequential reader over a bytes buffer.

    ``next_token`` returns numbers, PdfName, PdfString or Keyword (which also
    covers the ``[ ] << >> { }`` delimiters), and None at end of data.
    """

    def __init__(self, data: bytes, pos: int = 0):
        self.data = data
        self.pos = pos

    def skip_whitespace(self) -> None:
        data = self.data
        end = len(data)
        pos = self.pos
        while pos < end:
            c = data[pos]
            if c in WHITESPACE:
                pos += 1
            elif c == 0x25:  # comment runs to end of line
                while pos < end and data[pos] not in (0x0A, 0x0D):
                    pos += 1
            else:
                break
        self.pos = pos

    def next_token(self) -> Any:
        self.skip_whitespace()
        data = self.data
        pos = self.pos
        if pos >= len(data):
            return None

        c = data[pos]
        if c == 0x2F:  # /
            match = _REGULAR.match(data, pos + 1)
            raw = match.group(0) if match else b""
            self.pos = pos + 1 + len(raw)
            return PdfName(_unescape_name(raw))
        if c == 0x28:  # (
            return self._read_literal()
        if c == 0x3C:  # <
            if data[pos + 1 : pos + 2] == b"<":
                self.pos = pos + 2
                return Keyword("<<")
            return self._read_hex()
        if c == 0x3E:  # >
            if data[pos + 1 : pos + 2] == b">":
                self.pos = pos + 2
                return Keyword(">>")
            raise PdfSyntaxError(f"unexpected '>' at offset {pos}")
        if c in b"[]{}":
            self.pos = pos + 1
            return Keyword(chr(c))
        if c == 0x29:
            raise PdfSyntaxError(f"unbalanced ')' at offset {pos}")

        token = _REGULAR.match(data, pos).group(0)
        self.pos = pos + len(token)
        text = token.decode("latin-1")
        if _NUMBER.fullmatch(token):
            return float(text) if "." in text else int(text)
        return Keyword(text)

    def _read_literal(self) -> PdfString:
        data = self.data
        end = len(data)
        pos = self.pos + 1
        depth = 1
        out = bytearray()
        while pos < end:
            c = data[pos]
            if c == 0x5C:  # backslash
                pos += 1
                if pos >= end:
                    break
                e = data[pos]
                if e in _ESCAPES:
                    out.append(_ESCAPES[e])
                    pos += 1
                elif 0x30 <= e <= 0x37:
                    stop = pos
                    while stop < end and stop < pos + 3 and 0x30 <= data[stop] <= 0x37:
                        stop += 1
                    out.append(int(data[pos:stop], 8) & 0xFF)
                    pos = stop
                elif e == 0x0D:  # escaped end of line is a continuation
                    pos += 1
                    if pos < end and data[pos] == 0x0A:
                        pos += 1
                elif e == 0x0A:
                    pos += 1
                else:
                    out.append(e)
                    pos += 1
                continue
            if c == 0x28:
                depth += 1
            elif c == 0x29:
                depth -= 1
                if depth == 0:
                    self.pos = pos + 1
                    return PdfString(bytes(out))
            elif c == 0x0D:
                out.append(0x0A)
                pos += 1
                if pos < end and data[pos] == 0x0A:
                    pos += 1
                continue
            out.append(c)
            pos += 1
        raise TruncatedStream(f"unterminated string starting at offset {self.pos}")

    def _read_hex(self) -> PdfString:
        close = self.data.find(b">", self.pos + 1)
        if close < 0:
            raise TruncatedStream(f"unterminated hex string at offset {self.pos}")
        digits = bytes(c for c in self.data[self.pos + 1 : close] if c not in WHITESPACE)
        if not _HEX_DIGITS.fullmatch(digits):
            raise PdfSyntaxError(f"invalid hex string at offset {self.pos}")
        if len(digits) % 2:
            digits += b"0"
        self.pos = close + 1
        return PdfString(bytes.fromhex(digits.decode("ascii")), hex=True)

    def read_object(self, allow_refs: bool = True) -> Any:
        return self.parse_value(self.next_token(), allow_refs)

    def parse_value(self, token: Any, allow_refs: bool = True) -> Any:
        """Turn ``token`` (already read) into a complete PDF value."""
        if token is None:
            raise TruncatedStream("unexpected end of data")

        if isinstance(token, Keyword):
            if token == "[":
                items = []
                while True:
                    item = self.next_token()
                    if isinstance(item, Keyword) and item == "]":
                        return items
                    items.append(self.parse_value(item, allow_refs))
            if token == "<<":
                result: dict[str, Any] = {}
                while True:
                    key = self.next_token()
                    if isinstance(key, Keyword) and key == ">>":
                        return result
                    if not isinstance(key, PdfName):
                        raise PdfSyntaxError(
                            f"dictionary key must be a name, got {key!r} at offset {self.pos}"
                        )
                    result[str(key)] = self.read_object(allow_refs)
            if token in _CONSTANTS:
                return _CONSTANTS[token]
            raise PdfSyntaxError(f"unexpected token {token!r} at offset {self.pos}")

        if allow_refs and type(token) is int:
            saved = self.pos
            try:
                gen = self.next_token()
                if type(gen) is int:
                    marker = self.next_token()
                    if isinstance(marker, Keyword) and marker == "R":
                        return PdfRef(token, gen)
            except PdfFormatError:
                pass
            self.pos = saved

        return token
