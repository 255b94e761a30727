"""PDF parsing: header, cross-reference chain and page tree."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import (
    CorruptCrossReference,
    MalformedHeader,
    PdfSyntaxError,
    ResourceError,
    UnsupportedEncryption,
)
from ..logger import logger
from .document import Document, XrefEntry, read_indirect_object
from .filters import decode
from .lexer import Lexer
from .objects import Keyword, PdfStream

HEADER_SEARCH_BYTES = 1024
TAIL_SEARCH_BYTES = 2048

_HEADER = re.compile(rb"%PDF-(\d\.\d)")
_STARTXREF = re.compile(rb"startxref\s+(\d+)")

# Keys carried from the trailer into Document.trailer; newer revisions win
_TRAILER_KEYS = ("Root", "Info", "ID", "Encrypt")


@dataclass
class XrefSection:
    offset: int
    entries: dict[int, XrefEntry]
    trailer: dict[str, Any]


def _read_header(data: bytes) -> str:
    match = _HEADER.search(data, 0, HEADER_SEARCH_BYTES)
    if match is None:
        raise MalformedHeader("missing %PDF- header")
    return match.group(1).decode("ascii")


def _find_startxref(data: bytes) -> int:
    tail_start = max(0, len(data) - TAIL_SEARCH_BYTES)
    matches = list(_STARTXREF.finditer(data, tail_start))
    if not matches:
        raise CorruptCrossReference("no startxref found at end of file")
    return int(matches[-1].group(1))


def _read_xref_table(data: bytes, offset: int, pos: int) -> XrefSection:
    lexer = Lexer(data, pos)
    entries: dict[int, XrefEntry] = {}
    try:
        while True:
            start = lexer.next_token()
            if isinstance(start, Keyword) and start == "trailer":
                break
            count = lexer.next_token()
            if type(start) is not int or type(count) is not int:
                raise CorruptCrossReference(f"bad xref subsection header near offset {lexer.pos}")
            for i in range(count):
                entry_offset = lexer.next_token()
                gen = lexer.next_token()
                kind = lexer.next_token()
                if type(entry_offset) is not int or type(gen) is not int or kind not in ("n", "f"):
                    raise CorruptCrossReference(f"bad xref entry near offset {lexer.pos}")
                if kind == "n" and entry_offset == 0:
                    kind = "f"
                entries[start + i] = XrefEntry(str(kind), entry_offset, gen)
        trailer = lexer.read_object()
    except PdfSyntaxError as e:
        raise CorruptCrossReference(f"xref table at offset {offset}: {e}") from e

    if not isinstance(trailer, dict):
        raise CorruptCrossReference(f"xref table at offset {offset} has no trailer dictionary")
    return XrefSection(offset, entries, trailer)


def _read_xref_stream(data: bytes, offset: int) -> XrefSection:
    try:
        _, _, obj = read_indirect_object(data, offset)
    except PdfSyntaxError as e:
        raise CorruptCrossReference(f"no cross-reference at offset {offset}: {e}") from e
    if not isinstance(obj, PdfStream) or obj.dictionary.get("Type") != "XRef":
        raise CorruptCrossReference(f"object at offset {offset} is not a cross-reference stream")

    info = obj.dictionary
    widths = info.get("W")
    if (
        not isinstance(widths, list)
        or len(widths) != 3
        or not all(type(w) is int and w >= 0 for w in widths)
    ):
        raise CorruptCrossReference(f"cross-reference stream at offset {offset} has a bad /W")
    index = info.get("Index", [0, info.get("Size", 0)])
    if not isinstance(index, list) or len(index) % 2 or not all(type(v) is int for v in index):
        raise CorruptCrossReference(f"cross-reference stream at offset {offset} has a bad /Index")

    body = decode(obj.raw, obj.filters(), info.get("DecodeParms"))
    row_len = sum(widths)
    entries: dict[int, XrefEntry] = {}
    pos = 0
    for start, count in zip(index[::2], index[1::2]):
        for i in range(count):
            if pos + row_len > len(body):
                raise CorruptCrossReference(
                    f"cross-reference stream at offset {offset} is shorter than its /Index"
                )
            fields = []
            for width in widths:
                fields.append(int.from_bytes(body[pos : pos + width], "big"))
                pos += width
            kind = fields[0] if widths[0] else 1
            if kind == 0:
                entries[start + i] = XrefEntry("f", 0, fields[2])
            elif kind == 1:
                entries[start + i] = XrefEntry("n", fields[1], fields[2])
            elif kind == 2:
                entries[start + i] = XrefEntry("c", fields[1], fields[2])
    return XrefSection(offset, entries, info)


def _read_section(data: bytes, offset: int) -> XrefSection:
    if not 0 <= offset < len(data):
        raise CorruptCrossReference(f"cross-reference offset {offset} lies outside the file")

    lexer = Lexer(data, offset)
    lexer.skip_whitespace()
    if not data.startswith(b"xref", lexer.pos):
        return _read_xref_stream(data, offset)

    section = _read_xref_table(data, offset, lexer.pos + 4)
    hybrid_offset = section.trailer.get("XRefStm")
    if type(hybrid_offset) is int:
        hybrid = _read_xref_stream(data, hybrid_offset)
        for num, entry in hybrid.entries.items():
            current = section.entries.get(num)
            if current is None or current.kind == "f":
                section.entries[num] = entry
    return section


def read_xref_chain(data: bytes, startxref: int) -> list[XrefSection]:
    """Follow /Prev pointers from ``startxref``. Newest section first."""
    sections: list[XrefSection] = []
    seen: set[int] = set()
    offset: int | None = startxref
    while offset is not None:
        if offset in seen:
            raise CorruptCrossReference(f"cross-reference chain loops back to offset {offset}")
        seen.add(offset)
        section = _read_section(data, offset)
        sections.append(section)
        prev = section.trailer.get("Prev")
        offset = int(prev) if isinstance(prev, (int, float)) else None
    return sections


def merge_sections(sections: list[XrefSection]) -> dict[int, XrefEntry]:
    """Effective table: for each object number the newest definition wins.

    ``sections`` must be newest first. A free entry in a newer revision
    shadows an older in-use one.
    """
    merged: dict[int, XrefEntry] = {}
    for section in sections:
        for num, entry in section.entries.items():
            merged.setdefault(num, entry)
    return merged


def _merge_trailers(sections: list[XrefSection]) -> dict[str, Any]:
    trailer: dict[str, Any] = {}
    for section in reversed(sections):
        for key in _TRAILER_KEYS:
            if key in section.trailer:
                trailer[key] = section.trailer[key]
    sizes = [s.trailer.get("Size") for s in sections if type(s.trailer.get("Size")) is int]
    if sizes:
        trailer["Size"] = max(sizes)
    return trailer


def parse_pdf(data: bytes) -> Document:
    """Decode ``data`` into a Document with its page list loaded.

    Raises:
        MalformedHeader: No %PDF- header.
        CorruptCrossReference: Broken startxref, xref table/stream or page tree.
        UnsupportedEncryption: The document is encrypted.
        TruncatedStream: Data ends inside an object or stream.
    """
    data = bytes(data)
    version = _read_header(data)
    startxref = _find_startxref(data)
    sections = read_xref_chain(data, startxref)
    trailer = _merge_trailers(sections)

    if "Encrypt" in trailer:
        raise UnsupportedEncryption("encrypted documents are not supported")
    if "Root" not in trailer:
        raise CorruptCrossReference("trailer has no /Root")

    document = Document(
        data=data,
        xref=merge_sections(sections),
        trailer=trailer,
        version=version,
        startxref=startxref,
        revisions=len(sections),
    )
    document.load_pages()

    logger.debug(
        "pdf parsed",
        version=version,
        revisions=len(sections),
        objects=len(document.xref),
        pages=len(document.pages),
    )
    return document


def parse_pdf_file(file_path: str | Path) -> Document:
    """Read ``file_path`` and parse it."""
    file_path = Path(file_path)
    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise ResourceError(f"cannot read {file_path}: {e}") from e
    return parse_pdf(data)
