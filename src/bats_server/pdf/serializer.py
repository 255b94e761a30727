"""PDF serialization: single objects, full documents and incremental revisions."""

import math
from collections import deque
from typing import Any

from ..errors import LogicError
from ..logger import logger
from .document import Document
from .filters import flate_encode
from .objects import PdfName, PdfRef, PdfStream, PdfString, iter_refs, remap_refs

# Binary comment after the header so transfer tools treat the file as binary
BINARY_MARKER = b"%\xe2\xe3\xcf\xd3\n"

_NAME_SAFE = frozenset(range(0x21, 0x7F)) - frozenset(b"()<>[]{}/%#")
_STRING_ESCAPES = {
    0x0A: b"\\n",
    0x0D: b"\\r",
    0x09: b"\\t",
    0x08: b"\\b",
    0x0C: b"\\f",
    0x28: b"\\(",
    0x29: b"\\)",
    0x5C: b"\\\\",
}


def _format_number(value: int | float) -> bytes:
    if isinstance(value, int):
        return str(value).encode("ascii")
    if not math.isfinite(value):
        raise LogicError(f"cannot serialize non-finite number {value!r}")
    if value == int(value):
        return str(int(value)).encode("ascii")
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return (text if text not in ("-0", "") else "0").encode("ascii")


def _format_name(name: str) -> bytes:
    out = bytearray(b"/")
    for byte in name.encode("latin-1", errors="replace"):
        if byte in _NAME_SAFE:
            out.append(byte)
        else:
            out.extend(b"#%02X" % byte)
    return bytes(out)


def encode_literal(value: bytes) -> bytes:
    """Encode ``value`` as a PDF literal string, parentheses included."""
    out = bytearray(b"(")
    for byte in value:
        if byte in _STRING_ESCAPES:
            out.extend(_STRING_ESCAPES[byte])
        elif 0x20 <= byte < 0x7F:
            out.append(byte)
        else:
            out.extend(b"\\%03o" % byte)
    out.append(0x29)
    return bytes(out)


def serialize_object(obj: Any) -> bytes:
    """Encode a single PDF value (no ``obj``/``endobj`` wrapper)."""
    if obj is None:
        return b"null"
    if obj is True:
        return b"true"
    if obj is False:
        return b"false"
    if isinstance(obj, (int, float)):
        return _format_number(obj)
    if isinstance(obj, PdfRef):
        return b"%d %d R" % (obj.num, obj.gen)
    if isinstance(obj, str):
        return _format_name(obj)
    if isinstance(obj, PdfString):
        if obj.hex:
            return b"<" + obj.value.hex().upper().encode("ascii") + b">"
        return encode_literal(obj.value)
    if isinstance(obj, list):
        return b"[" + b" ".join(serialize_object(item) for item in obj) + b"]"
    if isinstance(obj, dict):
        parts = [_format_name(key) + b" " + serialize_object(value) for key, value in obj.items()]
        return b"<<" + b" ".join(parts) + b">>"
    if isinstance(obj, PdfStream):
        info = dict(obj.dictionary)
        info["Length"] = len(obj.raw)
        return serialize_object(info) + b"\nstream\n" + obj.raw + b"\nendstream"
    raise LogicError(f"cannot serialize {type(obj).__name__}")


def _indirect(num: int, gen: int, obj: Any) -> bytes:
    return b"%d %d obj\n" % (num, gen) + serialize_object(obj) + b"\nendobj\n"


def _xref_rows(entries: list[tuple[int, int, int]]) -> bytes:
    """Classic xref body for (num, offset, gen) rows, in contiguous subsections."""
    out = bytearray()
    entries = sorted(entries)
    i = 0
    while i < len(entries):
        j = i
        while j + 1 < len(entries) and entries[j + 1][0] == entries[j][0] + 1:
            j += 1
        out.extend(b"%d %d\n" % (entries[i][0], j - i + 1))
        for _, offset, gen in entries[i : j + 1]:
            out.extend(b"%010d %05d n\r\n" % (offset, gen))
        i = j + 1
    return bytes(out)


def _compressed(stream: PdfStream) -> PdfStream:
    if stream.dictionary.get("Filter") is not None:
        return stream
    info = dict(stream.dictionary)
    info["Filter"] = PdfName("FlateDecode")
    return PdfStream(dictionary=info, raw=flate_encode(stream.raw))


def _reachable(document: Document, roots: list[PdfRef]) -> list[int]:
    order: list[int] = []
    seen: set[int] = set()
    queue = deque(ref.num for ref in roots)
    while queue:
        num = queue.popleft()
        if num in seen:
            continue
        seen.add(num)
        obj = document.get_object(num)
        if obj is None:
            continue
        order.append(num)
        queue.extend(ref.num for ref in iter_refs(obj) if ref.num not in seen)
    return order


def write_full(document: Document, compress: bool = False) -> bytes:
    """Serialize every object reachable from /Root and /Info as a new file.

    Objects are renumbered densely from 1; references to missing objects
    become null, so the offset table has no holes and nothing dangles.
    """
    root = document.trailer.get("Root")
    if not isinstance(root, PdfRef):
        raise LogicError("document has no /Root to serialize")
    roots = [root]
    if isinstance(document.trailer.get("Info"), PdfRef):
        roots.append(document.trailer["Info"])

    reachable = sorted(_reachable(document, roots))
    mapping = {old: new for new, old in enumerate(reachable, start=1)}

    out = bytearray(b"%PDF-" + document.version.encode("ascii") + b"\n" + BINARY_MARKER)
    offsets: list[int] = []
    for old in reachable:
        obj = remap_refs(document.get_object(old), mapping)
        if compress and isinstance(obj, PdfStream):
            obj = _compressed(obj)
        offsets.append(len(out))
        out.extend(_indirect(mapping[old], 0, obj))

    size = len(mapping) + 1
    startxref = len(out)
    out.extend(b"xref\n0 %d\n0000000000 65535 f\r\n" % size)
    for offset in offsets:
        out.extend(b"%010d 00000 n\r\n" % offset)

    trailer: dict[str, Any] = {"Size": size}
    for key in ("Root", "Info"):
        if isinstance(document.trailer.get(key), PdfRef):
            trailer[key] = remap_refs(document.trailer[key], mapping)
    if "ID" in document.trailer:
        trailer["ID"] = document.trailer["ID"]
    out.extend(b"trailer\n" + serialize_object(trailer) + b"\nstartxref\n%d\n%%%%EOF\n" % startxref)

    logger.debug("pdf serialized", mode="full", objects=len(offsets), bytes=len(out))
    return bytes(out)


def _null_dangling(obj: Any, document: Document) -> Any:
    """Copy of ``obj`` with references to undefined objects replaced by null."""
    if isinstance(obj, PdfRef):
        return obj if document.has_object(obj.num) else None
    if isinstance(obj, PdfStream):
        return PdfStream(dictionary=_null_dangling(obj.dictionary, document), raw=obj.raw)
    if isinstance(obj, dict):
        return {key: _null_dangling(value, document) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_null_dangling(item, document) for item in obj]
    return obj


def write_incremental(document: Document) -> bytes:
    """Append a revision holding the document's new and modified objects.

    The original bytes are returned unchanged as a prefix of the result.
    """
    if document.is_new or document.startxref is None:
        raise LogicError("incremental save needs a document parsed from existing bytes")

    nums = sorted(document.modified)
    if not nums:
        return document.data

    out = bytearray(document.data)
    if not out.endswith((b"\n", b"\r")):
        out.extend(b"\n")

    rows: list[tuple[int, int, int]] = []
    for num in nums:
        entry = document.xref.get(num)
        gen = entry.gen if entry is not None and entry.kind == "n" else 0
        obj = document.get_object(num)
        missing = sorted({ref.num for ref in iter_refs(obj) if not document.has_object(ref.num)})
        if missing:
            # a reference to an undefined object reads as null
            logger.warn("dangling references written as null", object=num, missing=missing)
            obj = _null_dangling(obj, document)
        rows.append((num, len(out), gen))
        out.extend(_indirect(num, gen, obj))

    startxref = len(out)
    out.extend(b"xref\n" + _xref_rows(rows))

    trailer: dict[str, Any] = {"Size": document.size}
    for key in ("Root", "Info", "ID"):
        if key in document.trailer:
            trailer[key] = document.trailer[key]
    trailer["Prev"] = document.startxref
    out.extend(b"trailer\n" + serialize_object(trailer) + b"\nstartxref\n%d\n%%%%EOF\n" % startxref)

    logger.debug(
        "pdf serialized",
        mode="incremental",
        objects=len(rows),
        appended_bytes=len(out) - len(document.data),
    )
    return bytes(out)
