"""Document model: object table, trailer and page list."""

from dataclasses import dataclass, field
from typing import Any, Callable

from ..errors import CorruptCrossReference, PdfFormatError, PdfSyntaxError, TruncatedStream
from . import filters
from .lexer import Lexer
from .objects import Keyword, PdfRef, PdfStream

# US Letter, used when no /MediaBox is found anywhere up the page tree
DEFAULT_MEDIA_BOX = [0.0, 0.0, 612.0, 792.0]

_INHERITABLE = ("Resources", "MediaBox", "CropBox", "Rotate")


@dataclass
class XrefEntry:
    """One row of the effective cross-reference table.

    kind "n": in use, ``offset`` is a byte offset and ``gen`` its generation.
    kind "c": compressed, ``offset`` is the object stream number and ``gen``
    the index inside it.
    kind "f": free.
    """

    kind: str
    offset: int = 0
    gen: int = 0


@dataclass
class Page:
    index: int
    ref: PdfRef
    obj: dict[str, Any]
    resources: dict[str, Any] = field(default_factory=dict)
    media_box: list[float] = field(default_factory=lambda: list(DEFAULT_MEDIA_BOX))

    @property
    def width(self) -> float:
        return self.media_box[2] - self.media_box[0]

    @property
    def height(self) -> float:
        return self.media_box[3] - self.media_box[1]


def _read_stream_body(
    data: bytes, pos: int, stream_dict: dict, resolve: Callable[[Any], Any] | None
) -> bytes:
    # "stream" is followed by CRLF or LF; a lone CR is tolerated
    if data[pos : pos + 2] == b"\r\n":
        pos += 2
    elif data[pos : pos + 1] in (b"\n", b"\r"):
        pos += 1

    length = stream_dict.get("Length")
    if isinstance(length, PdfRef) and resolve is not None:
        try:
            length = resolve(length)
        except PdfFormatError:
            length = None

    if type(length) is int and length >= 0 and pos + length <= len(data):
        tail = Lexer(data, pos + length)
        tail.skip_whitespace()
        if data.startswith(b"endstream", tail.pos):
            return data[pos : pos + length]

    found = data.find(b"endstream", pos)
    if found < 0:
        raise TruncatedStream(f"stream at offset {pos} has no endstream")
    end = found
    if data[end - 2 : end] == b"\r\n":
        end -= 2
    elif data[end - 1 : end] in (b"\n", b"\r"):
        end -= 1
    return data[pos : max(pos, end)]


def read_indirect_object(
    data: bytes, offset: int, resolve: Callable[[Any], Any] | None = None
) -> tuple[int, int, Any]:
    """Read ``num gen obj ... endobj`` at ``offset``.

    Returns (num, gen, value); stream objects come back as PdfStream.
    """
    lexer = Lexer(data, offset)
    num = lexer.next_token()
    gen = lexer.next_token()
    keyword = lexer.next_token()
    if type(num) is not int or type(gen) is not int or keyword != "obj":
        raise PdfSyntaxError(f"no object header at offset {offset}")

    value = lexer.read_object()
    if isinstance(value, dict):
        try:
            token = lexer.next_token()
        except PdfFormatError:
            token = None
        if isinstance(token, Keyword) and token == "stream":
            raw = _read_stream_body(data, lexer.pos, value, resolve)
            return num, gen, PdfStream(dictionary=value, raw=raw)
    return num, gen, value


class Document:
    """A PDF held in memory for the duration of one request.

    Objects from the source bytes are parsed lazily and cached. Objects
    added or replaced through add_object/set_object are tracked in
    ``modified`` so the serializer can emit an incremental revision.
    """

    def __init__(
        self,
        data: bytes = b"",
        xref: dict[int, XrefEntry] | None = None,
        trailer: dict[str, Any] | None = None,
        version: str = "1.7",
        startxref: int | None = None,
        revisions: int = 0,
    ):
        self.data = data
        self.xref = xref or {}
        self.trailer = trailer or {}
        self.version = version
        self.startxref = startxref
        self.revisions = revisions
        self.pages: list[Page] = []
        self.modified: set[int] = set()
        self._cache: dict[int, Any] = {}
        self._loading: set[int] = set()
        self._object_streams: dict[int, tuple[bytes, dict[int, int]]] = {}

        size = self.trailer.get("Size")
        highest = max(self.xref, default=0)
        self._next_num = max(highest + 1, size if type(size) is int else 1, 1)

    @classmethod
    def new(cls, version: str = "1.7") -> "Document":
        return cls(version=version)

    @property
    def is_new(self) -> bool:
        return not self.data

    @property
    def catalog(self) -> dict[str, Any]:
        root = self.resolve(self.trailer.get("Root"))
        if not isinstance(root, dict):
            raise CorruptCrossReference("trailer has no document catalog")
        return root

    # --- object access ---

    def object_numbers(self) -> set[int]:
        live = {num for num, entry in self.xref.items() if entry.kind != "f"}
        return live | set(self._cache)

    def has_object(self, num: int) -> bool:
        if num in self._cache:
            return self._cache[num] is not None
        entry = self.xref.get(num)
        return entry is not None and entry.kind != "f"

    def get_object(self, num: int) -> Any:
        if num in self._cache:
            return self._cache[num]
        entry = self.xref.get(num)
        if entry is None or entry.kind == "f":
            return None
        if num in self._loading:
            raise CorruptCrossReference(f"object {num} depends on itself")

        self._loading.add(num)
        try:
            if entry.kind == "n":
                obj = self._load_direct(num, entry)
            else:
                obj = self._load_compressed(num, entry)
        finally:
            self._loading.discard(num)

        self._cache[num] = obj
        return obj

    def resolve(self, obj: Any) -> Any:
        seen = set()
        while isinstance(obj, PdfRef):
            if obj.num in seen:
                raise CorruptCrossReference(f"reference cycle through object {obj.num}")
            seen.add(obj.num)
            obj = self.get_object(obj.num)
        return obj

    def add_object(self, obj: Any) -> PdfRef:
        num = self._next_num
        self._next_num += 1
        self._cache[num] = obj
        self.modified.add(num)
        return PdfRef(num, 0)

    def set_object(self, ref: PdfRef | int, obj: Any) -> None:
        num = ref.num if isinstance(ref, PdfRef) else ref
        self._cache[num] = obj
        self.modified.add(num)
        self._next_num = max(self._next_num, num + 1)

    @property
    def size(self) -> int:
        """One past the highest object number in use."""
        return self._next_num

    def _load_direct(self, num: int, entry: XrefEntry) -> Any:
        if not 0 <= entry.offset < len(self.data):
            raise CorruptCrossReference(
                f"object {num} offset {entry.offset} lies outside the file"
            )
        try:
            found, _, obj = read_indirect_object(self.data, entry.offset, self.resolve)
        except PdfSyntaxError as e:
            raise CorruptCrossReference(f"object {num}: {e}") from e
        if found != num:
            raise CorruptCrossReference(
                f"cross-reference entry for object {num} points at object {found}"
            )
        return obj

    def _load_compressed(self, num: int, entry: XrefEntry) -> Any:
        body, offsets = self._object_stream(entry.offset)
        if num not in offsets:
            raise CorruptCrossReference(
                f"object {num} missing from object stream {entry.offset}"
            )
        try:
            return Lexer(body, offsets[num]).read_object()
        except PdfSyntaxError as e:
            raise CorruptCrossReference(f"object {num}: {e}") from e

    def _object_stream(self, stream_num: int) -> tuple[bytes, dict[int, int]]:
        if stream_num in self._object_streams:
            return self._object_streams[stream_num]

        stream = self.get_object(stream_num)
        if not isinstance(stream, PdfStream) or stream.dictionary.get("Type") != "ObjStm":
            raise CorruptCrossReference(f"object {stream_num} is not an object stream")
        body = self.stream_data(stream)
        count = self.resolve(stream.dictionary.get("N"))
        first = self.resolve(stream.dictionary.get("First"))
        if type(count) is not int or type(first) is not int:
            raise CorruptCrossReference(f"object stream {stream_num} lacks /N or /First")

        header = Lexer(body)
        offsets: dict[int, int] = {}
        try:
            for _ in range(count):
                obj_num = header.next_token()
                rel = header.next_token()
                if type(obj_num) is not int or type(rel) is not int:
                    raise CorruptCrossReference(f"bad header in object stream {stream_num}")
                offsets.setdefault(obj_num, first + rel)
        except PdfSyntaxError as e:
            raise CorruptCrossReference(f"object stream {stream_num}: {e}") from e

        self._object_streams[stream_num] = (body, offsets)
        return body, offsets

    # --- streams and pages ---

    def stream_data(self, stream: PdfStream) -> bytes:
        """Decoded body of ``stream``."""
        parms = self.resolve(stream.dictionary.get("DecodeParms"))
        if isinstance(parms, list):
            parms = [self.resolve(p) for p in parms]
        chain = stream.filters(self.resolve)
        return filters.decode(stream.raw, chain, parms)

    def content_refs(self, page: Page) -> list[PdfRef]:
        """References to the page's content streams, in drawing order."""
        contents = page.obj.get("Contents")
        if isinstance(contents, PdfRef):
            target = self.get_object(contents.num)
            if isinstance(target, list):
                return [item for item in target if isinstance(item, PdfRef)]
            return [contents] if isinstance(target, PdfStream) else []
        if isinstance(contents, list):
            return [item for item in contents if isinstance(item, PdfRef)]
        return []

    def page_content(self, page: Page) -> bytes:
        """The page's content streams decoded and joined in order."""
        parts = []
        for ref in self.content_refs(page):
            stream = self.resolve(ref)
            if isinstance(stream, PdfStream):
                parts.append(self.stream_data(stream))
        return b"\n".join(parts)

    def load_pages(self) -> list[Page]:
        pages_ref = self.catalog.get("Pages")
        pages: list[Page] = []
        visited: set[int] = set()

        def walk(ref: Any, inherited: dict[str, Any]) -> None:
            if not isinstance(ref, PdfRef):
                raise CorruptCrossReference("page tree node is not an indirect reference")
            if ref.num in visited:
                raise CorruptCrossReference(f"page tree loops through object {ref.num}")
            visited.add(ref.num)

            node = self.get_object(ref.num)
            if not isinstance(node, dict):
                raise CorruptCrossReference(f"page tree node {ref.num} is not a dictionary")

            attrs = dict(inherited)
            for key in _INHERITABLE:
                if key in node:
                    attrs[key] = node[key]

            kids = self.resolve(node.get("Kids"))
            if node.get("Type") == "Pages" or isinstance(kids, list):
                for kid in kids or []:
                    walk(kid, attrs)
                return

            pages.append(self._make_page(len(pages), ref, node, attrs))

        if pages_ref is not None:
            walk(pages_ref, {})
        self.pages = pages
        return pages

    def _make_page(
        self, index: int, ref: PdfRef, node: dict[str, Any], attrs: dict[str, Any]
    ) -> Page:
        resources = self.resolve(attrs.get("Resources"))
        box = self.resolve(attrs.get("MediaBox"))
        media_box = list(DEFAULT_MEDIA_BOX)
        if isinstance(box, list) and len(box) == 4:
            values = [self.resolve(v) for v in box]
            if all(isinstance(v, (int, float)) for v in values):
                media_box = [float(v) for v in values]
        return Page(
            index=index,
            ref=ref,
            obj=node,
            resources=resources if isinstance(resources, dict) else {},
            media_box=media_box,
        )
