"""In-memory PDF value types.

Mapping of PDF types to Python values:

    null          -> None
    boolean       -> bool
    integer/real  -> int / float
    name          -> PdfName (a str without the leading slash)
    string        -> PdfString
    array         -> list
    dictionary    -> dict keyed by plain str names
    indirect ref  -> PdfRef
    stream        -> PdfStream
"""

from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple


class PdfName(str):
    """A PDF name object, stored without its leading slash."""

    def __repr__(self) -> str:
        return f"/{str(self)}"


class Keyword(str):
    """A bare token: an operator, ``obj``, ``R``, ``[`` and so on."""


class PdfRef(NamedTuple):
    num: int
    gen: int = 0

    def __str__(self) -> str:
        return f"{self.num} {self.gen} R"


@dataclass(frozen=True)
class PdfString:
    value: bytes
    hex: bool = False

    def text(self) -> str:
        """Decode as a PDF text string (UTF-16BE with BOM, else Latin-1)."""
        if self.value.startswith(b"\xfe\xff"):
            return self.value[2:].decode("utf-16-be", errors="replace")
        return self.value.decode("latin-1")


@dataclass
class PdfStream:
    """A stream object. ``raw`` is the encoded body exactly as stored."""

    dictionary: dict[str, Any] = field(default_factory=dict)
    raw: bytes = b""

    def filters(self, resolve: Callable[[Any], Any] = lambda value: value) -> list[str]:
        """Filter names in decoding order; ``resolve`` follows indirect entries."""
        value = resolve(self.dictionary.get("Filter"))
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        return [str(resolve(f)) for f in value]


@dataclass
class Operator:
    """One content-stream operation: operands followed by an opcode."""

    opcode: str
    operands: list[Any] = field(default_factory=list)


def iter_refs(obj: Any):
    """Yield every PdfRef nested inside ``obj``."""
    if isinstance(obj, PdfRef):
        yield obj
    elif isinstance(obj, PdfStream):
        yield from iter_refs(obj.dictionary)
    elif isinstance(obj, dict):
        for value in obj.values():
            yield from iter_refs(value)
    elif isinstance(obj, list):
        for item in obj:
            yield from iter_refs(item)


def remap_refs(obj: Any, mapping: dict[int, int]) -> Any:
    """Return a copy of ``obj`` with references renumbered through ``mapping``.

    References whose number is not in ``mapping`` become null.
    """
    if isinstance(obj, PdfRef):
        new_num = mapping.get(obj.num)
        return PdfRef(new_num, 0) if new_num is not None else None
    if isinstance(obj, PdfStream):
        return PdfStream(dictionary=remap_refs(obj.dictionary, mapping), raw=obj.raw)
    if isinstance(obj, dict):
        return {key: remap_refs(value, mapping) for key, value in obj.items()}
    if isinstance(obj, list):
        return [remap_refs(item, mapping) for item in obj]
    return obj
