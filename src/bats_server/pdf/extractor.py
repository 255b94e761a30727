"""Text extraction with fill-colour tracking, built on PyMuPDF.

Each page is read with ``page.get_texttrace()``, which reports every piece of
text in drawing order together with its colour, opacity and whether it was
painted at all (render mode 3 text is reported as "ignored"). Characters are
grouped into TextRuns so runs whose colour sits within ``tolerance`` of the
page background can be excluded; that is how the scorer keeps the invisible
keyword layer out of readability scoring.
"""

import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import fitz  # PyMuPDF

from ..errors import PdfFormatError, UnsupportedEncryption
from ..logger import logger
from .document import Document
from .serializer import write_full, write_incremental

WHITE = (255.0, 255.0, 255.0)
BLACK = (0.0, 0.0, 0.0)
DEFAULT_TOLERANCE = 8.0

# get_texttrace() span types; clip-only text (2) repeats text already reported
TRACE_KINDS = {0: "fill", 1: "stroke", 3: "invisible"}

# A horizontal jump wider than this fraction of the font size is a word gap
WORD_GAP = 0.25

# A baseline move smaller than this (in points) stays on the same line
LINE_EPSILON = 0.5

REPLACEMENT = "�"


def color_distance(a: tuple[float, float, float], b: tuple[float, float, float]) -> float:
    """Euclidean distance between two colours on the 0-255 RGB scale."""
    return math.dist(a, b)


def to_rgb(components) -> tuple[float, float, float] | None:
    """Convert gray, RGB or CMYK components in [0, 1] to 0-255 RGB."""
    values = [min(1.0, max(0.0, float(v))) for v in components]
    if len(values) == 1:
        return (values[0] * 255,) * 3
    if len(values) == 3:
        return (values[0] * 255, values[1] * 255, values[2] * 255)
    if len(values) == 4:
        c, m, y, k = values
        return (255 * (1 - c) * (1 - k), 255 * (1 - m) * (1 - k), 255 * (1 - y) * (1 - k))
    return None


@dataclass
class TextRun:
    """Characters painted together on one line with the same colour and font."""

    text: str
    page: int
    color: tuple[float, float, float] | None = BLACK
    font: str | None = None
    size: float = 0.0
    kind: str = "fill"
    opacity: float = 1.0
    new_line: bool = False

    def is_invisible(
        self,
        background: tuple[float, float, float] = WHITE,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> bool:
        if self.kind == "invisible" or self.opacity <= 0:
            return True
        # unknown colour spaces count as visible
        if self.color is None:
            return False
        return color_distance(self.color, background) <= tolerance


def _document_bytes(document: Document) -> bytes:
    if document.is_new:
        return write_full(document)
    return write_incremental(document)


@contextmanager
def open_pdf(source: bytes | Document) -> Iterator[fitz.Document]:
    """Open ``source`` with PyMuPDF; in-memory changes to a Document are included."""
    data = source if isinstance(source, bytes) else _document_bytes(source)
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise PdfFormatError(f"document cannot be opened for text extraction: {e}") from e
    try:
        if doc.needs_pass:
            raise UnsupportedEncryption("document is encrypted")
        yield doc
    finally:
        doc.close()


def _char(code: int) -> str:
    return chr(code) if 0 < code <= 0x10FFFF else REPLACEMENT


def _signature(span: dict) -> tuple:
    return tuple((c[0], tuple(c[2])) for c in span.get("chars") or ())


def page_runs(page: fitz.Page) -> list[TextRun]:
    """Every non-blank text run on ``page``, in drawing order."""
    runs: list[TextRun] = []
    last: tuple[float, float] | None = None  # baseline y and right edge of the previous char
    filled: tuple | None = None

    for span in page.get_texttrace():
        kind = TRACE_KINDS.get(span.get("type", 0))
        if kind is None:
            continue
        # fill-and-stroke text is reported twice
        if kind == "stroke" and filled == _signature(span):
            continue
        filled = _signature(span) if kind == "fill" else None

        size = float(span.get("size") or 0.0)
        color = to_rgb(span.get("color") or ())
        current: TextRun | None = None
        for code, _glyph, origin, bbox in span.get("chars") or ():
            x, y = origin
            new_line = last is not None and abs(y - last[0]) > LINE_EPSILON
            gap = last is not None and not new_line and x - last[1] > WORD_GAP * size
            if current is None or new_line or gap:
                current = TextRun(
                    text="",
                    page=page.number,
                    color=color,
                    font=span.get("font"),
                    size=size,
                    kind=kind,
                    opacity=float(span.get("opacity", 1.0)),
                    new_line=new_line,
                )
                runs.append(current)
            current.text += _char(code)
            last = (y, bbox[2])

    kept: list[TextRun] = []
    pending_break = False
    for run in runs:
        if not run.text.strip():
            pending_break = pending_break or run.new_line
            continue
        run.new_line = run.new_line or pending_break
        pending_break = False
        kept.append(run)
    return kept


def extract_runs(source: bytes | Document) -> list[TextRun]:
    """Every non-blank text run of every page, in page and drawing order."""
    with open_pdf(source) as doc:
        return [run for page in doc for run in page_runs(page)]


def _join(runs: list[TextRun], line_breaks: bool) -> str:
    out: list[str] = []
    for run in runs:
        text = " ".join(run.text.split())
        if out:
            out.append("\n" if line_breaks and run.new_line else " ")
        out.append(text)
    return "".join(out)


def extract_pages(
    source: bytes | Document,
    exclude_invisible: bool = False,
    line_breaks: bool = False,
    background: tuple[float, float, float] = WHITE,
    tolerance: float = DEFAULT_TOLERANCE,
) -> list[str]:
    """Text of each page, in page order.

    Args:
        source: PDF bytes, or a parsed or freshly built document.
        exclude_invisible: Drop runs painted in the background colour, with
            zero opacity or with an invisible render mode.
        line_breaks: Separate runs that start a new baseline with a newline
            instead of a single space.
        background: Page background on the 0-255 RGB scale.
        tolerance: Maximum colour distance still considered "background".

    Returns:
        One string per page; pages without text give an empty string.
    """
    texts = []
    with open_pdf(source) as doc:
        for page in doc:
            runs = page_runs(page)
            if exclude_invisible:
                runs = [run for run in runs if not run.is_invisible(background, tolerance)]
            texts.append(_join(runs, line_breaks))
        logger.debug("text extracted", pages=doc.page_count, exclude_invisible=exclude_invisible)
    return texts


def extract_text(
    source: bytes | Document,
    exclude_invisible: bool = False,
    line_breaks: bool = False,
    background: tuple[float, float, float] = WHITE,
    tolerance: float = DEFAULT_TOLERANCE,
) -> str:
    """Whole-document text: pages joined by a blank line, empty pages skipped."""
    pages = extract_pages(source, exclude_invisible, line_breaks, background, tolerance)
    return "\n\n".join(text for text in pages if text)
