"""Create, modify and analyze flows over the PDF and ATS layers.

Each call owns its Document from parse to serialize; nothing is shared
between calls except the cached settings and taxonomy.
"""

import os
import re
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

import fitz  # PyMuPDF
from pydantic import BaseModel

from .ats.keyword_source import KeywordSource, StaticSource, normalize_keywords
from .ats.models import ATSAnalysisResult
from .ats.scoring import analyze_text
from .config import Settings, get_settings
from .errors import BatsError, LogicError, ResourceError
from .logger import log_duration, logger, set_context
from .pdf.builder import build_document
from .pdf.embedder import InvisibleStyle, KeywordEmbedder
from .pdf.extractor import extract_text
from .pdf.parser import parse_pdf
from .pdf.serializer import write_full, write_incremental

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class ResumeResult(BaseModel):
    output_path: Path
    size_bytes: int
    pages: int
    keywords: list[str]


class ExtractionResult(BaseModel):
    text: str
    word_count: int
    character_count: int
    pages: int
    exclude_invisible: bool


def invisible_style(settings: Settings) -> InvisibleStyle:
    return InvisibleStyle(
        font_size=settings.invisible_font_size,
        tolerance=settings.invisible_tolerance,
    )


def resolve_keywords(
    keywords: Iterable[str] | str | None, settings: Settings | None = None
) -> list[str]:
    """None means the configured defaults; a string is split on whitespace."""
    if keywords is None:
        return StaticSource(text=(settings or get_settings()).default_keywords).resolve().keywords
    if isinstance(keywords, str):
        keywords = keywords.split()
    return normalize_keywords(keywords)


def read_source(source: bytes | str | Path) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    path = Path(source)
    try:
        return path.read_bytes()
    except OSError as e:
        raise ResourceError(f"cannot read {path}: {e}") from e


def write_atomic(path: str | Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` through a temp file in the same directory.

    The target is replaced in one step, so a failed write never leaves a
    partial file in place of a previous output.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise ResourceError(f"cannot write {path}: {e}") from e
    return path


def next_output_path(directory: str | Path, keywords: list[str]) -> Path:
    """``<first keyword>_<n>.pdf`` with the lowest free n, starting at 1."""
    directory = Path(directory)
    stem = _UNSAFE_FILENAME.sub("_", keywords[0]).strip("._") if keywords else ""
    stem = stem or "resume"
    n = 1
    while (directory / f"{stem}_{n}.pdf").exists():
        n += 1
    return directory / f"{stem}_{n}.pdf"


def verify_pdf(data: bytes, expected_pages: int) -> None:
    """Re-open ``data`` with PyMuPDF and check the page count."""
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = doc.page_count
    except (RuntimeError, ValueError) as e:
        raise LogicError(f"serialized document does not open: {e}") from e
    if pages != expected_pages:
        raise LogicError(f"serialized document has {pages} pages, expected {expected_pages}")


def create_resume_bytes(
    keywords: Iterable[str] | str | None = None,
    visible_lines: Iterable[str] | None = None,
    settings: Settings | None = None,
) -> bytes:
    """A fresh one-page resume carrying the invisible keyword layer."""
    settings = settings or get_settings()
    keywords = resolve_keywords(keywords, settings)
    lines = list(visible_lines) if visible_lines is not None else list(settings.visible_lines)

    document = build_document(lines)
    KeywordEmbedder(document, invisible_style(settings)).embed(keywords)
    data = write_full(document)
    if settings.verify_output:
        verify_pdf(data, len(document.pages))
    return data


def _modify(
    data: bytes, keywords: list[str], cancel: threading.Event | None, settings: Settings
) -> tuple[bytes, int]:
    document = parse_pdf(data)
    embedded = KeywordEmbedder(document, invisible_style(settings)).embed(keywords, cancel)
    output = write_incremental(document)
    if settings.verify_output:
        verify_pdf(output, len(document.pages))
    logger.debug("keyword layer appended", pages=len(document.pages), embedded_pages=embedded)
    return output, len(document.pages)


def modify_resume_bytes(
    data: bytes,
    keywords: Iterable[str] | str | None = None,
    cancel: threading.Event | None = None,
    settings: Settings | None = None,
) -> bytes:
    """Append an invisible keyword layer to every page as a new revision.

    The input bytes are an exact prefix of the result.

    Raises:
        PdfFormatError: ``data`` is not a usable PDF.
        OperationCancelled: ``cancel`` was set between two pages.
    """
    settings = settings or get_settings()
    return _modify(data, resolve_keywords(keywords, settings), cancel, settings)[0]


def create_resume(
    keywords: Iterable[str] | str | None = None,
    output_path: str | Path | None = None,
    visible_lines: Iterable[str] | None = None,
    settings: Settings | None = None,
) -> ResumeResult:
    settings = settings or get_settings()
    keywords = resolve_keywords(keywords, settings)
    set_context(operation="create")
    try:
        with log_duration("resume created") as fields:
            data = create_resume_bytes(keywords, visible_lines, settings)
            path = Path(output_path) if output_path else next_output_path(settings.output_dir, keywords)
            write_atomic(path, data)
            fields.update(output_path=str(path), size_bytes=len(data), keywords=len(keywords))
    except BatsError as e:
        logger.error("create failed", error=str(e), error_type=type(e).__name__)
        raise
    return ResumeResult(output_path=path, size_bytes=len(data), pages=1, keywords=keywords)


def modify_resume(
    source: bytes | str | Path,
    keywords: Iterable[str] | str | None = None,
    output_path: str | Path | None = None,
    cancel: threading.Event | None = None,
    settings: Settings | None = None,
) -> ResumeResult:
    """Embed keywords into an existing PDF and write the result.

    Args:
        source: PDF bytes or a path to a PDF file.
        keywords: Keywords to embed; None uses the configured defaults.
        output_path: Target file; defaults to a fresh name in the output dir.
        cancel: Checked between pages.
        settings: Overrides the process settings.

    Returns:
        Where the output was written and what it contains.
    """
    settings = settings or get_settings()
    keywords = resolve_keywords(keywords, settings)
    set_context(operation="modify")
    try:
        with log_duration("resume modified") as fields:
            data = read_source(source)
            output, pages = _modify(data, keywords, cancel, settings)
            path = Path(output_path) if output_path else next_output_path(settings.output_dir, keywords)
            write_atomic(path, output)
            fields.update(
                output_path=str(path),
                pages=pages,
                appended_bytes=len(output) - len(data),
            )
    except BatsError as e:
        logger.error("modify failed", error=str(e), error_type=type(e).__name__)
        raise
    return ResumeResult(output_path=path, size_bytes=len(output), pages=pages, keywords=keywords)


def analyze_resume(
    source: bytes | str | Path,
    keyword_source: KeywordSource | None = None,
    now: Callable[[], datetime] | None = None,
    settings: Settings | None = None,
) -> ATSAnalysisResult:
    """Score a PDF against a reference keyword set.

    Keyword matching uses the full text; formatting and readability use the
    text with invisible runs removed, so an embedded keyword layer never
    improves them.
    """
    settings = settings or get_settings()
    keyword_source = keyword_source or StaticSource(text=settings.default_keywords)
    set_context(operation="analyze")
    try:
        with log_duration("resume analyzed") as fields:
            document = parse_pdf(read_source(source))
            full_text = extract_text(document)
            visible_text = extract_text(
                document,
                exclude_invisible=True,
                line_breaks=True,
                tolerance=settings.invisible_tolerance,
            )
            reference = keyword_source.resolve()
            result = analyze_text(full_text, reference, visible_text=visible_text, now=now)
            fields.update(
                pages=len(document.pages),
                keyword_source=reference.source,
                overall=result.score.overall,
                grade=result.score.grade,
            )
    except BatsError as e:
        logger.error("analyze failed", error=str(e), error_type=type(e).__name__)
        raise
    return result


def extract_resume_text(
    source: bytes | str | Path,
    exclude_invisible: bool = False,
    settings: Settings | None = None,
) -> ExtractionResult:
    """Plain text of a PDF, optionally without the runs a viewer cannot see."""
    settings = settings or get_settings()
    set_context(operation="extract")
    try:
        with log_duration("text extracted") as fields:
            document = parse_pdf(read_source(source))
            text = extract_text(
                document,
                exclude_invisible=exclude_invisible,
                tolerance=settings.invisible_tolerance,
            )
            result = ExtractionResult(
                text=text,
                word_count=len(text.split()),
                character_count=len(text),
                pages=len(document.pages),
                exclude_invisible=exclude_invisible,
            )
            fields.update(pages=result.pages, words=result.word_count)
    except BatsError as e:
        logger.error("extract failed", error=str(e), error_type=type(e).__name__)
        raise
    return result
