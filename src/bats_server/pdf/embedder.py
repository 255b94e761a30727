"""Invisible keyword layer.

Each page gets two new content streams: a ``q`` prepended before its own
streams and a keyword layer appended after them. The page's own streams are
referenced unchanged, so its visible operators are never re-encoded.
"""

import threading
from typing import Iterable

from pydantic import BaseModel, Field, model_validator

from ..ats.keyword_source import normalize_keywords
from ..errors import OperationCancelled
from ..logger import logger
from .builder import encode_text, standard_font
from .content import encode_operators
from .document import Document, Page
from .extractor import color_distance
from .objects import Operator, PdfName, PdfRef, PdfStream

LAYER_FONT = "Helvetica"
FONT_PREFIX = "BatsF"


class InvisibleStyle(BaseModel):
    """How the keyword layer is painted."""

    font_size: float = Field(default=1.0, gt=0)
    fill: tuple[int, int, int] = (254, 254, 254)
    background: tuple[int, int, int] = (255, 255, 255)
    anchor: tuple[float, float] = (5.0, 5.0)
    tolerance: float = Field(default=8.0, ge=0)

    @model_validator(mode="after")
    def _fill_matches_background(self) -> "InvisibleStyle":
        if color_distance(self.fill, self.background) > self.tolerance:
            raise ValueError(
                f"fill {self.fill} is farther than {self.tolerance} from background {self.background}"
            )
        return self


def layer_content(text: str, font: str, x: float, y: float, style: InvisibleStyle) -> bytes:
    r, g, b = (round(c / 255, 4) for c in style.fill)
    ops = [
        Operator("Q"),
        Operator("q"),
        Operator("BT"),
        Operator("Tf", [PdfName(font), style.font_size]),
        Operator("rg", [r, g, b]),
        Operator("Td", [round(x, 2), round(y, 2)]),
        Operator("Tj", [encode_text(text)]),
        Operator("ET"),
        Operator("Q"),
    ]
    return encode_operators(ops)


class KeywordEmbedder:
    """Appends the invisible keyword layer to pages of one document."""

    def __init__(self, document: Document, style: InvisibleStyle | None = None):
        self.document = document
        self.style = style or InvisibleStyle()
        self._font_ref: PdfRef | None = None

    def _font(self) -> PdfRef:
        if self._font_ref is None:
            self._font_ref = self.document.add_object(standard_font(LAYER_FONT))
        return self._font_ref

    def _register_font(self, fonts: dict) -> str:
        ref = self._font()
        for name, value in fonts.items():
            if value == ref:
                return name
        n = 1
        while f"{FONT_PREFIX}{n}" in fonts:
            n += 1
        name = f"{FONT_PREFIX}{n}"
        fonts[name] = ref
        return name

    def embed_page(self, page: Page, keywords: Iterable[str]) -> bool:
        """Add one layer to ``page``. Returns False for an empty keyword set."""
        text = " ".join(normalize_keywords(keywords))
        if not text:
            return False

        document = self.document
        resources = dict(page.resources)
        fonts = document.resolve(resources.get("Font"))
        fonts = dict(fonts) if isinstance(fonts, dict) else {}
        font_name = self._register_font(fonts)
        resources["Font"] = fonts

        box = page.media_box
        x = box[0] + self.style.anchor[0]
        y = box[1] + self.style.anchor[1]
        opening = document.add_object(PdfStream(raw=b"q\n"))
        layer = document.add_object(
            PdfStream(raw=layer_content(text, font_name, x, y, self.style))
        )

        page_obj = dict(page.obj)
        page_obj["Contents"] = [opening, *document.content_refs(page), layer]
        page_obj["Resources"] = resources
        document.set_object(page.ref, page_obj)
        page.obj = page_obj
        page.resources = resources
        return True

    def embed(self, keywords: Iterable[str], cancel: threading.Event | None = None) -> int:
        """Embed on every page; ``cancel`` is checked before each page.

        Returns:
            Number of pages that received a layer.

        Raises:
            OperationCancelled: ``cancel`` was set between two pages.
        """
        keywords = normalize_keywords(keywords)
        done = 0
        for page in self.document.pages:
            if cancel is not None and cancel.is_set():
                logger.info("embedding cancelled", page=page.index, embedded=done)
                raise OperationCancelled(f"cancelled before page {page.index + 1}")
            if self.embed_page(page, keywords):
                done += 1
        return done


def embed_invisible_keywords(
    document: Document,
    keywords: Iterable[str],
    style: InvisibleStyle | None = None,
    cancel: threading.Event | None = None,
) -> int:
    return KeywordEmbedder(document, style).embed(keywords, cancel)
