"""Authoring a fresh single-page document."""

from .content import encode_operators
from .document import Document
from .objects import Operator, PdfName, PdfString, PdfStream

A4_MEDIA_BOX = [0, 0, 595.28, 841.89]
MARGIN = 50
TITLE_FONT = "Helvetica-Bold"
TITLE_SIZE = 16
LEADING = 20
PRODUCER = "bats_server"


def standard_font(base_font: str) -> dict:
    """Dictionary for one of the standard 14 fonts, WinAnsi encoded."""
    return {
        "Type": PdfName("Font"),
        "Subtype": PdfName("Type1"),
        "BaseFont": PdfName(base_font),
        "Encoding": PdfName("WinAnsiEncoding"),
    }


def encode_text(text: str) -> PdfString:
    """Encode ``text`` for a WinAnsi font; unmappable characters become '?'."""
    return PdfString(text.encode("cp1252", errors="replace"))


def visible_lines_content(lines: list[str], font: str, page_height: float) -> bytes:
    """Black text lines from the top-left margin down."""
    ops = [Operator("BT"), Operator("g", [0]), Operator("Tf", [PdfName(font), TITLE_SIZE])]
    y = page_height - MARGIN - TITLE_SIZE
    ops.append(Operator("Td", [MARGIN, round(y, 2)]))
    for i, line in enumerate(lines):
        if i:
            ops.append(Operator("Td", [0, -LEADING]))
        ops.append(Operator("Tj", [encode_text(line)]))
    ops.append(Operator("ET"))
    return encode_operators(ops)


def build_document(visible_lines: list[str] | tuple[str, ...]) -> Document:
    """A one-page A4 document showing ``visible_lines`` in Helvetica-Bold."""
    document = Document.new()
    font_ref = document.add_object(standard_font(TITLE_FONT))

    resources = {"Font": {"F1": font_ref}}
    content_ref = document.add_object(
        PdfStream(raw=visible_lines_content(list(visible_lines), "F1", A4_MEDIA_BOX[3]))
    )

    pages_ref = document.add_object(None)
    page_ref = document.add_object(
        {
            "Type": PdfName("Page"),
            "Parent": pages_ref,
            "MediaBox": list(A4_MEDIA_BOX),
            "Resources": resources,
            "Contents": content_ref,
        }
    )
    document.set_object(pages_ref, {"Type": PdfName("Pages"), "Kids": [page_ref], "Count": 1})
    catalog_ref = document.add_object({"Type": PdfName("Catalog"), "Pages": pages_ref})
    info_ref = document.add_object({"Producer": PdfString(PRODUCER.encode("ascii"))})

    document.trailer = {"Root": catalog_ref, "Info": info_ref}
    document.load_pages()
    return document
