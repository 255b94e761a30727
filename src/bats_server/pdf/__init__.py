from .builder import build_document
from .document import Document, Page
from .embedder import InvisibleStyle, KeywordEmbedder, embed_invisible_keywords
from .extractor import TextRun, extract_pages, extract_runs, extract_text
from .objects import Operator, PdfName, PdfRef, PdfStream, PdfString
from .parser import parse_pdf, parse_pdf_file
from .serializer import serialize_object, write_full, write_incremental

__all__ = [
    "Document",
    "Page",
    "Operator",
    "PdfName",
    "PdfRef",
    "PdfStream",
    "PdfString",
    "parse_pdf",
    "parse_pdf_file",
    "serialize_object",
    "write_full",
    "write_incremental",
    "build_document",
    "InvisibleStyle",
    "KeywordEmbedder",
    "embed_invisible_keywords",
    "TextRun",
    "extract_runs",
    "extract_pages",
    "extract_text",
]
