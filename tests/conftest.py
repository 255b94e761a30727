"""Shared fixtures: sample PDFs and isolated settings."""

import fitz  # PyMuPDF
import pytest
from pdf_factory import assemble_pdf, page_objects, text_content

from bats_server.config import Settings


@pytest.fixture
def simple_pdf() -> bytes:
    """One page showing "Hello World" on a single line."""
    return assemble_pdf(page_objects(text_content((720, "Hello World"))))


@pytest.fixture(scope="module")
def two_page_pdf(tmp_path_factory) -> bytes:
    """A two-page resume-like document written by PyMuPDF."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Jane Doe", fontsize=20, fontname="helv")
    page.insert_text((72, 100), "jane.doe@example.com", fontsize=11, fontname="helv")
    page.insert_text((72, 130), "Experience", fontsize=14, fontname="helv")
    page2 = doc.new_page()
    page2.insert_text((72, 72), "Education", fontsize=14, fontname="helv")
    page2.insert_text((72, 100), "Bachelor of Science", fontsize=11, fontname="helv")
    path = tmp_path_factory.mktemp("pdfs") / "two_page.pdf"
    doc.save(path)
    doc.close()
    return path.read_bytes()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings writing into a per-test output directory."""
    return Settings(output_dir=tmp_path / "out")
