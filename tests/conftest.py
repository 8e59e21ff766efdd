"""
Shared fixtures for the document-extractor test suite.

Documents are built in memory with the same libraries the extractors read
them with: PyMuPDF for PDFs, python-docx for DOCX and Pillow for images.
Tesseract is never required: pipeline tests inject FakeRecognitionEngine and
engine tests patch pytesseract.

How to run:
  pytest                 # all tests
  pytest -m "not host"   # skip tests that spawn a processing host process
"""

from __future__ import annotations

import io
from typing import Optional

import fitz
import pytest
from docx import Document
from PIL import Image, ImageDraw

from document_extractor.models import RecognitionResult

RESUME_TEXT = (
    "Hello World. Jane Doe is a senior software engineer with ten years of experience "
    "building distributed systems, data pipelines and developer tooling in Python and Go."
)
SHORT_PAGE_TEXT = "Jane Doe Software Engineer Resume 2024"  # 38 characters
OCR_TEXT = " ".join(["experience"] * 55)  # 604 characters


# ─────────────────────────────────────────────────────────────────────────────
# Document builders
# ─────────────────────────────────────────────────────────────────────────────

def make_png(size: tuple[int, int] = (240, 80), text: Optional[str] = "Jane Doe") -> bytes:
    image = Image.new("RGB", size, "white")
    if text:
        ImageDraw.Draw(image).text((10, 30), text, fill="black")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_pdf(pages: list[str], image: Optional[bytes] = None) -> bytes:
    """One page per entry; empty strings give pages without a text layer."""
    document = fitz.open()
    for text in pages:
        page = document.new_page()
        if text:
            page.insert_textbox(fitz.Rect(72, 72, 540, 500), text, fontsize=11)
        if image is not None:
            page.insert_image(fitz.Rect(72, 560, 312, 640), stream=image)
    data = document.tobytes()
    document.close()
    return data


def make_docx(paragraphs: list[str], table: Optional[list[list[str]]] = None, picture: Optional[bytes] = None) -> bytes:
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table:
        docx_table = document.add_table(rows=len(table), cols=len(table[0]))
        for row_index, row in enumerate(table):
            for col_index, value in enumerate(row):
                docx_table.cell(row_index, col_index).text = value
    if picture is not None:
        document.add_picture(io.BytesIO(picture))
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class FakeRecognitionEngine:
    """Stands in for RecognitionEngine; records calls and emits progress ticks."""

    def __init__(self, text: str = OCR_TEXT, confidence: float = 0.91, error: Optional[Exception] = None):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls: list[dict] = []
        self.terminated = 0

    def recognize(self, data, language=None, max_pages=None, on_progress=None):
        self.calls.append({"size": len(data), "language": language, "max_pages": max_pages})
        if on_progress:
            on_progress(0, "Preparing images")
            on_progress(50, "Recognized page 1 of 2")
        if self.error is not None:
            raise self.error
        if on_progress:
            on_progress(100, "Recognized page 2 of 2")
        return RecognitionResult(text=self.text, confidence=self.confidence, page_count=1)

    def terminate(self):
        self.terminated += 1


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def text_pdf_bytes() -> bytes:
    """PDF with a normal text layer: first page well above the scanned threshold."""
    return make_pdf([RESUME_TEXT])


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """PDF without any text layer, as produced by a scanner."""
    return make_pdf([""])


@pytest.fixture
def thin_pdf_bytes() -> bytes:
    """PDF whose text layer holds only 38 characters."""
    return make_pdf([SHORT_PAGE_TEXT])


@pytest.fixture
def docx_bytes() -> bytes:
    return make_docx(
        ["Jane Doe", "Senior Software Engineer"],
        table=[["Skill", "Years"], ["Python", "10"]],
    )


@pytest.fixture
def plain_text_bytes() -> bytes:
    return b"Jane Doe, Software Engineer. Skills: Python, SQL, Kubernetes."


@pytest.fixture
def binary_bytes() -> bytes:
    return bytes(range(0, 12)) * 8


@pytest.fixture
def fake_engine() -> FakeRecognitionEngine:
    return FakeRecognitionEngine()
