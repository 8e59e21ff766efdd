"""Structural text extractors: PDF (PyMuPDF), DOCX (python-docx), plain text."""

import io
from typing import Optional

import fitz  # PyMuPDF
from docx import Document
from docx.table import Table

from document_extractor.config import ExtractionThresholds
from document_extractor.exceptions import StructuralExtractionError
from document_extractor.logger import Timer, get_logger
from document_extractor.models import PdfStructure

logger = get_logger(__name__)

# Text boxes appear twice in DOCX markup (DrawingML choice and VML fallback)
_TEXTBOX_XPATH = ".//w:txbxContent[not(ancestor::*[local-name()='Fallback'])]"


class PdfExtractor:
    """Reads a PDF's text layer page by page."""

    def __init__(self, thresholds: Optional[ExtractionThresholds] = None):
        self.thresholds = thresholds or ExtractionThresholds()

    def extract(self, buffer: bytes, max_pages: Optional[int] = None) -> PdfStructure:
        """Extract the text layer.

        Args:
            buffer: Raw PDF bytes
            max_pages: Upper bound on pages read. None reads every page.

        Returns:
            PdfStructure with page texts joined by blank lines

        Raises:
            StructuralExtractionError: If the PDF cannot be opened or parsed
        """
        try:
            with Timer("pdf_structural_extraction") as timer:
                with fitz.open(stream=buffer, filetype="pdf") as document:
                    page_count = document.page_count
                    if page_count == 0:
                        raise ValueError("document has no pages")
                    limit = page_count if max_pages is None else min(max_pages, page_count)

                    page_texts = []
                    has_content = False
                    image_count = 0
                    for page_index in range(limit):
                        page = document[page_index]
                        page_text = self._page_text(page)
                        if len(page_text) > self.thresholds.content_page_min_chars:
                            has_content = True
                        page_texts.append(page_text)
                        image_count += len(page.get_image_info())
        except Exception as exc:
            logger.error(
                "PDF extraction failed",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                exc_info=True,
            )
            raise StructuralExtractionError(f"PDF extraction failed: {exc}") from exc

        text = "\n\n".join(page_texts)

        logger.debug(
            "PDF text layer extracted",
            extra_data={
                "page_count": page_count,
                "pages_processed": limit,
                "characters_extracted": len(text),
                "has_content": has_content,
                "image_count": image_count,
                "extraction_time_ms": round(timer.get_elapsed_ms(), 2),
            },
        )

        return PdfStructure(
            text=text,
            page_count=page_count,
            pages_processed=limit,
            has_images=image_count > 0,
            has_content=has_content,
        )

    @staticmethod
    def _page_text(page) -> str:
        """Join the page's positioned text spans with single spaces."""
        spans = []
        for block in page.get_text("dict")["blocks"]:
            for line in block.get("lines", ()):
                for span in line["spans"]:
                    if span["text"]:
                        spans.append(span["text"])
        return " ".join(spans).strip()


class DocxExtractor:
    """Reads raw text from a DOCX container's document markup."""

    def extract(self, buffer: bytes) -> tuple[str, list[str]]:
        """Extract body text, tables and text boxes in document order.

        Returns:
            Tuple of (text, warnings). Warnings describe skipped content.

        Raises:
            StructuralExtractionError: If the container cannot be opened
        """
        try:
            with Timer("docx_extraction") as timer:
                doc = Document(io.BytesIO(buffer))

                parts = []
                table_count = 0
                for block in doc.iter_inner_content():
                    if isinstance(block, Table):
                        table_count += 1
                        parts.extend(self._table_rows(block))
                    else:
                        text = block.text.strip()
                        if text:
                            parts.append(text)

                body = doc.element.body
                for textbox in body.xpath(_TEXTBOX_XPATH):
                    for paragraph in textbox.xpath(".//w:p"):
                        text = "".join(paragraph.xpath(".//w:t/text()")).strip()
                        if text:
                            parts.append(text)

                warnings = []
                image_count = len(doc.inline_shapes)
                if image_count:
                    warnings.append(
                        f"Skipped {image_count} embedded image(s); text inside images is not extracted"
                    )
                if body.xpath(".//w:altChunk"):
                    warnings.append("Unsupported embedded content (altChunk) was skipped")

                result = "\n\n".join(parts)
        except Exception as exc:
            logger.error(
                "DOCX extraction failed",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                exc_info=True,
            )
            raise StructuralExtractionError(f"DOCX extraction failed: {exc}") from exc

        logger.debug(
            "DOCX extraction completed",
            extra_data={
                "block_count": len(parts),
                "table_count": table_count,
                "characters_extracted": len(result),
                "warning_count": len(warnings),
                "extraction_time_ms": round(timer.get_elapsed_ms(), 2),
            },
        )
        return result, warnings

    @staticmethod
    def _table_rows(table: Table) -> list[str]:
        rows = []
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                rows.append("\t".join(cells))
        return rows


class PlainTextExtractor:
    def extract(self, buffer: bytes) -> tuple[str, list[str]]:
        try:
            return bytes(buffer).decode("utf-8-sig"), []
        except UnicodeDecodeError:
            logger.warning(
                "Plain text is not valid UTF-8, replacing undecodable bytes",
                extra_data={"buffer_size_bytes": len(buffer)},
            )
            text = bytes(buffer).decode("utf-8", errors="replace")
            return text, ["File is not valid UTF-8; undecodable bytes were replaced"]
