"""Document type detection from leading bytes."""

from typing import Optional

import fitz  # PyMuPDF

from document_extractor.config import DetectorConfig
from document_extractor.logger import get_logger
from document_extractor.models import DocumentKind, DocumentTypeInfo

logger = get_logger(__name__)


PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK"
PNG_SIGNATURE = b"\x89PNG"
JPEG_SIGNATURE = b"\xff\xd8\xff"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
TIFF_SIGNATURES = (b"II*\x00", b"MM\x00*")

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Printable ASCII plus tab, LF and CR
_TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 13}

# Ordered signature rules; evaluated before the text heuristic
_IMAGE_SIGNATURES: tuple[tuple[tuple[bytes, ...], str], ...] = (
    ((PNG_SIGNATURE,), "image/png"),
    ((JPEG_SIGNATURE,), "image/jpeg"),
    (GIF_SIGNATURES, "image/gif"),
    (TIFF_SIGNATURES, "image/tiff"),
)


class DocumentDetector:
    """Classifies a byte buffer and flags whether OCR is likely required."""

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()

    def detect(self, buffer: bytes) -> DocumentTypeInfo:
        head = bytes(buffer[: self.config.sample_size])

        if head.startswith(PDF_SIGNATURE):
            info = self._inspect_pdf(buffer)
        elif head.startswith(ZIP_SIGNATURE):
            info = DocumentTypeInfo(
                kind=DocumentKind.CONTAINER_DOCUMENT,
                mime_type=DOCX_MIME_TYPE,
                needs_ocr=False,
                confidence=0.9,
            )
        else:
            info = self._match_image(head) or self._classify_text(head)

        logger.info(
            "Document type detected",
            extra_data={
                "kind": info.kind.value,
                "mime_type": info.mime_type,
                "needs_ocr": info.needs_ocr,
                "confidence": info.confidence,
                "buffer_size_bytes": len(buffer),
            },
        )
        return info

    def _inspect_pdf(self, buffer: bytes) -> DocumentTypeInfo:
        """Read the first page's text layer to guess whether the PDF is scanned."""
        try:
            with fitz.open(stream=buffer, filetype="pdf") as document:
                if document.page_count == 0:
                    raise ValueError("PDF has no pages")
                first_page_text = document[0].get_text("text")
        except Exception as exc:
            logger.warning(
                "Could not read first PDF page during detection",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
            )
            return DocumentTypeInfo(
                kind=DocumentKind.PDF,
                mime_type="application/pdf",
                needs_ocr=True,
                confidence=0.8,
            )

        chars = len(first_page_text.strip())
        logger.debug("First PDF page inspected", extra_data={"characters": chars})
        return DocumentTypeInfo(
            kind=DocumentKind.PDF,
            mime_type="application/pdf",
            needs_ocr=chars < self.config.scanned_page_min_chars,
            confidence=1.0,
        )

    @staticmethod
    def _match_image(head: bytes) -> Optional[DocumentTypeInfo]:
        for signatures, mime_type in _IMAGE_SIGNATURES:
            if head.startswith(signatures):
                return DocumentTypeInfo(
                    kind=DocumentKind.IMAGE,
                    mime_type=mime_type,
                    needs_ocr=True,
                    confidence=1.0,
                )
        return None

    def _classify_text(self, head: bytes) -> DocumentTypeInfo:
        if head:
            printable = sum(1 for byte in head if byte in _TEXT_BYTES)
            if printable / len(head) > self.config.text_ratio:
                return DocumentTypeInfo(
                    kind=DocumentKind.PLAIN_TEXT,
                    mime_type="text/plain",
                    needs_ocr=False,
                    confidence=0.7,
                )

        return DocumentTypeInfo(
            kind=DocumentKind.UNKNOWN,
            mime_type="application/octet-stream",
            needs_ocr=False,
            confidence=0.0,
        )
