"""Unit tests for DocumentDetector signature and heuristic rules."""

import pytest

from document_extractor.config import DetectorConfig
from document_extractor.detector import DOCX_MIME_TYPE, DocumentDetector
from document_extractor.models import DocumentKind


@pytest.fixture
def detector():
    return DocumentDetector()


class TestPdfDetection:

    def test_pdf_with_text_layer_does_not_need_ocr(self, detector, text_pdf_bytes):
        info = detector.detect(text_pdf_bytes)

        assert info.kind is DocumentKind.PDF
        assert info.mime_type == "application/pdf"
        assert info.needs_ocr is False
        assert info.confidence == 1.0

    def test_pdf_without_text_layer_needs_ocr(self, detector, blank_pdf_bytes):
        info = detector.detect(blank_pdf_bytes)

        assert info.kind is DocumentKind.PDF
        assert info.needs_ocr is True
        assert info.confidence == 1.0

    def test_first_page_below_threshold_needs_ocr(self, detector, thin_pdf_bytes):
        assert detector.detect(thin_pdf_bytes).needs_ocr is True

    def test_unreadable_pdf_still_classified_as_pdf(self, detector):
        info = detector.detect(b"%PDF-1.4\n" + b"\x00not really a pdf" * 8)

        assert info.kind is DocumentKind.PDF
        assert info.needs_ocr is True
        assert info.confidence == 0.8

    def test_scanned_threshold_is_configurable(self, thin_pdf_bytes):
        detector = DocumentDetector(DetectorConfig(scanned_page_min_chars=10))
        assert detector.detect(thin_pdf_bytes).needs_ocr is False


class TestSignatureDetection:

    def test_zip_signature_is_container_document(self, detector, docx_bytes):
        info = detector.detect(docx_bytes)

        assert info.kind is DocumentKind.CONTAINER_DOCUMENT
        assert info.mime_type == DOCX_MIME_TYPE
        assert info.needs_ocr is False
        assert info.confidence == 0.9

    def test_png_signature(self, detector, png_bytes):
        info = detector.detect(png_bytes)

        assert info.kind is DocumentKind.IMAGE
        assert info.mime_type == "image/png"
        assert info.needs_ocr is True
        assert info.confidence == 1.0

    def test_jpeg_signature(self, detector):
        info = detector.detect(b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01" + b"\x00" * 32)

        assert info.kind is DocumentKind.IMAGE
        assert info.mime_type == "image/jpeg"
        assert info.needs_ocr is True
        assert info.confidence == 1.0

    @pytest.mark.parametrize(
        "header, mime_type",
        [
            (b"GIF89a\x10\x00\x10\x00", "image/gif"),
            (b"GIF87a\x10\x00\x10\x00", "image/gif"),
            (b"II*\x00\x08\x00\x00\x00", "image/tiff"),
            (b"MM\x00*\x00\x00\x00\x08", "image/tiff"),
        ],
    )
    def test_other_image_signatures(self, detector, header, mime_type):
        info = detector.detect(header + b"\x00" * 16)

        assert info.kind is DocumentKind.IMAGE
        assert info.mime_type == mime_type

    def test_signature_wins_over_text_heuristic(self, detector):
        # "PK" followed by printable ASCII would also pass the text ratio
        info = detector.detect(b"PK this looks like text")
        assert info.kind is DocumentKind.CONTAINER_DOCUMENT


class TestTextHeuristic:

    def test_ascii_is_plain_text(self, detector, plain_text_bytes):
        info = detector.detect(plain_text_bytes)

        assert info.kind is DocumentKind.PLAIN_TEXT
        assert info.mime_type == "text/plain"
        assert info.needs_ocr is False
        assert info.confidence == 0.7

    def test_whitespace_counts_as_text(self, detector):
        assert detector.detect(b"Name:\tJane\r\nRole").kind is DocumentKind.PLAIN_TEXT

    def test_ratio_just_above_threshold(self, detector):
        # 10 of 12 sampled bytes printable
        assert detector.detect(b"abcdefghij\x00\x01").kind is DocumentKind.PLAIN_TEXT

    def test_ratio_below_threshold_is_unknown(self, detector):
        # 9 of 12 sampled bytes printable
        assert detector.detect(b"abcdefghi\x00\x01\x02").kind is DocumentKind.UNKNOWN

    def test_only_leading_sample_is_inspected(self, detector):
        assert detector.detect(b"Plain header" + b"\x00" * 100).kind is DocumentKind.PLAIN_TEXT

    def test_binary_is_unknown(self, detector, binary_bytes):
        info = detector.detect(binary_bytes)

        assert info.kind is DocumentKind.UNKNOWN
        assert info.mime_type == "application/octet-stream"
        assert info.needs_ocr is False
        assert info.confidence == 0.0

    def test_empty_buffer_is_unknown(self, detector):
        assert detector.detect(b"").kind is DocumentKind.UNKNOWN
