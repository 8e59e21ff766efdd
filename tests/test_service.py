"""
Unit Tests — DocumentExtractionService
══════════════════════════════════════
Validation rules and the async façade, backed by an in-process ThreadHost
with a fake recognition engine.
"""

import threading

import pytest

from document_extractor.config import MEGABYTE, SUPPORTED_EXTENSIONS, ValidationConfig
from document_extractor.exceptions import UnsupportedFormatError, ValidationError
from document_extractor.host import ThreadHost
from document_extractor.models import (
    DocumentKind,
    ExtractionMethod,
    ExtractionOptions,
    UploadedFile,
)
from document_extractor.processor import DocumentProcessor
from document_extractor.service import DocumentExtractionService


@pytest.fixture
def hosts():
    return []


@pytest.fixture
async def service(fake_engine, hosts):
    def host_factory():
        host = ThreadHost(processor=DocumentProcessor(engine=fake_engine))
        hosts.append(host)
        return host

    service = DocumentExtractionService(host_factory=host_factory)
    yield service
    await service.cleanup()


def upload(name: str, size: int) -> UploadedFile:
    return UploadedFile(name=name, data=b"x" * size)


class TestValidateFile:

    def test_accepts_supported_file(self, service):
        outcome = service.validate_file(upload("resume.pdf", 1024))

        assert outcome.valid is True
        assert outcome.error is None

    def test_rejects_missing_file(self, service):
        outcome = service.validate_file(None)

        assert outcome.valid is False
        assert outcome.error == "No file provided"

    def test_rejects_empty_file(self, service):
        outcome = service.validate_file(upload("resume.pdf", 0))
        assert outcome.error == "File is empty"

    def test_size_limit_is_inclusive(self, service):
        assert service.validate_file(upload("resume.pdf", 15 * MEGABYTE)).valid is True
        assert service.validate_file(upload("resume.pdf", 15 * MEGABYTE + 1)).valid is False

    def test_oversized_message_reports_both_sizes(self, service):
        outcome = service.validate_file(upload("scan.pdf", 20 * MEGABYTE))

        assert outcome.valid is False
        assert "20.00MB" in outcome.error
        assert "15MB" in outcome.error

    def test_rejects_unsupported_extension(self, service):
        outcome = service.validate_file(upload("payload.exe", 10))

        assert outcome.valid is False
        assert outcome.error.startswith("Unsupported file type. Supported formats: ")
        assert ".pdf" in outcome.error

    def test_extension_check_is_case_insensitive(self, service):
        assert service.validate_file(upload("RESUME.PDF", 10)).valid is True

    def test_size_checked_before_extension(self, service):
        outcome = service.validate_file(upload("payload.exe", 0))
        assert outcome.error == "File is empty"

    def test_accepts_path(self, service, tmp_path):
        path = tmp_path / "resume.txt"
        path.write_text("Jane Doe")

        assert service.validate_file(path).valid is True
        assert service.validate_file(str(path)).valid is True

    def test_rejects_nonexistent_path(self, service, tmp_path):
        outcome = service.validate_file(tmp_path / "missing.pdf")
        assert outcome.error == "File not found: missing.pdf"

    def test_custom_limits(self):
        service = DocumentExtractionService(
            validation=ValidationConfig(max_file_size=10, supported_extensions=(".txt",))
        )

        assert service.validate_file(upload("notes.txt", 11)).valid is False
        assert service.validate_file(upload("resume.pdf", 5)).valid is False
        assert service.is_supported(upload("notes.txt", 5)) is True

    def test_validation_never_creates_host(self, service):
        service.validate_file(upload("resume.pdf", 10))
        assert service.host is None

    def test_exposes_limits(self, service):
        assert service.max_file_size == 15 * MEGABYTE
        assert service.supported_extensions == SUPPORTED_EXTENSIONS
        assert service.accept_string.split(",") == list(SUPPORTED_EXTENSIONS)


class TestExtraction:

    async def test_extract_text_from_pdf_bytes(self, service, text_pdf_bytes):
        result = await service.extract_text(text_pdf_bytes)

        assert "Hello World" in result.text
        assert result.metadata.method is ExtractionMethod.STANDARD

    async def test_detect_type(self, service, png_bytes):
        info = await service.detect_type(png_bytes)

        assert info.kind is DocumentKind.IMAGE
        assert info.mime_type == "image/png"
        assert info.needs_ocr is True

    async def test_errors_propagate(self, service, binary_bytes):
        with pytest.raises(UnsupportedFormatError):
            await service.extract_text(binary_bytes)

    async def test_progress_delivered_on_event_loop_thread(self, service, blank_pdf_bytes):
        events = []
        loop_thread = threading.get_ident()

        def on_progress(percent, stage):
            events.append((percent, stage, threading.get_ident()))

        await service.extract_text(blank_pdf_bytes, ExtractionOptions(on_progress=on_progress))

        assert events
        assert {thread for _, _, thread in events} == {loop_thread}
        percents = [percent for percent, _, _ in events]
        assert percents == sorted(percents)
        assert percents[-1] == 100

    async def test_extract_from_pdf_honours_enable_ocr_only(self, service, fake_engine, blank_pdf_bytes):
        result = await service.extract_from_pdf(blank_pdf_bytes)
        assert result.metadata.method is ExtractionMethod.STANDARD
        assert fake_engine.calls == []

        result = await service.extract_from_pdf(blank_pdf_bytes, ExtractionOptions(enable_ocr=True))
        assert result.metadata.method is ExtractionMethod.HYBRID

    async def test_extract_file_rejects_invalid_without_host(self, service):
        with pytest.raises(ValidationError, match="File is empty") as excinfo:
            await service.extract_file(upload("resume.pdf", 0))

        assert excinfo.value.stage == "validation"
        assert service.host is None

    async def test_extract_file_from_path(self, service, tmp_path, docx_bytes):
        path = tmp_path / "resume.docx"
        path.write_bytes(docx_bytes)

        result = await service.extract_file(path)
        assert result.text.startswith("Jane Doe")

    async def test_extract_file_from_upload(self, service, plain_text_bytes):
        result = await service.extract_file(UploadedFile(name="resume.md", data=plain_text_bytes))
        assert result.text == plain_text_bytes.decode()

    async def test_result_serializes_with_camel_case_keys(self, service, png_bytes):
        result = await service.extract_text(png_bytes)
        data = result.to_dict()

        assert set(data) == {"text", "metadata", "warnings"}
        assert data["metadata"]["method"] == "ocr"
        assert {"wordCount", "characterCount", "processingTimeMs", "confidence"} <= set(data["metadata"])
        assert "hasImages" not in data["metadata"]


class TestHostLifecycle:

    async def test_host_created_lazily_and_reused(self, service, hosts, plain_text_bytes):
        assert service.host is None

        await service.extract_text(plain_text_bytes)
        await service.detect_type(plain_text_bytes)

        assert len(hosts) == 1
        assert service.host is hosts[0]

    async def test_cleanup_stops_host_and_engine(self, service, hosts, fake_engine, plain_text_bytes):
        await service.extract_text(plain_text_bytes)
        await service.cleanup()

        assert service.host is None
        assert hosts[0].is_running is False
        assert fake_engine.terminated == 1

    async def test_call_after_cleanup_starts_fresh_host(self, service, hosts, plain_text_bytes):
        await service.extract_text(plain_text_bytes)
        await service.cleanup()
        await service.extract_text(plain_text_bytes)

        assert len(hosts) == 2

    async def test_cleanup_without_host_is_noop(self, service):
        await service.cleanup()
        assert service.host is None

    async def test_async_context_manager_cleans_up(self, fake_engine, plain_text_bytes):
        host = ThreadHost(processor=DocumentProcessor(engine=fake_engine))
        async with DocumentExtractionService(host_factory=lambda: host) as service:
            await service.extract_text(plain_text_bytes)

        assert host.is_running is False
