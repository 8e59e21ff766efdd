"""Public entry point: validation, detection and extraction through a host."""

import asyncio
import os
from pathlib import Path
from typing import Any, Callable, Optional, Union

from document_extractor.config import MEGABYTE, ExtractorConfig, ValidationConfig
from document_extractor.exceptions import ValidationError
from document_extractor.host import BaseHost, ProcessingHost
from document_extractor.logger import get_logger, get_request_id, set_request_id
from document_extractor.models import (
    DocumentTypeInfo,
    ExtractionOptions,
    ExtractionResult,
    ProgressCallback,
    UploadedFile,
    ValidationOutcome,
)

logger = get_logger(__name__)

FileLike = Union[UploadedFile, str, os.PathLike]


class DocumentExtractionService:
    """Validates files and dispatches extraction to a lazily created host.

    The service owns exactly one host, built on first use by ``host_factory``
    (a ``ProcessingHost`` by default). Calls are serialized through it.
    ``cleanup()`` stops the host and releases the recognition engine; the
    next call builds a fresh host.

    Examples:
        >>> async with DocumentExtractionService() as service:
        ...     outcome = service.validate_file(upload)
        ...     if outcome.valid:
        ...         result = await service.extract_text(
        ...             upload.data,
        ...             ExtractionOptions(enable_ocr=True, on_progress=print),
        ...         )
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        validation: Optional[ValidationConfig] = None,
        host_factory: Optional[Callable[[], BaseHost]] = None,
    ) -> None:
        self.config = config or ExtractorConfig()
        self.validation = validation or ValidationConfig()
        self._host_factory = host_factory or self._default_host
        self._host: Optional[BaseHost] = None

    async def __aenter__(self) -> "DocumentExtractionService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.cleanup()

    @property
    def host(self) -> Optional[BaseHost]:
        return self._host

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        return self.validation.supported_extensions

    @property
    def max_file_size(self) -> int:
        return self.validation.max_file_size

    @property
    def accept_string(self) -> str:
        """Comma-separated extension list for file pickers."""
        return ",".join(self.validation.supported_extensions)

    def validate_file(self, file: Optional[FileLike]) -> ValidationOutcome:
        """Check size and extension before any buffer is created.

        Paths are checked with ``stat()``; their contents are not read.
        Never raises for invalid input; the outcome carries the message.
        """
        if file is None:
            return self._reject("No file provided")

        if isinstance(file, UploadedFile):
            name, size = file.name, file.size
        else:
            path = Path(file)
            name = path.name
            try:
                size = path.stat().st_size
            except OSError:
                return self._reject(f"File not found: {name}", file_name=name)

        if size == 0:
            return self._reject("File is empty", file_name=name)

        max_size = self.validation.max_file_size
        if size > max_size:
            return self._reject(
                f"File size ({size / MEGABYTE:.2f}MB) exceeds maximum allowed size "
                f"({max_size / MEGABYTE:.0f}MB)",
                file_name=name,
            )

        extension = Path(name).suffix.lower()
        if extension not in self.validation.supported_extensions:
            return self._reject(
                "Unsupported file type. Supported formats: "
                + ", ".join(self.validation.supported_extensions),
                file_name=name,
            )

        logger.debug("File passed validation", extra_data={"file_name": name, "file_size_bytes": size})
        return ValidationOutcome(valid=True)

    def is_supported(self, file: Optional[FileLike]) -> bool:
        return self.validate_file(file).valid

    async def extract_text(
        self, buffer: bytes, options: Optional[ExtractionOptions] = None
    ) -> ExtractionResult:
        """Detect the format and extract text in the host.

        Raises:
            UnsupportedFormatError: If the buffer cannot be classified
            StructuralExtractionError: If a recognized format cannot be parsed
            OcrExtractionError: If OCR fails and no structural text exists
        """
        options = options or ExtractionOptions()
        return await self._call("extract_text", buffer, options, on_progress=options.on_progress)

    async def extract_from_pdf(
        self, buffer: bytes, options: Optional[ExtractionOptions] = None
    ) -> ExtractionResult:
        """PDF-specific entry point; skips detection and honours options.enable_ocr only."""
        options = options or ExtractionOptions()
        return await self._call(
            "extract_text_from_pdf", buffer, options, on_progress=options.on_progress
        )

    async def detect_type(self, buffer: bytes) -> DocumentTypeInfo:
        return await self._call("detect_document_type", buffer)

    async def extract_file(
        self, file: FileLike, options: Optional[ExtractionOptions] = None
    ) -> ExtractionResult:
        """Validate, read and extract a file.

        Raises:
            ValidationError: If the file fails validation
        """
        outcome = self.validate_file(file)
        if not outcome.valid:
            raise ValidationError(outcome.error)

        data = file.data if isinstance(file, UploadedFile) else Path(file).read_bytes()
        return await self.extract_text(data, options)

    async def cleanup(self) -> None:
        """Stop the host and terminate its recognition engine."""
        host, self._host = self._host, None
        if host is None:
            return
        await asyncio.to_thread(host.close)
        logger.info("Extraction service cleaned up")

    def _default_host(self) -> BaseHost:
        return ProcessingHost(self.config)

    def _get_host(self) -> BaseHost:
        if self._host is None:
            self._host = self._host_factory()
            logger.info("Created processing host", extra_data={"host": type(self._host).__name__})
        return self._host

    async def _call(
        self, method: str, *args: Any, on_progress: Optional[ProgressCallback] = None
    ) -> Any:
        if get_request_id() is None:
            set_request_id()

        loop = asyncio.get_running_loop()
        forward = None
        if on_progress is not None:
            # Deliver progress on the caller's event loop, in arrival order
            def forward(percent: float, stage: str) -> None:
                loop.call_soon_threadsafe(on_progress, percent, stage)

        future = self._get_host().submit(method, *args, on_progress=forward)
        return await asyncio.wrap_future(future)

    @staticmethod
    def _reject(message: str, file_name: Optional[str] = None) -> ValidationOutcome:
        logger.warning("File rejected", extra_data={"file_name": file_name, "reason": message})
        return ValidationOutcome(valid=False, error=message)
