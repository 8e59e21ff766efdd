"""Synchronous high-level API for document extraction."""

import asyncio
from typing import Optional

from document_extractor.config import ExtractorConfig, ValidationConfig
from document_extractor.host import ThreadHost
from document_extractor.models import ExtractionOptions, ExtractionResult, UploadedFile
from document_extractor.service import DocumentExtractionService


def extract_document(
    file_path: Optional[str] = None,
    file_bytes: Optional[bytes] = None,
    file_name: Optional[str] = None,
    options: Optional[ExtractionOptions] = None,
    config: Optional[ExtractorConfig] = None,
    validation: Optional[ValidationConfig] = None,
) -> ExtractionResult:
    """Validate a document and extract its text in the current process.

    Convenience wrapper for scripts and batch jobs that accepts either a file
    path or raw bytes. The pipeline runs on a ThreadHost, so the call blocks
    until extraction finishes. Must not be called from a running event loop;
    use DocumentExtractionService there.

    Args:
        file_path: Path to document file (alternative to file_bytes)
        file_bytes: Raw document bytes (alternative to file_path)
        file_name: Original filename (required if using file_bytes)
        options: Extraction options (OCR toggle, language, page limit, progress)
        config: Extractor configuration (optional, uses defaults if not provided)
        validation: Size and extension limits (optional)

    Returns:
        ExtractionResult with normalized text, metadata and warnings

    Raises:
        ValueError: If neither or both of file_path and file_bytes are provided,
            or if file_bytes is provided without file_name
        ValidationError: If the file fails size or extension validation
        UnsupportedFormatError: If the document type cannot be detected
        StructuralExtractionError: If the document cannot be parsed
        OcrExtractionError: If OCR fails and no other text is available

    Examples:
        >>> result = extract_document(file_path="resume.pdf")
        >>> print(result.metadata.method, result.metadata.word_count)

        >>> with open("scan.png", "rb") as f:
        ...     result = extract_document(
        ...         file_bytes=f.read(),
        ...         file_name="scan.png",
        ...         options=ExtractionOptions(ocr_language="eng+deu"),
        ...     )
    """
    if file_path and file_bytes:
        raise ValueError("Provide either file_path or file_bytes, not both")

    if not file_path and file_bytes is None:
        raise ValueError("Must provide either file_path or file_bytes")

    if file_path:
        file = file_path
    elif not file_name:
        raise ValueError("file_name is required when using file_bytes")
    else:
        file = UploadedFile(name=file_name, data=file_bytes)

    config = config or ExtractorConfig()

    async def _run() -> ExtractionResult:
        async with DocumentExtractionService(
            config=config,
            validation=validation,
            host_factory=lambda: ThreadHost(config),
        ) as service:
            return await service.extract_file(file, options)

    return asyncio.run(_run())
