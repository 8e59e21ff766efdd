"""Exception hierarchy for document extraction."""

from typing import Optional


class DocumentExtractionError(Exception):
    """Base exception for document extraction errors.

    Attributes:
        stage: Pipeline stage that failed (e.g. "structural_pass").
    """

    stage: Optional[str] = None

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class ValidationError(DocumentExtractionError):
    """Raised when a file fails pre-flight validation."""

    stage = "validation"


class UnsupportedFormatError(DocumentExtractionError):
    """Raised when the document type cannot be classified."""

    stage = "detecting"


class StructuralExtractionError(DocumentExtractionError):
    """Raised when a recognized format cannot be opened or parsed."""

    stage = "structural_pass"


class OcrExtractionError(DocumentExtractionError):
    """Raised when optical recognition fails and no fallback text exists."""

    stage = "ocr_pass"


ERROR_TYPES = {
    cls.__name__: cls
    for cls in (
        DocumentExtractionError,
        ValidationError,
        UnsupportedFormatError,
        StructuralExtractionError,
        OcrExtractionError,
    )
}


def rebuild_error(error_type: str, message: str, stage: Optional[str] = None) -> DocumentExtractionError:
    """Recreate an error that crossed the host process boundary by name."""
    cls = ERROR_TYPES.get(error_type, DocumentExtractionError)
    return cls(message, stage=stage)
