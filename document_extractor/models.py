"""Data models for document extractor."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

ProgressCallback = Callable[[float, str], None]


class DocumentKind(str, Enum):
    PDF = "pdf"
    CONTAINER_DOCUMENT = "container_document"
    IMAGE = "image"
    PLAIN_TEXT = "plain_text"
    UNKNOWN = "unknown"


class ExtractionMethod(str, Enum):
    STANDARD = "standard"
    OCR = "ocr"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class DocumentTypeInfo:
    """Detector verdict for one buffer. Confidence is on a 0-1 scale."""

    kind: DocumentKind
    mime_type: str
    needs_ocr: bool
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "mimeType": self.mime_type,
            "needsOcr": self.needs_ocr,
            "confidence": self.confidence,
        }


@dataclass
class ExtractionOptions:
    """Per-call extraction options.

    ``on_progress`` stays on the caller's side of the host boundary; the
    host forwards progress events to it.
    """

    enable_ocr: bool = False
    ocr_language: Optional[str] = None
    max_pages: Optional[int] = None
    on_progress: Optional[ProgressCallback] = field(default=None, repr=False, compare=False)


@dataclass
class ExtractionMetadata:
    word_count: int
    character_count: int
    processing_time_ms: float
    method: ExtractionMethod
    page_count: Optional[int] = None
    has_images: Optional[bool] = None
    confidence: Optional[float] = None  # 0-1, only when OCR produced the text

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "wordCount": self.word_count,
            "characterCount": self.character_count,
            "processingTimeMs": self.processing_time_ms,
            "method": self.method.value,
        }
        if self.page_count is not None:
            data["pageCount"] = self.page_count
        if self.has_images is not None:
            data["hasImages"] = self.has_images
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data


@dataclass
class ExtractionResult:
    """Final text plus the trust signal consumed by downstream analysis."""

    text: str
    metadata: ExtractionMetadata
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "metadata": self.metadata.to_dict(),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    error: Optional[str] = None


@dataclass
class UploadedFile:
    """A named file handed over by the upload layer."""

    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "UploadedFile":
        path = Path(path)
        return cls(name=path.name, data=path.read_bytes())


@dataclass
class RecognitionResult:
    """Raw recognition engine output."""

    text: str
    confidence: float  # 0-1
    page_count: Optional[int] = None


@dataclass
class PdfStructure:
    """Output of the structural PDF pass."""

    text: str
    page_count: int
    pages_processed: int
    has_images: bool
    has_content: bool
