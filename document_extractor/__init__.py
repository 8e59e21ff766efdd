"""Résumé and job-description text extraction with OCR fallback."""

from document_extractor.config import (
    DetectorConfig,
    ExtractionThresholds,
    ExtractorConfig,
    OCRConfig,
    ValidationConfig,
)
from document_extractor.detector import DocumentDetector
from document_extractor.exceptions import (
    DocumentExtractionError,
    OcrExtractionError,
    StructuralExtractionError,
    UnsupportedFormatError,
    ValidationError,
)
from document_extractor.extractors import DocxExtractor, PdfExtractor, PlainTextExtractor
from document_extractor.host import BaseHost, ProcessingHost, ThreadHost
from document_extractor.models import (
    DocumentKind,
    DocumentTypeInfo,
    ExtractionMetadata,
    ExtractionMethod,
    ExtractionOptions,
    ExtractionResult,
    UploadedFile,
    ValidationOutcome,
)
from document_extractor.normalizer import count_words, normalize_text
from document_extractor.ocr import RecognitionEngine
from document_extractor.parser import extract_document
from document_extractor.processor import DocumentProcessor, HostState
from document_extractor.reconciler import Reconciler
from document_extractor.service import DocumentExtractionService

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "DocumentExtractionService",
    "extract_document",
    # Hosts and pipeline
    "BaseHost",
    "ProcessingHost",
    "ThreadHost",
    "DocumentProcessor",
    "HostState",
    # Pipeline stages
    "DocumentDetector",
    "PdfExtractor",
    "DocxExtractor",
    "PlainTextExtractor",
    "RecognitionEngine",
    "Reconciler",
    "normalize_text",
    "count_words",
    # Data models
    "DocumentKind",
    "DocumentTypeInfo",
    "ExtractionMethod",
    "ExtractionMetadata",
    "ExtractionOptions",
    "ExtractionResult",
    "UploadedFile",
    "ValidationOutcome",
    # Configuration
    "OCRConfig",
    "ExtractionThresholds",
    "DetectorConfig",
    "ValidationConfig",
    "ExtractorConfig",
    # Exceptions
    "DocumentExtractionError",
    "ValidationError",
    "UnsupportedFormatError",
    "StructuralExtractionError",
    "OcrExtractionError",
]
