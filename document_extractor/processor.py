"""Extraction pipeline executed inside the processing host.

One call walks a fixed state machine::

    detecting -> routing -> structural_pass -> evaluate
        -> [ocr_pass -> reconciling] -> normalizing -> done

with ``errored`` reachable from any state. Every transition reports
progress; a successful call always ends at 100.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from document_extractor.config import ExtractorConfig
from document_extractor.detector import DocumentDetector
from document_extractor.exceptions import (
    DocumentExtractionError,
    OcrExtractionError,
    UnsupportedFormatError,
)
from document_extractor.extractors import DocxExtractor, PdfExtractor, PlainTextExtractor
from document_extractor.logger import Timer, get_logger
from document_extractor.models import (
    DocumentKind,
    DocumentTypeInfo,
    ExtractionMetadata,
    ExtractionMethod,
    ExtractionOptions,
    ExtractionResult,
    ProgressCallback,
)
from document_extractor.normalizer import count_words, normalize_text
from document_extractor.ocr import RecognitionEngine
from document_extractor.reconciler import Reconciler

logger = get_logger(__name__)

OCR_FALLBACK_WARNING = "Standard extraction yielded minimal text, attempting OCR..."
THIN_TEXT_WARNING = (
    "Standard extraction yielded minimal text and OCR is disabled; "
    "the document may be scanned"
)
EMPTY_DOCUMENT_WARNING = "No text content found in document"
EMPTY_IMAGE_WARNING = "No text was recognized in the image"


class HostState(str, Enum):
    DETECTING = "detecting"
    ROUTING = "routing"
    STRUCTURAL_PASS = "structural_pass"
    EVALUATE = "evaluate"
    OCR_PASS = "ocr_pass"
    RECONCILING = "reconciling"
    NORMALIZING = "normalizing"
    DONE = "done"
    ERRORED = "errored"


STAGE_PROGRESS = {
    HostState.DETECTING: 5.0,
    HostState.ROUTING: 10.0,
    HostState.STRUCTURAL_PASS: 15.0,
    HostState.EVALUATE: 50.0,
    HostState.OCR_PASS: 55.0,
    HostState.RECONCILING: 92.0,
    HostState.NORMALIZING: 95.0,
    HostState.DONE: 100.0,
}
OCR_PROGRESS_END = 90.0


class ExtractionRun:
    """Mutable state of a single extraction call."""

    def __init__(self, on_progress: Optional[ProgressCallback] = None):
        self.state: Optional[HostState] = None
        self.percent = 0.0
        self.warnings: list[str] = []
        self.timer = Timer("extraction")
        self.timer.start()
        self._on_progress = on_progress

    def transition(self, state: HostState, stage: str, percent: Optional[float] = None) -> None:
        previous = self.state
        self.state = state
        self._report(STAGE_PROGRESS[state] if percent is None else percent, stage)
        logger.debug(
            "Pipeline state transition",
            extra_data={
                "from_state": previous.value if previous else None,
                "to_state": state.value,
                "progress": self.percent,
            },
        )

    def ocr_progress(self, start: float) -> ProgressCallback:
        """Rescale engine ticks in [0, 100] into [start, OCR_PROGRESS_END]."""

        def report(tick: float, stage: str) -> None:
            self._report(start + (OCR_PROGRESS_END - start) * tick / 100, stage)

        return report

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(
            "Extraction warning",
            extra_data={"state": self.state.value if self.state else None, "warning": message},
        )

    def fail(self, exc: Exception) -> None:
        failed_state = self.state
        self.state = HostState.ERRORED
        elapsed = self.timer.stop()
        logger.error(
            "Extraction failed",
            extra_data={
                "failed_state": failed_state.value if failed_state else None,
                "error_type": type(exc).__name__,
                "error": str(exc),
                "processing_time_ms": round(elapsed, 2),
            },
        )
        self._report(self.percent, f"Failed: {exc}")

    def _report(self, percent: float, stage: str) -> None:
        self.percent = max(self.percent, min(percent, 100.0))
        if self._on_progress is None:
            return
        try:
            self._on_progress(self.percent, stage)
        except Exception:
            logger.warning("Progress callback raised", exc_info=True)


class DocumentProcessor:
    """Owns the detector, extractors, reconciler and a warm recognition engine."""

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        detector: Optional[DocumentDetector] = None,
        engine: Optional[RecognitionEngine] = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Extraction configuration. If None, uses defaults.
            detector: Type detector. If None, creates one from config.
            engine: Recognition engine. If None, one is created on first OCR use.
        """
        self.config = config or ExtractorConfig()
        self.detector = detector or DocumentDetector(self.config.detector)
        self.pdf_extractor = PdfExtractor(self.config.thresholds)
        self.docx_extractor = DocxExtractor()
        self.text_extractor = PlainTextExtractor()
        self.reconciler = Reconciler(self.config.thresholds)
        self._engine = engine

    @property
    def engine(self) -> RecognitionEngine:
        if self._engine is None:
            self._engine = RecognitionEngine(self.config.ocr)
        return self._engine

    def detect_document_type(
        self, buffer: bytes, on_progress: Optional[ProgressCallback] = None
    ) -> DocumentTypeInfo:
        """Classify the buffer without extracting it.

        Detection is a single step, so ``on_progress`` is not called. Every
        public method takes it so hosts can dispatch calls uniformly.
        """
        return self.detector.detect(buffer)

    def extract_text(
        self,
        buffer: bytes,
        options: Optional[ExtractionOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExtractionResult:
        """Detect the format and route to the matching extraction path.

        Raises:
            UnsupportedFormatError: If the buffer cannot be classified
            StructuralExtractionError: If a recognized format cannot be parsed
            OcrExtractionError: If OCR fails and no structural text exists
        """
        options = options or ExtractionOptions()
        run = ExtractionRun(on_progress)

        with self._guard(run):
            run.transition(HostState.DETECTING, "Detecting document type")
            type_info = self.detector.detect(buffer)
            if type_info.kind is DocumentKind.UNKNOWN:
                raise UnsupportedFormatError(
                    f"Unsupported file type: {type_info.mime_type} (detection found no known format)"
                )

            run.transition(HostState.ROUTING, f"Routing {type_info.kind.value} document")
            if type_info.kind is DocumentKind.PDF:
                return self._extract_pdf(
                    run, buffer, options, enable_ocr=options.enable_ocr or type_info.needs_ocr
                )
            if type_info.kind is DocumentKind.CONTAINER_DOCUMENT:
                return self._extract_docx(run, buffer)
            if type_info.kind is DocumentKind.IMAGE:
                return self._extract_ocr(run, buffer, options)
            return self._extract_plain_text(run, buffer)

    def extract_text_from_pdf(
        self,
        buffer: bytes,
        options: Optional[ExtractionOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExtractionResult:
        """PDF path without detection; OCR runs only if options.enable_ocr."""
        options = options or ExtractionOptions()
        run = ExtractionRun(on_progress)
        with self._guard(run):
            return self._extract_pdf(run, buffer, options, enable_ocr=options.enable_ocr)

    def extract_text_with_ocr(
        self,
        buffer: bytes,
        options: Optional[ExtractionOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExtractionResult:
        options = options or ExtractionOptions()
        run = ExtractionRun(on_progress)
        with self._guard(run):
            return self._extract_ocr(run, buffer, options)

    extract_text_from_image = extract_text_with_ocr

    def extract_text_from_docx(
        self,
        buffer: bytes,
        options: Optional[ExtractionOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExtractionResult:
        run = ExtractionRun(on_progress)
        with self._guard(run):
            return self._extract_docx(run, buffer)

    def cleanup(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Release the recognition engine. It restarts lazily on next OCR use.

        ``on_progress`` is accepted for uniform host dispatch and not called.
        """
        if self._engine is not None:
            self._engine.terminate()

    @contextmanager
    def _guard(self, run: ExtractionRun) -> Iterator[None]:
        try:
            yield
        except DocumentExtractionError as exc:
            run.fail(exc)
            raise
        except Exception as exc:
            stage = run.state.value if run.state else "starting"
            run.fail(exc)
            raise DocumentExtractionError(
                f"Extraction failed during {stage}: {exc}", stage=stage
            ) from exc

    def _extract_pdf(
        self, run: ExtractionRun, buffer: bytes, options: ExtractionOptions, enable_ocr: bool
    ) -> ExtractionResult:
        run.transition(HostState.STRUCTURAL_PASS, "Extracting PDF text layer")
        structure = self.pdf_extractor.extract(buffer, options.max_pages)

        run.transition(HostState.EVALUATE, "Evaluating extracted text")
        structural_chars = len(normalize_text(structure.text))
        sufficient = (
            structure.has_content
            and structural_chars >= self.config.thresholds.sufficient_total_chars
        )

        def finish(text, method, confidence=None):
            return self._finish(
                run,
                text,
                method,
                page_count=structure.page_count,
                has_images=structure.has_images,
                confidence=confidence,
            )

        if sufficient:
            return finish(structure.text, ExtractionMethod.STANDARD)
        if not enable_ocr:
            run.warn(THIN_TEXT_WARNING)
            return finish(structure.text, ExtractionMethod.STANDARD)

        run.warn(OCR_FALLBACK_WARNING)
        run.transition(HostState.OCR_PASS, "Running OCR on PDF pages")
        try:
            recognition = self.engine.recognize(
                buffer,
                language=options.ocr_language,
                max_pages=options.max_pages,
                on_progress=run.ocr_progress(STAGE_PROGRESS[HostState.OCR_PASS]),
            )
        except OcrExtractionError as exc:
            if not structural_chars:
                raise
            run.warn(f"OCR failed, keeping the embedded text layer: {exc}")
            return finish(structure.text, ExtractionMethod.STANDARD)

        run.transition(HostState.RECONCILING, "Reconciling text layer and OCR results")
        decision = self.reconciler.reconcile(structure.text, recognition)
        for warning in decision.warnings:
            run.warn(warning)
        return finish(decision.text, decision.method, confidence=decision.confidence)

    def _extract_docx(self, run: ExtractionRun, buffer: bytes) -> ExtractionResult:
        run.transition(HostState.STRUCTURAL_PASS, "Extracting document text")
        text, warnings = self.docx_extractor.extract(buffer)
        for warning in warnings:
            run.warn(warning)

        run.transition(HostState.EVALUATE, "Evaluating extracted text")
        if not normalize_text(text):
            run.warn(EMPTY_DOCUMENT_WARNING)
        return self._finish(run, text, ExtractionMethod.STANDARD)

    def _extract_ocr(
        self, run: ExtractionRun, buffer: bytes, options: ExtractionOptions
    ) -> ExtractionResult:
        start = STAGE_PROGRESS[HostState.STRUCTURAL_PASS]
        run.transition(HostState.OCR_PASS, "Running OCR", percent=start)
        recognition = self.engine.recognize(
            buffer,
            language=options.ocr_language,
            max_pages=options.max_pages,
            on_progress=run.ocr_progress(start),
        )
        if not normalize_text(recognition.text):
            run.warn(EMPTY_IMAGE_WARNING)
        return self._finish(
            run,
            recognition.text,
            ExtractionMethod.OCR,
            page_count=recognition.page_count,
            confidence=recognition.confidence,
        )

    def _extract_plain_text(self, run: ExtractionRun, buffer: bytes) -> ExtractionResult:
        text, warnings = self.text_extractor.extract(buffer)
        for warning in warnings:
            run.warn(warning)
        # Plain text is returned verbatim
        return self._finish(run, text, ExtractionMethod.STANDARD, normalize=False)

    def _finish(
        self,
        run: ExtractionRun,
        text: str,
        method: ExtractionMethod,
        page_count: Optional[int] = None,
        has_images: Optional[bool] = None,
        confidence: Optional[float] = None,
        normalize: bool = True,
    ) -> ExtractionResult:
        run.transition(HostState.NORMALIZING, "Normalizing text")
        clean = normalize_text(text) if normalize else text
        elapsed = run.timer.stop()

        metadata = ExtractionMetadata(
            word_count=count_words(clean),
            character_count=len(clean),
            processing_time_ms=elapsed,
            method=method,
            page_count=page_count,
            has_images=has_images,
            confidence=confidence,
        )
        run.transition(HostState.DONE, "Done")

        logger.info(
            "Extraction completed",
            extra_data={
                "method": method.value,
                "word_count": metadata.word_count,
                "character_count": metadata.character_count,
                "page_count": page_count,
                "warning_count": len(run.warnings),
                "processing_time_ms": round(elapsed, 2),
            },
        )
        return ExtractionResult(text=clean, metadata=metadata, warnings=list(run.warnings))
