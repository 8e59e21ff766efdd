"""Choose between a structural pass and a recognition pass over the same PDF."""

from dataclasses import dataclass, field
from typing import Optional

from document_extractor.config import ExtractionThresholds
from document_extractor.logger import get_logger
from document_extractor.models import ExtractionMethod, RecognitionResult
from document_extractor.normalizer import normalize_text

logger = get_logger(__name__)

OCR_NOT_IMPROVED_WARNING = (
    "OCR was attempted but did not improve the result; keeping the embedded text layer"
)


@dataclass
class Reconciliation:
    text: str
    method: ExtractionMethod
    confidence: Optional[float] = None
    warnings: list[str] = field(default_factory=list)


class Reconciler:
    def __init__(self, thresholds: Optional[ExtractionThresholds] = None):
        self.thresholds = thresholds or ExtractionThresholds()

    def reconcile(self, structural_text: str, recognition: RecognitionResult) -> Reconciliation:
        """Adopt the OCR text only when it is substantially longer.

        Lengths are compared after normalization, so layout whitespace and
        stripped symbols do not count towards either side.
        """
        structural_chars = len(normalize_text(structural_text))
        ocr_chars = len(normalize_text(recognition.text))
        adopt_ocr = ocr_chars > self.thresholds.ocr_improvement_ratio * structural_chars

        logger.info(
            "Reconciled structural and OCR text",
            extra_data={
                "structural_characters": structural_chars,
                "ocr_characters": ocr_chars,
                "ratio_threshold": self.thresholds.ocr_improvement_ratio,
                "selected": "ocr" if adopt_ocr else "structural",
            },
        )

        if adopt_ocr:
            return Reconciliation(
                text=recognition.text,
                method=ExtractionMethod.HYBRID,
                confidence=recognition.confidence,
            )
        return Reconciliation(
            text=structural_text,
            method=ExtractionMethod.STANDARD,
            warnings=[OCR_NOT_IMPROVED_WARNING],
        )
