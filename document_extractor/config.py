"""Configuration classes for document extractor."""

from dataclasses import dataclass, field
from typing import Optional

MEGABYTE = 1024 * 1024

SUPPORTED_EXTENSIONS = (
    ".pdf",
    ".docx",
    ".txt",
    ".md",
    ".markdown",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".bmp",
    ".tiff",
    ".rtf",
    ".html",
    ".htm",
    ".csv",
)


@dataclass
class OCRConfig:
    """Configuration for the Tesseract recognition engine.

    Examples:
        >>> # Defaults: English, 200 DPI page rendering
        >>> config = OCRConfig()

        >>> # Faster rendering for constrained hosts
        >>> config = OCRConfig(dpi=120, max_workers=1)
    """

    tesseract_cmd: str = "tesseract"
    """Path to tesseract binary. Default: "tesseract" (assumes in PATH)."""

    tessdata_prefix: Optional[str] = None
    """Optional path to tessdata directory. If None, uses system default."""

    languages: str = "eng"
    """Default OCR language in Tesseract format ("eng", "eng+fra").
    Overridden per call by ExtractionOptions.ocr_language."""

    dpi: int = 200
    """DPI used to rasterize PDF pages before recognition.

    - 120: fastest, acceptable for clean scans
    - 200: default, good for résumé-sized fonts
    - 300: best quality, roughly 2x memory
    """

    psm_mode: int = 3
    """Page segmentation mode (0-13). Default: 3 (fully automatic).

    Multi-column résumés segment better with 3 than with 6 (uniform block).
    """

    use_oem_1: bool = True
    """Use Tesseract OEM 1 (LSTM engine only)."""

    max_workers: int = 2
    """Threads in the engine's warm page pool. Each runs one tesseract process."""

    enable_image_preprocessing: bool = True
    """Convert to grayscale and boost contrast before recognition."""

    contrast_enhancement: float = 1.2
    """Contrast factor applied during preprocessing. 1.0 disables it."""

    def tesseract_config(self) -> str:
        """Command line flags passed to tesseract."""
        flags = [f"--psm {self.psm_mode}"]
        if self.use_oem_1:
            flags.append("--oem 1")
        return " ".join(flags)


@dataclass
class ExtractionThresholds:
    """Calibration constants for the structural/OCR decision.

    These are empirical values, not derived ones. Tune them here rather
    than in the pipeline code.
    """

    content_page_min_chars: int = 20
    """A PDF page with more characters than this is content-bearing."""

    sufficient_total_chars: int = 100
    """Normalized structural text at least this long skips OCR."""

    ocr_improvement_ratio: float = 1.5
    """OCR text replaces structural text only when longer by this factor."""


@dataclass
class DetectorConfig:
    sample_size: int = 12
    """Leading bytes inspected for signatures and the text heuristic."""

    scanned_page_min_chars: int = 50
    """First PDF page with less text than this flags the document for OCR."""

    text_ratio: float = 0.8
    """Share of printable sampled bytes required to classify as plain text."""


@dataclass
class ValidationConfig:
    max_file_size: int = 15 * MEGABYTE
    supported_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS


@dataclass
class ExtractorConfig:
    """Configuration handed to the processing host.

    Must stay picklable: the process host sends it to its child.
    """

    ocr: OCRConfig = field(default_factory=OCRConfig)
    thresholds: ExtractionThresholds = field(default_factory=ExtractionThresholds)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    log_level: Optional[str] = None
    """Log level for the host child process. None inherits the caller's level."""
