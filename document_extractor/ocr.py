"""Tesseract-backed optical recognition engine."""

import io
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import NamedTuple, Optional

import fitz  # PyMuPDF
import pytesseract
from PIL import Image, ImageEnhance, ImageSequence

from document_extractor.config import OCRConfig
from document_extractor.detector import PDF_SIGNATURE
from document_extractor.exceptions import OcrExtractionError
from document_extractor.logger import Timer, get_logger
from document_extractor.models import ProgressCallback, RecognitionResult

logger = get_logger(__name__)


class PageRecognition(NamedTuple):
    text: str
    confidence_total: float
    scored_words: int


def _ignore_progress(percent: float, stage: str) -> None:
    pass


class RecognitionEngine:
    """Warm Tesseract handle.

    ``start()`` verifies the tesseract binary, caches installed languages and
    opens the page pool. The handle stays warm across calls until
    ``terminate()`` is called; there is no idle teardown.
    """

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._languages: set[str] = set()
        self.version: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._executor is not None

    def start(self) -> None:
        if self._executor is not None:
            return

        pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        if self.config.tessdata_prefix:
            os.environ["TESSDATA_PREFIX"] = self.config.tessdata_prefix

        try:
            self.version = str(pytesseract.get_tesseract_version())
            self._languages = set(pytesseract.get_languages(config=""))
        except Exception as exc:
            logger.error(
                "Failed to start recognition engine",
                extra_data={
                    "tesseract_cmd": self.config.tesseract_cmd,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise OcrExtractionError(f"OCR engine failed to start: {exc}") from exc

        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers), thread_name_prefix="ocr-page"
        )
        logger.info(
            "Recognition engine started",
            extra_data={
                "tesseract_version": self.version,
                "languages_installed": len(self._languages),
                "max_workers": self.config.max_workers,
                "dpi": self.config.dpi,
            },
        )

    def terminate(self) -> None:
        if self._executor is None:
            return
        self._executor.shutdown(wait=True, cancel_futures=True)
        self._executor = None
        self._languages = set()
        logger.info("Recognition engine terminated")

    def recognize(
        self,
        data: bytes,
        language: Optional[str] = None,
        max_pages: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RecognitionResult:
        """Recognize text in an image or a PDF.

        Args:
            data: Image bytes (any format Pillow opens) or PDF bytes
            language: Tesseract language code. Defaults to the configured one.
            max_pages: Upper bound on PDF pages or image frames
            on_progress: Receives ticks in [0, 100] as pages complete

        Returns:
            RecognitionResult with confidence on a 0-1 scale

        Raises:
            OcrExtractionError: If the engine, decoding or recognition fails
        """
        language = language or self.config.languages
        report = on_progress or _ignore_progress

        self.start()
        self._check_language(language)
        report(0, "Preparing images")

        try:
            images = self._load_images(data, max_pages)
        except Exception as exc:
            logger.error(
                "Failed to decode document for OCR",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
            )
            raise OcrExtractionError(f"OCR extraction failed: could not decode image data: {exc}") from exc

        if not images:
            raise OcrExtractionError("OCR extraction failed: document has no pages to recognize")

        pages: dict[int, PageRecognition] = {}
        with Timer("ocr_recognition") as timer:
            futures = {
                self._executor.submit(self._recognize_page, image, language): index
                for index, image in enumerate(images)
            }
            try:
                for completed, future in enumerate(as_completed(futures), start=1):
                    pages[futures[future]] = future.result()
                    report(completed * 100 / len(images), f"Recognized page {completed} of {len(images)}")
            except Exception as exc:
                for pending in futures:
                    pending.cancel()
                logger.error(
                    "OCR failed",
                    extra_data={
                        "language": language,
                        "page_count": len(images),
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                    exc_info=True,
                )
                raise OcrExtractionError(f"OCR extraction failed: {exc}") from exc

        ordered = [pages[index] for index in range(len(images))]
        text = "\n\n".join(page.text for page in ordered if page.text)
        scored_words = sum(page.scored_words for page in ordered)
        confidence = (
            sum(page.confidence_total for page in ordered) / scored_words / 100 if scored_words else 0.0
        )

        logger.info(
            "OCR completed",
            extra_data={
                "language": language,
                "page_count": len(images),
                "characters_extracted": len(text),
                "confidence": round(confidence, 3),
                "ocr_time_ms": round(timer.get_elapsed_ms(), 2),
            },
        )
        return RecognitionResult(text=text, confidence=confidence, page_count=len(images))

    def _check_language(self, language: str) -> None:
        # Older tesseract builds cannot list languages; skip the check then
        if not self._languages:
            return
        missing = [code for code in language.split("+") if code not in self._languages]
        if missing:
            raise OcrExtractionError(
                f"OCR language not installed: {', '.join(missing)}"
            )

    def _load_images(self, data: bytes, max_pages: Optional[int]) -> list[Image.Image]:
        if bytes(data[:4]) == PDF_SIGNATURE:
            images = self._render_pdf(data, max_pages)
        else:
            with Image.open(io.BytesIO(data)) as source:
                frames = [frame.copy() for frame in ImageSequence.Iterator(source)]
            images = frames if max_pages is None else frames[:max_pages]
        return [self._preprocess(image) for image in images]

    def _render_pdf(self, data: bytes, max_pages: Optional[int]) -> list[Image.Image]:
        images = []
        with fitz.open(stream=data, filetype="pdf") as document:
            limit = document.page_count if max_pages is None else min(max_pages, document.page_count)
            for page_index in range(limit):
                pix = document[page_index].get_pixmap(dpi=self.config.dpi)
                images.append(Image.open(io.BytesIO(pix.tobytes("png"))))
        logger.debug(
            "Rendered PDF pages for OCR",
            extra_data={"page_count": len(images), "dpi": self.config.dpi},
        )
        return images

    def _preprocess(self, image: Image.Image) -> Image.Image:
        if not self.config.enable_image_preprocessing:
            return image if image.mode in ("RGB", "L") else image.convert("RGB")
        image = image.convert("L")
        if self.config.contrast_enhancement != 1.0:
            image = ImageEnhance.Contrast(image).enhance(self.config.contrast_enhancement)
        return image

    def _recognize_page(self, image: Image.Image, language: str) -> PageRecognition:
        data = pytesseract.image_to_data(
            image,
            lang=language,
            config=self.config.tesseract_config(),
            output_type=pytesseract.Output.DICT,
        )

        paragraphs: dict[tuple[int, int], dict[int, list[str]]] = {}
        confidence_total = 0.0
        scored_words = 0
        for index, word in enumerate(data["text"]):
            word = (word or "").strip()
            if not word:
                continue
            paragraph_key = (data["block_num"][index], data["par_num"][index])
            lines = paragraphs.setdefault(paragraph_key, {})
            lines.setdefault(data["line_num"][index], []).append(word)

            confidence = float(data["conf"][index])
            if confidence >= 0:
                confidence_total += confidence
                scored_words += 1

        text = "\n\n".join(
            "\n".join(" ".join(words) for words in lines.values())
            for lines in paragraphs.values()
        )
        return PageRecognition(text, confidence_total, scored_words)
