"""
pytesseract adapter. Needs the ``tesseract`` binary on PATH; its absence is
reported when the backend is constructed, not at import.
"""

import time
from typing import Dict, List, Optional, Tuple

import pytesseract
from PIL import Image

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.exceptions import (
    OCREngineNotAvailableError,
    OCRProcessingError,
    OCRTimeoutError,
)
from .ocr_result import OCRResult, OCRWord, OCRLine, normalize_confidence

logger = get_logger(__name__)

LineKey = Tuple[int, int, int]


class TesseractBackend:
    """
    Reads ``ocr.tesseract.{lang,psm,oem,config}`` once and turns
    ``image_to_data`` word tables into bill text with a [0, 1] confidence.
    """

    name = "tesseract"

    def __init__(self) -> None:
        self.language = get_config("ocr.tesseract.lang", "eng")
        self.psm = get_config("ocr.tesseract.psm", 3)
        self.oem = get_config("ocr.tesseract.oem", 3)
        self.extra_config = get_config("ocr.tesseract.config", "")

        self.version = self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_dependencies(self) -> str:
        """Return the tesseract version or raise OCREngineNotAvailableError."""
        try:
            version = str(pytesseract.get_tesseract_version())
        except Exception as e:
            raise OCREngineNotAvailableError(
                f"Tesseract OCR (not installed or not in PATH): {e}"
            )
        logger.info(f"Tesseract version: {version}")
        return version

    def _build_config(self) -> str:
        flags = f"--psm {self.psm} --oem {self.oem}"
        return f"{flags} {self.extra_config}".strip()

    def extract(self, image: Image.Image, timeout: Optional[float] = None) -> OCRResult:
        """
        Recognize text in an image.

        Args:
            image: PIL Image to process.
            timeout: Seconds before Tesseract is killed. None or 0 waits
                indefinitely.

        Returns:
            OCRResult with lines in reading order and confidence in [0, 1].

        Raises:
            OCRTimeoutError: If Tesseract exceeded ``timeout``.
            OCRProcessingError: If Tesseract failed.
        """
        start_time = time.time()

        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.language,
                config=self._build_config(),
                output_type=pytesseract.Output.DICT,
                timeout=timeout or 0
            )
        except RuntimeError as e:
            # pytesseract signals a killed process with a bare RuntimeError
            if 'timeout' in str(e).lower():
                logger.error(f"Tesseract timed out after {timeout}s")
                raise OCRTimeoutError(timeout or 0)
            raise OCRProcessingError("image", str(e))
        except pytesseract.TesseractNotFoundError as e:
            raise OCREngineNotAvailableError(f"tesseract: {e}")
        except Exception as e:
            logger.error(f"OCR processing failed: {e}")
            raise OCRProcessingError("image", str(e))

        lines, confidences = self._parse_tesseract_output(data)

        confidence = 0.0
        if confidences:
            confidence = normalize_confidence(sum(confidences) / len(confidences), scale=100)

        processing_time = time.time() - start_time
        result = OCRResult(
            lines=lines,
            confidence=confidence,
            engine=self.name,
            processing_time=processing_time,
            metadata={
                'psm': self.psm,
                'oem': self.oem,
                'lang': self.language,
                'tesseract_version': self.version,
            }
        )

        logger.info(
            f"OCR completed: {result.word_count} words, {len(lines)} lines, "
            f"confidence {result.confidence:.2f} ({processing_time:.2f}s)"
        )
        return result

    def _parse_tesseract_output(
        self,
        data: Dict[str, List]
    ) -> Tuple[List[OCRLine], List[float]]:
        """
        Group Tesseract's word table into lines.

        Words are keyed by (block, paragraph, line) so lines from different
        blocks never merge, then sorted left to right.

        Returns:
            Tuple of (lines in reading order, word confidences in percent).
        """
        grouped: Dict[LineKey, List[OCRWord]] = {}
        confidences: List[float] = []

        for i, text in enumerate(data.get('text', [])):
            if not text or not text.strip():
                continue

            try:
                conf = float(data['conf'][i])
            except (KeyError, IndexError, TypeError, ValueError):
                conf = -1.0

            # Tesseract reports -1 for non-word elements
            if conf >= 0:
                confidences.append(conf)

            x = data['left'][i]
            y = data['top'][i]
            word = OCRWord(
                text=text.strip(),
                bbox=(x, y, x + data['width'][i], y + data['height'][i]),
                confidence=max(conf, 0.0)
            )

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            grouped.setdefault(key, []).append(word)

        lines = []
        for key in sorted(grouped):
            words = sorted(grouped[key], key=lambda w: w.x1)
            lines.append(OCRLine(words=words))

        return lines, confidences
