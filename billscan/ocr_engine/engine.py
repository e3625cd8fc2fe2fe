"""
Main OCR Engine Module.

``OCREngine`` is the adapter the pipeline talks to. It loads images,
delegates to a backend, and guarantees the contract callers rely on:
text plus a confidence fraction in [0, 1], and a raised ``OCRError`` (never
an empty result) when the engine itself fails.

Usage:
    from billscan.ocr_engine import OCREngine

    engine = OCREngine()
    result = engine.recognize("bill_processed.png")
    print(result.text, result.confidence)
"""

import io
from pathlib import Path
from typing import Optional, Protocol, Union

from PIL import Image

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.exceptions import OCRError, OCRProcessingError
from .ocr_result import OCRResult, normalize_confidence
from .tesseract_backend import TesseractBackend

logger = get_logger(__name__)


class OCRBackend(Protocol):
    """Interface every OCR backend implements."""

    name: str

    def extract(self, image: Image.Image, timeout: Optional[float] = None) -> OCRResult:
        ...


class OCREngine:
    """
    Unified interface for text recognition.

    Supported Backends:
        - tesseract: Tesseract OCR via pytesseract (default)

    A backend object can be injected directly, which is how alternative
    engines (and test doubles) are plugged in.

    Attributes:
        backend_name: Name of the active OCR backend
        backend: The active OCR backend instance
        timeout: Default engine timeout in seconds (None = unbounded)

    Example:
        >>> engine = OCREngine()
        >>> result = engine.recognize(image)
        >>> result.confidence
        0.91
    """

    SUPPORTED_BACKENDS = ['tesseract']

    def __init__(
        self,
        backend: Optional[Union[str, OCRBackend]] = None,
        timeout: Optional[float] = None
    ) -> None:
        """
        Initialize the OCR engine.

        Args:
            backend: Backend name or backend instance. If None, uses the
                ``ocr.engine`` setting.
            timeout: Default timeout per recognition. If None, uses
                ``ocr.timeout_seconds`` (0 disables it).
        """
        if backend is None or isinstance(backend, str):
            self.backend_name = backend or get_config("ocr.engine", "tesseract")
            if self.backend_name == "pytesseract":
                self.backend_name = "tesseract"
            self.backend = self._initialize_backend()
        else:
            self.backend = backend
            self.backend_name = getattr(backend, 'name', type(backend).__name__)

        if timeout is None:
            timeout = get_config("ocr.timeout_seconds", 0)
        self.timeout = timeout or None

        logger.info(f"OCR Engine initialized with backend: {self.backend_name}")

    def _initialize_backend(self) -> OCRBackend:
        if self.backend_name != "tesseract":
            logger.warning(
                f"Unknown backend '{self.backend_name}', falling back to tesseract"
            )
            self.backend_name = "tesseract"
        return TesseractBackend()

    def recognize(
        self,
        image: Union[Image.Image, bytes, str, Path],
        timeout: Optional[float] = None
    ) -> OCRResult:
        """
        Recognize text in an image.

        Args:
            image: PIL Image, encoded image bytes, or path to an image file.
            timeout: Overrides the default timeout for this call.

        Returns:
            OCRResult whose confidence is a fraction in [0, 1].

        Raises:
            OCRError: If the engine failed or timed out.
        """
        pil_image = self._load_image(image)

        effective_timeout = timeout if timeout is not None else self.timeout

        logger.debug(f"Recognizing text using {self.backend_name} backend")
        try:
            result = self.backend.extract(pil_image, timeout=effective_timeout)
        except OCRError:
            raise
        except Exception as e:
            raise OCRProcessingError(self.backend_name, str(e))

        if not isinstance(result, OCRResult):
            raise OCRProcessingError(self.backend_name, "Backend returned no result")

        result.confidence = normalize_confidence(result.confidence)
        if result.is_empty():
            result.confidence = 0.0

        return result

    def _load_image(self, image: Union[Image.Image, bytes, str, Path]) -> Image.Image:
        if isinstance(image, Image.Image):
            return image

        try:
            if isinstance(image, (bytes, bytearray)):
                loaded = Image.open(io.BytesIO(image))
            else:
                loaded = Image.open(str(image))
            loaded.load()
            return loaded
        except Exception as e:
            source = "bytes" if isinstance(image, (bytes, bytearray)) else str(image)
            raise OCRProcessingError(source, f"Failed to load image: {e}")
