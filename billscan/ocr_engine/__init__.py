"""
OCR Engine Module for BillScan.

Wraps a text-recognition engine and normalizes its output to text plus a
confidence fraction in [0, 1].

Supported backends:
    - Tesseract (pytesseract)
"""

from .engine import OCREngine, OCRBackend
from .tesseract_backend import TesseractBackend
from .ocr_result import OCRResult, OCRWord, OCRLine, normalize_confidence

__all__ = [
    'OCREngine',
    'OCRBackend',
    'TesseractBackend',
    'OCRResult',
    'OCRWord',
    'OCRLine',
    'normalize_confidence',
]
