"""
Extraction Module for BillScan.

Heuristic recovery of invoice fields from OCR text, behind a pluggable
strategy interface.
"""

from .extractor import FieldExtractor, RegexFieldExtractor, get_extractor, EXTRACTORS
from .normalizers import AmountNormalizer, CurrencyDetector

__all__ = [
    'FieldExtractor',
    'RegexFieldExtractor',
    'get_extractor',
    'EXTRACTORS',
    'AmountNormalizer',
    'CurrencyDetector',
]
