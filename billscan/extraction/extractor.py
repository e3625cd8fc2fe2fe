"""
Field Extractor Module.

Recovers structured invoice fields from raw OCR text.

Extraction is a strategy: ``FieldExtractor`` defines the contract and
``RegexFieldExtractor`` is the default heuristic implementation. Every
strategy must be a pure function of its input text and must never raise
because a field is missing; absence is reported as ``None`` (or an empty
item tuple).

Usage:
    from billscan.extraction import get_extractor

    extractor = get_extractor()
    fields = extractor.extract(ocr_result.text)
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.exceptions import ExtractionError
from billscan.records.models import BillingItem, ExtractedFields
from .normalizers import AmountNormalizer, CurrencyDetector

logger = get_logger(__name__)


class FieldExtractor(ABC):
    """
    Contract for field extraction strategies.

    Subclasses implement ``_extract_fields``; ``extract`` validates the
    input type so every strategy treats non-text the same way.
    """

    name = "base"

    def extract(self, text: str) -> ExtractedFields:
        """
        Extract billing fields from OCR text.

        Args:
            text: Raw OCR output.

        Returns:
            ExtractedFields; unmatched fields keep their defaults.

        Raises:
            ExtractionError: If ``text`` is not a string.
        """
        if not isinstance(text, str):
            raise ExtractionError(f"expected text, got {type(text).__name__}")
        return self._extract_fields(text.replace('\r\n', '\n').replace('\r', '\n'))

    @abstractmethod
    def _extract_fields(self, text: str) -> ExtractedFields:
        ...


class RegexFieldExtractor(FieldExtractor):
    """
    Pattern-based extraction.

    Rules are independent of each other:
        - invoice number: ``invoice``/``inv``/``bill`` label, then a token
          with at least one digit
        - date: first D/M/YYYY, D-M-YYYY or YYYY-MM-DD, kept verbatim
        - total: ``total``/``amount``/``sum`` label, then a number
        - vendor: first line longer than three characters that is neither
          all digits nor all punctuation
        - currency: first explicit code or symbol, else the default
        - line items: ``<description> <qty> [x] [$]<unit> [$]<total>``
          within one line, every non-overlapping match

    Example:
        >>> fields = RegexFieldExtractor().extract("Invoice #INV-7\\nTotal: $9.50")
        >>> fields.invoice_number, fields.total_amount
        ('INV-7', 9.5)
    """

    name = "regex"

    INVOICE_NUMBER_PATTERN = re.compile(
        r'\b(?:invoice|inv|bill)\b[\s#:.]*'
        r'(?:(?:number|num|no)\b\.?[\s#:.]*)?'
        # token must contain a digit, so "Invoice details" yields nothing
        r'((?=[a-z\-]*\d)[a-z0-9][a-z0-9\-]*)',
        re.IGNORECASE
    )

    DATE_PATTERN = re.compile(
        r'(?<![\d/\-])'
        r'(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4}|\d{1,2}-\d{1,2}-\d{4})'
        r'(?![\d/\-])'
    )

    TOTAL_PATTERN = re.compile(
        r'\b(?:total|amount|sum)\b(?:[ \t]+due)?[ \t]*[:#]?[ \t]*\n?[ \t]*'
        r'(?:[$€£¥₹]|USD|EUR|GBP|JPY|INR|CAD|AUD|CNY|CHF)?[ \t]*'
        r'(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)',
        re.IGNORECASE
    )

    LINE_ITEM_PATTERN = re.compile(
        r'(?P<description>[^\n]*?\S)[ \t]+'
        r'(?<![\d.])(?P<quantity>\d+)(?:[ \t]*x[ \t]*|[ \t]+)'
        r'\$?(?P<unit_price>\d+(?:\.\d+)?)[ \t]+'
        r'\$?(?P<total_price>\d+(?:\.\d+)?)'
        r'(?!\.?\d)',
        re.IGNORECASE
    )

    NUMERIC_LINE = re.compile(r'^\d+$')
    PUNCTUATION_LINE = re.compile(r'^[\W_]+$')

    def __init__(self, default_currency: Optional[str] = None) -> None:
        self.default_currency = default_currency or get_config("extraction.default_currency", "USD")
        self.amounts = AmountNormalizer()
        self.currencies = CurrencyDetector(self.default_currency)

    def _extract_fields(self, text: str) -> ExtractedFields:
        fields = ExtractedFields(
            invoice_number=self.extract_invoice_number(text),
            vendor=self.extract_vendor(text),
            date=self.extract_date(text),
            total_amount=self.extract_total(text),
            currency=self.currencies.detect(text),
            items=tuple(self.extract_items(text)),
        )

        logger.debug(
            f"Extracted {4 - len(fields.missing_fields)}/4 header fields, "
            f"{len(fields.items)} line items"
        )
        return fields

    def extract_invoice_number(self, text: str) -> Optional[str]:
        match = self.INVOICE_NUMBER_PATTERN.search(text)
        return match.group(1) if match else None

    def extract_date(self, text: str) -> Optional[str]:
        match = self.DATE_PATTERN.search(text)
        return match.group(1) if match else None

    def extract_total(self, text: str) -> Optional[float]:
        match = self.TOTAL_PATTERN.search(text)
        if not match:
            return None
        return self.amounts.to_float(match.group(1))

    def extract_vendor(self, text: str) -> Optional[str]:
        for line in text.split('\n'):
            line = line.strip()
            if len(line) <= 3:
                continue
            if self.NUMERIC_LINE.match(line) or self.PUNCTUATION_LINE.match(line):
                continue
            return line
        return None

    def extract_items(self, text: str) -> List[BillingItem]:
        items = []
        for match in self.LINE_ITEM_PATTERN.finditer(text):
            items.append(BillingItem(
                description=match.group('description').strip(),
                quantity=int(match.group('quantity')),
                unit_price=float(match.group('unit_price')),
                total_price=float(match.group('total_price')),
            ))
        return items


EXTRACTORS: Dict[str, Type[FieldExtractor]] = {
    RegexFieldExtractor.name: RegexFieldExtractor,
}


def get_extractor(name: Optional[str] = None) -> FieldExtractor:
    """
    Build the configured extraction strategy.

    Args:
        name: Strategy name; defaults to ``extraction.strategy``.

    Raises:
        ValueError: If no strategy is registered under ``name``.
    """
    name = name or get_config("extraction.strategy", "regex")
    try:
        return EXTRACTORS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown extraction strategy '{name}' (available: {', '.join(sorted(EXTRACTORS))})"
        )
