"""
Value Normalizers Module.

Turns matched substrings into typed values:
    - Amounts ("$1,234.56", "1.234,56") to floats
    - Currency symbols and codes to ISO codes
"""

import re
from typing import Optional

from billscan.utils.logger import get_logger

logger = get_logger(__name__)


class AmountNormalizer:
    """
    Normalizes currency/amount strings to floats.

    Handles currency symbols, thousand separators and comma decimals.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.to_float("$1,234.56")
        1234.56
        >>> normalizer.to_float("€ 1.234,56")
        1234.56
    """

    CURRENCY_SYMBOLS = ['$', '€', '£', '¥', '₹']
    CURRENCY_CODES = ['USD', 'EUR', 'GBP', 'JPY', 'INR', 'CAD', 'AUD', 'CNY', 'CHF']

    def to_float(self, amount_str: Optional[str]) -> Optional[float]:
        """
        Convert an amount string to a non-negative float.

        Returns:
            Float value, or None if the string holds no number.
        """
        if not amount_str:
            return None

        cleaned = self._clean_amount_string(amount_str)
        if not cleaned:
            return None

        cleaned = self._handle_european_format(cleaned)
        cleaned = cleaned.replace(',', '')

        try:
            return abs(float(cleaned))
        except ValueError:
            logger.debug(f"Could not parse amount: {amount_str!r}")
            return None

    def _clean_amount_string(self, amount_str: str) -> str:
        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, '')

        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', '', amount_str, flags=re.IGNORECASE)

        # Keep only digits, comma and dot
        return re.sub(r'[^\d,.]', '', amount_str)

    def _handle_european_format(self, amount_str: str) -> str:
        """
        Convert "1.234,56" style amounts to "1234.56".

        A single comma after the last dot followed by at most two digits is
        read as the decimal separator.
        """
        if amount_str.count(',') == 1:
            comma_pos = amount_str.rfind(',')
            dot_pos = amount_str.rfind('.')
            after_comma = amount_str[comma_pos + 1:]

            if comma_pos > dot_pos and len(after_comma) <= 2 and after_comma.isdigit():
                amount_str = amount_str.replace('.', '').replace(',', '.')

        return amount_str


class CurrencyDetector:
    """
    Finds the first explicit currency marker in text.

    ISO codes are matched as whole words; symbols anywhere. Whichever
    appears first in the text wins.
    """

    SYMBOL_CODES = {
        '$': 'USD',
        '€': 'EUR',
        '£': 'GBP',
        '¥': 'JPY',
        '₹': 'INR',
    }

    def __init__(self, default: str = "USD") -> None:
        self.default = default
        codes = '|'.join(AmountNormalizer.CURRENCY_CODES)
        symbols = ''.join(re.escape(s) for s in self.SYMBOL_CODES)
        self._pattern = re.compile(rf'\b({codes})\b|([{symbols}])')

    def detect(self, text: str) -> str:
        match = self._pattern.search(text)
        if match is None:
            return self.default
        if match.group(1):
            return match.group(1).upper()
        return self.SYMBOL_CODES[match.group(2)]
