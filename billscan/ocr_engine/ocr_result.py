"""
Backend-neutral OCR output: words grouped into lines, plus one overall
confidence fraction that the pipeline copies onto the billing record.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class OCRWord:
    """One word with its pixel box (x1, y1, x2, y2) and percent confidence."""
    text: str
    bbox: Tuple[int, int, int, int] = (0, 0, 0, 0)
    confidence: float = 0.0

    @property
    def x1(self) -> int:
        return self.bbox[0]


@dataclass
class OCRLine:
    """
    Words of one Tesseract line, left to right.

    Example:
        >>> line = OCRLine(words=[OCRWord("Total:"), OCRWord("$12.00")])
        >>> line.text
        'Total: $12.00'
    """
    words: List[OCRWord] = field(default_factory=list)

    @property
    def text(self) -> str:
        return ' '.join(word.text for word in self.words)


@dataclass
class OCRResult:
    """
    Complete OCR output for one image.

    ``confidence`` is always a fraction in [0, 1]; backends reporting
    percentages convert before building the result. An image with no
    recognized words has empty text and zero confidence, which is a
    valid outcome and not an engine failure.

    Attributes:
        lines: Recognized lines in reading order
        confidence: Overall confidence fraction
        engine: Name of the backend that produced the result
        processing_time: Seconds spent in the engine
        metadata: Backend-specific details
    """
    lines: List[OCRLine] = field(default_factory=list)
    confidence: float = 0.0
    engine: str = "unknown"
    processing_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    raw_text: Optional[str] = None

    def __post_init__(self):
        self.confidence = normalize_confidence(self.confidence)

    @property
    def text(self) -> str:
        """Full text, one line per row."""
        if self.raw_text is not None:
            return self.raw_text
        return '\n'.join(line.text for line in self.lines)

    @property
    def words(self) -> List[OCRWord]:
        return [word for line in self.lines for word in line.words]

    @property
    def word_count(self) -> int:
        return len(self.words)

    def is_empty(self) -> bool:
        return not self.text.strip()


def normalize_confidence(value: Optional[float], scale: float = 1.0) -> float:
    """
    Convert an engine confidence to a fraction clamped to [0, 1].

    Args:
        value: Raw confidence as reported.
        scale: Full-scale value of the engine (100 for percentages).

    Example:
        >>> normalize_confidence(87.5, scale=100)
        0.875
        >>> normalize_confidence(-1, scale=100)
        0.0
    """
    if value is None:
        return 0.0
    fraction = float(value) / scale
    if fraction != fraction:  # NaN
        return 0.0
    return max(0.0, min(1.0, fraction))
