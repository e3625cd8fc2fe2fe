"""
Tests for the OCR adapter and the Tesseract backend (pytesseract patched).
"""
import pytest
import pytesseract
from PIL import Image

from billscan.ocr_engine import OCREngine, OCRResult, TesseractBackend, normalize_confidence
from billscan.utils.exceptions import (
    OCREngineNotAvailableError,
    OCRProcessingError,
    OCRTimeoutError,
)

from .fakes import FakeOCRBackend, make_png


def tesseract_table(words):
    """Build an image_to_data DICT from (text, conf, block, par, line, left) tuples."""
    table = {key: [] for key in (
        'text', 'conf', 'block_num', 'par_num', 'line_num', 'left', 'top', 'width', 'height'
    )}
    for text, conf, block, par, line, left in words:
        table['text'].append(text)
        table['conf'].append(conf)
        table['block_num'].append(block)
        table['par_num'].append(par)
        table['line_num'].append(line)
        table['left'].append(left)
        table['top'].append(10 * line)
        table['width'].append(30)
        table['height'].append(10)
    return table


@pytest.fixture()
def tesseract(monkeypatch):
    """Patch pytesseract so TesseractBackend runs without the binary."""
    state = {'data': tesseract_table([]), 'error': None, 'kwargs': None}

    def image_to_data(image, **kwargs):
        state['kwargs'] = kwargs
        if state['error'] is not None:
            raise state['error']
        return state['data']

    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(pytesseract, "image_to_data", image_to_data)
    return state


@pytest.fixture()
def image():
    return Image.new("L", (50, 20), 255)


class TestTesseractBackend:
    def test_lines_grouped_and_ordered(self, tesseract, image):
        tesseract['data'] = tesseract_table([
            ("$12.00", "90", 1, 1, 2, 80),
            ("Total:", "80", 1, 1, 2, 10),
            ("ACME", "95", 1, 1, 1, 10),
            ("", "-1", 1, 1, 1, 0),
        ])

        result = TesseractBackend().extract(image)

        assert result.text == "ACME\nTotal: $12.00"
        assert result.confidence == pytest.approx((90 + 80 + 95) / 300)
        assert result.engine == "tesseract"

    def test_negative_confidences_ignored(self, tesseract, image):
        tesseract['data'] = tesseract_table([("word", "-1", 1, 1, 1, 0)])
        result = TesseractBackend().extract(image)
        assert result.text == "word"
        assert result.confidence == 0.0

    def test_timeout_forwarded(self, tesseract, image):
        TesseractBackend().extract(image, timeout=3)
        assert tesseract['kwargs']['timeout'] == 3

    def test_timeout_error(self, tesseract, image):
        tesseract['error'] = RuntimeError("Tesseract process timeout")
        with pytest.raises(OCRTimeoutError):
            TesseractBackend().extract(image, timeout=2)

    def test_processing_error(self, tesseract, image):
        tesseract['error'] = pytesseract.TesseractError(1, "bad image")
        with pytest.raises(OCRProcessingError):
            TesseractBackend().extract(image)

    def test_missing_binary(self, monkeypatch):
        def missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)
        with pytest.raises(OCREngineNotAvailableError):
            TesseractBackend()


class TestOCREngine:
    def test_accepts_bytes_and_paths(self, tmp_path):
        backend = FakeOCRBackend(text="hello")
        engine = OCREngine(backend=backend, timeout=0)
        path = tmp_path / "img.png"
        path.write_bytes(make_png())

        assert engine.recognize(make_png()).text == "hello"
        assert engine.recognize(path).text == "hello"
        assert engine.recognize(str(path)).text == "hello"
        assert backend.calls == 3

    def test_empty_text_has_zero_confidence(self):
        engine = OCREngine(backend=FakeOCRBackend(text="  ", confidence=0.8), timeout=0)
        result = engine.recognize(make_png())
        assert result.is_empty()
        assert result.confidence == 0.0

    def test_backend_exception_wrapped(self):
        engine = OCREngine(backend=FakeOCRBackend(error=ValueError("nope")), timeout=0)
        with pytest.raises(OCRProcessingError):
            engine.recognize(make_png())

    def test_ocr_errors_pass_through(self):
        engine = OCREngine(backend=FakeOCRBackend(error=OCRTimeoutError(5)), timeout=0)
        with pytest.raises(OCRTimeoutError):
            engine.recognize(make_png())

    def test_unreadable_image(self):
        engine = OCREngine(backend=FakeOCRBackend(), timeout=0)
        with pytest.raises(OCRProcessingError):
            engine.recognize(b"garbage")

    def test_default_timeout_used(self):
        backend = FakeOCRBackend()
        OCREngine(backend=backend, timeout=7).recognize(make_png())
        assert backend.timeouts == [7]

    def test_default_backend_is_tesseract(self, tesseract):
        engine = OCREngine()
        assert engine.backend_name == "tesseract"
        assert isinstance(engine.backend, TesseractBackend)


class TestConfidence:
    @pytest.mark.parametrize("value,scale,expected", [
        (87.5, 100, 0.875),
        (-1, 100, 0.0),
        (150, 100, 1.0),
        (0.42, 1, 0.42),
        (None, 1, 0.0),
        (float("nan"), 1, 0.0),
    ])
    def test_normalize(self, value, scale, expected):
        assert normalize_confidence(value, scale) == pytest.approx(expected)

    def test_result_clamps_confidence(self):
        assert OCRResult(confidence=3.0).confidence == 1.0
