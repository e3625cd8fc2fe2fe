"""
Unit tests for image preprocessing.
"""
import io

import pytest
from PIL import Image

from billscan.input_handler import ImagePreprocessor, UploadValidator
from billscan.utils.exceptions import (
    CorruptedFileError,
    EmptyFileError,
    FileTooLargeError,
    UnsupportedFileTypeError,
)

from .fakes import make_png


@pytest.fixture()
def preprocessor():
    return ImagePreprocessor()


def open_png(data):
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestPreprocess:
    def test_output_is_grayscale_png(self, preprocessor):
        result = open_png(preprocessor.preprocess(make_png(color="red")))
        assert result.format == "PNG"
        assert result.mode == "L"

    def test_transparent_image_flattened_on_white(self, preprocessor):
        data = make_png(color=(0, 0, 0, 0), mode="RGBA")
        preprocessor.normalize = False
        preprocessor.sharpen = False
        result = open_png(preprocessor.preprocess(data))
        assert result.mode == "L"
        assert result.getpixel((0, 0)) == 255

    def test_large_image_scaled_down(self, preprocessor):
        preprocessor.max_width = 100
        preprocessor.max_height = 100
        result = open_png(preprocessor.preprocess(make_png(size=(400, 200))))
        assert result.size == (100, 50)

    def test_small_image_keeps_size(self, preprocessor):
        result = open_png(preprocessor.preprocess(make_png(size=(80, 40))))
        assert result.size == (80, 40)

    def test_original_bytes_when_no_step_applies(self, preprocessor):
        for name in ("auto_orient", "grayscale", "normalize", "sharpen"):
            setattr(preprocessor, name, False)

        def broken(image):
            raise RuntimeError("resize failed")

        preprocessor._resize_if_needed = broken
        data = make_png()
        assert preprocessor.preprocess(data) == data

    def test_failing_step_is_skipped(self, preprocessor):
        def broken(image):
            raise RuntimeError("sharpen failed")

        preprocessor._sharpen = broken
        result = open_png(preprocessor.preprocess(make_png()))
        assert result.mode == "L"

    def test_undecodable_bytes(self, preprocessor):
        with pytest.raises(CorruptedFileError):
            preprocessor.preprocess(b"not an image at all")


class TestPreprocessFile:
    def test_writes_intermediate_beside_upload(self, preprocessor, tmp_path):
        upload = tmp_path / "abc-bill.jpg"
        upload.write_bytes(make_png())

        output = preprocessor.preprocess_file(upload)

        assert output == tmp_path / "abc-bill_processed.png"
        assert output.exists()
        assert open_png(output.read_bytes()).format == "PNG"

    def test_missing_file(self, preprocessor, tmp_path):
        with pytest.raises(CorruptedFileError):
            preprocessor.preprocess_file(tmp_path / "gone.png")


class TestUploadValidator:
    @pytest.fixture()
    def validator(self):
        return UploadValidator(max_size_bytes=1024)

    def test_accepts_image(self, validator):
        upload = validator.validate("Bill.JPG", "image/jpeg", b"x" * 10)
        assert upload.extension == ".jpg"
        assert upload.size == 10

    @pytest.mark.parametrize("filename,data", [(None, b"x"), ("bill.png", b""), ("bill.png", None)])
    def test_empty(self, validator, filename, data):
        with pytest.raises(EmptyFileError) as exc:
            validator.validate(filename, "image/png", data)
        assert exc.value.message == "No image file provided"

    def test_too_large(self, validator):
        with pytest.raises(FileTooLargeError):
            validator.validate("bill.png", "image/png", b"x" * 1025)

    def test_limit_is_inclusive(self, validator):
        assert validator.validate("bill.png", "image/png", b"x" * 1024).size == 1024

    @pytest.mark.parametrize("filename,content_type", [
        ("bill.pdf", "application/pdf"),
        ("bill.png", "text/plain"),
        ("bill.gif", "image/gif"),
        ("bill.png", None),
    ])
    def test_unsupported(self, validator, filename, content_type):
        with pytest.raises(UnsupportedFileTypeError) as exc:
            validator.validate(filename, content_type, b"x")
        assert exc.value.message == "Only image files are allowed"
