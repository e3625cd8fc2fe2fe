"""
Image Processor Module.

Normalizes a photographed bill before OCR:
    - Orientation correction from EXIF
    - Grayscale conversion
    - Contrast normalization
    - Sharpening
    - Down-scaling of oversized photos

Supports: JPG, JPEG, PNG, WEBP, BMP, TIFF
"""

import io
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from PIL import Image, ImageFilter, ImageOps

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.exceptions import CorruptedFileError

logger = get_logger(__name__)


class ImagePreprocessor:
    """
    Preprocessor for uploaded bill images.

    Every enhancement step is optional and independent: a step that raises
    is logged and skipped, leaving the image as the previous step produced
    it. Only an image that cannot be decoded at all is an error.

    Attributes:
        auto_orient: Apply the EXIF orientation tag.
        grayscale: Convert to single-channel luminance.
        normalize: Stretch the histogram (autocontrast).
        normalize_cutoff: Percent of the histogram clipped at each end.
        sharpen: Apply a sharpening filter.
        max_width: Maximum image width in pixels.
        max_height: Maximum image height in pixels.

    Example:
        >>> preprocessor = ImagePreprocessor()
        >>> png_bytes = preprocessor.preprocess(open("bill.jpg", "rb").read())
    """

    INTERMEDIATE_SUFFIX = "_processed.png"

    def __init__(self) -> None:
        """Initialize the preprocessor with configuration."""
        self.auto_orient = get_config("input.image.auto_orient", True)
        self.grayscale = get_config("input.image.grayscale", True)
        self.normalize = get_config("input.image.normalize", True)
        self.normalize_cutoff = get_config("input.image.normalize_cutoff", 1)
        self.sharpen = get_config("input.image.sharpen", True)
        self.max_width = get_config("input.image.max_width", 2480)
        self.max_height = get_config("input.image.max_height", 3508)

        logger.debug(
            f"ImagePreprocessor initialized (grayscale={self.grayscale}, "
            f"normalize={self.normalize}, sharpen={self.sharpen}, "
            f"max_size={self.max_width}x{self.max_height})"
        )

    def preprocess(self, image_bytes: bytes) -> bytes:
        """
        Normalize raw image bytes for OCR.

        Args:
            image_bytes: Encoded image as uploaded.

        Returns:
            PNG-encoded processed image, or the original bytes when no
            step could be applied.

        Raises:
            CorruptedFileError: If the bytes are not a decodable image.
        """
        image = self._open(io.BytesIO(image_bytes), "upload")
        processed, applied = self._process_image(image)

        if not applied:
            logger.warning("No preprocessing step succeeded, passing original image through")
            return image_bytes

        try:
            return self._encode_png(processed)
        except Exception as e:
            logger.warning(f"Could not encode processed image, using original: {e}")
            return image_bytes

    def preprocess_file(
        self,
        filepath: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None
    ) -> Path:
        """
        Preprocess an image on disk and write the intermediate PNG.

        Args:
            filepath: Stored upload.
            output_path: Where to write the result. Defaults to
                ``<stem>_processed.png`` beside the input.

        Returns:
            Path of the intermediate file.

        Raises:
            CorruptedFileError: If the file is not a decodable image.
        """
        filepath = Path(filepath)
        if output_path is None:
            output_path = self.intermediate_path(filepath)
        output_path = Path(output_path)

        try:
            data = filepath.read_bytes()
        except OSError as e:
            raise CorruptedFileError(str(filepath), str(e))

        output_path.write_bytes(self.preprocess(data))
        logger.debug(f"Wrote intermediate image: {output_path.name}")
        return output_path

    def intermediate_path(self, filepath: Union[str, Path]) -> Path:
        """Location of the intermediate file for a stored upload."""
        filepath = Path(filepath)
        return filepath.with_name(filepath.stem + self.INTERMEDIATE_SUFFIX)

    def _open(self, source, label: str) -> Image.Image:
        try:
            image = Image.open(source)
            image.load()
            return image
        except Exception as e:
            logger.error(f"Failed to decode image {label}: {e}")
            raise CorruptedFileError(label, str(e))

    def _process_image(self, image: Image.Image) -> Tuple[Image.Image, List[str]]:
        """
        Apply the enabled steps in order.

        Processing steps:
            1. Fix orientation from EXIF
            2. Convert to grayscale
            3. Normalize contrast
            4. Sharpen
            5. Resize if too large

        Returns:
            Tuple of (processed image, names of the steps that succeeded).
        """
        steps: List[Tuple[str, bool, Callable[[Image.Image], Image.Image]]] = [
            ("orient", self.auto_orient, self._fix_orientation),
            ("grayscale", self.grayscale, self._to_grayscale),
            ("normalize", self.normalize, self._normalize_contrast),
            ("sharpen", self.sharpen, self._sharpen),
            ("resize", True, self._resize_if_needed),
        ]

        applied = []
        for name, enabled, step in steps:
            if not enabled:
                continue
            try:
                image = step(image)
                applied.append(name)
            except Exception as e:
                logger.debug(f"Preprocessing step '{name}' skipped: {e}")

        return image, applied

    def _fix_orientation(self, image: Image.Image) -> Image.Image:
        """
        Rotate according to the EXIF orientation tag.

        Phone cameras store rotation in metadata instead of rotating pixels.
        """
        return ImageOps.exif_transpose(image)

    def _to_grayscale(self, image: Image.Image) -> Image.Image:
        if image.mode == 'L':
            return image

        if image.mode in ('RGBA', 'LA', 'P'):
            # Flatten transparency onto white so it does not read as black
            rgba = image.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            image = background

        return image.convert('L')

    def _normalize_contrast(self, image: Image.Image) -> Image.Image:
        if image.mode not in ('L', 'RGB'):
            image = image.convert('RGB')
        return ImageOps.autocontrast(image, cutoff=self.normalize_cutoff)

    def _sharpen(self, image: Image.Image) -> Image.Image:
        return image.filter(ImageFilter.SHARPEN)

    def _resize_if_needed(self, image: Image.Image) -> Image.Image:
        """
        Shrink the image to fit within the maximum dimensions.

        Maintains aspect ratio.
        """
        width, height = image.size

        if width <= self.max_width and height <= self.max_height:
            return image

        ratio = min(self.max_width / width, self.max_height / height)
        new_size = (max(1, int(width * ratio)), max(1, int(height * ratio)))

        image = image.resize(new_size, Image.LANCZOS)
        logger.debug(f"Resized image from {width}x{height} to {new_size[0]}x{new_size[1]}")
        return image

    @staticmethod
    def _encode_png(image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format='PNG')
        return buffer.getvalue()
