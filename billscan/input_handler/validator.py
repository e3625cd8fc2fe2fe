"""
Upload Validator Module.

Checks an incoming upload before anything is written to disk or to the
record store: the file must be present and non-empty, within the size
limit, carry an accepted image extension and declare an image MIME type.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.helpers import get_file_extension, format_file_size
from billscan.utils.exceptions import (
    EmptyFileError,
    FileTooLargeError,
    UnsupportedFileTypeError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidatedUpload:
    """An upload that passed validation."""
    filename: str
    extension: str
    content_type: Optional[str]
    size: int


class UploadValidator:
    """
    Validates raw uploads against the configured limits.

    Attributes:
        max_size_bytes: Largest accepted payload.
        allowed_extensions: Lowercase extensions including the dot.
        allowed_mime_prefix: Required prefix of the declared content type.

    Example:
        >>> validator = UploadValidator(max_size_bytes=1024)
        >>> validator.validate("bill.png", "image/png", b"...")
        ValidatedUpload(filename='bill.png', ...)
    """

    DEFAULT_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.bmp', '.tiff'}

    def __init__(
        self,
        max_size_bytes: Optional[int] = None,
        allowed_extensions: Optional[Iterable[str]] = None,
        allowed_mime_prefix: Optional[str] = None
    ) -> None:
        self.max_size_bytes = max_size_bytes if max_size_bytes is not None else \
            get_config("upload.max_size_bytes", 10 * 1024 * 1024)
        extensions = allowed_extensions if allowed_extensions is not None else \
            get_config("upload.allowed_extensions", sorted(self.DEFAULT_EXTENSIONS))
        self.allowed_extensions = {
            ext.lower() if ext.startswith('.') else f".{ext.lower()}"
            for ext in extensions
        }
        self.allowed_mime_prefix = allowed_mime_prefix if allowed_mime_prefix is not None else \
            get_config("upload.allowed_mime_prefix", "image/")

    def validate(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        data: Optional[bytes]
    ) -> ValidatedUpload:
        """
        Validate one upload.

        Args:
            filename: Client-supplied filename.
            content_type: Declared MIME type.
            data: Raw file bytes.

        Returns:
            ValidatedUpload describing the accepted file.

        Raises:
            EmptyFileError: No file or zero bytes.
            FileTooLargeError: Payload above ``max_size_bytes``.
            UnsupportedFileTypeError: Extension or MIME type not accepted.
        """
        if not filename or not data:
            raise EmptyFileError(filename)

        size = len(data)
        if size > self.max_size_bytes:
            logger.warning(
                "Rejected upload %s: %s exceeds limit of %s",
                filename, format_file_size(size), format_file_size(self.max_size_bytes)
            )
            raise FileTooLargeError(size, self.max_size_bytes)

        extension = get_file_extension(filename)
        if extension not in self.allowed_extensions:
            logger.warning("Rejected upload %s: extension %r not allowed", filename, extension)
            raise UnsupportedFileTypeError(extension, list(self.allowed_extensions))

        mime = (content_type or "").lower()
        if not mime.startswith(self.allowed_mime_prefix):
            logger.warning("Rejected upload %s: content type %r not allowed", filename, content_type)
            raise UnsupportedFileTypeError(content_type or "unknown", list(self.allowed_extensions))

        return ValidatedUpload(
            filename=filename,
            extension=extension,
            content_type=content_type,
            size=size
        )
