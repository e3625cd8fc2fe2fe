"""
Custom Exceptions Module.

Every failure BillScan can report is a subclass of ``BillScanError``. The
API maps the subclasses onto HTTP status codes; the orchestrator turns any
of them raised during a background run into ``status = error``.

Exception Hierarchy:
    BillScanError (base)
    ├── InputError
    │   ├── ValidationError
    │   │   ├── UnsupportedFileTypeError
    │   │   ├── FileTooLargeError
    │   │   └── EmptyFileError
    │   └── CorruptedFileError
    ├── OCRError
    │   ├── OCREngineNotAvailableError
    │   ├── OCRProcessingError
    │   └── OCRTimeoutError
    ├── ExtractionError
    ├── PipelineError
    │   └── PipelineTimeoutError
    ├── RecordError
    │   ├── RecordNotFoundError
    │   ├── RecordUpdateError
    │   ├── RecordStateError
    │   └── InvalidStateTransitionError
    └── OutputError
        ├── NothingToExportError
        └── ExcelExportError
"""


class BillScanError(Exception):
    """
    Base exception for all BillScan errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(BillScanError):
    """Base exception for upload and image input errors."""
    pass


class ValidationError(InputError):
    """An upload was rejected before a record was created."""
    pass


class UnsupportedFileTypeError(ValidationError):
    """
    Raised when an upload is not one of the accepted image types.

    Example:
        >>> raise UnsupportedFileTypeError(".pdf", [".jpg", ".png"])
    """

    def __init__(self, file_type: str, supported_types: list):
        message = "Only image files are allowed"
        details = {"file_type": file_type, "supported_types": sorted(supported_types)}
        super().__init__(message, details)


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        megabytes = limit / (1024 * 1024)
        message = f"File size too large. Maximum size is {megabytes:g}MB."
        details = {"size": size, "limit": limit}
        super().__init__(message, details)


class EmptyFileError(ValidationError):
    """Raised when an upload carries no bytes or no file at all."""

    def __init__(self, filename: str = None):
        super().__init__("No image file provided", {"filename": filename})


class CorruptedFileError(InputError):
    """Raised when an image cannot be decoded."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Corrupted or unreadable image: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRError(BillScanError):
    """Base exception for OCR-related errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when the configured OCR engine is not available."""

    def __init__(self, engine_name: str):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name}
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when the OCR engine fails internally."""

    def __init__(self, source: str, reason: str = None):
        message = f"OCR processing failed for: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


class OCRTimeoutError(OCRError):
    """Raised when the OCR engine exceeds its time budget."""

    def __init__(self, timeout: float):
        message = f"OCR timed out after {timeout:g}s"
        details = {"timeout": timeout}
        super().__init__(message, details)


# =============================================================================
# EXTRACTION / PIPELINE ERRORS
# =============================================================================

class ExtractionError(BillScanError):
    """Raised when extraction receives input that is not text."""

    def __init__(self, reason: str):
        super().__init__("Field extraction failed", {"reason": reason})


class PipelineError(BillScanError):
    """Base exception for orchestration failures."""
    pass


class PipelineTimeoutError(PipelineError):
    """Raised when a pipeline run passes its deadline between stages."""

    def __init__(self, record_id: str, stage: str, timeout: float):
        message = f"Processing exceeded {timeout:g}s before stage '{stage}'"
        details = {"record_id": record_id, "stage": stage}
        super().__init__(message, details)


# =============================================================================
# RECORD ERRORS
# =============================================================================

class RecordError(BillScanError):
    """Base exception for record store errors."""
    pass


class RecordNotFoundError(RecordError):
    """Raised when a record id is unknown."""

    def __init__(self, record_id: str):
        super().__init__("Record not found", {"record_id": record_id})


class RecordUpdateError(RecordError):
    """Raised when an update touches fields users may not edit."""

    def __init__(self, fields: list):
        message = f"Fields cannot be updated: {', '.join(sorted(fields))}"
        super().__init__(message, {"fields": sorted(fields)})


class RecordStateError(RecordError):
    """Raised when a user edit targets a record that is still processing."""

    def __init__(self, record_id: str, status: str):
        message = f"Record is still {status} and cannot be edited"
        super().__init__(message, {"record_id": record_id, "status": status})


class InvalidStateTransitionError(RecordError):
    """Raised when a record would leave a terminal status."""

    def __init__(self, record_id: str, current: str, target: str):
        message = f"Cannot move record from '{current}' to '{target}'"
        details = {"record_id": record_id, "current": current, "target": target}
        super().__init__(message, details)


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(BillScanError):
    """Base exception for output handling errors."""
    pass


class NothingToExportError(OutputError):
    """Raised when an export is requested with no completed records."""

    def __init__(self):
        super().__init__("No completed records to export")


class ExcelExportError(OutputError):
    """Raised when the workbook cannot be generated."""

    def __init__(self, target: str, reason: str = None):
        message = f"Failed to export Excel file: {target}"
        details = {"target": target, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'BillScanError',
    'InputError',
    'ValidationError',
    'UnsupportedFileTypeError',
    'FileTooLargeError',
    'EmptyFileError',
    'CorruptedFileError',
    'OCRError',
    'OCREngineNotAvailableError',
    'OCRProcessingError',
    'OCRTimeoutError',
    'ExtractionError',
    'PipelineError',
    'PipelineTimeoutError',
    'RecordError',
    'RecordNotFoundError',
    'RecordUpdateError',
    'RecordStateError',
    'InvalidStateTransitionError',
    'OutputError',
    'NothingToExportError',
    'ExcelExportError',
]
