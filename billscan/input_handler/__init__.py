"""
Input Handler Module for BillScan.

This module provides:
    - Upload validation (size, extension, MIME type)
    - Image normalization for OCR

Supported formats:
    - Images: JPG, JPEG, PNG, WEBP, BMP, TIFF
"""

from .validator import UploadValidator, ValidatedUpload
from .image_processor import ImagePreprocessor

__all__ = ['UploadValidator', 'ValidatedUpload', 'ImagePreprocessor']
