"""
BillScan - Source Package.

Turns photographed billing documents into structured records and an
Excel workbook. Each module has a single responsibility.

Modules:
    - input_handler: Upload validation and image preprocessing
    - ocr_engine: Text extraction (Tesseract)
    - extraction: Regex field extraction from OCR text
    - records: Billing record model and in-memory store
    - pipeline: Background processing orchestrator
    - output_handler: Excel export
    - api: FastAPI HTTP interface
    - utils: Logging, exceptions and helpers

Architecture:
    Upload → Preprocess → OCR → Field Extraction → Record Store
                                                       ↓
                                         HTTP API / Excel Export
"""

__version__ = "1.0.0"
__author__ = "BillScan Team"

__all__ = [
    'input_handler',
    'ocr_engine',
    'extraction',
    'records',
    'pipeline',
    'output_handler',
    'api',
    'utils'
]
