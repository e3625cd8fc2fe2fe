"""
Pipeline Module for BillScan.

Background orchestration of preprocess → OCR → extraction.
"""

from .orchestrator import ProcessingOrchestrator

__all__ = ['ProcessingOrchestrator']
