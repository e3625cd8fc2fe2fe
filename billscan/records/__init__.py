"""
Records Module for BillScan.

Data model (``BillingRecord``, ``BillingItem``, ``ExtractedFields``) and the
thread-safe in-memory ``RecordStore``.
"""

from .models import BillingItem, BillingRecord, ExtractedFields, RecordStatus
from .store import RecordStore

__all__ = ['BillingItem', 'BillingRecord', 'ExtractedFields', 'RecordStatus', 'RecordStore']
