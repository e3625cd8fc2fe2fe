"""
Output Handler Module for BillScan.

Excel export of completed billing records.
"""

from .excel_exporter import ExcelExporter

__all__ = ['ExcelExporter']
