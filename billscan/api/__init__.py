"""
HTTP API for BillScan (FastAPI).
"""

from .app import create_app, status_code_for

__all__ = ['create_app', 'status_code_for']
