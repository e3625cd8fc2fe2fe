"""
Excel Exporter Module.

Renders completed billing records into a two-sheet workbook:
    - Summary: one row per record
    - Line Items: one row per (record, item), or one sentinel row for a
      record without items

Workbooks are produced in memory; the API streams them once and keeps
nothing on disk.

Author: BillScan Team
"""

import io
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.helpers import ensure_directory, generate_timestamp
from billscan.utils.exceptions import ExcelExportError, NothingToExportError
from billscan.records.models import BillingItem, BillingRecord, RecordStatus

logger = get_logger(__name__)

Column = Tuple[str, Callable[..., Any]]


class ExcelExporter:
    """
    Exports billing records to Excel format.

    Absent header values are written as ``placeholder`` in the summary
    sheet. Numeric columns of the line-items sheet fall back to 0.

    Attributes:
        placeholder: Text written for absent summary values
        no_items_description: Description of the sentinel line-item row
        summary_sheet: Title of the summary sheet
        items_sheet: Title of the line-items sheet

    Example:
        >>> exporter = ExcelExporter()
        >>> data = exporter.export(store.completed())
        >>> open("billing.xlsx", "wb").write(data)
    """

    SUMMARY_HEADER_COLOR = "4472C4"
    ITEMS_HEADER_COLOR = "548235"

    def __init__(self) -> None:
        """Initialize the Excel exporter with configuration."""
        self.placeholder = get_config("output.excel.placeholder", "N/A")
        self.no_items_description = get_config(
            "output.excel.no_items_description", "No items extracted"
        )
        self.summary_sheet = get_config("output.excel.summary_sheet", "Summary")
        self.items_sheet = get_config("output.excel.items_sheet", "Line Items")
        self.filename_pattern = get_config(
            "output.excel.filename_pattern", "billing_export_{timestamp}.xlsx"
        )

        self.summary_columns: List[Column] = [
            ('Invoice Number', lambda r: self._text(r.invoice_number)),
            ('Vendor', lambda r: self._text(r.vendor)),
            ('Date', lambda r: self._text(r.date)),
            ('Total Amount', lambda r: self._value(r.total_amount)),
            ('Currency', lambda r: self._text(r.currency)),
            ('Status', lambda r: r.status.value),
            ('Processed Date', lambda r: self._processed_date(r)),
        ]

        self.item_columns: List[Column] = [
            ('Invoice Number', lambda r, i: self._text(r.invoice_number)),
            ('Vendor', lambda r, i: self._text(r.vendor)),
            ('Item Description', lambda r, i: self._text(i.description)),
            ('Quantity', lambda r, i: i.quantity),
            ('Unit Price', lambda r, i: i.unit_price),
            ('Total Price', lambda r, i: i.total_price),
            ('Invoice Date', lambda r, i: self._text(r.date)),
        ]

    def export(self, records: Iterable[BillingRecord]) -> bytes:
        """
        Build the workbook for the completed records among ``records``.

        Args:
            records: Any records; those not ``completed`` are skipped.

        Returns:
            The .xlsx file content.

        Raises:
            NothingToExportError: If no record is completed.
            ExcelExportError: If the workbook cannot be written.
        """
        completed = self._completed(records)

        try:
            workbook = self._build_workbook(completed)
            buffer = io.BytesIO()
            workbook.save(buffer)
        except Exception as e:
            logger.error(f"Excel export failed: {e}")
            raise ExcelExportError("in-memory workbook", str(e))

        logger.info(f"Excel workbook generated ({len(completed)} records)")
        return buffer.getvalue()

    def export_to_file(
        self,
        records: Iterable[BillingRecord],
        filepath: Optional[Union[str, Path]] = None
    ) -> Path:
        """
        Write the workbook to disk.

        Args:
            records: Records to export.
            filepath: Destination; defaults to a timestamped file in
                ``paths.output_dir``.

        Returns:
            Path of the written file.
        """
        if filepath is None:
            filepath = Path(get_config("paths.output_dir", "outputs")) / self.get_default_filename()
        filepath = Path(filepath)

        content = self.export(records)

        try:
            ensure_directory(filepath.parent)
            filepath.write_bytes(content)
        except OSError as e:
            raise ExcelExportError(str(filepath), str(e))

        logger.info(f"Excel file saved: {filepath}")
        return filepath

    def get_default_filename(self) -> str:
        return self.filename_pattern.format(timestamp=generate_timestamp())

    def item_rows(self, record: BillingRecord) -> List[BillingItem]:
        """
        Items to write for one record.

        A record without items contributes a single sentinel row carrying
        the record total so every record appears in the sheet.
        """
        if record.items:
            return list(record.items)
        return [BillingItem(
            description=self.no_items_description,
            quantity=0,
            unit_price=0.0,
            total_price=record.total_amount or 0.0,
        )]

    def _completed(self, records: Iterable[BillingRecord]) -> List[BillingRecord]:
        completed = [r for r in records if r.status is RecordStatus.COMPLETED]
        if not completed:
            raise NothingToExportError()
        return completed

    def _build_workbook(self, records: List[BillingRecord]) -> openpyxl.Workbook:
        workbook = openpyxl.Workbook()

        summary = workbook.active
        summary.title = self.summary_sheet
        self._write_sheet(
            summary,
            [name for name, _ in self.summary_columns],
            [[getter(record) for _, getter in self.summary_columns] for record in records],
            self.SUMMARY_HEADER_COLOR
        )

        items = workbook.create_sheet(title=self.items_sheet)
        item_rows = [
            [getter(record, item) for _, getter in self.item_columns]
            for record in records
            for item in self.item_rows(record)
        ]
        self._write_sheet(
            items,
            [name for name, _ in self.item_columns],
            item_rows,
            self.ITEMS_HEADER_COLOR
        )

        return workbook

    def _write_sheet(
        self,
        sheet,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        header_color: str
    ) -> None:
        """Write a styled header, the rows, sized columns and a frozen header."""
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color=header_color, end_color=header_color, fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        for col, header in enumerate(headers, 1):
            cell = sheet.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

        for row_num, row in enumerate(rows, 2):
            for col, value in enumerate(row, 1):
                cell = sheet.cell(row=row_num, column=col, value=value)
                cell.border = thin_border

        for col, header in enumerate(headers, 1):
            max_length = len(header)
            for row in rows:
                max_length = max(max_length, len(str(row[col - 1])))
            sheet.column_dimensions[get_column_letter(col)].width = min(max_length + 2, 50)

        sheet.freeze_panes = 'A2'

    def _text(self, value: Optional[str]) -> str:
        return value if value else self.placeholder

    def _value(self, value: Optional[float]) -> Union[float, str]:
        return self.placeholder if value is None else value

    def _processed_date(self, record: BillingRecord) -> str:
        if record.extracted_at is None:
            return self.placeholder
        return record.extracted_at.strftime("%Y-%m-%d")
