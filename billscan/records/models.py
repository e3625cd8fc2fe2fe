"""
Billing Record Data Classes.

``BillingRecord`` is the central entity: one per uploaded image. Records
are frozen; every change produces a new instance via ``dataclasses.replace``
so the store can swap whole records in atomically.

Author: BillScan Team
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from billscan.utils.helpers import utc_now


class RecordStatus(str, Enum):
    """Pipeline state of a record. ``PROCESSING`` is the only non-terminal state."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class BillingItem:
    """
    One extracted line item.

    ``quantity * unit_price`` is not required to equal ``total_price``;
    the three values are kept exactly as read from the document.
    """
    description: str
    quantity: int = 0
    unit_price: float = 0.0
    total_price: float = 0.0

    def __post_init__(self):
        if self.quantity < 0 or self.unit_price < 0 or self.total_price < 0:
            raise ValueError("Line item quantities and prices must be non-negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillingItem':
        return cls(
            description=str(data.get('description') or ''),
            quantity=int(data.get('quantity') or 0),
            unit_price=float(data.get('unit_price') or 0.0),
            total_price=float(data.get('total_price') or 0.0),
        )


@dataclass(frozen=True)
class ExtractedFields:
    """
    Output of a field extractor.

    Every field not found in the text stays at its default; ``None`` means
    "absent", which is different from an extracted zero.
    """
    invoice_number: Optional[str] = None
    vendor: Optional[str] = None
    date: Optional[str] = None
    total_amount: Optional[float] = None
    currency: str = "USD"
    items: Tuple[BillingItem, ...] = ()

    @property
    def missing_fields(self) -> list:
        return [
            name for name in ('invoice_number', 'vendor', 'date', 'total_amount')
            if getattr(self, name) is None
        ]


def new_record_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class BillingRecord:
    """
    A billing document moving through the pipeline.

    Attributes:
        id: Opaque unique identifier, never reused
        original_filename: Client filename at upload
        uploaded_at: Upload time (UTC)
        status: Pipeline state
        extracted_at: Set once, when the record leaves ``processing``
        updated_at: Time of the last user edit
        invoice_number, vendor, date, total_amount, currency, items:
            Extracted data
        confidence: OCR confidence fraction in [0, 1]
        raw_text: Full OCR output
        error_message: Failure reason when ``status`` is ``error``
        image_path: Internal location of the stored upload
    """
    original_filename: str
    id: str = field(default_factory=new_record_id)
    uploaded_at: datetime = field(default_factory=utc_now)
    status: RecordStatus = RecordStatus.PROCESSING
    extracted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    invoice_number: Optional[str] = None
    vendor: Optional[str] = None
    date: Optional[str] = None
    total_amount: Optional[float] = None
    currency: str = "USD"
    items: Tuple[BillingItem, ...] = ()

    confidence: float = 0.0
    raw_text: Optional[str] = None
    error_message: Optional[str] = None
    image_path: Optional[str] = field(default=None, repr=False)

    # Fields users may correct once processing has finished
    EDITABLE_FIELDS = frozenset({
        'invoice_number', 'vendor', 'date', 'total_amount', 'currency', 'items',
    })

    def completed(
        self,
        fields: ExtractedFields,
        raw_text: str,
        confidence: float
    ) -> 'BillingRecord':
        """Return the terminal ``completed`` version of this record."""
        return replace(
            self,
            status=RecordStatus.COMPLETED,
            extracted_at=utc_now(),
            invoice_number=fields.invoice_number,
            vendor=fields.vendor,
            date=fields.date,
            total_amount=fields.total_amount,
            currency=fields.currency,
            items=tuple(fields.items),
            raw_text=raw_text,
            confidence=confidence,
        )

    def failed(self, reason: Optional[str] = None) -> 'BillingRecord':
        """Return the terminal ``error`` version; extracted fields stay at defaults."""
        return replace(
            self,
            status=RecordStatus.ERROR,
            extracted_at=utc_now(),
            error_message=reason,
        )

    def edited(self, changes: Dict[str, Any]) -> 'BillingRecord':
        """Return a copy with user corrections applied."""
        if 'items' in changes:
            changes = dict(changes)
            changes['items'] = tuple(_coerce_items(changes['items']))
        return replace(self, updated_at=utc_now(), **changes)


def _coerce_items(items: Iterable[Any]) -> Iterable[BillingItem]:
    for item in items or ():
        if isinstance(item, BillingItem):
            yield item
        else:
            yield BillingItem.from_dict(item)
