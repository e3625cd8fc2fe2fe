"""
Request and response models of the HTTP API.

All JSON is camelCase on the wire; Python code uses the snake_case names.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from billscan.records import BillingItem, BillingRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class ItemSchema(CamelModel):
    description: str = ""
    quantity: int = Field(0, ge=0)
    unit_price: float = Field(0.0, ge=0)
    total_price: float = Field(0.0, ge=0)

    @classmethod
    def from_item(cls, item: BillingItem) -> "ItemSchema":
        return cls(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
        )

    def to_item(self) -> BillingItem:
        return BillingItem(
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.total_price,
        )


class RecordSummary(CamelModel):
    """List projection of a record: no OCR text, no storage paths."""
    id: str
    original_filename: str
    status: str
    uploaded_at: datetime
    extracted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    invoice_number: Optional[str] = None
    vendor: Optional[str] = None
    date: Optional[str] = None
    total_amount: Optional[float] = None
    currency: str = "USD"
    items: List[ItemSchema] = Field(default_factory=list)
    confidence: float = 0.0
    error_message: Optional[str] = None

    @classmethod
    def _fields_of(cls, record: BillingRecord) -> Dict[str, Any]:
        return dict(
            id=record.id,
            original_filename=record.original_filename,
            status=record.status.value,
            uploaded_at=record.uploaded_at,
            extracted_at=record.extracted_at,
            updated_at=record.updated_at,
            invoice_number=record.invoice_number,
            vendor=record.vendor,
            date=record.date,
            total_amount=record.total_amount,
            currency=record.currency,
            items=[ItemSchema.from_item(item) for item in record.items],
            confidence=record.confidence,
            error_message=record.error_message,
        )

    @classmethod
    def from_record(cls, record: BillingRecord) -> "RecordSummary":
        return cls(**cls._fields_of(record))


class RecordDetail(RecordSummary):
    """Full record as returned by the single-record endpoints."""
    raw_text: Optional[str] = None

    @classmethod
    def from_record(cls, record: BillingRecord) -> "RecordDetail":
        return cls(raw_text=record.raw_text, **cls._fields_of(record))


class RecordUpdate(CamelModel):
    """
    User corrections to a finished record.

    Only data fields may be sent. System-managed fields are rejected
    with an explicit message, anything else unknown by ``extra=forbid``.
    """
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    PROTECTED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "id", "status", "extractedAt", "extracted_at", "uploadedAt", "uploaded_at",
        "updatedAt", "updated_at", "originalFilename", "original_filename",
        "confidence", "rawText", "raw_text", "errorMessage", "error_message",
        "imagePath", "image_path",
    )

    invoice_number: Optional[str] = None
    vendor: Optional[str] = None
    date: Optional[str] = None
    total_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    items: Optional[List[ItemSchema]] = None

    @model_validator(mode="before")
    @classmethod
    def _reject_protected(cls, data: Any) -> Any:
        if isinstance(data, dict):
            protected = sorted(key for key in data if key in cls.PROTECTED_FIELDS)
            if protected:
                raise ValueError(f"Fields cannot be modified: {', '.join(protected)}")
        return data

    @field_validator("currency", "items")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may be changed but not cleared")
        return value

    @field_validator("currency")
    @classmethod
    def _upper(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("currency must not be empty")
        return value

    def changes(self) -> Dict[str, Any]:
        """Fields present in the request, ready for ``RecordStore.update``."""
        changes = {name: getattr(self, name) for name in self.model_fields_set}
        if "items" in changes:
            changes["items"] = [item.to_item() for item in changes["items"]]
        return changes


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

class HealthResponse(CamelModel):
    status: str = "OK"
    message: str
    timestamp: datetime


class UploadResponse(CamelModel):
    id: str
    status: str
    message: str


class ExportStatus(CamelModel):
    total: int
    completed: int
    processing: int
    error: int
    can_export: bool
