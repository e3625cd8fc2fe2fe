"""
Unit tests for the in-memory record store.
"""
import threading

import pytest

from billscan.records import BillingItem, ExtractedFields, RecordStatus, RecordStore
from billscan.utils.exceptions import (
    InvalidStateTransitionError,
    RecordNotFoundError,
    RecordStateError,
    RecordUpdateError,
)


FIELDS = ExtractedFields(
    invoice_number="INV-1",
    vendor="ACME",
    date="2024-03-01",
    total_amount=42.0,
    currency="EUR",
    items=(BillingItem("Widget", 2, 21.0, 42.0),),
)


class TestCreate:
    def test_new_record_is_processing(self, store):
        record = store.create("bill.jpg")
        assert record.status is RecordStatus.PROCESSING
        assert record.extracted_at is None
        assert record.confidence == 0.0
        assert record.items == ()
        assert record.currency == "USD"

    def test_ids_are_unique(self, store):
        ids = {store.create(f"bill{i}.jpg").id for i in range(50)}
        assert len(ids) == 50
        assert len(store) == 50

    def test_default_currency_is_configurable(self):
        assert RecordStore(default_currency="GBP").create("a.png").currency == "GBP"

    def test_list_preserves_upload_order(self, store):
        names = ["a.png", "b.png", "c.png"]
        for name in names:
            store.create(name)
        assert [r.original_filename for r in store.list()] == names


class TestGet:
    def test_unknown_id(self, store):
        with pytest.raises(RecordNotFoundError):
            store.get("missing")

    def test_reads_are_idempotent(self, store):
        record = store.create("bill.jpg")
        assert store.get(record.id) == store.get(record.id)

    def test_internal_mapping_not_exposed(self, store):
        store.create("bill.jpg")
        store.list().clear()
        assert len(store) == 1


class TestTransitions:
    def test_complete(self, store):
        record = store.create("bill.jpg")
        done = store.complete(record.id, FIELDS, "raw text", 0.8)
        assert done.status is RecordStatus.COMPLETED
        assert done.extracted_at is not None
        assert done.invoice_number == "INV-1"
        assert done.currency == "EUR"
        assert done.items == FIELDS.items
        assert done.raw_text == "raw text"
        assert done.confidence == 0.8
        assert done.uploaded_at == record.uploaded_at

    def test_fail_keeps_defaults(self, store):
        record = store.create("bill.jpg")
        failed = store.fail(record.id, "OCR exploded")
        assert failed.status is RecordStatus.ERROR
        assert failed.extracted_at is not None
        assert failed.error_message == "OCR exploded"
        assert failed.invoice_number is None
        assert failed.total_amount is None

    @pytest.mark.parametrize("first", ["complete", "fail"])
    def test_second_transition_rejected(self, store, first):
        record = store.create("bill.jpg")
        if first == "complete":
            store.complete(record.id, FIELDS, "", 0.5)
        else:
            store.fail(record.id, "boom")
        terminal = store.get(record.id)

        with pytest.raises(InvalidStateTransitionError):
            store.complete(record.id, FIELDS, "", 0.5)
        with pytest.raises(InvalidStateTransitionError):
            store.fail(record.id, "again")
        assert store.get(record.id) == terminal

    def test_transition_unknown_id(self, store):
        with pytest.raises(RecordNotFoundError):
            store.fail("missing", "boom")


class TestUpdate:
    def test_merges_only_given_fields(self, store):
        record = store.create("bill.jpg")
        store.complete(record.id, FIELDS, "raw", 0.7)
        updated = store.update(record.id, vendor="ACME Corp")
        assert updated.vendor == "ACME Corp"
        assert updated.invoice_number == "INV-1"
        assert updated.status is RecordStatus.COMPLETED
        assert updated.updated_at is not None
        assert updated.extracted_at == store.get(record.id).extracted_at

    def test_items_coerced_from_dicts(self, store):
        record = store.create("bill.jpg")
        store.complete(record.id, FIELDS, "raw", 0.7)
        updated = store.update(record.id, items=[
            {"description": "Bolt", "quantity": 4, "unit_price": 0.5, "total_price": 2.0}
        ])
        assert updated.items == (BillingItem("Bolt", 4, 0.5, 2.0),)

    @pytest.mark.parametrize("field", ["id", "status", "extracted_at", "uploaded_at", "confidence", "raw_text"])
    def test_protected_fields_rejected(self, store, field):
        record = store.create("bill.jpg")
        store.complete(record.id, FIELDS, "raw", 0.7)
        before = store.get(record.id)
        with pytest.raises(RecordUpdateError):
            store.update(record.id, **{field: "x"})
        assert store.get(record.id) == before

    def test_processing_record_cannot_be_edited(self, store):
        record = store.create("bill.jpg")
        with pytest.raises(RecordStateError):
            store.update(record.id, vendor="Early")

    def test_error_record_can_be_corrected(self, store):
        record = store.create("bill.jpg")
        store.fail(record.id, "no text")
        updated = store.update(record.id, total_amount=9.99)
        assert updated.total_amount == 9.99
        assert updated.status is RecordStatus.ERROR

    def test_unknown_id(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update("missing", vendor="x")

    def test_readers_never_see_partial_update(self, store):
        record = store.create("bill.jpg")
        store.complete(record.id, FIELDS, "raw", 0.7)
        stop = threading.Event()
        torn = []

        def reader():
            while not stop.is_set():
                current = store.get(record.id)
                if (current.vendor == "V2") != (current.invoice_number == "N2"):
                    torn.append(current)

        thread = threading.Thread(target=reader)
        thread.start()
        for i in range(200):
            if i % 2:
                store.update(record.id, vendor="V1", invoice_number="N1")
            else:
                store.update(record.id, vendor="V2", invoice_number="N2")
        stop.set()
        thread.join()
        assert torn == []


class TestCounts:
    def test_counts_by_status(self, store):
        a = store.create("a.png")
        b = store.create("b.png")
        store.create("c.png")
        store.complete(a.id, FIELDS, "", 0.5)
        store.fail(b.id, "boom")

        assert store.counts() == {'total': 3, 'processing': 1, 'completed': 1, 'error': 1}
        assert [r.id for r in store.completed()] == [a.id]
