"""
Unit tests for regex field extraction.
"""
import pytest

from billscan.extraction import AmountNormalizer, CurrencyDetector, RegexFieldExtractor, get_extractor
from billscan.records import BillingItem
from billscan.utils.exceptions import ExtractionError

from .fakes import SAMPLE_TEXT


@pytest.fixture()
def extractor():
    return RegexFieldExtractor(default_currency="USD")


class TestHeaderFields:
    def test_round_trip(self, extractor):
        fields = extractor.extract("Invoice #INV-2024-099\n2024-03-01\nTotal: $123.45")
        assert fields.invoice_number == "INV-2024-099"
        assert fields.date == "2024-03-01"
        assert fields.total_amount == 123.45

    def test_full_document(self, extractor):
        fields = extractor.extract(SAMPLE_TEXT)
        assert fields.vendor == "ACME Supplies Ltd"
        assert fields.invoice_number == "INV-2024-099"
        assert fields.currency == "USD"
        assert fields.missing_fields == []

    @pytest.mark.parametrize("text,expected", [
        ("INVOICE NO: 4711", "4711"),
        ("Invoice Number: A-1002", "A-1002"),
        ("Bill # 77", "77"),
        ("inv.2023-15", "2023-15"),
    ])
    def test_invoice_number_labels(self, extractor, text, expected):
        assert extractor.extract_invoice_number(text) == expected

    def test_invoice_token_requires_digit(self, extractor):
        assert extractor.extract_invoice_number("Invoice details follow") is None

    @pytest.mark.parametrize("text,expected", [
        ("Issued 3/7/2024 by clerk", "3/7/2024"),
        ("Due 15-08-2023", "15-08-2023"),
        ("on 2024-12-31.", "2024-12-31"),
    ])
    def test_date_formats_kept_verbatim(self, extractor, text, expected):
        assert extractor.extract_date(text) == expected

    def test_first_date_wins(self, extractor):
        assert extractor.extract_date("01/02/2024 then 2024-05-06") == "01/02/2024"

    @pytest.mark.parametrize("text,expected", [
        ("TOTAL 1,234.56", 1234.56),
        ("Amount due: €99", 99.0),
        ("Sum: USD 12.5", 12.5),
        ("TOTAL:\n123.45", 123.45),
        ("Amount due\n$ 40.00", 40.0),
    ])
    def test_total_variants(self, extractor, text, expected):
        assert extractor.extract_total(text) == expected

    def test_missing_total_is_none_not_zero(self, extractor):
        assert extractor.extract("Thanks for shopping").total_amount is None

    def test_vendor_skips_short_numeric_and_punctuation_lines(self, extractor):
        text = "\n  ab \n12345\n-----\n  Corner Cafe  \nInvoice 1"
        assert extractor.extract_vendor(text) == "Corner Cafe"

    def test_empty_text(self, extractor):
        fields = extractor.extract("")
        assert fields.invoice_number is None
        assert fields.vendor is None
        assert fields.date is None
        assert fields.total_amount is None
        assert fields.items == ()
        assert fields.currency == "USD"

    def test_non_text_raises(self, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract(None)

    def test_crlf_is_normalized(self, extractor):
        fields = extractor.extract("Shop Name\r\nTotal: 5.00\r\n")
        assert fields.vendor == "Shop Name"
        assert fields.total_amount == 5.0


class TestLineItems:
    def test_items_in_order(self, extractor):
        items = extractor.extract(SAMPLE_TEXT).items
        assert items == (
            BillingItem("Widget A", 2, 5.0, 10.0),
            BillingItem("Gadget B", 1, 7.5, 7.5),
        )

    def test_item_arithmetic_not_enforced(self, extractor):
        items = extractor.extract_items("Coffee 3 2.00 5.00")
        assert items == [BillingItem("Coffee", 3, 2.0, 5.0)]

    def test_items_stay_within_one_line(self, extractor):
        assert extractor.extract_items("Coffee 3\n2.00 6.00") == []

    @pytest.mark.parametrize("text", [
        "Room 101 2500.00",
        "Tel 555 1234",
        "Room 101 2500.00\nTel 555 1234",
    ])
    def test_two_number_lines_are_not_items(self, extractor, text):
        assert extractor.extract(text).items == ()

    def test_quantity_glued_to_x(self, extractor):
        items = extractor.extract_items("Bolts 12x0.25 3.00")
        assert items == [BillingItem("Bolts", 12, 0.25, 3.0)]


class TestNormalizers:
    def test_european_amount(self):
        assert AmountNormalizer().to_float("€ 1.234,56") == 1234.56

    def test_unparseable_amount(self):
        assert AmountNormalizer().to_float("abc") is None

    @pytest.mark.parametrize("text,expected", [
        ("Total £20", "GBP"),
        ("Paid in EUR", "EUR"),
        ("₹ 500 then $5", "INR"),
        ("no marker here", "CHF"),
    ])
    def test_currency_detection(self, text, expected):
        assert CurrencyDetector(default="CHF").detect(text) == expected


class TestRegistry:
    def test_default_strategy(self):
        assert isinstance(get_extractor(), RegexFieldExtractor)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            get_extractor("llm")
