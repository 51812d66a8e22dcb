"""
Tests for the tolerant record parser.
"""

from datetime import date
from decimal import Decimal

from ingestion.models.enums import DocumentKind
from ingestion.pipeline.column_mapper import map_columns
from ingestion.pipeline.record_parser import (
    normalize_expense_category,
    parse_rows,
    parse_sales_rows,
)
from ingestion.schemas.records import ColumnMapping, ExpenseRecord, InventoryRecord


def _parse_sales(headers, rows, **kwargs):
    return parse_sales_rows(headers, rows, map_columns(headers), **kwargs)


class TestSalesRows:

    def test_conventional_row(self):
        headers = ["fecha", "monto_total", "tienda"]
        records, errors = _parse_sales(headers, [["2024-09-01", "1,000.50", "Portal Centro"]])
        assert errors == []
        assert len(records) == 1
        assert records[0].date == date(2024, 9, 1)
        assert records[0].amount == Decimal("1000.50")
        assert records[0].location == "Portal Centro"
        assert records[0].transaction_count is None
        assert records[0].source_row == 2

    def test_transaction_count(self):
        headers = ["fecha", "monto", "tienda", "tickets"]
        records, _ = _parse_sales(headers, [["2024-09-01", "500", "Norte", "42"]])
        assert records[0].transaction_count == 42

    def test_unparseable_count_is_absent(self):
        headers = ["fecha", "monto", "tienda", "tickets"]
        records, errors = _parse_sales(headers, [["2024-09-01", "500", "Norte", "n/d"]])
        assert errors == []
        assert records[0].transaction_count is None

    def test_location_defaults_to_unknown(self):
        records, _ = _parse_sales(["fecha", "monto"], [["2024-09-01", "100"]])
        assert records[0].location == "unknown"

    def test_blank_location_defaults(self):
        records, _ = _parse_sales(["fecha", "monto", "tienda"], [["2024-09-01", "100", "  "]])
        assert records[0].location == "unknown"

    def test_missing_amount_one_error_no_record(self):
        records, errors = _parse_sales(["fecha", "monto"], [["2024-09-01", ""]])
        assert records == []
        assert len(errors) == 1
        assert errors[0].field == "amount"
        assert errors[0].row_number == 2

    def test_invalid_amount(self):
        records, errors = _parse_sales(["fecha", "monto"], [["2024-09-01", "abc"]])
        assert records == []
        assert errors[0].field == "amount"

    def test_missing_date(self):
        records, errors = _parse_sales(["fecha", "monto"], [["", "100"]])
        assert records == []
        assert errors[0].field == "date"

    def test_invalid_date(self):
        _, errors = _parse_sales(["fecha", "monto"], [["not a date", "100"]])
        assert errors[0].field == "date"
        assert "Invalid date" in errors[0].message

    def test_short_row_treated_as_missing(self):
        records, errors = _parse_sales(["fecha", "monto", "tienda"], [["2024-09-01"]])
        assert records == []
        assert errors[0].field == "amount"

    def test_negative_sales_rejected(self):
        records, errors = _parse_sales(["fecha", "monto"], [["2024-09-01", "-50"]])
        assert records == []
        assert errors[0].field == "amount"

    def test_bad_row_does_not_stop_later_rows(self):
        rows = [
            ["2024-09-01", "100", "A"],
            ["garbage", "100", "B"],
            ["2024-09-03", "300", "C"],
        ]
        records, errors = _parse_sales(["fecha", "monto", "tienda"], rows)
        assert [r.source_row for r in records] == [2, 4]
        assert [e.row_number for e in errors] == [3]

    def test_duplicate_date_location_rejected(self):
        rows = [["2024-09-01", "100", "A"], ["2024-09-01", "200", "A"], ["2024-09-01", "300", "B"]]
        records, errors = _parse_sales(["fecha", "monto", "tienda"], rows)
        assert len(records) == 2
        assert len(errors) == 1
        assert "Duplicate entry" in errors[0].message

    def test_default_headers_used_when_mapping_empty(self):
        records, errors = parse_sales_rows(
            ["fecha", "monto_total"],
            [["2024-09-01", "250.00"]],
            ColumnMapping(),
        )
        assert errors == []
        assert records[0].amount == Decimal("250.00")

    def test_first_row_number_offset(self):
        _, errors = _parse_sales(["fecha", "monto"], [["x", "1"]], first_row_number=1)
        assert errors[0].row_number == 1

    def test_custom_default_location(self):
        records, _ = _parse_sales(["fecha", "monto"], [["2024-09-01", "1"]], default_location="matriz")
        assert records[0].location == "matriz"


class TestExpenseRows:

    headers = ["fecha", "tienda", "categoria", "monto", "nota"]

    def _parse(self, rows):
        mapping = map_columns(self.headers, DocumentKind.CSV_EXPENSES)
        return parse_rows(self.headers, rows, mapping, DocumentKind.CSV_EXPENSES)

    def test_expense_record(self):
        records, errors = self._parse([["2024-09-01", "Centro", "Renta", "15000", "Septiembre"]])
        assert errors == []
        assert isinstance(records[0], ExpenseRecord)
        assert records[0].category == "renta"
        assert records[0].note == "Septiembre"

    def test_english_category_translated(self):
        records, _ = self._parse([["2024-09-01", "Centro", "utilities", "900", ""]])
        assert records[0].category == "servicios"

    def test_unknown_category_is_otros(self):
        records, _ = self._parse([["2024-09-01", "Centro", "Flores", "120", ""]])
        assert records[0].category == "otros"

    def test_zero_amount_rejected(self):
        records, errors = self._parse([["2024-09-01", "Centro", "renta", "0", ""]])
        assert records == []
        assert errors[0].field == "amount"

    def test_long_note_truncated(self):
        records, _ = self._parse([["2024-09-01", "Centro", "renta", "10", "x" * 600]])
        assert records[0].note == "x" * 500 + "..."

    def test_same_day_expenses_allowed(self):
        rows = [["2024-09-01", "Centro", "renta", "10", ""], ["2024-09-01", "Centro", "gas", "20", ""]]
        records, errors = self._parse(rows)
        assert len(records) == 2
        assert errors == []


class TestInventoryRows:

    headers = ["fecha", "tienda", "inventario_inicial", "inventario_final", "merma"]

    def _parse(self, rows):
        mapping = map_columns(self.headers, DocumentKind.CSV_INVENTORY)
        return parse_rows(self.headers, rows, mapping, DocumentKind.CSV_INVENTORY)

    def test_inventory_record(self):
        records, errors = self._parse([["2024-09-01", "Centro", "5000", "4200", "150"]])
        assert errors == []
        assert isinstance(records[0], InventoryRecord)
        assert records[0].opening_value == Decimal("5000")
        assert records[0].waste_value == Decimal("150")

    def test_waste_defaults_to_zero(self):
        records, _ = self._parse([["2024-09-01", "Centro", "5000", "4200", ""]])
        assert records[0].waste_value == Decimal("0")

    def test_negative_value_rejected(self):
        records, errors = self._parse([["2024-09-01", "Centro", "-1", "4200", ""]])
        assert records == []
        assert errors[0].field == "opening_value"

    def test_waste_above_opening_rejected(self):
        _, errors = self._parse([["2024-09-01", "Centro", "100", "50", "200"]])
        assert errors[0].field == "waste_value"

    def test_missing_closing_rejected(self):
        _, errors = self._parse([["2024-09-01", "Centro", "100", "", ""]])
        assert errors[0].field == "closing_value"


class TestNormalizeExpenseCategory:

    def test_known(self):
        assert normalize_expense_category("Nómina") == "nomina"

    def test_synonym(self):
        assert normalize_expense_category("Payroll") == "nomina"

    def test_empty(self):
        assert normalize_expense_category(None) == "otros"
