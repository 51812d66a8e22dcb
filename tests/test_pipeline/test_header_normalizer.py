"""
Tests for header normalization and text folding.
"""

from ingestion.pipeline.header_normalizer import fold_text, normalize_header, strip_accents


class TestNormalizeHeader:

    def test_lowercases(self):
        assert normalize_header("FECHA") == "fecha"

    def test_strips_accents(self):
        assert normalize_header("Categoría") == "categoria"
        assert normalize_header("Año") == "ano"

    def test_collapses_separators(self):
        assert normalize_header("Fecha de Venta") == "fecha_de_venta"
        assert normalize_header("monto -- total") == "monto_total"
        assert normalize_header("monto__total") == "monto_total"

    def test_trims_edges(self):
        assert normalize_header("  Tienda  ") == "tienda"
        assert normalize_header("_monto_") == "monto"

    def test_empty(self):
        assert normalize_header("") == ""

    def test_only_separators(self):
        assert normalize_header(" - _ ") == ""

    def test_idempotent(self):
        once = normalize_header("Punto de Venta")
        assert normalize_header(once) == once


class TestFoldText:

    def test_fold_description(self):
        assert fold_text("  QUESO   Manchego ") == "queso manchego"

    def test_fold_accents(self):
        assert fold_text("Lácteos Jalapeño") == "lacteos jalapeno"

    def test_fold_empty(self):
        assert fold_text("") == ""

    def test_strip_accents_keeps_base_letters(self):
        assert strip_accents("Piña") == "Pina"
