"""Unit tests for the non-product line filter.

Tests cover:
    - Empty descriptions
    - Non-product patterns (transport documents, legal notes, payments, CONAI)
    - Informative notes and surcharges
    - Zero-price lines (two product signals required)
    - Priced lines with zero quantity
"""
import pytest

from catalog_matching.services.filtering import (
    evaluate_line,
    is_valid_product_line,
    product_signals,
)


class TestProductSignals:
    """Tests for product_signals."""

    def test_all_signals(self):
        """Test a description carrying every product signal."""
        signals = product_signals("VITE M6X20 ACCIAIO INOX — 100 PZ")

        assert set(signals) == {
            "plausible_length",
            "product_code",
            "unit_of_measure",
            "dimensions",
            "material",
        }

    def test_plain_words_are_not_a_product_code(self):
        """Test that words without digits do not count as codes."""
        assert "product_code" not in product_signals("Campione gratuito")

    def test_length_bounds(self):
        """Test the plausible length window (6 to 99 characters)."""
        assert "plausible_length" not in product_signals("Tubo")
        assert "plausible_length" in product_signals("Tubo x")
        assert "plausible_length" not in product_signals("x" * 100)


class TestEvaluateLine:
    """Tests for evaluate_line."""

    @pytest.mark.parametrize("description", [None, "", "   "])
    def test_rejects_empty_description(self, make_line, description):
        """Test that lines without description are rejected."""
        verdict = evaluate_line(make_line(description))

        assert verdict.accepted is False
        assert verdict.reason == "empty_description"

    def test_rejects_conai_notice_at_zero_price(self, make_line):
        """Test that the CONAI environmental fee notice is not a product."""
        line = make_line("Contributo ambientale CONAI assolto ove dovuto", unit_price="0")

        assert is_valid_product_line(line) is False

    def test_accepts_priced_screws(self, make_line):
        """Test that a regular priced product line is accepted."""
        line = make_line("VITE M6X20 ACCIAIO INOX — 100 PZ", unit_price="0.05", quantity="100")

        verdict = evaluate_line(line)

        assert verdict.accepted is True
        assert verdict.reason is None

    @pytest.mark.parametrize("description", [
        "DDT n. 123 del 01/02/2024",
        "Documento di trasporto allegato",
        "Operazione ai sensi dell'art. 17 comma 6",
        "D.Lgs. 152/2006 gestione imballaggi",
        "Pagamento a 30 giorni data fattura",
        "Bonifico bancario IBAN IT60X0542811101000000123456",
        "Imb. non soggetti a contributo",
        "Non si accettano reclami trascorsi 8 giorni",
    ])
    def test_rejects_non_product_patterns_even_when_priced(self, make_line, description):
        """Test that non-product notes are rejected regardless of price."""
        verdict = evaluate_line(make_line(description, unit_price="5.00", quantity="1"))

        assert verdict.accepted is False
        assert verdict.reason == "non_product_pattern"

    @pytest.mark.parametrize("description", [
        "Art. 15 esente",
        "art.74 regime speciale",
        "Esenzione articolo 10 n. 27",
        "Articoli 8 e 9 non imponibile",
    ])
    def test_rejects_article_citations(self, make_line, description):
        """Test that article citations in their usual spellings are rejected."""
        verdict = evaluate_line(make_line(description, unit_price="5.00", quantity="1"))

        assert verdict.accepted is False
        assert verdict.reason == "non_product_pattern"

    @pytest.mark.parametrize("description", [
        "Artemide 40W lampada",
        "ARTX500 vite",
        "ART500 sedia ufficio",
        "Lampada Artemide Tolomeo 70 cm",
    ])
    def test_accepts_products_starting_with_art(self, make_line, description):
        """Test that brand names and codes starting with "art" are products."""
        verdict = evaluate_line(make_line(description, unit_price="35.00", quantity="2"))

        assert verdict.accepted is True
        assert verdict.reason is None

    @pytest.mark.parametrize("description", [
        "Spese di trasporto",
        "Spese di spedizione urgente",
        "Imballaggio speciale",
        "Vedi allegato tecnico",
        "Shipping costs",
    ])
    def test_rejects_surcharges_and_informative_notes(self, make_line, description):
        """Test that surcharges and informative notes are rejected."""
        verdict = evaluate_line(make_line(description, unit_price="12.00", quantity="1"))

        assert verdict.accepted is False
        assert verdict.reason == "informative_note"

    def test_zero_price_needs_two_signals(self, make_line):
        """Test that a zero-priced line with a single signal is a note."""
        verdict = evaluate_line(make_line("Campione gratuito", unit_price="0"))

        assert verdict.accepted is False
        assert verdict.reason == "zero_price_note"

    def test_zero_price_with_product_signals(self, make_line):
        """Test that a free sample that looks like a product is accepted."""
        line = make_line("Guarnizione PVC 20x30 campione", unit_price="0")

        assert is_valid_product_line(line) is True

    def test_total_price_counts_as_price(self, make_line):
        """Test that a line total is enough to consider the line priced."""
        line = make_line("Servizio assistenza", unit_price="0", total_price="50.00")

        assert is_valid_product_line(line) is True

    def test_zero_quantity_accepted_when_product_like(self, make_line):
        """Test that a priced line with zero quantity can still be a product."""
        line = make_line("Tubo rame 22 mm", unit_price="8.50", quantity="0")

        assert is_valid_product_line(line) is True

    def test_zero_quantity_rejected_when_not_product_like(self, make_line):
        """Test that a priced line with zero quantity and no signals is rejected."""
        verdict = evaluate_line(make_line("Servizio", unit_price="100", quantity="0"))

        assert verdict.accepted is False
        assert verdict.reason == "zero_quantity_not_product"

    def test_priced_line_without_signals_is_accepted(self, make_line):
        """Test that price and quantity alone are enough."""
        assert is_valid_product_line(make_line("Widget Pro 500", unit_price="19.90")) is True
