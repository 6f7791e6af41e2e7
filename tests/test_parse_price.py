import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pricescan.ocr import extract


def test_thousands_dot_and_decimal_comma():
    assert extract.extract_candidates("Total: R$ 1.234,56 obrigado") == ["1234,56"]


def test_single_dot_is_decimal_separator():
    assert extract.extract_candidates("12.34") == ["12,34"]


def test_multiple_tokens_keep_order_without_duplicates():
    assert extract.extract_candidates("de 10,00 por 7,99") == ["10,00", "7,99"]
    assert extract.extract_candidates("10,00 7,99 10,00") == ["10,00", "7,99"]


def test_dot_and_comma_variants_collapse_to_one_candidate():
    assert extract.extract_candidates("12.34 ou 12,34") == ["12,34"]


def test_extraction_is_idempotent_on_same_text():
    text = "LEITE 4,99\nCAFE 1.019,90\nTOTAL 1.024,89"
    first = extract.extract_candidates(text)
    assert first == ["4,99", "1019,90", "1024,89"]
    assert extract.extract_candidates(text) == first


def test_whitespace_and_newlines_are_collapsed():
    assert extract.extract_candidates("  R$\n\t3,50  ") == ["3,50"]


def test_ignores_noise_and_integers():
    assert extract.extract_candidates("Preço: 999 coins") == []
    assert extract.extract_candidates("N/A") == []
    assert extract.extract_candidates("") == []


def test_us_format_keeps_documented_heuristic():
    # "." é tratado como milhar quando há vírgula também
    assert extract.extract_candidates("1,234.56") == ["1,23456"]


def test_normalize_price_br():
    assert extract.normalize_price_br(" 1.234,56 ") == "1234,56"
    assert extract.normalize_price_br("12.34") == "12,34"
    assert extract.normalize_price_br("7,99") == "7,99"
    assert extract.normalize_price_br("") == ""


def test_sanitize_keeps_first_comma_only():
    assert extract.sanitize_decimal_br("1,2,34") == "1,234"
    assert extract.sanitize_decimal_br("R$ 5.50") == "5,50"
    assert extract.sanitize_decimal_br("abc") == ""


def test_parse_number_br():
    assert extract.parse_number_br("1.234,56") == 1234.56
    assert extract.parse_number_br("7,99") == 7.99
    assert extract.parse_number_br("") is None
    assert extract.parse_number_br("abc") is None


def test_format_brl():
    assert extract.format_brl(1234.56) == "R$ 1.234,56"
    assert extract.format_brl(0) == "R$ 0,00"
    assert extract.format_brl(-3.5) == "-R$ 3,50"
