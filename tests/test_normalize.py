"""
Tests for identifier/name normalization and the similarity functions.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from matching.entity_resolution.normalize import (
    normalize_barcode,
    normalize_identifier,
    normalize_name,
    normalize_plain_text,
    same_identifier,
    same_text,
    same_vat,
)
from matching.entity_resolution.similarity import cosine_similarity, token_set_similarity


SAMPLES = [
    "DE 123 456 789",
    " de-123.456.789 ",
    "Müller GmbH & Co. KG",
    "ACME Ltd.",
    "Ölwerke Oü",
    "İstanbul Tekstil A.S.",
    "Straße 12",
    "___",
    "-.-",
    "",
    "   ",
    "ab ab AB",
    "4006381-333931",
]


def test_identifier_normalization():
    """Spaces, dots and dashes are dropped; result is upper-case."""
    assert normalize_identifier(" DE 123.456-789 ") == "DE123456789"
    assert normalize_identifier("atu 1234 5678") == "ATU12345678"
    assert normalize_identifier(None) is None
    assert normalize_identifier("   ") is None
    assert normalize_identifier("-.-") is None


def test_barcode_normalization_keeps_dots():
    assert normalize_barcode(" 4006381-333 931 ") == "4006381333931"
    assert normalize_barcode("abc.12-3") == "ABC.123"
    assert normalize_barcode("") is None


def test_name_normalization():
    test_cases = [
        ("Müller GmbH & Co. KG", "müller"),
        ("ACME Ltd.", "acme"),
        ("  Nordwind   Handel  ", "nordwind handel"),
        ("Schmidt_Bau AG", "schmidt bau"),
        ("Coop Logistics", "coop logistics"),  # "co" only as a whole word
        ("Ölwerke OÜ", "ölwerke"),
        ("", ""),
        (None, ""),
    ]

    for input_name, expected in test_cases:
        result = normalize_name(input_name)
        assert result == expected, f"'{input_name}' should normalize to '{expected}', got '{result}'"
        print(f"✓ '{input_name}' -> '{result}'")


def test_name_normalization_can_keep_legal_forms():
    assert normalize_name("Hex Bolt AG-Series", strip_legal_forms=False) == "hex bolt ag series"


def test_plain_text_normalization():
    assert normalize_plain_text("  Bad   Homburg ") == "bad homburg"
    assert normalize_plain_text(None) == ""


@pytest.mark.parametrize("value", SAMPLES)
def test_normalization_is_idempotent(value):
    once = normalize_identifier(value)
    assert normalize_identifier(once) == once

    once = normalize_barcode(value)
    assert normalize_barcode(once) == once

    once = normalize_name(value)
    assert normalize_name(once) == once

    once = normalize_plain_text(value)
    assert normalize_plain_text(once) == once


def test_equality_helpers_require_non_blank_values():
    assert same_vat("DE 123 456 789", "de123456789")
    assert same_identifier("12/345/67890", "12 / 345 / 678-90")
    assert not same_identifier(None, None)
    assert not same_identifier("", "   ")
    assert not same_vat("DE1", None)

    assert same_text("Berlin", "  berlin ")
    assert not same_text("", "")
    assert not same_text(None, None)
    assert not same_text("Berlin", "Bern")


def test_cosine_similarity():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert cosine_similarity([0.3, -1.2, 4.5], [0.3, -1.2, 4.5]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 0.0, 0.0, 0.0], [1.0, 1.0, 1.0, 1.0]) == 0.5


def test_cosine_similarity_edge_cases():
    # Zero norm
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    # Empty
    assert cosine_similarity([], [1.0]) == 0.0
    # Shorter vector sets the comparison window
    assert cosine_similarity([1.0, 0.0, 5.0], [1.0, 0.0]) == pytest.approx(1.0)
    # Not clamped
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_token_set_similarity():
    assert token_set_similarity("", "") == 1.0
    assert token_set_similarity("acme", "") == 0.0
    assert token_set_similarity("alpha beta", "beta gamma") == pytest.approx(1 / 3)
    assert token_set_similarity("alpha alpha beta", "beta alpha") == 1.0


@pytest.mark.parametrize("a,b", [
    ("nordwind handel", "nordwind"),
    ("alpha beta gamma", "gamma delta"),
    ("", "x"),
    ("schrauben m8", "m8 schrauben verzinkt"),
])
def test_token_set_similarity_is_symmetric_and_reflexive(a, b):
    assert token_set_similarity(a, b) == token_set_similarity(b, a)
    assert token_set_similarity(a, a) == 1.0
    assert token_set_similarity(b, b) == 1.0
