"""
Identifier and name normalization.

Every function here is pure and idempotent: ``f(f(x)) == f(x)``. Blank input
yields None for identifiers and an empty string for names.
"""

import re
from typing import Optional

# Whitespace, dots and dashes are formatting noise in tax numbers and codes
_IDENTIFIER_NOISE = re.compile(r"[\s.\-]")
# Barcodes keep their dots
_BARCODE_NOISE = re.compile(r"[\s\-]")
# Anything that is not a letter, digit or whitespace (underscore counts as punctuation)
_NON_WORD = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")

# Legal-form tokens removed from company names (whole words, after lower-casing)
LEGAL_FORM_TOKENS = (
    "gmbh", "ag", "kg", "mbh", "co", "ohg", "ug", "limited", "ltd",
    "sarl", "srl", "spa", "bv", "nv", "ab", "oy", "as", "aps", "kft",
    "sro", "spzoo", "oü",
)
_LEGAL_FORMS = re.compile(r"\b(?:" + "|".join(LEGAL_FORM_TOKENS) + r")\b")


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    """Normalize a tax number, VAT ID or free code: drop spaces/dots/dashes, upper-case."""
    if not value or not value.strip():
        return None
    normalized = _IDENTIFIER_NOISE.sub("", value.strip()).upper()
    return normalized or None


def normalize_barcode(value: Optional[str]) -> Optional[str]:
    """Normalize an EAN/GTIN barcode: drop spaces/dashes, upper-case."""
    if not value or not value.strip():
        return None
    normalized = _BARCODE_NOISE.sub("", value.strip()).upper()
    return normalized or None


def normalize_name(value: Optional[str], strip_legal_forms: bool = True) -> str:
    """
    Normalize a company or article name for token comparison.

    - Lowercase
    - Replace punctuation with spaces
    - Remove legal-form tokens (GmbH, Ltd, BV, ...) when ``strip_legal_forms``
    - Collapse whitespace
    """
    if not value:
        return ""

    normalized = _NON_WORD.sub(" ", value.lower())
    if strip_legal_forms:
        normalized = _LEGAL_FORMS.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def normalize_plain_text(value: Optional[str]) -> str:
    """Lowercase and collapse whitespace. Used for city/country comparison."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.lower()).strip()


def same_identifier(a: Optional[str], b: Optional[str]) -> bool:
    """True when both identifiers are non-blank and equal after normalization."""
    left = normalize_identifier(a)
    return left is not None and left == normalize_identifier(b)


def same_vat(a: Optional[str], b: Optional[str]) -> bool:
    """VAT IDs follow identifier normalization ("DE 123.456-789" == "de123456789")."""
    return same_identifier(a, b)


def same_text(a: Optional[str], b: Optional[str]) -> bool:
    """True when both texts are non-blank and equal after plain-text normalization."""
    left = normalize_plain_text(a)
    return bool(left) and left == normalize_plain_text(b)
