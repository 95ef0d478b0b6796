"""
Entity adapters: everything that differs between resolving an invoice seller
and resolving an invoice line.

An adapter bundles the field extractors, the boost table and the prompt
wording for one entity kind. The resolver, scorer and arbiter are generic
and only talk to the adapter.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from matching.models import BusinessPartner, CatalogItem, LineItemQuery
from matching.entity_resolution.normalize import (
    normalize_barcode,
    normalize_identifier,
    normalize_name,
    same_identifier,
    same_text,
    same_vat,
)
from matching.entity_resolution.similarity import token_set_similarity

# (minimum similarity, boost), checked top-down, first hit wins
NAME_SIMILARITY_TIERS = ((0.90, 0.20), (0.75, 0.10), (0.50, 0.05))


@dataclass(frozen=True)
class FieldSignal:
    """An exact field match worth a fixed boost."""
    label: str
    weight: float
    matches: Callable[[Any, Any], bool]

    def evaluate(self, query, candidate) -> Optional[tuple[float, str]]:
        if self.matches(query, candidate):
            return self.weight, f"{self.label}=match(+{self.weight:.2f})"
        return None


@dataclass(frozen=True)
class NameSignal:
    """Tiered boost from the token-set similarity of normalized names."""
    query_name: Callable[[Any], str]
    candidate_names: Callable[[Any], Sequence[str]]
    tiers: tuple[tuple[float, float], ...] = NAME_SIMILARITY_TIERS

    def similarity(self, query, candidate) -> float:
        name = self.query_name(query)
        return max(
            (token_set_similarity(name, variant) for variant in self.candidate_names(candidate)),
            default=0.0,
        )

    def evaluate(self, query, candidate) -> Optional[tuple[float, str]]:
        similarity = self.similarity(query, candidate)
        for minimum, boost in self.tiers:
            if similarity >= minimum:
                return boost, f"Name≈{similarity:.2f}(+{boost:.2f})"
        return None


@dataclass(frozen=True)
class EntityAdapter:
    """Per-kind configuration of the generic resolver."""
    kind: str
    query_label: str
    catalog_label: str
    code_label: str
    catalog_legend: str
    # Name of the settings field holding the default fallback code
    fallback_setting: str
    signals: tuple = field(default_factory=tuple)
    # Fail fast when no candidate carries an embedding
    require_scorable_candidates: bool = False
    # Deterministic pre-match on seller-assigned IDs
    identifier_prematch: bool = False

    def candidate_code(self, candidate) -> Optional[str]:
        return candidate.code

    def describe_query(self, query) -> str:
        return query.semantic_description()

    def describe_candidate(self, candidate) -> str:
        return candidate.semantic_description()


# =============================================================================
# BUSINESS PARTNERS
# =============================================================================

def _partner_names(partner: BusinessPartner) -> list[str]:
    return [normalize_name(partner.card_name)]


BUSINESS_PARTNER_ADAPTER = EntityAdapter(
    kind="BP",
    query_label="supplier",
    catalog_label="business partners",
    code_label="CardCode",
    catalog_legend="CardCode: Name | VAT | City | Country",
    fallback_setting="FALLBACK_CARD_CODE",
    signals=(
        FieldSignal("VAT", 0.50, lambda q, c: same_vat(q.vat_id, c.vat_id)),
        FieldSignal("TaxNr", 0.20, lambda q, c: same_identifier(q.tax_number, c.federal_tax_id)),
        NameSignal(query_name=lambda q: normalize_name(q.name), candidate_names=_partner_names),
        FieldSignal("City", 0.05, lambda q, c: same_text(q.city, c.first_city)),
        FieldSignal("Country", 0.05, lambda q, c: same_text(q.country, c.first_country)),
    ),
    identifier_prematch=True,
)


# =============================================================================
# ITEMS
# =============================================================================

def _line_supplier_ids(line: LineItemQuery) -> set[str]:
    ids = {normalize_identifier(line.seller_assigned_id), normalize_identifier(line.global_id)}
    ids.discard(None)
    return ids


def _supplier_catalog_match(line: LineItemQuery, item: CatalogItem) -> bool:
    catalog_no = normalize_identifier(item.supplier_catalog_no)
    return catalog_no is not None and catalog_no in _line_supplier_ids(line)


def _barcode_match(line: LineItemQuery, item: CatalogItem) -> bool:
    barcode = normalize_barcode(item.barcode)
    return barcode is not None and barcode == normalize_barcode(line.barcode)


def _item_names(item: CatalogItem) -> list[str]:
    # Article names are not company names: keep tokens like "AG" or "CO"
    return [
        normalize_name(item.item_name, strip_legal_forms=False),
        normalize_name(item.foreign_name, strip_legal_forms=False),
        normalize_name(item.group_name, strip_legal_forms=False),
    ]


ITEM_ADAPTER = EntityAdapter(
    kind="ITM",
    query_label="billing line",
    catalog_label="articles",
    code_label="ItemCode",
    catalog_legend="ItemCode: ItemName | ForeignName | Barcode | SupplierNo | ProductGroup",
    fallback_setting="FALLBACK_ITEM_CODE",
    signals=(
        FieldSignal("SupplierCatalogNr", 0.50, _supplier_catalog_match),
        FieldSignal("Barcode", 0.50, _barcode_match),
        FieldSignal(
            "BuyerId<>ItemCode", 0.30,
            lambda q, c: same_identifier(q.buyer_assigned_id, c.item_code),
        ),
        NameSignal(
            query_name=lambda q: normalize_name(q.name, strip_legal_forms=False),
            candidate_names=_item_names,
        ),
    ),
    require_scorable_candidates=True,
)

