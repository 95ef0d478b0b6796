"""
Invoice Entity Matcher - Data Models

Query entities (what an invoice says) and catalog candidates (what the
business system knows). All models are immutable; they are built once at the
ingestion boundary by the ``from_mapping`` constructors and only read by the
resolution engine.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

# Upstream invoice schemas spell the contact e-mail field differently.
CONTACT_EMAIL_KEYS = ("EmailAddress", "EMailAddress", "Email", "email_address", "email")

# Tax registration scheme IDs (UN/CEFACT): VA = VAT ID, FC = fiscal code / tax number
SCHEME_VAT = "VA"
SCHEME_TAX_NUMBER = "FC"


def _clean(value: Any) -> Optional[str]:
    """Stringify and trim a raw field; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _join_semantic(parts: Sequence[tuple[str, Optional[str]]]) -> str:
    """Render ``label: value`` pairs as one pipe-separated line, skipping blanks."""
    return " | ".join(f"{label}: {value}" for label, value in parts if value and value.strip())


def contact_email(contact: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Read the contact e-mail from an upstream contact record, whatever its spelling."""
    if not contact:
        return None
    for key in CONTACT_EMAIL_KEYS:
        email = _clean(contact.get(key))
        if email:
            return email
    return None


def _first_registration(registrations: Sequence[Mapping[str, Any]], scheme: str) -> Optional[str]:
    for registration in registrations or ():
        if str(registration.get("scheme_id", "")).upper() == scheme:
            return _clean(registration.get("no"))
    return None


# =============================================================================
# QUERY ENTITIES
# =============================================================================

@dataclass(frozen=True)
class SellerQuery:
    """The seller party of an incoming invoice."""
    name: Optional[str] = None
    party_id: Optional[str] = None
    global_id: Optional[str] = None
    legal_org_id: Optional[str] = None
    vat_id: Optional[str] = None
    tax_number: Optional[str] = None
    street: Optional[str] = None
    postcode: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None

    def semantic_description(self) -> str:
        return _join_semantic([
            ("Code", self.party_id),
            ("Name", self.name),
            ("EmailAddress", self.contact_email),
            ("ContactPerson", self.contact_name),
            ("Street", self.street),
            ("ZipCode", self.postcode),
            ("City", self.city),
            ("Country", self.country),
            ("VatIDNum", self.vat_id),
            ("FederalTaxID", self.tax_number),
        ])

    def supplier_ids(self) -> list[str]:
        """
        IDs the seller assigned to itself, trimmed and lower-cased.

        Used by the identifier pre-match against the catalog's supplier
        catalog number, federal tax ID and VAT number.
        """
        ids: list[str] = []
        for raw in (self.party_id, self.global_id, self.legal_org_id):
            value = _clean(raw)
            if value and value.lower() not in ids:
                ids.append(value.lower())
        return ids

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SellerQuery":
        """
        Build from a parsed invoice's seller block.

        Expected keys: name, id, global_id, legal_organization_id, street,
        postcode, city, country, tax_registrations (list of
        ``{"scheme_id": "VA"|"FC", "no": ...}``) and contact (``{"name": ...,
        "EmailAddress"|"EMailAddress"|"Email": ...}``).
        """
        contact = data.get("contact") or {}
        registrations = data.get("tax_registrations") or []
        return cls(
            name=_clean(data.get("name")),
            party_id=_clean(data.get("id")),
            global_id=_clean(data.get("global_id")),
            legal_org_id=_clean(data.get("legal_organization_id")),
            vat_id=_first_registration(registrations, SCHEME_VAT),
            tax_number=_first_registration(registrations, SCHEME_TAX_NUMBER),
            street=_clean(data.get("street")),
            postcode=_clean(data.get("postcode")),
            city=_clean(data.get("city")),
            country=_clean(data.get("country")),
            contact_name=_clean(contact.get("name")),
            contact_email=contact_email(contact),
        )


@dataclass(frozen=True)
class LineItemQuery:
    """One trade line of an incoming invoice."""
    name: Optional[str] = None
    seller_assigned_id: Optional[str] = None
    buyer_assigned_id: Optional[str] = None
    global_id: Optional[str] = None
    barcode: Optional[str] = None
    note: Optional[str] = None

    def semantic_description(self) -> str:
        description = _join_semantic([
            ("ItemCode", self.seller_assigned_id),
            ("Name", self.name),
            ("ForeignName", self.note),
            ("Barcode", self.barcode),
            ("SupplierNo", self.global_id),
            ("ProductGroup", self.buyer_assigned_id),
        ])
        if not description:
            # Never embed an empty string
            description = " | ".join(
                v or "" for v in (self.buyer_assigned_id, self.seller_assigned_id, self.name)
            )
        return description

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LineItemQuery":
        """
        Build from a parsed invoice trade line.

        Expected keys: name, seller_assigned_id, buyer_assigned_id, global_id,
        product_classifications (list of ``{"class_name": ...}``, the first one
        carries the barcode) and notes (list of ``{"content": ...}``).
        """
        classifications = data.get("product_classifications") or []
        notes = data.get("notes") or []
        barcode = _clean(classifications[0].get("class_name")) if classifications else None
        note = _clean(notes[0].get("content")) if notes else None
        return cls(
            name=_clean(data.get("name")),
            seller_assigned_id=_clean(data.get("seller_assigned_id")),
            buyer_assigned_id=_clean(data.get("buyer_assigned_id")),
            global_id=_clean(data.get("global_id")),
            barcode=barcode,
            note=note,
        )


# =============================================================================
# CATALOG CANDIDATES
# =============================================================================

@dataclass(frozen=True)
class BPAddress:
    """One address row of a business partner."""
    address_name: Optional[str] = None
    address_type: Optional[str] = None
    street: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class BusinessPartner:
    """A supplier business partner from the catalog."""
    card_code: Optional[str] = None
    card_name: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None
    street: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    house_bank_iban: Optional[str] = None
    federal_tax_id: Optional[str] = None
    vat_id: Optional[str] = None
    supplier_catalog_no: Optional[str] = None
    addresses: tuple[BPAddress, ...] = field(default_factory=tuple)

    @property
    def code(self) -> Optional[str]:
        return self.card_code

    @property
    def first_city(self) -> Optional[str]:
        """City of the first address row; None without rows."""
        return self.addresses[0].city if self.addresses else None

    @property
    def first_country(self) -> Optional[str]:
        return self.addresses[0].country if self.addresses else None

    def semantic_description(self) -> str:
        return _join_semantic([
            ("Code", self.card_code),
            ("Name", self.card_name),
            ("EmailAddress", self.email),
            ("ContactPerson", self.contact_person),
            ("Street", self.street),
            ("ZipCode", self.zip_code),
            ("City", self.city),
            ("Country", self.country),
            ("FederalTaxID", self.federal_tax_id),
            ("VatIDNum", self.vat_id),
            ("SupplierCatalogNr", self.supplier_catalog_no),
        ])

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BusinessPartner":
        """Build from a ``BusinessPartners`` record of the catalog API."""
        addresses = tuple(
            BPAddress(
                address_name=_clean(row.get("AddressName")),
                address_type=_clean(row.get("AddressType")),
                street=_clean(row.get("Street")),
                zip_code=_clean(row.get("ZipCode")),
                city=_clean(row.get("City")),
                country=_clean(row.get("Country")),
            )
            for row in data.get("BPAddresses") or []
        )
        return cls(
            card_code=_clean(data.get("CardCode")),
            card_name=_clean(data.get("CardName")),
            email=_clean(data.get("EmailAddress")),
            contact_person=_clean(data.get("ContactPerson")),
            # The catalog API calls the street "Address"
            street=_clean(data.get("Address")),
            zip_code=_clean(data.get("ZipCode")),
            city=_clean(data.get("City")),
            country=_clean(data.get("Country")),
            house_bank_iban=_clean(data.get("HouseBankIBAN")),
            federal_tax_id=_clean(data.get("FederalTaxID")),
            vat_id=_clean(data.get("VatIDNum")),
            supplier_catalog_no=_clean(data.get("SupplierCatalogNr")),
            addresses=addresses,
        )


@dataclass(frozen=True)
class CatalogItem:
    """An item master record from the catalog."""
    item_code: Optional[str] = None
    item_name: Optional[str] = None
    foreign_name: Optional[str] = None
    barcode: Optional[str] = None
    supplier_catalog_no: Optional[str] = None
    group_name: Optional[str] = None

    @property
    def code(self) -> Optional[str]:
        return self.item_code

    def semantic_description(self) -> str:
        return _join_semantic([
            ("Code", self.item_code),
            ("Name", self.item_name),
            ("ForeignName", self.foreign_name),
            ("Barcode", self.barcode),
            ("SupplierNo", self.supplier_catalog_no),
            ("ProductGroup", self.group_name),
        ])

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CatalogItem":
        """Build from an ``Items`` record of the catalog API (item groups expanded)."""
        groups = data.get("ItemGroups") or {}
        return cls(
            item_code=_clean(data.get("ItemCode")),
            item_name=_clean(data.get("ItemName")),
            foreign_name=_clean(data.get("ForeignName")),
            barcode=_clean(data.get("BarCode") or data.get("Barcode")),
            supplier_catalog_no=_clean(data.get("SupplierCatalogNo")),
            group_name=_clean(groups.get("GroupName")),
        )
