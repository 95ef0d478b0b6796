#!/usr/bin/env python3
"""
Tests for ingestion, catalog indexing, the invoice pipeline, the oracle
adapters and the resolve_invoice script.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add project root and scripts to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))

from fakes import CountingEmbedder, FakeCompleter, FakeEmbedder, RecordingSink
from matching.exceptions import OracleError
from matching.indexing import build_embedding_index
from matching.models import BusinessPartner, CatalogItem, LineItemQuery, SellerQuery, contact_email
from matching.pipeline import resolve_invoice
from matching.providers import ClaudeCompleter, SentenceTransformerEmbedder
from matching.entity_resolution import MatchOutcome

PARTNER_RECORDS = [
    {
        "CardCode": "V20001",
        "CardName": "Omega Systems GmbH",
        "Address": "Hafenstr. 1",
        "City": "Hamburg",
        "Country": "DE",
        "VatIDNum": "DE123456789",
        "BPAddresses": [{"AddressName": "Lager", "City": "Bremen", "Country": "DE"}],
    },
    {
        "CardCode": "V20002",
        "CardName": "Zeta Logistik GmbH",
        "SupplierCatalogNr": "LIEF-4711",
    },
]

ITEM_RECORDS = [
    {"ItemCode": "E20001", "ItemName": "Hex bolt M8", "BarCode": "4006381333931",
     "ItemGroups": {"GroupName": "Fasteners"}},
    {"ItemCode": "E20002", "ItemName": "Washer M8", "Barcode": "4006381333948"},
]

INVOICE = {
    "seller": {
        "name": "Zeta Logistik GmbH",
        "id": "LIEF-4711",
        "city": "Berlin",
        "tax_registrations": [{"scheme_id": "VA", "no": "DE999999999"}],
        "contact": {"name": "Jana Roth", "EMailAddress": "jana@zeta.example"},
    },
    "lines": [
        {"name": "Hex bolt M8", "product_classifications": [{"class_name": "4006381333931"}]},
        {"name": "Washer M8", "product_classifications": [{"class_name": "4006381333948"}]},
        {"name": "Freight charge"},
    ],
}


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# INGESTION
# =============================================================================

def test_seller_from_mapping():
    seller = SellerQuery.from_mapping({
        "name": "  Zeta Logistik GmbH ",
        "id": "LIEF-4711",
        "global_id": "4000001000005",
        "street": "",
        "tax_registrations": [
            {"scheme_id": "fc", "no": "12/345/67890"},
            {"scheme_id": "VA", "no": " DE999999999 "},
        ],
        "contact": {"name": "Jana Roth", "Email": "jana@zeta.example"},
    })

    assert seller.name == "Zeta Logistik GmbH"
    assert seller.vat_id == "DE999999999"
    assert seller.tax_number == "12/345/67890"
    assert seller.street is None
    assert seller.contact_email == "jana@zeta.example"
    assert seller.supplier_ids() == ["lief-4711", "4000001000005"]
    assert seller.semantic_description().startswith("Code: LIEF-4711 | Name: Zeta Logistik GmbH")


@pytest.mark.parametrize("contact,expected", [
    ({"EmailAddress": "a@x.example"}, "a@x.example"),
    ({"EMailAddress": "b@x.example"}, "b@x.example"),
    ({"Email": " c@x.example "}, "c@x.example"),
    ({"email": "d@x.example"}, "d@x.example"),
    ({"EmailAddress": "  ", "Email": "e@x.example"}, "e@x.example"),
    ({"name": "No Mail"}, None),
    (None, None),
])
def test_contact_email_spellings(contact, expected):
    assert contact_email(contact) == expected


def test_line_from_mapping():
    line = LineItemQuery.from_mapping({
        "name": "Hex bolt M8",
        "seller_assigned_id": "ART-1005",
        "product_classifications": [{"class_name": "4006381333931"}, {"class_name": "ignored"}],
        "notes": [{"content": "zinc plated"}],
    })

    assert line.barcode == "4006381333931"
    assert line.note == "zinc plated"
    assert line.semantic_description() == (
        "ItemCode: ART-1005 | Name: Hex bolt M8 | ForeignName: zinc plated | Barcode: 4006381333931"
    )


def test_blank_line_description_is_never_empty():
    assert LineItemQuery().semantic_description() == " |  | "
    assert LineItemQuery.from_mapping({}).name is None


def test_catalog_from_mapping():
    omega = BusinessPartner.from_mapping(PARTNER_RECORDS[0])
    assert omega.street == "Hafenstr. 1"
    assert omega.first_city == "Bremen"
    assert omega.addresses[0].address_name == "Lager"

    zeta = BusinessPartner.from_mapping(PARTNER_RECORDS[1])
    assert zeta.addresses == ()
    assert zeta.first_city is None

    bolt = CatalogItem.from_mapping(ITEM_RECORDS[0])
    washer = CatalogItem.from_mapping(ITEM_RECORDS[1])
    assert bolt.group_name == "Fasteners"
    assert bolt.barcode == "4006381333931"
    assert washer.barcode == "4006381333948"
    assert bolt.semantic_description() == (
        "Code: E20001 | Name: Hex bolt M8 | Barcode: 4006381333931 | ProductGroup: Fasteners"
    )


# =============================================================================
# INDEXING
# =============================================================================

def test_build_embedding_index():
    items = [
        CatalogItem(item_code="E1", item_name="Bolt"),
        CatalogItem(item_code=None, item_name="No code"),
        CatalogItem(item_code="E2", item_name="Nut"),
        CatalogItem(item_code="E1", item_name="Bolt, newer record"),
    ]
    embedder = CountingEmbedder()

    index = run(build_embedding_index(items, embedder))

    assert index == {"E1": [3.0], "E2": [2.0]}
    assert embedder.calls == [
        "Code: E1 | Name: Bolt",
        "Code: E2 | Name: Nut",
        "Code: E1 | Name: Bolt, newer record",
    ]
    print(f"✓ Indexed {len(index)} items")


def test_build_embedding_index_propagates_errors():
    with pytest.raises(OracleError):
        run(build_embedding_index(
            [CatalogItem(item_code="E1", item_name="Bolt")],
            FakeEmbedder(error=OracleError("model not loaded")),
        ))


# =============================================================================
# PIPELINE
# =============================================================================

def test_resolve_invoice():
    """Seller by identifier, two lines by barcode, one line falls back."""
    partners = [BusinessPartner.from_mapping(r) for r in PARTNER_RECORDS]
    items = [CatalogItem.from_mapping(r) for r in ITEM_RECORDS]
    seller = SellerQuery.from_mapping(INVOICE["seller"])
    lines = [LineItemQuery.from_mapping(line) for line in INVOICE["lines"]]

    embedder = FakeEmbedder([1.0, 0.0])
    completer = FakeCompleter(None)
    sink = RecordingSink()

    async def resolve():
        partner_index = await build_embedding_index(partners, embedder)
        item_index = await build_embedding_index(items, embedder)
        return await resolve_invoice(
            seller, lines, partners, items, partner_index, item_index,
            embedder, completer, sink=sink, concurrency=2,
        )

    resolution = run(resolve())

    assert resolution.card_code == "V20002"
    assert resolution.seller.outcome == MatchOutcome.IDENTIFIER
    assert resolution.item_codes == ["E20001", "E20002", "E10000"]
    assert [d.outcome for d in resolution.lines] == [
        MatchOutcome.ACCEPTED, MatchOutcome.ACCEPTED, MatchOutcome.FALLBACK,
    ]
    assert resolution.fallback_count == 1
    # Only the freight line needed arbitration
    assert len(completer.prompts) == 1
    assert "Freight charge" in completer.prompts[0]
    print(f"✓ Resolved invoice: {resolution.card_code} {resolution.item_codes}")


def test_resolve_invoice_without_lines():
    resolution = run(resolve_invoice(
        None, [], [], [], {}, {}, FakeEmbedder([1.0]), FakeCompleter(None),
    ))

    assert resolution.card_code == "V10000"
    assert resolution.item_codes == []
    assert resolution.fallback_count == 1


# =============================================================================
# ORACLE ADAPTERS
# =============================================================================

class FakeMessages:
    def __init__(self, content):
        self.content = content
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(content=self.content)


def fake_client(content):
    return SimpleNamespace(messages=FakeMessages(content))


def test_claude_completer():
    client = fake_client([SimpleNamespace(type="text", text=" V20001\n")])
    completer = ClaudeCompleter(client=client, model="claude-test", max_tokens=16)

    assert run(completer.complete("Which partner?")) == "V20001"

    request = client.messages.requests[0]
    assert request["model"] == "claude-test"
    assert request["max_tokens"] == 16
    assert request["messages"] == [{"role": "user", "content": "Which partner?"}]


def test_claude_completer_without_text_raises():
    client = fake_client([SimpleNamespace(type="tool_use", id="t1")])
    with pytest.raises(OracleError):
        run(ClaudeCompleter(client=client).complete("Which partner?"))


class StubModel:
    def __init__(self, vectors):
        self.vectors = vectors
        self.texts = []

    def encode(self, texts):
        self.texts.extend(texts)
        return self.vectors


def test_sentence_transformer_embedder():
    model = StubModel([[0.25, 0.5]])
    embedder = SentenceTransformerEmbedder(model_name="stub", model=model)

    assert run(embedder.embed("Name: Bolt")) == [0.25, 0.5]
    assert model.texts == ["Name: Bolt"]

    with pytest.raises(OracleError):
        run(SentenceTransformerEmbedder(model_name="stub", model=StubModel([])).embed("x"))


# =============================================================================
# SCRIPT
# =============================================================================

def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_records(tmp_path):
    from resolve_invoice import load_records

    assert load_records(write_json(tmp_path / "a.json", ITEM_RECORDS)) == ITEM_RECORDS
    assert load_records(write_json(tmp_path / "b.json", {"value": ITEM_RECORDS})) == ITEM_RECORDS
    with pytest.raises(ValueError):
        load_records(write_json(tmp_path / "c.json", "not a list"))


def test_script_run(tmp_path):
    from resolve_invoice import NoArbitration, format_resolution
    from resolve_invoice import run as run_script

    args = argparse.Namespace(
        invoice=write_json(tmp_path / "invoice.json", INVOICE),
        partners=write_json(tmp_path / "partners.json", {"value": PARTNER_RECORDS}),
        items=write_json(tmp_path / "items.json", ITEM_RECORDS),
        concurrency=1,
    )

    resolution = run(run_script(args, FakeEmbedder([1.0, 0.0]), NoArbitration()))

    assert resolution.card_code == "V20002"
    assert resolution.item_codes == ["E20001", "E20002", "E10000"]

    report = format_resolution(resolution, INVOICE["lines"])
    assert "Seller -> V20002 (identifier)" in report
    assert "Fallbacks used: 1" in report


def test_setup_logging_adds_handlers_once():
    from config.logging import setup_logging

    logger = setup_logging("matching.cli_test", log_to_file=False)
    again = setup_logging("matching.cli_test", log_to_file=False)

    assert again is logger
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_main_reports_missing_embeddings_extra(tmp_path, monkeypatch, capsys):
    import resolve_invoice

    def missing_extra(raw):
        raise ImportError("No module named 'sentence_transformers'", name="sentence_transformers")

    monkeypatch.setattr(resolve_invoice, "build_oracles", missing_extra)
    monkeypatch.setattr(resolve_invoice, "setup_logging", lambda: None)
    monkeypatch.setattr(sys, "argv", [
        "resolve_invoice.py",
        str(write_json(tmp_path / "invoice.json", INVOICE)),
        "--partners", str(write_json(tmp_path / "partners.json", PARTNER_RECORDS)),
        "--items", str(write_json(tmp_path / "items.json", ITEM_RECORDS)),
        "--raw",
    ])

    with pytest.raises(SystemExit) as exit_info:
        resolve_invoice.main()

    assert exit_info.value.code == 1
    assert "ERROR: sentence_transformers is not installed" in capsys.readouterr().err
