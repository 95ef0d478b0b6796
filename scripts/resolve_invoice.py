#!/usr/bin/env python3
"""
Resolve a parsed invoice against an exported catalog.

Reads the invoice (seller + trade lines) and the catalog exports as JSON,
embeds the catalog, and prints the card code and one item code per line.

Usage:
    # Full run: local embeddings + Claude arbitration
    python scripts/resolve_invoice.py invoice.json --partners partners.json --items items.json

    # Skip the Claude call; indecisive matches fall back to the static codes
    python scripts/resolve_invoice.py invoice.json --partners partners.json --items items.json --raw

    # Machine-readable output
    python scripts/resolve_invoice.py invoice.json --partners partners.json --items items.json --json

Input formats:
    invoice.json   {"seller": {...}, "lines": [{...}, ...]}
    partners.json  list of BusinessPartners records, or {"value": [...]}
    items.json     list of Items records, or {"value": [...]}
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging import setup_logging
from config.settings import settings
from matching.entity_resolution import LoggingSink
from matching.indexing import build_embedding_index
from matching.models import BusinessPartner, CatalogItem, LineItemQuery, SellerQuery
from matching.pipeline import InvoiceResolution, resolve_invoice


class NoArbitration:
    """Completer for --raw mode: never answers, so indecisive matches fall back."""

    async def complete(self, prompt: str) -> Optional[str]:
        return None


def load_json(path: Path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_records(path: Path) -> list[dict]:
    """Load a catalog export: a plain list or an OData ``{"value": [...]}`` page."""
    data = load_json(path)
    if isinstance(data, dict):
        data = data.get("value", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of records")
    return data


async def run(args, embedder, completer) -> InvoiceResolution:
    """Load inputs, build both catalog indexes and resolve the invoice."""
    invoice = load_json(args.invoice)
    seller = SellerQuery.from_mapping(invoice.get("seller") or {})
    lines = [LineItemQuery.from_mapping(line) for line in invoice.get("lines") or []]

    partners = [BusinessPartner.from_mapping(r) for r in load_records(args.partners)]
    items = [CatalogItem.from_mapping(r) for r in load_records(args.items)]

    partner_index = await build_embedding_index(partners, embedder)
    item_index = await build_embedding_index(items, embedder)

    return await resolve_invoice(
        seller, lines, partners, items, partner_index, item_index,
        embedder, completer,
        sink=LoggingSink(),
        concurrency=args.concurrency,
    )


def build_oracles(raw: bool):
    """Create the embedder and completer. Raises ImportError without the embeddings extra."""
    from matching.providers import ClaudeCompleter, SentenceTransformerEmbedder

    embedder = SentenceTransformerEmbedder()
    completer = NoArbitration() if raw else ClaudeCompleter()
    return embedder, completer


def format_resolution(resolution: InvoiceResolution, lines: list[dict]) -> str:
    out = []
    out.append("=" * 60)
    out.append("INVOICE RESOLUTION")
    out.append("=" * 60)
    seller = resolution.seller
    out.append(f"Seller -> {seller.code} ({seller.outcome.value}"
               f"{', ' + seller.failure.value if seller.failure else ''})")
    for i, decision in enumerate(resolution.lines):
        name = (lines[i].get("name") if i < len(lines) else None) or "?"
        out.append(f"  Line {i + 1}: {name[:40]:<40} -> {decision.code} ({decision.outcome.value})")
    out.append("=" * 60)
    out.append(f"Fallbacks used: {resolution.fallback_count}")
    return "\n".join(out)


def main():
    parser = argparse.ArgumentParser(
        description="Resolve invoice seller and lines to catalog codes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("invoice", type=Path, help="Parsed invoice JSON")
    parser.add_argument("--partners", type=Path, required=True, help="Business partner export JSON")
    parser.add_argument("--items", type=Path, required=True, help="Item export JSON")
    parser.add_argument(
        "--raw", action="store_true",
        help="Skip the Claude arbitration call",
    )
    parser.add_argument(
        "--concurrency", type=int, default=settings.LINE_CONCURRENCY,
        help=f"Lines resolved at the same time (default: {settings.LINE_CONCURRENCY})",
    )
    parser.add_argument("--json", action="store_true", help="Print codes as JSON")
    args = parser.parse_args()

    setup_logging()

    try:
        invoice_lines = load_json(args.invoice).get("lines") or []
        load_records(args.partners)
        load_records(args.items)
    except (OSError, ValueError, AttributeError) as e:
        print(f"ERROR: cannot read input: {e}", file=sys.stderr)
        sys.exit(1)

    if not args.raw and not settings.ANTHROPIC_API_KEY:
        print(
            "ERROR: ANTHROPIC_API_KEY not set in environment. "
            "Use --raw to skip the Claude API call, or set the key in .env",
            file=sys.stderr,
        )
        sys.exit(1)

    try:
        embedder, completer = build_oracles(args.raw)
    except ImportError as e:
        print(
            f"ERROR: {e.name or e} is not installed. "
            "Install the embeddings extra: pip install -e '.[embeddings]'",
            file=sys.stderr,
        )
        sys.exit(1)

    resolution = asyncio.run(run(args, embedder, completer))

    if args.json:
        print(json.dumps({
            "card_code": resolution.card_code,
            "item_codes": resolution.item_codes,
        }, indent=2))
    else:
        print(format_resolution(resolution, invoice_lines))


if __name__ == "__main__":
    main()
