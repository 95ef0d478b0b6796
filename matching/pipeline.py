"""
Invoice resolution pipeline.

Resolves the seller of one invoice to a card code and every trade line to
an item code. Lines are independent and run concurrently, bounded by a
semaphore; results keep line order.

Usage:
    resolution = await resolve_invoice(
        seller, lines, partners, items, partner_index, item_index,
        embedder, completer, sink=LoggingSink(),
    )
    resolution.card_code, resolution.item_codes
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from config.settings import settings
from matching.models import BusinessPartner, CatalogItem, LineItemQuery, SellerQuery
from matching.entity_resolution.arbitration import Completer, Embedder
from matching.entity_resolution.events import SinkLike
from matching.entity_resolution.resolver import (
    MatchDecision,
    ResolverConfig,
    resolve_business_partner,
    resolve_item,
)

logger = logging.getLogger(__name__)


@dataclass
class InvoiceResolution:
    """Codes resolved for one invoice."""
    seller: MatchDecision
    lines: list[MatchDecision] = field(default_factory=list)

    @property
    def card_code(self) -> str:
        return self.seller.code

    @property
    def item_codes(self) -> list[str]:
        return [decision.code for decision in self.lines]

    @property
    def fallback_count(self) -> int:
        decisions = [self.seller, *self.lines]
        return sum(1 for decision in decisions if decision.is_fallback)


async def resolve_invoice(
    seller: Optional[SellerQuery],
    lines: Sequence[LineItemQuery],
    partners: Sequence[BusinessPartner],
    items: Sequence[CatalogItem],
    partner_index: Mapping[str, Sequence[float]],
    item_index: Mapping[str, Sequence[float]],
    embedder: Embedder,
    completer: Completer,
    sink: SinkLike = None,
    config: Optional[ResolverConfig] = None,
    concurrency: Optional[int] = None,
) -> InvoiceResolution:
    """
    Resolve the seller, then all lines concurrently.

    Args:
        seller: Invoice seller
        lines: Invoice trade lines
        partners / items: Loaded catalog entries
        partner_index / item_index: Catalog embedding indexes
        embedder / completer: Oracles shared by all resolutions
        sink: Event sink shared by all resolutions
        config: Resolver configuration
        concurrency: Max lines in flight (default: settings.LINE_CONCURRENCY)

    Returns:
        InvoiceResolution with one decision per line, in line order
    """
    seller_decision = await resolve_business_partner(
        seller, partners, partner_index, embedder, completer,
        settings.FALLBACK_CARD_CODE, sink, config,
    )

    semaphore = asyncio.Semaphore(max(1, concurrency or settings.LINE_CONCURRENCY))

    async def resolve_line(line: LineItemQuery) -> MatchDecision:
        async with semaphore:
            return await resolve_item(
                line, items, item_index, embedder, completer,
                settings.FALLBACK_ITEM_CODE, sink, config,
            )

    line_decisions = await asyncio.gather(*(resolve_line(line) for line in lines))

    resolution = InvoiceResolution(seller=seller_decision, lines=list(line_decisions))
    logger.info(
        "Invoice resolved: card code %s, %d lines, %d fallbacks",
        resolution.card_code, len(resolution.lines), resolution.fallback_count,
    )
    return resolution
