"""
Pricing Service - offer availability, cheapest-first allocation and quotes

Every price a shopper sees is derived here from supplier offers:
- availability: units on offer and the cheapest supplier unit per product/variant
- allocation: split a quantity across the cheapest sellable offers, obeying
  each offer's available quantity (shared with order placement)
- quote: allocation priced at retail (supplier price plus platform margin)
- cart pricing: the single cheapest offer for a product or variant

Date: 2026-02-18
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from marketplace.core.exceptions import NotFoundError, ValidationError
from marketplace.core.money import CURRENCY, apply_margin, round2, to_decimal
from marketplace.domain.catalog import Offer, OfferKind, Product, ProductVariant, VariantOption
from marketplace.domain.pricing import (
    Allocation,
    AvailabilityLine,
    CartItemRequest,
    CartLine,
    CartPricing,
    Quote,
    QuoteItem,
    QuoteLine,
)
from marketplace.repositories.offer_repository import OfferRepository
from marketplace.repositories.product_repository import ProductRepository
from marketplace.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

SHORT_WARNING = "Some units could not be priced/allocated."

Pair = Tuple[str, Optional[str]]


# ============================================================================
# Pure helpers
# ============================================================================

def parse_availability_items(raw_values: Iterable[str], include_base: bool = False) -> List[Pair]:
    """
    Parse "pid:vid,pid:" query values into unique (product_id, variant_id) pairs

    A blank variant id means the base product. Order of first appearance is
    kept. With include_base, every variant pair also yields its base pair.
    """
    pairs: List[Pair] = []
    seen = set()

    def add(product_id: str, variant_id: Optional[str]):
        key = f"{product_id}::{variant_id or ''}"
        if key not in seen:
            seen.add(key)
            pairs.append((product_id, variant_id))

    for raw in raw_values or []:
        for token in str(raw).split(","):
            token = token.strip()
            if not token:
                continue
            product_id, _, variant_id = token.partition(":")
            product_id = product_id.strip()
            variant_id = variant_id.strip() or None
            if not product_id:
                continue
            add(product_id, variant_id)
            if include_base and variant_id:
                add(product_id, None)

    return pairs


def sort_offers(offers: Iterable[Offer]) -> List[Offer]:
    """Cheapest first; on equal price the offer with more stock first"""
    return sorted(offers, key=lambda o: (o.unit_price, -o.available_qty))


def offers_for_pair(offers: Iterable[Offer], product_id: str, variant_id: Optional[str]) -> List[Offer]:
    """Offers listed exactly for this product (variant_id None) or this variant"""
    if variant_id:
        return [o for o in offers if o.kind == OfferKind.VARIANT and o.variant_id == variant_id]
    return [o for o in offers if o.kind == OfferKind.BASE and o.product_id == product_id]


def pair_pool(offers: Iterable[Offer], product_id: str, variant_id: Optional[str]) -> List[Offer]:
    """Sellable offers listed exactly for this product or variant, cheapest first"""
    return sort_offers(o for o in offers_for_pair(offers, product_id, variant_id) if o.sellable)


def candidate_pool(offers: Iterable[Offer], product_id: str, variant_id: Optional[str]) -> List[Offer]:
    """
    Sellable offers that can fill a line, cheapest first

    A variant line can be filled by the variant's own offers or by base
    offers on the product; a base line only by base offers. Used at order
    placement; quotes price each pair from pair_pool.
    """
    offers = list(offers)
    pool = [o for o in offers if o.kind == OfferKind.BASE and o.product_id == product_id]
    if variant_id:
        pool += [o for o in offers if o.kind == OfferKind.VARIANT and o.variant_id == variant_id]
    return sort_offers(o for o in pool if o.sellable)


def allocate_greedy(
    candidates: List[Offer],
    qty: int,
    remaining: Optional[Dict[str, int]] = None
) -> List[Tuple[Offer, int]]:
    """
    Split qty across candidates in the given order

    Takes min(still needed, still available) from each offer. remaining maps
    offer id -> units left and is updated in place, so several lines can
    draw on one pool without overselling.

    Returns:
        [(offer, units taken)] in allocation order; may cover less than qty
    """
    if remaining is None:
        remaining = {}

    picks: List[Tuple[Offer, int]] = []
    need = qty
    for offer in candidates:
        if need <= 0:
            break
        available = remaining.get(offer.id, offer.available_qty)
        if available <= 0:
            continue
        take = min(need, available)
        remaining[offer.id] = available - take
        picks.append((offer, take))
        need -= take
    return picks


def summarize_availability(pairs: List[Pair], offers: List[Offer]) -> List[AvailabilityLine]:
    """Units on offer and cheapest supplier unit for each pair, in request order"""
    lines = []
    for product_id, variant_id in pairs:
        listed = [
            o for o in offers_for_pair(offers, product_id, variant_id)
            if o.is_active and o.in_stock
        ]
        total = sum(max(0, o.available_qty) for o in listed)
        prices = [o.unit_price for o in listed if o.available_qty > 0 and o.unit_price > 0]
        lines.append(AvailabilityLine(
            product_id=product_id,
            variant_id=variant_id,
            total_available=total,
            cheapest_supplier_unit=min(prices) if prices else None,
        ))
    return lines


def validate_quote_items(items: List[QuoteItem]) -> List[QuoteItem]:
    """Normalize kind/variant and reject lines without product or positive qty"""
    if not items:
        raise ValidationError("items must be a non-empty array")

    normalized = []
    for index, item in enumerate(items):
        if not item.product_id or not isinstance(item.qty, int) or item.qty <= 0:
            raise ValidationError(f"Invalid item at index {index}: productId and a positive integer qty are required")
        kind = item.kind or (OfferKind.VARIANT if item.variant_id else OfferKind.BASE)
        variant_id = item.variant_id if kind == OfferKind.VARIANT else None
        if kind == OfferKind.VARIANT and not variant_id:
            raise ValidationError(f"Invalid item at index {index}: variantId is required for VARIANT lines")
        normalized.append(item.model_copy(update={
            "kind": kind,
            "variant_id": variant_id,
            "key": item.key or f"{item.product_id}::{variant_id or ''}",
        }))
    return normalized


def build_quote(items: List[QuoteItem], offers: List[Offer], margin_percent: Decimal) -> Quote:
    """
    Price validated quote items against the offers

    Each line draws only on offers listed for its own product/variant pair;
    lines on the same pair share that pool.
    """
    remaining: Dict[str, int] = {}
    lines: List[QuoteLine] = []

    for item in items:
        pool = pair_pool(offers, item.product_id, item.variant_id)
        picks = allocate_greedy(pool, item.qty, remaining)

        allocations = []
        for offer, take in picks:
            unit = apply_margin(offer.unit_price, margin_percent)
            allocations.append(Allocation(
                offer_id=offer.id,
                offer_kind=offer.kind,
                supplier_id=offer.supplier_id,
                supplier_name=offer.supplier_name,
                qty=take,
                supplier_unit_price=offer.unit_price,
                unit_price=unit,
                line_total=round2(unit * take),
            ))

        qty_priced = sum(a.qty for a in allocations)
        line_total = round2(sum((a.line_total for a in allocations), Decimal("0")))
        units = [a.unit_price for a in allocations]

        lines.append(QuoteLine(
            key=item.key,
            product_id=item.product_id,
            variant_id=item.variant_id,
            kind=item.kind,
            qty_requested=item.qty,
            qty_priced=qty_priced,
            allocations=allocations,
            line_total=line_total,
            min_unit=min(units) if units else Decimal("0"),
            max_unit=max(units) if units else Decimal("0"),
            average_unit=round2(line_total / item.qty),
            currency=CURRENCY,
            warnings=[] if qty_priced >= item.qty else [SHORT_WARNING],
        ))

    subtotal = round2(sum((line.line_total for line in lines), Decimal("0")))
    return Quote(currency=CURRENCY, margin_percent=margin_percent, subtotal=subtotal, lines=lines)


def base_qty_by_supplier(offers: Iterable[Offer]) -> Dict[str, int]:
    """Units on active, in-stock base offers, summed per supplier"""
    totals: Dict[str, int] = {}
    for offer in offers:
        if offer.kind != OfferKind.BASE or not offer.is_active or not offer.in_stock:
            continue
        totals[offer.supplier_id] = totals.get(offer.supplier_id, 0) + max(0, offer.available_qty)
    return totals


def effective_qty(offer: Offer, base_totals: Dict[str, int]) -> int:
    """
    Units a supplier can really ship for an offer

    A variant offer is capped by the supplier's base stock when both are
    positive; otherwise whichever of the two is positive counts.
    """
    own = max(0, offer.available_qty)
    if offer.kind == OfferKind.BASE:
        return own
    base = base_totals.get(offer.supplier_id, 0)
    if own > 0 and base > 0:
        return min(own, base)
    return own if own > 0 else base


def resolve_variant(
    product: Product,
    selected: List[VariantOption],
    variant_hint: Optional[str]
) -> Optional[ProductVariant]:
    """First active variant carrying every selected option, else the hinted variant"""
    if selected:
        for variant in product.variants:
            if variant.is_active and variant.matches(selected):
                return variant
    return product.variant(variant_hint)


def choose_cart_offer(
    offers: List[Offer],
    product_id: str,
    variant_id: Optional[str]
) -> Tuple[Optional[Offer], str]:
    """
    Cheapest usable offer for a cart line and where it came from

    Returns:
        (offer or None, source) with source one of VARIANT_OFFER,
        BASE_OFFER_FALLBACK, BASE_OFFER or RETAIL_FALLBACK
    """
    base_totals = base_qty_by_supplier(offers)

    def cheapest(candidates: List[Offer]) -> Optional[Offer]:
        usable = [
            o for o in candidates
            if o.is_active and o.in_stock and o.unit_price > 0 and effective_qty(o, base_totals) > 0
        ]
        ordered = sorted(usable, key=lambda o: (o.unit_price, -effective_qty(o, base_totals)))
        return ordered[0] if ordered else None

    base_offer = cheapest(offers_for_pair(offers, product_id, None))

    if variant_id:
        variant_offer = cheapest(offers_for_pair(offers, product_id, variant_id))
        if variant_offer:
            return variant_offer, "VARIANT_OFFER"
        if base_offer:
            return base_offer, "BASE_OFFER_FALLBACK"
    elif base_offer:
        return base_offer, "BASE_OFFER"

    return None, "RETAIL_FALLBACK"


def price_cart_item(
    request: CartItemRequest,
    product: Product,
    offers: List[Offer],
    margin_percent: Decimal
) -> CartLine:
    """Authoritative server price for one cart line"""
    variant = resolve_variant(product, request.selected_options, request.variant_id)
    variant_id = variant.id if variant else None

    offer, source = choose_cart_offer(offers, product.id, variant_id)

    if offer is not None:
        unit_price = apply_margin(offer.unit_price, margin_percent)
    else:
        fallbacks = [
            variant.retail_price if variant else None,
            product.retail_price,
            request.unit_price_client,
        ]
        unit_price = next(
            (round2(price) for price in fallbacks if price is not None and to_decimal(price) > 0),
            Decimal("0.00"),
        )

    quantity = max(1, request.quantity or 1)

    return CartLine(
        product_id=product.id,
        variant_id=variant_id,
        title=request.title or product.title,
        unit_price=unit_price,
        quantity=quantity,
        line_total=round2(unit_price * quantity),
        selected_options=request.selected_options,
        pricing=CartPricing(
            supplier_id=offer.supplier_id if offer else None,
            offer_id=offer.id if offer else None,
            supplier_price=offer.unit_price if offer else None,
            margin_percent=margin_percent,
            source=source,
        ),
    )


# ============================================================================
# Service
# ============================================================================

class PricingService:
    """Loads products, offers and margin, then applies the pure helpers above"""

    def __init__(
        self,
        offer_repo: Optional[OfferRepository] = None,
        product_repo: Optional[ProductRepository] = None,
        settings_service: Optional[SettingsService] = None
    ):
        self.offer_repo = offer_repo or OfferRepository()
        self.product_repo = product_repo or ProductRepository()
        self.settings_service = settings_service or SettingsService()

    def availability(self, raw_items: List[str], include_base: bool = False) -> List[AvailabilityLine]:
        pairs = parse_availability_items(raw_items, include_base=include_base)
        if not pairs:
            raise ValidationError('Query param "items" is required (e.g. items=productId:variantId,productId:)')

        product_ids = list(dict.fromkeys(product_id for product_id, _ in pairs))
        offers = self.offer_repo.find_by_products(product_ids)
        return summarize_availability(pairs, offers)

    def quote(self, items: List[QuoteItem]) -> Quote:
        items = validate_quote_items(items)
        product_ids = list(dict.fromkeys(item.product_id for item in items))
        offers = self.offer_repo.find_by_products(product_ids)
        margin = self.settings_service.margin_percent()

        quote = build_quote(items, offers, margin)
        short = [line.key for line in quote.lines if not line.fully_priced]
        if short:
            logger.info(f"Quote could not fully allocate lines: {short}")
        return quote

    def price_cart_item(self, request: CartItemRequest) -> CartLine:
        if not request.product_id:
            raise ValidationError("productId is required")

        product = self.product_repo.find_by_id(request.product_id)
        if not product:
            raise NotFoundError("Product not found")

        offers = self.offer_repo.find_by_products([product.id])
        margin = self.settings_service.margin_percent()
        return price_cart_item(request, product, offers, margin)
