"""
Unit tests for availability, allocation, quotes and cart pricing

The pure helpers are tested directly; PricingService is tested with mocked
repositories and settings.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from marketplace.core.exceptions import NotFoundError, ValidationError
from marketplace.domain.catalog import OfferKind, Product, ProductVariant, VariantOption
from marketplace.domain.pricing import CartItemRequest, QuoteItem
from marketplace.services.pricing_service import (
    SHORT_WARNING,
    PricingService,
    allocate_greedy,
    build_quote,
    candidate_pool,
    choose_cart_offer,
    effective_qty,
    base_qty_by_supplier,
    parse_availability_items,
    price_cart_item,
    resolve_variant,
    sort_offers,
    summarize_availability,
    validate_quote_items,
)


class TestParseAvailabilityItems:

    def test_parses_pairs_and_base_tokens(self):
        pairs = parse_availability_items(["p1:v1,p1:", "p2"])
        assert pairs == [("p1", "v1"), ("p1", None), ("p2", None)]

    def test_duplicates_and_blanks_are_dropped(self):
        pairs = parse_availability_items(["p1:v1, ,p1:v1", ":v9", "p1:v1"])
        assert pairs == [("p1", "v1")]

    def test_include_base_adds_base_pair_for_variants(self):
        pairs = parse_availability_items(["p1:v1,p2:v2"], include_base=True)
        assert pairs == [("p1", "v1"), ("p1", None), ("p2", "v2"), ("p2", None)]

    def test_no_values(self):
        assert parse_availability_items([]) == []


class TestCandidatePool:

    def test_variant_line_uses_variant_and_base_offers(self, make_offer):
        offers = [
            make_offer("base-a", unit_price="1000", available_qty=5),
            make_offer("base-empty", unit_price="900", available_qty=0),
            make_offer("var-a", kind=OfferKind.VARIANT, variant_id="v1", unit_price="800", available_qty=3),
            make_offer("var-other", kind=OfferKind.VARIANT, variant_id="v2", unit_price="100", available_qty=3),
        ]

        pool = candidate_pool(offers, "prod-1", "v1")

        assert [o.id for o in pool] == ["var-a", "base-a"]

    def test_base_line_uses_base_offers_only(self, make_offer):
        offers = [
            make_offer("base-a", unit_price="1000"),
            make_offer("var-a", kind=OfferKind.VARIANT, variant_id="v1", unit_price="800"),
        ]

        pool = candidate_pool(offers, "prod-1", None)

        assert [o.id for o in pool] == ["base-a"]

    def test_inactive_and_unpriced_offers_are_not_sellable(self, make_offer):
        offers = [
            make_offer("inactive", is_active=False),
            make_offer("out", in_stock=False),
            make_offer("free", unit_price="0"),
            make_offer("ok"),
        ]

        assert [o.id for o in candidate_pool(offers, "prod-1", None)] == ["ok"]

    def test_equal_price_prefers_more_stock(self, make_offer):
        offers = [
            make_offer("small", unit_price="500", available_qty=2),
            make_offer("large", unit_price="500", available_qty=9),
        ]

        assert [o.id for o in sort_offers(offers)] == ["large", "small"]


class TestAllocateGreedy:

    def test_splits_across_offers_cheapest_first(self, make_offer):
        cheap = make_offer("cheap", available_qty=3)
        dear = make_offer("dear", unit_price="1500", available_qty=5)
        remaining = {}

        picks = allocate_greedy([cheap, dear], 6, remaining)

        assert [(o.id, take) for o, take in picks] == [("cheap", 3), ("dear", 3)]
        assert remaining == {"cheap": 0, "dear": 2}

    def test_shared_remaining_prevents_overselling(self, make_offer):
        offer = make_offer("only", available_qty=4)
        remaining = {}

        first = allocate_greedy([offer], 3, remaining)
        second = allocate_greedy([offer], 3, remaining)

        assert first[0][1] == 3
        assert second[0][1] == 1

    def test_short_allocation(self, make_offer):
        picks = allocate_greedy([make_offer(available_qty=2)], 5)
        assert sum(take for _, take in picks) == 2


class TestSummarizeAvailability:

    def test_totals_and_cheapest_per_pair(self, make_offer):
        offers = [
            make_offer("a", unit_price="1000", available_qty=4),
            make_offer("b", unit_price="900", available_qty=2),
            make_offer("c", unit_price="100", available_qty=50, is_active=False),
            make_offer("v", kind=OfferKind.VARIANT, variant_id="v1", unit_price="1200", available_qty=1),
        ]

        lines = summarize_availability([("prod-1", None), ("prod-1", "v1"), ("prod-1", "v9")], offers)

        assert lines[0].total_available == 6
        assert lines[0].cheapest_supplier_unit == Decimal("900")
        assert lines[1].total_available == 1
        assert lines[2].total_available == 0
        assert lines[2].cheapest_supplier_unit is None


class TestQuote:

    def test_validate_rejects_empty_items(self):
        with pytest.raises(ValidationError):
            validate_quote_items([])

    def test_validate_rejects_non_positive_qty(self):
        with pytest.raises(ValidationError, match="index 0"):
            validate_quote_items([QuoteItem(product_id="prod-1", qty=0)])

    def test_validate_requires_variant_for_variant_kind(self):
        with pytest.raises(ValidationError, match="variantId"):
            validate_quote_items([QuoteItem(product_id="prod-1", kind=OfferKind.VARIANT, qty=1)])

    def test_validate_infers_kind_and_key(self):
        items = validate_quote_items([
            QuoteItem(product_id="prod-1", variant_id="v1", qty=1),
            QuoteItem(product_id="prod-1", kind=OfferKind.BASE, variant_id="v1", qty=1),
        ])

        assert items[0].kind == OfferKind.VARIANT
        assert items[0].key == "prod-1::v1"
        assert items[1].variant_id is None
        assert items[1].key == "prod-1::"

    def test_build_quote_prices_allocations_at_retail(self, make_offer):
        offers = [
            make_offer("a", supplier_id="sup-1", unit_price="1000", available_qty=3),
            make_offer("b", supplier_id="sup-2", unit_price="1200", available_qty=5),
        ]
        items = validate_quote_items([QuoteItem(product_id="prod-1", qty=4)])

        quote = build_quote(items, offers, Decimal("10"))

        line = quote.lines[0]
        assert [(a.offer_id, a.qty, a.unit_price) for a in line.allocations] == [
            ("a", 3, Decimal("1100.00")),
            ("b", 1, Decimal("1320.00")),
        ]
        assert line.allocations[0].supplier_unit_price == Decimal("1000")
        assert line.line_total == Decimal("4620.00")
        assert line.average_unit == Decimal("1155.00")
        assert (line.min_unit, line.max_unit) == (Decimal("1100.00"), Decimal("1320.00"))
        assert line.warnings == []
        assert quote.subtotal == Decimal("4620.00")
        assert quote.supplier_ids == ["sup-1", "sup-2"]

    def test_build_quote_warns_when_short(self, make_offer):
        items = validate_quote_items([QuoteItem(product_id="prod-1", qty=10)])

        quote = build_quote(items, [make_offer(available_qty=8)], Decimal("0"))

        assert quote.lines[0].qty_priced == 8
        assert quote.lines[0].warnings == [SHORT_WARNING]
        assert not quote.lines[0].fully_priced

    def test_lines_on_same_product_share_stock(self, make_offer):
        items = validate_quote_items([
            QuoteItem(key="first", product_id="prod-1", qty=3),
            QuoteItem(key="second", product_id="prod-1", qty=3),
        ])

        quote = build_quote(items, [make_offer(available_qty=4)], Decimal("0"))

        assert [line.qty_priced for line in quote.lines] == [3, 1]

    def test_unpriced_line_reports_zero_units(self):
        items = validate_quote_items([QuoteItem(product_id="prod-1", qty=1)])

        quote = build_quote(items, [], Decimal("0"))

        line = quote.lines[0]
        assert (line.min_unit, line.max_unit, line.average_unit) == (Decimal("0"), Decimal("0"), Decimal("0.00"))
        assert quote.subtotal == Decimal("0.00")

    def test_average_unit_spreads_over_requested_qty(self, make_offer):
        items = validate_quote_items([QuoteItem(product_id="prod-1", qty=4)])

        quote = build_quote(items, [make_offer(unit_price="1000", available_qty=2)], Decimal("0"))

        assert quote.lines[0].line_total == Decimal("2000.00")
        assert quote.lines[0].average_unit == Decimal("500.00")

    def test_variant_line_does_not_draw_on_base_offers(self, make_offer):
        items = validate_quote_items([
            QuoteItem(product_id="prod-1", variant_id="v1", qty=5),
            QuoteItem(product_id="prod-1", qty=5),
        ])

        quote = build_quote(items, [make_offer("base-1", available_qty=5)], Decimal("0"))

        variant_line, base_line = quote.lines
        assert variant_line.qty_priced == 0
        assert variant_line.warnings == [SHORT_WARNING]
        assert base_line.qty_priced == 5
        assert [a.offer_id for a in base_line.allocations] == ["base-1"]
        assert base_line.warnings == []

    def test_variant_and_base_lines_use_their_own_offers(self, make_offer):
        offers = [
            make_offer("base-1", unit_price="900", available_qty=3),
            make_offer("var-1", kind=OfferKind.VARIANT, variant_id="v1", unit_price="1200", available_qty=2),
        ]
        items = validate_quote_items([
            QuoteItem(product_id="prod-1", variant_id="v1", qty=2),
            QuoteItem(product_id="prod-1", qty=3),
        ])

        quote = build_quote(items, offers, Decimal("0"))

        assert [a.offer_id for a in quote.lines[0].allocations] == ["var-1"]
        assert [a.offer_id for a in quote.lines[1].allocations] == ["base-1"]
        assert quote.subtotal == Decimal("5100.00")


class TestCartPricing:

    def test_variant_offer_wins(self, make_offer):
        offers = [
            make_offer("base", unit_price="900"),
            make_offer("var", kind=OfferKind.VARIANT, variant_id="v1", unit_price="1000"),
        ]

        offer, source = choose_cart_offer(offers, "prod-1", "v1")

        assert offer.id == "var"
        assert source == "VARIANT_OFFER"

    def test_variant_falls_back_to_base_offer(self, make_offer):
        offer, source = choose_cart_offer([make_offer("base")], "prod-1", "v1")

        assert offer.id == "base"
        assert source == "BASE_OFFER_FALLBACK"

    def test_base_line(self, make_offer):
        _, source = choose_cart_offer([make_offer("base")], "prod-1", None)
        assert source == "BASE_OFFER"

    def test_no_offer_means_retail_fallback(self):
        assert choose_cart_offer([], "prod-1", None) == (None, "RETAIL_FALLBACK")

    def test_variant_qty_capped_by_supplier_base_stock(self, make_offer):
        offers = [
            make_offer("base", supplier_id="sup-1", available_qty=4),
            make_offer("var", kind=OfferKind.VARIANT, variant_id="v1", supplier_id="sup-1", available_qty=10),
            make_offer("var-zero", kind=OfferKind.VARIANT, variant_id="v1", supplier_id="sup-1", available_qty=0),
        ]
        totals = base_qty_by_supplier(offers)

        assert effective_qty(offers[1], totals) == 4
        assert effective_qty(offers[2], totals) == 4

    def test_resolve_variant_by_selected_options(self):
        size_l = VariantOption(attribute_id="size", value_id="L")
        product = Product(id="prod-1", title="Kaftan", variants=[
            ProductVariant(id="v-m", product_id="prod-1", options=[VariantOption(attribute_id="size", value_id="M")]),
            ProductVariant(id="v-l", product_id="prod-1", options=[size_l]),
        ])

        assert resolve_variant(product, [size_l], None).id == "v-l"
        assert resolve_variant(product, [], "v-m").id == "v-m"
        assert resolve_variant(product, [], None) is None

    def test_price_from_offer_with_margin(self, make_offer):
        product = Product(id="prod-1", title="Kaftan")
        request = CartItemRequest(product_id="prod-1", quantity=2, unit_price_client=Decimal("1"))

        line = price_cart_item(request, product, [make_offer(unit_price="1000")], Decimal("20"))

        assert line.unit_price == Decimal("1200.00")
        assert line.line_total == Decimal("2400.00")
        assert line.pricing.source == "BASE_OFFER"
        assert line.pricing.supplier_price == Decimal("1000")

    def test_retail_fallback_order(self):
        variant = ProductVariant(id="v1", product_id="prod-1", retail_price=Decimal("1500"))
        product = Product(id="prod-1", title="Kaftan", retail_price=Decimal("1400"), variants=[variant])

        with_variant = price_cart_item(CartItemRequest(product_id="prod-1", variant_id="v1"), product, [], Decimal("0"))
        base_only = price_cart_item(CartItemRequest(product_id="prod-1"), product, [], Decimal("0"))
        client_only = price_cart_item(
            CartItemRequest(product_id="prod-1", unit_price_client=Decimal("999")),
            Product(id="prod-1", title="Kaftan"), [], Decimal("0")
        )

        assert with_variant.unit_price == Decimal("1500.00")
        assert base_only.unit_price == Decimal("1400.00")
        assert client_only.unit_price == Decimal("999.00")
        assert client_only.pricing.source == "RETAIL_FALLBACK"

    def test_quantity_is_at_least_one(self):
        product = Product(id="prod-1", title="Kaftan", retail_price=Decimal("100"))

        line = price_cart_item(CartItemRequest(product_id="prod-1", quantity=0), product, [], Decimal("0"))

        assert line.quantity == 1


class TestPricingService:

    def _service(self, offers=None, product=None, margin="10"):
        offer_repo = MagicMock()
        offer_repo.find_by_products.return_value = offers or []
        product_repo = MagicMock()
        product_repo.find_by_id.return_value = product
        settings_service = MagicMock()
        settings_service.margin_percent.return_value = Decimal(margin)
        return PricingService(offer_repo, product_repo, settings_service), offer_repo

    def test_availability_requires_items(self):
        service, _ = self._service()

        with pytest.raises(ValidationError, match="items"):
            service.availability([])

    def test_availability_loads_offers_once_per_product(self, make_offer):
        service, offer_repo = self._service(offers=[make_offer()])

        lines = service.availability(["prod-1:,prod-1:v1"])

        offer_repo.find_by_products.assert_called_once_with(["prod-1"])
        assert len(lines) == 2

    def test_quote_uses_margin_setting(self, make_offer):
        service, _ = self._service(offers=[make_offer(unit_price="1000")], margin="5")

        quote = service.quote([QuoteItem(product_id="prod-1", qty=1)])

        assert quote.margin_percent == Decimal("5")
        assert quote.subtotal == Decimal("1050.00")

    def test_cart_price_unknown_product(self):
        service, _ = self._service(product=None)

        with pytest.raises(NotFoundError):
            service.price_cart_item(CartItemRequest(product_id="missing"))

    def test_cart_price_requires_product_id(self):
        service, _ = self._service()

        with pytest.raises(ValidationError):
            service.price_cart_item(CartItemRequest())
