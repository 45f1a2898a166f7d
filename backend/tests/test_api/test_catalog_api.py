"""
API tests for products, categories, availability, quote and checkout

Services are replaced through FastAPI dependency overrides.
"""
from decimal import Decimal
from unittest.mock import MagicMock

from marketplace.api.availability import get_pricing_service
from marketplace.api.checkout import get_checkout_service
from marketplace.api.products import get_catalog_service
from marketplace.core.auth import get_current_user
from marketplace.core.exceptions import ConflictError, NotFoundError, ValidationError
from marketplace.domain.catalog import Category, Product
from marketplace.domain.pricing import AvailabilityLine, Quote


class TestProductsApi:

    def test_list_products(self, app, client):
        service = MagicMock()
        service.list_products.return_value = (
            [Product(id="prod-1", title="Ankara Tote Bag", retail_price=Decimal("15000.00"))], 1
        )
        app.dependency_overrides[get_catalog_service] = lambda: service

        response = client.get("/api/products", params={"q": "tote", "limit": 10})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["data"][0]["retailPrice"] == 15000.0
        assert service.list_products.call_args.kwargs["search"] == "tote"

    def test_missing_product_is_404(self, app, client):
        service = MagicMock()
        service.get_product.side_effect = NotFoundError("Product not found")
        app.dependency_overrides[get_catalog_service] = lambda: service

        response = client.get("/api/products/nope")

        assert response.status_code == 404
        assert response.json() == {"detail": "Product not found"}

    def test_unexpected_error_is_500(self, app, client):
        service = MagicMock()
        service.get_product.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_catalog_service] = lambda: service

        response = client.get("/api/products/prod-1")

        assert response.status_code == 500
        assert "boom" in response.json()["detail"]


class TestCategoriesApi:

    def test_public_list(self, app, client):
        service = MagicMock()
        service.list_categories.return_value = [Category(id="cat-1", name="Fashion", slug="fashion")]
        app.dependency_overrides[get_catalog_service] = lambda: service

        response = client.get("/api/categories")

        assert response.status_code == 200
        assert response.json()["data"][0]["slug"] == "fashion"

    def test_create_requires_sign_in(self, app, client):
        app.dependency_overrides[get_catalog_service] = lambda: MagicMock()

        response = client.post("/api/categories", json={"name": "Fashion"})

        assert response.status_code == 401

    def test_shopper_cannot_create(self, app, client, shopper):
        app.dependency_overrides[get_catalog_service] = lambda: MagicMock()
        app.dependency_overrides[get_current_user] = lambda: shopper

        response = client.post("/api/categories", json={"name": "Fashion"})

        assert response.status_code == 403

    def test_admin_creates(self, app, client, admin_user):
        service = MagicMock()
        service.create_category.return_value = Category(id="cat-2", name="Home & Kitchen", slug="home-kitchen")
        app.dependency_overrides[get_catalog_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: admin_user

        response = client.post("/api/categories", json={"name": "Home & Kitchen"})

        assert response.status_code == 201
        assert response.json()["data"]["id"] == "cat-2"

    def test_duplicate_name_is_409(self, app, client, super_admin_user):
        service = MagicMock()
        service.create_category.side_effect = ConflictError("Category name already exists")
        app.dependency_overrides[get_catalog_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: super_admin_user

        response = client.post("/api/categories", json={"name": "Fashion"})

        assert response.status_code == 409


class TestAvailabilityApi:

    def _override(self, app, lines=None, error=None):
        service = MagicMock()
        service.availability.return_value = lines or []
        service.availability.side_effect = error
        app.dependency_overrides[get_pricing_service] = lambda: service
        return service

    def test_mounted_under_every_prefix(self, app, client):
        line = AvailabilityLine(product_id="prod-1", total_available=12, cheapest_supplier_unit=Decimal("1000.00"))
        service = self._override(app, [line])

        for path in ("/api/catalog/availability", "/api/products/availability", "/api/supplier-offers/availability"):
            response = client.get(path, params={"items": "prod-1:", "includeBase": "1"})
            assert response.status_code == 200
            assert response.json()["data"][0]["totalAvailable"] == 12

        assert service.availability.call_args.kwargs["include_base"] is True
        assert service.availability.call_args.args[0] == ["prod-1:"]

    def test_no_pairs_is_400(self, app, client):
        self._override(app, error=ValidationError("items is required"))

        response = client.get("/api/catalog/availability")

        assert response.status_code == 400


class TestQuoteAndCheckoutApi:

    def test_quote(self, app, client):
        service = MagicMock()
        service.quote.return_value = Quote(margin_percent=Decimal("10"), subtotal=Decimal("2200.00"))
        app.dependency_overrides[get_pricing_service] = lambda: service

        response = client.post("/api/catalog/quote", json={"items": [{"productId": "prod-1", "qty": 2}]})

        assert response.status_code == 200
        assert response.json()["data"]["subtotal"] == 2200.0
        item = service.quote.call_args.args[0][0]
        assert (item.product_id, item.qty) == ("prod-1", 2)

    def test_checkout_summary(self, app, client):
        service = MagicMock()
        summary = MagicMock()
        summary.to_dict.return_value = {"subtotal": 3000.0, "total": 3186.0}
        service.summary.return_value = {"summary": summary, "quote": Quote()}
        app.dependency_overrides[get_checkout_service] = lambda: service

        response = client.post("/api/checkout/summary", json={"items": []})

        assert response.status_code == 200
        assert response.json()["data"]["total"] == 3186.0
        assert response.json()["data"]["lines"] == []
