"""
API tests for public checkout settings and super-admin settings management
"""
from decimal import Decimal
from unittest.mock import MagicMock

from marketplace.api.settings import get_settings_service, split_ids
from marketplace.core.auth import get_current_user
from marketplace.core.exceptions import ConflictError, NotFoundError
from marketplace.domain.setting import Setting


def test_split_ids_flattens_and_keeps_duplicates():
    assert split_ids(["p1,p2", " p2 ", ""]) == ["p1", "p2", "p2"]


class TestPublicSettings:

    def test_public_values(self, app, client):
        service = MagicMock()
        service.public_settings.return_value = {
            "base_service_fee_ngn": Decimal("100"),
            "comms_unit_cost_ngn": Decimal("20"),
            "tax_mode": "NONE",
            "tax_rate_pct": Decimal("0"),
        }
        app.dependency_overrides[get_settings_service] = lambda: service

        response = client.get("/api/settings/public")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "baseServiceFeeNGN": 100.0,
            "commsUnitCostNGN": 20.0,
            "taxMode": "NONE",
            "taxRatePct": 0.0,
        }

    def test_service_fee_query(self, app, client):
        service = MagicMock()
        service.comms_service_fee.return_value = {
            "unit_fee": Decimal("20"),
            "notifications_count": 2,
            "suppliers_count": 2,
            "service_fee": Decimal("40"),
        }
        app.dependency_overrides[get_settings_service] = lambda: service

        response = client.get(
            "/api/settings/checkout/service-fee",
            params=[("productIds", "p1,p2"), ("productIds", "p3"), ("supplierIds", "s1")],
        )

        assert response.status_code == 200
        assert response.json()["data"]["serviceFee"] == 40.0
        service.comms_service_fee.assert_called_once_with(["p1", "p2", "p3"], ["s1"])


class TestSettingsAdmin:

    def test_admin_is_not_enough(self, app, client, admin_user):
        app.dependency_overrides[get_settings_service] = lambda: MagicMock()
        app.dependency_overrides[get_current_user] = lambda: admin_user

        assert client.get("/api/settings").status_code == 403

    def test_super_admin_lists(self, app, client, super_admin_user):
        service = MagicMock()
        service.list_settings.return_value = [Setting(id="set-1", key="margin_percent", value="10")]
        app.dependency_overrides[get_settings_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: super_admin_user

        response = client.get("/api/settings")

        assert response.json()["data"][0]["key"] == "margin_percent"

    def test_duplicate_key(self, app, client, super_admin_user):
        service = MagicMock()
        service.create_setting.side_effect = ConflictError("Setting key already exists")
        app.dependency_overrides[get_settings_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: super_admin_user

        response = client.post("/api/settings", json={"key": "margin_percent", "value": "12"})

        assert response.status_code == 409

    def test_delete(self, app, client, super_admin_user):
        service = MagicMock()
        app.dependency_overrides[get_settings_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: super_admin_user

        response = client.delete("/api/settings/set-1")

        assert response.status_code == 204
        service.delete_setting.assert_called_once_with("set-1")

    def test_delete_missing(self, app, client, super_admin_user):
        service = MagicMock()
        service.delete_setting.side_effect = NotFoundError("Setting not found")
        app.dependency_overrides[get_settings_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: super_admin_user

        assert client.delete("/api/settings/set-x").status_code == 404
