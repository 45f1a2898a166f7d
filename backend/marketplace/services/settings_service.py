"""
Settings Service - typed access to key/value platform settings

Values are stored as text; these helpers parse numbers, booleans and JSON
and fall back to a default when a key is missing or unparseable.
"""
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from marketplace.core.exceptions import ConflictError, NotFoundError, ValidationError
from marketplace.domain.setting import Setting, SettingCreate, SettingUpdate
from marketplace.repositories.offer_repository import OfferRepository
from marketplace.repositories.setting_repository import SettingRepository

logger = logging.getLogger(__name__)

MARGIN_KEYS = ["marginPercent", "pricingMarkupPercent", "markupPercent"]
BASE_SERVICE_FEE_KEYS = ["baseServiceFeeNGN", "serviceFeeBaseNGN", "platformBaseFeeNGN", "commsServiceFeeNGN"]
COMMS_UNIT_COST_KEYS = ["commsUnitCostNGN", "commsServiceFeeUnitNGN", "commsUnitFeeNGN"]
TAX_MODES = ("INCLUDED", "ADDED", "NONE")
TRUE_VALUES = ("true", "1", "yes", "on")


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Decimal from a stored value, or None when it is not a finite number"""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def first_number(values: Dict[str, str], keys: List[str], default: Decimal = Decimal("0")) -> Decimal:
    """First key in keys whose stored value parses as a number"""
    for key in keys:
        number = parse_decimal(values.get(key))
        if number is not None:
            return number
    return default


class SettingsService:
    """Read/write platform settings"""

    def __init__(self, repo: Optional[SettingRepository] = None, offer_repo: Optional[OfferRepository] = None):
        self.repo = repo or SettingRepository()
        self.offer_repo = offer_repo or OfferRepository()

    # ------------------------------------------------------------------
    # Typed readers
    # ------------------------------------------------------------------

    def read_setting(self, key: str) -> Optional[str]:
        setting = self.repo.find_by_key(key)
        return setting.value if setting else None

    def read_number_setting(self, key: str, default: Decimal = Decimal("0")) -> Decimal:
        number = parse_decimal(self.read_setting(key))
        return number if number is not None else default

    def read_boolean_setting(self, key: str, default: bool = False) -> bool:
        value = self.read_setting(key)
        if value is None or not value.strip():
            return default
        return value.strip().lower() in TRUE_VALUES

    def read_json_setting(self, key: str, default: Any = None) -> Any:
        value = self.read_setting(key)
        if not value:
            return default
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Setting {key} is not valid JSON")
            return default

    def write_setting(self, key: str, value: Optional[str]) -> Setting:
        return self.repo.upsert(key, value)

    # ------------------------------------------------------------------
    # Pricing settings
    # ------------------------------------------------------------------

    def margin_percent(self) -> Decimal:
        """Platform margin in percent; 0 when unset, negative or unreadable"""
        try:
            values = self.repo.find_values(MARGIN_KEYS)
        except Exception as e:
            logger.warning(f"Could not read margin setting, using 0: {e}")
            return Decimal("0")
        return max(first_number(values, MARGIN_KEYS), Decimal("0"))

    def public_settings(self) -> dict:
        """Fee and tax settings the storefront shows at checkout"""
        values = self.repo.find_values(
            BASE_SERVICE_FEE_KEYS + COMMS_UNIT_COST_KEYS + ["taxMode", "taxRatePct"]
        )
        tax_mode = (values.get("taxMode") or "").strip().upper()
        if tax_mode not in TAX_MODES:
            tax_mode = "INCLUDED"

        return {
            "base_service_fee_ngn": max(first_number(values, BASE_SERVICE_FEE_KEYS), Decimal("0")),
            "comms_unit_cost_ngn": max(first_number(values, COMMS_UNIT_COST_KEYS), Decimal("0")),
            "tax_mode": tax_mode,
            "tax_rate_pct": max(first_number(values, ["taxRatePct"]), Decimal("0")),
        }

    def comms_service_fee(
        self,
        product_ids: Optional[List[str]] = None,
        supplier_ids: Optional[List[str]] = None
    ) -> dict:
        """
        Communications fee: one unit fee per supplier that must be notified.

        supplierIds wins when given (duplicates count). Otherwise suppliers
        are derived from active offers on productIds, falling back to the
        number of products. Without either list the fee is 0.
        """
        unit_fee = self.public_settings()["comms_unit_cost_ngn"]
        product_ids = [p for p in (product_ids or []) if p]
        supplier_ids = [s for s in (supplier_ids or []) if s]

        if supplier_ids:
            notifications = len(supplier_ids)
            if len(product_ids) == 1:
                suppliers = 1
            else:
                suppliers = max(1, len(set(supplier_ids)))
        elif product_ids:
            distinct = self.offer_repo.active_supplier_ids(product_ids)
            count = len(distinct) if distinct else len(product_ids)
            notifications = max(1, count)
            suppliers = notifications
        else:
            notifications = 0
            suppliers = 0

        return {
            "unit_fee": unit_fee,
            "notifications_count": notifications,
            "suppliers_count": suppliers,
            "service_fee": unit_fee * notifications,
        }

    # ------------------------------------------------------------------
    # Admin CRUD
    # ------------------------------------------------------------------

    def list_settings(self) -> List[Setting]:
        return self.repo.find_all()

    def get_setting(self, setting_id: str) -> Setting:
        setting = self.repo.find_by_id(setting_id)
        if not setting:
            raise NotFoundError("Setting not found")
        return setting

    def create_setting(self, data: SettingCreate) -> Setting:
        key = (data.key or "").strip()
        if not key:
            raise ValidationError("key is required")
        if self.repo.find_by_key(key):
            raise ConflictError(f"Setting with key {key} already exists")
        return self.repo.create(key, data.value, data.is_public, data.meta)

    def update_setting(self, setting_id: str, data: SettingUpdate) -> Setting:
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No updatable fields provided")
        if "value" in fields and fields["value"] is None:
            fields["value"] = ""

        existing = self.get_setting(setting_id)
        new_key = fields.get("key")
        if new_key and new_key != existing.key and self.repo.find_by_key(new_key):
            raise ConflictError(f"Setting with key {new_key} already exists")

        updated = self.repo.update(setting_id, fields)
        if not updated:
            raise NotFoundError("Setting not found")
        return updated

    def delete_setting(self, setting_id: str) -> None:
        if not self.repo.delete(setting_id):
            raise NotFoundError("Setting not found")
