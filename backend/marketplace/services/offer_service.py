"""
Offer Service - supplier offer management

Suppliers list their own offers on live products and variants; admins can
manage any supplier's offers per product. Removing an offer only takes it
off sale, so past orders keep their chosen offer.
"""
import logging
from typing import List, Optional

from marketplace.core.auth import TokenUser, is_admin
from marketplace.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from marketplace.domain.catalog import (
    AdminOfferCreate,
    Offer,
    OfferTerms,
    OfferUpdate,
    Product,
    SupplierOfferUpsert,
)
from marketplace.repositories.offer_repository import OfferRepository
from marketplace.repositories.product_repository import ProductRepository
from marketplace.repositories.supplier_repository import SupplierRepository

logger = logging.getLogger(__name__)


def check_terms(unit_price, available_qty, in_stock: bool, lead_days=None) -> None:
    """
    Reject offer terms that could never be sold correctly

    An in-stock offer must carry at least one unit; a zero quantity is only
    accepted when the offer is marked out of stock.

    Raises:
        ValidationError: describing the first bad field
    """
    if unit_price is not None and unit_price <= 0:
        raise ValidationError("unitPrice must be greater than 0")
    if available_qty is not None:
        if available_qty < 0:
            raise ValidationError("availableQty cannot be negative")
        if in_stock and available_qty == 0:
            raise ValidationError("availableQty must be greater than 0 for an in-stock offer")
    if lead_days is not None and lead_days < 0:
        raise ValidationError("leadDays cannot be negative")


class OfferService:

    def __init__(
        self,
        offer_repo: Optional[OfferRepository] = None,
        product_repo: Optional[ProductRepository] = None,
        supplier_repo: Optional[SupplierRepository] = None
    ):
        self.offer_repo = offer_repo or OfferRepository()
        self.product_repo = product_repo or ProductRepository()
        self.supplier_repo = supplier_repo or SupplierRepository()

    # Supplier

    def list_for_supplier(self, user: TokenUser) -> List[Offer]:
        return self.offer_repo.find_for_supplier(self._supplier_id(user))

    def upsert_for_supplier(self, user: TokenUser, data: SupplierOfferUpsert) -> Offer:
        """
        Create or replace the caller's offer on a product or one of its variants

        Raises:
            ForbiddenError: caller has no supplier profile
            NotFoundError: product missing, deleted or inactive
            ValidationError: bad terms, or a variant of another product
        """
        supplier_id = self._supplier_id(user)
        return self._upsert(supplier_id, data.product_id, data.variant_id, data)

    # Admin

    def list_for_product(self, product_id: str) -> List[Offer]:
        self._live_product(product_id)
        return self.offer_repo.find_by_products([product_id])

    def create_for_product(self, product_id: str, data: AdminOfferCreate) -> Offer:
        """Admin-created offer for any supplier; an existing one for the same pair is replaced"""
        if not self.supplier_repo.exists(data.supplier_id):
            raise NotFoundError("Supplier not found")
        return self._upsert(data.supplier_id, product_id, data.variant_id, data)

    # Shared

    def update_offer(
        self,
        user: TokenUser,
        offer_id: str,
        data: OfferUpdate,
        product_id: Optional[str] = None
    ) -> Offer:
        """
        Change price, stock or lead time of an offer

        Suppliers may only touch their own offers; admins any. With
        product_id the offer must belong to that product.
        """
        offer = self._owned_offer(user, offer_id, product_id)
        fields = data.model_dump(exclude_unset=True)

        merged_qty = fields.get("available_qty", offer.available_qty)
        merged_in_stock = fields.get("in_stock", offer.in_stock)
        check_terms(
            fields.get("unit_price"),
            merged_qty if ("available_qty" in fields or "in_stock" in fields) else None,
            merged_in_stock,
            fields.get("lead_days"),
        )

        updated = self.offer_repo.update(offer, fields)
        if not updated:
            raise NotFoundError("Offer not found")
        logger.info(f"Offer {offer_id} updated by {user.id}: {sorted(fields)}")
        return updated

    def remove_offer(self, user: TokenUser, offer_id: str, product_id: Optional[str] = None) -> None:
        """Take an offer off sale (soft delete)"""
        offer = self._owned_offer(user, offer_id, product_id)
        self.offer_repo.deactivate(offer)

    # Helpers

    def _upsert(self, supplier_id: str, product_id: str, variant_id: Optional[str], terms: OfferTerms) -> Offer:
        product = self._live_product(product_id)
        if not product.is_active:
            raise NotFoundError("Product not found")
        check_terms(terms.unit_price, terms.available_qty, terms.in_stock, terms.lead_days)

        if variant_id:
            variant = product.variant(variant_id)
            if not variant:
                raise ValidationError("variantId does not belong to this product")
            if not variant.is_active:
                raise ValidationError("Variant is not active")
            offer = self.offer_repo.upsert_variant_offer(supplier_id, product_id, variant_id, terms)
        else:
            offer = self.offer_repo.upsert_base_offer(supplier_id, product_id, terms)

        logger.info(f"Supplier {supplier_id} listed {offer.kind.value} offer {offer.id} at {offer.unit_price}")
        return offer

    def _live_product(self, product_id: str) -> Product:
        product = self.product_repo.find_by_id(product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def _owned_offer(self, user: TokenUser, offer_id: str, product_id: Optional[str]) -> Offer:
        offer = self.offer_repo.find_by_id(offer_id)
        if not offer or (product_id and offer.product_id != product_id):
            raise NotFoundError("Offer not found")
        if not is_admin(user) and offer.supplier_id != self._supplier_id(user):
            raise ForbiddenError("Forbidden")
        return offer

    def _supplier_id(self, user: TokenUser) -> str:
        supplier_id = self.supplier_repo.find_id_for_user(user.id)
        if not supplier_id:
            raise ForbiddenError("No supplier profile for this user")
        return supplier_id
