"""
Stock ledger access.

Every read that feeds a reservation takes a row lock, so two transactions
competing for the same product serialize on it. A second caller observes
the reserved quantity committed by the first.
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from .base import CRUDBase
from ..config.settings import get_settings
from ..core.exceptions import InsufficientStockError, NotFoundError, PriceChangedError
from ..models.product import Product

settings = get_settings()


class ProductRepository(CRUDBase[Product]):
    def __init__(self):
        super().__init__(Product)

    def lock_and_check(
        self,
        db: Session,
        product_id: str,
        tenant_id: str,
        quantity: int,
        quoted_price: Decimal,
    ) -> Product:
        """
        Lock a product row and validate a requested line against it.

        Raises NotFoundError for unknown or inactive products,
        InsufficientStockError when available < quantity and
        PriceChangedError when the quoted price drifted by more than the
        configured tolerance.
        """
        product = self.lock_for_tenant(db, product_id, tenant_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product", product_id)

        available = product.available_quantity
        if available < quantity:
            raise InsufficientStockError(product.name, quantity, available)

        self.check_price(product, quoted_price)
        return product

    def check_price(self, product: Product, quoted_price: Decimal) -> None:
        if abs(Decimal(product.price) - Decimal(quoted_price)) > settings.PRICE_TOLERANCE:
            raise PriceChangedError(product.name, quoted_price, product.price)

    def reserve(self, db: Session, product_id: str, quantity: int) -> None:
        db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(reserved_quantity=Product.reserved_quantity + quantity)
            .execution_options(synchronize_session=False)
        )

    def release(self, db: Session, product_id: str, quantity: int) -> None:
        """Decrement reserved quantity, floored at zero."""
        remaining = Product.reserved_quantity - quantity
        db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(reserved_quantity=case((remaining < 0, 0), else_=remaining))
            .execution_options(synchronize_session=False)
        )

    def get_low_stock(
        self,
        db: Session,
        product_ids: List[str],
        tenant_id: str,
        default_threshold: Optional[int] = None,
    ) -> List[Product]:
        """Products among ``product_ids`` whose available quantity is below their reorder point."""
        if not product_ids:
            return []
        threshold = default_threshold if default_threshold is not None else settings.LOW_STOCK_DEFAULT_THRESHOLD
        return (
            db.query(Product)
            .filter(
                Product.id.in_(product_ids),
                Product.tenant_id == tenant_id,
                Product.available_quantity < func.coalesce(Product.reorder_point, threshold),
            )
            .populate_existing()
            .all()
        )


product_repository = ProductRepository()
