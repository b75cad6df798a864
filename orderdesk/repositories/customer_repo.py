from decimal import Decimal
from typing import Optional

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from .base import CRUDBase
from ..models.customer import Customer, CustomerTier


class CustomerRepository(CRUDBase[Customer]):
    def __init__(self):
        super().__init__(Customer)

    def get_tier(self, db: Session, customer: Customer) -> Optional[CustomerTier]:
        """Get the customer's tier, if any"""
        if not customer.tier_id:
            return None
        return (
            db.query(CustomerTier)
            .filter(CustomerTier.id == customer.tier_id, CustomerTier.tenant_id == customer.tenant_id)
            .first()
        )

    def increment_debt(self, db: Session, customer_id: str, amount: Decimal) -> None:
        db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(debt_balance=Customer.debt_balance + amount)
            .execution_options(synchronize_session=False)
        )

    def decrement_debt(self, db: Session, customer_id: str, amount: Decimal) -> None:
        """Decrement debt balance, floored at zero"""
        remaining = Customer.debt_balance - amount
        db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(debt_balance=case((remaining < 0, 0), else_=remaining))
            .execution_options(synchronize_session=False)
        )


customer_repository = CustomerRepository()
