"""
Customer tier credit gates, applied once when an order is created.
"""
from decimal import Decimal
from typing import Optional

from ..core.exceptions import CreditLimitExceededError, CreditNotAllowedError, MaxOrderExceededError
from ..models.customer import Customer, CustomerTier


def evaluate_credit(tier: Optional[CustomerTier], customer: Customer, total: Decimal) -> None:
    """
    Raise if ``total`` violates the tier's policy for ``customer``.

    Checks run in order: prepaid coverage when credit is disallowed, the
    debt ceiling, then the single-order maximum. A customer without a
    tier is unrestricted.
    """
    if tier is None:
        return

    total = Decimal(total)
    debt = Decimal(customer.debt_balance or 0)
    prepaid = Decimal(customer.credit_balance or 0)

    if not tier.credit_allowed and prepaid < total:
        raise CreditNotAllowedError(prepaid, total)

    if tier.credit_limit is not None and debt + total > Decimal(tier.credit_limit):
        raise CreditLimitExceededError(debt, total, Decimal(tier.credit_limit))

    if tier.max_order_amount is not None and total > Decimal(tier.max_order_amount):
        raise MaxOrderExceededError(total, Decimal(tier.max_order_amount))
