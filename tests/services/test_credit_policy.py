"""
Tests for customer tier credit gates.
"""
from decimal import Decimal

import pytest

from orderdesk.core.exceptions import (
    CreditLimitExceededError,
    CreditNotAllowedError,
    MaxOrderExceededError,
)
from orderdesk.models.customer import Customer, CustomerTier
from orderdesk.services.credit_policy import evaluate_credit


def _tier(**overrides) -> CustomerTier:
    values = dict(credit_allowed=True, credit_limit=None, max_order_amount=None)
    values.update(overrides)
    return CustomerTier(**values)


def _customer(debt="0", prepaid="0") -> Customer:
    return Customer(debt_balance=Decimal(debt), credit_balance=Decimal(prepaid))


class TestCreditPolicy:
    def test_no_tier_is_unrestricted(self):
        evaluate_credit(None, _customer(debt="1000000"), Decimal("999999"))

    def test_credit_limit_rejects_overflow(self):
        with pytest.raises(CreditLimitExceededError) as exc:
            evaluate_credit(_tier(credit_limit=Decimal("1000")), _customer(debt="900"), Decimal("150"))
        assert exc.value.error_code == "CREDIT_LIMIT_EXCEEDED"

    def test_credit_limit_allows_exact_fit(self):
        evaluate_credit(_tier(credit_limit=Decimal("1000")), _customer(debt="900"), Decimal("100"))

    def test_zero_credit_limit_is_enforced(self):
        with pytest.raises(CreditLimitExceededError):
            evaluate_credit(_tier(credit_limit=Decimal("0")), _customer(), Decimal("1"))

    def test_credit_not_allowed_without_prepaid_cover(self):
        with pytest.raises(CreditNotAllowedError):
            evaluate_credit(_tier(credit_allowed=False), _customer(prepaid="40"), Decimal("50"))

    def test_credit_not_allowed_with_prepaid_cover(self):
        evaluate_credit(_tier(credit_allowed=False), _customer(prepaid="50"), Decimal("50"))

    def test_max_order_amount(self):
        with pytest.raises(MaxOrderExceededError):
            evaluate_credit(_tier(max_order_amount=Decimal("500")), _customer(), Decimal("500.01"))
        evaluate_credit(_tier(max_order_amount=Decimal("500")), _customer(), Decimal("500"))

    def test_prepaid_check_runs_before_limit(self):
        tier = _tier(credit_allowed=False, credit_limit=Decimal("10"))
        with pytest.raises(CreditNotAllowedError):
            evaluate_credit(tier, _customer(), Decimal("100"))
