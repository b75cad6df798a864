"""
Tests for error codes, HTTP statuses and the error body.
"""
from decimal import Decimal

import pytest
from fastapi import HTTPException

from orderdesk.core.exceptions import (
    BadRequestError,
    CreditLimitExceededError,
    CreditNotAllowedError,
    ForbiddenError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    LimitExceededError,
    MaxOrderExceededError,
    NotFoundError,
    PriceChangedError,
    UnauthorizedError,
    format_error_response,
)


class TestErrorCodes:
    @pytest.mark.parametrize("error,code,status_code", [
        (NotFoundError("Order"), "NOT_FOUND", 404),
        (UnauthorizedError(), "UNAUTHORIZED", 401),
        (ForbiddenError(), "FORBIDDEN", 403),
        (BadRequestError("bad"), "BAD_REQUEST", 400),
        (InvalidStatusTransitionError("pending", "delivered"), "INVALID_STATUS_TRANSITION", 409),
        (InsufficientStockError("Water", 5, 2), "INSUFFICIENT_STOCK", 422),
        (PriceChangedError("Water", Decimal("45"), Decimal("50")), "PRICE_CHANGED", 422),
        (CreditNotAllowedError(Decimal("0"), Decimal("10")), "CREDIT_NOT_ALLOWED", 422),
        (CreditLimitExceededError(Decimal("900"), Decimal("150"), Decimal("1000")),
         "CREDIT_LIMIT_EXCEEDED", 422),
        (MaxOrderExceededError(Decimal("600"), Decimal("500")), "MAX_ORDER_EXCEEDED", 422),
        (LimitExceededError(500, 500), "LIMIT_EXCEEDED", 403),
    ])
    def test_code_and_status(self, error, code, status_code):
        assert error.error_code == code
        assert error.status_code == status_code

    def test_transition_message(self):
        error = InvalidStatusTransitionError("picking", "confirmed")
        assert error.detail == "Cannot change from 'picking' to 'confirmed'"

    def test_not_found_message(self):
        assert NotFoundError("Order").detail == "Order not found"
        assert NotFoundError("Order", "abc").detail == "Order with identifier 'abc' not found"


class TestErrorBody:
    def test_business_error_body(self):
        body = format_error_response(InsufficientStockError("Water", 5, 2))
        assert body["error"] is True
        assert body["error_code"] == "INSUFFICIENT_STOCK"
        assert body["status_code"] == 422
        assert body["details"]["available"] == 2
        assert "Available: 2" in body["message"]

    def test_field_is_included(self):
        body = format_error_response(BadRequestError("Invalid sales rep", field="sales_rep_id"))
        assert body["field"] == "sales_rep_id"

    def test_plain_http_exception(self):
        body = format_error_response(HTTPException(status_code=405, detail="Method Not Allowed"))
        assert body["error_code"] == "HTTP_ERROR"
        assert "details" not in body
