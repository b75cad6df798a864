"""
Custom exceptions for OrderDesk.
Every error carries a stable error code, an HTTP status and a message.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..config.logging import get_logger

logger = get_logger("api")


class BaseCustomException(HTTPException):
    """Base class for all custom exceptions"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.field = field
        self.details = details


# =============================================================================
# HTTP EXCEPTIONS
# =============================================================================

class NotFoundError(BaseCustomException):
    """Resource not found exception"""

    def __init__(self, resource: str, identifier: str = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=message,
            error_code="NOT_FOUND"
        )


class UnauthorizedError(BaseCustomException):
    """Unauthorized access exception"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(BaseCustomException):
    """Forbidden access exception"""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message,
            error_code="FORBIDDEN"
        )


class BadRequestError(BaseCustomException):
    """Bad request exception"""

    def __init__(self, message: str, field: str = None, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
            error_code=error_code,
            field=field
        )


class ServerError(BaseCustomException):
    """Internal server error exception"""

    def __init__(self, message: str = "Internal server error occurred"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message,
            error_code="SERVER_ERROR"
        )


# =============================================================================
# BUSINESS LOGIC ERRORS
# =============================================================================

class BusinessLogicError(BaseCustomException):
    """Base business logic error"""

    def __init__(self, message: str, error_code: str, details: Dict[str, Any] = None,
                 status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY):
        super().__init__(
            status_code=status_code,
            detail=message,
            error_code=error_code,
            details=details
        )


class InvalidStatusTransitionError(BusinessLogicError):
    """Requested lifecycle edge is not allowed"""

    def __init__(self, current_status: str, requested_status: str, message: str = None):
        super().__init__(
            message=message or f"Cannot change from '{current_status}' to '{requested_status}'",
            error_code="INVALID_STATUS_TRANSITION",
            details={"from": current_status, "to": requested_status},
            status_code=status.HTTP_409_CONFLICT
        )


class InsufficientStockError(BusinessLogicError):
    """Insufficient stock error"""

    def __init__(self, product_name: str, requested_qty: int, available_qty: int):
        super().__init__(
            message=f"Insufficient stock for {product_name}. Available: {available_qty}, requested: {requested_qty}",
            error_code="INSUFFICIENT_STOCK",
            details={"product": product_name, "requested": requested_qty, "available": available_qty}
        )


class PriceChangedError(BusinessLogicError):
    """Quoted price no longer matches the product price"""

    def __init__(self, product_name: str, quoted_price: Decimal, current_price: Decimal):
        super().__init__(
            message=f"Price changed for {product_name}. Current price: {current_price}",
            error_code="PRICE_CHANGED",
            details={"product": product_name, "quoted": str(quoted_price), "current": str(current_price)}
        )


class CreditNotAllowedError(BusinessLogicError):
    """Customer tier does not allow credit and prepaid balance is short"""

    def __init__(self, credit_balance: Decimal, total: Decimal):
        super().__init__(
            message=(f"Credit not allowed for this customer. "
                     f"Prepaid balance: {credit_balance}, order total: {total}"),
            error_code="CREDIT_NOT_ALLOWED",
            details={"credit_balance": str(credit_balance), "total": str(total)}
        )


class CreditLimitExceededError(BusinessLogicError):
    """Order would push customer debt above the tier credit limit"""

    def __init__(self, current_debt: Decimal, total: Decimal, credit_limit: Decimal):
        super().__init__(
            message=(f"Credit limit exceeded. Current debt: {current_debt}, "
                     f"order: {total}, limit: {credit_limit}"),
            error_code="CREDIT_LIMIT_EXCEEDED",
            details={"current_debt": str(current_debt), "total": str(total),
                     "credit_limit": str(credit_limit)}
        )


class MaxOrderExceededError(BusinessLogicError):
    """Single order above the tier maximum"""

    def __init__(self, total: Decimal, max_amount: Decimal):
        super().__init__(
            message=f"Order amount {total} exceeds maximum allowed {max_amount}",
            error_code="MAX_ORDER_EXCEEDED",
            details={"total": str(total), "max_order_amount": str(max_amount)}
        )


class LimitExceededError(BusinessLogicError):
    """Tenant plan quota exhausted"""

    def __init__(self, current: int, maximum: int):
        super().__init__(
            message=f"Monthly order limit reached ({current}/{maximum})",
            error_code="LIMIT_EXCEEDED",
            details={"current": current, "max": maximum},
            status_code=status.HTTP_403_FORBIDDEN
        )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def format_error_response(error: HTTPException) -> Dict[str, Any]:
    """Format error response for consistent API responses"""
    response = {
        "error": True,
        "error_code": getattr(error, 'error_code', None) or "HTTP_ERROR",
        "message": error.detail,
        "status_code": error.status_code
    }

    if getattr(error, 'field', None):
        response["field"] = error.field

    if getattr(error, 'details', None):
        response["details"] = error.details

    return response


async def custom_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTP exceptions with the standard error body"""
    body = format_error_response(exc)
    request_id = getattr(request.state, "request_id", None)
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{request.method} {request.url.path} rejected: {body['error_code']} ({exc.status_code})",
        extra={"request_id": request_id} if request_id else {},
    )
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(
        status_code=exc.status_code,
        content=body,
        headers=getattr(exc, "headers", None)
    )
