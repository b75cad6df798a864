from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import ValidationError

from ....core.access import CurrentUser
from ....core.exceptions import BadRequestError
from ....core.dependencies import (
    PaginationParams,
    get_current_user,
    get_notification_dispatcher,
    get_order_service,
    get_status_service,
)
from ....models.order import PaymentStatus
from ....schemas.order import (
    Ack,
    CancelRequest,
    OrderCreate,
    OrderDetail,
    OrderListFilter,
    OrderListResponse,
    OrderResponse,
    StatusChangeRequest,
)
from ....services.notification_service import NotificationDispatcher
from ....services.order_service import OrderService
from ....services.status_service import StatusService

router = APIRouter()


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Create an order, reserving stock and charging customer debt"""
    order = service.create_order(current_user, payload)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return order


@router.get("", response_model=OrderListResponse)
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status",
                                         description="Status or comma-separated statuses"),
    payment_status: Optional[PaymentStatus] = Query(None),
    customer_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """List orders visible to the caller, newest first"""
    try:
        filters = OrderListFilter(
            status=status_filter,
            payment_status=payment_status,
            customer_id=customer_id,
            search=search,
            start_date=start_date,
            end_date=end_date,
        )
    except ValidationError as e:
        raise BadRequestError(e.errors()[0]["msg"], field="status")
    return service.list_orders(current_user, filters, pagination.page, pagination.per_page)


@router.get("/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Get order with items and status history"""
    return service.get_order(current_user, order_id)


@router.patch("/{order_id}/status", response_model=Ack)
def change_order_status(
    order_id: str,
    payload: StatusChangeRequest,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: StatusService = Depends(get_status_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    ack = service.change_status(current_user, order_id, payload.status, payload.notes)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return ack


@router.patch("/{order_id}/cancel", response_model=Ack)
def cancel_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[CancelRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: StatusService = Depends(get_status_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Cancel an order, releasing its stock and debt"""
    ack = service.cancel_order(current_user, order_id, payload.reason if payload else None)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return ack
