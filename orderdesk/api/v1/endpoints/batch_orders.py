from fastapi import APIRouter, BackgroundTasks, Depends

from ....core.access import CurrentUser
from ....core.dependencies import get_batch_service, get_current_user, get_notification_dispatcher
from ....schemas.batch import (
    BatchAssignDriverRequest,
    BatchAssignSalesRepRequest,
    BatchCancelRequest,
    BatchPreviewRequest,
    BatchResult,
    BatchStatusRequest,
    PreviewResult,
)
from ....services.batch_service import BatchService
from ....services.notification_service import NotificationDispatcher

router = APIRouter()


@router.post("/status", response_model=BatchResult)
def batch_change_status(
    payload: BatchStatusRequest,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: BatchService = Depends(get_batch_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Change status of up to 100 orders; per-order failures are reported, not raised"""
    result = service.batch_change_status(current_user, payload)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return result


@router.post("/assign-driver", response_model=BatchResult)
def batch_assign_driver(
    payload: BatchAssignDriverRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: BatchService = Depends(get_batch_service),
):
    return service.batch_assign_driver(current_user, payload)


@router.post("/assign-sales-rep", response_model=BatchResult)
def batch_assign_sales_rep(
    payload: BatchAssignSalesRepRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: BatchService = Depends(get_batch_service),
):
    return service.batch_assign_sales_rep(current_user, payload)


@router.post("/cancel", response_model=BatchResult)
def batch_cancel(
    payload: BatchCancelRequest,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: BatchService = Depends(get_batch_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = service.batch_cancel(current_user, payload)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return result


@router.post("/preview", response_model=PreviewResult)
def batch_preview(
    payload: BatchPreviewRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: BatchService = Depends(get_batch_service),
):
    """Report which orders a batch operation would process, without changing them"""
    return service.preview(current_user, payload)
