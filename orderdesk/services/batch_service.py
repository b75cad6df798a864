"""
Batch order operations.

All orders in a call share one transaction, and each order is processed
behind its own SAVEPOINT. A failed order is rolled back to its savepoint
and reported; orders already applied in the same call are kept.
"""
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger, log_security_event
from ..core.access import BATCH_ROLES, CurrentUser
from ..core.exceptions import BadRequestError, BaseCustomException, ForbiddenError, NotFoundError
from ..models.notification import EventKind
from ..models.order import Order, OrderStatus
from ..models.tenant import UserRole
from ..repositories.order_repo import order_repository
from ..repositories.tenant_repo import user_repository
from ..schemas.batch import (
    BatchAssignDriverRequest,
    BatchAssignSalesRepRequest,
    BatchCancelRequest,
    BatchItemResult,
    BatchOperation,
    BatchPreviewRequest,
    BatchResult,
    BatchStatusRequest,
    PreviewItem,
    PreviewResult,
)
from ..utils.date_utils import utc_now
from .notification_service import CUSTOMER, TENANT_ADMINS, enqueue_event
from .status_service import (
    apply_transition,
    ensure_cancellable,
    ensure_driver_assignable,
    ensure_sales_rep_assignable,
    ensure_transition,
)

logger = get_logger(__name__)

BATCH_CANCEL_REASON = "Batch cancellation"
ORDER_NOT_FOUND = "Order not found"


class BatchService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def _require_batch_role(self, user: CurrentUser, operation: BatchOperation) -> None:
        if user.role not in BATCH_ROLES:
            log_security_event(
                "BATCH_OPERATION_DENIED", user_id=user.id, tenant_id=user.tenant_id,
                details=f"Role {user.role.value} attempted batch {operation.value}"
            )
            raise ForbiddenError("Batch operations require an administrator")

    def _process(
        self,
        user: CurrentUser,
        operation: BatchOperation,
        order_ids: List[str],
        action: Callable[[Order], None],
        on_complete: Optional[Callable[[List[BatchItemResult]], None]] = None,
    ) -> BatchResult:
        results: List[BatchItemResult] = []

        with DatabaseTransaction(self.db):
            for order_id in order_ids:
                result = BatchItemResult(order_id=order_id, success=False)
                try:
                    with self.db.begin_nested():
                        order = order_repository.lock_for_tenant(self.db, order_id, user.tenant_id)
                        if order is None:
                            raise NotFoundError("Order")
                        result.order_number = order.order_number
                        result.previous_status = order.status
                        action(order)
                except BaseCustomException as e:
                    logger.info(
                        f"Batch {operation.value} rejected order {order_id}: {e.error_code}",
                        extra={"tenant_id": user.tenant_id, "user_id": user.id},
                    )
                    result.error = e.detail
                    result.error_code = e.error_code
                except SQLAlchemyError as e:
                    logger.exception(f"Batch {operation.value} failed for order {order_id}: {e}")
                    result.error = "Database error while processing order"
                    result.error_code = "SERVER_ERROR"
                else:
                    result.success = True
                results.append(result)

            if on_complete is not None:
                on_complete(results)

        succeeded = sum(1 for result in results if result.success)
        failed = len(results) - succeeded
        logger.info(
            f"Batch {operation.value}: {succeeded} succeeded, {failed} failed",
            extra={"tenant_id": user.tenant_id, "user_id": user.id},
        )
        return BatchResult(processed=len(results), succeeded=succeeded, failed=failed, results=results)

    def _summary_event(self, user: CurrentUser, kind: EventKind, notify_customers: bool, **payload):
        def enqueue(results: List[BatchItemResult]) -> None:
            applied = [result for result in results if result.success]
            if not applied:
                return
            recipients = (TENANT_ADMINS, CUSTOMER) if notify_customers else (TENANT_ADMINS,)
            enqueue_event(
                self.db,
                kind,
                user.tenant_id,
                payload={
                    **payload,
                    "orders": [
                        {"order_id": result.order_id, "order_number": result.order_number}
                        for result in applied
                    ],
                    "changed_by": user.id,
                },
                recipients=recipients,
            )
        return enqueue

    def batch_change_status(self, user: CurrentUser, request: BatchStatusRequest) -> BatchResult:
        self._require_batch_role(user, BatchOperation.STATUS_CHANGE)
        now = self.clock()

        def action(order: Order) -> None:
            apply_transition(self.db, order, request.status, user.id, request.notes, now=now)

        return self._process(
            user, BatchOperation.STATUS_CHANGE, request.order_ids, action,
            self._summary_event(user, EventKind.BATCH_STATUS_CHANGED, request.notify_customers,
                                status=request.status.value),
        )

    def batch_cancel(self, user: CurrentUser, request: BatchCancelRequest) -> BatchResult:
        self._require_batch_role(user, BatchOperation.CANCEL)
        now = self.clock()
        reason = request.reason or BATCH_CANCEL_REASON

        def action(order: Order) -> None:
            ensure_cancellable(order)
            apply_transition(self.db, order, OrderStatus.CANCELLED, user.id, reason, now=now)

        return self._process(
            user, BatchOperation.CANCEL, request.order_ids, action,
            self._summary_event(user, EventKind.BATCH_CANCELLED, request.notify_customers,
                                reason=reason),
        )

    def batch_assign_driver(self, user: CurrentUser, request: BatchAssignDriverRequest) -> BatchResult:
        self._require_batch_role(user, BatchOperation.ASSIGN_DRIVER)
        driver = user_repository.get_active_with_role(
            self.db, request.driver_id, user.tenant_id, UserRole.DRIVER
        )
        if driver is None:
            raise BadRequestError("Invalid driver", field="driver_id", error_code="INVALID_DRIVER")

        def action(order: Order) -> None:
            ensure_driver_assignable(order)
            order.driver_id = driver.id

        return self._process(user, BatchOperation.ASSIGN_DRIVER, request.order_ids, action)

    def batch_assign_sales_rep(self, user: CurrentUser, request: BatchAssignSalesRepRequest) -> BatchResult:
        self._require_batch_role(user, BatchOperation.ASSIGN_SALES_REP)
        rep = user_repository.get_active_with_role(
            self.db, request.sales_rep_id, user.tenant_id, UserRole.SALES_REP
        )
        if rep is None:
            raise BadRequestError("Invalid sales rep", field="sales_rep_id", error_code="INVALID_SALES_REP")

        def action(order: Order) -> None:
            ensure_sales_rep_assignable(order)
            order.sales_rep_id = rep.id

        return self._process(user, BatchOperation.ASSIGN_SALES_REP, request.order_ids, action)

    def preview(self, user: CurrentUser, request: BatchPreviewRequest) -> PreviewResult:
        """Run the batch eligibility checks without writing anything"""
        self._require_batch_role(user, request.operation)

        checks = {
            BatchOperation.STATUS_CHANGE: lambda order: ensure_transition(order, request.target_status),
            BatchOperation.CANCEL: ensure_cancellable,
            BatchOperation.ASSIGN_DRIVER: ensure_driver_assignable,
            BatchOperation.ASSIGN_SALES_REP: ensure_sales_rep_assignable,
        }
        check = checks[request.operation]

        orders = {
            order.id: order
            for order in (
                self.db.query(Order)
                .options(joinedload(Order.customer))
                .filter(Order.id.in_(request.order_ids), Order.tenant_id == user.tenant_id)
                .all()
            )
        }

        items: List[PreviewItem] = []
        for order_id in request.order_ids:
            order = orders.get(order_id)
            if order is None:
                items.append(PreviewItem(order_id=order_id, can_process=False, reason=ORDER_NOT_FOUND))
                continue
            item = PreviewItem(
                order_id=order.id,
                order_number=order.order_number,
                current_status=order.status,
                customer_name=order.customer.name if order.customer else None,
                total_amount=order.total_amount,
                can_process=True,
            )
            try:
                check(order)
            except BaseCustomException as e:
                item.can_process = False
                item.reason = e.detail
            items.append(item)

        self.db.rollback()
        processable = sum(1 for item in items if item.can_process)
        return PreviewResult(
            operation=request.operation,
            total=len(items),
            can_process=processable,
            cannot_process=len(items) - processable,
            preview=items,
        )
