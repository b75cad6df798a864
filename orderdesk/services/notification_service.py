"""
Notification outbox and dispatcher.

Order mutations append OutboundEvent rows inside their own transaction.
After commit the dispatcher hands pending rows to a sender. Delivery
failures are logged and recorded on the row; they never reach the caller
of the order operation.
"""
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config.logging import get_logger
from ..config.settings import get_settings
from ..models.notification import EventKind, EventStatus, OutboundEvent
from ..utils.date_utils import utc_now

logger = get_logger("notifications")
settings = get_settings()

TENANT_ADMINS = "tenant_admins"
CUSTOMER = "customer"


def enqueue_event(
    db: Session,
    kind: EventKind,
    tenant_id: str,
    payload: Dict[str, Any],
    recipients: Iterable[str] = (TENANT_ADMINS,),
    order_id: Optional[str] = None,
) -> OutboundEvent:
    """Append an event to the outbox in the caller's transaction."""
    event = OutboundEvent(
        kind=kind.value,
        tenant_id=tenant_id,
        order_id=order_id,
        recipients=list(recipients),
        payload=payload,
        status=EventStatus.PENDING,
        attempts=0,
    )
    db.add(event)
    return event


class NotificationSender(Protocol):
    def send(self, event: OutboundEvent) -> None:
        ...


class LoggingNotificationSender:
    """Default sender: writes the event to the notifications log."""

    def send(self, event: OutboundEvent) -> None:
        logger.info(
            f"Notification {event.kind} -> {', '.join(event.recipients or [])}: {event.payload}",
            extra={"tenant_id": event.tenant_id, "order_id": event.order_id},
        )


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: Optional[NotificationSender] = None,
        max_attempts: Optional[int] = None,
        batch_size: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        self.session_factory = session_factory
        self.sender = sender or LoggingNotificationSender()
        self.max_attempts = max_attempts or settings.NOTIFICATION_MAX_ATTEMPTS
        self.batch_size = batch_size or settings.NOTIFICATION_BATCH_SIZE
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled

    def _due_events(self, db: Session) -> List[OutboundEvent]:
        return (
            db.query(OutboundEvent)
            .filter(
                or_(
                    OutboundEvent.status == EventStatus.PENDING,
                    OutboundEvent.status == EventStatus.FAILED,
                ),
                OutboundEvent.attempts < self.max_attempts,
            )
            .order_by(OutboundEvent.created_at)
            .limit(self.batch_size)
            .all()
        )

    def dispatch_pending(self) -> Dict[str, int]:
        """
        Deliver due outbox events.

        Returns counts of sent and failed deliveries for this pass.
        """
        sent = failed = 0
        if not self.enabled:
            return {"sent": sent, "failed": failed}

        db = self.session_factory()
        try:
            for event in self._due_events(db):
                event.attempts += 1
                try:
                    self.sender.send(event)
                except Exception as e:
                    logger.exception(f"Notification {event.kind} ({event.id}) failed: {e}")
                    event.status = EventStatus.FAILED
                    event.last_error = str(e)
                    failed += 1
                else:
                    event.status = EventStatus.SENT
                    event.dispatched_at = utc_now()
                    event.last_error = None
                    sent += 1
                db.commit()
        except Exception:
            db.rollback()
            logger.exception("Notification dispatch pass aborted")
        finally:
            db.close()

        if sent or failed:
            logger.info(f"Notification dispatch: {sent} sent, {failed} failed")
        return {"sent": sent, "failed": failed}
