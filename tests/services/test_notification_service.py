"""
Tests for the notification outbox and its dispatcher.
"""
import pytest

from orderdesk.core.exceptions import InsufficientStockError
from orderdesk.models.notification import EventKind, EventStatus, OutboundEvent
from orderdesk.services.notification_service import (
    CUSTOMER,
    TENANT_ADMINS,
    NotificationDispatcher,
    enqueue_event,
)
from orderdesk.services.order_service import OrderService

from conftest import order_payload


class RecordingSender:
    def __init__(self):
        self.sent = []

    def send(self, event):
        self.sent.append((event.kind, event.payload))


class FailingSender:
    def __init__(self, failures=1):
        self.failures = failures
        self.calls = 0

    def send(self, event):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("SMS gateway unavailable")


def _events(session_factory):
    with session_factory() as session:
        return session.query(OutboundEvent).order_by(OutboundEvent.created_at).all()


@pytest.fixture
def queued(db, world):
    event = enqueue_event(
        db, EventKind.ORDER_CREATED, world["tenant"].id,
        {"order_number": "ORD-011430"}, recipients=(TENANT_ADMINS, CUSTOMER),
    )
    db.commit()
    return event


class TestEnqueue:
    def test_event_is_pending_until_dispatched(self, session_factory, queued):
        [event] = _events(session_factory)
        assert event.status == EventStatus.PENDING
        assert event.attempts == 0
        assert event.recipients == ["tenant_admins", "customer"]

    def test_rolled_back_mutation_leaves_no_event(self, db, world, session_factory):
        payload = order_payload(world["customer"], [(world["juice"], 500)])
        with pytest.raises(InsufficientStockError):
            OrderService(db).create_order(world["admin"], payload)
        assert _events(session_factory) == []


class TestDispatcher:
    def test_sends_pending_events(self, session_factory, queued):
        sender = RecordingSender()
        result = NotificationDispatcher(session_factory, sender=sender, enabled=True).dispatch_pending()

        assert result == {"sent": 1, "failed": 0}
        assert sender.sent == [("order.created", {"order_number": "ORD-011430"})]
        [event] = _events(session_factory)
        assert event.status == EventStatus.SENT
        assert event.dispatched_at is not None

    def test_sent_events_are_not_resent(self, session_factory, queued):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(session_factory, sender=sender, enabled=True)
        dispatcher.dispatch_pending()
        assert dispatcher.dispatch_pending() == {"sent": 0, "failed": 0}
        assert len(sender.sent) == 1

    def test_failure_is_recorded_and_retried(self, session_factory, queued):
        sender = FailingSender(failures=1)
        dispatcher = NotificationDispatcher(session_factory, sender=sender, enabled=True)

        assert dispatcher.dispatch_pending() == {"sent": 0, "failed": 1}
        [event] = _events(session_factory)
        assert event.status == EventStatus.FAILED
        assert event.last_error == "SMS gateway unavailable"

        assert dispatcher.dispatch_pending() == {"sent": 1, "failed": 0}
        [event] = _events(session_factory)
        assert event.status == EventStatus.SENT
        assert event.attempts == 2
        assert event.last_error is None

    def test_gives_up_after_max_attempts(self, session_factory, queued):
        sender = FailingSender(failures=10)
        dispatcher = NotificationDispatcher(session_factory, sender=sender, max_attempts=2, enabled=True)

        dispatcher.dispatch_pending()
        dispatcher.dispatch_pending()
        assert dispatcher.dispatch_pending() == {"sent": 0, "failed": 0}
        assert sender.calls == 2
        [event] = _events(session_factory)
        assert event.attempts == 2

    def test_disabled_dispatcher_leaves_outbox_untouched(self, session_factory, queued):
        sender = RecordingSender()
        result = NotificationDispatcher(session_factory, sender=sender, enabled=False).dispatch_pending()

        assert result == {"sent": 0, "failed": 0}
        assert sender.sent == []
        [event] = _events(session_factory)
        assert event.status == EventStatus.PENDING
