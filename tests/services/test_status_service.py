"""
Tests for the order lifecycle state machine and its ledger side effects.
"""
from decimal import Decimal

import pytest
from sqlalchemy import func

from orderdesk.core.exceptions import ForbiddenError, InvalidStatusTransitionError, NotFoundError
from orderdesk.models.notification import OutboundEvent
from orderdesk.models.order import Order, OrderItem, OrderStatus, OrderStatusHistory
from orderdesk.repositories.customer_repo import customer_repository
from orderdesk.repositories.product_repo import product_repository
from orderdesk.services.order_service import OrderService
from orderdesk.services.status_service import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    StatusService,
    is_transition_allowed,
)

from conftest import advance, make_product, order_payload, reload

S = OrderStatus

FULFILMENT_PATH = [S.CONFIRMED, S.PICKING, S.PICKED, S.LOADED, S.DELIVERING]


def _history_count(db, order_id):
    return db.query(OrderStatusHistory).filter(OrderStatusHistory.order_id == order_id).count()


@pytest.fixture
def order(db, world):
    return OrderService(db).create_order(
        world["rep"], order_payload(world["customer"], [(world["water"], 4), (world["juice"], 1)])
    )


class TestTransitionTable:
    def test_terminal_states_have_no_edges(self):
        assert TERMINAL_STATUSES == {S.DELIVERED, S.RETURNED, S.CANCELLED}

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(OrderStatus)

    @pytest.mark.parametrize("current,target", [
        (S.PENDING, S.CONFIRMED),
        (S.PENDING, S.APPROVED),
        (S.CONFIRMED, S.PICKING),
        (S.DELIVERING, S.PARTIAL),
        (S.PARTIAL, S.RETURNED),
    ])
    def test_allowed_edges(self, current, target):
        assert is_transition_allowed(current, target)

    @pytest.mark.parametrize("current,target", [
        (S.PENDING, S.DELIVERED),
        (S.PICKING, S.CANCELLED),
        (S.DELIVERED, S.DELIVERED),
        (S.CANCELLED, S.PENDING),
        (S.APPROVED, S.CONFIRMED),
    ])
    def test_rejected_edges(self, current, target):
        assert not is_transition_allowed(current, target)


class TestChangeStatus:
    def test_each_transition_adds_one_history_row(self, db, world, order):
        service = StatusService(db)
        service.change_status(world["admin"], order.id, S.CONFIRMED)
        assert _history_count(db, order.id) == 2

        service.change_status(world["admin"], order.id, S.PICKING, notes="Started picking")
        assert _history_count(db, order.id) == 3

        last = (
            db.query(OrderStatusHistory)
            .filter(OrderStatusHistory.order_id == order.id, OrderStatusHistory.to_status == "picking")
            .one()
        )
        assert last.from_status == "confirmed"
        assert last.notes == "Started picking"
        assert last.changed_by == world["admin"].id

    def test_invalid_transition_leaves_state_unchanged(self, db, world, order):
        with pytest.raises(InvalidStatusTransitionError) as exc:
            StatusService(db).change_status(world["admin"], order.id, S.DELIVERED)

        assert exc.value.error_code == "INVALID_STATUS_TRANSITION"
        assert "'pending'" in exc.value.detail and "'delivered'" in exc.value.detail
        assert reload(db, order).status == S.PENDING
        assert reload(db, world["water"]).reserved_quantity == 4
        assert _history_count(db, order.id) == 1

    def test_delivery_does_not_touch_ledgers(self, db, world, order):
        advance(db, world["admin"], order.id, *FULFILMENT_PATH, S.DELIVERED)

        delivered = reload(db, order)
        assert delivered.status == S.DELIVERED
        assert delivered.delivered_at is not None
        assert reload(db, world["water"]).reserved_quantity == 4
        assert reload(db, world["customer"]).debt_balance == Decimal("320.00")

    def test_redelivering_is_rejected_without_side_effects(self, db, world, order):
        advance(db, world["admin"], order.id, *FULFILMENT_PATH, S.DELIVERED)
        stamped = reload(db, order).delivered_at
        history = _history_count(db, order.id)

        with pytest.raises(InvalidStatusTransitionError):
            StatusService(db).change_status(world["admin"], order.id, S.DELIVERED)

        assert reload(db, order).delivered_at == stamped
        assert _history_count(db, order.id) == history

    def test_partial_then_delivered_keeps_first_stamp(self, db, world, order):
        advance(db, world["admin"], order.id, *FULFILMENT_PATH, S.PARTIAL)
        assert reload(db, order).delivered_at is None
        advance(db, world["admin"], order.id, S.DELIVERED)
        assert reload(db, order).delivered_at is not None

    def test_sales_rep_cannot_change_status(self, db, world, order):
        with pytest.raises(ForbiddenError):
            StatusService(db).change_status(world["rep"], order.id, S.CONFIRMED)

    def test_driver_only_sees_assigned_orders(self, db, world, order):
        with pytest.raises(ForbiddenError):
            StatusService(db).change_status(world["driver"], order.id, S.CONFIRMED)

        reload(db, order).driver_id = world["driver"].id
        db.commit()
        StatusService(db).change_status(world["driver"], order.id, S.CONFIRMED)
        assert reload(db, order).status == S.CONFIRMED

    def test_unknown_order(self, db, world):
        with pytest.raises(NotFoundError):
            StatusService(db).change_status(world["admin"], "missing", S.CONFIRMED)

    def test_enqueues_status_event(self, db, world, order):
        StatusService(db).change_status(world["warehouse"], order.id, S.APPROVED)
        event = db.query(OutboundEvent).filter(OutboundEvent.kind == "order.status_changed").one()
        assert event.payload["from"] == "pending"
        assert event.payload["to"] == "approved"


class TestCancelOrder:
    def test_cancel_releases_stock_and_debt(self, db, world, order):
        StatusService(db).cancel_order(world["admin"], order.id, reason="Customer request")

        cancelled = reload(db, order)
        assert cancelled.status == S.CANCELLED
        assert cancelled.cancelled_at is not None
        assert cancelled.cancelled_by == world["admin"].id
        assert cancelled.cancel_reason == "Customer request"
        assert reload(db, world["water"]).reserved_quantity == 0
        assert reload(db, world["juice"]).reserved_quantity == 0
        assert reload(db, world["customer"]).debt_balance == Decimal("0.00")
        assert _history_count(db, order.id) == 2

    def test_cancel_restores_availability(self, db, world):
        water = world["water"]
        before = water.stock_quantity - water.reserved_quantity
        created = OrderService(db).create_order(
            world["admin"], order_payload(world["customer"], [(water, 7)])
        )
        StatusService(db).cancel_order(world["admin"], created.id)

        after = reload(db, water)
        assert after.stock_quantity - after.reserved_quantity >= before

    def test_change_status_to_cancelled_uses_cancel_path(self, db, world, order):
        StatusService(db).change_status(world["admin"], order.id, S.CANCELLED, notes="Duplicate")
        assert reload(db, world["water"]).reserved_quantity == 0
        assert reload(db, order).cancel_reason == "Duplicate"

    def test_cancel_is_not_repeatable(self, db, world, order):
        service = StatusService(db)
        service.cancel_order(world["admin"], order.id)

        with pytest.raises(InvalidStatusTransitionError):
            service.cancel_order(world["admin"], order.id)
        assert reload(db, world["customer"]).debt_balance == Decimal("0.00")

    def test_release_is_floored_at_zero(self, db, world, order):
        water = reload(db, world["water"])
        water.reserved_quantity = 1
        customer = reload(db, world["customer"])
        customer.debt_balance = Decimal("10.00")
        db.commit()

        StatusService(db).cancel_order(world["admin"], order.id)

        assert reload(db, world["water"]).reserved_quantity == 0
        assert reload(db, world["customer"]).debt_balance == Decimal("0.00")

    def test_creator_may_cancel_while_pending_or_confirmed(self, db, world, order):
        StatusService(db).change_status(world["admin"], order.id, S.CONFIRMED)
        StatusService(db).cancel_order(world["rep"], order.id)
        assert reload(db, order).status == S.CANCELLED

    def test_creator_cannot_cancel_once_approved(self, db, world, order):
        StatusService(db).change_status(world["admin"], order.id, S.APPROVED)

        with pytest.raises(InvalidStatusTransitionError) as exc:
            StatusService(db).cancel_order(world["rep"], order.id)
        assert "Cannot cancel order with status 'approved'" in exc.value.detail
        assert reload(db, order).status == S.APPROVED

    def test_admin_cannot_cancel_after_picking_started(self, db, world, order):
        advance(db, world["admin"], order.id, S.CONFIRMED, S.PICKING)

        with pytest.raises(InvalidStatusTransitionError):
            StatusService(db).cancel_order(world["admin"], order.id)
        assert reload(db, world["water"]).reserved_quantity == 4

    def test_rep_cannot_cancel_someone_elses_order(self, db, world):
        created = OrderService(db).create_order(
            world["admin"], order_payload(world["customer"], [(world["water"], 1)])
        )
        with pytest.raises(ForbiddenError):
            StatusService(db).cancel_order(world["rep"], created.id)
        assert db.get(Order, created.id).status == S.PENDING

    def test_cancel_locks_customer_then_products_by_id(self, db, world, monkeypatch):
        tenant = world["tenant"]
        second = make_product(db, tenant, id="prod-b", sku="B-1")
        first = make_product(db, tenant, id="prod-a", sku="A-1")
        db.commit()
        created = OrderService(db).create_order(
            world["admin"], order_payload(world["customer"], [(second, 2), (first, 3)])
        )

        calls = []
        lock_customer = customer_repository.lock_for_tenant
        release = product_repository.release

        def recording_lock(session, id, tenant_id):
            calls.append(("customer", id))
            return lock_customer(session, id, tenant_id)

        def recording_release(session, product_id, quantity):
            calls.append(("product", product_id))
            return release(session, product_id, quantity)

        monkeypatch.setattr(customer_repository, "lock_for_tenant", recording_lock)
        monkeypatch.setattr(product_repository, "release", recording_release)

        StatusService(db).cancel_order(world["admin"], created.id)

        assert calls == [
            ("customer", world["customer"].id),
            ("product", "prod-a"),
            ("product", "prod-b"),
        ]
        assert reload(db, first).reserved_quantity == 0
        assert reload(db, second).reserved_quantity == 0


class TestReservationLedger:
    def test_reserved_matches_open_order_lines(self, db, world):
        service = OrderService(db)
        placed = [
            service.create_order(world["admin"], order_payload(world["customer"], lines))
            for lines in (
                [(world["water"], 3)],
                [(world["water"], 5), (world["juice"], 2)],
                [(world["juice"], 4)],
                [(world["water"], 1), (world["water"], 2)],
            )
        ]
        StatusService(db).cancel_order(world["admin"], placed[1].id)
        advance(db, world["admin"], placed[2].id, S.CONFIRMED, S.PICKING)

        for product in (world["water"], world["juice"]):
            open_quantity = (
                db.query(func.sum(OrderItem.qty_ordered))
                .join(Order, Order.id == OrderItem.order_id)
                .filter(OrderItem.product_id == product.id, Order.status != S.CANCELLED)
                .scalar()
            )
            assert reload(db, product).reserved_quantity == open_quantity
