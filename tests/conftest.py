"""
Shared fixtures: an in-memory SQLite database per test, seed helpers and
an API client wired to the same database.
"""
from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orderdesk.config.database import create_db_engine, get_db, init_database
from orderdesk.core.access import CurrentUser
from orderdesk.core.dependencies import get_notification_dispatcher, get_session_factory
from orderdesk.core.security import create_access_token
from orderdesk.main import create_app
from orderdesk.models.customer import Customer, CustomerTier
from orderdesk.models.product import Product
from orderdesk.models.tenant import Tenant, User, UserRole
from orderdesk.schemas.order import OrderCreate, OrderItemCreate


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_database(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    # Seeded objects stay readable after commit without opening a new transaction
    session = session_factory(expire_on_commit=False)
    yield session
    session.close()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

def make_tenant(db, **overrides) -> Tenant:
    values = dict(name="Acme Distribution", order_number_prefix="ORD-",
                  timezone="Asia/Tashkent", max_orders_per_month=500)
    values.update(overrides)
    tenant = Tenant(**values)
    db.add(tenant)
    db.flush()
    return tenant


def make_user(db, tenant, role=UserRole.TENANT_ADMIN, **overrides) -> User:
    values = dict(tenant_id=tenant.id, name=f"{role.value} user", role=role)
    values.update(overrides)
    user = User(**values)
    db.add(user)
    db.flush()
    return user


def make_tier(db, tenant, **overrides) -> CustomerTier:
    values = dict(tenant_id=tenant.id, name="Standard", credit_allowed=True)
    values.update(overrides)
    tier = CustomerTier(**values)
    db.add(tier)
    db.flush()
    return tier


def make_customer(db, tenant, **overrides) -> Customer:
    values = dict(tenant_id=tenant.id, name="Corner Shop",
                  debt_balance=Decimal("0"), credit_balance=Decimal("0"))
    values.update(overrides)
    customer = Customer(**values)
    db.add(customer)
    db.flush()
    return customer


def make_product(db, tenant, **overrides) -> Product:
    values = dict(tenant_id=tenant.id, name="Mineral Water 1L", sku="MW-1",
                  price=Decimal("50.00"), stock_quantity=100, reserved_quantity=0,
                  reorder_point=None)
    values.update(overrides)
    product = Product(**values)
    db.add(product)
    db.flush()
    return product


def as_current_user(user: User) -> CurrentUser:
    return CurrentUser(id=user.id, tenant_id=user.tenant_id, role=user.role, name=user.name)


def order_payload(customer, lines, total=None, **overrides) -> OrderCreate:
    """``lines`` is a list of (product, quantity) or (product, quantity, quoted_price)."""
    items = []
    computed = Decimal("0")
    for line in lines:
        product, quantity = line[0], line[1]
        price = line[2] if len(line) > 2 else product.price
        items.append(OrderItemCreate(product_id=product.id, quantity=quantity, unit_price=price))
        computed += Decimal(price) * quantity
    values = dict(
        customer_id=customer.id,
        items=items,
        subtotal_amount=computed,
        total_amount=total if total is not None else computed,
    )
    values.update(overrides)
    return OrderCreate(**values)


def fixed_clock(value: datetime):
    return lambda: value


@pytest.fixture
def world(db):
    """One tenant with a user per role, a customer owned by the sales rep and two products."""
    tenant = make_tenant(db)
    users = {role: make_user(db, tenant, role=role) for role in UserRole}
    customer = make_customer(db, tenant, created_by_user_id=users[UserRole.SALES_REP].id)
    water = make_product(db, tenant)
    juice = make_product(db, tenant, name="Apple Juice", sku="AJ-1",
                         price=Decimal("120.00"), stock_quantity=40)
    db.commit()
    return {
        "tenant": tenant,
        "users": users,
        "admin": as_current_user(users[UserRole.TENANT_ADMIN]),
        "rep": as_current_user(users[UserRole.SALES_REP]),
        "driver": as_current_user(users[UserRole.DRIVER]),
        "warehouse": as_current_user(users[UserRole.WAREHOUSE]),
        "customer": customer,
        "water": water,
        "juice": juice,
    }


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

class RecordingDispatcher:
    def __init__(self):
        self.calls = 0

    def dispatch_pending(self):
        self.calls += 1
        return {"sent": 0, "failed": 0}


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(session_factory, dispatcher):
    app = create_app(with_lifespan=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user) -> dict:
    token = create_access_token({
        "sub": user.id,
        "tenant_id": user.tenant_id,
        "role": user.role.value,
        "name": user.name,
    })
    return {"Authorization": f"Bearer {token}"}


def advance(db, user, order_id, *statuses):
    """Walk an order through ``statuses`` with the status service."""
    from orderdesk.services.status_service import StatusService

    service = StatusService(db)
    for status in statuses:
        service.change_status(user, order_id, status)


def reload(db, obj):
    db.expire_all()
    return db.get(type(obj), obj.id)
