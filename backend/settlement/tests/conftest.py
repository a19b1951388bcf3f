import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from settlement.core.database import SessionLocal, engine
from settlement.core.folio_service import generate_folio
from settlement.core.security import create_token_pair, hash_password
from settlement.main import app
from settlement.models.order import Order
from settlement.models.tenant import Base, Tenant
from settlement.models.user import User
from settlement.services.balance_calculator import balance_for_order


TENANT_SLUG = "acme"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def tenant(db):
    tenant = Tenant(name="Acme", slug=TENANT_SLUG)
    db.add(tenant)
    db.commit()
    return tenant


def _user(db, tenant, email, role, customer_code=None):
    user = User(
        email=email,
        hashed_password=hash_password("secret"),
        role=role,
        tenant_id=tenant.id,
        customer_code=customer_code,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db, tenant):
    return _user(db, tenant, "owner@acme.com", "owner")


@pytest.fixture
def representative(db, tenant):
    return _user(db, tenant, "rep@acme.com", "representative", customer_code="C001")


@pytest.fixture
def client():
    return TestClient(app)


def headers_for(user):
    access, _ = create_token_pair(user.id)
    return {"Authorization": f"Bearer {access}", "X-Tenant-ID": TENANT_SLUG}


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def rep_headers(representative):
    return headers_for(representative)


@pytest.fixture
def make_order(db, tenant):
    def _make(gross, customer_code="C001", discount_type="fixed", discount_value=0, return_amount=0):
        order = Order(
            tenant_id=tenant.id,
            order_number=generate_folio(db, tenant.id, "PEDIDO"),
            customer_code=customer_code,
            customer_name=f"Customer {customer_code}",
            gross_value=Decimal(str(gross)),
            discount_type=discount_type,
            discount_value=Decimal(str(discount_value)),
            return_amount=Decimal(str(return_amount)),
            amount_paid=Decimal("0.00"),
            status="open",
        )
        order.remaining_balance = balance_for_order(order)["adjusted_balance"]
        db.add(order)
        db.commit()
        return order

    return _make
