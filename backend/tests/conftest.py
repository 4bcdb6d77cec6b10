"""Shared fixtures: an in-memory database with one tenant and some master data."""

import itertools
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gstledger.core.database import Base
from gstledger.core.tenancy import TenantContext
from gstledger.models import Company
from gstledger.schemas import (
    BusinessEntityCreate, InvoiceCreate, InvoiceItemCreate, ProductCreate
)
from gstledger.services.entity_service import BusinessEntityService
from gstledger.services.inventory_service import ProductService
from gstledger.services.invoice_service import InvoiceService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def company(db) -> Company:
    company = Company(name="Acme Traders", state_code="27", gstin="27AADCB2230M1ZP", user_id=1)
    db.add(company)
    db.commit()
    return company


@pytest.fixture
def tenant(company) -> TenantContext:
    return TenantContext(company_id=company.id, user_id=1)


@pytest.fixture
def other_tenant(db) -> TenantContext:
    company = Company(name="Other Co", state_code="29", user_id=2)
    db.add(company)
    db.commit()
    return TenantContext(company_id=company.id, user_id=2)


def _entity(db, tenant, name, entity_type, state):
    entity = BusinessEntityService(db).create(
        tenant, BusinessEntityCreate(name=name, entity_type=entity_type, state=state)
    )
    db.commit()
    return entity


@pytest.fixture
def customer(db, tenant):
    return _entity(db, tenant, "Ravi Stores", "customer", "27")


@pytest.fixture
def outstation_customer(db, tenant):
    return _entity(db, tenant, "Bengaluru Mart", "customer", "29")


@pytest.fixture
def supplier(db, tenant):
    return _entity(db, tenant, "Pune Wholesale", "supplier", "27")


@pytest.fixture
def widget(db, tenant):
    """Widget: 5 in stock, bought at 600, sold at 1000, 18% GST."""
    product = ProductService(db).create(tenant, ProductCreate(
        name="Widget",
        purchase_price=Decimal("600"),
        selling_price=Decimal("1000"),
        gst_rate=Decimal("18"),
        current_stock=Decimal("5"),
        min_stock_level=Decimal("2"),
    ))
    db.commit()
    return product


@pytest.fixture
def number_factory():
    """Deterministic invoice numbers: INV-202501-000001, -000002, ..."""
    counter = itertools.count(1)
    return lambda: f"INV-202501-{next(counter):06d}"


@pytest.fixture
def invoice_service(db, number_factory) -> InvoiceService:
    return InvoiceService(db, number_factory=number_factory)


def make_invoice(items, invoice_type="sales", entity_type="customer", entity=None, **header) -> InvoiceCreate:
    """InvoiceCreate from (description, quantity, unit_price, gst_rate) tuples."""
    header.setdefault("invoice_date", date(2025, 1, 15))
    return InvoiceCreate(
        invoice_type=invoice_type,
        entity_type=entity_type,
        entity_id=entity.id if entity is not None else None,
        items=[
            InvoiceItemCreate(
                description=description,
                quantity=Decimal(str(quantity)),
                unit_price=Decimal(str(price)),
                gst_rate=Decimal(str(rate)),
            )
            for description, quantity, price, rate in items
        ],
        **header,
    )
