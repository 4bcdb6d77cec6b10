"""Tests for counterparty listing."""

import pytest

from gstledger.core.exceptions import NotFoundError
from gstledger.schemas import BusinessEntityCreate
from gstledger.services.entity_service import BusinessEntityService


@pytest.fixture
def entities(db):
    return BusinessEntityService(db)


class TestList:

    def test_duplicates_collapse_to_newest(self, db, tenant, entities):
        entities.create(tenant, BusinessEntityCreate(name="Ravi Stores", entity_type="customer", state="27"))
        newest = entities.create(tenant, BusinessEntityCreate(name="  ravi stores ", entity_type="customer", state="29"))
        entities.create(tenant, BusinessEntityCreate(name="Ravi Stores", entity_type="supplier"))
        db.commit()

        listed = entities.list(tenant)
        assert len(listed) == 2
        customer = [e for e in listed if e.entity_type == "customer"][0]
        assert customer.id == newest.id
        assert customer.state == "29"

    def test_filter_by_type(self, db, tenant, entities, customer, supplier):
        assert [e.name for e in entities.list(tenant, "supplier")] == ["Pune Wholesale"]

    def test_gstin_normalised(self, db, tenant, entities):
        entity = entities.create(tenant, BusinessEntityCreate(
            name="Delta", entity_type="wholesaler", gstin="27aadcb2230m1zp"
        ))
        assert entity.gstin == "27AADCB2230M1ZP"

    def test_other_tenant_cannot_fetch(self, other_tenant, entities, customer):
        with pytest.raises(NotFoundError):
            entities.get(other_tenant, customer.id)
