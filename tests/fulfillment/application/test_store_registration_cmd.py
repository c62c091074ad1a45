"""Application tests for store registration and primary store resolution."""

import json

import pytest
from fulfillment.store.directory import cluster_members, resolve_primary_store, stores_backed_by
from fulfillment.store.geo import GeoPoint
from fulfillment.store.registration import RegisterStore
from fulfillment.store.store import Store
from protean import current_domain
from protean.exceptions import ValidationError

MG_ROAD = (12.9756, 77.6050)
KORAMANGALA = (12.9352, 77.6245)
WHITEFIELD = (12.9698, 77.7500)
CUSTOMER = (12.9716, 77.5946)


class TestRegisterStore:
    def test_register_new_store(self, store_factory):
        code = store_factory("MG01", pincodes=["560001", "560025"], cluster="blr")

        store = current_domain.repository_for(Store).get(code)
        assert store.name == "Store MG01"
        assert store.erp_store_id == "MG01"
        assert store.cluster == "blr"
        assert store.serviced_pincodes() == ["560001", "560025"]
        assert store.max_delivery_radius_km() == 15.0

    def test_reregistering_overwrites_details(self, store_factory):
        store_factory("MG01", pincodes=["560001"], cluster="blr")
        store_factory("MG01", pincodes=["560002"], cluster=None, name="MG Road Flagship")

        store = current_domain.repository_for(Store).get("MG01")
        assert store.name == "MG Road Flagship"
        assert store.serviced_pincodes() == ["560002"]
        assert store.cluster is None

    def test_explicit_erp_store_id(self):
        current_domain.process(
            RegisterStore(code="MG01", name="MG Road", erp_store_id="ERP-0042", pincodes=json.dumps([])),
            asynchronous=False,
        )
        assert current_domain.repository_for(Store).get("MG01").erp_store_id == "ERP-0042"

    def test_store_cannot_back_itself(self, store_factory):
        with pytest.raises(ValidationError):
            store_factory("WH01", backup_store_code="WH01")


class TestStoreDirectory:
    def test_cluster_members_exclude_inactive_stores(self, store_factory):
        store_factory("MG01", cluster="blr")
        store_factory("KR01", location=KORAMANGALA, cluster="blr")
        store_factory("WF01", location=WHITEFIELD, cluster="blr", status="inactive")
        store_factory("CH01", cluster="chennai")

        assert sorted(s.code for s in cluster_members("blr")) == ["KR01", "MG01"]

    def test_stores_backed_by_warehouse(self, store_factory):
        store_factory("WH01", is_backup_warehouse=True)
        store_factory("MG01", backup_store_code="WH01")
        store_factory("KR01", location=KORAMANGALA, backup_store_code="WH01")

        assert sorted(s.code for s in stores_backed_by("WH01")) == ["KR01", "MG01"]

    def test_pincode_wins_over_distance(self, store_factory):
        store_factory("MG01", location=MG_ROAD)
        store_factory("WF01", location=WHITEFIELD, pincodes=["560001"])

        store = resolve_primary_store(None, "560001", GeoPoint(*CUSTOMER))
        assert store.code == "WF01"

    def test_falls_back_to_nearest_covering_store(self, store_factory):
        store_factory("MG01", location=MG_ROAD)
        store_factory("KR01", location=KORAMANGALA)

        store = resolve_primary_store(None, "999999", GeoPoint(*CUSTOMER))
        assert store.code == "MG01"

    def test_address_outside_every_radius(self, store_factory):
        store_factory("MG01", location=MG_ROAD, radius_km=0.5)

        assert resolve_primary_store(None, None, GeoPoint(*WHITEFIELD)) is None

    def test_preferred_store_wins_when_active(self, store_factory):
        store_factory("MG01", pincodes=["560001"])
        store_factory("KR01", location=KORAMANGALA)
        store_factory("WF01", location=WHITEFIELD, status="inactive")

        assert resolve_primary_store("KR01", "560001", None).code == "KR01"
        assert resolve_primary_store("WF01", "560001", None).code == "MG01"
