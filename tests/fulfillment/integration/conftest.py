import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fulfillment.api.errors import register_exception_handlers
from fulfillment.api.routes import (
    adapter_router,
    courier_router,
    inventory_router,
    order_router,
    split_order_router,
    store_router,
)

COURIER_SECRET = {"X-Courier-Secret": "fake-courier-secret"}


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (store_router, inventory_router, order_router, split_order_router, courier_router, adapter_router):
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def api_store(client):
    """Register MG01 serving pincode 560001 and sync 10 units of SKU-X through the API."""
    client.post(
        "/stores",
        json={
            "code": "MG01",
            "name": "MG Road",
            "latitude": 12.9756,
            "longitude": 77.6050,
            "delivery_radius_tiers": [{"radius_km": 5, "tier": "express"}, {"radius_km": 15}],
            "pincodes": ["560001"],
        },
    )
    client.post("/inventory/sync", json={"store_code": "MG01", "levels": [{"sku": "SKU-X", "stock": 10}]})
    return "MG01"


@pytest.fixture()
def courier_headers():
    return dict(COURIER_SECRET)
