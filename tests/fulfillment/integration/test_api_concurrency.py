"""Concurrent requests: slow adapter calls and lost update races."""

import contextvars
import inspect
import threading
import time

import pytest
from fastapi import FastAPI
from fastapi.routing import APIRoute
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
from fulfillment.commerce.port import DeliveryAddress, Order, OrderLine
from fulfillment.erp import set_erp
from fulfillment.erp.fake_adapter import FakeErp
from protean.exceptions import ExpectedVersionError


class GatedErp(FakeErp):
    """Holds every push until the test opens the gate."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.gate = threading.Event()

    def push_order(self, *args, **kwargs):
        self.entered.set()
        self.gate.wait(5)
        return super().push_order(*args, **kwargs)


@pytest.fixture
def gated_erp():
    erp = GatedErp()
    set_erp(erp)
    yield erp
    erp.gate.set()


@pytest.fixture
def split_id(client, api_store, commerce):
    commerce.add_order(
        Order(
            order_id="ord-3001",
            order_number="3001",
            line_items=(OrderLine("li-1", "SKU-X", 1, 150.0),),
            financial_status="paid",
            shipping_method="delivery",
            delivery=DeliveryAddress(pincode="560001", latitude=12.9716, longitude=77.5946),
        )
    )
    return client.post("/orders/ord-3001/split").json()["split_ids"][0]


def test_routes_run_on_the_threadpool():
    routers = (store_router, inventory_router, order_router, split_order_router, courier_router, adapter_router)
    coroutine_routes = [
        route.path
        for router in routers
        for route in router.routes
        if isinstance(route, APIRoute) and inspect.iscoroutinefunction(route.endpoint)
    ]
    assert coroutine_routes == []


def test_request_is_served_while_erp_push_is_in_flight(client, split_id, gated_erp):
    responses = {}

    def confirm():
        responses["confirm"] = client.put(f"/split-orders/{split_id}/confirm")

    with client:
        worker = threading.Thread(target=contextvars.copy_context().run, args=(confirm,))
        worker.start()
        assert gated_erp.entered.wait(5)

        started = time.monotonic()
        store = client.get("/stores/MG01")
        elapsed = time.monotonic() - started

        gated_erp.gate.set()
        worker.join(5)

    assert store.status_code == 200
    assert elapsed < 1.0
    assert responses["confirm"].status_code == 200
    assert responses["confirm"].json()["erp_push_status"] == "pushed"


def test_lost_concurrent_update_is_409():
    app = FastAPI()
    register_exception_handlers(app)

    @app.post("/race")
    def race():
        raise ExpectedVersionError("Wrong expected version: 3 (Identifier: MG01::SKU-X, Version: 4)")

    response = TestClient(app).post("/race")

    assert response.status_code == 409
    assert response.json()["error"] == "concurrent_update"
