import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def fulfillment_bed():
    from fulfillment.domain import fulfillment

    bed = DomainFixture(fulfillment)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(fulfillment_bed):
    with fulfillment_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Fake adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def commerce():
    from fulfillment.commerce import get_commerce

    return get_commerce()


@pytest.fixture()
def erp():
    from fulfillment.erp import get_erp

    return get_erp()


@pytest.fixture()
def courier():
    from fulfillment.courier import get_courier

    return get_courier()


@pytest.fixture()
def payments():
    from fulfillment.payments import get_payments

    return get_payments()


@pytest.fixture()
def notifier():
    from fulfillment.notifications import get_notifier

    return get_notifier()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
# Bangalore coordinates: MG Road, Koramangala and Whitefield
MG_ROAD = (12.9756, 77.6050)
KORAMANGALA = (12.9352, 77.6245)
WHITEFIELD = (12.9698, 77.7500)
CUSTOMER = (12.9716, 77.5946)


def register_store(
    code,
    location=MG_ROAD,
    cluster=None,
    pincodes=(),
    radius_km=15.0,
    backup_store_code=None,
    is_backup_warehouse=False,
    status="active",
    name=None,
):
    from fulfillment.store.registration import RegisterStore

    return current_domain.process(
        RegisterStore(
            code=code,
            name=name or f"Store {code}",
            status=status,
            latitude=location[0] if location else None,
            longitude=location[1] if location else None,
            delivery_radius_tiers=json.dumps([{"radius_km": radius_km, "tier": "standard"}]),
            backup_store_code=backup_store_code,
            is_backup_warehouse=is_backup_warehouse,
            cluster=cluster,
            pincodes=json.dumps(list(pincodes)),
        ),
        asynchronous=False,
    )


def stock(store_code, sku, erp_stock, buffer_stock=0, threshold_stock=0):
    from fulfillment.inventory import ledger

    ledger.sync_erp_stock(store_code, sku, erp_stock)
    if buffer_stock or threshold_stock:
        ledger.adjust_levels(store_code, sku, buffer_stock=buffer_stock, threshold_stock=threshold_stock)
    return ledger.find_record(store_code, sku)


def make_order(
    order_id="ord-1001",
    order_number="1001",
    lines=(("li-1", "SKU-X", 1, 100.0),),
    pincode="560001",
    location=CUSTOMER,
    financial_status="paid",
    shipping_method="delivery",
    preferred_store_code=None,
):
    from fulfillment.commerce.port import DeliveryAddress, Order, OrderLine

    return Order(
        order_id=order_id,
        order_number=order_number,
        line_items=tuple(OrderLine(li, sku, qty, price) for li, sku, qty, price in lines),
        customer_id="cust-1",
        financial_status=financial_status,
        shipping_method=shipping_method,
        delivery=DeliveryAddress(
            pincode=pincode,
            latitude=location[0] if location else None,
            longitude=location[1] if location else None,
            name="Asha Rao",
            phone="9800000001",
            address="12 Residency Road",
        ),
        preferred_store_code=preferred_store_code,
    )


@pytest.fixture()
def store_factory():
    return register_store


@pytest.fixture()
def stock_factory():
    return stock


@pytest.fixture()
def place_order(commerce):
    """Publish an order on the fake commerce platform and return it."""

    def _place(**kwargs):
        order = make_order(**kwargs)
        commerce.add_order(order)
        return order

    return _place


@pytest.fixture()
def split_order(place_order):
    """Publish an order and split it, returning the split ids."""
    from fulfillment.splitting.creation import SplitIncomingOrder

    def _split(**kwargs):
        order = place_order(**kwargs)
        return current_domain.process(SplitIncomingOrder(order_id=order.order_id), asynchronous=False)

    return _split


@pytest.fixture()
def single_store(store_factory, stock_factory):
    """One store serving pincode 560001 with 10 units of SKU-X."""
    store_factory("MG01", location=MG_ROAD, pincodes=["560001"])
    stock_factory("MG01", "SKU-X", 10)
    return "MG01"


@pytest.fixture()
def confirmed_split(single_store, split_order):
    """A single-store split confirmed and pushed to the ERP."""
    from fulfillment.split_order.confirmation import ConfirmSplitOrder

    split_id = split_order()[0]
    current_domain.process(ConfirmSplitOrder(split_id=split_id), asynchronous=False)
    return split_id


@pytest.fixture()
def dispatched_split(confirmed_split):
    """A confirmed split with a booked courier task. Returns ``(split_id, task_id)``."""
    from fulfillment.split_order.dispatch import DispatchCourierTask

    task_id = current_domain.process(DispatchCourierTask(split_id=confirmed_split), asynchronous=False)
    return confirmed_split, task_id
