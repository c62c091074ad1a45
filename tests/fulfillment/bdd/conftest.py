"""Shared BDD fixtures and step definitions for order splitting and split order delivery."""

import pytest
from fulfillment.config import override_settings
from fulfillment.inventory import ledger
from fulfillment.split_order.queries import splits_for_order
from fulfillment.split_order.split_order import SplitOrder
from protean import current_domain
from pytest_bdd import given, parsers, then

KORAMANGALA = (12.9352, 77.6245)


@pytest.fixture()
def outcome():
    """Container for the result or error of the last action."""
    return {"result": None, "exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('inventory mode "{mode}"'))
def inventory_mode_is(mode):
    override_settings(inventory_mode=mode)


@given(parsers.cfparse('store "{code:w}" serves pincode "{pincode}"'))
def store_serving_pincode(store_factory, code, pincode):
    store_factory(code, pincodes=[pincode])


@given(parsers.cfparse('store "{code:w}" in cluster "{cluster:w}" serves pincode "{pincode}"'))
def cluster_store_serving_pincode(store_factory, code, cluster, pincode):
    store_factory(code, cluster=cluster, pincodes=[pincode])


@given(parsers.cfparse('store "{code:w}" in cluster "{cluster:w}"'))
def cluster_store(store_factory, code, cluster):
    store_factory(code, location=KORAMANGALA, cluster=cluster)


@given(parsers.cfparse('store "{code:w}" holds {quantity:d} units of "{sku}"'))
def store_holds_stock(stock_factory, code, quantity, sku):
    stock_factory(code, sku, quantity)


@given(parsers.cfparse('an order for {quantity:d} units of "{sku}" has been split'), target_fixture="split_ids")
def order_already_split(split_order, quantity, sku):
    return split_order(lines=[("li-1", sku, quantity, 100.0)])


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('split "{split_id}" is "{status}"'))
def split_status_is(split_id, status):
    assert current_domain.repository_for(SplitOrder).get(split_id).order_status == status


@then(parsers.cfparse('split "{split_id}" carries {quantity:d} units of "{sku}"'))
def split_carries(split_id, quantity, sku):
    split = current_domain.repository_for(SplitOrder).get(split_id)
    assert split.quantities().get(sku, 0) == quantity


@then(parsers.cfparse('store "{code:w}" has {quantity:d} sellable units of "{sku}"'))
def sellable_units(code, quantity, sku):
    assert ledger.find_record(code, sku).hybrid_stock == quantity


@then(parsers.cfparse('store "{code:w}" has {quantity:d} units of "{sku}" on hand'))
def on_hand_units(code, quantity, sku):
    assert ledger.find_record(code, sku).erp_stock == quantity


@then(parsers.cfparse('order "{order_id}" has {count:d} split orders'))
def order_has_splits(order_id, count):
    assert len(splits_for_order(order_id)) == count


@then(parsers.cfparse("the action fails with {error_type}"))
def action_fails_with(outcome, error_type):
    assert outcome["exc"] is not None, "Expected the action to fail"
    assert type(outcome["exc"]).__name__ == error_type
