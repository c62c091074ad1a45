"""Application tests for operator-driven manual splits."""

import pytest
from fulfillment.errors import MissingLinkage, OutOfStock
from fulfillment.inventory import ledger
from fulfillment.notifications import get_alert_board
from fulfillment.split_order.queries import splits_for_order
from fulfillment.split_order.split_order import SplitOrder, SplitOrderStatus
from fulfillment.splitting.creation import SplitOrderManually
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

KORAMANGALA = (12.9352, 77.6245)


def _split_manually(order_id="ord-1001", store_code="KR01"):
    return current_domain.process(SplitOrderManually(order_id=order_id, store_code=store_code), asynchronous=False)


@pytest.fixture
def two_stores(single_store, store_factory, stock_factory):
    """MG01 is the engine's choice; KR01 is where the operator sends the order."""
    store_factory("KR01", location=KORAMANGALA, name="Koramangala")
    stock_factory("KR01", "SKU-X", 5)
    stock_factory("KR01", "SKU-Y", 5)


class TestSplitOrderManually:
    def test_whole_order_goes_to_chosen_store(self, two_stores, place_order):
        place_order(lines=[("li-1", "SKU-X", 2, 100.0), ("li-2", "SKU-Y", 1, 40.0)])

        assert _split_manually() == ["1001-KR01"]

        split = current_domain.repository_for(SplitOrder).get("1001-KR01")
        assert split.status() == SplitOrderStatus.NEW
        assert split.store_name == "Koramangala"
        assert sorted((i.line_item_id, i.quantity, i.reserved) for i in split.items) == [
            ("li-1", 2, True),
            ("li-2", 1, True),
        ]

    def test_reserves_at_chosen_store_only(self, two_stores, place_order):
        place_order(lines=[("li-1", "SKU-X", 2, 100.0), ("li-2", "SKU-X", 1, 100.0)])

        _split_manually()

        assert ledger.find_record("KR01", "SKU-X").online_stock == 3
        assert ledger.find_record("MG01", "SKU-X").online_stock == 0

    def test_raises_new_order_alert(self, two_stores, place_order):
        place_order()
        _split_manually()
        assert get_alert_board().is_active("ord-1001")

    def test_already_split_order_returns_existing_splits(self, two_stores, split_order):
        split_ids = split_order()

        assert _split_manually() == split_ids
        assert ledger.find_record("KR01", "SKU-X").online_stock == 0

    def test_short_stock_is_rejected_without_reserving(self, two_stores, place_order):
        place_order(lines=[("li-1", "SKU-Y", 1, 40.0), ("li-2", "SKU-X", 6, 100.0)])

        with pytest.raises(OutOfStock):
            _split_manually()

        assert ledger.find_record("KR01", "SKU-Y").online_stock == 0
        assert splits_for_order("ord-1001") == []

    def test_unknown_store(self, two_stores, place_order):
        place_order()
        with pytest.raises(ObjectNotFoundError):
            _split_manually(store_code="ZZ99")

    def test_inactive_store(self, single_store, store_factory, place_order):
        store_factory("KR01", location=KORAMANGALA, status="inactive")
        place_order()

        with pytest.raises(ValidationError) as exc:
            _split_manually()
        assert "store_code" in exc.value.messages

    def test_unknown_order(self, two_stores):
        with pytest.raises(MissingLinkage):
            _split_manually(order_id="ord-404")
