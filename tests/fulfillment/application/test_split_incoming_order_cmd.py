"""Application tests for splitting incoming orders across stores."""

import contextvars
import threading

import pytest
from fulfillment.config import override_settings
from fulfillment.errors import MissingLinkage, OutOfStock, SplitPersistenceFailure
from fulfillment.inventory import ledger
from fulfillment.notifications import get_alert_board
from fulfillment.split_order.queries import splits_for_order
from fulfillment.split_order.split_order import SplitOrder, SplitOrderStatus
from fulfillment.splitting.creation import SplitIncomingOrder
from protean import current_domain
from protean.exceptions import DatabaseError, ExpectedVersionError

KORAMANGALA = (12.9352, 77.6245)
WHITEFIELD = (12.9698, 77.7500)


@pytest.fixture
def blr_cluster(store_factory, stock_factory):
    override_settings(inventory_mode="cluster")
    store_factory("MG01", cluster="blr", pincodes=["560001"])
    store_factory("KR01", location=KORAMANGALA, cluster="blr")
    stock_factory("MG01", "SKU-X", 3)
    stock_factory("KR01", "SKU-X", 10)


class TestSingleStoreSplit:
    def test_order_served_by_one_store(self, single_store, split_order):
        split_ids = split_order(lines=[("li-1", "SKU-X", 2, 250.0)])

        assert split_ids == ["1001-MG01"]
        split = current_domain.repository_for(SplitOrder).get("1001-MG01")
        assert split.status() == SplitOrderStatus.NEW
        assert split.order_reference_id == "ord-1001"
        assert split.store_name == "Store MG01"
        assert [(i.sku, i.quantity, i.reserved) for i in split.items] == [("SKU-X", 2, True)]
        assert split.timestamp_map()["created"] > 0

    def test_split_reserves_stock(self, single_store, split_order):
        split_order(lines=[("li-1", "SKU-X", 2, 250.0)])

        record = ledger.find_record("MG01", "SKU-X")
        assert record.online_stock == 2
        assert record.hybrid_stock == 8

    def test_split_raises_new_order_alert(self, single_store, split_order):
        split_order()
        assert get_alert_board().is_active("ord-1001")

    def test_lines_of_one_store_stay_together(self, single_store, stock_factory, split_order):
        stock_factory("MG01", "SKU-Y", 5)

        split_ids = split_order(lines=[("li-1", "SKU-X", 1, 100.0), ("li-2", "SKU-Y", 2, 40.0)])

        split = current_domain.repository_for(SplitOrder).get(split_ids[0])
        assert len(split_ids) == 1
        assert sorted(i.line_item_id for i in split.items) == ["li-1", "li-2"]

    def test_redelivered_order_is_not_split_twice(self, single_store, split_order):
        first = split_order()
        second = current_domain.process(SplitIncomingOrder(order_id="ord-1001"), asynchronous=False)

        assert first == second
        assert ledger.find_record("MG01", "SKU-X").online_stock == 1
        assert len(splits_for_order("ord-1001")) == 1


class TestClusterSplit:
    def test_shortfall_at_primary_spills_to_cluster(self, blr_cluster, split_order):
        split_ids = split_order(lines=[("li-1", "SKU-X", 5, 100.0)])

        assert sorted(split_ids) == ["1001-KR01", "1001-MG01"]
        repo = current_domain.repository_for(SplitOrder)
        assert [(i.line_item_id, i.quantity) for i in repo.get("1001-MG01").items] == [("li-1", 3)]
        assert [(i.line_item_id, i.quantity) for i in repo.get("1001-KR01").items] == [("li-1", 2)]

        assert ledger.find_record("MG01", "SKU-X").online_stock == 3
        assert ledger.find_record("KR01", "SKU-X").online_stock == 2

    def test_primary_store_alone_when_it_has_enough(self, blr_cluster, split_order):
        assert split_order(lines=[("li-1", "SKU-X", 2, 100.0)]) == ["1001-MG01"]

    def test_pickup_order_stays_at_chosen_store(self, blr_cluster, split_order):
        with pytest.raises(OutOfStock):
            split_order(
                lines=[("li-1", "SKU-X", 5, 100.0)],
                shipping_method="pickup",
                preferred_store_code="MG01",
            )
        assert splits_for_order("ord-1001") == []

        split_ids = split_order(
            order_id="ord-1002",
            order_number="1002",
            lines=[("li-1", "SKU-X", 5, 100.0)],
            shipping_method="pickup",
            preferred_store_code="KR01",
        )
        assert split_ids == ["1002-KR01"]


class TestOutOfStock:
    def test_reject_policy_creates_nothing(self, single_store, split_order):
        with pytest.raises(OutOfStock) as exc:
            split_order(lines=[("li-1", "SKU-X", 11, 100.0)])

        assert exc.value.requested == 11
        assert exc.value.available == 10
        assert splits_for_order("ord-1001") == []
        assert ledger.find_record("MG01", "SKU-X").online_stock == 0
        assert not get_alert_board().is_active("ord-1001")

    def test_hold_policy_parks_the_shortfall(self, single_store, split_order):
        override_settings(out_of_stock_policy="hold")

        split_ids = split_order(lines=[("li-1", "SKU-X", 12, 100.0)])

        split = current_domain.repository_for(SplitOrder).get(split_ids[0])
        assert split.status() == SplitOrderStatus.ON_HOLD
        assert split.on_hold_status == "out_of_stock"
        assert split.quantities() == {"SKU-X": 12}
        assert split.quantities(reserved=False) == {"SKU-X": 2}
        assert ledger.find_record("MG01", "SKU-X").online_stock == 10

    def test_no_serving_store(self, single_store, split_order):
        with pytest.raises(OutOfStock) as exc:
            split_order(pincode="110001", location=None)
        assert "no serving store" in exc.value.messages["sku"][0]

    def test_threshold_makes_store_ineligible(self, store_factory, stock_factory, split_order):
        store_factory("MG01", pincodes=["560001"])
        stock_factory("MG01", "SKU-X", 4, threshold_stock=5)

        with pytest.raises(OutOfStock):
            split_order()


class TestMissingOrder:
    def test_unknown_order(self, single_store):
        with pytest.raises(MissingLinkage):
            current_domain.process(SplitIncomingOrder(order_id="ord-404"), asynchronous=False)


class TestAllOrNothing:
    @pytest.fixture
    def two_sku_store(self, single_store, stock_factory):
        stock_factory("MG01", "SKU-Y", 10)
        return single_store

    def test_failed_reservation_undoes_earlier_reservations(self, two_sku_store, split_order, monkeypatch):
        reserve = ledger.reserve
        calls = []

        def failing_second_reserve(*args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise DatabaseError("inventory store unavailable")
            return reserve(*args, **kwargs)

        monkeypatch.setattr(ledger, "reserve", failing_second_reserve)

        with pytest.raises(DatabaseError):
            split_order(lines=[("li-1", "SKU-X", 2, 100.0), ("li-2", "SKU-Y", 1, 50.0)])

        assert len(calls) == 2
        assert ledger.find_record("MG01", "SKU-X").online_stock == 0
        assert ledger.find_record("MG01", "SKU-Y").online_stock == 0
        assert splits_for_order("ord-1001") == []

    def test_failed_split_write_undoes_reservations(self, two_sku_store, split_order, monkeypatch):
        repository_cls = type(current_domain.repository_for(SplitOrder))
        add = repository_cls.add

        def failing_add(self, item, *args, **kwargs):
            if isinstance(item, SplitOrder):
                raise DatabaseError("split store unavailable")
            return add(self, item, *args, **kwargs)

        monkeypatch.setattr(repository_cls, "add", failing_add)

        with pytest.raises(SplitPersistenceFailure):
            split_order(lines=[("li-1", "SKU-X", 2, 100.0), ("li-2", "SKU-Y", 1, 50.0)])

        monkeypatch.undo()
        assert ledger.find_record("MG01", "SKU-X").online_stock == 0
        assert ledger.find_record("MG01", "SKU-Y").online_stock == 0
        assert splits_for_order("ord-1001") == []


class TestCompetingOrders:
    def test_same_stock_is_never_sold_twice(self, store_factory, stock_factory, place_order):
        store_factory("MG01", pincodes=["560001"])
        stock_factory("MG01", "SKU-X", 6)
        for number in ("2001", "2002"):
            place_order(order_id=f"ord-{number}", order_number=number, lines=[("li-1", "SKU-X", 4, 100.0)])

        start = threading.Barrier(2)
        outcomes = {}

        def split(order_id):
            start.wait(5)
            try:
                outcomes[order_id] = current_domain.process(SplitIncomingOrder(order_id=order_id), asynchronous=False)
            except (OutOfStock, ExpectedVersionError) as exc:
                outcomes[order_id] = exc

        workers = [
            threading.Thread(target=contextvars.copy_context().run, args=(split, order_id))
            for order_id in ("ord-2001", "ord-2002")
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(10)

        winners = [order_id for order_id, outcome in outcomes.items() if isinstance(outcome, list)]
        losers = [outcome for outcome in outcomes.values() if isinstance(outcome, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert ledger.find_record("MG01", "SKU-X").online_stock == 4
        assert len(splits_for_order("ord-2001")) + len(splits_for_order("ord-2002")) == 1
