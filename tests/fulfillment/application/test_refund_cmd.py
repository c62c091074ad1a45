"""Application tests for split order refunds."""

import pytest
from fulfillment.config import override_settings
from fulfillment.errors import ExternalCallFailure, InvalidTransition, MissingLinkage
from fulfillment.payments.port import Transaction
from fulfillment.split_order.refund import RefundSplitOrder
from fulfillment.split_order.split_order import SplitOrder
from protean import current_domain
from protean.exceptions import ValidationError

KORAMANGALA = (12.9352, 77.6245)


def _refund(split_id, amount=None):
    return current_domain.process(RefundSplitOrder(split_id=split_id, amount=amount), asynchronous=False)


@pytest.fixture
def paid_order(payments):
    payments.add_transaction("ord-1001", Transaction("tx-auth", "authorization", "success", 500.0))
    payments.add_transaction("ord-1001", Transaction("tx-sale", "sale", "success", 500.0))


@pytest.fixture
def two_store_split(store_factory, stock_factory, split_order):
    override_settings(inventory_mode="cluster")
    store_factory("MG01", cluster="blr", pincodes=["560001"])
    store_factory("KR01", location=KORAMANGALA, cluster="blr")
    stock_factory("MG01", "SKU-X", 1)
    stock_factory("KR01", "SKU-X", 5)
    return split_order(lines=[("li-1", "SKU-X", 3, 100.0)])


class TestRefundSplitOrder:
    def test_refund_against_original_sale(self, single_store, split_order, paid_order, payments, commerce):
        split_id = split_order(lines=[("li-1", "SKU-X", 2, 150.0)])[0]

        refund_id = _refund(split_id)

        split = current_domain.repository_for(SplitOrder).get(split_id)
        assert split.refund_status == "refunded"
        assert split.refund_id == refund_id
        assert split.refund_amount == 300.0
        assert payments.calls[-1]["parent_id"] == "tx-sale"
        assert payments.calls[-1]["idempotency_key"] == f"refund-{split_id}"
        assert commerce.orders["ord-1001"].financial_status == "refunded"

    def test_partial_amount(self, single_store, split_order, paid_order, payments):
        split_id = split_order(lines=[("li-1", "SKU-X", 2, 150.0)])[0]

        _refund(split_id, amount=120.0)

        assert payments.calls[-1]["amount"] == 120.0

    def test_refunding_one_of_two_splits(self, two_store_split, paid_order, commerce):
        _refund(two_store_split[0])
        assert commerce.orders["ord-1001"].financial_status == "partially_refunded"

        _refund(two_store_split[1])
        assert commerce.orders["ord-1001"].financial_status == "refunded"

    def test_refund_is_not_repeated(self, single_store, split_order, paid_order):
        split_id = split_order()[0]
        _refund(split_id)

        with pytest.raises(InvalidTransition):
            _refund(split_id)


class TestRefundPreconditions:
    def test_order_without_sale_transaction(self, single_store, split_order, payments):
        payments.add_transaction("ord-1001", Transaction("tx-auth", "authorization", "success", 500.0))
        split_id = split_order()[0]

        with pytest.raises(MissingLinkage):
            _refund(split_id)

    def test_unpaid_order(self, single_store, split_order, paid_order):
        split_id = split_order(financial_status="pending")[0]

        with pytest.raises(InvalidTransition):
            _refund(split_id)

    def test_declined_refund_leaves_split_unrefunded(self, single_store, split_order, paid_order, payments):
        payments.configure(should_succeed=False, failure_reason="Gateway declined")
        split_id = split_order()[0]

        with pytest.raises(ExternalCallFailure):
            _refund(split_id)

        assert current_domain.repository_for(SplitOrder).get(split_id).refund_status is None


def _refund_calls(payments):
    return [call for call in payments.calls if call["method"] == "refund"]


class TestRefundAmountLimits:
    def test_amount_above_split_value_is_rejected(self, single_store, split_order, paid_order, payments):
        split_id = split_order(lines=[("li-1", "SKU-X", 2, 150.0)])[0]

        with pytest.raises(ValidationError) as exc:
            _refund(split_id, amount=5000.0)

        assert "amount" in exc.value.messages
        assert _refund_calls(payments) == []
        assert current_domain.repository_for(SplitOrder).get(split_id).refund_status is None

    def test_amount_above_original_transaction_is_rejected(self, single_store, split_order, payments):
        payments.add_transaction("ord-1001", Transaction("tx-sale", "sale", "success", 100.0))
        split_id = split_order(lines=[("li-1", "SKU-X", 2, 150.0)])[0]

        with pytest.raises(ValidationError):
            _refund(split_id, amount=200.0)

        assert _refund_calls(payments) == []

    def test_partial_refunds_stay_open_until_the_split_value_is_returned(
        self, single_store, split_order, paid_order, payments, commerce
    ):
        split_id = split_order(lines=[("li-1", "SKU-X", 2, 150.0)])[0]
        repo = current_domain.repository_for(SplitOrder)

        _refund(split_id, amount=120.0)

        split = repo.get(split_id)
        assert split.refund_status == "partially_refunded"
        assert split.refund_amount == 120.0
        assert commerce.orders["ord-1001"].financial_status == "partially_refunded"

        _refund(split_id)

        split = repo.get(split_id)
        assert split.refund_status == "refunded"
        assert split.refund_amount == 300.0
        assert commerce.orders["ord-1001"].financial_status == "refunded"
        first, second = _refund_calls(payments)
        assert second["amount"] == 180.0
        assert first["idempotency_key"] != second["idempotency_key"]

        with pytest.raises(InvalidTransition):
            _refund(split_id)

    def test_partial_refund_cannot_exceed_the_remainder(self, single_store, split_order, paid_order, payments):
        split_id = split_order(lines=[("li-1", "SKU-X", 2, 150.0)])[0]
        _refund(split_id, amount=120.0)

        with pytest.raises(ValidationError):
            _refund(split_id, amount=200.0)

        assert current_domain.repository_for(SplitOrder).get(split_id).refund_amount == 120.0
