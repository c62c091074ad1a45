"""Secondary lookups over split orders."""

from protean.utils.globals import current_domain

from fulfillment.split_order.split_order import SplitOrder


def splits_for_order(order_reference_id: str) -> list[SplitOrder]:
    repo = current_domain.repository_for(SplitOrder)
    splits = repo._dao.query.filter(order_reference_id=order_reference_id).all().items
    return sorted(splits, key=lambda split: str(split.id))


def splits_with_status(status: str) -> list[SplitOrder]:
    repo = current_domain.repository_for(SplitOrder)
    return repo._dao.query.filter(order_status=status).all().items


def find_splits(order_reference_id: str | None = None, status: str | None = None) -> list[SplitOrder]:
    repo = current_domain.repository_for(SplitOrder)
    filters = {}
    if order_reference_id:
        filters["order_reference_id"] = order_reference_id
    if status:
        filters["order_status"] = status
    query = repo._dao.query.filter(**filters) if filters else repo._dao.query
    return sorted(query.all().items, key=lambda split: str(split.id))
