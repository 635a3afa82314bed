import asyncio
import uuid
import pytest
from decimal import Decimal
from courier.core.errors import ConflictError, ForbiddenError, InvalidStateError, InvalidTransitionError, NotFoundError
from courier.models.order import Order, OrderStatus, RecordState
from courier.services.queries import OrderQuery, PaymentQuery

ORDER_PAYLOAD = {
    "pickup_address": "Moi Avenue, Nairobi",
    "pickup_contact_phone": "+254711000000",
    "delivery_address": "Kenyatta Road, Thika",
    "delivery_contact_phone": "+254722000000",
    "item_type": "DOCUMENTS",
    "delivery_mode": "NEXT_DAY",
    "base_price": 1200,
    "surcharges": 300,
    "total_price": 1500,
}


@pytest.mark.asyncio
async def test_create_order_starts_in_created(services, seed):
    payload = dict(ORDER_PAYLOAD, customer_id=str(seed.amina.id))
    order = await services["orders"].create(payload, seed.swift_dispatcher)

    assert order.status == OrderStatus.CREATED
    assert order.operator_id == seed.swift.id
    assert order.customer_id == seed.amina.id
    assert order.order_number.startswith("ORD-")
    assert order.total_price == Decimal("1500")


@pytest.mark.asyncio
async def test_customer_creates_order_for_themselves(services, seed):
    payload = dict(ORDER_PAYLOAD, operator_id=str(seed.swift.id), customer_id=str(seed.kofi.id))
    order = await services["orders"].create(payload, seed.amina)
    assert order.customer_id == seed.amina.id


@pytest.mark.asyncio
async def test_create_order_requires_prices(services, seed):
    payload = dict(ORDER_PAYLOAD, customer_id=str(seed.amina.id))
    del payload["total_price"]
    with pytest.raises(InvalidStateError) as exc:
        await services["orders"].create(payload, seed.swift_dispatcher)
    assert exc.value.context["missing"] == ["total_price"]


@pytest.mark.asyncio
async def test_cancel_created_order_writes_history(services, seed, make_order):
    order = await make_order(OrderStatus.CREATED)

    updated = await services["orders"].update_status(order.id, OrderStatus.CANCELLED, seed.swift_admin)

    assert updated.status == OrderStatus.CANCELLED
    history = await services["orders"].history(order.id, seed.swift_admin)
    assert len(history) == 1
    assert history[0].status_from == OrderStatus.CREATED
    assert history[0].status_to == OrderStatus.CANCELLED
    assert history[0].changed_by == seed.swift_admin.id


@pytest.mark.asyncio
async def test_invalid_transition_reports_allowed_statuses(services, seed, make_order, reload):
    order = await make_order(OrderStatus.CREATED)

    with pytest.raises(InvalidTransitionError) as exc:
        await services["orders"].update_status(order.id, "PAID", seed.swift_admin)

    error = exc.value.to_dict()
    assert error["current_status"] == "CREATED"
    assert error["allowed_transitions"] == ["PENDING_OPERATOR_ACTION", "CANCELLED"]
    assert (await reload(Order, order.id)).status == OrderStatus.CREATED
    assert await services["orders"].history(order.id, seed.swift_admin) == []


@pytest.mark.asyncio
async def test_terminal_order_cannot_move(services, seed, make_order):
    order = await make_order(OrderStatus.CANCELLED)
    with pytest.raises(InvalidTransitionError):
        await services["orders"].update_status(order.id, OrderStatus.CREATED, seed.admin)


@pytest.mark.asyncio
async def test_rejection_reason_is_recorded(services, seed, make_order, reload):
    order = await make_order(OrderStatus.PENDING_OPERATOR_ACTION)

    await services["orders"].update_status(
        order.id, OrderStatus.REJECTED, seed.swift_admin, reason="Address outside coverage"
    )

    stored = await reload(Order, order.id)
    assert stored.status == OrderStatus.REJECTED
    assert stored.rejection_reason == "Address outside coverage"


@pytest.mark.asyncio
async def test_update_status_on_other_tenant_is_forbidden(services, seed, make_order):
    order = await make_order(OrderStatus.CREATED, operator=seed.rapid)
    with pytest.raises(ForbiddenError):
        await services["orders"].update_status(order.id, OrderStatus.CANCELLED, seed.swift_admin)


@pytest.mark.asyncio
async def test_read_of_other_tenant_is_not_found(services, seed, make_order):
    order = await make_order(OrderStatus.CREATED, operator=seed.rapid)
    with pytest.raises(NotFoundError):
        await services["orders"].find_one(order.id, seed.swift_admin)
    assert (await services["orders"].find_one(order.id, seed.rapid_dispatcher)).id == order.id
    assert (await services["orders"].find_one(order.id, seed.support)).id == order.id


@pytest.mark.asyncio
async def test_customer_cannot_update_someone_elses_order(services, seed, make_order):
    order = await make_order(OrderStatus.CREATED, customer=seed.kofi)
    with pytest.raises(ForbiddenError):
        await services["orders"].update_status(order.id, OrderStatus.CANCELLED, seed.amina)
    with pytest.raises(NotFoundError):
        await services["orders"].find_one(order.id, seed.amina)


@pytest.mark.asyncio
async def test_soft_deleted_order_disappears(services, seed, make_order, reload):
    order = await make_order(OrderStatus.CREATED)

    await services["orders"].remove(order.id, seed.swift_admin)

    assert (await reload(Order, order.id)).record_state == RecordState.DELETED
    with pytest.raises(NotFoundError):
        await services["orders"].find_one(order.id, seed.admin)
    with pytest.raises(NotFoundError):
        await services["orders"].update_status(order.id, OrderStatus.CANCELLED, seed.admin)
    orders, meta = await services["orders"].find_all(OrderQuery(), seed.admin)
    assert meta["total"] == 0


@pytest.mark.asyncio
async def test_list_is_narrowed_by_scope(services, seed, make_order):
    await make_order(OrderStatus.CREATED)
    await make_order(OrderStatus.PAID, customer=seed.kofi)
    await make_order(OrderStatus.CREATED, operator=seed.rapid)

    _, swift_meta = await services["orders"].find_all(OrderQuery(), seed.swift_dispatcher)
    _, rapid_meta = await services["orders"].find_all(OrderQuery(), seed.rapid_dispatcher)
    amina_orders, _ = await services["orders"].find_all(OrderQuery(), seed.amina)
    _, all_meta = await services["orders"].find_all(OrderQuery(), seed.admin)
    _, orphan_meta = await services["orders"].find_all(OrderQuery(), seed.orphan_staff)
    paid, _ = await services["orders"].find_all(OrderQuery(status="PAID"), seed.admin)

    assert swift_meta["total"] == 2
    assert rapid_meta["total"] == 1
    assert len(amina_orders) == 2
    assert all(o.customer_id == seed.amina.id for o in amina_orders)
    assert all_meta["total"] == 3
    assert orphan_meta["total"] == 0
    assert [o.status for o in paid] == [OrderStatus.PAID]


@pytest.mark.asyncio
async def test_lookup_by_order_number(services, make_order):
    order = await make_order(OrderStatus.CREATED)
    found = await services["orders"].find_by_order_number(order.order_number)
    assert found.id == order.id
    with pytest.raises(NotFoundError):
        await services["orders"].find_by_order_number("ORD-19990101-0000")


@pytest.mark.asyncio
async def test_malformed_order_id_is_not_found(services, seed):
    with pytest.raises(NotFoundError):
        await services["orders"].find_one("not-a-uuid", seed.admin)


def test_order_query_validates_input():
    with pytest.raises(InvalidStateError):
        OrderQuery(page=0)
    with pytest.raises(InvalidStateError):
        OrderQuery(status="LOST")
    with pytest.raises(InvalidStateError, match="page must be an integer"):
        OrderQuery(page="abc")
    with pytest.raises(InvalidStateError, match="limit must be an integer"):
        PaymentQuery(limit="ten")
    query = OrderQuery(page="2", limit="5", search="  thika ")
    assert query.offset == 5
    assert query.search == "thika"
    assert query.meta(11)["total_pages"] == 3


@pytest.mark.asyncio
async def test_create_gives_up_when_order_numbers_run_out(services, seed, monkeypatch):
    monkeypatch.setattr("courier.services.order_service.random.randint", lambda low, high: 42)
    payload = dict(ORDER_PAYLOAD, customer_id=str(seed.amina.id))
    first = await services["orders"].create(payload, seed.swift_dispatcher)
    assert first.order_number.endswith("-0042")

    with pytest.raises(ConflictError, match="unique order number"):
        await asyncio.wait_for(services["orders"].create(payload, seed.swift_dispatcher), timeout=5)


@pytest.mark.asyncio
async def test_order_number_taken_on_insert_is_a_conflict(services, seed, make_order, monkeypatch):
    taken = await make_order(OrderStatus.CREATED)

    # The pre-insert check misses a number claimed by a concurrent create
    async def claimed_number(session):
        return taken.order_number

    monkeypatch.setattr(services["orders"], "_generate_order_number", claimed_number)
    payload = dict(ORDER_PAYLOAD, customer_id=str(seed.amina.id))

    with pytest.raises(ConflictError):
        await services["orders"].create(payload, seed.swift_dispatcher)
    _, meta = await services["orders"].find_all(OrderQuery(), seed.admin)
    assert meta["total"] == 1


@pytest.mark.asyncio
async def test_create_for_unknown_operator_or_customer(services, seed):
    payload = dict(ORDER_PAYLOAD, operator_id=str(uuid.uuid4()), customer_id=str(seed.amina.id))
    with pytest.raises(NotFoundError, match="Operator"):
        await services["orders"].create(payload, seed.admin)

    payload = dict(ORDER_PAYLOAD, customer_id=str(uuid.uuid4()))
    with pytest.raises(NotFoundError, match="Customer"):
        await services["orders"].create(payload, seed.swift_dispatcher)
