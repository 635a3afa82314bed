from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
import logging
import random

from courier.core.errors import (
    ConflictError, ForbiddenError, InvalidStateError, InvalidTransitionError, NotFoundError,
)
from courier.core.order_locks import OrderLocks
from courier.models.order import (
    Order, OrderStatus, ItemType, DeliveryMode, allowed_transitions, is_valid_transition,
)
from courier.models.operator import Operator
from courier.models.user import User
from courier.services.access_guard import Actor, Scope
from courier.services.history_service import HistoryService
from courier.services.queries import OrderQuery, parse_id

logger = logging.getLogger(__name__)

REQUIRED_ORDER_FIELDS = [
    "pickup_address", "pickup_contact_phone",
    "delivery_address", "delivery_contact_phone",
    "base_price", "total_price",
]

# Random suffix draws per order number before giving up
ORDER_NUMBER_ATTEMPTS = 20


def _to_decimal(value, field):
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidStateError(f"Invalid {field}: {value}")


def _to_datetime(value, field):
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise InvalidStateError(f"Invalid {field}: {value}")


def _to_enum(enum_cls, value, field, default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidStateError(f"Invalid {field}: {value}")


async def load_order_for_update(session, order_id):
    """Fetch an active order and lock its row for the rest of the transaction."""
    result = await session.execute(
        Order.active().where(Order.id == order_id).with_for_update()
    )
    order = result.scalars().first()
    if not order:
        raise NotFoundError("Order not found", order_id=str(order_id))
    return order


class OrderService:
    def __init__(self, session_factory, order_locks: OrderLocks, history_service: HistoryService = None):
        self.session_factory = session_factory
        self.order_locks = order_locks
        self.history_service = history_service or HistoryService()

    def transition(self, session, order: Order, new_status: OrderStatus, actor: Actor, notes=None, validate=True):
        """Move ``order`` to ``new_status`` and append its history row.

        Must run inside the caller's transaction while the order lock is held.
        ``validate=False`` skips the transition table; only privileged paths
        (payment completion, direct tracking overrides) use it.
        """
        old_status = order.status
        if validate and not is_valid_transition(old_status, new_status):
            raise InvalidTransitionError(old_status, new_status, allowed_transitions(old_status) or [])
        order.status = new_status
        self.history_service.record(session, order.id, old_status, new_status, actor.id, notes)
        return old_status

    async def _generate_order_number(self, session) -> str:
        date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            order_number = f"ORD-{date_str}-{random.randint(0, 9999):04d}"
            result = await session.execute(select(Order.id).where(Order.order_number == order_number))
            if result.first() is None:
                return order_number
        logger.warning(f"No free order number found for {date_str} after {ORDER_NUMBER_ATTEMPTS} attempts")
        raise ConflictError("Could not allocate a unique order number, please retry")

    async def _require_parties(self, session, operator_id, customer_id):
        if await session.get(Operator, operator_id) is None:
            raise NotFoundError("Operator not found", operator_id=str(operator_id))
        if await session.get(User, customer_id) is None:
            raise NotFoundError("Customer not found", customer_id=str(customer_id))

    def _build_order(self, data: dict, operator_id, customer_id, order_number: str) -> Order:
        return Order(
            operator_id=operator_id,
            customer_id=customer_id,
            order_number=order_number,
            status=OrderStatus.CREATED,
            pickup_address=data["pickup_address"],
            pickup_lat=data.get("pickup_lat"),
            pickup_lng=data.get("pickup_lng"),
            pickup_contact_name=data.get("pickup_contact_name"),
            pickup_contact_phone=data["pickup_contact_phone"],
            delivery_address=data["delivery_address"],
            delivery_lat=data.get("delivery_lat"),
            delivery_lng=data.get("delivery_lng"),
            delivery_contact_name=data.get("delivery_contact_name"),
            delivery_contact_phone=data["delivery_contact_phone"],
            item_type=_to_enum(ItemType, data.get("item_type"), "item_type", ItemType.SMALL_PARCEL),
            item_description=data.get("item_description"),
            weight_kg=_to_decimal(data.get("weight_kg"), "weight_kg"),
            dimensions_cm=data.get("dimensions_cm"),
            declared_value=_to_decimal(data.get("declared_value"), "declared_value"),
            is_fragile=bool(data.get("is_fragile", False)),
            is_insured=bool(data.get("is_insured", False)),
            delivery_mode=_to_enum(DeliveryMode, data.get("delivery_mode"), "delivery_mode", DeliveryMode.SAME_DAY),
            scheduled_pickup_time=_to_datetime(data.get("scheduled_pickup_time"), "scheduled_pickup_time"),
            scheduled_delivery_time=_to_datetime(data.get("scheduled_delivery_time"), "scheduled_delivery_time"),
            base_price=_to_decimal(data["base_price"], "base_price"),
            distance_km=_to_decimal(data.get("distance_km"), "distance_km"),
            surcharges=_to_decimal(data.get("surcharges") or 0, "surcharges"),
            insurance_fee=_to_decimal(data.get("insurance_fee") or 0, "insurance_fee"),
            total_price=_to_decimal(data["total_price"], "total_price"),
        )

    async def create(self, data: dict, actor: Actor) -> Order:
        scope = Scope.for_actor(actor)
        missing = [field for field in REQUIRED_ORDER_FIELDS if data.get(field) in (None, "")]
        if missing:
            raise InvalidStateError(f"Missing required fields: {', '.join(missing)}", missing=missing)

        operator_id = scope.operator_id or data.get("operator_id")
        customer_id = actor.id if actor.is_customer else data.get("customer_id")
        if not operator_id:
            raise InvalidStateError("operator_id is required")
        if not customer_id:
            raise InvalidStateError("customer_id is required")
        operator_id = parse_id(operator_id, "Operator")
        customer_id = parse_id(customer_id, "Customer")
        if not scope.covers(operator_id, customer_id):
            raise ForbiddenError("You do not have permission to create orders for this operator")

        # A concurrent create can claim the same number between the check and the insert
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        await self._require_parties(session, operator_id, customer_id)
                        order_number = await self._generate_order_number(session)
                        order = self._build_order(data, operator_id, customer_id, order_number)
                        session.add(order)
                except IntegrityError:
                    logger.warning(f"Order number {order_number} taken on insert (attempt {attempt})")
                    continue
            logger.info(f"Order created successfully: {order.order_number} ({order.id})")
            return order

        raise ConflictError("Could not allocate a unique order number, please retry")

    async def find_all(self, query: OrderQuery, actor: Actor):
        scope = Scope.for_actor(actor)
        stmt = scope.apply(Order.active(), Order.operator_id, Order.customer_id)
        if query.status:
            stmt = stmt.where(Order.status == query.status)
        if query.operator_id:
            stmt = stmt.where(Order.operator_id == query.operator_id)
        if query.customer_id:
            stmt = stmt.where(Order.customer_id == query.customer_id)
        if query.search:
            pattern = f"%{query.search}%"
            stmt = stmt.where(or_(
                Order.order_number.ilike(pattern),
                Order.pickup_address.ilike(pattern),
                Order.delivery_address.ilike(pattern),
            ))

        async with self.session_factory() as session:
            total = (await session.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()
            result = await session.execute(
                stmt.order_by(Order.created_at.desc()).offset(query.offset).limit(query.limit)
            )
            orders = list(result.scalars().all())
            logger.info(f"Retrieved {len(orders)} of {total} orders for user {actor.id}")
            return orders, query.meta(total)

    async def find_one(self, order_id, actor: Actor) -> Order:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        async with self.session_factory() as session:
            result = await session.execute(Order.active().where(Order.id == order_id))
            return scope.visible(result.scalars().first(), "Order")

    async def find_by_order_number(self, order_number: str) -> Order:
        async with self.session_factory() as session:
            result = await session.execute(Order.active().where(Order.order_number == order_number))
            order = result.scalars().first()
            if not order:
                raise NotFoundError("Order not found")
            return order

    async def update_status(self, order_id, new_status, actor: Actor, reason: str = None) -> Order:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        new_status = _to_enum(OrderStatus, new_status, "status", None)
        if new_status is None:
            raise InvalidStateError("status is required")

        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    order = await load_order_for_update(session, order_id)
                    scope.authorize(order, "update this order")
                    try:
                        old_status = self.transition(session, order, new_status, actor, notes=reason)
                    except InvalidTransitionError:
                        logger.warning(
                            f"Rejected transition for order {order_id}: {order.status.value} -> {new_status.value}"
                        )
                        raise
                    if reason:
                        order.rejection_reason = reason
        logger.info(f"Order {order_id} status updated {old_status.value} -> {new_status.value}")
        return order

    async def remove(self, order_id, actor: Actor) -> Order:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    order = await load_order_for_update(session, order_id)
                    scope.authorize(order, "delete this order")
                    order.deleted_at = datetime.now(timezone.utc)
        logger.info(f"Order {order_id} soft-deleted by user {actor.id}")
        return order

    async def history(self, order_id, actor: Actor) -> list:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        async with self.session_factory() as session:
            result = await session.execute(Order.active().where(Order.id == order_id))
            scope.visible(result.scalars().first(), "Order")
            return await self.history_service.list_for_order(session, order_id)
