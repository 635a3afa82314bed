from sqlalchemy import select, func
from enum import Enum as PyEnum
import logging

from courier.core.errors import InvalidStateError, NotFoundError
from courier.core.order_locks import OrderLocks
from courier.models.order import Order, OrderStatus, is_valid_transition
from courier.models.tracking_event import TrackingEvent
from courier.services.access_guard import Actor, Scope
from courier.services.order_service import OrderService, load_order_for_update
from courier.services.queries import TrackingQuery, parse_id

logger = logging.getLogger(__name__)


class TrackingStatusPolicy(PyEnum):
    # Tracking events overwrite the order status without consulting the transition table
    DIRECT = "direct"
    # Tracking-driven status changes must follow the transition table
    TRANSITION_TABLE = "transition_table"


class TrackingService:
    def __init__(self, session_factory, order_locks: OrderLocks, order_service: OrderService,
                 policy: TrackingStatusPolicy = TrackingStatusPolicy.DIRECT):
        self.session_factory = session_factory
        self.order_locks = order_locks
        self.order_service = order_service
        self.policy = TrackingStatusPolicy(policy)

    async def create(self, order_id, status, actor: Actor, location_lat=None, location_lng=None, notes=None) -> TrackingEvent:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        try:
            status = OrderStatus(status)
        except ValueError:
            raise InvalidStateError(f"Invalid status: {status}")

        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    order = await load_order_for_update(session, order_id)
                    scope.authorize(order, "create tracking events for this order")
                    validate = self.policy == TrackingStatusPolicy.TRANSITION_TABLE
                    status_changed = order.status != status

                    if status_changed:
                        if not validate and not is_valid_transition(order.status, status):
                            logger.warning(
                                f"Tracking event moves order {order_id} off the transition graph: "
                                f"{order.status.value} -> {status.value}"
                            )
                        self.order_service.transition(
                            session, order, status, actor,
                            notes=notes or "Status updated via tracking event",
                            validate=validate,
                        )

                    event = TrackingEvent(order_id=order_id, status=status, notes=notes)
                    if location_lat is not None and location_lng is not None:
                        event.location_lat = float(location_lat)
                        event.location_lng = float(location_lng)
                    session.add(event)

        logger.info(f"Tracking event {event.id} recorded for order {order_id}: {status.value}")
        return event

    def _scoped_query(self, scope: Scope):
        stmt = (
            select(TrackingEvent)
            .join(Order, TrackingEvent.order_id == Order.id)
            .where(Order.is_active())
        )
        return scope.apply(stmt, Order.operator_id, Order.customer_id)

    async def find_all(self, query: TrackingQuery, actor: Actor):
        scope = Scope.for_actor(actor)
        stmt = self._scoped_query(scope)
        if query.order_id:
            stmt = stmt.where(TrackingEvent.order_id == query.order_id)
        if query.status:
            stmt = stmt.where(TrackingEvent.status == query.status)

        async with self.session_factory() as session:
            total = (await session.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()
            result = await session.execute(
                stmt.order_by(TrackingEvent.created_at.desc()).offset(query.offset).limit(query.limit)
            )
            events = list(result.scalars().all())
            return events, query.meta(total)

    async def find_one(self, event_id, actor: Actor) -> TrackingEvent:
        scope = Scope.for_actor(actor)
        event_id = parse_id(event_id, "Tracking event")
        async with self.session_factory() as session:
            result = await session.execute(
                self._scoped_query(scope).where(TrackingEvent.id == event_id)
            )
            event = result.scalars().first()
            if not event:
                raise NotFoundError("Tracking event not found")
            return event

    async def _events_for(self, session, order_id) -> list:
        result = await session.execute(
            select(TrackingEvent)
            .where(TrackingEvent.order_id == order_id)
            .order_by(TrackingEvent.created_at, TrackingEvent.id)
        )
        return list(result.scalars().all())

    async def find_by_order(self, order_id, actor: Actor) -> list:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        async with self.session_factory() as session:
            result = await session.execute(Order.active().where(Order.id == order_id))
            scope.visible(result.scalars().first(), "Order")
            return await self._events_for(session, order_id)

    async def find_by_order_public(self, order_id) -> list:
        """Unauthenticated timeline lookup used by public tracking pages."""
        order_id = parse_id(order_id, "Order")
        async with self.session_factory() as session:
            result = await session.execute(Order.active().where(Order.id == order_id))
            if result.scalars().first() is None:
                raise NotFoundError("Order not found")
            return await self._events_for(session, order_id)
