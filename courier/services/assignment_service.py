from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
import logging

from courier.core.errors import ConflictError, InvalidStateError, NotFoundError
from courier.core.order_locks import OrderLocks
from courier.models.assignment import OrderAssignment
from courier.models.order import Order, OrderStatus
from courier.services.access_guard import Actor, Scope
from courier.services.fleet_registry import FleetRegistry
from courier.services.order_service import OrderService, load_order_for_update
from courier.services.queries import AssignmentQuery, parse_id

logger = logging.getLogger(__name__)

REMOVABLE_STATUSES = (OrderStatus.ASSIGNED, OrderStatus.PICKED_UP)

# Distinguishes "driver_id not given" from "driver_id cleared"
UNSET = object()


class AssignmentService:
    def __init__(self, session_factory, order_locks: OrderLocks, order_service: OrderService, fleet_registry: FleetRegistry = None):
        self.session_factory = session_factory
        self.order_locks = order_locks
        self.order_service = order_service
        self.fleet_registry = fleet_registry or FleetRegistry()

    async def _validate_vehicle(self, session, vehicle_id, operator_id):
        vehicle = await self.fleet_registry.get_vehicle(session, vehicle_id, operator_id)
        if not vehicle:
            raise NotFoundError(
                "Vehicle not found or does not belong to the order operator",
                vehicle_id=str(vehicle_id),
            )
        return vehicle

    async def _validate_driver(self, session, driver_id, vehicle_id, operator_id):
        driver = await self.fleet_registry.get_driver(session, driver_id, operator_id)
        if not driver:
            raise NotFoundError(
                "Driver not found or does not belong to the order operator",
                driver_id=str(driver_id),
            )
        if not await self.fleet_registry.driver_linked_to_vehicle(session, vehicle_id, driver_id):
            raise InvalidStateError(
                "Driver is not assigned to the selected vehicle",
                driver_id=str(driver_id),
                vehicle_id=str(vehicle_id),
            )
        return driver

    async def _existing_for_order(self, session, order_id):
        result = await session.execute(
            select(OrderAssignment).where(OrderAssignment.order_id == order_id)
        )
        return result.scalars().first()

    async def create(self, order_id, vehicle_id, driver_id, actor: Actor) -> OrderAssignment:
        scope = Scope.for_actor(actor)
        scope.require_staff("assign orders")
        order_id = parse_id(order_id, "Order")
        vehicle_id = parse_id(vehicle_id, "Vehicle")
        driver_id = parse_id(driver_id, "Driver") if driver_id else None

        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        order = await load_order_for_update(session, order_id)
                        scope.authorize(order, "assign this order")

                        existing = await self._existing_for_order(session, order_id)
                        if existing:
                            raise ConflictError(
                                "Order already has an assignment. Update the existing assignment instead.",
                                assignment_id=str(existing.id),
                            )

                        if order.status != OrderStatus.PAID:
                            raise InvalidStateError(
                                f"Order must be PAID before assignment. Current status: {order.status.value}",
                                current_status=order.status.value,
                            )

                        vehicle = await self._validate_vehicle(session, vehicle_id, order.operator_id)
                        if driver_id:
                            await self._validate_driver(session, driver_id, vehicle_id, order.operator_id)

                        assignment = OrderAssignment(
                            order_id=order_id,
                            vehicle_id=vehicle_id,
                            driver_id=driver_id,
                            assigned_by=actor.id,
                        )
                        session.add(assignment)
                        # Surface a lost race on the unique index before touching the order
                        await session.flush()
                        self.order_service.transition(
                            session, order, OrderStatus.ASSIGNED, actor,
                            notes=f"Order assigned to vehicle {vehicle.plate_number}",
                        )
                except IntegrityError:
                    logger.warning(f"Concurrent assignment detected for order {order_id}")
                    raise ConflictError(
                        "Order already has an assignment. Update the existing assignment instead.",
                        order_id=str(order_id),
                    )

        logger.info(f"Order {order_id} assigned to vehicle {vehicle_id} (driver {driver_id})")
        return assignment

    async def _order_id_of(self, assignment_id):
        async with self.session_factory() as session:
            result = await session.execute(
                select(OrderAssignment.order_id).where(OrderAssignment.id == assignment_id)
            )
            order_id = result.scalar_one_or_none()
            if order_id is None:
                raise NotFoundError("Order assignment not found")
            return order_id

    async def _load_for_mutation(self, session, assignment_id, scope: Scope, action: str):
        result = await session.execute(
            select(OrderAssignment).where(OrderAssignment.id == assignment_id)
        )
        assignment = result.scalars().first()
        if not assignment:
            raise NotFoundError("Order assignment not found")
        order = await load_order_for_update(session, assignment.order_id)
        scope.authorize(assignment, action, owner=order)
        return assignment, order

    async def update(self, assignment_id, actor: Actor, vehicle_id=None, driver_id=UNSET) -> OrderAssignment:
        scope = Scope.for_actor(actor)
        scope.require_staff("update assignments")
        assignment_id = parse_id(assignment_id, "Order assignment")
        new_vehicle_id = parse_id(vehicle_id, "Vehicle") if vehicle_id else None
        if driver_id is not UNSET and driver_id is not None:
            driver_id = parse_id(driver_id, "Driver")

        order_id = await self._order_id_of(assignment_id)
        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    assignment, order = await self._load_for_mutation(
                        session, assignment_id, scope, "update this assignment"
                    )

                    vehicle_changed = new_vehicle_id is not None and new_vehicle_id != assignment.vehicle_id
                    driver_changed = driver_id is not UNSET and driver_id != assignment.driver_id
                    effective_vehicle = new_vehicle_id if vehicle_changed else assignment.vehicle_id
                    effective_driver = assignment.driver_id if driver_id is UNSET else driver_id

                    if vehicle_changed:
                        await self._validate_vehicle(session, effective_vehicle, order.operator_id)
                    if effective_driver and (vehicle_changed or driver_changed):
                        await self._validate_driver(session, effective_driver, effective_vehicle, order.operator_id)

                    assignment.vehicle_id = effective_vehicle
                    assignment.driver_id = effective_driver

        logger.info(f"Assignment {assignment_id} updated: vehicle={assignment.vehicle_id} driver={assignment.driver_id}")
        return assignment

    async def remove(self, assignment_id, actor: Actor) -> Order:
        scope = Scope.for_actor(actor)
        scope.require_staff("remove assignments")
        assignment_id = parse_id(assignment_id, "Order assignment")

        order_id = await self._order_id_of(assignment_id)
        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    assignment, order = await self._load_for_mutation(
                        session, assignment_id, scope, "delete this assignment"
                    )
                    if order.status not in REMOVABLE_STATUSES:
                        raise InvalidStateError(
                            f"Cannot remove assignment. Order status is {order.status.value}. "
                            f"Only ASSIGNED or PICKED_UP orders can have assignments removed.",
                            current_status=order.status.value,
                        )

                    await session.delete(assignment)
                    # A PICKED_UP order keeps its status when the assignment goes away
                    if order.status == OrderStatus.ASSIGNED:
                        self.order_service.transition(
                            session, order, OrderStatus.PAID, actor,
                            notes="Order assignment removed", validate=False,
                        )

        logger.info(f"Assignment {assignment_id} removed; order {order.id} is {order.status.value}")
        return order

    def _scoped_query(self, scope: Scope):
        stmt = (
            select(OrderAssignment)
            .join(Order, OrderAssignment.order_id == Order.id)
            .where(Order.is_active())
        )
        return scope.apply(stmt, Order.operator_id, Order.customer_id)

    async def find_all(self, query: AssignmentQuery, actor: Actor):
        scope = Scope.for_actor(actor)
        stmt = self._scoped_query(scope)
        if query.order_id:
            stmt = stmt.where(OrderAssignment.order_id == query.order_id)
        if query.vehicle_id:
            stmt = stmt.where(OrderAssignment.vehicle_id == query.vehicle_id)
        if query.driver_id:
            stmt = stmt.where(OrderAssignment.driver_id == query.driver_id)

        async with self.session_factory() as session:
            total = (await session.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()
            result = await session.execute(
                stmt.order_by(OrderAssignment.assigned_at.desc()).offset(query.offset).limit(query.limit)
            )
            assignments = list(result.scalars().all())
            logger.info(f"Retrieved {len(assignments)} of {total} assignments")
            return assignments, query.meta(total)

    async def find_one(self, assignment_id, actor: Actor) -> OrderAssignment:
        scope = Scope.for_actor(actor)
        assignment_id = parse_id(assignment_id, "Order assignment")
        async with self.session_factory() as session:
            result = await session.execute(
                self._scoped_query(scope).where(OrderAssignment.id == assignment_id)
            )
            assignment = result.scalars().first()
            if not assignment:
                raise NotFoundError("Order assignment not found")
            return assignment
