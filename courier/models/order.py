from sqlalchemy import Column, String, Float, Numeric, Boolean, DateTime, ForeignKey, Enum, Text, Uuid, select
from enum import Enum as PyEnum
from courier.models.base_model import BaseModel

class OrderStatus(PyEnum):
    CREATED = "CREATED"
    PENDING_OPERATOR_ACTION = "PENDING_OPERATOR_ACTION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"
    ASSIGNED = "ASSIGNED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

class ItemType(PyEnum):
    DOCUMENTS = "DOCUMENTS"
    SMALL_PARCEL = "SMALL_PARCEL"
    ELECTRONICS = "ELECTRONICS"
    FRAGILE = "FRAGILE"
    PERISHABLES = "PERISHABLES"
    BULKY = "BULKY"

class DeliveryMode(PyEnum):
    SAME_DAY = "SAME_DAY"
    NEXT_DAY = "NEXT_DAY"
    EXPRESS = "EXPRESS"
    SCHEDULED = "SCHEDULED"

class RecordState(PyEnum):
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"

# Current status -> allowed next statuses
TRANSITIONS = {
    OrderStatus.CREATED: [OrderStatus.PENDING_OPERATOR_ACTION, OrderStatus.CANCELLED],
    OrderStatus.PENDING_OPERATOR_ACTION: [OrderStatus.APPROVED, OrderStatus.REJECTED, OrderStatus.CANCELLED],
    OrderStatus.APPROVED: [OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED],
    OrderStatus.AWAITING_PAYMENT: [OrderStatus.PAID, OrderStatus.CANCELLED],
    OrderStatus.PAID: [OrderStatus.ASSIGNED, OrderStatus.CANCELLED],
    OrderStatus.ASSIGNED: [OrderStatus.PICKED_UP, OrderStatus.CANCELLED],
    OrderStatus.PICKED_UP: [OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED],
    OrderStatus.IN_TRANSIT: [OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.FAILED],
    OrderStatus.DELIVERED: [OrderStatus.COMPLETED],
    OrderStatus.COMPLETED: [],
    OrderStatus.REJECTED: [],
    OrderStatus.CANCELLED: [],
    OrderStatus.FAILED: [],
}

TERMINAL_STATUSES = frozenset(status for status, allowed in TRANSITIONS.items() if not allowed)


def allowed_transitions(status: OrderStatus) -> list:
    """Statuses reachable in one step from ``status``.

    Returns ``None`` for a status with no entry in the table, which means the
    table places no restriction on it.
    """
    return TRANSITIONS.get(status)


def is_valid_transition(current: OrderStatus, new: OrderStatus) -> bool:
    allowed = allowed_transitions(current)
    if allowed is None:
        return True
    return new in allowed


def is_reachable(status: OrderStatus, start: OrderStatus = OrderStatus.CREATED) -> bool:
    """True if ``status`` can be reached from ``start`` using only table edges."""
    seen = {start}
    frontier = [start]
    while frontier:
        current = frontier.pop()
        if current == status:
            return True
        for nxt in TRANSITIONS.get(current) or []:
            if nxt not in seen:
                seen.add(nxt)
                frontier.append(nxt)
    return False


class Order(BaseModel):
    __tablename__ = 'orders'

    operator_id = Column(Uuid(as_uuid=True), ForeignKey('operators.id'), nullable=False, index=True)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False, index=True)
    order_number = Column(String, nullable=False, unique=True, index=True)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.CREATED, index=True)
    rejection_reason = Column(Text, nullable=True)

    pickup_address = Column(String, nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    pickup_contact_name = Column(String, nullable=True)
    pickup_contact_phone = Column(String, nullable=False)
    delivery_address = Column(String, nullable=False)
    delivery_lat = Column(Float, nullable=True)
    delivery_lng = Column(Float, nullable=True)
    delivery_contact_name = Column(String, nullable=True)
    delivery_contact_phone = Column(String, nullable=False)

    item_type = Column(Enum(ItemType), nullable=False, default=ItemType.SMALL_PARCEL)
    item_description = Column(Text, nullable=True)
    weight_kg = Column(Numeric(10, 2), nullable=True)
    dimensions_cm = Column(String, nullable=True)
    declared_value = Column(Numeric(12, 2), nullable=True)
    is_fragile = Column(Boolean, nullable=False, default=False)
    is_insured = Column(Boolean, nullable=False, default=False)
    delivery_mode = Column(Enum(DeliveryMode), nullable=False, default=DeliveryMode.SAME_DAY)
    scheduled_pickup_time = Column(DateTime(timezone=True), nullable=True)
    scheduled_delivery_time = Column(DateTime(timezone=True), nullable=True)

    base_price = Column(Numeric(12, 2), nullable=False)
    distance_km = Column(Numeric(10, 2), nullable=True)
    surcharges = Column(Numeric(12, 2), nullable=False, default=0)
    insurance_fee = Column(Numeric(12, 2), nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False)

    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def record_state(self) -> RecordState:
        return RecordState.DELETED if self.deleted_at is not None else RecordState.ACTIVE

    @classmethod
    def is_active(cls):
        """Filter criterion for rows whose order has not been soft-deleted."""
        return cls.deleted_at.is_(None)

    @classmethod
    def active(cls):
        """Base query for every default read: soft-deleted orders never appear."""
        return select(cls).where(cls.is_active())
