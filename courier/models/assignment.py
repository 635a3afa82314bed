from sqlalchemy import Column, DateTime, ForeignKey, Index, Uuid
from courier.models.base_model import BaseModel, utcnow

class OrderAssignment(BaseModel):
    __tablename__ = 'order_assignments'
    __table_args__ = (
        # At most one assignment per order; a concurrent second insert fails here
        Index('uq_order_assignments_order_id', 'order_id', unique=True),
    )

    order_id = Column(Uuid(as_uuid=True), ForeignKey('orders.id'), nullable=False)
    vehicle_id = Column(Uuid(as_uuid=True), ForeignKey('vehicles.id'), nullable=False, index=True)
    driver_id = Column(Uuid(as_uuid=True), ForeignKey('drivers.id'), nullable=True, index=True)
    assigned_by = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
