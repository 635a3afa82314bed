from sqlalchemy import Column, ForeignKey, Enum, Text, Uuid
from courier.models.base_model import BaseModel
from courier.models.order import OrderStatus

class OrderHistory(BaseModel):
    __tablename__ = 'order_history'

    order_id = Column(Uuid(as_uuid=True), ForeignKey('orders.id'), nullable=False, index=True)
    status_from = Column(Enum(OrderStatus), nullable=True)
    status_to = Column(Enum(OrderStatus), nullable=False)
    changed_by = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False)
    notes = Column(Text, nullable=True)
