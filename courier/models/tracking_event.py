from sqlalchemy import Column, Float, ForeignKey, Enum, Text, Uuid
from courier.models.base_model import BaseModel
from courier.models.order import OrderStatus

class TrackingEvent(BaseModel):
    __tablename__ = 'tracking_events'

    order_id = Column(Uuid(as_uuid=True), ForeignKey('orders.id'), nullable=False, index=True)
    status = Column(Enum(OrderStatus), nullable=False, index=True)
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
