from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Enum, Index, Text, Uuid, text
from enum import Enum as PyEnum
from courier.models.base_model import BaseModel

class PaymentStatus(PyEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

class PaymentMethod(PyEnum):
    CASH = "CASH"
    CARD = "CARD"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"

class Payment(BaseModel):
    __tablename__ = 'payments'
    __table_args__ = (
        # Only one payment per order may be outside FAILED
        Index(
            'uq_payments_order_id_live',
            'order_id',
            unique=True,
            postgresql_where=text("status != 'FAILED'"),
            sqlite_where=text("status != 'FAILED'"),
        ),
    )

    order_id = Column(Uuid(as_uuid=True), ForeignKey('orders.id'), nullable=False, index=True)
    operator_id = Column(Uuid(as_uuid=True), ForeignKey('operators.id'), nullable=False, index=True)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    transaction_id = Column(String, nullable=True, index=True)
    gateway_response = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
