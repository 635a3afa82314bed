from sqlalchemy import Column, String, Enum
from enum import Enum as PyEnum
from courier.models.base_model import BaseModel

class OperatorStatus(PyEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"

class Operator(BaseModel):
    __tablename__ = 'operators'

    name = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    status = Column(Enum(OperatorStatus), nullable=False, default=OperatorStatus.ACTIVE, index=True)
