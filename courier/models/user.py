from sqlalchemy import Column, String, Enum, ForeignKey, Uuid
from enum import Enum as PyEnum
from courier.models.base_model import BaseModel

class UserStatus(PyEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

class RoleCode(PyEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    PLATFORM_SUPPORT = "PLATFORM_SUPPORT"
    OPERATOR_ADMIN = "OPERATOR_ADMIN"
    DISPATCHER = "DISPATCHER"
    CUSTOMER_CARE = "CUSTOMER_CARE"
    DRIVER = "DRIVER"
    CUSTOMER = "CUSTOMER"

class User(BaseModel):
    __tablename__ = 'users'

    operator_id = Column(Uuid(as_uuid=True), ForeignKey('operators.id'), nullable=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    phone = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(RoleCode), nullable=False, default=RoleCode.CUSTOMER, index=True)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE, index=True)
