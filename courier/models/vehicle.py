from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, UniqueConstraint, Uuid
from enum import Enum as PyEnum
from courier.models.base_model import BaseModel

class VehicleStatus(PyEnum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    INACTIVE = "INACTIVE"

class DriverStatus(PyEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"

class Vehicle(BaseModel):
    __tablename__ = 'vehicles'

    operator_id = Column(Uuid(as_uuid=True), ForeignKey('operators.id'), nullable=False, index=True)
    plate_number = Column(String, nullable=False, index=True)
    make = Column(String, nullable=True)
    model = Column(String, nullable=True)
    vehicle_type = Column(String, nullable=True)
    status = Column(Enum(VehicleStatus), nullable=False, default=VehicleStatus.AVAILABLE, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

class Driver(BaseModel):
    __tablename__ = 'drivers'

    operator_id = Column(Uuid(as_uuid=True), ForeignKey('operators.id'), nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    license_number = Column(String, nullable=True)
    status = Column(Enum(DriverStatus), nullable=False, default=DriverStatus.ACTIVE, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

class VehicleDriver(BaseModel):
    __tablename__ = 'vehicle_drivers'
    __table_args__ = (
        UniqueConstraint('vehicle_id', 'driver_id', name='uq_vehicle_drivers_pair'),
    )

    vehicle_id = Column(Uuid(as_uuid=True), ForeignKey('vehicles.id'), nullable=False, index=True)
    driver_id = Column(Uuid(as_uuid=True), ForeignKey('drivers.id'), nullable=False, index=True)
