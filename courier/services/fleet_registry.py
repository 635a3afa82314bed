from sqlalchemy import select
from courier.models.vehicle import Vehicle, Driver, VehicleDriver
import logging

logger = logging.getLogger(__name__)

class FleetRegistry:
    """Read-only view of vehicles and drivers used by assignment validation."""

    async def get_vehicle(self, session, vehicle_id, operator_id=None):
        query = select(Vehicle).where(Vehicle.id == vehicle_id, Vehicle.deleted_at.is_(None))
        if operator_id is not None:
            query = query.where(Vehicle.operator_id == operator_id)
        result = await session.execute(query)
        return result.scalars().first()

    async def get_driver(self, session, driver_id, operator_id=None):
        query = select(Driver).where(Driver.id == driver_id, Driver.deleted_at.is_(None))
        if operator_id is not None:
            query = query.where(Driver.operator_id == operator_id)
        result = await session.execute(query)
        return result.scalars().first()

    async def driver_linked_to_vehicle(self, session, vehicle_id, driver_id) -> bool:
        result = await session.execute(
            select(VehicleDriver.id).where(
                VehicleDriver.vehicle_id == vehicle_id,
                VehicleDriver.driver_id == driver_id,
            )
        )
        return result.first() is not None
