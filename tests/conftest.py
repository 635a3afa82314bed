import pytest
import uuid
from decimal import Decimal
from types import SimpleNamespace
from sqlalchemy.ext.asyncio import create_async_engine
from courier.config.settings import Config
from courier.core.db_config import make_session_factory
from courier.main import build_services
from courier.models.base_model import Base
from courier.models.operator import Operator
from courier.models.user import User, RoleCode
from courier.models.vehicle import Vehicle, Driver, VehicleDriver
from courier.models.order import Order, OrderStatus
from courier.services.access_guard import Actor

# Seeded users never log in with a password; route tests mint tokens directly
PASSWORD_HASH = "not-a-bcrypt-hash"


# Test configuration
@pytest.fixture
def config():
    class TestConfig(Config):
        def __init__(self):
            self.APP_ENV = "testing"
            self.DEBUG = True
            self.PORT = 5000
            self.HOST = "127.0.0.1"
            self.SECRET_KEY = "test-secret-key"
            self.JWT_ALGORITHM = "HS256"
            self.JWT_EXPIRATION_TIME = 3600
            self.DATABASE_URL = "sqlite+aiosqlite:///:memory:"
            self.PAYMENT_TOLERANCE = Decimal("0.01")
            self.TRACKING_STATUS_POLICY = "direct"
            self.LOG_LEVEL = "DEBUG"
            self.LOG_FILE = None
            self.ALLOWED_ORIGINS = "*"

        def _validate(self):
            pass

    return TestConfig()


@pytest.fixture
async def session_factory(tmp_path):
    # A file database lets concurrent sessions see each other's commits
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'courier.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def services(session_factory, config):
    return build_services(session_factory, config)


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, operator_id=user.operator_id, role=user.role)


@pytest.fixture
async def seed(session_factory):
    async with session_factory() as session:
        swift = Operator(id=uuid.uuid4(), name="Swift Couriers", code="SWIFT")
        rapid = Operator(id=uuid.uuid4(), name="Rapid Express", code="RAPID")
        session.add_all([swift, rapid])

        def user(name, role, operator=None):
            return User(
                id=uuid.uuid4(),
                name=name,
                email=f"{name.lower().replace(' ', '.')}@example.com",
                hashed_password=PASSWORD_HASH,
                role=role,
                operator_id=operator.id if operator else None,
            )

        admin = user("Platform Admin", RoleCode.SUPER_ADMIN)
        support = user("Support Agent", RoleCode.PLATFORM_SUPPORT)
        swift_admin = user("Swift Admin", RoleCode.OPERATOR_ADMIN, swift)
        swift_dispatcher = user("Swift Dispatcher", RoleCode.DISPATCHER, swift)
        rapid_dispatcher = user("Rapid Dispatcher", RoleCode.DISPATCHER, rapid)
        orphan_staff = user("Orphan Dispatcher", RoleCode.DISPATCHER)
        amina = user("Amina Yusuf", RoleCode.CUSTOMER)
        kofi = user("Kofi Mensah", RoleCode.CUSTOMER)
        session.add_all([admin, support, swift_admin, swift_dispatcher, rapid_dispatcher, orphan_staff, amina, kofi])

        van = Vehicle(id=uuid.uuid4(), operator_id=swift.id, plate_number="KDA 123A", make="Toyota", model="Hiace")
        bike = Vehicle(id=uuid.uuid4(), operator_id=swift.id, plate_number="KMB 456B", make="Honda", model="CB150")
        rapid_truck = Vehicle(id=uuid.uuid4(), operator_id=rapid.id, plate_number="KCC 789C", make="Isuzu", model="NPR")
        session.add_all([van, bike, rapid_truck])

        otieno = Driver(id=uuid.uuid4(), operator_id=swift.id, name="Otieno", phone="+254700000001")
        wanjiru = Driver(id=uuid.uuid4(), operator_id=swift.id, name="Wanjiru", phone="+254700000002")
        rapid_driver = Driver(id=uuid.uuid4(), operator_id=rapid.id, name="Baraka", phone="+254700000003")
        session.add_all([otieno, wanjiru, rapid_driver])

        session.add_all([
            VehicleDriver(vehicle_id=van.id, driver_id=otieno.id),
            VehicleDriver(vehicle_id=bike.id, driver_id=wanjiru.id),
            VehicleDriver(vehicle_id=rapid_truck.id, driver_id=rapid_driver.id),
        ])
        await session.commit()

    return SimpleNamespace(
        swift=swift, rapid=rapid,
        admin=actor_for(admin),
        support=actor_for(support),
        swift_admin=actor_for(swift_admin),
        swift_dispatcher=actor_for(swift_dispatcher),
        rapid_dispatcher=actor_for(rapid_dispatcher),
        orphan_staff=actor_for(orphan_staff),
        amina=actor_for(amina),
        kofi=actor_for(kofi),
        van=van, bike=bike, rapid_truck=rapid_truck,
        otieno=otieno, wanjiru=wanjiru, rapid_driver=rapid_driver,
    )


@pytest.fixture
def make_order(session_factory, seed):
    """Insert an order directly in any status, bypassing the lifecycle."""
    counter = {"n": 0}

    async def _make(status=OrderStatus.CREATED, operator=None, customer=None, total_price="1500.00"):
        counter["n"] += 1
        operator = operator or seed.swift
        customer = customer or seed.amina
        async with session_factory() as session:
            order = Order(
                id=uuid.uuid4(),
                operator_id=operator.id,
                customer_id=customer.id,
                order_number=f"ORD-20260101-{counter['n']:04d}",
                status=status,
                pickup_address="Moi Avenue, Nairobi",
                pickup_contact_phone="+254711000000",
                delivery_address="Kenyatta Road, Thika",
                delivery_contact_phone="+254722000000",
                base_price=Decimal("1200.00"),
                total_price=Decimal(total_price),
            )
            session.add(order)
            await session.commit()
            return order

    return _make


@pytest.fixture
def reload(session_factory):
    async def _reload(model, entity_id):
        async with session_factory() as session:
            return await session.get(model, entity_id)
    return _reload
