import asyncio
import logging
from quart import Quart
from quart_cors import cors
from sqlalchemy import text
from courier.config.settings import Config
from courier.core.db_config import DatabaseConfig, make_session_factory
from courier.core.errors import CourierError
from courier.core.jwt import JWTConfig
from courier.core.order_locks import OrderLocks
from courier.middleware.logger import setup_logger
from courier.routes.common import handle_courier_error
from courier.routes.auth import init_auth_routes
from courier.routes.orders_routes import init_order_routes
from courier.routes.assignments_routes import init_assignment_routes
from courier.routes.payments_routes import init_payment_routes
from courier.routes.tracking_routes import init_tracking_routes
from courier.services.auth import AuthService
from courier.services.order_service import OrderService
from courier.services.assignment_service import AssignmentService
from courier.services.payment_service import PaymentService
from courier.services.tracking_service import TrackingService, TrackingStatusPolicy
from courier.models.base_model import Base
# Imported so every table is registered on Base.metadata
from courier.models.operator import Operator
from courier.models.user import User
from courier.models.vehicle import Vehicle, Driver, VehicleDriver
from courier.models.order import Order
from courier.models.assignment import OrderAssignment
from courier.models.payment import Payment
from courier.models.tracking_event import TrackingEvent
from courier.models.order_history import OrderHistory

logger = logging.getLogger(__name__)


def build_services(session_factory, config: Config) -> dict:
    """Wire every fulfillment service around one shared per-order lock registry."""
    order_locks = OrderLocks()
    order_service = OrderService(session_factory, order_locks)
    return {
        "auth": AuthService(session_factory, JWTConfig(config)),
        "orders": order_service,
        "assignments": AssignmentService(session_factory, order_locks, order_service),
        "payments": PaymentService(session_factory, order_locks, order_service, tolerance=config.PAYMENT_TOLERANCE),
        "tracking": TrackingService(
            session_factory, order_locks, order_service,
            policy=TrackingStatusPolicy(config.TRACKING_STATUS_POLICY),
        ),
    }


def create_app(config: Config, session_factory) -> Quart:
    app = Quart(__name__)
    app = cors(app, allow_origin=config.ALLOWED_ORIGINS)
    app.register_error_handler(CourierError, handle_courier_error)

    services = build_services(session_factory, config)
    app.config["SERVICES"] = services

    app.register_blueprint(init_auth_routes(services["auth"]))
    app.register_blueprint(init_order_routes(services["orders"], services["auth"]))
    app.register_blueprint(init_assignment_routes(services["assignments"], services["auth"]))
    app.register_blueprint(init_payment_routes(services["payments"], services["auth"]))
    app.register_blueprint(init_tracking_routes(services["tracking"], services["auth"]))

    @app.route('/api/v1/health', methods=['GET'])
    async def health_check():
        try:
            async with session_factory() as session:
                await session.execute(text("SELECT 1"))
            return {"status": "healthy", "database": "connected"}, 200
        except Exception as e:
            logger.error(f"Health check failed: {str(e)}", exc_info=True)
            return {"status": "unhealthy", "database": "disconnected"}, 500

    return app


async def init_db(engine):
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connected and tables created")
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}", exc_info=True)
        raise


async def main():
    config = Config()
    setup_logger(config.LOG_LEVEL, config.LOG_FILE)

    engine = DatabaseConfig(config).create_engine()
    await init_db(engine)
    app = create_app(config, make_session_factory(engine))

    logger.info(f"Quart server starting on {config.HOST}:{config.PORT}")
    from hypercorn.config import Config as HypercornConfig
    from hypercorn.asyncio import serve

    hypercorn_config = HypercornConfig()
    hypercorn_config.bind = [f"{config.HOST}:{config.PORT}"]
    hypercorn_config.loglevel = config.LOG_LEVEL.lower()

    try:
        await serve(app, hypercorn_config)
    finally:
        await engine.dispose()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server shutdown initiated")
    except Exception as e:
        logger.error(f"Server failed to start: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    run()
