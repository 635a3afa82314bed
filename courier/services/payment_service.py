from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
import logging

from courier.core.errors import DuplicatePaymentError, InvalidAmountError, InvalidStateError, NotFoundError
from courier.core.order_locks import OrderLocks
from courier.models.order import Order, OrderStatus
from courier.models.payment import Payment, PaymentMethod, PaymentStatus
from courier.services.access_guard import Actor, Scope
from courier.services.order_service import OrderService, load_order_for_update
from courier.services.queries import PaymentQuery, parse_id

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")

# Completing a payment never pulls these orders back to PAID
SETTLED_ORDER_STATUSES = (OrderStatus.PAID, OrderStatus.ASSIGNED)


def _parse_enum(enum_cls, value, field):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidStateError(f"Invalid {field}: {value}")


class PaymentService:
    def __init__(self, session_factory, order_locks: OrderLocks, order_service: OrderService, tolerance: Decimal = DEFAULT_TOLERANCE):
        self.session_factory = session_factory
        self.order_locks = order_locks
        self.order_service = order_service
        self.tolerance = tolerance

    def check_amount(self, amount, total_price):
        """Raise InvalidAmountError unless ``amount`` matches ``total_price`` within tolerance."""
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise InvalidStateError(f"Invalid amount: {amount}")
        if not amount.is_finite():
            raise InvalidStateError(f"Invalid amount: {amount}")
        expected = Decimal(str(total_price or 0))
        if abs(expected - amount) > self.tolerance:
            raise InvalidAmountError(amount, expected)
        return amount

    async def _live_payment(self, session, order_id):
        result = await session.execute(
            select(Payment).where(
                Payment.order_id == order_id,
                Payment.status != PaymentStatus.FAILED,
            )
        )
        return result.scalars().first()

    async def create(self, order_id, amount, method, actor: Actor, transaction_id=None, gateway_response=None) -> Payment:
        scope = Scope.for_actor(actor)
        order_id = parse_id(order_id, "Order")
        method = _parse_enum(PaymentMethod, method, "method")
        if method is None:
            raise InvalidStateError("method is required")

        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        order = await load_order_for_update(session, order_id)
                        scope.authorize(order, "create payment for this order")

                        existing = await self._live_payment(session, order_id)
                        if existing:
                            raise DuplicatePaymentError(
                                "A payment already exists for this order",
                                payment_id=str(existing.id),
                                payment_status=existing.status.value,
                            )

                        try:
                            amount = self.check_amount(amount, order.total_price)
                        except InvalidAmountError:
                            logger.warning(f"Payment amount {amount} rejected for order {order_id} (total {order.total_price})")
                            raise

                        payment = Payment(
                            order_id=order.id,
                            operator_id=order.operator_id,
                            customer_id=order.customer_id,
                            amount=amount,
                            method=method,
                            status=PaymentStatus.PENDING,
                            transaction_id=transaction_id,
                            gateway_response=gateway_response,
                        )
                        session.add(payment)
                except IntegrityError:
                    logger.warning(f"Concurrent payment detected for order {order_id}")
                    raise DuplicatePaymentError("A payment already exists for this order", order_id=str(order_id))

        logger.info(f"Payment {payment.id} created for order {order_id}: {amount} via {method.value}")
        return payment

    async def _order_id_of(self, payment_id):
        async with self.session_factory() as session:
            result = await session.execute(select(Payment.order_id).where(Payment.id == payment_id))
            order_id = result.scalar_one_or_none()
            if order_id is None:
                raise NotFoundError("Payment not found")
            return order_id

    async def _load_payment(self, session, payment_id):
        result = await session.execute(select(Payment).where(Payment.id == payment_id))
        payment = result.scalars().first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    async def update(self, payment_id, actor: Actor, status=None, transaction_id=None, gateway_response=None) -> Payment:
        scope = Scope.for_actor(actor)
        payment_id = parse_id(payment_id, "Payment")
        status = _parse_enum(PaymentStatus, status, "status")

        order_id = await self._order_id_of(payment_id)
        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    payment = await self._load_payment(session, payment_id)
                    scope.authorize(payment, "update this payment")
                    order = await load_order_for_update(session, payment.order_id)

                    if status is not None:
                        first_completion = (
                            status == PaymentStatus.COMPLETED
                            and payment.status != PaymentStatus.COMPLETED
                            and payment.paid_at is None
                        )
                        if first_completion:
                            payment.paid_at = datetime.now(timezone.utc)
                            # Privileged override: the order jumps to PAID from wherever it is
                            if order.status not in SETTLED_ORDER_STATUSES:
                                self.order_service.transition(
                                    session, order, OrderStatus.PAID, actor,
                                    notes="Payment completed", validate=False,
                                )
                        payment.status = status

                    if transaction_id is not None:
                        payment.transaction_id = transaction_id
                    if gateway_response is not None:
                        payment.gateway_response = gateway_response

        logger.info(f"Payment {payment_id} updated: status={payment.status.value}")
        return payment

    async def remove(self, payment_id, actor: Actor) -> Payment:
        scope = Scope.for_actor(actor)
        payment_id = parse_id(payment_id, "Payment")

        order_id = await self._order_id_of(payment_id)
        async with self.order_locks.hold(order_id):
            async with self.session_factory() as session:
                async with session.begin():
                    payment = await self._load_payment(session, payment_id)
                    scope.authorize(payment, "delete this payment")
                    await load_order_for_update(session, payment.order_id)
                    if payment.status == PaymentStatus.COMPLETED:
                        raise InvalidStateError(
                            "Cannot delete a completed payment",
                            payment_status=payment.status.value,
                        )
                    await session.delete(payment)

        logger.info(f"Payment {payment_id} deleted by user {actor.id}")
        return payment

    def _scoped_query(self, scope: Scope):
        stmt = (
            select(Payment)
            .join(Order, Payment.order_id == Order.id)
            .where(Order.is_active())
        )
        return scope.apply(stmt, Payment.operator_id, Payment.customer_id)

    async def find_all(self, query: PaymentQuery, actor: Actor):
        scope = Scope.for_actor(actor)
        stmt = self._scoped_query(scope)
        if query.operator_id:
            stmt = stmt.where(Payment.operator_id == query.operator_id)
        if query.order_id:
            stmt = stmt.where(Payment.order_id == query.order_id)
        if query.customer_id:
            stmt = stmt.where(Payment.customer_id == query.customer_id)
        if query.status:
            stmt = stmt.where(Payment.status == query.status)
        if query.method:
            stmt = stmt.where(Payment.method == query.method)
        if query.search:
            pattern = f"%{query.search}%"
            stmt = stmt.where(or_(
                Payment.transaction_id.ilike(pattern),
                Order.order_number.ilike(pattern),
            ))

        async with self.session_factory() as session:
            total = (await session.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()
            result = await session.execute(
                stmt.order_by(Payment.created_at.desc()).offset(query.offset).limit(query.limit)
            )
            payments = list(result.scalars().all())
            logger.info(f"Retrieved {len(payments)} of {total} payments")
            return payments, query.meta(total)

    async def find_one(self, payment_id, actor: Actor) -> Payment:
        scope = Scope.for_actor(actor)
        payment_id = parse_id(payment_id, "Payment")
        async with self.session_factory() as session:
            result = await session.execute(
                self._scoped_query(scope).where(Payment.id == payment_id)
            )
            payment = result.scalars().first()
            if not payment:
                raise NotFoundError("Payment not found")
            return payment
