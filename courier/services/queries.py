"""Typed list-query specs, validated at construction."""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from courier.core.errors import InvalidStateError, NotFoundError
from courier.models.order import OrderStatus
from courier.models.payment import PaymentMethod, PaymentStatus

MAX_PAGE_SIZE = 100


def _coerce_uuid(value, field):
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidStateError(f"Invalid {field}: {value}")


def _coerce_int(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidStateError(f"{field} must be an integer", **{field: value})


def _coerce_enum(enum_cls, value, field):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidStateError(f"Invalid {field}: {value}")


@dataclass
class PageSpec:
    page: int = 1
    limit: int = 10

    def __post_init__(self):
        self.page = _coerce_int(self.page, "page")
        self.limit = _coerce_int(self.limit, "limit")
        if self.page < 1:
            raise InvalidStateError("page must be >= 1")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise InvalidStateError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        return {
            "total": total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": -(-total // self.limit),
        }


@dataclass
class OrderQuery(PageSpec):
    status: Optional[OrderStatus] = None
    operator_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    search: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self.status = _coerce_enum(OrderStatus, self.status, "status")
        self.operator_id = _coerce_uuid(self.operator_id, "operator_id")
        self.customer_id = _coerce_uuid(self.customer_id, "customer_id")
        self.search = (self.search or "").strip() or None


@dataclass
class AssignmentQuery(PageSpec):
    order_id: Optional[UUID] = None
    vehicle_id: Optional[UUID] = None
    driver_id: Optional[UUID] = None

    def __post_init__(self):
        super().__post_init__()
        self.order_id = _coerce_uuid(self.order_id, "order_id")
        self.vehicle_id = _coerce_uuid(self.vehicle_id, "vehicle_id")
        self.driver_id = _coerce_uuid(self.driver_id, "driver_id")


@dataclass
class PaymentQuery(PageSpec):
    status: Optional[PaymentStatus] = None
    method: Optional[PaymentMethod] = None
    order_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    operator_id: Optional[UUID] = None
    search: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self.status = _coerce_enum(PaymentStatus, self.status, "status")
        self.method = _coerce_enum(PaymentMethod, self.method, "method")
        self.order_id = _coerce_uuid(self.order_id, "order_id")
        self.customer_id = _coerce_uuid(self.customer_id, "customer_id")
        self.operator_id = _coerce_uuid(self.operator_id, "operator_id")
        self.search = (self.search or "").strip() or None


@dataclass
class TrackingQuery(PageSpec):
    order_id: Optional[UUID] = None
    status: Optional[OrderStatus] = None

    def __post_init__(self):
        super().__post_init__()
        self.order_id = _coerce_uuid(self.order_id, "order_id")
        self.status = _coerce_enum(OrderStatus, self.status, "status")


def parse_id(value, label: str) -> UUID:
    """Parse a resource id; a malformed id names no resource at all."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(f"{label} not found")
