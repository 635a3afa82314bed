from quart import request, jsonify
from decimal import Decimal
from datetime import datetime
from enum import Enum
from uuid import UUID
import logging

from courier.core.errors import CourierError

logger = logging.getLogger(__name__)


def bearer_token():
    auth_header = request.headers.get('Authorization')
    if not auth_header or not auth_header.startswith('Bearer '):
        return None
    return auth_header.split(' ')[1]


async def current_actor(auth_service):
    return await auth_service.resolve_actor(bearer_token())


async def json_body() -> dict:
    data = await request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _plain(value):
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def to_dict(entity) -> dict:
    """Column values of an ORM row as JSON-safe primitives."""
    return {column.key: _plain(getattr(entity, column.key)) for column in entity.__table__.columns}


def page(items, meta) -> dict:
    return {"data": [to_dict(item) for item in items], "meta": meta}


async def handle_courier_error(error: CourierError):
    if error.status >= 500:
        logger.error(f"Unhandled courier error: {error.message}", exc_info=True)
    return jsonify(error.to_dict()), error.status
