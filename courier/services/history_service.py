import logging
from sqlalchemy import select
from courier.models.order_history import OrderHistory

logger = logging.getLogger(__name__)

class HistoryService:
    """Append-only order history. Rows are written inside the caller's transaction."""

    def record(self, session, order_id, status_from, status_to, changed_by, notes=None) -> OrderHistory:
        entry = OrderHistory(
            order_id=order_id,
            status_from=status_from,
            status_to=status_to,
            changed_by=changed_by,
            notes=notes,
        )
        session.add(entry)
        logger.info(
            f"Order {order_id} history: {status_from.value if status_from else None} -> {status_to.value}"
        )
        return entry

    async def list_for_order(self, session, order_id) -> list:
        result = await session.execute(
            select(OrderHistory)
            .where(OrderHistory.order_id == order_id)
            .order_by(OrderHistory.created_at, OrderHistory.id)
        )
        return list(result.scalars().all())
