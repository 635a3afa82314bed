from quart import Blueprint, request, jsonify
from courier.routes.common import current_actor, json_body, to_dict, page
from courier.services.auth import AuthService
from courier.services.order_service import OrderService
from courier.services.queries import OrderQuery
import logging

logger = logging.getLogger(__name__)

def init_order_routes(order_service: OrderService, auth_service: AuthService):
    order_bp = Blueprint('orders', __name__, url_prefix='/api/v1')

    @order_bp.route('/orders', methods=['POST'])
    async def create_order():
        actor = await current_actor(auth_service)
        order = await order_service.create(await json_body(), actor)
        return jsonify(to_dict(order)), 201

    @order_bp.route('/orders', methods=['GET'])
    async def list_orders():
        actor = await current_actor(auth_service)
        args = request.args
        query = OrderQuery(
            page=args.get('page', 1),
            limit=args.get('limit', 10),
            status=args.get('status'),
            operator_id=args.get('operator_id'),
            customer_id=args.get('customer_id'),
            search=args.get('search'),
        )
        orders, meta = await order_service.find_all(query, actor)
        return jsonify(page(orders, meta)), 200

    @order_bp.route('/orders/track/<order_number>', methods=['GET'])
    async def track_order(order_number):
        order = await order_service.find_by_order_number(order_number)
        return jsonify({
            "id": str(order.id),
            "order_number": order.order_number,
            "status": order.status.value,
            "pickup_address": order.pickup_address,
            "delivery_address": order.delivery_address,
        }), 200

    @order_bp.route('/orders/<order_id>', methods=['GET'])
    async def get_order(order_id):
        actor = await current_actor(auth_service)
        order = await order_service.find_one(order_id, actor)
        return jsonify(to_dict(order)), 200

    @order_bp.route('/orders/<order_id>/status', methods=['PATCH'])
    async def update_order_status(order_id):
        actor = await current_actor(auth_service)
        data = await json_body()
        order = await order_service.update_status(
            order_id, data.get('status'), actor, reason=data.get('rejection_reason')
        )
        return jsonify(to_dict(order)), 200

    @order_bp.route('/orders/<order_id>/history', methods=['GET'])
    async def get_order_history(order_id):
        actor = await current_actor(auth_service)
        entries = await order_service.history(order_id, actor)
        return jsonify({"data": [to_dict(entry) for entry in entries]}), 200

    @order_bp.route('/orders/<order_id>', methods=['DELETE'])
    async def delete_order(order_id):
        actor = await current_actor(auth_service)
        await order_service.remove(order_id, actor)
        return jsonify({"message": "Order deleted successfully"}), 200

    return order_bp
