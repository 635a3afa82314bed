from quart import Blueprint, request, jsonify
from courier.routes.common import current_actor, json_body, to_dict, page
from courier.services.auth import AuthService
from courier.services.payment_service import PaymentService
from courier.services.queries import PaymentQuery
import logging

logger = logging.getLogger(__name__)

def init_payment_routes(payment_service: PaymentService, auth_service: AuthService):
    payment_bp = Blueprint('payments', __name__, url_prefix='/api/v1')

    @payment_bp.route('/payments', methods=['POST'])
    async def create_payment():
        actor = await current_actor(auth_service)
        data = await json_body()
        payment = await payment_service.create(
            data.get('order_id'), data.get('amount'), data.get('method'), actor,
            transaction_id=data.get('transaction_id'),
            gateway_response=data.get('gateway_response'),
        )
        return jsonify(to_dict(payment)), 201

    @payment_bp.route('/payments', methods=['GET'])
    async def list_payments():
        actor = await current_actor(auth_service)
        args = request.args
        query = PaymentQuery(
            page=args.get('page', 1),
            limit=args.get('limit', 10),
            status=args.get('status'),
            method=args.get('method'),
            order_id=args.get('order_id'),
            customer_id=args.get('customer_id'),
            operator_id=args.get('operator_id'),
            search=args.get('search'),
        )
        payments, meta = await payment_service.find_all(query, actor)
        return jsonify(page(payments, meta)), 200

    @payment_bp.route('/payments/<payment_id>', methods=['GET'])
    async def get_payment(payment_id):
        actor = await current_actor(auth_service)
        payment = await payment_service.find_one(payment_id, actor)
        return jsonify(to_dict(payment)), 200

    @payment_bp.route('/payments/<payment_id>', methods=['PATCH'])
    async def update_payment(payment_id):
        actor = await current_actor(auth_service)
        data = await json_body()
        payment = await payment_service.update(
            payment_id, actor,
            status=data.get('status'),
            transaction_id=data.get('transaction_id'),
            gateway_response=data.get('gateway_response'),
        )
        return jsonify(to_dict(payment)), 200

    @payment_bp.route('/payments/<payment_id>', methods=['DELETE'])
    async def delete_payment(payment_id):
        actor = await current_actor(auth_service)
        await payment_service.remove(payment_id, actor)
        return jsonify({"message": "Payment deleted successfully"}), 200

    return payment_bp
