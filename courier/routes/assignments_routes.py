from quart import Blueprint, request, jsonify
from courier.routes.common import current_actor, json_body, to_dict, page
from courier.services.assignment_service import AssignmentService, UNSET
from courier.services.auth import AuthService
from courier.services.queries import AssignmentQuery
import logging

logger = logging.getLogger(__name__)

def init_assignment_routes(assignment_service: AssignmentService, auth_service: AuthService):
    assignment_bp = Blueprint('assignments', __name__, url_prefix='/api/v1')

    @assignment_bp.route('/order-assignments', methods=['POST'])
    async def create_assignment():
        actor = await current_actor(auth_service)
        data = await json_body()
        assignment = await assignment_service.create(
            data.get('order_id'), data.get('vehicle_id'), data.get('driver_id'), actor
        )
        return jsonify(to_dict(assignment)), 201

    @assignment_bp.route('/order-assignments', methods=['GET'])
    async def list_assignments():
        actor = await current_actor(auth_service)
        args = request.args
        query = AssignmentQuery(
            page=args.get('page', 1),
            limit=args.get('limit', 10),
            order_id=args.get('order_id'),
            vehicle_id=args.get('vehicle_id'),
            driver_id=args.get('driver_id'),
        )
        assignments, meta = await assignment_service.find_all(query, actor)
        return jsonify(page(assignments, meta)), 200

    @assignment_bp.route('/order-assignments/<assignment_id>', methods=['GET'])
    async def get_assignment(assignment_id):
        actor = await current_actor(auth_service)
        assignment = await assignment_service.find_one(assignment_id, actor)
        return jsonify(to_dict(assignment)), 200

    @assignment_bp.route('/order-assignments/<assignment_id>', methods=['PATCH'])
    async def update_assignment(assignment_id):
        actor = await current_actor(auth_service)
        data = await json_body()
        assignment = await assignment_service.update(
            assignment_id, actor,
            vehicle_id=data.get('vehicle_id'),
            driver_id=data['driver_id'] if 'driver_id' in data else UNSET,
        )
        return jsonify(to_dict(assignment)), 200

    @assignment_bp.route('/order-assignments/<assignment_id>', methods=['DELETE'])
    async def delete_assignment(assignment_id):
        actor = await current_actor(auth_service)
        order = await assignment_service.remove(assignment_id, actor)
        return jsonify({
            "message": "Order assignment removed successfully",
            "order_status": order.status.value,
        }), 200

    return assignment_bp
