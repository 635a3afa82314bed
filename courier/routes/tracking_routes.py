from quart import Blueprint, request, jsonify
from courier.routes.common import current_actor, json_body, to_dict, page
from courier.services.auth import AuthService
from courier.services.queries import TrackingQuery
from courier.services.tracking_service import TrackingService
import logging

logger = logging.getLogger(__name__)

def init_tracking_routes(tracking_service: TrackingService, auth_service: AuthService):
    tracking_bp = Blueprint('tracking', __name__, url_prefix='/api/v1')

    @tracking_bp.route('/tracking-events', methods=['POST'])
    async def create_tracking_event():
        actor = await current_actor(auth_service)
        data = await json_body()
        event = await tracking_service.create(
            data.get('order_id'), data.get('status'), actor,
            location_lat=data.get('location_lat'),
            location_lng=data.get('location_lng'),
            notes=data.get('notes'),
        )
        return jsonify(to_dict(event)), 201

    @tracking_bp.route('/tracking-events', methods=['GET'])
    async def list_tracking_events():
        actor = await current_actor(auth_service)
        args = request.args
        query = TrackingQuery(
            page=args.get('page', 1),
            limit=args.get('limit', 10),
            order_id=args.get('order_id'),
            status=args.get('status'),
        )
        events, meta = await tracking_service.find_all(query, actor)
        return jsonify(page(events, meta)), 200

    @tracking_bp.route('/tracking-events/order/<order_id>', methods=['GET'])
    async def list_order_tracking_events(order_id):
        actor = await current_actor(auth_service)
        events = await tracking_service.find_by_order(order_id, actor)
        return jsonify({"data": [to_dict(event) for event in events]}), 200

    @tracking_bp.route('/tracking-events/public/<order_id>', methods=['GET'])
    async def public_tracking_events(order_id):
        events = await tracking_service.find_by_order_public(order_id)
        return jsonify({"data": [to_dict(event) for event in events]}), 200

    @tracking_bp.route('/tracking-events/<event_id>', methods=['GET'])
    async def get_tracking_event(event_id):
        actor = await current_actor(auth_service)
        event = await tracking_service.find_one(event_id, actor)
        return jsonify(to_dict(event)), 200

    return tracking_bp
