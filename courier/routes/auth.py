from quart import Blueprint, jsonify
from courier.core.errors import InvalidStateError
from courier.routes.common import json_body
from courier.services.auth import AuthService
import logging

logger = logging.getLogger(__name__)

def init_auth_routes(auth_service: AuthService):
    auth_bp = Blueprint('auth', __name__, url_prefix='/api/v1/auth')

    @auth_bp.route('/signup', methods=['POST'])
    async def signup():
        data = await json_body()
        if not all(data.get(key) for key in ['name', 'email', 'password']):
            logger.warning("Invalid signup request: missing required fields")
            raise InvalidStateError("Missing required fields: name, email, password")

        result = await auth_service.signup(
            name=data['name'],
            email=data['email'],
            password=data['password'],
            phone=data.get('phone'),
        )
        return jsonify(result), 201

    @auth_bp.route('/login', methods=['POST'])
    async def login():
        data = await json_body()
        if not data.get('email') or not data.get('password'):
            logger.warning("Invalid login request: missing credentials")
            raise InvalidStateError("Missing required fields: email, password")

        result = await auth_service.login(data['email'], data['password'])
        return jsonify(result), 200

    return auth_bp
