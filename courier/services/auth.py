from passlib.context import CryptContext
from sqlalchemy import select
from jose import jwt, JWTError
import logging

from courier.core.errors import ConflictError, NotFoundError, UnauthenticatedError
from courier.core.jwt import JWTConfig
from courier.models.user import User, UserStatus, RoleCode
from courier.services.access_guard import Actor
from courier.services.queries import parse_id

logger = logging.getLogger(__name__)

class AuthService:
    """User/role directory: issues tokens and resolves callers to an Actor."""

    def __init__(self, session_factory, jwt_config: JWTConfig):
        self.session_factory = session_factory
        self.jwt_config = jwt_config
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    async def signup(self, name: str, email: str, password: str, phone: str = None) -> dict:
        async with self.session_factory() as session:
            async with session.begin():
                existing = await session.execute(select(User).where(User.email == email))
                if existing.scalars().first():
                    logger.warning(f"Signup attempt with existing email: {email}")
                    raise ConflictError("User with this email already exists")

                # Self-service signups are always customers without an operator
                user = User(
                    name=name,
                    email=email,
                    phone=phone,
                    hashed_password=self.hash_password(password),
                    role=RoleCode.CUSTOMER,
                    status=UserStatus.ACTIVE,
                )
                session.add(user)

        token = self.jwt_config.create_access_token({"sub": str(user.id)})
        logger.info(f"User signed up successfully: {email}")
        return {"token": token, "user_id": str(user.id)}

    async def login(self, email: str, password: str) -> dict:
        async with self.session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalars().first()
            if not user or not self.pwd_context.verify(password, user.hashed_password):
                logger.warning(f"Invalid login attempt for: {email}")
                raise UnauthenticatedError("Invalid credentials")

            if user.status == UserStatus.INACTIVE:
                logger.warning(f"Login attempt for inactive user: {email}")
                raise UnauthenticatedError("Account is inactive")

            token = self.jwt_config.create_access_token({"sub": str(user.id)})
            logger.info(f"User logged in successfully: {email}")
            return {
                "token": token,
                "user_id": str(user.id),
                "operator_id": str(user.operator_id) if user.operator_id else None,
                "role": user.role.value,
            }

    async def resolve_actor(self, token: str) -> Actor:
        if not token:
            raise UnauthenticatedError("Missing or invalid Authorization header")
        try:
            payload = jwt.decode(
                token,
                self.jwt_config.secret_key,
                algorithms=[self.jwt_config.algorithm]
            )
        except JWTError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            raise UnauthenticatedError("Invalid token")

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("Invalid token: no user_id in payload")
            raise UnauthenticatedError("Invalid token")

        try:
            user_id = parse_id(user_id, "User")
        except NotFoundError:
            raise UnauthenticatedError("Invalid token")

        async with self.session_factory() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            user = result.scalars().first()
            if not user:
                logger.warning(f"Token validation failed: user_id {user_id} not found")
                raise UnauthenticatedError("User not found")
            if user.status == UserStatus.INACTIVE:
                logger.warning(f"Token validation failed: user_id {user_id} is inactive")
                raise UnauthenticatedError("Account is inactive")

            return Actor(id=user.id, operator_id=user.operator_id, role=user.role)
