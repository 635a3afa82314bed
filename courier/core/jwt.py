from datetime import datetime, timedelta, timezone
from jose import jwt
from courier.config.settings import Config

class JWTConfig:
    def __init__(self, config: Config):
        self.secret_key = config.SECRET_KEY
        self.algorithm = config.JWT_ALGORITHM
        self.expiration_time = config.JWT_EXPIRATION_TIME

    def create_access_token(self, data: dict) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.expiration_time)
        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return encoded_jwt

