from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from courier.config.settings import Config

class DatabaseConfig:
    def __init__(self, config: Config):
        self.database_url = config.DATABASE_URL
        self.db_host = config.DB_HOST
        self.db_port = config.DB_PORT
        self.db_name = config.DB_NAME
        self.db_user = config.DB_USER
        self.db_password = config.DB_PASSWORD

    def get_db_url(self):
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    def create_engine(self, echo: bool = False):
        return create_async_engine(self.get_db_url(), echo=echo, future=True)


def make_session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
