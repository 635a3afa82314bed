import os
from decimal import Decimal
from dotenv import load_dotenv

class Config:
    def __init__(self):
        load_dotenv()

        # App Environment
        self.APP_ENV = os.getenv("APP_ENV", "production")
        self.DEBUG = os.getenv("DEBUG", "False").lower() == "true"
        self.PORT = int(os.getenv("PORT", 5000))
        self.HOST = os.getenv("HOST", "127.0.0.1")

        # Secret Key
        self.SECRET_KEY = os.getenv("SECRET_KEY")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRATION_TIME = int(os.getenv("JWT_EXPIRATION_TIME", 3600))

        # Database Config
        self.DATABASE_URL = os.getenv("DATABASE_URL")
        self.DB_HOST = os.getenv("DB_HOST")
        self.DB_PORT = os.getenv("DB_PORT")
        self.DB_NAME = os.getenv("DB_NAME")
        self.DB_USER = os.getenv("DB_USER")
        self.DB_PASSWORD = os.getenv("DB_PASSWORD")

        # Fulfillment rules
        self.PAYMENT_TOLERANCE = Decimal(os.getenv("PAYMENT_TOLERANCE", "0.01"))
        self.TRACKING_STATUS_POLICY = os.getenv("TRACKING_STATUS_POLICY", "direct").lower()

        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_FILE = os.getenv("LOG_FILE", "courier.log")

        # CORS
        self.ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")

        # Validate configuration
        self._validate()

    def _validate(self):
        required_fields = ["SECRET_KEY"]
        # A full DATABASE_URL replaces the individual connection fields
        if not self.DATABASE_URL:
            required_fields += ["DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD"]

        for field in required_fields:
            if not getattr(self, field):
                raise ValueError(f"Missing required configuration: {field}")

        if self.TRACKING_STATUS_POLICY not in ("direct", "transition_table"):
            raise ValueError(f"Invalid TRACKING_STATUS_POLICY: {self.TRACKING_STATUS_POLICY}")

        if self.PAYMENT_TOLERANCE < 0:
            raise ValueError("PAYMENT_TOLERANCE must not be negative")
