"""
Environment-aware configuration.
Values come from the environment (a .env file is read if present); the auth
keys are turned into an AuthSettings instance by create_app().
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///modernapi.db")

    # jwt / refresh token configuration
    JWT_SECRET = os.getenv("JWT_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "modernapi")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "modernapi-clients")
    ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
    REFRESH_TOKEN_TTL_DAYS = int(os.getenv("REFRESH_TOKEN_TTL_DAYS", "7"))
    REMEMBER_ME_REFRESH_TOKEN_TTL_DAYS = int(os.getenv("REMEMBER_ME_REFRESH_TOKEN_TTL_DAYS", "30"))

    # account lockout
    LOCKOUT_MAX_FAILED_ATTEMPTS = int(os.getenv("LOCKOUT_MAX_FAILED_ATTEMPTS", "5"))
    LOCKOUT_DURATION_MINUTES = int(os.getenv("LOCKOUT_DURATION_MINUTES", "15"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # a fixed dev-only secret so the app starts without a .env
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-only-jwt-secret-change-me-0123456789")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    JWT_SECRET = "test-jwt-secret-that-is-long-enough-0123456789"


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
