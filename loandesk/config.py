import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    JWT_SECRET = os.environ.get("JWT_SECRET", os.environ.get("SECRET_KEY", "dev"))
    JWT_EXPIRES_MINUTES = int(os.environ.get("JWT_EXPIRES_MINUTES", 30))
    DEMO_PASSWORD = os.environ.get("DEMO_PASSWORD", "demo123")
    SEED_DEMO_DATA = _env_bool("SEED_DEMO_DATA", True)
    MAX_LOGIN_ATTEMPTS = int(os.environ.get("MAX_LOGIN_ATTEMPTS", 3))
    DEFAULT_THRESHOLD_DAYS = int(os.environ.get("DEFAULT_THRESHOLD_DAYS", 90))
    TOPUP_DEFAULT_TENURE_MONTHS = int(os.environ.get("TOPUP_DEFAULT_TENURE_MONTHS", 6))
    TOPUP_DEFAULT_RATE = float(os.environ.get("TOPUP_DEFAULT_RATE", 15))
    ORGANISATION_NAME = os.environ.get("ORGANISATION_NAME", "LoanDesk Finance")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing"
    JWT_SECRET = "testing-jwt-secret-with-at-least-32-bytes"
    SEED_DEMO_DATA = False
    LOG_LEVEL = "WARNING"
