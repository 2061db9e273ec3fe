import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")

    # Database
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/library")
    MONGO_DBNAME = os.getenv("MONGO_DBNAME", "library")

    # Circulation
    ALLOW_RESERVATION_WITHOUT_AVAILABILITY = _env_flag(
        "ALLOW_RESERVATION_WITHOUT_AVAILABILITY", True
    )

    # Security
    BCRYPT_LOG_ROUNDS = int(os.getenv("BCRYPT_LOG_ROUNDS", "12"))
    SESSION_COOKIE_HTTPONLY = True

    # Administrator created at start-up when email and password are set
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
    ADMIN_FULLNAME = os.getenv("ADMIN_FULLNAME", "Administrator")
    ADMIN_EMPLOYEE_ID = os.getenv("ADMIN_EMPLOYEE_ID", "ADMIN")
    ADMIN_MOBILE_NUMBER = os.getenv("ADMIN_MOBILE_NUMBER", "0000000000")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    MONGO_DBNAME = "library_test"
    BCRYPT_LOG_ROUNDS = 4
    ALLOW_RESERVATION_WITHOUT_AVAILABILITY = True
    ADMIN_EMAIL = "admin@library.test"
    ADMIN_PASSWORD = "admin@123"
    ADMIN_FULLNAME = "Administrator"
    ADMIN_EMPLOYEE_ID = "ADMIN"
    LOG_LEVEL = "DEBUG"
