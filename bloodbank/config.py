import os

from dotenv import load_dotenv

load_dotenv()


def _origins(value):
    value = (value or "*").strip()
    return "*" if value == "*" else [o.strip() for o in value.split(",") if o.strip()]


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///blood_bank.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DB_TIMEOUT = float(os.getenv("DB_TIMEOUT", "10"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = _origins(os.getenv("CORS_ORIGINS"))
    DONATION_EXPIRY_DAYS = int(os.getenv("DONATION_EXPIRY_DAYS", "42"))
    DONATION_INTERVAL_DAYS = int(os.getenv("DONATION_INTERVAL_DAYS", "56"))


def engine_options(uri, timeout):
    """Driver timeouts so a stuck database surfaces as an error instead of a hang."""
    options = {"pool_pre_ping": True}
    if uri.startswith("sqlite"):
        options["connect_args"] = {"timeout": timeout, "check_same_thread": False}
    elif uri.startswith("mysql"):
        t = int(timeout)
        options["connect_args"] = {"connect_timeout": t, "read_timeout": t, "write_timeout": t}
        options["pool_timeout"] = timeout
        options["pool_recycle"] = 3600
    else:
        options["pool_timeout"] = timeout
    return options
