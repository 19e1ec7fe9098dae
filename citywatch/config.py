# citywatch/config.py
import logging
import os
import secrets

log = logging.getLogger(__name__)


def _flag(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def load_config():
    """
    Read settings from the environment (call load_dotenv() first for local dev).
    Returns a plain dict that create_app() copies into app.config.
    """
    secret = os.getenv("JWT_SECRET")
    if not secret:
        # Tokens stop validating after a restart; fine for dev, set JWT_SECRET in prod.
        secret = secrets.token_urlsafe(64)
        log.warning("JWT_SECRET not set - using a random key for this process")

    prefix = os.getenv("API_PREFIX", "/api").strip()
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    prefix = prefix.rstrip("/")

    origins = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]

    return {
        "MONGO_URI": os.getenv("MONGO_URI", "mongodb://localhost:27017"),
        "MONGO_DB": os.getenv("MONGO_DB", "incident_reporting"),
        "JWT_SECRET": secret,
        "JWT_EXPIRES_DAYS": int(os.getenv("JWT_EXPIRES_DAYS", "7")),
        "ENFORCE_ROLES": _flag("ENFORCE_ROLES", True),
        "API_PREFIX": prefix,
        "CORS_ORIGINS": origins,
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
        "PORT": int(os.getenv("PORT", "5001")),
        "DEBUG": _flag("FLASK_DEBUG", False),
    }
