# citywatch/models/user.py
from werkzeug.security import generate_password_hash, check_password_hash

from ..errors import ValidationError
from .incident import utcnow, serialize_doc

ROLES = ("citizen", "responder", "admin")
DEFAULT_ROLE = "citizen"


def normalize_email(email):
    return email.strip().lower() if isinstance(email, str) else ""


def check_role(role):
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    return role


def build_user(payload, now=None):
    """
    Body: { email, password, name, role }
    Returns the document to insert, password already hashed.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    email = normalize_email(payload.get("email"))
    password = payload.get("password")
    name = payload.get("name") or ""
    role = payload.get("role") or DEFAULT_ROLE

    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not isinstance(password, str) or not password:
        raise ValidationError("password is required")
    if not isinstance(name, str):
        raise ValidationError("name must be a string")
    check_role(role)

    now = now or utcnow()
    return {
        "email": email,
        "password": generate_password_hash(password),
        "name": name.strip(),
        "role": role,
        "createdAt": now,
        "updatedAt": now,
    }


def password_matches(user, password):
    if not user or not isinstance(password, str):
        return False
    return check_password_hash(user.get("password", ""), password)


def public_user(user):
    """The `user` block returned alongside a token."""
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "name": user.get("name"),
        "role": user.get("role"),
    }


def serialize_user(user):
    return serialize_doc({k: v for k, v in user.items() if k != "password"})
