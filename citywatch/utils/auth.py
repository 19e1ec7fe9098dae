# citywatch/utils/auth.py
"""
Signed credentials and role checks.

Tokens are HS256 JWTs carrying userId, email and role, valid for
JWT_EXPIRES_DAYS (7 by default). There is no revocation or refresh: a token
stays valid until it expires.

The PERMISSIONS table is the same one the web client uses to hide controls.
With ENFORCE_ROLES on, the API applies it per request from the token's role
claim; with it off, protected routes are open to any caller.
"""
import functools
import logging
from datetime import datetime, timedelta, timezone

import jwt  # PyJWT
from flask import current_app, g, request

from ..errors import AuthenticationError, PermissionDenied

log = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

PERMISSIONS = {
    "citizen": ("report_incident", "view_feed"),
    "responder": (
        "view_feed", "verify_incident", "change_status",
        "add_internal_notes", "assign_departments",
    ),
    "admin": (
        "view_feed", "verify_incident", "change_status",
        "add_internal_notes", "assign_departments",
        "view_analytics", "manage_users", "delete_incident",
    ),
}


def has_permission(role, action):
    return action in PERMISSIONS.get(role, ())


def create_token(user, secret=None, expires_days=None):
    now = datetime.now(timezone.utc)
    days = expires_days if expires_days is not None else current_app.config["JWT_EXPIRES_DAYS"]
    claims = {
        "userId": str(user["_id"]),
        "email": user.get("email"),
        "role": user.get("role"),
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(claims, secret or current_app.config["JWT_SECRET"], algorithm=JWT_ALGORITHM)


def decode_token(token, secret=None):
    try:
        return jwt.decode(token, secret or current_app.config["JWT_SECRET"], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def bearer_claims():
    """Claims from the Authorization: Bearer <token> header, or AuthenticationError."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authentication required")
    return decode_token(token.strip())


def require_permission(action):
    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            if current_app.config.get("ENFORCE_ROLES", True):
                claims = bearer_claims()
                if not has_permission(claims.get("role"), action):
                    log.warning("Denied %s to user %s (role=%s)", action, claims.get("userId"), claims.get("role"))
                    raise PermissionDenied(f"Role '{claims.get('role')}' may not {action.replace('_', ' ')}")
                g.user_claims = claims
            return view(*args, **kwargs)
        return wrapper
    return decorator
