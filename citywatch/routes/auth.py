# citywatch/routes/auth.py
import logging

from flask import Blueprint, current_app, request, jsonify
from pymongo.errors import DuplicateKeyError

from ..errors import AuthenticationError, ConflictError, PermissionDenied, ValidationError
from ..models.user import DEFAULT_ROLE, build_user, normalize_email, password_matches, public_user
from ..utils.auth import bearer_claims, create_token, has_permission

auth_bp = Blueprint("auth_bp", __name__)
log = logging.getLogger(__name__)

# same message for unknown email and wrong password
INVALID_CREDENTIALS = "Invalid credentials"


def _users():
    return current_app.config["DB"]["users"]


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Body: { email, password, name, role }
    Returns: { token, user: {id, email, name, role} }

    Self-registration creates citizens. With ENFORCE_ROLES on, any other role
    needs a bearer token carrying manage_users.
    """
    user = build_user(request.get_json(force=True))
    if user["role"] != DEFAULT_ROLE and current_app.config.get("ENFORCE_ROLES", True):
        claims = bearer_claims()
        if not has_permission(claims.get("role"), "manage_users"):
            log.warning("Denied %s registration to user %s", user["role"], claims.get("userId"))
            raise PermissionDenied(f"Only an admin can register a {user['role']} account")
    if _users().find_one({"email": user["email"]}):
        raise ConflictError("User already exists")
    try:
        result = _users().insert_one(user)
    except DuplicateKeyError:
        raise ConflictError("User already exists")
    user["_id"] = result.inserted_id

    log.info("Registered user %s (role=%s)", user["_id"], user["role"])
    return jsonify(token=create_token(user), user=public_user(user)), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Body: { email, password }
    Returns the same shape as /register, or 401 without saying which part was wrong.
    """
    data = request.get_json(force=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    user = _users().find_one({"email": normalize_email(data.get("email"))})
    if not password_matches(user, data.get("password")):
        log.info("Failed login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)

    return jsonify(token=create_token(user), user=public_user(user))
