# citywatch/routes/admin.py
import logging

from bson import ObjectId
from bson.errors import InvalidId
from flask import Blueprint, current_app, request, jsonify
from pymongo import ReturnDocument

from ..errors import NotFoundError, ValidationError
from ..models.incident import serialize_doc, utcnow
from ..models.user import check_role, serialize_user
from ..utils.auth import require_permission
from ..utils.normalize import normalize_incident
from ..utils.pipeline import compute_analytics

admin_bp = Blueprint("admin_bp", __name__)
log = logging.getLogger(__name__)


def _user_id(user_id):
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        raise NotFoundError("User not found")


@admin_bp.route("/users", methods=["GET"])
@require_permission("manage_users")
def list_users():
    users = current_app.config["DB"]["users"].find({}).sort("createdAt", -1)
    return jsonify([serialize_user(u) for u in users])


@admin_bp.route("/users/<user_id>/role", methods=["PATCH"])
@require_permission("manage_users")
def update_role(user_id):
    """Body: { role }"""
    data = request.get_json(force=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    role = check_role(data.get("role"))

    user = current_app.config["DB"]["users"].find_one_and_update(
        {"_id": _user_id(user_id)},
        {"$set": {"role": role, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundError("User not found")
    log.info("User %s role set to %s", user_id, role)
    return jsonify(serialize_user(user))


@admin_bp.route("/users/<user_id>", methods=["DELETE"])
@require_permission("manage_users")
def delete_user(user_id):
    result = current_app.config["DB"]["users"].delete_one({"_id": _user_id(user_id)})
    if result.deleted_count == 0:
        raise NotFoundError("User not found")
    log.info("User %s deleted", user_id)
    return jsonify(message="User deleted")


@admin_bp.route("/analytics", methods=["GET"])
@require_permission("view_analytics")
def analytics():
    docs = current_app.config["DB"]["incidents"].find({})
    incidents = [normalize_incident(serialize_doc(d)) for d in docs]
    return jsonify(compute_analytics(incidents))
