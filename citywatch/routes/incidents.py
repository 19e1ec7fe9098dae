# citywatch/routes/incidents.py
import logging

from bson import ObjectId
from bson.errors import InvalidId
from flask import Blueprint, current_app, request, jsonify
from pymongo import ReturnDocument

from ..errors import NotFoundError, ValidationError
from ..models.incident import (
    build_incident, build_patch, build_replacement, serialize_doc, utcnow,
)
from ..utils.auth import require_permission
from ..utils.geo_utils import format_distance
from ..utils.normalize import normalize_incident, verification_level
from ..utils.pipeline import apply_filters, format_time_ago, incident_distance, sort_incidents

incident_bp = Blueprint("incident_bp", __name__)
log = logging.getLogger(__name__)


def _col():
    return current_app.config["DB"]["incidents"]


def _object_id(incident_id):
    # malformed ids cannot resolve to a record
    try:
        return ObjectId(incident_id)
    except (InvalidId, TypeError):
        raise NotFoundError("Incident not found")


def _json_body():
    data = request.get_json(force=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _as_bool(value):
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_float(v):
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


@incident_bp.route("", methods=["GET"])
def list_incidents():
    """All incidents, newest first. No pagination."""
    docs = _col().find({}).sort("createdAt", -1)
    return jsonify([serialize_doc(d) for d in docs])


@incident_bp.route("/feed", methods=["GET"])
def feed():
    """
    Query: type, verifiedOnly, timeRange, radiusKm, lat, lng, sortBy
    Returns normalized incidents passing every filter, each with `timeAgo` and
    `verificationLevel`; `distance` (km) and `distanceLabel` are attached when
    lat/lng are given.
    """
    args = request.args
    user_location = None
    if args.get("lat") is not None or args.get("lng") is not None:
        lat, lng = _as_float(args.get("lat")), _as_float(args.get("lng"))
        if lat is None or lng is None:
            raise ValidationError("lat/lng required together (numeric)")
        user_location = {"lat": lat, "lng": lng}

    filters = {
        "type": args.get("type", "all"),
        "verifiedOnly": _as_bool(args.get("verifiedOnly", "false")),
        "timeRange": args.get("timeRange", "all"),
        "radiusKm": args.get("radiusKm", "all"),
    }
    incidents = [normalize_incident(serialize_doc(d)) for d in _col().find({}).sort("createdAt", -1)]
    try:
        out = apply_filters(incidents, filters, user_location)
        if args.get("sortBy"):
            out = sort_incidents(out, args["sortBy"])
    except ValueError as e:
        raise ValidationError(str(e))

    for inc in out:
        inc["timeAgo"] = format_time_ago(inc.get("createdAt"))
        inc["verificationLevel"] = verification_level(inc.get("verificationScore"))[0]
        if user_location:
            km = incident_distance(inc, user_location)
            inc["distance"] = round(km, 3)
            inc["distanceLabel"] = format_distance(km)
    return jsonify(out)


@incident_bp.route("/<incident_id>", methods=["GET"])
def get_incident(incident_id):
    doc = _col().find_one({"_id": _object_id(incident_id)})
    if not doc:
        raise NotFoundError("Incident not found")
    return jsonify(serialize_doc(doc))


@incident_bp.route("", methods=["POST"])
def create_incident():
    """
    Body: { title, description, type, location: {coordinates: [lng, lat]},
            reportedBy, severity?, status?, ... }
    """
    doc = build_incident(_json_body(), utcnow())
    result = _col().insert_one(doc)
    doc["_id"] = result.inserted_id
    log.info("Incident %s reported (type=%s severity=%s)", result.inserted_id, doc["type"], doc["severity"])
    return jsonify(serialize_doc(doc)), 201


@incident_bp.route("/<incident_id>", methods=["PUT"])
@require_permission("change_status")
def replace_incident(incident_id):
    oid = _object_id(incident_id)
    existing = _col().find_one({"_id": oid})
    if not existing:
        raise NotFoundError("Incident not found")

    doc = build_replacement(_json_body(), existing, utcnow())
    updated = _col().find_one_and_replace({"_id": oid}, doc, return_document=ReturnDocument.AFTER)
    if not updated:
        raise NotFoundError("Incident not found")
    log.info("Incident %s replaced", incident_id)
    return jsonify(serialize_doc(updated))


@incident_bp.route("/<incident_id>", methods=["PATCH"])
@require_permission("change_status")
def patch_incident(incident_id):
    """
    Sparse update. `notes` is stored as `responder_notes`; keys outside the
    alias table are written as-is.
    """
    oid = _object_id(incident_id)
    update = build_patch(_json_body())
    update["updatedAt"] = utcnow()

    updated = _col().find_one_and_update({"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER)
    if not updated:
        raise NotFoundError("Incident not found")
    log.info("Incident %s patched: %s", incident_id, ", ".join(sorted(update)))
    return jsonify(serialize_doc(updated))


@incident_bp.route("/<incident_id>/confirm", methods=["POST"])
def confirm_incident(incident_id):
    """One more citizen confirmation. Repeat confirmations by the same user all count."""
    updated = _col().find_one_and_update(
        {"_id": _object_id(incident_id)},
        {"$inc": {"verificationScore": 1}, "$set": {"updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("Incident not found")
    return jsonify(serialize_doc(updated))


@incident_bp.route("/<incident_id>", methods=["DELETE"])
@require_permission("delete_incident")
def delete_incident(incident_id):
    result = _col().delete_one({"_id": _object_id(incident_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Incident not found")
    log.info("Incident %s deleted", incident_id)
    return jsonify(message="Incident deleted")
