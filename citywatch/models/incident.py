# citywatch/models/incident.py
"""
Incident documents as stored in the `incidents` collection.

Storage keeps whatever casing the caller used for an in-enum status, so
`reported` and `UNVERIFIED` both live in the same field. Aliases that are not
part of the enum (legacy `crime` types, `RESOLVED` statuses, ...) are mapped
here, before validation, and never reach the database.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from bson import ObjectId

from ..errors import ValidationError

log = logging.getLogger(__name__)

INCIDENT_TYPES = ("fire", "medical", "accident", "security", "natural_disaster")
TYPE_ALIASES = {
    "crime": "security",
    "disaster": "natural_disaster",
    "infrastructure": "accident",
}

SEVERITIES = ("low", "medium", "high", "critical")
DEFAULT_SEVERITY = "medium"

WORKFLOW_STATUSES = ("reported", "assigned", "in_progress", "resolved")
VERIFICATION_STATUSES = ("UNVERIFIED", "VERIFIED", "IN_PROGRESS", "FALSE_REPORT")
STATUSES = WORKFLOW_STATUSES + VERIFICATION_STATUSES
STATUS_ALIASES = {
    "RESOLVED": "resolved",
    "ASSIGNED": "VERIFIED",
}
DEFAULT_STATUS = "reported"

ASSIGNMENTS = ("Police", "Fire", "Medical", "Multiple")
ANONYMOUS = "anonymous"

OPTIONAL_TEXT_FIELDS = ("address", "assignedTo", "imageUrl", "responder_notes", "notes", "verified_by")

# client-facing key -> storage field
PATCH_FIELD_MAP = {
    "status": "status",
    "severity": "severity",
    "notes": "responder_notes",
    "responder_notes": "responder_notes",
    "assignment": "assignment",
    "assignedTo": "assignedTo",
    "verified_by": "verified_by",
    "verificationScore": "verificationScore",
}

# never taken from a request body
PROTECTED_FIELDS = ("_id", "id", "createdAt", "updatedAt", "__v")

MOCK_DATA_PATH = Path(__file__).resolve().parents[1] / "data" / "mock_incidents.json"


def utcnow():
    # naive UTC, millisecond precision: what BSON round-trips
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def parse_datetime(value):
    """Accept a datetime or an ISO-8601 string; return naive UTC or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def canonical_type(value):
    if not isinstance(value, str):
        return value
    key = value.strip().lower()
    return TYPE_ALIASES.get(key, key)


def canonical_severity(value):
    if not isinstance(value, str):
        return value
    return value.strip().lower()


def canonical_status(value):
    """
    Map a status onto the stored union without collapsing the two vocabularies:
    'reported' stays lowercase, 'verified' becomes 'VERIFIED', 'RESOLVED' -> 'resolved'.
    Unknown strings come back stripped and untouched so validation can reject them.
    """
    if not isinstance(value, str):
        return value
    raw = value.strip()
    if raw in STATUSES:
        return raw
    upper = raw.upper().replace(" ", "_").replace("-", "_")
    if upper in STATUS_ALIASES:
        return STATUS_ALIASES[upper]
    if upper.lower() in WORKFLOW_STATUSES:
        return upper.lower()
    if upper in VERIFICATION_STATUSES:
        return upper
    return raw


# ---------------------------------------------------------------------------
# Field checks: each returns the value to store or raises ValueError
# ---------------------------------------------------------------------------

def _required_text(name):
    def check(value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{name} is required")
        return value.strip()
    return check


def _optional_text(name):
    def check(value):
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"{name} must be a string")
        return value
    return check


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_type(value):
    if value is None or value == "":
        raise ValueError("type is required")
    canon = canonical_type(value)
    if canon not in INCIDENT_TYPES:
        raise ValueError(f"type '{value}' is not one of {', '.join(INCIDENT_TYPES)}")
    return canon


def check_severity(value):
    canon = canonical_severity(value)
    if canon not in SEVERITIES:
        raise ValueError(f"severity '{value}' is not one of {', '.join(SEVERITIES)}")
    return canon


def check_status(value):
    canon = canonical_status(value)
    if canon not in STATUSES:
        raise ValueError(f"status '{value}' is not one of {', '.join(STATUSES)}")
    return canon


def check_location(value):
    """
    Expect {"type": "Point", "coordinates": [lng, lat]}. The order is kept as
    given; lat/lng ranges are checked against the positions they occupy.
    """
    if not isinstance(value, dict):
        raise ValueError("location.coordinates is required")
    coords = value.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        raise ValueError("location.coordinates must be [longitude, latitude]")
    lng, lat = coords[0], coords[1]
    if not _is_number(lng) or not _is_number(lat):
        raise ValueError("location.coordinates must be numeric")
    if not -180 <= lng <= 180:
        raise ValueError("longitude must be between -180 and 180")
    if not -90 <= lat <= 90:
        raise ValueError("latitude must be between -90 and 90")
    if value.get("type", "Point") != "Point":
        raise ValueError("location.type must be 'Point'")
    return {"type": "Point", "coordinates": [float(lng), float(lat)]}


def check_assignment(value):
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError("assignment must be a list")
    bad = [a for a in value if a not in ASSIGNMENTS]
    if bad:
        raise ValueError(f"assignment {bad} must be drawn from {', '.join(ASSIGNMENTS)}")
    return list(value)


def check_verification_score(value):
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError("verificationScore must be a non-negative integer")
    return value


FIELD_CHECKS = {
    "title": _required_text("title"),
    "description": _required_text("description"),
    "type": check_type,
    "location": check_location,
    "severity": check_severity,
    "status": check_status,
    "reportedBy": _required_text("reportedBy"),
    "assignment": check_assignment,
    "verificationScore": check_verification_score,
}
for _name in OPTIONAL_TEXT_FIELDS:
    FIELD_CHECKS[_name] = _optional_text(_name)

SCHEMA_FIELDS = tuple(FIELD_CHECKS)


def build_incident(payload, now=None):
    """
    Validate a full incident payload and return the document to insert.
    Raises ValidationError listing every problem found. Keys outside the
    schema are dropped.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    now = now or utcnow()
    data = {k: v for k, v in payload.items() if k in SCHEMA_FIELDS}

    # location.address on input is stored top-level
    location = payload.get("location")
    if data.get("address") is None and isinstance(location, dict) and location.get("address"):
        data["address"] = location["address"]

    data.setdefault("severity", DEFAULT_SEVERITY)
    data.setdefault("status", DEFAULT_STATUS)
    data.setdefault("assignment", [])
    data.setdefault("verificationScore", 0)
    for name in OPTIONAL_TEXT_FIELDS:
        data.setdefault(name, None)
    for name in ("description", "type", "location", "reportedBy"):
        data.setdefault(name, None)

    doc, errors = {}, []
    for name in SCHEMA_FIELDS:
        if name == "title":
            continue
        try:
            doc[name] = FIELD_CHECKS[name](data[name])
        except ValueError as e:
            errors.append(str(e))

    title = data.get("title")
    if title is None or (isinstance(title, str) and not title.strip()):
        title = doc.get("type")
    try:
        doc["title"] = FIELD_CHECKS["title"](title)
    except ValueError as e:
        errors.append(str(e))

    if errors:
        raise ValidationError("; ".join(errors))

    doc["createdAt"] = now
    doc["updatedAt"] = now
    return doc


def build_replacement(payload, existing, now=None):
    """Full update: validate like create, keep identity and creation time."""
    now = now or utcnow()
    doc = build_incident(payload, now)
    doc["createdAt"] = existing.get("createdAt") or now
    if "verificationScore" not in payload:
        doc["verificationScore"] = existing.get("verificationScore", 0)
    return doc


def build_patch(payload):
    """
    Translate a sparse client payload into a $set document.

    Keys in PATCH_FIELD_MAP are routed to their storage field; any other key
    is written as-is. Schema fields are validated wherever they come from.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    update = {}
    for key, field in PATCH_FIELD_MAP.items():
        if key in payload:
            update[field] = payload[key]

    passthrough = [k for k in payload if k not in PATCH_FIELD_MAP and k not in PROTECTED_FIELDS]
    # top-level fields only: no update operators, no dotted paths
    bad_keys = [k for k in passthrough if not isinstance(k, str) or k.startswith("$") or "." in k]
    if bad_keys:
        raise ValidationError(f"Invalid field names: {', '.join(map(str, bad_keys))}")
    for key in passthrough:
        update[key] = payload[key]

    unknown = [k for k in passthrough if k not in SCHEMA_FIELDS]
    if unknown:
        log.warning("PATCH stores fields outside the incident schema: %s", ", ".join(unknown))

    errors = []
    for field, value in list(update.items()):
        check = FIELD_CHECKS.get(field)
        if check is None:
            continue
        try:
            update[field] = check(value)
        except ValueError as e:
            errors.append(str(e))
    if errors:
        raise ValidationError("; ".join(errors))
    return update


def _json_value(value):
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat(timespec="milliseconds") + "Z"
    if isinstance(value, list):
        return [_json_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _json_value(v) for k, v in value.items()}
    if isinstance(value, ObjectId):
        return str(value)
    return value


def serialize_doc(doc):
    """Mongo document -> JSON-ready dict with string `_id` and `id`."""
    out = {k: _json_value(v) for k, v in doc.items()}
    if "_id" in doc:
        out["_id"] = str(doc["_id"])
        out["id"] = out["_id"]
    return out


def canonicalize_incident(raw):
    """Copy of a raw record with alias types/statuses mapped to stored values."""
    out = dict(raw)
    if "type" in out:
        out["type"] = canonical_type(out["type"])
    if "status" in out:
        out["status"] = canonical_status(out["status"])
    return out


def load_mock_incidents(path=MOCK_DATA_PATH):
    """The bundled dataset: seed data, and the read fallback when the API is down."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)
