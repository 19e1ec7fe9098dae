# citywatch/utils/normalize.py
"""
One display/grouping shape for incidents written under either status vocabulary.

Everything here is a pure function of its input: stored documents are never
modified, unknown values fall back to a neutral default and the raw value is
kept alongside the derived one.
"""
from ..models.incident import TYPE_ALIASES
from .geo_utils import point_lat_lng

DEFAULT_COLOR = "gray"

SEVERITY_COLORS = {
    "critical": "red",
    "high": "orange",
    "medium": "yellow",
    "low": "gray",
}

# keyed by status_key(): both vocabularies share one lower-case key space
STATUS_COLORS = {
    "reported": "gray",
    "unverified": "gray",
    "assigned": "blue",
    "verified": "blue",
    "in_progress": "yellow",
    "resolved": "green",
    "false_report": "red",
}

VERIFIED_KEYS = frozenset({"assigned", "verified"})
ACTIVE_KEYS = frozenset({"reported", "unverified", "assigned", "verified", "in_progress"})
RESOLVED_KEYS = frozenset({"resolved"})
FALSE_REPORT_KEYS = frozenset({"false_report"})


def _key(value):
    if not isinstance(value, str):
        return ""
    return value.strip().lower().replace(" ", "_").replace("-", "_")


def status_key(status):
    return _key(status)


def severity_key(severity):
    return _key(severity)


def type_key(incident_type):
    key = _key(incident_type)
    return TYPE_ALIASES.get(key, key)


def severity_color(severity):
    return SEVERITY_COLORS.get(severity_key(severity), DEFAULT_COLOR)


def status_color(status):
    return STATUS_COLORS.get(status_key(status), DEFAULT_COLOR)


def status_label(status):
    key = status_key(status)
    return key.replace("_", " ").title() if key else "Unknown"


def is_verified(status):
    return status_key(status) in VERIFIED_KEYS


def is_active(status):
    return status_key(status) in ACTIVE_KEYS


def is_resolved(status):
    return status_key(status) in RESOLVED_KEYS


def is_false_report(status):
    return status_key(status) in FALSE_REPORT_KEYS


def verification_level(score):
    """Confirmation count -> (level, color, percentage) for the detail view."""
    score = score or 0
    if score >= 10:
        return "High", "green", 100
    if score >= 5:
        return "Medium", "yellow", 70
    if score >= 2:
        return "Low", "orange", 40
    return "Unverified", "gray", 10


def _first(raw, *keys, default=None):
    for k in keys:
        v = raw.get(k)
        if v is not None:
            return v
    return default


def normalize_incident(raw):
    """
    Raw stored/API record -> record with the raw fields plus derived forms.
    normalize_incident(normalize_incident(x)) == normalize_incident(x).
    """
    out = dict(raw)

    ident = _first(raw, "_id", "id")
    out["id"] = str(ident) if ident is not None else None
    out["title"] = _first(raw, "title") or raw.get("type")

    lat, lng = point_lat_lng(raw.get("location"))
    if lat is None:
        lat, lng = raw.get("location_lat"), raw.get("location_lng")
    out["location_lat"] = lat
    out["location_lng"] = lng
    loc = raw.get("location")
    loc_address = loc.get("address") if isinstance(loc, dict) else None
    out["location_address"] = _first(raw, "address", "location_address") or loc_address

    created = _first(raw, "createdAt", "created_at")
    updated = _first(raw, "updatedAt", "updated_at")
    out["createdAt"] = out["created_at"] = created
    out["updatedAt"] = out["updated_at"] = updated

    score = _first(raw, "verificationScore", "verification_score", default=0)
    out["verificationScore"] = out["verification_score"] = score

    status = raw.get("status")
    severity = raw.get("severity")
    out["status_key"] = status_key(status)
    out["status_label"] = status_label(status)
    out["status_color"] = status_color(status)
    out["severity_key"] = severity_key(severity)
    out["severity_color"] = severity_color(severity)
    out["type_key"] = type_key(raw.get("type"))
    return out
