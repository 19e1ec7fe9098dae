# citywatch/utils/pipeline.py
"""
Feed filtering, responder sorting and admin analytics over a list of
normalized incidents (see normalize.normalize_incident). All functions are
pure: they return new lists/dicts and leave their inputs untouched.
"""
import math
from datetime import datetime, timedelta

from ..models.incident import parse_datetime, utcnow
from .geo_utils import haversine_km
from .normalize import (
    is_active, is_false_report, is_resolved, is_verified,
    severity_key, type_key,
)

# confirmations needed before an unverified report counts as verified
VERIFICATION_THRESHOLD = 2

SEVERITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}
UNKNOWN_SEVERITY_RANK = 4

SORT_KEYS = ("severity", "time")

DEFAULT_FILTERS = {
    "type": "all",
    "verifiedOnly": False,
    "timeRange": "all",
    "radiusKm": "all",
}


def _as_number(value, name):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be 'all' or a number, got {value!r}")
    if math.isnan(number):
        raise ValueError(f"{name} must be 'all' or a number, got {value!r}")
    return number


def _score(incident):
    score = incident.get("verification_score", incident.get("verificationScore"))
    return score or 0


def incident_distance(incident, user_location):
    """Kilometres from the user to the incident, or None without a user location."""
    if not user_location:
        return None
    return haversine_km(
        user_location.get("lat"), user_location.get("lng"),
        incident.get("location_lat"), incident.get("location_lng"),
    )


def apply_filters(incidents, filters=None, user_location=None, now=None):
    """
    Keep the incidents matching every active filter, preserving input order.

    filters: {type, verifiedOnly, timeRange, radiusKm}; 'all' disables a filter.
    user_location: {"lat": .., "lng": ..} or None (radius is ignored without it).
    """
    f = dict(DEFAULT_FILTERS)
    f.update({k: v for k, v in (filters or {}).items() if v is not None})
    out = list(incidents)

    if f["type"] != "all":
        wanted = type_key(f["type"])
        out = [inc for inc in out if type_key(inc.get("type")) == wanted]

    if f["verifiedOnly"]:
        out = [
            inc for inc in out
            if is_verified(inc.get("status"))
            or _score(inc) > VERIFICATION_THRESHOLD
        ]

    if f["timeRange"] != "all":
        hours = _as_number(f["timeRange"], "timeRange")
        try:
            limit = (parse_datetime(now) or utcnow()) - timedelta(hours=hours)
        except OverflowError:
            # window reaches past the representable date range
            limit = datetime.min if hours > 0 else datetime.max
        kept = []
        for inc in out:
            created = parse_datetime(inc.get("createdAt") or inc.get("created_at"))
            if created is not None and created > limit:
                kept.append(inc)
        out = kept

    if f["radiusKm"] != "all" and user_location:
        radius = _as_number(f["radiusKm"], "radiusKm")
        out = [inc for inc in out if incident_distance(inc, user_location) <= radius]

    return out


def severity_rank(incident):
    return SEVERITY_RANK.get(severity_key(incident.get("severity")), UNKNOWN_SEVERITY_RANK)


def _created_ts(incident):
    created = parse_datetime(incident.get("createdAt") or incident.get("created_at"))
    return created or datetime.min


def sort_incidents(incidents, sort_by="severity"):
    """Stable sort by severity rank (critical first) or by creation time (newest first)."""
    if sort_by == "severity":
        return sorted(incidents, key=severity_rank)
    if sort_by == "time":
        return sorted(incidents, key=_created_ts, reverse=True)
    raise ValueError(f"sortBy must be one of {', '.join(SORT_KEYS)}")


def responder_queue(incidents, sort_by="severity"):
    """
    Responder dashboard: drop resolved incidents, then return
    (all open incidents, the subset already assigned to a department), both sorted.
    """
    open_items = [inc for inc in incidents if not is_resolved(inc.get("status"))]
    assigned = [inc for inc in open_items if inc.get("assignment")]
    return sort_incidents(open_items, sort_by), sort_incidents(assigned, sort_by)


def compute_analytics(incidents):
    """Admin roll-up over the full incident list."""
    total = len(incidents)
    by_type, by_severity = {}, {}
    active = resolved = false_reports = verified = 0
    resolution_minutes = []

    for inc in incidents:
        t = type_key(inc.get("type")) or "unknown"
        s = severity_key(inc.get("severity")) or "unknown"
        by_type[t] = by_type.get(t, 0) + 1
        by_severity[s] = by_severity.get(s, 0) + 1

        status = inc.get("status")
        if is_active(status):
            active += 1
        if is_verified(status):
            verified += 1
        if is_false_report(status):
            false_reports += 1
        if is_resolved(status):
            resolved += 1
            created = parse_datetime(inc.get("createdAt") or inc.get("created_at"))
            updated = parse_datetime(inc.get("updatedAt") or inc.get("updated_at"))
            if created is not None and updated is not None:
                resolution_minutes.append((updated - created).total_seconds() / 60)

    avg_resolution = sum(resolution_minutes) / len(resolution_minutes) if resolution_minutes else 0
    return {
        "totalIncidents": total,
        "activeIncidents": active,
        "resolvedIncidents": resolved,
        "falseReports": false_reports,
        "verificationRate": (verified / total) * 100 if total else 0,
        "avgResolutionMinutes": avg_resolution,
        "byType": by_type,
        "bySeverity": by_severity,
    }


def format_time_ago(value, now=None):
    created = parse_datetime(value)
    if created is None:
        return "Unknown"
    seconds = int(((parse_datetime(now) or utcnow()) - created).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
