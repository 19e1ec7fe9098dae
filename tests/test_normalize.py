import pytest

from citywatch.utils.normalize import (
    is_active, is_verified, normalize_incident, severity_color, status_color,
    status_key, status_label, type_key, verification_level,
)

RAW = {
    "_id": "69512fcf635039531461f361",
    "title": "",
    "type": "crime",
    "description": "Break-in",
    "location": {"type": "Point", "coordinates": [72.8227334, 19.4126475]},
    "address": "Station Road",
    "severity": "HIGH",
    "status": "VERIFIED",
    "reportedBy": "anonymous",
    "createdAt": "2025-12-28T13:25:35.780Z",
    "updatedAt": "2025-12-28T14:48:24.773Z",
}


@pytest.mark.parametrize("severity,color", [
    ("critical", "red"), ("CRITICAL", "red"), ("high", "orange"),
    ("Medium", "yellow"), ("low", "gray"),
])
def test_severity_colors(severity, color):
    assert severity_color(severity) == color


@pytest.mark.parametrize("status,color", [
    ("reported", "gray"), ("UNVERIFIED", "gray"),
    ("assigned", "blue"), ("VERIFIED", "blue"),
    ("in_progress", "yellow"), ("IN_PROGRESS", "yellow"),
    ("resolved", "green"), ("RESOLVED", "green"),
    ("false_report", "red"), ("FALSE_REPORT", "red"),
])
def test_status_colors(status, color):
    assert status_color(status) == color


@pytest.mark.parametrize("value", ["balloon", "", None, 42, "  "])
def test_unknown_values_fall_back_to_gray(value):
    assert severity_color(value) == "gray"
    assert status_color(value) == "gray"


def test_both_vocabularies_share_one_axis():
    assert status_key("IN_PROGRESS") == status_key("in_progress") == "in_progress"
    assert is_verified("VERIFIED") and is_verified("assigned")
    assert is_active("UNVERIFIED") and not is_active("resolved")
    assert status_label("FALSE_REPORT") == "False Report"
    assert status_label(None) == "Unknown"


def test_type_aliases():
    assert type_key("crime") == "security"
    assert type_key("Disaster") == "natural_disaster"
    assert type_key("infrastructure") == "accident"
    assert type_key("fire") == "fire"


def test_normalize_derives_fields_without_touching_input():
    before = dict(RAW)
    out = normalize_incident(RAW)

    assert RAW == before
    assert out["id"] == RAW["_id"]
    assert out["title"] == "crime"
    assert out["type"] == "crime"
    assert out["type_key"] == "security"
    assert out["location_lat"] == 19.4126475
    assert out["location_lng"] == 72.8227334
    assert out["location_address"] == "Station Road"
    assert out["severity"] == "HIGH"
    assert out["severity_key"] == "high"
    assert out["severity_color"] == "orange"
    assert out["status"] == "VERIFIED"
    assert out["status_color"] == "blue"
    assert out["created_at"] == RAW["createdAt"]
    assert out["verification_score"] == 0


def test_normalize_keeps_unknown_raw_values():
    out = normalize_incident({"status": "ON_HOLD", "severity": "apocalyptic"})
    assert out["status"] == "ON_HOLD"
    assert out["status_color"] == "gray"
    assert out["severity_color"] == "gray"
    assert out["location_lat"] is None


@pytest.mark.parametrize("raw", [
    RAW,
    {"id": "abc", "type": "fire", "created_at": "2025-01-01T00:00:00Z", "verification_score": 3},
    {"status": "weird", "location_lat": 1.0, "location_lng": 2.0, "location_address": "X"},
    {},
])
def test_normalize_is_idempotent(raw):
    once = normalize_incident(raw)
    assert normalize_incident(once) == once


@pytest.mark.parametrize("score,level", [(0, "Unverified"), (2, "Low"), (5, "Medium"), (12, "High"), (None, "Unverified")])
def test_verification_level(score, level):
    assert verification_level(score)[0] == level
