# citywatch/utils/geo_utils.py
import math

EARTH_RADIUS_KM = 6371.0
# returned for missing coordinates so "within N km" checks fail
UNKNOWN_DISTANCE_KM = 1e9


def haversine_km(lat1, lon1, lat2, lon2):
    # guard
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return UNKNOWN_DISTANCE_KM
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp/2)**2 + math.cos(p1)*math.cos(p2)*math.sin(dl/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))
    return EARTH_RADIUS_KM * c


def point_lat_lng(location):
    """
    GeoJSON point {"coordinates": [lng, lat]} -> (lat, lng).
    Returns (None, None) when the point is missing or malformed.
    """
    coords = (location or {}).get("coordinates") if isinstance(location, dict) else None
    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        return None, None
    lng, lat = coords[0], coords[1]
    try:
        return float(lat), float(lng)
    except (TypeError, ValueError):
        return None, None


def format_distance(km):
    if km < 1:
        return f"{round(km * 1000)}m away"
    return f"{km:.1f}km away"
