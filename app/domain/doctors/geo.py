"""Great-circle distance helpers for doctor search"""

import math

EARTH_RADIUS_KM = 6371


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance between two coordinates in km, rounded to 2 decimals"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def classify_provider(name: str, types: list[str]) -> str:
    """hospital, doctor or clinic from a place's name and types"""
    haystack = " ".join([name or "", *(types or [])]).lower()
    if "hospital" in haystack:
        return "hospital"
    if "doctor" in haystack or "dentist" in haystack:
        return "doctor"
    return "clinic"
