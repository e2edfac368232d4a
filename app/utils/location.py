# app/utils/location.py
"""
Helpers for the JSON-encoded location/address strings stored on alerts and
focal persons. Two shapes exist in the wild and both must be accepted:

    {"lat": 14.59, "lng": 120.98, "address": "Block 1, Lot 2"}
    {"address": "Block 1, Lot 2", "coordinates": "120.98,14.59"}   # lng,lat
"""

import json
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class Location:
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def coordinates(self) -> Optional[str]:
        """Map-view form, "lng,lat"."""
        if self.lat is None or self.lng is None:
            return None
        return f"{self.lng},{self.lat}"

    def to_dict(self) -> dict:
        return {"address": self.address, "lat": self.lat, "lng": self.lng,
                "coordinates": self.coordinates}


def safe_parse_json(raw: Any) -> Optional[dict]:
    """Parse a JSON object string safely. Returns None on error or non-object."""
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, (str, bytes)):
        return None
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_location(raw: Any) -> Location:
    """
    Normalise either stored shape into a Location.
    A string that isn't JSON is treated as a bare address.
    """
    if raw is None or raw == "":
        return Location()

    data = safe_parse_json(raw)
    if data is None:
        return Location(address=str(raw))

    loc = Location(address=data.get("address"))
    if "lat" in data or "lng" in data:
        loc.lat = _to_float(data.get("lat"))
        loc.lng = _to_float(data.get("lng"))
    elif data.get("coordinates"):
        parts = str(data["coordinates"]).split(",")
        if len(parts) == 2:
            loc.lng = _to_float(parts[0].strip())
            loc.lat = _to_float(parts[1].strip())
    return loc


def encode_location(value: Any) -> Optional[str]:
    """Store whatever the terminal sent as a JSON string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)
