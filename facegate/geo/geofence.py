"""Great-circle distance checks against authorized locations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

EARTH_RADIUS_METERS = 6_371_000.0


@dataclass(slots=True, frozen=True)
class LocationPoint:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float | None
    longitude: float | None

    @property
    def is_complete(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the distance in meters between two coordinates."""

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Rounding can push a just outside [0, 1] for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def is_within_range(
    point: LocationPoint,
    anchors: Iterable[LocationPoint],
    radius_meters: float,
) -> bool:
    """Return ``True`` if ``point`` lies within ``radius_meters`` of any anchor."""

    if not point.is_complete:
        return False

    for anchor in anchors:
        # Anchors with a missing coordinate are bad reference data.
        if not anchor.is_complete:
            continue
        distance = haversine_distance(
            anchor.latitude, anchor.longitude, point.latitude, point.longitude
        )
        if distance <= radius_meters:
            return True
    return False
