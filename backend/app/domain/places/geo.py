"""Route distance helpers."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from app.domain.places.models import Waypoint

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
	phi1 = math.radians(lat1)
	phi2 = math.radians(lat2)
	d_phi = math.radians(lat2 - lat1)
	d_lambda = math.radians(lng2 - lng1)
	a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
	return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def route_distance_m(waypoints: Sequence[Waypoint] | Iterable[Waypoint]) -> float:
	"""Sum of great-circle legs between consecutive waypoints."""
	points = list(waypoints)
	total = 0.0
	for prev, cur in zip(points, points[1:]):
		total += haversine_m(prev.lat, prev.lng, cur.lat, cur.lng)
	return total
