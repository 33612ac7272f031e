"""Domain-level exceptions for locations and routes."""

from __future__ import annotations

from app.domain.common.exceptions import InvalidArgument, NotFound


class LocationNotFound(NotFound):
	reason = "location_not_found"


class RouteNotFound(NotFound):
	reason = "route_not_found"


class PlaceFieldInvalid(InvalidArgument):
	"""Raised with the offending field in the reason, e.g. ``name_invalid``."""

	reason = "field_invalid"
