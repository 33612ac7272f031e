"""Owner CRUD and visibility-checked reads for locations and routes."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from uuid import uuid4

from app.domain.common.ownership import require_owner
from app.domain.common.sentinels import UNSET
from app.domain.follows.graph import FollowGraph
from app.domain.places.exceptions import LocationNotFound, PlaceFieldInvalid, RouteNotFound
from app.domain.places.expiry import compute_expiry
from app.domain.places.geo import route_distance_m
from app.domain.places.models import (
	DESCRIPTION_MAX_CHARS,
	MIN_WAYPOINTS,
	NAME_MAX_CHARS,
	URL_MAX_CHARS,
	Location,
	Route,
	Visibility,
	Waypoint,
	normalise_followers,
)
from app.domain.places.repo import PlacesRepository, Shares
from app.domain.places.visibility import VisibilityResolver
from app.infra.clock import Clock, SystemClock
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _clean_name(value: Any) -> str:
	name = str(value or "").strip()
	if not name or len(name) > NAME_MAX_CHARS:
		raise PlaceFieldInvalid("name_invalid")
	return name


def _clean_optional_text(value: Any, *, limit: int, reason: str) -> Optional[str]:
	if value is None:
		return None
	text = str(value).strip()
	if not text:
		return None
	if len(text) > limit:
		raise PlaceFieldInvalid(reason)
	return text


def _check_coordinates(lat: Any, lng: Any) -> Tuple[float, float]:
	try:
		lat_f = float(lat)
		lng_f = float(lng)
	except (TypeError, ValueError):
		raise PlaceFieldInvalid("coordinates_invalid") from None
	if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
		raise PlaceFieldInvalid("coordinates_invalid")
	if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
		raise PlaceFieldInvalid("coordinates_invalid")
	return lat_f, lng_f


def _parse_visibility(value: Any) -> Visibility:
	if isinstance(value, Visibility):
		return value
	try:
		return Visibility(str(value).strip().lower())
	except ValueError:
		raise PlaceFieldInvalid("visibility_invalid") from None


def _build_waypoints(raw: Iterable[Any]) -> List[Waypoint]:
	points: List[Waypoint] = []
	for index, item in enumerate(raw or ()):
		if isinstance(item, dict):
			lat, lng, name = item.get("lat"), item.get("lng"), item.get("name")
		else:
			lat, lng, name = getattr(item, "lat", None), getattr(item, "lng", None), getattr(item, "name", None)
		lat_f, lng_f = _check_coordinates(lat, lng)
		label = _clean_optional_text(name, limit=NAME_MAX_CHARS, reason="waypoint_name_invalid")
		points.append(Waypoint(lat=lat_f, lng=lng_f, name=label, order_index=index))
	if len(points) < MIN_WAYPOINTS:
		raise PlaceFieldInvalid("waypoints_invalid")
	return points


def _check_duration(value: Any) -> Optional[int]:
	if value is None:
		return None
	if isinstance(value, bool) or not isinstance(value, int) or value < 0:
		raise PlaceFieldInvalid("duration_invalid")
	return value


def _share_rows(owner_id: str, visibility: Visibility, selected: Any) -> Shares:
	"""Share rows to write: cleared off followers visibility, replaced when supplied, else kept."""
	if visibility is not Visibility.FOLLOWERS:
		return ()
	if selected is UNSET:
		return None
	return normalise_followers(owner_id, selected or ())


class PlacesService:
	def __init__(
		self,
		places: PlacesRepository,
		follows: FollowGraph,
		clock: Clock | None = None,
	) -> None:
		self._places = places
		self._clock = clock or SystemClock()
		self._visibility = VisibilityResolver(follows, places, self._clock)

	@property
	def visibility(self) -> VisibilityResolver:
		return self._visibility

	async def selected_followers(self, record) -> List[str]:
		return list(await self._places.shares_for(record.kind, record.id))

	# Locations

	async def create_location(
		self,
		owner_id: str,
		*,
		name: str,
		lat: float,
		lng: float,
		visibility: Any = Visibility.PRIVATE,
		url: Optional[str] = None,
		expiration: Any = None,
		accepts_bids: bool = False,
		selected_followers: Optional[Sequence[str]] = None,
	) -> Location:
		clean_name = _clean_name(name)
		lat_f, lng_f = _check_coordinates(lat, lng)
		clean_url = _clean_optional_text(url, limit=URL_MAX_CHARS, reason="url_invalid")
		vis = _parse_visibility(visibility)
		now = self._clock.now()
		expires_at = compute_expiry(expiration, now)
		shares = _share_rows(owner_id, vis, selected_followers or ())
		location = Location(
			id=str(uuid4()),
			owner_id=str(owner_id),
			name=clean_name,
			lat=lat_f,
			lng=lng_f,
			visibility=vis,
			accepts_bids=bool(accepts_bids) and vis is Visibility.PUBLIC,
			created_at=now,
			expires_at=expires_at,
			url=clean_url,
			updated_at=now,
		)
		stored = await self._places.insert_location(location, shares or ())
		obs_metrics.inc_place_write("location", "create")
		logger.info(
			"location created",
			extra={"location_id": stored.id, "visibility": vis.value, "accepts_bids": stored.accepts_bids},
		)
		return stored

	async def update_location(
		self,
		owner_id: str,
		location_id: str,
		*,
		name: Any = UNSET,
		url: Any = UNSET,
		visibility: Any = UNSET,
		expiration: Any = UNSET,
		accepts_bids: Any = UNSET,
		selected_followers: Any = UNSET,
	) -> Location:
		current = await self._places.get_location(location_id)
		if current is None:
			raise LocationNotFound()
		require_owner(current, owner_id)

		now = self._clock.now()
		updated = current
		if name is not UNSET:
			updated.name = _clean_name(name)
		if url is not UNSET:
			updated.url = _clean_optional_text(url, limit=URL_MAX_CHARS, reason="url_invalid")
		if visibility is not UNSET:
			updated.visibility = _parse_visibility(visibility)
		if expiration is not UNSET:
			updated.expires_at = compute_expiry(expiration, now)
		if accepts_bids is not UNSET:
			updated.accepts_bids = bool(accepts_bids)
		if updated.visibility is not Visibility.PUBLIC:
			updated.accepts_bids = False
		updated.updated_at = now
		shares = _share_rows(current.owner_id, updated.visibility, selected_followers)

		stored = await self._places.save_location(updated, shares=shares)
		if stored is None:
			raise LocationNotFound()
		obs_metrics.inc_place_write("location", "update")
		return stored

	async def delete_location(self, owner_id: str, location_id: str) -> None:
		current = await self._places.get_location(location_id)
		if current is None:
			raise LocationNotFound()
		require_owner(current, owner_id)
		if not await self._places.delete_location(location_id):
			raise LocationNotFound()
		obs_metrics.inc_place_write("location", "delete")
		logger.info("location deleted", extra={"location_id": str(location_id)})

	async def get_location(self, viewer_id: Optional[str], location_id: str) -> Location:
		location = await self._places.get_location(location_id)
		if location is None or not await self._visibility.can_view(viewer_id, location):
			raise LocationNotFound()
		return location

	async def list_locations(self, viewer_id: Optional[str], owner_id: Optional[str] = None) -> List[Location]:
		records = await self._places.list_locations(owner_id)
		return await self._visibility.filter_visible(viewer_id, list(records))

	# Routes

	async def create_route(
		self,
		owner_id: str,
		*,
		name: str,
		waypoints: Sequence[Any],
		visibility: Any = Visibility.PRIVATE,
		description: Optional[str] = None,
		url: Optional[str] = None,
		expiration: Any = None,
		estimated_duration_s: Optional[int] = None,
		selected_followers: Optional[Sequence[str]] = None,
	) -> Route:
		clean_name = _clean_name(name)
		points = _build_waypoints(waypoints)
		vis = _parse_visibility(visibility)
		now = self._clock.now()
		route = Route(
			id=str(uuid4()),
			owner_id=str(owner_id),
			name=clean_name,
			visibility=vis,
			created_at=now,
			waypoints=points,
			distance_m=route_distance_m(points),
			expires_at=compute_expiry(expiration, now),
			description=_clean_optional_text(description, limit=DESCRIPTION_MAX_CHARS, reason="description_invalid"),
			url=_clean_optional_text(url, limit=URL_MAX_CHARS, reason="url_invalid"),
			estimated_duration_s=_check_duration(estimated_duration_s),
			updated_at=now,
		)
		shares = _share_rows(owner_id, vis, selected_followers or ())
		stored = await self._places.insert_route(route, shares or ())
		obs_metrics.inc_place_write("route", "create")
		logger.info(
			"route created",
			extra={"route_id": stored.id, "visibility": vis.value, "waypoint_count": len(points)},
		)
		return stored

	async def update_route(
		self,
		owner_id: str,
		route_id: str,
		*,
		name: Any = UNSET,
		waypoints: Any = UNSET,
		description: Any = UNSET,
		url: Any = UNSET,
		visibility: Any = UNSET,
		expiration: Any = UNSET,
		estimated_duration_s: Any = UNSET,
		selected_followers: Any = UNSET,
	) -> Route:
		current = await self._places.get_route(route_id)
		if current is None:
			raise RouteNotFound()
		require_owner(current, owner_id)

		now = self._clock.now()
		updated = current
		replace_waypoints = waypoints is not UNSET
		if name is not UNSET:
			updated.name = _clean_name(name)
		if replace_waypoints:
			updated.waypoints = _build_waypoints(waypoints)
			updated.distance_m = route_distance_m(updated.waypoints)
		if description is not UNSET:
			updated.description = _clean_optional_text(
				description, limit=DESCRIPTION_MAX_CHARS, reason="description_invalid"
			)
		if url is not UNSET:
			updated.url = _clean_optional_text(url, limit=URL_MAX_CHARS, reason="url_invalid")
		if visibility is not UNSET:
			updated.visibility = _parse_visibility(visibility)
		if expiration is not UNSET:
			updated.expires_at = compute_expiry(expiration, now)
		if estimated_duration_s is not UNSET:
			updated.estimated_duration_s = _check_duration(estimated_duration_s)
		updated.updated_at = now
		shares = _share_rows(current.owner_id, updated.visibility, selected_followers)

		stored = await self._places.save_route(updated, shares=shares, replace_waypoints=replace_waypoints)
		if stored is None:
			raise RouteNotFound()
		obs_metrics.inc_place_write("route", "update")
		return stored

	async def delete_route(self, owner_id: str, route_id: str) -> None:
		current = await self._places.get_route(route_id)
		if current is None:
			raise RouteNotFound()
		require_owner(current, owner_id)
		if not await self._places.delete_route(route_id):
			raise RouteNotFound()
		obs_metrics.inc_place_write("route", "delete")

	async def get_route(self, viewer_id: Optional[str], route_id: str) -> Route:
		route = await self._places.get_route(route_id)
		if route is None or not await self._visibility.can_view(viewer_id, route):
			raise RouteNotFound()
		return route

	async def list_routes(self, viewer_id: Optional[str], owner_id: Optional[str] = None) -> List[Route]:
		records = await self._places.list_routes(owner_id)
		return await self._visibility.filter_visible(viewer_id, list(records))
