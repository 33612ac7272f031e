"""Storage contract for locations, routes and their selective-share rows."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from app.domain.places.models import CleanupStatus, Location, Route, Visibility

# Share argument for save_*: None keeps rows untouched, a tuple replaces them wholesale
Shares = Optional[Tuple[str, ...]]


class PlacesRepository(Protocol):
	async def insert_location(self, location: Location, shares: Tuple[str, ...] = ()) -> Location:
		...

	async def get_location(self, location_id: str) -> Optional[Location]:
		...

	async def list_locations(self, owner_id: Optional[str] = None) -> Sequence[Location]:
		...

	async def save_location(self, location: Location, *, shares: Shares = None) -> Optional[Location]:
		...

	async def delete_location(self, location_id: str) -> bool:
		...

	async def insert_route(self, route: Route, shares: Tuple[str, ...] = ()) -> Route:
		...

	async def get_route(self, route_id: str) -> Optional[Route]:
		...

	async def list_routes(self, owner_id: Optional[str] = None) -> Sequence[Route]:
		...

	async def save_route(self, route: Route, *, shares: Shares = None, replace_waypoints: bool = False) -> Optional[Route]:
		...

	async def delete_route(self, route_id: str) -> bool:
		...

	async def shares_for(self, kind: str, record_id: str) -> Sequence[str]:
		...

	async def shares_for_many(self, kind: str, record_ids: Sequence[str]) -> Dict[str, Sequence[str]]:
		...

	async def delete_public_locations_created_before(self, cutoff: datetime) -> int:
		...

	async def count_public_locations_created_before(self, cutoff: datetime) -> int:
		...

	async def purge_expired(self, now: datetime) -> Tuple[int, int]:
		...

	async def cleanup_status(self, now: datetime, cutoff: datetime) -> CleanupStatus:
		...


def _copy_location(location: Location) -> Location:
	return dataclasses.replace(location)


def _copy_route(route: Route) -> Route:
	return dataclasses.replace(route, waypoints=[dataclasses.replace(point) for point in route.waypoints])


class InMemoryPlacesStore:
	"""Process-local store used by tests and the memory backend.

	Records are copied on the way in and out so callers never alias stored state.
	"""

	def __init__(self, *, on_locations_deleted: Optional[Callable[[Sequence[str]], None]] = None) -> None:
		self._locations: Dict[str, Location] = {}
		self._routes: Dict[str, Route] = {}
		self._shares: Dict[Tuple[str, str], Set[str]] = {}
		self._lock = asyncio.Lock()
		self._on_locations_deleted = on_locations_deleted

	def _set_shares(self, kind: str, record_id: str, shares: Shares) -> None:
		if shares is None:
			return
		if shares:
			self._shares[(kind, record_id)] = set(shares)
		else:
			self._shares.pop((kind, record_id), None)

	def _drop_locations(self, ids: Sequence[str]) -> None:
		for location_id in ids:
			self._locations.pop(location_id, None)
			self._shares.pop((Location.kind, location_id), None)
		if ids and self._on_locations_deleted is not None:
			self._on_locations_deleted(list(ids))

	def _drop_routes(self, ids: Sequence[str]) -> None:
		for route_id in ids:
			self._routes.pop(route_id, None)
			self._shares.pop((Route.kind, route_id), None)

	async def insert_location(self, location: Location, shares: Tuple[str, ...] = ()) -> Location:
		async with self._lock:
			self._locations[location.id] = _copy_location(location)
			self._set_shares(Location.kind, location.id, tuple(shares))
			return _copy_location(location)

	async def get_location(self, location_id: str) -> Optional[Location]:
		location = self._locations.get(str(location_id))
		return _copy_location(location) if location else None

	async def list_locations(self, owner_id: Optional[str] = None) -> List[Location]:
		items = [
			_copy_location(location)
			for location in self._locations.values()
			if owner_id is None or location.owner_id == str(owner_id)
		]
		items.sort(key=lambda location: location.created_at, reverse=True)
		return items

	async def save_location(self, location: Location, *, shares: Shares = None) -> Optional[Location]:
		async with self._lock:
			if location.id not in self._locations:
				return None
			self._locations[location.id] = _copy_location(location)
			self._set_shares(Location.kind, location.id, shares)
			return _copy_location(location)

	async def delete_location(self, location_id: str) -> bool:
		async with self._lock:
			if str(location_id) not in self._locations:
				return False
			self._drop_locations([str(location_id)])
			return True

	async def insert_route(self, route: Route, shares: Tuple[str, ...] = ()) -> Route:
		async with self._lock:
			self._routes[route.id] = _copy_route(route)
			self._set_shares(Route.kind, route.id, tuple(shares))
			return _copy_route(route)

	async def get_route(self, route_id: str) -> Optional[Route]:
		route = self._routes.get(str(route_id))
		return _copy_route(route) if route else None

	async def list_routes(self, owner_id: Optional[str] = None) -> List[Route]:
		items = [
			_copy_route(route)
			for route in self._routes.values()
			if owner_id is None or route.owner_id == str(owner_id)
		]
		items.sort(key=lambda route: route.created_at, reverse=True)
		return items

	async def save_route(self, route: Route, *, shares: Shares = None, replace_waypoints: bool = False) -> Optional[Route]:
		async with self._lock:
			current = self._routes.get(route.id)
			if current is None:
				return None
			stored = _copy_route(route)
			if not replace_waypoints:
				stored.waypoints = [dataclasses.replace(point) for point in current.waypoints]
			self._routes[route.id] = stored
			self._set_shares(Route.kind, route.id, shares)
			return _copy_route(stored)

	async def delete_route(self, route_id: str) -> bool:
		async with self._lock:
			if str(route_id) not in self._routes:
				return False
			self._drop_routes([str(route_id)])
			return True

	async def shares_for(self, kind: str, record_id: str) -> List[str]:
		return sorted(self._shares.get((kind, str(record_id)), set()))

	async def shares_for_many(self, kind: str, record_ids: Sequence[str]) -> Dict[str, List[str]]:
		result: Dict[str, List[str]] = {}
		for record_id in record_ids:
			rows = self._shares.get((kind, str(record_id)))
			if rows:
				result[str(record_id)] = sorted(rows)
		return result

	def _sweepable(self, cutoff: datetime) -> List[str]:
		return [
			location.id
			for location in self._locations.values()
			if location.visibility is Visibility.PUBLIC and location.created_at < cutoff
		]

	async def delete_public_locations_created_before(self, cutoff: datetime) -> int:
		async with self._lock:
			doomed = self._sweepable(cutoff)
			self._drop_locations(doomed)
			return len(doomed)

	async def count_public_locations_created_before(self, cutoff: datetime) -> int:
		return len(self._sweepable(cutoff))

	async def purge_expired(self, now: datetime) -> Tuple[int, int]:
		async with self._lock:
			locations = [
				location.id
				for location in self._locations.values()
				if location.expires_at is not None and location.expires_at < now
			]
			routes = [
				route.id
				for route in self._routes.values()
				if route.expires_at is not None and route.expires_at < now
			]
			self._drop_locations(locations)
			self._drop_routes(routes)
			return len(locations), len(routes)

	async def cleanup_status(self, now: datetime, cutoff: datetime) -> CleanupStatus:
		records = [*self._locations.values(), *self._routes.values()]
		expired = sum(1 for record in records if record.expires_at is not None and record.expires_at < now)
		scheduled = sum(1 for record in records if record.expires_at is not None and record.expires_at >= now)
		public = sum(1 for location in self._locations.values() if location.visibility is Visibility.PUBLIC)
		return CleanupStatus(
			expired_records=expired,
			scheduled_records=scheduled,
			public_locations=public,
			sweep_eligible=len(self._sweepable(cutoff)),
		)
