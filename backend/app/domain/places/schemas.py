"""Pydantic schemas for locations, routes and expiry previews."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.domain.places.models import Location, Route


class ExpirationPayload(BaseModel):
	type: str = Field(..., description="never, 24h or custom")
	hours: Optional[float] = Field(default=None, description="Hour count for custom expirations")

	def as_option(self) -> dict:
		return {"type": self.type, "hours": self.hours}


class LocationCreateRequest(BaseModel):
	name: str
	lat: float
	lng: float
	url: Optional[str] = None
	visibility: str = "private"
	expiration: Optional[ExpirationPayload] = None
	accepts_bids: bool = False
	selected_followers: Optional[List[str]] = Field(
		default=None,
		description="Followers allowed to see a followers-only location; empty means all followers",
	)


class LocationUpdateRequest(BaseModel):
	"""Partial update; only fields present in the body are applied."""

	name: Optional[str] = None
	url: Optional[str] = None
	visibility: Optional[str] = None
	expiration: Optional[ExpirationPayload] = None
	accepts_bids: Optional[bool] = None
	selected_followers: Optional[List[str]] = None


class LocationSummary(BaseModel):
	id: str
	owner_id: str
	name: str
	lat: float
	lng: float
	url: Optional[str] = None
	visibility: Literal["public", "followers", "private"]
	accepts_bids: bool
	created_at: datetime
	expires_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
	selected_followers: Optional[List[str]] = None

	@classmethod
	def from_model(cls, location: Location, *, selected_followers: Optional[List[str]] = None) -> "LocationSummary":
		return cls(
			id=location.id,
			owner_id=location.owner_id,
			name=location.name,
			lat=location.lat,
			lng=location.lng,
			url=location.url,
			visibility=location.visibility.value,
			accepts_bids=location.accepts_bids,
			created_at=location.created_at,
			expires_at=location.expires_at,
			updated_at=location.updated_at,
			selected_followers=selected_followers,
		)


class WaypointPayload(BaseModel):
	lat: float
	lng: float
	name: Optional[str] = None


class WaypointOut(WaypointPayload):
	order_index: int


class RouteCreateRequest(BaseModel):
	name: str
	waypoints: List[WaypointPayload]
	description: Optional[str] = None
	url: Optional[str] = None
	visibility: str = "private"
	expiration: Optional[ExpirationPayload] = None
	estimated_duration_s: Optional[int] = None
	selected_followers: Optional[List[str]] = None


class RouteUpdateRequest(BaseModel):
	name: Optional[str] = None
	waypoints: Optional[List[WaypointPayload]] = None
	description: Optional[str] = None
	url: Optional[str] = None
	visibility: Optional[str] = None
	expiration: Optional[ExpirationPayload] = None
	estimated_duration_s: Optional[int] = None
	selected_followers: Optional[List[str]] = None


class RouteSummary(BaseModel):
	id: str
	owner_id: str
	name: str
	description: Optional[str] = None
	url: Optional[str] = None
	visibility: Literal["public", "followers", "private"]
	waypoints: List[WaypointOut]
	distance_m: float
	estimated_duration_s: Optional[int] = None
	created_at: datetime
	expires_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
	selected_followers: Optional[List[str]] = None

	@classmethod
	def from_model(cls, route: Route, *, selected_followers: Optional[List[str]] = None) -> "RouteSummary":
		return cls(
			id=route.id,
			owner_id=route.owner_id,
			name=route.name,
			description=route.description,
			url=route.url,
			visibility=route.visibility.value,
			waypoints=[
				WaypointOut(lat=point.lat, lng=point.lng, name=point.name, order_index=point.order_index)
				for point in route.waypoints
			],
			distance_m=round(route.distance_m, 2),
			estimated_duration_s=route.estimated_duration_s,
			created_at=route.created_at,
			expires_at=route.expires_at,
			updated_at=route.updated_at,
			selected_followers=selected_followers,
		)


class ExpiryPreviewResponse(BaseModel):
	type: str
	hours: Optional[float] = None
	expires_at: Optional[datetime] = None
