"""REST API surface for owner-published locations."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.errors import map_domain_error as _map_error
from app.domain import container
from app.domain.common.exceptions import DomainError
from app.domain.common.ownership import is_owner
from app.domain.common.sentinels import UNSET
from app.domain.places.models import Location
from app.domain.places.schemas import LocationCreateRequest, LocationSummary, LocationUpdateRequest
from app.domain.places.service import PlacesService
from app.infra.auth import AuthenticatedUser, get_current_user, get_optional_user

router = APIRouter(tags=["locations"])


def _service() -> PlacesService:
	return container.get_places_service()


async def _summary(service: PlacesService, location: Location, viewer_id: Optional[str]) -> LocationSummary:
	# Only the owner learns who a followers-only location was shared with
	selected = await service.selected_followers(location) if is_owner(location, viewer_id) else None
	return LocationSummary.from_model(location, selected_followers=selected)


@router.post("/locations", response_model=LocationSummary, status_code=status.HTTP_201_CREATED)
async def create_location(
	payload: LocationCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PlacesService = Depends(_service),
) -> LocationSummary:
	try:
		location = await service.create_location(
			auth_user.id,
			name=payload.name,
			lat=payload.lat,
			lng=payload.lng,
			url=payload.url,
			visibility=payload.visibility,
			expiration=payload.expiration.as_option() if payload.expiration else None,
			accepts_bids=payload.accepts_bids,
			selected_followers=payload.selected_followers,
		)
	except DomainError as exc:
		raise _map_error(exc) from None
	return await _summary(service, location, auth_user.id)


@router.get("/locations", response_model=List[LocationSummary])
async def list_locations(
	user_id: Optional[str] = Query(default=None),
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: PlacesService = Depends(_service),
) -> List[LocationSummary]:
	viewer_id = viewer.id if viewer else None
	try:
		locations = await service.list_locations(viewer_id, user_id)
	except DomainError as exc:
		raise _map_error(exc) from None
	return [await _summary(service, location, viewer_id) for location in locations]


@router.get("/locations/{location_id}", response_model=LocationSummary)
async def get_location(
	location_id: str,
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: PlacesService = Depends(_service),
) -> LocationSummary:
	viewer_id = viewer.id if viewer else None
	try:
		location = await service.get_location(viewer_id, location_id)
	except DomainError as exc:
		raise _map_error(exc) from None
	return await _summary(service, location, viewer_id)


@router.patch("/locations/{location_id}", response_model=LocationSummary)
async def update_location(
	location_id: str,
	payload: LocationUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PlacesService = Depends(_service),
) -> LocationSummary:
	fields = payload.model_fields_set

	def _field(name: str):
		return getattr(payload, name) if name in fields else UNSET

	expiration = UNSET
	if "expiration" in fields:
		expiration = payload.expiration.as_option() if payload.expiration else None
	try:
		location = await service.update_location(
			auth_user.id,
			location_id,
			name=_field("name"),
			url=_field("url"),
			visibility=_field("visibility"),
			expiration=expiration,
			accepts_bids=_field("accepts_bids"),
			selected_followers=_field("selected_followers"),
		)
	except DomainError as exc:
		raise _map_error(exc) from None
	return await _summary(service, location, auth_user.id)


@router.delete("/locations/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_location(
	location_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PlacesService = Depends(_service),
) -> Response:
	try:
		await service.delete_location(auth_user.id, location_id)
	except DomainError as exc:
		raise _map_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)
