"""REST API surface for saved routes and expiry previews."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.errors import map_domain_error as _map_error
from app.domain import container
from app.domain.common.exceptions import DomainError
from app.domain.common.ownership import is_owner
from app.domain.places.expiry import compute_expiry
from app.domain.places.models import Route
from app.domain.places.schemas import (
	ExpirationPayload,
	ExpiryPreviewResponse,
	RouteCreateRequest,
	RouteSummary,
	RouteUpdateRequest,
)
from app.domain.places.service import PlacesService
from app.infra.auth import AuthenticatedUser, get_current_user, get_optional_user

router = APIRouter(tags=["routes"])


def _service() -> PlacesService:
	return container.get_places_service()


async def _summary(service: PlacesService, route: Route, viewer_id: Optional[str]) -> RouteSummary:
	selected = await service.selected_followers(route) if is_owner(route, viewer_id) else None
	return RouteSummary.from_model(route, selected_followers=selected)


@router.post("/routes", response_model=RouteSummary, status_code=status.HTTP_201_CREATED)
async def create_route(
	payload: RouteCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PlacesService = Depends(_service),
) -> RouteSummary:
	try:
		route = await service.create_route(
			auth_user.id,
			name=payload.name,
			waypoints=payload.waypoints,
			description=payload.description,
			url=payload.url,
			visibility=payload.visibility,
			expiration=payload.expiration.as_option() if payload.expiration else None,
			estimated_duration_s=payload.estimated_duration_s,
			selected_followers=payload.selected_followers,
		)
	except DomainError as exc:
		raise _map_error(exc) from None
	return await _summary(service, route, auth_user.id)


@router.get("/routes", response_model=List[RouteSummary])
async def list_routes(
	user_id: Optional[str] = Query(default=None),
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: PlacesService = Depends(_service),
) -> List[RouteSummary]:
	viewer_id = viewer.id if viewer else None
	routes = await service.list_routes(viewer_id, user_id)
	return [await _summary(service, route, viewer_id) for route in routes]


@router.get("/routes/{route_id}", response_model=RouteSummary)
async def get_route(
	route_id: str,
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: PlacesService = Depends(_service),
) -> RouteSummary:
	viewer_id = viewer.id if viewer else None
	try:
		route = await service.get_route(viewer_id, route_id)
	except DomainError as exc:
		raise _map_error(exc) from None
	return await _summary(service, route, viewer_id)


@router.patch("/routes/{route_id}", response_model=RouteSummary)
async def update_route(
	route_id: str,
	payload: RouteUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PlacesService = Depends(_service),
) -> RouteSummary:
	fields = payload.model_fields_set
	changes = {
		name: getattr(payload, name)
		for name in ("name", "waypoints", "description", "url", "visibility", "estimated_duration_s", "selected_followers")
		if name in fields
	}
	if "expiration" in fields:
		changes["expiration"] = payload.expiration.as_option() if payload.expiration else None
	try:
		route = await service.update_route(auth_user.id, route_id, **changes)
	except DomainError as exc:
		raise _map_error(exc) from None
	return await _summary(service, route, auth_user.id)


@router.delete("/routes/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(
	route_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PlacesService = Depends(_service),
) -> Response:
	try:
		await service.delete_route(auth_user.id, route_id)
	except DomainError as exc:
		raise _map_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/expiry/preview", response_model=ExpiryPreviewResponse)
async def preview_expiry(payload: ExpirationPayload) -> ExpiryPreviewResponse:
	try:
		expires_at = compute_expiry(payload.as_option(), container.get_clock().now())
	except DomainError as exc:
		raise _map_error(exc) from None
	return ExpiryPreviewResponse(type=payload.type, hours=payload.hours, expires_at=expires_at)
