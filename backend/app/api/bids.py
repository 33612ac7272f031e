"""REST API surface for bids on public locations."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.errors import map_domain_error as _map_error
from app.domain import container
from app.domain.bids.schemas import BidCreateRequest, BidSummary, BidUpdateRequest, MyBidSummary
from app.domain.bids.service import BidService
from app.domain.common.exceptions import DomainError
from app.domain.common.sentinels import UNSET
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["bids"])


def _service() -> BidService:
	return container.get_bid_service()


@router.post("/bids", response_model=BidSummary, status_code=status.HTTP_201_CREATED)
async def create_bid(
	payload: BidCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BidService = Depends(_service),
) -> BidSummary:
	try:
		return await service.create_bid(auth_user.id, payload.location_id, payload.amount, payload.message)
	except DomainError as exc:
		raise _map_error(exc) from None


@router.patch("/bids/{bid_id}", response_model=BidSummary)
async def update_bid(
	bid_id: str,
	payload: BidUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BidService = Depends(_service),
) -> BidSummary:
	fields = payload.model_fields_set
	try:
		if "status" in fields and payload.status is not None:
			return await service.set_bid_status(auth_user.id, bid_id, payload.status)
		return await service.update_bid(
			auth_user.id,
			bid_id,
			amount=payload.amount if "amount" in fields else UNSET,
			message=payload.message if "message" in fields else UNSET,
		)
	except DomainError as exc:
		raise _map_error(exc) from None


@router.delete("/bids/{bid_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bid(
	bid_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BidService = Depends(_service),
) -> Response:
	try:
		await service.delete_bid(auth_user.id, bid_id)
	except DomainError as exc:
		raise _map_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/bids/location/{location_id}", response_model=List[BidSummary])
async def list_location_bids(
	location_id: str,
	status_filter: Optional[str] = Query(default=None, alias="status"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BidService = Depends(_service),
) -> List[BidSummary]:
	try:
		return await service.list_bids_for_location(auth_user.id, location_id, status_filter)
	except DomainError as exc:
		raise _map_error(exc) from None


@router.get("/bids/mine", response_model=List[MyBidSummary])
async def list_my_bids(
	status_filter: Optional[str] = Query(default=None, alias="status"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BidService = Depends(_service),
) -> List[MyBidSummary]:
	try:
		return await service.list_my_bids(auth_user.id, status_filter)
	except DomainError as exc:
		raise _map_error(exc) from None
