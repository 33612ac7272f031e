"""Pydantic schemas for bids."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

BidStatusLiteral = Literal["pending", "accepted", "rejected", "expired"]


class BidCreateRequest(BaseModel):
	location_id: str = Field(..., description="Public, bid-accepting location")
	amount: Decimal = Field(..., description="Declared offer, must be positive")
	message: Optional[str] = Field(default=None, description="Optional note to the owner")


class BidUpdateRequest(BaseModel):
	"""Bidder edit (amount/message) or, when ``status`` is present, an owner decision."""

	amount: Optional[Decimal] = None
	message: Optional[str] = None
	status: Optional[str] = None


class BidderOut(BaseModel):
	id: Optional[str] = None
	name: Optional[str] = None
	avatar_url: Optional[str] = None
	email: Optional[str] = None


class BidSummary(BaseModel):
	id: str
	location_id: str
	bidder_id: Optional[str] = None
	amount: Decimal
	message: Optional[str] = None
	status: BidStatusLiteral
	created_at: datetime
	expires_at: datetime
	updated_at: Optional[datetime] = None
	decided_at: Optional[datetime] = None
	is_anonymous: bool = False
	bidder: Optional[BidderOut] = None


class LocationBrief(BaseModel):
	id: str
	name: str
	lat: float
	lng: float
	owner_id: str
	visibility: Literal["public", "followers", "private"]
	accepts_bids: bool


class MyBidSummary(BaseModel):
	id: str
	location_id: str
	amount: Decimal
	message: Optional[str] = None
	status: BidStatusLiteral
	created_at: datetime
	expires_at: datetime
	updated_at: Optional[datetime] = None
	decided_at: Optional[datetime] = None
	location: LocationBrief
