"""Domain models for bids on public locations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional


class BidStatus(str, Enum):
	"""Stored statuses plus the read-time ``expired`` label."""

	PENDING = "pending"
	ACCEPTED = "accepted"
	REJECTED = "rejected"
	EXPIRED = "expired"


DECISION_STATUSES = frozenset({BidStatus.ACCEPTED, BidStatus.REJECTED})

ANONYMITY_WINDOW = timedelta(hours=24)
MESSAGE_MAX_CHARS = 500
ANONYMOUS_BIDDER_NAME = "Anonymous Bidder"


@dataclass(slots=True)
class Bid:
	"""A bidder's declared offer on a location.

	``expires_at`` closes the anonymity window: until then the bidder stays masked
	from the owner and the owner cannot decide. It is fixed at creation.
	"""

	id: str
	location_id: str
	bidder_id: str
	amount: Decimal
	status: BidStatus
	created_at: datetime
	expires_at: datetime
	message: Optional[str] = None
	updated_at: Optional[datetime] = None
	decided_at: Optional[datetime] = None

	def is_masked(self, now: datetime) -> bool:
		return now < self.expires_at

	def effective_status(self, now: datetime) -> BidStatus:
		return effective_status(self, now)

	@classmethod
	def from_record(cls, record: dict) -> "Bid":
		return cls(
			id=str(record["id"]),
			location_id=str(record["location_id"]),
			bidder_id=str(record["bidder_id"]),
			amount=Decimal(str(record["amount"])),
			status=BidStatus(record["status"]),
			created_at=record["created_at"],
			expires_at=record["expires_at"],
			message=record.get("message"),
			updated_at=record.get("updated_at"),
			decided_at=record.get("decided_at"),
		)


def effective_status(bid: Bid, now: datetime) -> BidStatus:
	if bid.status is BidStatus.PENDING and now >= bid.expires_at:
		return BidStatus.EXPIRED
	return bid.status


@dataclass(slots=True)
class BidderProfile:
	id: str
	name: Optional[str] = None
	avatar_url: Optional[str] = None
	email: Optional[str] = None

	@classmethod
	def from_record(cls, record: dict) -> "BidderProfile":
		return cls(
			id=str(record["id"]),
			name=record.get("name"),
			avatar_url=record.get("avatar_url"),
			email=record.get("email"),
		)
