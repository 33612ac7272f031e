"""Validation and guard checks for bids."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from app.domain.bids.exceptions import (
	AmountInvalid,
	AnonymityWindowOpen,
	BidAlreadyDecided,
	BidNotPending,
	BidWindowClosed,
	LocationExpired,
	LocationNotEligible,
	MessageTooLong,
	NotBidder,
	OwnLocationBid,
	StatusInvalid,
)
from app.domain.bids.models import DECISION_STATUSES, MESSAGE_MAX_CHARS, Bid, BidStatus
from app.domain.common.ownership import is_owner
from app.domain.places.expiry import is_expired
from app.domain.places.models import Location, Visibility


def validate_amount(value: Any) -> Decimal:
	if value is None or isinstance(value, bool):
		raise AmountInvalid()
	try:
		amount = value if isinstance(value, Decimal) else Decimal(str(value))
	except (InvalidOperation, ValueError):
		raise AmountInvalid() from None
	if not amount.is_finite() or amount <= 0:
		raise AmountInvalid()
	return amount


def normalise_message(value: Any, *, limit: int = MESSAGE_MAX_CHARS) -> Optional[str]:
	"""Empty messages are stored as null; length is counted in characters."""
	if value is None:
		return None
	text = str(value)
	if not text:
		return None
	if len(text) > limit:
		raise MessageTooLong()
	return text


def parse_decision(value: Any) -> BidStatus:
	try:
		status = value if isinstance(value, BidStatus) else BidStatus(str(value).strip().lower())
	except ValueError:
		raise StatusInvalid() from None
	if status not in DECISION_STATUSES:
		raise StatusInvalid()
	return status


def ensure_can_bid(location: Location, bidder_id: str, now: datetime) -> None:
	# Self-bidding is an authorization failure, checked ahead of eligibility
	if is_owner(location, bidder_id):
		raise OwnLocationBid()
	if location.visibility is not Visibility.PUBLIC or not location.accepts_bids:
		raise LocationNotEligible()
	if is_expired(location, now):
		raise LocationNotEligible()


def ensure_bidder(bid: Bid, actor_id: str) -> None:
	if str(bid.bidder_id) != str(actor_id):
		raise NotBidder()


def ensure_editable(bid: Bid, location: Optional[Location], now: datetime) -> None:
	if bid.status is not BidStatus.PENDING:
		raise BidNotPending()
	if now >= bid.expires_at:
		raise BidWindowClosed()
	if location is not None and is_expired(location, now):
		raise LocationExpired()


def ensure_deletable(bid: Bid) -> None:
	# The anonymity deadline is not consulted here; a bidder may withdraw a stale pending bid
	if bid.status is not BidStatus.PENDING:
		raise BidNotPending()


def ensure_decidable(bid: Bid, now: datetime) -> None:
	if bid.status is not BidStatus.PENDING:
		raise BidAlreadyDecided()
	if now < bid.expires_at:
		raise AnonymityWindowOpen()
