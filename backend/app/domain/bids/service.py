"""Bid lifecycle: creation, edits, withdrawal, owner decisions and listings.

A bid is created ``pending`` with ``expires_at = created_at + 24h``. Until that
instant the bidder is anonymous to the location owner and the owner cannot decide;
from then on the owner may accept or reject it. ``expired`` is never stored, it is
the read-time label of a pending bid past its deadline.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

from app.domain.bids import policy
from app.domain.bids.exceptions import (
	BidAlreadyDecided,
	BidAlreadyPending,
	BidNotFound,
	BidNotPending,
	BidRateLimitExceeded,
	BidWindowClosed,
	NothingToUpdate,
	NotLocationOwner,
	StatusInvalid,
)
from app.domain.bids.models import (
	ANONYMITY_WINDOW,
	ANONYMOUS_BIDDER_NAME,
	MESSAGE_MAX_CHARS,
	Bid,
	BidderProfile,
	BidStatus,
)
from app.domain.bids.repo import BidRepository
from app.domain.bids.schemas import BidderOut, BidSummary, LocationBrief, MyBidSummary
from app.domain.common.exceptions import DomainError
from app.domain.common.ownership import is_owner
from app.domain.common.sentinels import UNSET
from app.domain.places.exceptions import LocationNotFound
from app.domain.places.models import Location
from app.domain.places.repo import PlacesRepository
from app.infra.clock import Clock, SystemClock
from app.infra.rate_limit import Limiter
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@contextmanager
def _rejections(operation: str) -> Iterator[None]:
	try:
		yield
	except DomainError as exc:
		obs_metrics.inc_bid_reject(operation, exc.reason)
		raise


def _parse_status_filter(value: Optional[str]) -> Optional[BidStatus]:
	if value is None or value == "":
		return None
	if isinstance(value, BidStatus):
		return value
	try:
		return BidStatus(str(value).strip().lower())
	except ValueError:
		raise StatusInvalid() from None


def summarize(bid: Bid, now: datetime, *, profile: Optional[BidderProfile] = None, mask: bool = False) -> BidSummary:
	"""Render a bid, withholding the bidder's identity while ``mask`` is set."""
	if mask:
		bidder = BidderOut(id=None, name=ANONYMOUS_BIDDER_NAME, avatar_url=None, email=None)
	else:
		bidder = BidderOut(
			id=bid.bidder_id,
			name=profile.name if profile else None,
			avatar_url=profile.avatar_url if profile else None,
			email=profile.email if profile else None,
		)
	return BidSummary(
		id=bid.id,
		location_id=bid.location_id,
		bidder_id=None if mask else bid.bidder_id,
		amount=bid.amount,
		message=bid.message,
		status=bid.effective_status(now).value,
		created_at=bid.created_at,
		expires_at=bid.expires_at,
		updated_at=bid.updated_at,
		decided_at=bid.decided_at,
		is_anonymous=mask,
		bidder=bidder,
	)


def _brief(location: Location) -> LocationBrief:
	return LocationBrief(
		id=location.id,
		name=location.name,
		lat=location.lat,
		lng=location.lng,
		owner_id=location.owner_id,
		visibility=location.visibility.value,
		accepts_bids=location.accepts_bids,
	)


class BidService:
	def __init__(
		self,
		bids: BidRepository,
		places: PlacesRepository,
		limiter: Limiter,
		clock: Clock | None = None,
		*,
		anonymity_window: timedelta = ANONYMITY_WINDOW,
		message_max_chars: int = MESSAGE_MAX_CHARS,
	) -> None:
		self._bids = bids
		self._places = places
		self._limiter = limiter
		self._clock = clock or SystemClock()
		self._anonymity_window = anonymity_window
		self._message_max_chars = message_max_chars

	async def _location_for(self, location_id: str) -> Location:
		location = await self._places.get_location(location_id)
		if location is None:
			raise LocationNotFound()
		return location

	async def _bid_for(self, bid_id: str) -> Bid:
		bid = await self._bids.get(bid_id)
		if bid is None:
			raise BidNotFound()
		return bid

	async def create_bid(
		self,
		bidder_id: str,
		location_id: str,
		amount: Any,
		message: Optional[str] = None,
	) -> BidSummary:
		with _rejections("create"):
			value = policy.validate_amount(amount)
			text = policy.normalise_message(message, limit=self._message_max_chars)
			location = await self._location_for(location_id)
			now = self._clock.now()
			policy.ensure_can_bid(location, bidder_id, now)
			if await self._bids.find_pending(location.id, bidder_id) is not None:
				raise BidAlreadyPending()
			# Quota is consumed only by requests that passed every other check
			if not await self._limiter.try_acquire(str(bidder_id)):
				obs_metrics.inc_bid_rate_limited()
				raise BidRateLimitExceeded()
			bid = Bid(
				id=str(uuid4()),
				location_id=location.id,
				bidder_id=str(bidder_id),
				amount=value,
				status=BidStatus.PENDING,
				created_at=now,
				expires_at=now + self._anonymity_window,
				message=text,
				updated_at=now,
			)
			stored = await self._bids.insert_pending(bid)
		obs_metrics.inc_bid_created()
		logger.info("bid created", extra={"bid_id": stored.id, "location_id": stored.location_id})
		return summarize(stored, now)

	async def update_bid(
		self,
		bidder_id: str,
		bid_id: str,
		*,
		amount: Any = UNSET,
		message: Any = UNSET,
	) -> BidSummary:
		with _rejections("update"):
			bid = await self._bid_for(bid_id)
			policy.ensure_bidder(bid, bidder_id)
			now = self._clock.now()
			location = await self._places.get_location(bid.location_id)
			if location is None:
				raise LocationNotFound()
			policy.ensure_editable(bid, location, now)
			changes: Dict[str, object] = {}
			if amount is not UNSET:
				changes["amount"] = policy.validate_amount(amount)
			if message is not UNSET:
				changes["message"] = policy.normalise_message(message, limit=self._message_max_chars)
			if not changes:
				raise NothingToUpdate()
			updated = await self._bids.update_pending(bid.id, changes, now=now)
			if updated is None:
				raise await self._lost_race(bid.id, now)
		return summarize(updated, now)

	async def _lost_race(self, bid_id: str, now: datetime) -> DomainError:
		current = await self._bids.get(bid_id)
		if current is None:
			return BidNotFound()
		if current.status is not BidStatus.PENDING:
			return BidNotPending()
		return BidWindowClosed()

	async def delete_bid(self, bidder_id: str, bid_id: str) -> None:
		with _rejections("delete"):
			bid = await self._bid_for(bid_id)
			policy.ensure_bidder(bid, bidder_id)
			policy.ensure_deletable(bid)
			if not await self._bids.delete_pending(bid.id):
				raise await self._lost_race(bid.id, self._clock.now())
		logger.info("bid withdrawn", extra={"bid_id": bid.id})

	async def set_bid_status(self, owner_id: str, bid_id: str, status: Any) -> BidSummary:
		with _rejections("decide"):
			target = policy.parse_decision(status)
			bid = await self._bid_for(bid_id)
			location = await self._location_for(bid.location_id)
			if not is_owner(location, owner_id):
				raise NotLocationOwner()
			now = self._clock.now()
			policy.ensure_decidable(bid, now)
			decided = await self._bids.decide(bid.id, target, now=now)
			if decided is None:
				raise BidAlreadyDecided()
		obs_metrics.inc_bid_decision(target.value)
		logger.info("bid decided", extra={"bid_id": decided.id, "status": target.value})
		profiles = await self._bids.profiles([decided.bidder_id])
		return summarize(decided, now, profile=profiles.get(decided.bidder_id))

	async def list_bids_for_location(
		self,
		owner_id: str,
		location_id: str,
		status: Optional[str] = None,
	) -> List[BidSummary]:
		wanted = _parse_status_filter(status)
		location = await self._location_for(location_id)
		if not is_owner(location, owner_id):
			raise NotLocationOwner()
		now = self._clock.now()
		bids = [
			bid
			for bid in await self._bids.list_for_location(location.id)
			if wanted is None or bid.effective_status(now) is wanted
		]
		revealed = {bid.bidder_id for bid in bids if not bid.is_masked(now)}
		profiles = await self._bids.profiles(revealed) if revealed else {}
		return [
			summarize(bid, now, profile=profiles.get(bid.bidder_id), mask=bid.is_masked(now))
			for bid in bids
		]

	async def list_my_bids(self, bidder_id: str, status: Optional[str] = None) -> List[MyBidSummary]:
		wanted = _parse_status_filter(status)
		now = self._clock.now()
		locations: Dict[str, Optional[Location]] = {}
		rows: List[MyBidSummary] = []
		for bid in await self._bids.list_for_bidder(str(bidder_id)):
			effective = bid.effective_status(now)
			if wanted is not None and effective is not wanted:
				continue
			if bid.location_id not in locations:
				locations[bid.location_id] = await self._places.get_location(bid.location_id)
			location = locations[bid.location_id]
			if location is None:
				continue
			rows.append(
				MyBidSummary(
					id=bid.id,
					location_id=bid.location_id,
					amount=bid.amount,
					message=bid.message,
					status=effective.value,
					created_at=bid.created_at,
					expires_at=bid.expires_at,
					updated_at=bid.updated_at,
					decided_at=bid.decided_at,
					location=_brief(location),
				)
			)
		return rows
