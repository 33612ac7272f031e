"""Storage contract for bids plus the in-memory implementation."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from app.domain.bids.exceptions import BidAlreadyPending
from app.domain.bids.models import Bid, BidderProfile, BidStatus


class BidRepository(Protocol):
	async def insert_pending(self, bid: Bid) -> Bid:
		"""Insert a pending bid; raises BidAlreadyPending when the pair already has one."""
		...

	async def find_pending(self, location_id: str, bidder_id: str) -> Optional[Bid]:
		...

	async def get(self, bid_id: str) -> Optional[Bid]:
		...

	async def update_pending(self, bid_id: str, changes: Mapping[str, object], *, now: datetime) -> Optional[Bid]:
		"""Apply ``changes`` only while the bid is pending and ``expires_at > now``."""
		...

	async def delete_pending(self, bid_id: str) -> bool:
		...

	async def decide(self, bid_id: str, status: BidStatus, *, now: datetime) -> Optional[Bid]:
		"""Move a pending bid to a terminal status; None when it was no longer pending."""
		...

	async def list_for_location(self, location_id: str) -> Sequence[Bid]:
		...

	async def list_for_bidder(self, bidder_id: str) -> Sequence[Bid]:
		...

	async def profiles(self, user_ids: Iterable[str]) -> Dict[str, BidderProfile]:
		...


def _copy(bid: Bid) -> Bid:
	return dataclasses.replace(bid)


class InMemoryBidStore:
	"""Lock-guarded bid table; the check-and-insert is atomic under the lock."""

	def __init__(self) -> None:
		self._bids: Dict[str, Bid] = {}
		self._profiles: Dict[str, BidderProfile] = {}
		self._lock = asyncio.Lock()

	def put_profile(self, profile: BidderProfile) -> None:
		self._profiles[str(profile.id)] = profile

	def drop_for_locations(self, location_ids: Sequence[str]) -> None:
		doomed = set(location_ids)
		for bid_id in [bid.id for bid in self._bids.values() if bid.location_id in doomed]:
			del self._bids[bid_id]

	def _pending_for(self, location_id: str, bidder_id: str) -> Optional[Bid]:
		for bid in self._bids.values():
			if (
				bid.location_id == str(location_id)
				and bid.bidder_id == str(bidder_id)
				and bid.status is BidStatus.PENDING
			):
				return bid
		return None

	async def insert_pending(self, bid: Bid) -> Bid:
		async with self._lock:
			if self._pending_for(bid.location_id, bid.bidder_id) is not None:
				raise BidAlreadyPending()
			self._bids[bid.id] = _copy(bid)
			return _copy(bid)

	async def find_pending(self, location_id: str, bidder_id: str) -> Optional[Bid]:
		bid = self._pending_for(location_id, bidder_id)
		return _copy(bid) if bid else None

	async def get(self, bid_id: str) -> Optional[Bid]:
		bid = self._bids.get(str(bid_id))
		return _copy(bid) if bid else None

	async def update_pending(self, bid_id: str, changes: Mapping[str, object], *, now: datetime) -> Optional[Bid]:
		async with self._lock:
			bid = self._bids.get(str(bid_id))
			if bid is None or bid.status is not BidStatus.PENDING or not bid.expires_at > now:
				return None
			for field, value in changes.items():
				setattr(bid, field, value)
			bid.updated_at = now
			return _copy(bid)

	async def delete_pending(self, bid_id: str) -> bool:
		async with self._lock:
			bid = self._bids.get(str(bid_id))
			if bid is None or bid.status is not BidStatus.PENDING:
				return False
			del self._bids[bid.id]
			return True

	async def decide(self, bid_id: str, status: BidStatus, *, now: datetime) -> Optional[Bid]:
		async with self._lock:
			bid = self._bids.get(str(bid_id))
			if bid is None or bid.status is not BidStatus.PENDING:
				return None
			bid.status = status
			bid.decided_at = now
			bid.updated_at = now
			return _copy(bid)

	async def list_for_location(self, location_id: str) -> List[Bid]:
		items = [_copy(bid) for bid in self._bids.values() if bid.location_id == str(location_id)]
		items.sort(key=lambda bid: bid.created_at)
		items.sort(key=lambda bid: bid.amount, reverse=True)
		return items

	async def list_for_bidder(self, bidder_id: str) -> List[Bid]:
		items = [_copy(bid) for bid in self._bids.values() if bid.bidder_id == str(bidder_id)]
		items.sort(key=lambda bid: bid.created_at, reverse=True)
		return items

	async def profiles(self, user_ids: Iterable[str]) -> Dict[str, BidderProfile]:
		return {
			str(user_id): self._profiles[str(user_id)]
			for user_id in user_ids
			if str(user_id) in self._profiles
		}
