"""Read authorization for locations and routes."""

from __future__ import annotations

from datetime import datetime
from typing import Collection, Dict, List, Optional, Protocol, Sequence, TypeVar

from app.domain.common.ownership import is_owner
from app.domain.follows.graph import FollowGraph
from app.domain.places.expiry import is_expired
from app.domain.places.models import Visibility
from app.infra.clock import Clock, SystemClock

T = TypeVar("T")


def evaluate(
	record,
	viewer_id: Optional[str],
	*,
	now: datetime,
	follows_owner: bool,
	shares: Collection[str],
) -> bool:
	"""Decide visibility from already-fetched state.

	- the owner always sees the record, expired or not;
	- public records are open to everyone until their ``expires_at``;
	- followers-only records need a follow edge towards the owner, and when
	  the owner picked specific followers the viewer must be one of them;
	- private records stay with the owner.
	"""
	if is_owner(record, viewer_id):
		return True
	visibility = Visibility(record.visibility)
	if visibility is Visibility.PUBLIC:
		return not is_expired(record, now)
	if visibility is Visibility.FOLLOWERS:
		if viewer_id is None or not follows_owner:
			return False
		return not shares or str(viewer_id) in shares
	return False


class ShareSource(Protocol):
	async def shares_for(self, kind: str, record_id: str) -> Sequence[str]:
		...

	async def shares_for_many(self, kind: str, record_ids: Sequence[str]) -> Dict[str, Sequence[str]]:
		...


class VisibilityResolver:
	def __init__(self, follows: FollowGraph, shares: ShareSource, clock: Clock | None = None) -> None:
		self._follows = follows
		self._shares = shares
		self._clock = clock or SystemClock()

	async def can_view(self, viewer_id: Optional[str], record) -> bool:
		if is_owner(record, viewer_id):
			return True
		now = self._clock.now()
		visibility = Visibility(record.visibility)
		if visibility is not Visibility.FOLLOWERS:
			return evaluate(record, viewer_id, now=now, follows_owner=False, shares=())
		if viewer_id is None:
			return False
		follows_owner = await self._follows.is_following(viewer_id, record.owner_id)
		if not follows_owner:
			return False
		shares = await self._shares.shares_for(record.kind, record.id)
		return evaluate(record, viewer_id, now=now, follows_owner=True, shares=set(shares))

	async def filter_visible(self, viewer_id: Optional[str], records: Sequence[T]) -> List[T]:
		"""Apply the predicate to each record, keeping input order."""
		now = self._clock.now()
		candidates = [
			record
			for record in records
			if not is_owner(record, viewer_id) and Visibility(record.visibility) is Visibility.FOLLOWERS
		]
		shares_by_id: Dict[str, Sequence[str]] = {}
		follows_by_owner: Dict[str, bool] = {}
		if candidates and viewer_id is not None:
			kind = candidates[0].kind
			shares_by_id = await self._shares.shares_for_many(kind, [record.id for record in candidates])
			for owner_id in {str(record.owner_id) for record in candidates}:
				follows_by_owner[owner_id] = await self._follows.is_following(viewer_id, owner_id)
		visible: List[T] = []
		for record in records:
			allowed = evaluate(
				record,
				viewer_id,
				now=now,
				follows_owner=follows_by_owner.get(str(record.owner_id), False),
				shares=set(shares_by_id.get(record.id, ())),
			)
			if allowed:
				visible.append(record)
		return visible
