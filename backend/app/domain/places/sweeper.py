"""Set-based cleanup of stale places.

Two independent mechanisms:

``SweepCleaner`` removes public locations by creation age (older than the
configured window, 24h by default) whatever their ``expires_at`` says.

``ExpiredRecordPurger`` honours each record's own ``expires_at`` and removes
locations and routes once it has passed.

Both are idempotent and may race with live requests; a request that loses the race
simply no longer finds the record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from app.domain.places.models import CleanupStatus
from app.domain.places.repo import PlacesRepository
from app.infra.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_MAX_AGE = timedelta(hours=24)


class SweepCleaner:
	def __init__(
		self,
		places: PlacesRepository,
		clock: Clock | None = None,
		*,
		max_age: timedelta = DEFAULT_PUBLIC_MAX_AGE,
	) -> None:
		self._places = places
		self._clock = clock or SystemClock()
		self._max_age = max_age

	def cutoff(self, now: Optional[datetime] = None) -> datetime:
		return (now or self._clock.now()) - self._max_age

	async def sweep(self, now: Optional[datetime] = None) -> int:
		cutoff = self.cutoff(now)
		deleted = await self._places.delete_public_locations_created_before(cutoff)
		logger.info("public location sweep", extra={"deleted": deleted, "cutoff": cutoff.isoformat()})
		return deleted

	async def dry_run(self, now: Optional[datetime] = None) -> int:
		return await self._places.count_public_locations_created_before(self.cutoff(now))

	async def status(self, now: Optional[datetime] = None) -> CleanupStatus:
		moment = now or self._clock.now()
		return await self._places.cleanup_status(moment, self.cutoff(moment))


class ExpiredRecordPurger:
	def __init__(self, places: PlacesRepository, clock: Clock | None = None) -> None:
		self._places = places
		self._clock = clock or SystemClock()

	async def purge(self, now: Optional[datetime] = None) -> Dict[str, int]:
		moment = now or self._clock.now()
		locations, routes = await self._places.purge_expired(moment)
		logger.info("expired record purge", extra={"locations": locations, "routes": routes})
		return {"locations": locations, "routes": routes}
