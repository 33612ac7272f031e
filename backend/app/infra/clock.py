"""Time sources injected into services and jobs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
	def now(self) -> datetime:
		...


class SystemClock:
	"""UTC wall clock."""

	def now(self) -> datetime:
		return datetime.now(timezone.utc)


class FrozenClock:
	"""Manually driven clock for tests and replay tooling."""

	def __init__(self, start: Optional[datetime] = None) -> None:
		moment = start or datetime.now(timezone.utc)
		if moment.tzinfo is None:
			moment = moment.replace(tzinfo=timezone.utc)
		self._now = moment

	def now(self) -> datetime:
		return self._now

	def set(self, moment: datetime) -> None:
		if moment.tzinfo is None:
			moment = moment.replace(tzinfo=timezone.utc)
		self._now = moment

	def advance(self, delta: Optional[timedelta] = None, **kwargs: float) -> datetime:
		"""Move forward by ``delta`` or by ``timedelta(**kwargs)``."""
		step = delta if delta is not None else timedelta(**kwargs)
		self._now = self._now + step
		return self._now
