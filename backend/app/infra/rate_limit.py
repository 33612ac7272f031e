"""Fixed-window rate limiting, in-process or Redis-backed."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol

from app.infra.clock import Clock, SystemClock
from app.infra.redis import redis_client

# Stale windows are pruned once the table grows past this many actors
_PRUNE_THRESHOLD = 10_000


class RateLimitExceeded(Exception):
	"""Raised when the rate limit has been hit."""


async def allow(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
	client=None,
) -> bool:
	"""Return True when the operation is still within the allowed budget."""

	if limit <= 0:
		return False
	now = now or time.time()
	window = max(1, int(window_seconds))
	slot = int(math.floor(now / window))
	key = f"rl:{kind}:{actor_id}:{slot}:{window}"
	redis = client if client is not None else redis_client
	async with redis.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		count, _ = await pipe.execute()
	return int(count) <= limit


class Limiter(Protocol):
	async def try_acquire(self, actor_id: str) -> bool:
		...


@dataclass(slots=True)
class _Window:
	count: int
	reset_at: datetime


class RateLimiter:
	"""Per-actor fixed window kept in process memory.

	The window opens on an actor's first acquisition and closes ``window_seconds``
	later; once closed, the next acquisition opens a fresh window. State is not
	durable and is not shared between instances, so a restart resets every quota
	and N instances allow up to N times the limit.
	"""

	def __init__(self, clock: Clock | None = None, *, limit: int, window_seconds: int = 60) -> None:
		self._clock = clock or SystemClock()
		self._limit = int(limit)
		self._window = timedelta(seconds=max(1, int(window_seconds)))
		self._windows: Dict[str, _Window] = {}

	@property
	def limit(self) -> int:
		return self._limit

	async def try_acquire(self, actor_id: str) -> bool:
		# No await between read and write: the check-and-increment is atomic on the event loop.
		now = self._clock.now()
		if self._limit <= 0:
			return False
		if len(self._windows) > _PRUNE_THRESHOLD:
			self._prune(now)
		window = self._windows.get(actor_id)
		if window is None or now > window.reset_at:
			self._windows[actor_id] = _Window(count=1, reset_at=now + self._window)
			return True
		if window.count >= self._limit:
			return False
		window.count += 1
		return True

	def remaining(self, actor_id: str) -> int:
		window = self._windows.get(actor_id)
		if window is None or self._clock.now() > window.reset_at:
			return self._limit
		return max(0, self._limit - window.count)

	def reset(self, actor_id: Optional[str] = None) -> None:
		if actor_id is None:
			self._windows.clear()
		else:
			self._windows.pop(actor_id, None)

	def _prune(self, now: datetime) -> None:
		stale = [key for key, window in self._windows.items() if now > window.reset_at]
		for key in stale:
			del self._windows[key]


class RedisRateLimiter:
	"""Shared counter for multi-instance deployments, same contract as RateLimiter."""

	def __init__(
		self,
		clock: Clock | None = None,
		*,
		kind: str,
		limit: int,
		window_seconds: int = 60,
		client=None,
	) -> None:
		self._clock = clock or SystemClock()
		self._kind = kind
		self._limit = int(limit)
		self._window_seconds = max(1, int(window_seconds))
		self._client = client

	@property
	def limit(self) -> int:
		return self._limit

	async def try_acquire(self, actor_id: str) -> bool:
		return await allow(
			self._kind,
			actor_id,
			limit=self._limit,
			window_seconds=self._window_seconds,
			now=self._clock.now().timestamp(),
			client=self._client,
		)
