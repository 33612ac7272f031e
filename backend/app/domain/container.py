"""Lightweight service container shared by the places and bids routers and jobs."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

import asyncpg

from app.domain.bids.repo import BidRepository, InMemoryBidStore
from app.domain.bids.service import BidService
from app.domain.follows.graph import FollowGraph, InMemoryFollowGraph
from app.domain.places.repo import InMemoryPlacesStore, PlacesRepository
from app.domain.places.service import PlacesService
from app.domain.places.sweeper import ExpiredRecordPurger, SweepCleaner
from app.infra.clock import Clock, SystemClock
from app.infra.rate_limit import Limiter, RateLimiter, RedisRateLimiter
from app.infra.redis import RedisProxy, redis_client
from app.settings import settings

_clock: Clock = SystemClock()
_places: PlacesRepository
_bids: BidRepository
_follows: FollowGraph
_limiter: Limiter
_places_service: PlacesService
_bid_service: BidService
_sweeper: SweepCleaner
_purger: ExpiredRecordPurger


def _memory_limiter(clock: Clock) -> Limiter:
	return RateLimiter(clock, limit=settings.bid_rate_limit, window_seconds=settings.bid_rate_window_seconds)


def _rebuild_services() -> None:
	global _places_service, _bid_service, _sweeper, _purger
	_places_service = PlacesService(_places, _follows, _clock)
	_bid_service = BidService(
		_bids,
		_places,
		_limiter,
		_clock,
		anonymity_window=timedelta(hours=settings.bid_anonymity_hours),
		message_max_chars=settings.bid_message_max_chars,
	)
	_sweeper = SweepCleaner(_places, _clock, max_age=timedelta(hours=settings.public_location_max_age_hours))
	_purger = ExpiredRecordPurger(_places, _clock)


def reset(clock: Optional[Clock] = None) -> None:
	"""Restore in-memory defaults (local development and tests)."""
	global _clock, _places, _bids, _follows, _limiter
	_clock = clock or SystemClock()
	bids = InMemoryBidStore()
	_bids = bids
	_places = InMemoryPlacesStore(on_locations_deleted=bids.drop_for_locations)
	_follows = InMemoryFollowGraph()
	_limiter = _memory_limiter(_clock)
	_rebuild_services()


def configure(
	*,
	places: Optional[PlacesRepository] = None,
	bids: Optional[BidRepository] = None,
	follows: Optional[FollowGraph] = None,
	limiter: Optional[Limiter] = None,
	clock: Optional[Clock] = None,
) -> None:
	global _clock, _places, _bids, _follows, _limiter
	if clock is not None:
		_clock = clock
	if places is not None:
		_places = places
	if bids is not None:
		_bids = bids
	if follows is not None:
		_follows = follows
	if limiter is not None:
		_limiter = limiter
	_rebuild_services()


def configure_postgres(pool: asyncpg.Pool, redis: Optional[RedisProxy] = None) -> None:
	from app.infra.bids_repo import PostgresBidRepository
	from app.infra.follows_repo import PostgresFollowGraph
	from app.infra.places_repo import PostgresPlacesRepository

	limiter: Limiter
	if settings.uses_redis_rate_limit():
		limiter = RedisRateLimiter(
			_clock,
			kind="bid:create",
			limit=settings.bid_rate_limit,
			window_seconds=settings.bid_rate_window_seconds,
			client=redis or redis_client,
		)
	else:
		limiter = _memory_limiter(_clock)
	configure(
		places=PostgresPlacesRepository(pool),
		bids=PostgresBidRepository(pool),
		follows=PostgresFollowGraph(pool),
		limiter=limiter,
	)


def get_clock() -> Clock:
	return _clock


def get_places_repository() -> PlacesRepository:
	return _places


def get_bid_repository() -> BidRepository:
	return _bids


def get_follow_graph() -> FollowGraph:
	return _follows


def get_rate_limiter() -> Limiter:
	return _limiter


def get_places_service() -> PlacesService:
	return _places_service


def get_bid_service() -> BidService:
	return _bid_service


def get_sweeper() -> SweepCleaner:
	return _sweeper


def get_purger() -> ExpiredRecordPurger:
	return _purger


reset()
