from __future__ import annotations

from datetime import timedelta

import pytest

from app.domain import container
from app.maintenance.cleanup import (
	PURGE_JOB,
	SWEEP_JOB,
	ExpiredRecordPurgeJob,
	PublicLocationSweepJob,
	schedule_cleanup,
)
from app.maintenance.scheduler import CleanupScheduler
from app.obs import metrics

_POINTS = [{"lat": 0, "lng": 0}, {"lat": 0, "lng": 1}]


@pytest.mark.asyncio
async def test_sweep_removes_public_locations_by_creation_age(clock) -> None:
	places = container.get_places_service()
	bids = container.get_bid_service()
	old_public = await places.create_location(
		"owner", name="old", lat=0, lng=0, visibility="public", accepts_bids=True
	)
	old_private = await places.create_location("owner", name="den", lat=0, lng=0, visibility="private")
	old_followers = await places.create_location("owner", name="club", lat=0, lng=0, visibility="followers")
	await bids.create_bid("bidder", old_public.id, 10)

	clock.advance(hours=12)
	fresh_public = await places.create_location("owner", name="fresh", lat=0, lng=0, visibility="public")

	sweeper = container.get_sweeper()
	clock.advance(hours=12, seconds=1)
	assert await sweeper.dry_run() == 1

	deleted = await sweeper.sweep()
	assert deleted == 1

	remaining = {location.id for location in await places.list_locations("owner")}
	assert remaining == {old_private.id, old_followers.id, fresh_public.id}
	assert await bids.list_my_bids("bidder") == []

	# idempotent
	assert await sweeper.sweep() == 0


@pytest.mark.asyncio
async def test_sweep_ignores_expires_at_of_public_locations(clock) -> None:
	places = container.get_places_service()
	long_lived = await places.create_location(
		"owner", name="month", lat=0, lng=0, visibility="public", expiration={"type": "custom", "hours": 720}
	)
	clock.advance(hours=25)
	assert await container.get_sweeper().sweep() == 1
	assert await container.get_places_repository().get_location(long_lived.id) is None


@pytest.mark.asyncio
async def test_sweep_keeps_young_public_location_past_its_own_expiry(clock) -> None:
	places = container.get_places_service()
	short_lived = await places.create_location(
		"owner", name="hour", lat=0, lng=0, visibility="public", expiration={"type": "custom", "hours": 1}
	)
	clock.advance(hours=23)
	assert await container.get_sweeper().sweep() == 0
	assert await container.get_places_repository().get_location(short_lived.id) is not None


@pytest.mark.asyncio
async def test_purger_honours_each_records_deadline(clock) -> None:
	places = container.get_places_service()
	short_route = await places.create_route(
		"owner", name="sprint", waypoints=_POINTS, expiration={"type": "custom", "hours": 2}
	)
	day_location = await places.create_location("owner", name="day", lat=0, lng=0, expiration="24h")
	keeper = await places.create_location("owner", name="keep", lat=0, lng=0, expiration="never")

	purger = container.get_purger()
	clock.advance(hours=2)
	# a record whose deadline is exactly now is hidden but not yet purged
	assert await purger.purge() == {"locations": 0, "routes": 0}

	clock.advance(seconds=1)
	assert await purger.purge() == {"locations": 0, "routes": 1}
	assert await container.get_places_repository().get_route(short_route.id) is None

	clock.advance(hours=22)
	assert await purger.purge() == {"locations": 1, "routes": 0}
	repo = container.get_places_repository()
	assert await repo.get_location(day_location.id) is None
	assert await repo.get_location(keeper.id) is not None


@pytest.mark.asyncio
async def test_cleanup_status_reports_both_mechanisms(clock) -> None:
	places = container.get_places_service()
	await places.create_location("owner", name="a", lat=0, lng=0, visibility="public")
	await places.create_location("owner", name="b", lat=0, lng=0, expiration="24h")
	await places.create_route("owner", name="c", waypoints=_POINTS, expiration={"type": "custom", "hours": 1})

	clock.advance(hours=2)
	report = await container.get_sweeper().status()
	assert report.expired_records == 1
	assert report.scheduled_records == 1
	assert report.public_locations == 1
	assert report.sweep_eligible == 0

	clock.advance(hours=23)
	report = await container.get_sweeper().status()
	assert report.sweep_eligible == 1
	assert report.expired_records == 2


@pytest.mark.asyncio
async def test_sweep_job_records_metrics(clock) -> None:
	places = container.get_places_service()
	await places.create_location("owner", name="old", lat=0, lng=0, visibility="public")
	clock.advance(hours=25)

	runs = metrics.BACKGROUND_RUNS.labels(name=SWEEP_JOB, result="success")
	deleted_counter = metrics.CLEANUP_DELETED.labels(job=SWEEP_JOB, kind="location")
	runs_before = runs._value.get()
	deleted_before = deleted_counter._value.get()

	assert await PublicLocationSweepJob().run_once() == 1
	assert runs._value.get() == runs_before + 1
	assert deleted_counter._value.get() == deleted_before + 1


@pytest.mark.asyncio
async def test_purge_job_records_failure_and_reraises() -> None:
	class _BrokenPurger:
		async def purge(self, now=None):
			raise RuntimeError("db down")

	errors = metrics.BACKGROUND_RUNS.labels(name=PURGE_JOB, result="error")
	before = errors._value.get()
	job = ExpiredRecordPurgeJob(purger=lambda: _BrokenPurger())
	with pytest.raises(RuntimeError):
		await job.run_once()
	assert errors._value.get() == before + 1


@pytest.mark.asyncio
async def test_purge_job_returns_counts(clock) -> None:
	places = container.get_places_service()
	await places.create_route("owner", name="r", waypoints=_POINTS, expiration="24h")
	clock.advance(hours=25)
	assert await ExpiredRecordPurgeJob().run_once() == {"locations": 0, "routes": 1}


@pytest.mark.asyncio
async def test_schedule_cleanup_registers_both_jobs() -> None:
	scheduler = CleanupScheduler()
	scheduler.start()
	try:
		schedule_cleanup(scheduler)
		assert set(scheduler.job_ids()) == {SWEEP_JOB, PURGE_JOB}
	finally:
		scheduler.shutdown()
