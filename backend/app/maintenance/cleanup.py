"""Background jobs for the public-location sweep and the expired-record purge."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict

from app.domain import container
from app.domain.places.sweeper import ExpiredRecordPurger, SweepCleaner
from app.maintenance.scheduler import CleanupScheduler
from app.obs import metrics as obs_metrics
from app.settings import settings

logger = logging.getLogger(__name__)

SWEEP_JOB = "public-location-sweep"
PURGE_JOB = "expired-record-purge"


class PublicLocationSweepJob:
	"""Deletes public locations past the creation-age window."""

	def __init__(self, *, sweeper: Callable[[], SweepCleaner] = container.get_sweeper) -> None:
		self._sweeper = sweeper

	async def run_once(self) -> int:
		started = time.perf_counter()
		try:
			deleted = await self._sweeper().sweep()
		except Exception:
			obs_metrics.record_job_run(SWEEP_JOB, result="error", duration_seconds=time.perf_counter() - started)
			logger.exception("public location sweep failed")
			raise
		obs_metrics.inc_cleanup_deleted(SWEEP_JOB, "location", deleted)
		obs_metrics.record_job_run(SWEEP_JOB, result="success", duration_seconds=time.perf_counter() - started)
		return deleted


class ExpiredRecordPurgeJob:
	"""Deletes locations and routes whose own expires_at has passed."""

	def __init__(self, *, purger: Callable[[], ExpiredRecordPurger] = container.get_purger) -> None:
		self._purger = purger

	async def run_once(self) -> Dict[str, int]:
		started = time.perf_counter()
		try:
			counts = await self._purger().purge()
		except Exception:
			obs_metrics.record_job_run(PURGE_JOB, result="error", duration_seconds=time.perf_counter() - started)
			logger.exception("expired record purge failed")
			raise
		obs_metrics.inc_cleanup_deleted(PURGE_JOB, "location", counts["locations"])
		obs_metrics.inc_cleanup_deleted(PURGE_JOB, "route", counts["routes"])
		obs_metrics.record_job_run(PURGE_JOB, result="success", duration_seconds=time.perf_counter() - started)
		return counts


async def sweep_expired_public_locations() -> int:
	"""One-shot sweep used by the ops endpoint and cron callers."""
	return await PublicLocationSweepJob().run_once()


def schedule_cleanup(scheduler: CleanupScheduler) -> None:
	sweep = PublicLocationSweepJob()
	purge = ExpiredRecordPurgeJob()
	scheduler.schedule_every(SWEEP_JOB, sweep.run_once, seconds=settings.sweep_interval_seconds)
	scheduler.schedule_every(PURGE_JOB, purge.run_once, seconds=settings.purge_interval_seconds)
