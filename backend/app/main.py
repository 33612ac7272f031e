"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import bids, locations, ops, saved_routes
from app.api.errors import install_error_handlers
from app.api.request_id import RequestIdMiddleware
from app.domain import container
from app.infra import postgres
from app.infra.redis import redis_client
from app.maintenance.cleanup import schedule_cleanup
from app.maintenance.scheduler import CleanupScheduler
from app.obs import init as obs_init
from app.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	scheduler: CleanupScheduler | None = None
	if settings.uses_postgres():
		pool = await postgres.init_pool()
		container.configure_postgres(pool, redis_client)
		logger.info("postgres storage configured")
	if settings.scheduler_enabled:
		scheduler = CleanupScheduler()
		scheduler.start()
		schedule_cleanup(scheduler)
	app.state.cleanup_scheduler = scheduler
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		if settings.uses_postgres():
			await postgres.close_pool()


app = FastAPI(title="Pinpoint API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

obs_init(app)

# Ensure every request carries an X-Request-Id and make it available on request.state
app.add_middleware(RequestIdMiddleware)

app.include_router(locations.router)
app.include_router(saved_routes.router)
app.include_router(bids.router)
app.include_router(ops.router)
