"""Operations endpoints providing health checks, metrics, and cleanup controls."""

from __future__ import annotations

import time
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from app.domain import container
from app.maintenance.cleanup import ExpiredRecordPurgeJob, sweep_expired_public_locations
from app.settings import settings

router = APIRouter(prefix="", tags=["ops"])


def _resolve_token(x_admin_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
	if x_admin_token:
		return x_admin_token
	if authorization and authorization.lower().startswith("bearer "):
		return authorization.split(" ", 1)[1]
	return None


async def require_admin(
	X_Admin_Token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	token = settings.obs_admin_token
	if not token:
		# Fail closed: if no token is configured, no admin access is allowed.
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="admin_token_not_configured")
	provided = _resolve_token(X_Admin_Token, authorization)
	if provided != token:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="forbidden")


async def require_metrics_access(
	X_Admin_Token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	if settings.obs_metrics_public:
		return
	await require_admin(X_Admin_Token=X_Admin_Token, authorization=authorization)


class SweepResult(BaseModel):
	deleted: int
	max_age_hours: int
	duration_ms: float


class SweepPreview(BaseModel):
	would_delete: int
	expired_records: int
	scheduled_records: int
	public_locations: int
	max_age_hours: int


class PurgeResult(BaseModel):
	locations: int
	routes: int
	duration_ms: float


@router.get("/health/live")
async def health_live() -> Dict[str, str]:
	return {"status": "ok", "service": settings.service_name, "commit": settings.git_commit}


@router.get("/metrics")
async def prometheus_metrics(_: None = Depends(require_metrics_access)) -> Response:
	payload = generate_latest()
	return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


@router.post("/ops/cleanup/public-locations", response_model=SweepResult)
async def sweep_public_locations(_: None = Depends(require_admin)) -> SweepResult:
	start = time.perf_counter()
	deleted = await sweep_expired_public_locations()
	return SweepResult(
		deleted=deleted,
		max_age_hours=settings.public_location_max_age_hours,
		duration_ms=round((time.perf_counter() - start) * 1000, 3),
	)


@router.get("/ops/cleanup/public-locations", response_model=SweepPreview)
async def preview_public_location_sweep(_: None = Depends(require_admin)) -> SweepPreview:
	sweeper = container.get_sweeper()
	now = container.get_clock().now()
	report = await sweeper.status(now)
	return SweepPreview(
		would_delete=await sweeper.dry_run(now),
		expired_records=report.expired_records,
		scheduled_records=report.scheduled_records,
		public_locations=report.public_locations,
		max_age_hours=settings.public_location_max_age_hours,
	)


@router.post("/ops/cleanup/expired", response_model=PurgeResult)
async def purge_expired_records(_: None = Depends(require_admin)) -> PurgeResult:
	start = time.perf_counter()
	counts = await ExpiredRecordPurgeJob().run_once()
	return PurgeResult(
		locations=counts["locations"],
		routes=counts["routes"],
		duration_ms=round((time.perf_counter() - start) * 1000, 3),
	)
