"""Owner-selected expiration options for locations and routes.

Three options are recognised: ``never`` (no scheduled deletion), ``24h`` and
``custom`` with an hour count. Custom hours are clamped to one hour minimum and
thirty days maximum. A record with an ``expires_at`` is hidden from non-owners
from that instant on and later removed by the expired-record purge; the creation-age
sweep of public locations is a separate mechanism (see ``sweeper``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from app.domain.common.exceptions import InvalidArgument

MIN_CUSTOM_HOURS = 1
MAX_CUSTOM_HOURS = 720
DEFAULT_WINDOW = timedelta(hours=24)

_KINDS = ("never", "24h", "custom")


@dataclass(frozen=True, slots=True)
class ExpiryOption:
	kind: str
	hours: Optional[float] = None

	@classmethod
	def parse(cls, raw: Any) -> "ExpiryOption":
		"""Accept an ExpiryOption, a kind string or a ``{"type", "hours"}`` mapping."""
		if isinstance(raw, ExpiryOption):
			raw = {"type": raw.kind, "hours": raw.hours}
		if raw is None:
			return cls("never")
		if isinstance(raw, str):
			raw = {"type": raw}
		if not isinstance(raw, dict):
			raise InvalidArgument("expiration_invalid")
		kind = str(raw.get("type") or raw.get("kind") or "").strip().lower()
		if kind not in _KINDS:
			raise InvalidArgument("expiration_invalid")
		if kind != "custom":
			return cls(kind)
		hours = raw.get("hours")
		if isinstance(hours, bool) or not isinstance(hours, (int, float)):
			raise InvalidArgument("expiration_invalid")
		if not math.isfinite(hours):
			raise InvalidArgument("expiration_invalid")
		return cls("custom", float(hours))


def clamp_hours(hours: float) -> float:
	return min(float(MAX_CUSTOM_HOURS), max(float(MIN_CUSTOM_HOURS), hours))


def compute_expiry(option: Any, now: datetime) -> Optional[datetime]:
	parsed = ExpiryOption.parse(option)
	if parsed.kind == "never":
		return None
	if parsed.kind == "custom" and parsed.hours is not None:
		return now + timedelta(hours=clamp_hours(parsed.hours))
	return now + DEFAULT_WINDOW


def is_expired(record, now: datetime) -> bool:
	expires_at = getattr(record, "expires_at", None)
	return expires_at is not None and now >= expires_at


__all__ = [
	"ExpiryOption",
	"clamp_hours",
	"compute_expiry",
	"is_expired",
]
