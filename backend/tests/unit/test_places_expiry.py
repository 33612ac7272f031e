from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.common.exceptions import InvalidArgument
from app.domain.places.expiry import ExpiryOption, clamp_hours, compute_expiry, is_expired
from app.domain.places.geo import haversine_m, route_distance_m
from app.domain.places.models import Waypoint

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_never_and_missing_option_have_no_deadline() -> None:
	assert compute_expiry(None, NOW) is None
	assert compute_expiry("never", NOW) is None
	assert compute_expiry({"type": "never", "hours": 12}, NOW) is None


def test_twenty_four_hours_is_one_day_from_now() -> None:
	assert compute_expiry("24h", NOW) == NOW + timedelta(seconds=86400)


def test_custom_hours_are_clamped() -> None:
	assert compute_expiry({"type": "custom", "hours": 6}, NOW) == NOW + timedelta(hours=6)
	assert compute_expiry({"type": "custom", "hours": 0.25}, NOW) == NOW + timedelta(hours=1)
	assert compute_expiry({"type": "custom", "hours": 10_000}, NOW) == NOW + timedelta(hours=720)
	assert clamp_hours(-5) == 1.0


@pytest.mark.parametrize(
	"raw",
	[
		"weekly",
		{"type": "custom"},
		{"type": "custom", "hours": "6"},
		{"type": "custom", "hours": True},
		{"type": "custom", "hours": float("nan")},
		42,
	],
)
def test_invalid_options_are_rejected(raw) -> None:
	with pytest.raises(InvalidArgument) as excinfo:
		ExpiryOption.parse(raw)
	assert excinfo.value.reason == "expiration_invalid"


def test_record_expires_at_its_deadline() -> None:
	class _Record:
		expires_at = NOW

	assert is_expired(_Record(), NOW) is True
	assert is_expired(_Record(), NOW - timedelta(seconds=1)) is False

	_Record.expires_at = None
	assert is_expired(_Record(), NOW + timedelta(days=365)) is False


def test_haversine_one_degree_of_longitude_on_equator() -> None:
	assert haversine_m(0.0, 0.0, 0.0, 1.0) == pytest.approx(111_194.93, abs=1.0)
	assert haversine_m(45.0, 7.0, 45.0, 7.0) == 0.0


def test_route_distance_sums_consecutive_legs() -> None:
	points = [
		Waypoint(lat=0.0, lng=0.0, order_index=0),
		Waypoint(lat=0.0, lng=1.0, order_index=1),
		Waypoint(lat=0.0, lng=2.0, order_index=2),
	]
	assert route_distance_m(points) == pytest.approx(2 * 111_194.93, abs=2.0)
	assert route_distance_m(points[:1]) == 0.0
