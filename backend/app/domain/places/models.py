"""Domain models for owner-published locations and routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, List, Optional, Tuple

NAME_MAX_CHARS = 200
URL_MAX_CHARS = 2048
DESCRIPTION_MAX_CHARS = 2000
MIN_WAYPOINTS = 2


class Visibility(str, Enum):
	"""Who besides the owner may read a record."""

	PUBLIC = "public"
	FOLLOWERS = "followers"
	PRIVATE = "private"


@dataclass(slots=True)
class Location:
	kind: ClassVar[str] = "location"

	id: str
	owner_id: str
	name: str
	lat: float
	lng: float
	visibility: Visibility
	accepts_bids: bool
	created_at: datetime
	expires_at: Optional[datetime] = None
	url: Optional[str] = None
	updated_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: dict) -> "Location":
		return cls(
			id=str(record["id"]),
			owner_id=str(record["owner_id"]),
			name=record["name"],
			lat=float(record["lat"]),
			lng=float(record["lng"]),
			visibility=Visibility(record["visibility"]),
			accepts_bids=bool(record["accepts_bids"]),
			created_at=record["created_at"],
			expires_at=record.get("expires_at"),
			url=record.get("url"),
			updated_at=record.get("updated_at"),
		)


@dataclass(slots=True)
class Waypoint:
	lat: float
	lng: float
	name: Optional[str] = None
	order_index: int = 0


@dataclass(slots=True)
class Route:
	kind: ClassVar[str] = "route"

	id: str
	owner_id: str
	name: str
	visibility: Visibility
	created_at: datetime
	waypoints: List[Waypoint] = field(default_factory=list)
	distance_m: float = 0.0
	expires_at: Optional[datetime] = None
	description: Optional[str] = None
	url: Optional[str] = None
	estimated_duration_s: Optional[int] = None
	updated_at: Optional[datetime] = None

	@property
	def accepts_bids(self) -> bool:
		return False

	@classmethod
	def from_record(cls, record: dict, waypoints: List[Waypoint]) -> "Route":
		return cls(
			id=str(record["id"]),
			owner_id=str(record["owner_id"]),
			name=record["name"],
			visibility=Visibility(record["visibility"]),
			created_at=record["created_at"],
			waypoints=sorted(waypoints, key=lambda point: point.order_index),
			distance_m=float(record.get("distance_m") or 0.0),
			expires_at=record.get("expires_at"),
			description=record.get("description"),
			url=record.get("url"),
			estimated_duration_s=record.get("estimated_duration_s"),
			updated_at=record.get("updated_at"),
		)


@dataclass(slots=True)
class CleanupStatus:
	"""Snapshot of what the two cleanup mechanisms would act on."""

	expired_records: int
	scheduled_records: int
	public_locations: int
	sweep_eligible: int


def normalise_followers(owner_id: str, follower_ids) -> Tuple[str, ...]:
	"""Drop blanks, duplicates and the owner while keeping first-seen order."""
	seen: List[str] = []
	for raw in follower_ids or ():
		value = str(raw).strip()
		if value and value != str(owner_id) and value not in seen:
			seen.append(value)
	return tuple(seen)
