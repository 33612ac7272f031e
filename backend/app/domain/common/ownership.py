"""Ownership checks for owner-scoped records."""

from __future__ import annotations

from typing import Optional, Protocol

from app.domain.common.exceptions import Forbidden


class Owned(Protocol):
	owner_id: str


def is_owner(record: Owned, actor_id: Optional[str]) -> bool:
	return actor_id is not None and str(record.owner_id) == str(actor_id)


def require_owner(record: Owned, actor_id: Optional[str], *, reason: str = "not_owner") -> None:
	if not is_owner(record, actor_id):
		raise Forbidden(reason)
