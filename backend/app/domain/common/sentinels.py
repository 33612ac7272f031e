"""Marker for "argument not supplied" in partial updates, where None means clear."""

from __future__ import annotations

from typing import Any


class _Unset:
	def __repr__(self) -> str:
		return "UNSET"

	def __bool__(self) -> bool:
		return False


UNSET: Any = _Unset()
