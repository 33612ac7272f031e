"""Failure taxonomy shared by the places and bidding domains."""

from __future__ import annotations

from app.infra.rate_limit import RateLimitExceeded


class DomainError(Exception):
	"""Base class for caller-facing domain failures."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NotFound(DomainError):
	reason = "not_found"


class Forbidden(DomainError):
	reason = "forbidden"


class InvalidArgument(DomainError):
	reason = "invalid_argument"


class Conflict(DomainError):
	reason = "conflict"


class RateLimited(DomainError, RateLimitExceeded):
	"""Raised when an actor exhausts a creation quota."""

	reason = "rate_limited"


class StorageError(Exception):
	"""The backing store failed; retryable and never part of the caller taxonomy."""

	def __init__(self, operation: str = "storage") -> None:
		super().__init__(operation)
		self.operation = operation
		self.reason = "storage_unavailable"
