"""Domain-level exceptions for the bid lifecycle."""

from __future__ import annotations

from app.domain.common.exceptions import Conflict, Forbidden, InvalidArgument, NotFound, RateLimited


class BidNotFound(NotFound):
	reason = "bid_not_found"


class NotBidder(Forbidden):
	reason = "not_bidder"


class NotLocationOwner(Forbidden):
	reason = "not_location_owner"


class OwnLocationBid(Forbidden):
	reason = "own_location"


class AmountInvalid(InvalidArgument):
	reason = "amount_invalid"


class MessageTooLong(InvalidArgument):
	reason = "message_too_long"


class NothingToUpdate(InvalidArgument):
	reason = "no_changes"


class StatusInvalid(InvalidArgument):
	reason = "status_invalid"


class LocationNotEligible(Conflict):
	reason = "location_not_eligible"


class LocationExpired(Conflict):
	reason = "location_expired"


class BidAlreadyPending(Conflict):
	reason = "already_pending"


class BidNotPending(Conflict):
	reason = "not_pending"


class BidAlreadyDecided(Conflict):
	reason = "already_decided"


class BidWindowClosed(Conflict):
	"""The bid's anonymity window has ended; it can no longer be edited."""

	reason = "bid_window_closed"


class AnonymityWindowOpen(Conflict):
	"""The owner tried to decide while the bidder is still anonymous."""

	reason = "anonymity_window"


class BidRateLimitExceeded(RateLimited):
	reason = "bid_rate_limited"
