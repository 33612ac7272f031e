"""Bids domain exports."""

from .models import (  # noqa: F401
	ANONYMITY_WINDOW,
	ANONYMOUS_BIDDER_NAME,
	Bid,
	BidStatus,
)
from .schemas import BidCreateRequest, BidSummary, MyBidSummary  # noqa: F401
