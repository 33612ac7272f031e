from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from app.domain import container
from app.domain.bids.exceptions import (
	AmountInvalid,
	AnonymityWindowOpen,
	BidAlreadyDecided,
	BidAlreadyPending,
	BidNotFound,
	BidNotPending,
	BidRateLimitExceeded,
	BidWindowClosed,
	LocationExpired,
	LocationNotEligible,
	MessageTooLong,
	NotBidder,
	NothingToUpdate,
	NotLocationOwner,
	OwnLocationBid,
	StatusInvalid,
)
from app.domain.bids.models import ANONYMOUS_BIDDER_NAME, Bid, BidderProfile, BidStatus
from app.domain.common.exceptions import Conflict, Forbidden, RateLimited
from app.domain.places.exceptions import LocationNotFound
from app.obs import metrics


async def _public_location(owner: str = "owner", **kwargs):
	places = container.get_places_service()
	options = {"visibility": "public", "accepts_bids": True}
	options.update(kwargs)
	return await places.create_location(owner, name="Harbour view", lat=45.0, lng=7.0, **options)


@pytest.mark.asyncio
async def test_create_bid_starts_pending_with_anonymity_deadline(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()

	bid = await service.create_bid("bidder", location.id, "12.50", "  please  ")

	assert bid.status == "pending"
	assert bid.amount == Decimal("12.50")
	assert bid.message == "  please  "
	assert bid.created_at == clock.now()
	assert bid.expires_at == clock.now() + timedelta(hours=24)
	assert bid.decided_at is None


@pytest.mark.asyncio
async def test_owner_cannot_bid_on_own_location() -> None:
	location = await _public_location()
	service = container.get_bid_service()
	with pytest.raises(OwnLocationBid) as excinfo:
		await service.create_bid("owner", location.id, 10)
	assert isinstance(excinfo.value, Forbidden)

	# ownership is reported ahead of eligibility
	closed = await _public_location(accepts_bids=False)
	with pytest.raises(OwnLocationBid):
		await service.create_bid("owner", closed.id, 10)


@pytest.mark.asyncio
async def test_ineligible_locations_refuse_bids(clock) -> None:
	service = container.get_bid_service()
	places = container.get_places_service()

	closed = await _public_location(accepts_bids=False)
	private = await places.create_location("owner", name="Den", lat=1, lng=1, visibility="private", accepts_bids=True)
	expiring = await _public_location(expiration="24h")

	for location in (closed, private):
		with pytest.raises(LocationNotEligible):
			await service.create_bid("bidder", location.id, 10)

	clock.advance(hours=24)
	with pytest.raises(LocationNotEligible) as excinfo:
		await service.create_bid("bidder", expiring.id, 10)
	assert isinstance(excinfo.value, Conflict)

	with pytest.raises(LocationNotFound):
		await service.create_bid("bidder", "missing", 10)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1, "abc", None, True, "NaN", "Infinity"])
async def test_invalid_amounts_rejected(amount) -> None:
	location = await _public_location()
	with pytest.raises(AmountInvalid):
		await container.get_bid_service().create_bid("bidder", location.id, amount)


@pytest.mark.asyncio
async def test_message_length_boundary() -> None:
	location = await _public_location()
	other = await _public_location()
	service = container.get_bid_service()

	ok = await service.create_bid("bidder", location.id, 5, "x" * 500)
	assert len(ok.message) == 500
	with pytest.raises(MessageTooLong):
		await service.create_bid("bidder", other.id, 5, "x" * 501)

	blank = await service.create_bid("bidder", other.id, 5, "")
	assert blank.message is None


@pytest.mark.asyncio
async def test_one_pending_bid_per_bidder_and_location() -> None:
	location = await _public_location()
	service = container.get_bid_service()

	await service.create_bid("bidder", location.id, 10)
	with pytest.raises(BidAlreadyPending):
		await service.create_bid("bidder", location.id, 20)

	# another bidder is unaffected
	await service.create_bid("other", location.id, 15)


@pytest.mark.asyncio
async def test_concurrent_creates_leave_a_single_pending_bid() -> None:
	location = await _public_location()
	service = container.get_bid_service()

	results = await asyncio.gather(
		*(service.create_bid("bidder", location.id, 10 + i) for i in range(4)),
		return_exceptions=True,
	)
	created = [result for result in results if not isinstance(result, Exception)]
	failures = [result for result in results if isinstance(result, Exception)]
	assert len(created) == 1
	assert all(isinstance(failure, BidAlreadyPending) for failure in failures)

	listed = await service.list_my_bids("bidder")
	assert len(listed) == 1


@pytest.mark.asyncio
async def test_store_refuses_second_pending_bid_for_same_pair(clock) -> None:
	store = container.get_bid_repository()
	now = clock.now()

	def _pending(bid_id: str, amount: int) -> Bid:
		return Bid(
			id=bid_id,
			location_id="loc-1",
			bidder_id="bidder",
			amount=Decimal(amount),
			status=BidStatus.PENDING,
			created_at=now,
			expires_at=now + timedelta(hours=24),
		)

	await store.insert_pending(_pending("b1", 10))
	with pytest.raises(BidAlreadyPending):
		await store.insert_pending(_pending("b2", 20))
	assert await store.get("b2") is None


@pytest.mark.asyncio
async def test_interleaved_creates_are_caught_by_the_store(monkeypatch) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	store = container.get_bid_repository()
	original = store.find_pending

	async def find_then_yield(location_id, bidder_id):
		found = await original(location_id, bidder_id)
		# let every caller pass the pre-check before any of them inserts
		await asyncio.sleep(0)
		return found

	monkeypatch.setattr(store, "find_pending", find_then_yield)

	results = await asyncio.gather(
		*(service.create_bid("bidder", location.id, 10 + i) for i in range(4)),
		return_exceptions=True,
	)
	created = [result for result in results if not isinstance(result, Exception)]
	failures = [result for result in results if isinstance(result, Exception)]
	assert len(created) == 1
	assert len(failures) == 3
	assert all(isinstance(failure, BidAlreadyPending) for failure in failures)
	assert len(await service.list_my_bids("bidder")) == 1


@pytest.mark.asyncio
async def test_rate_limit_allows_five_then_refuses_until_window_passes(clock) -> None:
	service = container.get_bid_service()
	locations = [await _public_location() for _ in range(7)]

	for location in locations[:5]:
		await service.create_bid("bidder", location.id, 10)

	before = metrics.BID_RATE_LIMITED._value.get()
	with pytest.raises(BidRateLimitExceeded) as excinfo:
		await service.create_bid("bidder", locations[5].id, 10)
	assert isinstance(excinfo.value, RateLimited)
	assert metrics.BID_RATE_LIMITED._value.get() == before + 1

	# a different bidder has its own quota
	await service.create_bid("someone-else", locations[5].id, 10)

	clock.advance(seconds=61)
	await service.create_bid("bidder", locations[5].id, 10)


@pytest.mark.asyncio
async def test_rejected_requests_do_not_consume_quota() -> None:
	service = container.get_bid_service()
	location = await _public_location()
	others = [await _public_location() for _ in range(5)]

	for _ in range(6):
		with pytest.raises(AmountInvalid):
			await service.create_bid("bidder", location.id, -1)

	for other in others:
		await service.create_bid("bidder", other.id, 10)


@pytest.mark.asyncio
async def test_owner_sees_masked_bids_until_deadline(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	store = container.get_bid_repository()
	store.put_profile(BidderProfile(id="bidder", name="Ada", avatar_url="https://img/ada.png", email="ada@example.com"))

	await service.create_bid("bidder", location.id, 40, "hello")

	masked = await service.list_bids_for_location("owner", location.id)
	assert len(masked) == 1
	row = masked[0]
	assert row.is_anonymous is True
	assert row.bidder_id is None
	assert row.bidder.id is None
	assert row.bidder.name == ANONYMOUS_BIDDER_NAME
	assert row.bidder.avatar_url is None
	assert row.bidder.email is None
	assert row.amount == Decimal("40")
	assert row.message == "hello"

	clock.advance(hours=24)
	revealed = (await service.list_bids_for_location("owner", location.id))[0]
	assert revealed.is_anonymous is False
	assert revealed.bidder_id == "bidder"
	assert revealed.bidder.name == "Ada"
	assert revealed.bidder.email == "ada@example.com"
	assert revealed.status == "expired"


@pytest.mark.asyncio
async def test_only_location_owner_lists_bids() -> None:
	location = await _public_location()
	service = container.get_bid_service()
	with pytest.raises(NotLocationOwner):
		await service.list_bids_for_location("bidder", location.id)
	with pytest.raises(LocationNotFound):
		await service.list_bids_for_location("owner", "missing")
	with pytest.raises(StatusInvalid):
		await service.list_bids_for_location("owner", location.id, "bogus")


@pytest.mark.asyncio
async def test_decision_waits_for_anonymity_window(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	bid = await service.create_bid("bidder", location.id, 10)

	clock.advance(hours=1)
	for target in ("accepted", "rejected"):
		with pytest.raises(AnonymityWindowOpen) as excinfo:
			await service.set_bid_status("owner", bid.id, target)
		assert isinstance(excinfo.value, Conflict)

	clock.advance(hours=24)
	assert clock.now() > bid.expires_at
	with pytest.raises(NotLocationOwner):
		await service.set_bid_status("bidder", bid.id, "accepted")
	with pytest.raises(StatusInvalid):
		await service.set_bid_status("owner", bid.id, "pending")

	decided = await service.set_bid_status("owner", bid.id, "accepted")
	assert decided.status == "accepted"
	assert decided.decided_at == clock.now()
	assert decided.bidder_id == "bidder"

	with pytest.raises(BidAlreadyDecided):
		await service.set_bid_status("owner", bid.id, "accepted")
	with pytest.raises(Conflict):
		await service.set_bid_status("owner", bid.id, "rejected")


@pytest.mark.asyncio
async def test_fifty_bids_then_owner_accepts_best(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	for index in range(50):
		await service.create_bid(f"bidder-{index:02d}", location.id, 100 + index)
		clock.advance(seconds=1)

	listing = await service.list_bids_for_location("owner", location.id)
	assert len(listing) == 50
	assert all(row.is_anonymous for row in listing)
	assert [row.amount for row in listing][:3] == [Decimal(149), Decimal(148), Decimal(147)]

	clock.advance(hours=24)
	best = listing[0]
	accepted = await service.set_bid_status("owner", best.id, "accepted")
	assert accepted.status == "accepted"
	assert accepted.bidder_id == "bidder-49"

	after = await service.list_bids_for_location("owner", location.id)
	statuses = [row.status for row in after]
	assert statuses.count("accepted") == 1
	assert statuses.count("expired") == 49
	assert await service.list_bids_for_location("owner", location.id, "accepted") == [after[0]]
	assert len(await service.list_bids_for_location("owner", location.id, "expired")) == 49


@pytest.mark.asyncio
async def test_equal_amounts_list_oldest_first(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	first = await service.create_bid("early", location.id, 50)
	clock.advance(seconds=1)
	second = await service.create_bid("late", location.id, 50)
	top = await service.create_bid("high", location.id, 51)

	listing = await service.list_bids_for_location("owner", location.id)
	assert [row.id for row in listing] == [top.id, first.id, second.id]
	assert listing[1].created_at < listing[2].created_at


@pytest.mark.asyncio
async def test_bidder_can_edit_until_deadline(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	bid = await service.create_bid("bidder", location.id, 10, "first")

	clock.advance(hours=1)
	updated = await service.update_bid("bidder", bid.id, amount="11.5")
	assert updated.amount == Decimal("11.5")
	assert updated.message == "first"
	assert updated.updated_at == clock.now()
	assert updated.expires_at == bid.expires_at

	cleared = await service.update_bid("bidder", bid.id, message="")
	assert cleared.message is None

	with pytest.raises(NothingToUpdate):
		await service.update_bid("bidder", bid.id)
	with pytest.raises(NotBidder):
		await service.update_bid("owner", bid.id, amount=50)
	with pytest.raises(BidNotFound):
		await service.update_bid("bidder", "missing", amount=50)


@pytest.mark.asyncio
async def test_update_closes_at_deadline_but_delete_does_not(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	bid = await service.create_bid("bidder", location.id, 10)

	clock.advance(hours=24)
	with pytest.raises(BidWindowClosed):
		await service.update_bid("bidder", bid.id, amount=12)

	with pytest.raises(NotBidder):
		await service.delete_bid("owner", bid.id)
	await service.delete_bid("bidder", bid.id)
	with pytest.raises(BidNotFound):
		await service.delete_bid("bidder", bid.id)


@pytest.mark.asyncio
async def test_update_refused_once_location_expired(clock) -> None:
	location = await _public_location(expiration={"type": "custom", "hours": 2})
	service = container.get_bid_service()
	bid = await service.create_bid("bidder", location.id, 10)

	clock.advance(hours=3)
	with pytest.raises(LocationExpired):
		await service.update_bid("bidder", bid.id, amount=12)


@pytest.mark.asyncio
async def test_decided_bids_cannot_be_edited_or_withdrawn(clock) -> None:
	location = await _public_location()
	service = container.get_bid_service()
	bid = await service.create_bid("bidder", location.id, 10)
	clock.advance(hours=25)
	await service.set_bid_status("owner", bid.id, "accepted")

	with pytest.raises(BidNotPending):
		await service.update_bid("bidder", bid.id, amount=12)
	with pytest.raises(BidNotPending):
		await service.delete_bid("bidder", bid.id)

	# a decided bid frees the pair for a new pending bid
	again = await service.create_bid("bidder", location.id, 20)
	assert again.status == "pending"


@pytest.mark.asyncio
async def test_my_bids_include_location_brief_and_status_filter(clock) -> None:
	first = await _public_location()
	second = await _public_location(owner="another-owner")
	service = container.get_bid_service()
	await service.create_bid("bidder", first.id, 10)
	clock.advance(minutes=5)
	await service.create_bid("bidder", second.id, 20)

	rows = await service.list_my_bids("bidder")
	assert [row.location_id for row in rows] == [second.id, first.id]
	assert rows[0].location.owner_id == "another-owner"
	assert rows[0].location.accepts_bids is True

	clock.advance(hours=24)
	assert len(await service.list_my_bids("bidder", "expired")) == 2
	assert await service.list_my_bids("bidder", "pending") == []


@pytest.mark.asyncio
async def test_deleting_location_removes_its_bids() -> None:
	location = await _public_location()
	service = container.get_bid_service()
	bid = await service.create_bid("bidder", location.id, 10)

	await container.get_places_service().delete_location("owner", location.id)

	assert await service.list_my_bids("bidder") == []
	assert await container.get_bid_repository().get(bid.id) is None


@pytest.mark.asyncio
async def test_rejections_are_counted_by_operation_and_reason() -> None:
	location = await _public_location()
	service = container.get_bid_service()
	counter = metrics.BID_REJECTS.labels(operation="create", reason="own_location")
	before = counter._value.get()
	with pytest.raises(OwnLocationBid):
		await service.create_bid("owner", location.id, 10)
	assert counter._value.get() == before + 1
