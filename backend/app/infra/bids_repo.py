"""PostgreSQL persistence for bids and bidder profiles."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

import asyncpg

from app.domain.bids.exceptions import BidAlreadyPending
from app.domain.bids.models import Bid, BidderProfile, BidStatus
from app.domain.bids.repo import BidRepository
from app.infra.postgres import storage_errors

_BID_COLUMNS = "id, location_id, bidder_id, amount, message, status, created_at, updated_at, decided_at, expires_at"
_EDITABLE_COLUMNS = ("amount", "message")


def _row_to_bid(row: asyncpg.Record) -> Bid:
    return Bid.from_record(dict(row))


class PostgresBidRepository(BidRepository):
    """Bids table; single-pending is enforced by the partial unique index bids_one_pending_per_bidder."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def insert_pending(self, bid: Bid) -> Bid:
        with storage_errors("insert_bid"):
            try:
                row = await self._pool.fetchrow(
                    f"""
                    INSERT INTO bids (id, location_id, bidder_id, amount, message, status,
                        created_at, updated_at, expires_at)
                    VALUES ($1, $2, $3, $4, $5, 'pending', $6, $7, $8)
                    RETURNING {_BID_COLUMNS}
                    """,
                    bid.id,
                    bid.location_id,
                    bid.bidder_id,
                    bid.amount,
                    bid.message,
                    bid.created_at,
                    bid.updated_at,
                    bid.expires_at,
                )
            except asyncpg.UniqueViolationError:
                raise BidAlreadyPending() from None
        return _row_to_bid(row)

    async def find_pending(self, location_id: str, bidder_id: str) -> Optional[Bid]:
        with storage_errors("find_pending_bid"):
            row = await self._pool.fetchrow(
                f"""
                SELECT {_BID_COLUMNS} FROM bids
                WHERE location_id = $1 AND bidder_id = $2 AND status = 'pending'
                """,
                str(location_id),
                str(bidder_id),
            )
        return _row_to_bid(row) if row else None

    async def get(self, bid_id: str) -> Optional[Bid]:
        with storage_errors("get_bid"):
            row = await self._pool.fetchrow(f"SELECT {_BID_COLUMNS} FROM bids WHERE id = $1", str(bid_id))
        return _row_to_bid(row) if row else None

    async def update_pending(self, bid_id: str, changes: Mapping[str, object], *, now: datetime) -> Optional[Bid]:
        columns = [column for column in _EDITABLE_COLUMNS if column in changes]
        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(columns, start=3))
        set_clause = f"{assignments}, updated_at = $2" if assignments else "updated_at = $2"
        with storage_errors("update_bid"):
            row = await self._pool.fetchrow(
                f"""
                UPDATE bids SET {set_clause}
                WHERE id = $1 AND status = 'pending' AND expires_at > $2
                RETURNING {_BID_COLUMNS}
                """,
                str(bid_id),
                now,
                *[changes[column] for column in columns],
            )
        return _row_to_bid(row) if row else None

    async def delete_pending(self, bid_id: str) -> bool:
        with storage_errors("delete_bid"):
            row = await self._pool.fetchrow(
                "DELETE FROM bids WHERE id = $1 AND status = 'pending' RETURNING id",
                str(bid_id),
            )
        return row is not None

    async def decide(self, bid_id: str, status: BidStatus, *, now: datetime) -> Optional[Bid]:
        with storage_errors("decide_bid"):
            row = await self._pool.fetchrow(
                f"""
                UPDATE bids SET status = $2, decided_at = $3, updated_at = $3
                WHERE id = $1 AND status = 'pending'
                RETURNING {_BID_COLUMNS}
                """,
                str(bid_id),
                status.value,
                now,
            )
        return _row_to_bid(row) if row else None

    async def list_for_location(self, location_id: str) -> List[Bid]:
        with storage_errors("list_location_bids"):
            rows = await self._pool.fetch(
                f"""
                SELECT {_BID_COLUMNS} FROM bids
                WHERE location_id = $1
                ORDER BY amount DESC, created_at ASC
                """,
                str(location_id),
            )
        return [_row_to_bid(row) for row in rows]

    async def list_for_bidder(self, bidder_id: str) -> List[Bid]:
        with storage_errors("list_bidder_bids"):
            rows = await self._pool.fetch(
                f"SELECT {_BID_COLUMNS} FROM bids WHERE bidder_id = $1 ORDER BY created_at DESC",
                str(bidder_id),
            )
        return [_row_to_bid(row) for row in rows]

    async def profiles(self, user_ids: Iterable[str]) -> Dict[str, BidderProfile]:
        ids = sorted({str(user_id) for user_id in user_ids})
        if not ids:
            return {}
        with storage_errors("bidder_profiles"):
            rows = await self._pool.fetch(
                "SELECT id, name, avatar_url, email FROM users WHERE id = ANY($1::text[])",
                ids,
            )
        return {str(row["id"]): BidderProfile.from_record(dict(row)) for row in rows}
