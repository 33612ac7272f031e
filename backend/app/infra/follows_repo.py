"""PostgreSQL-backed read access to the follow graph."""

from __future__ import annotations

from typing import Set

import asyncpg

from app.domain.follows.graph import FollowGraph
from app.infra.postgres import storage_errors


class PostgresFollowGraph(FollowGraph):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def is_following(self, follower_id: str, following_id: str) -> bool:
        with storage_errors("is_following"):
            value = await self._pool.fetchval(
                "SELECT 1 FROM followers WHERE follower_id = $1 AND following_id = $2",
                str(follower_id),
                str(following_id),
            )
        return value is not None

    async def followers_of(self, user_id: str) -> Set[str]:
        with storage_errors("followers_of"):
            rows = await self._pool.fetch(
                "SELECT follower_id FROM followers WHERE following_id = $1",
                str(user_id),
            )
        return {str(row["follower_id"]) for row in rows}
