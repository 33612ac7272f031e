"""PostgreSQL persistence for locations, routes and selective shares."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import asyncpg

from app.domain.places.models import CleanupStatus, Location, Route, Waypoint
from app.domain.places.repo import PlacesRepository, Shares
from app.infra.postgres import storage_errors

_LOCATION_COLUMNS = "id, owner_id, name, lat, lng, url, visibility, accepts_bids, created_at, updated_at, expires_at"
_ROUTE_COLUMNS = (
    "id, owner_id, name, description, url, visibility, distance_m, estimated_duration_s, "
    "created_at, updated_at, expires_at"
)

# kind -> (share table, record column)
_SHARE_TABLES = {
    Location.kind: ("location_followers", "location_id"),
    Route.kind: ("route_followers", "route_id"),
}


def _row_to_location(row: asyncpg.Record) -> Location:
    return Location.from_record(dict(row))


def _row_to_waypoint(row: asyncpg.Record) -> Waypoint:
    return Waypoint(
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        name=row["name"],
        order_index=int(row["order_index"]),
    )


async def _replace_shares(conn: asyncpg.Connection, kind: str, record_id: str, shares: Shares) -> None:
    if shares is None:
        return
    table, column = _SHARE_TABLES[kind]
    await conn.execute(f"DELETE FROM {table} WHERE {column} = $1", record_id)
    if shares:
        await conn.executemany(
            f"INSERT INTO {table} ({column}, follower_id) VALUES ($1, $2)",
            [(record_id, follower_id) for follower_id in shares],
        )


async def _replace_waypoints(conn: asyncpg.Connection, route: Route) -> None:
    await conn.execute("DELETE FROM route_points WHERE route_id = $1", route.id)
    await conn.executemany(
        "INSERT INTO route_points (route_id, order_index, lat, lng, name) VALUES ($1, $2, $3, $4, $5)",
        [(route.id, point.order_index, point.lat, point.lng, point.name) for point in route.waypoints],
    )


class PostgresPlacesRepository(PlacesRepository):
    """Stores locations/routes; share and waypoint rows are rewritten in the same transaction."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def insert_location(self, location: Location, shares: Tuple[str, ...] = ()) -> Location:
        with storage_errors("insert_location"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        f"""
                        INSERT INTO locations (id, owner_id, name, lat, lng, url, visibility, accepts_bids,
                            created_at, updated_at, expires_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                        RETURNING {_LOCATION_COLUMNS}
                        """,
                        location.id,
                        location.owner_id,
                        location.name,
                        location.lat,
                        location.lng,
                        location.url,
                        location.visibility.value,
                        location.accepts_bids,
                        location.created_at,
                        location.updated_at,
                        location.expires_at,
                    )
                    await _replace_shares(conn, Location.kind, location.id, tuple(shares))
        return _row_to_location(row)

    async def get_location(self, location_id: str) -> Optional[Location]:
        with storage_errors("get_location"):
            row = await self._pool.fetchrow(
                f"SELECT {_LOCATION_COLUMNS} FROM locations WHERE id = $1",
                str(location_id),
            )
        return _row_to_location(row) if row else None

    async def list_locations(self, owner_id: Optional[str] = None) -> List[Location]:
        with storage_errors("list_locations"):
            if owner_id is None:
                rows = await self._pool.fetch(
                    f"SELECT {_LOCATION_COLUMNS} FROM locations ORDER BY created_at DESC"
                )
            else:
                rows = await self._pool.fetch(
                    f"SELECT {_LOCATION_COLUMNS} FROM locations WHERE owner_id = $1 ORDER BY created_at DESC",
                    str(owner_id),
                )
        return [_row_to_location(row) for row in rows]

    async def save_location(self, location: Location, *, shares: Shares = None) -> Optional[Location]:
        with storage_errors("save_location"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        f"""
                        UPDATE locations
                        SET name = $2, url = $3, visibility = $4, accepts_bids = $5,
                            expires_at = $6, updated_at = $7
                        WHERE id = $1
                        RETURNING {_LOCATION_COLUMNS}
                        """,
                        location.id,
                        location.name,
                        location.url,
                        location.visibility.value,
                        location.accepts_bids,
                        location.expires_at,
                        location.updated_at,
                    )
                    if row is None:
                        return None
                    await _replace_shares(conn, Location.kind, location.id, shares)
        return _row_to_location(row)

    async def delete_location(self, location_id: str) -> bool:
        # bids and share rows go with it (ON DELETE CASCADE)
        with storage_errors("delete_location"):
            row = await self._pool.fetchrow(
                "DELETE FROM locations WHERE id = $1 RETURNING id",
                str(location_id),
            )
        return row is not None

    async def _waypoints_for(self, route_ids: Sequence[str]) -> Dict[str, List[Waypoint]]:
        rows = await self._pool.fetch(
            """
            SELECT route_id, order_index, lat, lng, name
            FROM route_points
            WHERE route_id = ANY($1::text[])
            ORDER BY route_id, order_index
            """,
            list(route_ids),
        )
        points: Dict[str, List[Waypoint]] = defaultdict(list)
        for row in rows:
            points[str(row["route_id"])].append(_row_to_waypoint(row))
        return points

    async def insert_route(self, route: Route, shares: Tuple[str, ...] = ()) -> Route:
        with storage_errors("insert_route"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        """
                        INSERT INTO routes (id, owner_id, name, description, url, visibility, distance_m,
                            estimated_duration_s, created_at, updated_at, expires_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                        """,
                        route.id,
                        route.owner_id,
                        route.name,
                        route.description,
                        route.url,
                        route.visibility.value,
                        route.distance_m,
                        route.estimated_duration_s,
                        route.created_at,
                        route.updated_at,
                        route.expires_at,
                    )
                    await _replace_waypoints(conn, route)
                    await _replace_shares(conn, Route.kind, route.id, tuple(shares))
        stored = await self.get_route(route.id)
        assert stored is not None
        return stored

    async def get_route(self, route_id: str) -> Optional[Route]:
        with storage_errors("get_route"):
            row = await self._pool.fetchrow(f"SELECT {_ROUTE_COLUMNS} FROM routes WHERE id = $1", str(route_id))
            if row is None:
                return None
            points = await self._waypoints_for([str(row["id"])])
        return Route.from_record(dict(row), points.get(str(row["id"]), []))

    async def list_routes(self, owner_id: Optional[str] = None) -> List[Route]:
        with storage_errors("list_routes"):
            if owner_id is None:
                rows = await self._pool.fetch(f"SELECT {_ROUTE_COLUMNS} FROM routes ORDER BY created_at DESC")
            else:
                rows = await self._pool.fetch(
                    f"SELECT {_ROUTE_COLUMNS} FROM routes WHERE owner_id = $1 ORDER BY created_at DESC",
                    str(owner_id),
                )
            points = await self._waypoints_for([str(row["id"]) for row in rows]) if rows else {}
        return [Route.from_record(dict(row), points.get(str(row["id"]), [])) for row in rows]

    async def save_route(self, route: Route, *, shares: Shares = None, replace_waypoints: bool = False) -> Optional[Route]:
        with storage_errors("save_route"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    status = await conn.execute(
                        """
                        UPDATE routes
                        SET name = $2, description = $3, url = $4, visibility = $5, distance_m = $6,
                            estimated_duration_s = $7, expires_at = $8, updated_at = $9
                        WHERE id = $1
                        """,
                        route.id,
                        route.name,
                        route.description,
                        route.url,
                        route.visibility.value,
                        route.distance_m,
                        route.estimated_duration_s,
                        route.expires_at,
                        route.updated_at,
                    )
                    if status.endswith(" 0"):
                        return None
                    if replace_waypoints:
                        await _replace_waypoints(conn, route)
                    await _replace_shares(conn, Route.kind, route.id, shares)
        return await self.get_route(route.id)

    async def delete_route(self, route_id: str) -> bool:
        with storage_errors("delete_route"):
            row = await self._pool.fetchrow("DELETE FROM routes WHERE id = $1 RETURNING id", str(route_id))
        return row is not None

    async def shares_for(self, kind: str, record_id: str) -> List[str]:
        table, column = _SHARE_TABLES[kind]
        with storage_errors("shares_for"):
            rows = await self._pool.fetch(
                f"SELECT follower_id FROM {table} WHERE {column} = $1 ORDER BY follower_id",
                str(record_id),
            )
        return [str(row["follower_id"]) for row in rows]

    async def shares_for_many(self, kind: str, record_ids: Sequence[str]) -> Dict[str, List[str]]:
        if not record_ids:
            return {}
        table, column = _SHARE_TABLES[kind]
        with storage_errors("shares_for_many"):
            rows = await self._pool.fetch(
                f"SELECT {column} AS record_id, follower_id FROM {table} WHERE {column} = ANY($1::text[])",
                [str(record_id) for record_id in record_ids],
            )
        shares: Dict[str, List[str]] = defaultdict(list)
        for row in rows:
            shares[str(row["record_id"])].append(str(row["follower_id"]))
        return dict(shares)

    async def delete_public_locations_created_before(self, cutoff: datetime) -> int:
        with storage_errors("sweep_public_locations"):
            rows = await self._pool.fetch(
                "DELETE FROM locations WHERE visibility = 'public' AND created_at < $1 RETURNING id",
                cutoff,
            )
        return len(rows)

    async def count_public_locations_created_before(self, cutoff: datetime) -> int:
        with storage_errors("count_public_locations"):
            value = await self._pool.fetchval(
                "SELECT COUNT(*) FROM locations WHERE visibility = 'public' AND created_at < $1",
                cutoff,
            )
        return int(value or 0)

    async def purge_expired(self, now: datetime) -> Tuple[int, int]:
        with storage_errors("purge_expired"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    locations = await conn.fetch(
                        "DELETE FROM locations WHERE expires_at IS NOT NULL AND expires_at < $1 RETURNING id",
                        now,
                    )
                    routes = await conn.fetch(
                        "DELETE FROM routes WHERE expires_at IS NOT NULL AND expires_at < $1 RETURNING id",
                        now,
                    )
        return len(locations), len(routes)

    async def cleanup_status(self, now: datetime, cutoff: datetime) -> CleanupStatus:
        with storage_errors("cleanup_status"):
            row = await self._pool.fetchrow(
                """
                SELECT
                    (SELECT COUNT(*) FROM locations WHERE expires_at IS NOT NULL AND expires_at < $1)
                        + (SELECT COUNT(*) FROM routes WHERE expires_at IS NOT NULL AND expires_at < $1) AS expired,
                    (SELECT COUNT(*) FROM locations WHERE expires_at >= $1)
                        + (SELECT COUNT(*) FROM routes WHERE expires_at >= $1) AS scheduled,
                    (SELECT COUNT(*) FROM locations WHERE visibility = 'public') AS public_total,
                    (SELECT COUNT(*) FROM locations WHERE visibility = 'public' AND created_at < $2) AS sweepable
                """,
                now,
                cutoff,
            )
        return CleanupStatus(
            expired_records=int(row["expired"]),
            scheduled_records=int(row["scheduled"]),
            public_locations=int(row["public_total"]),
            sweep_eligible=int(row["sweepable"]),
        )
