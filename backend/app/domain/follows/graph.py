"""Read-only view over the follow graph.

Edges are directed ``(follower_id, following_id)``. Follow/unfollow CRUD belongs to
the social surface; this package only answers membership questions, plus the
in-memory mutators used by local development and tests.
"""

from __future__ import annotations

from typing import Dict, Protocol, Set


class FollowGraph(Protocol):
	async def is_following(self, follower_id: str, following_id: str) -> bool:
		...

	async def followers_of(self, user_id: str) -> Set[str]:
		...


class InMemoryFollowGraph:
	def __init__(self) -> None:
		self._followers: Dict[str, Set[str]] = {}

	def follow(self, follower_id: str, following_id: str) -> None:
		self._followers.setdefault(str(following_id), set()).add(str(follower_id))

	def unfollow(self, follower_id: str, following_id: str) -> None:
		self._followers.get(str(following_id), set()).discard(str(follower_id))

	async def is_following(self, follower_id: str, following_id: str) -> bool:
		return str(follower_id) in self._followers.get(str(following_id), set())

	async def followers_of(self, user_id: str) -> Set[str]:
		return set(self._followers.get(str(user_id), set()))
