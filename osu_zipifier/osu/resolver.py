"""
Difficulty id -> beatmap set id resolution.

Cache first; every miss is looked up on the osu! API concurrently and written
back to the cache before it is returned. A single failed lookup fails the
whole call. Cache reads and writes block on disk, so they run on an executor.
"""
from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from typing import Dict, Iterable, List, Optional, Tuple

import httpx
import structlog

from ..db.services import ResolutionCache
from ..errors import EmptyInput, MalformedResponse, RemoteLookupFailed
from .http import RetryingClient

logger = structlog.get_logger()


def normalize_ids(ids: Iterable[int]) -> List[int]:
    """Deduplicate and sort."""
    return sorted(set(ids))


class IdentifierResolver:
    """Maps difficulty ids to beatmap set ids."""

    def __init__(
        self,
        cache: ResolutionCache,
        client: RetryingClient,
        api_base: str,
        executor: Optional[Executor] = None,
    ):
        self.cache = cache
        self.client = client
        self.api_base = api_base.rstrip("/")
        self.executor = executor

    def lookup_url(self, difficulty_id: int) -> str:
        return f"{self.api_base}/beatmaps/{difficulty_id}"

    async def partition(self, difficulty_ids: List[int]) -> Tuple[List[int], List[int]]:
        """Split sorted ids into (cached beatmap set ids, unknown difficulty ids)."""
        logger.info(
            "resolve_start",
            num_of_ids_to_resolve=len(difficulty_ids),
            difficulty_ids=difficulty_ids,
        )
        loop = asyncio.get_running_loop()
        cached: Dict[int, int] = await loop.run_in_executor(
            self.executor, self.cache.get_many, difficulty_ids
        )

        beatmap_ids = []
        unknown = []
        for difficulty_id in difficulty_ids:
            if difficulty_id in cached:
                logger.info(
                    "resolve_cache_hit",
                    difficulty_id=difficulty_id,
                    beatmap_id=cached[difficulty_id],
                )
                beatmap_ids.append(cached[difficulty_id])
            else:
                logger.debug("resolve_cache_miss", difficulty_id=difficulty_id)
                unknown.append(difficulty_id)

        logger.info("resolve_cache_summary", found=len(beatmap_ids), total=len(difficulty_ids))
        return beatmap_ids, unknown

    async def lookup(self, difficulty_id: int, access_token: Optional[str]) -> int:
        """Fetch one difficulty from the osu! API and cache its beatmap set id."""
        log = logger.bind(difficulty_id=difficulty_id)
        log.info("resolve_remote_lookup")

        headers = {"Authorization": f"Bearer {access_token or ''}"}
        try:
            response = await self.client.get(self.lookup_url(difficulty_id), headers=headers)
        except httpx.HTTPError as e:
            raise RemoteLookupFailed(
                f"Failed to fetch beatmap ID from difficulty ID {difficulty_id}: {e}"
            ) from e

        if response.status_code != 200:
            raise RemoteLookupFailed(
                f"Failed to fetch beatmap ID from difficulty ID {difficulty_id} "
                f"(status {response.status_code})."
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Response for difficulty ID {difficulty_id} is not valid JSON."
            ) from e

        beatmap_id = payload.get("beatmapset_id") if isinstance(payload, dict) else None
        if not isinstance(beatmap_id, int) or isinstance(beatmap_id, bool) or beatmap_id < 0:
            raise MalformedResponse(
                f'Response for difficulty ID {difficulty_id} has no valid "beatmapset_id".'
            )

        log.info("resolve_cache_store", beatmap_id=beatmap_id)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self.executor, self.cache.put, difficulty_id, beatmap_id)
        return beatmap_id

    async def resolve(
        self, difficulty_ids: Iterable[int], access_token: Optional[str]
    ) -> List[int]:
        """Resolve difficulty ids to beatmap set ids.

        ``access_token`` is the caller's snapshot of the shared credential.
        Returns cache hits followed by fresh lookups.

        Raises:
            EmptyInput: no ids were given
            RemoteLookupFailed: a lookup errored or returned a non-200 status
            MalformedResponse: a lookup payload lacked ``beatmapset_id``
        """
        difficulty_ids = normalize_ids(difficulty_ids)
        if not difficulty_ids:
            logger.error("resolve_empty_input")
            raise EmptyInput("Difficulty Id list is empty.")

        beatmap_ids, unknown = await self.partition(difficulty_ids)
        if unknown:
            resolved = await asyncio.gather(
                *(self.lookup(difficulty_id, access_token) for difficulty_id in unknown)
            )
            beatmap_ids.extend(resolved)

        return beatmap_ids
