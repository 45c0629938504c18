"""
Batch orchestration: resolve, download what is missing, zip.
"""

from __future__ import annotations

import asyncio
from typing import List

import structlog

from ..context import AppContext
from ..osu.resolver import IdentifierResolver, normalize_ids
from ..schemas.request import IdType, ServeMapsRequest
from ..store.archiver import Archiver
from ..store.downloader import Downloader

logger = structlog.get_logger()


class BatchOrchestrator:
    """
    Serves one request batch end to end.

    - Difficulty ids are resolved to beatmap set ids first
    - Ids are deduplicated and sorted
    - Every missing beatmap set is downloaded concurrently, one task each
    - Any failed download fails the batch; no partial archive is produced
    - The archive lists beatmap sets in ascending id order
    """

    def __init__(self, context: AppContext):
        self.context = context
        self.resolver = IdentifierResolver(
            context.cache,
            context.http,
            context.settings.osu_api_base,
            executor=context.executor,
        )
        self.downloader = Downloader(
            context.store,
            context.http,
            mirrors=context.settings.mirrors,
            executor=context.executor,
        )
        self.archiver = Archiver(context.store)

    async def beatmap_ids(self, request: ServeMapsRequest) -> List[int]:
        """Normalized beatmap set ids of a request."""
        if request.id_type is IdType.DIFFICULTY:
            # Snapshot: a concurrent refresh may replace the slot mid-request
            access_token = self.context.access_token
            ids = await self.resolver.resolve(request.maps, access_token)
        else:
            ids = request.maps
        return normalize_ids(ids)

    async def acquire(self, beatmap_ids: List[int]) -> List[int]:
        """Download every beatmap set absent from the store. Returns those ids."""
        absent = self.context.store.missing(beatmap_ids)
        if absent:
            await asyncio.gather(*(self.downloader.download(map_id) for map_id in absent))
        return absent

    async def serve(self, request: ServeMapsRequest) -> bytes:
        """Return the zip archive for ``request``."""
        map_list = await self.beatmap_ids(request)
        log = logger.bind(id_type=request.id_type.value, maps=len(map_list))
        log.info("batch_start")

        downloaded = await self.acquire(map_list)
        log.info("batch_downloads_done", downloaded=len(downloaded))

        loop = asyncio.get_running_loop()
        archive = await loop.run_in_executor(self.context.executor, self.archiver.pack, map_list)
        log.info("batch_done", size=len(archive))
        return archive
