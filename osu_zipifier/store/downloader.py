"""
Beatmap set downloader with ordered mirror failover.

Mirrors are tried one at a time in priority order. A transport error or an
unsuccessful status moves on to the next mirror; the HTTP client has already
retried transient failures by then. The first successful body is committed to
the artifact store on a dedicated executor.
"""
from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from typing import Optional, Sequence

import httpx
import structlog

from ..errors import NoMirrorAvailable
from ..osu.http import RetryingClient
from .artifact_store import ArtifactStore, CreateOutcome
from .mirrors import MirrorSequencer

logger = structlog.get_logger()


class Downloader:
    """Fetches missing beatmap sets into the artifact store."""

    def __init__(
        self,
        store: ArtifactStore,
        client: RetryingClient,
        mirrors: Sequence[str] = (),
        executor: Optional[Executor] = None,
    ):
        self.store = store
        self.client = client
        self.mirrors = tuple(mirrors)
        self.executor = executor

    async def download(self, artifact_id: int) -> CreateOutcome:
        """Download ``artifact_id`` unless another task commits it first.

        Returns the store outcome; ``ALREADY_EXISTS`` means another writer won
        the race, which counts as success.

        Raises:
            NoMirrorAvailable: every mirror failed
            StoreWriteError: the local write failed (store rolled back)
        """
        log = logger.bind(artifact_id=artifact_id)
        sequencer = MirrorSequencer(artifact_id, self.mirrors)

        for url in sequencer:
            log.info("download_attempt", url=url, rank=sequencer.attempted)
            try:
                response = await self.client.get(url)
            except httpx.HTTPError as e:
                log.info(
                    "download_mirror_error",
                    url=url,
                    error=str(e),
                    detail="Trying the next mirror.",
                )
                continue

            if not response.is_success:
                log.info(
                    "download_mirror_status",
                    url=url,
                    status=response.status_code,
                    detail="Trying the next mirror.",
                )
                continue

            content = response.content
            loop = asyncio.get_running_loop()
            outcome = await loop.run_in_executor(
                self.executor, self.store.save, artifact_id, content
            )
            log.info("download_done", url=url, outcome=outcome.value, size=len(content))
            return outcome

        log.error("download_exhausted", attempts=sequencer.attempted)
        raise NoMirrorAvailable(artifact_id, sequencer.attempted)
