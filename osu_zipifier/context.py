"""
Application context shared by every request.

Bundles the process-wide collaborators (settings, resolution cache, artifact
store, HTTP client, write executor) and the one mutable slot: the osu! API
access token. The token is written only by the refresh task and read by the
resolver; everything else is read-only after construction. The context is
passed explicitly to each component that needs it.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx
from sqlalchemy import Engine

from .config import Settings, get_settings
from .db.base import create_db_engine, get_session_local, init_database
from .db.services import ResolutionCache
from .osu.http import RetryingClient, create_http_client
from .store.artifact_store import ArtifactStore


@dataclass
class AppContext:
    settings: Settings
    cache: ResolutionCache
    store: ArtifactStore
    http: RetryingClient
    executor: ThreadPoolExecutor
    _access_token: Optional[str] = field(default=None, repr=False)

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def set_access_token(self, token: str) -> None:
        self._access_token = token

    async def aclose(self) -> None:
        await self.http.aclose()
        self.executor.shutdown(wait=True)


def build_context(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """Create the store directory and cache tables, and wire up the context."""
    settings = settings or get_settings()

    engine = engine or create_db_engine(settings.database_url)
    init_database(engine)

    store = ArtifactStore(
        Path(settings.store_dir),
        suffix=settings.artifact_suffix,
        stale_after=settings.staging_max_age_seconds,
    )
    store.ensure()

    return AppContext(
        settings=settings,
        cache=ResolutionCache(get_session_local(engine)),
        store=store,
        http=create_http_client(settings, transport=transport),
        executor=ThreadPoolExecutor(
            max_workers=settings.write_workers, thread_name_prefix="artifact-writer"
        ),
    )
