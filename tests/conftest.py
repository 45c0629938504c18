"""Test configuration and fixtures."""

from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, List, Union

import httpx
import pytest
import pytest_asyncio

from osu_zipifier.config import Settings
from osu_zipifier.context import AppContext, build_context
from osu_zipifier.store.artifact_store import ArtifactStore

MIRRORS = [
    "https://mirror-one.test/d/{id}",
    "https://mirror-two.test/d/{id}",
    "https://mirror-three.test/d/{id}",
]
OSU_API_BASE = "https://osu.test/api/v2"
OSU_OAUTH_URL = "https://osu.test/oauth/token"

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeRemote:
    """Scripted stand-in for the mirrors and the osu! API.

    Replies are registered per URL and consumed in order; the last reply for a
    URL repeats. Unregistered URLs answer 404.
    """

    def __init__(self):
        self.replies: Dict[str, List[Reply]] = defaultdict(list)
        self.requests: List[httpx.Request] = []

    def add(self, url: str, *replies: Reply) -> None:
        self.replies[url].extend(replies)

    def serve(self, url: str, content: bytes, status_code: int = 200) -> None:
        self.add(url, httpx.Response(status_code, content=content))

    def calls(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)

    def urls(self) -> List[str]:
        return [str(request.url) for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.replies.get(str(request.url))
        if not queue:
            return httpx.Response(404)
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def mirror_url(rank: int, artifact_id: int) -> str:
    return MIRRORS[rank].format(id=artifact_id)


def lookup_url(difficulty_id: int) -> str:
    return f"{OSU_API_BASE}/beatmaps/{difficulty_id}"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a temporary store and an in-memory cache."""
    return Settings(
        _env_file=None,
        store_dir=str(tmp_path / "osu_maps"),
        database_url="sqlite:///:memory:",
        mirror_urls=",".join(MIRRORS),
        http_max_retries=2,
        http_backoff_seconds=0,
        http_backoff_max_seconds=0,
        osu_client_id="client-id",
        osu_client_secret="client-secret",
        osu_api_base=OSU_API_BASE,
        osu_oauth_url=OSU_OAUTH_URL,
        token_retry_seconds=0,
        write_workers=2,
        log_format="console",
    )


@pytest.fixture
def store(tmp_path: Path) -> ArtifactStore:
    artifact_store = ArtifactStore(tmp_path / "store")
    artifact_store.ensure()
    return artifact_store


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest_asyncio.fixture
async def context(settings: Settings, remote: FakeRemote) -> AppContext:
    """Application context wired to the fake remote."""
    ctx = build_context(settings, transport=remote.transport())
    ctx.set_access_token("test-token")
    yield ctx
    await ctx.aclose()
