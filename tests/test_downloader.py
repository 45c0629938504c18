"""Tests for the mirror-failover downloader."""

import httpx
import pytest

from osu_zipifier.errors import NoMirrorAvailable, StoreWriteError
from osu_zipifier.osu.http import RetryingClient
from osu_zipifier.store import artifact_store as artifact_store_module
from osu_zipifier.store.artifact_store import CreateOutcome
from osu_zipifier.store.downloader import Downloader

from .conftest import MIRRORS, mirror_url


@pytest.fixture
def downloader(store, remote):
    client = RetryingClient(
        httpx.AsyncClient(transport=remote.transport()),
        max_retries=1,
        backoff_seconds=0,
        backoff_max_seconds=0,
    )
    return Downloader(store, client, mirrors=MIRRORS)


class TestMirrorFailover:
    @pytest.mark.asyncio
    async def test_first_mirror_success(self, downloader, store, remote):
        remote.serve(mirror_url(0, 1), b"from mirror one")

        outcome = await downloader.download(1)

        assert outcome is CreateOutcome.CREATED
        assert store.read(1) == b"from mirror one"
        assert remote.urls() == [mirror_url(0, 1)]

    @pytest.mark.asyncio
    async def test_falls_back_in_priority_order(self, downloader, store, remote):
        """A failing mirror hands over to the next one by rank."""
        remote.add(mirror_url(0, 2), httpx.Response(500))
        remote.add(mirror_url(1, 2), httpx.Response(404))
        remote.serve(mirror_url(2, 2), b"from mirror three")

        await downloader.download(2)

        assert store.read(2) == b"from mirror three"
        # mirror one is retried once by the client as a 5xx, mirror two is not
        assert remote.urls() == [
            mirror_url(0, 2),
            mirror_url(0, 2),
            mirror_url(1, 2),
            mirror_url(2, 2),
        ]

    @pytest.mark.asyncio
    async def test_network_error_moves_to_next_mirror(self, downloader, store, remote):
        remote.add(mirror_url(0, 3), httpx.ConnectError("refused"))
        remote.serve(mirror_url(1, 3), b"from mirror two")

        await downloader.download(3)

        assert store.read(3) == b"from mirror two"
        assert remote.calls(mirror_url(2, 3)) == 0

    @pytest.mark.asyncio
    async def test_exhaustion_is_terminal(self, downloader, store, remote):
        with pytest.raises(NoMirrorAvailable) as exc_info:
            await downloader.download(4)

        assert exc_info.value.artifact_id == 4
        assert exc_info.value.attempts == len(MIRRORS)
        assert exc_info.value.code == "no_mirror_available"
        assert not store.exists(4)
        assert [url for url in remote.urls()] == [mirror_url(i, 4) for i in range(3)]


class TestStoreCommit:
    @pytest.mark.asyncio
    async def test_existing_artifact_is_not_overwritten(self, downloader, store, remote):
        """Losing the race to another writer counts as success."""
        store.save(5, b"written by another task")
        remote.serve(mirror_url(0, 5), b"late copy")

        outcome = await downloader.download(5)

        assert outcome is CreateOutcome.ALREADY_EXISTS
        assert store.read(5) == b"written by another task"

    @pytest.mark.asyncio
    async def test_write_failure_propagates_without_trying_other_mirrors(
        self, downloader, store, remote, monkeypatch
    ):
        def broken_fsync(fd):
            raise OSError("disk full")

        monkeypatch.setattr(artifact_store_module.os, "fsync", broken_fsync)
        remote.serve(mirror_url(0, 6), b"bytes")
        remote.serve(mirror_url(1, 6), b"bytes")

        with pytest.raises(StoreWriteError):
            await downloader.download(6)

        assert not store.exists(6)
        assert remote.calls(mirror_url(1, 6)) == 0
