"""Tests for difficulty id resolution."""

import threading

import httpx
import pytest

from osu_zipifier.errors import EmptyInput, MalformedResponse, RemoteLookupFailed
from osu_zipifier.osu.resolver import IdentifierResolver, normalize_ids

from .conftest import OSU_API_BASE, lookup_url


@pytest.fixture
def resolver(context):
    return IdentifierResolver(
        context.cache, context.http, OSU_API_BASE, executor=context.executor
    )


def beatmap(beatmapset_id):
    return httpx.Response(200, json={"id": 1, "beatmapset_id": beatmapset_id})


class TestResolve:
    @pytest.mark.asyncio
    async def test_cold_cache_uses_remote_and_persists(self, resolver, context, remote):
        remote.add(lookup_url(10), beatmap(1000))
        remote.add(lookup_url(20), beatmap(2000))

        result = await resolver.resolve([20, 10], "token")

        assert sorted(result) == [1000, 2000]
        assert context.cache.get_many([10, 20]) == {10: 1000, 20: 2000}

    @pytest.mark.asyncio
    async def test_warm_cache_issues_no_remote_calls(self, resolver, remote):
        """Resolving the same id twice gives the same answer, remotely once."""
        remote.add(lookup_url(10), beatmap(1000))

        first = await resolver.resolve([10], "token")
        second = await resolver.resolve([10], "token")

        assert first == second == [1000]
        assert remote.calls(lookup_url(10)) == 1

    @pytest.mark.asyncio
    async def test_duplicates_are_looked_up_once(self, resolver, remote):
        remote.add(lookup_url(30), beatmap(3000))

        result = await resolver.resolve([30, 30, 30], "token")

        assert result == [3000]
        assert remote.calls(lookup_url(30)) == 1

    @pytest.mark.asyncio
    async def test_hits_come_before_fresh_lookups(self, resolver, context, remote):
        context.cache.put(50, 5000)
        remote.add(lookup_url(40), beatmap(4000))

        assert await resolver.resolve([40, 50], "token") == [5000, 4000]

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, resolver, remote):
        seen = {}

        def reply(request):
            seen["auth"] = request.headers["Authorization"]
            return beatmap(1)

        remote.add(lookup_url(60), reply)

        await resolver.resolve([60], "snapshot-token")

        assert seen["auth"] == "Bearer snapshot-token"

    @pytest.mark.asyncio
    async def test_difficulties_of_one_set_collapse_later(self, resolver, remote):
        remote.add(lookup_url(71), beatmap(7000))
        remote.add(lookup_url(72), beatmap(7000))

        result = await resolver.resolve([71, 72], "token")

        assert normalize_ids(result) == [7000]


class TestResolveFailures:
    @pytest.mark.asyncio
    async def test_empty_input(self, resolver, remote):
        with pytest.raises(EmptyInput):
            await resolver.resolve([], "token")

        assert remote.requests == []

    @pytest.mark.asyncio
    async def test_non_success_status_fails_whole_call(self, resolver, context, remote):
        remote.add(lookup_url(10), beatmap(1000))
        remote.add(lookup_url(11), httpx.Response(401))

        with pytest.raises(RemoteLookupFailed) as exc_info:
            await resolver.resolve([10, 11], "token")

        assert exc_info.value.code == "remote_lookup_failed"
        assert context.cache.get(11) is None

    @pytest.mark.asyncio
    async def test_unreachable_remote(self, resolver, remote):
        remote.add(lookup_url(12), httpx.ConnectError("down"))

        with pytest.raises(RemoteLookupFailed):
            await resolver.resolve([12], "token")

    @pytest.mark.asyncio
    async def test_missing_field_is_malformed(self, resolver, context, remote):
        remote.add(lookup_url(13), httpx.Response(200, json={"id": 13}))

        with pytest.raises(MalformedResponse) as exc_info:
            await resolver.resolve([13], "token")

        assert exc_info.value.code == "malformed_response"
        assert context.cache.get(13) is None

    @pytest.mark.asyncio
    async def test_non_integer_field_is_malformed(self, resolver, remote):
        remote.add(lookup_url(14), httpx.Response(200, json={"beatmapset_id": "14"}))

        with pytest.raises(MalformedResponse):
            await resolver.resolve([14], "token")

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self, resolver, remote):
        remote.add(lookup_url(15), httpx.Response(200, content=b"<html>"))

        with pytest.raises(MalformedResponse):
            await resolver.resolve([15], "token")


class TestCacheAccess:
    @pytest.mark.asyncio
    async def test_cache_runs_off_the_event_loop_thread(
        self, resolver, context, remote, monkeypatch
    ):
        """SQLite reads and commits must not stall concurrent downloads."""
        loop_thread = threading.current_thread()
        threads = {}
        get_many, put = context.cache.get_many, context.cache.put

        def recording_get_many(difficulty_ids):
            threads["get_many"] = threading.current_thread()
            return get_many(difficulty_ids)

        def recording_put(difficulty_id, beatmap_id):
            threads["put"] = threading.current_thread()
            return put(difficulty_id, beatmap_id)

        monkeypatch.setattr(context.cache, "get_many", recording_get_many)
        monkeypatch.setattr(context.cache, "put", recording_put)
        remote.add(lookup_url(1), beatmap(100))

        assert await resolver.resolve([1], "token") == [100]

        assert threads["get_many"] is not loop_thread
        assert threads["put"] is not loop_thread
        assert context.cache.get(1) == 100
