"""Tests for the retrying HTTP client."""

import httpx
import pytest

from osu_zipifier.osu.http import RetryingClient, create_http_client, is_transient_response

URL = "https://mirror-one.test/d/1"


def make_client(remote, max_retries: int = 2) -> RetryingClient:
    return RetryingClient(
        httpx.AsyncClient(transport=remote.transport()),
        max_retries=max_retries,
        backoff_seconds=0,
        backoff_max_seconds=0,
    )


class TestTransientClassification:
    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503])
    def test_transient_statuses(self, status):
        assert is_transient_response(httpx.Response(status))

    @pytest.mark.parametrize("status", [200, 301, 400, 401, 404])
    def test_final_statuses(self, status):
        assert not is_transient_response(httpx.Response(status))


class TestRetryingClient:
    @pytest.mark.asyncio
    async def test_retries_transient_status_until_success(self, remote):
        remote.add(URL, httpx.Response(503), httpx.Response(200, content=b"ok"))
        client = make_client(remote)

        response = await client.get(URL)

        assert response.status_code == 200
        assert response.content == b"ok"
        assert remote.calls(URL) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_returns_last_response_when_retries_run_out(self, remote):
        remote.add(URL, httpx.Response(502))
        client = make_client(remote, max_retries=2)

        response = await client.get(URL)

        assert response.status_code == 502
        assert remote.calls(URL) == 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_does_not_retry_client_errors(self, remote):
        remote.add(URL, httpx.Response(404))
        client = make_client(remote)

        response = await client.get(URL)

        assert response.status_code == 404
        assert remote.calls(URL) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_retries_network_errors(self, remote):
        remote.add(URL, httpx.ConnectError("refused"), httpx.Response(200, content=b"ok"))
        client = make_client(remote)

        response = await client.get(URL)

        assert response.status_code == 200
        assert remote.calls(URL) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_raises_last_network_error(self, remote):
        remote.add(URL, httpx.ReadTimeout("slow"))
        client = make_client(remote, max_retries=1)

        with pytest.raises(httpx.ReadTimeout):
            await client.get(URL)

        assert remote.calls(URL) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_post_forwards_form_data(self, remote):
        seen = {}

        def reply(request):
            seen["body"] = request.content
            return httpx.Response(200)

        remote.add(URL, reply)
        client = make_client(remote)

        await client.post(URL, data={"grant_type": "client_credentials"})

        assert seen["body"] == b"grant_type=client_credentials"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_factory_uses_settings(self, settings, remote):
        client = create_http_client(settings, transport=remote.transport())

        assert client.max_retries == settings.http_max_retries
        assert client.client.follow_redirects
        await client.aclose()
