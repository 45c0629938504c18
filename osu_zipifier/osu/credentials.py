"""
osu! API client-credentials token refresh.

A single background task fetches a token, stores it in the application
context and sleeps until shortly before it expires.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Tuple

import httpx
import structlog

from ..config import Settings
from ..errors import CredentialError
from .http import RetryingClient

logger = structlog.get_logger()


async def fetch_access_token(client: RetryingClient, settings: Settings) -> Tuple[str, int]:
    """Request a new token. Returns ``(access_token, expires_in_seconds)``."""
    logger.info("osu_token_fetch")
    if not settings.has_osu_credentials:
        raise CredentialError("OSU_CLIENT_ID and OSU_CLIENT_SECRET must be set.")

    params = {
        "client_id": settings.osu_client_id,
        "client_secret": settings.osu_client_secret,
        "grant_type": "client_credentials",
        "scope": "public",
    }

    try:
        response = await client.post(settings.osu_oauth_url, data=params)
    except httpx.HTTPError as e:
        raise CredentialError(f"Unable to fetch access token from osu! API: {e}") from e

    if not response.is_success:
        raise CredentialError(
            f"osu! API returned {response.status_code} for the token request."
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise CredentialError("Token response is not valid JSON.") from e

    if not isinstance(payload, dict):
        raise CredentialError("Token response is not a JSON object.")

    access_token = payload.get("access_token")
    expires_in = payload.get("expires_in")
    if not isinstance(access_token, str):
        raise CredentialError('Token response does not have "access_token".')
    if not isinstance(expires_in, int) or isinstance(expires_in, bool):
        raise CredentialError('Token response does not have "expires_in".')

    logger.info("osu_token_fetched", expires_in=expires_in)
    return access_token, expires_in


def next_refresh_delay(expires_in: int, settings: Settings) -> int:
    """Seconds to wait before refreshing a token valid for ``expires_in``."""
    return max(expires_in - settings.token_refresh_margin_seconds, settings.token_retry_seconds)


async def refresh_token_periodically(context, settings: Optional[Settings] = None) -> None:
    """Keep ``context.access_token`` fresh until cancelled."""
    settings = settings or context.settings

    while True:
        try:
            access_token, expires_in = await fetch_access_token(context.http, settings)
        except CredentialError as e:
            logger.error(
                "osu_token_refresh_failed",
                error=e.message,
                retry_in=settings.token_retry_seconds,
            )
            await asyncio.sleep(settings.token_retry_seconds)
            continue

        context.set_access_token(access_token)
        await asyncio.sleep(next_refresh_delay(expires_in, settings))
