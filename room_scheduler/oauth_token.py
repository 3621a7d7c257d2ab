import time

import aiohttp

from . import config
from .exceptions import ConfigurationError, DependencyError

# Access tokens are reused until shortly before they expire
_cached_token = None
_cached_until = 0.0
_EXPIRY_MARGIN = 60


async def get_google_oauth_token() -> str:
    """
    Exchanges the configured refresh token for a Calendar API access token.
    """
    global _cached_token, _cached_until

    if _cached_token and time.monotonic() < _cached_until:
        return _cached_token

    if not (config.GOOGLE_CLIENT_ID and config.GOOGLE_CLIENT_SECRET and config.GOOGLE_REFRESH_TOKEN):
        raise ConfigurationError(
            "Missing Google credentials: make sure GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET "
            "and GOOGLE_REFRESH_TOKEN are set in your .env"
        )

    data = {
        "grant_type": "refresh_token",
        "client_id": config.GOOGLE_CLIENT_ID,
        "client_secret": config.GOOGLE_CLIENT_SECRET,
        "refresh_token": config.GOOGLE_REFRESH_TOKEN,
    }

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(config.GOOGLE_TOKEN_URL, data=data) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise DependencyError(f"Google OAuth failed: {resp.status} {text}")
                payload = await resp.json()
    except aiohttp.ClientError as exc:
        raise DependencyError(f"Google OAuth request failed: {exc}") from exc

    _cached_token = payload["access_token"]
    _cached_until = time.monotonic() + int(payload.get("expires_in", 3600)) - _EXPIRY_MARGIN
    return _cached_token
