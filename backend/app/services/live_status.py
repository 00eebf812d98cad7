from typing import Any, Sequence

import requests
from loguru import logger

try:
    from backend.app.services.twitch_auth import TwitchTokenCache
except ModuleNotFoundError:
    from app.services.twitch_auth import TwitchTokenCache

TWITCH_STREAMS_URL = "https://api.twitch.tv/helix/streams"
STREAMS_BATCH_SIZE = 100


class UpstreamFormatError(Exception):
    pass


def chunked(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def parse_stream_logins(payload: Any) -> set[str]:
    """
    Helix answers {"data": [{"user_login": ...}, ...]}; only live channels appear.
    """
    if not isinstance(payload, dict):
        raise UpstreamFormatError("streams body is not an object")
    records = payload.get("data")
    if not isinstance(records, list):
        raise UpstreamFormatError("streams body has no data list")

    logins: set[str] = set()
    for record in records:
        login = record.get("user_login") if isinstance(record, dict) else None
        if not isinstance(login, str) or not login:
            raise UpstreamFormatError("stream record without user_login")
        logins.add(login.lower())
    return logins


def fetch_stream_batch(channels: Sequence[str], token_cache: TwitchTokenCache, timeout: float) -> set[str]:
    token = token_cache.get_token()
    params: list[tuple[str, Any]] = [("first", STREAMS_BATCH_SIZE)]
    params.extend(("user_login", ch) for ch in channels)

    response = requests.get(
        TWITCH_STREAMS_URL,
        params=params,
        headers={
            "Client-ID": token_cache.client_id or "",
            "Authorization": f"Bearer {token}",
        },
        timeout=timeout,
    )

    if response.status_code == 401:
        # Token revoked early; next request fetches a fresh one.
        token_cache.invalidate()
    if response.status_code != 200:
        raise UpstreamFormatError(f"streams request returned status {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamFormatError("streams body is not JSON") from exc
    return parse_stream_logins(payload)


def fetch_live_channels(
    roster: Sequence[str],
    token_cache: TwitchTokenCache,
    timeout: float = 10,
) -> set[str]:
    """
    Lowercased logins of the roster channels currently live.
    Streams failures degrade to an empty set; AuthError from the token cache propagates.
    """
    live: set[str] = set()
    try:
        for batch in chunked(list(roster), STREAMS_BATCH_SIZE):
            live |= fetch_stream_batch(batch, token_cache, timeout)
    except requests.RequestException as exc:
        logger.warning("Twitch streams request failed, treating all channels as offline: {}", exc)
        return set()
    except UpstreamFormatError as exc:
        logger.warning("Unexpected Twitch streams response, treating all channels as offline: {}", exc)
        return set()
    return live
