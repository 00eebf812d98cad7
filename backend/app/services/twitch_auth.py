import time
from typing import Any, Callable

import requests
from loguru import logger

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
DEFAULT_EXPIRY_MARGIN_SECONDS = 60
DEFAULT_TIMEOUT_SECONDS = 10


class AuthError(Exception):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail


def _error_detail(response: requests.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text[:200] or None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class TwitchTokenCache:
    """
    Single app access token shared by every request.
    Refreshes lazily once `expires_at` passes; concurrent refreshes are harmless.
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        expiry_margin: int = DEFAULT_EXPIRY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.expiry_margin = expiry_margin
        self.clock = clock
        self.token: str | None = None
        self.expires_at: float = 0.0

    def get_token(self) -> str:
        if self.token and self.clock() < self.expires_at:
            return self.token
        return self.refresh()

    def invalidate(self) -> None:
        self.token = None
        self.expires_at = 0.0

    def refresh(self) -> str:
        if not self.client_id or not self.client_secret:
            raise AuthError("Missing TWITCH_CLIENT_ID or TWITCH_CLIENT_SECRET")

        try:
            response = requests.post(
                TWITCH_TOKEN_URL,
                params={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError("Twitch token endpoint unreachable", detail=str(exc)) from exc

        if response.status_code != 200:
            raise AuthError(
                f"Twitch token request failed with status {response.status_code}",
                detail=_error_detail(response),
            )

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise AuthError("Twitch token response is not JSON") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        expires_in = payload.get("expires_in") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthError("Twitch token response has no access_token")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int):
            raise AuthError("Twitch token response has no valid expires_in")

        lifetime = max(expires_in - self.expiry_margin, 0)
        self.token = token
        self.expires_at = self.clock() + lifetime
        logger.info("Twitch app token refreshed, reusing it for {}s", lifetime)
        return token
