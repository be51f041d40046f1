"""Credential exchange for Play Music auth tokens."""

import logging
import time
from collections.abc import Callable

import httpx

from gplaybot.domain.dtos import AuthToken
from gplaybot.domain.exceptions import TokenRefreshException
from gplaybot.domain.ports import ITokenProvider

logger = logging.getLogger(__name__)


class GPlayTokenProvider(ITokenProvider):
    """Exchanges account credentials for an auth token.

    Hey future me - the exchange endpoint answers with plain text, one key=value per line
    ("Auth=...", or "Error=BadAuthentication" with a 403). last_fetched_at is stamped when
    an exchange STARTS, so failed attempts count towards the refresh cooldown too.
    """

    DEFAULT_AUTH_URL = "https://android.clients.google.com/auth"
    SERVICE = "sj"
    APP = "com.google.android.music"
    CLIENT_SIG = "38918a453d07199354f8b19af05ec6562ced5788"

    def __init__(
        self,
        auth_url: str = DEFAULT_AUTH_URL,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.auth_url = auth_url
        self.timeout = timeout
        self._clock = clock
        self._last_fetched_at = 0.0

    @property
    def last_fetched_at(self) -> float:
        return self._last_fetched_at

    def provide_token(self, token: str) -> AuthToken | None:
        if not token or not token.strip():
            return None
        return AuthToken(token=token.strip(), fetched_at=self._clock())

    async def provide_token_for(
        self, username: str, password: str, device_id: str
    ) -> AuthToken:
        self._last_fetched_at = self._clock()
        form = {
            "accountType": "HOSTED_OR_GOOGLE",
            "Email": username,
            "Passwd": password,
            "has_permission": "1",
            "service": self.SERVICE,
            "source": "android",
            "androidId": device_id,
            "app": self.APP,
            "client_sig": self.CLIENT_SIG,
            "device_country": "us",
            "operatorCountry": "us",
            "lang": "en",
            "sdk_version": "17",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.auth_url, data=form)
        except httpx.HTTPError as e:
            raise TokenRefreshException(f"Token request failed: {e}") from e

        fields = self._parse_response(response.text)
        token = fields.get("Auth")
        if response.status_code != 200 or not token:
            error = fields.get("Error")
            logger.warning(
                "Token exchange rejected (status %d, error %s)",
                response.status_code,
                error or "unknown",
            )
            raise TokenRefreshException(
                f"Token request was rejected: {error or response.status_code}",
                error_code=error,
                http_status=response.status_code,
            )

        logger.info("Fetched new auth token for %s", username)
        return AuthToken(token=token, fetched_at=self._last_fetched_at)

    @staticmethod
    def _parse_response(text: str) -> dict[str, str]:
        fields: dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                fields[key.strip()] = value.strip()
        return fields
