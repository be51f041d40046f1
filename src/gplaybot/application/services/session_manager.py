"""Auth session lifecycle: login with token reuse and rate-limited token refresh."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import SecretStr

from gplaybot.domain.dtos import AuthToken
from gplaybot.domain.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    TokenRefreshException,
)
from gplaybot.domain.ports import ISessionClient, ITokenProvider, ITokenStore

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Where the session is in its lifecycle."""

    NO_TOKEN = "no_token"
    LOGGING_IN = "logging_in"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass(frozen=True)
class Credentials:
    """Account credentials for a fresh token exchange."""

    username: str
    password: SecretStr = field(repr=False)
    device_id: SecretStr = field(repr=False)


class SessionManager:
    """Holds the live auth token for one plugin session.

    Hey future me - there is exactly ONE live token. login() runs once at startup,
    refresh_if_allowed() runs whenever the backend answers 401. Refreshes are serialized
    behind _refresh_lock and rate-limited against the token provider's last fetch time,
    so a burst of 401s costs at most one credential exchange per cooldown window.
    """

    def __init__(
        self,
        client: ISessionClient,
        token_provider: ITokenProvider,
        credentials: Credentials,
        token_store: ITokenStore,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._token_provider = token_provider
        self._credentials = credentials
        self._token_store = token_store
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._refresh_lock = asyncio.Lock()
        self._token: AuthToken | None = None
        self._state = SessionState.NO_TOKEN

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def token(self) -> AuthToken | None:
        return self._token

    async def login(self) -> None:
        """Log in, reusing a stored token if the backend still accepts it.

        Raises:
            AuthenticationError: If neither the stored token nor a fresh exchange works
        """
        self._state = SessionState.LOGGING_IN
        stored = self._token_store.get_token()
        if stored and stored.strip():
            logger.info("Trying to login with existing token.")
            token = self._token_provider.provide_token(stored)
            if token is not None:
                try:
                    await self._client.connect(token)
                except ExternalServiceError as e:
                    logger.warning(
                        "Stored token rejected (%s), fetching a new one.", e.message
                    )
                    self._token_store.set_token(None)
                else:
                    self._token = token
                    self._state = SessionState.AUTHENTICATED
                    return
            else:
                self._token_store.set_token(None)

        logger.info("Fetching new token.")
        try:
            token = await self._fetch_fresh_token()
            await self._client.connect(token)
        except (TokenRefreshException, ExternalServiceError) as e:
            self._state = SessionState.FAILED
            raise AuthenticationError(f"Logging into GPlayMusic failed: {e}") from e

        self._token_store.set_token(token.token)
        self._token = token
        self._state = SessionState.AUTHENTICATED

    async def refresh_if_allowed(self) -> bool:
        """Swap in a fresh token unless the last exchange was too recent.

        Returns:
            True if a new token is live, False if on cooldown or the exchange failed.
            On False the caller must NOT retry immediately.
        """
        async with self._refresh_lock:
            elapsed = self._clock() - self._token_provider.last_fetched_at
            if elapsed < self._cooldown_seconds:
                logger.info(
                    "Token request on cooldown. Please wait %.0f seconds.",
                    self._cooldown_seconds - elapsed,
                )
                return False

            logger.info("Authorization expired. Requesting new token.")
            self._state = SessionState.REFRESHING
            try:
                token = await self._fetch_fresh_token()
            except (TokenRefreshException, ExternalServiceError):
                logger.exception(
                    "Exception while trying to generate new token. "
                    "Unable to authenticate client."
                )
                self._state = SessionState.FAILED
                return False

            self._client.change_token(token)
            self._token_store.set_token(token.token)
            self._token = token
            self._state = SessionState.AUTHENTICATED
            return True

    async def _fetch_fresh_token(self) -> AuthToken:
        return await self._token_provider.provide_token_for(
            self._credentials.username,
            self._credentials.password.get_secret_value(),
            self._credentials.device_id.get_secret_value(),
        )
