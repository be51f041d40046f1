"""Play Music HTTP client: track lookup, search, download and radio stations."""

import logging
import time
import uuid
from pathlib import Path
from typing import Any

import httpx

from gplaybot.config import StreamQuality
from gplaybot.domain.dtos import AuthToken, Track
from gplaybot.domain.exceptions import AuthenticationError, ExternalServiceError
from gplaybot.domain.ports import (
    IRemoteStation,
    ISessionClient,
    IStationService,
    ITrackService,
)
from gplaybot.infrastructure.rate_limiter import RateLimiter, get_gplay_limiter

logger = logging.getLogger(__name__)


class GPlayStation(IRemoteStation):
    """Handle to a radio station on the backend."""

    FEED_SIZE = 25

    def __init__(self, client: "GPlayClient", station_id: str, name: str) -> None:
        self._client = client
        self._station_id = station_id
        self.name = name

    @property
    def station_id(self) -> str:
        return self._station_id

    async def get_tracks(
        self,
        context: list[Track],
        recently_played: bool = True,
        new_recommendations: bool = True,
    ) -> list[Track]:
        return await self._client.get_station_tracks(
            self._station_id,
            context,
            recently_played=recently_played,
            new_recommendations=new_recommendations,
            num_entries=self.FEED_SIZE,
        )

    async def delete(self) -> None:
        await self._client.delete_station(self._station_id)

    def __repr__(self) -> str:
        return f"GPlayStation(id={self._station_id!r}, name={self.name!r})"


class GPlayClient(ITrackService, IStationService, ISessionClient):
    """HTTP client for the Play Music ("sj") API.

    Hey future me - error contract: 401 becomes AuthenticationError (the provider
    refreshes the token on that), every other HTTP or transport failure becomes
    ExternalServiceError. Raw httpx exceptions never leave this class!
    """

    DEFAULT_BASE_URL = "https://mclients.googleapis.com/sj/v2.5"
    STREAM_URL = "https://mclients.googleapis.com/music/mplay"
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    SEED_TYPE_TRACK = 2
    TRACK_ENTRY_TYPE = "1"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        rate_limiter: RateLimiter | None = None,
        stream_url: str = STREAM_URL,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.stream_url = stream_url
        self.timeout = timeout
        self._rate_limiter = rate_limiter
        self._token: AuthToken | None = None
        self._client: httpx.AsyncClient | None = None

    # Lazy on purpose: creating httpx.AsyncClient outside a running loop causes trouble.
    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # SESSION
    # =========================================================================

    async def connect(self, token: AuthToken) -> None:
        """Use token and check the backend accepts it (config endpoint)."""
        previous, self._token = self._token, token
        try:
            response = await self._api_request("GET", "/config")
            self._raise_for_status(response, "config")
        except ExternalServiceError:
            self._token = previous
            raise
        logger.debug("Session established with backend %s", self.base_url)

    def change_token(self, token: AuthToken) -> None:
        self._token = token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    # =========================================================================
    # TRACKS
    # =========================================================================

    async def get_track(self, track_id: str) -> Track:
        response = await self._api_request(
            "GET", "/fetchtrack", params={"nid": track_id}
        )
        self._raise_for_status(response, f"fetchtrack {track_id}")
        what = f"fetchtrack {track_id}"
        return self._parse_track(self._json(response, what), what)

    async def search(self, query: str, max_results: int) -> list[Track]:
        response = await self._api_request(
            "GET",
            "/query",
            params={"q": query, "ct": self.TRACK_ENTRY_TYPE, "max-results": max_results},
        )
        self._raise_for_status(response, "search")
        data = self._json(response, "search")
        tracks = []
        for entry in data.get("entries", []):
            if entry.get("type") != self.TRACK_ENTRY_TYPE or "track" not in entry:
                continue
            tracks.append(self._parse_track(entry["track"], "search"))
        return tracks[:max_results]

    async def download(
        self, track: Track, quality: StreamQuality, destination: Path
    ) -> None:
        """Stream the track's audio into destination.

        Raises:
            ExternalServiceError: On HTTP/transport failure
            OSError: If destination can't be written
        """
        client = await self._get_client()
        limiter = self._limiter()
        params = {"songid": track.id, "opt": quality.api_value, "net": "mob", "pt": "e"}
        try:
            async with limiter:
                async with client.stream(
                    "GET", self.stream_url, params=params, headers=self._headers()
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        self._raise_for_status(response, f"download {track.id}")
                    with destination.open("wb") as out:
                        async for chunk in response.aiter_bytes(self.DOWNLOAD_CHUNK_SIZE):
                            out.write(chunk)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Download of {track.id} failed: {e}") from e
        logger.debug("Downloaded %s to %s", track.id, destination)

    # =========================================================================
    # STATIONS
    # =========================================================================

    async def create(
        self, seed: Track, name: str, is_public: bool = False
    ) -> GPlayStation:
        mutation = {
            "createOrGet": {
                "clientId": str(uuid.uuid4()),
                "deleted": False,
                "imageType": 1,
                "lastModifiedTimestamp": "-1",
                "name": name,
                "recentTimestamp": str(int(time.time() * 1_000_000)),
                "seed": {"trackId": seed.id, "seedType": self.SEED_TYPE_TRACK},
                "tracks": [],
                "isPublic": is_public,
            },
            "includeFeed": False,
            "numEntries": 0,
            "params": {"contentFilter": 1},
        }
        data = await self._edit_station(mutation, f"create station on {seed.id}")
        try:
            station_id = data["mutate_response"][0]["id"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Malformed station response: {data!r}") from e
        return GPlayStation(self, station_id, name)

    async def delete_station(self, station_id: str) -> None:
        mutation = {"delete": station_id, "includeFeed": False, "numEntries": 0}
        await self._edit_station(mutation, f"delete station {station_id}")

    async def get_station_tracks(
        self,
        station_id: str,
        context: list[Track],
        recently_played: bool = True,
        new_recommendations: bool = True,
        num_entries: int = GPlayStation.FEED_SIZE,
    ) -> list[Track]:
        station: dict[str, Any] = {"radioId": station_id, "numEntries": num_entries}
        if recently_played:
            station["recentlyPlayed"] = [
                {"id": track.id, "type": 1} for track in context
            ]
        payload = {
            "contentFilter": 1,
            "stations": [station],
            "newRecommendations": new_recommendations,
        }
        response = await self._api_request(
            "POST", "/radio/stationfeed", json_body=payload
        )
        self._raise_for_status(response, f"station feed {station_id}")
        data = self._json(response, "station feed")
        stations = data.get("data", {}).get("stations", [])
        if not stations:
            return []
        return [
            self._parse_track(item, f"station feed {station_id}")
            for item in stations[0].get("tracks", [])
        ]

    async def _edit_station(self, mutation: dict[str, Any], what: str) -> dict[str, Any]:
        response = await self._api_request(
            "POST", "/radio/editstation", json_body={"mutations": [mutation]}
        )
        self._raise_for_status(response, what)
        return self._json(response, what)

    # =========================================================================
    # REQUEST PLUMBING
    # =========================================================================

    def _limiter(self) -> RateLimiter:
        return self._rate_limiter or get_gplay_limiter()

    def _headers(self) -> dict[str, str]:
        if self._token is None:
            raise AuthenticationError("Not logged in", status_code=None)
        return {"Authorization": f"GoogleLogin auth={self._token.token}"}

    # Hey future me - ALL JSON calls go through here. Rate limited, and 429s are retried with
    # the limiter's adaptive backoff (max_retries times). Anything else is returned as-is and
    # the caller decides via _raise_for_status().
    async def _api_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        client = await self._get_client()
        limiter = self._limiter()
        url = f"{self.base_url}{path}"
        request_params = {"alt": "json", "hl": "en_US", "tier": "aa", **(params or {})}
        headers = self._headers()

        for attempt in range(max_retries + 1):
            try:
                async with limiter:
                    response = await client.request(
                        method, url, params=request_params, json=json_body, headers=headers
                    )
            except httpx.HTTPError as e:
                raise ExternalServiceError(f"{method} {path} failed: {e}") from e

            if response.status_code != 429 or attempt >= max_retries:
                return response

            retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
            wait_time = await limiter.handle_rate_limit_response(retry_after)
            logger.warning(
                "GPlay 429 Rate Limit (attempt %d/%d): waited %.1fs, retrying %s",
                attempt + 1,
                max_retries,
                wait_time,
                path,
            )

        return response

    # Only the delay-seconds form is honoured. HTTP dates and garbage fall back to the backoff.
    @staticmethod
    def _parse_retry_after(value: str | None) -> int | None:
        if not value:
            return None
        try:
            return max(int(value.strip()), 0)
        except ValueError:
            logger.debug("Ignoring unparseable Retry-After header: %r", value)
            return None

    @staticmethod
    def _json(response: httpx.Response, what: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ExternalServiceError(f"Invalid JSON in {what}: {e}") from e
        if not isinstance(data, dict):
            raise ExternalServiceError(f"Unexpected payload in {what}")
        return data

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.status_code == 401:
            raise AuthenticationError(f"Unauthorized: {what}")
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"GPlay API error {response.status_code}: {what}",
                status_code=response.status_code,
            )

    @staticmethod
    def _parse_track(data: dict[str, Any], what: str) -> Track:
        try:
            return Track.from_api(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(f"Malformed track in {what}: {e}") from e

    async def __aenter__(self) -> "GPlayClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
