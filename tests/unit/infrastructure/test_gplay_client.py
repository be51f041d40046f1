"""Tests for GPlayClient with mocked HTTP."""

import json
import re
from pathlib import Path

import httpx
import pytest
from pytest_httpx import HTTPXMock

from gplaybot.config import StreamQuality
from gplaybot.domain.dtos import AuthToken, Track
from gplaybot.domain.exceptions import AuthenticationError, ExternalServiceError
from gplaybot.infrastructure.integrations import GPlayClient, GPlayStation
from gplaybot.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig

BASE_URL = "https://gplay.test/sj/v2.5"
STREAM_URL = "https://gplay.test/music/mplay"


def _track_json(track_id: str, **extra) -> dict:
    return {
        "storeId": track_id,
        "title": f"Title {track_id}",
        "artist": "Artist",
        "durationMillis": "180000",
        **extra,
    }


@pytest.fixture
async def client():
    limiter = RateLimiter(
        config=RateLimiterConfig(max_tokens=100, refill_rate=1000.0, initial_backoff_seconds=0.0),
        name="test",
    )
    gplay = GPlayClient(base_url=BASE_URL, rate_limiter=limiter, stream_url=STREAM_URL)
    gplay.change_token(AuthToken(token="tok", fetched_at=0.0))
    yield gplay
    await gplay.close()


class TestSession:
    """Test connect() and auth headers."""

    async def test_connect_validates_token(self, httpx_mock: HTTPXMock):
        """Test connect() calls the config endpoint with the new token."""
        httpx_mock.add_response(url=re.compile(rf"{BASE_URL}/config.*"), json={})
        gplay = GPlayClient(base_url=BASE_URL)

        await gplay.connect(AuthToken(token="new", fetched_at=0.0))

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "GoogleLogin auth=new"
        assert gplay.is_authenticated is True
        await gplay.close()

    async def test_connect_rejected_restores_previous_token(self, httpx_mock: HTTPXMock):
        """Test a rejected token doesn't stay installed."""
        httpx_mock.add_response(url=re.compile(rf"{BASE_URL}/config.*"), status_code=401)
        gplay = GPlayClient(base_url=BASE_URL)

        with pytest.raises(AuthenticationError):
            await gplay.connect(AuthToken(token="bad", fetched_at=0.0))

        assert gplay.is_authenticated is False
        await gplay.close()

    async def test_request_without_token_raises(self):
        """Test that calls before login fail with AuthenticationError."""
        gplay = GPlayClient(base_url=BASE_URL)

        with pytest.raises(AuthenticationError):
            await gplay.get_track("T1")
        await gplay.close()


class TestTracks:
    """Test track lookup and search."""

    async def test_get_track(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test fetching a single track by id."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/fetchtrack\?.*nid=T1.*"), json=_track_json("T1")
        )

        track = await client.get_track("T1")

        assert track.id == "T1"
        assert track.duration_millis == 180000

    async def test_get_track_401(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that 401 maps to AuthenticationError."""
        httpx_mock.add_response(url=re.compile(rf"{BASE_URL}/fetchtrack.*"), status_code=401)

        with pytest.raises(AuthenticationError):
            await client.get_track("T1")

    async def test_get_track_server_error(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that other HTTP errors map to ExternalServiceError with status."""
        httpx_mock.add_response(url=re.compile(rf"{BASE_URL}/fetchtrack.*"), status_code=404)

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_track("T1")

        assert not isinstance(exc_info.value, AuthenticationError)
        assert exc_info.value.status_code == 404

    async def test_transport_error(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that connection failures never leak httpx exceptions."""
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        with pytest.raises(ExternalServiceError):
            await client.get_track("T1")

    async def test_invalid_json(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that a garbage body is an ExternalServiceError."""
        httpx_mock.add_response(url=re.compile(rf"{BASE_URL}/fetchtrack.*"), text="<html>")

        with pytest.raises(ExternalServiceError):
            await client.get_track("T1")

    async def test_search_keeps_only_tracks(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that non-track entries are skipped and max-results is sent."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/query.*"),
            json={
                "entries": [
                    {"type": "1", "track": _track_json("T1")},
                    {"type": "2", "artist": {"name": "Someone"}},
                    {"type": "1", "track": _track_json("T2")},
                ]
            },
        )

        tracks = await client.search("daft punk", 30)

        assert [track.id for track in tracks] == ["T1", "T2"]
        request = httpx_mock.get_request()
        assert request.url.params["q"] == "daft punk"
        assert request.url.params["max-results"] == "30"

    async def test_retries_after_429(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that a 429 is retried after the limiter's backoff."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/fetchtrack.*"),
            status_code=429,
            headers={"Retry-After": "0"},
        )
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/fetchtrack.*"), json=_track_json("T1")
        )

        track = await client.get_track("T1")

        assert track.id == "T1"
        assert len(httpx_mock.get_requests()) == 2

    async def test_429_with_http_date_retry_after(
        self, client: GPlayClient, httpx_mock: HTTPXMock
    ):
        """Test a Retry-After date falls back to the limiter backoff instead of failing."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/fetchtrack.*"),
            status_code=429,
            headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"},
        )
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/fetchtrack.*"), json=_track_json("T1")
        )

        track = await client.get_track("T1")

        assert track.id == "T1"
        assert len(httpx_mock.get_requests()) == 2


class TestDownload:
    """Test streaming downloads."""

    async def test_download_writes_file(
        self, client: GPlayClient, httpx_mock: HTTPXMock, tmp_path: Path
    ):
        """Test audio bytes are written to the destination with the quality param."""
        httpx_mock.add_response(url=re.compile(rf"{STREAM_URL}.*"), content=b"ID3audio")
        destination = tmp_path / "T1.mp3.tmp"

        await client.download(
            Track(id="T1", title="t", artist="a", duration_millis=1),
            StreamQuality.MEDIUM,
            destination,
        )

        assert destination.read_bytes() == b"ID3audio"
        request = httpx_mock.get_request()
        assert request.url.params["songid"] == "T1"
        assert request.url.params["opt"] == "med"

    async def test_download_error(
        self, client: GPlayClient, httpx_mock: HTTPXMock, tmp_path: Path
    ):
        """Test that a failed download raises ExternalServiceError."""
        httpx_mock.add_response(url=re.compile(rf"{STREAM_URL}.*"), status_code=403)

        with pytest.raises(ExternalServiceError):
            await client.download(
                Track(id="T1", title="t", artist="a", duration_millis=1),
                StreamQuality.HIGH,
                tmp_path / "T1.mp3.tmp",
            )


class TestStations:
    """Test radio station calls."""

    async def test_create_station(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test creating a private station seeded on a track."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/radio/editstation.*"),
            json={"mutate_response": [{"id": "st-1"}]},
        )
        seed = Track(id="T1", title="Seed", artist="a", duration_millis=1)

        station = await client.create(seed, "Station on Seed")

        assert isinstance(station, GPlayStation)
        assert station.station_id == "st-1"
        body = json.loads(httpx_mock.get_request().content)
        created = body["mutations"][0]["createOrGet"]
        assert created["seed"] == {"trackId": "T1", "seedType": 2}
        assert created["isPublic"] is False

    async def test_create_station_malformed(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test that a response without id is an ExternalServiceError."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/radio/editstation.*"), json={"mutate_response": []}
        )

        with pytest.raises(ExternalServiceError):
            await client.create(Track(id="T1", title="", artist="", duration_millis=0), "x")

    async def test_station_tracks_and_delete(self, client: GPlayClient, httpx_mock: HTTPXMock):
        """Test fetching a station feed with context, then deleting the station."""
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/radio/stationfeed.*"),
            json={"data": {"stations": [{"tracks": [_track_json("T9")]}]}},
        )
        httpx_mock.add_response(
            url=re.compile(rf"{BASE_URL}/radio/editstation.*"), json={"mutate_response": []}
        )
        station = GPlayStation(client, "st-1", "Station")
        context = [Track(id="T1", title="", artist="", duration_millis=0)]

        tracks = await station.get_tracks(context)
        await station.delete()

        assert [track.id for track in tracks] == ["T9"]
        feed_request, delete_request = httpx_mock.get_requests()
        feed = json.loads(feed_request.content)["stations"][0]
        assert feed["radioId"] == "st-1"
        assert feed["recentlyPlayed"] == [{"id": "T1", "type": 1}]
        assert json.loads(delete_request.content)["mutations"][0]["delete"] == "st-1"
