"""Shared test fixtures for the portfolio update scripts."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from portfolio_fetch import Config, RequestScheduler


class FakeResponse:
    """Just enough of aiohttp.ClientResponse for fetch_bytes."""

    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False


class FakeSession:
    """Serve canned responses by URL.

    A value is (status, body), an exception instance to raise, or a list of
    those consumed one per request. Unknown URLs answer 404.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.requested: list[str] = []

    def get(self, url: str, timeout: Any = None) -> FakeResponse:
        self.requested.append(url)
        result = self.responses.get(url, (404, b"not found"))
        if isinstance(result, list):
            result = result.pop(0)
        if isinstance(result, BaseException):
            raise result
        status, body = result
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FakeResponse(status, body)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False


@pytest.fixture
def make_session():
    """Factory for FakeSession objects."""
    return FakeSession


@pytest.fixture
def scheduler() -> RequestScheduler:
    return RequestScheduler(0)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with every file under tmp_path."""
    return Config(
        profile_entries_file=str(tmp_path / "profile-entries.json"),
        tmpbios_dir=str(tmp_path / "_tmpbios"),
        data_file=str(tmp_path / "_data" / "data.json"),
        hall_of_frame_url_file=str(tmp_path / "_data" / "Hall-Of-Frame.json"),
        hall_of_frame_cards_file=str(tmp_path / "_includes" / "hallOfFrameCards.html"),
        timeout_sec=5,
    )


@pytest.fixture
def alice_bio() -> dict[str, Any]:
    """A typical techfolio bio.json."""
    return {
        "basics": {
            "name": "Alice Ng",
            "label": "Undergraduate",
            "website": "https://alice.github.io",
            "summary": "Likes compilers.",
            "picture": "alice.github.io/images/alice.jpg",
        },
        "interests": [{"name": "Compilers"}, {"name": "Surfing", "keywords": ["waves"]}],
    }
