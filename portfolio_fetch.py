"""Shared configuration and HTTP helpers for the portfolio update scripts."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiohttp
import json5
import yaml

BIO_URL_TEMPLATE = "https://raw.githubusercontent.com/{username}/{host}/master/_data/bio.json"


@dataclass(slots=True)
class Config:
    """Runtime configuration loaded from config.yaml."""

    profile_entries_file: str = "profile-entries.json"
    tmpbios_dir: str = "_tmpbios"
    data_file: str = "_data/data.json"
    hall_of_frame_url_file: str = "_data/Hall-Of-Frame.json"
    hall_of_frame_cards_file: str = "_includes/hallOfFrameCards.html"
    bio_url_template: str = BIO_URL_TEMPLATE
    sort_field: str = "last"
    card_selector: str = ".card"
    concurrency: int = 12
    delay_sec: float = 0.05
    max_retries: int = 0
    timeout_sec: int = 30
    user_agent: str = "ics-portfolios-updater"


class RequestScheduler:
    """Ensure a minimum delay between request starts."""

    def __init__(self, delay_sec: float) -> None:
        self.delay_sec = max(0.0, delay_sec)
        self._lock = asyncio.Lock()
        self._next_allowed = 0.0

    async def wait_turn(self) -> None:
        if self.delay_sec <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            wait_for = self._next_allowed - now
            if wait_for > 0:
                await asyncio.sleep(wait_for)
                now = time.monotonic()
            self._next_allowed = now + self.delay_sec


async def fetch_bytes(
    session: aiohttp.ClientSession,
    scheduler: RequestScheduler,
    url: str,
    config: Config,
) -> tuple[int, bytes | None]:
    """Fetch URL, retrying 5xx and transport errors up to max_retries times.

    Returns (status, body_or_none). Status is -1 when no response arrived.
    Never raises for network problems; callers decide what a miss means.
    """
    timeout = aiohttp.ClientTimeout(total=config.timeout_sec)
    for attempt in range(config.max_retries + 1):
        try:
            await scheduler.wait_turn()
            async with session.get(url, timeout=timeout) as resp:
                status = resp.status
                if 200 <= status < 300:
                    return status, await resp.read()
                if status < 500 or attempt == config.max_retries:
                    logging.warning("HTTP %s for %s", status, url)
                    return status, None
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            if attempt == config.max_retries:
                logging.warning("Request failed: %s (%s)", url, exc or type(exc).__name__)
                return -1, None
        await asyncio.sleep((2**attempt) * max(0.05, config.delay_sec))
    return -1, None


def parse_json_text(text: str) -> Any:
    """Parse loosely formatted JSON (trailing commas, unquoted keys, comments)."""
    return json5.loads(text)


def parse_json_bytes(data: bytes | None, url: str) -> Any | None:
    """Parse a loose JSON payload, logging and returning None on failure."""
    if data is None:
        return None
    try:
        return parse_json_text(data.decode("utf-8-sig"))
    except (ValueError, UnicodeDecodeError) as exc:
        logging.warning("Invalid JSON at %s: %s", url, exc)
        return None


def load_json_file(path: Path) -> Any:
    """Read and parse a loose JSON file. Errors propagate to the caller."""
    return parse_json_text(path.read_text(encoding="utf-8-sig"))


def load_config(config_path: Path) -> Config:
    """Load config.yaml and apply defaults for missing keys.

    A missing file yields the defaults so the scripts run without flags.
    """
    if not config_path.exists():
        logging.info("No config file at %s; using defaults", config_path)
        return Config()

    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must be a mapping")

    defaults = Config()
    return Config(
        profile_entries_file=str(data.get("profile_entries_file", defaults.profile_entries_file)),
        tmpbios_dir=str(data.get("tmpbios_dir", defaults.tmpbios_dir)).rstrip("/"),
        data_file=str(data.get("data_file", defaults.data_file)),
        hall_of_frame_url_file=str(data.get("hall_of_frame_url_file", defaults.hall_of_frame_url_file)),
        hall_of_frame_cards_file=str(data.get("hall_of_frame_cards_file", defaults.hall_of_frame_cards_file)),
        bio_url_template=str(data.get("bio_url_template", defaults.bio_url_template)),
        sort_field=str(data.get("sort_field", defaults.sort_field)),
        card_selector=str(data.get("card_selector", defaults.card_selector)),
        concurrency=int(data.get("concurrency", defaults.concurrency)),
        delay_sec=float(data.get("delay_sec", defaults.delay_sec)),
        max_retries=max(0, int(data.get("max_retries", defaults.max_retries))),
        timeout_sec=int(data.get("timeout_sec", defaults.timeout_sec)),
        user_agent=str(data.get("user_agent", defaults.user_agent)),
    )


def open_session(config: Config) -> aiohttp.ClientSession:
    """Create the client session shared by every fetch in a run."""
    connector = aiohttp.TCPConnector(limit=max(8, config.concurrency * 2))
    return aiohttp.ClientSession(connector=connector, headers={"User-Agent": config.user_agent})
