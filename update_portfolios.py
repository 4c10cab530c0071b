#!/usr/bin/env python3
"""Refresh the ICS portfolio data used by the Jekyll site.

Steps:
A) Load profile entries (stubs) from profile-entries.json.
B) Merge bio.json from local _tmpbios directories for entries flagged with tmpbio.
C) Fetch bio.json for every other techfolio concurrently and merge the results.
D) Write the sorted entries to _data/data.json.
E) Build the hall of frame cards include.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any

import aiohttp

import hall_of_frame
from portfolio_fetch import (
    Config,
    RequestScheduler,
    fetch_bytes,
    load_config,
    load_json_file,
    open_session,
    parse_json_bytes,
)

ProfileEntry = dict[str, Any]
Bio = dict[str, Any]

SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")
MERGED_FIELDS = ("name", "label", "website", "summary", "picture", "interests")


def canonical_host_name(name: str) -> str:
    """Lowercase, drop trailing slashes, and make sure a scheme is present.

    'Alice.GitHub.io/' and 'https://alice.github.io' both become
    'https://alice.github.io'. Applying it twice changes nothing.
    """
    canonical = name.lower()
    match = SCHEME_RE.match(canonical)
    scheme = match.group(0) if match else "https://"
    rest = canonical[match.end():] if match else canonical
    return scheme + rest.rstrip("/")


def strip_scheme(url: str) -> str:
    """Return the host part of a URL such as 'https://alice.github.io'."""
    _, sep, rest = url.partition("://")
    return rest if sep else url


def fix_picture_prefix(picture_url: str) -> str:
    return picture_url if picture_url.startswith("http") else f"https://{picture_url}"


def interest_names(interests: Any) -> list[str]:
    """Flatten bio.json interests ([{"name": ...}, ...]) to their names."""
    if not isinstance(interests, list):
        return []
    return [item["name"] for item in interests if isinstance(item, dict) and isinstance(item.get("name"), str)]


def profile_sort_key(entry: ProfileEntry, sort_field: str) -> tuple[bool, str]:
    value = entry.get(sort_field)
    return value is None, "" if value is None else str(value)


def bio_json_url(techfolio_host: str, template: str) -> str:
    """Return the raw bio.json URL for a host like 'philipmjohnson.github.io'."""
    host = strip_scheme(techfolio_host).strip("/")
    username = host.split(".")[0]
    return template.format(username=username, host=host)


class ProfileStore:
    """Profile entries loaded from profile-entries.json, enriched in place by bios."""

    def __init__(self, entries: list[ProfileEntry] | None = None) -> None:
        self.entries: list[ProfileEntry] = list(entries or [])

    @classmethod
    def load(cls, path: Path) -> "ProfileStore":
        data = load_json_file(path)
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a list of profile entries")
        entries = [entry for entry in data if isinstance(entry, dict)]
        if len(entries) != len(data):
            logging.warning("Ignoring %s non-object profile entries in %s", len(data) - len(entries), path)
        return cls(entries)

    def partition(self) -> tuple[list[ProfileEntry], list[ProfileEntry]]:
        """Split entries into (local, remote) by presence of the tmpbio marker."""
        local = [entry for entry in self.entries if "tmpbio" in entry]
        remote = [entry for entry in self.entries if "tmpbio" not in entry]
        return local, remote

    def find_by_host(self, host: str) -> ProfileEntry | None:
        """Return the first entry whose techfolio canonicalizes to the same host."""
        wanted = canonical_host_name(host)
        for entry in self.entries:
            techfolio = entry.get("techfolio")
            if isinstance(techfolio, str) and canonical_host_name(techfolio) == wanted:
                return entry
        return None

    def merge_bio(self, bio: Bio) -> ProfileEntry | None:
        """Fill the matching entry's missing fields from bio. Existing values win."""
        if not bio:
            return None
        basics = bio.get("basics")
        if not isinstance(basics, dict):
            basics = {}
        website = basics.get("website")
        if not isinstance(website, str) or not website:
            logging.warning("bio.json without basics.website ignored (%s)", basics.get("name"))
            return None

        bio_host = strip_scheme(website)
        entry = self.find_by_host(bio_host)
        if entry is None:
            logging.warning("Could not find profile entry corresponding to %s (%s)", bio_host, basics.get("name"))
            return None

        picture = basics.get("picture")
        interests = bio.get("interests")
        values = {
            "name": basics.get("name"),
            "label": basics.get("label"),
            "website": canonical_host_name(website),
            "summary": basics.get("summary"),
            "picture": fix_picture_prefix(picture) if isinstance(picture, str) else None,
            "interests": interest_names(interests),
        }
        for field in MERGED_FIELDS:
            if entry.get(field) is None and values[field] is not None:
                entry[field] = values[field]
        return entry

    def sorted_entries(self, sort_field: str) -> list[ProfileEntry]:
        """Entries stably sorted by sort_field; entries lacking it come last."""
        return sorted(self.entries, key=lambda entry: profile_sort_key(entry, sort_field))


async def fetch_bio(
    session: aiohttp.ClientSession,
    scheduler: RequestScheduler,
    techfolio_host: str,
    config: Config,
) -> Bio:
    """Fetch and parse one remote bio.json. Any failure yields an empty bio."""
    url = bio_json_url(techfolio_host, config.bio_url_template)
    status, body = await fetch_bytes(session, scheduler, url, config)
    if status != 200 or body is None:
        logging.warning("Failed to get bio.json for %s.", techfolio_host)
        return {}
    bio = parse_json_bytes(body, url)
    if not isinstance(bio, dict):
        logging.warning("Error: https://%s/_data/bio.json is not a JSON object", techfolio_host)
        return {}
    return bio


async def fetch_remote_bios(
    session: aiohttp.ClientSession,
    scheduler: RequestScheduler,
    entries: list[ProfileEntry],
    config: Config,
) -> list[Bio]:
    """Fetch every entry's bio concurrently; results follow entry order."""
    sem = asyncio.Semaphore(max(1, config.concurrency))

    async def worker(entry: ProfileEntry) -> Bio:
        host = entry.get("techfolio")
        if not isinstance(host, str) or not host:
            logging.warning("Profile entry without techfolio skipped: %s", entry)
            return {}
        async with sem:
            return await fetch_bio(session, scheduler, host, config)

    return list(await asyncio.gather(*(worker(entry) for entry in entries)))


def read_local_bio(tmpbios_dir: Path, marker: str) -> Bio:
    """Read <tmpbios_dir>/<marker>/bio.json. Unreadable files yield an empty bio."""
    path = tmpbios_dir / marker / "bio.json"
    try:
        bio = load_json_file(path)
    except (OSError, ValueError) as exc:
        logging.warning("Failed to read local bio %s: %s", path, exc)
        return {}
    if not isinstance(bio, dict):
        logging.warning("Local bio %s is not a JSON object", path)
        return {}
    return bio


def merge_local_bios(store: ProfileStore, local_entries: list[ProfileEntry], tmpbios_dir: Path) -> int:
    """Merge bios for tmpbio entries inline. Return how many entries were enriched."""
    merged = 0
    for entry in local_entries:
        bio = read_local_bio(tmpbios_dir, str(entry["tmpbio"]))
        if store.merge_bio(bio) is not None:
            merged += 1
    return merged


def write_profile_data(store: ProfileStore, path: Path, sort_field: str) -> bool:
    """Write sorted entries as pretty-printed JSON. Failures are logged, not raised."""
    logging.info("Writing jekyll info file %s", path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(store.sorted_entries(sort_field), ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        logging.error("Failed to write %s: %s", path, exc)
        return False
    return True


async def run(config: Config, skip_hall_of_frame: bool = False) -> int:
    """Execute all steps. Return process exit code."""
    logging.info("Starting update_ics_portfolios with config: %s", config)
    store = ProfileStore.load(Path(config.profile_entries_file))
    local_entries, remote_entries = store.partition()

    local_merged = merge_local_bios(store, local_entries, Path(config.tmpbios_dir))

    scheduler = RequestScheduler(config.delay_sec)
    async with open_session(config) as session:
        bios = await fetch_remote_bios(session, scheduler, remote_entries, config)
        remote_merged = sum(1 for bio in bios if store.merge_bio(bio) is not None)
        wrote_data = write_profile_data(store, Path(config.data_file), config.sort_field)

        cards = 0
        if not skip_hall_of_frame:
            cards = await hall_of_frame.generate(session, scheduler, config)

    logging.info(
        "Summary: entries=%s local=%s/%s remote=%s/%s data_written=%s cards=%s",
        len(store.entries),
        local_merged,
        len(local_entries),
        remote_merged,
        len(remote_entries),
        wrote_data,
        cards,
    )
    return 0


def parse_args() -> argparse.Namespace:
    """CLI options."""
    parser = argparse.ArgumentParser(description="Update ICS portfolio data from techfolio bio.json files")
    parser.add_argument("--config", default="config.yaml", help="Path to config YAML file")
    parser.add_argument("--skip-hall-of-frame", action="store_true", help="Do not rebuild the hall of frame cards")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser.parse_args()


def main() -> None:
    """CLI entry point."""
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")
    config = load_config(Path(args.config))
    raise SystemExit(asyncio.run(run(config, skip_hall_of_frame=args.skip_hall_of_frame)))


if __name__ == "__main__":
    main()
