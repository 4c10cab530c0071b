"""Build the hall of frame include from cards on techfolio essay/project listings.

Each URL in Hall-Of-Frame.json names one essay or project page. The card for
that page is cut out of its listing page (the page's parent directory), its
links are made absolute against the techfolio root, and the cards are written
one per line, essays first, in listing order.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup, Tag

from portfolio_fetch import Config, RequestScheduler, fetch_bytes, load_json_file

ABSOLUTE_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
SHOWCASE_SECTIONS = ("/essays/", "/projects/")


@dataclass(frozen=True, slots=True)
class CardTarget:
    """Where to find the card for one showcase page."""

    url: str
    listing_url: str
    document_name: str
    base_url: str


def load_showcase_urls(path: Path) -> list[str]:
    """Read the list of showcase page URLs. Errors propagate."""
    data = load_json_file(path)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of URLs")
    return [url for url in data if isinstance(url, str)]


def order_showcase_urls(urls: list[str]) -> list[str]:
    """Essays first, then projects, each in input order. Other URLs are dropped."""
    essays = [url for url in urls if SHOWCASE_SECTIONS[0] in url]
    projects = [url for url in urls if SHOWCASE_SECTIONS[0] not in url and SHOWCASE_SECTIONS[1] in url]
    return essays + projects


def split_card_url(url: str) -> CardTarget:
    """Split 'https://h/essays/x.html' into listing 'https://h/essays/', 'x.html', base 'https://h'."""
    trimmed = url[:-1] if url.endswith("/") else url
    parent, _, document_name = trimmed.rpartition("/")
    base_url = parent.rpartition("/")[0]
    return CardTarget(url=url, listing_url=f"{parent}/", document_name=document_name, base_url=base_url)


def to_absolute_url(relative_url: str, base: str) -> str:
    if ABSOLUTE_URL_RE.match(relative_url) or relative_url.startswith("//"):
        return relative_url
    if not base.endswith("/"):
        base += "/"
    if relative_url.startswith("/"):
        relative_url = relative_url[1:]
    return base + relative_url


def _links_to(card: Tag, document_name: str) -> bool:
    for anchor in card.find_all("a", href=True):
        path = urlparse(anchor["href"]).path.rstrip("/")
        if path.rpartition("/")[2] == document_name:
            return True
    return False


def find_card(html: str, document_name: str, selector: str = ".card") -> Tag | None:
    """Return the first card linking to document_name.

    Falls back to the first card whose markup merely contains document_name,
    which is how listings without a direct link are still matched.
    """
    cards = BeautifulSoup(html, "html.parser").select(selector)
    for card in cards:
        if _links_to(card, document_name):
            return card
    for card in cards:
        if document_name in str(card):
            logging.debug("Card for %s matched by markup only", document_name)
            return card
    return None


def rewrite_card_links(card: Tag, base_url: str) -> Tag:
    """Return a copy of card with absolute href/src values and anchors opening in a new tab."""
    card = copy.copy(card)
    for anchor in card.find_all("a"):
        href = anchor.get("href")
        if href is not None:
            anchor["href"] = to_absolute_url(href, base_url)
        anchor["target"] = "_blank"
    for img in card.find_all("img"):
        src = img.get("src")
        if src is not None:
            img["src"] = to_absolute_url(src, base_url)
    return card


async def fetch_card(
    session: aiohttp.ClientSession,
    scheduler: RequestScheduler,
    url: str,
    config: Config,
) -> str | None:
    """Fetch the listing page for url and return its rewritten card markup."""
    logging.info("Reading %s for hall of frame", url)
    target = split_card_url(url)
    if not target.document_name:
        logging.warning("Cannot derive a document name from %s", url)
        return None

    status, body = await fetch_bytes(session, scheduler, target.listing_url, config)
    if status != 200 or body is None:
        logging.warning("Failed to get listing page %s for %s", target.listing_url, url)
        return None

    card = find_card(body.decode("utf-8", "replace"), target.document_name, config.card_selector)
    if card is None:
        logging.warning("No %s element on %s links to %s", config.card_selector, target.listing_url, target.document_name)
        return None
    return str(rewrite_card_links(card, target.base_url))


async def build_cards(
    session: aiohttp.ClientSession,
    scheduler: RequestScheduler,
    urls: list[str],
    config: Config,
) -> list[str | None]:
    """Fetch every card concurrently. Result i belongs to urls[i]; misses are None."""
    sem = asyncio.Semaphore(max(1, config.concurrency))

    async def worker(url: str) -> str | None:
        async with sem:
            return await fetch_card(session, scheduler, url, config)

    return list(await asyncio.gather(*(worker(url) for url in urls)))


def assemble_cards(fragments: list[str | None]) -> str:
    return "".join(f"{fragment}\n" for fragment in fragments if fragment is not None)


def write_cards(html: str, path: Path) -> bool:
    """Write the cards include. Failures are logged, not raised."""
    logging.info("Writing to %s", path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(html, encoding="utf-8")
    except OSError as exc:
        logging.error("Failed to write %s: %s", path, exc)
        return False
    return True


async def generate(session: aiohttp.ClientSession, scheduler: RequestScheduler, config: Config) -> int:
    """Rebuild the hall of frame include. Return the number of cards written."""
    url_file = Path(config.hall_of_frame_url_file)
    try:
        urls = order_showcase_urls(load_showcase_urls(url_file))
    except (OSError, ValueError) as exc:
        logging.error("Failed to read hall of frame URLs from %s: %s", url_file, exc)
        return 0
    if not urls:
        logging.info("No essay or project URLs in %s; cards left unchanged", url_file)
        return 0

    fragments = await build_cards(session, scheduler, urls, config)
    found = sum(1 for fragment in fragments if fragment is not None)
    logging.info("Hall of frame: %s of %s cards found", found, len(urls))
    if not write_cards(assemble_cards(fragments), Path(config.hall_of_frame_cards_file)):
        return 0
    return found
