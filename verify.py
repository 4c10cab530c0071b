#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup

from portfolio_fetch import Config, load_config, load_json_file
from update_portfolios import profile_sort_key

CONFIG_PATH = Path("config.yaml")


def check_profile_data(path: Path, sort_field: str) -> tuple[int, int, list[str]]:
    """Return (ok, ng, unenriched techfolios) for the generated data.json."""
    if not path.exists():
        print(f"[NG] profile data not found: {path}")
        return 0, 1, []
    try:
        data: Any = load_json_file(path)
    except (OSError, ValueError) as e:
        print(f"[NG] failed to load profile data: {e}")
        return 0, 1, []
    if not isinstance(data, list):
        print(f"[NG] profile data is not a list: {path}")
        return 0, 1, []

    ok_count = ng_count = 0
    entries = [entry for entry in data if isinstance(entry, dict)]
    keys = [profile_sort_key(entry, sort_field) for entry in entries]
    if keys == sorted(keys):
        ok_count += 1
    else:
        ng_count += 1
        print(f"[NG] {path} is not sorted by '{sort_field}'")

    unenriched = [str(entry.get("techfolio") or entry.get("tmpbio")) for entry in entries if not entry.get("name")]
    if unenriched:
        ng_count += len(unenriched)
    ok_count += len(entries) - len(unenriched)
    return ok_count, ng_count, unenriched


def check_cards(path: Path, selector: str) -> tuple[int, int]:
    if not path.exists():
        print(f"[NG] hall of frame cards not found: {path}")
        return 0, 1
    soup = BeautifulSoup(path.read_text(encoding="utf-8"), "html.parser")
    cards = soup.select(selector)
    if not cards:
        print(f"[NG] no {selector} elements in {path}")
        return 0, 1
    print(f"[OK] {len(cards)} card(s) in {path}")
    return 1, 0


def verify(config: Config) -> int:
    ok_count, ng_count, unenriched = check_profile_data(Path(config.data_file), config.sort_field)
    cards_ok, cards_ng = check_cards(Path(config.hall_of_frame_cards_file), config.card_selector)
    ok_count += cards_ok
    ng_count += cards_ng

    print(f"OK: {ok_count}")
    print(f"NG: {ng_count}")
    print("Entries without bio data:")
    for name in sorted(unenriched):
        print(f"- {name}")

    return 1 if ng_count > 0 else 0


def main() -> int:
    return verify(load_config(CONFIG_PATH))


if __name__ == "__main__":
    sys.exit(main())
