"""Tests for the output checker."""

import json
from pathlib import Path

from verify import check_cards, check_profile_data, verify


def write_outputs(config, entries, cards: str | None = '<div class="card">x</div>\n') -> None:
    data_file = Path(config.data_file)
    data_file.parent.mkdir(parents=True, exist_ok=True)
    data_file.write_text(json.dumps(entries), encoding="utf-8")
    if cards is not None:
        cards_file = Path(config.hall_of_frame_cards_file)
        cards_file.parent.mkdir(parents=True, exist_ok=True)
        cards_file.write_text(cards, encoding="utf-8")


class TestVerify:
    """Test verify() exit codes and report."""

    def test_clean_run(self, config, capsys) -> None:
        write_outputs(config, [{"techfolio": "a.io", "last": "A", "name": "A"}, {"techfolio": "b.io", "last": "B", "name": "B"}])
        assert verify(config) == 0
        out = capsys.readouterr().out
        assert "OK: 4" in out
        assert "NG: 0" in out

    def test_unenriched_entries_reported(self, config, capsys) -> None:
        write_outputs(config, [{"techfolio": "a.io", "last": "A"}, {"techfolio": "b.io", "last": "B", "name": "B"}])
        assert verify(config) == 1
        assert "- a.io" in capsys.readouterr().out

    def test_unsorted_data(self, config) -> None:
        write_outputs(config, [{"techfolio": "b.io", "last": "B", "name": "B"}, {"techfolio": "a.io", "last": "A", "name": "A"}])
        ok, ng, _ = check_profile_data(Path(config.data_file), "last")
        assert (ok, ng) == (2, 1)

    def test_missing_files(self, config, capsys) -> None:
        assert verify(config) == 1
        out = capsys.readouterr().out
        assert "profile data not found" in out
        assert "hall of frame cards not found" in out

    def test_empty_cards_file(self, config) -> None:
        write_outputs(config, [], cards="")
        assert check_cards(Path(config.hall_of_frame_cards_file), ".card") == (0, 1)

    def test_non_object_items_are_not_counted(self, config) -> None:
        write_outputs(config, [{"techfolio": "a.io", "last": "A", "name": "A"}, "stray", 3])
        assert check_profile_data(Path(config.data_file), "last") == (2, 0, [])

    def test_missing_sort_field_must_come_last(self, config) -> None:
        write_outputs(config, [{"techfolio": "x.io", "name": "X"}, {"techfolio": "a.io", "last": "A", "name": "A"}])
        ok, ng, _ = check_profile_data(Path(config.data_file), "last")
        assert (ok, ng) == (2, 1)
        write_outputs(config, [{"techfolio": "a.io", "last": "A", "name": "A"}, {"techfolio": "x.io", "name": "X"}])
        assert check_profile_data(Path(config.data_file), "last") == (3, 0, [])
