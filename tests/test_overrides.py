from __future__ import annotations

import json
from pathlib import Path

from lifemap.io.overrides import (
    OverrideRepository,
    dump_override,
    load_override,
    parse_override,
    store_from_payload,
)
from lifemap.preprocess.names import DEFAULT_ALIASES, AliasTable


def test_parse_override_reads_valid_blob() -> None:
    text = json.dumps({"chad": {"2020": 52.5, "2021": None}, "aruba": {"2019": "76.2"}})

    assert parse_override(text) == {
        "chad": {2020: 52.5, 2021: None},
        "aruba": {2019: 76.2},
    }


def test_parse_override_treats_garbage_as_absent() -> None:
    assert parse_override(None) is None
    assert parse_override("   ") is None
    assert parse_override("{not json") is None
    assert parse_override("[1, 2, 3]") is None
    assert parse_override('{"chad": 52.5}') is None


def test_parse_override_drops_unusable_cells() -> None:
    text = json.dumps({"chad": {"2020": "abc", "year": 1.0, "2021": True, "2022": 50.0}})

    assert parse_override(text) == {"chad": {2022: 50.0}}


def test_store_from_payload_canonicalizes_keys() -> None:
    aliases = AliasTable.from_pairs(DEFAULT_ALIASES)

    store = store_from_payload({"Russia": {2020: 70.1}, "": {2020: 1.0}}, aliases=aliases)

    assert store == {"russianfederation": {2020: 70.1}}


def test_dump_override_round_trips() -> None:
    store = {"chad": {2021: None, 2020: 52.5}, "aruba": {}}

    text = dump_override(store)

    assert json.loads(text) == {"aruba": {}, "chad": {"2020": 52.5, "2021": None}}
    assert parse_override(text) == store


def test_repository_save_load_and_clear(tmp_path: Path) -> None:
    repository = OverrideRepository(
        override_path=tmp_path / "edits" / "override.json",
        history_path=tmp_path / "edits" / "history.json",
    )
    assert repository.load() is None
    assert repository.load_journal() is None

    repository.save({"chad": {2020: 52.5}})
    repository.save_journal([{}, {"chad": {2020: 52.5}}], position=1)

    assert repository.load() == {"chad": {2020: 52.5}}
    journal = repository.load_journal()
    assert journal is not None
    assert journal.position == 1
    assert journal.snapshots == [{}, {"chad": {2020: 52.5}}]
    assert not (tmp_path / "edits" / "override.json.tmp").exists()

    repository.clear()
    assert repository.load() is None
    assert repository.load_journal() is None


def test_repository_rejects_inconsistent_journal(tmp_path: Path) -> None:
    history_path = tmp_path / "history.json"
    repository = OverrideRepository(
        override_path=tmp_path / "override.json",
        history_path=history_path,
    )

    history_path.write_text("{broken", encoding="utf-8")
    assert repository.load_journal() is None

    history_path.write_text(json.dumps({"snapshots": [{}], "position": 3}), encoding="utf-8")
    assert repository.load_journal() is None

    history_path.write_text(json.dumps({"snapshots": [[]], "position": 0}), encoding="utf-8")
    assert repository.load_journal() is None


def test_repository_without_history_path_skips_journal(tmp_path: Path) -> None:
    repository = OverrideRepository(override_path=tmp_path / "override.json")

    repository.save_journal([{}], position=0)

    assert repository.load_journal() is None
    assert list(tmp_path.iterdir()) == []


def test_load_override_reads_file_or_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "override.json"
    assert load_override(path) is None

    path.write_text('{"Russia": {"2020": 71.0}}', encoding="utf-8")
    aliases = AliasTable.from_pairs(DEFAULT_ALIASES)
    assert load_override(path, aliases=aliases) == {"russianfederation": {2020: 71.0}}

    path.write_text("not json", encoding="utf-8")
    assert load_override(path) is None
