from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest
from matplotlib import colormaps
from matplotlib.colors import to_hex

from lifemap.config import AppConfig, EditsConfig, NamesConfig
from lifemap.io.overrides import OverrideRepository, parse_override
from lifemap.preprocess.names import DEFAULT_ALIASES, AliasTable
from lifemap.series import records_to_store
from lifemap.session import AddCountry, DeleteCountry, ReplaceDataset, Session, SetValue


def _aliases() -> AliasTable:
    return AliasTable.from_pairs(DEFAULT_ALIASES)


def _records() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "country_name": ["Russian Federation", "United States"],
            "country_code": ["RUS", "USA"],
            "year": [2020, 2020],
            "value": [70.1, 75.0],
        }
    )


def _session(**kwargs: object) -> Session:
    aliases = _aliases()
    base = records_to_store(_records(), aliases)
    return Session(base, aliases, **kwargs)  # type: ignore[arg-type]


def test_boundary_names_resolve_to_indicator_rows() -> None:
    session = _session(eager_years=[2020])

    assert session.get_slice(2020) == {"russianfederation": 70.1, "unitedstates": 75.0}
    assert session.value_for("Russia", 2020) == 70.1
    assert session.value_for("United States of America", 2020) == 75.0
    assert session.value_for("Atlantis", 2020) is None

    stats = session.get_summary(year=2020)
    assert stats is not None
    assert stats.mean == pytest.approx(72.55)
    assert stats.min == 70.1
    assert stats.max == 75.0

    cmap = colormaps["RdYlGn"]
    assert session.color_for(70.1, 2020) == to_hex(cmap(0.0))
    assert session.color_for(75.0, 2020) == to_hex(cmap(1.0))
    assert session.color_for(None, 2020) == "#dcdcdc"


def test_undo_redo_walks_history_and_new_edit_drops_future() -> None:
    session = _session()
    s0 = session.store

    s1 = session.apply_edit(SetValue("Russia", 2020, 71.0))
    assert session.store == s1
    assert s1["russianfederation"][2020] == 71.0

    assert session.undo() == s0
    assert session.redo() == s1

    session.undo()
    s2 = session.apply_edit(AddCountry("Chad"))

    assert session.can_redo is False
    assert session.history == (s0, s2)
    assert s2["chad"] == {}
    assert session.redo() is None


def test_undo_at_start_and_redo_at_end_are_noops() -> None:
    session = _session()

    assert session.can_undo is False
    assert session.undo() is None
    assert session.redo() is None
    assert session.position == 0


def test_edits_never_mutate_earlier_snapshots() -> None:
    session = _session()

    session.apply_edit(SetValue("Russia", 2020, 71.0))
    session.apply_edit(DeleteCountry("United States of America"))

    first = session.history[0]
    assert first["russianfederation"][2020] == 70.1
    assert "unitedstates" in first
    assert "unitedstates" not in session.store


def test_noop_edits_do_not_create_history_entries() -> None:
    session = _session()

    session.apply_edit(AddCountry("Russia"))
    session.apply_edit(AddCountry("..."))
    session.apply_edit(DeleteCountry("Atlantis"))
    session.apply_edit(SetValue("Russia", 2020, "abc"))
    session.apply_edit(ReplaceDataset({"chad": [1, 2]}))  # type: ignore[dict-item]

    assert len(session.history) == 1


def test_set_value_clears_and_creates_cells() -> None:
    session = _session()

    session.apply_edit(SetValue("Russia", 2020, ""))
    assert session.store["russianfederation"][2020] is None
    assert session.get_slice(2020) == {"unitedstates": 75.0}

    session.apply_edit(SetValue("Chad", 2020, "52.5"))
    assert session.store["chad"] == {2020: 52.5}
    assert session.series("chad") == {2020: 52.5}


def test_replace_dataset_canonicalizes_keys() -> None:
    session = _session()

    session.apply_edit(ReplaceDataset({"Russia": {2019: 69.5}}))

    assert session.store == {"russianfederation": {2019: 69.5}}
    assert session.get_summary(year=2020) is None


def test_override_present_at_start_becomes_second_snapshot() -> None:
    session = _session(override={"chad": {2020: 52.0}})

    assert session.position == 1
    assert session.store == {"chad": {2020: 52.0}}
    assert session.undo() == session.base


def test_per_year_policy_layers_override_cells_on_base() -> None:
    session = _session(override={"russianfederation": {2021: 71.5}}, policy="per_year")

    assert session.store["russianfederation"] == {2020: 70.1, 2021: 71.5}
    assert session.store["unitedstates"] == {2020: 75.0}


def test_range_summary_pools_all_countries() -> None:
    session = _session()
    session.apply_edit(SetValue("Russia", 2021, 71.0))

    stats = session.get_summary(start=2020, end=2021)
    assert stats is not None
    assert stats.count == 3


def test_repository_persists_override_and_history(tmp_path: Path) -> None:
    repository = OverrideRepository(
        override_path=tmp_path / "override.json",
        history_path=tmp_path / "history.json",
    )
    session = _session(repository=repository)

    session.apply_edit(SetValue("Chad", 2020, 52.0))

    saved = parse_override(repository.override_path.read_text(encoding="utf-8"))
    assert saved == session.store
    journal = repository.load_journal()
    assert journal is not None
    assert journal.position == 1
    assert len(journal.snapshots) == 2

    session.reset()
    assert not repository.override_path.exists()
    assert not repository.history_path.exists()
    assert len(session.history) == 1


def _config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        names=NamesConfig(alias_map_path=str(tmp_path / "aliases.csv")),
        edits=EditsConfig(
            override_path=str(tmp_path / "edits" / "override.json"),
            history_path=str(tmp_path / "edits" / "history.json"),
        ),
    )


def test_from_config_restores_history_across_sessions(tmp_path: Path) -> None:
    config = _config(tmp_path)
    first = Session.from_config(config, _records())
    first.apply_edit(SetValue("Chad", 2020, 52.0))
    first.undo()

    second = Session.from_config(config, _records())

    assert second.position == 0
    assert second.can_redo is True
    redone = second.redo()
    assert redone is not None
    assert redone["chad"] == {2020: 52.0}


def test_from_config_without_history_file_uses_override_only(tmp_path: Path) -> None:
    config = _config(tmp_path)
    config.edits.history_path = None
    first = Session.from_config(config, _records())
    first.apply_edit(DeleteCountry("Russia"))

    second = Session.from_config(config, _records())

    assert second.position == 1
    assert "russianfederation" not in second.store
    assert "russianfederation" in second.base


def test_empty_override_survives_reload_without_history_file(tmp_path: Path) -> None:
    config = _config(tmp_path)
    config.edits.history_path = None
    first = Session.from_config(config, _records())
    first.apply_edit(DeleteCountry("Russia"))
    first.apply_edit(DeleteCountry("United States"))
    assert first.store == {}

    second = Session.from_config(config, _records())

    assert second.store == {}
    assert second.position == 1
    assert second.get_slice(2020) == {}
    assert second.undo() == second.base
