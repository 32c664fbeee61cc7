from __future__ import annotations

import json
from pathlib import Path

import typer

from lifemap.compare import compare_countries, match_key
from lifemap.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from lifemap.io.boundaries import load_boundary_names
from lifemap.io.read import load_indicator_description, load_raw_records, load_wide_csv
from lifemap.io.write import write_summary, write_wide_csv
from lifemap.logging import configure_logging
from lifemap.preprocess.names import unmatched_names
from lifemap.series import records_to_store, store_years
from lifemap.session import AddCountry, DeleteCountry, ReplaceDataset, Session, SetValue

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path) -> AppConfig:
    return load_config(config_path)


def _require_source(source: Path | None, cfg: AppConfig) -> Path | None:
    if cfg.input.mode != "postgres" and source is None and not cfg.input.source_path:
        raise typer.BadParameter(
            "Missing --source. Required when input.mode is a CSV mode and "
            "input.source_path is not configured."
        )
    return source


def _open_session(source: Path | None, cfg: AppConfig) -> Session:
    source = _require_source(source=source, cfg=cfg)
    records = load_raw_records(source, cfg)
    return Session.from_config(cfg, records)


def _require_boundaries(boundaries: Path | None, cfg: AppConfig) -> Path:
    if boundaries is not None:
        return boundaries
    if cfg.input.boundaries_path:
        return Path(cfg.input.boundaries_path)
    raise typer.BadParameter("Missing --boundaries and input.boundaries_path is not configured.")


def _write_dataset(session: Session, target: Path, cfg: AppConfig) -> Path:
    years = cfg.dataset.years()
    wanted = set(years)
    skipped = [year for year in store_years(session.store) if year not in wanted]
    if skipped:
        listed = ", ".join(str(year) for year in skipped)
        typer.echo(f"Skipping years outside {years[0]}-{years[-1]}: {listed}")
    return write_wide_csv(
        session.store,
        target,
        years=years,
        float_format=cfg.output.float_format,
    )


def _echo_edit_state(session: Session, message: str) -> None:
    typer.echo(message)
    typer.echo(f"- countries: {len(session.store)}")
    typer.echo(f"- history: {session.position}/{len(session.history) - 1}")


@app.command("slice")
def slice_command(
    year: int = typer.Option(..., help="Year to project."),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True),
) -> None:
    """Print the canonical key -> value slice for one year."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    year_slice = session.get_slice(year)
    if out is not None:
        write_summary({"year": year, "values": year_slice}, out)
    typer.echo(json.dumps(year_slice, indent=2, sort_keys=True))


@app.command()
def summary(
    year: int | None = typer.Option(None, help="Summarize a single year."),
    start: int | None = typer.Option(None, help="First year of a range (inclusive)."),
    end: int | None = typer.Option(None, help="Last year of a range (inclusive)."),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True),
) -> None:
    """Descriptive statistics for a year or a year range."""
    configure_logging()
    cfg = _load_app_config(config)
    if year is not None and (start is not None or end is not None):
        raise typer.BadParameter("Use either --year or --start/--end, not both.")
    session = _open_session(source, cfg)
    stats = session.get_summary(year=year, start=start, end=end)
    if stats is None:
        typer.echo("No data")
        return

    payload = {"year": year, "start": start, "end": end, **stats.to_dict()}
    metadata_path = cfg.input.indicator_metadata_path
    description = load_indicator_description(
        Path(metadata_path) if metadata_path else None,
        cfg.dataset.indicator_code,
    )
    if description:
        payload["indicator"] = description
    if out is not None:
        write_summary(payload, out)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@app.command()
def colors(
    year: int = typer.Option(..., help="Year used for the color domain."),
    boundaries: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True),
) -> None:
    """Color every boundary name for one year on the diverging scale."""
    configure_logging()
    cfg = _load_app_config(config)
    names = load_boundary_names(_require_boundaries(boundaries, cfg))
    session = _open_session(source, cfg)
    scale = session.color_scale(year)
    features = {}
    for name in names:
        key = session.key_for(name)
        value = session.value_for(name, year)
        features[name] = {"key": key, "value": value, "color": scale(value)}

    domain = scale.domain
    payload = {
        "year": year,
        "domain": None if domain is None else dict(zip(("min", "mean", "max"), domain.as_tuple())),
        "legend": scale.legend_stops(cfg.color.legend_steps),
        "mean_marker": scale.mean_marker(),
        "features": features,
    }
    if out is not None:
        write_summary(payload, out)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@app.command("check-names")
def check_names(
    year: int = typer.Option(..., help="Year whose slice is checked."),
    boundaries: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """List boundary names that would render as "no data"."""
    configure_logging()
    cfg = _load_app_config(config)
    names = load_boundary_names(_require_boundaries(boundaries, cfg))
    session = _open_session(source, cfg)
    missing = unmatched_names(names, session.get_slice(year), session.aliases)
    typer.echo(f"Unmatched boundary names for {year}: {len(missing)} of {len(names)}")
    for name in missing:
        typer.echo(f"- {name}")


@app.command()
def compare(
    countries: list[str] = typer.Argument(..., help="Country names or keys."),
    start: int | None = typer.Option(None),
    end: int | None = typer.Option(None),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Compare descriptive statistics of several countries over a year range."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    keys: list[str] = []
    for name in countries:
        key = match_key(session.key_for(name), session.store.keys())
        if key is None:
            typer.echo(f"No country matches: {name}")
            continue
        if key not in keys:
            keys.append(key)
    if not keys:
        raise typer.Exit(code=1)
    table = compare_countries(session.store, keys, start=start, end=end)
    typer.echo(table.to_string(index=False))


@app.command()
def export(
    out: Path | None = typer.Option(
        None,
        resolve_path=True,
        help="Defaults to output.dataset_path.",
    ),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Write the working series as a Country Name x year CSV."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    path = _write_dataset(session, out or Path(cfg.output.dataset_path), cfg)
    typer.echo(f"Dataset written to: {path}")


@app.command()
def publish(
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Overwrite the wide CSV source with the working series and drop the edits."""
    configure_logging()
    cfg = _load_app_config(config)
    if cfg.input.mode != "wide_csv":
        raise typer.BadParameter("publish only supports input.mode 'wide_csv'.")
    session = _open_session(source, cfg)
    path = _write_dataset(session, source or Path(str(cfg.input.source_path)), cfg)
    session.reset()
    typer.echo(f"Dataset published to: {path}")


@app.command("import-csv")
def import_csv(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Replace the working series with the contents of a wide CSV."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    records = load_wide_csv(csv, years=cfg.dataset.years())
    session.apply_edit(ReplaceDataset(records_to_store(records, session.aliases)))
    _echo_edit_state(session, f"Imported {csv.name}")


@app.command("set-value")
def set_value(
    country: str = typer.Argument(..., help="Country name or key."),
    year: int = typer.Argument(...),
    value: str | None = typer.Argument(None, help="New value; omit to clear the cell."),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Set or clear one country/year value."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    before = session.position
    session.apply_edit(SetValue(key=country, year=year, value=value))
    if session.position == before:
        raise typer.BadParameter(f"Not a numeric value: {value}")
    _echo_edit_state(session, f"Set {session.key_for(country)}/{year}")


@app.command("add-country")
def add_country(
    name: str = typer.Argument(...),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Add an empty series for a new country."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    before = session.position
    session.apply_edit(AddCountry(name=name))
    message = "Added" if session.position != before else "Already present:"
    _echo_edit_state(session, f"{message} {session.key_for(name)}")


@app.command("delete-country")
def delete_country(
    country: str = typer.Argument(..., help="Country name or key."),
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Delete all data for one country."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    before = session.position
    session.apply_edit(DeleteCountry(key=country))
    message = "Deleted" if session.position != before else "Not found:"
    _echo_edit_state(session, f"{message} {session.key_for(country)}")


@app.command()
def undo(
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Step back one edit."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    message = "Undo successful" if session.undo() is not None else "Nothing to undo"
    _echo_edit_state(session, message)


@app.command()
def redo(
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Re-apply the last undone edit."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    message = "Redo successful" if session.redo() is not None else "Nothing to redo"
    _echo_edit_state(session, message)


@app.command()
def reset(
    source: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Drop all edits and return to the source data."""
    configure_logging()
    cfg = _load_app_config(config)
    session = _open_session(source, cfg)
    session.reset()
    _echo_edit_state(session, "Data reset to original")


if __name__ == "__main__":
    app()
