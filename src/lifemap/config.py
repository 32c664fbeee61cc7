from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

MergePolicy = Literal["replace", "per_country", "per_year"]


class ColumnsConfig(BaseModel):
    country_name: str = "country_name"
    country_code: str = "country_code"
    year: str = "year"
    value: str = "value"


class DatasetConfig(BaseModel):
    start_year: int = 1960
    end_year: int = 2023
    color_start_year: int = 2000
    color_end_year: int = 2023
    indicator_code: str = "SP.DYN.LE00.IN"

    @model_validator(mode="after")
    def _check_year_order(self) -> DatasetConfig:
        if self.start_year > self.end_year:
            raise ValueError("dataset.start_year must be <= dataset.end_year")
        if self.color_start_year > self.color_end_year:
            raise ValueError("dataset.color_start_year must be <= dataset.color_end_year")
        return self

    def years(self) -> list[int]:
        return list(range(self.start_year, self.end_year + 1))

    def color_years(self) -> list[int]:
        return list(range(self.color_start_year, self.color_end_year + 1))


class InputConfig(BaseModel):
    mode: Literal["wide_csv", "long_csv", "postgres"] = "wide_csv"
    source_path: str | None = None
    db_url: str | None = None
    table_name: str = "life_expectancy"
    boundaries_path: str | None = None
    indicator_metadata_path: str | None = None


class NamesConfig(BaseModel):
    alias_map_path: str = "configs/aliases.csv"
    use_default_aliases: bool = True


class MergeConfig(BaseModel):
    policy: MergePolicy = "replace"


class ColorConfig(BaseModel):
    colormap: str = "RdYlGn"
    no_data_color: str = "#dcdcdc"
    degenerate_margin: float = Field(default=5.0, ge=0.0)
    domain_floor: float = 0.0
    legend_steps: int = Field(default=9, ge=2)


class EditsConfig(BaseModel):
    override_path: str = "edits/override.json"
    history_path: str | None = "edits/history.json"


class OutputConfig(BaseModel):
    float_format: str = "%.2f"
    dataset_path: str = "global_life_expectancy.csv"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    names: NamesConfig = Field(default_factory=NamesConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)
    color: ColorConfig = Field(default_factory=ColorConfig)
    edits: EditsConfig = Field(default_factory=EditsConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _resolve_optional_path(path_value: str | None, base_dir: Path) -> str | None:
    if not path_value:
        return None
    candidate = Path(path_value)
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file must contain a mapping: {path}")

    config = AppConfig.model_validate(data)
    base_dir = path.resolve().parent

    config.input.source_path = _resolve_optional_path(config.input.source_path, base_dir)
    config.input.boundaries_path = _resolve_optional_path(config.input.boundaries_path, base_dir)
    config.input.indicator_metadata_path = _resolve_optional_path(
        config.input.indicator_metadata_path,
        base_dir,
    )
    config.names.alias_map_path = (
        _resolve_optional_path(config.names.alias_map_path, base_dir) or ""
    )
    config.edits.override_path = (
        _resolve_optional_path(config.edits.override_path, base_dir) or ""
    )
    config.edits.history_path = _resolve_optional_path(config.edits.history_path, base_dir)
    config.output.dataset_path = (
        _resolve_optional_path(config.output.dataset_path, base_dir) or ""
    )
    config.input.db_url = (
        config.input.db_url or os.getenv("LIFEMAP_DB_URL") or os.getenv("DATABASE_URL")
    )
    return config
