from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

PREFERRED_TOPOLOGY_OBJECT = "countries"


def _feature_names(features: Iterable[Any]) -> list[str]:
    names: list[str] = []
    for feature in features:
        if not isinstance(feature, dict):
            continue
        properties = feature.get("properties") or {}
        name = properties.get("name") if isinstance(properties, dict) else None
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


def boundary_names_from_payload(payload: dict[str, Any]) -> list[str]:
    """Country names from a TopoJSON topology or a GeoJSON feature collection."""
    if "objects" in payload:
        objects = payload.get("objects") or {}
        if PREFERRED_TOPOLOGY_OBJECT in objects:
            selected = [objects[PREFERRED_TOPOLOGY_OBJECT]]
        else:
            selected = list(objects.values())
        names: list[str] = []
        for topology_object in selected:
            names.extend(_feature_names(topology_object.get("geometries") or []))
    elif "features" in payload:
        names = _feature_names(payload.get("features") or [])
    else:
        raise ValueError("boundary file must be a TopoJSON topology or GeoJSON FeatureCollection")
    return list(dict.fromkeys(names))


def load_boundary_names(path: Path) -> list[str]:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError("boundary file must contain a JSON object")
    return boundary_names_from_payload(payload)
