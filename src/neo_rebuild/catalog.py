from typing import Any

import yaml

from .layout import Area, AreaLayout, RomChip, TitleLayout

# Catalog YAML structure example:
# garou:
#   parent: null
#   areas:
#     P:
#       size: 0x900000
#       chips:
#         - {name: kf.neo-sma, size: 0x40000, crc: "0123abcd"}  # CRC32, quoted
#         - {name: 253-ep1.p1, size: 0x200000}
#     S: {size: 0x80000}


def load_catalog(path: str) -> dict[str, TitleLayout]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"{path}: {e}")
    return parse_catalog(raw or {})


def parse_catalog(raw: Any) -> dict[str, TitleLayout]:
    if not isinstance(raw, dict):
        raise ValueError("Catalog must map title names to layouts")
    return {str(name): _parse_title(str(name), entry) for name, entry in raw.items()}


def _parse_title(name: str, entry: Any) -> TitleLayout:
    if not isinstance(entry, dict):
        raise ValueError(f"Title '{name}' must be a mapping with an 'areas' key")
    areas = entry.get("areas") or {}
    if not isinstance(areas, dict):
        raise ValueError(f"Title '{name}': 'areas' must map area names to layouts")

    parsed: dict[Area, AreaLayout] = {}
    for key, value in areas.items():
        try:
            area = Area[str(key).upper()]
        except KeyError:
            raise ValueError(f"Title '{name}': unknown area '{key}', expected one of {[a.name for a in Area]}")
        parsed[area] = _parse_area(f"{name}/{area.name}", value or {})

    parent = entry.get("parent")
    return TitleLayout.from_areas(name, parsed, parent=str(parent) if parent else None)


def _parse_area(where: str, value: Any) -> AreaLayout:
    if not isinstance(value, dict):
        raise ValueError(f"{where}: area must define 'size' and 'chips'")
    size = value.get("size", 0)
    if not isinstance(size, int) or size < 0:
        raise ValueError(f"{where}: size must be a non-negative integer, got {size!r}")
    chips = value.get("chips") or []
    if not isinstance(chips, list):
        raise ValueError(f"{where}: 'chips' must be a list")
    return AreaLayout(size=size, chips=tuple(_parse_chip(where, c) for c in chips))


def _parse_chip(where: str, entry: Any) -> RomChip:
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        raise ValueError(f"{where}: every chip needs a 'name', got {entry!r}")
    name = entry["name"]
    size = entry.get("size")
    if not isinstance(size, int) or size <= 0:
        raise ValueError(f"{where}: chip '{name}' needs a positive integer size, got {size!r}")
    crc = entry.get("crc", "")
    # unquoted CRCs may have been read as numbers
    if not isinstance(crc, str):
        raise ValueError(f"{where}: CRC of '{name}' must be a quoted string, got {crc!r}")
    crc = crc.strip().lower()
    if crc and (len(crc) != 8 or any(c not in "0123456789abcdef" for c in crc)):
        raise ValueError(f"{where}: invalid CRC '{crc}' for '{name}', expected 8 hex digits")
    return RomChip(filename=name, size=size, crc=crc)
