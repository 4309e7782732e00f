"""Chip/area/title descriptors for Neo Geo cartridge dumps.

A title is split into a fixed set of areas by the hardware memory map:

    P   68000 program ROM
    S   fix (tile) layer
    M   Z80 sound CPU program
    V1  ADPCM samples
    V2  ADPCM samples (second bus, often empty)
    C   sprite graphics

Each area lists the chips that were dumped for it, in the order the chips
are combined.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping, Optional, Tuple


class Area(IntEnum):
    P = 0
    S = 1
    M = 2
    V1 = 3
    V2 = 4
    C = 5


AREAS = len(Area)


@dataclass(frozen=True)
class RomChip:
    """One physical chip dump.

    Attributes:
        filename: Name in the reference database; used for pattern matching
        size: Declared size in bytes
        crc: CRC32 as 8 lower-case hex digits ("" when unknown)
    """
    filename: str
    size: int
    crc: str = ""


@dataclass(frozen=True)
class AreaLayout:
    """Declared size of an area plus its chips in combination order."""
    size: int = 0
    chips: Tuple[RomChip, ...] = ()

    @property
    def pad_size(self) -> int:
        """Largest chip in the area; shorter chips are padded up to this."""
        return max((chip.size for chip in self.chips), default=0)


@dataclass(frozen=True)
class TitleLayout:
    name: str
    parent: Optional[str] = None
    areas: Tuple[AreaLayout, ...] = field(default_factory=lambda: (AreaLayout(),) * AREAS)

    def __post_init__(self):
        if len(self.areas) != AREAS:
            raise ValueError(f"Title '{self.name}' must describe {AREAS} areas (got {len(self.areas)})")

    def __getitem__(self, area: Area) -> AreaLayout:
        return self.areas[area]

    @classmethod
    def from_areas(cls, name: str, areas: Mapping[Area, AreaLayout], parent: Optional[str] = None) -> "TitleLayout":
        """Build a layout from a partial mapping; unlisted areas are empty."""
        return cls(name=name, parent=parent, areas=tuple(areas.get(a, AreaLayout()) for a in Area))
