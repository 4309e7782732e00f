"""Per-area output buffers of a rebuilt title."""

from typing import Iterator, Optional, Tuple

from .layout import AREAS, Area


class RomImage:
    """One buffer per area, each assigned once.

    Areas are filled by a strategy and the image is sealed when population
    finishes; after that it is read-only.
    """

    def __init__(self, title: str = ""):
        self.title = title
        self._roms: list[Optional[bytes]] = [None] * AREAS
        self._sealed = False

    def __setitem__(self, area: Area, data: bytes) -> None:
        if self._sealed:
            raise RuntimeError(f"{self.title}: image is sealed, cannot replace {Area(area).name}")
        if self._roms[area] is not None:
            raise RuntimeError(f"{self.title}: area {Area(area).name} was already filled")
        self._roms[area] = bytes(data)

    def __getitem__(self, area: Area) -> bytes:
        data = self._roms[area]
        return b"" if data is None else data

    def __iter__(self) -> Iterator[Tuple[Area, bytes]]:
        for area in Area:
            yield area, self[area]

    def is_filled(self, area: Area) -> bool:
        return self._roms[area] is not None

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> "RomImage":
        missing = [a.name for a in Area if self._roms[a] is None]
        if missing:
            raise RuntimeError(f"{self.title}: areas never filled: {', '.join(missing)}")
        self._sealed = True
        return self

    def sizes(self) -> dict[str, int]:
        return {area.name: len(data) for area, data in self}
