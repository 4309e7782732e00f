"""Per-title rebuild recipes.

Most titles are rebuilt the same way: program chips joined with any patch
chips laid over the start, graphics chips interleaved in byte pairs,
everything else simply concatenated. The titles below differ from that in
one or more areas, either because of protection (CMC42, CMC50, SMA) or
because of how the reference database happens to split their chips.

`STRATEGIES` maps a title to its `Strategy`; titles not listed use
`COMMON`.
"""

import logging as log
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import BinaryIO, Callable, Mapping, Optional, Sequence, Union

from . import sma
from .cmc import Cmc, CmcBackend, CmcGeneration, NoCmcBackend
from .errors import BackendError, LayoutMismatchError, RebuildError
from .image import RomImage
from .layout import AREAS, Area, AreaLayout, TitleLayout
from .sma import SmaKey
from .streams import TWO_MB, drain_area, interleave_bytes, padded_concat, patched_concat

AreaReader = Callable[[AreaLayout, Sequence[BinaryIO]], bytes]
Streams = Union[Sequence[Sequence[BinaryIO]], Mapping[Area, Sequence[BinaryIO]]]

ONE_TWENTY_EIGHT_KB = 128 << 10

# Patch chips are normally named *.ep1, *.ep2, ...
PATCH_EP = re.compile(r"\.ep")
PATCH_SP = re.compile(r"\.sp")


def read_padded(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    return padded_concat(drain_area(area, streams), area.pad_size)


def read_program(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    return patched_concat(area, streams, PATCH_EP)


def read_program_sp(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """Patch chip named .sp2 rather than .ep1."""
    return patched_concat(area, streams, PATCH_SP)


def read_program_unpatched(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """Regular chips carry patch-style names, so no chip is treated as a patch."""
    return patched_concat(area, streams, None)


def _interleaved_groups(area: AreaLayout, streams: Sequence[BinaryIO], size: int, swap: bool = False) -> list[bytes]:
    if len(streams) % size:
        raise LayoutMismatchError(f"{len(streams)} chips cannot be split into groups of {size}")
    data = drain_area(area, streams)
    groups = []
    for i in range(0, len(data), size):
        group = data[i:i + size]
        if swap:
            group.reverse()
        groups.append(interleave_bytes(group, 1))
    return groups


def read_program_pairs(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """Program split into odd/even byte chips."""
    return b"".join(_interleaved_groups(area, streams, 2))


def read_program_pairs_swapped(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """As read_program_pairs, with each pair's chips cataloged in the wrong order."""
    return b"".join(_interleaved_groups(area, streams, 2, swap=True))


def read_graphics(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    return padded_concat(_interleaved_groups(area, streams, 2), area.pad_size * 2)


def read_graphics_quads(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """Bit planes spread over four chips per bank."""
    return b"".join(_interleaved_groups(area, streams, 4))


def read_graphics_banked(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """Pairs whose chips hold two 2 MiB banks each; banks of all pairs alternate."""
    return interleave_bytes(_interleaved_groups(area, streams, 2), TWO_MB, ragged=True)


def read_graphics_spaced(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
    """As read_graphics_banked with an empty 2 MiB bank after every pair's bank."""
    chunks = []
    for group in _interleaved_groups(area, streams, 2):
        chunks += [group, bytes(TWO_MB)]
    return interleave_bytes(chunks, TWO_MB, ragged=True)


def erased(size: int) -> AreaReader:
    """Reader for a chip missing from the catalog: a blank (0xFF) part of `size` bytes."""
    def read(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
        return b"\xff" * size
    return read


def with_silence(size: int) -> AreaReader:
    """Reader prepending `size` bytes of silence to the concatenated samples."""
    def read(area: AreaLayout, streams: Sequence[BinaryIO]) -> bytes:
        return bytes(size) + read_padded(area, streams)
    return read


@dataclass(frozen=True)
class Strategy:
    """How one title's areas are read.

    Attributes:
        name: Strategy name (also the title it was written for)
        program: Reader for the P area, ignored when `sma` is set
        graphics: Reader for the C area
        cmc: Graphics protection, if any; S is then derived from C
        sma: Program protection tables, if any
        overrides: Readers replacing the default for specific areas
    """
    name: str
    program: AreaReader = read_program
    graphics: AreaReader = read_graphics
    cmc: Optional[Cmc] = None
    sma: Optional[SmaKey] = None
    overrides: Mapping[Area, AreaReader] = field(default_factory=dict)

    def reader(self, area: Area) -> AreaReader:
        if area in self.overrides:
            return self.overrides[area]
        if area is Area.P:
            if self.sma is not None:
                return partial(sma.read_program, key=self.sma)
            return self.program
        if area is Area.C:
            return self.graphics
        return read_padded

    @property
    def protection(self) -> str:
        parts = []
        if self.sma is not None:
            parts.append("SMA")
        if self.cmc is not None:
            parts.append(f"{self.cmc.generation.name} (key 0x{self.cmc.key:02X})")
        return " + ".join(parts) or "none"


def cmc42(key: int) -> Cmc:
    return Cmc(CmcGeneration.CMC42, key)


def cmc50(key: int) -> Cmc:
    return Cmc(CmcGeneration.CMC50, key)


# CMC graphics keys
BANGBEAD_GFX_KEY = 0xF8
GANRYU_GFX_KEY = 0x07
GAROU_GFX_KEY = 0x06
KOF99_GFX_KEY = 0x00
MSLUG3_GFX_KEY = 0xAD
NITD_GFX_KEY = 0xFF
PREISLE2_GFX_KEY = 0x9F
S1945P_GFX_KEY = 0x05
SENGOKU3_GFX_KEY = 0xFE
ZUPAPA_GFX_KEY = 0xBD
KOF2000_GFX_KEY = 0x00
KOF2001_GFX_KEY = 0x1E
JOCKEYGP_GFX_KEY = 0xAC

# SMA tables
GAROU_SMA = SmaKey(
    data_order=(13, 12, 14, 10, 8, 2, 3, 1, 5, 9, 11, 4, 15, 0, 6, 7),
    address_base=0x710000,
    address_order=(23, 22, 21, 20, 19, 18, 4, 5, 16, 14, 7, 9, 6, 13, 17, 15, 3, 1, 2, 12, 11, 8, 10, 0),
    block_size=0x8000,
    block_order=(23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 9, 4, 8, 3, 13, 6, 2, 7, 0, 12, 1, 11, 10, 5),
)

GAROUH_SMA = SmaKey(
    data_order=(14, 5, 1, 11, 7, 4, 10, 15, 3, 12, 8, 13, 0, 2, 9, 6),
    address_base=0x7F8000,
    address_order=(23, 22, 21, 20, 19, 18, 5, 16, 11, 2, 6, 7, 17, 3, 12, 8, 14, 4, 0, 9, 1, 10, 15, 13),
    block_size=0x8000,
    block_order=(23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 12, 8, 1, 7, 11, 3, 13, 10, 6, 9, 5, 4, 0, 2),
)

KOF99_SMA = SmaKey(
    data_order=(13, 7, 3, 0, 9, 4, 5, 6, 1, 12, 8, 14, 10, 11, 2, 15),
    address_base=0x700000,
    address_order=(23, 22, 21, 20, 19, 18, 11, 6, 14, 17, 16, 5, 8, 10, 12, 0, 4, 3, 2, 7, 9, 15, 13, 1),
    block_size=0x800,
    block_order=(23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 6, 2, 4, 9, 8, 3, 1, 7, 0, 5),
    block_span=0x600000,
    blocks_first=True,
)

KOF2000_SMA = SmaKey(
    data_order=(12, 8, 11, 3, 15, 14, 7, 0, 10, 13, 6, 5, 9, 2, 1, 4),
    address_base=0x73A000,
    address_order=(23, 22, 21, 20, 19, 18, 8, 4, 15, 13, 3, 14, 16, 2, 6, 17, 7, 12, 10, 0, 5, 11, 1, 9),
    block_size=0x800,
    block_order=(23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 4, 1, 3, 8, 6, 2, 7, 0, 9, 5),
    block_span=0x63A000,
    blocks_first=True,
)

MSLUG3_SMA = SmaKey(
    data_order=(4, 11, 14, 3, 1, 13, 0, 7, 2, 8, 12, 15, 10, 9, 5, 6),
    address_base=0x5D0000,
    address_order=(23, 22, 21, 20, 19, 18, 15, 2, 1, 13, 3, 0, 9, 6, 16, 4, 11, 5, 7, 12, 17, 14, 10, 8),
    block_size=0x10000,
    block_order=(23, 22, 21, 20, 19, 18, 17, 16, 15, 2, 11, 0, 14, 6, 4, 13, 8, 9, 3, 10, 7, 5, 12, 1),
)

MSLUG3A_SMA = SmaKey(
    data_order=(2, 11, 12, 14, 9, 3, 1, 4, 13, 7, 6, 8, 10, 15, 0, 5),
    address_base=0x5D0000,
    address_order=(23, 22, 21, 20, 19, 18, 1, 16, 14, 7, 17, 5, 8, 4, 15, 6, 3, 2, 0, 13, 10, 12, 9, 11),
    block_size=0x10000,
    block_order=(23, 22, 21, 20, 19, 18, 17, 16, 15, 12, 0, 11, 3, 4, 13, 6, 8, 14, 7, 5, 2, 10, 9, 1),
)

COMMON = Strategy("common")

STRATEGIES: dict[str, Strategy] = {s.name: s for s in (
    COMMON,
    Strategy("bangbead", cmc=cmc42(BANGBEAD_GFX_KEY)),
    # M1 and V1 were never dumped; the board has blank parts there
    Strategy("dragonsh", program=read_program_pairs_swapped,
             overrides={Area.M: erased(ONE_TWENTY_EIGHT_KB), Area.V1: erased(TWO_MB)}),
    Strategy("fightfeva", program=read_program_sp),
    Strategy("ganryu", cmc=cmc42(GANRYU_GFX_KEY)),
    Strategy("garou", sma=GAROU_SMA, cmc=cmc42(GAROU_GFX_KEY)),
    Strategy("garouh", sma=GAROUH_SMA, cmc=cmc42(GAROU_GFX_KEY)),
    Strategy("gpilotsp", program=read_program_pairs_swapped, graphics=read_graphics_quads),
    Strategy("jockeygp", cmc=cmc50(JOCKEYGP_GFX_KEY)),
    Strategy("kof2000", sma=KOF2000_SMA, cmc=cmc50(KOF2000_GFX_KEY)),
    Strategy("kof2000n", cmc=cmc50(KOF2000_GFX_KEY)),
    Strategy("kof2001", cmc=cmc50(KOF2001_GFX_KEY)),
    Strategy("kof95a", program=read_program_unpatched),
    Strategy("kof99", sma=KOF99_SMA, cmc=cmc42(KOF99_GFX_KEY)),
    Strategy("kof99ka", cmc=cmc42(KOF99_GFX_KEY)),
    Strategy("kotm2", graphics=read_graphics_banked),
    Strategy("kotm2p", program=read_program_pairs, graphics=read_graphics_quads),
    Strategy("mslug3", sma=MSLUG3_SMA, cmc=cmc42(MSLUG3_GFX_KEY)),
    Strategy("mslug3a", sma=MSLUG3A_SMA, cmc=cmc42(MSLUG3_GFX_KEY)),
    Strategy("mslug3h", cmc=cmc42(MSLUG3_GFX_KEY)),
    Strategy("nitd", cmc=cmc42(NITD_GFX_KEY)),
    Strategy("pbobblenb", overrides={Area.V1: with_silence(TWO_MB)}),
    Strategy("preisle2", cmc=cmc42(PREISLE2_GFX_KEY)),
    Strategy("s1945p", cmc=cmc42(S1945P_GFX_KEY)),
    Strategy("sengoku3", cmc=cmc42(SENGOKU3_GFX_KEY)),
    Strategy("viewpoin", graphics=read_graphics_spaced),
    Strategy("zupapa", cmc=cmc42(ZUPAPA_GFX_KEY)),
)}


def lookup(title: str) -> Strategy:
    return STRATEGIES.get(title, COMMON)


@contextmanager
def _context(title: str, area: Optional[Area] = None):
    try:
        yield
    except RebuildError as e:
        if e.title is None:
            e.title = title
        if e.area is None:
            e.area = area
        raise


def _area_streams(streams: Streams, area: Area) -> Sequence[BinaryIO]:
    if isinstance(streams, Mapping):
        return streams.get(area, ())
    return streams[area]


def check_streams(layout: TitleLayout, streams: Streams) -> None:
    """Stream counts must match chip counts in every area."""
    if not isinstance(streams, Mapping) and len(streams) != AREAS:
        raise LayoutMismatchError(f"Expected streams for {AREAS} areas, got {len(streams)}")
    for area in Area:
        expected = len(layout[area].chips)
        got = len(_area_streams(streams, area))
        if got != expected:
            raise LayoutMismatchError(f"{got} streams supplied for {expected} chips", area=area)


def _call_backend(operation: str, size: int, method: Callable[..., bytes], *args) -> bytes:
    """Run one backend method; anything it raises or a result of the wrong size is a BackendError."""
    try:
        data = method(*args)
    except RebuildError:
        raise
    except Exception as e:
        raise BackendError(f"{operation} failed: {e}") from e
    if not isinstance(data, (bytes, bytearray)) or len(data) != size:
        got = f"{len(data)} bytes" if isinstance(data, (bytes, bytearray)) else type(data).__name__
        raise BackendError(f"{operation} returned {got}, expected {size} bytes")
    return bytes(data)


def populate(layout: TitleLayout, streams: Streams, backend: Optional[CmcBackend] = None,
             title: Optional[str] = None) -> RomImage:
    """Rebuild every area of a title from its chip streams.

    `title` selects the strategy and defaults to the layout's name. CMC
    titles need a `backend`. Any failure aborts the whole title.
    """
    title = title or layout.name
    strategy = lookup(title)
    backend = backend or NoCmcBackend()
    log.info(f"{title}: rebuilding with '{strategy.name}' strategy (protection: {strategy.protection})")

    with _context(title):
        check_streams(layout, streams)
        if strategy.cmc is not None and isinstance(backend, NoCmcBackend):
            raise BackendError(f"{strategy.cmc.generation.name} title needs a CMC backend")

        image = RomImage(title)
        for area in Area:
            with _context(title, area):
                _populate_area(strategy, layout, _area_streams(streams, area), backend, image, area)
        return image.seal()


def _populate_area(strategy: Strategy, layout: TitleLayout, streams: Sequence[BinaryIO],
                   backend: CmcBackend, image: RomImage, area: Area) -> None:
    cmc = strategy.cmc
    if area is Area.S and cmc is not None:
        # derived from the decrypted graphics below
        return

    data = strategy.reader(area)(layout[area], streams)

    if cmc is not None:
        if area is Area.M and cmc.generation is CmcGeneration.CMC50:
            data = _call_backend("m1_decrypt", len(data), backend.m1_decrypt, data)
        elif area is Area.C:
            data = _call_backend("gfx_decrypt", len(data), backend.gfx_decrypt, data, cmc.generation, cmc.key)
            size = layout[Area.S].size
            with _context(image.title, Area.S):
                image[Area.S] = _call_backend("sfix_derive", size, backend.sfix_derive, data, size)
            log.debug(f"{image.title}: S derived from C, {size} bytes")

    image[area] = data
    log.debug(f"{image.title}: {area.name} {len(data)} bytes")
