import io
import zlib
from pathlib import Path
from typing import BinaryIO

from .image import RomImage
from .layout import Area, RomChip, TitleLayout


def read_rom_bytes(path: str | Path) -> bytes:
    return Path(path).read_bytes()


def write_rom_bytes(path: str | Path, data: bytes) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_bytes(data)


def crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def find_chip(directory: str | Path, chip: RomChip) -> Path:
    """Locate a chip dump by name, ignoring case."""
    directory = Path(directory)
    exact = directory / chip.filename
    if exact.is_file():
        return exact
    wanted = chip.filename.lower()
    for candidate in directory.iterdir():
        if candidate.is_file() and candidate.name.lower() == wanted:
            return candidate
    raise FileNotFoundError(f"Chip '{chip.filename}' not found in {directory}")


def check_chip(chip: RomChip, data: bytes) -> list[str]:
    """Return a list of problems with a dump; empty when it matches the catalog."""
    problems = []
    if len(data) != chip.size:
        problems.append(f"size {len(data)} != {chip.size}")
    if chip.crc:
        c = crc32(data)
        if c != int(chip.crc, 16):
            problems.append(f"CRC32 {c:08x} != {chip.crc}")
    return problems


def inspect_chips(layout: TitleLayout, directory: str | Path) -> list[dict]:
    report = []
    for area in Area:
        for chip in layout[area].chips:
            entry = {"area": area.name, "name": chip.filename, "expected_size": chip.size, "expected_crc": chip.crc}
            try:
                data = read_rom_bytes(find_chip(directory, chip))
            except FileNotFoundError as e:
                entry["error"] = str(e)
            else:
                entry["size"] = len(data)
                entry["crc32"] = crc32(data)
                entry["problems"] = check_chip(chip, data)
            report.append(entry)
    return report


def open_streams(layout: TitleLayout, directory: str | Path, verify: bool = True) -> dict[Area, list[BinaryIO]]:
    """Load every chip of a title from a directory of loose dumps."""
    streams: dict[Area, list[BinaryIO]] = {}
    for area in Area:
        streams[area] = []
        for chip in layout[area].chips:
            data = read_rom_bytes(find_chip(directory, chip))
            if verify:
                problems = check_chip(chip, data)
                if problems:
                    raise ValueError(f"{chip.filename}: {'; '.join(problems)}")
            streams[area].append(io.BytesIO(data))
    return streams


def write_image(directory: str | Path, image: RomImage) -> list[Path]:
    """Write each non-empty area as <title>-<area>.bin."""
    written = []
    for area, data in image:
        if not data:
            continue
        path = Path(directory) / f"{image.title}-{area.name.lower()}.bin"
        write_rom_bytes(path, data)
        written.append(path)
    return written
