"""Combining chip streams into area images.

Chips are read fully into memory; every helper here works on whole byte
strings once the streams have been drained.
"""

import re
from typing import BinaryIO, Optional, Pattern, Sequence, Union

from .bitswap import unpack_words_le
from .errors import LayoutMismatchError, StreamReadError
from .layout import AreaLayout

ONE_MB = 1 << 20
TWO_MB = 2 << 20

# Zeroed low region the SMA chip decodes into; its contents are rebuilt later
SMA_PREFIX_SIZE = 0xC0000


def drain(stream: BinaryIO, name: str = "") -> bytes:
    """Read a stream to exhaustion."""
    try:
        data = stream.read()
    except (OSError, ValueError) as e:
        # ValueError: closed or detached stream
        raise StreamReadError(f"Failed reading {name or 'stream'}: {e}") from e
    if data is None:
        # non-blocking raw reader with nothing buffered
        raise StreamReadError(f"{name or 'stream'} returned no data")
    return bytes(data)


def drain_area(area: AreaLayout, streams: Sequence[BinaryIO]) -> list[bytes]:
    return [drain(s, chip.filename) for chip, s in zip(area.chips, streams)]


def padded_concat(chunks: Sequence[bytes], pad_size: int, fill: int = 0x00) -> bytes:
    """Join chunks, padding all but the last up to pad_size."""
    out = bytearray()
    last = len(chunks) - 1
    for i, chunk in enumerate(chunks):
        out += chunk
        if i < last and len(chunk) < pad_size:
            out += bytes([fill]) * (pad_size - len(chunk))
    return bytes(out)


def patched_concat(area: AreaLayout, streams: Sequence[BinaryIO], pattern: Union[str, Pattern, None]) -> bytes:
    """Concatenate the body chips and lay the patch chips over the start.

    Chips whose filename matches `pattern` form the patch. A first body chip
    declared at exactly 2 MiB was dumped with its halves swapped and is
    rotated back before joining.
    """
    matcher: Optional[Pattern] = re.compile(pattern) if isinstance(pattern, str) else pattern

    is_patch = [matcher is not None and matcher.search(chip.filename) is not None for chip in area.chips]
    body_chips = [chip for chip, p in zip(area.chips, is_patch) if not p]
    if not body_chips:
        raise LayoutMismatchError("Program area has no chips outside the patch set")

    data = drain_area(area, streams)
    patch = b"".join(d for d, p in zip(data, is_patch) if p)
    body = [d for d, p in zip(data, is_patch) if not p]

    if body_chips[0].size == TWO_MB:
        first = body[0]
        if len(first) < ONE_MB:
            raise StreamReadError(f"{body_chips[0].filename} is {len(first)} bytes, expected at least {ONE_MB}")
        body[0] = first[ONE_MB:] + first[:ONE_MB]

    joined = b"".join(body)
    if len(joined) < len(patch):
        raise StreamReadError(f"Program body is {len(joined)} bytes, shorter than its {len(patch)} byte patch")
    return patch + joined[len(patch):]


def interleave_bytes(chunks: Sequence[bytes], unit: int, ragged: bool = False) -> bytes:
    """Take `unit` bytes from each chunk in turn until all are used up.

    Chunks must be the same length unless `ragged` is set, in which case a
    chunk that runs out is skipped for the remaining rounds.
    """
    n = len(chunks)
    if n < 2:
        raise LayoutMismatchError(f"Interleave needs at least two inputs (got {n})")
    lengths = [len(c) for c in chunks]
    if not ragged:
        if len(set(lengths)) != 1:
            raise LayoutMismatchError(f"Interleave inputs differ in length: {lengths}")
        if lengths[0] % unit:
            raise LayoutMismatchError(f"Interleave input length 0x{lengths[0]:X} is not a multiple of 0x{unit:X}")
        if unit == 1:
            out = bytearray(lengths[0] * n)
            for i, chunk in enumerate(chunks):
                out[i::n] = chunk
            return bytes(out)

    out = bytearray()
    for off in range(0, max(lengths), unit):
        for chunk in chunks:
            out += chunk[off:off + unit]
    return bytes(out)


def sma_expand(chunks: Sequence[bytes]) -> list[int]:
    """Word array the SMA descrambler works on: zeroed prefix + program chips."""
    data = bytes(SMA_PREFIX_SIZE) + b"".join(chunks)
    if len(data) % 2:
        raise StreamReadError(f"Program data is {len(data) - SMA_PREFIX_SIZE} bytes, not a whole number of words")
    return unpack_words_le(data)
