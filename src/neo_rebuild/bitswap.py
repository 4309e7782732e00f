"""Bit reordering and 16-bit word packing."""

import sys
from array import array
from typing import Iterable, Sequence


def bit_permute(value: int, order: Sequence[int]) -> int:
    """Reorder the bits of `value`.

    `order` lists source bit positions with the most significant result bit
    first, so for a 16 entry order the result's bit 15 is `value`'s bit
    `order[0]` and its bit 0 is `value`'s bit `order[15]`.
    """
    n = len(order)
    out = 0
    for k, src in enumerate(order):
        out |= ((value >> src) & 1) << (n - 1 - k)
    return out


class BitPermutation:
    """`bit_permute` for a fixed order, compiled into per-byte lookup tables."""

    def __init__(self, order: Sequence[int]):
        self.order = tuple(order)
        self.width = len(self.order)
        if any(not (0 <= b < self.width) for b in self.order):
            raise ValueError(f"Bit order {self.order} references bits outside 0..{self.width - 1}")
        nbytes = (self.width + 7) // 8
        self._tables = [[0] * 256 for _ in range(nbytes)]
        for k, src in enumerate(self.order):
            dst_bit = 1 << (self.width - 1 - k)
            table = self._tables[src >> 3]
            mask = 1 << (src & 7)
            for v in range(256):
                if v & mask:
                    table[v] |= dst_bit

    def __call__(self, value: int) -> int:
        out = 0
        for table in self._tables:
            out |= table[value & 0xFF]
            value >>= 8
        return out

    def table(self, count: int) -> list[int]:
        """Permuted value of every integer in range(count)."""
        return [self(i) for i in range(count)]


def unpack_words_le(data: bytes) -> list[int]:
    if len(data) % 2:
        raise ValueError(f"Cannot split {len(data)} bytes into 16-bit words")
    words = array("H", bytes(data))
    if sys.byteorder == "big":
        words.byteswap()
    return words.tolist()


def pack_words_le(words: Iterable[int]) -> bytes:
    out = array("H", words)
    if sys.byteorder == "big":
        out.byteswap()
    return out.tobytes()
