"""SMA program ROM descrambler.

The SMA chip sits between the 68000 and the program ROMs and scrambles both
data and address lines. Undoing it takes three passes over the word array
built by `streams.sma_expand`:

1. data lines: every word of the 8 MiB banked region is bit-permuted;
2. address lines: the 0xC0000 byte low region is gathered from a
   title-specific base offset through a 24-bit address permutation;
3. blocks: the banked region is cut into fixed blocks and each block's
   words are reordered through another 24-bit permutation.

Pass 1 runs first. Passes 2 and 3 run in the order the title needs.
"""

from dataclasses import dataclass
from typing import BinaryIO, Sequence, Tuple

from .bitswap import BitPermutation, pack_words_le
from .errors import BoundsViolation
from .layout import AreaLayout
from .streams import SMA_PREFIX_SIZE, drain_area, sma_expand

# Word index where the banked program region starts
BANK_START = 0x080000
BANK_SIZE = 0x800000


@dataclass(frozen=True)
class SmaKey:
    """Per-title descrambling tables.

    Attributes:
        data_order: 16 entry data-line order
        address_base: Byte offset the low region is gathered from
        address_order: 24 entry address-line order
        block_size: Bytes per shuffled block
        block_order: 24 entry intra-block word order
        block_span: Bytes of the banked region covered by block shuffling
        blocks_first: Shuffle blocks before rebuilding the low region
    """
    data_order: Tuple[int, ...]
    address_base: int
    address_order: Tuple[int, ...]
    block_size: int
    block_order: Tuple[int, ...]
    block_span: int = BANK_SIZE
    blocks_first: bool = False

    def __post_init__(self):
        if len(self.data_order) != 16:
            raise ValueError(f"SMA data order needs 16 entries (got {len(self.data_order)})")
        for label, order in (("address", self.address_order), ("block", self.block_order)):
            if len(order) != 24:
                raise ValueError(f"SMA {label} order needs 24 entries (got {len(order)})")
        if self.block_span % self.block_size:
            raise ValueError(f"SMA block span 0x{self.block_span:X} is not a multiple of 0x{self.block_size:X}")


def descramble(words: list[int], key: SmaKey) -> list[int]:
    """Run all three passes over `words` in place and return it."""
    bank_end = BANK_START + BANK_SIZE // 2
    block_words = key.block_size // 2
    base = key.address_base // 2

    address = BitPermutation(key.address_order).table(SMA_PREFIX_SIZE // 2)
    block = BitPermutation(key.block_order).table(block_words)

    needed = max(bank_end, BANK_START + key.block_span // 2, base + max(address) + 1)
    if needed > len(words):
        raise BoundsViolation(
            f"SMA tables address 0x{needed * 2:X} bytes but the program image is only 0x{len(words) * 2:X}"
        )
    if max(block) >= block_words:
        raise BoundsViolation(f"SMA block order reaches past its 0x{key.block_size:X} byte block")

    data = BitPermutation(key.data_order).table(0x10000)
    words[BANK_START:bank_end] = [data[w] for w in words[BANK_START:bank_end]]

    if key.blocks_first:
        _shuffle_blocks(words, block, key.block_span // 2)
        _gather_low_region(words, address, base)
    else:
        _gather_low_region(words, address, base)
        _shuffle_blocks(words, block, key.block_span // 2)
    return words


def _gather_low_region(words: list[int], address: Sequence[int], base: int) -> None:
    words[:len(address)] = [words[base + a] for a in address]


def _shuffle_blocks(words: list[int], block: Sequence[int], span_words: int) -> None:
    size = len(block)
    for start in range(BANK_START, BANK_START + span_words, size):
        buf = words[start:start + size]
        words[start:start + size] = [buf[j] for j in block]


def read_program(area: AreaLayout, streams: Sequence[BinaryIO], key: SmaKey) -> bytes:
    words = sma_expand(drain_area(area, streams))
    return pack_words_le(descramble(words, key))
