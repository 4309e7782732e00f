"""Interface to the CMC42/CMC50 decryption routines.

The CMC ciphers (graphics XOR/shuffle, fix layer extraction and, for CMC50,
the M1 address scramble) are supplied from outside this package. Anything
implementing `CmcBackend` can be handed to `titles.populate`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from .errors import BackendError


class CmcGeneration(Enum):
    CMC42 = "cmc42"
    CMC50 = "cmc50"


@dataclass(frozen=True)
class Cmc:
    """Protection chip fitted to a title and its one-byte graphics key."""
    generation: CmcGeneration
    key: int

    def __post_init__(self):
        if not (0 <= self.key <= 0xFF):
            raise ValueError(f"CMC graphics key must fit in a byte, got {self.key!r}")


class CmcBackend(ABC):

    @abstractmethod
    def gfx_decrypt(self, data: bytes, generation: CmcGeneration, key: int) -> bytes:
        """Decrypt the interleaved C area. Output has the same length."""

    @abstractmethod
    def sfix_derive(self, gfx: bytes, size: int) -> bytes:
        """Extract the S area (exactly `size` bytes) from decrypted graphics."""

    @abstractmethod
    def m1_decrypt(self, data: bytes) -> bytes:
        """Decrypt a CMC50 sound CPU program. Output has the same length."""


class NoCmcBackend(CmcBackend):
    """Stand-in used when no CMC implementation was configured."""

    def _refuse(self):
        raise BackendError("No CMC backend configured; this title needs one")

    def gfx_decrypt(self, data, generation, key):
        self._refuse()

    def sfix_derive(self, gfx, size):
        self._refuse()

    def m1_decrypt(self, data):
        self._refuse()
