"""
Storage primitives for the Intcode machine.

Models the machine's parts: a growable word tape, signed registers and
unbounded FIFOs for the input queue and output buffer.
"""

from __future__ import annotations

import collections

import numpy as np


def wrap_signed(value: int, bits: int) -> int:
    """Wrap an integer to a two's-complement word of the given width."""
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        value -= 1 << bits
    return value


class AddressError(IndexError):
    """Tape access outside the addressable range."""

    def __init__(self, addr: int, reason: str):
        super().__init__(f"address {addr}: {reason}")
        self.addr = addr
        self.reason = reason


class Tape:
    """
    Growable word memory, backed by an int64 array.

    Reads at or past the end fault unless ``strict_reads`` is off, in which
    case unwritten cells read as 0 without growing the tape. Writes past the
    end grow it, zero-filling the gap. Capacity doubles so repeated growth
    stays amortised; cells beyond the logical length are always zero.
    """

    MIN_CAPACITY = 64

    def __init__(self, words=(), word_bits: int = 64, strict_reads: bool = True):
        if not 1 <= word_bits <= 64:
            raise ValueError(f"word_bits must be in 1..64, got {word_bits}")
        self.word_bits = word_bits
        self.strict_reads = strict_reads
        self._cells = np.zeros(self.MIN_CAPACITY, dtype=np.int64)
        self._size = 0
        self.peak = 0
        self.load(words)

    def load(self, words):
        """Replace the whole tape contents."""
        values = [wrap_signed(int(w), self.word_bits) for w in words]
        self._cells = np.zeros(max(self.MIN_CAPACITY, len(values)), dtype=np.int64)
        if values:
            self._cells[:len(values)] = values
        self._size = len(values)
        self.peak = self._size

    def read(self, addr: int) -> int:
        if addr < 0:
            raise AddressError(addr, "negative address")
        if addr >= self._size:
            if self.strict_reads:
                raise AddressError(addr, f"read past end of memory (length {self._size})")
            return 0
        return int(self._cells[addr])

    def write(self, addr: int, val: int):
        if addr < 0:
            raise AddressError(addr, "negative address")
        if addr >= self._size:
            try:
                self._grow(addr + 1)
            except (MemoryError, ValueError, OverflowError) as e:
                raise AddressError(addr, f"cannot grow memory to {addr + 1} words ({e})") from e
        self._cells[addr] = wrap_signed(int(val), self.word_bits)

    def _grow(self, size: int):
        if size > len(self._cells):
            capacity = max(size, 2 * len(self._cells))
            cells = np.zeros(capacity, dtype=np.int64)
            cells[:self._size] = self._cells[:self._size]
            self._cells = cells
        self._size = size
        if size > self.peak:
            self.peak = size

    def snapshot(self) -> list[int]:
        return self._cells[:self._size].tolist()

    def __len__(self) -> int:
        return self._size


class Register:
    """N-bit signed register."""

    def __init__(self, width: int = 64):
        self.width = width
        self.value = 0

    def load(self, val: int):
        self.value = wrap_signed(int(val), self.width)


class FIFO:
    """Unbounded word queue. Used for both the input queue and output buffer."""

    def __init__(self, values=()):
        self.buffer: collections.deque[int] = collections.deque(int(v) for v in values)

    def push(self, value: int):
        self.buffer.append(int(value))

    def pop(self) -> int | None:
        return self.buffer.popleft() if self.buffer else None

    def drain(self) -> list[int]:
        values = list(self.buffer)
        self.buffer.clear()
        return values

    def ready(self) -> bool:
        return len(self.buffer) > 0

    def __len__(self) -> int:
        return len(self.buffer)
