"""Little-endian bit writer for the packed brick section."""
from __future__ import annotations


class BitWriter:
    """Accumulates bits least-significant first, byte by byte."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._current = 0
        self._bits = 0

    def write_bit(self, bit: bool) -> None:
        if bit:
            self._current |= 1 << self._bits
        self._bits += 1
        if self._bits == 8:
            self._flush_byte()

    def write_bits(self, value: int, count: int) -> None:
        for shift in range(count):
            self.write_bit((value >> shift) & 1)

    def write_uint(self, value: int, max_value: int) -> None:
        """Bounded integer in ``[0, max_value)``, written like Unreal's SerializeInt.

        Bits are emitted low to high and stop as soon as setting the next
        bit would reach ``max_value``.
        """
        if max_value < 2:
            if value != 0:
                raise ValueError(f"{value} out of range for max {max_value}")
            return
        if not 0 <= value < max_value:
            raise ValueError(f"{value} out of range for max {max_value}")
        written = 0
        mask = 1
        while written + mask < max_value and mask:
            bit = bool(value & mask)
            self.write_bit(bit)
            if bit:
                written |= mask
            mask <<= 1

    def write_uint_packed(self, value: int) -> None:
        """7-bit groups, low group first, high bit of each group flags more."""
        if value < 0:
            raise ValueError(f"packed uint must be non-negative, got {value}")
        while True:
            group = value & 0x7F
            value >>= 7
            self.write_bits(group | (0x80 if value else 0), 8)
            if not value:
                return

    def write_int_packed(self, value: int) -> None:
        self.write_uint_packed((abs(value) << 1) | (1 if value < 0 else 0))

    def align(self) -> None:
        if self._bits:
            self._flush_byte()

    def getvalue(self) -> bytes:
        self.align()
        return bytes(self._buffer)

    def _flush_byte(self) -> None:
        self._buffer.append(self._current)
        self._current = 0
        self._bits = 0


class BitReader:
    """Counterpart of :class:`BitWriter`, used to inspect encoded saves."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def read_bit(self) -> bool:
        if self._pos >> 3 >= len(self._data):
            raise ValueError("bit stream exhausted")
        byte = self._data[self._pos >> 3]
        bit = (byte >> (self._pos & 7)) & 1
        self._pos += 1
        return bool(bit)

    def read_bits(self, count: int) -> int:
        value = 0
        for shift in range(count):
            if self.read_bit():
                value |= 1 << shift
        return value

    def read_uint(self, max_value: int) -> int:
        value = 0
        mask = 1
        while value + mask < max_value and mask:
            if self.read_bit():
                value |= mask
            mask <<= 1
        return value

    def read_uint_packed(self) -> int:
        value = 0
        shift = 0
        while True:
            group = self.read_bits(8)
            value |= (group & 0x7F) << shift
            shift += 7
            if not group & 0x80:
                return value

    def read_int_packed(self) -> int:
        raw = self.read_uint_packed()
        magnitude = raw >> 1
        return -magnitude if raw & 1 else magnitude

    def align(self) -> None:
        self._pos = (self._pos + 7) & ~7
