"""Program ROM and I/O port of the nibble CPU."""

from typing import Iterable

from .errors import MemoryOverflow
from .state import NIBBLE_MASK


# Number of addressable ROM cells
MEMORY_SIZE = 16


class Rom:
    """Read-only program memory, at most MEMORY_SIZE bytes.

    Raises:
        MemoryOverflow: If the program is longer than MEMORY_SIZE
        ValueError: If a cell value is not a byte
    """

    def __init__(self, code: Iterable[int]):
        data = bytes(code)
        if len(data) > MEMORY_SIZE:
            raise MemoryOverflow(len(data), MEMORY_SIZE)
        self._data = data

    @property
    def data(self) -> bytes:
        return self._data

    def read(self, address: int) -> int:
        return self._data[address]

    def size(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Rom({self._data.hex(' ')})"


class Port:
    """Single I/O port with independent input and output latches.

    The input latch is set by the caller before execution; the output
    latch is written by OUT instructions and read back afterwards.
    """

    def __init__(self, input_value: int = 0, output_value: int = 0):
        self._input = input_value & NIBBLE_MASK
        self._output = output_value & NIBBLE_MASK

    def input(self) -> int:
        return self._input

    def set_input(self, value: int) -> None:
        self._input = value & NIBBLE_MASK

    def output(self) -> int:
        return self._output

    def set_output(self, value: int) -> None:
        self._output = value & NIBBLE_MASK

    def __repr__(self) -> str:
        return f"Port(input={self._input:04b}, output={self._output:04b})"
