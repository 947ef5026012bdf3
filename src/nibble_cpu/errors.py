"""Exception types raised by the nibble-cpu emulator."""

from typing import List


class EmulatorError(Exception):
    """Base class for every error raised by the emulator."""


class UnknownOpcode(EmulatorError):
    """Decode hit an opcode nibble with no table entry."""

    def __init__(self, nibble: int):
        self.nibble = nibble
        super().__init__(f"Unknown opcode: {nibble:#06b}")


class MemoryOverflow(EmulatorError):
    """Program does not fit in the 16-byte ROM."""

    def __init__(self, size: int, capacity: int = 16):
        self.size = size
        self.capacity = capacity
        super().__init__(f"Overflow ROM size: {size} bytes (maximum is {capacity})")


class EmptyProgram(EmulatorError):
    """Assembling zero instructions."""

    def __init__(self):
        super().__init__("Program has no instructions")


class ImmediateOutOfRange(EmulatorError, ValueError):
    """Immediate operand does not fit in 4 bits."""

    def __init__(self, value: int):
        self.value = value
        super().__init__(f"Immediate out of range (0-15): {value}")


class InvalidOperand(EmulatorError, ValueError):
    """Register selector missing or given where none is allowed."""


class AssemblyError(EmulatorError):
    """One or more source lines could not be assembled.

    Attributes:
        errors: Human-readable messages, one per failing line
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("\n".join(self.errors))


class CycleLimitExceeded(EmulatorError, RuntimeError):
    """A caller-supplied cycle cap was reached before the program halted."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Max cycles ({limit}) exceeded")
