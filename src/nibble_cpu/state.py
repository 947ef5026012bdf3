"""RegisterFile: Architectural register state for the nibble CPU.

State Components:
    - A, B: two general purpose 4-bit registers
    - Carry: 1-bit overflow flag, set only by ADD
    - PC: program counter (index into ROM)

The register file is a plain mutable container. Only the execution
engine writes to it; tests and trace observers read it through
accessors or snapshots.
"""

from dataclasses import dataclass
from typing import Dict

from .isa import Register


NIBBLE_MASK = 0x0F


@dataclass
class RegisterFile:
    """Register state of the CPU.

    Attributes:
        register_a: Register A (0-15)
        register_b: Register B (0-15)
        carry_flag: Carry flag (0 or 1)
        pc: Program counter
    """
    register_a: int = 0
    register_b: int = 0
    carry_flag: int = 0
    pc: int = 0

    def set_register_a(self, value: int) -> None:
        self.register_a = value & NIBBLE_MASK

    def set_register_b(self, value: int) -> None:
        self.register_b = value & NIBBLE_MASK

    def set_carry_flag(self, value: int) -> None:
        self.carry_flag = value & 1

    def set_pc(self, value: int) -> None:
        self.pc = value & NIBBLE_MASK

    def increment_program_counter(self) -> None:
        """Advance PC by one.

        Not masked: the halt check stops execution once PC + 1 reaches
        the ROM size, so PC never passes 16.
        """
        self.pc += 1

    def get_register(self, reg: Register) -> int:
        """Get value of a general register.

        Args:
            reg: Register selector (A or B)

        Returns:
            Register value
        """
        if reg is Register.A:
            return self.register_a
        return self.register_b

    def set_register(self, reg: Register, value: int) -> None:
        """Set a general register, masking the value to 4 bits."""
        if reg is Register.A:
            self.set_register_a(value)
        else:
            self.set_register_b(value)

    def reset(self) -> None:
        """Zero every field."""
        self.register_a = 0
        self.register_b = 0
        self.carry_flag = 0
        self.pc = 0

    def snapshot(self) -> Dict[str, int]:
        """Create a copy of current state for tracing.

        Returns:
            Dictionary with A, B, carry and PC values
        """
        return {
            "A": self.register_a,
            "B": self.register_b,
            "carry": self.carry_flag,
            "pc": self.pc,
        }

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of the general register values."""
        return {"A": self.register_a, "B": self.register_b}

    def __str__(self) -> str:
        return (
            f"PC={self.pc} A={self.register_a:04b} B={self.register_b:04b} "
            f"C={self.carry_flag}"
        )
