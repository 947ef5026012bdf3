"""OpcodeRegistry: Execution primitives for the nibble CPU.

Each opcode maps to one handler that applies the instruction's effect
to the register file and port. Handlers do not advance the program
counter; the engine does that after every instruction.

Carry rules:
    ADD_A / ADD_B: set carry when the unmasked sum exceeds 15,
                   never clear it
    every other opcode: clear carry

Handler signature: (registers, port, operand) -> None
"""

from typing import Callable, Dict, Optional

from .isa import Opcode, Register
from .memory import Port
from .state import RegisterFile, NIBBLE_MASK


Handler = Callable[[RegisterFile, Port, int], None]


class OpcodeRegistry:
    """Registry of execution primitives keyed by opcode.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur.

    Attributes:
        _primitives: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all primitives."""
        self._primitives: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register one primitive per opcode."""
        # Arithmetic
        self.register(Opcode.ADD_A, self._op_add_a)
        self.register(Opcode.ADD_B, self._op_add_b)

        # Data movement
        self.register(Opcode.MOV_A, self._op_mov_a)
        self.register(Opcode.MOV_B, self._op_mov_b)
        self.register(Opcode.MOV_A_TO_B, self._op_mov_a_to_b)
        self.register(Opcode.MOV_B_TO_A, self._op_mov_b_to_a)

        # Control flow
        self.register(Opcode.JMP, self._op_jmp)
        self.register(Opcode.JNC, self._op_jnc)

        # I/O
        self.register(Opcode.IN_A, self._op_in_a)
        self.register(Opcode.IN_B, self._op_in_b)
        self.register(Opcode.OUT_B, self._op_out_b)
        self.register(Opcode.OUT_IM, self._op_out_im)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register a primitive.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if opcode in self._primitives:
            raise ValueError(f"Primitive already registered: {opcode.name}")
        self._primitives[opcode] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_opcodes(self) -> set:
        """Get set of all registered opcodes."""
        return set(self._primitives.keys())

    def execute(self, registers: RegisterFile, port: Port, opcode: Opcode, operand: int) -> None:
        """Apply one instruction's effect.

        Args:
            registers: Register file to mutate
            port: I/O port
            opcode: Decoded opcode
            operand: Decoded operand nibble

        Raises:
            KeyError: If opcode not in registry
        """
        if opcode not in self._primitives:
            raise KeyError(f"Unknown opcode: {opcode!r}")
        self._primitives[opcode](registers, port, operand)

    # =========================================================================
    # Arithmetic Primitives
    # =========================================================================

    @staticmethod
    def _add(registers: RegisterFile, reg: Register, immediate: int) -> None:
        value = registers.get_register(reg) + immediate
        if value > NIBBLE_MASK:
            registers.set_carry_flag(1)
        registers.set_register(reg, value & NIBBLE_MASK)

    def _op_add_a(self, registers: RegisterFile, port: Port, operand: int) -> None:
        """ADD A, imm - carry is set on overflow and left alone otherwise."""
        self._add(registers, Register.A, operand)

    def _op_add_b(self, registers: RegisterFile, port: Port, operand: int) -> None:
        """ADD B, imm."""
        self._add(registers, Register.B, operand)

    # =========================================================================
    # Data Movement Primitives
    # =========================================================================

    def _op_mov_a(self, registers: RegisterFile, port: Port, operand: int) -> None:
        registers.set_register_a(operand)
        registers.set_carry_flag(0)

    def _op_mov_b(self, registers: RegisterFile, port: Port, operand: int) -> None:
        registers.set_register_b(operand)
        registers.set_carry_flag(0)

    def _op_mov_a_to_b(self, registers: RegisterFile, port: Port, operand: int) -> None:
        """MOV B, A - copy A into B."""
        registers.set_register_b(registers.register_a)
        registers.set_carry_flag(0)

    def _op_mov_b_to_a(self, registers: RegisterFile, port: Port, operand: int) -> None:
        """MOV A, B - copy B into A."""
        registers.set_register_a(registers.register_b)
        registers.set_carry_flag(0)

    # =========================================================================
    # Control Flow Primitives
    # =========================================================================

    def _op_jmp(self, registers: RegisterFile, port: Port, operand: int) -> None:
        """JMP imm.

        The engine still increments PC afterwards, so the next fetch
        happens at imm + 1.
        """
        registers.set_pc(operand)
        registers.set_carry_flag(0)

    def _op_jnc(self, registers: RegisterFile, port: Port, operand: int) -> None:
        """JNC imm - jump only when carry is clear; carry is cleared either way."""
        if registers.carry_flag == 0:
            registers.set_pc(operand)
        registers.set_carry_flag(0)

    # =========================================================================
    # I/O Primitives
    # =========================================================================

    def _op_in_a(self, registers: RegisterFile, port: Port, operand: int) -> None:
        registers.set_register_a(port.input())
        registers.set_carry_flag(0)

    def _op_in_b(self, registers: RegisterFile, port: Port, operand: int) -> None:
        registers.set_register_b(port.input())
        registers.set_carry_flag(0)

    def _op_out_b(self, registers: RegisterFile, port: Port, operand: int) -> None:
        port.set_output(registers.register_b)
        registers.set_carry_flag(0)

    def _op_out_im(self, registers: RegisterFile, port: Port, operand: int) -> None:
        port.set_output(operand)
        registers.set_carry_flag(0)


# Singleton registry instance
_registry: Optional[OpcodeRegistry] = None


def get_registry() -> OpcodeRegistry:
    """Get the singleton opcode registry instance.

    Returns:
        The frozen OpcodeRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = OpcodeRegistry()
    return _registry
