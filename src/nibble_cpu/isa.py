"""Instruction set and byte codec for the nibble CPU.

Instruction encoding (one byte per instruction):
    bits 7-4: opcode
    bits 3-0: immediate operand (zero for operand-free forms)

Opcodes:
    0000 ADD A, imm    - A = A + imm, carry on overflow
    0001 MOV A, B      - A = B
    0010 IN  A         - A = input port
    0011 MOV A, imm    - A = imm
    0100 MOV B, A      - B = A
    0101 ADD B, imm    - B = B + imm, carry on overflow
    0110 IN  B         - B = input port
    0111 MOV B, imm    - B = imm
    1001 OUT B         - output port = B
    1011 OUT imm       - output port = imm
    1110 JNC imm       - PC = imm if carry is clear
    1111 JMP imm       - PC = imm

Nibbles 1000, 1010, 1100 and 1101 are unused. OPCODE_TABLE below is the
only place opcodes are bound to operations; the encoder works from its
inverse.
"""

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import EmptyProgram, ImmediateOutOfRange, InvalidOperand, UnknownOpcode

logger = logging.getLogger(__name__)


class Register(Enum):
    """General register selector."""

    A = "A"
    B = "B"


class Opcode(IntEnum):
    """Opcode nibbles."""

    ADD_A = 0b0000
    MOV_B_TO_A = 0b0001
    IN_A = 0b0010
    MOV_A = 0b0011
    MOV_A_TO_B = 0b0100
    ADD_B = 0b0101
    IN_B = 0b0110
    MOV_B = 0b0111
    OUT_B = 0b1001
    OUT_IM = 0b1011
    JNC = 0b1110
    JMP = 0b1111


class Operation(Enum):
    """Abstract operations, independent of register selection."""

    ADD = "add"
    MOV = "mov"
    MOV_A_TO_B = "mov_a_to_b"
    MOV_B_TO_A = "mov_b_to_a"
    JMP = "jmp"
    JNC = "jnc"
    IN = "in"
    OUT_B = "out_b"
    OUT_IM = "out_im"


# Operations that carry a register selector
REGISTER_OPERATIONS = {Operation.ADD, Operation.MOV, Operation.IN}

# Operations that carry an immediate
IMMEDIATE_OPERATIONS = {
    Operation.ADD, Operation.MOV, Operation.JMP, Operation.JNC, Operation.OUT_IM,
}

# Decoded forms whose low nibble is ignored
OPERANDLESS_OPCODES = {Opcode.IN_A, Opcode.IN_B, Opcode.OUT_B}

OPCODE_TABLE: Dict[Opcode, Tuple[Operation, Optional[Register]]] = {
    Opcode.ADD_A: (Operation.ADD, Register.A),
    Opcode.ADD_B: (Operation.ADD, Register.B),
    Opcode.MOV_A: (Operation.MOV, Register.A),
    Opcode.MOV_B: (Operation.MOV, Register.B),
    Opcode.MOV_A_TO_B: (Operation.MOV_A_TO_B, None),
    Opcode.MOV_B_TO_A: (Operation.MOV_B_TO_A, None),
    Opcode.JMP: (Operation.JMP, None),
    Opcode.JNC: (Operation.JNC, None),
    Opcode.IN_A: (Operation.IN, Register.A),
    Opcode.IN_B: (Operation.IN, Register.B),
    Opcode.OUT_B: (Operation.OUT_B, None),
    Opcode.OUT_IM: (Operation.OUT_IM, None),
}

_ENCODE_TABLE: Dict[Tuple[Operation, Optional[Register]], Opcode] = {
    form: opcode for opcode, form in OPCODE_TABLE.items()
}

_NIBBLE_TO_OPCODE: Dict[int, Opcode] = {int(opcode): opcode for opcode in OPCODE_TABLE}


@dataclass(frozen=True)
class Instruction:
    """Abstract instruction value produced by the assembler front-end.

    Attributes:
        operation: Operation kind
        register: Register selector for ADD, MOV and IN; None otherwise
        immediate: 4-bit immediate (0 for forms without one)
    """

    operation: Operation
    register: Optional[Register] = None
    immediate: int = 0

    def __post_init__(self):
        if self.operation in REGISTER_OPERATIONS:
            if self.register is None:
                raise InvalidOperand(f"{self.operation.value} requires a register")
        elif self.register is not None:
            raise InvalidOperand(f"{self.operation.value} takes no register")

        if not 0 <= self.immediate <= 0x0F:
            raise ImmediateOutOfRange(self.immediate)
        if self.operation not in IMMEDIATE_OPERATIONS and self.immediate != 0:
            raise InvalidOperand(f"{self.operation.value} takes no immediate")

    @property
    def opcode(self) -> Opcode:
        return _ENCODE_TABLE[(self.operation, self.register)]

    @property
    def mnemonic(self) -> str:
        """Source text form, e.g. ``add A 0011``."""
        imm = f"{self.immediate:04b}"
        if self.operation is Operation.ADD:
            return f"add {self.register.value} {imm}"
        if self.operation is Operation.MOV:
            return f"mov {self.register.value} {imm}"
        if self.operation is Operation.MOV_A_TO_B:
            return "mov B A"
        if self.operation is Operation.MOV_B_TO_A:
            return "mov A B"
        if self.operation is Operation.JMP:
            return f"jmp {imm}"
        if self.operation is Operation.JNC:
            return f"jnc {imm}"
        if self.operation is Operation.IN:
            return f"in {self.register.value}"
        if self.operation is Operation.OUT_B:
            return "out B"
        return f"out {imm}"

    def __str__(self) -> str:
        return self.mnemonic


# Variant constructors

def add(reg: Register, imm: int) -> Instruction:
    return Instruction(Operation.ADD, reg, imm)


def mov(reg: Register, imm: int) -> Instruction:
    return Instruction(Operation.MOV, reg, imm)


def mov_a_to_b() -> Instruction:
    """B = A."""
    return Instruction(Operation.MOV_A_TO_B)


def mov_b_to_a() -> Instruction:
    """A = B."""
    return Instruction(Operation.MOV_B_TO_A)


def jump(imm: int) -> Instruction:
    return Instruction(Operation.JMP, None, imm)


def jump_if_no_carry(imm: int) -> Instruction:
    return Instruction(Operation.JNC, None, imm)


def input_to(reg: Register) -> Instruction:
    return Instruction(Operation.IN, reg)


def out_from_b() -> Instruction:
    return Instruction(Operation.OUT_B)


def out_immediate(imm: int) -> Instruction:
    return Instruction(Operation.OUT_IM, None, imm)


def encode(instruction: Instruction) -> int:
    """Pack an instruction into one byte.

    The immediate is masked to 4 bits, so it can never spill into the
    opcode field.

    Args:
        instruction: Abstract instruction

    Returns:
        Encoded byte value (0-255)
    """
    return (int(instruction.opcode) << 4) | (instruction.immediate & 0x0F)


def decode(data: int) -> Tuple[Opcode, int]:
    """Split a byte into opcode and operand.

    IN A, IN B and OUT B always report operand 0; their low nibble is
    discarded without validation.

    Args:
        data: Encoded byte

    Returns:
        Tuple of (opcode, operand)

    Raises:
        ValueError: If data is not a byte value
        UnknownOpcode: If the high nibble is not in the opcode table
    """
    if not 0 <= data <= 0xFF:
        raise ValueError(f"Not a byte: {data}")

    nibble = data >> 4
    operand = data & 0x0F

    opcode = _NIBBLE_TO_OPCODE.get(nibble)
    if opcode is None:
        raise UnknownOpcode(nibble)

    if opcode in OPERANDLESS_OPCODES:
        return opcode, 0
    return opcode, operand


def to_instruction(opcode: Opcode, operand: int) -> Instruction:
    """Build the abstract instruction for a decoded (opcode, operand) pair.

    Operand bits of forms without an immediate are dropped.
    """
    operation, register = OPCODE_TABLE[opcode]
    immediate = operand if operation in IMMEDIATE_OPERATIONS else 0
    return Instruction(operation, register, immediate)


def disassemble(data: int) -> Instruction:
    """Decode one byte straight to an abstract instruction."""
    opcode, operand = decode(data)
    return to_instruction(opcode, operand)


def assemble_instructions(instructions: Iterable[Instruction]) -> bytes:
    """Encode a sequence of instructions into program bytes.

    Raises:
        EmptyProgram: If there are no instructions
    """
    instructions = list(instructions)
    if not instructions:
        raise EmptyProgram()

    code = bytes(encode(instruction) for instruction in instructions)
    logger.debug(f"Encoded {len(code)} instructions: {code.hex(' ')}")
    return code


def disassemble_program(code: Iterable[int]) -> List[str]:
    """Render a program listing, one line per byte.

    Bytes with an unknown opcode are listed as ``.byte`` instead of
    raising, so damaged programs can still be inspected.
    """
    lines = []
    for address, data in enumerate(code):
        try:
            text = disassemble(data).mnemonic
        except UnknownOpcode:
            text = f".byte {data:08b}"
        lines.append(f"{address:2d}: {data:08b}  {text}")
    return lines
