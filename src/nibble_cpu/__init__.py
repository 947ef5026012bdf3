"""nibble-cpu: 4-bit Educational CPU Emulator.

A tiny processor with two 4-bit registers (A, B), a carry flag, a
program counter, a 16-byte program ROM and one I/O port. Programs are
written in a small mnemonic language, assembled to one byte per
instruction and executed cycle by cycle.

Architecture:
    SOURCE -> ASSEMBLER -> ENCODE -> ROM -> FETCH -> DECODE -> EXECUTE -> STATE
                 |                             |                  |
            [front-end]                   [opcode table]     [registry]

Modules:
    isa: Opcode table, Instruction values, encode/decode
    state: RegisterFile
    memory: Rom and Port
    registry: Per-opcode execution primitives
    assembler: Mnemonic text front-end
    cpu: Main NibbleCPU engine
"""

__version__ = "0.1.0"

from .errors import (
    AssemblyError,
    CycleLimitExceeded,
    EmptyProgram,
    EmulatorError,
    ImmediateOutOfRange,
    InvalidOperand,
    MemoryOverflow,
    UnknownOpcode,
)
from .isa import Instruction, Opcode, Operation, Register, decode, encode
from .state import RegisterFile
from .memory import Port, Rom
from .registry import OpcodeRegistry
from .assembler import assemble, parse
from .cpu import ExecutionTraceEntry, NibbleCPU

__all__ = [
    "AssemblyError",
    "CycleLimitExceeded",
    "EmptyProgram",
    "EmulatorError",
    "ImmediateOutOfRange",
    "InvalidOperand",
    "MemoryOverflow",
    "UnknownOpcode",
    "Instruction",
    "Opcode",
    "Operation",
    "Register",
    "decode",
    "encode",
    "RegisterFile",
    "Port",
    "Rom",
    "OpcodeRegistry",
    "assemble",
    "parse",
    "ExecutionTraceEntry",
    "NibbleCPU",
]
