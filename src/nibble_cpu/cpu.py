"""NibbleCPU: Fetch-decode-execute engine for the nibble CPU.

Execution pipeline:
    ROM -> FETCH -> DECODE -> REGISTRY -> EXECUTE -> ADVANCE/HALT

One cycle:
    1. Fetch the byte at PC (PC past the end of ROM fetches 0x00)
    2. Decode it; an unknown opcode aborts the run
    3. Execute the opcode's primitive
    4. Increment PC, jumps included, then halt if len(ROM) <= PC + 1

The halt test looks one cell ahead, so the last ROM cell is never
executed, and a jump lands one past its target. Both are part of the
machine's defined behavior.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from .assembler import assemble
from .errors import CycleLimitExceeded, UnknownOpcode
from .isa import Instruction, Opcode, Register, assemble_instructions, decode, to_instruction
from .memory import Port, Rom
from .registry import OpcodeRegistry, get_registry
from .state import RegisterFile

logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        pc: Program counter the byte was fetched from
        fetched: Raw fetched byte
        opcode: Decoded opcode
        operand: Decoded operand
        instruction: Abstract instruction for the fetched byte
        pre_state: Register snapshot before execution
        post_state: Register snapshot after advance
        output: Output latch after execution
        halted: Whether this cycle ended the run
    """
    cycle: int
    pc: int
    fetched: int
    opcode: Opcode
    operand: int
    instruction: Instruction
    pre_state: dict
    post_state: dict
    output: int
    halted: bool


Observer = Callable[[ExecutionTraceEntry], None]


class NibbleCPU:
    """4-bit CPU emulator.

    Attributes:
        registers: Register file (A, B, carry, PC)
        port: I/O port
        rom: Loaded program, None until a program is loaded
        registry: Opcode primitives
        trace: List of execution trace entries
        observer: Optional callback invoked once per cycle
    """

    def __init__(self, observer: Optional[Observer] = None):
        """Initialize the CPU.

        Args:
            observer: Called with each ExecutionTraceEntry after the cycle
        """
        self.registers = RegisterFile()
        self.port = Port()
        self.rom: Optional[Rom] = None
        self.registry: OpcodeRegistry = get_registry()
        self.trace: List[ExecutionTraceEntry] = []
        self.observer = observer
        self.halted = False
        self.cycle_count = 0

    # =========================================================================
    # Program loading
    # =========================================================================

    def load_program(self, source: str, input_value: int = 0) -> None:
        """Assemble mnemonic source and load it.

        Raises:
            AssemblyError: If the source does not assemble
            EmptyProgram: If the source has no instructions
            MemoryOverflow: If the program is longer than 16 bytes
        """
        self.load_bytes(assemble(source), input_value)

    def load_instructions(self, instructions: Iterable[Instruction], input_value: int = 0) -> None:
        """Encode and load pre-parsed instructions."""
        self.load_bytes(assemble_instructions(instructions), input_value)

    def load_bytes(self, code: Iterable[int], input_value: int = 0) -> None:
        """Load machine code and reset the CPU.

        Args:
            code: Program bytes (at most 16)
            input_value: Initial value of the input latch

        Raises:
            MemoryOverflow: If the program is longer than 16 bytes
        """
        self.rom = Rom(code)
        self.registers.reset()
        self.port = Port(input_value)
        self.trace = []
        self.halted = False
        self.cycle_count = 0
        logger.info(f"Loaded {len(self.rom)} byte program, input={self.port.input():04b}")

    def set_input(self, value: int) -> None:
        """Set the input latch. Must be done before run()."""
        self.port.set_input(value)

    # =========================================================================
    # Execution
    # =========================================================================

    def fetch(self) -> int:
        """Read the byte at PC, or 0x00 when PC is past the end of ROM."""
        pc = self.registers.pc
        if self.rom.size() <= pc:
            return 0
        return self.rom.read(pc)

    def execute(self, opcode: Opcode, operand: int) -> None:
        """Run the execute stage only; PC is not advanced."""
        self.registry.execute(self.registers, self.port, opcode, operand)

    def should_halt(self) -> bool:
        return self.rom.size() <= self.registers.pc + 1

    def step(self) -> ExecutionTraceEntry:
        """Execute a single fetch-decode-execute-advance cycle.

        Returns:
            ExecutionTraceEntry for the cycle

        Raises:
            RuntimeError: If no program loaded or CPU halted
            UnknownOpcode: If the fetched byte does not decode
        """
        if self.rom is None:
            raise RuntimeError("No program loaded")
        if self.halted:
            raise RuntimeError("CPU is halted")

        pc = self.registers.pc
        pre_state = self.registers.snapshot()

        # FETCH
        data = self.fetch()

        # DECODE
        try:
            opcode, operand = decode(data)
        except UnknownOpcode as e:
            logger.error(f"[Cycle {self.cycle_count}] PC={pc} fetch={data:08b}: {e}")
            raise

        # EXECUTE
        self.execute(opcode, operand)

        # ADVANCE, then check for halt
        self.registers.increment_program_counter()
        self.halted = self.should_halt()

        entry = ExecutionTraceEntry(
            cycle=self.cycle_count,
            pc=pc,
            fetched=data,
            opcode=opcode,
            operand=operand,
            instruction=to_instruction(opcode, operand),
            pre_state=pre_state,
            post_state=self.registers.snapshot(),
            output=self.port.output(),
            halted=self.halted,
        )
        self.cycle_count += 1
        self.trace.append(entry)

        logger.debug(
            f"[Cycle {entry.cycle}] PC={pc} fetch={data:08b} "
            f"{opcode.name} imm={operand:04b} -> {self.registers}"
        )
        if self.observer is not None:
            self.observer(entry)

        return entry

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run until the halt condition holds.

        The machine has no watchdog: a program that never reaches the halt
        condition loops forever unless the caller passes max_cycles.

        Args:
            max_cycles: Optional cycle cap

        Returns:
            Complete execution trace

        Raises:
            RuntimeError: If no program loaded
            UnknownOpcode: If a fetched byte does not decode
            CycleLimitExceeded: If max_cycles is reached first
        """
        if self.rom is None:
            raise RuntimeError("No program loaded")

        while not self.halted:
            if max_cycles is not None and self.cycle_count >= max_cycles:
                raise CycleLimitExceeded(max_cycles)
            self.step()

        logger.info(f"Halted after {self.cycle_count} cycle(s): {self.registers}")
        return self.trace

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_register(self, reg) -> int:
        """Get value of a register.

        Args:
            reg: Register selector or its name ("A"/"B")
        """
        if not isinstance(reg, Register):
            reg = Register(str(reg).upper())
        return self.registers.get_register(reg)

    def dump_registers(self) -> Dict[str, int]:
        return self.registers.dump_registers()

    def get_carry(self) -> int:
        return self.registers.carry_flag

    def get_pc(self) -> int:
        return self.registers.pc

    def get_output(self) -> int:
        return self.port.output()

    def get_cycle_count(self) -> int:
        return self.cycle_count

    def is_halted(self) -> bool:
        return self.halted

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 60)
        print("EXECUTION TRACE")
        print("=" * 60)

        for entry in self.trace:
            print(f"\n[Cycle {entry.cycle}] PC={entry.pc}")
            print(f"  Fetch:       {entry.fetched:08b}")
            print(f"  Instruction: {entry.instruction}")

            changes = []
            for name in ("A", "B", "carry"):
                before, after = entry.pre_state[name], entry.post_state[name]
                if before != after:
                    changes.append(f"{name}: {before} -> {after}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")
            print(f"  PC: {entry.pre_state['pc']} -> {entry.post_state['pc']}")
            if entry.halted:
                print("  HALT")

        print("\n" + "=" * 60)
        print("FINAL STATE")
        print("=" * 60)
        summary = self.get_summary()
        print(f"  Registers: {summary['registers']}")
        print(f"  Carry: {summary['carry']}")
        print(f"  PC: {summary['pc']}")
        print(f"  Output: {summary['output']:04b} ({summary['output']})")
        print(f"  Cycles: {summary['cycles']}")
        print(f"  Halted: {summary['halted']}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.cycle_count,
            "halted": self.halted,
            "registers": self.dump_registers(),
            "carry": self.registers.carry_flag,
            "pc": self.registers.pc,
            "input": self.port.input(),
            "output": self.port.output(),
            "trace_length": len(self.trace),
        }
