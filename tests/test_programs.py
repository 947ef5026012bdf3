"""Integration tests for example programs."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu import NibbleCPU


COUNT_TO_OVERFLOW = """
    mov A 1100      ; 0: A = 12
    mov B A         ; 1: B = A
    out B           ; 2: show B
    add A 0001      ; 3: A += 1, carry on wrap
    jnc 0000        ; 4: no carry -> next fetch at 1
    out 0000        ; 5: clear output
    out 0000        ; 6: padding, never executed
"""

ADD_THREE = """
    in A            ; A = input
    add A 0011      ; A += 3
    mov B A         ; B = A
    out B           ; output = B
    out B           ; padding
"""


class TestCountToOverflow:
    """Loop until ADD sets carry, then fall through."""

    @pytest.fixture
    def cpu(self):
        return NibbleCPU()

    def test_final_state(self, cpu):
        cpu.load_program(COUNT_TO_OVERFLOW)
        cpu.run()

        assert cpu.dump_registers() == {"A": 0, "B": 15}
        assert cpu.get_output() == 0
        assert cpu.get_carry() == 0
        assert cpu.get_pc() == 6
        assert cpu.is_halted() is True

    def test_cycle_count(self, cpu):
        """3 setup + 4 passes of 4 instructions - 1 skipped MOV + final OUT."""
        cpu.load_program(COUNT_TO_OVERFLOW)
        cpu.run()
        assert cpu.get_cycle_count() == 18

    def test_output_sequence(self):
        """Observer sees the output latch count 12..15 then clear."""
        outputs = []

        def watch(entry):
            if entry.instruction.mnemonic.startswith("out") and (not outputs or outputs[-1] != entry.output):
                outputs.append(entry.output)

        cpu = NibbleCPU(observer=watch)
        cpu.load_program(COUNT_TO_OVERFLOW)
        cpu.run()
        assert outputs == [12, 13, 14, 15, 0]


class TestAddThree:
    """Read the input port, add 3, write the output port."""

    @pytest.mark.parametrize("value,expected", [(0, 3), (9, 12), (12, 15)])
    def test_no_overflow(self, value, expected):
        cpu = NibbleCPU()
        cpu.load_program(ADD_THREE, input_value=value)
        cpu.run()
        assert cpu.get_output() == expected
        assert cpu.get_cycle_count() == 4

    def test_overflow_wraps(self):
        """14 + 3 wraps to 1; the following MOV clears the carry."""
        cpu = NibbleCPU()
        cpu.load_program(ADD_THREE, input_value=14)
        cpu.run()
        assert cpu.get_output() == 1
        assert cpu.get_carry() == 0
        assert cpu.trace[1].post_state["carry"] == 1


class TestJumpOvershoot:
    """JMP 2 in a three byte program halts before its target."""

    def test_target_skipped(self):
        cpu = NibbleCPU()
        cpu.load_program("jmp 0010\nmov A 0001\nmov B 0010")
        cpu.run()
        assert cpu.get_pc() == 3
        assert cpu.dump_registers() == {"A": 0, "B": 0}


PROGRAMS_DIR = Path(__file__).parent.parent / "programs"


class TestShippedPrograms:
    """Programs in programs/ assemble and halt."""

    @pytest.mark.parametrize("path", sorted(PROGRAMS_DIR.glob("*.asm")), ids=lambda p: p.name)
    def test_runs_to_halt(self, path):
        cpu = NibbleCPU()
        cpu.load_program(path.read_text(), input_value=0b0101)
        cpu.run(max_cycles=1000)
        assert cpu.is_halted() is True

    def test_count_matches_inline_copy(self):
        cpu = NibbleCPU()
        cpu.load_program((PROGRAMS_DIR / "count.asm").read_text())
        cpu.run()
        assert cpu.get_cycle_count() == 18
