"""Tests for the NibbleCPU fetch-decode-execute engine."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu import isa
from nibble_cpu.cpu import NibbleCPU
from nibble_cpu.errors import CycleLimitExceeded, MemoryOverflow, UnknownOpcode
from nibble_cpu.isa import Opcode, Register
from nibble_cpu.registry import OpcodeRegistry, get_registry


@pytest.fixture
def cpu():
    return NibbleCPU()


def run_bytes(cpu, code, input_value=0):
    cpu.load_bytes(code, input_value)
    cpu.run()
    return cpu


class TestSingleInstruction:
    """One-byte programs run exactly one instruction."""

    def test_add_a(self, cpu):
        run_bytes(cpu, [0b00000001])
        assert cpu.get_register("A") == 1
        assert cpu.get_register("B") == 0
        assert cpu.get_pc() == 1
        assert cpu.get_carry() == 0
        assert cpu.get_cycle_count() == 1

    def test_add_b(self, cpu):
        run_bytes(cpu, [0b01010001])
        assert cpu.dump_registers() == {"A": 0, "B": 1}
        assert cpu.get_pc() == 1

    def test_mov_a(self, cpu):
        run_bytes(cpu, [0b00110001])
        assert cpu.dump_registers() == {"A": 1, "B": 0}

    def test_mov_b(self, cpu):
        run_bytes(cpu, [0b01110001])
        assert cpu.dump_registers() == {"A": 0, "B": 1}

    def test_mov_b_to_a(self, cpu):
        """MOV A, B copies B into A."""
        cpu.load_bytes([0b00010000])
        cpu.registers.set_register_b(2)
        cpu.run()
        assert cpu.dump_registers() == {"A": 2, "B": 2}

    def test_mov_a_to_b(self, cpu):
        """MOV B, A copies A into B."""
        cpu.load_bytes([0b01000000])
        cpu.registers.set_register_a(2)
        cpu.run()
        assert cpu.dump_registers() == {"A": 2, "B": 2}

    def test_in_a(self, cpu):
        run_bytes(cpu, [0b00100000], input_value=0b0001)
        assert cpu.dump_registers() == {"A": 1, "B": 0}

    def test_in_b(self, cpu):
        run_bytes(cpu, [0b01100000], input_value=0b0010)
        assert cpu.dump_registers() == {"A": 0, "B": 2}

    def test_out_b(self, cpu):
        cpu.load_bytes([0b10010000])
        cpu.registers.set_register_b(6)
        cpu.run()
        assert cpu.get_output() == 6

    def test_out_im(self, cpu):
        run_bytes(cpu, [0b10110101])
        assert cpu.get_output() == 5
        assert cpu.dump_registers() == {"A": 0, "B": 0}


class TestCarry:
    """Carry flag rules."""

    def test_add_overflow_sets_carry(self, cpu):
        """15 + 2 wraps to 1 and sets carry."""
        cpu.load_instructions([isa.add(Register.A, 2)])
        cpu.registers.set_register_a(15)
        cpu.run()
        assert cpu.get_register(Register.A) == 1
        assert cpu.get_carry() == 1

    def test_add_exact_fifteen_no_carry(self, cpu):
        cpu.load_instructions([isa.add(Register.B, 15)])
        cpu.run()
        assert cpu.get_register(Register.B) == 15
        assert cpu.get_carry() == 0

    def test_add_never_clears_carry(self, cpu):
        """ADD without overflow leaves a set carry alone."""
        cpu.load_instructions([isa.add(Register.A, 1)])
        cpu.registers.set_carry_flag(1)
        cpu.run()
        assert cpu.get_carry() == 1

    @pytest.mark.parametrize("instruction", [
        isa.mov(Register.A, 3),
        isa.mov(Register.B, 3),
        isa.mov_a_to_b(),
        isa.mov_b_to_a(),
        isa.jump(0),
        isa.jump_if_no_carry(0),
        isa.input_to(Register.A),
        isa.input_to(Register.B),
        isa.out_from_b(),
        isa.out_immediate(3),
    ])
    def test_other_instructions_clear_carry(self, cpu, instruction):
        cpu.load_instructions([instruction])
        cpu.registers.set_carry_flag(1)
        cpu.execute(instruction.opcode, instruction.immediate)
        assert cpu.get_carry() == 0


class TestControlFlow:
    """Jump semantics and halt boundary."""

    def test_jump_overshoot(self, cpu):
        """JMP 2 lands on 3 after the advance, so the target never runs."""
        cpu.load_instructions([
            isa.jump(2),
            isa.mov(Register.A, 1),
            isa.mov(Register.B, 2),
        ])
        cpu.run()
        assert cpu.get_pc() == 3
        assert cpu.dump_registers() == {"A": 0, "B": 0}
        assert cpu.get_cycle_count() == 1

    def test_jnc_taken(self, cpu):
        """With carry clear, JNC sets PC to the target."""
        cpu.load_bytes([0] * 8)
        cpu.execute(Opcode.JNC, 5)
        assert cpu.get_pc() == 5
        assert cpu.get_carry() == 0

    def test_jnc_not_taken(self, cpu):
        """With carry set, JNC leaves PC alone and clears carry."""
        cpu.load_bytes([0] * 8)
        cpu.registers.set_pc(2)
        cpu.registers.set_carry_flag(1)
        cpu.execute(Opcode.JNC, 5)
        assert cpu.get_pc() == 2
        assert cpu.get_carry() == 0

    def test_jmp_execute_stage(self, cpu):
        cpu.load_bytes([0] * 8)
        cpu.execute(Opcode.JMP, 7)
        assert cpu.get_pc() == 7

    def test_last_cell_not_executed(self, cpu):
        """The look-ahead halt stops one instruction before the end."""
        cpu.load_instructions([
            isa.mov(Register.A, 1),
            isa.mov(Register.B, 2),
            isa.out_immediate(3),
        ])
        cpu.run()
        assert cpu.dump_registers() == {"A": 1, "B": 2}
        assert cpu.get_output() == 0
        assert cpu.get_pc() == 2
        assert cpu.get_cycle_count() == 2

    def test_jump_past_end_halts(self, cpu):
        cpu.load_instructions([isa.jump(15), isa.mov(Register.A, 1)])
        cpu.run()
        assert cpu.get_pc() == 16
        assert cpu.is_halted() is True

    def test_fetch_past_end_reads_zero(self, cpu):
        """PC beyond ROM fetches 0x00 instead of failing."""
        cpu.load_bytes([0b00110001])
        cpu.registers.set_pc(9)
        assert cpu.fetch() == 0

    def test_empty_rom_runs_synthetic_zero(self, cpu):
        """A ROM with no bytes executes one ADD A, 0 and halts."""
        cpu.load_bytes([])
        entry = cpu.step()
        assert entry.fetched == 0
        assert entry.opcode is Opcode.ADD_A
        assert cpu.is_halted() is True

    def test_infinite_loop_with_cycle_cap(self, cpu):
        """JNC 0 right after a non-overflowing ADD loops until capped."""
        cpu.load_program("add A 0000\njnc 0000\nout 0001")
        with pytest.raises(CycleLimitExceeded) as excinfo:
            cpu.run(max_cycles=50)
        assert excinfo.value.limit == 50
        assert cpu.get_cycle_count() == 50
        assert cpu.is_halted() is False


class TestIO:
    """Port behavior across a run."""

    def test_in_b_out_b(self, cpu):
        cpu.load_instructions([isa.input_to(Register.B), isa.out_from_b(), isa.out_from_b()])
        cpu.set_input(9)
        cpu.run()
        assert cpu.get_output() == 9

    def test_in_a_copy_out(self, cpu):
        cpu.load_instructions([
            isa.input_to(Register.A),
            isa.mov_a_to_b(),
            isa.out_from_b(),
            isa.out_from_b(),
        ], input_value=9)
        cpu.run()
        assert cpu.get_output() == 9
        assert cpu.get_summary()["input"] == 9


class TestErrors:
    """Fatal conditions."""

    def test_unknown_opcode_aborts(self, cpu):
        cpu.load_bytes([0b00110001, 0b10000000, 0b00110010])
        with pytest.raises(UnknownOpcode) as excinfo:
            cpu.run()
        assert excinfo.value.nibble == 0b1000
        assert cpu.get_register("A") == 1
        assert cpu.get_cycle_count() == 1

    def test_memory_overflow(self, cpu):
        with pytest.raises(MemoryOverflow):
            cpu.load_bytes([0] * 17)
        assert cpu.rom is None

    def test_step_without_program(self, cpu):
        with pytest.raises(RuntimeError, match="No program loaded"):
            cpu.step()

    def test_step_after_halt(self, cpu):
        run_bytes(cpu, [0b00110001])
        with pytest.raises(RuntimeError, match="halted"):
            cpu.step()


class TestTrace:
    """Trace entries and observer hook."""

    def test_observer_called_per_cycle(self):
        entries = []
        cpu = NibbleCPU(observer=entries.append)
        cpu.load_program("mov A 0011\nadd A 0001\nout B")
        cpu.run()
        assert len(entries) == 2
        assert entries == cpu.trace

    def test_entry_contents(self, cpu):
        cpu.load_program("mov A 0011\nadd A 1110\nout B")
        trace = cpu.run()
        first, second = trace
        assert first.cycle == 0
        assert first.pc == 0
        assert first.fetched == 0b00110011
        assert first.opcode is Opcode.MOV_A
        assert first.operand == 3
        assert str(first.instruction) == "mov A 0011"
        assert first.pre_state == {"A": 0, "B": 0, "carry": 0, "pc": 0}
        assert first.post_state == {"A": 3, "B": 0, "carry": 0, "pc": 1}
        assert first.halted is False
        assert second.post_state == {"A": 1, "B": 0, "carry": 1, "pc": 2}
        assert second.halted is True

    def test_reload_resets(self, cpu):
        run_bytes(cpu, [0b00110101])
        cpu.load_bytes([0b01110001])
        assert cpu.get_register("A") == 0
        assert cpu.trace == []
        assert cpu.is_halted() is False

    def test_print_trace(self, cpu, capsys):
        cpu.load_program("mov A 0011\nout 0001")
        cpu.run()
        cpu.print_trace()
        out = capsys.readouterr().out
        assert "mov A 0011" in out
        assert "A: 0 -> 3" in out
        assert "HALT" in out


class TestRegistry:
    """Opcode registry."""

    def test_every_opcode_registered(self):
        assert get_registry().get_valid_opcodes() == set(Opcode)

    def test_frozen(self):
        registry = OpcodeRegistry()
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError):
            registry.register(Opcode.JMP, lambda registers, port, operand: None)

    def test_singleton(self):
        assert get_registry() is get_registry()
