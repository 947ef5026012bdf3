#!/usr/bin/env python3
"""nibble-cpu Command Line Interface.

Assemble and run programs on the 4-bit emulator.

Usage:
    python main.py --program programs/count.asm
    python main.py --inline "in A; add A 0011; mov B A; out B; out B" --input 0101
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from nibble_cpu import EmulatorError, NibbleCPU
from nibble_cpu.assembler import parse_immediate
from nibble_cpu.isa import disassemble_program


def input_value(text: str) -> int:
    """argparse type for the input latch (binary, 0x.., 0b.. or 0d..)."""
    try:
        return parse_immediate(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def main():
    parser = argparse.ArgumentParser(
        description="nibble-cpu: 4-bit Educational CPU Emulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a program file
    python main.py --program programs/count.asm

    # Run with full trace output
    python main.py --program programs/count.asm --trace

    # Set the input port and run inline assembly
    python main.py --inline "in B; out B; out B" --input 1001

    # Show the assembled listing
    python main.py --program programs/count.asm --listing
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        help="Path to assembly program file (.asm)"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline assembly (separate instructions with ;)"
    )
    parser.add_argument(
        "--input", "-n",
        type=input_value,
        default=0,
        help="Input port value (binary, or 0x/0b/0d prefixed). Default: 0000"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many cycles. Default: no limit"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--listing", "-l",
        action="store_true",
        help="Print the assembled program before running"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (output port only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    if not args.program and not args.inline:
        parser.error("Either --program or --inline is required")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Load program
    if args.program:
        program_path = Path(args.program)
        if not program_path.exists():
            print(f"Error: Program file not found: {args.program}")
            return 1
        source = program_path.read_text()
        if not args.quiet:
            print(f"Loading program: {args.program}")
    else:
        # Inline assembly
        source = args.inline.replace(";", "\n")
        if not args.quiet:
            print("Running inline assembly")

    cpu = NibbleCPU()
    try:
        cpu.load_program(source, input_value=args.input)
    except EmulatorError as e:
        print(f"Assembly error: {e}")
        return 1

    if args.listing:
        print("\n".join(disassemble_program(cpu.rom.data)))

    # Run
    if not args.quiet:
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    try:
        cpu.run(max_cycles=args.max_cycles)
    except EmulatorError as e:
        print(f"Execution error: {e}")

    # Output
    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        summary = cpu.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"Registers: {summary['registers']}")
        print(f"Carry: {summary['carry']}")
        print(f"PC: {summary['pc']}")
        print(f"Output: {summary['output']:04b} ({summary['output']})")
    else:
        print(f"{cpu.get_output():04b}")

    # Return exit code based on halted state
    return 0 if cpu.is_halted() else 1


if __name__ == "__main__":
    sys.exit(main())
