"""nibble-cpu Interactive Demo.

A Gradio web interface for running and visualizing 4-bit CPU execution.

Usage:
    cd /path/to/nibble-cpu
    python demo/gradio_app.py

Features:
    - Write or load mnemonic programs
    - Set the input port
    - See the assembled listing and a cycle-by-cycle trace
    - Inspect the final registers, carry flag and output port
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from nibble_cpu import EmulatorError, NibbleCPU
from nibble_cpu.isa import disassemble_program


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Count to overflow": """    mov A 1100      ; 0: A = 12
    mov B A         ; 1: B = A
    out B           ; 2: show B
    add A 0001      ; 3: A += 1, carry on wrap
    jnc 0000        ; 4: no carry -> continue at 1
    out 0000        ; 5: clear output
    out 0000        ; 6: padding (never executed)""",

    "Add three": """    in A            ; A = input
    add A 0011      ; A += 3
    mov B A         ; B = A
    out B           ; output = B
    out B           ; padding""",

    "Echo input": """    in B            ; B = input
    out B           ; output = B
    out B           ; padding""",

    "Jump overshoot": """    jmp 0010        ; lands on 3, not 2
    mov A 0001
    mov B 0010      ; never executed""",

    "Custom": ""
}

# Trace lines shown before truncating
MAX_TRACE_ENTRIES = 100


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, input_value: int, max_cycles: int) -> tuple:
    """Assemble and execute a program, returning formatted results.

    Args:
        program: Mnemonic source code
        input_value: Input port value (0-15)
        max_cycles: Cycle cap for programs that never halt

    Returns:
        Tuple of (summary_text, trace_text, registers_text, listing_text)
    """
    if not program.strip():
        return "Error: No program provided", "", "", ""

    cpu = NibbleCPU()
    try:
        cpu.load_program(program, input_value=int(input_value))
    except EmulatorError as e:
        return f"Assembly error:\n{e}", "", "", ""

    listing_text = "\n".join(disassemble_program(cpu.rom.data))

    try:
        trace = cpu.run(max_cycles=int(max_cycles))
    except EmulatorError as e:
        error_msg = str(e)
        trace = cpu.trace
    else:
        error_msg = None

    # Format summary
    summary = cpu.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {summary['cycles']}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}",
        f"Input:  {summary['input']:04b}",
        f"Output: {summary['output']:04b} ({summary['output']})",
    ]
    if error_msg:
        summary_lines.append(f"\nRuntime: {error_msg}")
    summary_text = "\n".join(summary_lines)

    # Format trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:MAX_TRACE_ENTRIES]:
        trace_lines.append(f"\n--- Cycle {entry.cycle} (PC={entry.pc}) ---")
        trace_lines.append(f"Fetch:       {entry.fetched:08b}")
        trace_lines.append(f"Instruction: {entry.instruction}")

        changes = []
        for name in ("A", "B", "carry", "pc"):
            before, after = entry.pre_state[name], entry.post_state[name]
            if before != after:
                changes.append(f"{name}: {before} -> {after}")
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")
        if entry.halted:
            trace_lines.append("HALT")

    if len(trace) > MAX_TRACE_ENTRIES:
        trace_lines.append(f"\n... ({len(trace) - MAX_TRACE_ENTRIES} more entries)")

    trace_text = "\n".join(trace_lines)

    # Format registers
    regs = cpu.dump_registers()
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg in sorted(regs.keys()):
        reg_lines.append(f"  {reg}: {regs[reg]:04b} ({regs[reg]})")
    reg_lines.append(f"  C: {summary['carry']}")
    reg_lines.append(f"  PC: {summary['pc']}")

    registers_text = "\n".join(reg_lines)

    return summary_text, trace_text, registers_text, listing_text


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="nibble-cpu Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # nibble-cpu: 4-bit Educational CPU

        Two 4-bit registers, a carry flag, a 16-byte ROM and one I/O port.
        Write a program, assemble it, and watch it execute cycle by cycle.

        **Pipeline**: `fetch -> decode -> execute -> advance/halt`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Count to overflow",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Count to overflow"],
                    label="Source Code",
                    lines=16,
                    placeholder="Enter mnemonic code here..."
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    input_slider = gr.Slider(
                        minimum=0,
                        maximum=15,
                        value=0,
                        step=1,
                        label="Input Port"
                    )
                    max_cycles = gr.Slider(
                        minimum=10,
                        maximum=10000,
                        value=1000,
                        step=10,
                        label="Max Cycles"
                    )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=8,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=8,
                        interactive=False
                    )

                listing_output = gr.Textbox(
                    label="Assembled Listing",
                    lines=8,
                    interactive=False
                )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Opcode | Instruction | Effect |
            |--------|-------------|--------|
            | `0000` | `add A imm` | A = A + imm, carry on overflow |
            | `0101` | `add B imm` | B = B + imm, carry on overflow |
            | `0011` | `mov A imm` | A = imm |
            | `0111` | `mov B imm` | B = imm |
            | `0001` | `mov A B` | A = B |
            | `0100` | `mov B A` | B = A |
            | `0010` | `in A` | A = input port |
            | `0110` | `in B` | B = input port |
            | `1001` | `out B` | output port = B |
            | `1011` | `out imm` | output port = imm |
            | `1111` | `jmp imm` | PC = imm |
            | `1110` | `jnc imm` | PC = imm if carry is clear |

            **Immediates**: 4 bits, written in binary (`0011`) or with a `0x`/`0d` prefix
            **Carry**: set only by `add`, cleared by every other instruction
            **PC**: incremented after every instruction, jumps included
            **Halt**: when the PC reaches the last ROM cell, which is never executed
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, input_slider, max_cycles],
            outputs=[summary_output, trace_output, registers_output, listing_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
