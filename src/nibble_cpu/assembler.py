"""Assembler front-end for the nibble CPU.

Turns mnemonic source text into abstract instructions and program bytes:

    source -> parse_program -> words per line -> Parser -> Instruction -> encode

Syntax (one instruction per line, case-insensitive, commas optional):
    add A 0001      A = A + 1
    mov B 0011      B = 3
    mov A B         A = B
    mov B A         B = A
    jmp 0010        jump (also accepts a label)
    jnc loop        jump if no carry
    in A            A = input port
    out B           output port = B
    out 0101        output port = 5

Bare numbers are binary. Prefix with 0x, 0b or 0d for hex, binary or
decimal. ``;`` and ``#`` start comments; ``name:`` defines a label.
Label names are case-insensitive and may be defined only once.

Line errors are returned as invalid ParseResults rather than raised, so a
bad program never reaches the engine; parse() gathers them into a single
AssemblyError.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from . import isa
from .errors import AssemblyError, EmulatorError
from .isa import Instruction, Register

logger = logging.getLogger(__name__)


LABEL_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


@dataclass
class SourceLine:
    """One instruction line after tokenizing.

    Attributes:
        lineno: 1-based line number in the source
        words: Mnemonic followed by its operands
        text: Original line with comments stripped
        error: Set when the line is rejected before parsing
    """
    lineno: int
    words: List[str]
    text: str
    error: Optional[str] = None


@dataclass
class ParseResult:
    """Result of parsing a single line.

    Attributes:
        instruction: Parsed instruction, None when invalid
        valid: Whether parsing succeeded
        error: Error message if parsing failed
        raw_instruction: Original line text
    """
    instruction: Optional[Instruction]
    valid: bool
    error: Optional[str] = None
    raw_instruction: str = ""


def tokenize(line: str) -> List[str]:
    """Split one line into words on whitespace and commas."""
    return [word for word in re.split(r'[\s,]+', line.strip()) if word]


def parse_program(source: str) -> Tuple[List[SourceLine], Dict[str, int]]:
    """Split source code into instruction lines and labels.

    Handles:
        - Labels (``name:`` alone or in front of an instruction),
          stored lowercase
        - Comments (starting with ; or #)
        - Blank lines

    A label defined twice produces a line carrying an error instead of
    an address.

    Args:
        source: Assembly source code

    Returns:
        Tuple of (source lines, label-to-address dict)
    """
    lines = []
    labels = {}
    address = 0

    for lineno, line in enumerate(source.split("\n"), start=1):
        line = re.sub(r'[;#].*$', '', line).strip()
        if not line:
            continue

        # Label, optionally followed by an instruction on the same line
        label_match = re.match(r'^([A-Za-z_][A-Za-z0-9_]*)\s*:(.*)$', line)
        if label_match:
            name = label_match.group(1)
            if name.lower() in labels:
                lines.append(SourceLine(lineno, [], line, error=f"Duplicate label: {name}"))
            else:
                labels[name.lower()] = address
            line = label_match.group(2).strip()
            if not line:
                continue

        lines.append(SourceLine(lineno, tokenize(line), line))
        address += 1

    return lines, labels


def parse_immediate(text: str) -> int:
    """Parse a 4-bit immediate.

    Raises:
        ValueError: If the text is not a number or does not fit in 4 bits
    """
    lowered = text.lower()
    if lowered.startswith("0x"):
        value = int(lowered[2:], 16)
    elif lowered.startswith("0d"):
        value = int(lowered[2:], 10)
    elif lowered.startswith("0b"):
        value = int(lowered[2:], 2)
    else:
        value = int(lowered, 2)

    if not 0 <= value <= 0x0F:
        raise ValueError(f"Immediate out of range (0-15): {text}")
    return value


def parse_register(text: str) -> Register:
    """Parse a register name (A or B, case-insensitive).

    Raises:
        ValueError: If the name is not a register
    """
    try:
        return Register(text.upper())
    except ValueError:
        raise ValueError(f"Invalid register: {text}") from None


class Parser:
    """Builds abstract instructions from tokenized source lines.

    Attributes:
        labels: Label-to-address mapping used for jump targets
    """

    def __init__(self, labels: Optional[Dict[str, int]] = None):
        self.labels: Dict[str, int] = {}
        self.set_labels(labels or {})

    def set_labels(self, labels: Dict[str, int]) -> None:
        self.labels = {name.lower(): address for name, address in labels.items()}

    def parse_line(self, words: List[str], raw: str = "") -> ParseResult:
        """Parse one instruction.

        Args:
            words: Mnemonic followed by operands
            raw: Original text, kept for error messages

        Returns:
            ParseResult with the instruction or an error message
        """
        raw = raw or " ".join(words)
        if not words:
            return ParseResult(None, False, "Empty instruction", raw)

        mnemonic, operands = words[0].lower(), words[1:]
        try:
            instruction = self._build(mnemonic, operands)
        except (ValueError, EmulatorError) as e:
            return ParseResult(None, False, str(e), raw)
        return ParseResult(instruction, True, raw_instruction=raw)

    def _build(self, mnemonic: str, operands: List[str]) -> Instruction:
        if mnemonic == "mov":
            self._expect(mnemonic, operands, 2)
            dest = parse_register(operands[0])
            src = operands[1].upper()
            if src in ("A", "B"):
                if dest is Register.A and src == "B":
                    return isa.mov_b_to_a()
                if dest is Register.B and src == "A":
                    return isa.mov_a_to_b()
                raise ValueError(f"Cannot move register {src} into itself")
            return isa.mov(dest, parse_immediate(operands[1]))

        if mnemonic == "add":
            self._expect(mnemonic, operands, 2)
            return isa.add(parse_register(operands[0]), parse_immediate(operands[1]))

        if mnemonic == "jmp":
            self._expect(mnemonic, operands, 1)
            return isa.jump(self._resolve_address(operands[0]))

        if mnemonic == "jnc":
            self._expect(mnemonic, operands, 1)
            return isa.jump_if_no_carry(self._resolve_address(operands[0]))

        if mnemonic == "in":
            self._expect(mnemonic, operands, 1)
            return isa.input_to(parse_register(operands[0]))

        if mnemonic == "out":
            self._expect(mnemonic, operands, 1)
            if operands[0].upper() == "B":
                return isa.out_from_b()
            return isa.out_immediate(parse_immediate(operands[0]))

        raise ValueError(f"Invalid instruction: {mnemonic}")

    @staticmethod
    def _expect(mnemonic: str, operands: List[str], count: int) -> None:
        if len(operands) != count:
            raise ValueError(
                f"{mnemonic} expects {count} operand(s), got {len(operands)}"
            )

    def _resolve_address(self, text: str) -> int:
        """Resolve a jump target: label name or numeric immediate."""
        if text.lower() in self.labels:
            address = self.labels[text.lower()]
            if address > 0x0F:
                raise ValueError(f"Label {text} is out of range: {address}")
            return address
        try:
            return parse_immediate(text)
        except ValueError:
            if LABEL_PATTERN.match(text) and not re.fullmatch(r'[01]+', text):
                raise ValueError(f"Unknown label: {text}") from None
            raise


def parse(source: str) -> List[Instruction]:
    """Parse source code into abstract instructions.

    Raises:
        AssemblyError: If any line fails to parse
    """
    lines, labels = parse_program(source)
    parser = Parser(labels)

    instructions = []
    errors = []
    for line in lines:
        if line.error:
            errors.append(f"line {line.lineno}: {line.error}")
            continue
        result = parser.parse_line(line.words, line.text)
        if result.valid:
            instructions.append(result.instruction)
        else:
            errors.append(f"line {line.lineno}: {result.error} ({result.raw_instruction})")

    if errors:
        logger.warning(f"Assembly failed with {len(errors)} error(s)")
        raise AssemblyError(errors)
    return instructions


def assemble(source: str) -> bytes:
    """Assemble source code into program bytes.

    Raises:
        AssemblyError: If any line fails to parse
        EmptyProgram: If the source has no instructions
    """
    code = isa.assemble_instructions(parse(source))
    logger.info(f"Assembled {len(code)} byte(s)")
    return code
