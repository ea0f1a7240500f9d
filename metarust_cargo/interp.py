# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

"""A tiny stack-machine interpreter - the guest language built with metarust.

Programs are plain text files with one instruction or label per line::

    push 3
    loop:
    dup
    print
    push 1
    sub
    dup
    jne 0 loop

Every value on the stack is a signed 32-bit integer. Any parse or runtime error
aborts the program with ``FATAL: <message>`` printed on stdout and exit code 1.
"""

import logging
import re
import sys
from argparse import ArgumentParser
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Sequence, TextIO

from typing_extensions import Self

from .errors import FatalError
from .tools.logs import initialize as initialize_logging

NUMBER_MIN = -(2**31)
NUMBER_MAX = 2**31 - 1
NUMBER_PATTERN = re.compile(r"[+-]?[0-9]+")


class Opcode(Enum):
    PUSH = "push"
    POP = "pop"
    ADD = "add"
    SUB = "sub"
    DUP = "dup"
    PRINT = "print"
    JUMP_EQUAL = "je"
    JUMP_NOT_EQUAL = "jne"


@dataclass(frozen=True)
class Instr:
    """Instr is a single parsed instruction.

    ``number`` is set for push (the value to push) and for both jumps (the value
    to compare the top of the stack with); ``label`` is only set for jumps.
    """

    opcode: Opcode
    number: int | None = None
    label: str | None = None


@dataclass(frozen=True)
class Label:
    """Label marks the position of the next instruction (``name:`` in the source)."""

    name: str


ParsedLine = Instr | Label
Program = list[Instr]
LabelMap = dict[str, int]


def parse_number(s: str) -> int:
    """Parses a signed 32-bit integer.

    >>> parse_number("-42")
    -42
    >>> parse_number("4_2")
    Traceback (most recent call last):
    ...
    metarust_cargo.errors.FatalError: parse error: unparsed number
    >>> parse_number("2147483648")
    Traceback (most recent call last):
    ...
    metarust_cargo.errors.FatalError: parse error: unparsed number
    """
    if not NUMBER_PATTERN.fullmatch(s):
        raise FatalError("parse error: unparsed number")
    n = int(s)
    if n < NUMBER_MIN or n > NUMBER_MAX:
        raise FatalError("parse error: unparsed number")
    return n


def parse_line(line: str) -> ParsedLine:
    """Parses a single line of the source program.

    Operands are separated by single spaces.

    >>> parse_line("  je 0 end")
    Instr(opcode=<Opcode.JUMP_EQUAL: 'je'>, number=0, label='end')
    >>> parse_line("end:")
    Label(name='end')
    """
    operands: Iterator[str] = (i.strip() for i in line.strip().split(" "))

    def next_operand() -> str:
        operand = next(operands, None)
        if operand is None:
            raise FatalError("parse error: too few arguments")
        return operand

    opcode_str = next_operand()
    parsed: ParsedLine
    try:
        opcode = Opcode(opcode_str)
    except ValueError:
        if not opcode_str.endswith(":"):
            raise FatalError("parse error: unknown opcode") from None
        parsed = Label(opcode_str[:-1])
    else:
        if opcode is Opcode.PUSH:
            parsed = Instr(opcode, parse_number(next_operand()))
        elif opcode is Opcode.JUMP_EQUAL or opcode is Opcode.JUMP_NOT_EQUAL:
            number = parse_number(next_operand())
            parsed = Instr(opcode, number, next_operand())
        else:
            parsed = Instr(opcode)

    if next(operands, None) is not None:
        raise FatalError("parse error: too many operands")
    return parsed


def parse_lines(lines: Iterable[str]) -> tuple[Program, LabelMap]:
    """Parses a whole program. Labels map to the index of the instruction following them.

    >>> program, labels = parse_lines(["start:", "push 1", "end:"])
    >>> labels
    {'start': 0, 'end': 1}
    """
    program: Program = []
    labels: LabelMap = {}
    for line in lines:
        parsed = parse_line(line)
        if isinstance(parsed, Label):
            if parsed.name in labels:
                raise FatalError("parse error: duplicate label")
            labels[parsed.name] = len(program)
        else:
            program.append(parsed)
    return program, labels


def parse(path: Path) -> tuple[Program, LabelMap]:
    try:
        f = path.open(encoding="utf-8")
    except OSError as e:
        raise FatalError(f"Failed to open input file: {path}") from e

    with f:
        return parse_lines(line.rstrip("\r\n") for line in f)


class Interp:
    """Interp executes a parsed :py:obj:`Program`, starting at the first instruction,
    until the program counter runs past the last one.
    """

    logger = logging.getLogger("Interp")

    program: Program
    labels: LabelMap
    stack: list[int]
    pc: int
    stdout: TextIO | None

    def __init__(self, program: Program, labels: LabelMap, stdout: TextIO | None = None) -> None:
        self.program = program
        self.labels = labels
        self.stack = []
        self.pc = 0
        self.stdout = stdout

    @classmethod
    def from_file(cls, path: Path, stdout: TextIO | None = None) -> Self:
        program, labels = parse(path)
        cls.logger.debug("Loaded %d instruction(s) and %d label(s)", len(program), len(labels))
        return cls(program, labels, stdout)

    def pop(self) -> int:
        if not self.stack:
            raise FatalError("stack underflow")
        return self.stack.pop()

    def push(self, value: int) -> None:
        if value < NUMBER_MIN or value > NUMBER_MAX:
            raise FatalError("arithmetic overflow")
        self.stack.append(value)

    def jump(self, label: str) -> None:
        try:
            self.pc = self.labels[label]
        except KeyError:
            raise FatalError("undefined label") from None

    def step(self) -> bool:
        """Executes the instruction under the program counter.
        Returns False once the end of the program was reached."""
        if self.pc >= len(self.program):
            return False

        instr = self.program[self.pc]
        self.pc += 1

        if instr.opcode is Opcode.PUSH:
            assert instr.number is not None
            self.push(instr.number)
        elif instr.opcode is Opcode.POP:
            self.pop()
        elif instr.opcode is Opcode.ADD:
            top, second = self.pop(), self.pop()
            self.push(second + top)
        elif instr.opcode is Opcode.SUB:
            top, second = self.pop(), self.pop()
            self.push(second - top)
        elif instr.opcode is Opcode.DUP:
            value = self.pop()
            self.stack.append(value)
            self.stack.append(value)
        elif instr.opcode is Opcode.PRINT:
            print(self.pop(), file=sys.stdout if self.stdout is None else self.stdout)
        else:
            assert instr.number is not None and instr.label is not None
            equal = self.pop() == instr.number
            if equal == (instr.opcode is Opcode.JUMP_EQUAL):
                self.jump(instr.label)

        return True

    def run(self) -> None:
        while self.step():
            pass


def main(argv: Sequence[str] | None = None) -> int:
    parser = ArgumentParser(prog="metarust-interp")
    parser.add_argument(
        "program",
        nargs="?",
        type=Path,
        default=Path("test.iin"),
        help="program to run (defaults to test.iin)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="show DEBUG logging messages")
    args = parser.parse_args(argv)
    initialize_logging(verbose=args.verbose)

    try:
        Interp.from_file(args.program).run()
    except FatalError as e:
        print(f"FATAL: {e}", flush=True)
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
