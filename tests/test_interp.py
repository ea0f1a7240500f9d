import logging
from io import StringIO
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import TestCase
from unittest.mock import patch

from metarust_cargo.errors import FatalError
from metarust_cargo.interp import (
    Instr,
    Interp,
    Label,
    Opcode,
    main,
    parse,
    parse_line,
    parse_lines,
)

COUNTDOWN = """\
push 3
loop:
dup
print
push 1
sub
dup
jne 0 loop
pop
"""


class TestParseLine(TestCase):
    def test_opcodes(self) -> None:
        cases = [
            ("push 5", Instr(Opcode.PUSH, 5)),
            ("push -12", Instr(Opcode.PUSH, -12)),
            ("pop", Instr(Opcode.POP)),
            ("add", Instr(Opcode.ADD)),
            ("sub", Instr(Opcode.SUB)),
            ("dup", Instr(Opcode.DUP)),
            ("print", Instr(Opcode.PRINT)),
            ("je 0 end", Instr(Opcode.JUMP_EQUAL, 0, "end")),
            ("jne 7 loop", Instr(Opcode.JUMP_NOT_EQUAL, 7, "loop")),
            ("   print  ", Instr(Opcode.PRINT)),
        ]
        for line, expected in cases:
            with self.subTest(line=line):
                self.assertEqual(parse_line(line), expected)

    def test_label(self) -> None:
        self.assertEqual(parse_line("loop:"), Label("loop"))
        self.assertEqual(parse_line("  end: "), Label("end"))

    def assertFatal(self, line: str, msg: str) -> None:
        with self.subTest(line=line), self.assertRaises(FatalError) as c:
            parse_line(line)
        self.assertEqual(str(c.exception), msg)

    def test_unknown_opcode(self) -> None:
        self.assertFatal("mul", "parse error: unknown opcode")
        self.assertFatal("PUSH 1", "parse error: unknown opcode")
        self.assertFatal("", "parse error: unknown opcode")

    def test_too_few_arguments(self) -> None:
        self.assertFatal("push", "parse error: too few arguments")
        self.assertFatal("je 1", "parse error: too few arguments")
        self.assertFatal("jne", "parse error: too few arguments")

    def test_too_many_operands(self) -> None:
        self.assertFatal("pop 1", "parse error: too many operands")
        self.assertFatal("push 1 2", "parse error: too many operands")
        self.assertFatal("je 1 a b", "parse error: too many operands")
        self.assertFatal("loop: push", "parse error: too many operands")

    def test_unparsed_number(self) -> None:
        self.assertFatal("push x", "parse error: unparsed number")
        self.assertFatal("push 1.5", "parse error: unparsed number")
        self.assertFatal("push 2147483648", "parse error: unparsed number")
        self.assertFatal("push  5", "parse error: unparsed number")
        self.assertFatal("je a loop", "parse error: unparsed number")

    def test_number_range(self) -> None:
        self.assertEqual(parse_line("push 2147483647"), Instr(Opcode.PUSH, 2147483647))
        self.assertEqual(parse_line("push -2147483648"), Instr(Opcode.PUSH, -2147483648))
        self.assertEqual(parse_line("push +3"), Instr(Opcode.PUSH, 3))


class TestParseLines(TestCase):
    def test(self) -> None:
        program, labels = parse_lines(COUNTDOWN.splitlines())
        self.assertEqual(len(program), 8)
        self.assertDictEqual(labels, {"loop": 1})
        self.assertEqual(program[0], Instr(Opcode.PUSH, 3))
        self.assertEqual(program[6], Instr(Opcode.JUMP_NOT_EQUAL, 0, "loop"))

    def test_label_at_end(self) -> None:
        _, labels = parse_lines(["push 1", "end:"])
        self.assertDictEqual(labels, {"end": 1})

    def test_duplicate_label(self) -> None:
        with self.assertRaises(FatalError) as c:
            parse_lines(["a:", "pop", "a:"])
        self.assertEqual(str(c.exception), "parse error: duplicate label")


class TestParse(TestCase):
    def setUp(self) -> None:
        self.workdir = TemporaryDirectory(prefix="metarust-interp-test")
        self.addCleanup(self.workdir.cleanup)

    def test(self) -> None:
        path = Path(self.workdir.name, "test.iin")
        path.write_bytes(b"push 1\r\nend:\r\nprint\r\n")
        program, labels = parse(path)
        self.assertListEqual(program, [Instr(Opcode.PUSH, 1), Instr(Opcode.PRINT)])
        self.assertDictEqual(labels, {"end": 1})

    def test_missing_file(self) -> None:
        path = Path(self.workdir.name, "missing.iin")
        with self.assertRaises(FatalError) as c:
            parse(path)
        self.assertEqual(str(c.exception), f"Failed to open input file: {path}")


class TestInterp(TestCase):
    def run_source(self, source: str) -> tuple[str, Interp]:
        program, labels = parse_lines(source.splitlines())
        output = StringIO()
        interp = Interp(program, labels, output)
        interp.run()
        return output.getvalue(), interp

    def assertFatal(self, source: str, msg: str) -> None:
        with self.assertRaises(FatalError) as c:
            self.run_source(source)
        self.assertEqual(str(c.exception), msg)

    def test_push_print(self) -> None:
        output, interp = self.run_source("push 1\npush 2\nprint\nprint")
        self.assertEqual(output, "2\n1\n")
        self.assertListEqual(interp.stack, [])
        self.assertEqual(interp.pc, 4)

    def test_pop(self) -> None:
        output, interp = self.run_source("push 1\npush 2\npop")
        self.assertEqual(output, "")
        self.assertListEqual(interp.stack, [1])

    def test_add(self) -> None:
        output, _ = self.run_source("push 40\npush 2\nadd\nprint")
        self.assertEqual(output, "42\n")

    def test_sub_subtracts_top_from_second(self) -> None:
        output, _ = self.run_source("push 10\npush 3\nsub\nprint")
        self.assertEqual(output, "7\n")

    def test_dup(self) -> None:
        _, interp = self.run_source("push 5\ndup")
        self.assertListEqual(interp.stack, [5, 5])

    def test_je_taken_pops_value(self) -> None:
        output, interp = self.run_source("push 9\npush 0\nje 0 end\npush 1\nprint\nend:")
        self.assertEqual(output, "")
        self.assertListEqual(interp.stack, [9])

    def test_je_not_taken_pops_value(self) -> None:
        output, interp = self.run_source("push 9\npush 5\nje 0 end\nprint\nend:")
        self.assertEqual(output, "9\n")
        self.assertListEqual(interp.stack, [])

    def test_jne(self) -> None:
        output, _ = self.run_source("push 1\njne 0 skip\npush 2\nprint\nskip:\npush 3\nprint")
        self.assertEqual(output, "3\n")
        output, _ = self.run_source("push 0\njne 0 skip\npush 2\nprint\nskip:\npush 3\nprint")
        self.assertEqual(output, "2\n3\n")

    def test_countdown(self) -> None:
        output, interp = self.run_source(COUNTDOWN)
        self.assertEqual(output, "3\n2\n1\n")
        self.assertListEqual(interp.stack, [])

    def test_empty_program(self) -> None:
        output, interp = self.run_source("")
        self.assertEqual(output, "")
        self.assertEqual(interp.pc, 0)

    def test_stack_underflow(self) -> None:
        for source in ("pop", "print", "dup", "add", "push 1\nadd", "sub", "je 0 a\na:"):
            with self.subTest(source=source):
                self.assertFatal(source, "stack underflow")

    def test_undefined_label(self) -> None:
        self.assertFatal("push 0\nje 0 nowhere", "undefined label")
        self.assertFatal("push 1\njne 0 nowhere", "undefined label")

    def test_undefined_label_not_taken(self) -> None:
        output, _ = self.run_source("push 1\nje 0 nowhere\npush 4\nprint")
        self.assertEqual(output, "4\n")

    def test_arithmetic_overflow(self) -> None:
        self.assertFatal("push 2147483647\npush 1\nadd", "arithmetic overflow")
        self.assertFatal("push -2147483648\npush 1\nsub", "arithmetic overflow")


class TestMain(TestCase):
    def setUp(self) -> None:
        self.workdir = TemporaryDirectory(prefix="metarust-interp-test")
        self.addCleanup(self.workdir.cleanup)

        # main() re-initializes the root logger; restore it afterwards
        root = logging.getLogger()
        self.addCleanup(setattr, root, "handlers", root.handlers[:])
        self.addCleanup(root.setLevel, root.level)

        self.stdout = StringIO()
        for target, stream in (("sys.stdout", self.stdout), ("sys.stderr", StringIO())):
            p = patch(target, stream)
            p.start()
            self.addCleanup(p.stop)

    def write_program(self, source: str) -> Path:
        path = Path(self.workdir.name, "test.iin")
        path.write_text(source, "utf-8")
        return path

    def test_runs_program(self) -> None:
        path = self.write_program(COUNTDOWN)
        self.assertEqual(main([str(path)]), 0)
        self.assertEqual(self.stdout.getvalue(), "3\n2\n1\n")

    def test_fatal(self) -> None:
        path = self.write_program("push 1\nprint\nprint\n")
        self.assertEqual(main([str(path)]), 1)
        self.assertEqual(self.stdout.getvalue(), "1\nFATAL: stack underflow\n")

    def test_parse_error_runs_nothing(self) -> None:
        path = self.write_program("push 1\nprint\nfoo\n")
        self.assertEqual(main([str(path)]), 1)
        self.assertEqual(self.stdout.getvalue(), "FATAL: parse error: unknown opcode\n")

    def test_missing_file(self) -> None:
        path = Path(self.workdir.name, "missing.iin")
        self.assertEqual(main([str(path)]), 1)
        self.assertEqual(self.stdout.getvalue(), f"FATAL: Failed to open input file: {path}\n")
