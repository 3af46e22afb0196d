import tempfile
import unittest
from pathlib import Path

from sysgen import description
from sysgen.errors import InputError, Pos


DESC = """\
resources:
  - name: fd
    base: int32
    values: [-1, AT_FDCWD]

flags:
  - name: open_flags
    values: [O_RDONLY, O_CREAT]

structs:
  - name: pair
    fields:
      - name: a
        type: int8

syscalls:
  - name: open$dir
    args:
      - name: file
        type: ptr[in, filename]
      - name: flags
        type: flags[open_flags, int32]
    ret: fd
"""


class TestParseType(unittest.TestCase):
    def test_nested_expression(self):
        expr = description.parse_type("ptr[in, array[int8]]", Pos("x"))
        self.assertEqual(expr.ident, "ptr")
        self.assertEqual([a.ident for a in expr.args], ["in", "array"])
        self.assertEqual(expr.args[1].args[0].ident, "int8")
        self.assertEqual(str(expr), "ptr[in, array[int8]]")

    def test_numeric_arguments(self):
        expr = description.parse_type("const[-1, int32]", Pos("x"))
        self.assertEqual(expr.args[0].value, -1)
        expr = description.parse_type("const[0x10]", Pos("x"))
        self.assertEqual(expr.args[0].value, 16)

    def test_leading_zero_is_octal(self):
        self.assertEqual(description.parse_type("const[010]", Pos("x")).args[0].value, 8)

    def test_malformed_expressions(self):
        for text in ["ptr[in, int8", "ptr[in,, int8]", "int8 int16", "", "[x]", "const[09]"]:
            with self.subTest(text=text):
                with self.assertRaises(InputError):
                    description.parse_type(text, Pos("x"))


class TestParseText(unittest.TestCase):
    def test_sections(self):
        desc = description.parse_text(DESC, source="sys.yaml")
        self.assertEqual([r.name for r in desc.resources], ["fd"])
        self.assertEqual(desc.resources[0].values, (-1, "AT_FDCWD"))
        self.assertEqual(desc.flags[0].values, ("O_RDONLY", "O_CREAT"))
        self.assertEqual(desc.structs[0].fields[0].name, "a")
        self.assertFalse(desc.structs[0].is_union)

        call = desc.calls[0]
        self.assertEqual(call.name, "open$dir")
        self.assertEqual(call.call_name, "open")
        self.assertEqual(str(call.args[1].type), "flags[open_flags, int32]")
        self.assertEqual(str(call.ret), "fd")
        self.assertEqual(str(call.pos), "sys.yaml:17")

    def test_reports_every_problem(self):
        text = (
            "bogus:\n"
            "  a: 1\n"
            "syscalls:\n"
            "  - name: 1bad\n"
            "    args:\n"
            "      - name: x\n"
            "        type: int8\n"
            "  - name: ok\n"
            "    args:\n"
            "      - name: y\n"
            "        type: ptr[in\n"
        )
        with self.assertRaises(InputError) as cm:
            description.parse_text(text, source="bad.yaml")
        messages = [d.message for d in cm.exception.diagnostics]
        self.assertEqual(len(messages), 3)
        self.assertIn("unknown section 'bogus'", messages[0])
        self.assertTrue(any("bad or missing name" in m for m in messages))
        self.assertTrue(any("missing ']'" in m for m in messages))


class TestParseGlob(unittest.TestCase):
    def test_merges_files_in_name_order(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "b.yaml").write_text(
                "syscalls:\n  - name: second\n    args:\n      - name: x\n        type: int8\n",
                encoding="utf-8",
            )
            (root / "a.yaml").write_text(DESC, encoding="utf-8")
            desc = description.parse_glob((root / "*.yaml").as_posix())
            self.assertEqual([c.name for c in desc.calls], ["open$dir", "second"])

    def test_bad_number_in_file(self):
        text = "syscalls:\n  - name: foo\n    args:\n      - name: x\n        type: const[09]\n"
        with self.assertRaises(InputError) as cm:
            description.parse_text(text, source="bad.yaml")
        self.assertIn("bad number '09'", str(cm.exception))

    def test_non_utf8_file(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "a.yaml").write_bytes(b"syscalls:\n  - name: \xff\n")
            (root / "b.yaml").write_text(DESC, encoding="utf-8")
            with self.assertRaises(InputError) as cm:
                description.parse_glob((root / "*.yaml").as_posix())
            self.assertEqual(len(cm.exception.diagnostics), 1)
            self.assertIn("a.yaml: not valid UTF-8", str(cm.exception))

    def test_no_match(self):
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InputError) as cm:
                description.parse_glob((Path(td) / "*.yaml").as_posix())
            self.assertIn("no description files matched", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
