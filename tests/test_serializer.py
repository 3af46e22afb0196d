import unittest

from sysgen import prog, serializer


class TestSerializer(unittest.TestCase):
    def test_scalars_and_containers(self):
        self.assertEqual(serializer.write(None), "None")
        self.assertEqual(serializer.write(True), "True")
        self.assertEqual(serializer.write(-3), "-3")
        self.assertEqual(serializer.write("a'b"), repr("a'b"))
        self.assertEqual(serializer.write([]), "[]")
        self.assertEqual(serializer.write(()), "()")
        self.assertEqual(serializer.write((5,)), "(5,)")
        self.assertEqual(serializer.write([1, 2]), "[1, 2]")

    def test_dicts_and_sets_are_sorted(self):
        self.assertEqual(serializer.write({"b": 1, "a": 2}), "{'a': 2, 'b': 1}")
        self.assertEqual(serializer.write({3, 1, 2}), "[1, 2, 3]")

    def test_dataclass_omits_defaults(self):
        self.assertEqual(serializer.write(prog.ConstValue(name="A")), "ConstValue(name='A')")
        self.assertEqual(serializer.write(prog.IntType(fld_name="fd", size=4)), "IntType(fld_name='fd', size=4)")
        self.assertEqual(serializer.write(prog.StructKey()), "StructKey()")

    def test_nested_layout(self):
        got = serializer.write([prog.ConstValue(name="A", value=1)])
        self.assertEqual(got, "[\n    ConstValue(name='A', value=1),\n]")

    def test_output_evaluates_back(self):
        call = prog.Syscall(
            id=1,
            nr=2,
            name="open$dir",
            call_name="open",
            args=(
                prog.PtrType(fld_name="file", size=8, elem=prog.BufferType(kind="filename")),
                prog.FlagsType(fld_name="flags", size=4, name="open_flags", vals=(0, 64)),
            ),
            ret=prog.ResourceType(fld_name="ret", size=4, desc="fd"),
        )
        desc = prog.StructDesc(
            key=prog.StructKey(name="pair", dir=prog.DIR_OUT),
            fields=(prog.IntType(fld_name="a", size=1),),
            size=1,
            align=1,
        )
        ns = dict(vars(prog))
        self.assertEqual(eval(serializer.write(call), ns), call)
        self.assertEqual(eval(serializer.write([desc]), ns), [desc])

    def test_unsupported_type(self):
        with self.assertRaises(TypeError):
            serializer.write(object())


if __name__ == "__main__":
    unittest.main()
