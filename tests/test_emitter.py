import hashlib
import unittest
from dataclasses import replace

from sysgen import emitter, prog
from sysgen.targets import CATALOG
from sysgen.writer import format_source


def _target(arch, os_name="linux"):
    return next(t for t in CATALOG if t.os == os_name and t.arch == arch)


AMD64 = _target("amd64")


def _program():
    return prog.Program(
        syscalls=[
            prog.Syscall(id=1, nr=0, name="read", call_name="read"),
            prog.Syscall(id=0, nr=3, name="close", call_name="close"),
        ],
        resources=[prog.ResourceDesc(name="fd", kind=("fd",), size=4, values=(-1,))],
    )


class TestGenerate(unittest.TestCase):
    def test_tables_are_name_sorted(self):
        text = emitter.generate(AMD64, _program(), {"B": 2, "A": 1}).decode("utf-8")
        self.assertTrue(text.startswith("# AUTOGENERATED FILE\n"))
        self.assertLess(text.index("name='close'"), text.index("name='read'"))
        self.assertLess(text.index("ConstValue(name='A', value=1)"), text.index("ConstValue(name='B', value=2)"))
        for table in ("resources_amd64", "struct_descs_amd64", "syscalls_amd64", "consts_amd64"):
            self.assertIn(f"\n{table} = ", text)
        self.assertIn("revision=revision_amd64", text)

    def test_map_order_does_not_matter(self):
        a = emitter.generate(AMD64, _program(), {"A": 1, "B": 2, "C": 3})
        b = emitter.generate(AMD64, _program(), {"C": 3, "B": 2, "A": 1})
        self.assertEqual(a, b)

    def test_stamp_revision(self):
        data = emitter.generate(AMD64, _program(), {"A": 1})
        stamped, rev = emitter.stamp_revision(AMD64, data)
        self.assertEqual(rev, hashlib.sha1(data).hexdigest())
        text = stamped.decode("utf-8")
        self.assertLess(text.index(f'revision_amd64 = "{rev}"'), text.index("Target_amd64 = Target("))
        self.assertEqual(format_source(stamped), stamped)

        ns = {}
        exec(compile(text, "amd64.py", "exec"), ns)
        target = ns["Target_amd64"]
        self.assertEqual((target.os, target.arch, target.revision), ("linux", "amd64", rev))
        self.assertEqual([c.name for c in target.syscalls], ["close", "read"])
        self.assertEqual(target.consts, (prog.ConstValue(name="A", value=1),))
        self.assertIsInstance(target.syscalls, tuple)
        self.assertEqual(target.page_size, AMD64.page_size)

    def test_revision_tracks_constant_values(self):
        rev1 = emitter.stamp_revision(AMD64, emitter.generate(AMD64, _program(), {"A": 1}))[1]
        rev2 = emitter.stamp_revision(AMD64, emitter.generate(AMD64, _program(), {"A": 2}))[1]
        rev3 = emitter.stamp_revision(AMD64, emitter.generate(AMD64, _program(), {"A": 1}))[1]
        self.assertNotEqual(rev1, rev2)
        self.assertEqual(rev1, rev3)


class TestExecutorSyscalls(unittest.TestCase):
    def _calls(self):
        return [
            prog.Syscall(nr=0, name="read", call_name="read"),
            prog.Syscall(nr=prog.PSEUDO_NR, name="syz_open_dev$tty", call_name="syz_open_dev"),
            prog.Syscall(nr=3, name="close", call_name="close"),
        ]

    def test_block(self):
        text = emitter.generate_executor_syscalls(AMD64, self._calls(), "abc").decode("utf-8")
        self.assertIn("\n#if defined(__x86_64__) || 0\n", text)
        self.assertIn('#define SYZ_ARCH "amd64"\n', text)
        self.assertIn('#define SYZ_REVISION "abc"\n', text)
        self.assertIn("#define SYZ_PAGE_SIZE 4096\n", text)
        self.assertIn(f"#define SYZ_NUM_PAGES {AMD64.num_pages}\n", text)
        self.assertIn(f"#define SYZ_DATA_OFFSET {AMD64.data_offset}\n", text)
        self.assertIn("unsigned syscall_count = 3;\n", text)
        self.assertTrue(text.rstrip().endswith("#endif"))

        rows = [line for line in text.splitlines() if line.startswith("\t{")]
        self.assertEqual(
            rows,
            [
                '\t{"close", 3},',
                '\t{"read", 0},',
                '\t{"syz_open_dev$tty", -1, (syscall_t)syz_open_dev},',
            ],
        )

    def test_callbacks_without_numeric_dispatch(self):
        target = replace(AMD64, syscall_numbers=False)
        text = emitter.generate_executor_syscalls(target, self._calls(), "abc").decode("utf-8")
        self.assertIn('\t{"read", 0, (syscall_t)read},', text)
        self.assertIn('\t{"syz_open_dev$tty", -1, (syscall_t)syz_open_dev},', text)

    def test_guard_over_all_macros(self):
        target = _target("ppc64le")
        text = emitter.generate_executor_syscalls(target, [], "abc").decode("utf-8")
        self.assertIn("#if defined(__ppc64__) || defined(__PPC64__) || defined(__powerpc64__) || 0\n", text)
        self.assertIn("#define SYZ_PAGE_SIZE 65536\n", text)
        self.assertIn("unsigned syscall_count = 0;\n", text)

    def test_rows_sorted_by_name(self):
        rows = emitter.syscall_rows(AMD64, self._calls())
        self.assertEqual([r.name for r in rows], ["close", "read", "syz_open_dev$tty"])
        self.assertEqual([r.need_call for r in rows], [False, False, True])


if __name__ == "__main__":
    unittest.main()
