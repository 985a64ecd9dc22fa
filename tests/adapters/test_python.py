"""
Tests for the Python adapter (flakemonster/adapters/python.py).
"""

import unittest
from textwrap import dedent

from flakemonster.adapters.python import PythonAdapter
from flakemonster.profile import DelayRange, InjectOptions

RUNTIME_IMPORT = "from flake_monster_runtime import __FlakeMonster__"

SERVICE_SOURCE = dedent('''\
    """User service."""
    import asyncio


    async def load_user(user_id):
        """Load a user and their profile."""
        user = await fetch(user_id)
        profile = await fetch(user_id)
        return user, profile


    def sync_helper():
        return 1
    ''')


def make_options(mode="medium", seed=42, **kwargs):
    return InjectOptions(
        file_path="app/service.py", mode=mode, seed=seed, delay_range=DelayRange(0, 50), **kwargs
    )


class TestPythonInjection(unittest.TestCase):
    """Tests for PythonAdapter.inject."""

    def setUp(self):
        self.adapter = PythonAdapter()

    def assertCompiles(self, source):
        compile(source, "<injected>", "exec")

    def test_medium_injects_non_returns(self):
        result = self.adapter.inject(SERVICE_SOURCE, make_options())
        self.assertIsNone(result.error)
        self.assertEqual([p.container_name for p in result.points], ["load_user", "load_user"])
        self.assertEqual([(p.line, p.column) for p in result.points], [(7, 4), (8, 4)])
        self.assertCompiles(result.source)

    def test_hardcore_and_light(self):
        self.assertEqual(len(self.adapter.inject(SERVICE_SOURCE, make_options(mode="hardcore")).points), 3)
        self.assertEqual(len(self.adapter.inject(SERVICE_SOURCE, make_options(mode="light")).points), 1)

    def test_docstring_is_never_preceded(self):
        """Test that the delay goes after a function docstring, not before it."""
        result = self.adapter.inject(SERVICE_SOURCE, make_options(mode="light"))
        lines = result.source.split("\n")
        index = lines.index('    """Load a user and their profile."""')
        self.assertTrue(lines[index + 1].startswith("    # @flake-monster[jt92-se2j!] v1 id="))
        self.assertRegex(lines[index + 2], r"^    await __FlakeMonster__\(\d+\)$")

    def test_import_goes_after_leading_imports(self):
        result = self.adapter.inject(SERVICE_SOURCE, make_options())
        lines = result.source.split("\n")
        self.assertEqual(lines[1], "import asyncio")
        self.assertEqual(lines[2], RUNTIME_IMPORT)
        self.assertTrue(result.support_module_reference_added)

    def test_round_trip_is_exact(self):
        for mode in ("light", "medium", "hardcore"):
            result = self.adapter.inject(SERVICE_SOURCE, make_options(mode=mode))
            removed = self.adapter.remove(result.source)
            self.assertEqual(removed.source, SERVICE_SOURCE)
            self.assertEqual(removed.removed_count, 2 * len(result.points) + 1)

    def test_second_injection_is_a_no_op(self):
        first = self.adapter.inject(SERVICE_SOURCE, make_options())
        second = self.adapter.inject(first.source, make_options())
        self.assertEqual((second.source, second.points), (first.source, []))

    def test_sync_module_is_untouched(self):
        source = "def f():\n    return 1\n\nx = f()\n"
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual((result.source, result.points), (source, []))

    def test_decorated_statement_starts_at_decorator(self):
        """Test that a decorated definition is preceded at its decorator line."""
        source = dedent("""\
            async def main():
                @decorator
                def inner():
                    pass
                return inner
            """)
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual([(p.line, p.column) for p in result.points], [(2, 4), (5, 4)])
        lines = result.source.split("\n")
        index = lines.index("    @decorator")
        self.assertTrue(lines[index - 1].startswith("    await __FlakeMonster__("))
        self.assertCompiles(result.source)

    def test_nested_sync_function_is_not_a_container(self):
        source = dedent("""\
            async def outer():
                def inner():
                    x = 1
                    return x
                return inner
            """)
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual([(p.container_name, p.line) for p in result.points], [("outer", 2), ("outer", 5)])

    def test_nested_async_functions_are_separate_containers(self):
        source = dedent("""\
            async def outer():
                async def inner():
                    await work()
                await inner()
            """)
        result = self.adapter.inject(source, make_options())
        self.assertEqual(
            [(p.container_name, p.index) for p in result.points],
            [("outer", 0), ("outer", 1), ("inner", 0)],
        )
        self.assertCompiles(result.source)

    def test_async_methods(self):
        source = dedent("""\
            class Client:
                async def get(self, key):
                    value = await self.backend.get(key)
                    return value
            """)
        result = self.adapter.inject(source, make_options())
        self.assertEqual([p.container_name for p in result.points], ["get"])
        self.assertCompiles(result.source)

    def test_inline_statements_are_skipped(self):
        """Test that statements sharing a line with other code are never spliced."""
        source = "async def f(): return 1\n"
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual((result.source, result.points), (source, []))

        source = "async def g():\n    a = 1; b = 2\n"
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual([(p.line, p.column) for p in result.points], [(2, 4)])
        self.assertCompiles(result.source)

    def test_async_generators_are_skipped_by_default(self):
        source = "async def stream():\n    yield 1\n"
        self.assertEqual(self.adapter.inject(source, make_options()).points, [])
        result = self.adapter.inject(source, make_options(skip_generators=False))
        self.assertEqual(len(result.points), 1)

    def test_future_import_stays_first(self):
        source = "from __future__ import annotations\n\nasync def f():\n    await g()\n"
        result = self.adapter.inject(source, make_options())
        lines = result.source.split("\n")
        self.assertEqual(lines[0], "from __future__ import annotations")
        self.assertEqual(lines[1], RUNTIME_IMPORT)
        self.assertCompiles(result.source)

    def test_no_imports_goes_to_top(self):
        source = "async def f():\n    await g()\n"
        result = self.adapter.inject(source, make_options())
        self.assertTrue(result.source.startswith(RUNTIME_IMPORT + "\n"))

    def test_comment_header_stays_first(self):
        source = "#!/usr/bin/env python\n# -*- coding: utf-8 -*-\nasync def f():\n    await g()\n"
        result = self.adapter.inject(source, make_options())
        lines = result.source.split("\n")
        self.assertEqual(lines[:3], ["#!/usr/bin/env python", "# -*- coding: utf-8 -*-", RUNTIME_IMPORT])
        self.assertEqual(self.adapter.remove(result.source).source, source)

    def test_byte_order_mark_stays_first(self):
        """Test that a leading BOM is kept in front of the support import."""
        source = "\ufeffasync def f():\n    a = 1\n    b = 2\n"
        result = self.adapter.inject(source, make_options())
        self.assertEqual(len(result.points), 2)
        self.assertTrue(result.source.startswith("\ufeff" + RUNTIME_IMPORT + "\n"))
        self.assertCompiles(result.source.encode("utf-8"))
        self.assertEqual(self.adapter.remove(result.source).source, source)

        source = "\ufeff# header\nasync def f():\n    await g()\n"
        result = self.adapter.inject(source, make_options())
        self.assertEqual(result.source.split("\n")[:2], ["\ufeff# header", RUNTIME_IMPORT])
        self.assertCompiles(result.source.encode("utf-8"))
        self.assertEqual(self.adapter.remove(result.source).source, source)

    def test_existing_runtime_import_is_reused(self):
        source = f"{RUNTIME_IMPORT}\n\nasync def f():\n    await g()\n"
        result = self.adapter.inject(source, make_options())
        self.assertEqual(len(result.points), 1)
        self.assertFalse(result.support_module_reference_added)
        self.assertEqual(result.source.count(RUNTIME_IMPORT), 1)

    def test_crlf_round_trip(self):
        source = "async def f():\r\n    a = 1\r\n    b = 2\r\n"
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual(len(result.points), 2)
        self.assertEqual(self.adapter.remove(result.source).source, source)

    def test_non_ascii_columns_are_bytes(self):
        source = 'async def f():\n    s = "é"; t = 1\n    u = 2\n'
        result = self.adapter.inject(source, make_options(mode="hardcore"))
        self.assertEqual([p.line for p in result.points], [2, 3])
        self.assertCompiles(result.source)

    def test_syntax_error_is_reported(self):
        source = "async def broken(:\n    pass\n"
        result = self.adapter.inject(source, make_options())
        self.assertEqual((result.source, result.points), (source, []))
        self.assertIn("SyntaxError", result.error)


class TestPythonAdapterMetadata(unittest.TestCase):
    def test_can_handle(self):
        adapter = PythonAdapter()
        self.assertTrue(adapter.can_handle("app/service.py"))
        self.assertFalse(adapter.can_handle("app/service.pyi"))
        self.assertFalse(adapter.can_handle("flake_monster_runtime.py"))

    def test_runtime_info(self):
        info = PythonAdapter().runtime_info()
        self.assertEqual(info.file_name, "flake_monster_runtime.py")
        self.assertTrue(info.source_path.is_file())


if __name__ == "__main__":
    unittest.main()
