
import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from cguardian.stdlib_registry import (
    BuiltinKind, get_builtin, get_builtin_registry, get_builtins_by_header,
)
from cguardian.symbol_table import SymbolKind, SymbolTable
from cguardian.type_system import UNKNOWN, INT, FLOAT, DOUBLE, pointer_to, VOID


class TestScopes(unittest.TestCase):

    def setUp(self):
        self.table = SymbolTable()

    def test_same_scope_redeclaration_is_refused(self):
        self.assertTrue(self.table.declare("x", INT, 1, 5))
        self.assertFalse(self.table.declare("x", FLOAT, 2, 5))
        self.assertEqual(self.table.type_of("x"), INT)

    def test_inner_scope_shadows_outer(self):
        self.table.declare("x", INT)
        self.table.push_scope()
        self.assertTrue(self.table.declare("x", DOUBLE))
        self.assertEqual(self.table.type_of("x"), DOUBLE)
        self.table.pop_scope()
        self.assertEqual(self.table.type_of("x"), INT)

    def test_pop_at_file_scope_is_ignored(self):
        self.table.pop_scope()
        self.assertEqual(self.table.depth, 0)
        self.assertTrue(self.table.declare("x", INT))

    def test_scope_context_manager_pops_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.table.scope():
                self.assertEqual(self.table.depth, 1)
                raise RuntimeError("boom")
        self.assertEqual(self.table.depth, 0)

    def test_lookup_local_only_sees_innermost(self):
        self.table.declare("x", INT)
        with self.table.scope():
            self.assertIsNone(self.table.lookup_local("x"))
            self.assertIsNotNone(self.table.lookup("x"))

    def test_missing_name(self):
        self.assertIsNone(self.table.lookup("nope"))
        self.assertFalse(self.table.exists("nope"))
        self.assertEqual(self.table.type_of("nope"), UNKNOWN)


class TestBuiltins(unittest.TestCase):

    def test_builtins_always_resolve(self):
        table = SymbolTable()
        with table.scope():
            sym = table.lookup("printf")
        self.assertEqual(sym.kind, SymbolKind.BUILTIN_FUNCTION)
        self.assertTrue(table.is_builtin("printf"))
        self.assertTrue(table.exists("NULL"))

    def test_builtins_take_precedence(self):
        table = SymbolTable()
        self.assertTrue(table.declare("printf", INT))
        self.assertEqual(table.lookup("printf").kind, SymbolKind.BUILTIN_FUNCTION)

    def test_builtin_types_are_type_names(self):
        table = SymbolTable()
        self.assertTrue(table.is_typedef("size_t"))
        self.assertTrue(table.is_typedef("FILE"))
        self.assertFalse(table.is_typedef("printf"))

    def test_injected_registry(self):
        table = SymbolTable(builtins={})
        self.assertIsNone(table.lookup("printf"))

    def test_user_typedef(self):
        table = SymbolTable()
        table.declare("Score", INT, kind=SymbolKind.TYPEDEF)
        self.assertTrue(table.is_typedef("Score"))


class TestStructTags(unittest.TestCase):

    def setUp(self):
        self.table = SymbolTable()

    def test_forward_declaration_then_definition(self):
        self.assertTrue(self.table.declare_struct("Node", None))
        self.assertIsNone(self.table.lookup_struct("Node").members)
        self.assertTrue(self.table.declare_struct("Node", {"value": INT}))
        self.assertEqual(self.table.lookup_struct("Node").members, {"value": INT})

    def test_redefinition_is_refused(self):
        self.assertTrue(self.table.declare_struct("P", {"x": INT}))
        self.assertFalse(self.table.declare_struct("P", {"y": INT}))

    def test_tags_do_not_collide_with_names(self):
        self.table.declare_struct("Point", {"x": INT})
        self.assertTrue(self.table.declare("Point", INT, kind=SymbolKind.TYPEDEF))
        self.assertIsNone(self.table.lookup_struct("Missing"))


class TestRegistry(unittest.TestCase):

    def test_variadic_arity(self):
        printf = get_builtin("printf")
        self.assertFalse(printf.accepts(0))
        self.assertTrue(printf.accepts(1))
        self.assertTrue(printf.accepts(4))
        self.assertEqual(printf.arity_text(), "at least 1")

    def test_fixed_arity(self):
        strcpy = get_builtin("strcpy")
        self.assertTrue(strcpy.accepts(2))
        self.assertFalse(strcpy.accepts(3))
        self.assertEqual(strcpy.arity_text(), "2")

    def test_by_header(self):
        math = get_builtins_by_header("math.h")
        self.assertIn("sqrt", math)
        self.assertNotIn("printf", math)

    def test_kinds(self):
        self.assertEqual(get_builtin("size_t").kind, BuiltinKind.TYPE)
        self.assertEqual(get_builtin("EOF").kind, BuiltinKind.CONSTANT)
        self.assertEqual(get_builtin("malloc").ctype, pointer_to(VOID))
        self.assertTrue(get_builtin("NULL").ctype.null_constant)

    def test_registry_is_read_only(self):
        registry = get_builtin_registry()
        with self.assertRaises(TypeError):
            registry["mine"] = None
        self.assertIs(registry, get_builtin_registry())


if __name__ == "__main__":
    unittest.main()
