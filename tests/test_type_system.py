
import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from cguardian.type_system import (
    BaseKind, UNKNOWN, INVALID, INT, FLOAT, DOUBLE, CHAR, VOID, STRING, NULL_CONSTANT,
    as_array, describe, element_type, from_keywords, is_compatible, pointer_to,
    result_type, struct_type, with_alias,
)


class TestCompatibility(unittest.TestCase):

    def test_identical_types(self):
        for t in (INT, FLOAT, DOUBLE, CHAR, pointer_to(INT), struct_type("P")):
            self.assertTrue(is_compatible(t, t), describe(t))

    def test_numeric_widening_only(self):
        self.assertTrue(is_compatible(INT, CHAR))
        self.assertFalse(is_compatible(CHAR, INT))
        self.assertFalse(is_compatible(INT, FLOAT))
        self.assertFalse(is_compatible(INT, DOUBLE))
        self.assertTrue(is_compatible(DOUBLE, INT))
        self.assertTrue(is_compatible(FLOAT, DOUBLE))
        self.assertTrue(is_compatible(DOUBLE, FLOAT))

    def test_sentinels_are_never_flagged(self):
        self.assertTrue(is_compatible(UNKNOWN, STRING))
        self.assertTrue(is_compatible(INT, UNKNOWN))
        self.assertTrue(is_compatible(INVALID, INT))

    def test_string_literals(self):
        self.assertTrue(is_compatible(pointer_to(CHAR), STRING))
        self.assertTrue(is_compatible(as_array(CHAR), STRING))
        self.assertFalse(is_compatible(INT, STRING))
        self.assertFalse(is_compatible(CHAR, STRING))
        self.assertFalse(is_compatible(pointer_to(INT), STRING))

    def test_pointers(self):
        self.assertTrue(is_compatible(pointer_to(INT), NULL_CONSTANT))
        self.assertFalse(is_compatible(pointer_to(INT), INT))
        self.assertFalse(is_compatible(INT, pointer_to(INT)))
        self.assertTrue(is_compatible(pointer_to(INT), pointer_to(VOID)))
        self.assertTrue(is_compatible(pointer_to(VOID), pointer_to(CHAR)))
        self.assertFalse(is_compatible(pointer_to(INT), pointer_to(CHAR)))
        self.assertTrue(is_compatible(pointer_to(INT), as_array(INT)))

    def test_structs_match_by_tag(self):
        self.assertTrue(is_compatible(struct_type("P"), struct_type("P")))
        self.assertFalse(is_compatible(struct_type("P"), struct_type("Q")))
        self.assertFalse(is_compatible(INT, struct_type("P")))

    def test_void_values(self):
        self.assertFalse(is_compatible(INT, VOID))
        self.assertFalse(is_compatible(VOID, INT))

    def test_aliases_do_not_affect_identity(self):
        self.assertEqual(with_alias(INT, "size_t"), INT)
        self.assertTrue(is_compatible(with_alias(INT, "Score"), INT))


class TestResultTypes(unittest.TestCase):

    def test_arithmetic_widens(self):
        self.assertEqual(result_type(INT, FLOAT, "+"), FLOAT)
        self.assertEqual(result_type(DOUBLE, INT, "*"), DOUBLE)
        self.assertEqual(result_type(CHAR, CHAR, "+"), INT)

    def test_modulo_requires_integers(self):
        self.assertEqual(result_type(INT, INT, "%"), INT)
        self.assertEqual(result_type(FLOAT, INT, "%").base, BaseKind.INVALID)

    def test_pointer_arithmetic(self):
        p = pointer_to(INT)
        self.assertEqual(result_type(p, INT, "+"), p)
        self.assertEqual(result_type(INT, p, "+"), p)
        self.assertEqual(result_type(p, p, "-"), INT)
        self.assertEqual(result_type(p, p, "+").base, BaseKind.INVALID)
        self.assertEqual(result_type(as_array(INT), INT, "+"), p)

    def test_string_concatenation_stays_a_string(self):
        self.assertEqual(result_type(STRING, INT, "+"), STRING)

    def test_comparisons(self):
        self.assertEqual(result_type(INT, FLOAT, "<"), INT)
        self.assertEqual(result_type(pointer_to(INT), NULL_CONSTANT, "=="), INT)
        self.assertEqual(result_type(INT, STRING, "==").base, BaseKind.INVALID)

    def test_logical_always_int(self):
        self.assertEqual(result_type(STRING, struct_type("P"), "&&"), INT)

    def test_bitwise(self):
        self.assertEqual(result_type(INT, CHAR, "<<"), INT)
        self.assertEqual(result_type(pointer_to(INT), INT, "&").base, BaseKind.INVALID)

    def test_sentinel_operands_do_not_cascade(self):
        self.assertEqual(result_type(UNKNOWN, INT, "+"), UNKNOWN)
        self.assertEqual(result_type(INT, INVALID, "=="), UNKNOWN)

    def test_unknown_operator(self):
        self.assertEqual(result_type(INT, INT, "@"), UNKNOWN)


class TestDescriptors(unittest.TestCase):

    def test_from_keywords(self):
        self.assertEqual(from_keywords(["unsigned", "long"]), INT)
        self.assertEqual(from_keywords(["long", "double"]), DOUBLE)
        self.assertEqual(from_keywords(["unsigned", "char"]), CHAR)
        self.assertTrue(from_keywords(["const", "int"]).is_const)

    def test_describe(self):
        self.assertEqual(describe(pointer_to(struct_type("Point"))), "struct Point*")
        self.assertEqual(describe(as_array(INT)), "int[]")
        self.assertEqual(describe(pointer_to(CHAR, 2)), "char**")

    def test_element_type(self):
        self.assertEqual(element_type(pointer_to(INT)), INT)
        self.assertEqual(element_type(as_array(CHAR)), CHAR)
        self.assertEqual(element_type(STRING), CHAR)
        self.assertIsNone(element_type(INT))
        self.assertEqual(element_type(UNKNOWN), UNKNOWN)


if __name__ == "__main__":
    unittest.main()
