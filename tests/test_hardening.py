"""
Hardening tests: adversarial input must always terminate with diagnostics
and never raise.

  1. Unbalanced punctuation at file scope
  2. Runaway literals and comments
  3. Deep nesting (statements, parentheses, unary chains)
  4. Very long flat input against the iteration cap
  5. Byte noise
"""
import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from cguardian.c_analyzer import analyze


def stuck_count(result):
    return sum(1 for d in result.semantic if d.message.startswith("Parser stuck"))


class TestUnbalanced(unittest.TestCase):

    def test_closing_parens_at_file_scope(self):
        result = analyze(")))))")
        self.assertEqual(
            [d.message for d in result.semantic], ["Unexpected token ')' at file scope"]
        )

    def test_opening_braces_at_file_scope(self):
        result = analyze("{{{{{{")
        self.assertEqual(result.total, 1)

    def test_unclosed_function_body(self):
        result = analyze("int main(void) { int x; x = 1;")
        self.assertIn("Expected '}' but got 'end of input'", [d.message for d in result.semantic])

    def test_stray_closing_brace_in_body(self):
        result = analyze("int main(void) { return 0; } }\nint y;")
        self.assertEqual(
            [d.message for d in result.semantic], ["Unexpected token '}' at file scope"]
        )

    def test_garbage_tokens_inside_body(self):
        result = analyze("int main(void) { ) ] , : ; return 0; }")
        self.assertGreater(result.total, 0)
        self.assertEqual(stuck_count(result), 0)


class TestRunaways(unittest.TestCase):

    def test_unterminated_string(self):
        result = analyze('int main(void) { printf("oops); return 0; }')
        self.assertGreater(len(result.lexical), 0)

    def test_unterminated_comment(self):
        result = analyze("int main(void) { /* return 0; }")
        self.assertIn("Unterminated comment", [d.message for d in result.lexical])

    def test_unterminated_char(self):
        result = analyze("char c = 'a")
        self.assertGreater(result.total, 0)


class TestDeepNesting(unittest.TestCase):

    def test_deep_blocks(self):
        result = analyze("int main(void) " + "{" * 2000 + "}" * 2000)
        self.assertEqual(stuck_count(result), 1)

    def test_deep_parentheses(self):
        source = "int main(void) { return " + "(" * 3000 + "1" + ")" * 3000 + "; }"
        self.assertEqual(stuck_count(analyze(source)), 1)

    def test_long_unary_chain(self):
        source = "int main(void) { int x; x = 1; return " + "!" * 5000 + "x; }"
        self.assertEqual(stuck_count(analyze(source)), 1)

    def test_long_assignment_chain_is_not_recursive(self):
        source = "int main(void) { int x; x" + " = x" * 3000 + "; return x; }"
        result = analyze(source)
        self.assertEqual(result.total, 0)

    def test_long_ternary_chain(self):
        source = "int main(void) { int x; x = 1; return " + "x ? x : " * 2000 + "x; }"
        self.assertEqual(stuck_count(analyze(source)), 1)

    def test_long_else_if_ladder_is_flat(self):
        branches = " ".join(f"else if (x == {i}) y = {i};" for i in range(1, 200))
        source = (
            "int main(void) { int x; int y; x = 3; if (x == 0) y = 0; "
            + branches + " else y = -1; return y; }\nint after = z;"
        )
        result = analyze(source)
        self.assertEqual(stuck_count(result), 0)
        self.assertEqual([d.message for d in result.semantic], ["Undeclared variable 'z'"])

    def test_moderate_nesting_is_fine(self):
        source = "int main(void) { int x; x = " + "(" * 20 + "1" + ")" * 20 + "; return x; }"
        self.assertEqual(analyze(source).total, 0)


class TestIterationCap(unittest.TestCase):

    def test_huge_block(self):
        source = "int main(void) { int x; " + "x = 1; " * 12000 + "return x; }"
        result = analyze(source)
        self.assertEqual(stuck_count(result), 1)
        self.assertEqual(result.total, 1)


class TestNoise(unittest.TestCase):

    def test_symbol_soup(self):
        result = analyze("@$`\\ ~!%^&*()_+-=[]{}|;':\",./<>?\x00\x7f")
        self.assertGreater(result.total, 0)

    def test_idempotent_on_noise(self):
        source = "int ((( x = ; } else { for while 1.2.3 'ab"
        self.assertEqual(
            [d.text for d in analyze(source).diagnostics],
            [d.text for d in analyze(source).diagnostics],
        )


if __name__ == "__main__":
    unittest.main()
