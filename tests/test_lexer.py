
import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from cguardian.c_lexer import Lexer, TokenKind, tokenize
from cguardian.diagnostics import DiagnosticKind

K = TokenKind


def kinds(source):
    tokens, _ = tokenize(source)
    return [t.kind for t in tokens]


def messages(source):
    _, diags = tokenize(source)
    return [d.message for d in diags]


class TestTokenStream(unittest.TestCase):

    def test_empty_source_is_just_eof(self):
        tokens, diags = tokenize("")
        self.assertEqual([t.kind for t in tokens], [K.EOF])
        self.assertEqual(diags, [])

    def test_declaration_tokens(self):
        self.assertEqual(
            kinds("int x = 5;"),
            [K.KW_INT, K.IDENTIFIER, K.ASSIGN, K.NUMBER, K.SEMICOLON, K.EOF],
        )

    def test_exactly_one_eof(self):
        tokens, _ = tokenize("int main(void) { return 0; }\n\n")
        self.assertEqual(sum(1 for t in tokens if t.kind == K.EOF), 1)
        self.assertEqual(tokens[-1].kind, K.EOF)

    def test_positions_are_one_based(self):
        tokens, _ = tokenize("int x;\n  y")
        y = tokens[3]
        self.assertEqual(y.text, "y")
        self.assertEqual((y.line, y.column), (2, 3))

    def test_maximal_munch(self):
        self.assertEqual(kinds("a<=b"), [K.IDENTIFIER, K.LE, K.IDENTIFIER, K.EOF])
        self.assertEqual(kinds("p->x"), [K.IDENTIFIER, K.ARROW, K.IDENTIFIER, K.EOF])
        self.assertEqual(kinds("i++"), [K.IDENTIFIER, K.INC, K.EOF])
        self.assertEqual(kinds("x += 1"), [K.IDENTIFIER, K.PLUS_ASSIGN, K.NUMBER, K.EOF])
        self.assertIn(K.ELLIPSIS, kinds("int f(int a, ...);"))

    def test_keywords_vs_identifiers(self):
        tokens, _ = tokenize("struct structure")
        self.assertEqual(tokens[0].kind, K.KW_STRUCT)
        self.assertEqual(tokens[1].kind, K.IDENTIFIER)

    def test_comments_are_skipped(self):
        self.assertEqual(
            kinds("int /* block */ x; // line\n"),
            [K.KW_INT, K.IDENTIFIER, K.SEMICOLON, K.EOF],
        )

    def test_lexer_is_restartable(self):
        lexer = Lexer("int x = 1.2.3;")
        first = list(lexer.tokens())
        second = list(lexer)
        self.assertEqual(first, second)
        self.assertEqual(len(lexer.diagnostics), 1)


class TestLiterals(unittest.TestCase):

    def test_float_literal(self):
        tokens, diags = tokenize("3.14")
        self.assertEqual(tokens[0].kind, K.NUMBER)
        self.assertEqual(tokens[0].text, "3.14")
        self.assertEqual(diags, [])

    def test_multiple_decimal_points(self):
        tokens, diags = tokenize("float f = 1.2.3;")
        self.assertEqual(len(diags), 1)
        self.assertIn("multiple decimal points", diags[0].message)
        self.assertEqual(diags[0].kind, DiagnosticKind.LEXICAL)
        self.assertEqual((diags[0].line, diags[0].column), (1, 11))
        error = tokens[3]
        self.assertEqual(error.kind, K.ERROR)
        self.assertEqual(error.text, "1.2.3")
        # Scanning resumes after the bad literal
        self.assertEqual(tokens[4].kind, K.SEMICOLON)

    def test_trailing_letters_in_number(self):
        self.assertEqual(messages("x = 123abc;"), ["Invalid numeric literal '123abc'"])

    def test_unterminated_string_at_newline(self):
        tokens, diags = tokenize('char *s = "abc;\nint x;')
        self.assertEqual(len(diags), 1)
        self.assertEqual(
            diags[0].message, "Unterminated string literal (newline before closing quote)"
        )
        self.assertEqual((diags[0].line, diags[0].column), (1, 11))
        self.assertIn(K.KW_INT, [t.kind for t in tokens])

    def test_unterminated_string_at_eof(self):
        self.assertEqual(messages('x = "abc'), ["Unterminated string literal (EOF reached)"])

    def test_char_literals(self):
        self.assertEqual(messages("char c = 'a';"), [])
        self.assertEqual(messages("char c = '\\n';"), [])
        self.assertEqual(messages("char c = '';"), ["Empty character literal"])
        self.assertEqual(messages("char c = 'ab';"), ["Multi-character constant 'ab'"])

    def test_multi_character_constant_still_a_char_token(self):
        tokens, _ = tokenize("'ab'")
        self.assertEqual(tokens[0].kind, K.CHAR)

    def test_unterminated_comment_reported_at_opening(self):
        _, diags = tokenize("int x; /* never closed")
        self.assertEqual([d.message for d in diags], ["Unterminated comment"])
        self.assertEqual((diags[0].line, diags[0].column), (1, 8))

    def test_invalid_character(self):
        tokens, diags = tokenize("int x = 5 @ 3;")
        self.assertEqual([d.message for d in diags], ["Invalid character '@'"])
        self.assertIn(K.ERROR, [t.kind for t in tokens])


class TestPreprocessorLines(unittest.TestCase):

    def test_include_is_one_token(self):
        tokens, diags = tokenize("#include <stdio.h>\nint x;")
        self.assertEqual(tokens[0].kind, K.PREPROCESSOR)
        self.assertEqual(tokens[0].text, "#include <stdio.h>")
        self.assertEqual(tokens[1].kind, K.KW_INT)
        self.assertEqual(diags, [])

    def test_quoted_include(self):
        self.assertEqual(messages('#include "utils.h"'), [])

    def test_invalid_include(self):
        self.assertEqual(messages("#include stdio.h"), ["Invalid #include syntax"])
        self.assertEqual(messages("#include <stdio.h"), ["Invalid #include syntax"])

    def test_unknown_directive(self):
        self.assertEqual(messages("#foo bar"), ["Unknown preprocessor directive '#foo'"])

    def test_conditional_nesting(self):
        self.assertEqual(messages("#ifdef DEBUG\nint x;\n#endif\n"), [])
        self.assertEqual(
            messages("#if DEBUG\nint x;\n"), ["Missing #endif for #if opened on line 1"]
        )
        self.assertEqual(messages("#endif\n"), ["#endif without #if"])
        self.assertEqual(messages("#else\n"), ["#else without #if"])

    def test_continued_directive(self):
        tokens, diags = tokenize("#define X \\\n  1\nint y;")
        self.assertEqual(tokens[0].kind, K.PREPROCESSOR)
        self.assertEqual(tokens[1].kind, K.KW_INT)
        self.assertEqual(tokens[1].line, 3)
        self.assertEqual(diags, [])

    def test_hash_mid_line_is_not_a_directive(self):
        self.assertEqual(messages("int x; #define Y"), ["Invalid character '#'"])

    def test_directive_queries(self):
        lexer = Lexer('#include <stdio.h>\n#include "util.h"\n#ifdef DEBUG\nint x;\n#endif\n')
        stream = iter(lexer)
        for tok in stream:
            if tok.kind == K.KW_INT:
                break
        self.assertEqual(lexer.directives.open_conditionals, 1)
        self.assertTrue(lexer.directives.is_header_included("stdio.h"))
        self.assertTrue(lexer.directives.is_header_included("util.h"))
        self.assertFalse(lexer.directives.is_header_included("math.h"))
        list(stream)
        self.assertEqual(lexer.directives.open_conditionals, 0)
        self.assertEqual(lexer.diagnostics, [])

    def test_diagnostics_carry_suggestions(self):
        _, diags = tokenize("#include stdio.h")
        self.assertIn("#include", diags[0].suggestion)


if __name__ == "__main__":
    unittest.main()
