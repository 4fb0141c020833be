
import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from cguardian.suggestion_engine import (
    find_suggestion, format_suggestion_explanation, get_all_suggestions, get_suggestion,
    suggestion_for,
)


class TestSuggestionEngine(unittest.TestCase):

    def test_match_renders_remediation_and_example(self):
        text = suggestion_for("Undeclared variable 'y'")
        self.assertIn("Declare", text)
        self.assertIn(" | Example: ", text)

    def test_no_match_is_empty(self):
        self.assertEqual(suggestion_for("Something entirely unrelated"), "")

    def test_matching_is_case_sensitive(self):
        self.assertIsNone(find_suggestion("undeclared variable 'y'"))

    def test_specific_triggers_win(self):
        cases = {
            "Function redeclaration 'f': already defined on line 1": "Function redeclaration",
            "Redefinition of struct 'P'": "Redefinition of struct",
            "Redeclaration of 'x'": "Redeclaration",
            "Return with no value in function 'f' returning 'int'": "Return with no value",
            "Return with a value in void function 'g'": "Return with a value",
            "Function 'printf' expects at least 1 argument(s) but 0 were given": "argument",
            "Invalid lvalue: cannot apply '++' to builtin function 'printf'": "Invalid lvalue",
            "Type mismatch: cannot convert 'double' to 'int'": "Type mismatch",
            "'case' label not within a switch statement": "not within a switch",
            "'break' statement not within a loop or switch": "not within a loop",
            "Expected ';' but got 'return'": "Expected ';'",
            "Parser stuck, aborting": "Parser stuck",
        }
        for message, trigger in cases.items():
            entry = find_suggestion(message)
            self.assertIsNotNone(entry, message)
            self.assertEqual(entry.trigger, trigger, message)

    def test_table_is_immutable_snapshot(self):
        table = get_all_suggestions()
        self.assertIsInstance(table, tuple)
        triggers = [s.trigger for s in table]
        self.assertEqual(len(triggers), len(set(triggers)))

    def test_explanation(self):
        text = format_suggestion_explanation("Missing return statement in non-void function 'f'")
        self.assertIn("## Missing return", text)
        self.assertIn("### How to Fix", text)
        self.assertIn("```c", text)

    def test_get_suggestion_by_exact_trigger(self):
        self.assertEqual(get_suggestion("Nested function").trigger, "Nested function")
        self.assertIsNone(get_suggestion("Nested function declaration 'f'"))

    def test_explanation_without_match(self):
        self.assertTrue(format_suggestion_explanation("???").startswith("No suggestion available"))


if __name__ == "__main__":
    unittest.main()
