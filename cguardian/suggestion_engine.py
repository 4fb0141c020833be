"""
Suggestion Engine — remediation hints for diagnostics.

A static, ordered table of (trigger substring → remediation, example).
The first entry whose trigger occurs in a diagnostic message wins, so more
specific triggers are registered before the general ones they overlap with.
Matching is case-sensitive.

The table is built once at import time and never mutated afterwards; it is
safe to share across analysis runs.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Suggestion:
    trigger: str
    remediation: str
    example: str = ""

    def render(self) -> str:
        if self.example:
            return f"{self.remediation} | Example: {self.example}"
        return self.remediation


# ═══════════════════════════════════════════════════════════════════════
#  Suggestion table
# ═══════════════════════════════════════════════════════════════════════

_TABLE: List[Suggestion] = []

def _add(trigger: str, remediation: str, example: str = ""):
    _TABLE.append(Suggestion(trigger, remediation, example))

# ───────────────────────────────────────────────────────────────────────
#  Lexical
# ───────────────────────────────────────────────────────────────────────

_add(
    "Invalid numeric literal",
    "Check for multiple decimal points or letters inside the number",
    "float x = 3.14;",
)
_add(
    "Unterminated string",
    "String literals must have opening AND closing double quotes on the same line",
    'char *s = "hello";',
)
_add(
    "Unterminated character",
    "Character literals must have opening AND closing single quotes",
    "char c = 'A';",
)
_add(
    "Unterminated comment",
    "Close the block comment with */",
    "/* comment */",
)
_add(
    "Empty character literal",
    "A character literal needs exactly one character between the quotes",
    "char c = ' ';",
)
_add(
    "Multi-character constant",
    "Character literals can only contain ONE character; use double quotes for text",
    'char c = \'A\'; char *s = "AB";',
)
_add(
    "Invalid character",
    "Remove the invalid character; '@', '$' and '`' are not part of C syntax",
    "int x = 5 + 10;",
)
_add(
    "Invalid #include",
    "Wrap the header name in <...> for system headers or \"...\" for local ones",
    "#include <stdio.h>",
)
_add(
    "Missing #endif",
    "Every #if, #ifdef or #ifndef needs a matching #endif",
    "#ifdef DEBUG\n/* code */\n#endif",
)
_add(
    "without #if",
    "Remove the stray directive or add the opening #if it belongs to",
    "#if defined(DEBUG)\n#else\n#endif",
)
_add(
    "Unknown preprocessor directive",
    "Check the spelling of the directive",
    "#include, #define, #if, #ifdef, #ifndef, #else, #elif, #endif, #undef, #pragma",
)
_add(
    "Could not open file",
    "Check that the path exists and that the file is readable text",
)

# ───────────────────────────────────────────────────────────────────────
#  Syntax
# ───────────────────────────────────────────────────────────────────────

_add(
    "Expected ';'",
    "Add a semicolon at the end of the statement",
    "int x = 5;",
)
_add(
    "Expected '('",
    "Control structures need parentheses around the condition",
    "if (x > 5) { } while (y < 10) { }",
)
_add(
    "Expected ')'",
    "Close the opening parenthesis; check that parentheses are balanced",
    "function(arg1, arg2);",
)
_add(
    "Expected '}'",
    "Close the opening brace; every { needs a matching }",
    "void func() { int x = 5; }",
)
_add(
    "Expected '{'",
    "A function body or compound statement starts with {",
    "int main(void) { return 0; }",
)
_add(
    "Expected ']'",
    "Close the array subscript or dimension with ]",
    "int a[10]; a[0] = 1;",
)
_add(
    "Expected ':'",
    "case labels and the conditional operator need a colon",
    "case 1: break;",
)
_add(
    "Expected identifier",
    "A declaration needs a name after its type",
    "int count;",
)
_add(
    "Expected parameter type",
    "Each parameter needs a type: int, float, char, double or a typedef name",
    "int add(int a, int b);",
)
_add(
    "Expected expression",
    "An operand is missing here; add a value, variable or call",
    "x = y + 1;",
)
_add(
    "Expected statement",
    "A control keyword must be followed by a statement or a { } block",
    "if (x) { y = 1; }",
)
_add(
    "Expected 'while'",
    "A do statement ends with while (condition);",
    "do { i++; } while (i < 10);",
)
_add(
    "Expected type",
    "Type specifier needed: int, float, char, void, double",
    "int x;  float y;  char z;",
)
_add(
    "Expected member name",
    "Follow '.' or '->' with the name of a struct member",
    "p.x = 1;",
)
_add(
    "Expected struct tag",
    "Name the struct or give it a body after the struct keyword",
    "struct Point { int x; int y; };",
)
_add(
    "Unexpected type name",
    "A type name cannot be used as a value; declare a variable of that type",
    "size_t n = 0; n = n + 1;",
)
_add(
    "Unexpected token",
    "This token is not expected in this position; check the grammar around it",
    "int x = 5 * 10;",
)
_add(
    "Skipping invalid token",
    "The parser could not use this token; remove it or fix the statement around it",
)
_add(
    "Parser stuck",
    "The file is too damaged to analyse further; fix the first errors and re-run",
)

# ───────────────────────────────────────────────────────────────────────
#  Semantic
# ───────────────────────────────────────────────────────────────────────

_add(
    "Undeclared",
    "Declare the variable before using it: type name;",
    "int x; x = 5;",
)
_add(
    "Function redeclaration",
    "The function is already declared with a different signature or already has a body",
    "int add(int a, int b);  /* prototype */\nint add(int a, int b) { return a + b; }",
)
_add(
    "Redefinition of struct",
    "A struct tag can only be defined once per scope",
    "struct Point { int x; int y; };",
)
_add(
    "Redeclaration",
    "The name already exists in this scope; use a different name",
    "int x = 5; int y = 10;",
)
_add(
    "Nested function",
    "C does not allow functions inside functions; move it to file scope",
    "int helper(void) { return 1; }\nint main(void) { return helper(); }",
)
_add(
    "Type mismatch",
    "The value's type cannot be converted implicitly; change the type or add an explicit cast",
    "double d = 5;  int i = (int)3.5;",
)
_add(
    "argument",
    "Pass exactly the arguments the function's signature asks for",
    'printf("%d\\n", x);',
)
_add(
    "Invalid lvalue",
    "Assignment, ++ and -- need a modifiable variable, not a function, constant or literal",
    "int i = 0; i++;",
)
_add(
    "Missing return",
    "Every path of a non-void function must return a value",
    "int f(void) { return 0; }",
)
_add(
    "Return with no value",
    "Return a value of the function's return type",
    "return 0;",
)
_add(
    "Return with a value",
    "A void function cannot return a value; drop the expression or change the return type",
    "void f(void) { return; }",
)
_add(
    "not within a loop",
    "break and continue are only valid inside loops (break also inside switch)",
    "while (x) { if (y) break; }",
)
_add(
    "not within a switch",
    "case and default labels belong inside a switch body",
    "switch (x) { case 1: y = 2; break; default: y = 0; }",
)
_add(
    "has no member",
    "Check the member name against the struct definition",
    "struct Point { int x; }; p.x = 1;",
)
_add(
    "not a structure",
    "Use . on struct values and -> on pointers to structs",
    "p.x = 1;  ptr->x = 1;",
)
_add(
    "not a pointer",
    "Only pointers and arrays can be dereferenced or subscripted",
    "int *p = &x; *p = 1;",
)
_add(
    "is not a function",
    "Only functions can be called",
    "int r = compute(x);",
)
_add(
    "declared void",
    "Variables cannot have type void; use void only for functions and pointers",
    "int x;  void *p;",
)
_add(
    "incomplete type",
    "Define the struct before declaring variables of it, or use a pointer",
    "struct Node; struct Node *next;",
)


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def find_suggestion(message: str) -> Optional[Suggestion]:
    """First table entry whose trigger occurs in ``message``."""
    for entry in _TABLE:
        if entry.trigger in message:
            return entry
    return None


def suggestion_for(message: str) -> str:
    """Remediation text for a diagnostic message, or "" if nothing matches."""
    entry = find_suggestion(message)
    return entry.render() if entry else ""


def get_suggestion(trigger: str) -> Optional[Suggestion]:
    """Table entry registered under exactly ``trigger``."""
    for entry in _TABLE:
        if entry.trigger == trigger:
            return entry
    return None


def get_all_suggestions() -> Tuple[Suggestion, ...]:
    return tuple(_TABLE)


def format_suggestion_explanation(message: str) -> str:
    """Return a human-readable explanation for a diagnostic message."""
    entry = find_suggestion(message)
    if entry is None:
        return f"No suggestion available for: {message}"

    explanation = f"""## {entry.trigger}

### How to Fix
{entry.remediation}"""

    if entry.example:
        explanation += f"\n\n### Example\n```c\n{entry.example}\n```"

    return explanation
