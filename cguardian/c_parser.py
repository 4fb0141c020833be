"""
C Parser — recursive-descent analysis with inline semantic checks.

The parser consumes the token stream once, left to right, with one token of
lookahead.  Semantic checks run as soon as a production is recognised:

  • undeclared identifiers and same-scope redeclarations
  • initializer / assignment / operator type compatibility (type_system)
  • call arity against the builtin registry and user prototypes
  • ++/-- and assignment targets must be modifiable variables
  • nested function declarations, function redeclarations
  • missing return in non-void functions, misplaced break/continue/case
  • struct member access, dereference and subscript of non-pointers

Expressions are a flat left-to-right chain ``unary (binop unary)*``; binary
operators are not precedence-grouped, so ``a + b * c`` is ``(a + b) * c``.

Error recovery never raises.  Every statement attempt records the cursor
position first; if nothing was consumed, one token is skipped with a
"Skipping invalid token" diagnostic.  Each block/program loop is further
capped at ``MAX_ITERATIONS`` and recursion at ``MAX_NESTING``; hitting a cap
emits a single "Parser stuck, aborting" diagnostic and unwinds quietly.

All productions are module-level functions taking an explicit
``AnalysisContext`` (cursor + symbol table + diagnostic sink), so each one
can be exercised on its own.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from cguardian.c_lexer import Token, TokenKind
from cguardian.diagnostics import Diagnostic, DiagnosticSink
from cguardian.stdlib_registry import Builtin, BuiltinKind
from cguardian.suggestion_engine import suggestion_for
from cguardian.symbol_table import Symbol, SymbolKind, SymbolTable
from cguardian.type_system import (
    BaseKind, CType, UNKNOWN, INT, FLOAT, CHAR, STRING, NULL_CONSTANT,
    as_array, dereference, describe, element_type, from_keywords, is_compatible,
    is_integral, is_numeric, is_pointer, is_struct, is_void, pointer_to,
    result_type, struct_type, with_alias, with_const,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10_000
MAX_NESTING = 100

K = TokenKind

TYPE_KEYWORDS = {
    K.KW_INT, K.KW_FLOAT, K.KW_CHAR, K.KW_VOID, K.KW_DOUBLE,
    K.KW_SHORT, K.KW_LONG, K.KW_SIGNED, K.KW_UNSIGNED,
}
QUALIFIERS = {K.KW_CONST, K.KW_STATIC, K.KW_EXTERN, K.KW_AUTO, K.KW_REGISTER, K.KW_VOLATILE}

BINARY_OPS = {
    K.PLUS, K.MINUS, K.STAR, K.SLASH, K.PERCENT,
    K.EQ, K.NE, K.LT, K.GT, K.LE, K.GE,
    K.AND, K.OR, K.AMP, K.PIPE, K.CARET, K.SHL, K.SHR,
}
ASSIGN_OPS = {
    K.ASSIGN, K.PLUS_ASSIGN, K.MINUS_ASSIGN, K.STAR_ASSIGN, K.SLASH_ASSIGN,
    K.PERCENT_ASSIGN, K.AMP_ASSIGN, K.PIPE_ASSIGN, K.CARET_ASSIGN,
}
# Tokens that can legitimately follow an expression; never consumed as operands
EXPR_FOLLOW = {K.SEMICOLON, K.RPAREN, K.RBRACE, K.RBRACKET, K.COMMA, K.COLON, K.EOF}


# ═══════════════════════════════════════════════════════════════════════
#  Analysis context
# ═══════════════════════════════════════════════════════════════════════

class TokenCursor:
    """Index into a token list that always ends with EOF; never runs past it."""

    def __init__(self, tokens: Sequence[Token]):
        self.tokens: List[Token] = list(tokens)
        if not self.tokens or self.tokens[-1].kind != K.EOF:
            last = self.tokens[-1] if self.tokens else None
            line = last.line if last else 1
            column = last.column + len(last.text) if last else 1
            self.tokens.append(Token(K.EOF, "", line, column))
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        tok = self.tokens[self.index]
        if self.index < len(self.tokens) - 1:
            self.index += 1
        return tok

    def at(self, *kinds: TokenKind) -> bool:
        return self.current.kind in kinds


@dataclass
class FunctionState:
    name: str
    return_type: CType
    saw_return: bool = False


class AnalysisContext:
    """Everything one analysis run threads through the productions."""

    def __init__(self, tokens: Sequence[Token], symbols: Optional[SymbolTable] = None,
                 sink: Optional[DiagnosticSink] = None,
                 max_iterations: int = MAX_ITERATIONS, max_nesting: int = MAX_NESTING):
        self.cursor = TokenCursor(tokens)
        self.symbols = symbols if symbols is not None else SymbolTable()
        self.sink = sink if sink is not None else DiagnosticSink(suggestion_for)
        self.max_iterations = max_iterations
        self.max_nesting = max_nesting
        self.aborted = False
        self.nesting = 0
        self.function: Optional[FunctionState] = None
        self.loop_depth = 0
        self.switch_depth = 0

    @property
    def current(self) -> Token:
        return self.cursor.current

    # ────────────────────────────────────────────────────────────────
    #  Diagnostics
    # ────────────────────────────────────────────────────────────────

    def syntax_error(self, message: str, tok: Optional[Token] = None):
        if self.aborted:
            return
        tok = tok or self.current
        self.sink.syntax(message, tok.line, tok.column)

    def semantic_error(self, message: str, tok: Optional[Token] = None):
        if self.aborted:
            return
        tok = tok or self.current
        self.sink.semantic(message, tok.line, tok.column)

    def expect(self, kind: TokenKind) -> Optional[Token]:
        """Consume ``kind`` or report it; a mismatch consumes nothing."""
        if self.cursor.at(kind):
            return self.cursor.advance()
        self.syntax_error(f"Expected '{kind.value}' but got '{self.current.display}'")
        return None

    # ────────────────────────────────────────────────────────────────
    #  Termination guards
    # ────────────────────────────────────────────────────────────────

    def ensure_progress(self, start: int):
        """Force-skip one token if the last production consumed nothing."""
        if self.cursor.index == start and not self.cursor.at(K.EOF):
            self.syntax_error(f"Skipping invalid token '{self.current.display}'")
            self.cursor.advance()

    def abort(self, reason: str = ""):
        if self.aborted:
            return
        message = "Parser stuck, aborting" + (f": {reason}" if reason else "")
        self.syntax_error(message)
        self.aborted = True
        logger.warning("%s at line %d", message, self.current.line)

    def enter(self) -> bool:
        """Open one recursion level; False (and abort) past ``max_nesting``."""
        if self.aborted:
            return False
        if self.nesting >= self.max_nesting:
            self.abort(f"nesting deeper than {self.max_nesting} levels")
            return False
        self.nesting += 1
        return True

    def leave(self):
        self.nesting -= 1


class Operand(NamedTuple):
    """An analysed (sub)expression."""
    ctype: CType
    token: Token
    lvalue: bool = False
    symbol: Optional[Symbol] = None


def _recovered(tok: Token) -> Operand:
    # lvalue=True so an already-reported error does not cascade into lvalue errors
    return Operand(UNKNOWN, tok, lvalue=True)


# ═══════════════════════════════════════════════════════════════════════
#  Program & blocks
# ═══════════════════════════════════════════════════════════════════════

def parse_program(ctx: AnalysisContext):
    """program := (preprocessor-line | typedef | declaration)*"""
    iterations = 0
    while not ctx.aborted and not ctx.cursor.at(K.EOF):
        if iterations >= ctx.max_iterations:
            ctx.abort()
            break
        iterations += 1
        start = ctx.cursor.index
        _parse_external(ctx)
        ctx.ensure_progress(start)


def _parse_external(ctx: AnalysisContext):
    tok = ctx.current
    if tok.kind in (K.PREPROCESSOR, K.ERROR, K.SEMICOLON):
        ctx.cursor.advance()
    elif tok.kind == K.KW_TYPEDEF:
        parse_typedef(ctx)
    elif starts_type(ctx):
        parse_declaration(ctx)
    else:
        ctx.syntax_error(f"Unexpected token '{tok.display}' at file scope")
        _synchronize(ctx)


def _synchronize(ctx: AnalysisContext):
    """Panic-mode skip at file scope: up to the next ';', balanced '}' or declaration."""
    depth = 0
    while True:
        tok = ctx.cursor.advance()
        if tok.kind == K.EOF:
            return
        if tok.kind == K.LBRACE:
            depth += 1
        elif tok.kind == K.RBRACE:
            depth -= 1
            if depth <= 0:
                return
        elif tok.kind == K.SEMICOLON and depth == 0:
            return
        if depth == 0 and (ctx.cursor.at(K.PREPROCESSOR, K.KW_TYPEDEF, K.EOF) or starts_type(ctx)):
            return


def parse_block(ctx: AnalysisContext):
    """block := '{' statement* '}' in a fresh scope."""
    ctx.expect(K.LBRACE)
    with ctx.symbols.scope():
        parse_block_body(ctx)


def parse_block_body(ctx: AnalysisContext):
    """Statements up to and including the closing '}' (the '{' is already consumed)."""
    iterations = 0
    while not ctx.aborted and not ctx.cursor.at(K.RBRACE, K.EOF):
        if iterations >= ctx.max_iterations:
            ctx.abort()
            break
        iterations += 1
        start = ctx.cursor.index
        parse_statement(ctx)
        ctx.ensure_progress(start)
    ctx.expect(K.RBRACE)


# ═══════════════════════════════════════════════════════════════════════
#  Types & declarations
# ═══════════════════════════════════════════════════════════════════════

def starts_type(ctx: AnalysisContext, offset: int = 0) -> bool:
    tok = ctx.cursor.peek(offset) if offset else ctx.current
    if tok.kind in TYPE_KEYWORDS or tok.kind in QUALIFIERS or tok.kind == K.KW_STRUCT:
        return True
    return tok.kind == K.IDENTIFIER and ctx.symbols.is_typedef(tok.text)


def parse_type_specifier(ctx: AnalysisContext) -> Optional[CType]:
    """Qualifiers + primitive keywords | struct specifier | typedef name."""
    words: List[str] = []
    base: Optional[CType] = None
    is_const = False
    while True:
        tok = ctx.current
        if tok.kind in QUALIFIERS:
            is_const = is_const or tok.kind == K.KW_CONST
            ctx.cursor.advance()
        elif tok.kind in TYPE_KEYWORDS and base is None:
            words.append(tok.text)
            ctx.cursor.advance()
        elif tok.kind == K.KW_STRUCT and base is None and not words:
            base = parse_struct_specifier(ctx)
        elif (tok.kind == K.IDENTIFIER and base is None and not words
              and ctx.symbols.is_typedef(tok.text)):
            base = ctx.symbols.type_of(tok.text)
            ctx.cursor.advance()
        else:
            break

    if base is None:
        if not words:
            ctx.syntax_error(f"Expected type but got '{ctx.current.display}'")
            return None
        base = from_keywords(words)
    return with_const(base) if is_const else base


def parse_struct_specifier(ctx: AnalysisContext) -> CType:
    """'struct' Tag? ('{' members '}')?"""
    struct_tok = ctx.cursor.advance()
    tag_tok = ctx.cursor.advance() if ctx.cursor.at(K.IDENTIFIER) else None

    if ctx.cursor.at(K.LBRACE):
        ctx.cursor.advance()
        if not ctx.enter():
            return UNKNOWN
        try:
            members = _parse_struct_members(ctx)
        finally:
            ctx.leave()
        ctx.expect(K.RBRACE)
        anchor = tag_tok or struct_tok
        tag = tag_tok.text if tag_tok else f"<anonymous@{anchor.line}:{anchor.column}>"
        if not ctx.symbols.declare_struct(tag, members, anchor.line, anchor.column):
            ctx.semantic_error(f"Redefinition of struct '{tag}'", anchor)
        return struct_type(tag)

    if tag_tok is None:
        ctx.syntax_error(f"Expected struct tag or '{{' but got '{ctx.current.display}'")
        return UNKNOWN
    if ctx.symbols.lookup_struct(tag_tok.text) is None:
        # First mention declares an incomplete tag
        ctx.symbols.declare_struct(tag_tok.text, None, tag_tok.line, tag_tok.column)
    return struct_type(tag_tok.text)


def _parse_struct_members(ctx: AnalysisContext) -> Dict[str, CType]:
    members: Dict[str, CType] = {}
    iterations = 0
    while not ctx.aborted and not ctx.cursor.at(K.RBRACE, K.EOF):
        if iterations >= ctx.max_iterations:
            ctx.abort()
            break
        iterations += 1
        start = ctx.cursor.index
        if starts_type(ctx):
            base = parse_type_specifier(ctx)
            while base is not None:
                name_tok, ctype = parse_declarator(ctx, base)
                if name_tok is None:
                    break
                if name_tok.text in members:
                    ctx.semantic_error(f"Redeclaration of member '{name_tok.text}'", name_tok)
                members[name_tok.text] = ctype
                if not ctx.cursor.at(K.COMMA):
                    break
                ctx.cursor.advance()
            ctx.expect(K.SEMICOLON)
        ctx.ensure_progress(start)
    return members


def parse_declarator(ctx: AnalysisContext, base: CType) -> Tuple[Optional[Token], CType]:
    """'*'* identifier ('[' size? ']')*  →  (name token or None, declared type)"""
    ctype = base
    while ctx.cursor.at(K.STAR):
        ctx.cursor.advance()
        ctype = pointer_to(ctype)
        while ctx.cursor.at(K.KW_CONST, K.KW_VOLATILE):
            ctx.cursor.advance()

    if not ctx.cursor.at(K.IDENTIFIER):
        ctx.syntax_error(f"Expected identifier after '{describe(ctype)}' but got '{ctx.current.display}'")
        return None, ctype
    name_tok = ctx.cursor.advance()

    while ctx.cursor.at(K.LBRACKET):
        ctx.cursor.advance()
        if not ctx.cursor.at(K.RBRACKET):
            _comma_expression(ctx)
        ctx.expect(K.RBRACKET)
        # Extra dimensions add indirection so that m[i][j] resolves
        ctype = as_array(ctype) if not ctype.is_array else pointer_to(ctype)
    return name_tok, ctype


def parse_declaration(ctx: AnalysisContext):
    """type-specifier (declarator ('=' initializer)? (',' ...)* ';' | function)"""
    base = parse_type_specifier(ctx)
    if base is None:
        return
    if ctx.cursor.at(K.SEMICOLON):
        # struct Tag { ... };  or  struct Tag;
        ctx.cursor.advance()
        return

    first = True
    while True:
        name_tok, ctype = parse_declarator(ctx, base)
        if name_tok is None:
            return
        if first and ctx.cursor.at(K.LPAREN) and not ctype.is_array:
            parse_function(ctx, ctype, name_tok)
            return
        first = False
        _declare_variable(ctx, name_tok, ctype)
        if ctx.cursor.at(K.ASSIGN):
            ctx.cursor.advance()
            _parse_initializer(ctx, ctype)
        if not ctx.cursor.at(K.COMMA):
            break
        ctx.cursor.advance()
    ctx.expect(K.SEMICOLON)


def _declare_variable(ctx: AnalysisContext, name_tok: Token, ctype: CType):
    name = name_tok.text
    if is_void(ctype):
        ctx.semantic_error(f"Variable '{name}' declared void", name_tok)
    elif is_struct(ctype):
        tag = ctx.symbols.lookup_struct(ctype.struct_tag)
        if tag is not None and tag.members is None:
            ctx.semantic_error(f"Variable '{name}' has incomplete type '{describe(ctype)}'", name_tok)
    if not ctx.symbols.declare(name, ctype, name_tok.line, name_tok.column):
        ctx.semantic_error(f"Redeclaration of '{name}'", name_tok)


def _parse_initializer(ctx: AnalysisContext, target: CType):
    if not ctx.cursor.at(K.LBRACE):
        first = ctx.current
        value = _assignment(ctx)
        check_assignable(ctx, target, value.ctype, first)
        return

    ctx.cursor.advance()
    if not ctx.enter():
        return
    try:
        item_type = element_type(target) if target.is_array else UNKNOWN
        item_type = item_type or UNKNOWN
        while not ctx.aborted and not ctx.cursor.at(K.RBRACE, K.EOF):
            start = ctx.cursor.index
            _parse_initializer(ctx, item_type)
            if ctx.cursor.at(K.COMMA):
                ctx.cursor.advance()
            elif ctx.cursor.index == start or not ctx.cursor.at(K.RBRACE):
                break
    finally:
        ctx.leave()
    ctx.expect(K.RBRACE)


def check_assignable(ctx: AnalysisContext, target: CType, source: CType, tok: Token) -> bool:
    if is_compatible(target, source):
        return True
    ctx.semantic_error(
        f"Type mismatch: cannot convert '{describe(source)}' to '{describe(target)}'", tok
    )
    return False


def parse_typedef(ctx: AnalysisContext):
    """'typedef' type-specifier declarator (',' declarator)* ';'"""
    ctx.cursor.advance()
    base = parse_type_specifier(ctx)
    if base is None:
        return
    while True:
        name_tok, ctype = parse_declarator(ctx, base)
        if name_tok is None:
            return
        aliased = with_alias(ctype, name_tok.text)
        if not ctx.symbols.declare(name_tok.text, aliased, name_tok.line, name_tok.column,
                                   kind=SymbolKind.TYPEDEF):
            ctx.semantic_error(f"Redeclaration of '{name_tok.text}'", name_tok)
        if not ctx.cursor.at(K.COMMA):
            break
        ctx.cursor.advance()
    ctx.expect(K.SEMICOLON)


# ═══════════════════════════════════════════════════════════════════════
#  Functions
# ═══════════════════════════════════════════════════════════════════════

def _parse_parameters(ctx: AnalysisContext):
    """'(' ... ')' → (param types or None for '()', variadic, [(name token, type)])"""
    ctx.cursor.advance()
    named: List[Tuple[Optional[Token], CType]] = []
    if ctx.cursor.at(K.RPAREN):
        ctx.cursor.advance()
        return None, False, named
    if ctx.cursor.at(K.KW_VOID) and ctx.cursor.peek().kind == K.RPAREN:
        ctx.cursor.advance()
        ctx.cursor.advance()
        return (), False, named

    variadic = False
    while not ctx.aborted:
        if ctx.cursor.at(K.ELLIPSIS):
            ctx.cursor.advance()
            variadic = True
            break
        if not starts_type(ctx):
            ctx.syntax_error(f"Expected parameter type but got '{ctx.current.display}'")
            break
        ptype = parse_type_specifier(ctx) or UNKNOWN
        while ctx.cursor.at(K.STAR):
            ctx.cursor.advance()
            ptype = pointer_to(ptype)
        name_tok = ctx.cursor.advance() if ctx.cursor.at(K.IDENTIFIER) else None
        while ctx.cursor.at(K.LBRACKET):
            ctx.cursor.advance()
            if not ctx.cursor.at(K.RBRACKET):
                _comma_expression(ctx)
            ctx.expect(K.RBRACKET)
            ptype = pointer_to(ptype)
        named.append((name_tok, ptype))
        if not ctx.cursor.at(K.COMMA):
            break
        ctx.cursor.advance()
    ctx.expect(K.RPAREN)
    return tuple(t for _, t in named), variadic, named


def _declare_function(ctx: AnalysisContext, name_tok: Token, return_type: CType,
                      params: Optional[Tuple[CType, ...]], variadic: bool, is_definition: bool):
    name = name_tok.text
    existing = ctx.symbols.lookup_local(name)
    if existing is None:
        ctx.symbols.declare(
            name, return_type, name_tok.line, name_tok.column, kind=SymbolKind.FUNCTION,
            params=params, variadic=variadic, defined=is_definition,
        )
        return
    if existing.kind != SymbolKind.FUNCTION:
        ctx.semantic_error(f"Redeclaration of '{name}'", name_tok)
        return

    if existing.defined and is_definition:
        ctx.semantic_error(
            f"Function redeclaration '{name}': already defined on line {existing.line}", name_tok
        )
        return
    signature_differs = existing.ctype != return_type or (
        existing.params is not None and params is not None
        and (existing.params != params or existing.variadic != variadic)
    )
    if signature_differs:
        ctx.semantic_error(
            f"Function redeclaration '{name}' with a different signature than on line {existing.line}",
            name_tok,
        )
        return
    if is_definition:
        existing.defined = True
    if existing.params is None:
        existing.params = params
        existing.variadic = variadic


def parse_function(ctx: AnalysisContext, return_type: CType, name_tok: Token):
    """Parameter list followed by ';' (prototype) or a body block."""
    nested = ctx.symbols.depth > 0
    if nested:
        ctx.semantic_error(f"Nested function declaration '{name_tok.text}' is not allowed", name_tok)

    params, variadic, named = _parse_parameters(ctx)
    is_definition = ctx.cursor.at(K.LBRACE)
    if not nested:
        _declare_function(ctx, name_tok, return_type, params, variadic, is_definition)

    if ctx.cursor.at(K.SEMICOLON):
        ctx.cursor.advance()
        return
    if not is_definition:
        ctx.syntax_error(f"Expected '{{' or ';' after function declarator but got '{ctx.current.display}'")
        return

    ctx.cursor.advance()
    outer = (ctx.function, ctx.loop_depth, ctx.switch_depth)
    state = FunctionState(name_tok.text, return_type)
    ctx.function, ctx.loop_depth, ctx.switch_depth = state, 0, 0
    try:
        with ctx.symbols.scope():
            for ptok, ptype in named:
                if ptok is not None and not ctx.symbols.declare(ptok.text, ptype, ptok.line, ptok.column):
                    ctx.semantic_error(f"Redeclaration of parameter '{ptok.text}'", ptok)
            parse_block_body(ctx)
    finally:
        ctx.function, ctx.loop_depth, ctx.switch_depth = outer

    if not is_void(return_type) and not state.saw_return:
        ctx.semantic_error(
            f"Missing return statement in non-void function '{name_tok.text}'", name_tok
        )


# ═══════════════════════════════════════════════════════════════════════
#  Statements
# ═══════════════════════════════════════════════════════════════════════

def parse_statement(ctx: AnalysisContext):
    if not ctx.enter():
        return
    try:
        _statement(ctx)
    finally:
        ctx.leave()


def _statement(ctx: AnalysisContext):
    tok = ctx.current
    kind = tok.kind

    if kind in (K.PREPROCESSOR, K.ERROR, K.SEMICOLON):
        ctx.cursor.advance()
    elif kind == K.LBRACE:
        parse_block(ctx)
    elif kind == K.KW_IF:
        _if_statement(ctx)
    elif kind == K.KW_WHILE:
        _while_statement(ctx)
    elif kind == K.KW_DO:
        _do_statement(ctx)
    elif kind == K.KW_FOR:
        _for_statement(ctx)
    elif kind == K.KW_SWITCH:
        _switch_statement(ctx)
    elif kind in (K.KW_CASE, K.KW_DEFAULT):
        _case_label(ctx)
    elif kind == K.KW_RETURN:
        _return_statement(ctx)
    elif kind in (K.KW_BREAK, K.KW_CONTINUE):
        _jump_statement(ctx)
    elif kind == K.KW_TYPEDEF:
        parse_typedef(ctx)
    elif starts_type(ctx):
        parse_declaration(ctx)
    elif kind == K.KW_ELSE:
        ctx.syntax_error("Unexpected token 'else' without a matching 'if'")
        ctx.cursor.advance()
    else:
        _comma_expression(ctx)
        ctx.expect(K.SEMICOLON)


def _sub_statement(ctx: AnalysisContext, keyword: Token):
    if ctx.cursor.at(K.RBRACE, K.EOF):
        ctx.syntax_error(
            f"Expected statement after '{keyword.text}' but got '{ctx.current.display}'"
        )
        return
    parse_statement(ctx)


def _condition(ctx: AnalysisContext):
    ctx.expect(K.LPAREN)
    _comma_expression(ctx)
    ctx.expect(K.RPAREN)


def _if_statement(ctx: AnalysisContext):
    """if / else-if ladder, walked iteratively so each branch costs no nesting."""
    keyword = ctx.cursor.advance()
    while not ctx.aborted:
        _condition(ctx)
        _sub_statement(ctx, keyword)
        if not ctx.cursor.at(K.KW_ELSE):
            return
        keyword = ctx.cursor.advance()
        if not ctx.cursor.at(K.KW_IF):
            _sub_statement(ctx, keyword)
            return
        keyword = ctx.cursor.advance()


def _loop_body(ctx: AnalysisContext, keyword: Token):
    ctx.loop_depth += 1
    try:
        _sub_statement(ctx, keyword)
    finally:
        ctx.loop_depth -= 1


def _while_statement(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    _condition(ctx)
    _loop_body(ctx, keyword)


def _do_statement(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    _loop_body(ctx, keyword)
    ctx.expect(K.KW_WHILE)
    _condition(ctx)
    ctx.expect(K.SEMICOLON)


def _for_statement(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    ctx.expect(K.LPAREN)
    with ctx.symbols.scope():
        if ctx.cursor.at(K.SEMICOLON):
            ctx.cursor.advance()
        elif starts_type(ctx):
            parse_declaration(ctx)
        else:
            _comma_expression(ctx)
            ctx.expect(K.SEMICOLON)
        if not ctx.cursor.at(K.SEMICOLON):
            _comma_expression(ctx)
        ctx.expect(K.SEMICOLON)
        if not ctx.cursor.at(K.RPAREN):
            _comma_expression(ctx)
        ctx.expect(K.RPAREN)
        _loop_body(ctx, keyword)


def _switch_statement(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    _condition(ctx)
    ctx.switch_depth += 1
    try:
        _sub_statement(ctx, keyword)
    finally:
        ctx.switch_depth -= 1


def _case_label(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    if ctx.switch_depth == 0:
        ctx.semantic_error(f"'{keyword.text}' label not within a switch statement", keyword)
    if keyword.kind == K.KW_CASE:
        _conditional(ctx)
    ctx.expect(K.COLON)


def _jump_statement(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    if keyword.kind == K.KW_BREAK and ctx.loop_depth == 0 and ctx.switch_depth == 0:
        ctx.semantic_error("'break' statement not within a loop or switch", keyword)
    elif keyword.kind == K.KW_CONTINUE and ctx.loop_depth == 0:
        ctx.semantic_error("'continue' statement not within a loop", keyword)
    ctx.expect(K.SEMICOLON)


def _return_statement(ctx: AnalysisContext):
    keyword = ctx.cursor.advance()
    fn = ctx.function
    if ctx.cursor.at(K.SEMICOLON):
        if fn is not None and not is_void(fn.return_type):
            ctx.semantic_error(
                f"Return with no value in function '{fn.name}' returning '{describe(fn.return_type)}'",
                keyword,
            )
    else:
        first = ctx.current
        value = _comma_expression(ctx)
        if fn is not None:
            if is_void(fn.return_type):
                ctx.semantic_error(f"Return with a value in void function '{fn.name}'", keyword)
            else:
                check_assignable(ctx, fn.return_type, value.ctype, first)
    if fn is not None:
        fn.saw_return = True
    ctx.expect(K.SEMICOLON)


# ═══════════════════════════════════════════════════════════════════════
#  Expressions
# ═══════════════════════════════════════════════════════════════════════

def parse_expression(ctx: AnalysisContext) -> CType:
    """Parse a full (comma) expression and return its type descriptor."""
    return _comma_expression(ctx).ctype


def _comma_expression(ctx: AnalysisContext) -> Operand:
    result = _assignment(ctx)
    while ctx.cursor.at(K.COMMA) and not ctx.aborted:
        ctx.cursor.advance()
        result = _assignment(ctx)
    return result


def _assignment(ctx: AnalysisContext) -> Operand:
    """conditional (assign-op conditional)*, folded right to left."""
    targets: List[Tuple[Operand, Token]] = []
    value = _conditional(ctx)
    while ctx.cursor.at(*ASSIGN_OPS):
        targets.append((value, ctx.cursor.advance()))
        value = _conditional(ctx)

    for target, op in reversed(targets):
        if not target.lvalue:
            ctx.semantic_error(
                f"Invalid lvalue: cannot assign to '{target.token.text}'", target.token
            )
        elif op.kind == K.ASSIGN:
            check_assignable(ctx, target.ctype, value.ctype, value.token)
        else:
            combined = _binary_result(ctx, target, value, op)
            if not combined.is_sentinel:
                check_assignable(ctx, target.ctype, combined, value.token)
        value = Operand(target.ctype, target.token)
    return value


def _conditional(ctx: AnalysisContext) -> Operand:
    if not ctx.enter():
        return _recovered(ctx.current)
    try:
        cond = _binary_chain(ctx)
        if not ctx.cursor.at(K.QUESTION):
            return cond
        ctx.cursor.advance()
        then = _comma_expression(ctx)
        ctx.expect(K.COLON)
        other = _conditional(ctx)
        if is_compatible(then.ctype, other.ctype) or is_compatible(other.ctype, then.ctype):
            return Operand(then.ctype, cond.token)
        return Operand(UNKNOWN, cond.token)
    finally:
        ctx.leave()


def _binary_result(ctx: AnalysisContext, lhs: Operand, rhs: Operand, op: Token) -> CType:
    spelling = op.text.rstrip("=") if op.kind in ASSIGN_OPS else op.text
    result = result_type(lhs.ctype, rhs.ctype, spelling)
    if result.base == BaseKind.INVALID:
        ctx.semantic_error(
            f"Type mismatch: invalid operands to binary '{spelling}' "
            f"('{describe(lhs.ctype)}' and '{describe(rhs.ctype)}')",
            op,
        )
        return UNKNOWN
    return result


def _binary_chain(ctx: AnalysisContext) -> Operand:
    """Flat chain: each operator folds into everything to its left."""
    acc = _unary(ctx)
    while ctx.cursor.at(*BINARY_OPS):
        op = ctx.cursor.advance()
        rhs = _unary(ctx)
        acc = Operand(_binary_result(ctx, acc, rhs, op), acc.token)
    return acc


def _check_modifiable(ctx: AnalysisContext, operand: Operand, op: Token):
    if operand.lvalue:
        return
    sym = operand.symbol
    if sym is not None:
        ctx.semantic_error(
            f"Invalid lvalue: cannot apply '{op.text}' to {sym.kind.value} '{sym.name}'",
            operand.token,
        )
    else:
        ctx.semantic_error(
            f"Invalid lvalue: cannot apply '{op.text}' to '{operand.token.text}'", operand.token
        )


def _unary(ctx: AnalysisContext) -> Operand:
    if not ctx.enter():
        return _recovered(ctx.current)
    try:
        return _unary_inner(ctx)
    finally:
        ctx.leave()


def _unary_inner(ctx: AnalysisContext) -> Operand:
    tok = ctx.current
    kind = tok.kind

    if kind in (K.INC, K.DEC):
        ctx.cursor.advance()
        operand = _unary(ctx)
        _check_modifiable(ctx, operand, tok)
        return Operand(operand.ctype, operand.token)

    if kind in (K.PLUS, K.MINUS, K.TILDE):
        ctx.cursor.advance()
        operand = _unary(ctx)
        ok = is_integral(operand.ctype) if kind == K.TILDE else is_numeric(operand.ctype)
        if not ok and not operand.ctype.is_sentinel:
            ctx.semantic_error(
                f"Type mismatch: invalid operand to unary '{tok.text}' ('{describe(operand.ctype)}')", tok
            )
            return Operand(UNKNOWN, tok)
        return Operand(operand.ctype, tok)

    if kind == K.NOT:
        ctx.cursor.advance()
        _unary(ctx)
        return Operand(INT, tok)

    if kind == K.STAR:
        ctx.cursor.advance()
        operand = _unary(ctx)
        target = dereference(operand.ctype)
        if target is None:
            ctx.semantic_error(
                f"Invalid dereference: '{describe(operand.ctype)}' is not a pointer", tok
            )
            target = UNKNOWN
        return Operand(target, tok, lvalue=True)

    if kind == K.AMP:
        ctx.cursor.advance()
        operand = _unary(ctx)
        return Operand(pointer_to(operand.ctype), tok)

    if kind == K.KW_SIZEOF:
        ctx.cursor.advance()
        if ctx.cursor.at(K.LPAREN) and starts_type(ctx, 1):
            ctx.cursor.advance()
            _type_name(ctx)
            ctx.expect(K.RPAREN)
        else:
            _unary(ctx)
        return Operand(INT, tok)

    if kind == K.LPAREN and starts_type(ctx, 1):
        ctx.cursor.advance()
        target = _type_name(ctx)
        ctx.expect(K.RPAREN)
        _unary(ctx)
        return Operand(target, tok)

    return _postfix(ctx)


def _type_name(ctx: AnalysisContext) -> CType:
    """type-specifier '*'* as used by casts and sizeof."""
    ctype = parse_type_specifier(ctx) or UNKNOWN
    while ctx.cursor.at(K.STAR):
        ctx.cursor.advance()
        ctype = pointer_to(ctype)
    return ctype


def _postfix(ctx: AnalysisContext) -> Operand:
    operand = _primary(ctx)
    while not ctx.aborted:
        tok = ctx.current
        if tok.kind == K.LBRACKET:
            ctx.cursor.advance()
            _comma_expression(ctx)
            ctx.expect(K.RBRACKET)
            item = element_type(operand.ctype)
            if item is None:
                ctx.semantic_error(
                    f"Invalid subscript: '{describe(operand.ctype)}' is not a pointer or array", tok
                )
                item = UNKNOWN
            operand = Operand(item, operand.token, lvalue=True)
        elif tok.kind == K.LPAREN:
            operand = _call(ctx, operand)
        elif tok.kind in (K.DOT, K.ARROW):
            operand = _member_access(ctx, operand)
        elif tok.kind in (K.INC, K.DEC):
            ctx.cursor.advance()
            _check_modifiable(ctx, operand, tok)
            operand = Operand(operand.ctype, operand.token)
        else:
            break
    return operand


def _member_access(ctx: AnalysisContext, operand: Operand) -> Operand:
    op = ctx.cursor.advance()
    if not ctx.cursor.at(K.IDENTIFIER):
        ctx.syntax_error(f"Expected member name after '{op.text}' but got '{ctx.current.display}'")
        return _recovered(op)
    member = ctx.cursor.advance()

    base = operand.ctype
    if base.is_sentinel:
        return _recovered(member)
    if op.kind == K.ARROW:
        base = dereference(base) if is_pointer(base) else None
    if base is None or not is_struct(base):
        ctx.semantic_error(
            f"Request for member '{member.text}' in something not a structure "
            f"('{describe(operand.ctype)}' with '{op.text}')",
            member,
        )
        return _recovered(member)

    tag = ctx.symbols.lookup_struct(base.struct_tag)
    if tag is None:
        return _recovered(member)
    if tag.members is None:
        ctx.semantic_error(
            f"Member access into incomplete type '{describe(base)}'", member
        )
        return _recovered(member)
    if member.text not in tag.members:
        ctx.semantic_error(f"'{describe(base)}' has no member named '{member.text}'", member)
        return _recovered(member)
    return Operand(tag.members[member.text], member, lvalue=True)


def _check_arity(ctx: AnalysisContext, name_tok: Token, builtin: Builtin, given: int):
    if builtin.accepts(given):
        return
    ctx.semantic_error(
        f"Function '{name_tok.text}' expects {builtin.arity_text()} argument(s) "
        f"but {given} were given",
        name_tok,
    )


def _call(ctx: AnalysisContext, callee: Operand) -> Operand:
    ctx.cursor.advance()
    given = 0
    if not ctx.cursor.at(K.RPAREN):
        while not ctx.aborted:
            _assignment(ctx)
            given += 1
            if not ctx.cursor.at(K.COMMA):
                break
            ctx.cursor.advance()
    ctx.expect(K.RPAREN)

    sym = callee.symbol
    if sym is None or (callee.ctype.is_sentinel and not sym.is_function):
        return Operand(UNKNOWN, callee.token)
    if not sym.is_function:
        if is_pointer(sym.ctype):
            # Function pointers are not modelled
            return Operand(UNKNOWN, callee.token)
        ctx.semantic_error(f"Called object '{sym.name}' is not a function", callee.token)
        return Operand(UNKNOWN, callee.token)

    builtin: Optional[Builtin] = ctx.symbols.builtins.get(sym.name) if sym.is_builtin else None
    if builtin is None and sym.params is not None:
        # User functions are checked against the same arity rule as builtins
        builtin = Builtin(sym.name, BuiltinKind.FUNCTION, "", sym.ctype,
                          min_args=len(sym.params), variadic=sym.variadic)
    if builtin is not None:
        _check_arity(ctx, callee.token, builtin, given)
    return Operand(sym.ctype, callee.token)


def _number_type(text: str) -> CType:
    if "." in text:
        return FLOAT
    if text.strip("0") == "":
        return NULL_CONSTANT
    return INT


def _primary(ctx: AnalysisContext) -> Operand:
    tok = ctx.current
    kind = tok.kind

    if kind == K.IDENTIFIER:
        ctx.cursor.advance()
        sym = ctx.symbols.lookup(tok.text)
        if sym is None:
            ctx.semantic_error(f"Undeclared variable '{tok.text}'", tok)
            return _recovered(tok)
        if sym.is_type_name:
            ctx.syntax_error(f"Unexpected type name '{tok.text}' in expression", tok)
            return _recovered(tok)
        # Arrays name storage but are not assignable as a whole
        modifiable = sym.kind == SymbolKind.VARIABLE and not sym.ctype.is_array
        return Operand(sym.ctype, tok, lvalue=modifiable, symbol=sym)

    if kind == K.NUMBER:
        ctx.cursor.advance()
        return Operand(_number_type(tok.text), tok)

    if kind == K.STRING:
        ctx.cursor.advance()
        while ctx.cursor.at(K.STRING):
            ctx.cursor.advance()
        return Operand(STRING, tok)

    if kind == K.CHAR:
        ctx.cursor.advance()
        return Operand(CHAR, tok)

    if kind == K.LPAREN:
        ctx.cursor.advance()
        inner = _comma_expression(ctx)
        ctx.expect(K.RPAREN)
        return inner

    if kind == K.ERROR:
        # Already reported by the lexer
        ctx.cursor.advance()
        return _recovered(tok)

    if kind in EXPR_FOLLOW:
        ctx.syntax_error(f"Expected expression but got '{tok.display}'", tok)
        return _recovered(tok)

    ctx.syntax_error(f"Unexpected token '{tok.display}'", tok)
    ctx.cursor.advance()
    return _recovered(tok)


# ═══════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════

class Parser:
    """Runs ``parse_program`` over a token list with a fresh context per call."""

    def __init__(self, tokens: Sequence[Token], builtins: Optional[Mapping[str, Builtin]] = None,
                 max_iterations: int = MAX_ITERATIONS, max_nesting: int = MAX_NESTING):
        self.tokens = list(tokens)
        self.builtins = builtins
        self.max_iterations = max_iterations
        self.max_nesting = max_nesting

    def new_context(self) -> AnalysisContext:
        return AnalysisContext(
            self.tokens,
            symbols=SymbolTable(self.builtins),
            max_iterations=self.max_iterations,
            max_nesting=self.max_nesting,
        )

    def parse(self) -> List[Diagnostic]:
        ctx = self.new_context()
        parse_program(ctx)
        logger.debug(
            "Parsed %d tokens: %d diagnostics%s",
            len(self.tokens), len(ctx.sink), " (aborted)" if ctx.aborted else "",
        )
        return ctx.sink.diagnostics
