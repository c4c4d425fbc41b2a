"""Parser for the loopstep script subset.

This module implements a two-stage parsing pipeline:

1. **Preprocessing**: comments are blanked out (newlines are kept so that
   line numbers survive) and newlines that logically terminate statements
   are given an explicit semicolon. This allows us to use a grammar that
   requires semicolons to delimit statements while scripts may omit them.
   Strings and template literals are respected during preprocessing.

2. **Parsing**: The preprocessed source is fed into a Lark parser
   configured with a grammar for the subset. The resulting parse tree is
   transformed into an abstract syntax tree (AST) using a custom
   transformer.

The `parse_program` function is the public entry point and returns a
`Program` AST node. Any failure is raised as `ScriptSyntaxError`; the
underlying parser message is kept in its `detail` attribute only.
"""

from __future__ import annotations

from typing import List, Optional
import ast as py_ast

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from .ast import (
    Program, Block, ExprStmt, Declarator, VarDecl, FuncDecl, IfStmt,
    ForStmt, ReturnStmt, Literal, Ident, TemplateLiteral, ArrayLit,
    BinaryOp, UnaryOp, Assign, Update, Member, Call, ArrowFunction, Await,
)
from .errors import ScriptSyntaxError

# Characters after which a newline never ends a statement.
CONTINUATION_CHARS = set('=+-*/%<>&|!?:.,;{([')
# Characters that, at the start of the next line, continue the previous one.
LEADING_CONTINUATION_CHARS = set('.,)]?:=*/%&|<>')


def strip_comments(source: str) -> str:
    """Replace `//` and `/* */` comments with spaces, keeping newlines."""
    result: List[str] = []
    i = 0
    length = len(source)
    quote: Optional[str] = None
    escape = False
    in_line_comment = False
    in_block_comment = False
    while i < length:
        c = source[i]
        if in_block_comment:
            if c == '*' and i + 1 < length and source[i + 1] == '/':
                in_block_comment = False
                result.append('  ')
                i += 2
                continue
            result.append('\n' if c == '\n' else ' ')
            i += 1
            continue
        if in_line_comment:
            if c == '\n':
                in_line_comment = False
                result.append(c)
            else:
                result.append(' ')
            i += 1
            continue
        if quote is not None:
            result.append(c)
            if escape:
                escape = False
            elif c == '\\':
                escape = True
            elif c == quote:
                quote = None
            i += 1
            continue
        if c == '/' and i + 1 < length and source[i + 1] == '/':
            in_line_comment = True
            result.append('  ')
            i += 2
            continue
        if c == '/' and i + 1 < length and source[i + 1] == '*':
            in_block_comment = True
            result.append('  ')
            i += 2
            continue
        if c in '\'"`':
            quote = c
        result.append(c)
        i += 1
    return ''.join(result)


def _needs_semicolon(result: List[str], source: str, next_index: int) -> bool:
    j = len(result) - 1
    while j >= 0 and result[j] in ' \t\r\n':
        j -= 1
    if j < 0:
        return False
    prev = result[j]
    if prev in CONTINUATION_CHARS:
        # `i++` and `i--` end a statement even though they end in an operator
        if not (prev in '+-' and j > 0 and result[j - 1] == prev):
            return False
    k = next_index
    while k < len(source) and source[k] in ' \t\r\n':
        k += 1
    if k >= len(source):
        return True
    nxt = source[k]
    if source.startswith('++', k) or source.startswith('--', k):
        return True
    if nxt in LEADING_CONTINUATION_CHARS or nxt in '+-{':
        return False
    if source.startswith('else', k):
        after = source[k + 4:k + 5]
        if not (after.isalnum() or after in ('_', '$')):
            return False
    return True


def preprocess(source: str) -> str:
    """Insert semicolons at statement boundaries defined by newlines.

    Scripts may omit semicolons. To simplify the grammar, a semicolon is
    inserted at a newline that sits directly in a block or at the top
    level (not inside parentheses or brackets), unless the previous line
    ends with an operator or the next one starts by continuing the
    expression (`.then(...)` chains, `else`, closing parentheses). The
    last statement before a closing brace is terminated the same way.
    Newlines themselves are kept so that parse positions match the
    original lines.
    """
    source = strip_comments(source)
    result: List[str] = []
    stack: List[str] = []
    quote: Optional[str] = None
    escape = False
    for i, c in enumerate(source):
        if quote is not None:
            result.append(c)
            if escape:
                escape = False
            elif c == '\\':
                escape = True
            elif c == quote:
                quote = None
            continue
        if c in '\'"`':
            quote = c
        elif c in '([{':
            stack.append(c)
        elif c in ')]}':
            if c == '}' and stack and stack[-1] == '{':
                # `{ return x }` on one line: close the last statement
                j = len(result) - 1
                while j >= 0 and result[j] in ' \t\r\n':
                    j -= 1
                if j >= 0 and result[j] not in ';{':
                    result.append(';')
            if stack:
                stack.pop()
        elif c == '\n':
            if (not stack or stack[-1] == '{') and _needs_semicolon(result, source, i + 1):
                result.append(';')
        result.append(c)
    if quote is None and not stack and _needs_semicolon(result, source, len(source)):
        result.append(';')
    return ''.join(result)


GRAMMAR = r"""
    program: statement*

    // Statements
    ?statement: var_stmt
              | if_stmt
              | for_stmt
              | return_stmt
              | block
              | expr_stmt
              | empty_stmt

    var_stmt: declaration ";"
    declaration: decl_kind declarator ("," declarator)*
    !decl_kind: "let" | "const" | "var"
    declarator: IDENT ["=" expression]

    if_stmt: "if" "(" expression ")" block [else_clause]
    ?else_clause: "else" (block | if_stmt)

    for_stmt: "for" "(" [for_init] ";" [expression] ";" [expression] ")" block
    ?for_init: declaration | expression

    return_stmt: "return" [expression] ";"
    block: "{" statement* "}"
    expr_stmt: expression ";"
    empty_stmt: ";"

    // Expressions with precedence
    template_expr: expression

    ?expression: assignment
    ?assignment: IDENT assign_op assignment -> assign
               | arrow_fn
               | logic_or
    !assign_op: "=" | "+=" | "-=" | "*=" | "/=" | "%="

    arrow_fn: [async_mark] (ARROW_PARAMS | IDENT "=>") arrow_body
    ?arrow_body: block | assignment
    async_mark: "async"

    ?logic_or: logic_and
             | logic_or "||" logic_and -> or_op
    ?logic_and: equality
              | logic_and "&&" equality -> and_op
    ?equality: compare
             | equality eq_op compare -> binary
    !eq_op: "===" | "!==" | "==" | "!="
    ?compare: sum
            | compare cmp_op sum -> binary
    !cmp_op: "<=" | ">=" | "<" | ">"
    ?sum: product
        | sum add_op product -> binary
    !add_op: "+" | "-"
    ?product: unary
            | product mul_op unary -> binary
    !mul_op: "*" | "/" | "%"

    ?unary: "!" unary -> not_op
          | "-" unary -> neg_op
          | "+" unary -> pos_op
          | "await" unary -> await_op
          | "++" IDENT -> pre_inc
          | "--" IDENT -> pre_dec
          | postfix

    ?postfix: primary
            | IDENT "++" -> post_inc
            | IDENT "--" -> post_dec
            | postfix "(" [args] ")" -> call
            | postfix "." IDENT -> member
    args: expression ("," expression)*

    ?primary: NUMBER -> number
            | STRING -> string
            | TEMPLATE -> template
            | "true" -> true
            | "false" -> false
            | "null" -> null
            | IDENT -> var
            | "(" expression ")"
            | "[" [args] "]" -> array
            | func_expr

    func_expr: [async_mark] "function" [IDENT] "(" [params] ")" block
    params: IDENT ("," IDENT)*

    // Tokens
    ARROW_PARAMS.2: /\([^()]*\)\s*=>/
    IDENT: /[A-Za-z_$][A-Za-z0-9_$]*/
    NUMBER: /\d+(\.\d+)?([eE][+-]?\d+)?/
    STRING: /"(\\.|[^"\\\n])*"/ | /'(\\.|[^'\\\n])*'/
    TEMPLATE: /`[^`]*`/

    %import common.WS
    %ignore WS
"""


PARSER = Lark(
    GRAMMAR,
    start=['program', 'template_expr'],
    parser='lalr',
    lexer='contextual',
    propagate_positions=True,
    maybe_placeholders=True,
)


def line_of(meta) -> Optional[int]:
    return getattr(meta, 'line', None)


def split_template(raw: str):
    """Split template literal text into quasis and `${...}` sources."""
    quasis: List[str] = []
    sources: List[str] = []
    current: List[str] = []
    i = 0
    while i < len(raw):
        if raw.startswith('${', i):
            depth = 1
            j = i + 2
            while j < len(raw) and depth:
                if raw[j] == '{':
                    depth += 1
                elif raw[j] == '}':
                    depth -= 1
                j += 1
            if depth:
                raise ValueError('unterminated template expression')
            quasis.append(''.join(current))
            current = []
            sources.append(raw[i + 2:j - 1])
            i = j
            continue
        current.append(raw[i])
        i += 1
    quasis.append(''.join(current))
    return quasis, sources


@v_args(meta=True)
class ASTTransformer(Transformer):
    """Transforms the raw parse tree into an AST."""

    def program(self, meta, items):
        return Program(body=[s for s in items if s is not None], line=1)

    def var_stmt(self, meta, items):
        return items[0]

    def declaration(self, meta, items):
        kind = items[0]
        return VarDecl(kind=kind, declarations=list(items[1:]), line=line_of(meta))

    def decl_kind(self, meta, items):
        return str(items[0])

    def declarator(self, meta, items):
        return Declarator(name=str(items[0]), init=items[1])

    def if_stmt(self, meta, items):
        condition, then_block, else_block = items
        return IfStmt(condition, then_block, else_block, line=line_of(meta))

    def for_stmt(self, meta, items):
        init, condition, update, body = items
        return ForStmt(init, condition, update, body, line=line_of(meta))

    def return_stmt(self, meta, items):
        return ReturnStmt(items[0], line=line_of(meta))

    def block(self, meta, items):
        return Block(statements=[s for s in items if s is not None], line=line_of(meta))

    def expr_stmt(self, meta, items):
        expr = items[0]
        # `function name() {}` in statement position is a declaration
        if isinstance(expr, ArrowFunction) and not expr.is_arrow and expr.name:
            return FuncDecl(name=expr.name, params=expr.params, body=expr.body,
                            is_async=expr.is_async, line=expr.line)
        return ExprStmt(expr, line=line_of(meta))

    def empty_stmt(self, meta, items):
        return None

    # Expressions
    def template_expr(self, meta, items):
        return items[0]

    def assign(self, meta, items):
        name, op, value = items
        return Assign(op=op, name=str(name), value=value, line=line_of(meta))

    def assign_op(self, meta, items):
        return str(items[0])

    def async_mark(self, meta, items):
        return True

    def arrow_fn(self, meta, items):
        is_async = items[0] is True
        head = items[1]
        body = items[-1]
        if head.type == 'ARROW_PARAMS':
            inner = head.value[head.value.index('(') + 1:head.value.rindex(')')]
            params = [p.strip() for p in inner.split(',') if p.strip()]
        else:
            params = [str(head)]
        return ArrowFunction(
            params=params,
            body=body,
            is_arrow=True,
            is_async=is_async,
            expression_body=not isinstance(body, Block),
            line=line_of(meta),
        )

    def func_expr(self, meta, items):
        mark, name, params, body = items
        return ArrowFunction(
            params=params or [],
            body=body,
            name=str(name) if name is not None else None,
            is_arrow=False,
            is_async=mark is True,
            line=line_of(meta),
        )

    def params(self, meta, items):
        return [str(item) for item in items]

    def or_op(self, meta, items):
        return BinaryOp(op='||', left=items[0], right=items[1], line=line_of(meta))

    def and_op(self, meta, items):
        return BinaryOp(op='&&', left=items[0], right=items[1], line=line_of(meta))

    def binary(self, meta, items):
        left, op, right = items
        return BinaryOp(op=op, left=left, right=right, line=line_of(meta))

    def eq_op(self, meta, items):
        return str(items[0])

    def cmp_op(self, meta, items):
        return str(items[0])

    def add_op(self, meta, items):
        return str(items[0])

    def mul_op(self, meta, items):
        return str(items[0])

    def not_op(self, meta, items):
        return UnaryOp(op='!', operand=items[0], line=line_of(meta))

    def neg_op(self, meta, items):
        return UnaryOp(op='-', operand=items[0], line=line_of(meta))

    def pos_op(self, meta, items):
        return UnaryOp(op='+', operand=items[0], line=line_of(meta))

    def await_op(self, meta, items):
        return Await(operand=items[0], line=line_of(meta))

    def pre_inc(self, meta, items):
        return Update(op='++', name=str(items[0]), prefix=True, line=line_of(meta))

    def pre_dec(self, meta, items):
        return Update(op='--', name=str(items[0]), prefix=True, line=line_of(meta))

    def post_inc(self, meta, items):
        return Update(op='++', name=str(items[0]), prefix=False, line=line_of(meta))

    def post_dec(self, meta, items):
        return Update(op='--', name=str(items[0]), prefix=False, line=line_of(meta))

    def call(self, meta, items):
        callee, args = items
        return Call(callee=callee, args=args or [], line=line_of(meta))

    def member(self, meta, items):
        target, name = items
        return Member(target=target, name=str(name), line=line_of(meta))

    def args(self, meta, items):
        return list(items)

    def number(self, meta, items):
        raw = items[0].value
        if any(ch in raw for ch in '.eE'):
            value = float(raw)
            return Literal(int(value) if value.is_integer() else value, line=line_of(meta))
        return Literal(int(raw), line=line_of(meta))

    def string(self, meta, items):
        # Use Python ast.literal_eval to unescape
        return Literal(py_ast.literal_eval(items[0].value), line=line_of(meta))

    def template(self, meta, items):
        token = items[0]
        quasis, sources = split_template(token.value[1:-1])
        expressions = [parse_expression(src) for src in sources]
        return TemplateLiteral(quasis=quasis, expressions=expressions, line=line_of(meta))

    def true(self, meta, items):
        return Literal(True, line=line_of(meta))

    def false(self, meta, items):
        return Literal(False, line=line_of(meta))

    def null(self, meta, items):
        return Literal(None, line=line_of(meta))

    def var(self, meta, items):
        return Ident(str(items[0]), line=line_of(meta))

    def array(self, meta, items):
        return ArrayLit(elements=items[0] or [], line=line_of(meta))


def parse_expression(source: str):
    """Parse a single embedded expression (template literal `${...}`)."""
    tree = PARSER.parse(source, start='template_expr')
    return ASTTransformer().transform(tree)


def parse_program(source: str) -> Program:
    """Parse script source code into an AST Program.

    The source is first preprocessed to normalize statement terminators.
    Any syntax error is raised as `ScriptSyntaxError`.
    """
    try:
        pre = preprocess(source)
        tree = PARSER.parse(pre, start='program')
        return ASTTransformer().transform(tree)
    except (LarkError, ValueError, SyntaxError) as e:
        raise ScriptSyntaxError(detail=str(e)) from e
