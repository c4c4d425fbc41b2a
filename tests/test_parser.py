import pytest

from loopstep.ast import (
    ExprStmt, VarDecl, FuncDecl, IfStmt, ForStmt, Call, Member, Ident,
    Literal, TemplateLiteral, ArrowFunction, Await, BinaryOp,
)
from loopstep.errors import ScriptSyntaxError
from loopstep.parser import preprocess, strip_comments, parse_program


def test_newlines_end_statements():
    assert preprocess("let a = 1\nlet b = 2") == "let a = 1;\nlet b = 2;"


def test_chained_call_on_next_line_continues():
    out = preprocess("Promise.resolve()\n  .then(f)")
    assert out == "Promise.resolve()\n  .then(f);"


def test_newline_inside_call_arguments_is_kept():
    out = preprocess("setTimeout(() => {\n  go()\n}, 0)")
    assert out.count(';') == 2
    assert out.endswith('}, 0);')


def test_comments_are_blanked_keeping_lines():
    source = "a // note\n/* one\ntwo */b"
    out = strip_comments(source)
    assert 'note' not in out and 'one' not in out
    assert out.count('\n') == source.count('\n')
    assert "'//'" in strip_comments("x = '//'")


def test_statement_lines_follow_source():
    program = parse_program("let a = 1\n\nconsole.log(a)")
    assert [stmt.line for stmt in program.body] == [1, 3]


def test_arrow_function_forms():
    program = parse_program("const f = (a, b) => a + b\nconst g = x => { return x }\nconst h = async () => 1")
    f, g, h = [decl.declarations[0].init for decl in program.body]
    assert isinstance(f, ArrowFunction) and f.params == ['a', 'b'] and f.expression_body
    assert isinstance(f.body, BinaryOp)
    assert g.params == ['x'] and not g.expression_body
    assert h.is_async and h.params == []


def test_function_declarations_and_expressions():
    program = parse_program("async function load(url) { return 1 }\nconst anon = function() {}")
    decl, var = program.body
    assert isinstance(decl, FuncDecl)
    assert decl.name == 'load' and decl.params == ['url'] and decl.is_async
    expr = var.declarations[0].init
    assert isinstance(expr, ArrowFunction) and not expr.is_arrow and expr.name is None


def test_template_literal_parts():
    program = parse_program("console.log(`Hello ${name}, ${1 + 2}!`)")
    template = program.body[0].expr.args[0]
    assert isinstance(template, TemplateLiteral)
    assert template.quasis == ['Hello ', ', ', '!']
    assert isinstance(template.expressions[0], Ident)
    assert isinstance(template.expressions[1], BinaryOp)


def test_member_calls_and_chains():
    program = parse_program("Promise.reject()\n  .then(a)\n  .catch(b)")
    stmt = program.body[0]
    assert isinstance(stmt, ExprStmt)
    catch = stmt.expr
    assert isinstance(catch, Call) and isinstance(catch.callee, Member)
    assert catch.callee.name == 'catch'
    assert catch.callee.target.callee.name == 'then'


def test_control_flow_and_await():
    source = """async function run() {
  for (let i = 0; i < 3; i++) {
    if (i === 1) {
      await Promise.resolve()
    } else {
      console.log(i)
    }
  }
}"""
    func = parse_program(source).body[0]
    loop = func.body.statements[0]
    assert isinstance(loop, ForStmt)
    assert isinstance(loop.init, VarDecl) and loop.init.kind == 'let'
    branch = loop.body.statements[0]
    assert isinstance(branch, IfStmt) and branch.else_block is not None
    assert isinstance(branch.then_block.statements[0].expr, Await)


def test_literals():
    program = parse_program("f(1.5, 2e3, 'a\\'b', true, null)")
    values = [arg.value for arg in program.body[0].expr.args]
    assert values == [1.5, 2000, "a'b", True, None]
    assert all(isinstance(arg, Literal) for arg in program.body[0].expr.args)


@pytest.mark.parametrize('source', [
    "console.log(",
    "let = 5",
    "function () {",
    "if (x) console.log(x)",
])
def test_syntax_errors(source):
    with pytest.raises(ScriptSyntaxError) as info:
        parse_program(source)
    assert info.value.message == 'Syntax error in code'
