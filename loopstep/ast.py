"""Abstract Syntax Tree (AST) definitions for loopstep scripts.

The AST classes defined in this module represent the syntactic structure
of the supported JavaScript subset. They are produced by the parser and
consumed read-only by the interpreter and the call handlers. Every node
records the 1-based source line it starts on so that micro-steps can
highlight it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Any


@dataclass
class Node:
    """Base class for all AST nodes."""
    pass


@dataclass
class Program(Node):
    body: List[Node]
    line: Optional[int] = None


@dataclass
class Block(Node):
    statements: List[Node]
    line: Optional[int] = None


@dataclass
class ExprStmt(Node):
    expr: Node
    line: Optional[int] = None


@dataclass
class Declarator:
    name: str
    init: Optional[Node]


@dataclass
class VarDecl(Node):
    kind: str  # 'let', 'const' or 'var'
    declarations: List[Declarator]
    line: Optional[int] = None


@dataclass
class FuncDecl(Node):
    name: str
    params: List[str]
    body: Block
    is_async: bool = False
    line: Optional[int] = None


@dataclass
class IfStmt(Node):
    condition: Node
    then_block: Block
    else_block: Optional[Node]  # Block or a nested IfStmt
    line: Optional[int] = None


@dataclass
class ForStmt(Node):
    init: Optional[Node]  # VarDecl or expression
    condition: Optional[Node]
    update: Optional[Node]
    body: Block
    line: Optional[int] = None


@dataclass
class ReturnStmt(Node):
    value: Optional[Node]
    line: Optional[int] = None


@dataclass
class Literal(Node):
    value: Any
    line: Optional[int] = None


@dataclass
class Ident(Node):
    name: str
    line: Optional[int] = None


@dataclass
class TemplateLiteral(Node):
    quasis: List[str]
    expressions: List[Node]
    line: Optional[int] = None


@dataclass
class ArrayLit(Node):
    elements: List[Node]
    line: Optional[int] = None


@dataclass
class BinaryOp(Node):
    op: str
    left: Node
    right: Node
    line: Optional[int] = None


@dataclass
class UnaryOp(Node):
    op: str
    operand: Node
    line: Optional[int] = None


@dataclass
class Assign(Node):
    op: str  # '=', '+=', '-=', '*=', '/=', '%='
    name: str
    value: Node
    line: Optional[int] = None


@dataclass
class Update(Node):
    op: str  # '++' or '--'
    name: str
    prefix: bool
    line: Optional[int] = None


@dataclass
class Member(Node):
    target: Node
    name: str
    line: Optional[int] = None


@dataclass
class Call(Node):
    callee: Node
    args: List[Node] = field(default_factory=list)
    line: Optional[int] = None


@dataclass
class ArrowFunction(Node):
    """Arrow functions and function expressions.

    `body` is a Block, or any expression when `expression_body` is set
    (`x => x * 2`), in which case the expression is the implicit return
    value.
    """
    params: List[str]
    body: Node
    name: Optional[str] = None
    is_arrow: bool = True
    is_async: bool = False
    expression_body: bool = False
    line: Optional[int] = None


@dataclass
class Await(Node):
    operand: Node
    line: Optional[int] = None
