"""Parse-tree nodes for HCL expressions and generation of C code from them."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, TextIO

from .outgen import OutputGenerator

SYM_LIM = 100
MAXERRLEN = 80
MAX_COLUMN = 75
FIRST_INDENT = 4
OTHER_INDENTS = 2

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")


class NodeType(IntEnum):
    QUOTE = 0
    VAR = 1
    NUM = 2
    AND = 3
    OR = 4
    NOT = 5
    COMP = 6
    ELE = 7
    CASE = 8


class HclError(Exception):
    """Raised for semantic errors in an HCL description."""


@dataclass(eq=False)
class Node:
    """One node of an HCL expression; ``next`` chains nodes into lists."""

    type: NodeType
    isbool: bool = False
    sval: str = ""
    arg1: Optional["Node"] = None
    arg2: Optional["Node"] = None
    ref: int = 0
    next: Optional["Node"] = None

    def chain(self) -> Iterator["Node"]:
        """Iterate over this node and the nodes linked after it."""
        node: Optional[Node] = self
        while node is not None:
            yield node
            node = node.next


def _atoll(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group()) if match else 0


def make_quote(qstring: str) -> Node:
    """Make a node for a quoted string, dropping its surrounding quotes."""
    return Node(NodeType.QUOTE, False, qstring[1:-1])


def make_var(name: str) -> Node:
    """Make a variable node; variables start out as integer-valued."""
    return Node(NodeType.VAR, False, name)


def make_num(name: str) -> Node:
    return Node(NodeType.NUM, False, name)


def set_bool(node: Optional[Node]) -> None:
    """Mark a node as Boolean-valued."""
    if node is None:
        raise HclError("Null node encountered")
    node.isbool = True


def concat(n1: Optional[Node], n2: Optional[Node]) -> Optional[Node]:
    """Append list n2 to the end of list n1 and return the combined list."""
    if n1 is None:
        return n2
    tail = n1
    while tail.next is not None:
        tail = tail.next
    tail.next = n2
    return n1


class _ExprWriter:
    def __init__(self) -> None:
        self.parts: list[str] = []
        self.length = 0

    @property
    def room(self) -> bool:
        return self.length < MAXERRLEN

    def write(self, text: str) -> None:
        self.parts.append(text)
        self.length += len(text)


class HclGenerator:
    """Builds checked HCL expressions and writes C functions computing them."""

    def __init__(self, out: Optional[TextIO] = None, simname: str = ""):
        self.out = sys.stdout if out is None else out
        self._symbols: list[tuple[Node, Node]] = []
        if simname:
            self.out.write(f'char simname[] = "Y86-64 Processor: {simname}";\n')
        else:
            self.out.write('char simname[] = "Y86-64 Processor";\n')
        self._gen = OutputGenerator(self.out, MAX_COLUMN, FIRST_INDENT, OTHER_INDENTS)

    # Symbol table

    def _add_symbol(self, name: Node, val: Node) -> None:
        if len(self._symbols) >= SYM_LIM:
            raise HclError("Symbol table limit exceeded")
        self._symbols.append((name, val))

    def _find_symbol(self, name: str) -> Node:
        for sym, val in self._symbols:
            if sym.sval == name:
                sym.ref += 1
                return val
        raise HclError(f"Symbol {name} not found")

    def _check_arg(self, arg: Optional[Node], wantbool: bool) -> None:
        if arg is None:
            raise HclError("Null node encountered")
        if arg.type == NodeType.VAR:
            qval = self._find_symbol(arg.sval)
            if wantbool != qval.isbool:
                kind = "Boolean" if wantbool else "integer"
                raise HclError(f"Variable '{arg.sval}' not {kind}")
            return
        if arg.type == NodeType.NUM:
            if wantbool and arg.sval not in ("0", "1"):
                raise HclError(f"Value '{arg.sval}' not Boolean")
            return
        if wantbool and not arg.isbool:
            raise HclError(f"Non Boolean argument '{self.show_expr(arg)}'")
        if not wantbool and arg.isbool:
            raise HclError(f"Non integer argument '{self.show_expr(arg)}'")

    # Expression constructors

    def make_not(self, arg: Node) -> Node:
        self._check_arg(arg, True)
        return Node(NodeType.NOT, True, "!", arg)

    def make_and(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, True)
        self._check_arg(arg2, True)
        return Node(NodeType.AND, True, "&", arg1, arg2)

    def make_or(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, True)
        self._check_arg(arg2, True)
        return Node(NodeType.OR, True, "|", arg1, arg2)

    def make_comp(self, op: Node, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, False)
        self._check_arg(arg2, False)
        return Node(NodeType.COMP, True, op.sval, arg1, arg2)

    def make_ele(self, arg1: Node, arg2: Node) -> Node:
        """Set membership test: arg1 in the list arg2."""
        self._check_arg(arg1, False)
        for ele in arg1.chain():
            self._check_arg(ele, False)
        return Node(NodeType.ELE, True, "in", arg1, arg2)

    def make_case(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, True)
        self._check_arg(arg2, False)
        return Node(NodeType.CASE, False, ":", arg1, arg2)

    # Declarations

    def insert_code(self, qstring: Optional[Node]) -> None:
        """Copy a quoted block of code straight to the output."""
        if qstring is None:
            raise HclError("Null node")
        self.out.write(qstring.sval)
        self.out.write("\n")

    def add_arg(self, var: Optional[Node], qstring: Optional[Node], isbool: bool) -> None:
        """Declare a signal name together with the C expression it stands for."""
        if var is None or qstring is None:
            raise HclError("Null node")
        self._add_symbol(var, qstring)
        if isbool:
            set_bool(var)
            set_bool(qstring)

    # Display for error messages

    def show_expr(self, expr: Node) -> str:
        """Render an expression for an error message, cut short after 80 characters."""
        writer = _ExprWriter()
        self._show(expr, writer)
        text = "".join(writer.parts)
        if writer.length >= MAXERRLEN:
            text += "..."
        return text

    def _show(self, expr: Node, w: _ExprWriter) -> None:
        t = expr.type
        if t in (NodeType.QUOTE, NodeType.VAR, NodeType.NUM):
            text = f"'{expr.sval}'" if t == NodeType.QUOTE else expr.sval
            if len(text) + w.length < MAXERRLEN:
                w.write(text)
        elif t in (NodeType.AND, NodeType.OR, NodeType.COMP):
            sep = f" {expr.sval} "
            if w.room:
                w.write("(")
                self._show(expr.arg1, w)
                w.write(sep)
            if w.room:
                self._show(expr.arg2, w)
                w.write(")")
        elif t == NodeType.NOT:
            if w.room:
                w.write("!")
                self._show(expr.arg1, w)
        elif t == NodeType.ELE:
            if w.room:
                w.write("(")
                self._show(expr.arg1, w)
                w.write(" in {")
            if expr.arg2 is not None:
                for ele in expr.arg2.chain():
                    if w.room:
                        self._show(ele, w)
                        if ele.next is not None:
                            w.write(", ")
            if w.room:
                w.write("})")
        elif t == NodeType.CASE:
            if w.room:
                w.write("[ ")
            for ele in expr.chain():
                if not w.room:
                    break
                self._show(ele.arg1, w)
                w.write(" : ")
                self._show(ele.arg2, w)
            if w.room:
                w.write(" ]")
        elif w.room:
            w.write("??")

    # Code generation

    def _gen_expr(self, expr: Node) -> None:
        g = self._gen
        t = expr.type
        if t == NodeType.QUOTE:
            raise HclError("Unexpected quoted string")
        if t == NodeType.VAR:
            qstring = self._find_symbol(expr.sval)
            g.print(f"({qstring.sval})")
        elif t == NodeType.NUM:
            # Numbers go straight to the stream, outside the column count.
            self.out.write(expr.sval)
        elif t in (NodeType.AND, NodeType.OR):
            g.print("(")
            g.upindent()
            self._gen_expr(expr.arg1)
            g.print(f" {expr.sval} ")
            self._gen_expr(expr.arg2)
            g.print(")")
            g.downindent()
        elif t == NodeType.NOT:
            g.print("!")
            self._gen_expr(expr.arg1)
        elif t == NodeType.COMP:
            g.print("(")
            g.upindent()
            self._gen_expr(expr.arg1)
            g.print(f" {expr.sval} ")
            self._gen_expr(expr.arg2)
            g.print(")")
            g.downindent()
        elif t == NodeType.ELE:
            g.print("(")
            g.upindent()
            if expr.arg2 is not None:
                for ele in expr.arg2.chain():
                    self._gen_expr(expr.arg1)
                    g.print(" == ")
                    self._gen_expr(ele)
                    if ele.next is not None:
                        g.print(" || ")
            g.print(")")
            g.downindent()
        elif t == NodeType.CASE:
            g.print("(")
            g.upindent()
            done = False
            for ele in expr.chain():
                if ele.arg1.type == NodeType.NUM and _atoll(ele.arg1.sval) == 1:
                    self._gen_expr(ele.arg2)
                    done = True
                    break
                self._gen_expr(ele.arg1)
                g.print(" ? ")
                self._gen_expr(ele.arg2)
                g.print(" : ")
            if not done:
                g.print("0")
            g.print(")")
            g.downindent()
        else:
            raise HclError("Unknown node type")

    def gen_funct(self, var: Optional[Node], expr: Optional[Node], isbool: bool) -> None:
        """Write a C function gen_<var> returning the value of expr."""
        if var is None or expr is None:
            raise HclError("Null node")
        self._check_arg(expr, isbool)
        g = self._gen
        g.print(f"long long gen_{var.sval}()")
        g.terminate()
        g.print("{")
        g.terminate()
        g.print("    return ")
        self._gen_expr(expr)
        g.print(";")
        g.terminate()
        g.print("}")
        g.terminate()
        g.terminate()

    def finish(self, check_ref: bool = True) -> list[str]:
        """Warn about declared names never referenced; return those names."""
        if not check_ref:
            return []
        unused = [sym.sval for sym, _ in self._symbols if not sym.ref]
        for name in unused:
            print(f"Warning, argument '{name}' not referenced", file=sys.stderr)
        return unused