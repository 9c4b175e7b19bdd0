"""RSQL text to a small boolean AST.

Grammar::

    or_expr    := and_expr ((',' | 'or') and_expr)*
    and_expr   := term ((';' | 'and') term)*
    term       := '(' or_expr ')' | comparison
    comparison := selector operator (value | '(' value (',' value)* ')')

Operators are ``==``, ``!=`` or any ``=name=`` token; ``<``, ``>``, ``<=`` and
``>=`` are accepted as aliases of ``=lt=``, ``=gt=``, ``=le=`` and ``=ge=``.
Whether an operator is supported is decided by the translator, not here.
"""
import re
from dataclasses import dataclass
from typing import Tuple, Union


class QuerySyntaxError(ValueError): pass


@dataclass(frozen=True)
class Comparison:
    selector: str
    operator: str
    arguments: Tuple[str, ...]


@dataclass(frozen=True)
class And:
    children: Tuple["Node", ...]


@dataclass(frozen=True)
class Or:
    children: Tuple["Node", ...]


Node = Union[And, Or, Comparison]

RESERVED = frozenset("\"'();,=!~<> \t\r\n")
OPERATOR = re.compile(r"==|!=|=[A-Za-z-]*=|<=|>=|<|>")
OPERATOR_ALIASES = {"<": "=lt=", ">": "=gt=", "<=": "=le=", ">=": "=ge="}


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> Node:
        node = self._or()
        self._skip_ws()
        if self.pos != len(self.text):
            raise self._error("Unexpected input")
        return node

    def _error(self, message: str) -> QuerySyntaxError:
        return QuerySyntaxError(f"{message} at position {self.pos} in query: {self.text}")

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip_ws(self):
        while self._peek().isspace():
            self.pos += 1

    def _expect(self, ch: str):
        if self._peek() != ch:
            raise self._error(f"Expected '{ch}'")
        self.pos += 1

    def _logical(self, symbol: str, keyword: str) -> bool:
        self._skip_ws()
        if self._peek() == symbol:
            self.pos += 1
            return True
        end = self.pos + len(keyword)
        if self.text[self.pos:end].lower() == keyword and end < len(self.text) and self.text[end].isspace():
            self.pos = end
            return True
        return False

    def _or(self) -> Node:
        children = [self._and()]
        while self._logical(",", "or"):
            children.append(self._and())
        return children[0] if len(children) == 1 else Or(tuple(children))

    def _and(self) -> Node:
        children = [self._term()]
        while self._logical(";", "and"):
            children.append(self._term())
        return children[0] if len(children) == 1 else And(tuple(children))

    def _term(self) -> Node:
        self._skip_ws()
        if self._peek() == "(":
            self.pos += 1
            node = self._or()
            self._skip_ws()
            self._expect(")")
            return node
        return self._comparison()

    def _comparison(self) -> Comparison:
        selector = self._unreserved()
        if not selector:
            raise self._error("Expected a selector")
        self._skip_ws()
        match = OPERATOR.match(self.text, self.pos)
        if match is None:
            raise self._error("Expected a comparison operator")
        self.pos = match.end()
        operator = OPERATOR_ALIASES.get(match.group(0), match.group(0))
        self._skip_ws()
        return Comparison(selector=selector, operator=operator, arguments=self._arguments())

    def _arguments(self) -> Tuple[str, ...]:
        if self._peek() != "(":
            return (self._value(),)
        self.pos += 1
        values = [self._value()]
        while True:
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
                values.append(self._value())
                continue
            self._expect(")")
            return tuple(values)

    def _value(self) -> str:
        self._skip_ws()
        quote = self._peek()
        if quote in ("'", '"'):
            return self._quoted(quote)
        value = self._unreserved()
        if not value:
            raise self._error("Expected an argument")
        return value

    def _quoted(self, quote: str) -> str:
        self.pos += 1
        out = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.text):
                out.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            self.pos += 1
            if ch == quote:
                return "".join(out)
            out.append(ch)
        raise self._error("Unterminated quoted argument")

    def _unreserved(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in RESERVED:
            self.pos += 1
        return self.text[start:self.pos]


def parse(text: str) -> Node:
    if text is None or not text.strip():
        raise QuerySyntaxError("Query must not be empty")
    return _Parser(text.strip()).parse()
