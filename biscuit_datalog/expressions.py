"""Parser for Datalog expressions, with operator precedence and method calls.

From the loosest binding to the tightest, the levels are: ``||``, ``&&``,
comparisons (non associative), ``^``, ``|``, ``&``, ``+``/``-``,
``*``/``/``, prefix ``!``, then method calls such as ``.contains(x)`` or
``.length()`` on a term or a parenthesised expression.

Like the term parsers, :func:`expr` returns ``(rest, value)`` and raises
:class:`~biscuit_datalog.terms.ParserError` on failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from . import terms
from .builder import Binary, Op, Term, Unary
from .terms import ErrorKind, ParserError

_SPACE = " \t\r\n"


class Expr:
    """Base class of parsed expression trees."""

    def opcodes(self) -> list[Op]:
        """The expression in postfix order: operands first, then operators."""
        return list(self._postfix())

    def _postfix(self) -> Iterator[Op]:
        raise NotImplementedError


@dataclass(frozen=True)
class ValueExpr(Expr):
    """A single term."""

    value: Term

    def _postfix(self) -> Iterator[Op]:
        yield self.value


@dataclass(frozen=True)
class UnaryExpr(Expr):
    """A unary operator applied to one operand."""

    op: Unary
    operand: Expr

    def _postfix(self) -> Iterator[Op]:
        yield from self.operand._postfix()
        yield self.op


@dataclass(frozen=True)
class BinaryExpr(Expr):
    """A binary operator applied to two operands."""

    op: Binary
    left: Expr
    right: Expr

    def _postfix(self) -> Iterator[Op]:
        yield from self.left._postfix()
        yield from self.right._postfix()
        yield self.op


_ExprParser = Callable[[str], tuple[str, Expr]]
_OperatorTable = tuple[tuple[str, Binary], ...]

_OR: _OperatorTable = (("||", Binary.OR),)
_AND: _OperatorTable = (("&&", Binary.AND),)
_COMPARISON: _OperatorTable = (
    ("<=", Binary.LESS_OR_EQUAL),
    (">=", Binary.GREATER_OR_EQUAL),
    ("<", Binary.LESS_THAN),
    (">", Binary.GREATER_THAN),
    ("==", Binary.EQUAL),
    ("!=", Binary.NOT_EQUAL),
)
_XOR: _OperatorTable = (("^", Binary.BITWISE_XOR),)
_BIT_OR: _OperatorTable = (("|", Binary.BITWISE_OR),)
_BIT_AND: _OperatorTable = (("&", Binary.BITWISE_AND),)
_ADDITIVE: _OperatorTable = (("+", Binary.ADD), ("-", Binary.SUB))
_MULTIPLICATIVE: _OperatorTable = (("*", Binary.MUL), ("/", Binary.DIV))
_BINARY_METHODS: _OperatorTable = (
    ("contains", Binary.CONTAINS),
    ("starts_with", Binary.PREFIX),
    ("ends_with", Binary.SUFFIX),
    ("matches", Binary.REGEX),
    ("intersection", Binary.INTERSECTION),
    ("union", Binary.UNION),
)


def _space0(text: str) -> str:
    return text.lstrip(_SPACE)


def _tag(text: str, expected: str) -> str:
    if text.startswith(expected):
        return text[len(expected):]
    raise ParserError(text, ErrorKind.TAG)


def _char(text: str, expected: str) -> str:
    if text.startswith(expected):
        return text[len(expected):]
    raise ParserError(text, ErrorKind.CHAR)


def _operator(text: str, table: _OperatorTable) -> tuple[str, Binary]:
    for symbol, op in table:
        if text.startswith(symbol):
            return text[len(symbol):], op
    raise ParserError(text, ErrorKind.TAG)


def _left_assoc(
    text: str, operand: _ExprParser, table: _OperatorTable
) -> tuple[str, Expr]:
    rest, acc = operand(text)
    while True:
        try:
            after_op, op = _operator(_space0(rest), table)
            after, right = operand(after_op)
        except ParserError as err:
            if err.fatal:
                raise
            return rest, acc
        acc = BinaryExpr(op, acc, right)
        rest = after


def expr(text: str) -> tuple[str, Expr]:
    """Parse an expression; the loosest level handles ``||``."""
    return _left_assoc(text, _expr1, _OR)


def _expr1(text: str) -> tuple[str, Expr]:
    return _left_assoc(text, _expr2, _AND)


def _expr2(text: str) -> tuple[str, Expr]:
    # comparisons do not chain: ``a < b < c`` stops after ``a < b``
    rest, initial = _expr3(text)
    try:
        after_op, op = _operator(_space0(rest), _COMPARISON)
        after, right = _expr3(after_op)
    except ParserError:
        return rest, initial
    return after, BinaryExpr(op, initial, right)


def _expr3(text: str) -> tuple[str, Expr]:
    return _left_assoc(text, _expr4, _XOR)


def _expr4(text: str) -> tuple[str, Expr]:
    return _left_assoc(text, _expr5, _BIT_OR)


def _expr5(text: str) -> tuple[str, Expr]:
    return _left_assoc(text, _expr6, _BIT_AND)


def _expr6(text: str) -> tuple[str, Expr]:
    return _left_assoc(text, _expr7, _ADDITIVE)


def _expr7(text: str) -> tuple[str, Expr]:
    return _left_assoc(text, _expr8, _MULTIPLICATIVE)


def _expr8(text: str) -> tuple[str, Expr]:
    try:
        return _unary_negate(text)
    except ParserError as err:
        if err.fatal:
            raise
    return _expr9(text)


def _unary_negate(text: str) -> tuple[str, Expr]:
    rest = _space0(_tag(_space0(text), "!"))
    rest, value = _expr6(rest)
    return rest, UnaryExpr(Unary.NEGATE, value)


def _unary_parens(text: str) -> tuple[str, Expr]:
    rest = _space0(_tag(_space0(text), "("))
    rest, value = expr(rest)
    rest = _tag(_space0(rest), ")")
    return rest, UnaryExpr(Unary.PARENS, value)


def _expr_term(text: str) -> tuple[str, Expr]:
    try:
        return _unary_parens(text)
    except ParserError as err:
        if err.fatal:
            raise
    try:
        rest, value = terms.term(text)
    except ParserError as err:
        raise err.narrowed(" ,\n);") from None
    return rest, ValueExpr(value)


def _binary_method(text: str) -> tuple[str, Binary, Expr]:
    rest, op = _operator(text, _BINARY_METHODS)
    rest = _space0(_char(rest, "("))
    rest, argument = expr(rest)
    rest = _char(_space0(rest), ")")
    return rest, op, argument


def _unary_method(text: str) -> tuple[str, Unary]:
    rest = _tag(text, "length")
    rest = _space0(_char(rest, "("))
    rest = _char(rest, ")")
    return rest, Unary.LENGTH


def _expr9(text: str) -> tuple[str, Expr]:
    rest, acc = _expr_term(text)
    while rest.startswith("."):
        after_dot = rest[1:]
        try:
            after, op, argument = _binary_method(after_dot)
        except ParserError:
            pass
        else:
            acc = BinaryExpr(op, acc, argument)
            rest = after
            continue
        after, unary = _unary_method(after_dot)
        acc = UnaryExpr(unary, acc)
        rest = after
    return rest, acc