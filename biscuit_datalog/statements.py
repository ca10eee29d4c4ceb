"""Parsers for Datalog statements and whole sources.

Statements are facts, rules, checks and policies.  Like the term and
expression parsers, the statement parsers return ``(rest, value)`` and raise
:class:`~biscuit_datalog.terms.ParserError` on failure.
:func:`parse_source` and :func:`parse_block_source` read a whole source of
``;``-separated statements and comments.  They keep going after a bad
statement so that every error is reported, then raise
:class:`~biscuit_datalog.error.ParseErrors` if there were any.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from . import builder, expressions, terms
from .error import ParseErrors
from .terms import ErrorKind, ParserError

_SPACE = " \t\r\n"
_LINE_BODY = re.compile(r"[^\r\n]*")


@dataclass
class SourceResult:
    """Everything read from a source, each item with the text it came from."""

    scopes: list[builder.Scope] = field(default_factory=list)
    facts: list[tuple[str, builder.Fact]] = field(default_factory=list)
    rules: list[tuple[str, builder.Rule]] = field(default_factory=list)
    checks: list[tuple[str, builder.Check]] = field(default_factory=list)
    policies: list[tuple[str, builder.Policy]] = field(default_factory=list)


def _space0(text: str) -> str:
    return text.lstrip(_SPACE)


def _char(text: str, expected: str) -> str:
    if text.startswith(expected):
        return text[len(expected):]
    raise ParserError(text, ErrorKind.CHAR)


def _tag(text: str, expected: str) -> str:
    if text.startswith(expected):
        return text[len(expected):]
    raise ParserError(text, ErrorKind.TAG)


def _tag_no_case(text: str, expected: str) -> str:
    if text[: len(expected)].lower() == expected.lower():
        return text[len(expected):]
    raise ParserError(text, ErrorKind.TAG)


def _cut(parser: Callable[[str], tuple], text: str) -> tuple:
    """Run ``parser``; any failure becomes fatal."""
    try:
        return parser(text)
    except ParserError as err:
        if err.fatal:
            raise
        raise err.as_failure() from None


def _alt(text: str, *parsers: Callable[[str], tuple]) -> tuple:
    last: Optional[ParserError] = None
    for parser in parsers:
        try:
            return parser(text)
        except ParserError as err:
            if err.fatal:
                raise
            last = err
    assert last is not None
    raise last


def _comma(text: str) -> str:
    return _char(_space0(text), ",")


def _separated_list(
    text: str,
    separator: Callable[[str], str],
    element: Callable[[str], tuple],
    *,
    allow_empty: bool,
) -> tuple[str, list]:
    try:
        text, first = element(text)
    except ParserError as err:
        if err.fatal or not allow_empty:
            raise
        return text, []
    items = [first]
    while True:
        try:
            rest, item = element(separator(text))
        except ParserError as err:
            if err.fatal:
                raise
            return text, items
        items.append(item)
        text = rest


def _expect_end(text: str, context: Callable[[str], str]) -> str:
    rest = _space0(text)
    if rest:
        err = ParserError(rest, ErrorKind.EOF).narrowed(" ,\n")
        raise err.narrowed("", context(err.input))
    return rest


def _cut_term(text: str) -> tuple[str, builder.Term]:
    return _cut(terms.term, text)


def _cut_fact_term(text: str) -> tuple[str, builder.Term]:
    return _cut(terms.term_in_fact, text)


def _predicate(text: str, *, allow_empty: bool = False) -> tuple[str, builder.Predicate]:
    rest, pname = terms.name(_space0(text))
    rest = _char(_space0(rest), "(")
    rest, items = _cut(
        lambda t: _separated_list(t, _comma, _cut_term, allow_empty=allow_empty), rest
    )
    rest = _char(_space0(rest), ")")
    return rest, builder.Predicate(pname, tuple(items))


def _rule_head(text: str) -> tuple[str, builder.Predicate]:
    return _predicate(text, allow_empty=True)


def fact_inner(text: str) -> tuple[str, builder.Fact]:
    """Parse a fact, leaving anything after it."""
    rest, fname = terms.name(_space0(text))
    rest = _char(_space0(rest), "(")
    rest, items = _cut(
        lambda t: _separated_list(t, _comma, _cut_fact_term, allow_empty=False), rest
    )
    rest = _char(_space0(rest), ")")
    return rest, builder.Fact(builder.Predicate(fname, tuple(items)))


def fact(text: str) -> tuple[str, builder.Fact]:
    """Parse a fact that makes up the whole input."""
    rest, value = fact_inner(text)
    rest = _expect_end(
        rest, lambda found: f"unexpected trailing data after fact: '{found}'"
    )
    return rest, value


def _expression_element(text: str) -> tuple[str, builder.Expression]:
    rest, tree = expressions.expr(text)
    return rest, builder.Expression(tree.opcodes())


def _predicate_or_expression(text: str) -> tuple[str, object]:
    try:
        return _alt(text, _predicate, _expression_element)
    except ParserError as err:
        raise err.narrowed(",;") from None


def _body_element(text: str) -> tuple[str, object]:
    return _cut(_predicate_or_expression, _space0(text))


def _scope(text: str) -> tuple[str, builder.Scope]:
    def authority(t: str) -> tuple[str, builder.Scope]:
        return _tag(t, "authority"), builder.Scope.authority()

    def previous(t: str) -> tuple[str, builder.Scope]:
        return _tag(t, "previous"), builder.Scope.previous()

    def key(t: str) -> tuple[str, builder.Scope]:
        rest, data = terms.public_key(t)
        return rest, builder.Scope.public_key(data)

    def named(t: str) -> tuple[str, builder.Scope]:
        rest, pname = terms.name(_char(t, "{"))
        return _char(rest, "}"), builder.Scope.parameter(pname)

    return _alt(text, authority, previous, key, named)


def _scope_element(text: str) -> tuple[str, builder.Scope]:
    return _cut(_scope, _space0(text))


def _scopes(text: str) -> tuple[str, list[builder.Scope]]:
    try:
        rest = _tag(_space0(text), "trusting")
    except ParserError:
        return text, []
    return _separated_list(rest, _comma, _scope_element, allow_empty=False)


def rule_body(
    text: str,
) -> tuple[
    str, tuple[list[builder.Predicate], list[builder.Expression], list[builder.Scope]]
]:
    """Parse a rule body: predicates and expressions, then optional trusted scopes."""
    rest, elements = _separated_list(text, _comma, _body_element, allow_empty=False)
    predicates = [e for e in elements if isinstance(e, builder.Predicate)]
    exprs = [e for e in elements if isinstance(e, builder.Expression)]
    rest, scopes = _scopes(rest)
    return rest, (predicates, exprs, scopes)


def _query_body(text: str) -> tuple[str, builder.Rule]:
    rest, (predicates, exprs, scopes) = _cut(rule_body, _space0(text))
    return rest, builder.Rule(builder.Predicate("query", ()), predicates, exprs, scopes)


def _or(text: str) -> str:
    return _tag_no_case(_space0(text), "or")


def check_body(text: str) -> tuple[str, list[builder.Rule]]:
    """Parse alternative queries separated by ``or``."""
    return _separated_list(text, _or, _query_body, allow_empty=False)


def _check_inner(text: str) -> tuple[str, builder.Check]:
    rest = _space0(text)
    try:
        rest = _tag_no_case(rest, "check if")
        kind = builder.CheckKind.ONE
    except ParserError:
        rest = _tag_no_case(rest, "check all")
        kind = builder.CheckKind.ALL
    rest, queries = _cut(check_body, rest)
    return rest, builder.Check(queries, kind)


def _variant_context(variant: str) -> Callable[[str], str]:
    def context(found: str) -> str:
        if found.startswith(")"):
            return "unexpected parens"
        return (
            "expected either the next term after ',' or the next "
            f"{variant} variant after 'or', but got '{found}'"
        )

    return context


def check(text: str) -> tuple[str, builder.Check]:
    """Parse a ``check if`` or ``check all`` that makes up the whole input."""
    rest, value = _check_inner(text)
    return _expect_end(rest, _variant_context("check")), value


def _policy_of(keyword: str, kind: builder.PolicyKind, text: str) -> tuple[str, builder.Policy]:
    rest = _tag_no_case(_space0(text), keyword)
    rest, queries = _cut(check_body, rest)
    return rest, builder.Policy(queries, kind)


def allow(text: str) -> tuple[str, builder.Policy]:
    """Parse an ``allow if`` policy."""
    return _policy_of("allow if", builder.PolicyKind.ALLOW, text)


def deny(text: str) -> tuple[str, builder.Policy]:
    """Parse a ``deny if`` policy."""
    return _policy_of("deny if", builder.PolicyKind.DENY, text)


def _policy_inner(text: str) -> tuple[str, builder.Policy]:
    return _alt(text, allow, deny)


def policy(text: str) -> tuple[str, builder.Policy]:
    """Parse an allow or deny policy that makes up the whole input."""
    rest, value = _policy_inner(text)
    return _expect_end(rest, _variant_context("policy")), value


def rule_inner(text: str) -> tuple[str, builder.Rule]:
    """Parse a rule ``head <- body``, checking that every variable is bound."""
    rest, head = _rule_head(text)
    rest = _tag(_space0(rest), "<-")
    rest, (predicates, exprs, scopes) = _cut(rule_body, rest)
    consumed = text[: len(text) - len(rest)]
    value = builder.Rule(head, predicates, exprs, scopes)
    try:
        value.validate_variables()
    except ValueError as err:
        raise ParserError(
            consumed, ErrorKind.SATISFY, str(err), fatal=True, remaining=len(text)
        ) from None
    return rest, value


def _rule_context(found: str) -> str:
    if found.startswith(")"):
        return "unexpected parens"
    return f"expected the next term or expression after ',', but got '{found}'"


def rule(text: str) -> tuple[str, builder.Rule]:
    """Parse a rule that makes up the whole input."""
    rest, value = rule_inner(text)
    return _expect_end(rest, _rule_context), value


def sep(text: str) -> tuple[str, str]:
    """Parse a statement separator: ``;`` or the end of the input."""
    rest = _space0(text)
    if rest.startswith(";"):
        return rest[1:], ";"
    if not rest:
        return rest, rest
    raise ParserError(rest, ErrorKind.EOF)


def _line_comment(text: str) -> tuple[str, None]:
    rest = _tag(_space0(text), "//")
    rest = rest[_LINE_BODY.match(rest).end():]
    if rest.startswith("\n"):
        return rest[1:], None
    if rest.startswith("\r\n"):
        return rest[2:], None
    if not rest:
        return rest, None
    raise ParserError(rest, ErrorKind.TAG)


def _multiline_comment(text: str) -> tuple[str, None]:
    rest = _tag(_space0(text), "/*")
    end = rest.find("*/")
    if end < 0:
        raise ParserError(rest, ErrorKind.TAG)
    return rest[end + 2:], None


_Item = Optional[tuple[str, str, object]]


def _statement(parser: Callable[[str], tuple], bucket: str) -> Callable[[str], tuple[str, _Item]]:
    def run(text: str) -> tuple[str, _Item]:
        rest, value = parser(text)
        span = text[: len(text) - len(rest)]
        rest, _ = sep(rest)
        return rest, (bucket, span, value)

    return run


def _comment(parser: Callable[[str], tuple[str, None]]) -> Callable[[str], tuple[str, _Item]]:
    def run(text: str) -> tuple[str, _Item]:
        rest, _ = parser(text)
        return rest, None

    return run


_BLOCK_PARSERS = (
    _statement(rule_inner, "rules"),
    _statement(fact_inner, "facts"),
    _statement(_check_inner, "checks"),
    _comment(_line_comment),
    _comment(_multiline_comment),
)

_SOURCE_PARSERS = (
    _statement(rule_inner, "rules"),
    _statement(fact_inner, "facts"),
    _statement(_check_inner, "checks"),
    _statement(_policy_inner, "policies"),
    _comment(_line_comment),
    _comment(_multiline_comment),
)


def _recover(text: str, err: ParserError) -> tuple[str, ParserError]:
    """Skip past the statement holding ``err``; return the rest and the trimmed error."""
    err = err.narrowed(";")
    end = text.find(";", err.offset_in(text))
    return ("" if end < 0 else text[end + 1:]), err


def _parse_statements(
    text: str,
    parsers: tuple[Callable[[str], tuple[str, _Item]], ...],
    result: SourceResult,
    errors: list[ParserError],
) -> SourceResult:
    while text:
        try:
            rest, item = _alt(text, *parsers)
        except ParserError as err:
            text, err = _recover(text, err)
            errors.append(err)
            continue
        if item is not None:
            bucket, span, value = item
            getattr(result, bucket).append((span, value))
        text = _space0(rest)
    if errors:
        raise ParseErrors.from_parser_errors(errors)
    return result


def parse_source(text: str) -> SourceResult:
    """Read facts, rules, checks, policies and comments.

    Raises :class:`ParseErrors` listing every statement that failed.
    """
    return _parse_statements(text, _SOURCE_PARSERS, SourceResult(), [])


def _block_scopes(text: str) -> tuple[str, Optional[list[builder.Scope]]]:
    try:
        rest, scopes = _scopes(text)
        rest, _ = sep(rest)
    except ParserError as err:
        if err.fatal:
            raise
        return text, None
    return rest, scopes


def parse_block_source(text: str) -> SourceResult:
    """Read a block: an optional ``trusting ...;`` header, then facts, rules and checks.

    Policies are not accepted.  Raises :class:`ParseErrors` on failure.
    """
    result = SourceResult()
    errors: list[ParserError] = []
    try:
        rest, scopes = _block_scopes(text)
    except ParserError as err:
        text, err = _recover(text, err)
        errors.append(err)
    else:
        if scopes is not None:
            text = rest
            result.scopes = scopes
    return _parse_statements(text, _BLOCK_PARSERS, result, errors)