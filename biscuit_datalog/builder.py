"""Datalog building blocks: terms, predicates, facts, rules, checks and policies."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Iterable, Optional, Union

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_U64_MAX = 2**64 - 1


class Term:
    """Base class of every Datalog value.

    Terms of different kinds order by kind first (variable, integer, string,
    date, bytes, boolean, set, parameter), then by value.
    """

    _rank: ClassVar[int] = -1
    value: Any

    def sort_key(self) -> tuple:
        """Key giving the total order used for terms inside sets."""
        return (self._rank, self._value_key())

    def _value_key(self) -> Any:
        return self.value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Term):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Term):
            return NotImplemented
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Term):
            return NotImplemented
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Term):
            return NotImplemented
        return self.sort_key() >= other.sort_key()


@dataclass(frozen=True)
class Variable(Term):
    """A rule variable, written ``$name``."""

    value: str
    _rank: ClassVar[int] = 0


@dataclass(frozen=True)
class Integer(Term):
    """A signed 64-bit integer."""

    value: int
    _rank: ClassVar[int] = 1

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"integer term needs an int, got {self.value!r}")
        if not _I64_MIN <= self.value <= _I64_MAX:
            raise ValueError(f"integer out of 64-bit range: {self.value}")


@dataclass(frozen=True)
class Str(Term):
    """A string value."""

    value: str
    _rank: ClassVar[int] = 2


@dataclass(frozen=True)
class Date(Term):
    """A date, stored as seconds since the UNIX epoch."""

    value: int
    _rank: ClassVar[int] = 3

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"date term needs an int, got {self.value!r}")
        if not 0 <= self.value <= _U64_MAX:
            raise ValueError(f"date out of range: {self.value}")


@dataclass(frozen=True)
class Bytes(Term):
    """A byte array."""

    value: bytes
    _rank: ClassVar[int] = 4

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))


@dataclass(frozen=True)
class Bool(Term):
    """A boolean value."""

    value: bool
    _rank: ClassVar[int] = 5


@dataclass(frozen=True)
class TermSet(Term):
    """A set of terms."""

    value: frozenset
    _rank: ClassVar[int] = 6

    def __post_init__(self) -> None:
        values = frozenset(self.value)
        for item in values:
            if not isinstance(item, Term):
                raise TypeError(f"set elements must be terms, got {item!r}")
        object.__setattr__(self, "value", values)

    def _value_key(self) -> Any:
        return tuple(sorted(item.sort_key() for item in self.value))

    def sorted(self) -> list[Term]:
        """The elements in term order."""
        return sorted(self.value)


@dataclass(frozen=True)
class Parameter(Term):
    """A named placeholder, written ``{name}``, filled in later."""

    value: str
    _rank: ClassVar[int] = 7


PublicKey = bytes


class ScopeKind(enum.Enum):
    AUTHORITY = "authority"
    PREVIOUS = "previous"
    PUBLIC_KEY = "public_key"
    PARAMETER = "parameter"


@dataclass(frozen=True)
class Scope:
    """Which blocks a rule trusts."""

    kind: ScopeKind
    value: Union[bytes, str, None] = None

    def __post_init__(self) -> None:
        if self.kind is ScopeKind.PUBLIC_KEY:
            if self.value is None:
                raise ValueError("a public key scope needs key bytes")
            object.__setattr__(self, "value", bytes(self.value))
        elif self.kind is ScopeKind.PARAMETER:
            if not isinstance(self.value, str):
                raise ValueError("a parameter scope needs a name")
        elif self.value is not None:
            raise ValueError(f"scope {self.kind.value} takes no value")

    @classmethod
    def authority(cls) -> Scope:
        return cls(ScopeKind.AUTHORITY)

    @classmethod
    def previous(cls) -> Scope:
        return cls(ScopeKind.PREVIOUS)

    @classmethod
    def public_key(cls, key: bytes) -> Scope:
        return cls(ScopeKind.PUBLIC_KEY, key)

    @classmethod
    def parameter(cls, name: str) -> Scope:
        return cls(ScopeKind.PARAMETER, name)


@dataclass(frozen=True)
class Predicate:
    """A named tuple of terms, used in facts and rules."""

    name: str
    terms: tuple[Term, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", tuple(self.terms))


def _term_parameters(terms: Iterable[Term]) -> dict[str, Optional[Term]]:
    return {term.value: None for term in terms if isinstance(term, Parameter)}


@dataclass
class Fact:
    """A ground predicate; parameters found in its terms are collected unbound."""

    predicate: Predicate
    parameters: Optional[dict[str, Optional[Term]]] = None

    def __post_init__(self) -> None:
        if self.parameters is None:
            self.parameters = _term_parameters(self.predicate.terms)


class Unary(enum.Enum):
    NEGATE = "negate"
    PARENS = "parens"
    LENGTH = "length"


class Binary(enum.Enum):
    LESS_THAN = "less_than"
    GREATER_THAN = "greater_than"
    LESS_OR_EQUAL = "less_or_equal"
    GREATER_OR_EQUAL = "greater_or_equal"
    EQUAL = "equal"
    CONTAINS = "contains"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    REGEX = "regex"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    AND = "and"
    OR = "or"
    INTERSECTION = "intersection"
    UNION = "union"
    BITWISE_AND = "bitwise_and"
    BITWISE_OR = "bitwise_or"
    BITWISE_XOR = "bitwise_xor"
    NOT_EQUAL = "not_equal"


Op = Union[Term, Unary, Binary]


@dataclass
class Expression:
    """An expression in postfix form: terms push values, operators combine them."""

    ops: list[Op] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.ops = list(self.ops)


@dataclass
class Rule:
    """A Datalog rule: head <- body predicates, expressions, trusting scopes."""

    head: Predicate
    body: list[Predicate] = field(default_factory=list)
    expressions: list[Expression] = field(default_factory=list)
    scopes: list[Scope] = field(default_factory=list)
    parameters: Optional[dict[str, Optional[Term]]] = None
    scope_parameters: Optional[dict[str, Optional[bytes]]] = None

    def __post_init__(self) -> None:
        self.body = list(self.body)
        self.expressions = list(self.expressions)
        self.scopes = list(self.scopes)
        if self.parameters is None:
            params = _term_parameters(self.head.terms)
            for predicate in self.body:
                params.update(_term_parameters(predicate.terms))
            for expression in self.expressions:
                params.update(_term_parameters(expression.ops))
            self.parameters = params
        if self.scope_parameters is None:
            self.scope_parameters = {
                scope.value: None
                for scope in self.scopes
                if scope.kind is ScopeKind.PARAMETER
            }

    def validate_variables(self) -> None:
        """Raise ValueError if a head or expression variable is unbound by the body."""
        free = dict.fromkeys(
            term.value for term in self.head.terms if isinstance(term, Variable)
        )
        for expression in self.expressions:
            for op in expression.ops:
                if isinstance(op, Variable):
                    free[op.value] = None
        if not free:
            return
        for predicate in self.body:
            for term in predicate.terms:
                if isinstance(term, Variable):
                    free.pop(term.value, None)
                    if not free:
                        return
        names = ", ".join(f"${name}" for name in free)
        raise ValueError(
            "the rule contains variables that are not bound by predicates "
            f"in the rule's body: {names}"
        )


class CheckKind(enum.Enum):
    ONE = "one"
    ALL = "all"


@dataclass
class Check:
    """A check: succeeds if any of its queries matches."""

    queries: list[Rule]
    kind: CheckKind = CheckKind.ONE


class PolicyKind(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass
class Policy:
    """An allow or deny policy made of alternative queries."""

    queries: list[Rule]
    kind: PolicyKind


def fact(name: str, terms: Iterable[Term]) -> Fact:
    """Create a fact."""
    return Fact(pred(name, terms))


def pred(name: str, terms: Iterable[Term]) -> Predicate:
    """Create a predicate."""
    return Predicate(name, tuple(terms))


def rule(
    head_name: str, head_terms: Iterable[Term], predicates: Iterable[Predicate]
) -> Rule:
    """Create a rule without expressions."""
    return Rule(pred(head_name, head_terms), list(predicates))


def constrained_rule(
    head_name: str,
    head_terms: Iterable[Term],
    predicates: Iterable[Predicate],
    expressions: Iterable[Expression],
) -> Rule:
    """Create a rule with expressions."""
    return Rule(pred(head_name, head_terms), list(predicates), list(expressions))


def check(predicates: Iterable[Predicate], kind: CheckKind) -> Check:
    """Create a check with a single query over the given predicates."""
    return Check([Rule(pred("query", ()), list(predicates))], kind)


def integer(value: int) -> Integer:
    return Integer(value)


def string(value: str) -> Str:
    return Str(value)


def date(moment: datetime) -> Date:
    """Create a date; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    seconds = (moment - datetime(1970, 1, 1, tzinfo=timezone.utc)).total_seconds()
    if seconds < 0:
        raise ValueError("dates before the UNIX epoch are not supported")
    return Date(int(seconds))


def var(name: str) -> Variable:
    return Variable(name)


def variable(name: str) -> Variable:
    return Variable(name)


def byte_array(data: bytes) -> Bytes:
    return Bytes(data)


def boolean(value: bool) -> Bool:
    return Bool(bool(value))


def term_set(values: Iterable[Term]) -> TermSet:
    return TermSet(frozenset(values))


def parameter(name: str) -> Parameter:
    return Parameter(name)