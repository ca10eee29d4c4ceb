"""Parsers for Datalog terms: names, strings, numbers, dates, bytes, sets.

Every parser takes the text to read and returns ``(rest, value)``, where
``rest`` is what is left after the parsed item.  On failure a
:class:`ParserError` is raised.  A *fatal* error means the input was
recognised but is malformed, so alternatives must not be tried.
"""

from __future__ import annotations

import calendar
import enum
import re
from datetime import datetime
from typing import Callable, Optional, TypeVar

from . import builder

T = TypeVar("T")
Parser = Callable[[str], tuple[str, T]]

_SPACE = " \t\r\n"


class ErrorKind(enum.Enum):
    """What kind of parser step failed."""

    TAG = "Tag"
    CHAR = "Char"
    DIGIT = "Digit"
    TAKE_WHILE1 = "TakeWhile1"
    MAP_RES = "MapRes"
    ESCAPED_TRANSFORM = "EscapedTransform"
    EOF = "Eof"
    SATISFY = "Satisfy"
    FAIL = "Fail"
    SEPARATED_LIST = "SeparatedList"


class ParserError(Exception):
    """A parse failure at ``input`` (the offending text, possibly shortened).

    ``remaining`` is the length of the full input left at the failure
    point, which locates the error inside the original source.
    """

    def __init__(
        self,
        input: str,
        code: ErrorKind,
        message: Optional[str] = None,
        *,
        fatal: bool = False,
        remaining: Optional[int] = None,
    ) -> None:
        self.input = input
        self.code = code
        self.message = message
        self.fatal = fatal
        self.remaining = len(input) if remaining is None else remaining
        super().__init__(f"Parse error on input: {input}. Message: {message!r}")

    def offset_in(self, text: str) -> int:
        """Index in ``text`` where the error starts."""
        return len(text) - self.remaining

    def as_failure(self) -> ParserError:
        """The same error, marked fatal."""
        return self._copy(fatal=True)

    def narrowed(self, reducer: str, message: Optional[str] = None) -> ParserError:
        """Cut the input before the first character of ``reducer``.

        ``message`` is used only when the error carries none yet.
        """
        cut = next((idx for idx, ch in enumerate(self.input) if ch in reducer), None)
        text = self.input if cut is None else self.input[:cut]
        return self._copy(input=text, message=self.message or message)

    def _copy(self, **changes) -> ParserError:
        fields = {
            "input": self.input,
            "code": self.code,
            "message": self.message,
            "fatal": self.fatal,
        }
        fields.update(changes)
        return ParserError(
            fields.pop("input"),
            fields.pop("code"),
            fields.pop("message"),
            fatal=fields.pop("fatal"),
            remaining=self.remaining,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParserError):
            return NotImplemented
        return (self.input, self.code, self.message, self.fatal) == (
            other.input,
            other.code,
            other.message,
            other.fatal,
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"ParserError(input={self.input!r}, code={self.code}, "
            f"message={self.message!r}, fatal={self.fatal})"
        )


def _space0(text: str) -> str:
    return text.lstrip(_SPACE)


def _char(text: str, expected: str) -> str:
    if text.startswith(expected):
        return text[1:]
    raise ParserError(text, ErrorKind.CHAR)


def _tag(text: str, expected: str) -> str:
    if text.startswith(expected):
        return text[len(expected):]
    raise ParserError(text, ErrorKind.TAG)


def _take_while1(text: str, accept: Callable[[str], bool]) -> tuple[str, str]:
    end = 0
    for ch in text:
        if not accept(ch):
            break
        end += 1
    if end == 0:
        raise ParserError(text, ErrorKind.TAKE_WHILE1)
    return text[end:], text[:end]


def _alt(text: str, *parsers: Parser) -> tuple[str, object]:
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


def _separated_list0(text: str, element: Parser) -> tuple[str, list]:
    try:
        text, first = element(text)
    except ParserError as err:
        if err.fatal:
            raise
        return text, []
    items = [first]
    while True:
        try:
            after_sep = _comma(text)
            rest, item = element(after_sep)
        except ParserError as err:
            if err.fatal:
                raise
            return text, items
        items.append(item)
        text = rest


def _is_name_char(ch: str) -> bool:
    return (ch.isascii() and ch.isalnum()) or ch in "_:"


def name(text: str) -> tuple[str, str]:
    """Parse a predicate or variable name."""
    try:
        return _take_while1(text, _is_name_char)
    except ParserError as err:
        raise err.narrowed(" ,:(\n;") from None


_PRINTABLE = re.compile(r'[^\\"]+')
_ESCAPES = {"\\": "\\", '"': '"', "n": "\n"}


def _string_body(text: str) -> tuple[str, str]:
    parts: list[str] = []
    pos = 0
    while pos < len(text):
        match = _PRINTABLE.match(text, pos)
        if match:
            parts.append(match.group())
            pos = match.end()
            continue
        if text[pos] == "\\":
            escaped_at = pos + 1
            if escaped_at >= len(text):
                raise ParserError(text[pos:], ErrorKind.ESCAPED_TRANSFORM)
            replacement = _ESCAPES.get(text[escaped_at])
            if replacement is None:
                raise ParserError(text[escaped_at:], ErrorKind.CHAR)
            parts.append(replacement)
            pos = escaped_at + 1
            continue
        if pos == 0:
            raise ParserError(text, ErrorKind.ESCAPED_TRANSFORM)
        break
    return text[pos:], "".join(parts)


def _parse_string(text: str) -> tuple[str, str]:
    if text.startswith('""'):
        return text[2:], ""
    rest = _char(text, '"')
    rest, value = _string_body(rest)
    return _char(rest, '"'), value


def string(text: str) -> tuple[str, builder.Str]:
    """Parse a double-quoted string with ``\\\\``, ``\\"`` and ``\\n`` escapes."""
    rest, value = _parse_string(text)
    return rest, builder.Str(value)


def integer(text: str) -> tuple[str, builder.Integer]:
    """Parse a signed 64-bit decimal integer."""
    rest = text[1:] if text.startswith("-") else text
    digits = 0
    for ch in rest:
        if not ("0" <= ch <= "9"):
            break
        digits += 1
    if digits == 0:
        raise ParserError(rest, ErrorKind.DIGIT)
    consumed = len(text) - len(rest) + digits
    try:
        value = builder.Integer(int(text[:consumed]))
    except ValueError:
        raise ParserError(text, ErrorKind.MAP_RES) from None
    return text[consumed:], value


_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})[Tt]([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.[0-9]+)?(?:[Zz]|([+-])([0-9]{2}):([0-9]{2}))\Z",
    re.ASCII,
)


def _rfc3339_seconds(value: str) -> int:
    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"not an RFC 3339 date: {value!r}")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    moment = datetime(year, month, day, hour, minute, second)
    sign, off_hours, off_minutes = match.groups()[6:]
    offset = 0
    if sign is not None:
        hours, minutes = int(off_hours), int(off_minutes)
        if hours > 23 or minutes > 59:
            raise ValueError(f"invalid UTC offset in {value!r}")
        offset = (hours * 3600 + minutes * 60) * (1 if sign == "+" else -1)
    return calendar.timegm(moment.timetuple()) - offset


def _is_date_char(ch: str) -> bool:
    return ch not in ", )];"


def date(text: str) -> tuple[str, builder.Date]:
    """Parse an RFC 3339 date into seconds since the UNIX epoch."""
    rest, raw = _take_while1(text, _is_date_char)
    try:
        seconds = _rfc3339_seconds(raw)
        if seconds < 0:
            raise ValueError("date before the UNIX epoch")
        value = builder.Date(seconds)
    except ValueError:
        raise ParserError(text, ErrorKind.MAP_RES) from None
    return rest, value


def _is_hex_char(ch: str) -> bool:
    return ch in "0123456789abcdefABCDEF"


def parse_hex(text: str) -> tuple[str, bytes]:
    """Parse an even-length run of hexadecimal digits into bytes."""
    rest, digits = _take_while1(text, _is_hex_char)
    try:
        return rest, bytes.fromhex(digits)
    except ValueError:
        raise ParserError(text, ErrorKind.MAP_RES) from None


def byte_array(text: str) -> tuple[str, builder.Bytes]:
    """Parse a ``hex:``-prefixed byte array."""
    rest, data = parse_hex(_tag(text, "hex:"))
    return rest, builder.Bytes(data)


def public_key(text: str) -> tuple[str, bytes]:
    """Parse an ``ed25519/``-prefixed public key."""
    return parse_hex(_tag(text, "ed25519/"))


def variable(text: str) -> tuple[str, builder.Variable]:
    """Parse a ``$name`` variable."""
    rest, value = name(_char(text, "$"))
    return rest, builder.Variable(value)


def parameter(text: str) -> tuple[str, builder.Parameter]:
    """Parse a ``{name}`` parameter."""
    rest, value = name(_char(text, "{"))
    return _char(rest, "}"), builder.Parameter(value)


def boolean(text: str) -> tuple[str, builder.Bool]:
    """Parse ``true`` or ``false``."""
    for word, value in (("true", True), ("false", False)):
        if text.startswith(word):
            return text[len(word):], builder.Bool(value)
    raise ParserError(text, ErrorKind.TAG)


_SET_KINDS: dict[type, int] = {
    builder.Integer: 2,
    builder.Str: 3,
    builder.Date: 4,
    builder.Bytes: 5,
    builder.Bool: 6,
    builder.Parameter: 7,
}


def term_set(text: str) -> tuple[str, builder.TermSet]:
    """Parse a ``[...]`` set whose elements all have the same type."""
    rest = _char(_space0(text), "[")
    try:
        rest, items = _separated_list0(rest, term_in_set)
    except ParserError as err:
        raise err.as_failure() from None

    kind: Optional[int] = None
    for item in items:
        if isinstance(item, builder.Variable):
            raise ParserError(
                rest, ErrorKind.FAIL, "variables are not permitted in sets", fatal=True
            )
        if isinstance(item, builder.TermSet):
            raise ParserError(
                rest, ErrorKind.FAIL, "sets cannot contain other sets", fatal=True
            )
        index = _SET_KINDS[type(item)]
        if kind is None:
            kind = index
        elif kind != index:
            raise ParserError(
                rest,
                ErrorKind.FAIL,
                "set elements must have the same type",
                fatal=True,
            )

    rest = _char(_space0(rest), "]")
    return rest, builder.TermSet(frozenset(items))


def term(text: str) -> tuple[str, builder.Term]:
    """Parse any term, variables included."""
    return _alt(
        _space0(text),
        parameter,
        string,
        date,
        variable,
        integer,
        byte_array,
        boolean,
        term_set,
    )


def _with_context(
    parser: Callable[[str], tuple[str, builder.Term]],
    text: str,
    context: Callable[[str], str],
    reducer: str,
) -> tuple[str, builder.Term]:
    try:
        return parser(text)
    except ParserError as err:
        narrowed = err.narrowed(reducer)
        if narrowed.message is None:
            narrowed = narrowed.narrowed("", context(narrowed.input))
        raise narrowed from None


def _fact_term(text: str) -> tuple[str, builder.Term]:
    return _alt(
        text, parameter, string, date, integer, byte_array, boolean, term_set
    )


def _set_term(text: str) -> tuple[str, builder.Term]:
    return _alt(text, parameter, string, date, integer, byte_array, boolean)


def _fact_context(text: str) -> str:
    first = text[:1]
    if first in ("", ",", ")"):
        return "missing term"
    if first == "$":
        return "variables are not allowed in facts"
    return "expected a valid term"


def _set_context(text: str) -> str:
    first = text[:1]
    if first in ("", ",", "]"):
        return "missing term"
    if first == "$":
        return "variables are not allowed in sets"
    return "expected a valid term"


def term_in_fact(text: str) -> tuple[str, builder.Term]:
    """Parse a term allowed in a fact: anything but a variable."""
    return _with_context(_fact_term, _space0(text), _fact_context, " ,)\n;")


def term_in_set(text: str) -> tuple[str, builder.Term]:
    """Parse a term allowed in a set: no variables and no nested sets."""
    return _with_context(_set_term, _space0(text), _set_context, " ,]\n;")