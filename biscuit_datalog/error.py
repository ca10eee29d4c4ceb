"""Errors raised when reading Datalog source."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class ParseError:
    """One parse failure: the offending input and an optional message."""

    input: str
    message: Optional[str] = None

    @classmethod
    def from_parser_error(cls, error: Any) -> ParseError:
        """Build from any parser error carrying ``input`` and ``message``."""
        return cls(str(error.input), error.message)


def _debug_list(items: Iterable[str]) -> str:
    return json.dumps(list(items), ensure_ascii=False)


class LanguageError(Exception):
    """Base class for Datalog language errors."""


class ParseErrors(LanguageError):
    """The source could not be parsed."""

    def __init__(self, errors: Iterable[ParseError]) -> None:
        self.errors: list[ParseError] = list(errors)
        super().__init__(f"datalog parsing error: {self.errors!r}")

    @classmethod
    def from_parser_errors(cls, errors: Iterable[Any]) -> ParseErrors:
        """Build from parser errors carrying ``input`` and ``message``."""
        return cls(ParseError.from_parser_error(error) for error in errors)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParseErrors):
            return NotImplemented
        return self.errors == other.errors

    __hash__ = None  # type: ignore[assignment]


class ParametersError(LanguageError):
    """Parameters were left unbound, or provided values went unused."""

    def __init__(
        self,
        missing_parameters: Iterable[str] = (),
        unused_parameters: Iterable[str] = (),
    ) -> None:
        self.missing_parameters: list[str] = list(missing_parameters)
        self.unused_parameters: list[str] = list(unused_parameters)
        super().__init__(
            "datalog parameters must all be bound, provided values must all be used.\n"
            f"Missing parameters: {_debug_list(self.missing_parameters)}\n"
            f"Unused parameters: {_debug_list(self.unused_parameters)}"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParametersError):
            return NotImplemented
        return (
            self.missing_parameters == other.missing_parameters
            and self.unused_parameters == other.unused_parameters
        )

    __hash__ = None  # type: ignore[assignment]