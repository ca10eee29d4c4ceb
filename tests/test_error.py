from types import SimpleNamespace

import pytest

from biscuit_datalog.error import (
    LanguageError,
    ParametersError,
    ParseError,
    ParseErrors,
)


def test_parse_error_from_parser_error():
    raw = SimpleNamespace(input="$operation", message="variables are not allowed in facts")
    err = ParseError.from_parser_error(raw)
    assert err == ParseError("$operation", "variables are not allowed in facts")


def test_parse_error_without_message():
    err = ParseError.from_parser_error(SimpleNamespace(input="and", message=None))
    assert err.message is None
    assert err.input == "and"


def test_parse_errors_from_list_keeps_order():
    raws = [
        SimpleNamespace(input="a", message=None),
        SimpleNamespace(input=")", message="unexpected parens"),
    ]
    errors = ParseErrors.from_parser_errors(raws)
    assert [e.input for e in errors.errors] == ["a", ")"]
    assert errors.errors[1].message == "unexpected parens"


def test_parse_errors_message_and_type():
    errors = ParseErrors([ParseError(")", "unexpected parens")])
    assert str(errors).startswith("datalog parsing error: ")
    assert "unexpected parens" in str(errors)
    with pytest.raises(LanguageError):
        raise errors


def test_parse_errors_equality():
    assert ParseErrors([ParseError("x")]) == ParseErrors([ParseError("x")])
    assert ParseErrors([ParseError("x")]) != ParseErrors([ParseError("y")])


def test_parameters_error_message():
    err = ParametersError(missing_parameters=[], unused_parameters=["x"])
    assert str(err) == (
        "datalog parameters must all be bound, provided values must all be used.\n"
        "Missing parameters: []\n"
        'Unused parameters: ["x"]'
    )


def test_parameters_error_fields_and_catch():
    with pytest.raises(LanguageError) as info:
        raise ParametersError(["a"], ["b", "c"])
    assert info.value.missing_parameters == ["a"]
    assert info.value.unused_parameters == ["b", "c"]
    assert info.value == ParametersError(["a"], ["b", "c"])