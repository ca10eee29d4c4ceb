import pytest

from biscuit_datalog.builder import (
    Binary,
    Date,
    Integer,
    Unary,
    boolean,
    integer,
    string,
    term_set,
    var,
)
from biscuit_datalog.expressions import BinaryExpr, UnaryExpr, ValueExpr, expr
from biscuit_datalog.terms import ErrorKind, ParserError


def ops_of(text):
    rest, parsed = expr(text)
    return rest, parsed.opcodes()


@pytest.mark.parametrize(
    "text, rest, ops",
    [
        (
            "$0 <= 2030-12-31T12:59:59+00:00",
            "",
            [var("0"), Date(1924952399), Binary.LESS_OR_EQUAL],
        ),
        (
            "$0 >= 2030-12-31T12:59:59+00:00",
            "",
            [var("0"), Date(1924952399), Binary.GREATER_OR_EQUAL],
        ),
        ("$0 < 1234", "", [var("0"), integer(1234), Binary.LESS_THAN]),
        ("$0 > 1234", "", [var("0"), integer(1234), Binary.GREATER_THAN]),
        ("$0 <= 1234", "", [var("0"), integer(1234), Binary.LESS_OR_EQUAL]),
        ("$0 >= -1234", "", [var("0"), integer(-1234), Binary.GREATER_OR_EQUAL]),
        ("$0 == 1", "", [var("0"), integer(1), Binary.EQUAL]),
        (
            "$0.length() == $1",
            "",
            [var("0"), Unary.LENGTH, var("1"), Binary.EQUAL],
        ),
        ("!$0 == $1", "", [var("0"), Unary.NEGATE, var("1"), Binary.EQUAL]),
        (
            "!false && true",
            "",
            [boolean(False), Unary.NEGATE, boolean(True), Binary.AND],
        ),
        (
            "true || true && true",
            "",
            [boolean(True), boolean(True), boolean(True), Binary.AND, Binary.OR],
        ),
        (
            "(1 > 2) == 3",
            "",
            [
                integer(1),
                integer(2),
                Binary.GREATER_THAN,
                Unary.PARENS,
                integer(3),
                Binary.EQUAL,
            ],
        ),
        (
            "1 > 2 + 3",
            "",
            [integer(1), integer(2), integer(3), Binary.ADD, Binary.GREATER_THAN],
        ),
        (
            "1 > 2 == 3",
            " == 3",
            [integer(1), integer(2), Binary.GREATER_THAN],
        ),
        (
            "[1, 2].contains($0)",
            "",
            [term_set([integer(1), integer(2)]), var("0"), Binary.CONTAINS],
        ),
        (
            "![1, 2].contains($0)",
            "",
            [
                term_set([integer(1), integer(2)]),
                var("0"),
                Binary.CONTAINS,
                Unary.NEGATE,
            ],
        ),
        ('$0 == "abc"', "", [var("0"), string("abc"), Binary.EQUAL]),
        ('$0.ends_with("abc")', "", [var("0"), string("abc"), Binary.SUFFIX]),
        ('$0.starts_with("abc")', "", [var("0"), string("abc"), Binary.PREFIX]),
        (
            '$0.matches("abc[0-9]+")',
            "",
            [var("0"), string("abc[0-9]+"), Binary.REGEX],
        ),
        (
            '["abc", "def"].contains($0)',
            "",
            [term_set([string("abc"), string("def")]), var("0"), Binary.CONTAINS],
        ),
        (
            '!["abc", "def"].contains($0)',
            "",
            [
                term_set([string("abc"), string("def")]),
                var("0"),
                Binary.CONTAINS,
                Unary.NEGATE,
            ],
        ),
        (
            "1 + 2 | 4 * 3 & 4",
            "",
            [
                integer(1),
                integer(2),
                Binary.ADD,
                integer(4),
                integer(3),
                Binary.MUL,
                integer(4),
                Binary.BITWISE_AND,
                Binary.BITWISE_OR,
            ],
        ),
    ],
)
def test_constraint(text, rest, ops):
    assert ops_of(text) == (rest, ops)


def test_chained_intersection_contains():
    assert ops_of("[1].intersection([2]).contains(3)") == (
        "",
        [
            term_set([integer(1)]),
            term_set([integer(2)]),
            Binary.INTERSECTION,
            integer(3),
            Binary.CONTAINS,
        ],
    )


def test_chained_union_length():
    assert ops_of("[1].intersection([2]).union([3]).length()") == (
        "",
        [
            term_set([integer(1)]),
            term_set([integer(2)]),
            Binary.INTERSECTION,
            term_set([integer(3)]),
            Binary.UNION,
            Unary.LENGTH,
        ],
    )


def test_chained_length_then_union():
    assert ops_of("[1].intersection([2]).length().union([3])") == (
        "",
        [
            term_set([integer(1)]),
            term_set([integer(2)]),
            Binary.INTERSECTION,
            Unary.LENGTH,
            term_set([integer(3)]),
            Binary.UNION,
        ],
    )


def test_negative_integer_tree():
    assert expr(" -1 ") == (" ", ValueExpr(Integer(-1)))


def test_date_comparison_tree():
    assert expr(" $0 <= 2019-12-04T09:46:41+00:00") == (
        "",
        BinaryExpr(
            Binary.LESS_OR_EQUAL,
            ValueExpr(var("0")),
            ValueExpr(Date(1575452801)),
        ),
    )


def test_addition_binds_tighter_than_comparison_tree():
    assert expr(" 1 < $test + 2 ") == (
        " ",
        BinaryExpr(
            Binary.LESS_THAN,
            ValueExpr(integer(1)),
            BinaryExpr(Binary.ADD, ValueExpr(var("test")), ValueExpr(integer(2))),
        ),
    )


def test_and_is_left_associative_tree():
    assert expr(' 2 < $test && $var2.starts_with("test") && true ') == (
        " ",
        BinaryExpr(
            Binary.AND,
            BinaryExpr(
                Binary.AND,
                BinaryExpr(
                    Binary.LESS_THAN,
                    ValueExpr(integer(2)),
                    ValueExpr(var("test")),
                ),
                BinaryExpr(
                    Binary.PREFIX,
                    ValueExpr(var("var2")),
                    ValueExpr(string("test")),
                ),
            ),
            ValueExpr(boolean(True)),
        ),
    )


def test_multiplication_precedence():
    rest, parsed = expr(" 1 + 2 * 3 ")
    assert parsed.opcodes() == [
        integer(1),
        integer(2),
        integer(3),
        Binary.MUL,
        Binary.ADD,
    ]


def test_parenthesised_addition():
    rest, parsed = expr(" (1 + 2) * 3 ")
    assert parsed.opcodes() == [
        integer(1),
        integer(2),
        Binary.ADD,
        Unary.PARENS,
        integer(3),
        Binary.MUL,
    ]


def test_unary_tree_shape():
    assert expr("!true") == ("", UnaryExpr(Unary.NEGATE, ValueExpr(boolean(True))))


def test_double_pipe_is_not_bitwise_or():
    assert ops_of("1 | 2 || 3") == (
        "",
        [integer(1), integer(2), Binary.BITWISE_OR, integer(3), Binary.OR],
    )


def test_xor_is_loosest_bitwise_operator():
    assert ops_of("1 ^ 2 | 3") == (
        "",
        [integer(1), integer(2), integer(3), Binary.BITWISE_OR, Binary.BITWISE_XOR],
    )


def test_subtraction_is_left_associative():
    assert ops_of("5 - 2 - 1") == (
        "",
        [integer(5), integer(2), Binary.SUB, integer(1), Binary.SUB],
    )


def test_not_equal():
    assert ops_of("$a != 3") == ("", [var("a"), integer(3), Binary.NOT_EQUAL])


def test_dangling_comparison_is_left_unparsed():
    assert ops_of("$0 ==") == (" ==", [var("0")])


def test_empty_input_fails():
    with pytest.raises(ParserError) as info:
        expr("")
    assert info.value.input == ""
    assert info.value.code is ErrorKind.CHAR
    assert info.value.fatal is False


def test_unknown_method_fails():
    with pytest.raises(ParserError) as info:
        expr("$0.foo()")
    assert info.value.input == "foo()"
    assert info.value.code is ErrorKind.TAG
    assert info.value.fatal is False


def test_length_with_argument_fails():
    with pytest.raises(ParserError) as info:
        expr("$0.length(1)")
    assert info.value.input == "1)"
    assert info.value.code is ErrorKind.CHAR