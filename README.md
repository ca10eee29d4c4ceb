# biscuit_datalog

A parser for the Datalog language used by Biscuit authorization tokens,
together with the builder types that describe facts, rules, checks and
policies. It has no dependencies outside the standard library.

## Installation

```
pip install .
```

## Modules

- `biscuit_datalog.builder` – the value types: terms (`Variable`,
  `Integer`, `Str`, `Date`, `Bytes`, `Bool`, `TermSet`, `Parameter`),
  `Scope`, `Predicate`, `Fact`, `Expression`, `Rule`, `Check`, `Policy`
  and the enums `Unary`, `Binary`, `CheckKind`, `PolicyKind`, plus helper
  functions to build them.
- `biscuit_datalog.terms` – parsers for single terms and the
  `ParserError` / `ErrorKind` types every parser raises.
- `biscuit_datalog.expressions` – the expression parser `expr` and the
  expression trees `ValueExpr`, `UnaryExpr`, `BinaryExpr`.
- `biscuit_datalog.statements` – parsers for facts, rules, checks,
  policies and whole sources.
- `biscuit_datalog.error` – `ParseError`, `ParseErrors` and
  `ParametersError`, all under `LanguageError` (apart from `ParseError`,
  which is a plain record).

## Parsing statements

```python
from biscuit_datalog import statements

rest, parsed = statements.fact('right("file1", "read")')
print(parsed.predicate.name)   # right

rest, parsed_check = statements.check('check if resource($0), operation("read")')
print(parsed_check.kind)       # CheckKind.ONE
```

Every parser takes the input text and returns a pair of the remaining
input and the parsed value. On invalid input a `ParserError` from
`biscuit_datalog.terms` is raised, carrying the offending input, an
`ErrorKind` and, where available, a message such as
`"variables are not allowed in facts"`.

`fact`, `rule`, `check` and `policy` require the statement to fill the
whole input; `fact_inner` and `rule_inner` stop after the statement.
`rule_inner` also checks that every variable in the head or in an
expression is bound by a body predicate. Rule bodies may end with
`trusting authority, previous, ed25519/<hex>, {param}`.

## Parsing a whole source

`parse_source` reads facts, rules, checks and policies separated by `;`,
skipping `//` and `/* ... */` comments. `parse_block_source` does the
same for token blocks, which may start with a `trusting ...;` scope list
and carry no policies. Both return a `SourceResult` whose lists hold
`(text, item)` pairs.

```python
from biscuit_datalog.statements import parse_source

result = parse_source('''
    fact("string");
    rule_head($x) <- fact($x), 1 < 2;
    check if 1 == 2;
    allow if rule_head("string");
''')
for text, parsed_fact in result.facts:
    print(text.strip(), parsed_fact.predicate.terms)
```

Parsing goes on past a bad statement; if any failed, a
`biscuit_datalog.error.ParseErrors` is raised listing all of them.

## Expressions

```python
from biscuit_datalog.expressions import expr

rest, tree = expr("1 + 2 * 3")
print(tree.opcodes())
```

`opcodes()` flattens the tree into postfix order: terms, then `Unary` and
`Binary` operators. Supported are `||`, `&&`, comparisons (which do not
chain), `^`, `|`, `&`, `+`, `-`, `*`, `/`, prefix `!`, parentheses and the
methods `contains`, `starts_with`, `ends_with`, `matches`,
`intersection`, `union` and `length()`.

## Building values by hand

```python
from biscuit_datalog import builder

f = builder.fact("right", [builder.string("file1"), builder.string("read")])
r = builder.rule("can_read", [builder.var("f")],
                 [builder.pred("right", [builder.var("f"), builder.string("read")])])
r.validate_variables()   # raises ValueError if a variable is unbound
```

Other helpers are `constrained_rule`, `check`, `integer`, `date` (from a
`datetime`, naive values taken as UTC), `variable`, `byte_array`,
`boolean`, `term_set` and `parameter`.

## What it does not do

This package reads Datalog and describes it as Python values. It does not
evaluate rules, run checks or policies, bind parameter values, or create,
sign, serialize or verify tokens.

## Running the tests

```
pip install .[test]
pytest
```