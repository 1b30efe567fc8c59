"""The grammar for rip source text.

Every function decorated with `@rule` here is a rule of the grammar, and every
one of them can be used on its own: `numeric.parse("4.2")` applies just the
numeric rule to a fragment of text, under the same all-or-nothing contract as
parsing a whole program.

Order matters throughout. Choices are tried first to last and the first one
that matches wins, so wherever one alternative could match a prefix of another
the longer one has to come first. The comments say where that is the case.
"""

import logging
import os

from . import nodes
from .peg import (
    ANY,
    LINE_START,
    Grammar,
    Rule,
    absent,
    alt,
    backref,
    bind,
    build,
    capture,
    charset,
    one_or_more,
    opt,
    present,
    repeat,
    rule,
    seq,
    zero_or_more,
)

load_log = logging.getLogger("rip.load")


###############################################################################
# Program structure
###############################################################################
@rule
def program() -> Rule:
    return build(nodes.Program, capture("statements", zero_or_more(statement | whitespace)))


@rule
def statement() -> Rule:
    # A comment after an expression ends up as its own statement after it.
    return comment | seq(expression, optional_spaces, opt(comment))


@rule
def comment() -> Rule:
    return build(nodes.Comment, "#", capture("text", zero_or_more(absent(eol), ANY)), opt(eol))


@rule
def expression() -> Rule:
    # A here-doc ends its own line, so there is nothing left to terminate.
    return seq(object_, alt(LINE_START, seq(optional_spaces, expression_terminator)))


@rule
def expression_terminator() -> Rule:
    return alt(";", eol, present(comment), end_of_input)


###############################################################################
# Objects
###############################################################################
@rule("object")
def object_() -> Rule:
    # The composites go first: each of them starts with something that would
    # otherwise be taken for a complete simple object.
    return recursive_object | simple_object


@rule
def simple_object() -> Rule:
    return alt(nil_literal, boolean, numeric, character, string, regular_expression)


@rule
def recursive_object() -> Rule:
    return alt(key_value_pair, range_, hash_literal, list_)


###############################################################################
# Literals
###############################################################################
def _true() -> nodes.Bool:
    return nodes.Bool(True)


def _false() -> nodes.Bool:
    return nodes.Bool(False)


@rule
def nil_literal() -> Rule:
    return build(nodes.Nil, "nil")


@rule
def boolean() -> Rule:
    return true_literal | false_literal


@rule
def true_literal() -> Rule:
    return build(_true, "true")


@rule
def false_literal() -> Rule:
    return build(_false, "false")


@rule
def numeric() -> Rule:
    # Decimal must come first, or the integer part of `4.2` is taken as an
    # integer and `.2` is left over.
    return decimal | integer


@rule
def decimal() -> Rule:
    return build(
        nodes.Decimal,
        opt(capture("sign", sign)),
        capture("digits", opt(digits), ".", digits),
    )


@rule
def integer() -> Rule:
    return build(nodes.Integer, opt(capture("sign", sign)), capture("digits", digits))


@rule
def sign() -> Rule:
    return alt("+", "-")


@rule(error_name="digit")
def digit() -> Rule:
    return charset(("0", "9"))


@rule
def digits() -> Rule:
    # `_` groups digits (3_423_752). Requiring a digit on both sides keeps it
    # from leading, trailing or doubling up.
    return seq(one_or_more(digit), zero_or_more(opt("_"), one_or_more(digit)))


@rule
def character() -> Rule:
    # TODO: Accept any printable character, not just ASCII letters and digits.
    return build(
        nodes.Character,
        "`",
        capture("char", charset(("0", "9"), ("a", "z"), ("A", "Z"), "_")),
    )


@rule
def string() -> Rule:
    return alt(symbol_string, single_quoted_string, double_quoted_string, here_doc)


@rule
def symbol_string() -> Rule:
    return build(
        nodes.StringLit,
        ":",
        capture("text", one_or_more(charset(("a", "z"), ("A", "Z"), "_"))),
    )


def _quoted(quote: str) -> Rule:
    # No escapes: the quote can't appear inside at all.
    return build(nodes.StringLit, quote, capture("text", zero_or_more(absent(quote), ANY)), quote)


@rule
def single_quoted_string() -> Rule:
    return _quoted("'")


@rule
def double_quoted_string() -> Rule:
    return _quoted('"')


@rule
def here_doc() -> Rule:
    # These stay inline (not rules of their own) so that the terminator can
    # see the label bound at the start.
    label = one_or_more(charset(("A", "Z"), "_"))
    terminator = seq(backref("label"), eol | end_of_input)
    line = seq(zero_or_more(absent(eol), ANY), eol)
    return build(
        nodes.StringLit,
        "<<",
        bind("label", label),
        eol,
        capture("text", zero_or_more(absent(terminator), line)),
        terminator,
    )


@rule
def regular_expression() -> Rule:
    return build(nodes.Regex, "/", capture("pattern", zero_or_more(absent("/"), ANY)), "/")


###############################################################################
# Composites
###############################################################################
@rule
def key_value_pair() -> Rule:
    # Keys are simple objects only; there is no such thing as a list key.
    return build(
        nodes.KeyValue,
        capture("key", simple_object),
        optional_spaces,
        ":",
        optional_spaces,
        capture("value", object_),
    )


@rule("range")
def range_() -> Rule:
    rangeable = integer | character
    return build(
        nodes.Range,
        capture("start", rangeable),
        optional_spaces,
        "..",
        opt(capture("exclusivity", ".")),
        optional_spaces,
        capture("end", rangeable),
    )


def _delimited(open: str, element: Rule, close: str) -> Rule:
    # repeat(max=1) rather than opt, so that no elements at all is still an
    # (empty) list.
    elements = repeat(
        seq(element, zero_or_more(optional_whitespaces, ",", optional_whitespaces, element)),
        max=1,
    )
    return seq(open, optional_whitespaces, elements, optional_whitespaces, close)


@rule
def hash_literal() -> Rule:
    return build(nodes.Hash, capture("pairs", _delimited("{", key_value_pair, "}")))


@rule("list")
def list_() -> Rule:
    return build(nodes.List, capture("items", _delimited("[", object_, "]")))


###############################################################################
# Whitespace
###############################################################################
@rule
def whitespace() -> Rule:
    return space | eol


@rule
def whitespaces() -> Rule:
    return one_or_more(whitespace)


@rule("whitespaces?")
def optional_whitespaces() -> Rule:
    return opt(whitespaces)


@rule
def space() -> Rule:
    return alt(" ", "\t")


@rule
def spaces() -> Rule:
    return one_or_more(space)


@rule("spaces?")
def optional_spaces() -> Rule:
    return opt(spaces)


@rule(error_name="end of line")
def eol() -> Rule:
    # CRLF first, or it would be taken as a CR and then a separate LF.
    return alt("\r\n", "\n", "\r")


@rule
def eols() -> Rule:
    return zero_or_more(eol)


@rule(error_name="end of input")
def end_of_input() -> Rule:
    return absent(ANY)


GRAMMAR = Grammar(start=program)


def parse(text: str) -> nodes.Program:
    """Parse a complete rip program.

    Raises runtime.ParseFailure if the text isn't one.
    """
    return GRAMMAR.parse(text)


def parse_file(path: str | os.PathLike) -> nodes.Program:
    ll = load_log
    if ll.isEnabledFor(logging.INFO):
        ll.info(f"Parsing {path}")
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse(text)
