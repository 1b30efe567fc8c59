import dataclasses
import logging

import pytest

import rip.runtime as runtime

from rip.peg import (
    ANY,
    LINE_START,
    Grammar,
    GrammarError,
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


@dataclasses.dataclass(frozen=True)
class Pair:
    left: str
    right: str


@dataclasses.dataclass(frozen=True)
class Word:
    text: str


@dataclasses.dataclass(frozen=True)
class Empty:
    pass


def test_sequence():
    assert runtime.parse(seq("a", "b"), "ab") == "ab"

    with pytest.raises(runtime.ParseFailure):
        runtime.parse(seq("a", "b"), "a")


def test_choice_is_ordered():
    """The first alternative that matches wins, even when a later one would
    have matched more of the input.
    """
    with pytest.raises(runtime.ParseFailure):
        runtime.parse(alt("a", "ab"), "ab")

    assert runtime.parse(alt("ab", "a"), "ab") == "ab"


def test_choice_backtracks():
    r = alt(seq("a", "b", "c"), seq("a", "b", "d"))
    assert runtime.parse(r, "abd") == "abd"


def test_repeat_bounds():
    r = repeat("a", min=2, max=3)
    for text in ["aa", "aaa"]:
        assert runtime.parse(r, text) == text

    for text in ["", "a", "aaaa"]:
        with pytest.raises(runtime.ParseFailure):
            runtime.parse(r, text)


def test_repeat_bad_bounds():
    with pytest.raises(GrammarError):
        repeat("a", min=3, max=2)


def test_repeat_is_greedy():
    """Repetition never gives back anything it matched, so a repetition of
    something can never be followed by that same thing.
    """
    with pytest.raises(runtime.ParseFailure):
        runtime.parse(seq(zero_or_more("a"), "a"), "aaa")


def test_repeat_of_nothing_stops():
    r = zero_or_more(opt("a"))
    assert runtime.parse(r, "") == ""
    assert runtime.parse(r, "aa") == "aa"

    assert runtime.parse(repeat(opt("a"), min=2), "") == ""


def test_lookahead():
    assert runtime.parse(seq(present("a"), "a"), "a") == "a"
    assert runtime.parse(seq(absent("b"), ANY), "a") == "a"

    with pytest.raises(runtime.ParseFailure):
        runtime.parse(seq(absent("b"), ANY), "b")


def test_lookahead_consumes_nothing():
    with pytest.raises(runtime.ParseFailure):
        runtime.parse(present("a"), "a")


def test_line_start():
    assert runtime.parse(seq("a", "\n", LINE_START, "b"), "a\nb") == "a\nb"
    assert runtime.parse(seq(LINE_START, "b"), "b") == "b"

    with pytest.raises(runtime.ParseFailure):
        runtime.parse(seq("a", LINE_START, "b"), "ab")


def test_capture_text():
    r = capture("number", one_or_more(charset(("0", "9"))))
    assert runtime.parse(r, "123") == {"number": "123"}


def test_optional_capture():
    r = seq(opt(capture("sign", "-")), capture("digits", one_or_more(charset(("0", "9")))))
    assert runtime.parse(r, "12") == {"digits": "12"}
    assert runtime.parse(r, "-12") == {"sign": "-", "digits": "12"}


def test_repeated_captures_are_lists():
    r = zero_or_more(capture("x", charset("ab")))
    assert runtime.parse(r, "") == []
    assert runtime.parse(r, "ab") == [{"x": "a"}, {"x": "b"}]


def test_build():
    r = build(Pair, capture("left", ANY), ",", capture("right", ANY))
    assert runtime.parse(r, "a,b") == Pair("a", "b")

    assert runtime.parse(build(Empty, "nothing"), "nothing") == Empty()


def test_build_lists():
    item = build(Pair, capture("left", ANY), "=", capture("right", ANY))
    r = seq(item, zero_or_more(",", item))

    assert runtime.parse(r, "a=b") == [Pair("a", "b")]
    assert runtime.parse(r, "a=b,c=d,e=f") == [Pair("a", "b"), Pair("c", "d"), Pair("e", "f")]


def test_fields_and_values_do_not_mix():
    r = seq(capture("name", "a"), build(Empty, "b"))
    with pytest.raises(GrammarError):
        runtime.parse(r, "ab")


def test_backref():
    r = seq(
        bind("quote", charset("'\"")),
        capture("text", zero_or_more(absent(backref("quote")), ANY)),
        backref("quote"),
    )
    assert runtime.parse(r, "'say \"hi\"'") == {"text": 'say "hi"'}
    assert runtime.parse(r, "\"it's\"") == {"text": "it's"}

    with pytest.raises(runtime.ParseFailure):
        runtime.parse(r, "'oops\"")


def test_unbound_backref():
    with pytest.raises(GrammarError):
        runtime.parse(backref("nothing"), "x")


def test_bindings_do_not_leak_into_rules():
    @rule
    def closer():
        return backref("quote")

    with pytest.raises(GrammarError):
        runtime.parse(seq(bind("quote", "'"), closer), "''")


def test_recursive_rules():
    @rule
    def parens():
        return seq("(", opt(parens), ")")

    assert parens.parse("((()))") == "((()))"

    with pytest.raises(runtime.ParseFailure):
        parens.parse("(()")


def test_failure_position():
    r = alt(seq("a", "b", "c"), seq("a", "x"))
    with pytest.raises(runtime.ParseFailure) as e:
        runtime.parse(r, "abd")

    assert e.value.position == 2
    assert e.value.expected == ("'c'",)
    assert str(e.value) == "1:2: Syntax Error: Unexpected 'd'. Expected one of: 'c'"


def test_failure_line_and_column():
    r = seq("one\n", "two\n", "three")
    with pytest.raises(runtime.ParseFailure) as e:
        runtime.parse(r, "one\ntwo\nthree!")

    assert (e.value.position, e.value.line, e.value.column) == (13, 3, 5)
    assert e.value.expected == ("end of input",)


def test_failure_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="rip.parse")
    with pytest.raises(runtime.ParseFailure):
        runtime.parse(seq("a", "b"), "ax")

    assert "Parse failed" in caplog.text
    assert "1:1: Syntax Error: Unexpected 'x'" in caplog.text


def test_failure_at_end_of_file():
    with pytest.raises(runtime.ParseFailure) as e:
        runtime.parse(seq("a", "b"), "a")

    assert "Unexpected end of file" in str(e.value)
    assert e.value.expected == ("'b'",)


def test_error_name():
    @rule(error_name="number")
    def number():
        return one_or_more(charset(("0", "9")))

    with pytest.raises(runtime.ParseFailure) as e:
        runtime.parse(seq("=", number), "=x")

    assert e.value.position == 1
    assert e.value.expected == ("number",)


def test_memoize_agrees():
    @rule
    def item():
        return pair | word

    @rule
    def pair():
        return build(Pair, capture("left", word), ":", capture("right", word))

    @rule
    def word():
        return build(Word, capture("text", one_or_more(charset(("a", "z")))))

    items = seq(item, zero_or_more(",", item))
    for memoize in [True, False]:
        result = runtime.parse(items, "ab:cd,ef,gh:ij", memoize=memoize)
        assert result == [
            Pair(Word("ab"), Word("cd")),
            Word("ef"),
            Pair(Word("gh"), Word("ij")),
        ]


def test_rule_notation():
    assert str(charset(("0", "9"), "_")) == "[0-9_]"
    assert str(repeat("a", min=2, max=3)) == "'a'{2,3}"
    assert str(zero_or_more("a", "b")) == "('a' 'b')*"
    assert str(one_or_more("a")) == "'a'+"
    assert str(opt("a") | "b") == "'a'? / 'b'"
    assert str(absent("x")) == "!'x'"
    assert str(present("x")) == "&'x'"
    assert str(capture("n", "x")) == "n:'x'"
    assert str(bind("label", "x") + backref("label")) == "label='x' $label"


def test_rules_from_strings_only():
    with pytest.raises(TypeError):
        seq("a", 3)


def test_grammar_collects_rules():
    @rule
    def a():
        return seq("x", b)

    @rule
    def b():
        return opt(a)

    g = Grammar(start=a)
    assert set(g.rules) == {"a", "b"}
    assert g.format().splitlines() == ["a <- 'x' b", "b <- a?"]
    assert g.parse("xxx") == "xxx"


def test_conflicting_names():
    """Two different rules in one grammar cannot have the same name.

    Error messages and the formatted grammar refer to rules by name, and a
    name that means two things makes both useless.
    """

    @rule("value")
    def number():
        return one_or_more(charset(("0", "9")))

    @rule("value")
    def word():
        return one_or_more(charset(("a", "z")))

    @rule
    def start():
        return number | word

    with pytest.raises(ValueError):
        Grammar(start=start)
