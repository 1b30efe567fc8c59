"""A small library for writing backtracking (PEG) grammars in Python.

A grammar here is just a graph of `Rule` values. There is no table generation
step and no separate lexer: the rules run directly against the text, trying
alternatives in the order they are written and backing up whenever one of them
does not work out. (See the `runtime` module for the part that actually does
the matching.)

## Making Grammars

Write each named rule as a function decorated with `@rule`. The function returns
the body of the rule, built out of the helpers in this module, plain strings
(which match themselves) and other rules:

    @rule
    def digits():
        return one_or_more(charset(("0", "9")))

    @rule
    def number():
        return build(Number, opt(capture("sign", "-")), capture("digits", digits))

    @rule
    def numbers():
        return build(Numbers, "[", capture("items", zero_or_more(number)), "]")

The body of a rule is only produced the first time somebody asks for it, which
is what lets rules refer to each other (and to themselves) in any order, even
though they are plain module-level functions.

## Values

Matching produces values as well as positions. Most rules produce no value at
all; the text they consumed just goes by. `capture` gives the value (or, if
there isn't one, the consumed text) a name, `build` hands the named fields to a
constructor of your choice, and repetitions of rules that produce values turn
into lists. This is how a grammar produces a tree.

## Ordering

PEG choice is ordered: the first alternative that matches wins, and nothing
after it is ever tried at that position. Repetition is greedy and never gives
anything back. Both of these are features (the grammar is never ambiguous) and
hazards (a grammar can quietly fail to accept something because an earlier
alternative matched a prefix of it). Put the longer alternatives first.

Left recursion is not supported; a rule that calls itself without consuming
anything will recurse until Python gives up.
"""

import abc
import dataclasses
import functools
import inspect
import typing


class GrammarError(Exception):
    """A mistake in the way a grammar was put together, as opposed to a
    mistake in the text being parsed.
    """


###############################################################################
# Rules
###############################################################################
class Rule:
    """Something that can be matched against text: a primitive, a combination
    of other rules, or a named rule.
    """

    def __or__(self, other: "Rule | str") -> "Rule":
        return alt(self, other)

    def __ror__(self, other: "Rule | str") -> "Rule":
        return alt(other, self)

    def __add__(self, other: "Rule | str") -> "Rule":
        return seq(self, other)

    def __radd__(self, other: "Rule | str") -> "Rule":
        return seq(other, self)

    @abc.abstractmethod
    def __str__(self) -> str:
        """Render this rule in something like standard PEG notation."""
        raise NotImplementedError()


@dataclasses.dataclass(frozen=True, slots=True)
class Span:
    lower: int  # inclusive
    upper: int  # exclusive

    @classmethod
    def from_str(cls, lower: str, upper: str | None = None) -> "Span":
        lo = ord(lower)
        if upper is None:
            hi = lo + 1
        else:
            hi = ord(upper) + 1

        return Span(lower=lo, upper=hi)

    def __contains__(self, char: str) -> bool:
        return self.lower <= ord(char) < self.upper


def _str_repr(x: int) -> str:
    return repr(chr(x))[1:-1]


@dataclasses.dataclass(frozen=True, eq=False)
class LiteralRule(Rule):
    """Matches exactly the given text."""

    text: str

    def __str__(self) -> str:
        return repr(self.text)


@dataclasses.dataclass(frozen=True, eq=False)
class CharSetRule(Rule):
    """Matches a single character inside any one of the spans."""

    spans: tuple[Span, ...]

    def contains(self, char: str) -> bool:
        return any(char in span for span in self.spans)

    def __str__(self) -> str:
        ranges = []
        for span in self.spans:
            start = _str_repr(span.lower)
            end = _str_repr(span.upper - 1)
            if start == end:
                ranges.append(start)
            else:
                ranges.append(f"{start}-{end}")
        return "[{}]".format("".join(ranges))


@dataclasses.dataclass(frozen=True, eq=False)
class AnyRule(Rule):
    """Matches any single character. Fails only at the end of the input."""

    def __str__(self) -> str:
        return "."


@dataclasses.dataclass(frozen=True, eq=False)
class LineStartRule(Rule):
    """Matches nothing, but only at the very start of the text or right after
    a line break.
    """

    def __str__(self) -> str:
        return "^"


@dataclasses.dataclass(frozen=True, eq=False)
class SequenceRule(Rule):
    rules: tuple[Rule, ...]

    def __str__(self) -> str:
        return " ".join(_group(rule) for rule in self.rules)


@dataclasses.dataclass(frozen=True, eq=False)
class ChoiceRule(Rule):
    rules: tuple[Rule, ...]

    def __str__(self) -> str:
        return " / ".join(_group(rule) for rule in self.rules)


@dataclasses.dataclass(frozen=True, eq=False)
class RepeatRule(Rule):
    rule: Rule
    min: int = 0
    max: int | None = None

    @functools.cached_property
    def captures(self) -> bool:
        """Whether each repetition might produce a value, in which case the
        repetition produces a list (possibly an empty one).
        """
        return produces_values(self.rule)

    def __str__(self) -> str:
        match (self.min, self.max):
            case (0, None):
                suffix = "*"
            case (1, None):
                suffix = "+"
            case (lo, None):
                suffix = f"{{{lo},}}"
            case (lo, hi):
                suffix = f"{{{lo},{hi}}}"
        return _group(self.rule) + suffix


@dataclasses.dataclass(frozen=True, eq=False)
class OptionalRule(Rule):
    """Matches the rule if it can, and nothing if it can't. Never fails.

    Unlike `repeat(rule, max=1)`, this produces the value of the rule itself
    (or nothing), not a list.
    """

    rule: Rule

    def __str__(self) -> str:
        return _group(self.rule) + "?"


@dataclasses.dataclass(frozen=True, eq=False)
class LookaheadRule(Rule):
    rule: Rule
    negative: bool

    def __str__(self) -> str:
        return ("!" if self.negative else "&") + _group(self.rule)


@dataclasses.dataclass(frozen=True, eq=False)
class CaptureRule(Rule):
    rule: Rule
    name: str

    def __str__(self) -> str:
        return f"{self.name}:{_group(self.rule)}"


@dataclasses.dataclass(frozen=True, eq=False)
class BuildRule(Rule):
    rule: Rule
    factory: typing.Callable[..., typing.Any]

    def __str__(self) -> str:
        name = getattr(self.factory, "__name__", type(self.factory).__name__)
        return f"{_group(self.rule)} -> {name}"


@dataclasses.dataclass(frozen=True, eq=False)
class BindRule(Rule):
    """Remember the text matched by the rule under the given name, so that a
    later `BackrefRule` in the same named rule can insist on seeing it again.
    """

    rule: Rule
    name: str

    def __str__(self) -> str:
        return f"{self.name}={_group(self.rule)}"


@dataclasses.dataclass(frozen=True, eq=False)
class BackrefRule(Rule):
    name: str

    def __str__(self) -> str:
        return f"${self.name}"


class NonTerminal(Rule):
    """A named rule in the grammar.

    You probably don't want to create this directly; instead you probably want
    to use the `@rule` decorator to associate this with a function in your
    grammar module.
    """

    fn: typing.Callable[[], Rule]
    name: str
    error_name: str | None
    definition_location: str
    _definition: Rule | None

    def __init__(
        self,
        fn: typing.Callable[[], Rule],
        name: str | None = None,
        error_name: str | None = None,
    ):
        """Create a new NonTerminal.

        `fn` is the function that will yield the `Rule` which is the body of
        this rule. `name` is the name of the rule- if unspecified (or `None`)
        it will be replaced with the `__name__` of the provided fn.

        error_name is a human-readable name, to be shown in error messages. A
        rule with an error_name is reported as a single thing that was
        expected, rather than as whatever piece of it failed to match. Use it
        for small lexical rules, where "expected digit" reads better than
        "expected [0-9]".
        """
        self.fn = fn
        self.name = name or fn.__name__
        self.error_name = error_name
        self._definition = None

        caller = inspect.stack()[2]
        self.definition_location = f"{caller.filename}:{caller.lineno}"

    @property
    def definition(self) -> Rule:
        """The rule that is the definition of this nonterminal.

        (As opposed this rule itself, which is... itself.)
        """
        if self._definition is None:
            self._definition = _coerce(self.fn())
        return self._definition

    def parse(self, text: str) -> typing.Any:
        """Apply just this rule to the whole of `text`, and return whatever it
        produces (or the text itself, if it produces nothing).

        Raises `runtime.ParseFailure` if the rule does not match all of it.
        """
        from . import runtime

        return runtime.Parser(self).parse(text)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<rule {self.name}>"


def _group(rule: Rule) -> str:
    if isinstance(rule, (SequenceRule, ChoiceRule, BuildRule)):
        return f"({rule})"
    return str(rule)


def children(rule: Rule) -> tuple[Rule, ...]:
    """The rules directly inside this one. NonTerminals are opaque: their
    definition is not a child.
    """
    match rule:
        case SequenceRule(rules=rules) | ChoiceRule(rules=rules):
            return rules
        case (
            RepeatRule(rule=inner)
            | OptionalRule(rule=inner)
            | LookaheadRule(rule=inner)
            | CaptureRule(rule=inner)
            | BuildRule(rule=inner)
            | BindRule(rule=inner)
        ):
            return (inner,)
        case _:
            return ()


def produces_values(rule: Rule, seen: set[NonTerminal] | None = None) -> bool:
    """Determine if matching this rule can ever produce a value (as opposed to
    just consuming text).
    """
    if seen is None:
        seen = set()

    match rule:
        case CaptureRule() | BuildRule():
            return True
        case LookaheadRule():
            return False
        case NonTerminal():
            # Already looking at this one further up; if it produces anything
            # we'll find out there.
            if rule in seen:
                return False
            seen.add(rule)
            return produces_values(rule.definition, seen)
        case _:
            return any(produces_values(child, seen) for child in children(rule))


###############################################################################
# Sugar for constructing grammars
###############################################################################
def _coerce(value: "Rule | str") -> Rule:
    if isinstance(value, Rule):
        return value
    if isinstance(value, str):
        return LiteralRule(value)
    raise TypeError(f"Cannot make a rule out of {value!r}")


ANY = AnyRule()
LINE_START = LineStartRule()


def charset(*args: str | tuple[str, str]) -> CharSetRule:
    """A rule that matches one character from a set.

    Each argument is either a string, every character of which is in the set,
    or a tuple (lower, upper) of an inclusive range of characters.
    """
    spans = []
    for a in args:
        if isinstance(a, str):
            spans.extend(Span.from_str(c) for c in a)
        else:
            spans.append(Span.from_str(a[0], a[1]))
    return CharSetRule(tuple(spans))


def seq(*args: Rule | str) -> Rule:
    """A rule that matches a sequence of rules."""
    rules: list[Rule] = []
    for arg in args:
        rule = _coerce(arg)
        if isinstance(rule, SequenceRule):
            rules.extend(rule.rules)
        else:
            rules.append(rule)

    if len(rules) == 1:
        return rules[0]
    return SequenceRule(tuple(rules))


def alt(*args: Rule | str) -> Rule:
    """A rule that matches the first of a series of alternatives that
    matches.
    """
    rules: list[Rule] = []
    for arg in args:
        rule = _coerce(arg)
        if isinstance(rule, ChoiceRule):
            rules.extend(rule.rules)
        else:
            rules.append(rule)

    if len(rules) == 1:
        return rules[0]
    return ChoiceRule(tuple(rules))


def opt(*args: Rule | str) -> Rule:
    """Mark a sequence as optional."""
    return OptionalRule(seq(*args))


def repeat(rule: Rule | str, min: int = 0, max: int | None = None) -> Rule:
    if max is not None and max < min:
        raise GrammarError(f"Repetition of {rule} has max {max} below min {min}")
    return RepeatRule(_coerce(rule), min, max)


def one_or_more(*args: Rule | str) -> Rule:
    return RepeatRule(seq(*args), 1, None)


def zero_or_more(*args: Rule | str) -> Rule:
    return RepeatRule(seq(*args), 0, None)


def present(*args: Rule | str) -> Rule:
    """Succeed, without consuming anything, if the sequence would match."""
    return LookaheadRule(seq(*args), negative=False)


def absent(*args: Rule | str) -> Rule:
    """Succeed, without consuming anything, if the sequence would not match."""
    return LookaheadRule(seq(*args), negative=True)


def capture(name: str, *args: Rule | str) -> Rule:
    """Give the value of the sequence (or the text it matched) a name."""
    return CaptureRule(seq(*args), name)


def build(factory: typing.Callable[..., typing.Any], *args: Rule | str) -> Rule:
    """Construct a value out of the fields captured by the sequence.

    The factory is called with the captured fields as keyword arguments, or
    with no arguments if nothing was captured.
    """
    return BuildRule(seq(*args), factory)


def bind(name: str, *args: Rule | str) -> Rule:
    return BindRule(seq(*args), name)


def backref(name: str) -> Rule:
    return BackrefRule(name)


@typing.overload
def rule(f: typing.Callable, /) -> NonTerminal: ...


@typing.overload
def rule(
    name: str | None = None,
    error_name: str | None = None,
) -> typing.Callable[[typing.Callable[[], Rule]], NonTerminal]: ...


def rule(
    name: str | None | typing.Callable = None,
    error_name: str | None = None,
) -> NonTerminal | typing.Callable[[typing.Callable[[], Rule]], NonTerminal]:
    """The decorator that marks a function as a named rule.

    As with all the best decorators, it can be called with or without arguments.
    If called with one argument, that argument is a name that overrides the name
    of the rule, which defaults to the name of the function.
    """
    if callable(name):
        return NonTerminal(name, None, None)

    def wrapper(f: typing.Callable[[], Rule]):
        return NonTerminal(f, name, error_name)

    return wrapper


###############################################################################
# Grammars
###############################################################################
class Grammar:
    """All of the named rules reachable from a start rule."""

    start: NonTerminal
    rules: dict[str, NonTerminal]

    def __init__(self, start: NonTerminal):
        self.start = start
        self.rules = {}

        todo: list[Rule] = [start]
        seen: set[Rule] = set()
        while todo:
            current = todo.pop()
            if current in seen:
                continue
            seen.add(current)

            if isinstance(current, NonTerminal):
                existing = self.rules.get(current.name)
                if existing is not None and existing is not current:
                    raise ValueError(
                        f"More than one rule is named '{current.name}': "
                        f"{existing.definition_location} and {current.definition_location}"
                    )
                self.rules[current.name] = current
                todo.append(current.definition)
            else:
                todo.extend(children(current))

    def format(self) -> str:
        """Render every rule in the grammar, start rule first."""
        lines = [f"{self.start.name} <- {self.start.definition}"]
        for name, rule in sorted(self.rules.items()):
            if rule is not self.start:
                lines.append(f"{name} <- {rule.definition}")
        return "\n".join(lines)

    def parser(self, *, memoize: bool = True):
        from . import runtime

        return runtime.Parser(self.start, memoize=memoize)

    def parse(self, text: str, *, memoize: bool = True) -> typing.Any:
        return self.parser(memoize=memoize).parse(text)
