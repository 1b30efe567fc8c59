import bisect
import logging
import re
import typing

from . import peg


class Scope(typing.NamedTuple):
    """Text remembered by `bind`, visible to later `backref`s in the same
    named rule. Immutable: binding something makes a new scope.
    """

    name: str
    value: str
    parent: "Scope | None"

    def lookup(self, name: str) -> str | None:
        scope: Scope | None = self
        while scope is not None:
            if scope.name == name:
                return scope.value
            scope = scope.parent
        return None


class Match(typing.NamedTuple):
    """A successful application of a rule: where it ended, what it produced,
    and the scope to carry on with.
    """

    end: int
    value: typing.Any
    scope: Scope | None


class ParseFailure(Exception):
    """The text could not be parsed.

    `position` is the furthest offset the parser managed to reach before
    everything it tried failed, and `expected` is what it would have accepted
    there. `line` is 1-based and `column` is 0-based.
    """

    message: str
    position: int
    line: int
    column: int
    expected: tuple[str, ...]

    def __init__(
        self,
        message: str,
        position: int,
        line: int,
        column: int,
        expected: tuple[str, ...],
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.line = line
        self.column = column
        self.expected = expected

    def __str__(self) -> str:
        return f"{self.line}:{self.column}: {self.message}"


trace_log = logging.getLogger("rip.trace")
parse_log = logging.getLogger("rip.parse")


class _Run:
    """The state of one parse of one piece of text.

    Rules never change; everything that does change while parsing lives here,
    so that every call to `Parser.parse` gets its own.
    """

    text: str
    furthest: int
    expected: set[str]
    quiet: int
    depth: int
    memo: dict[tuple[peg.NonTerminal, int, bool], Match | None] | None

    def __init__(self, text: str, memoize: bool):
        self.text = text
        self.furthest = 0
        self.expected = set()
        self.quiet = 0
        self.depth = 0
        self.memo = {} if memoize else None

    def fail(self, position: int, description: str):
        """Note that something was expected at this position and wasn't
        there. Only the furthest position is interesting.
        """
        if self.quiet:
            return

        if position > self.furthest:
            self.furthest = position
            self.expected = {description}
        elif position == self.furthest:
            self.expected.add(description)

    def apply(self, rule: peg.Rule, position: int, scope: Scope | None) -> Match | None:
        """Match the rule at the position. Returns None, and leaves everything
        as it was, if the rule does not match.
        """
        text = self.text

        match rule:
            case peg.LiteralRule(text=literal):
                if text.startswith(literal, position):
                    return Match(position + len(literal), None, scope)
                self.fail(position, str(rule))
                return None

            case peg.CharSetRule():
                if position < len(text) and rule.contains(text[position]):
                    return Match(position + 1, None, scope)
                self.fail(position, str(rule))
                return None

            case peg.AnyRule():
                if position < len(text):
                    return Match(position + 1, None, scope)
                self.fail(position, "any character")
                return None

            case peg.LineStartRule():
                # Zero width, and reported like a lookahead: never expected.
                if position == 0 or text[position - 1] in "\r\n":
                    return Match(position, None, scope)
                return None

            case peg.SequenceRule(rules=rules):
                values = []
                current = position
                for child in rules:
                    m = self.apply(child, current, scope)
                    if m is None:
                        return None
                    values.append(m.value)
                    current = m.end
                    scope = m.scope
                return Match(current, merge_values(values), scope)

            case peg.ChoiceRule(rules=rules):
                for child in rules:
                    m = self.apply(child, position, scope)
                    if m is not None:
                        return m
                return None

            case peg.RepeatRule(rule=inner, min=minimum, max=maximum):
                values = []
                count = 0
                current = position
                while maximum is None or count < maximum:
                    m = self.apply(inner, current, scope)
                    if m is None:
                        break

                    count += 1
                    values.append(m.value)
                    scope = m.scope
                    if m.end == current:
                        # Matched nothing; it would match nothing forever.
                        count = max(count, minimum)
                        break
                    current = m.end

                if count < minimum:
                    return None
                value = splice_values(values) if rule.captures else None
                return Match(current, value, scope)

            case peg.OptionalRule(rule=inner):
                m = self.apply(inner, position, scope)
                if m is None:
                    return Match(position, None, scope)
                return m

            case peg.LookaheadRule(rule=inner, negative=negative):
                self.quiet += 1
                try:
                    m = self.apply(inner, position, scope)
                finally:
                    self.quiet -= 1

                if (m is None) == negative:
                    return Match(position, None, scope)
                return None

            case peg.CaptureRule(rule=inner, name=name):
                m = self.apply(inner, position, scope)
                if m is None:
                    return None
                value = m.value if m.value is not None else text[position : m.end]
                return Match(m.end, {name: value}, m.scope)

            case peg.BuildRule(rule=inner, factory=factory):
                m = self.apply(inner, position, scope)
                if m is None:
                    return None
                match m.value:
                    case None:
                        node = factory()
                    case dict(fields):
                        node = factory(**fields)
                    case value:
                        node = factory(value)
                return Match(m.end, node, m.scope)

            case peg.BindRule(rule=inner, name=name):
                m = self.apply(inner, position, scope)
                if m is None:
                    return None
                return Match(m.end, m.value, Scope(name, text[position : m.end], m.scope))

            case peg.BackrefRule(name=name):
                bound = scope.lookup(name) if scope is not None else None
                if bound is None:
                    raise peg.GrammarError(f"Nothing is bound to '{name}' here")
                if text.startswith(bound, position):
                    return Match(position + len(bound), None, scope)
                self.fail(position, repr(bound))
                return None

            case peg.NonTerminal():
                return self.apply_nonterminal(rule, position, scope)

            case _:
                typing.assert_never(rule)

    def apply_nonterminal(
        self, rule: peg.NonTerminal, position: int, scope: Scope | None
    ) -> Match | None:
        # Named rules always start with nothing bound, which is also what
        # makes it safe to remember their results by position alone.
        key = (rule, position, self.quiet > 0)
        if self.memo is not None and key in self.memo:
            m = self.memo[key]
        else:
            tl = trace_log
            if tl.isEnabledFor(logging.DEBUG):
                tl.debug(f"{'  ' * self.depth}{rule.name} @ {position}")

            if rule.error_name is not None:
                self.quiet += 1
            self.depth += 1
            try:
                m = self.apply(rule.definition, position, None)
            finally:
                self.depth -= 1
                if rule.error_name is not None:
                    self.quiet -= 1

            if m is None and rule.error_name is not None:
                self.fail(position, rule.error_name)

            if tl.isEnabledFor(logging.DEBUG):
                outcome = "fail" if m is None else f"-> {m.end}"
                tl.debug(f"{'  ' * self.depth}{rule.name} @ {position} {outcome}")

            if self.memo is not None:
                self.memo[key] = m

        if m is None:
            return None
        return Match(m.end, m.value, scope)

    def failure(self, m: Match | None) -> ParseFailure:
        """Describe why the parse stopped, given however far the start rule
        got (if it matched at all).
        """
        position = self.furthest
        expected = set(self.expected)
        if m is not None:
            if m.end > position:
                position = m.end
                expected = set()
            if m.end == position:
                expected.add("end of input")

        if position >= len(self.text):
            found = "end of file"
        else:
            found = repr(self.text[position])
        message = f"Syntax Error: Unexpected {found}"
        if expected:
            message = f"{message}. Expected one of: {', '.join(sorted(expected))}"

        line, column = self.locate(position)
        return ParseFailure(
            message=message,
            position=position,
            line=line,
            column=column,
            expected=tuple(sorted(expected)),
        )

    def too_deep(self) -> ParseFailure:
        """Describe a parse that ran out of stack: nesting deeper than the
        interpreter's recursion limit allows. Reported at the furthest
        position reached.
        """
        line, column = self.locate(self.furthest)
        return ParseFailure(
            message="Syntax Error: Nesting too deep",
            position=self.furthest,
            line=line,
            column=column,
            expected=(),
        )

    def locate(self, position: int) -> tuple[int, int]:
        lines = [line_break.start() for line_break in re.finditer("\n", self.text)]
        line_index = bisect.bisect_left(lines, position)
        if line_index == 0:
            col_start = 0
        else:
            col_start = lines[line_index - 1] + 1
        return line_index + 1, position - col_start


def merge_values(values: list[typing.Any]) -> typing.Any:
    """Combine the values produced by the parts of a sequence.

    Named fields are merged into one dictionary. Anything else is collected
    in order, with lists spliced in; a single such value is passed through as
    it is. A sequence can produce fields or other values, but not both.
    """
    fields: dict[str, typing.Any] = {}
    items: list[typing.Any] = []
    spliced = False
    for value in values:
        match value:
            case None:
                continue
            case dict():
                fields.update(value)
            case list():
                items.extend(value)
                spliced = True
            case _:
                items.append(value)

    if fields:
        if items:
            raise peg.GrammarError(
                f"Cannot combine captured fields {sorted(fields)} with uncaptured values {items!r}"
            )
        return fields
    if spliced or len(items) > 1:
        return items
    if items:
        return items[0]
    return None


def splice_values(values: list[typing.Any]) -> list[typing.Any]:
    """Combine the values produced by each trip through a repetition."""
    items: list[typing.Any] = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, list):
            items.extend(value)
        else:
            items.append(value)
    return items


class Parser:
    """Applies a start rule to complete pieces of text."""

    start: peg.Rule
    memoize: bool

    def __init__(self, start: peg.Rule, *, memoize: bool = True):
        """Create a parser for the given rule.

        If `memoize` is true (the default) the result of every named rule at
        every position is remembered for the length of a parse, so that no
        amount of backtracking matches the same rule at the same place twice.
        """
        self.start = start
        self.memoize = memoize

    def parse(self, text: str) -> typing.Any:
        """Parse all of `text`, returning whatever the start rule produces (or
        the text itself, if the rule produces nothing).

        Raises ParseFailure if the rule doesn't match, or doesn't match all of
        the text: there is no such thing as a partial parse. Text nested too
        deeply for the interpreter's recursion limit is a ParseFailure too.
        """
        pl = parse_log
        run = _Run(text, self.memoize)
        try:
            m = run.apply(self.start, 0, None)
        except RecursionError:
            failure = run.too_deep()
            if pl.isEnabledFor(logging.INFO):
                pl.info(f"Parse failed with {self.start}: {failure}")
            raise failure from None

        if m is not None and m.end == len(text):
            if pl.isEnabledFor(logging.DEBUG):
                pl.debug(f"Parsed {len(text)} characters with {self.start}")
            return m.value if m.value is not None else text

        failure = run.failure(m)
        if pl.isEnabledFor(logging.INFO):
            pl.info(f"Parse failed with {self.start}: {failure}")
        raise failure


def parse(start: peg.Rule, text: str, *, memoize: bool = True) -> typing.Any:
    """Parse the provided text with the provided rule."""
    return Parser(start, memoize=memoize).parse(text)
