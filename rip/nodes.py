"""The tree produced by parsing rip source.

Every kind of node is its own frozen dataclass, and `Node` is the union of all
of them. Code that walks the tree should `match` on the node and finish with
`typing.assert_never`, so that adding a kind of node points at every place
that needs to learn about it.

Nothing here is evaluated: numbers keep the digits exactly as they were
written, separators and all.
"""

import dataclasses
import typing


@dataclasses.dataclass(frozen=True)
class Comment:
    text: str


@dataclasses.dataclass(frozen=True)
class Nil:
    pass


@dataclasses.dataclass(frozen=True)
class Bool:
    value: bool


@dataclasses.dataclass(frozen=True)
class Integer:
    digits: str
    sign: str | None = None

    @property
    def text(self) -> str:
        """The literal as written."""
        return (self.sign or "") + self.digits


@dataclasses.dataclass(frozen=True)
class Decimal:
    digits: str  # Including the '.'
    sign: str | None = None

    @property
    def text(self) -> str:
        """The literal as written."""
        return (self.sign or "") + self.digits


@dataclasses.dataclass(frozen=True)
class Character:
    char: str


@dataclasses.dataclass(frozen=True)
class StringLit:
    text: str


@dataclasses.dataclass(frozen=True)
class Regex:
    pattern: str


@dataclasses.dataclass(frozen=True)
class KeyValue:
    key: "Node"
    value: "Node"


@dataclasses.dataclass(frozen=True)
class Range:
    start: "Integer | Character"
    end: "Integer | Character"
    exclusivity: str | None = None  # The third '.', if there was one.

    @property
    def exclusive(self) -> bool:
        return self.exclusivity is not None


@dataclasses.dataclass(frozen=True)
class Hash:
    pairs: tuple[KeyValue, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "pairs", tuple(self.pairs))


@dataclasses.dataclass(frozen=True)
class List:
    items: tuple["Node", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclasses.dataclass(frozen=True)
class Program:
    statements: tuple["Node", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "statements", tuple(self.statements))


Node = (
    Comment
    | Nil
    | Bool
    | Integer
    | Decimal
    | Character
    | StringLit
    | Regex
    | KeyValue
    | Range
    | Hash
    | List
    | Program
)


def format_lines(node: Node) -> list[str]:
    lines = []

    def format_node(node: Node, indent: int, label: str | None = None):
        prefix = (" " * indent) + (f"{label}: " if label is not None else "")
        match node:
            case Comment(text=text):
                lines.append(f"{prefix}Comment {text!r}")

            case Nil():
                lines.append(f"{prefix}Nil")

            case Bool(value=value):
                lines.append(f"{prefix}Bool {'true' if value else 'false'}")

            case Integer() | Decimal():
                lines.append(f"{prefix}{type(node).__name__} {node.text}")

            case Character(char=char):
                lines.append(f"{prefix}Character {char!r}")

            case StringLit(text=text):
                lines.append(f"{prefix}String {text!r}")

            case Regex(pattern=pattern):
                lines.append(f"{prefix}Regex /{pattern}/")

            case KeyValue(key=key, value=value):
                lines.append(f"{prefix}KeyValue")
                format_node(key, indent + 2, "key")
                format_node(value, indent + 2, "value")

            case Range(start=start, end=end, exclusivity=exclusivity):
                dots = ".." if exclusivity is None else "..."
                lines.append(f"{prefix}Range {dots}")
                format_node(start, indent + 2, "start")
                format_node(end, indent + 2, "end")

            case Hash(pairs=pairs):
                lines.append(f"{prefix}Hash")
                for pair in pairs:
                    format_node(pair, indent + 2)

            case List(items=items):
                lines.append(f"{prefix}List")
                for item in items:
                    format_node(item, indent + 2)

            case Program(statements=statements):
                lines.append(f"{prefix}Program")
                for statement in statements:
                    format_node(statement, indent + 2)

            case _:
                typing.assert_never(node)

    format_node(node, 0)
    return lines


def format_tree(node: Node) -> str:
    return "\n".join(format_lines(node))


def to_tagged(node: Node) -> typing.Any:
    """Convert a node into plain dictionaries, lists and strings, keyed by
    the kind of each value: `Integer("42")` becomes `{"integer": "42"}`.

    Suitable for `json.dumps`.
    """
    match node:
        case Comment(text=text):
            return {"comment": text}
        case Nil():
            return {"nil": "nil"}
        case Bool(value=True):
            return {"true": "true"}
        case Bool(value=False):
            return {"false": "false"}
        case Integer(digits=digits, sign=sign):
            return _signed(sign, {"integer": digits})
        case Decimal(digits=digits, sign=sign):
            return _signed(sign, {"decimal": digits})
        case Character(char=char):
            return {"character": char}
        case StringLit(text=text):
            return {"string": text}
        case Regex(pattern=pattern):
            return {"regex": pattern}
        case KeyValue(key=key, value=value):
            return {"key": to_tagged(key), "value": to_tagged(value)}
        case Range(start=start, end=end, exclusivity=exclusivity):
            return {"start": to_tagged(start), "end": to_tagged(end), "exclusivity": exclusivity}
        case Hash(pairs=pairs):
            return {"hash": [to_tagged(pair) for pair in pairs]}
        case List(items=items):
            return {"list": [to_tagged(item) for item in items]}
        case Program(statements=statements):
            return [to_tagged(statement) for statement in statements]
        case _:
            typing.assert_never(node)


def _signed(sign: str | None, tagged: dict[str, str]) -> dict[str, str]:
    if sign is None:
        return tagged
    return {"sign": sign, **tagged}
