import dataclasses
import json

import pytest

from rip import grammar, nodes


def test_format_tree():
    program = grammar.parse("[1, -2.5]\n{:a: `b}\n1...3 # c")
    assert nodes.format_tree(program) == "\n".join(
        [
            "Program",
            "  List",
            "    Integer 1",
            "    Decimal -2.5",
            "  Hash",
            "    KeyValue",
            "      key: String 'a'",
            "      value: Character 'b'",
            "  Range ...",
            "    start: Integer 1",
            "    end: Integer 3",
            "  Comment ' c'",
        ]
    )


def test_format_lines():
    assert nodes.format_lines(grammar.parse("nil; false; /x+/")) == [
        "Program",
        "  Nil",
        "  Bool false",
        "  Regex /x+/",
    ]


def test_to_tagged():
    assert nodes.to_tagged(grammar.numeric.parse("-3")) == {"sign": "-", "integer": "3"}
    assert nodes.to_tagged(grammar.numeric.parse("4.2")) == {"decimal": "4.2"}
    assert nodes.to_tagged(grammar.range_.parse("1..3")) == {
        "start": {"integer": "1"},
        "end": {"integer": "3"},
        "exclusivity": None,
    }
    assert nodes.to_tagged(grammar.range_.parse("`a...`z")) == {
        "start": {"character": "a"},
        "end": {"character": "z"},
        "exclusivity": ".",
    }
    assert nodes.to_tagged(grammar.hash_literal.parse("{:name: :Thomas}")) == {
        "hash": [{"key": {"string": "name"}, "value": {"string": "Thomas"}}]
    }


def test_to_tagged_program():
    tagged = nodes.to_tagged(grammar.parse("nil; true; false; /x/; [`a] # c"))
    assert tagged == [
        {"nil": "nil"},
        {"true": "true"},
        {"false": "false"},
        {"regex": "x"},
        {"list": [{"character": "a"}]},
        {"comment": " c"},
    ]
    assert json.loads(json.dumps(tagged)) == tagged


def test_nodes_are_values():
    kv = nodes.KeyValue(nodes.Integer("1"), nodes.Nil())
    assert nodes.Hash([kv]) == nodes.Hash((kv,))
    assert nodes.Hash([kv]).pairs == (kv,)
    assert nodes.List(iter([nodes.Nil()])).items == (nodes.Nil(),)

    with pytest.raises(dataclasses.FrozenInstanceError):
        kv.key = nodes.Nil()
