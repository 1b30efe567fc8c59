import argparse
import json
import logging
import sys

from . import grammar, nodes, runtime


def main(args: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Parse a rip source file and print the tree")
    parser.add_argument("source_path", help="Path to an input file to parse")
    parser.add_argument(
        "--start-rule",
        type=str,
        default=None,
        help="The name of the rule to start parsing with, e.g. 'list' or 'numeric'. The "
        "default is to parse a whole program.",
    )
    parser.add_argument(
        "--format",
        choices=["tree", "tagged"],
        default="tree",
        help="Print an indented outline (tree) or the tagged form as JSON (tagged).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log more. Once for parse outcomes, twice to trace every rule.",
    )

    parsed = parser.parse_args(args[1:])

    levels = [logging.WARNING, logging.INFO, logging.DEBUG]
    logging.basicConfig(level=levels[min(parsed.verbose, len(levels) - 1)])

    start = grammar.GRAMMAR.start
    if parsed.start_rule is not None:
        start = grammar.GRAMMAR.rules.get(parsed.start_rule)
        if start is None:
            print(f"Unknown rule '{parsed.start_rule}'", file=sys.stderr)
            return 2

    with open(parsed.source_path, "r", encoding="utf-8") as f:
        text = f.read()

    try:
        result = start.parse(text)
    except runtime.ParseFailure as e:
        print(f"{parsed.source_path}:{e}", file=sys.stderr)
        return 1

    if isinstance(result, str):
        # Purely lexical rules produce the text they matched.
        print(repr(result))
    elif parsed.format == "tagged":
        print(json.dumps(_tagged(result), indent=2))
    else:
        for node in result if isinstance(result, list) else [result]:
            print(nodes.format_tree(node))
    return 0


def _tagged(result):
    if isinstance(result, list):
        return [nodes.to_tagged(node) for node in result]
    return nodes.to_tagged(result)


def run():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    run()
