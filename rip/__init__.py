"""A parser for rip source text.

    import rip

    program = rip.parse("[31, :Thomas] # people")
    print(rip.nodes.format_tree(program))

Use `rip.grammar` to get at individual rules, and `rip.peg` if you want to
write a grammar of your own.
"""

from . import grammar
from . import nodes
from . import peg
from . import runtime

from .grammar import GRAMMAR, parse, parse_file
from .peg import GrammarError
from .runtime import ParseFailure
