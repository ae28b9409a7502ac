"""
Отладочный вывод промежуточных таблиц: частоты, дерево, коды.
"""

import sys
from typing import Dict, Iterable, Optional, TextIO

from huffman import Code, HuffmanNode


class TraceCategory:
    FREQ = 'freq'
    TREE = 'tree'
    CODE = 'code'

    ALL = (FREQ, TREE, CODE)


_ESCAPES = {
    ord('\n'): '\\n',
    ord('\t'): '\\t',
    ord('\r'): '\\r',
    ord('\b'): '\\b',
    ord('\f'): '\\f',
    ord('\v'): '\\v',
    ord('\\'): '\\\\',
    ord('\''): "\\'",
    ord('"'): '\\"',
    0: '\\0',
}


def escape_symbol(symbol: int) -> str:
    if symbol in _ESCAPES:
        return _ESCAPES[symbol]
    if 0x20 <= symbol < 0x7F:
        return chr(symbol)
    return f'\\x{symbol:02x}'


def format_node(node: HuffmanNode, weights: bool = True) -> str:
    if node.is_leaf:
        if weights:
            return f"('{escape_symbol(node.symbol)}': {node.weight})"
        return f"('{escape_symbol(node.symbol)}')"
    return f"({node.weight})" if weights else "(*)"


class Tracer:
    """Writes human-readable dumps for the enabled categories to ``sink``.

    A tracer with no categories writes nothing, so callers can always pass one.
    """

    def __init__(self, categories: Iterable[str] = (), sink: Optional[TextIO] = None):
        unknown = set(categories) - set(TraceCategory.ALL)
        if unknown:
            raise ValueError(f"Unknown trace categories: {', '.join(sorted(unknown))}")

        self.categories = frozenset(categories)
        self.sink = sink if sink is not None else sys.stderr

    def enabled(self, category: str) -> bool:
        return category in self.categories

    def frequency_table(self, frequencies: Dict[int, int]):
        if not self.enabled(TraceCategory.FREQ):
            return

        print("Freq table:", file=self.sink)
        for symbol in sorted(frequencies):
            print(f"'{escape_symbol(symbol)}' -> {frequencies[symbol]}", file=self.sink)

    def tree(self, root: HuffmanNode, weights: bool = True):
        """Pre-order dump of the tree.

        Trees rebuilt from code lengths carry no weights; pass ``weights=False``
        to print their shape only.
        """
        if not self.enabled(TraceCategory.TREE):
            return

        print("Huffman tree:", file=self.sink)
        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            print('  ' * depth + format_node(node, weights), file=self.sink)

            # right pushed first so the left subtree prints first
            if node.right is not None:
                stack.append((node.right, depth + 1))
            if node.left is not None:
                stack.append((node.left, depth + 1))

    def code_table(self, codes: Iterable[Code]):
        if not self.enabled(TraceCategory.CODE):
            return

        print("Code table:", file=self.sink)
        for code in codes:
            print(f"'{escape_symbol(code.symbol)}' -> {code}", file=self.sink)
