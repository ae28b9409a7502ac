"""
Реализует построение канонического кода Хаффмана.
Частоты байтов -> очередь с приоритетом -> дерево -> длины кодов -> канонические коды.
Декодер восстанавливает те же коды только по списку (символ, длина).
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from errors import CapacityExceeded, MalformedHeader, UnknownSymbolEncoding


SYMBOL_SIZE = 256
ASCII_SYMBOL_SIZE = 128
MAX_CODE_LENGTH = 32


class HuffmanNode:
    def __init__(self, symbol: Optional[int] = None, weight: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None):
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right

    @classmethod
    def leaf(cls, symbol: int, weight: int) -> 'HuffmanNode':
        return cls(symbol=symbol, weight=weight)

    @classmethod
    def internal(cls, left: 'HuffmanNode', right: 'HuffmanNode') -> 'HuffmanNode':
        return cls(weight=left.weight + right.weight, left=left, right=right)

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf:
            return f"Leaf({self.symbol}, {self.weight})"
        return f"Internal({self.weight})"


@dataclass(frozen=True)
class Code:
    symbol: int
    bits: int
    length: int

    def __str__(self):
        return format(self.bits, f'0{self.length}b')


def count_frequencies(data: bytes, alphabet_size: int = SYMBOL_SIZE) -> Dict[int, int]:
    frequencies = Counter(data)
    for symbol in frequencies:
        if symbol >= alphabet_size:
            raise UnknownSymbolEncoding(symbol)
    return dict(frequencies)


def node_capacity(symbol_count: int) -> int:
    if symbol_count <= 1:
        return 1
    return 2 * symbol_count - 1


class PriorityQueue:
    """Fixed-capacity binary min-heap of tree nodes.

    Entries are ordered by ``(weight, insertion sequence)``, so among nodes of
    equal weight the one inserted first is extracted first.
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        self._heap: List[Tuple[int, int, HuffmanNode]] = []
        self._sequence = 0

    def __len__(self):
        return len(self._heap)

    def insert(self, node: HuffmanNode):
        if len(self._heap) >= self.capacity:
            raise CapacityExceeded(f"Priority queue is full ({self.capacity} nodes)")

        self._heap.append((node.weight, self._sequence, node))
        self._sequence += 1
        self._sift_up(len(self._heap) - 1)

    def extract_min(self) -> HuffmanNode:
        if not self._heap:
            raise IndexError("extract from empty priority queue")

        last = self._heap.pop()
        if not self._heap:
            return last[2]

        root = self._heap[0]
        self._heap[0] = last
        self._sift_down(0)
        return root[2]

    def _less(self, i: int, j: int) -> bool:
        return self._heap[i][:2] < self._heap[j][:2]

    def _swap(self, i: int, j: int):
        self._heap[i], self._heap[j] = self._heap[j], self._heap[i]

    def _sift_up(self, pos: int):
        while pos > 0:
            parent = (pos - 1) // 2
            if not self._less(pos, parent):
                break
            self._swap(pos, parent)
            pos = parent

    def _sift_down(self, pos: int):
        size = len(self._heap)
        while True:
            child = 2 * pos + 1
            if child >= size:
                break
            right = child + 1
            if right < size and self._less(right, child):
                child = right
            if not self._less(child, pos):
                break
            self._swap(pos, child)
            pos = child


def build_tree(frequencies: Dict[int, int]) -> HuffmanNode:
    if not frequencies:
        raise ValueError("Cannot build a Huffman tree from an empty frequency table")

    queue = PriorityQueue(node_capacity(len(frequencies)))
    for symbol in sorted(frequencies):
        queue.insert(HuffmanNode.leaf(symbol, frequencies[symbol]))

    while len(queue) > 1:
        left = queue.extract_min()
        right = queue.extract_min()
        queue.insert(HuffmanNode.internal(left, right))

    return queue.extract_min()


def derive_codes(root: HuffmanNode) -> List[Code]:
    """Walk the tree and return one code per leaf, in traversal order.

    Left edges append a 0 bit and right edges a 1 bit. A lone leaf at the
    root still gets a one-bit code, since an empty code cannot be decoded.
    """
    codes = []
    stack = [(root, 0, 0)]

    while stack:
        node, bits, length = stack.pop()

        if node.is_leaf:
            if length > MAX_CODE_LENGTH:
                raise CapacityExceeded(
                    f"Code for symbol 0x{node.symbol:02x} needs {length} bits "
                    f"(limit {MAX_CODE_LENGTH})")
            codes.append(Code(node.symbol, bits, max(length, 1)))
            continue

        if node.right is not None:
            stack.append((node.right, bits << 1 | 1, length + 1))
        if node.left is not None:
            stack.append((node.left, bits << 1, length + 1))

    return codes


def _assign_canonical(records: Iterable[Tuple[int, int]]) -> List[Code]:
    codes = []
    value = 0
    current_length = 0

    for symbol, length in records:
        if length > current_length:
            value <<= length - current_length
            current_length = length
        if value >= 1 << length:
            raise MalformedHeader(f"Code lengths over-subscribe the code space at symbol 0x{symbol:02x}")
        codes.append(Code(symbol, value, length))
        value += 1

    return codes


def canonicalize(codes: Iterable[Code]) -> List[Code]:
    ordered = sorted(codes, key=lambda code: (code.length, code.symbol))
    return _assign_canonical((code.symbol, code.length) for code in ordered)


def codes_from_lengths(records: List[Tuple[int, int]]) -> List[Code]:
    """Rebuild the canonical code table from stored (symbol, length) records.

    Records must already be in canonical order; they are validated, not sorted.
    """
    seen = set()
    previous_length = 0

    for symbol, length in records:
        if not 1 <= length <= MAX_CODE_LENGTH:
            raise MalformedHeader(f"Invalid code length {length} for symbol 0x{symbol:02x}")
        if length < previous_length:
            raise MalformedHeader("Code lengths are not in canonical order")
        if symbol in seen:
            raise MalformedHeader(f"Duplicate symbol 0x{symbol:02x} in code table")
        seen.add(symbol)
        previous_length = length

    return _assign_canonical(records)


def build_decode_tree(codes: Iterable[Code]) -> HuffmanNode:
    root = HuffmanNode()

    for code in codes:
        node = root
        for shift in range(code.length - 1, -1, -1):
            if node.symbol is not None:
                raise MalformedHeader(f"Code for symbol 0x{code.symbol:02x} extends another code")

            if (code.bits >> shift) & 1:
                if node.right is None:
                    node.right = HuffmanNode()
                node = node.right
            else:
                if node.left is None:
                    node.left = HuffmanNode()
                node = node.left

        if node.symbol is not None or not node.is_leaf:
            raise MalformedHeader(f"Code for symbol 0x{code.symbol:02x} collides with another code")
        node.symbol = code.symbol

    return root


def code_lookup(codes: Iterable[Code]) -> Dict[int, Code]:
    return {code.symbol: code for code in codes}
