"""
Определяет структуру сжатого файла и методы чтения/записи.

Формат (big-endian):
    4 байта  - исходная длина N
    1 байт   - количество символов S (0 при N > 0 означает 256)
    S * 2    - записи (символ, длина кода) в каноническом порядке
    остаток  - упакованные коды, старший бит первым, хвост дополнен нулями
"""

import struct
import io
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List, Tuple

from errors import MalformedHeader, UnknownSymbolEncoding, UnrepresentableHeader
from huffman import Code, HuffmanNode, codes_from_lengths


HEADER_FORMAT = '>IB'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
RECORD_SIZE = 2
MAX_ORIGINAL_LENGTH = 0xFFFFFFFF


@dataclass
class ContainerHeader:
    original_length: int
    codes: List[Code] = field(default_factory=list)

    @property
    def symbol_count(self) -> int:
        return len(self.codes)

    @property
    def size(self) -> int:
        return HEADER_SIZE + RECORD_SIZE * self.symbol_count

    def serialize(self) -> bytes:
        if self.original_length > MAX_ORIGINAL_LENGTH:
            raise UnrepresentableHeader(f"Input too large: {self.original_length} bytes")
        if self.original_length == 0 and self.codes:
            raise UnrepresentableHeader("Empty input cannot carry a code table")

        output = io.BytesIO()
        output.write(struct.pack(HEADER_FORMAT, self.original_length, self.symbol_count & 0xFF))

        for code in self.codes:
            output.write(struct.pack('BB', code.symbol, code.length))

        return output.getvalue()

    @staticmethod
    def deserialize(data: bytes) -> Tuple['ContainerHeader', int]:
        if len(data) < HEADER_SIZE:
            raise MalformedHeader(f"Container too small: {len(data)} bytes, header needs {HEADER_SIZE}")

        original_length, symbol_count = struct.unpack_from(HEADER_FORMAT, data, 0)
        pos = HEADER_SIZE

        if original_length == 0:
            if symbol_count != 0:
                raise MalformedHeader(f"Empty input declares {symbol_count} symbols")
            return ContainerHeader(original_length=0), pos

        if symbol_count == 0:
            symbol_count = 256

        available = (len(data) - pos) // RECORD_SIZE
        if available < symbol_count:
            raise MalformedHeader(
                f"Header declares {symbol_count} code records but only {available} are present")

        records = []
        for _ in range(symbol_count):
            symbol, length = struct.unpack_from('BB', data, pos)
            records.append((symbol, length))
            pos += RECORD_SIZE

        header = ContainerHeader(original_length=original_length,
                                 codes=codes_from_lengths(records))
        return header, pos


class BitWriter:
    def __init__(self):
        self.buffer = bytearray()
        self.bits_written = 0
        self._accumulator = 0
        self._pending = 0

    def write_code(self, code: Code):
        self._accumulator = (self._accumulator << code.length) | code.bits
        self._pending += code.length
        self.bits_written += code.length

        while self._pending >= 8:
            self._pending -= 8
            self.buffer.append((self._accumulator >> self._pending) & 0xFF)

        self._accumulator &= (1 << self._pending) - 1

    def to_bytes(self) -> bytes:
        output = bytearray(self.buffer)
        if self._pending:
            output.append((self._accumulator << (8 - self._pending)) & 0xFF)
        return bytes(output)


class BitReader:
    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset
        self.bits_read = 0

    def __iter__(self) -> Iterator[int]:
        for byte in memoryview(self.data)[self.offset:]:
            for shift in range(7, -1, -1):
                self.bits_read += 1
                yield (byte >> shift) & 1


def write_header(output: BinaryIO, header: ContainerHeader) -> int:
    return output.write(header.serialize())


def write_payload(output: BinaryIO, data: bytes, lookup: Dict[int, Code]) -> int:
    writer = BitWriter()

    for byte in data:
        code = lookup.get(byte)
        if code is None:
            raise UnknownSymbolEncoding(byte)
        writer.write_code(code)

    output.write(writer.to_bytes())
    return writer.bits_written


def read_header(data: bytes) -> Tuple[ContainerHeader, int]:
    return ContainerHeader.deserialize(data)


def read_payload(data: bytes, offset: int, original_length: int, root: HuffmanNode) -> bytes:
    output = bytearray()

    if original_length == 0:
        return bytes(output)

    node = root
    for bit in BitReader(data, offset):
        node = node.right if bit else node.left
        if node is None:
            raise MalformedHeader(f"Payload walks into an unassigned code after {len(output)} symbols")

        if node.symbol is not None:
            output.append(node.symbol)
            if len(output) == original_length:
                return bytes(output)
            node = root

    raise MalformedHeader(f"Payload truncated: decoded {len(output)} of {original_length} symbols")
