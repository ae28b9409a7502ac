"""
Сжатие и распаковка данных каноническим кодом Хаффмана.

Сжатие:     байты -> частоты -> дерево -> канонические коды -> заголовок + данные
Распаковка: заголовок -> коды по длинам -> дерево -> обход дерева по битам -> байты
"""

import io
import logging
import math
from typing import BinaryIO, Dict, List, Optional

from errors import StreamError
from format import ContainerHeader, read_header, read_payload, write_header, write_payload
from huffman import (SYMBOL_SIZE, Code, build_decode_tree, build_tree, canonicalize,
                     code_lookup, count_frequencies, derive_codes)
from tracing import Tracer


logger = logging.getLogger(__name__)


class HuffmanCompressor:
    def __init__(self, alphabet_size: int = SYMBOL_SIZE, tracer: Optional[Tracer] = None):
        if not 1 <= alphabet_size <= SYMBOL_SIZE:
            raise ValueError(f"Alphabet size must be between 1 and {SYMBOL_SIZE}, got {alphabet_size}")
        self.alphabet_size = alphabet_size
        self.tracer = tracer if tracer is not None else Tracer()

    def build_code_table(self, frequencies: Dict[int, int]) -> List[Code]:
        if not frequencies:
            return []

        root = build_tree(frequencies)
        self.tracer.tree(root)

        codes = canonicalize(derive_codes(root))
        self.tracer.code_table(codes)
        return codes

    def compress(self, data: bytes) -> bytes:
        output = io.BytesIO()
        self.compress_to(data, output)
        return output.getvalue()

    def compress_to(self, data: bytes, output: BinaryIO) -> int:
        frequencies = count_frequencies(data, self.alphabet_size)
        self.tracer.frequency_table(frequencies)

        codes = self.build_code_table(frequencies)
        header = ContainerHeader(original_length=len(data), codes=codes)

        buffer = io.BytesIO()
        write_header(buffer, header)
        bits = write_payload(buffer, data, code_lookup(codes))

        logger.debug("Encoded %d bytes, %d symbols, %d payload bits",
                     len(data), header.symbol_count, bits)

        return output.write(buffer.getvalue())

    def decompress(self, data: bytes) -> bytes:
        header, pos = read_header(data)
        logger.debug("Header: original length %d, %d symbols",
                     header.original_length, header.symbol_count)

        if header.original_length == 0:
            return b''

        self.tracer.code_table(header.codes)
        root = build_decode_tree(header.codes)
        self.tracer.tree(root, weights=False)

        return read_payload(data, pos, header.original_length, root)

    def compress_stream(self, source: BinaryIO, sink: BinaryIO) -> int:
        data = _read_all(source)
        result = self.compress(data)
        _write_all(sink, result)
        return len(result)

    def decompress_stream(self, source: BinaryIO, sink: BinaryIO) -> int:
        data = _read_all(source)
        result = self.decompress(data)
        _write_all(sink, result)
        return len(result)


def _read_all(source: BinaryIO) -> bytes:
    try:
        return source.read()
    except OSError as e:
        raise StreamError(f"Failed to read input: {e}") from e


def _write_all(sink: BinaryIO, data: bytes):
    try:
        sink.write(data)
        sink.flush()
    except OSError as e:
        raise StreamError(f"Failed to write output: {e}") from e


def compress_data(data: bytes) -> bytes:
    return HuffmanCompressor().compress(data)


def decompress_data(compressed: bytes) -> bytes:
    return HuffmanCompressor().decompress(compressed)


class CompressionStats:
    def __init__(self, frequencies: Dict[int, int], codes: List[Code], compressed_size: int):
        self.original_size = sum(frequencies.values())
        self.compressed_size = compressed_size
        self.symbol_count = len(codes)

        lengths = {code.symbol: code.length for code in codes}
        self.payload_bits = sum(count * lengths[symbol] for symbol, count in frequencies.items())

        self.average_code_length = (
            self.payload_bits / self.original_size
            if self.original_size > 0 else 0
        )

        self.entropy = sum(
            count / self.original_size * math.log2(self.original_size / count)
            for count in frequencies.values()
        ) if self.original_size > 0 else 0

        self.compression_ratio = (
            self.compressed_size / self.original_size * 100
            if self.original_size > 0 else 0
        )

    @classmethod
    def for_data(cls, data: bytes, compressed: bytes) -> 'CompressionStats':
        frequencies = count_frequencies(data)
        header, _ = read_header(compressed)
        return cls(frequencies, header.codes, len(compressed))

    def print_stats(self, stream=None):
        print(f"Huffman Compression Statistics:", file=stream)
        print(f"  Original size:       {self.original_size} bytes", file=stream)
        print(f"  Compressed size:     {self.compressed_size} bytes", file=stream)
        print(f"  Symbols:             {self.symbol_count}", file=stream)
        print(f"  Payload bits:        {self.payload_bits}", file=stream)
        print(f"  Avg code length:     {self.average_code_length:.3f} bits/symbol", file=stream)
        print(f"  Entropy:             {self.entropy:.3f} bits/symbol", file=stream)
        print(f"  Compression ratio:   {self.compression_ratio:.1f}%", file=stream)
