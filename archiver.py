"""
Главный класс для сжатия и разжатия файлов.
"""

import os
from typing import Optional

from compressor import CompressionStats, HuffmanCompressor
from format import read_header
from tracing import escape_symbol


COMPRESSED_SUFFIX = '.huf'
RESTORED_SUFFIX = '.out'


def compressed_path(file_path: str) -> str:
    return file_path + COMPRESSED_SUFFIX


def restored_path(file_path: str) -> str:
    if file_path.endswith(COMPRESSED_SUFFIX) and len(file_path) > len(COMPRESSED_SUFFIX):
        return file_path[:-len(COMPRESSED_SUFFIX)]
    return file_path + RESTORED_SUFFIX


def _write_file(path: str, data: bytes):
    try:
        with open(path, 'wb') as f:
            f.write(data)
    except OSError:
        if os.path.exists(path):
            os.remove(path)
        raise


class Archiver:
    def __init__(self, compressor: Optional[HuffmanCompressor] = None, verbose: bool = True):
        self.compressor = compressor if compressor is not None else HuffmanCompressor()
        self.verbose = verbose

    def _report(self, message: str, **kwargs):
        if self.verbose:
            print(message, **kwargs)

    def compress_file(self, file_path: str, output_path: Optional[str] = None) -> CompressionStats:
        output_path = output_path or compressed_path(file_path)

        with open(file_path, 'rb') as f:
            data = f.read()

        self._report(f"Compressing {file_path}...", end=" ")
        compressed = self.compressor.compress(data)
        _write_file(output_path, compressed)

        stats = CompressionStats.for_data(data, compressed)
        self._report(f"OK ({stats.compression_ratio:.1f}%) -> {output_path}")

        return stats

    def decompress_file(self, file_path: str, output_path: Optional[str] = None) -> str:
        output_path = output_path or restored_path(file_path)

        with open(file_path, 'rb') as f:
            compressed = f.read()

        self._report(f"Decompressing {file_path}...", end=" ")
        data = self.compressor.decompress(compressed)
        _write_file(output_path, data)
        self._report(f"OK -> {output_path}")

        return output_path

    def describe(self, file_path: str):
        with open(file_path, 'rb') as f:
            compressed = f.read()

        header, pos = read_header(compressed)
        payload_size = len(compressed) - pos
        ratio = (len(compressed) / header.original_length * 100) if header.original_length > 0 else 0

        print(f"File:            {file_path}")
        print(f"Original size:   {header.original_length} bytes")
        print(f"Compressed size: {len(compressed)} bytes ({ratio:.1f}%)")
        print(f"Header size:     {pos} bytes")
        print(f"Payload size:    {payload_size} bytes")
        print(f"Symbols:         {header.symbol_count}")

        if not header.codes:
            return header

        print()
        print(f"{'Symbol':<10} {'Length':>6}  Code")
        print("-" * 50)
        for code in header.codes:
            print(f"{escape_symbol(code.symbol):<10} {code.length:>6}  {code}")

        return header
