import unittest
import tempfile
import os
import io
import random
import shutil
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from errors import (CapacityExceeded, MalformedHeader, StreamError, UnknownSymbolEncoding,
                    UnrepresentableHeader)
from huffman import (Code, HuffmanNode, PriorityQueue, build_decode_tree, build_tree,
                     canonicalize, codes_from_lengths, count_frequencies, derive_codes,
                     node_capacity)
from format import BitReader, BitWriter, ContainerHeader, read_header, write_payload
from compressor import CompressionStats, HuffmanCompressor, compress_data, decompress_data
from tracing import Tracer, TraceCategory, escape_symbol
from archiver import Archiver, compressed_path, restored_path
import main


def is_prefix(a: Code, b: Code) -> bool:
    if a.length > b.length:
        return False
    return (b.bits >> (b.length - a.length)) == a.bits


class TestFrequencyCounter(unittest.TestCase):
    def test_hello(self):
        freq = count_frequencies(b"hello")
        self.assertEqual(freq, {ord('h'): 1, ord('e'): 1, ord('l'): 2, ord('o'): 1})

    def test_empty(self):
        self.assertEqual(count_frequencies(b""), {})

    def test_restricted_alphabet(self):
        self.assertEqual(count_frequencies(b"abc", alphabet_size=128)[ord('a')], 1)
        with self.assertRaises(UnknownSymbolEncoding):
            count_frequencies(b"ab\x80", alphabet_size=128)


class TestPriorityQueue(unittest.TestCase):
    def test_extracts_by_weight(self):
        queue = PriorityQueue(4)
        for symbol, weight in ((1, 5), (2, 3), (3, 9), (4, 1)):
            queue.insert(HuffmanNode.leaf(symbol, weight))

        weights = [queue.extract_min().weight for _ in range(4)]
        self.assertEqual(weights, [1, 3, 5, 9])
        self.assertEqual(len(queue), 0)

    def test_equal_weights_keep_insertion_order(self):
        queue = PriorityQueue(6)
        for symbol in (7, 3, 9, 1, 5, 2):
            queue.insert(HuffmanNode.leaf(symbol, 4))

        symbols = [queue.extract_min().symbol for _ in range(6)]
        self.assertEqual(symbols, [7, 3, 9, 1, 5, 2])

    def test_capacity_exceeded(self):
        queue = PriorityQueue(1)
        queue.insert(HuffmanNode.leaf(0, 1))
        with self.assertRaises(CapacityExceeded):
            queue.insert(HuffmanNode.leaf(1, 1))

    def test_extract_from_empty(self):
        with self.assertRaises(IndexError):
            PriorityQueue(1).extract_min()

    def test_node_capacity(self):
        self.assertEqual(node_capacity(0), 1)
        self.assertEqual(node_capacity(1), 1)
        self.assertEqual(node_capacity(4), 7)

    def test_random_order(self):
        random.seed(7)
        weights = [random.randint(1, 50) for _ in range(100)]
        queue = PriorityQueue(len(weights))
        for i, weight in enumerate(weights):
            queue.insert(HuffmanNode.leaf(i % 256, weight))

        result = [queue.extract_min().weight for _ in weights]
        self.assertEqual(result, sorted(weights))


class TestTreeBuilder(unittest.TestCase):
    def test_weights_sum(self):
        data = b"Lorem ipsum dolor sit amet " * 20
        root = build_tree(count_frequencies(data))
        self.assertEqual(root.weight, len(data))

        stack = [root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                continue
            self.assertEqual(node.weight, node.left.weight + node.right.weight)
            stack.extend((node.left, node.right))

    def test_single_symbol(self):
        root = build_tree({ord('a'): 4})
        self.assertTrue(root.is_leaf)
        self.assertEqual(derive_codes(root), [Code(ord('a'), 0, 1)])

    def _chain(self, depth):
        node = HuffmanNode.leaf(0, 1)
        for symbol in range(1, depth + 1):
            node = HuffmanNode.internal(node, HuffmanNode.leaf(symbol, 1))
        return node

    def test_code_length_limit(self):
        codes = derive_codes(self._chain(32))
        self.assertEqual(len(codes), 33)
        self.assertEqual(max(code.length for code in codes), 32)

        with self.assertRaises(CapacityExceeded):
            derive_codes(self._chain(33))

    def test_empty_table(self):
        with self.assertRaises(ValueError):
            build_tree({})

    def test_frequent_symbol_gets_short_code(self):
        codes = derive_codes(build_tree(count_frequencies(b"hello")))
        lengths = {code.symbol: code.length for code in codes}
        self.assertTrue(all(lengths[ord('l')] <= length for length in lengths.values()))

    def test_kraft_equality(self):
        random.seed(3)
        data = bytes(random.choice(b"abcdefghij") for _ in range(2000))
        codes = derive_codes(build_tree(count_frequencies(data)))
        self.assertEqual(sum(2 ** (32 - code.length) for code in codes), 2 ** 32)


class TestCanonicalCodes(unittest.TestCase):
    def test_canonicalize(self):
        codes = [Code(ord('d'), 0b011, 3), Code(ord('a'), 0b1, 1),
                 Code(ord('c'), 0b010, 3), Code(ord('b'), 0b00, 2)]
        canonical = canonicalize(codes)
        self.assertEqual([(chr(c.symbol), str(c)) for c in canonical],
                         [('a', '0'), ('b', '10'), ('c', '110'), ('d', '111')])

    def test_prefix_and_ordering(self):
        random.seed(11)
        data = bytes(random.randint(0, 255) for _ in range(3000)) + b"e" * 500
        codes = canonicalize(derive_codes(build_tree(count_frequencies(data))))

        for a in codes:
            for b in codes:
                if a is b:
                    continue
                self.assertFalse(is_prefix(a, b), f"{a} is a prefix of {b}")
                if a.length == b.length and a.symbol < b.symbol:
                    self.assertLess(a.bits, b.bits)

    def test_lengths_roundtrip_symmetry(self):
        data = b"The quick brown fox jumps over the lazy dog" * 3
        encoded = canonicalize(derive_codes(build_tree(count_frequencies(data))))
        rebuilt = codes_from_lengths([(c.symbol, c.length) for c in encoded])
        self.assertEqual(rebuilt, encoded)

    def test_oversubscribed_lengths(self):
        with self.assertRaises(MalformedHeader):
            codes_from_lengths([(1, 1), (2, 1), (3, 1)])

    def test_decreasing_lengths(self):
        with self.assertRaises(MalformedHeader):
            codes_from_lengths([(1, 2), (2, 1)])

    def test_duplicate_symbol(self):
        with self.assertRaises(MalformedHeader):
            codes_from_lengths([(1, 1), (1, 1)])

    def test_invalid_length(self):
        with self.assertRaises(MalformedHeader):
            codes_from_lengths([(1, 0)])
        with self.assertRaises(MalformedHeader):
            codes_from_lengths([(1, 33)])

    def test_decode_tree(self):
        codes = codes_from_lengths([(ord('a'), 1), (ord('b'), 2), (ord('c'), 2)])
        root = build_decode_tree(codes)
        self.assertEqual(root.left.symbol, ord('a'))
        self.assertEqual(root.right.left.symbol, ord('b'))
        self.assertEqual(root.right.right.symbol, ord('c'))

    def test_decode_tree_collisions(self):
        with self.assertRaises(MalformedHeader):
            build_decode_tree([Code(1, 0, 1), Code(2, 0, 2)])
        with self.assertRaises(MalformedHeader):
            build_decode_tree([Code(1, 0, 2), Code(2, 0, 1)])
        with self.assertRaises(MalformedHeader):
            build_decode_tree([Code(1, 1, 1), Code(2, 1, 1)])


class TestBitIO(unittest.TestCase):
    def test_writer_packs_msb_first(self):
        writer = BitWriter()
        writer.write_code(Code(0, 0b101, 3))
        writer.write_code(Code(0, 0b11111, 5))
        writer.write_code(Code(0, 0b1, 1))
        self.assertEqual(writer.bits_written, 9)
        self.assertEqual(writer.to_bytes(), b'\xbf\x80')

    def test_writer_empty(self):
        self.assertEqual(BitWriter().to_bytes(), b'')

    def test_reader(self):
        self.assertEqual(list(BitReader(b'\x00\xa0', 1)), [1, 0, 1, 0, 0, 0, 0, 0])

    def test_write_payload_unknown_symbol(self):
        with self.assertRaises(UnknownSymbolEncoding):
            write_payload(io.BytesIO(), b"ab", {ord('a'): Code(ord('a'), 0, 1)})


class TestContainerFormat(unittest.TestCase):
    def test_empty_input(self):
        compressed = compress_data(b"")
        self.assertEqual(compressed, b'\x00\x00\x00\x00\x00')
        self.assertEqual(decompress_data(compressed), b"")

    def test_single_symbol(self):
        compressed = compress_data(b"aaaa")
        self.assertEqual(compressed, b'\x00\x00\x00\x04\x01a\x01\x00')
        self.assertEqual(decompress_data(compressed), b"aaaa")

    def test_hello_layout(self):
        compressed = compress_data(b"hello")
        self.assertEqual(compressed,
                         b'\x00\x00\x00\x05\x04' + b'e\x02h\x02l\x02o\x02' + b'\x4a\xc0')
        self.assertEqual(decompress_data(compressed), b"hello")

    def test_all_byte_values(self):
        data = bytes(range(256))
        compressed = compress_data(data)
        header, pos = read_header(compressed)
        self.assertEqual(compressed[4], 0)
        self.assertEqual(header.symbol_count, 256)
        self.assertEqual(pos, 5 + 512)
        self.assertEqual(compressed[pos:], data)
        self.assertEqual(decompress_data(compressed), data)

    def test_header_serialize(self):
        header = ContainerHeader(3, [Code(ord('x'), 0, 1), Code(ord('y'), 1, 1)])
        self.assertEqual(header.serialize(), b'\x00\x00\x00\x03\x02x\x01y\x01')
        self.assertEqual(header.size, 9)

    def test_header_out_of_range(self):
        with self.assertRaises(UnrepresentableHeader):
            ContainerHeader(0x100000000).serialize()
        with self.assertRaises(UnrepresentableHeader):
            ContainerHeader(0, [Code(1, 0, 1)]).serialize()

    def test_missing_records(self):
        with self.assertRaises(MalformedHeader):
            decompress_data(b'\x00\x00\x00\x03\x03' + b'a\x01b\x02')

    def test_short_header(self):
        with self.assertRaises(MalformedHeader):
            decompress_data(b'\x00\x00\x01')

    def test_empty_with_symbols(self):
        with self.assertRaises(MalformedHeader):
            decompress_data(b'\x00\x00\x00\x00\x01a\x01')

    def test_truncated_payload(self):
        compressed = compress_data(b"This is a test" * 100)
        with self.assertRaises(MalformedHeader):
            decompress_data(compressed[:-3])

    def test_corrupted_length(self):
        compressed = bytearray(compress_data(b"Hello World" * 50))
        compressed[0] ^= 0xFF
        with self.assertRaises(MalformedHeader):
            decompress_data(bytes(compressed))

    def test_unassigned_code(self):
        with self.assertRaises(MalformedHeader):
            decompress_data(b'\x00\x00\x00\x04\x01a\x01\x80')

    def test_trailing_bytes_ignored(self):
        data = b"abracadabra"
        self.assertEqual(decompress_data(compress_data(data) + b'\xff\xff'), data)


class TestCompressor(unittest.TestCase):
    def setUp(self):
        self.compressor = HuffmanCompressor()

    def test_roundtrip_samples(self):
        random.seed(42)
        samples = [
            b"a",
            b"ab",
            b"hello",
            b"The quick brown fox jumps over the lazy dog",
            b"Lorem ipsum dolor sit amet " * 200,
            bytes(random.randint(0, 255) for _ in range(5000)),
            b"\x00" * 1000 + b"\x01",
        ]
        for data in samples:
            with self.subTest(size=len(data)):
                self.assertEqual(self.compressor.decompress(self.compressor.compress(data)), data)

    def test_determinism(self):
        data = b"mississippi river banks" * 30
        self.assertEqual(self.compressor.compress(data), self.compressor.compress(data))

    def test_compresses_skewed_data(self):
        data = b"a" * 900 + b"b" * 90 + b"c" * 10
        self.assertLess(len(self.compressor.compress(data)), len(data) // 4)

    def test_ascii_alphabet(self):
        compressor = HuffmanCompressor(alphabet_size=128)
        self.assertEqual(compressor.decompress(compressor.compress(b"plain text")), b"plain text")
        with self.assertRaises(UnknownSymbolEncoding):
            compressor.compress(b"caf\xc3\xa9")

    def test_invalid_alphabet(self):
        with self.assertRaises(ValueError):
            HuffmanCompressor(alphabet_size=300)

    def test_streams(self):
        data = b"stream me " * 40
        compressed = io.BytesIO()
        written = self.compressor.compress_stream(io.BytesIO(data), compressed)
        self.assertEqual(written, len(compressed.getvalue()))

        restored = io.BytesIO()
        self.compressor.decompress_stream(io.BytesIO(compressed.getvalue()), restored)
        self.assertEqual(restored.getvalue(), data)

    def test_stream_failure(self):
        class BrokenSource(io.RawIOBase):
            def read(self, size=-1):
                raise OSError("device unplugged")

        with self.assertRaises(StreamError):
            self.compressor.compress_stream(BrokenSource(), io.BytesIO())

    def test_stats(self):
        data = b"aaaa"
        stats = CompressionStats.for_data(data, compress_data(data))
        self.assertEqual(stats.original_size, 4)
        self.assertEqual(stats.symbol_count, 1)
        self.assertEqual(stats.payload_bits, 4)
        self.assertEqual(stats.average_code_length, 1.0)
        self.assertEqual(stats.entropy, 0)

        output = io.StringIO()
        stats.print_stats(output)
        self.assertIn("Symbols:             1", output.getvalue())


class TestTracing(unittest.TestCase):
    def test_all_categories(self):
        sink = io.StringIO()
        compressor = HuffmanCompressor(tracer=Tracer(TraceCategory.ALL, sink))
        compressor.compress(b"ab\n")

        expected = "\n".join([
            "Freq table:",
            "'\\n' -> 1",
            "'a' -> 1",
            "'b' -> 1",
            "Huffman tree:",
            "(3)",
            "  ('b': 1)",
            "  (2)",
            "    ('\\n': 1)",
            "    ('a': 1)",
            "Code table:",
            "'b' -> 0",
            "'\\n' -> 10",
            "'a' -> 11",
        ]) + "\n"
        self.assertEqual(sink.getvalue(), expected)

    def test_trace_does_not_change_output(self):
        data = b"trace me please"
        traced = HuffmanCompressor(tracer=Tracer(TraceCategory.ALL, io.StringIO()))
        self.assertEqual(traced.compress(data), compress_data(data))

    def test_decompress_trace(self):
        sink = io.StringIO()
        compressor = HuffmanCompressor(tracer=Tracer([TraceCategory.CODE], sink))
        compressor.decompress(compress_data(b"aab"))
        self.assertEqual(sink.getvalue(), "Code table:\n'a' -> 0\n'b' -> 1\n")

    def test_decompress_tree_has_no_weights(self):
        sink = io.StringIO()
        compressor = HuffmanCompressor(tracer=Tracer([TraceCategory.TREE], sink))
        compressor.decompress(compress_data(b"aab"))
        self.assertEqual(sink.getvalue(), "Huffman tree:\n(*)\n  ('a')\n  ('b')\n")

    def test_disabled(self):
        sink = io.StringIO()
        HuffmanCompressor(tracer=Tracer((), sink)).compress(b"quiet")
        self.assertEqual(sink.getvalue(), "")

    def test_unknown_category(self):
        with self.assertRaises(ValueError):
            Tracer(["heap"])

    def test_escape_symbol(self):
        self.assertEqual(escape_symbol(ord('A')), 'A')
        self.assertEqual(escape_symbol(0), '\\0')
        self.assertEqual(escape_symbol(ord("'")), "\\'")
        self.assertEqual(escape_symbol(0xff), '\\xff')


class TestArchiver(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.archiver = Archiver(verbose=False)

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write(self, name, data):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_suffix_convention(self):
        self.assertEqual(compressed_path("notes.txt"), "notes.txt.huf")
        self.assertEqual(restored_path("notes.txt.huf"), "notes.txt")
        self.assertEqual(restored_path("notes.bin"), "notes.bin.out")
        self.assertEqual(restored_path(".huf"), ".huf.out")

    def test_compress_decompress_file(self):
        original = b"Hello World! " * 100
        test_file = self._write("test.txt", original)

        stats = self.archiver.compress_file(test_file)
        self.assertTrue(os.path.isfile(test_file + ".huf"))
        self.assertLess(stats.compressed_size, stats.original_size)
        self.assertEqual(stats.symbol_count, len(set(original)))
        self.assertEqual(stats.payload_bits,
                         CompressionStats.for_data(original, compress_data(original)).payload_bits)

        os.remove(test_file)
        restored = self.archiver.decompress_file(test_file + ".huf")
        self.assertEqual(restored, test_file)

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), original)

    def test_decompress_corrupt_file(self):
        bad = self._write("bad.huf", b'\x00\x00\x00\x09\x05a\x01')
        output = os.path.join(self.temp_dir, "bad")
        with self.assertRaises(MalformedHeader):
            self.archiver.decompress_file(bad)
        self.assertFalse(os.path.exists(output))

    def test_describe(self):
        compressed = self._write("hello.huf", compress_data(b"hello"))
        out = io.StringIO()
        with redirect_stdout(out):
            header = self.archiver.describe(compressed)

        self.assertEqual(header.original_length, 5)
        self.assertIn("Symbols:         4", out.getvalue())
        self.assertIn("l               2  10", out.getvalue())


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compress_and_decompress(self):
        source = os.path.join(self.temp_dir, "input.txt")
        packed = os.path.join(self.temp_dir, "input.huf")
        restored = os.path.join(self.temp_dir, "restored.txt")
        with open(source, 'wb') as f:
            f.write(b"command line round trip\n" * 20)

        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()) as err:
            main.main(['compress', '-d', 'freq', source, packed])
            main.main(['decompress', packed, restored])

        self.assertIn("Freq table:", err.getvalue())
        with open(source, 'rb') as a, open(restored, 'rb') as b:
            self.assertEqual(a.read(), b.read())

    def test_info(self):
        packed = os.path.join(self.temp_dir, "data.huf")
        with open(packed, 'wb') as f:
            f.write(compress_data(b"info please"))

        out = io.StringIO()
        with redirect_stdout(out):
            main.main(['info', packed])
        self.assertIn("Original size:   11 bytes", out.getvalue())

    def test_error_exit_code(self):
        packed = os.path.join(self.temp_dir, "broken.huf")
        with open(packed, 'wb') as f:
            f.write(b'\x00\x00')

        err = io.StringIO()
        with redirect_stdout(io.StringIO()), redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                main.main(['decompress', packed])

        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Error:", err.getvalue())

    def test_oversized_input_reports_error(self):
        source = os.path.join(self.temp_dir, "big.txt")
        with open(source, 'wb') as f:
            f.write(b"more than four bytes")

        err = io.StringIO()
        with mock.patch('format.MAX_ORIGINAL_LENGTH', 4), \
                redirect_stdout(io.StringIO()), redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                main.main(['compress', source])

        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Error: Input too large", err.getvalue())
        self.assertFalse(os.path.exists(source + ".huf"))


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for case in (TestFrequencyCounter, TestPriorityQueue, TestTreeBuilder, TestCanonicalCodes,
                 TestBitIO, TestContainerFormat, TestCompressor, TestTracing,
                 TestArchiver, TestCommandLine):
        suite.addTests(loader.loadTestsFromTestCase(case))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    exit(run_tests())
