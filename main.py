"""
Командная строка для компрессора Хаффмана.
"""

import argparse
import io
import logging
import sys

from archiver import Archiver
from compressor import CompressionStats, HuffmanCompressor
from errors import HuffmanError
from huffman import ASCII_SYMBOL_SIZE, SYMBOL_SIZE
from tracing import TraceCategory, Tracer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Canonical Huffman compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress notes.txt              # writes notes.txt.huf
  python main.py decompress notes.txt.huf        # writes notes.txt
  python main.py compress -d freq -d code < in > out.huf
  python main.py info notes.txt.huf
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    for name, help_text in (('compress', 'Compress a file'), ('decompress', 'Decompress a file')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('input', nargs='?', help='Input file (stdin if omitted)')
        sub.add_argument('output', nargs='?',
                         help='Output file (stdout for stdin input, suffix convention otherwise)')
        sub.add_argument('-d', '--debug', action='append', default=[], choices=TraceCategory.ALL,
                         help='Print an intermediate table to stderr (repeatable)')

    compress_parser = subparsers.choices['compress']
    compress_parser.add_argument('--ascii', action='store_true',
                                 help='Restrict the alphabet to byte values 0-127')
    compress_parser.add_argument('--stats', action='store_true', help='Print compression statistics')

    info_parser = subparsers.add_parser('info', help='Show the header of a compressed file')
    info_parser.add_argument('input', help='Compressed file')

    return parser


def run(args: argparse.Namespace):
    if args.command == 'info':
        Archiver().describe(args.input)
        return

    tracer = Tracer(args.debug, sys.stderr)
    alphabet_size = ASCII_SYMBOL_SIZE if getattr(args, 'ascii', False) else SYMBOL_SIZE
    compressor = HuffmanCompressor(alphabet_size=alphabet_size, tracer=tracer)

    if args.input is None:
        source = sys.stdin.buffer
        if args.output is None:
            _run_stream(args, compressor, source, sys.stdout.buffer)
        else:
            buffer = io.BytesIO()
            _run_stream(args, compressor, source, buffer)
            with open(args.output, 'wb') as sink:
                sink.write(buffer.getvalue())
        return

    archiver = Archiver(compressor)
    if args.command == 'compress':
        stats = archiver.compress_file(args.input, args.output)
        if args.stats:
            stats.print_stats()
    else:
        archiver.decompress_file(args.input, args.output)


def _run_stream(args, compressor, source, sink):
    if args.command == 'decompress':
        compressor.decompress_stream(source, sink)
    elif args.stats:
        data = source.read()
        compressed = compressor.compress(data)
        sink.write(compressed)
        sink.flush()
        CompressionStats.for_data(data, compressed).print_stats(sys.stderr)
    else:
        compressor.compress_stream(source, sink)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        format='%(asctime)s - %(levelname)s - %(message)s',
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    if not args.command:
        parser.print_help()
        return

    try:
        run(args)
    except (HuffmanError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
