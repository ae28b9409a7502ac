"""
Исключения кодека Хаффмана.
"""


class HuffmanError(Exception):
    pass


class MalformedHeader(HuffmanError, ValueError):
    """Compressed input is truncated or its code table is not a valid canonical code."""


class CapacityExceeded(HuffmanError, RuntimeError):
    """An internal sizing invariant was violated."""


class UnknownSymbolEncoding(HuffmanError, RuntimeError):
    def __init__(self, symbol: int):
        super().__init__(f"No code for symbol 0x{symbol:02x}")
        self.symbol = symbol


class StreamError(HuffmanError, OSError):
    pass


class UnrepresentableHeader(HuffmanError, ValueError):
    """Header fields do not fit the container layout."""
