import logging
import math
import re
from typing import List, Optional, TextIO

from pyvfat.errors import EndOfStream, MalformedToken, StreamFault

logger = logging.getLogger(__name__)

_HEX_TOKEN = re.compile(r"(0[xX])?[0-9a-fA-F]+\Z")
_INT_TOKEN = re.compile(r"[+-]?[0-9]+\Z")
_FLOAT_TOKEN = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?\Z")


class TokenReader:
    """
    Pulls whitespace-delimited tokens out of a text stream.

    The GEM data files carry no markup: a field is identified only by its
    position, so tokens are handed out strictly in order with no lookahead
    and no pushback. The reader buffers at most the current line.

    Once a token fails to parse or the stream raises an I/O error, the reader
    is no longer healthy and every further read raises StreamFault.
    """

    def __init__(self, stream: TextIO, name: Optional[str] = None):
        """
        Initialize a TokenReader.

        Args:
            stream: Text stream (open file, io.StringIO, ...)
            name: Name used in error messages (defaults to stream.name)
        """
        self.stream = stream
        self.name = name or getattr(stream, "name", "<stream>")
        self.tokens_read = 0
        self.line_number = 0

        self._pending: List[str] = []
        self._pos = 0
        self._eof = False
        self._fault = None

    def _fill(self) -> bool:
        """Read lines until a token is pending. Returns False at end of stream."""
        while self._pos >= len(self._pending):
            if self._eof:
                return False
            try:
                line = self.stream.readline()
            except (OSError, UnicodeDecodeError) as e:
                self._fault = f"I/O error after line {self.line_number}: {e}"
                raise StreamFault(f"{self.name}: {self._fault}") from e
            if not line:
                self._eof = True
                return False
            self.line_number += 1
            self._pending = line.split()
            self._pos = 0
        return True

    def _next_token(self) -> str:
        if self._fault is not None:
            raise StreamFault(f"{self.name}: stream unhealthy ({self._fault})")
        if not self._fill():
            raise EndOfStream(f"{self.name}: end of stream after {self.tokens_read} tokens")
        token = self._pending[self._pos]
        self._pos += 1
        self.tokens_read += 1
        return token

    def _malformed(self, token: str, expected: str) -> MalformedToken:
        self._fault = f"malformed token {token!r} at line {self.line_number}"
        return MalformedToken(
            f"{self.name}: token #{self.tokens_read} {token!r} on line {self.line_number} "
            f"is not a valid {expected}")

    def next_hex(self, bits: int = 64) -> int:
        """
        Consume one token as an unsigned hexadecimal integer.

        Args:
            bits: Width of the field; the value must fit in this many bits

        Returns:
            Parsed integer value
        """
        token = self._next_token()
        if not _HEX_TOKEN.match(token):
            raise self._malformed(token, "hexadecimal number")
        value = int(token, 16)
        if value >> bits:
            raise self._malformed(token, f"{bits}-bit hexadecimal word")
        return value

    def next_int(self) -> int:
        """Consume one token as a signed decimal integer."""
        token = self._next_token()
        if not _INT_TOKEN.match(token):
            raise self._malformed(token, "decimal integer")
        return int(token)

    def next_float(self) -> float:
        """Consume one token as a finite floating point number."""
        token = self._next_token()
        if not _FLOAT_TOKEN.match(token):
            raise self._malformed(token, "floating point number")
        value = float(token)
        # 1e999 matches the pattern but overflows to inf
        if not math.isfinite(value):
            raise self._malformed(token, "finite floating point number")
        return value

    def at_end(self) -> bool:
        """
        Check whether the stream holds no further tokens.

        Blank lines are skipped, no token is consumed. An unhealthy reader is
        never reported as being at its end.
        """
        if self._fault is not None:
            return False
        try:
            return not self._fill()
        except StreamFault as e:
            logger.error(str(e))
            return False

    def is_healthy(self) -> bool:
        """Return False once an I/O error or a malformed token has been seen."""
        return self._fault is None

    def __repr__(self) -> str:
        state = "healthy" if self._fault is None else "faulted"
        return f"TokenReader(name={self.name!r}, tokens_read={self.tokens_read}, {state})"
