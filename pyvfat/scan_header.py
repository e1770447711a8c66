import logging
from typing import Tuple

from pyvfat.errors import EndOfStream, MalformedHeader, StreamFault, TruncatedFrame
from pyvfat.tokens import TokenReader

logger = logging.getLogger(__name__)


class ScanHeader:
    """
    Parses and represents the threshold scan header.

    The header is three decimal integers at the start of a threshold scan
    file: minTh maxTh stepSize. The scan produces
    (maxTh - minTh + 1) / stepSize threshold bins, which must be a positive
    integer.
    """

    def __init__(self, min_th: int, max_th: int, step_size: int):
        self.min_th = min_th
        self.max_th = max_th
        self.step_size = step_size
        self.validate()

    @classmethod
    def from_reader(cls, reader: TokenReader) -> 'ScanHeader':
        """
        Read the scan header from the start of a threshold scan stream.

        Args:
            reader: TokenReader positioned at the start of the stream

        Returns:
            ScanHeader object

        Raises:
            MalformedHeader: If the values do not define an integer bin count
            TruncatedFrame: If the stream ends or fails before all three values
        """
        try:
            min_th = reader.next_int()
        except EndOfStream as e:
            raise TruncatedFrame(f"Threshold scan header missing: {e}") from e

        try:
            max_th = reader.next_int()
            step_size = reader.next_int()
        except (EndOfStream, StreamFault) as e:
            raise TruncatedFrame(f"Threshold scan header incomplete: {e}") from e

        header = cls(min_th, max_th, step_size)
        logger.debug(f"Scan header: minTh {min_th} maxTh {max_th} step {step_size} -> {header.n_bins} bins")
        return header

    def validate(self):
        if self.step_size <= 0:
            raise MalformedHeader(f"Invalid scan step size {self.step_size}, must be positive")

        span = self.max_th - self.min_th + 1
        if span <= 0:
            raise MalformedHeader(f"Invalid scan range: minTh {self.min_th} > maxTh {self.max_th}")
        if span % self.step_size:
            raise MalformedHeader(f"Scan range of {span} values (minTh {self.min_th}, maxTh {self.max_th}) "
                                  f"is not divisible by step size {self.step_size}")

    @property
    def n_bins(self) -> int:
        return (self.max_th - self.min_th + 1) // self.step_size

    @property
    def range(self) -> Tuple[float, float]:
        """Histogram range centred on the integer threshold values"""
        return self.min_th - 0.5, self.max_th + 0.5

    def __str__(self) -> str:
        return f"""Threshold Scan Header:
  minTh:     {self.min_th}
  maxTh:     {self.max_th}
  Step Size: {self.step_size}
  Bins:      {self.n_bins}"""

    def __repr__(self) -> str:
        return f"ScanHeader(min_th={self.min_th}, max_th={self.max_th}, step_size={self.step_size})"
