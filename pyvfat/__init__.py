"""Decoder for GEM VFAT2 readout data written as hexadecimal token streams."""

from pyvfat.amc_frame import AMCFrame
from pyvfat.core import (END_CLEAN, END_FAULT, END_TRUNCATED, FORMAT_AMC, FORMAT_GEB,
                         FORMAT_SCAN, EventStreamDecoder, GemDataFile, StreamEnd)
from pyvfat.errors import (DecodeError, EndOfStream, MalformedHeader, MalformedToken,
                           StreamFault, TruncatedFrame, UnreasonableCount)
from pyvfat.geb_frame import GEBFrame
from pyvfat.scan_header import ScanHeader
from pyvfat.sinks import ChannelOccupancy, FrameCollector, FrameSink, ThresholdScan
from pyvfat.tokens import TokenReader
from pyvfat.vfat_frame import ControlBitMismatch, VFATFrame

__version__ = "0.1.0"
