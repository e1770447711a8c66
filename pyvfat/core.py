import logging
from collections import namedtuple
from typing import Iterator, Optional, TextIO, Union

from pyvfat.amc_frame import MAX_GEBS_PER_AMC, AMCFrame
from pyvfat.errors import DecodeError, StreamFault, TruncatedFrame
from pyvfat.geb_frame import MAX_VFATS_PER_GEB, GEBFrame
from pyvfat.scan_header import ScanHeader
from pyvfat.tokens import TokenReader
from pyvfat.vfat_frame import VFATFrame

logger = logging.getLogger(__name__)

FORMAT_GEB = "geb"
FORMAT_SCAN = "scan"
FORMAT_AMC = "amc"
FORMATS = (FORMAT_GEB, FORMAT_SCAN, FORMAT_AMC)

END_CLEAN = "clean"
END_FAULT = "fault"
END_TRUNCATED = "truncated"

StreamEnd = namedtuple("StreamEnd", ["reason", "events", "error"])

Frame = Union[GEBFrame, VFATFrame, AMCFrame]


class EventStreamDecoder:
    """
    Pull decoder for a stream of GEM events.

    Each call to decode_next() decodes exactly one top level unit:
    - "geb":  one GEB frame (header, VFAT2 frames, trailer)
    - "scan": one threshold scan VFAT2 frame (after the scan header)
    - "amc":  one AMC frame (headers, GEB frames, trailers)

    The stream only moves forward. A frame that cannot be finished raises
    TruncatedFrame and nothing of it is returned.
    """

    def __init__(self, reader: TokenReader, data_format: str = FORMAT_GEB,
                 max_vfats: int = MAX_VFATS_PER_GEB, max_gebs: int = MAX_GEBS_PER_AMC):
        """
        Initialize an EventStreamDecoder.

        Args:
            reader: TokenReader that this decoder owns for its lifetime
            data_format: One of "geb", "scan", "amc"
            max_vfats: Sanity bound for the VFAT count in GEB headers
            max_gebs: Sanity bound for the GEB count in AMC headers
        """
        if data_format not in FORMATS:
            raise ValueError(f"Unknown data format {data_format!r}, expected one of {FORMATS}")
        self.reader = reader
        self.data_format = data_format
        self.max_vfats = max_vfats
        self.max_gebs = max_gebs

        self.scan_header: Optional[ScanHeader] = None
        self.events_decoded = 0
        self._header_error = None

    def read_scan_header(self) -> ScanHeader:
        """Decode the threshold scan header. Only valid once, before any event."""
        if self.data_format != FORMAT_SCAN:
            raise ValueError(f"No scan header in {self.data_format!r} streams")
        if self.scan_header is not None:
            raise ValueError("Scan header has already been read")
        self._check_healthy()
        try:
            self.scan_header = ScanHeader.from_reader(self.reader)
        except DecodeError as e:
            self._header_error = e
            raise
        return self.scan_header

    def _check_healthy(self):
        if not self.reader.is_healthy():
            raise StreamFault(f"{self.reader.name}: stream is not readable "
                              f"(after {self.events_decoded} events)")

    def decode_next(self) -> Optional[Frame]:
        """
        Decode the next event.

        Returns:
            The decoded frame, or None at a clean end of stream

        Raises:
            StreamFault: If the stream is unhealthy before the cycle starts
            TruncatedFrame: If the stream ends or fails inside the event
            MalformedToken, UnreasonableCount, MalformedHeader: On bad data
        """
        if self._header_error is not None:
            raise StreamFault(f"{self.reader.name}: no events without a valid scan header") from self._header_error
        if self.data_format == FORMAT_SCAN and self.scan_header is None:
            self.read_scan_header()

        self._check_healthy()
        if self.reader.at_end():
            logger.debug(f"End of stream after {self.events_decoded} events")
            return None
        self._check_healthy()

        if self.data_format == FORMAT_GEB:
            frame = GEBFrame.from_reader(self.reader, max_vfats=self.max_vfats)
        elif self.data_format == FORMAT_SCAN:
            frame = VFATFrame.from_reader(self.reader, scan=True)
        else:
            frame = AMCFrame.from_reader(self.reader, max_gebs=self.max_gebs, max_vfats=self.max_vfats)

        self.events_decoded += 1
        return frame

    def __iter__(self) -> Iterator[Frame]:
        while True:
            frame = self.decode_next()
            if frame is None:
                return
            yield frame

    def run(self, sink, max_events: Optional[int] = None) -> StreamEnd:
        """
        Feed decoded frames to a sink until the stream ends or fails.

        sink.on_frame_decoded() is called for every frame in stream order,
        then sink.on_stream_end() exactly once with "clean", "fault" or
        "truncated". If the sink itself raises, on_stream_end("fault") is
        still called and the exception propagates.

        Args:
            sink: Object implementing the FrameSink interface
            max_events: Stop after this many events (None for all)

        Returns:
            StreamEnd(reason, events, error)
        """
        count = 0
        # stays "fault" unless the loop finishes or a decode error is classified
        reason = END_FAULT
        error = None

        try:
            while max_events is None or count < max_events:
                frame = self.decode_next()
                if frame is None:
                    break
                sink.on_frame_decoded(frame)
                count += 1
            reason = END_CLEAN
        except TruncatedFrame as e:
            logger.warning(f"Truncated event after {count} complete events: {e}")
            reason, error = END_TRUNCATED, e
        except DecodeError as e:
            logger.error(f"Decoding stopped after {count} events: {e}")
            reason, error = END_FAULT, e
        finally:
            sink.on_stream_end(reason)

        return StreamEnd(reason, count, error)


class GemDataFile:
    """
    Owns a GEM data file and the decoder reading it.

    Use as a context manager so that the file is closed on every exit path:

        with GemDataFile("run.dat") as data:
            for geb in data.events():
                ...
    """

    def __init__(self, filename: str, data_format: str = FORMAT_GEB,
                 max_vfats: int = MAX_VFATS_PER_GEB, max_gebs: int = MAX_GEBS_PER_AMC):
        """
        Open a GEM data file.

        Args:
            filename: Path to the text data file
            data_format: One of "geb", "scan", "amc"
            max_vfats: Sanity bound for the VFAT count in GEB headers
            max_gebs: Sanity bound for the GEB count in AMC headers
        """
        self.filename = filename
        self.file: TextIO = open(filename, "r")
        try:
            self.reader = TokenReader(self.file, name=filename)
            self.decoder = EventStreamDecoder(self.reader, data_format, max_vfats, max_gebs)
            if data_format == FORMAT_SCAN:
                self.decoder.read_scan_header()
        except Exception:
            self.file.close()
            raise

    @property
    def data_format(self) -> str:
        return self.decoder.data_format

    @property
    def scan_header(self) -> Optional[ScanHeader]:
        return self.decoder.scan_header

    def events(self) -> Iterator[Frame]:
        return iter(self.decoder)

    def run(self, sink, max_events: Optional[int] = None) -> StreamEnd:
        return self.decoder.run(sink, max_events)

    def close(self):
        if not self.file.closed:
            self.file.close()

    def __enter__(self):
        """Support for context manager protocol"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the file when exiting context"""
        self.close()

    def __repr__(self) -> str:
        return f"GemDataFile({self.filename!r}, format={self.data_format!r}, events={self.decoder.events_decoded})"
