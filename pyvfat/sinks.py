"""
Consumers of decoded frames.

A sink receives every decoded top level frame through on_frame_decoded(), in
stream order, and one final on_stream_end(reason) call. Sinks own all
accumulated state; decoders never keep anything between events.
"""
import logging
from collections import Counter
from typing import List, Optional

import numpy as np

from pyvfat.bitfields import N_CHANNELS
from pyvfat.scan_header import ScanHeader

logger = logging.getLogger(__name__)


class FrameSink:
    """Base class for frame consumers. Both callbacks do nothing by default."""

    def on_frame_decoded(self, frame):
        pass

    def on_stream_end(self, reason: str):
        pass


class FrameCollector(FrameSink):
    """Keeps every decoded frame in memory."""

    def __init__(self):
        self.frames = []
        self.end_reason: Optional[str] = None

    def on_frame_decoded(self, frame):
        self.frames.append(frame)

    def on_stream_end(self, reason: str):
        self.end_reason = reason


class ChannelOccupancy(FrameSink):
    """
    Per-channel hit counts and data quality counters for GEB or AMC streams.

    Works on any frame type offering iter_vfats(), so threshold scan frames
    can be fed in as well.
    """

    def __init__(self):
        # One accumulator per VFAT2 channel, indexed by channel number
        self.hits = np.zeros(N_CHANNELS, dtype=np.int64)
        # VFAT frames in which the channel did not fire
        self.misses = np.zeros(N_CHANNELS, dtype=np.int64)

        self.events = 0
        self.vfats = 0
        self.mismatched_vfats = 0
        self.vfats_per_event = Counter()
        # position of the VFAT frame within its event
        self.slots = Counter()
        self.chip_ids = Counter()
        self.flags = Counter()
        self.crcs = Counter()
        self.control_nibbles = {"BC": Counter(), "EC": Counter(), "ChipID": Counter()}
        self.end_reason: Optional[str] = None

    def on_frame_decoded(self, frame):
        self.events += 1
        count = 0
        for vfat in frame.iter_vfats():
            self.slots[count] += 1
            count += 1
            self.chip_ids[vfat.chip_id] += 1
            self.flags[vfat.flag] += 1
            self.crcs[vfat.crc] += 1
            self.control_nibbles["BC"][vfat.bc_control] += 1
            self.control_nibbles["EC"][vfat.ec_control] += 1
            self.control_nibbles["ChipID"][vfat.chip_control] += 1
            if vfat.control_mismatch:
                self.mismatched_vfats += 1
            fired = vfat.channel_hits()
            self.hits += fired
            self.misses += ~fired
        self.vfats += count
        self.vfats_per_event[count] += 1

    def on_stream_end(self, reason: str):
        self.end_reason = reason
        logger.debug(f"Occupancy: {self.events} events, {self.vfats} VFAT frames, end: {reason}")

    def occupancy(self) -> np.ndarray:
        """Fraction of VFAT frames in which each channel fired."""
        if self.vfats == 0:
            return np.zeros(N_CHANNELS)
        return self.hits / self.vfats

    def busiest_channels(self, count: int = 10) -> List[int]:
        """Channel indices sorted by decreasing hit count."""
        order = np.argsort(-self.hits, kind="stable")
        return [int(c) for c in order[:count]]


class ThresholdScan(FrameSink):
    """
    Channel response versus threshold (delVT) for a threshold scan.

    delVT values are binned into scan_header.n_bins equal bins over
    [minTh - 0.5, maxTh + 0.5]. For every bin the sink keeps the number of
    frames, the number of frames with any hit, and per channel the number of
    hits (a 128 x n_bins array).
    """

    def __init__(self, scan_header: ScanHeader):
        self.scan_header = scan_header
        self.n_bins = scan_header.n_bins
        self.low, self.high = scan_header.range

        self.entries = np.zeros(self.n_bins, dtype=np.int64)
        self.any_hit = np.zeros(self.n_bins, dtype=np.int64)
        self.channel_counts = np.zeros((N_CHANNELS, self.n_bins), dtype=np.int64)
        self.underflow = 0
        self.overflow = 0
        self.end_reason: Optional[str] = None

    def bin_index(self, del_vt: float) -> Optional[int]:
        """Return the bin holding del_vt, or None outside the scan range."""
        if del_vt < self.low:
            return None
        if del_vt >= self.high:
            return None
        width = (self.high - self.low) / self.n_bins
        return min(int((del_vt - self.low) // width), self.n_bins - 1)

    def bin_centers(self) -> np.ndarray:
        edges = np.linspace(self.low, self.high, self.n_bins + 1)
        return (edges[:-1] + edges[1:]) / 2

    def on_frame_decoded(self, frame):
        for vfat in frame.iter_vfats():
            ibin = self.bin_index(vfat.del_vt)
            if ibin is None:
                if vfat.del_vt < self.low:
                    self.underflow += 1
                else:
                    self.overflow += 1
                continue
            self.entries[ibin] += 1
            if vfat.has_hits:
                self.any_hit[ibin] += 1
            self.channel_counts[:, ibin] += vfat.channel_hits()

    def on_stream_end(self, reason: str):
        self.end_reason = reason
        if self.underflow or self.overflow:
            logger.debug(f"Threshold scan: {self.underflow} underflow, {self.overflow} overflow frames")

    def efficiency(self) -> np.ndarray:
        """Hit fraction per channel and bin; 0 for bins without frames."""
        result = np.zeros(self.channel_counts.shape, dtype=float)
        np.divide(self.channel_counts, self.entries, out=result, where=self.entries > 0)
        return result
