import logging
from typing import Iterator, List

from pyvfat.bitfields import GEB_HEADER_FIELDS, GEB_TRAILER_FIELDS, get_field
from pyvfat.errors import EndOfStream, StreamFault, TruncatedFrame, UnreasonableCount
from pyvfat.tokens import TokenReader
from pyvfat.vfat_frame import VFATFrame

logger = logging.getLogger(__name__)

# A GEB carries 24 VFAT2 chips; anything far beyond that is a corrupted header
MAX_VFATS_PER_GEB = 1024


class GEBFrame:
    """
    GEM Electronics Board (chamber) frame.

    Structure:
    - Header (64 bits):  ZSFlag (24 bits) | ChamID (12 bits) | VFAT count (28 bits)
    - VFAT2 frames, as many as the header announces
    - Trailer (64 bits): OHcrc (16 bits) | OHwCount (16 bits) | ChamStatus (16 bits) | reserved (16 bits)
    """

    def __init__(self):
        """Initialize an empty GEBFrame object"""
        self.header = None
        self.trailer = None
        self.vfats: List[VFATFrame] = []

    @classmethod
    def from_reader(cls, reader: TokenReader, max_vfats: int = MAX_VFATS_PER_GEB,
                    scan: bool = False) -> 'GEBFrame':
        """
        Decode a GEB frame with all of its VFAT2 frames.

        Args:
            reader: TokenReader positioned at the GEB header
            max_vfats: Largest VFAT count accepted from the header
            scan: Decode the VFAT2 frames with the threshold scan layout

        Returns:
            GEBFrame object

        Raises:
            UnreasonableCount: If the header announces more than max_vfats frames
            TruncatedFrame: If the stream ends or fails inside the frame
        """
        geb = cls()

        try:
            geb.header = reader.next_hex(64)
        except EndOfStream as e:
            raise TruncatedFrame(f"GEB header missing: {e}") from e

        count = geb.vfat_count
        if count > max_vfats:
            raise UnreasonableCount(
                f"GEB header 0x{geb.header:016x} announces {count} VFAT frames, "
                f"limit is {max_vfats}")

        logger.debug(f"GEB header 0x{geb.header:016x}: ChamID 0x{geb.chamber_id:03x}, {count} VFATs")

        for ivfat in range(count):
            try:
                geb.vfats.append(VFATFrame.from_reader(reader, scan=scan))
            except (TruncatedFrame, StreamFault) as e:
                raise TruncatedFrame(f"GEB frame truncated in VFAT {ivfat} of {count}: {e}") from e

        try:
            geb.trailer = reader.next_hex(64)
        except (EndOfStream, StreamFault) as e:
            raise TruncatedFrame(f"GEB trailer missing after {count} VFAT frames: {e}") from e

        return geb

    @property
    def zs_flag(self) -> int:
        return get_field(self.header, GEB_HEADER_FIELDS["zs_flag"])

    @property
    def chamber_id(self) -> int:
        return get_field(self.header, GEB_HEADER_FIELDS["chamber_id"])

    @property
    def vfat_count(self) -> int:
        """Number of VFAT2 frames announced by the header"""
        return get_field(self.header, GEB_HEADER_FIELDS["vfat_count"])

    @property
    def oh_crc(self) -> int:
        return get_field(self.trailer, GEB_TRAILER_FIELDS["oh_crc"])

    @property
    def oh_word_count(self) -> int:
        return get_field(self.trailer, GEB_TRAILER_FIELDS["oh_word_count"])

    @property
    def chamber_status(self) -> int:
        return get_field(self.trailer, GEB_TRAILER_FIELDS["chamber_status"])

    @property
    def control_mismatch(self) -> bool:
        return any(vfat.control_mismatch for vfat in self.vfats)

    def iter_vfats(self) -> Iterator[VFATFrame]:
        return iter(self.vfats)

    def __str__(self) -> str:
        """Return string representation of the GEB header and trailer"""
        return f"""GEB Frame:
  Header:         0x{self.header:016x}
  ZS Flag:        0x{self.zs_flag:06x}
  Chamber ID:     0x{self.chamber_id:03x}
  VFAT Count:     {self.vfat_count}
  Trailer:        0x{self.trailer:016x}
  OH CRC:         0x{self.oh_crc:04x}
  OH Word Count:  {self.oh_word_count}
  Chamber Status: 0x{self.chamber_status:04x}"""

    def __repr__(self) -> str:
        return f"GEBFrame(chamber_id=0x{self.chamber_id:03x}, vfats={len(self.vfats)})"
