import logging
from typing import Iterator, List

from pyvfat.bitfields import (AMC_HEADER1_FIELDS, AMC_HEADER2_FIELDS, AMC_HEADER3_FIELDS,
                              AMC_TRAILER1_FIELDS, AMC_TRAILER2_FIELDS, decode_word, get_field)
from pyvfat.errors import EndOfStream, StreamFault, TruncatedFrame, UnreasonableCount
from pyvfat.geb_frame import MAX_VFATS_PER_GEB, GEBFrame
from pyvfat.tokens import TokenReader
from pyvfat.vfat_frame import VFATFrame

logger = logging.getLogger(__name__)

MAX_GEBS_PER_AMC = 24


class AMCFrame:
    """
    Top level GEM readout frame as sent by one AMC.

    Token order:

        header1 header2 header3 [GEB frame]*DAVCount trailer2 trailer1

    - header1: AmcNo (4) | 0000 (4) | LV1ID (24) | BXID (12) | DataLgth (20)
    - header2: User (32) | OrN (16) | BoardID (16)
    - header3: DAVList (24) | BufStat (24) | DAVCount (5) | FormatVer (3) | MP7BordStat (8)
    - trailer2: EventStat (32) | GEBerrFlag (24) | unused (8)
    - trailer1: crc (32) | LV1IDT (8) | 0000 (4) | DataLgth (20)

    Header and trailer fields are diagnostics only; none of them is checked
    against the GEB frames.
    """

    def __init__(self):
        """Initialize an empty AMCFrame object"""
        self.header1 = None
        self.header2 = None
        self.header3 = None
        self.gebs: List[GEBFrame] = []
        self.trailer2 = None
        self.trailer1 = None

    @classmethod
    def from_reader(cls, reader: TokenReader, max_gebs: int = MAX_GEBS_PER_AMC,
                    max_vfats: int = MAX_VFATS_PER_GEB) -> 'AMCFrame':
        """
        Decode an AMC frame with all of its GEB frames.

        Args:
            reader: TokenReader positioned at the first header word
            max_gebs: Largest DAVCount accepted from header3
            max_vfats: Largest VFAT count accepted from each GEB header

        Returns:
            AMCFrame object
        """
        amc = cls()

        try:
            amc.header1 = reader.next_hex(64)
        except EndOfStream as e:
            raise TruncatedFrame(f"AMC header missing: {e}") from e

        try:
            amc.header2 = reader.next_hex(64)
            amc.header3 = reader.next_hex(64)
        except (EndOfStream, StreamFault) as e:
            raise TruncatedFrame(f"AMC header incomplete: {e}") from e

        count = amc.dav_count
        if count > max_gebs:
            raise UnreasonableCount(f"AMC header3 0x{amc.header3:016x} announces {count} GEB frames, "
                                    f"limit is {max_gebs}")

        logger.debug(f"AMC {amc.amc_number} LV1ID {amc.lv1_id}: {count} GEB frames")

        for igeb in range(count):
            try:
                amc.gebs.append(GEBFrame.from_reader(reader, max_vfats=max_vfats))
            except (TruncatedFrame, StreamFault) as e:
                raise TruncatedFrame(f"AMC frame truncated in GEB {igeb} of {count}: {e}") from e

        try:
            amc.trailer2 = reader.next_hex(64)
            amc.trailer1 = reader.next_hex(64)
        except (EndOfStream, StreamFault) as e:
            raise TruncatedFrame(f"AMC trailer incomplete: {e}") from e

        return amc

    @property
    def amc_number(self) -> int:
        return get_field(self.header1, AMC_HEADER1_FIELDS["amc_number"])

    @property
    def lv1_id(self) -> int:
        return get_field(self.header1, AMC_HEADER1_FIELDS["lv1_id"])

    @property
    def bx_id(self) -> int:
        return get_field(self.header1, AMC_HEADER1_FIELDS["bx_id"])

    @property
    def board_id(self) -> int:
        return get_field(self.header2, AMC_HEADER2_FIELDS["board_id"])

    @property
    def dav_count(self) -> int:
        """Number of GEB frames in this AMC frame"""
        return get_field(self.header3, AMC_HEADER3_FIELDS["dav_count"])

    @property
    def crc(self) -> int:
        return get_field(self.trailer1, AMC_TRAILER1_FIELDS["crc"])

    def fields(self) -> dict:
        """Decode every header and trailer field into one dictionary."""
        result = {}
        for word, table in ((self.header1, AMC_HEADER1_FIELDS),
                            (self.header2, AMC_HEADER2_FIELDS),
                            (self.header3, AMC_HEADER3_FIELDS),
                            (self.trailer2, AMC_TRAILER2_FIELDS),
                            (self.trailer1, AMC_TRAILER1_FIELDS)):
            result.update(decode_word(word, table))
        return result

    @property
    def control_mismatch(self) -> bool:
        return any(geb.control_mismatch for geb in self.gebs)

    def iter_vfats(self) -> Iterator[VFATFrame]:
        for geb in self.gebs:
            yield from geb.vfats

    def __str__(self) -> str:
        return "AMC Frame:\n" + "\n".join(f"  {name:<20} 0x{value:x}" for name, value in self.fields().items())

    def __repr__(self) -> str:
        return f"AMCFrame(amc_number={self.amc_number}, lv1_id={self.lv1_id}, gebs={len(self.gebs)})"
