import logging
from collections import namedtuple
from typing import Iterator, List, Optional

import numpy as np

from pyvfat.bitfields import (BC_FIELDS, BX_NUM_FIELDS, CHIP_ID_FIELDS, CONTROL_BC,
                              CONTROL_CHIP_ID, CONTROL_EC, EC_FIELDS, channel_bit,
                              channel_hits, get_field)
from pyvfat.errors import EndOfStream, StreamFault, TruncatedFrame
from pyvfat.tokens import TokenReader

logger = logging.getLogger(__name__)

ControlBitMismatch = namedtuple("ControlBitMismatch", ["field", "expected", "found"])


class VFATFrame:
    """
    One VFAT2 chip frame: identifiers, 128 channel bits and a CRC.

    Token layout (hex unless noted):

        BC EC [bxExp bxNum] ChipID lsData msData [delVT(float)] CRC

    The bracketed fields are present only in threshold scan data.

    Word layout:
    - BC:     1010 (4 bits) | BC (12 bits)
    - EC:     1100 (4 bits) | EC (8 bits) | Flag (4 bits)
    - ChipID: 1110 (4 bits) | ChipID (12 bits)
    - lsData: channels 0-63, msData: channels 64-127

    A wrong control nibble does not stop decoding; it is recorded in
    `mismatches` and the frame is returned complete.
    """

    def __init__(self):
        """Initialize an empty VFATFrame object"""
        self.bc_word = None
        self.ec_word = None
        self.bx_exp = None
        self.bx_num_word = None
        self.chip_id_word = None
        self.ls_data = None
        self.ms_data = None
        self.del_vt = None
        self.crc = None

        self.is_scan = False
        self.mismatches: List[ControlBitMismatch] = []

    @classmethod
    def from_reader(cls, reader: TokenReader, scan: bool = False) -> 'VFATFrame':
        """
        Decode one VFAT2 frame from a token reader.

        Args:
            reader: TokenReader positioned at the start of the frame
            scan: True for the threshold scan layout (bxExp, bxNum, delVT)

        Returns:
            VFATFrame object

        Raises:
            TruncatedFrame: If the stream ends or fails inside the frame
            StreamFault: If the stream fails before the first word
        """
        frame = cls()
        frame.is_scan = scan

        try:
            frame.bc_word = reader.next_hex(16)
        except EndOfStream as e:
            raise TruncatedFrame(f"VFAT frame missing: {e}") from e

        try:
            frame.ec_word = reader.next_hex(16)
            if scan:
                frame.bx_exp = reader.next_hex(32)
                frame.bx_num_word = reader.next_hex(16)
            frame.chip_id_word = reader.next_hex(16)
            frame.ls_data = reader.next_hex(64)
            frame.ms_data = reader.next_hex(64)
            if scan:
                frame.del_vt = reader.next_float()
            frame.crc = reader.next_hex(16)
        except (EndOfStream, StreamFault) as e:
            raise TruncatedFrame(f"VFAT frame incomplete: {e}") from e

        frame.check_control_bits()
        return frame

    def check_control_bits(self) -> List[ControlBitMismatch]:
        """Compare the three control nibbles with their expected values."""
        self.mismatches = []
        for name, found, expected in (("BC", self.bc_control, CONTROL_BC),
                                      ("EC", self.ec_control, CONTROL_EC),
                                      ("ChipID", self.chip_control, CONTROL_CHIP_ID)):
            if found != expected:
                self.mismatches.append(ControlBitMismatch(name, expected, found))

        if self.mismatches:
            logger.debug(f"Control bit mismatch in VFAT frame (ChipID 0x{self.chip_id:03x}): "
                         + ", ".join(f"{m.field} {m.found:04b} != {m.expected:04b}"
                                     for m in self.mismatches))
        return self.mismatches

    @property
    def control_mismatch(self) -> bool:
        return bool(self.mismatches)

    @property
    def bc_control(self) -> int:
        return get_field(self.bc_word, BC_FIELDS["control"])

    @property
    def bc(self) -> int:
        """Bunch crossing number (12 bits)"""
        return get_field(self.bc_word, BC_FIELDS["bc"])

    @property
    def ec_control(self) -> int:
        return get_field(self.ec_word, EC_FIELDS["control"])

    @property
    def ec(self) -> int:
        """Event counter (8 bits)"""
        return get_field(self.ec_word, EC_FIELDS["ec"])

    @property
    def flag(self) -> int:
        return get_field(self.ec_word, EC_FIELDS["flag"])

    @property
    def chip_control(self) -> int:
        return get_field(self.chip_id_word, CHIP_ID_FIELDS["control"])

    @property
    def chip_id(self) -> int:
        return get_field(self.chip_id_word, CHIP_ID_FIELDS["chip_id"])

    @property
    def bx_num(self) -> Optional[int]:
        if self.bx_num_word is None:
            return None
        return get_field(self.bx_num_word, BX_NUM_FIELDS["bx_num"])

    @property
    def sbit(self) -> Optional[int]:
        if self.bx_num_word is None:
            return None
        return get_field(self.bx_num_word, BX_NUM_FIELDS["sbit"])

    @property
    def has_hits(self) -> bool:
        """True if any of the 128 channels fired."""
        return bool(self.ls_data or self.ms_data)

    def channel(self, index: int) -> int:
        """Return the hit bit (0 or 1) of one channel, index in [0, 128)."""
        return channel_bit(self.ls_data, self.ms_data, index)

    def channel_hits(self) -> np.ndarray:
        """Return all 128 channel bits as a boolean NumPy array."""
        return channel_hits(self.ls_data, self.ms_data)

    def iter_vfats(self) -> Iterator['VFATFrame']:
        yield self

    def __str__(self) -> str:
        """Return string representation of the frame"""
        lines = [
            "VFAT2 Frame:",
            f"  BC:        {self.bc_control:04b} 0x{self.bc:03x}",
            f"  EC:        {self.ec_control:04b} 0x{self.ec:02x}  Flag {self.flag:04b}",
        ]
        if self.is_scan:
            lines.append(f"  bxExp:     0x{self.bx_exp:04x}")
            lines.append(f"  bxNum:     0x{self.bx_num:02x}  SBit 0x{self.sbit:02x}")
        lines += [
            f"  ChipID:    {self.chip_control:04b} 0x{self.chip_id:03x}",
            f"  <127:64>:  0x{self.ms_data:016x}",
            f"  <63:0>:    0x{self.ls_data:016x}",
        ]
        if self.is_scan:
            lines.append(f"  delVT:     {self.del_vt}")
        lines.append(f"  CRC:       0x{self.crc:04x}")
        if self.mismatches:
            lines.append("  Control bit mismatch: " + ", ".join(m.field for m in self.mismatches))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (f"VFATFrame(chip_id=0x{self.chip_id:03x}, bc={self.bc}, ec={self.ec}, "
                f"control_mismatch={self.control_mismatch})")
