"""
Bit layouts of the GEM readout words.

Every field is described once, as a (mask, shift) pair, in the tables below;
decoders never compute masks at the call site.
"""
from collections import namedtuple
from typing import Dict

import numpy as np

Field = namedtuple("Field", ["mask", "shift"])

# Expected control nibbles of the VFAT2 data words
CONTROL_BC = 0b1010
CONTROL_EC = 0b1100
CONTROL_CHIP_ID = 0b1110

N_CHANNELS = 128
WORD_CHANNELS = 64

# VFAT2 words (16 bits)
BC_FIELDS = {
    "control": Field(0xF000, 12),
    "bc":      Field(0x0FFF, 0),
}

EC_FIELDS = {
    "control": Field(0xF000, 12),
    "ec":      Field(0x0FF0, 4),
    "flag":    Field(0x000F, 0),
}

CHIP_ID_FIELDS = {
    "control": Field(0xF000, 12),
    "chip_id": Field(0x0FFF, 0),
}

# Threshold scan only: event number in the high byte, S-bits in the low byte
BX_NUM_FIELDS = {
    "bx_num": Field(0xFF00, 8),
    "sbit":   Field(0x00FF, 0),
}

# GEB (OptoHybrid) words (64 bits)
GEB_HEADER_FIELDS = {
    "zs_flag":    Field(0xFFFFFF0000000000, 40),
    "chamber_id": Field(0x000000FFF0000000, 28),
    "vfat_count": Field(0x000000000FFFFFFF, 0),
}

GEB_TRAILER_FIELDS = {
    "oh_crc":         Field(0xFFFF000000000000, 48),
    "oh_word_count":  Field(0x0000FFFF00000000, 32),
    "chamber_status": Field(0x00000000FFFF0000, 16),
}

# AMC words (64 bits)
AMC_HEADER1_FIELDS = {
    "amc_number":  Field(0xF000000000000000, 60),
    "lv1_id":      Field(0x00FFFFFF00000000, 32),
    "bx_id":       Field(0x00000000FFF00000, 20),
    "data_length": Field(0x00000000000FFFFF, 0),
}

AMC_HEADER2_FIELDS = {
    "user":         Field(0xFFFFFFFF00000000, 32),
    "orbit_number": Field(0x00000000FFFF0000, 16),
    "board_id":     Field(0x000000000000FFFF, 0),
}

AMC_HEADER3_FIELDS = {
    "dav_list":         Field(0xFFFFFF0000000000, 40),
    "buffer_status":    Field(0x000000FFFFFF0000, 16),
    "dav_count":        Field(0x000000000000F800, 11),
    "format_version":   Field(0x0000000000000700, 8),
    "mp7_board_status": Field(0x00000000000000FF, 0),
}

AMC_TRAILER2_FIELDS = {
    "event_status":    Field(0xFFFFFFFF00000000, 32),
    "geb_error_flags": Field(0x00000000FFFFFF00, 8),
}

AMC_TRAILER1_FIELDS = {
    "crc":                 Field(0xFFFFFFFF00000000, 32),
    "lv1_id_trailer":      Field(0x00000000FF000000, 24),
    "data_length_trailer": Field(0x00000000000FFFFF, 0),
}


def extract(word: int, mask: int, shift: int) -> int:
    """Return the bits of word selected by mask, shifted down by shift."""
    return (word & mask) >> shift


def get_field(word: int, field: Field) -> int:
    return extract(word, field.mask, field.shift)


def decode_word(word: int, fields: Dict[str, Field]) -> Dict[str, int]:
    """
    Split a word into all fields of a layout table.

    Args:
        word: Raw word
        fields: One of the *_FIELDS tables

    Returns:
        Dictionary mapping field names to values
    """
    return {name: get_field(word, field) for name, field in fields.items()}


def channel_bit(ls_data: int, ms_data: int, channel: int) -> int:
    """
    Read one channel bit of a VFAT2 frame.

    Channels 0-63 live in the low word, channels 64-127 in the high word.

    Args:
        ls_data: Low 64-bit channel word
        ms_data: High 64-bit channel word
        channel: Channel index in [0, 128)

    Returns:
        0 or 1
    """
    if not 0 <= channel < N_CHANNELS:
        raise IndexError(f"Channel {channel} out of range (0-{N_CHANNELS - 1})")
    if channel < WORD_CHANNELS:
        return (ls_data >> channel) & 0x1
    return (ms_data >> (channel - WORD_CHANNELS)) & 0x1


_SHIFTS = np.arange(WORD_CHANNELS, dtype=np.uint64)


def channel_hits(ls_data: int, ms_data: int) -> np.ndarray:
    """Unpack both channel words into a boolean array of 128 channels."""
    words = np.array([ls_data, ms_data], dtype=np.uint64)
    bits = (words[:, np.newaxis] >> _SHIFTS) & np.uint64(1)
    return bits.reshape(N_CHANNELS).astype(bool)
