import io

from pyvfat.tokens import TokenReader


def vfat_words(bc=0x123, ec=0x45, flag=0x3, chip_id=0xabc, ls_data=0, ms_data=0, crc=0xbeef,
               bc_control=0xA, ec_control=0xC, chip_control=0xE,
               scan=False, bx_exp=0x1234, bx_num=0x0502, del_vt=0.0):
    """Build the tokens of one VFAT2 frame."""
    tokens = [f"{(bc_control << 12) | bc:04x}",
              f"{(ec_control << 12) | (ec << 4) | flag:04x}"]
    if scan:
        tokens += [f"{bx_exp:x}", f"{bx_num:04x}"]
    tokens += [f"{(chip_control << 12) | chip_id:04x}", f"{ls_data:x}", f"{ms_data:x}"]
    if scan:
        tokens.append(repr(float(del_vt)))
    tokens.append(f"{crc:04x}")
    return tokens


def geb_header(count, chamber_id=0x0a5, zs_flag=0):
    return (zs_flag << 40) | (chamber_id << 28) | count


def geb_trailer(oh_crc=0x1111, oh_word_count=14, chamber_status=0x2):
    return (oh_crc << 48) | (oh_word_count << 32) | (chamber_status << 16)


def geb_words(vfats, chamber_id=0x0a5, zs_flag=0, trailer=None):
    """Build the tokens of one GEB frame holding the given VFAT token lists."""
    tokens = [f"{geb_header(len(vfats), chamber_id, zs_flag):016x}"]
    for vfat in vfats:
        tokens += vfat
    tokens.append(f"{geb_trailer() if trailer is None else trailer:016x}")
    return tokens


def as_text(tokens, per_line=6):
    lines = [" ".join(tokens[i:i + per_line]) for i in range(0, len(tokens), per_line)]
    return "\n".join(lines) + "\n"


def make_reader(tokens):
    return TokenReader(io.StringIO(as_text(tokens)), name="test")

