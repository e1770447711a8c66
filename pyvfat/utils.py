def format_bits(value, width=4):
    """
    Format an integer as a fixed-width bit string, e.g. format_bits(0xA) -> '1010'.

    Args:
        value: Integer to format
        width: Number of bits to show

    Returns:
        String of '0' and '1' characters
    """
    return format(value & ((1 << width) - 1), f"0{width}b")


def make_channel_map(hits, per_line=32, title=None):
    """
    Create a formatted map of channel hit bits.

    Args:
        hits: Sequence of 128 channel bits (channel 0 first)
        per_line: Number of channels per output line
        title: Optional title to display before the map

    Returns:
        String with one line per group of channels, '|' for a hit and '.' otherwise
    """
    dump = []

    if title:
        dump.append(f"--- {title} ---")

    for start in range(0, len(hits), per_line):
        chunk = hits[start:start + per_line]
        marks = ''.join('|' if bit else '.' for bit in chunk)
        dump.append(f"  {start:>3}-{start + len(chunk) - 1:<3}  {marks}")
    return '\n'.join(dump)
