import click
from rich.console import Console
from rich.tree import Tree

from pyvfat.amc_frame import AMCFrame
from pyvfat.core import FORMATS, GemDataFile
from pyvfat.errors import DecodeError
from pyvfat.geb_frame import MAX_VFATS_PER_GEB, GEBFrame
from pyvfat.sinks import FrameSink
from pyvfat.utils import format_bits, make_channel_map


def add_vfat_node(parent, vfat, index, channels=False):
    """
    Add one VFAT2 frame to a rich tree, control bits shown as bit strings.

    Args:
        parent: Tree node to attach to
        vfat: VFATFrame object
        index: Position of the frame within its event
        channels: Whether to show the 128-channel hit map
    """
    style = "red" if vfat.control_mismatch else "bold"
    node = parent.add(f"[{style}]VFAT {index}: ChipID 0x{vfat.chip_id:03x}[/{style}]")
    node.add(f"{format_bits(vfat.bc_control)} BC     0x{vfat.bc:03x}")
    node.add(f"{format_bits(vfat.ec_control)} EC     0x{vfat.ec:02x}")
    node.add(f"{format_bits(vfat.flag)} Flag")
    node.add(f"{format_bits(vfat.chip_control)} ChipID 0x{vfat.chip_id:03x}")
    if vfat.is_scan:
        node.add(f"     bxExp  0x{vfat.bx_exp:04x}")
        node.add(f"     bxNum  0x{vfat.bx_num:02x}")
        node.add(f"     SBit   0x{vfat.sbit:02x}")
    node.add(f"<127:64>:: 0x{vfat.ms_data:016x}")
    node.add(f"<63:0>  :: 0x{vfat.ls_data:016x}")
    if vfat.is_scan:
        node.add(f"     delVT  {vfat.del_vt}")
    node.add(f"     crc    0x{vfat.crc:04x}")
    for mismatch in vfat.mismatches:
        node.add(f"[red]{mismatch.field} control bits {format_bits(mismatch.found)}, "
                 f"expected {format_bits(mismatch.expected)}[/red]")
    if channels:
        node.add(make_channel_map(vfat.channel_hits()))
    return node


def add_geb_node(parent, geb, index, channels=False):
    node = parent.add(f"[bold]GEB {index}: ChamID 0x{geb.chamber_id:03x}, {geb.vfat_count} VFATs[/bold]")
    node.add(f"Header  0x{geb.header:016x}  ZSFlag 0x{geb.zs_flag:06x}")
    for ivfat, vfat in enumerate(geb.vfats):
        add_vfat_node(node, vfat, ivfat, channels)
    node.add(f"Trailer 0x{geb.trailer:016x}  OHcrc 0x{geb.oh_crc:04x} "
             f"OHwCount {geb.oh_word_count} ChamStatus 0x{geb.chamber_status:04x}")
    return node


class FramePrinter(FrameSink):
    """Prints every frame it receives as a tree."""

    def __init__(self, console, channels=False):
        self.console = console
        self.channels = channels
        self.index = 0

    def on_frame_decoded(self, frame):
        tree = Tree(f"[bold yellow]Event {self.index}[/bold yellow]")
        if isinstance(frame, AMCFrame):
            amc_node = tree.add(f"[bold]AMC {frame.amc_number}: LV1ID {frame.lv1_id}, "
                                f"BXID {frame.bx_id}, {frame.dav_count} GEBs[/bold]")
            for name, value in frame.fields().items():
                amc_node.add(f"{name:<20} 0x{value:x}")
            for igeb, geb in enumerate(frame.gebs):
                add_geb_node(amc_node, geb, igeb, self.channels)
        elif isinstance(frame, GEBFrame):
            add_geb_node(tree, frame, 0, self.channels)
        else:
            add_vfat_node(tree, frame, 0, self.channels)
        self.console.print(tree)
        self.index += 1

    def on_stream_end(self, reason):
        if reason != "clean":
            self.console.print(f"[red]Stream ended: {reason}[/red]")


@click.command(name="dump")
@click.argument("filename", type=click.Path(exists=True))
@click.option("--format", "data_format", type=click.Choice(FORMATS), default="geb",
              help="Data layout of the file")
@click.option("--print-first", type=int, default=3, help="Number of events to print")
@click.option("--channels/--no-channels", default=False, help="Show the channel hit map of each VFAT")
@click.option("--max-vfats", type=int, default=MAX_VFATS_PER_GEB, help="Largest VFAT count accepted in a GEB header")
@click.option('--verbose', '-v', is_flag=True, help="Enable verbose output")
@click.pass_context
def dump_command(ctx, filename, data_format, print_first, channels, max_vfats, verbose):
    """Print the first events of a file field by field."""
    # Use either the command-specific verbose flag or the global one
    verbose = verbose or ctx.obj.get('VERBOSE', False)
    console = Console()

    try:
        with GemDataFile(filename, data_format, max_vfats=max_vfats) as data:
            if data.scan_header is not None:
                console.print(str(data.scan_header))
            end = data.run(FramePrinter(console, channels), max_events=print_first)
    except DecodeError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        ctx.exit(1)

    console.print(f"\n[bold]Printed {end.events} events[/bold]")
