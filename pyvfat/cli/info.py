import click
from rich import box
from rich.console import Console
from rich.table import Table

from pyvfat.amc_frame import MAX_GEBS_PER_AMC
from pyvfat.bitfields import CONTROL_BC, CONTROL_CHIP_ID, CONTROL_EC
from pyvfat.core import FORMATS, GemDataFile
from pyvfat.errors import DecodeError
from pyvfat.geb_frame import MAX_VFATS_PER_GEB
from pyvfat.sinks import ChannelOccupancy
from pyvfat.utils import format_bits


@click.command(name="info")
@click.argument("filename", type=click.Path(exists=True))
@click.option("--format", "data_format", type=click.Choice(FORMATS), default="geb",
              help="Data layout of the file")
@click.option("--max-vfats", type=int, default=MAX_VFATS_PER_GEB, help="Largest VFAT count accepted in a GEB header")
@click.option("--max-gebs", type=int, default=MAX_GEBS_PER_AMC, help="Largest GEB count accepted in an AMC header")
@click.option("--max-events", type=int, default=None, help="Stop after this many events")
@click.option("--top", type=int, default=10, help="Number of busiest channels to list")
@click.option('--verbose', '-v', is_flag=True, help="Enable verbose output")
@click.pass_context
def info_command(ctx, filename, data_format, max_vfats, max_gebs, max_events, top, verbose):
    """Decode a whole file and show data quality statistics."""
    # Use either the command-specific verbose flag or the global one
    verbose = verbose or ctx.obj.get('VERBOSE', False)
    console = Console()

    try:
        with GemDataFile(filename, data_format, max_vfats=max_vfats, max_gebs=max_gebs) as data:
            stats = ChannelOccupancy()
            end = data.run(stats, max_events)
    except DecodeError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        ctx.exit(1)

    table = Table(title=f"GEM data file: {filename}", box=box.DOUBLE)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Format", data_format)
    table.add_row("Events", str(stats.events))
    table.add_row("VFAT frames", str(stats.vfats))
    table.add_row("Control bit mismatches", str(stats.mismatched_vfats))
    table.add_row("Chip IDs", str(len(stats.chip_ids)))
    end_style = "green" if end.reason == "clean" else "red"
    table.add_row("End of stream", f"[{end_style}]{end.reason}[/{end_style}]")
    if end.error is not None:
        table.add_row("Error", f"[red]{end.error}[/red]")
    console.print(table)

    if stats.vfats == 0:
        return

    # Control nibble distributions
    nibbles = Table(title="Control bits", box=box.SIMPLE)
    nibbles.add_column("Word", style="cyan")
    nibbles.add_column("Expected", style="green")
    nibbles.add_column("Seen (count)", style="yellow")
    for name, expected in (("BC", CONTROL_BC), ("EC", CONTROL_EC), ("ChipID", CONTROL_CHIP_ID)):
        seen = ", ".join(f"{format_bits(v)} ({n})" for v, n in sorted(stats.control_nibbles[name].items()))
        nibbles.add_row(name, format_bits(expected), seen)
    console.print(nibbles)

    chips = Table(title="VFAT frames per chip", box=box.SIMPLE)
    chips.add_column("ChipID", style="cyan")
    chips.add_column("Frames", style="green")
    for chip_id, count in stats.chip_ids.most_common(top):
        chips.add_row(f"0x{chip_id:03x}", str(count))
    console.print(chips)

    occupancy = stats.occupancy()
    channels = Table(title="Busiest channels", box=box.SIMPLE)
    channels.add_column("Channel", style="cyan")
    channels.add_column("Hits", style="green")
    channels.add_column("Occupancy", style="yellow")
    for channel in stats.busiest_channels(top):
        channels.add_row(str(channel), str(stats.hits[channel]), f"{occupancy[channel]:.3f}")
    console.print(channels)
