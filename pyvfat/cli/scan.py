import click
from rich import box
from rich.console import Console
from rich.table import Table

from pyvfat.core import FORMAT_SCAN, GemDataFile
from pyvfat.errors import DecodeError
from pyvfat.sinks import ThresholdScan


@click.command(name="scan")
@click.argument("filename", type=click.Path(exists=True))
@click.option("--max-events", type=int, default=None, help="Stop after this many events")
@click.option("--channel", "-c", type=int, multiple=True, help="Show the full scan curve of a channel")
@click.option('--verbose', '-v', is_flag=True, help="Enable verbose output")
@click.pass_context
def scan_command(ctx, filename, max_events, channel, verbose):
    """Summarize a threshold scan file."""
    # Use either the command-specific verbose flag or the global one
    verbose = verbose or ctx.obj.get('VERBOSE', False)
    console = Console()

    try:
        with GemDataFile(filename, FORMAT_SCAN) as data:
            header = data.scan_header
            scan = ThresholdScan(header)
            end = data.run(scan, max_events)
    except DecodeError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        ctx.exit(1)

    table = Table(title=f"Threshold scan: {filename}", box=box.DOUBLE)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("minTh", str(header.min_th))
    table.add_row("maxTh", str(header.max_th))
    table.add_row("Step size", str(header.step_size))
    table.add_row("Bins", str(header.n_bins))
    table.add_row("Events", str(end.events))
    table.add_row("Outside range", f"{scan.underflow} below, {scan.overflow} above")
    table.add_row("End of stream", end.reason)
    console.print(table)

    centers = scan.bin_centers()
    efficiency = scan.efficiency()

    summary = Table(title="Events per threshold bin", box=box.SIMPLE)
    summary.add_column("delVT", style="cyan")
    summary.add_column("Events", style="green")
    summary.add_column("With hits", style="yellow")
    for ibin in range(scan.n_bins):
        if scan.entries[ibin]:
            summary.add_row(f"{centers[ibin]:g}", str(scan.entries[ibin]), str(scan.any_hit[ibin]))
    console.print(summary)

    for c in channel:
        if not 0 <= c < len(efficiency):
            console.print(f"[yellow]Warning: Channel {c} out of range (0-{len(efficiency) - 1})[/yellow]")
            continue
        curve = Table(title=f"Threshold scan for channel {c}", box=box.SIMPLE)
        curve.add_column("delVT", style="cyan")
        curve.add_column("Hits", style="green")
        curve.add_column("Efficiency", style="yellow")
        for ibin in range(scan.n_bins):
            curve.add_row(f"{centers[ibin]:g}", str(scan.channel_counts[c, ibin]), f"{efficiency[c, ibin]:.3f}")
        console.print(curve)
