import logging

import click

from pyvfat import __version__
from pyvfat.cli.dump import dump_command
from pyvfat.cli.info import info_command
from pyvfat.cli.scan import scan_command


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """GEM VFAT2 data file inspection toolkit."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format='%(levelname)s: %(message)s')

    # Create a context object to pass data between commands
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose


# Register commands with the CLI
cli.add_command(info_command)
cli.add_command(dump_command)
cli.add_command(scan_command)


# Entry point for the CLI
def main():
    """Entry point for the CLI when installed via pip."""
    cli(prog_name="pyvfat")


if __name__ == "__main__":
    main()
