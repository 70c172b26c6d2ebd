"""
casserve CLI - Command line interface for casserve.

Usage:
    casserve serve --root /var/lib/casserve --port 8080
    casserve content put ./file.bin
    casserve ref create head sha256-...
    casserve ref swap head sha256-old... sha256-new...
"""

import click

from .commands import content_group, ref_group
from .serve import serve_command


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """casserve - content-addressed blobs and compare-and-swap refs."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Add subcommands
cli.add_command(serve_command, name="serve")
cli.add_command(ref_group, name="ref")
cli.add_command(content_group, name="content")


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
