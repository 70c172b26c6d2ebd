"""
casserve client commands - read and write refs and content on a running server.

Usage:
    casserve ref get head
    casserve ref create head sha256-...
    casserve ref swap head sha256-old... sha256-new...
    casserve content put ./file.bin
    casserve content get sha256-... -o ./file.bin
"""

import click

from ..client import StoreClient
from ..errors import AlreadyExists, Mismatch, StoreError
from ..keys import content_key_for

DEFAULT_URL = "http://localhost:8080"

url_option = click.option(
    "--url",
    envvar="CASSERVE_URL",
    default=DEFAULT_URL,
    show_default=True,
    help="casserve server URL",
)


def _open_client(url: str) -> StoreClient:
    return StoreClient(url)


@click.group()
@url_option
@click.pass_context
def ref_group(ctx, url):
    """Read and conditionally write refs."""
    ctx.obj = url


@ref_group.command("get")
@click.argument("name")
@click.pass_obj
def ref_get(url, name):
    """Print the current value of NAME."""
    with _open_client(url) as client:
        try:
            value = client.get_ref(name)
        except StoreError as e:
            raise click.ClickException(str(e))
    click.echo(value.decode("utf-8", errors="replace"))


@ref_group.command("create")
@click.argument("name")
@click.argument("value")
@click.pass_obj
def ref_create(url, name, value):
    """Create NAME with VALUE; fails if NAME already exists."""
    with _open_client(url) as client:
        try:
            client.create_ref(name, value)
        except AlreadyExists:
            raise click.ClickException(f"ref {name} already exists")
        except StoreError as e:
            raise click.ClickException(str(e))
    click.echo(f"created {name}")


@ref_group.command("swap")
@click.argument("name")
@click.argument("expected")
@click.argument("value")
@click.pass_obj
def ref_swap(url, name, expected, value):
    """Set NAME to VALUE if it currently holds EXPECTED."""
    with _open_client(url) as client:
        try:
            client.swap_ref(name, expected, value)
        except Mismatch as e:
            actual = e.actual.decode("utf-8", errors="replace")
            raise click.ClickException(f"ref {name} holds {actual}, not {expected}")
        except StoreError as e:
            raise click.ClickException(str(e))
    click.echo(f"updated {name}")


@click.group()
@url_option
@click.pass_context
def content_group(ctx, url):
    """Upload and download content objects."""
    ctx.obj = url


@content_group.command("put")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def content_put(url, path):
    """Upload the file at PATH and print its content key."""
    with open(path, "rb") as f:
        data = f.read()
    key = content_key_for(data)
    with _open_client(url) as client:
        try:
            client.put_content(data, key=key)
        except StoreError as e:
            raise click.ClickException(str(e))
    click.echo(key)


@content_group.command("get")
@click.argument("key")
@click.option("-o", "--output", type=click.Path(dir_okay=False, writable=True), default=None,
              help="Write to this file instead of stdout")
@click.pass_obj
def content_get(url, key, output):
    """Download the object named KEY."""
    with _open_client(url) as client:
        try:
            data = client.get_content(key)
        except StoreError as e:
            raise click.ClickException(str(e))

    if output:
        with open(output, "wb") as f:
            f.write(data)
    else:
        click.get_binary_stream("stdout").write(data)
