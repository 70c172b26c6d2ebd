"""
casserve serve command - Run the HTTP server over a storage root.

Usage:
    casserve serve --root /var/lib/casserve
    casserve serve --root ./data --port 9000 --log-level debug
    casserve serve --config /etc/casserve.yaml
"""

import sys

import click

from ..config import LOG_LEVELS, StoreConfig


def build_config(config_path, root, host, port, index, verify, log_level) -> StoreConfig:
    """Resolve the config file, then the environment, then explicit options."""
    cfg = StoreConfig.from_yaml(config_path) if config_path else StoreConfig()
    cfg = StoreConfig.from_env(cfg)

    if root is not None:
        cfg.root = root
    if host is not None:
        cfg.host = host
    if port is not None:
        cfg.port = port
    if index is not None:
        cfg.index_path = index
    if verify is not None:
        cfg.verify_digests = verify
    if log_level is not None:
        cfg.log_level = log_level

    cfg.validate()
    return cfg


@click.command()
@click.option("--root", type=click.Path(file_okay=False), default=None, help="Storage root directory (default: ./data)")
@click.option("--host", type=str, default=None, help="Bind host (default: 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Bind port (default: $PORT or 8080)")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config file path")
@click.option("--index", type=click.Path(exists=True, dir_okay=False), default=None, help="Landing page served at /")
@click.option("--verify/--no-verify", default=None, help="Check uploaded bytes against their content key")
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default=None)
def serve_command(root, host, port, config_path, index, verify, log_level):
    """Start the casserve HTTP server.

    Runs a single worker process: ref writes are serialized by locks
    owned by that process.

    Example:
        casserve serve --root /var/lib/casserve --port 8080
    """
    import uvicorn

    from ..api_server import create_app
    from ..logging_config import setup_logging

    try:
        cfg = build_config(config_path, root, host, port, index, verify, log_level)
    except (ValueError, FileNotFoundError) as e:
        raise click.UsageError(str(e))

    setup_logging(cfg.log_level)

    click.echo("Starting casserve:")
    click.echo(f"  Root: {cfg.root}")
    click.echo(f"  Listen: http://{cfg.host}:{cfg.port}")
    click.echo(f"  Verify digests: {cfg.verify_digests}")
    click.echo()

    app = create_app(cfg)

    try:
        uvicorn.run(
            app,
            host=cfg.host,
            port=cfg.port,
            log_level=cfg.log_level,
            access_log=False,
        )
    except KeyboardInterrupt:
        click.echo("\n[casserve] Received Ctrl+C, shutting down...")
    except OSError as e:
        click.echo(f"[casserve] Error: {e}", err=True)
        sys.exit(1)
