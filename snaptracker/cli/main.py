"""Command line interface for snaptracker.

Commands:
- ``serve``: run the HTTP tracker until SIGINT/SIGTERM
- ``peers``: print the current swarm of one info hash
- ``config show``: print the effective configuration
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from snaptracker import __version__
from snaptracker.config.config import ConfigManager, init_config
from snaptracker.models import INFO_HASH_LENGTH, Config, LogLevel
from snaptracker.storage import PeerStore, SQLiteKeyValueStore
from snaptracker.tracker.announce import AnnounceHandler
from snaptracker.tracker_server_http import TrackerHTTPServer, create_http_tracker
from snaptracker.utils.exceptions import ConfigurationError, StoreError
from snaptracker.utils.logging_config import setup_logging
from snaptracker.utils.shutdown import (
    clear_shutdown,
    get_shutdown_event,
    install_signal_handlers,
)

logger = logging.getLogger(__name__)
console = Console()


def _get_config_manager(ctx: click.Context) -> ConfigManager:
    """Load configuration once per invocation, applying verbosity."""
    obj = ctx.ensure_object(dict)
    if obj.get("config_manager") is None:
        try:
            cfg_mgr = init_config(obj.get("config"))
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e

        verbose = obj.get("verbose", 0)
        if verbose:
            cfg_mgr.config.observability.log_level = (
                LogLevel.DEBUG if verbose > 1 else LogLevel.INFO
            )
            setup_logging(cfg_mgr.config.observability)
        obj["config_manager"] = cfg_mgr
    return obj["config_manager"]


def build_announce_handler(config: Config, db_path: str | None = None) -> AnnounceHandler:
    """Open the configured store and wrap it in an announce handler."""
    store = SQLiteKeyValueStore(db_path or config.storage.db_path, config.storage.bucket)
    return AnnounceHandler(PeerStore(store), config.tracker)


def serve_until_shutdown(server: TrackerHTTPServer, stop: threading.Event) -> None:
    """Run ``server`` in a worker thread until ``stop`` is set."""
    worker = threading.Thread(
        target=server.serve_forever, name="snaptracker-http", daemon=True
    )
    worker.start()
    try:
        stop.wait()
    finally:
        server.shutdown()
        server.server_close()
        worker.join()


@click.group()
@click.version_option(__version__, prog_name="snaptracker")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug)",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: int) -> None:
    """snaptracker - minimal BitTorrent HTTP tracker."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("db_path", required=False, type=click.Path(dir_okay=False))
@click.option("--host", help="Listen address")
@click.option("--port", type=click.IntRange(1, 65535), help="Listen port")
@click.pass_context
def serve(ctx: click.Context, db_path: str | None, host: str | None, port: int | None) -> None:
    """Serve announces from DB_PATH until interrupted."""
    cfg = _get_config_manager(ctx).config
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port

    try:
        handler = build_announce_handler(cfg, db_path)
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    try:
        server = create_http_tracker(handler, cfg.server)
    except OSError as e:
        handler.peers.store.close()
        msg = f"Cannot listen on {cfg.server.host}:{cfg.server.port}: {e}"
        raise click.ClickException(msg) from e

    clear_shutdown()
    install_signal_handlers()
    logger.info(
        "Tracker listening on %s:%d%s",
        cfg.server.host,
        cfg.server.port,
        cfg.server.announce_path,
    )
    try:
        serve_until_shutdown(server, get_shutdown_event())
    finally:
        handler.peers.store.close()
    logger.info("Tracker stopped")


@cli.command()
@click.argument("info_hash")
@click.option("--db", "db_path", type=click.Path(dir_okay=False), help="Database path")
@click.pass_context
def peers(ctx: click.Context, info_hash: str, db_path: str | None) -> None:
    """Show the fresh peers of INFO_HASH (40 hex characters)."""
    try:
        raw_hash = bytes.fromhex(info_hash)
    except ValueError:
        raw_hash = b""
    if len(raw_hash) != INFO_HASH_LENGTH:
        msg = "INFO_HASH must be 40 hex characters"
        raise click.BadParameter(msg, param_hint="INFO_HASH")

    cfg = _get_config_manager(ctx).config
    db_path = db_path or cfg.storage.db_path
    if not Path(db_path).is_file():
        msg = f"No tracker database at {db_path}"
        raise click.ClickException(msg)

    try:
        handler = build_announce_handler(cfg, db_path)
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    try:
        swarm = handler.enumerate_swarm(raw_hash)
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    finally:
        handler.peers.store.close()

    table = Table(title=f"Swarm {raw_hash.hex()}")
    table.add_column("IP")
    table.add_column("Port", justify="right")
    table.add_column("Peer ID")
    for peer in swarm.peers:
        table.add_row(peer.ip, str(peer.port), peer.peer_id.hex())
    console.print(table)
    console.print(
        f"complete: {swarm.complete}  incomplete: {swarm.incomplete}  "
        f"expired: {swarm.skipped_expired}  corrupt: {swarm.skipped_corrupt}"
    )


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("show")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["toml", "json"]),
    default="toml",
    show_default=True,
)
@click.pass_context
def show_config(ctx: click.Context, fmt: str) -> None:
    """Print the effective configuration."""
    click.echo(_get_config_manager(ctx).export(fmt))


def main(args: Any = None) -> Any:
    """Console script entry point."""
    return cli.main(args=args, prog_name="snaptracker")
