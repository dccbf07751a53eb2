"""AutoReloader CLI entry point."""

import logging
import os
import sys
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIServer, make_server

import click
from rich.console import Console
from rich.logging import RichHandler

from autoreloader import __version__
from autoreloader.config import ReloaderConfig
from autoreloader.reloader import get_reloader
from autoreloader.wsgi import ReloadingWSGIApp

console = Console()


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """wsgiref server handling each request in its own thread."""

    daemon_threads = True


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """AutoReloader - hot code reloading for development servers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("target")
@click.option(
    "-p",
    "--path",
    "paths",
    multiple=True,
    type=click.Path(file_okay=True, dir_okay=True),
    help="Reloadable path (repeatable)",
)
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option("--delay", type=float, default=None, help="Minimum seconds between reloads")
@click.option("--onchange/--always", default=True, help="Only reload when a tracked file changed")
@click.option("--watch/--poll", default=None, help="Use a file watcher instead of polling mtimes")
@click.option("--latency", default=1.0, help="Watcher quiet period in seconds")
@click.option("--sync-loads", is_flag=True, help="Serialize module loads")
@click.option(
    "--app-dir",
    default=".",
    type=click.Path(file_okay=False, dir_okay=True),
    help="Directory put on sys.path to import TARGET from",
)
def serve(
    target: str,
    paths: tuple[str, ...],
    host: str,
    port: int,
    delay: float | None,
    onchange: bool,
    watch: bool | None,
    latency: float,
    sync_loads: bool,
    app_dir: str,
) -> None:
    """Serve the WSGI application TARGET ("module:attribute") with reloading."""
    app_dir = os.path.abspath(app_dir)
    if app_dir not in sys.path:
        sys.path.insert(0, app_dir)

    config = ReloaderConfig(
        reloadable_paths=list(paths),
        onchange=onchange,
        delay=delay,
        watch_paths=watch,
        watch_latency=latency,
        sync_loads=sync_loads,
    )
    reloader = get_reloader()
    reloader.activate(config)

    app = ReloadingWSGIApp(target, reloader)
    server = make_server(host, port, app, server_class=ThreadingWSGIServer)

    console.print(f"[bold green]Serving {target} on http://{host}:{port}[/bold green]")
    for root in reloader.reloadable_paths:
        console.print(f"  reloading [cyan]{root}[/cyan]")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")
    finally:
        server.server_close()


@cli.command()
def version() -> None:
    """Show the AutoReloader version."""
    console.print(f"autoreloader {__version__}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
