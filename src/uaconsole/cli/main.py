import asyncio
import time
from pathlib import Path
from typing import Optional

import structlog
import typer
from asyncua import ua

from uaconsole import __version__
from uaconsole.browse import AttributeReader, BrowseTraversal, TraversalContext, format_node_id, parse_node_id
from uaconsole.browse.node_ids import node_key
from uaconsole.config.models import ConsoleSettings
from uaconsole.core.exceptions import ConfigurationError, ConnectionError, SecurityError
from uaconsole.core.session import open_session
from uaconsole.observability.logging import configure_logging
from uaconsole.observability.metrics import MetricsCollector

app = typer.Typer(add_completion=False)
logger = structlog.get_logger()

RULE = "=" * 45
OBJECTS_FOLDER = ua.NodeId(ua.ObjectIds.ObjectsFolder, 0)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"uaconsole {__version__}")
        raise typer.Exit()


@app.command(no_args_is_help=True)
def main(
    server_url: Optional[str] = typer.Argument(None, help="OPC UA server URL, e.g. opc.tcp://10.0.0.128:4840"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    timeout: Optional[int] = typer.Option(None, "--timeout", "-t", min=1, help="Connection timeout in ms (default: 5000)"),
    root: Optional[str] = typer.Option(None, "--root", help="Start node: ObjectsFolder, Root, Types, Views, Server or a NodeId string"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=0, help="Maximum browse depth (default: 10)"),
    no_cycle_guard: bool = typer.Option(False, "--no-cycle-guard", help="Also follow references back to nodes on the current path"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML configuration file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    metrics_file: Optional[Path] = typer.Option(None, "--metrics-file", help="Write browse metrics in Prometheus text format"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
) -> None:
    """Recursively browse an OPC UA server and print its address space as a tree."""
    overrides = {
        "endpoint": {"url": server_url, "timeout_ms": timeout},
        "browse": {"root_node": root, "max_depth": max_depth, "verbose": verbose or None, "cycle_guard": False if no_cycle_guard else None},
        "observability": {"log_level": log_level.upper() if log_level else None, "metrics_file": metrics_file},
    }
    try:
        settings = ConsoleSettings.load(config, overrides)
        root_node = parse_node_id(settings.browse.root_node)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)

    configure_logging(settings.observability.log_level, settings.observability.log_format)
    metrics = MetricsCollector()
    try:
        asyncio.run(_browse(settings, root_node, metrics))
    except KeyboardInterrupt:
        pass
    except ConnectionError as e:
        typer.echo(f"Connection failed: {e.message}")
        raise typer.Exit(code=1)
    except SecurityError as e:
        typer.echo(f"Security setup failed: {e}")
        raise typer.Exit(code=1)
    finally:
        if settings.observability.metrics_file:
            metrics.write_textfile(settings.observability.metrics_file)


async def _browse(settings: ConsoleSettings, root: ua.NodeId, metrics: MetricsCollector) -> None:
    endpoint = settings.endpoint
    options = settings.browse

    typer.echo(RULE)
    typer.echo("   UAConsole - OPC UA Server Browser")
    typer.echo(f"{RULE}\n")
    if options.verbose:
        typer.echo("Verbose mode enabled")
        typer.echo(f"Connection timeout: {endpoint.timeout_ms} ms")
    typer.echo(f"Connecting to {endpoint.url}...")

    async with open_session(endpoint, settings.security) as session:
        typer.echo("Connected successfully!\n")
        if options.verbose:
            typer.echo("=== CONNECTION DETAILS ===")
            typer.echo(f"Connection time: {session.connected_at.strftime('%Y-%m-%d %H:%M:%S')}")
            typer.echo(f"Timeout configured: {endpoint.timeout_ms} ms")
            typer.echo(f"Security: {endpoint.security_policy.value}/{endpoint.security_mode.value}\n")

        target = "OBJECTS FOLDER" if node_key(root) == node_key(OBJECTS_FOLDER) else format_node_id(root)
        typer.echo(f"=== RECURSIVE BROWSING OF {target} ===")
        if options.verbose:
            typer.echo(f"Starting from {options.root_node} {format_node_id(root)}")
            typer.echo(f"Depth-first traversal, max depth {options.max_depth}...\n")

        traversal = BrowseTraversal(AttributeReader(session), metrics=metrics, cycle_guard=options.cycle_guard)
        context = TraversalContext(depth=0, max_depth=options.max_depth, verbose=options.verbose)
        started = time.monotonic()
        async for line in traversal.traverse(root, context):
            typer.echo(line)
        metrics.set_duration(time.monotonic() - started)
        logger.info("browse_completed", url=endpoint.url, seconds=round(time.monotonic() - started, 3))

    typer.echo("\n=== BROWSING COMPLETED ===")
    typer.echo(f"Server URL: {endpoint.url}")
    typer.echo("Disconnected from server")


if __name__ == "__main__":
    app()
