#!/usr/bin/env python3
"""
Repeater Harness CLI

Command-line interface for the repeater forwarding harness. It writes
and inspects the harness settings, fires single datagrams, and runs the
end-to-end forwarding scenario against a real repeater process.
"""

import asyncio
import typer
import yaml
from pathlib import Path
from typing import Optional
from typing_extensions import Annotated

from core.config import ConfigManager
from core.errors import ConfigError, HarnessError
from core.session import HarnessSession
from services.client import StatsDClient

cli = typer.Typer(name="harness", help="Repeater forwarding test harness CLI")
CONFIG_PATH = Path("./harness.yml")

@cli.callback()
def main(ctx: typer.Context,
         config: Annotated[Path, typer.Option("--config", "-c", help="Path to the harness settings file.")] = CONFIG_PATH):
    ctx.obj = config

def load_config(ctx: typer.Context) -> ConfigManager:
    try:
        return ConfigManager(ctx.obj)
    except ConfigError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, bold=True)
        raise typer.Exit(code=1)

# --- CLI Commands ---

@cli.command()
def init(ctx: typer.Context):
    """Writes the settings file, filling in defaults for anything missing."""
    typer.secho("Initializing repeater harness...", fg=typer.colors.BRIGHT_BLUE, bold=True)
    config = load_config(ctx)
    config.save_config()
    typer.secho(f"Config: {config.config_path.resolve()} (Written)", fg=typer.colors.GREEN)
    try:
        config.ensure_config()
    except ConfigError as e:
        typer.secho(f"Warning: the repeater cannot be launched yet: {e}", fg=typer.colors.YELLOW)

@cli.command()
def show_config(ctx: typer.Context):
    """Prints the effective settings."""
    config = load_config(ctx)
    typer.echo(yaml.safe_dump(config.config, default_flow_style=False, sort_keys=False), nl=False)

@cli.command()
def send(ctx: typer.Context,
         payload: Annotated[str, typer.Argument(help="Text to send as a single datagram.")],
         port: Annotated[Optional[int], typer.Option(help="Destination port (default: repeater port).")] = None,
         host: Annotated[Optional[str], typer.Option(help="Destination host (default: repeater host).")] = None):
    """Sends one datagram, by default to the repeater."""
    config = load_config(ctx)
    client = StatsDClient(port or config.get("repeater", "port"),
                          host or config.get("repeater", "host"), verbose=config.verbose)
    try:
        sent = client.send(payload)
    except HarnessError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, bold=True)
        raise typer.Exit(code=1)
    typer.secho(f"Sent {sent} bytes to {client.host}:{client.port}", fg=typer.colors.GREEN)

async def run_scenario(config: ConfigManager, payload: str, collect_seconds: float):
    async with HarnessSession(config) as session:
        return await session.repeater_works(payload, collect_seconds)

@cli.command()
def run(ctx: typer.Context,
        payload: Annotated[Optional[str], typer.Option(help="Payload to push through the repeater.")] = None,
        collect_seconds: Annotated[Optional[float], typer.Option(help="Length of the collection window.")] = None):
    """Runs the end-to-end forwarding scenario."""
    config = load_config(ctx)
    payload = payload if payload is not None else config.get("scenario", "payload")
    collect_seconds = collect_seconds if collect_seconds is not None else float(config.get("scenario", "collect_seconds"))

    typer.secho(f"[SCENARIO] repeater_works: sending '{payload}'", fg=typer.colors.BRIGHT_BLUE, bold=True)
    try:
        config.ensure_config()
        messages = asyncio.run(run_scenario(config, payload, collect_seconds))
    except HarnessError as e:
        typer.secho(f"[SCENARIO] FAIL: {e}", fg=typer.colors.RED, bold=True)
        raise typer.Exit(code=1)

    if messages and messages[0] == payload:
        typer.secho(f"[SCENARIO] PASS: collector received '{messages[0]}'", fg=typer.colors.BRIGHT_GREEN)
        return
    typer.secho(f"[SCENARIO] FAIL: expected '{payload}' first, collected {messages!r}", fg=typer.colors.RED, bold=True)
    raise typer.Exit(code=1)

if __name__ == "__main__":
    cli()
