#!/usr/bin/env python3
"""
Repeater Harness Launcher

Boots the repeater and a fake collection endpoint behind it, prints
every message the repeater forwards, and tears both down on Ctrl-C.
Handy for poking at a repeater build by hand with `harness.py send`.
"""

import asyncio
import typer
from pathlib import Path
from typing_extensions import Annotated

from core.config import ConfigManager
from core.errors import HarnessError
from core.session import HarnessSession

async def serve(config: ConfigManager):
    """Keeps the topology up until interrupted or until the repeater dies."""
    async with HarnessSession(config) as session:
        collector = session.add_collector()
        collector.subscribe(lambda message: typer.secho(f"[LAUNCHER] Forwarded: {message}", fg=typer.colors.WHITE))
        await session.start()
        typer.secho(f"[LAUNCHER] Send datagrams to {session.repeater.port}. Press Ctrl-C to stop.",
                    fg=typer.colors.BRIGHT_MAGENTA)
        await session.guard(asyncio.get_running_loop().create_future())

def main(config_path: Annotated[Path, typer.Option("--config", "-c", help="Path to the harness settings file.")] = Path("./harness.yml")):
    typer.secho("--- [LAUNCHER] Booting repeater harness ---", fg=typer.colors.BRIGHT_MAGENTA, bold=True)
    try:
        config = ConfigManager(config_path)
        config.ensure_config()
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        typer.secho("\n[LAUNCHER] Shutdown signal received. All services shut down. Exiting.", fg=typer.colors.WHITE)
    except HarnessError as e:
        typer.secho(f"[LAUNCHER] FATAL: {e}", fg=typer.colors.RED, bold=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    typer.run(main)
