import typer
from typing import Iterator, List

from services.base import ManagedService

class ServiceSet:
    """
    Brings an ordered group of services up and down, one at a time.
    Service i+1 is only touched once service i has finished starting
    (or stopping). Stop order is the same as start order.
    """
    def __init__(self):
        self.services: List[ManagedService] = []

    def add(self, *services: ManagedService):
        """Appends services; the order of add calls is the orchestration order."""
        self.services.extend(services)

    def __len__(self) -> int:
        return len(self.services)

    def __iter__(self) -> Iterator[ManagedService]:
        return iter(self.services)

    async def start(self):
        """Starts every service in order. A failure propagates and later services stay down."""
        for service in self.services:
            typer.secho(f"[SERVICES] Starting {service.name}...", fg=typer.colors.CYAN)
            await service.start()
        if self.services:
            typer.secho(f"[SERVICES] {len(self.services)} service(s) up.", fg=typer.colors.GREEN)

    async def stop(self):
        """Stops every service, in the same order they were started."""
        for service in self.services:
            typer.secho(f"[SERVICES] Stopping {service.name}...", fg=typer.colors.CYAN, dim=True)
            await service.stop()
