import asyncio
import inspect
import typer
from typing import Any, Awaitable, List, Optional

from core.config import ConfigManager
from core.errors import HarnessError, UnexpectedTerminationError
from core.service_set import ServiceSet
from services.client import StatsDClient
from services.collector_service import CollectorService
from services.repeater_service import RepeaterService

class HarnessSession:
    """
    One test scenario's worth of infrastructure.

    `set_up` registers a repeater in a fresh ServiceSet, the scenario adds
    whatever else it needs and calls `start`, and `tear_down` stops the set.
    If the repeater dies on its own the session becomes failed for good:
    the running step and every later step raise UnexpectedTerminationError.
    """
    def __init__(self, config: ConfigManager):
        self.config = config
        self.services: Optional[ServiceSet] = None
        self.repeater: Optional[RepeaterService] = None
        self.collectors: List[CollectorService] = []
        self.started = False
        self.failure: Optional[UnexpectedTerminationError] = None
        self._failed: Optional[asyncio.Event] = None

    async def __aenter__(self) -> "HarnessSession":
        await self.set_up()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.tear_down()

    async def set_up(self):
        self._failed = asyncio.Event()
        self.services = ServiceSet()
        self.repeater = RepeaterService(self.config, on_unexpected_exit=self._fail)
        self.services.add(self.repeater)

    async def tear_down(self):
        if self.services is not None:
            await self.services.stop()
        self.started = False

    def add_collector(self, port: Optional[int] = None) -> CollectorService:
        """Registers a collector (by default on the port the repeater forwards to)."""
        collector = CollectorService(self.config, port=port or self.repeater.server_port)
        self.services.add(collector)
        self.collectors.append(collector)
        return collector

    async def start(self):
        await self.guard(self.services.start())
        self.started = True

    def client(self) -> StatsDClient:
        """A client aimed at the repeater. Only handed out once every service is up."""
        self.check()
        if not self.started:
            raise HarnessError("Services are not up yet; call start() first.")
        return StatsDClient(self.repeater.port, self.config.get("repeater", "host"), verbose=self.config.verbose)

    def check(self):
        if self.failure is not None:
            raise self.failure

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """Runs one scenario step, abandoning it as soon as the session fails."""
        if self.failure is not None:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise self.failure

        step = asyncio.ensure_future(awaitable)
        failed = asyncio.ensure_future(self._failed.wait())
        try:
            done, _ = await asyncio.wait({step, failed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            failed.cancel()
            if not step.done():
                step.cancel()
        # Decided by what finished, not by step.done(): cancelling a bare Future completes it.
        if step in done:
            return step.result()
        raise self.failure

    async def repeater_works(self, payload: Optional[str] = None, collect_seconds: Optional[float] = None) -> List[str]:
        """Sends one payload through the repeater and returns what the collector saw."""
        if payload is None:
            payload = self.config.get("scenario", "payload")
        if collect_seconds is None:
            collect_seconds = float(self.config.get("scenario", "collect_seconds"))

        collector = self.add_collector()
        await self.start()
        self.client().send(payload)
        return await self.guard(collector.collect(collect_seconds))

    def _fail(self, error: UnexpectedTerminationError):
        if self.failure is None:
            self.failure = error
            typer.secho(f"[SESSION] Terminal failure, abandoning scenario: {error}", fg=typer.colors.RED, bold=True)
        self._failed.set()
