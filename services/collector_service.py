import asyncio
import typer
from typing import Callable, List, Optional, Set, Tuple

from core.config import ConfigManager
from core.errors import BindError, HarnessError

MessageHandler = Callable[[str], None]

class _CollectorProtocol(asyncio.DatagramProtocol):
    def __init__(self, service: "CollectorService"):
        self.service = service

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        self.service._dispatch(data.decode("utf-8", errors="replace"))

class CollectorService:
    """
    Fake collection endpoint.
    Binds a UDP socket in-process and hands every datagram, decoded as
    text, to whoever is subscribed at the time it arrives.
    """
    def __init__(self, config: ConfigManager, port: Optional[int] = None):
        self.port = port or config.get("collector", "port")
        self.bind_host = config.get("collector", "bind_host")
        self.name = f"collector:{self.port}"
        self.verbose = config.verbose
        self.subscribers: Set[MessageHandler] = set()
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._collecting = False

    @property
    def listening(self) -> bool:
        return self.transport is not None

    async def start(self):
        """Binds the socket; returns once it is listening."""
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _CollectorProtocol(self), local_addr=(self.bind_host, self.port))
        except OSError as e:
            raise BindError(f"Cannot bind {self.name} on {self.bind_host}:{self.port}: {e}") from e
        self.transport = transport
        typer.secho(f"[COLLECTOR] Fake statsd server listening on {self.port}", fg=typer.colors.GREEN)

    async def stop(self):
        """Closes the socket. Closing a datagram socket needs no handshake."""
        if self.transport is None:
            return
        transport, self.transport = self.transport, None
        transport.close()
        self.subscribers.clear()

    def subscribe(self, handler: MessageHandler):
        self.subscribers.add(handler)

    def unsubscribe(self, handler: MessageHandler):
        self.subscribers.discard(handler)

    async def collect(self, duration: float) -> List[str]:
        """Accumulates every message received over the next `duration` seconds, in arrival order."""
        if not self.listening:
            raise HarnessError(f"{self.name} is not listening.")
        if self._collecting:
            raise HarnessError(f"{self.name} already has a collection window open.")

        messages: List[str] = []

        def onmsg(message: str):
            messages.append(message)

        self._collecting = True
        self.subscribe(onmsg)
        try:
            await asyncio.sleep(duration)
        finally:
            self.unsubscribe(onmsg)
            self._collecting = False
        return messages

    def _dispatch(self, message: str):
        if self.verbose:
            typer.secho(f"[COLLECTOR] Received {message}", dim=True)
        for handler in list(self.subscribers):
            handler(message)
