from typing import Protocol


class ManagedService(Protocol):
    """Anything a ServiceSet can bring up and tear down.

    `start` returns once the service is ready to accept work and `stop`
    returns once its resources are released. Stopping a service that was
    never started returns immediately.
    """

    name: str

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...
