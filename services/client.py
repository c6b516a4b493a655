import socket
import typer

from core.errors import SendError

class StatsDClient:
    """Sends text payloads to the repeater, one datagram per message."""
    def __init__(self, port: int = 8125, host: str = "127.0.0.1", verbose: bool = False):
        self.host = host
        self.port = port
        self.verbose = verbose

    def send(self, data: str) -> int:
        """Sends `data` as a single datagram. Transport errors are raised, never retried."""
        payload = data.encode("utf-8")
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sent = sock.sendto(payload, (self.host, self.port))
        except OSError as e:
            raise SendError(f"Failed to send to {self.host}:{self.port}: {e}") from e
        if self.verbose:
            typer.secho(f"[CLIENT] Sent {sent} bytes to {self.host}:{self.port}", dim=True)
        return sent
