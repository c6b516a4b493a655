import tempfile
from pydantic import BaseModel, ConfigDict, Field
from typing import List

from core.config import ConfigManager

# The repeater parses this document at launch; the aliases are its field names.

class RepeaterTarget(BaseModel):
    host: str = "127.0.0.1"
    port: int

class RepeaterConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repeater: List[RepeaterTarget]
    repeater_protocol: str = Field(default="udp4", alias="repeaterProtocol")
    server: str = "./servers/udp"
    port: int = 8125
    backends: List[str] = Field(default_factory=lambda: ["./backends/repeater"])

    @classmethod
    def for_target(cls, port: int, server_port: int, host: str = "127.0.0.1") -> "RepeaterConfig":
        """Listen on `port` and forward everything to (host, server_port)."""
        return cls(port=port, repeater=[RepeaterTarget(host=host, port=server_port)])

    @classmethod
    def from_settings(cls, config: ConfigManager, port: int, server_port: int) -> "RepeaterConfig":
        return cls(
            port=port,
            repeater=[RepeaterTarget(host=config.get("collector", "host"), port=server_port)],
            repeater_protocol=config.get("repeater", "protocol"),
            server=config.get("repeater", "server"),
            backends=list(config.get("repeater", "backends", default=[])),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def write_temp_config(config: RepeaterConfig) -> str:
    """Writes the payload to a temp file that outlives the handle and returns its path."""
    with tempfile.NamedTemporaryFile("w", suffix="-statsdconf.js", delete=False) as f:
        f.write(config.to_json())
        return f.name
