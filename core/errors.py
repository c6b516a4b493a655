from typing import Optional


class HarnessError(Exception):
    """Base class for every fault the harness reports."""


class ConfigError(HarnessError):
    pass


class LaunchError(HarnessError):
    """The repeater could not be spawned or died before it was ready."""
    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.exit_code = exit_code


class LaunchTimeoutError(LaunchError):
    pass


class UnexpectedTerminationError(HarnessError):
    """A supervised process exited while nobody had asked it to stop."""
    def __init__(self, service: str, exit_code: Optional[int]):
        super().__init__(f"{service} unexpectedly quit with code: {exit_code}")
        self.service = service
        self.exit_code = exit_code


class SendError(HarnessError):
    pass


class BindError(HarnessError):
    pass
