"""Worker-control exception hierarchy."""


class PwalkerError(Exception):
    """Base error type for queue, supervisor and config failures."""


class TaskSourceError(PwalkerError, OSError):
    """Task file could not be read; queue was left untouched."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to read task file {path}: {reason}")
        self.path = path
        self.reason = reason


class ProcessSpawnError(PwalkerError):
    """Operating system refused to create the child process."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"{command}: {reason}")
        self.command = command
        self.reason = reason


class UnknownToolError(PwalkerError, LookupError):
    """Requested operation name is not registered."""

    def __init__(self, name: str):
        super().__init__(f"unknown tool: {name}")
        self.name = name


class ConfigError(PwalkerError, ValueError):
    """Invalid runtime configuration value."""
