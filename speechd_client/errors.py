"""Exceptions raised by the SSIP client library."""

from typing import Optional


class SSIPError(Exception):
    """Base class for everything this library raises."""


class SSIPConnectionError(SSIPError, ConnectionError):
    """Transport failure: connect, write, or the receive loop going away.

    The connection should not be used for further requests once this is raised.
    """


class SSIPTimeoutError(SSIPConnectionError):
    """No reply arrived within the configured reply timeout."""


class SSIPProtocolError(SSIPError):
    """The server sent a line that does not follow the SSIP framing rules."""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line


class SSIPCommandError(SSIPError):
    """The server answered with a non-2xx status code."""

    def __init__(self, code: int, message: str, command: str):
        super().__init__(f"{code} {message} (command: {command!r})")
        self.code = code
        self.message = message
        self.command = command


class SpawnError(SSIPError):
    """The speech daemon could not be autospawned."""
