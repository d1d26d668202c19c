"""Transport descriptors: where the speech daemon listens and how to reach it."""

import ipaddress
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6560


def default_socket_path() -> Path:
    """The per-user socket path the daemon uses when none is configured."""
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR") or os.environ.get("XDG_CACHE_HOME")
    base = Path(runtime_dir) if runtime_dir else Path.home() / ".cache"
    return base / "speech-dispatcher" / "speechd.sock"


@dataclass(frozen=True)
class UnixSocketTransport:
    socket_path: str = field(default_factory=lambda: str(default_socket_path()))

    def connect(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self.socket_path)
        except OSError:
            sock.close()
            raise
        return sock

    def autospawn_refusal(self) -> Optional[str]:
        return None

    def spawn_args(self) -> List[str]:
        return ["--spawn", "--socket-path", self.socket_path]

    def __str__(self) -> str:
        return f"unix_socket:{self.socket_path}"


@dataclass(frozen=True)
class InetSocketTransport:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def resolve(self) -> str:
        """Resolve ``host`` to the first address ``getaddrinfo`` reports."""
        infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        return infos[0][4][0]

    def connect(self) -> socket.socket:
        return socket.create_connection((self.host, self.port))

    def autospawn_refusal(self) -> Optional[str]:
        """Why the daemon cannot be spawned for this target, or None if it can."""
        try:
            address = ipaddress.ip_address(self.resolve())
        except (OSError, ValueError) as e:
            return f"Unable to resolve host {self.host}: {e}"
        if not address.is_loopback:
            return (
                f"Unable to autospawn server on remote host {self.host}. "
                "Choose a different address, or start the server manually."
            )
        return None

    def spawn_args(self) -> List[str]:
        return ["--spawn", "--host", self.resolve(), "--port", str(self.port)]

    def __str__(self) -> str:
        return f"inet_socket:{self.host}:{self.port}"


Transport = Union[UnixSocketTransport, InetSocketTransport]


def parse_address(address: Optional[str]) -> Transport:
    """Parse a ``SPEECHD_ADDRESS`` style string.

    Accepted forms::

        unix_socket
        unix_socket:/run/user/1000/speech-dispatcher/speechd.sock
        inet_socket
        inet_socket:localhost
        inet_socket:192.168.1.5:6561

    An empty or missing address means the default Unix socket.
    """
    if not address:
        return UnixSocketTransport()

    method, _, rest = address.strip().partition(":")

    if method == "unix_socket":
        return UnixSocketTransport(rest) if rest else UnixSocketTransport()

    if method == "inet_socket":
        if not rest:
            return InetSocketTransport()
        host, has_port, port = rest.partition(":")
        if not has_port:
            return InetSocketTransport(host=host)
        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"Invalid port in address: {address!r}") from None
        return InetSocketTransport(host=host or DEFAULT_HOST, port=port_number)

    raise ValueError(f"Unknown communication method in address: {address!r}")
