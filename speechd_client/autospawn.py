"""Start the speech daemon on demand when the first connect fails."""

import os
import subprocess
from typing import Optional

from loguru import logger

from .errors import SpawnError
from .transport import Transport

DEFAULT_SERVER_COMMAND = "speech-dispatcher"


def server_command(override: Optional[str] = None) -> str:
    """Daemon executable: explicit override > $SPEECHD_CMD > speech-dispatcher."""
    return override or os.environ.get("SPEECHD_CMD") or DEFAULT_SERVER_COMMAND


def spawn_server(transport: Transport, command: Optional[str] = None) -> None:
    """Ask the daemon to spawn itself listening on ``transport``.

    The daemon forks into the background with ``--spawn``; this waits only
    for the launcher process to exit.

    Raises:
        SpawnError: the target is remote, the executable is missing, or the
            daemon refused to start.
    """
    reason = transport.autospawn_refusal()
    if reason:
        raise SpawnError(reason)

    executable = server_command(command)
    cmd = [executable, *transport.spawn_args()]
    logger.info(f"Autospawning speech daemon: {' '.join(cmd)}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise SpawnError(f"Unable to start server from path {executable}: {e}") from e

    if result.returncode != 0:
        raise SpawnError(f"Server refused to autospawn. Reason: {result.stderr.strip()}")

    logger.info(f"Speech daemon spawned for {transport}")
