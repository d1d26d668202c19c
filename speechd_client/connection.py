"""SSIP connection engine.

One socket carries both command replies and asynchronous job events. A
dedicated receive thread owns the read side: it assembles messages, passes
replies to the single waiting sender through a one-slot queue, and hands
7xx events to the attached :class:`CallbackHandler`.

Requests are strictly serialized. A sender holds the send lock from the
moment it writes until its reply arrives, so replies always match the
request that caused them.
"""

import queue
import socket
import threading
from typing import BinaryIO, Optional

from loguru import logger

from .callbacks import CallbackHandler
from .errors import (
    SSIPCommandError,
    SSIPConnectionError,
    SSIPProtocolError,
    SSIPTimeoutError,
)
from .protocol import (
    ENCODING,
    NEWLINE,
    Event,
    ServerMessage,
    encode_data,
    read_message,
    render_command,
)
from .transport import Transport


class SSIPConnection:
    """A live connection to the speech daemon.

    Args:
        transport: Where the daemon listens.
        reply_timeout: Seconds to wait for each reply. None (the default)
            waits forever. After a timeout the connection is unusable.

    Raises:
        SSIPConnectionError: the socket could not be opened.
    """

    def __init__(self, transport: Transport, reply_timeout: Optional[float] = None):
        self.transport = transport
        self.reply_timeout = reply_timeout
        self.callback: Optional[CallbackHandler] = None

        try:
            self._socket = transport.connect()
        except OSError as e:
            raise SSIPConnectionError(f"Can't open socket using {transport}: {e}") from e

        self._writer: Optional[BinaryIO] = None
        self._replies: "queue.Queue[Optional[ServerMessage]]" = queue.Queue(maxsize=1)
        self._awaiting_reply = False
        self._send_lock = threading.Lock()
        self._ready = threading.Event()
        self._stopped = threading.Event()
        self._failure: Optional[Exception] = None
        self._timed_out = False

        self._receiver = threading.Thread(
            target=self._receive_loop,
            name=f"ssip-receiver[{transport}]",
            daemon=True,
        )
        self._receiver.start()
        # No command may be written before the receive side exists.
        self._ready.wait()
        if self._writer is None:
            self._socket.close()
            raise SSIPConnectionError(
                f"Can't open socket using {transport}: no stream available"
            ) from self._failure
        logger.debug(f"Connected to speech daemon at {transport}")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def send_command(self, command: str, *args) -> ServerMessage:
        """Send one command line and return the daemon's reply.

        Raises:
            SSIPCommandError: the reply status is not 2xx.
            SSIPConnectionError: the transport failed before a reply arrived.
        """
        payload = render_command(command, *args)
        with self._send_lock:
            return self._exchange(payload, payload[: -len(NEWLINE)])

    def send_data(self, text: str) -> ServerMessage:
        """Send a free-text data block (the body of ``SPEAK``) and return the reply."""
        payload = encode_data(text)
        with self._send_lock:
            return self._exchange(payload, payload)

    def send_command_with_data(self, command: str, text: str, *args) -> ServerMessage:
        """Send a command that opens a data block, then the block itself.

        Both exchanges happen under one hold of the send lock, so no other
        caller's command can land inside the block. Returns the reply to the
        data block.
        """
        payload = render_command(command, *args)
        with self._send_lock:
            self._exchange(payload, payload[: -len(NEWLINE)])
            data = encode_data(text)
            return self._exchange(data, data)

    def _exchange(self, payload: str, description: str) -> ServerMessage:
        # Caller holds _send_lock.
        if self._timed_out:
            raise SSIPConnectionError("Connection is unusable after a reply timeout")
        if self._stopped.is_set():
            raise SSIPConnectionError("Speech daemon connection lost") from self._failure

        writer = self._writer
        if writer is None:
            raise SSIPConnectionError("Connection is closed")

        self._awaiting_reply = True
        try:
            try:
                writer.write(payload.encode(ENCODING))
                writer.flush()
            except (OSError, ValueError) as e:
                raise SSIPConnectionError("Speech daemon connection lost") from e

            try:
                reply = self._replies.get(timeout=self.reply_timeout)
            except queue.Empty:
                self._timed_out = True
                raise SSIPTimeoutError(
                    f"No reply to {description!r} within {self.reply_timeout}s"
                ) from None
        finally:
            self._awaiting_reply = False

        if reply is None:
            raise SSIPConnectionError("Speech daemon connection lost") from self._failure

        if not reply.is_success:
            raise SSIPCommandError(reply.code, reply.message, description)

        return reply

    # ------------------------------------------------------------------
    # Receive side
    # ------------------------------------------------------------------

    def _receive_loop(self) -> None:
        try:
            reader = self._socket.makefile("rb")
            self._writer = self._socket.makefile("wb")
        except (OSError, ValueError) as e:
            logger.error(f"Can't open streams on the speech daemon socket: {e}")
            self._failure = e
            self._stopped.set()
            return
        finally:
            # Set on failure too; the constructor checks _writer.
            self._ready.set()

        try:
            with reader:
                while True:
                    message = read_message(reader)
                    if message is None:
                        logger.debug("Speech daemon closed the connection")
                        return
                    if message.is_event:
                        self._handle_event(message)
                    else:
                        self._handle_reply(message)
        except SSIPProtocolError as e:
            logger.error(f"Invalid data received from the speech daemon: {e}")
            self._failure = e
        except (OSError, ValueError) as e:
            logger.debug(f"Receive loop stopped: {e}")
            self._failure = e
        finally:
            self._stopped.set()
            try:
                self._replies.put_nowait(None)
            except queue.Full:
                # The waiting sender still has its reply to collect.
                pass

    def _handle_reply(self, message: ServerMessage) -> None:
        if not self._awaiting_reply:
            logger.warning(f"Dropping unsolicited reply: {message.code} {message.message}")
            return
        try:
            self._replies.put_nowait(message)
        except queue.Full:
            logger.warning(f"Dropping extra reply: {message.code} {message.message}")

    def _handle_event(self, message: ServerMessage) -> None:
        # A malformed payload raises SSIPProtocolError and ends the loop; an
        # unknown 7xx code only loses that one event.
        try:
            event = Event.from_message(message)
        except ValueError as e:
            logger.error(f"Dropping event: {e}")
            return

        handler = self.callback
        if handler is None:
            logger.debug(f"No callback handler attached, dropping {event}")
            return

        try:
            handler.dispatch(event)
        except Exception:
            logger.exception(f"Event callback failed for job {event.message_id}")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._writer is None or self._stopped.is_set()

    def close(self) -> None:
        """Shut the socket down and wait for the receive thread to finish.

        No callback runs after this returns. Calling it again is harmless.
        """
        writer, self._writer = self._writer, None
        try:
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Socket shutdown: {e}")
        self._socket.close()

        if writer is not None:
            try:
                writer.close()
            except OSError as e:
                logger.debug(f"Closing writer: {e}")

        if threading.current_thread() is not self._receiver:
            self._receiver.join()
        logger.debug(f"Connection to {self.transport} closed")

    def __enter__(self) -> "SSIPConnection":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
