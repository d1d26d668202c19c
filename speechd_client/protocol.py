"""SSIP wire format: line framing, replies, data blocks and events.

Every line the server sends has the shape ``CCC<sep>text`` followed by CR LF.
``CCC`` is a three character status code and ``<sep>`` is ``-`` when more
lines of the same message follow, or a space on the final line::

    225-21
    225 OK MESSAGE QUEUED

Codes in the 7xx range are asynchronous events, never replies::

    700-21      job id
    700-7       client id
    700-mark1   index mark (700 only)
    700 INDEX MARK
"""

import re
from dataclasses import dataclass
from enum import IntFlag
from typing import BinaryIO, List, Optional, Tuple

from .errors import SSIPProtocolError

NEWLINE = "\r\n"
END_OF_DATA = "."
ENCODING = "utf-8"

_LONE_DOT = re.compile(r"^\.$", re.MULTILINE)


class CallbackType(IntFlag):
    """Event kinds, usable as a subscription mask."""

    NONE = 0
    INDEX_MARK = 1
    BEGIN = 2
    END = 4
    CANCEL = 8
    PAUSE = 16
    RESUME = 32
    ALL = INDEX_MARK | BEGIN | END | CANCEL | PAUSE | RESUME


EVENT_KINDS = (
    CallbackType.INDEX_MARK,
    CallbackType.BEGIN,
    CallbackType.END,
    CallbackType.CANCEL,
    CallbackType.PAUSE,
    CallbackType.RESUME,
)

# A job gets no further events after either of these.
TERMINAL_EVENTS = CallbackType.END | CallbackType.CANCEL

EVENT_CODES = {
    700: CallbackType.INDEX_MARK,
    701: CallbackType.BEGIN,
    702: CallbackType.END,
    703: CallbackType.CANCEL,
    704: CallbackType.PAUSE,
    705: CallbackType.RESUME,
}

NOTIFICATION_TOKENS = {
    CallbackType.INDEX_MARK: "index_marks",
    CallbackType.BEGIN: "begin",
    CallbackType.END: "end",
    CallbackType.CANCEL: "cancel",
    CallbackType.PAUSE: "pause",
    CallbackType.RESUME: "resume",
}


def callback_type_for_code(code: int) -> CallbackType:
    """Map a 7xx status code to its event kind."""
    try:
        return EVENT_CODES[code]
    except KeyError:
        raise ValueError(f"{code} is not an event status code") from None


def notification_token(kind: CallbackType) -> str:
    """Map a single event kind to its ``SET self NOTIFICATION`` token."""
    try:
        return NOTIFICATION_TOKENS[kind]
    except KeyError:
        raise ValueError(f"No notification token for event kind {kind!r}") from None


@dataclass(frozen=True)
class ServerMessage:
    """One complete server message: data lines followed by a status line."""

    code: int
    message: str
    data: Tuple[str, ...] = ()

    @property
    def is_event(self) -> bool:
        return self.code // 100 == 7

    @property
    def is_success(self) -> bool:
        return self.code // 100 == 2


@dataclass(frozen=True)
class Event:
    """A lifecycle notification for a previously submitted job."""

    message_id: int
    client_id: int
    kind: CallbackType
    index_mark: Optional[str] = None

    @classmethod
    def from_message(cls, message: ServerMessage) -> "Event":
        """Decode an event from a 7xx server message."""
        kind = callback_type_for_code(message.code)
        needed = 3 if kind == CallbackType.INDEX_MARK else 2
        if len(message.data) < needed:
            raise SSIPProtocolError(
                f"Event {message.code} carries {len(message.data)} data lines, expected {needed}"
            )
        try:
            message_id = int(message.data[0])
            client_id = int(message.data[1])
        except ValueError:
            raise SSIPProtocolError(
                f"Event {message.code} has non-numeric ids: {message.data[:2]!r}"
            ) from None
        index_mark = message.data[2] if kind == CallbackType.INDEX_MARK else None
        return cls(message_id, client_id, kind, index_mark)


def parse_line(line: str) -> Tuple[int, bool, str]:
    """Split one server line into ``(code, is_final, text)``.

    Raises:
        SSIPProtocolError: the line breaks the ``CCC<sep>text`` shape.
    """
    if len(line) < 4:
        raise SSIPProtocolError("Line too short", line)

    code, separator, text = line[:3], line[3], line[4:]
    if not (code.isascii() and code.isalnum()):
        raise SSIPProtocolError(f"Invalid status code {code!r}", line)
    if separator not in (" ", "-"):
        raise SSIPProtocolError(f"Invalid separator {separator!r}", line)
    try:
        numeric = int(code)
    except ValueError:
        raise SSIPProtocolError(f"Status code {code!r} is not numeric", line) from None

    return numeric, separator == " ", text


def read_message(reader: BinaryIO) -> Optional[ServerMessage]:
    """Read lines from ``reader`` until one complete message is assembled.

    Returns None at end of stream, including a stream that ends in the
    middle of a message.
    """
    data: List[str] = []
    while True:
        raw = reader.readline()
        if not raw.endswith(b"\n"):
            return None

        line = raw[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]

        code, is_final, text = parse_line(line.decode(ENCODING, errors="replace"))
        if is_final:
            return ServerMessage(code, text, tuple(data))
        data.append(text)


def render_command(command: str, *args) -> str:
    """Render a command line, terminator included.

    Arguments are converted with ``str`` and joined by single spaces. No
    quoting exists in SSIP, so a token must not contain a line break.
    """
    tokens = [str(token) for token in (command, *args)]
    for token in tokens:
        if "\r" in token or "\n" in token:
            raise ValueError(f"Command token contains a line break: {token!r}")
    return " ".join(tokens) + NEWLINE


def encode_data(text: str) -> str:
    """Render a free-text data block, end-of-data line included.

    Line endings become CR LF and a line consisting of a single period is
    sent as two periods so it cannot end the block early.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _LONE_DOT.sub("..", text)
    if not text.endswith("\n"):
        text += "\n"
    return text.replace("\n", NEWLINE) + END_OF_DATA + NEWLINE


def decode_data(block: str) -> List[str]:
    """Reverse :func:`encode_data`, returning the block's lines."""
    lines = block.split(NEWLINE)
    if lines and lines[-1] == "":
        lines.pop()
    if not lines or lines[-1] != END_OF_DATA:
        raise ValueError("Data block is not terminated by a lone period")
    lines.pop()
    return ["." if line == ".." else line for line in lines]
