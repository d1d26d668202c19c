"""Client for the Speech Dispatcher SSIP protocol"""

from .callbacks import CallbackHandler
from .client import (
    CapitalLetterRecognitionMode,
    DataMode,
    Priority,
    PunctuationMode,
    Scope,
    SSIPClient,
    VoiceInfo,
    VoiceType,
)
from .connection import SSIPConnection
from .errors import (
    SpawnError,
    SSIPCommandError,
    SSIPConnectionError,
    SSIPError,
    SSIPProtocolError,
    SSIPTimeoutError,
)
from .protocol import CallbackType, Event, ServerMessage
from .transport import InetSocketTransport, UnixSocketTransport, parse_address

__all__ = [
    "CallbackHandler",
    "CallbackType",
    "CapitalLetterRecognitionMode",
    "DataMode",
    "Event",
    "InetSocketTransport",
    "Priority",
    "PunctuationMode",
    "Scope",
    "ServerMessage",
    "SpawnError",
    "SSIPClient",
    "SSIPCommandError",
    "SSIPConnection",
    "SSIPConnectionError",
    "SSIPError",
    "SSIPProtocolError",
    "SSIPTimeoutError",
    "UnixSocketTransport",
    "VoiceInfo",
    "VoiceType",
    "parse_address",
]
