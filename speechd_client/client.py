"""High level SSIP client: speech commands on top of :class:`SSIPConnection`."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Type, TypeVar

from loguru import logger

from .autospawn import spawn_server
from .callbacks import CallbackHandler, EventCallback
from .connection import SSIPConnection
from .errors import SpawnError, SSIPCommandError, SSIPConnectionError
from .protocol import EVENT_KINDS, CallbackType, ServerMessage, notification_token
from .transport import Transport, UnixSocketTransport, parse_address


class Scope:
    """Targets for settings and job control. A numeric client id also works."""

    SELF = "self"
    ALL = "all"


class Priority(Enum):
    IMPORTANT = "important"
    MESSAGE = "message"
    TEXT = "text"
    NOTIFICATION = "notification"
    PROGRESS = "progress"


class PunctuationMode(Enum):
    ALL = "all"
    NONE = "none"
    SOME = "some"
    MOST = "most"


class CapitalLetterRecognitionMode(Enum):
    NONE = "none"
    SPELL = "spell"
    ICON = "icon"


class DataMode(Enum):
    TEXT = "off"
    SSML = "on"


class VoiceType(Enum):
    FEMALE1 = "female1"
    FEMALE2 = "female2"
    FEMALE3 = "female3"
    MALE1 = "male1"
    MALE2 = "male2"
    MALE3 = "male3"
    CHILD_FEMALE1 = "child_female1"
    CHILD_FEMALE2 = "child_female2"
    CHILD_FEMALE3 = "child_female3"
    CHILD_MALE1 = "child_male1"
    CHILD_MALE2 = "child_male2"
    CHILD_MALE3 = "child_male3"


@dataclass(frozen=True)
class VoiceInfo:
    name: str
    language: Optional[str] = None
    variant: Optional[str] = None

    @classmethod
    def parse(cls, line: str) -> "VoiceInfo":
        """Parse one ``LIST SYNTHESIS_VOICES`` line (tab separated)."""
        fields = line.split("\t")
        language = fields[1] if len(fields) > 1 else None
        variant = fields[2] if len(fields) > 2 else None
        return cls(fields[0], language, variant)


E = TypeVar("E", bound=Enum)


def _token(enum_type: Type[E], value) -> str:
    """Wire token for an enum member or its token string; unknown values raise."""
    if isinstance(value, enum_type):
        return value.value
    try:
        return enum_type(value).value
    except ValueError:
        raise ValueError(f"{value!r} is not a valid {enum_type.__name__}") from None


def _check_range(setting: str, value: int) -> None:
    if not -100 <= value <= 100:
        raise ValueError(f"Invalid value for {setting} ({value}). The valid range is -100 to 100.")


class SSIPClient:
    """A named client session with the speech daemon.

    Args:
        name: Application name, the middle part of the client name.
        component: Component of the application issuing speech.
        user: User name reported to the daemon.
        transport: Daemon address; defaults to the per-user Unix socket.
        autospawn: Start the daemon and retry once if the first connect fails.
        reply_timeout: Seconds to wait for each reply, None to wait forever.
        server_command: Daemon executable used for autospawn.
    """

    def __init__(
        self,
        name: str,
        component: str = "default",
        user: str = "unknown",
        transport: Optional[Transport] = None,
        autospawn: bool = True,
        reply_timeout: Optional[float] = None,
        server_command: Optional[str] = None,
    ):
        self.transport = transport or UnixSocketTransport()
        self._connection = self._connect(autospawn, reply_timeout, server_command)
        try:
            self._callback_handler = self._initialize(user, name, component)
        except Exception:
            self._connection.close()
            raise

    @classmethod
    def from_settings(cls, settings, name: Optional[str] = None) -> "SSIPClient":
        """Build a client from a :class:`~speechd_client.config.ClientSettings`."""
        return cls(
            name or settings.client_name,
            component=settings.component,
            user=settings.user,
            transport=parse_address(settings.address),
            autospawn=settings.autospawn,
            reply_timeout=settings.reply_timeout,
            server_command=settings.server_command,
        )

    def _connect(
        self,
        autospawn: bool,
        reply_timeout: Optional[float],
        server_command: Optional[str],
    ) -> SSIPConnection:
        try:
            return SSIPConnection(self.transport, reply_timeout)
        except SSIPConnectionError as e:
            if not autospawn:
                raise
            logger.info(f"{e}; trying to autospawn the speech daemon")
            try:
                spawn_server(self.transport, server_command)
            except SpawnError as spawn_error:
                raise SSIPConnectionError(str(e)) from spawn_error
            return SSIPConnection(self.transport, reply_timeout)

    def _initialize(self, user: str, name: str, component: str) -> CallbackHandler:
        self._send("SET", Scope.SELF, "CLIENT_NAME", f"{user}:{name}:{component}")
        reply = self._send("HISTORY", "GET", "CLIENT_ID")
        client_id = int(reply.data[0])

        handler = CallbackHandler(client_id)
        self._connection.callback = handler

        for kind in EVENT_KINDS:
            self._send("SET", Scope.SELF, "NOTIFICATION", notification_token(kind), "on")

        logger.debug(f"Client {user}:{name}:{component} registered with id {client_id}")
        return handler

    def _send(self, command: str, *args) -> ServerMessage:
        return self._connection.send_command(command, *args)

    @property
    def client_id(self) -> int:
        return self._callback_handler.client_id

    @property
    def connection(self) -> SSIPConnection:
        return self._connection

    # ------------------------------------------------------------------
    # Speech output
    # ------------------------------------------------------------------

    def speak(
        self,
        text: str,
        callback: Optional[EventCallback] = None,
        event_types: CallbackType = CallbackType.ALL,
    ) -> ServerMessage:
        """Queue ``text`` for synthesis.

        The reply's first data line is the job id. When ``callback`` is given
        it is called as ``callback(kind, index_mark)`` for each event of the
        job whose kind is in ``event_types``, on the receive thread.
        """
        result = self._connection.send_command_with_data("SPEAK", text)

        if callback is not None:
            message_id = int(result.data[0])
            self._callback_handler.add_callback(message_id, callback, event_types)

        return result

    def char(self, ch: str) -> None:
        self._send("CHAR", "space" if ch == " " else ch)

    def key(self, key: str) -> None:
        self._send("KEY", key)

    def sound_icon(self, sound_icon: str) -> None:
        self._send("SOUND_ICON", sound_icon)

    def cancel(self, scope=Scope.SELF) -> None:
        self._send("CANCEL", scope)

    def stop(self, scope=Scope.SELF) -> None:
        self._send("STOP", scope)

    def pause(self, scope=Scope.SELF) -> None:
        self._send("PAUSE", scope)

    def resume(self, scope=Scope.SELF) -> None:
        self._send("RESUME", scope)

    def block_begin(self) -> None:
        self._send("BLOCK", "BEGIN")

    def block_end(self) -> None:
        self._send("BLOCK", "END")

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def list_output_modules(self) -> List[str]:
        return list(self._send("LIST", "OUTPUT_MODULES").data)

    def list_synthesis_voices(self) -> List[VoiceInfo]:
        """Voices of the current output module; empty if the module has none."""
        try:
            reply = self._send("LIST", "SYNTHESIS_VOICES")
        except SSIPCommandError as e:
            logger.debug(f"No synthesis voices available: {e}")
            return []
        return [VoiceInfo.parse(line) for line in reply.data]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _get(self, setting: str) -> Optional[str]:
        data = self._send("GET", setting).data
        return data[0] if data else None

    def _get_int(self, setting: str) -> Optional[int]:
        value = self._get(setting)
        return int(value) if value is not None else None

    def set_priority(self, priority: Priority) -> None:
        self._send("SET", Scope.SELF, "PRIORITY", _token(Priority, priority))

    def set_data_mode(self, data_mode: DataMode) -> None:
        self._send("SET", Scope.SELF, "SSML_MODE", _token(DataMode, data_mode))

    def set_language(self, language: str, scope=Scope.SELF) -> None:
        self._send("SET", scope, "LANGUAGE", language)

    def get_language(self) -> Optional[str]:
        return self._get("LANGUAGE")

    def set_output_module(self, name: str, scope=Scope.SELF) -> None:
        self._send("SET", scope, "OUTPUT_MODULE", name)

    def get_output_module(self) -> Optional[str]:
        return self._get("OUTPUT_MODULE")

    def set_pitch(self, pitch: int, scope=Scope.SELF) -> None:
        _check_range("pitch", pitch)
        self._send("SET", scope, "PITCH", pitch)

    def get_pitch(self) -> Optional[int]:
        return self._get_int("PITCH")

    def set_pitch_range(self, pitch_range: int, scope=Scope.SELF) -> None:
        _check_range("pitch range", pitch_range)
        self._send("SET", scope, "PITCH_RANGE", pitch_range)

    def get_pitch_range(self) -> Optional[int]:
        return self._get_int("PITCH_RANGE")

    def set_rate(self, rate: int, scope=Scope.SELF) -> None:
        _check_range("rate", rate)
        self._send("SET", scope, "RATE", rate)

    def get_rate(self) -> Optional[int]:
        return self._get_int("RATE")

    def set_volume(self, volume: int, scope=Scope.SELF) -> None:
        _check_range("volume", volume)
        self._send("SET", scope, "VOLUME", volume)

    def get_volume(self) -> Optional[int]:
        return self._get_int("VOLUME")

    def set_punctuation(self, mode: PunctuationMode, scope=Scope.SELF) -> None:
        self._send("SET", scope, "PUNCTUATION", _token(PunctuationMode, mode))

    def get_punctuation(self) -> Optional[PunctuationMode]:
        value = self._get("PUNCTUATION")
        if value is None:
            return None
        try:
            return PunctuationMode(value)
        except ValueError:
            raise ValueError(f"{value!r} is not a valid PunctuationMode") from None

    def set_spelling(self, spelling: bool, scope=Scope.SELF) -> None:
        self._send("SET", scope, "SPELLING", "on" if spelling else "off")

    def set_capital_letter_recognition(
        self, mode: CapitalLetterRecognitionMode, scope=Scope.SELF
    ) -> None:
        self._send("SET", scope, "CAP_LET_RECOGN", _token(CapitalLetterRecognitionMode, mode))

    def set_voice(self, voice_type: VoiceType, scope=Scope.SELF) -> None:
        self._send("SET", scope, "VOICE_TYPE", _token(VoiceType, voice_type))

    def set_synthesis_voice(self, name: str, scope=Scope.SELF) -> None:
        self._send("SET", scope, "SYNTHESIS_VOICE", name)

    def set_pause_context(self, pause_context: int, scope=Scope.SELF) -> None:
        self._send("SET", scope, "PAUSE_CONTEXT", pause_context)

    def set_debug(self, debug: bool) -> None:
        self._send("SET", Scope.ALL, "DEBUG", "on" if debug else "off")

    def set_debug_destination(self, destination: str) -> None:
        self._send("SET", Scope.ALL, "DEBUG_DESTINATION", destination)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "SSIPClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
