"""Per-job event callback registry and dispatch."""

import threading
from typing import Callable, Dict, Optional, Tuple

from loguru import logger

from .protocol import TERMINAL_EVENTS, CallbackType, Event

EventCallback = Callable[[CallbackType, Optional[str]], None]


class CallbackHandler:
    """Routes job events to the callback registered for the job id.

    Each job id has at most one registration. It is dropped once the job
    reports ``END`` or ``CANCEL``, whether or not the callback subscribed to
    that kind, so nothing is delivered for a job after its terminal event.
    """

    def __init__(self, client_id: int):
        self.client_id = client_id
        self._callbacks: Dict[int, Tuple[EventCallback, CallbackType]] = {}
        self._lock = threading.RLock()

    def add_callback(
        self,
        message_id: int,
        callback: EventCallback,
        event_types: CallbackType = CallbackType.ALL,
    ) -> None:
        """Register ``callback`` for ``message_id``, replacing any earlier one."""
        with self._lock:
            self._callbacks[message_id] = (callback, CallbackType(event_types))

    def invoke(
        self,
        message_id: int,
        client_id: int,
        callback_type: CallbackType,
        index_mark: Optional[str] = None,
    ) -> None:
        """Deliver one event to the callback registered for ``message_id``.

        The callback runs on the calling thread with the registry lock held.
        """
        if client_id != self.client_id:
            logger.debug(f"Ignoring event for client {client_id} (we are {self.client_id})")
            return

        with self._lock:
            registration = self._callbacks.get(message_id)
            if registration is None:
                return

            callback, event_types = registration
            try:
                if event_types & callback_type:
                    callback(callback_type, index_mark)
            finally:
                if callback_type & TERMINAL_EVENTS:
                    self._callbacks.pop(message_id, None)

    def dispatch(self, event: Event) -> None:
        self.invoke(event.message_id, event.client_id, event.kind, event.index_mark)

    def __contains__(self, message_id: int) -> bool:
        with self._lock:
            return message_id in self._callbacks

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)
