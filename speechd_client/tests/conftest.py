"""In-process fake speech daemon speaking SSIP over a local socket."""

import os
import shutil
import socket
import tempfile
import threading
import time

import pytest

from speechd_client.protocol import NEWLINE, decode_data
from speechd_client.transport import InetSocketTransport, UnixSocketTransport


def reply(code, message, *data):
    """Render a server message: one ``CCC-`` line per data item, then ``CCC text``."""
    lines = [f"{code}-{item}" for item in data] + [f"{code} {message}"]
    return "".join(line + NEWLINE for line in lines)


def event(code, message_id, client_id, index_mark=None):
    data = [str(message_id), str(client_id)]
    if index_mark is not None:
        data.append(index_mark)
    return reply(code, "EVENT", *data)


# Marker for scripted replies: drop the connection instead of answering.
HANG_UP = object()


class FakeSpeechd:
    """Accepts one client and answers SSIP commands with canned replies.

    ``replies`` maps a command prefix to a raw reply (or ``HANG_UP``); it
    takes precedence over the built-in answers.
    """

    CLIENT_ID = 7

    def __init__(self, path=None):
        self.received = []
        self.raw_blocks = []
        self.data_blocks = []
        self.replies = {}
        self.data_reply = None
        self.next_message_id = 21

        self._conn = None
        self._connected = threading.Event()
        self._send_lock = threading.Lock()

        if path:
            self._server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self._server.bind(path)
            self.transport = UnixSocketTransport(path)
        else:
            self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._server.bind(("127.0.0.1", 0))
            self.transport = InetSocketTransport("127.0.0.1", self._server.getsockname()[1])
        self._server.listen(1)

        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    # -- canned answers ------------------------------------------------------

    def respond(self, line):
        for prefix, raw in self.replies.items():
            if line.startswith(prefix):
                return raw

        words = line.split(" ")
        verb = words[0]
        if verb == "SET":
            return reply(208, "OK SET")
        if line == "HISTORY GET CLIENT_ID":
            return reply(240, "OK CLIENT ID SENT", self.CLIENT_ID)
        if verb == "SPEAK":
            return reply(230, "OK RECEIVING DATA")
        if line == "LIST OUTPUT_MODULES":
            return reply(250, "OK MODULE LIST SENT", "espeak-ng", "dummy")
        if line == "LIST SYNTHESIS_VOICES":
            return reply(249, "OK VOICE LIST SENT", "Anna\tde\tnone", "Bob\ten-US", "Cleo")
        if verb == "GET" and len(words) == 2:
            values = {"RATE": "10", "PUNCTUATION": "some", "LANGUAGE": "en", "OUTPUT_MODULE": "espeak-ng"}
            # Unknown settings echo their own name back.
            return reply(251, "OK GET RETURNED", values.get(words[1], words[1]))
        if verb in ("CANCEL", "STOP", "PAUSE", "RESUME", "CHAR", "KEY", "SOUND_ICON", "BLOCK"):
            return reply(210, "OK")
        return reply(500, "ERR UNKNOWN COMMAND")

    def respond_data(self, lines):
        if self.data_reply is not None:
            return self.data_reply
        message_id = self.next_message_id
        self.next_message_id += 1
        return reply(225, "OK MESSAGE QUEUED", message_id)

    # -- connection handling -------------------------------------------------

    def _serve(self):
        try:
            conn, _ = self._server.accept()
        except OSError:
            return
        self._conn = conn
        self._connected.set()

        block = None
        try:
            with conn.makefile("rb") as reader:
                for raw in reader:
                    line = raw.decode("utf-8").rstrip("\r\n")
                    if block is not None:
                        block.append(line)
                        if line == ".":
                            self.raw_blocks.append(block)
                            self.data_blocks.append(decode_data(NEWLINE.join(block) + NEWLINE))
                            block = None
                            self._answer(self.respond_data(self.data_blocks[-1]))
                        continue

                    self.received.append(line)
                    answer = self.respond(line)
                    if line == "SPEAK" and answer is not HANG_UP and answer.startswith("230"):
                        block = []
                    self._answer(answer)
        except OSError:
            pass

    def _answer(self, answer):
        if answer is HANG_UP:
            self.hang_up()
        elif answer:
            self.send_raw(answer)

    def send_raw(self, text):
        """Push bytes to the client, e.g. events."""
        assert self._connected.wait(5), "client never connected"
        with self._send_lock:
            self._conn.sendall(text.encode("utf-8"))

    def hang_up(self):
        assert self._connected.wait(5), "client never connected"
        try:
            self._conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def wait_for_command(self, line, timeout=5.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if line in self.received:
                return True
            time.sleep(0.01)
        return False

    def close(self):
        # shutdown() wakes a blocked accept(); close() alone does not on Linux.
        try:
            self._server.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._server.close()
        if self._conn is not None:
            self.hang_up()
            self._conn.close()
        self._thread.join(timeout=5)


@pytest.fixture
def speechd():
    server = FakeSpeechd()
    yield server
    server.close()


@pytest.fixture
def short_tmp_dir():
    """A directory with a path short enough for AF_UNIX socket names."""
    directory = tempfile.mkdtemp(prefix="ssip", dir="/tmp")
    yield directory
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def unix_speechd(short_tmp_dir):
    if not hasattr(socket, "AF_UNIX"):
        pytest.skip("Unix domain sockets not available")
    server = FakeSpeechd(path=os.path.join(short_tmp_dir, "speechd.sock"))
    yield server
    server.close()


@pytest.fixture
def free_port():
    """A TCP port nothing is listening on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
