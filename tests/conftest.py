import logging
import socket
import sys
import threading
from contextlib import suppress
from pathlib import Path
from typing import Callable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


NODE_HELLO = b"NodeHello\nFCPVersion=2.0\nNode=TestNode\nVersion=Fred,0.7,1.0,1497\nEndMessage\n"


def read_message_bytes(f) -> bytes:
    """Read one raw message (through EndMessage) from a socket file."""
    data = b""
    while True:
        line = f.readline()
        if not line:
            return data
        data += line
        if line == b"EndMessage\n":
            return data


class StubNode:
    """
    Minimal FCP node on an ephemeral localhost port.

    Serves ``connections`` connections one after another. On each it reads
    the ClientHello, answers with ``hello_reply`` and then answers every
    further message with the next entry of ``replies``. ``done`` is set once
    the last client has gone away.
    """

    def __init__(self, hello_reply: bytes = NODE_HELLO, replies: Optional[List[bytes]] = None,
                 after_hello: Optional[Callable[[socket.socket], None]] = None,
                 connections: int = 1) -> None:
        self.hello_reply = hello_reply
        self.replies = list(replies or [])
        self.after_hello = after_hello
        self.connections = connections
        self.received: List[bytes] = []
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.host, self.port = self.listener.getsockname()
        self.done = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> "StubNode":
        self._thread.start()
        return self

    def _serve(self) -> None:
        for _ in range(self.connections):
            try:
                conn, _ = self.listener.accept()
            except OSError:
                return
            with suppress(OSError):
                self._handle(conn)
        self.done.set()

    def _handle(self, conn: socket.socket) -> None:
        with conn, conn.makefile("rb") as f:
            self.received.append(read_message_bytes(f))
            conn.sendall(self.hello_reply)
            if self.after_hello is not None:
                self.after_hello(conn)
            for reply in self.replies:
                raw = read_message_bytes(f)
                if not raw:
                    break
                self.received.append(raw)
                conn.sendall(reply)
            # Wait for the client to go away
            while f.readline():
                pass

    def stop(self) -> None:
        with suppress(OSError):
            self.listener.shutdown(socket.SHUT_RDWR)
        self.listener.close()
        self._thread.join(timeout=2.0)


@pytest.fixture
def stub_node():
    nodes = []

    def factory(**kwargs) -> StubNode:
        node = StubNode(**kwargs).start()
        nodes.append(node)
        return node

    yield factory
    for node in nodes:
        node.stop()


@pytest.fixture
def free_port() -> int:
    """A localhost port with nothing listening on it."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's ~/.fcp/config.yaml and FCP_* settings."""
    monkeypatch.setenv("FCP_CONFIG", str(tmp_path / "missing.yaml"))
    for name in ("FCP_HOST", "FCP_PORT", "FCP_CLIENT_NAME", "FCP_TIMEOUT", "FCP_LOG_LEVEL", "FCP_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo level changes and root handlers installed by the CLI or log helpers."""
    from fcp import log

    root = logging.getLogger()
    root_level = root.level
    levels = {name: logging.getLogger(name).level for name in log._loggers_configured}
    yield
    for handler in list(root.handlers):
        if (handler.get_name() or "").startswith(log.HANDLER_PREFIX):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(root_level)
    root.propagate = True
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
