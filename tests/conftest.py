#
# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import socket
import threading
import time
from typing import Callable, Optional

import pytest
from h2 import events as h2_events
from h2.config import H2Configuration
from h2.connection import H2Connection

from goaway_harness import logger as logger_module
from goaway_harness.config import ServerConfig
from goaway_harness.server import IdleGoawayConnection, StreamRouter, SyncStream
from goaway_harness.tls import generate_self_signed

# Short teardown schedule shared by the protocol-level tests
FAST_THRESHOLD = 0.5
FAST_GRACE = 0.5
FAST_POLL = 0.05


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def restore_logger():
    """Drop any logger instance installed by a test; the next call builds a fresh default."""
    yield
    logger_module._instance = None


@pytest.fixture(scope="session")
def credentials():
    return generate_self_signed()


@pytest.fixture
def fast_config() -> ServerConfig:
    return ServerConfig(
        port=0,
        idle_threshold=FAST_THRESHOLD,
        grace_period=FAST_GRACE,
        poll_interval=FAST_POLL,
        chunk_delay=0.01,
    )


class H2Peer:
    """
    Client side of an HTTP/2 connection, driven step by step from a test.

    Every event received is kept in ``events`` so assertions can look at the full
    history of the connection.
    """

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.conn = H2Connection(H2Configuration(client_side=True, header_encoding="utf-8"))
        self.events: list[h2_events.Event] = []
        self.closed = False
        self.conn.initiate_connection()
        self.flush()

    def flush(self) -> None:
        data = self.conn.data_to_send()
        if data:
            self.sock.sendall(data)

    def request(
        self,
        method: str,
        path: str,
        headers: tuple = (),
        body: Optional[bytes] = None,
        end_stream: bool = True,
    ) -> int:
        stream_id = self.conn.get_next_available_stream_id()
        request_headers = [
            (":method", method),
            (":path", path),
            (":scheme", "https"),
            (":authority", "localhost"),
        ] + list(headers)
        self.conn.send_headers(stream_id, request_headers, end_stream=end_stream and body is None)
        if body is not None:
            self.conn.send_data(stream_id, body, end_stream=end_stream)
        self.flush()
        return stream_id

    def send_data(self, stream_id: int, data: bytes, end_stream: bool = False) -> None:
        self.conn.send_data(stream_id, data, end_stream=end_stream)
        self.flush()

    def end_stream(self, stream_id: int) -> None:
        self.conn.end_stream(stream_id)
        self.flush()

    def receive_once(self, timeout: float) -> None:
        self.sock.settimeout(timeout)
        try:
            data = self.sock.recv(65535)
        except socket.timeout:
            return
        except OSError:
            data = b""
        if not data:
            self.closed = True
            return
        self.events.extend(self.conn.receive_data(data))
        self.flush()

    def read_until(self, predicate: Callable[["H2Peer"], bool], timeout: float = 5.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate(self):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AssertionError(f"condition not met within {timeout}s, events: {self.events}")
            if self.closed:
                raise AssertionError(f"connection closed before condition was met, events: {self.events}")
            self.receive_once(min(remaining, 0.1))

    def wait_closed(self, timeout: float = 5.0) -> None:
        deadline = time.monotonic() + timeout
        while not self.closed:
            if time.monotonic() > deadline:
                raise AssertionError(f"connection still open after {timeout}s")
            self.receive_once(0.1)

    # ----------- views over the event history -----------

    def of_type(self, event_type: type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]

    def response_headers(self, stream_id: int) -> Optional[dict[str, str]]:
        for event in self.of_type(h2_events.ResponseReceived):
            if event.stream_id == stream_id:
                return dict(event.headers)
        return None

    def data_frames(self, stream_id: int) -> list[bytes]:
        return [e.data for e in self.of_type(h2_events.DataReceived) if e.stream_id == stream_id]

    def body(self, stream_id: int) -> bytes:
        return b"".join(self.data_frames(stream_id))

    def stream_ended(self, stream_id: int) -> bool:
        return any(e.stream_id == stream_id for e in self.of_type(h2_events.StreamEnded))

    def goaways(self) -> list[h2_events.ConnectionTerminated]:
        return self.of_type(h2_events.ConnectionTerminated)


class ServedConnection:
    """An IdleGoawayConnection serving one end of a socket pair in a background thread."""

    def __init__(self, config: ServerConfig) -> None:
        server_sock, client_sock = socket.socketpair()
        self.connection = IdleGoawayConnection(SyncStream(server_sock), config, StreamRouter.default(config), conn_id=1)
        self.thread = threading.Thread(target=self.connection.serve, daemon=True)
        self.thread.start()
        self.peer = H2Peer(client_sock)

    @property
    def state(self):
        return self.connection.state

    def close(self) -> None:
        try:
            self.peer.sock.close()
        finally:
            self.thread.join(timeout=5.0)


@pytest.fixture
def served(fast_config):
    served = ServedConnection(fast_config)
    yield served
    served.close()


@pytest.fixture
def h2_peer():
    """Factory for H2Peer over an already connected socket."""
    return H2Peer
