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

import collections
import itertools
import threading
from dataclasses import dataclass
from typing import Optional

from goaway_harness.common import constants
from goaway_harness.config import ServerConfig
from goaway_harness.logger import logger
from goaway_harness.tls import TLSCredentials, create_server_ssl_context, generate_self_signed

from ._backend import SyncStream, SyncTCPServer, create_tcp_server
from ._connection import IdleGoawayConnection
from ._router import StreamRouter
from ._state import ConnectionStatus

__all__ = ["ConnectionSnapshot", "ServerStats", "GoawayServer"]


@dataclass(frozen=True)
class ConnectionSnapshot:
    conn_id: int
    remote_address: Optional[tuple]
    status: ConnectionStatus
    request_count: int
    goaways_sent: int
    force_closed: bool
    discarded_bytes: int

    @classmethod
    def of(cls, conn: IdleGoawayConnection) -> "ConnectionSnapshot":
        state = conn.state
        return cls(
            conn_id=conn.conn_id,
            remote_address=conn.remote_address,
            status=state.status,
            request_count=state.request_count,
            goaways_sent=state.goaways_sent,
            force_closed=state.force_closed,
            discarded_bytes=state.discarded_bytes,
        )


@dataclass(frozen=True)
class ServerStats:
    """A point-in-time view of every connection the server has accepted."""

    connections: tuple[ConnectionSnapshot, ...]

    @property
    def accepted(self) -> int:
        return len(self.connections)

    @property
    def active(self) -> int:
        return sum(1 for c in self.connections if c.status < ConnectionStatus.CLOSED)

    @property
    def goaways_sent(self) -> int:
        return sum(c.goaways_sent for c in self.connections)

    @property
    def force_closed(self) -> int:
        return sum(1 for c in self.connections if c.force_closed)

    @property
    def requests(self) -> int:
        return sum(c.request_count for c in self.connections)

    @property
    def discarded_bytes(self) -> int:
        return sum(c.discarded_bytes for c in self.connections)


class GoawayServer:
    """
    An HTTP/2-over-TLS server that tears down idle connections on a fixed schedule.

    Usage::

        with GoawayServer(ServerConfig(port=0)) as server:
            print(server.base_url)

    :param config: The teardown schedule and bind address.
    :param credentials: The TLS key pair. A self-signed one is generated when omitted.
    :param router: The routing table. Defaults to :meth:`StreamRouter.default`.
    :param history: How many finished connections :attr:`stats` keeps.
    """

    __slots__ = (
        "_config",
        "_credentials",
        "_router",
        "_tcp_server",
        "_serve_thread",
        "_connections",
        "_finished",
        "_connections_lock",
        "_ids",
    )

    def __init__(
        self,
        config: ServerConfig,
        credentials: Optional[TLSCredentials] = None,
        router: Optional[StreamRouter] = None,
        history: int = constants.CONNECTION_HISTORY,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._router = router or StreamRouter.default(config)
        self._tcp_server: Optional[SyncTCPServer] = None
        self._serve_thread: Optional[threading.Thread] = None
        self._connections: dict[int, IdleGoawayConnection] = {}
        self._finished: collections.deque[ConnectionSnapshot] = collections.deque(maxlen=history)
        self._connections_lock = threading.Lock()
        self._ids = itertools.count(1)

    def __enter__(self) -> "GoawayServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def credentials(self) -> TLSCredentials:
        if self._credentials is None:
            self._credentials = generate_self_signed(self._config.hostname, self._config.host)
        return self._credentials

    @property
    def port(self) -> int:
        if self._tcp_server is None:
            return self._config.port
        return self._tcp_server.address[1]

    @property
    def base_url(self) -> str:
        host = self._config.host
        if ":" in host:
            host = f"[{host}]"
        return f"https://{host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._serve_thread is not None and self._serve_thread.is_alive()

    @property
    def stats(self) -> ServerStats:
        """Finished connections (the most recent ``history`` of them) followed by live ones."""
        with self._connections_lock:
            finished = list(self._finished)
            live = list(self._connections.values())
        snapshots = finished + [ConnectionSnapshot.of(conn) for conn in live]
        return ServerStats(tuple(sorted(snapshots, key=lambda c: c.conn_id)))

    def start(self) -> None:
        """
        Bind the listening socket and start accepting in a background thread.

        :raises CertificateError: If the TLS credentials cannot be generated or loaded.
        :raises BindError: If the address cannot be bound.
        """
        if self._tcp_server is not None:
            return
        ssl_context = create_server_ssl_context(self.credentials)
        self._tcp_server = create_tcp_server(self._config.host, self._config.port, ssl_context)
        self._serve_thread = threading.Thread(
            target=self._tcp_server.serve,
            args=(self._handle, self._config.poll_interval),
            name=f"{constants.HARNESS}-acceptor",
            daemon=True,
        )
        self._serve_thread.start()
        logger.info(
            "Server listening on %s (idle threshold %.1fs, grace %.1fs)",
            self.base_url,
            self._config.idle_threshold,
            self._config.grace_period,
        )

    def stop(self) -> None:
        """Stop accepting and drop every live connection."""
        if self._tcp_server is None:
            return
        self._tcp_server.close()
        self._tcp_server = None
        with self._connections_lock:
            connections = list(self._connections.values())
        for conn in connections:
            if not conn.state.closed:
                conn.abort()
        if self._serve_thread is not None:
            self._serve_thread.join(timeout=self._config.poll_interval * 2)
            self._serve_thread = None
        logger.info("Server stopped")

    def _handle(self, net_stream: SyncStream) -> None:
        conn = IdleGoawayConnection(net_stream, self._config, self._router, next(self._ids))
        with self._connections_lock:
            self._connections[conn.conn_id] = conn
        try:
            conn.serve()
        finally:
            snapshot = ConnectionSnapshot.of(conn)
            with self._connections_lock:
                del self._connections[conn.conn_id]
                self._finished.append(snapshot)
