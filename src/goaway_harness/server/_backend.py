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

import functools
import socket
import socketserver
import ssl
import sys
from socketserver import BaseRequestHandler, ThreadingTCPServer
from typing import Any, Callable, Optional, Union

from goaway_harness.common import constants
from goaway_harness.common.utils import network as net_utils
from goaway_harness.exceptions import (
    BindError,
    ConnectError,
    ExceptionMapping,
    ReceiveError,
    ReceiveTimeout,
    SendError,
    SendTimeout,
    map_exceptions,
)
from goaway_harness.logger import logger

__all__ = ["SyncStream", "SyncTCPServer", "create_tcp_server"]

_HANDSHAKE_TIMEOUT = 10.0  # seconds


class SyncStream:
    """
    A blocking socket (plain or TLS) with exception translation.

    A single timeout applies to every operation: receive() returns within that bound or
    raises ReceiveTimeout, which is how the connection read loop polls.
    """

    __slots__ = ("_instance", "_remote_address")

    _instance: Union[socket.socket, ssl.SSLSocket]
    _remote_address: Optional[tuple]

    def __init__(self, instance: Union[socket.socket, ssl.SSLSocket], timeout: Optional[float] = None) -> None:
        self._instance = instance
        try:
            self._remote_address = instance.getpeername()
        except OSError:
            self._remote_address = None
        instance.settimeout(timeout)

    def __enter__(self) -> "SyncStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def settimeout(self, timeout: Optional[float]) -> None:
        self._instance.settimeout(timeout)

    def send(self, data: bytes) -> None:
        """
        Send data to the connected peer.

        :param data: Data bytes to send.
        :raises SendTimeout: If the send operation times out.
        :raises SendError: If another socket error occurs.
        """
        if not data:
            return
        exc_map: ExceptionMapping = {socket.timeout: SendTimeout, OSError: SendError, ValueError: SendError}
        with map_exceptions(exc_map):
            self._instance.sendall(data)

    def receive(self, max_bytes: int = constants.READ_SIZE) -> bytes:
        """
        Receive data from the socket.

        :param max_bytes: Maximum number of bytes to read.
        :return: The received bytes, empty on EOF.
        :raises ReceiveTimeout: If nothing arrived within the socket timeout.
        :raises ReceiveError: If another socket error occurs.
        """
        exc_map: ExceptionMapping = {socket.timeout: ReceiveTimeout, OSError: ReceiveError, ValueError: ReceiveError}
        with map_exceptions(exc_map):
            return self._instance.recv(max_bytes)

    def abort(self) -> None:
        """
        Drop the TCP connection at once: both directions are shut down before the close,
        so the peer sees a FIN even while another thread is blocked in receive().
        """
        try:
            self._instance.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.close()

    def close(self) -> None:
        """
        Close the network stream.
        """
        try:
            self._instance.close()
        except OSError:
            pass

    def get_extra_info(self, name: str) -> Any:
        if name == "remote_address":
            return self._remote_address
        if name == "alpn_protocol" and isinstance(self._instance, ssl.SSLSocket):
            return self._instance.selected_alpn_protocol()
        if name == "socket":
            return self._instance
        return None


class TLSRequestHandler(BaseRequestHandler):
    """
    A request handler for the threaded TCP server.

    Performs the TLS handshake in the connection's own thread, checks that ALPN settled
    on HTTP/2 and delegates the resulting SyncStream to a user-defined function.
    """

    _handler: Callable[[SyncStream], None]
    _ssl_context: Optional[ssl.SSLContext]
    _net_stream: Optional[SyncStream]

    def __init__(
        self, handler: Callable[[SyncStream], None], ssl_context: Optional[ssl.SSLContext], *args: Any, **kwargs: Any
    ) -> None:
        self._ssl_context = ssl_context
        self._handler = handler
        self._net_stream = None
        super().__init__(*args, **kwargs)

    def setup(self) -> None:
        _socket = self.request
        exc_map: ExceptionMapping = {
            socket.timeout: ConnectError,
            OSError: ConnectError,
        }
        if self._ssl_context:
            with map_exceptions(exc_map):
                _socket.settimeout(_HANDSHAKE_TIMEOUT)
                _socket = self._ssl_context.wrap_socket(_socket, server_side=True)
        self._net_stream = SyncStream(_socket)

    def handle(self) -> None:
        assert self._net_stream is not None
        with self._net_stream:
            alpn = self._net_stream.get_extra_info("alpn_protocol")
            if self._ssl_context and alpn != constants.ALPN_H2:
                logger.warning("Dropping %s: ALPN negotiated %r, expected 'h2'", self.client_address, alpn)
                return
            self._handler(self._net_stream)


class _ThreadingServer(ThreadingTCPServer):
    daemon_threads = True
    block_on_close = False
    allow_reuse_address = net_utils.reuse_address_supported

    def handle_error(self, request, client_address) -> None:
        # one connection failing must never reach the accept loop
        exc = sys.exc_info()[1]
        if isinstance(exc, ConnectError):
            logger.warning("TLS handshake with %s failed: %s", client_address, exc)
        else:
            logger.exception("Connection from %s failed", client_address)


class SyncTCPServer:
    """
    A threaded TCP server: one thread per accepted connection.
    """

    __slots__ = ("_server", "_ssl_context", "_handler")

    _server: _ThreadingServer
    _ssl_context: Optional[ssl.SSLContext]
    _handler: Optional[Callable[[SyncStream], None]]

    def __init__(self, server: _ThreadingServer, ssl_context: Optional[ssl.SSLContext] = None) -> None:
        self._server = server
        self._ssl_context = ssl_context
        self._handler = None

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port), with the OS-assigned port when 0 was requested."""
        host, port = self._server.server_address[:2]
        return host, port

    def serve(self, handler: Callable[[SyncStream], None], poll_interval: float = 0.5) -> None:
        """
        Begin handling incoming TCP connections. Blocks until close() is called.

        :param handler: A callable to handle each new connection.
        :param poll_interval: How often the accept loop checks for shutdown.
        """
        self._handler = handler
        self._server.RequestHandlerClass = functools.partial(TLSRequestHandler, self._handler, self._ssl_context)
        self._server.serve_forever(poll_interval=poll_interval)

    def close(self) -> None:
        """
        Shut down the server and release the listening socket.
        """
        self._server.shutdown()
        self._server.server_close()


def create_tcp_server(host: str, port: int, ssl_context: Optional[ssl.SSLContext] = None) -> SyncTCPServer:
    """
    Bind and activate a listening socket.

    :raises BindError: If the address cannot be bound (for example, the port is in use).
    """
    local_address = (host, port)

    with map_exceptions({OSError: BindError}):
        server = _ThreadingServer(
            local_address,
            socketserver.BaseRequestHandler,  # Placeholder handler, replaced in serve()
            bind_and_activate=False,
        )

        # If the local address is IPv6, set the address family to AF_INET6
        if net_utils.is_valid_ipv6(host):
            server.socket.close()
            server.address_family = socket.AF_INET6
            server.socket = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)

        try:
            server.server_bind()
            server.server_activate()
        except Exception:
            server.server_close()
            raise

    return SyncTCPServer(server, ssl_context)
