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

import pytest

from goaway_harness.exceptions import BindError, ReceiveTimeout, SendError
from goaway_harness.server import SyncStream, create_tcp_server


@pytest.fixture
def stream_pair():
    left, right = socket.socketpair()
    stream = SyncStream(left, timeout=1.0)
    yield stream, right
    stream.close()
    right.close()


class TestSyncStream:
    """
    Tests for SyncStream over a socket pair.
    """

    def test_send_and_receive(self, stream_pair):
        stream, other = stream_pair
        stream.send(b"PRI * HTTP/2.0")
        assert other.recv(64) == b"PRI * HTTP/2.0"

        other.sendall(b"frame")
        assert stream.receive(64) == b"frame"

    def test_send_empty_is_noop(self, stream_pair):
        stream, other = stream_pair
        stream.send(b"")
        other.settimeout(0.05)
        with pytest.raises(socket.timeout):
            other.recv(1)

    def test_receive_timeout(self, stream_pair):
        """
        Test that a quiet peer raises ReceiveTimeout within the socket timeout.

        :return: None
        """
        stream, _ = stream_pair
        stream.settimeout(0.05)
        with pytest.raises(ReceiveTimeout):
            stream.receive()

    def test_receive_eof(self, stream_pair):
        stream, other = stream_pair
        other.close()
        assert stream.receive() == b""

    def test_send_after_close(self, stream_pair):
        """
        Test that writing to a closed stream raises SendError.

        :return: None
        """
        stream, _ = stream_pair
        stream.close()
        with pytest.raises(SendError):
            stream.send(b"data")

    def test_abort_sends_eof(self, stream_pair):
        stream, other = stream_pair
        stream.abort()
        other.settimeout(1.0)
        assert other.recv(1) == b""

    def test_extra_info(self, stream_pair):
        stream, _ = stream_pair
        assert isinstance(stream.get_extra_info("socket"), socket.socket)
        assert stream.get_extra_info("alpn_protocol") is None
        assert stream.get_extra_info("unknown") is None


class TestCreateTCPServer:
    """
    Tests for create_tcp_server.
    """

    def test_ephemeral_port(self):
        server = create_tcp_server("127.0.0.1", 0)
        try:
            host, port = server.address
            assert host == "127.0.0.1"
            assert port > 0
        finally:
            server._server.server_close()

    def test_port_in_use(self):
        """
        Test that binding an occupied port raises BindError.

        :return: None
        """
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("127.0.0.1", 0))
            listener.listen(1)
            port = listener.getsockname()[1]
            with pytest.raises(BindError):
                create_tcp_server("127.0.0.1", port)
