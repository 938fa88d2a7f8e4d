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
"""
Tests for network utility functions in goaway_harness.common.utils.network module.
"""

import socket
import unittest.mock as mock

import pytest

from goaway_harness.common.utils.network import (
    IPV4_VERSION,
    IPV6_VERSION,
    MAX_PORT,
    MIN_PORT,
    _is_valid_ip_version,
    get_address_family,
    is_port_in_use,
    is_valid_host,
    is_valid_ipv4,
    is_valid_ipv6,
    is_valid_port,
    reuse_address_supported,
)


class TestPortFunctions:
    """
    Tests for port-related functions.
    """

    def test_reuse_address_supported_flag(self):
        """
        Test that reuse_address_supported flag is a boolean.

        :return: None
        """
        assert isinstance(reuse_address_supported, bool)

    @pytest.mark.parametrize("port", [MIN_PORT, 19443, MAX_PORT])
    def test_is_valid_port_accepts_range(self, port):
        """
        Test is_valid_port with ports inside the TCP range, including 0 for ephemeral.

        :return: None
        """
        assert is_valid_port(port) is True

    @pytest.mark.parametrize("port", [-1, MAX_PORT + 1])
    def test_is_valid_port_rejects_out_of_range(self, port):
        """
        Test is_valid_port with ports outside the TCP range.

        :return: None
        """
        assert is_valid_port(port) is False

    def test_is_port_in_use_with_available_port(self):
        """
        Test is_port_in_use with a port that is available.

        :return: None
        """
        with mock.patch("socket.socket") as mock_socket:
            mock_sock = mock.MagicMock()
            mock_socket.return_value.__enter__.return_value = mock_sock

            assert not is_port_in_use("127.0.0.1", 19443)

            mock_socket.assert_called_once_with(socket.AF_INET, socket.SOCK_STREAM)
            mock_sock.bind.assert_called_once_with(("127.0.0.1", 19443))

    def test_is_port_in_use_with_unavailable_port(self):
        """
        Test is_port_in_use with a port that is unavailable.

        :return: None
        """
        with mock.patch("socket.socket") as mock_socket:
            mock_sock = mock.MagicMock()
            mock_socket.return_value.__enter__.return_value = mock_sock
            mock_sock.bind.side_effect = OSError("Address already in use")

            assert is_port_in_use("127.0.0.1", 19443)

    def test_is_port_in_use_uses_ipv6_family(self):
        """
        Test is_port_in_use probes an IPv6 host with an AF_INET6 socket.

        :return: None
        """
        with mock.patch("socket.socket") as mock_socket:
            mock_socket.return_value.__enter__.return_value = mock.MagicMock()

            is_port_in_use("::1", 19443)

            mock_socket.assert_called_once_with(socket.AF_INET6, socket.SOCK_STREAM)

    def test_is_port_in_use_with_ephemeral_port(self):
        """
        Test that port 0 is never reported as in use and no socket is opened.

        :return: None
        """
        with mock.patch("socket.socket") as mock_socket:
            assert is_port_in_use("127.0.0.1", 0) is False
            mock_socket.assert_not_called()

    def test_is_port_in_use_detects_real_listener(self):
        """
        Test is_port_in_use against a real listening socket.

        :return: None
        """
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("127.0.0.1", 0))
            listener.listen(1)
            port = listener.getsockname()[1]
            assert is_port_in_use("127.0.0.1", port) is True


class TestIPFunctions:
    """
    Tests for IP address related functions.
    """

    def test_is_valid_host(self):
        """
        Test is_valid_host with literal addresses and names.

        :return: None
        """
        assert is_valid_host("127.0.0.1") is True
        assert is_valid_host("0.0.0.0") is True
        assert is_valid_host("::1") is True
        assert is_valid_host("2001:db8::1") is True

        assert is_valid_host("") is False
        assert is_valid_host("localhost") is False
        assert is_valid_host("256.256.256.256") is False
        assert is_valid_host("2001:db8::xyz") is False

    def test_is_valid_ipv4(self):
        """
        Test is_valid_ipv4 with IPv4, IPv6 and invalid addresses.

        :return: None
        """
        assert is_valid_ipv4("192.168.1.1") is True
        assert is_valid_ipv4("192.168.1") is False
        assert is_valid_ipv4("2001:db8::1") is False

    def test_is_valid_ipv6(self):
        """
        Test is_valid_ipv6 with IPv6, IPv4 and invalid addresses.

        :return: None
        """
        assert is_valid_ipv6("::1") is True
        assert is_valid_ipv6("fe80::1") is True
        assert is_valid_ipv6("192.168.1.1") is False
        assert is_valid_ipv6("localhost") is False

    def test_is_valid_ip_version(self):
        """
        Test _is_valid_ip_version against both versions.

        :return: None
        """
        assert _is_valid_ip_version("192.168.1.1", IPV4_VERSION) is True
        assert _is_valid_ip_version("192.168.1.1", IPV6_VERSION) is False
        assert _is_valid_ip_version("2001:db8::1", IPV6_VERSION) is True
        assert _is_valid_ip_version("localhost", IPV4_VERSION) is False

    def test_get_address_family(self):
        """
        Test get_address_family picks AF_INET6 only for IPv6 literals.

        :return: None
        """
        assert get_address_family("::1") == socket.AF_INET6
        assert get_address_family("127.0.0.1") == socket.AF_INET
        assert get_address_family("localhost") == socket.AF_INET
