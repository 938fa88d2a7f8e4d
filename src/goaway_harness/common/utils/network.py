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

import ipaddress
import socket

# Valid port range is [0, 65535]; 0 asks the OS for an ephemeral port
MIN_PORT = 0
MAX_PORT = 65535

# Define constants for IP versions
IPV4_VERSION = 4
IPV6_VERSION = 6


# Check if socket reuse address is supported
reuse_address_supported = False
try:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        reuse_address_supported = True
except OSError:
    pass


def is_valid_port(port: int) -> bool:
    """Check if the port number is inside the valid TCP range."""
    return MIN_PORT <= port <= MAX_PORT


def get_address_family(host: str) -> socket.AddressFamily:
    """Return the socket family matching a literal IP host, AF_INET for anything else."""
    return socket.AF_INET6 if is_valid_ipv6(host) else socket.AF_INET


def is_port_in_use(host: str, port: int) -> bool:
    """Check if the specified port is in use on the given host.

    Args:
        host: Local address to probe.
        port: Port number to check. Port 0 is never reported as in use.

    Returns:
        True if port is in use, False if available.
    """
    if port == 0:
        return False
    try:
        with socket.socket(get_address_family(host), socket.SOCK_STREAM) as s:
            if reuse_address_supported:
                s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
            return False  # Port is available
    except OSError:
        return True  # Port is in use


def _is_valid_ip_version(host: str, ip_version: int) -> bool:
    """Check if the host is a valid IP address of the specified version.

    Args:
        host: The host address to validate.
        ip_version: The IP version to check against (4 for IPv4, 6 for IPv6).

    Returns:
        True if the host is a valid IP address of the specified version.
    """
    try:
        ip = ipaddress.ip_address(host)
        return ip.version == ip_version
    except ValueError:
        return False  # If parsing fails, the address is invalid


def is_valid_ipv4(host: str) -> bool:
    """Check if the host is a valid IPv4 address."""
    return _is_valid_ip_version(host, IPV4_VERSION)


def is_valid_ipv6(host: str) -> bool:
    """Check if the host is a valid IPv6 address."""
    return _is_valid_ip_version(host, IPV6_VERSION)


def is_valid_host(host: str) -> bool:
    """Check if the provided host is a valid IP address."""
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return False
