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

from goaway_harness.common import constants
from goaway_harness.common.utils import network as net_utils
from goaway_harness.exceptions import ConfigError

from ._base import BaseConfig

__all__ = ["ServerConfig"]


class ServerConfig(BaseConfig):
    """
    Configuration for the idle-GOAWAY server.

    The teardown schedule is: ``idle_threshold`` seconds without activity, then a GOAWAY
    frame, then ``grace_period`` seconds, then a forced TCP close. Both the watchdog and
    the read loop wake every ``poll_interval`` seconds, so teardown may lag the threshold
    by up to one interval.
    """

    __slots__ = (
        "_host",
        "_port",
        "_hostname",
        "_idle_threshold",
        "_grace_period",
        "_poll_interval",
        "_chunk_count",
        "_chunk_delay",
        "_read_size",
    )

    _host: str
    _port: int
    _hostname: str
    _idle_threshold: float
    _grace_period: float
    _poll_interval: float
    _chunk_count: int
    _chunk_delay: float
    _read_size: int

    def __init__(
        self,
        *,
        host: str = constants.DEFAULT_HOST,
        port: int = constants.DEFAULT_PORT,
        hostname: str = constants.DEFAULT_HOSTNAME,
        idle_threshold: float = constants.DEFAULT_IDLE_THRESHOLD,
        grace_period: float = constants.DEFAULT_GRACE_PERIOD,
        poll_interval: float = constants.DEFAULT_POLL_INTERVAL,
        chunk_count: int = constants.DEFAULT_CHUNK_COUNT,
        chunk_delay: float = constants.DEFAULT_CHUNK_DELAY,
        read_size: int = constants.READ_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.hostname = hostname
        self.idle_threshold = idle_threshold
        self.grace_period = grace_period
        self.poll_interval = poll_interval
        self.chunk_count = chunk_count
        self.chunk_delay = chunk_delay
        self.read_size = read_size

    @property
    def host(self) -> str:
        """Get the bind address."""
        return self._host

    @host.setter
    def host(self, value: str) -> None:
        if not net_utils.is_valid_host(value):
            raise ConfigError(f"Invalid bind address: {value!r}. Must be a literal IP address.")
        self._host = value

    @property
    def port(self) -> int:
        """Get the bind port. 0 selects an ephemeral port."""
        return self._port

    @port.setter
    def port(self, value: int) -> None:
        if not net_utils.is_valid_port(value):
            raise ConfigError(f"Invalid port: {value}. Must be in [{net_utils.MIN_PORT}, {net_utils.MAX_PORT}].")
        self._port = value

    @property
    def hostname(self) -> str:
        """Get the DNS name written into the certificate."""
        return self._hostname

    @hostname.setter
    def hostname(self, value: str) -> None:
        if not value:
            raise ConfigError("hostname must not be empty")
        self._hostname = value

    @property
    def idle_threshold(self) -> float:
        """Get the idle time after which GOAWAY is sent."""
        return self._idle_threshold

    @idle_threshold.setter
    def idle_threshold(self, value: float) -> None:
        self._idle_threshold = self._require_positive("idle_threshold", value)

    @property
    def grace_period(self) -> float:
        """Get the delay between GOAWAY and the forced TCP close."""
        return self._grace_period

    @grace_period.setter
    def grace_period(self, value: float) -> None:
        self._grace_period = self._require_non_negative("grace_period", value)

    @property
    def poll_interval(self) -> float:
        """Get the watchdog and read-loop poll interval."""
        return self._poll_interval

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        self._poll_interval = self._require_positive("poll_interval", value)

    @property
    def chunk_count(self) -> int:
        """Get the number of chunks sent by the server-streaming response."""
        return self._chunk_count

    @chunk_count.setter
    def chunk_count(self, value: int) -> None:
        if value < 1:
            raise ConfigError(f"chunk_count must be at least 1, got {value}")
        self._chunk_count = value

    @property
    def chunk_delay(self) -> float:
        """Get the delay before each server-streaming chunk."""
        return self._chunk_delay

    @chunk_delay.setter
    def chunk_delay(self, value: float) -> None:
        self._chunk_delay = self._require_non_negative("chunk_delay", value)

    @property
    def read_size(self) -> int:
        """Get the maximum number of bytes read from the socket at once."""
        return self._read_size

    @read_size.setter
    def read_size(self, value: int) -> None:
        if value < 1:
            raise ConfigError(f"read_size must be at least 1, got {value}")
        self._read_size = value

    @property
    def teardown_time(self) -> float:
        """Idle time after which the TCP socket is closed (threshold plus grace)."""
        return self._idle_threshold + self._grace_period
