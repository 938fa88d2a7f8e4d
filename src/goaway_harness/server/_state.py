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

import enum
import threading
import time
from typing import Callable, Optional

__all__ = ["ConnectionStatus", "ConnectionState"]


class ConnectionStatus(enum.IntEnum):
    """Lifecycle of a server connection. Transitions only move forward."""

    ACTIVE = 0
    GOAWAY_SENT = 1
    CLOSING = 2
    CLOSED = 3


class ConnectionState:
    """
    Activity bookkeeping shared by a connection's read loop and its idle watchdog.

    Every field is guarded by one lock. Two rules hold:

    - ``goaway_sent`` flips from False to True at most once, in :meth:`begin_goaway`.
    - ``last_activity`` never moves backwards, and stops moving once GOAWAY is sent.
    """

    __slots__ = (
        "_lock",
        "_clock",
        "_last_activity",
        "_goaway_sent",
        "_goaways_sent",
        "_force_closed",
        "_request_count",
        "_discarded_bytes",
        "_status",
    )

    _lock: threading.Lock
    _clock: Callable[[], float]
    _last_activity: float
    _goaway_sent: bool
    _goaways_sent: int
    _force_closed: bool
    _request_count: int
    _discarded_bytes: int
    _status: ConnectionStatus

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._last_activity = clock()
        self._goaway_sent = False
        self._goaways_sent = 0
        self._force_closed = False
        self._request_count = 0
        self._discarded_bytes = 0
        self._status = ConnectionStatus.ACTIVE

    @property
    def last_activity(self) -> float:
        with self._lock:
            return self._last_activity

    @property
    def goaway_sent(self) -> bool:
        with self._lock:
            return self._goaway_sent

    @property
    def goaways_sent(self) -> int:
        """Number of GOAWAY frames actually written to the socket."""
        with self._lock:
            return self._goaways_sent

    @property
    def force_closed(self) -> bool:
        with self._lock:
            return self._force_closed

    @property
    def request_count(self) -> int:
        with self._lock:
            return self._request_count

    @property
    def discarded_bytes(self) -> int:
        """Bytes the peer sent after GOAWAY that were dropped unread."""
        with self._lock:
            return self._discarded_bytes

    @property
    def status(self) -> ConnectionStatus:
        with self._lock:
            return self._status

    def idle_time(self) -> float:
        with self._lock:
            return self._clock() - self._last_activity

    def touch(self) -> bool:
        """
        Record activity now.

        Returns:
            False if the timestamp is frozen because GOAWAY was already sent or the
            connection is closing.
        """
        with self._lock:
            if self._goaway_sent or self._status >= ConnectionStatus.CLOSING:
                return False
            self._last_activity = max(self._last_activity, self._clock())
            return True

    def next_request(self) -> int:
        """Count a new request stream and return its 1-based number on this connection."""
        with self._lock:
            self._request_count += 1
            return self._request_count

    def begin_goaway(self, threshold: float) -> Optional[float]:
        """
        Atomically check idleness and claim the GOAWAY.

        Returns:
            The idle time if the connection has been idle for at least ``threshold`` and
            this call set ``goaway_sent``; None if GOAWAY was already claimed, the
            connection is closing, or it is not idle long enough.
        """
        with self._lock:
            if self._goaway_sent or self._status != ConnectionStatus.ACTIVE:
                return None
            idle = self._clock() - self._last_activity
            if idle < threshold:
                return None
            self._goaway_sent = True
            self._status = ConnectionStatus.GOAWAY_SENT
            return idle

    def record_goaway_frame(self) -> None:
        with self._lock:
            self._goaways_sent += 1

    def record_discarded(self, size: int) -> None:
        with self._lock:
            self._discarded_bytes += size

    def mark_closing(self, forced: bool = False) -> None:
        with self._lock:
            if forced:
                self._force_closed = True
            self._status = max(self._status, ConnectionStatus.CLOSING)

    def mark_closed(self) -> None:
        with self._lock:
            self._status = ConnectionStatus.CLOSED

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._status == ConnectionStatus.CLOSED
