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

import threading
from typing import Optional, Protocol

from goaway_harness.common import constants
from goaway_harness.exceptions import ResponseError
from goaway_harness.logger import logger

from ._state import ConnectionState

__all__ = ["Terminable", "IdleWatchdog"]


class Terminable(Protocol):
    """The two teardown steps the watchdog drives on a connection."""

    def send_goaway(self) -> None: ...

    def abort(self) -> None: ...


class IdleWatchdog:
    """
    Tears down a connection that has been idle for too long.

    Every ``poll_interval`` seconds the watchdog asks the shared state whether the
    connection has been idle for ``threshold`` seconds. The first time it has, a
    GOAWAY frame is sent, and after ``grace_period`` more seconds the TCP socket is
    dropped. Detection may therefore lag the threshold by up to one poll interval.

    The watchdog exits after the forced close, or as soon as :meth:`stop` is called
    because the connection ended on its own.
    """

    __slots__ = ("_connection", "_state", "_threshold", "_grace_period", "_poll_interval", "_stopped", "_thread")

    _connection: Terminable
    _state: ConnectionState
    _threshold: float
    _grace_period: float
    _poll_interval: float
    _stopped: threading.Event
    _thread: Optional[threading.Thread]

    def __init__(
        self,
        connection: Terminable,
        state: ConnectionState,
        threshold: float,
        grace_period: float,
        poll_interval: float,
    ) -> None:
        self._connection = connection
        self._state = state
        self._threshold = threshold
        self._grace_period = grace_period
        self._poll_interval = poll_interval
        self._stopped = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, name: Optional[str] = None) -> None:
        """Start the watchdog thread. Calling it again is a no-op."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=name or f"{constants.HARNESS}-watchdog", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.wait(self._poll_interval):
            idle = self._state.begin_goaway(self._threshold)
            if idle is None:
                continue

            logger.info("Idle for %.1fs, sending GOAWAY (NO_ERROR)", idle)
            try:
                self._connection.send_goaway()
            except ResponseError as e:
                logger.warning("GOAWAY send failed: %s", e)

            if self._stopped.wait(self._grace_period):
                # the connection closed during the grace period
                return
            logger.info("Closing TCP connection after %.1fs GOAWAY grace period", self._grace_period)
            self._connection.abort()
            return
