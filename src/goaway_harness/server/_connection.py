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
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from h2 import events as h2_events, exceptions as h2_exceptions
from h2.config import H2Configuration
from h2.connection import H2Connection
from h2.errors import ErrorCodes

from goaway_harness.common import constants
from goaway_harness.common.types import HeadersType
from goaway_harness.common.utils import common as common_utils
from goaway_harness.config import ServerConfig
from goaway_harness.exceptions import NetworkError, ReceiveError, ReceiveTimeout, ResponseError, TimeoutException
from goaway_harness.logger import logger

from ._backend import SyncStream
from ._router import StreamRouter
from ._state import ConnectionState, ConnectionStatus
from ._stream import StreamContext
from ._watchdog import IdleWatchdog

__all__ = ["IdleGoawayConnection"]

_EventT = TypeVar("_EventT", bound=h2_events.Event)
_EventDispatcher = dict[type[_EventT], Callable[[_EventT], None]]


def _h2_config() -> H2Configuration:
    return H2Configuration(client_side=False, header_encoding=constants.UTF_8, validate_inbound_headers=False)


class IdleGoawayConnection:
    """
    Server side of one HTTP/2 connection that is torn down once it goes idle.

    The accepting thread runs :meth:`serve`, which reads with a timeout of one poll
    interval, feeds the bytes to the h2 engine and hands stream events to the router's
    strategies. An :class:`IdleWatchdog` thread watches the same :class:`ConnectionState`
    and sends GOAWAY, then drops the socket, once the connection has gone quiet.

    Every engine call and the socket write of its output happen under one re-entrant
    lock, so frames from the read loop, the strategies and the watchdog never interleave.
    """

    __slots__ = (
        "_net_stream",
        "_config",
        "_router",
        "_conn_id",
        "_h2_core",
        "_h2_core_lock",
        "_state",
        "_watchdog",
        "_streams",
        "_event_dispatcher",
        "_peer_terminated",
    )

    _net_stream: SyncStream
    _config: ServerConfig
    _router: StreamRouter
    _conn_id: int
    _h2_core: H2Connection
    _h2_core_lock: threading.RLock
    _state: ConnectionState
    _watchdog: IdleWatchdog
    _streams: dict[int, StreamContext]
    _event_dispatcher: _EventDispatcher
    _peer_terminated: bool

    def __init__(
        self,
        net_stream: SyncStream,
        config: ServerConfig,
        router: StreamRouter,
        conn_id: int = 0,
        state: Optional[ConnectionState] = None,
    ) -> None:
        self._net_stream = net_stream
        self._config = config
        self._router = router
        self._conn_id = conn_id
        self._h2_core = H2Connection(_h2_config())
        self._h2_core_lock = threading.RLock()
        self._state = state or ConnectionState()
        self._watchdog = IdleWatchdog(
            self, self._state, config.idle_threshold, config.grace_period, config.poll_interval
        )
        self._streams = {}
        self._peer_terminated = False

        self._event_dispatcher: _EventDispatcher = {
            h2_events.RequestReceived: self._handle_request_received,
            h2_events.DataReceived: self._handle_data_received,
            h2_events.StreamEnded: self._handle_stream_ended,
            h2_events.StreamReset: self._handle_stream_reset,
            h2_events.ConnectionTerminated: self._handle_connection_terminated,
        }

    @property
    def conn_id(self) -> int:
        return self._conn_id

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def remote_address(self) -> Optional[tuple]:
        return self._net_stream.get_extra_info("remote_address")

    # ----------- Emission -----------

    @contextmanager
    def _send_guard(self, stream_id: Optional[int] = None):
        try:
            yield
        except ResponseError:
            raise
        except h2_exceptions.H2Error as e:
            raise ResponseError(f"{type(e).__name__}: {e}", stream_id) from e
        except (NetworkError, TimeoutException) as e:
            raise ResponseError(f"transport failure: {e}", stream_id) from e

    def _flush(self) -> None:
        # caller holds the engine lock
        data_to_send = self._h2_core.data_to_send()
        if data_to_send:
            self._net_stream.send(data_to_send)

    def send_headers(self, stream_id: int, headers: HeadersType, end_stream: bool = False) -> None:
        with self._send_guard(stream_id), self._h2_core_lock:
            self._h2_core.send_headers(stream_id, headers, end_stream=end_stream)
            self._flush()

    def send_data(self, stream_id: int, data: bytes, end_stream: bool = False) -> None:
        with self._send_guard(stream_id), self._h2_core_lock:
            self._h2_core.send_data(stream_id, data, end_stream=end_stream)
            self._flush()
        logger.debug("[#%d] stream %d: sent %d bytes%s", self._conn_id, stream_id, len(data), " (end)" if end_stream else "")

    def send_goaway(self) -> None:
        """
        Send a GOAWAY frame with NO_ERROR.

        :raises ResponseError: If the frame could not be written.
        """
        with self._send_guard(), self._h2_core_lock:
            self._h2_core.close_connection(error_code=ErrorCodes.NO_ERROR)
            self._flush()
        self._state.record_goaway_frame()
        logger.debug("[#%d] GOAWAY sent", self._conn_id)

    def abort(self) -> None:
        """Drop the TCP connection without further frames. Safe to call from any thread."""
        self._state.mark_closing(forced=True)
        self._net_stream.abort()

    # ----------- Read loop -----------

    def serve(self) -> None:
        """
        Run the connection until the peer leaves, the transport fails or the watchdog
        drops the socket. Never raises.
        """
        logger.info("[#%d] Connection accepted from %s", self._conn_id, self.remote_address)
        try:
            with self._send_guard(), self._h2_core_lock:
                self._h2_core.initiate_connection()
                self._flush()
        except ResponseError as e:
            logger.warning("[#%d] Failed to send the server preface: %s", self._conn_id, e)
            self._finish()
            return

        self._watchdog.start(name=f"{constants.HARNESS}-watchdog-{self._conn_id}")
        try:
            self._read_loop()
        except Exception:
            logger.exception("[#%d] Connection handler failed", self._conn_id)
        finally:
            self._finish()

    def _read_loop(self) -> None:
        self._net_stream.settimeout(self._config.poll_interval)
        while not self._peer_terminated:
            try:
                data = self._net_stream.receive(self._config.read_size)
            except ReceiveTimeout:
                continue
            except ReceiveError as e:
                if self._state.force_closed:
                    logger.debug("[#%d] Read ended by forced close", self._conn_id)
                else:
                    logger.info("[#%d] Read failed: %s", self._conn_id, e)
                return

            if not data:
                logger.info("[#%d] Peer closed the connection", self._conn_id)
                return

            self._state.touch()
            try:
                with self._h2_core_lock:
                    events = self._h2_core.receive_data(data)
                    self._flush()
            except h2_exceptions.ProtocolError as e:
                if self._state.goaway_sent:
                    self._discard_after_goaway(len(data), e)
                    continue
                logger.warning("[#%d] Protocol error from peer, closing: %s", self._conn_id, e)
                return
            except (NetworkError, TimeoutException) as e:
                logger.info("[#%d] Write failed: %s", self._conn_id, e)
                return

            self.handle_events(events)

    def _discard_after_goaway(self, size: int, error: h2_exceptions.ProtocolError) -> None:
        # The engine is closed and has queued its own PROTOCOL_ERROR GOAWAY. Drop it and
        # leave the socket to the watchdog.
        with self._h2_core_lock:
            self._h2_core.clear_outbound_data_buffer()
        self._state.record_discarded(size)
        logger.debug("[#%d] Discarded %d bytes received after GOAWAY: %s", self._conn_id, size, error)

    def handle_events(self, events: list[h2_events.Event]) -> None:
        for event in events:
            handler = self._event_dispatcher.get(type(event))
            if handler is None:
                logger.debug("[#%d] Ignored event: %s", self._conn_id, event)
                continue
            handler(event)

    def _finish(self) -> None:
        self._watchdog.stop()
        self._state.mark_closing()
        self._net_stream.close()
        self._state.mark_closed()
        self._streams.clear()
        self._watchdog.join(timeout=self._config.poll_interval)
        logger.info(
            "[#%d] Connection closed (requests=%d, goaway=%s, forced=%s)",
            self._conn_id,
            self._state.request_count,
            self._state.goaway_sent,
            self._state.force_closed,
        )

    # ----------- Event Handlers -----------

    @contextmanager
    def _stream_guard(self, stream: StreamContext):
        try:
            yield
        except ResponseError as e:
            logger.warning("[#%d] Response on stream %d aborted: %s", self._conn_id, stream.stream_id, e)
            self._streams.pop(stream.stream_id, None)

    def _handle_request_received(self, event: h2_events.RequestReceived) -> None:
        assert event.stream_id is not None, "RequestReceived event must have a stream_id"
        self._state.touch()
        headers = dict(event.headers or ())
        stream = self._router.open_stream(event.stream_id, headers, self._state.next_request())
        self._streams[event.stream_id] = stream
        logger.debug(
            "[#%d] stream %d: %s %s (%s, request #%d)",
            self._conn_id,
            stream.stream_id,
            stream.method,
            stream.path,
            stream.mode.value,
            stream.request_number,
        )
        with self._stream_guard(stream):
            stream.strategy.on_request(stream, self)

    def _handle_data_received(self, event: h2_events.DataReceived) -> None:
        self._state.touch()
        if event.flow_controlled_length:
            try:
                with self._send_guard(event.stream_id), self._h2_core_lock:
                    self._h2_core.acknowledge_received_data(event.flow_controlled_length, event.stream_id)
                    self._flush()
            except ResponseError as e:
                logger.debug("[#%d] Flow-control update failed: %s", self._conn_id, e)

        stream = self._streams.get(event.stream_id)
        if stream is None:
            return
        data = event.data or b""
        logger.debug(
            "[#%d] stream %d: received %r", self._conn_id, event.stream_id, common_utils.to_str(data, errors="replace")
        )
        with self._stream_guard(stream):
            stream.strategy.on_data(stream, data, self)

    def _handle_stream_ended(self, event: h2_events.StreamEnded) -> None:
        self._state.touch()
        stream = self._streams.get(event.stream_id)
        if stream is None:
            return
        with self._stream_guard(stream):
            stream.strategy.on_end_stream(stream, self)
        self._streams.pop(event.stream_id, None)

    def _handle_stream_reset(self, event: h2_events.StreamReset) -> None:
        if self._streams.pop(event.stream_id, None) is not None:
            logger.debug("[#%d] stream %d reset by peer (error_code=%s)", self._conn_id, event.stream_id, event.error_code)

    def _handle_connection_terminated(self, event: h2_events.ConnectionTerminated) -> None:
        logger.info(
            "[#%d] Peer sent GOAWAY (error_code=%s, last_stream_id=%s)",
            self._conn_id,
            event.error_code,
            event.last_stream_id,
        )
        # after our own GOAWAY the teardown schedule decides when the socket goes
        self._peer_terminated = not self._state.goaway_sent

    def __repr__(self) -> str:
        status: ConnectionStatus = self._state.status
        return f"<{type(self).__name__} #{self._conn_id} {status.name}>"
