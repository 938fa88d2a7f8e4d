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

import abc
import json
import time
from typing import Callable, Protocol, Union

from goaway_harness.common import constants
from goaway_harness.common.types import HeadersType
from goaway_harness.common.utils import common as common_utils

from ._stream import StreamContext, StreamMode
from .registries import PseudoHeaderName

__all__ = [
    "StreamResponder",
    "ResponseStrategy",
    "UnaryStrategy",
    "ServerStreamingStrategy",
    "BidiStreamingStrategy",
]

BodyType = Union[str, Callable[[StreamContext], str]]


class StreamResponder(Protocol):
    """The serialized emit path of a connection, as seen by a strategy."""

    def send_headers(self, stream_id: int, headers: HeadersType, end_stream: bool = False) -> None: ...

    def send_data(self, stream_id: int, data: bytes, end_stream: bool = False) -> None: ...


def _status_headers(status: int, content_type: str) -> HeadersType:
    return [(PseudoHeaderName.STATUS.value, str(status)), ("content-type", content_type)]


def _ndjson_line(obj: dict) -> bytes:
    return (json.dumps(obj, separators=(",", ":")) + "\n").encode(constants.UTF_8)


class ResponseStrategy(abc.ABC):
    """
    How a stream is answered.

    Strategies are shared by every stream they serve, so all per-stream state lives on
    the :class:`StreamContext`. The connection calls the hooks in frame order: once on
    HEADERS, once per DATA frame, and once when the peer half-closes.
    """

    mode: StreamMode = StreamMode.UNARY

    def on_request(self, stream: StreamContext, responder: StreamResponder) -> None:
        pass

    def on_data(self, stream: StreamContext, data: bytes, responder: StreamResponder) -> None:
        pass

    @abc.abstractmethod
    def on_end_stream(self, stream: StreamContext, responder: StreamResponder) -> None:
        raise NotImplementedError()


class UnaryStrategy(ResponseStrategy):
    """A single response with a fixed status and a known body length."""

    __slots__ = ("_status", "_body", "_content_type")

    mode = StreamMode.UNARY

    def __init__(self, status: int, body: BodyType, content_type: str = constants.TEXT_PLAIN) -> None:
        self._status = status
        self._body = body
        self._content_type = content_type

    @property
    def status(self) -> int:
        return self._status

    def render(self, stream: StreamContext) -> bytes:
        body = self._body(stream) if callable(self._body) else self._body
        return common_utils.to_bytes(body)

    def on_end_stream(self, stream: StreamContext, responder: StreamResponder) -> None:
        body = self.render(stream)
        headers = _status_headers(self._status, self._content_type)
        headers.append(("content-length", str(len(body))))
        stream.response_started = True
        if not body:
            responder.send_headers(stream.stream_id, headers, end_stream=True)
            return
        responder.send_headers(stream.stream_id, headers)
        responder.send_data(stream.stream_id, body, end_stream=True)


class ServerStreamingStrategy(ResponseStrategy):
    """
    Answers with ``chunk_count`` lines ``chunk-<i>``, each preceded by ``delay`` seconds.

    The delays block the calling thread, which is the connection's own.
    """

    __slots__ = ("_chunk_count", "_delay", "_sleep")

    mode = StreamMode.SERVER_STREAM

    def __init__(
        self,
        chunk_count: int = constants.DEFAULT_CHUNK_COUNT,
        delay: float = constants.DEFAULT_CHUNK_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_count < 1:
            raise ValueError(f"chunk_count must be at least 1, got {chunk_count}")
        self._chunk_count = chunk_count
        self._delay = delay
        self._sleep = sleep

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    def on_end_stream(self, stream: StreamContext, responder: StreamResponder) -> None:
        responder.send_headers(stream.stream_id, _status_headers(200, constants.TEXT_PLAIN))
        stream.response_started = True
        for i in range(1, self._chunk_count + 1):
            if self._delay:
                self._sleep(self._delay)
            chunk = f"chunk-{i}\n".encode(constants.UTF_8)
            responder.send_data(stream.stream_id, chunk, end_stream=i == self._chunk_count)


class BidiStreamingStrategy(ResponseStrategy):
    """
    Echoes every inbound chunk while the request body is still open.

    Response headers go out as soon as the request HEADERS arrive. Each non-empty DATA
    frame is answered with ``{"echo":N}``, and the peer's half-close with a single
    ``{"done":true}`` that ends the stream.
    """

    __slots__ = ()

    mode = StreamMode.BIDI_STREAM

    def on_request(self, stream: StreamContext, responder: StreamResponder) -> None:
        responder.send_headers(stream.stream_id, _status_headers(200, constants.NDJSON))
        stream.response_started = True

    def on_data(self, stream: StreamContext, data: bytes, responder: StreamResponder) -> None:
        # a bare END_STREAM arrives as an empty DATA frame
        if not data:
            return
        stream.chunk_count += 1
        responder.send_data(stream.stream_id, _ndjson_line({"echo": stream.chunk_count}))

    def on_end_stream(self, stream: StreamContext, responder: StreamResponder) -> None:
        responder.send_data(stream.stream_id, _ndjson_line({"done": True}), end_stream=True)
