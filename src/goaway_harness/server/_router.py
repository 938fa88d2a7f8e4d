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

from collections.abc import Iterable
from typing import TYPE_CHECKING, Callable, NamedTuple, Optional

from ._strategies import BidiStreamingStrategy, ResponseStrategy, ServerStreamingStrategy, UnaryStrategy
from ._stream import StreamContext
from .registries import PseudoHeaderName

if TYPE_CHECKING:
    from goaway_harness.config import ServerConfig

__all__ = ["Route", "StreamRouter", "request_counter_body"]

ContentTypePredicate = Callable[[str], bool]


def _any_content_type(_: str) -> bool:
    return True


def _is_ndjson(content_type: str) -> bool:
    return "ndjson" in content_type


def request_counter_body(stream: StreamContext) -> str:
    return f"OK from request #{stream.request_number}"


class Route(NamedTuple):
    method: str
    path: str
    strategy: ResponseStrategy
    content_type: ContentTypePredicate = _any_content_type

    def matches(self, method: str, path: str, content_type: str) -> bool:
        return self.method == method and self.path == path and self.content_type(content_type)


class StreamRouter:
    """
    Maps a request to its response strategy. Routes are tried in order and the first
    match wins; requests nothing matches get the fallback.
    """

    __slots__ = ("_routes", "_fallback")

    _routes: tuple[Route, ...]
    _fallback: ResponseStrategy

    def __init__(self, routes: Iterable[Route], fallback: Optional[ResponseStrategy] = None) -> None:
        self._routes = tuple(routes)
        self._fallback = fallback or UnaryStrategy(404, "Not Found")

    @classmethod
    def default(cls, config: "ServerConfig") -> "StreamRouter":
        """
        The harness routing table:

        - ``GET /test``: ``OK from request #<n>``
        - ``GET /stream``: server-streaming chunks
        - ``POST /stream`` with an ndjson body: bidirectional echo
        - ``POST /stream`` otherwise: server-streaming chunks
        """
        streaming = ServerStreamingStrategy(config.chunk_count, config.chunk_delay)
        return cls(
            [
                Route("GET", "/test", UnaryStrategy(200, request_counter_body)),
                Route("GET", "/stream", streaming),
                Route("POST", "/stream", BidiStreamingStrategy(), _is_ndjson),
                Route("POST", "/stream", streaming),
            ]
        )

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    def resolve(self, headers: dict[str, str]) -> ResponseStrategy:
        method = headers.get(PseudoHeaderName.METHOD.value, "")
        path = headers.get(PseudoHeaderName.PATH.value, "").split("?", 1)[0]
        content_type = headers.get("content-type", "")
        for route in self._routes:
            if route.matches(method, path, content_type):
                return route.strategy
        return self._fallback

    def open_stream(self, stream_id: int, headers: dict[str, str], request_number: int) -> StreamContext:
        strategy = self.resolve(headers)
        return StreamContext(
            stream_id=stream_id,
            headers=headers,
            mode=strategy.mode,
            strategy=strategy,
            request_number=request_number,
        )
