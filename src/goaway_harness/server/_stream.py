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
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .registries import PseudoHeaderName

if TYPE_CHECKING:
    from ._strategies import ResponseStrategy

__all__ = ["StreamMode", "StreamContext"]


class StreamMode(enum.Enum):
    UNARY = "unary"
    SERVER_STREAM = "server-stream"
    BIDI_STREAM = "bidi-stream"


@dataclass
class StreamContext:
    """
    Per-stream state, created when a request's HEADERS arrive and dropped when the
    stream ends or is reset.
    """

    stream_id: int
    headers: dict[str, str]
    mode: StreamMode
    strategy: "ResponseStrategy"
    request_number: int
    # inbound non-empty DATA frames seen so far
    chunk_count: int = 0
    response_started: bool = field(default=False, repr=False)

    @property
    def method(self) -> str:
        return self.headers.get(PseudoHeaderName.METHOD.value, "")

    @property
    def path(self) -> str:
        return self.headers.get(PseudoHeaderName.PATH.value, "")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")
