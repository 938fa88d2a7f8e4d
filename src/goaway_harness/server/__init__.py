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

from ._backend import SyncStream, SyncTCPServer, create_tcp_server
from ._connection import IdleGoawayConnection
from ._router import Route, StreamRouter
from ._server import ConnectionSnapshot, GoawayServer, ServerStats
from ._state import ConnectionState, ConnectionStatus
from ._strategies import (
    BidiStreamingStrategy,
    ResponseStrategy,
    ServerStreamingStrategy,
    StreamResponder,
    UnaryStrategy,
)
from ._stream import StreamContext, StreamMode
from ._watchdog import IdleWatchdog
from .registries import PseudoHeaderName

__all__ = [
    "SyncStream",
    "SyncTCPServer",
    "create_tcp_server",
    "IdleGoawayConnection",
    "Route",
    "StreamRouter",
    "ConnectionSnapshot",
    "GoawayServer",
    "ServerStats",
    "ConnectionState",
    "ConnectionStatus",
    "BidiStreamingStrategy",
    "ResponseStrategy",
    "ServerStreamingStrategy",
    "StreamResponder",
    "UnaryStrategy",
    "StreamContext",
    "StreamMode",
    "IdleWatchdog",
    "PseudoHeaderName",
]
