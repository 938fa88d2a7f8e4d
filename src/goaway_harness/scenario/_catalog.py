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

from goaway_harness.common import constants
from goaway_harness.config import RunnerConfig, ServerConfig
from goaway_harness.exceptions import ConfigError

from ._model import ClientProfile, Expectation, RequestKind, RequestSpec, Scenario

__all__ = ["SCENARIO_NAMES", "build_scenarios", "select_scenarios"]

SCENARIO_NAMES: tuple[str, ...] = (
    "baseline-unary",
    "server-streaming",
    "streaming-post",
    "no-liveness-probe",
    "post-tcp-close",
    "bidirectional",
)

_GET_TEST = RequestSpec("GET", "/test")

_BIDI_LINES = tuple(f'{{"data":"chunk_{i}"}}' for i in range(2))
_BIDI_WRITER_START_DELAY = 0.2
_BIDI_WRITER_INTERVAL = 0.1
_BIDI_RETRIES = 2


def build_scenarios(server: ServerConfig, runner: RunnerConfig) -> list[Scenario]:
    """
    The canonical scenarios, in run order, timed against the server's teardown schedule.

    Every warm-up is a plain ``GET /test`` that leaves one pooled connection behind.
    The pool's keep-alive expiry outlives every idle wait, so each follow-up is sent on
    that same connection after the server has sent GOAWAY, or after it dropped TCP.

    httpx never probes a pooled connection before reusing it, so ``no-liveness-probe``
    differs from ``baseline-unary`` only in its much longer expiry. The two are expected
    to classify the same way.
    """
    idle_wait = server.idle_threshold + runner.idle_margin
    closed_wait = server.teardown_time + runner.close_margin
    timeout = runner.follow_up_timeout
    streamed = Expectation(status=200, line_count=server.chunk_count)
    pooled = ClientProfile(keepalive_expiry=closed_wait + timeout)

    return [
        Scenario(
            name="baseline-unary",
            description="Unary request after GOAWAY",
            warm_up=_GET_TEST,
            idle_wait=idle_wait,
            follow_up=_GET_TEST,
            timeout=timeout,
            expectation=Expectation(status=200),
            profile=pooled,
        ),
        Scenario(
            name="server-streaming",
            description="Streaming GET after GOAWAY",
            warm_up=_GET_TEST,
            idle_wait=idle_wait,
            follow_up=RequestSpec("GET", "/stream", RequestKind.STREAM),
            timeout=timeout,
            expectation=streamed,
            profile=pooled,
        ),
        Scenario(
            name="streaming-post",
            description="Streaming POST with a JSON body after GOAWAY",
            warm_up=_GET_TEST,
            idle_wait=idle_wait,
            follow_up=RequestSpec(
                "POST",
                "/stream",
                RequestKind.STREAM,
                headers=(("content-type", constants.JSON),),
                body=b'{"component":"BlogPost"}',
            ),
            timeout=timeout,
            expectation=streamed,
            profile=pooled,
        ),
        Scenario(
            name="no-liveness-probe",
            description="Unary request sent straight onto the stale connection",
            warm_up=_GET_TEST,
            idle_wait=idle_wait,
            follow_up=_GET_TEST,
            timeout=timeout,
            expectation=Expectation(status=200),
            profile=ClientProfile(keepalive_expiry=max(constants.LONG_KEEPALIVE_EXPIRY, pooled.keepalive_expiry)),
        ),
        Scenario(
            name="post-tcp-close",
            description="Unary request after the server closed TCP",
            warm_up=_GET_TEST,
            idle_wait=closed_wait,
            follow_up=_GET_TEST,
            timeout=timeout,
            expectation=Expectation(status=200),
            profile=pooled,
        ),
        Scenario(
            name="bidirectional",
            description="Bidirectional ndjson stream after GOAWAY",
            warm_up=_GET_TEST,
            idle_wait=idle_wait,
            follow_up=RequestSpec(
                "POST",
                "/stream",
                RequestKind.DUPLEX,
                headers=(("content-type", constants.NDJSON),),
                duplex_lines=_BIDI_LINES,
                writer_start_delay=_BIDI_WRITER_START_DELAY,
                writer_interval=_BIDI_WRITER_INTERVAL,
            ),
            timeout=timeout,
            expectation=Expectation(
                status=200,
                lines=tuple(f'{{"echo":{i}}}' for i in range(1, len(_BIDI_LINES) + 1)) + ('{"done":true}',),
            ),
            profile=ClientProfile(read_timeout=timeout, keepalive_expiry=pooled.keepalive_expiry, retries=_BIDI_RETRIES),
        ),
    ]


def select_scenarios(scenarios: Iterable[Scenario], names: Iterable[str]) -> list[Scenario]:
    """
    Keep the named scenarios, in catalog order. No names keeps them all.

    :raises ConfigError: If a name is not in the catalog.
    """
    scenarios = list(scenarios)
    wanted = set(names)
    if not wanted:
        return scenarios
    unknown = wanted - {s.name for s in scenarios}
    if unknown:
        raise ConfigError(f"Unknown scenario(s): {', '.join(sorted(unknown))}. Available: {', '.join(SCENARIO_NAMES)}")
    return [s for s in scenarios if s.name in wanted]
