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
import ssl
from dataclasses import dataclass, field
from typing import Optional

import httpx

from goaway_harness.common import constants

__all__ = [
    "Outcome",
    "RequestKind",
    "RequestSpec",
    "Expectation",
    "ClientProfile",
    "Scenario",
    "Observation",
    "ScenarioResult",
    "classify",
]


class Outcome(enum.StrEnum):
    """
    How a scenario ended.

    :cvar PASS: The follow-up returned the expected data within the bound.
    :cvar FAIL: Wrong status or data, a writer error, or an exception from the client.
    :cvar HUNG: The bound elapsed before the follow-up resolved.
    :cvar ERROR: The warm-up failed, so the stale connection was never exercised.
    """

    PASS = "PASS"
    FAIL = "FAIL"
    HUNG = "HUNG"
    ERROR = "ERROR"


class RequestKind(enum.Enum):
    # whole response read at once
    UNARY = "unary"
    # response consumed line by line
    STREAM = "stream"
    # request body written while the response is consumed
    DUPLEX = "duplex"


@dataclass(frozen=True)
class RequestSpec:
    method: str
    path: str
    kind: RequestKind = RequestKind.UNARY
    headers: tuple[tuple[str, str], ...] = ()
    body: Optional[bytes] = None
    duplex_lines: tuple[str, ...] = ()
    writer_start_delay: float = 0.0
    writer_interval: float = 0.0

    def describe(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class Expectation:
    """
    What the follow-up must return to pass.

    ``line_count`` checks how many non-empty lines arrived; ``lines`` checks them exactly
    and in order.
    """

    status: int = 200
    line_count: Optional[int] = None
    lines: Optional[tuple[str, ...]] = None

    def check(self, observation: "Observation") -> Optional[str]:
        """Return why ``observation`` falls short, or None if it meets the expectation."""
        if observation.writer_error is not None:
            err = observation.writer_error
            return f"writer error: {type(err).__name__}: {err}"
        if observation.status != self.status:
            return f"expected status {self.status}, got {observation.status}"
        if self.lines is not None and observation.lines != self.lines:
            return f"expected lines {list(self.lines)}, got {list(observation.lines)}"
        if self.line_count is not None and len(observation.lines) != self.line_count:
            return f"expected {self.line_count} chunks, got {len(observation.lines)}"
        return None


@dataclass(frozen=True)
class ClientProfile:
    """
    Pooling, timeout and retry settings of the client under test.

    ``keepalive_expiry`` decides whether an idle pooled connection is discarded before
    reuse. The default is httpx's own. Once it exceeds the idle wait, the follow-up goes
    straight onto the stale connection.
    """

    connect_timeout: float = constants.DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = constants.DEFAULT_READ_TIMEOUT
    keepalive_expiry: float = constants.DEFAULT_KEEPALIVE_EXPIRY
    retries: int = 0
    max_connections: int = 10

    def build_client(self, base_url: str, verify: ssl.SSLContext) -> httpx.AsyncClient:
        transport = httpx.AsyncHTTPTransport(
            http2=True,
            verify=verify,
            retries=self.retries,
            limits=httpx.Limits(
                max_connections=self.max_connections,
                max_keepalive_connections=self.max_connections,
                keepalive_expiry=self.keepalive_expiry,
            ),
        )
        return httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=httpx.Timeout(self.read_timeout, connect=self.connect_timeout),
        )


@dataclass(frozen=True)
class Scenario:
    """One warm-up / idle / follow-up sequence against a stale pooled connection."""

    name: str
    description: str
    warm_up: RequestSpec
    idle_wait: float
    follow_up: RequestSpec
    timeout: float
    expectation: Expectation
    profile: ClientProfile = field(default_factory=ClientProfile)


@dataclass(frozen=True)
class Observation:
    status: int
    lines: tuple[str, ...] = ()
    http_version: str = ""
    writer_error: Optional[BaseException] = None


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    outcome: Outcome
    elapsed: float
    detail: str = ""
    observation: Optional[Observation] = None

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.PASS


def classify(scenario: Scenario, observation: Observation, elapsed: float) -> ScenarioResult:
    """Turn a resolved follow-up into PASS or FAIL."""
    reason = scenario.expectation.check(observation)
    if reason is None:
        detail = f"status={observation.status} lines={len(observation.lines)}"
        return ScenarioResult(scenario.name, Outcome.PASS, elapsed, detail, observation)
    return ScenarioResult(scenario.name, Outcome.FAIL, elapsed, reason, observation)
