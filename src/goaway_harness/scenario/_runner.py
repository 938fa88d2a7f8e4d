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

import ssl
import threading
import time
from collections.abc import Iterable, Sequence

import anyio
import httpx

from goaway_harness.common.utils import common as common_utils
from goaway_harness.config import RunnerConfig
from goaway_harness.logger import logger

from ._model import Observation, Outcome, RequestKind, RequestSpec, Scenario, ScenarioResult, classify

__all__ = ["ChunkLog", "ScenarioRunner"]

_CLOSE_TIMEOUT = 5.0


class ChunkLog:
    """Append-only record of the lines a response delivered, safe to share between tasks."""

    __slots__ = ("_lock", "_chunks")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._chunks: list[str] = []

    def append(self, chunk: str) -> None:
        with self._lock:
            self._chunks.append(chunk)

    def snapshot(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._chunks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)


class ScenarioRunner:
    """
    Drives the client under test through each scenario, one at a time.

    Each scenario gets a fresh client: a warm-up request leaves a pooled connection
    behind, the runner idles past the server's threshold, and the follow-up goes out on
    whatever the pool hands back. Warm-up and follow-up are each bounded by the scenario
    timeout, so a stuck client is reported as HUNG instead of stalling the run.
    """

    __slots__ = ("_base_url", "_ssl_context", "_config")

    _base_url: str
    _ssl_context: ssl.SSLContext
    _config: RunnerConfig

    def __init__(self, base_url: str, ssl_context: ssl.SSLContext, config: RunnerConfig) -> None:
        self._base_url = base_url
        self._ssl_context = ssl_context
        self._config = config

    def run_all_sync(self, scenarios: Iterable[Scenario]) -> list[ScenarioResult]:
        return anyio.run(self.run_all, list(scenarios))

    async def run_all(self, scenarios: Sequence[Scenario]) -> list[ScenarioResult]:
        results: list[ScenarioResult] = []
        for i, scenario in enumerate(scenarios):
            if i:
                # let the previous connection close fully
                await anyio.sleep(self._config.settle_delay)
            results.append(await self.run(scenario))
        return results

    async def run(self, scenario: Scenario) -> ScenarioResult:
        logger.info("=== %s: %s ===", scenario.name, scenario.description)
        client = scenario.profile.build_client(self._base_url, self._ssl_context)
        try:
            result = await self._run(client, scenario)
        finally:
            with anyio.move_on_after(_CLOSE_TIMEOUT, shield=True):
                await client.aclose()
        logger.info("[%s] %s in %.2fs: %s", scenario.name, result.outcome, result.elapsed, result.detail)
        return result

    async def _run(self, client: httpx.AsyncClient, scenario: Scenario) -> ScenarioResult:
        started = time.monotonic()
        try:
            with anyio.move_on_after(scenario.timeout) as scope:
                warm_up = await self._execute(client, scenario.warm_up)
        except Exception as e:
            return ScenarioResult(
                scenario.name, Outcome.ERROR, time.monotonic() - started, f"warm-up failed: {type(e).__name__}: {e}"
            )
        if scope.cancelled_caught:
            return ScenarioResult(
                scenario.name,
                Outcome.ERROR,
                time.monotonic() - started,
                f"warm-up timed out after {scenario.timeout:.0f}s",
            )
        if warm_up.status != 200:
            return ScenarioResult(
                scenario.name,
                Outcome.ERROR,
                time.monotonic() - started,
                f"warm-up returned status {warm_up.status}",
                warm_up,
            )
        logger.info(
            "[%s] Warm-up %s -> %d (%s) %s",
            scenario.name,
            scenario.warm_up.describe(),
            warm_up.status,
            warm_up.http_version,
            list(warm_up.lines),
        )

        logger.info("[%s] Idling %.1fs so the server tears the connection down", scenario.name, scenario.idle_wait)
        await anyio.sleep(scenario.idle_wait)

        logger.info("[%s] Follow-up %s", scenario.name, scenario.follow_up.describe())
        started = time.monotonic()
        try:
            with anyio.move_on_after(scenario.timeout) as scope:
                observation = await self._execute(client, scenario.follow_up)
        except Exception as e:
            return ScenarioResult(scenario.name, Outcome.FAIL, time.monotonic() - started, f"{type(e).__name__}: {e}")
        elapsed = time.monotonic() - started
        if scope.cancelled_caught:
            return ScenarioResult(scenario.name, Outcome.HUNG, elapsed, f"no response within {scenario.timeout:.0f}s")
        return classify(scenario, observation, elapsed)

    async def _execute(self, client: httpx.AsyncClient, spec: RequestSpec) -> Observation:
        if spec.kind is RequestKind.DUPLEX:
            return await self._execute_duplex(client, spec)
        if spec.kind is RequestKind.STREAM:
            return await self._execute_stream(client, spec)
        return await self._execute_unary(client, spec)

    async def _execute_unary(self, client: httpx.AsyncClient, spec: RequestSpec) -> Observation:
        response = await client.request(spec.method, spec.path, headers=dict(spec.headers), content=spec.body)
        lines = tuple(line for line in response.text.splitlines() if line)
        return Observation(response.status_code, lines, response.http_version)

    async def _execute_stream(self, client: httpx.AsyncClient, spec: RequestSpec) -> Observation:
        chunks = ChunkLog()
        async with client.stream(spec.method, spec.path, headers=dict(spec.headers), content=spec.body) as response:
            async for line in response.aiter_lines():
                if line:
                    logger.debug("Received stream chunk: %r", line)
                    chunks.append(line)
        return Observation(response.status_code, chunks.snapshot(), response.http_version)

    async def _execute_duplex(self, client: httpx.AsyncClient, spec: RequestSpec) -> Observation:
        send_stream, receive_stream = anyio.create_memory_object_stream[bytes](max_buffer_size=len(spec.duplex_lines))
        chunks = ChunkLog()
        writer_errors: list[Exception] = []

        async def body():
            async with receive_stream:
                async for chunk in receive_stream:
                    yield chunk

        async def writer() -> None:
            try:
                async with send_stream:
                    await anyio.sleep(spec.writer_start_delay)
                    for line in spec.duplex_lines:
                        await send_stream.send(common_utils.to_bytes(line + "\n"))
                        logger.debug("Wrote body line: %s", line)
                        await anyio.sleep(spec.writer_interval)
            except Exception as e:
                writer_errors.append(e)

        # httpcore sends the whole request body over HTTP/2 before it reads the response,
        # so the echoes are only read once the writer has closed the body
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(writer)
                async with client.stream(
                    spec.method, spec.path, headers=dict(spec.headers), content=body()
                ) as response:
                    async for line in response.aiter_lines():
                        if line:
                            logger.debug("Received bidi chunk: %r", line)
                            chunks.append(line)
        except BaseExceptionGroup as eg:
            # the writer records its own failures, so the group holds the reader's
            raise eg.exceptions[0]

        return Observation(
            response.status_code,
            chunks.snapshot(),
            response.http_version,
            writer_errors[0] if writer_errors else None,
        )
