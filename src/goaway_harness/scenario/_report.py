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

import sys
from collections import Counter
from collections.abc import Sequence
from typing import Optional, TextIO

from ._model import Outcome, ScenarioResult

__all__ = ["ResultReporter"]

_DETAIL_WIDTH = 72


def _truncate(text: str, width: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 3] + "..."


class ResultReporter:
    """Renders scenario results as a table followed by a one-line summary."""

    __slots__ = ("_results",)

    def __init__(self, results: Sequence[ScenarioResult]) -> None:
        self._results = tuple(results)

    @property
    def results(self) -> tuple[ScenarioResult, ...]:
        return self._results

    @property
    def counts(self) -> Counter:
        return Counter(r.outcome for r in self._results)

    @property
    def all_passed(self) -> bool:
        return bool(self._results) and all(r.passed for r in self._results)

    def exit_code(self) -> int:
        """0 if every scenario passed, 1 otherwise."""
        return 0 if self.all_passed else 1

    def render(self) -> str:
        name_width = max([len("SCENARIO")] + [len(r.name) for r in self._results])
        header = f"{'SCENARIO':<{name_width}}  {'RESULT':<6}  {'ELAPSED':>8}  DETAIL"
        lines = [header, "-" * len(header)]
        for r in self._results:
            lines.append(
                f"{r.name:<{name_width}}  {r.outcome.value:<6}  {r.elapsed:>7.2f}s  {_truncate(r.detail, _DETAIL_WIDTH)}"
            )
        lines.append("")
        lines.append(self.summary())
        return "\n".join(lines)

    def summary(self) -> str:
        counts = self.counts
        parts = ", ".join(f"{counts.get(outcome, 0)} {outcome.value}" for outcome in Outcome)
        return f"{len(self._results)} scenario(s): {parts}"

    def print(self, stream: Optional[TextIO] = None) -> None:
        stream = stream or sys.stdout
        stream.write(self.render() + "\n")
        stream.flush()
