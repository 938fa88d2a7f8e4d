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
from typing import Optional

from goaway_harness.common import constants

from ._base import BaseConfig

__all__ = ["RunnerConfig"]


class RunnerConfig(BaseConfig):
    """
    Configuration for the scenario runner.
    """

    __slots__ = (
        "_follow_up_timeout",
        "_settle_delay",
        "_idle_margin",
        "_close_margin",
        "_startup_delay",
        "_selected",
    )

    _follow_up_timeout: float
    _settle_delay: float
    _idle_margin: float
    _close_margin: float
    _startup_delay: float
    _selected: tuple[str, ...]

    def __init__(
        self,
        *,
        follow_up_timeout: float = constants.DEFAULT_FOLLOW_UP_TIMEOUT,
        settle_delay: float = constants.DEFAULT_SETTLE_DELAY,
        idle_margin: float = constants.DEFAULT_IDLE_MARGIN,
        close_margin: float = constants.DEFAULT_CLOSE_MARGIN,
        startup_delay: float = constants.DEFAULT_STARTUP_DELAY,
        selected: Optional[Iterable[str]] = None,
    ) -> None:
        self.follow_up_timeout = follow_up_timeout
        self.settle_delay = settle_delay
        self.idle_margin = idle_margin
        self.close_margin = close_margin
        self.startup_delay = startup_delay
        self.selected = selected or ()

    @property
    def follow_up_timeout(self) -> float:
        """Get the bound on each warm-up and follow-up request."""
        return self._follow_up_timeout

    @follow_up_timeout.setter
    def follow_up_timeout(self, value: float) -> None:
        self._follow_up_timeout = self._require_positive("follow_up_timeout", value)

    @property
    def settle_delay(self) -> float:
        """Get the pause between two scenarios."""
        return self._settle_delay

    @settle_delay.setter
    def settle_delay(self, value: float) -> None:
        self._settle_delay = self._require_non_negative("settle_delay", value)

    @property
    def idle_margin(self) -> float:
        """Get how far past the idle threshold the idle wait extends."""
        return self._idle_margin

    @idle_margin.setter
    def idle_margin(self, value: float) -> None:
        self._idle_margin = self._require_positive("idle_margin", value)

    @property
    def close_margin(self) -> float:
        """Get how far past threshold plus grace the post-close idle wait extends."""
        return self._close_margin

    @close_margin.setter
    def close_margin(self, value: float) -> None:
        self._close_margin = self._require_positive("close_margin", value)

    @property
    def startup_delay(self) -> float:
        """Get the pause between server start and the first scenario."""
        return self._startup_delay

    @startup_delay.setter
    def startup_delay(self, value: float) -> None:
        self._startup_delay = self._require_non_negative("startup_delay", value)

    @property
    def selected(self) -> tuple[str, ...]:
        """Get the names of the scenarios to run. Empty means all."""
        return self._selected

    @selected.setter
    def selected(self, value: Iterable[str]) -> None:
        self._selected = tuple(value)
