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

from goaway_harness.exceptions import ConfigError

__all__ = ["BaseConfig"]


class BaseConfig:
    """
    Base class for configuration objects.

    Subclasses keep their values in ``__slots__`` prefixed with an underscore and expose
    them through validating properties.
    """

    __slots__ = ()

    def to_dict(self) -> dict[str, object]:
        """Return the public view of every slot, in declaration order."""
        values: dict[str, object] = {}
        for cls in reversed(type(self).__mro__):
            for slot in getattr(cls, "__slots__", ()):
                values[slot.lstrip("_")] = getattr(self, slot)
        return values

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"{type(self).__name__}({fields})"

    @staticmethod
    def _require_positive(name: str, value: float) -> float:
        if value <= 0:
            raise ConfigError(f"{name} must be positive, got {value}")
        return float(value)

    @staticmethod
    def _require_non_negative(name: str, value: float) -> float:
        if value < 0:
            raise ConfigError(f"{name} must be non-negative, got {value}")
        return float(value)
