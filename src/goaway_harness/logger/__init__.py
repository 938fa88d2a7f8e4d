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

import importlib
import threading
from typing import Optional

from ._base import ConsoleOptions, FileOptions, HarnessLogger, LoggerLevel

__all__ = [
    "get_instance",
    "set_instance",
    "create_logger",
    "logger",
    "LoggerLevel",
    "ConsoleOptions",
    "FileOptions",
    "HarnessLogger",
    "BACKENDS",
]

# Backend name -> "module:Class", imported lazily so loguru is only loaded when chosen
BACKENDS: dict[str, str] = {
    "logging": "goaway_harness.logger._logging:LoggingLogger",
    "loguru": "goaway_harness.logger._loguru:LoguruLogger",
}

_instance: Optional[HarnessLogger] = None
_instance_lock = threading.RLock()


def create_logger(
    backend: str = "logging",
    console_options: Optional[ConsoleOptions] = None,
    file_options: Optional[FileOptions] = None,
) -> HarnessLogger:
    """
    Build a logger for the named backend.

    :param backend: One of the keys of ``BACKENDS``.
    :param console_options: Console configuration, merged with the backend defaults.
    :param file_options: File configuration, merged with the backend defaults.
    :return: The new logger. Its sinks replace the backend's previous ones, but it only
        becomes the ``logger`` target once passed to :func:`set_instance`.
    :raises ValueError: If the backend name is unknown.
    """
    try:
        path = BACKENDS[backend]
    except KeyError:
        raise ValueError(f"Unknown logger backend: {backend!r}. Available: {sorted(BACKENDS)}") from None

    module_name, class_name = path.rsplit(":", 1)
    cls = getattr(importlib.import_module(module_name), class_name)
    return cls(console_options, file_options)


def get_instance() -> HarnessLogger:
    """
    The logger every module writes through. Until the CLI installs one, an INFO-level
    ``logging`` backend is created on first use.
    """
    global _instance
    if _instance is not None:
        return _instance

    with _instance_lock:
        if _instance is None:
            _instance = create_logger("logging")

        return _instance


def set_instance(logger: HarnessLogger) -> None:
    """
    Route the module-level ``logger`` to ``logger``.

    :raises TypeError: If ``logger`` is not a :class:`HarnessLogger`.
    """
    if not isinstance(logger, HarnessLogger):
        raise TypeError("Logger must be an instance of HarnessLogger")

    global _instance
    with _instance_lock:
        _instance = logger


class _LoggerProxy:
    """Forwards every call to the current default instance, so replacing it takes effect everywhere."""

    __slots__ = ()

    def __getattr__(self, name: str):
        return getattr(get_instance(), name)


logger = _LoggerProxy()
