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

import abc
import dataclasses
import enum
import os
from dataclasses import dataclass
from typing import Optional, TypeVar

__all__ = ["HarnessLogger", "LoggerLevel", "ConsoleOptions", "FileOptions", "merge_options"]


class LoggerLevel(enum.IntEnum):
    """
    Logging levels that indicate the severity of events.

    :cvar DEBUG: Frame-level tracing of the server and the client under test.
    :cvar INFO: Scenario progress and connection lifecycle.
    :cvar WARNING: Recoverable transport faults.
    :cvar ERROR: A connection or scenario failed unexpectedly.
    :cvar CRITICAL: Setup failed and the run is aborted.
    """

    DEBUG = 1
    INFO = 2
    WARNING = 3
    ERROR = 4
    CRITICAL = 5


@dataclass
class ConsoleOptions:
    """
    The stderr sink. Formats left as None are filled in by the backend.
    """

    level: LoggerLevel = LoggerLevel.INFO
    log_format: Optional[str] = None
    date_format: Optional[str] = None
    colorize: bool = False


@dataclass
class FileOptions:
    """
    The optional file sink. The file is appended to and never rotated.
    """

    enable: bool
    path: str = os.path.join(os.getcwd(), "goaway-harness.log")
    level: LoggerLevel = LoggerLevel.INFO
    log_format: Optional[str] = None
    date_format: Optional[str] = None


_OptionsT = TypeVar("_OptionsT", ConsoleOptions, FileOptions)


def merge_options(custom: Optional[_OptionsT], defaults: _OptionsT) -> _OptionsT:
    """Fill the fields ``custom`` leaves as None from ``defaults``."""
    if custom is None:
        return defaults
    unset = {f.name: getattr(defaults, f.name) for f in dataclasses.fields(custom) if getattr(custom, f.name) is None}
    return dataclasses.replace(custom, **unset)


class HarnessLogger(abc.ABC):
    """
    A logging backend behind the harness-wide ``logger`` proxy.

    Backends supply their default options, attach their sinks in :meth:`_install` and
    implement :meth:`log` and :meth:`exception`. The level helpers all route through
    :meth:`log`. Messages use ``%``-style placeholders whatever the backend.
    """

    _console_options: ConsoleOptions
    _file_options: FileOptions

    def __init__(self, console_options: Optional[ConsoleOptions] = None, file_options: Optional[FileOptions] = None):
        """
        :param console_options: The stderr sink. Unset fields take the backend defaults.
        :type console_options: ConsoleOptions
        :param file_options: The file sink, disabled when omitted.
        :type file_options: FileOptions
        """
        self._console_options = merge_options(console_options, self._console_defaults(console_options))
        self._file_options = merge_options(file_options, self._file_defaults())
        self._install()

    @property
    def console_options(self) -> ConsoleOptions:
        return self._console_options

    @property
    def file_options(self) -> FileOptions:
        return self._file_options

    @abc.abstractmethod
    def _console_defaults(self, custom: Optional[ConsoleOptions]) -> ConsoleOptions:
        """
        The backend's console defaults. ``custom`` is passed so the default format can
        follow its ``colorize`` flag.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def _file_defaults(self) -> FileOptions:
        raise NotImplementedError()

    @abc.abstractmethod
    def _install(self) -> None:
        """Replace the backend's sinks with the console sink and, if enabled, the file sink."""
        raise NotImplementedError()

    @abc.abstractmethod
    def log(self, level: LoggerLevel, msg: str, *args, **kwargs):
        """
        Log a message at ``level``.

        :param level: The severity level of the message.
        :type level: LoggerLevel
        :param msg: The message, with ``%``-style placeholders for ``args``.
        :type msg: str
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def exception(self, msg: str, *args, **kwargs):
        """
        Log an ERROR message with the traceback of the exception being handled.

        :param msg: The error message.
        :type msg: str
        """
        raise NotImplementedError()

    def _at(self, level: LoggerLevel, msg: str, args: tuple, kwargs: dict) -> None:
        # the level helper and this method sit between the caller and log()
        kwargs["stacklevel"] = kwargs.pop("stacklevel", 1) + 2
        self.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._at(LoggerLevel.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._at(LoggerLevel.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._at(LoggerLevel.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._at(LoggerLevel.ERROR, msg, args, kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._at(LoggerLevel.CRITICAL, msg, args, kwargs)
