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

import logging
from typing import Optional

from goaway_harness.common import constants

from ._base import ConsoleOptions, FileOptions, HarnessLogger, LoggerLevel

__all__ = ["LoggingLogger"]


_HARNESS_TO_LOGGING = {
    LoggerLevel.DEBUG: logging.DEBUG,
    LoggerLevel.INFO: logging.INFO,
    LoggerLevel.WARNING: logging.WARNING,
    LoggerLevel.ERROR: logging.ERROR,
    LoggerLevel.CRITICAL: logging.CRITICAL,
}

_DATE_FORMAT = "%H:%M:%S"
_LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)s | %(threadName)s | %(message)s"
# colorlog escapes; the thread name tells the read loop, watchdog and runner apart
_COLOR_LOG_FORMAT = (
    "%(green)s%(asctime)s.%(msecs)03d "
    "%(red)s| "
    "%(log_color)s%(levelname)s "
    "%(red)s| "
    "%(cyan)s%(threadName)s "
    "%(red)s- "
    "%(log_color)s%(message)s%(reset)s"
)

_LOG_COLORS = {
    "DEBUG": "blue",
    "INFO": "white",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


class LoggingLogger(HarnessLogger):
    """
    Backend on the standard :mod:`logging` module, under the ``goaway-harness`` logger.

    The console handler writes to stderr, through ``colorlog`` when colorized, so stdout
    stays free for the banner and the results table. A file handler is added when file
    output is enabled.
    """

    _instance: logging.Logger

    def _console_defaults(self, custom: Optional[ConsoleOptions]) -> ConsoleOptions:
        colorize = custom.colorize if custom else False
        return ConsoleOptions(
            level=LoggerLevel.INFO,
            log_format=_COLOR_LOG_FORMAT if colorize else _LOG_FORMAT,
            date_format=_DATE_FORMAT,
            colorize=colorize,
        )

    def _file_defaults(self) -> FileOptions:
        return FileOptions(enable=False, log_format=_LOG_FORMAT, date_format=_DATE_FORMAT)

    def _install(self) -> None:
        self._instance = logging.getLogger(constants.HARNESS)
        self._instance.propagate = False

        levels = [self._console_options.level]
        if self._file_options.enable:
            levels.append(self._file_options.level)
        self._instance.setLevel(_HARNESS_TO_LOGGING[min(levels)])

        for handler in self._instance.handlers[:]:
            self._instance.removeHandler(handler)
            handler.close()

        self._instance.addHandler(self._console_handler())
        if self._file_options.enable:
            self._instance.addHandler(self._file_handler())

    def _console_handler(self) -> logging.Handler:
        options = self._console_options
        if options.colorize:
            import colorlog

            handler: logging.Handler = colorlog.StreamHandler()
            formatter: logging.Formatter = colorlog.ColoredFormatter(
                fmt=options.log_format, datefmt=options.date_format, log_colors=_LOG_COLORS, reset=True, style="%"
            )
        else:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(fmt=options.log_format, datefmt=options.date_format)
        handler.setLevel(_HARNESS_TO_LOGGING[options.level])
        handler.setFormatter(formatter)
        return handler

    def _file_handler(self) -> logging.Handler:
        options = self._file_options
        handler = logging.FileHandler(filename=options.path, encoding=constants.UTF_8)
        handler.setLevel(_HARNESS_TO_LOGGING[options.level])
        handler.setFormatter(logging.Formatter(fmt=options.log_format, datefmt=options.date_format))
        return handler

    def log(self, level: LoggerLevel, msg: str, *args, **kwargs):
        kwargs["stacklevel"] = kwargs.pop("stacklevel", 1) + 1
        self._instance.log(_HARNESS_TO_LOGGING[level], msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["stacklevel"] = kwargs.pop("stacklevel", 1) + 1
        self._instance.exception(msg, *args, **kwargs)
