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
from typing import Optional

from loguru import logger as loguru_logger

from goaway_harness.common import constants

from ._base import ConsoleOptions, FileOptions, HarnessLogger, LoggerLevel

__all__ = ["LoguruLogger"]

_DATE_FORMAT = "HH:mm:ss.SSS"
_LOG_FORMAT = "{time} | {level} | {thread.name} | {message}"
_COLOR_LOG_FORMAT = (
    "<green>{time}</green> "
    "<red>|</red> "
    "<level>{level}</level> "
    "<red>|</red> "
    "<cyan>{thread.name}</cyan> "
    "<red>-</red> "
    "<level>{message}</level>"
)


def _render(msg: str, args: tuple) -> str:
    # callers use %-style placeholders; loguru would treat them as literal text
    return msg % args if args else msg


def _with_date(log_format: str, date_format: str) -> str:
    return log_format.replace("{time}", f"{{time:{date_format}}}")


class LoguruLogger(HarnessLogger):
    """
    Backend on loguru's global logger. Installing it removes every loguru sink that was
    there before.
    """

    def _console_defaults(self, custom: Optional[ConsoleOptions]) -> ConsoleOptions:
        colorize = custom.colorize if custom else True
        return ConsoleOptions(
            level=LoggerLevel.INFO,
            log_format=_COLOR_LOG_FORMAT if colorize else _LOG_FORMAT,
            date_format=_DATE_FORMAT,
            colorize=colorize,
        )

    def _file_defaults(self) -> FileOptions:
        return FileOptions(enable=False, log_format=_LOG_FORMAT, date_format=_DATE_FORMAT)

    def _install(self) -> None:
        loguru_logger.remove()

        console = self._console_options
        loguru_logger.add(
            sys.stderr,
            level=console.level.name,
            colorize=console.colorize,
            format=_with_date(console.log_format, console.date_format),
        )

        file = self._file_options
        if file.enable:
            loguru_logger.add(
                file.path,
                level=file.level.name,
                format=_with_date(file.log_format, file.date_format),
                encoding=constants.UTF_8,
                backtrace=True,
            )

    def log(self, level: LoggerLevel, msg: str, *args, **kwargs):
        loguru_logger.opt(depth=kwargs.pop("stacklevel", 1)).log(level.name, _render(msg, args))

    def exception(self, msg: str, *args, **kwargs):
        loguru_logger.opt(depth=kwargs.pop("stacklevel", 1), exception=True).error(_render(msg, args))
