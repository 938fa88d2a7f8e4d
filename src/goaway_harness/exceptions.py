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

import contextlib
from collections.abc import Iterator
from typing import Optional

__all__ = [
    "ExceptionMapping",
    "map_exceptions",
    "HarnessError",
    "ConfigError",
    "SetupError",
    "CertificateError",
    "BindError",
    "TimeoutException",
    "SendTimeout",
    "ReceiveTimeout",
    "NetworkError",
    "ConnectError",
    "SendError",
    "ReceiveError",
    "ResponseError",
]

# ==== Exception Mapping ====
ExceptionMapping = dict[type[Exception], type[Exception]]


@contextlib.contextmanager
def map_exceptions(mapping: ExceptionMapping) -> Iterator[None]:
    """Context manager for translating exceptions to custom exception types.

    Args:
        mapping: Dictionary mapping original exception types to target types.
            The first matching entry wins, so list subclasses before their bases.

    Example:
        with map_exceptions({socket.timeout: ReceiveTimeout, OSError: ReceiveError}):
            sock.recv(1024)
    """
    try:
        yield
    except Exception as exc:
        for from_exc, to_exc in mapping.items():
            if isinstance(exc, from_exc):
                raise to_exc(exc) from exc
        raise  # Re-raise original exception if no mapping matched


class HarnessError(Exception):
    """Base class for all harness errors."""

    __slots__ = ()


class ConfigError(HarnessError, ValueError):
    """Raised when a configuration value is out of range."""

    __slots__ = ()


# ==== Setup Exceptions (process-fatal) ====


class SetupError(HarnessError):
    """Base class for failures that abort the run before any scenario starts."""

    __slots__ = ()


class CertificateError(SetupError):
    """Raised when the ephemeral TLS credentials cannot be generated or loaded."""

    __slots__ = ()


class BindError(SetupError):
    """Raised when the listening socket cannot be bound."""

    __slots__ = ()


# ==== Timeout Exceptions ====


class TimeoutException(HarnessError):
    """Base class for timeout-related exceptions."""

    __slots__ = ()


class SendTimeout(TimeoutException):
    """Raised when sending data over a connection times out."""

    __slots__ = ()


class ReceiveTimeout(TimeoutException):
    """Raised when receiving data from a connection times out."""

    __slots__ = ()


# ==== Network I/O Exceptions ====


class NetworkError(HarnessError):
    """Base class for network I/O related errors."""

    __slots__ = ()


class ConnectError(NetworkError):
    """Raised when a low-level connection error occurs, including a failed TLS handshake."""

    __slots__ = ()


class SendError(NetworkError):
    """Raised when sending data over a network fails."""

    __slots__ = ()


class ReceiveError(NetworkError):
    """Raised when receiving data from a network fails."""

    __slots__ = ()


class ResponseError(NetworkError):
    """Raised when a frame cannot be written to the peer.

    Wraps both transport failures (reset, broken pipe) and h2 state errors such as
    writing to a stream the peer already reset.
    """

    __slots__ = ("stream_id",)

    def __init__(self, message: str, stream_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.stream_id = stream_id

    def __str__(self) -> str:
        if self.stream_id is None:
            return self.args[0]
        return f"stream {self.stream_id}: {self.args[0]}"
