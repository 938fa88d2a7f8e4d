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
import json

import pytest

from goaway_harness.server import (
    BidiStreamingStrategy,
    ServerStreamingStrategy,
    StreamContext,
    StreamMode,
    UnaryStrategy,
)


class RecordingResponder:
    """Collects the frames a strategy emits."""

    def __init__(self) -> None:
        self.frames: list[tuple] = []

    def send_headers(self, stream_id, headers, end_stream=False):
        self.frames.append(("headers", stream_id, dict(headers), end_stream))

    def send_data(self, stream_id, data, end_stream=False):
        self.frames.append(("data", stream_id, data, end_stream))

    def data(self) -> list[bytes]:
        return [f[2] for f in self.frames if f[0] == "data"]

    def ended(self) -> bool:
        return bool(self.frames) and self.frames[-1][3]


def make_stream(strategy, stream_id=1, request_number=1, **headers) -> StreamContext:
    return StreamContext(
        stream_id=stream_id,
        headers={":method": "GET", ":path": "/test", **headers},
        mode=strategy.mode,
        strategy=strategy,
        request_number=request_number,
    )


class TestUnaryStrategy:
    """
    Tests for UnaryStrategy.
    """

    def test_fixed_body(self):
        """
        Test a fixed body with status, content type and length.

        :return: None
        """
        strategy = UnaryStrategy(404, "Not Found")
        responder = RecordingResponder()
        stream = make_stream(strategy)

        strategy.on_end_stream(stream, responder)

        kind, stream_id, headers, end_stream = responder.frames[0]
        assert kind == "headers"
        assert headers == {":status": "404", "content-type": "text/plain", "content-length": "9"}
        assert end_stream is False
        assert responder.data() == [b"Not Found"]
        assert responder.ended()
        assert stream.response_started

    def test_callable_body(self):
        strategy = UnaryStrategy(200, lambda s: f"OK from request #{s.request_number}")
        responder = RecordingResponder()
        strategy.on_end_stream(make_stream(strategy, request_number=7), responder)
        assert responder.data() == [b"OK from request #7"]

    def test_empty_body_ends_with_headers(self):
        """
        Test that an empty body is sent as a single HEADERS frame with END_STREAM.

        :return: None
        """
        strategy = UnaryStrategy(204, "")
        responder = RecordingResponder()
        strategy.on_end_stream(make_stream(strategy), responder)
        assert len(responder.frames) == 1
        assert responder.frames[0][2]["content-length"] == "0"
        assert responder.frames[0][3] is True

    def test_request_body_is_ignored(self):
        strategy = UnaryStrategy(200, "ok")
        responder = RecordingResponder()
        stream = make_stream(strategy)
        strategy.on_request(stream, responder)
        strategy.on_data(stream, b"ignored", responder)
        assert responder.frames == []


class TestServerStreamingStrategy:
    """
    Tests for ServerStreamingStrategy.
    """

    def test_three_chunks_with_delays(self):
        """
        Test that each chunk is preceded by the delay and the last one ends the stream.

        :return: None
        """
        sleeps = []
        strategy = ServerStreamingStrategy(chunk_count=3, delay=0.3, sleep=sleeps.append)
        responder = RecordingResponder()

        strategy.on_end_stream(make_stream(strategy), responder)

        assert responder.frames[0][2] == {":status": "200", "content-type": "text/plain"}
        assert responder.data() == [b"chunk-1\n", b"chunk-2\n", b"chunk-3\n"]
        assert [f[3] for f in responder.frames] == [False, False, False, True]
        assert sleeps == [0.3, 0.3, 0.3]

    def test_no_delay(self):
        sleeps = []
        strategy = ServerStreamingStrategy(chunk_count=1, delay=0, sleep=sleeps.append)
        responder = RecordingResponder()
        strategy.on_end_stream(make_stream(strategy), responder)
        assert responder.data() == [b"chunk-1\n"]
        assert sleeps == []

    def test_invalid_chunk_count(self):
        with pytest.raises(ValueError):
            ServerStreamingStrategy(chunk_count=0)

    def test_mode(self):
        assert ServerStreamingStrategy().mode is StreamMode.SERVER_STREAM
        assert ServerStreamingStrategy().chunk_count == 3


class TestBidiStreamingStrategy:
    """
    Tests for BidiStreamingStrategy.
    """

    def test_headers_sent_on_request(self):
        """
        Test that response headers go out before any request data arrives.

        :return: None
        """
        strategy = BidiStreamingStrategy()
        responder = RecordingResponder()
        stream = make_stream(strategy)

        strategy.on_request(stream, responder)

        assert responder.frames == [
            ("headers", 1, {":status": "200", "content-type": "application/x-ndjson"}, False)
        ]
        assert stream.response_started

    def test_echo_then_done(self):
        """
        Test that N data chunks produce N echo lines followed by one done line.

        :return: None
        """
        strategy = BidiStreamingStrategy()
        responder = RecordingResponder()
        stream = make_stream(strategy)

        strategy.on_request(stream, responder)
        strategy.on_data(stream, b'{"data":"chunk_0"}\n', responder)
        strategy.on_data(stream, b'{"data":"chunk_1"}\n', responder)
        strategy.on_end_stream(stream, responder)

        lines = [json.loads(d) for d in responder.data()]
        assert lines == [{"echo": 1}, {"echo": 2}, {"done": True}]
        assert responder.data()[0] == b'{"echo":1}\n'
        assert responder.ended()
        assert stream.chunk_count == 2

    def test_empty_data_is_not_counted(self):
        strategy = BidiStreamingStrategy()
        responder = RecordingResponder()
        stream = make_stream(strategy)
        strategy.on_data(stream, b"", responder)
        assert responder.frames == []
        assert stream.chunk_count == 0

    def test_counters_are_per_stream(self):
        """
        Test that one shared strategy keeps separate echo counters for each stream.

        :return: None
        """
        strategy = BidiStreamingStrategy()
        responder = RecordingResponder()
        first, second = make_stream(strategy, stream_id=1), make_stream(strategy, stream_id=3)

        strategy.on_data(first, b"a", responder)
        strategy.on_data(first, b"b", responder)
        strategy.on_data(second, b"c", responder)

        assert responder.frames[-1] == ("data", 3, b'{"echo":1}\n', False)
