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
import io

from goaway_harness.scenario import Outcome, ResultReporter, ScenarioResult


def results():
    return [
        ScenarioResult("baseline-unary", Outcome.PASS, 0.05, "status=200 lines=1"),
        ScenarioResult("server-streaming", Outcome.FAIL, 0.4, "expected 3 chunks, got 1"),
        ScenarioResult("no-liveness-probe", Outcome.HUNG, 15.0, "no response within 15s"),
    ]


class TestResultReporter:
    """
    Tests for ResultReporter.
    """

    def test_counts_and_summary(self):
        reporter = ResultReporter(results())
        assert reporter.counts[Outcome.PASS] == 1
        assert reporter.summary() == "3 scenario(s): 1 PASS, 1 FAIL, 1 HUNG, 0 ERROR"

    def test_exit_code(self):
        """
        Test that only an all-PASS run exits with 0.

        :return: None
        """
        assert ResultReporter(results()).exit_code() == 1
        assert ResultReporter(results()[:1]).exit_code() == 0
        assert ResultReporter([]).exit_code() == 1

    def test_render(self):
        """
        Test the table layout: header, rule, one row per scenario, then the summary.

        :return: None
        """
        lines = ResultReporter(results()).render().splitlines()
        assert lines[0].split() == ["SCENARIO", "RESULT", "ELAPSED", "DETAIL"]
        assert set(lines[1]) == {"-"}
        assert lines[2].split()[:3] == ["baseline-unary", "PASS", "0.05s"]
        assert "no response within 15s" in lines[4]
        assert lines[5] == ""
        assert lines[6].startswith("3 scenario(s)")

    def test_long_detail_is_truncated(self):
        result = ScenarioResult("post-tcp-close", Outcome.FAIL, 1.0, "RemoteProtocolError: " + "x" * 200)
        row = ResultReporter([result]).render().splitlines()[2]
        assert row.endswith("...")
        assert len(row) < 150

    def test_print(self):
        stream = io.StringIO()
        ResultReporter(results()).print(stream)
        assert stream.getvalue().endswith("0 ERROR\n")
