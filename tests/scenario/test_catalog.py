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
import pytest

from goaway_harness.config import RunnerConfig, ServerConfig
from goaway_harness.exceptions import ConfigError
from goaway_harness.scenario import SCENARIO_NAMES, RequestKind, build_scenarios, select_scenarios


@pytest.fixture
def scenarios():
    return {s.name: s for s in build_scenarios(ServerConfig(), RunnerConfig())}


class TestBuildScenarios:
    """
    Tests for the scenario catalog.
    """

    def test_names_in_run_order(self):
        names = [s.name for s in build_scenarios(ServerConfig(), RunnerConfig())]
        assert names == list(SCENARIO_NAMES)
        assert len(names) == 6

    def test_every_warm_up_is_get_test(self, scenarios):
        for scenario in scenarios.values():
            assert scenario.warm_up.describe() == "GET /test"
            assert scenario.timeout == 15.0

    def test_idle_waits(self, scenarios):
        """
        Test that idle waits pass the threshold, and that post-tcp-close also passes the grace period.

        :return: None
        """
        assert scenarios["baseline-unary"].idle_wait == 5.0
        assert scenarios["bidirectional"].idle_wait == 5.0
        assert scenarios["post-tcp-close"].idle_wait == 10.0

    def test_idle_waits_follow_server_schedule(self):
        server = ServerConfig(idle_threshold=1.0, grace_period=0.5)
        runner = RunnerConfig(idle_margin=0.5, close_margin=0.25)
        by_name = {s.name: s for s in build_scenarios(server, runner)}
        assert by_name["server-streaming"].idle_wait == 1.5
        assert by_name["post-tcp-close"].idle_wait == 1.75

    def test_streaming_follow_ups(self, scenarios):
        """
        Test the streaming GET and streaming POST requests and their chunk count.

        :return: None
        """
        get = scenarios["server-streaming"]
        assert get.follow_up.describe() == "GET /stream"
        assert get.follow_up.kind is RequestKind.STREAM
        assert get.expectation.line_count == 3

        post = scenarios["streaming-post"]
        assert post.follow_up.method == "POST"
        assert dict(post.follow_up.headers)["content-type"] == "application/json"
        assert post.follow_up.body == b'{"component":"BlogPost"}'
        assert post.expectation.line_count == 3

    @pytest.mark.parametrize("name", SCENARIO_NAMES)
    def test_warm_up_connection_outlives_idle_wait(self, scenarios, name):
        """
        Test that the pool keeps the warm-up connection through the idle wait, so the
        follow-up is sent on the connection the server tore down.

        :return: None
        """
        scenario = scenarios[name]
        assert scenario.profile.keepalive_expiry > scenario.idle_wait
        assert scenario.profile.keepalive_expiry >= scenario.idle_wait + scenario.timeout

    def test_pooled_expiry_follows_server_schedule(self):
        server = ServerConfig(idle_threshold=1.0, grace_period=0.5)
        runner = RunnerConfig(close_margin=0.25, follow_up_timeout=2.0)
        by_name = {s.name: s for s in build_scenarios(server, runner)}
        assert by_name["baseline-unary"].profile.keepalive_expiry == 3.75
        assert by_name["post-tcp-close"].profile.keepalive_expiry == 3.75
        assert by_name["bidirectional"].profile.keepalive_expiry == 3.75

    def test_long_keepalive_scenario_expiry(self, scenarios):
        assert scenarios["no-liveness-probe"].profile.keepalive_expiry == 600.0
        assert scenarios["baseline-unary"].profile.keepalive_expiry == 25.0

    def test_bidirectional(self, scenarios):
        """
        Test the duplex request and the exact echo lines it expects.

        :return: None
        """
        scenario = scenarios["bidirectional"]
        follow_up = scenario.follow_up
        assert follow_up.kind is RequestKind.DUPLEX
        assert dict(follow_up.headers)["content-type"] == "application/x-ndjson"
        assert follow_up.duplex_lines == ('{"data":"chunk_0"}', '{"data":"chunk_1"}')
        assert follow_up.writer_start_delay == 0.2
        assert follow_up.writer_interval == 0.1
        assert scenario.expectation.lines == ('{"echo":1}', '{"echo":2}', '{"done":true}')
        assert scenario.profile.retries == 2
        assert scenario.profile.read_timeout == scenario.timeout


class TestSelectScenarios:
    """
    Tests for select_scenarios.
    """

    def test_no_names_keeps_all(self):
        all_scenarios = build_scenarios(ServerConfig(), RunnerConfig())
        assert select_scenarios(all_scenarios, ()) == all_scenarios

    def test_catalog_order_is_kept(self):
        selected = select_scenarios(build_scenarios(ServerConfig(), RunnerConfig()), ["bidirectional", "baseline-unary"])
        assert [s.name for s in selected] == ["baseline-unary", "bidirectional"]

    def test_unknown_name(self):
        with pytest.raises(ConfigError) as excinfo:
            select_scenarios(build_scenarios(ServerConfig(), RunnerConfig()), ["baseline-unary", "nope"])
        assert "nope" in str(excinfo.value)
