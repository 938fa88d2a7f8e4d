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

import argparse
import os
import sys
import time
from typing import Optional

import h2
import httpx

from goaway_harness import __version__
from goaway_harness.common import constants
from goaway_harness.common.utils import network as net_utils
from goaway_harness.config import RunnerConfig, ServerConfig
from goaway_harness.exceptions import BindError, ConfigError, SetupError
from goaway_harness.logger import (
    BACKENDS,
    ConsoleOptions,
    FileOptions,
    LoggerLevel,
    create_logger,
    logger,
    set_instance,
)
from goaway_harness.scenario import (
    SCENARIO_NAMES,
    ResultReporter,
    ScenarioRunner,
    build_scenarios,
    select_scenarios,
)
from goaway_harness.server import GoawayServer
from goaway_harness.tls import create_client_ssl_context, generate_self_signed

EXIT_SETUP_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog=constants.HARNESS,
        description="Reproduce client hangs on HTTP/2 connections the server closed while idle.",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("--host", default=constants.DEFAULT_HOST, help="bind address (default: %(default)s)")
    ap.add_argument("--port", type=int, default=constants.DEFAULT_PORT, help="bind port, 0 for any (default: %(default)s)")
    ap.add_argument(
        "--idle-threshold",
        type=float,
        default=constants.DEFAULT_IDLE_THRESHOLD,
        help="seconds of idleness before GOAWAY (default: %(default)s)",
    )
    ap.add_argument(
        "--grace-period",
        type=float,
        default=constants.DEFAULT_GRACE_PERIOD,
        help="seconds between GOAWAY and TCP close (default: %(default)s)",
    )
    ap.add_argument(
        "--poll-interval",
        type=float,
        default=constants.DEFAULT_POLL_INTERVAL,
        help="watchdog and read-loop poll interval (default: %(default)s)",
    )
    ap.add_argument(
        "--timeout",
        type=float,
        default=constants.DEFAULT_FOLLOW_UP_TIMEOUT,
        help="bound on each follow-up request (default: %(default)s)",
    )
    ap.add_argument(
        "--settle-delay",
        type=float,
        default=constants.DEFAULT_SETTLE_DELAY,
        help="pause between scenarios (default: %(default)s)",
    )
    ap.add_argument(
        "--scenario",
        action="append",
        choices=SCENARIO_NAMES,
        metavar="NAME",
        help="run only this scenario, may be repeated (default: all)",
    )
    ap.add_argument("--list", action="store_true", help="list the scenarios and exit")
    ap.add_argument("--log-backend", choices=sorted(BACKENDS), default="logging", help="(default: %(default)s)")
    ap.add_argument("--log-file", metavar="PATH", help="also write DEBUG-level logs to this file")
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help=f"trace server and client frames (also enabled by {constants.VERBOSE_ENV}=1)",
    )
    return ap


def _configure_logging(backend: str, verbose: bool, log_file: Optional[str] = None) -> None:
    options = ConsoleOptions(level=LoggerLevel.DEBUG if verbose else LoggerLevel.INFO, colorize=sys.stderr.isatty())
    file_options = FileOptions(enable=True, path=log_file, level=LoggerLevel.DEBUG) if log_file else None
    set_instance(create_logger(backend, options, file_options))


def _print_banner(server_config: ServerConfig) -> None:
    print("HTTP/2 GOAWAY Stale Connection Reproduction")
    print("============================================")
    print(f"httpx version: {httpx.__version__}")
    print(f"h2 version: {h2.__version__}")
    print(f"Server GOAWAY idle timeout: {server_config.idle_threshold:g}s")
    print(f"Server port: {server_config.port}")
    sys.stdout.flush()


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.list:
        for name in SCENARIO_NAMES:
            print(name)
        return 0

    verbose = args.verbose or os.environ.get(constants.VERBOSE_ENV) == "1"
    _configure_logging(args.log_backend, verbose, args.log_file)

    try:
        server_config = ServerConfig(
            host=args.host,
            port=args.port,
            idle_threshold=args.idle_threshold,
            grace_period=args.grace_period,
            poll_interval=args.poll_interval,
        )
        runner_config = RunnerConfig(
            follow_up_timeout=args.timeout,
            settle_delay=args.settle_delay,
            selected=args.scenario or (),
        )
        scenarios = select_scenarios(build_scenarios(server_config, runner_config), runner_config.selected)
    except ConfigError as e:
        ap.error(str(e))

    _print_banner(server_config)

    try:
        if server_config.port and net_utils.is_port_in_use(server_config.host, server_config.port):
            raise BindError(f"Port {server_config.port} on {server_config.host} is already in use")
        credentials = generate_self_signed(server_config.hostname, server_config.host)
        server = GoawayServer(server_config, credentials)
        server.start()
    except SetupError as e:
        logger.critical("Setup failed: %s", e)
        print(f"\nFATAL: {type(e).__name__}: {e}")
        return EXIT_SETUP_FAILURE

    try:
        # give the acceptor time to start
        time.sleep(runner_config.startup_delay)
        runner = ScenarioRunner(server.base_url, create_client_ssl_context(credentials), runner_config)
        results = runner.run_all_sync(scenarios)
    finally:
        print("\nCleaning up...")
        server.stop()

    print()
    reporter = ResultReporter(results)
    reporter.print()
    return reporter.exit_code()


if __name__ == "__main__":
    sys.exit(main())
