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

"""Default values shared by the server, the runner and the CLI."""

HARNESS = "goaway-harness"
UTF_8 = "utf-8"

# Network
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 19443
DEFAULT_HOSTNAME = "localhost"
ALPN_H2 = "h2"
READ_SIZE = 16384

# Idle teardown schedule (seconds)
DEFAULT_IDLE_THRESHOLD = 3.0
DEFAULT_GRACE_PERIOD = 5.0
DEFAULT_POLL_INTERVAL = 0.5

# Server-streaming response
DEFAULT_CHUNK_COUNT = 3
DEFAULT_CHUNK_DELAY = 0.3

# Finished connections kept for server stats
CONNECTION_HISTORY = 1024

# Scenario runner (seconds)
DEFAULT_FOLLOW_UP_TIMEOUT = 15.0
DEFAULT_SETTLE_DELAY = 1.0
DEFAULT_IDLE_MARGIN = 2.0
DEFAULT_CLOSE_MARGIN = 2.0
DEFAULT_STARTUP_DELAY = 0.5

# Client profile (seconds)
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_KEEPALIVE_EXPIRY = 5.0
LONG_KEEPALIVE_EXPIRY = 600.0

# Content types
TEXT_PLAIN = "text/plain"
NDJSON = "application/x-ndjson"
JSON = "application/json"

# Environment
VERBOSE_ENV = "VERBOSE"
