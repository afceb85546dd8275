#!/usr/bin/env python3
# Copyright 2025 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.

"""
Python wrapper for the system ping binary.

Sends a single ICMP echo request by running the platform's ``ping`` command
as an asyncio subprocess, so non-root users can ping without raw sockets.

Exit status contract (normalized across platforms):
  - 0: a reply was received; RTT is parsed from "time=<value> ms"
  - no-reply code (1 on Linux/Windows, 2 on macOS): normal timeout, not an error
  - anything else: resolution/socket failure, raised as PingError
"""

import asyncio
import contextlib
import math
import re
import shutil
import sys
from typing import List, Optional

PING_RTT_RE = re.compile(r"time[=<](?P<ms>[0-9]+(?:\.[0-9]*)?)\s*ms")

# Grace period on top of the ping timeout before the subprocess is killed
SUBPROCESS_GRACE_SECONDS = 1.0


class PingError(RuntimeError):
    """Raised when the ping command fails for a reason other than no reply."""

    def __init__(self, message, returncode=None, stderr=None):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def _no_reply_codes(platform: str) -> tuple:
    if platform == "darwin":
        return (2,)
    return (1,)


def build_ping_command(host: str, timeout_ms: int, platform: Optional[str] = None) -> List[str]:
    """
    Build the argv for a single echo request to ``host``.

    Args:
        host: The hostname or IP address to ping
        timeout_ms: Reply timeout in milliseconds
        platform: Value of ``sys.platform`` to target (default: current)

    Returns:
        Command argument list suitable for create_subprocess_exec
    """
    if platform is None:
        platform = sys.platform
    if platform.startswith("win"):
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]
    if platform == "darwin":
        return ["ping", "-c", "1", "-W", str(timeout_ms), host]
    # iputils takes whole seconds
    return ["ping", "-n", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000.0))), host]


def parse_rtt(output: str) -> Optional[float]:
    """Extract the round-trip time in milliseconds from ping output."""
    match = PING_RTT_RE.search(output)
    if not match:
        return None
    try:
        return float(match.group("ms"))
    except ValueError:
        return None


async def ping_once(host: str, timeout_ms: int = 2000, platform: Optional[str] = None) -> Optional[float]:
    """
    Send one echo request to ``host``.

    Returns:
        RTT in milliseconds on success (0.0 if the reply carried a TTL but
        no parsable time), or None when no reply arrived within the timeout.

    Raises:
        ValueError: If timeout_ms is not positive
        PingError: If the ping binary is missing or reports an error
            (unknown host, permission problem)
    """
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be a positive integer in milliseconds.")
    if not host or host.startswith("-"):
        raise ValueError(f"Invalid host for ping: {host!r}")

    if platform is None:
        platform = sys.platform
    cmd = build_ping_command(host, timeout_ms, platform)
    if shutil.which(cmd[0]) is None:
        raise PingError(f"ping binary not found on PATH: {cmd[0]}")

    proc = await asyncio.create_subprocess_exec(
        *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(), timeout=timeout_ms / 1000.0 + SUBPROCESS_GRACE_SECONDS
        )
    except asyncio.TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        return None

    if proc.returncode == 0:
        output = stdout.decode(errors="ignore")
        rtt_ms = parse_rtt(output)
        if rtt_ms is not None:
            return rtt_ms
        # Windows exits 0 on "Destination host unreachable"; real replies carry a TTL
        return 0.0 if "ttl=" in output.lower() else None

    if proc.returncode in _no_reply_codes(platform):
        return None

    err_text = stderr.decode(errors="ignore").strip() if stderr else ""
    details = f"ping failed with return code {proc.returncode}"
    if err_text:
        details = f"{details}: {err_text}"
    raise PingError(details, returncode=proc.returncode, stderr=err_text)
