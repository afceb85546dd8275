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
# Review for correctness and security.

"""
Probe cycle orchestration for PlcPing.

One cycle runs the ping, port and tag-read probes strictly in sequence,
rendering each result as soon as it is known. Exceptions escaping a probe
are turned into an error result here so a single bad probe never stops the
loop.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from plcping.config import PlcConfig
from plcping.probes import (
    PING_TIMEOUT_SECONDS,
    PORT_TIMEOUT_SECONDS,
    Outcome,
    ProbeResult,
    TagReadPool,
    ping_probe,
    port_probe,
    tag_read_probe,
)
from plcping.tag_access import TagReader

logger = logging.getLogger(__name__)

CYCLE_DELAY_SECONDS = 2.5
KEY_POLL_INTERVAL = 0.05  # Seconds between keyboard polls while waiting


class ProbeCycle:
    """Runs the three reachability probes for one configuration."""

    def __init__(
        self,
        config: PlcConfig,
        reader: Optional[TagReader] = None,
        pool: Optional[TagReadPool] = None,
        render: Optional[Callable[[ProbeResult], None]] = None,
        ping_timeout: float = PING_TIMEOUT_SECONDS,
        port_timeout: float = PORT_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.reader = reader
        self.pool = pool
        self.render = render
        self.ping_timeout = ping_timeout
        self.port_timeout = port_timeout

    def _steps(self) -> List[Tuple[str, Callable[[], Awaitable[ProbeResult]]]]:
        config = self.config
        return [
            ("ping", lambda: ping_probe(config.plc_ip_address, self.ping_timeout)),
            ("port", lambda: port_probe(config.plc_ip_address, config.port, self.port_timeout)),
            ("tag", lambda: tag_read_probe(config, self.reader, self.pool)),
        ]

    async def _run_probe(self, name: str, probe: Callable[[], Awaitable[ProbeResult]]) -> ProbeResult:
        start = time.monotonic()
        try:
            return await probe()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error in %s probe", name)
            return ProbeResult(name, Outcome.ERROR, reason=str(e) or type(e).__name__, elapsed=time.monotonic() - start)

    async def run_once(self, keep_going: Optional[Callable[[], bool]] = None) -> List[ProbeResult]:
        """
        Run one probe cycle.

        Args:
            keep_going: Optional callback consulted between probes; when it
                returns False the remaining probes of this cycle are skipped.

        Returns:
            The results of the probes that ran, in order.
        """
        results: List[ProbeResult] = []
        for name, probe in self._steps():
            if results and keep_going is not None and not keep_going():
                break
            result = await self._run_probe(name, probe)
            if result.ok:
                logger.debug("%s probe ok: %s", name, result.value or "")
            else:
                logger.info("%s probe %s: %s", name, result.outcome.value, result.reason)
            results.append(result)
            if self.render is not None:
                self.render(result)
        return results


async def wait_with_polling(
    delay: float,
    keep_going: Callable[[], bool],
    interval: float = KEY_POLL_INTERVAL,
) -> bool:
    """
    Sleep for ``delay`` seconds while polling ``keep_going``.

    Returns:
        True when the full delay elapsed, False as soon as keep_going()
        returned False.
    """
    deadline = time.monotonic() + delay
    while True:
        if not keep_going():
            return False
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return True
        await asyncio.sleep(min(interval, remaining))
