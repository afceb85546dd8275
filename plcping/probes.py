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
Reachability probes for PlcPing.

Three independent, timeout-bounded checks against the configured PLC:

- ping_probe: one ICMP echo through the system ping binary
- port_probe: TCP connect to the EtherNet/IP port
- tag_read_probe: read of the watchdog tag through the tag-access driver

Each probe returns a ProbeResult instead of raising. A probe's underlying
operation is raced against a timer; when the timer wins the operation is
abandoned, not cancelled. In particular a timed-out tag read keeps running
in its thread until the driver's own socket timeout ends it, so each
timed-out cycle may leave one read in flight. Those reads run on daemon
threads so they never hold the process open at exit.
"""

import asyncio
import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from plcping.config import PlcConfig
from plcping.ping_wrapper import PingError, ping_once
from plcping.tag_access import (
    PylogixTagReader,
    TagReader,
    TagReadError,
    build_request,
    decode_tag_value,
)

logger = logging.getLogger(__name__)

PING_TIMEOUT_SECONDS = 2.0
PORT_TIMEOUT_SECONDS = 2.0

# Upper bound on tag reads in flight, including reads abandoned after a timeout
TAG_READS_IN_FLIGHT = 4


class Outcome(enum.Enum):
    """Tagged outcome of a single probe."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeResult:
    """Result of one probe in one cycle."""

    name: str
    outcome: Outcome
    value: Optional[str] = None
    reason: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


def _discard_outcome(future: "asyncio.Future[Any]") -> None:
    """Retrieve an abandoned future's exception so asyncio does not report it."""
    if not future.cancelled():
        future.exception()


def _close_abandoned_connection(future: "asyncio.Future[Any]") -> None:
    """Close a connection that completed after its probe had already timed out."""
    if future.cancelled() or future.exception() is not None:
        return
    _, writer = future.result()
    writer.close()


def _settle(future: "asyncio.Future[Any]", result: Any, error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


class TagReadPool:
    """
    Runs blocking tag reads on daemon threads, at most ``max_in_flight`` at once.

    Each read gets its own thread and hands its result back to the event loop
    with ``call_soon_threadsafe``. A read abandoned after its timeout keeps
    its slot until the driver returns.
    """

    def __init__(self, max_in_flight: int = TAG_READS_IN_FLIGHT, name: str = "plcping-tag"):
        self.max_in_flight = max_in_flight
        self.name = name
        self._slots = threading.BoundedSemaphore(max_in_flight)

    def submit(self, func: Callable[..., Any], *args: Any) -> "asyncio.Future[Any]":
        """Start ``func(*args)`` on a daemon thread; return a future on the running loop."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if not self._slots.acquire(blocking=False):
            future.set_exception(TagReadError(f"{self.max_in_flight} tag reads still in flight"))
            return future

        def execute() -> None:
            try:
                result, error = func(*args), None
            except Exception as e:  # pylint: disable=broad-exception-caught
                result, error = None, e
            finally:
                self._slots.release()
            try:
                loop.call_soon_threadsafe(_settle, future, result, error)
            except RuntimeError:
                # Event loop already closed; nobody is waiting for this read
                logger.debug("Dropping tag read result after event loop closed")

        threading.Thread(target=execute, name=self.name, daemon=True).start()
        return future


async def race(
    operation: Union[Awaitable[Any], "asyncio.Future[Any]"],
    timeout: float,
    on_abandon: Optional[Callable[["asyncio.Future[Any]"], None]] = None,
) -> Optional["asyncio.Future[Any]"]:
    """
    Await the first of ``operation`` completing or ``timeout`` seconds passing.

    Unlike asyncio.wait_for, the operation is never cancelled. When the timer
    wins, ``on_abandon`` (or a default that just swallows the eventual result)
    is attached as a done-callback and None is returned.

    Returns:
        The finished future (call ``.result()`` to get its value or raise its
        exception), or None on timeout.
    """
    future = asyncio.ensure_future(operation)
    done, _ = await asyncio.wait({future}, timeout=timeout)
    if future in done:
        return future
    future.add_done_callback(on_abandon or _discard_outcome)
    return None


async def ping_probe(host: str, timeout: float = PING_TIMEOUT_SECONDS) -> ProbeResult:
    """
    Send one ICMP echo to ``host``.

    Returns SUCCESS iff a reply arrives within ``timeout``. Resolution
    failures, a missing ping binary and other OS errors are FAILURE.
    """
    start = time.monotonic()
    try:
        rtt_ms = await ping_once(host, timeout_ms=int(timeout * 1000))
    except (OSError, PingError, ValueError) as e:
        logger.info("Ping %s failed: %s", host, e)
        return ProbeResult("ping", Outcome.FAILURE, reason=str(e), elapsed=time.monotonic() - start)

    elapsed = time.monotonic() - start
    if rtt_ms is None:
        return ProbeResult("ping", Outcome.FAILURE, reason="no reply", elapsed=elapsed)
    return ProbeResult("ping", Outcome.SUCCESS, value=f"{rtt_ms:.1f} ms", elapsed=elapsed)


async def port_probe(host: str, port: int, timeout: float = PORT_TIMEOUT_SECONDS) -> ProbeResult:
    """
    Attempt a TCP connection to ``(host, port)``.

    A connection that has not completed after ``timeout`` seconds is
    abandoned and reported as TIMEOUT; if it completes later it is closed
    by a done-callback.
    """
    start = time.monotonic()
    finished = await race(asyncio.open_connection(host, port), timeout, _close_abandoned_connection)
    elapsed = time.monotonic() - start
    if finished is None:
        return ProbeResult("port", Outcome.TIMEOUT, reason=f"no answer within {timeout:g}s", elapsed=elapsed)

    try:
        _, writer = finished.result()
    except OSError as e:
        return ProbeResult("port", Outcome.FAILURE, reason=str(e) or type(e).__name__, elapsed=elapsed)

    connected = not writer.transport.is_closing()
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as e:
        logger.debug("Error closing probe connection to %s:%d: %s", host, port, e)

    if not connected:
        return ProbeResult("port", Outcome.FAILURE, reason="connection closed by peer", elapsed=elapsed)
    return ProbeResult("port", Outcome.SUCCESS, elapsed=elapsed)


async def tag_read_probe(
    config: PlcConfig,
    reader: Optional[TagReader] = None,
    pool: Optional[TagReadPool] = None,
) -> ProbeResult:
    """
    Read the watchdog tag and decode it per ``config.tag_type``.

    The blocking read runs on ``pool`` (a fresh TagReadPool when None) and is
    raced against ``config.timeout_ms``.

    Returns:
        SUCCESS with the decoded value; TIMEOUT when the read did not finish
        in time; ERROR for protocol, connection and decode failures; FAILURE
        with an "unknown tag type" reason when the tag type is unsupported.
    """
    if reader is None:
        reader = PylogixTagReader(socket_timeout=config.timeout_ms / 1000.0)
    if pool is None:
        pool = TagReadPool()
    request = build_request(config)

    start = time.monotonic()
    finished = await race(pool.submit(reader.read, request), config.timeout_ms / 1000.0)
    elapsed = time.monotonic() - start
    if finished is None:
        logger.info("Read of tag '%s' on %s timed out", config.watchdog_tag, config.plc_ip_address)
        return ProbeResult(
            "tag", Outcome.TIMEOUT, reason=f"read timed out after {config.timeout_ms} ms", elapsed=elapsed
        )

    try:
        buffer = finished.result()
    except (TagReadError, OSError, ValueError) as e:
        logger.info("Read of tag '%s' failed: %s", config.watchdog_tag, e)
        return ProbeResult("tag", Outcome.ERROR, reason=str(e) or type(e).__name__, elapsed=elapsed)

    try:
        supported, text = decode_tag_value(config.tag_type, buffer)
    except (ValueError, TypeError, OverflowError) as e:
        label = getattr(config.tag_type, "value", config.tag_type)
        return ProbeResult("tag", Outcome.ERROR, reason=f"cannot decode {buffer.raw!r} as {label}: {e}", elapsed=elapsed)

    if not supported:
        return ProbeResult("tag", Outcome.FAILURE, reason=text, elapsed=elapsed)
    return ProbeResult("tag", Outcome.SUCCESS, value=text, elapsed=elapsed)
