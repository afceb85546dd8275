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
Tag access for PlcPing.

Wraps the pylogix EtherNet/IP driver behind a single blocking operation:
read one named tag given a gateway address and a ``channel,slot`` routing
path. The raw result is exposed through typed accessors (int32, float32,
string) so the probe can decode it according to the configured tag type.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Any, Callable, Dict, Protocol, Tuple

from pylogix import PLC

from plcping.config import PlcConfig, TagType

logger = logging.getLogger(__name__)

# Only Logix-family controllers over EtherNet/IP are supported
PLC_FAMILY = "ControlLogix"
PROTOCOL = "ab_eip"

DEFAULT_SOCKET_TIMEOUT = 10.0


class TagReadError(RuntimeError):
    """Raised when the controller rejects a read or cannot be reached."""

    def __init__(self, message: str, status: Any = None):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class TagRequest:
    """Everything the driver needs to address one tag."""

    gateway: str
    path: str
    name: str
    plc_family: str = PLC_FAMILY
    protocol: str = PROTOCOL
    port: int = 44818


def routing_path(channel: int, slot: int) -> str:
    """Return the ``channel,slot`` routing path string."""
    return f"{channel},{slot}"


def parse_routing_path(path: str) -> Tuple[int, int]:
    """Split a ``channel,slot`` routing path into integers."""
    parts = [part.strip() for part in path.split(",")]
    if len(parts) != 2:
        raise ValueError(f"Routing path must be 'channel,slot', got {path!r}")
    return int(parts[0]), int(parts[1])


def build_request(config: PlcConfig) -> TagRequest:
    """Build the tag read request for the watchdog tag of ``config``."""
    return TagRequest(
        gateway=config.plc_ip_address,
        path=config.routing_path,
        name=config.watchdog_tag,
        port=config.port,
    )


class TagBuffer:
    """Raw value returned by a tag read, with typed accessors."""

    def __init__(self, raw: Any):
        self.raw = raw

    def get_int32(self) -> int:
        """Return the value as a signed 32-bit integer."""
        # A REAL read under Integer32 must not be truncated silently
        if isinstance(self.raw, float) and not self.raw.is_integer():
            raise ValueError(f"expected an integer, got {self.raw!r}")
        value = int(self.raw)
        return struct.unpack("<i", struct.pack("<I", value & 0xFFFFFFFF))[0]

    def get_float32(self) -> float:
        """Return the value rounded to IEEE-754 single precision."""
        return struct.unpack("<f", struct.pack("<f", float(self.raw)))[0]

    def get_string(self) -> str:
        """Return the value as text."""
        if isinstance(self.raw, bytes):
            return self.raw.decode("utf-8", errors="replace").rstrip("\x00")
        if self.raw is None:
            return ""
        return str(self.raw)

    def __repr__(self) -> str:
        return f"TagBuffer({self.raw!r})"


class TagReader(Protocol):
    """Anything that can perform a blocking tag read."""

    def read(self, request: TagRequest) -> TagBuffer:  # pragma: no cover - protocol
        ...


class PylogixTagReader:
    """Blocking tag reader backed by pylogix."""

    def __init__(self, socket_timeout: float = DEFAULT_SOCKET_TIMEOUT):
        self.socket_timeout = socket_timeout

    def read(self, request: TagRequest) -> TagBuffer:
        """
        Read one tag from the controller.

        The driver connection is opened and closed within this call, so a
        read abandoned by the caller still releases its socket once pylogix
        returns or its own socket timeout expires.

        Raises:
            TagReadError: If the controller answers with a non-success status.
            ValueError: If the routing path is malformed.
        """
        channel, slot = parse_routing_path(request.path)
        logger.debug(
            "Reading tag '%s' from %s:%d via %s (%s/%s)",
            request.name,
            request.gateway,
            request.port,
            request.path,
            request.plc_family,
            request.protocol,
        )
        with PLC() as comm:
            comm.IPAddress = request.gateway
            comm.Port = request.port
            comm.ProcessorSlot = slot
            comm.Route = [(channel, slot)]
            comm.SocketTimeout = self.socket_timeout
            response = comm.Read(request.name)
        if response.Status != "Success":
            raise TagReadError(f"{response.Status}", status=response.Status)
        return TagBuffer(response.Value)


def _format_float32(value: float) -> str:
    return f"{value:.7g}"


_DECODERS: Dict[TagType, Callable[[TagBuffer], str]] = {
    TagType.INT32: lambda buffer: str(buffer.get_int32()),
    TagType.FLOAT32: lambda buffer: _format_float32(buffer.get_float32()),
    TagType.STRING: lambda buffer: buffer.get_string(),
}


def decode_tag_value(tag_type: Any, buffer: TagBuffer) -> Tuple[bool, str]:
    """
    Decode ``buffer`` according to ``tag_type``.

    Returns:
        (True, text) when the type is supported, otherwise
        (False, "unknown tag type ...").

    Raises:
        ValueError, TypeError, OverflowError: If the raw value does not fit
            the requested type.
    """
    decoder = _DECODERS.get(tag_type) if isinstance(tag_type, TagType) else None
    if decoder is None:
        label = tag_type.value if isinstance(tag_type, TagType) else tag_type
        return False, f"unknown tag type '{label}'"
    return True, decoder(buffer)
