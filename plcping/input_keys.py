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
Keyboard input handling for PlcPing using the readchar library.

Two ways to read a key are provided:

- read_key(): non-blocking poll used while scanning. It returns None when no
  input is pending, so the probe loop never waits on the keyboard.
- read_key_blocking(): modal read used by the menu and selectors.

Both return normalized names: 'enter', 'escape', 'arrow_up', 'arrow_down',
'arrow_left', 'arrow_right', or the character itself for other keys.
"""

import contextlib
import os
import select
import sys
import termios
import tty
from typing import Generator, Optional

import readchar
import readchar.key

# Increased from 0.05 to 0.1 seconds to handle slow terminals/remote connections
# where escape sequence bytes may arrive with delays (e.g., SSH, RDP, VMs)
ARROW_KEY_READ_TIMEOUT = 0.1  # Timeout for reading arrow key escape sequences
ESCAPE_SEQUENCE_MAX_BYTES = 16

ENTER = "enter"
ESCAPE = "escape"


@contextlib.contextmanager
def terminal_cbreak_mode(fd: Optional[int] = None) -> Generator[None, None, None]:
    """Context manager that puts a terminal into cbreak mode and restores it on exit.

    In cbreak mode keys are delivered one at a time without echo, while output
    processing (newline translation) keeps working for the scanning view.
    Terminal state is restored even when a signal (e.g. SIGINT) interrupts
    the caller.

    Args:
        fd: Terminal file descriptor to configure.  Defaults to ``sys.stdin.fileno()``.

    Example::

        with terminal_cbreak_mode():
            key = read_key()
    """
    if fd is None:
        try:
            fd = sys.stdin.fileno()
        except (AttributeError, ValueError, OSError):
            yield
            return
    try:
        old_settings = termios.tcgetattr(fd)
    except termios.error:
        # Not a real terminal (e.g. a pipe or test mock) – skip setup.
        yield
        return
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def parse_escape_sequence(seq: str) -> Optional[str]:
    """
    Parse ANSI escape sequence to identify arrow keys.

    Args:
        seq: The escape sequence string (without the leading ESC)

    Returns:
        String identifier for arrow keys ('arrow_up', 'arrow_down', etc.)
        or None if sequence is not recognized
    """
    arrow_map = {
        "A": "arrow_up",
        "B": "arrow_down",
        "C": "arrow_right",
        "D": "arrow_left",
    }
    if not seq:
        return None
    if seq[0] in ("[", "O") and seq[-1] in arrow_map:
        return arrow_map[seq[-1]]
    return None


def _map_readchar_key(key_value: str) -> str:
    """
    Map readchar key strings to PlcPing key names.

    Args:
        key_value: The key string returned by readchar or read from stdin

    Returns:
        Normalized key name, or the original key value for ordinary keys
    """
    key_map = {
        readchar.key.UP: "arrow_up",
        readchar.key.DOWN: "arrow_down",
        readchar.key.LEFT: "arrow_left",
        readchar.key.RIGHT: "arrow_right",
        readchar.key.ENTER: ENTER,
        readchar.key.ESC: ESCAPE,
        "\r": ENTER,
        "\n": ENTER,
    }
    if key_value in key_map:
        return key_map[key_value]

    # readchar returns full escape sequences like "\x1b[A", "\x1bOA", "\x1b[1;5A", etc.
    if key_value and key_value[0] == "\x1b" and len(key_value) > 1:
        parsed = parse_escape_sequence(key_value[1:])
        if parsed:
            return parsed

    return key_value


def _read_escape_tail(fd: int) -> bytes:
    """Collect the bytes following an ESC that arrive within the inter-byte timeout."""
    tail = bytearray()
    while len(tail) < ESCAPE_SEQUENCE_MAX_BYTES:
        ready, _, _ = select.select([fd], [], [], ARROW_KEY_READ_TIMEOUT)
        if not ready:
            break
        chunk = os.read(fd, 1)
        if not chunk:
            break
        tail.extend(chunk)
        # CSI/SS3 sequences end with a byte in the 64-126 range
        if len(tail) >= 2 and 64 <= tail[-1] <= 126:
            break
    return bytes(tail)


def read_key() -> Optional[str]:
    """
    Poll stdin for one key without blocking.

    Returns None if no input is available or stdin is not a terminal. A lone
    ESC (no sequence bytes following within ARROW_KEY_READ_TIMEOUT) is
    reported as 'escape'.
    """
    if not sys.stdin.isatty():
        return None

    fd = sys.stdin.fileno()
    ready, _, _ = select.select([fd], [], [], 0)
    if not ready:
        return None

    try:
        first = os.read(fd, 1)
        if not first:
            return None
        raw = first
        if first == b"\x1b":
            raw += _read_escape_tail(fd)
    except OSError:
        return None
    return _map_readchar_key(raw.decode("utf-8", errors="replace"))


def read_key_blocking() -> str:
    """
    Wait for and return one key press.

    Raises:
        KeyboardInterrupt: When Ctrl-C is pressed.
    """
    return _map_readchar_key(readchar.readkey())
