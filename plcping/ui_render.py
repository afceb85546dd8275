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
PlcPing UI Rendering Module

ANSI text utilities, probe result formatting, the scanning view header and
the selector menus. Functions that build lines are pure; only the
``write_*``/``clear_screen`` helpers touch the terminal.
"""

import sys
from datetime import datetime
from typing import List, Optional, Sequence, TextIO

from plcping.config import PlcConfig, TagType
from plcping.control import ControlState
from plcping.probes import Outcome, ProbeResult

ANSI_RESET = "\x1b[0m"
STATUS_COLORS = {
    "ok": "\x1b[32m",  # Green
    "fail": "\x1b[31m",  # Red
    "warn": "\x1b[33m",  # Yellow
    "info": "\x1b[36m",  # Cyan
    "highlight": "\x1b[7m",  # Reverse video
}


# ============================================================================
# ANSI/Text Utility Functions
# ============================================================================


def colorize_text(text: str, status: Optional[str], use_color: bool) -> str:
    """Apply color to text based on status."""
    if not use_color or not status:
        return text
    color = STATUS_COLORS.get(status)
    if not color:
        return text
    return f"{color}{text}{ANSI_RESET}"


# ============================================================================
# Line Builders
# ============================================================================


def _status_word(result: ProbeResult, use_color: bool) -> str:
    if result.ok:
        return colorize_text("OK", "ok", use_color)
    return colorize_text("FAIL", "fail", use_color)


def format_probe_result(result: ProbeResult, config: PlcConfig, use_color: bool = False) -> str:
    """Format one probe result as a single display line."""
    if result.name == "ping":
        line = f"Ping {config.plc_ip_address}: {_status_word(result, use_color)}"
        if result.ok and result.value:
            line += f" ({result.value})"
        return line

    if result.name == "port":
        return f"Port {config.port} open: {_status_word(result, use_color)}"

    if result.name == "tag":
        if result.ok:
            return f"Watchdog Tag '{config.watchdog_tag}' Value: {colorize_text(result.value or '', 'ok', use_color)}"
        if result.outcome is Outcome.TIMEOUT:
            return colorize_text(f"Timeout reading watchdog tag: {result.reason}", "warn", use_color)
        if result.outcome is Outcome.FAILURE:
            return colorize_text(f"Watchdog Tag '{config.watchdog_tag}': {result.reason}", "warn", use_color)
        return colorize_text(f"Error reading watchdog tag: {result.reason}", "fail", use_color)

    return colorize_text(f"Error in {result.name} probe: {result.reason}", "fail", use_color)


def _tag_type_label(tag_type: object) -> str:
    return tag_type.value if isinstance(tag_type, TagType) else str(tag_type)


def render_header(config: PlcConfig, state: ControlState, use_color: bool = False, now: Optional[datetime] = None) -> List[str]:
    """Build the header lines of the scanning view."""
    if now is None:
        now = datetime.now()
    lines = [
        "=== PlcPing ===",
        (
            f"Target {config.plc_ip_address}:{config.port}  path {config.routing_path}  "
            f"tag '{config.watchdog_tag}' ({_tag_type_label(config.tag_type)}, timeout {config.timeout_ms} ms)"
        ),
        f"Cycle {state.cycles + 1}  {now.strftime('%Y-%m-%d %H:%M:%S')}",
        "ENTER: pause/resume   ESC: menu",
    ]
    if state.paused:
        lines.append(colorize_text("PAUSED - press ENTER to resume", "warn", use_color))
    elif state.status_message:
        lines.append(colorize_text(state.status_message, "info", use_color))
    lines.append("")
    return lines


def render_menu(
    title: str,
    options: Sequence[str],
    index: int,
    use_color: bool = False,
    notices: Optional[Sequence[str]] = None,
) -> List[str]:
    """Build a selector menu with the option at ``index`` highlighted and ``notices`` below."""
    lines = [title, "-" * max(len(title), 20)]
    for position, option in enumerate(options):
        if position == index:
            lines.append(f"> {colorize_text(option, 'highlight', use_color)}")
        else:
            lines.append(f"  {option}")
    lines.append("")
    lines.append("up / down: move   ENTER: select")
    if notices:
        lines.append("")
        lines.extend(colorize_text(notice, "info", use_color) for notice in notices)
    return lines


# ============================================================================
# Terminal Utilities
# ============================================================================


def clear_screen(stream: Optional[TextIO] = None) -> None:
    """Clear the terminal and move the cursor home."""
    stream = stream or sys.stdout
    if not stream.isatty():
        return
    stream.write("\x1b[2J\x1b[H")
    stream.flush()


def write_line(text: str = "", stream: Optional[TextIO] = None) -> None:
    """Write one line and flush so it shows up before the next probe starts."""
    stream = stream or sys.stdout
    stream.write(f"{text}\n")
    stream.flush()


def write_lines(lines: Sequence[str], stream: Optional[TextIO] = None) -> None:
    """Write several lines at once."""
    stream = stream or sys.stdout
    stream.write("".join(f"{line}\n" for line in lines))
    stream.flush()


def prepare_terminal_for_exit(stream: Optional[TextIO] = None) -> None:
    """Reset colors before handing the terminal back to the shell."""
    stream = stream or sys.stdout
    if not stream.isatty():
        return
    stream.write(ANSI_RESET + "\n")
    stream.flush()
