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
Unit tests for ui_render line builders.
"""

import io
import os
import sys
import unittest
from datetime import datetime

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from plcping.config import PlcConfig, TagType  # noqa: E402
from plcping.control import ControlState, View  # noqa: E402
from plcping.probes import Outcome, ProbeResult  # noqa: E402
from plcping.ui_render import (  # noqa: E402
    clear_screen,
    colorize_text,
    format_probe_result,
    render_header,
    render_menu,
)

CONFIG = PlcConfig(plc_ip_address="10.0.0.5", watchdog_tag="Heartbeat")


class TestFormatProbeResult(unittest.TestCase):
    """Tests for per-probe result lines."""

    def test_ping_lines(self):
        self.assertEqual(
            format_probe_result(ProbeResult("ping", Outcome.SUCCESS, value="3.2 ms"), CONFIG),
            "Ping 10.0.0.5: OK (3.2 ms)",
        )
        self.assertEqual(
            format_probe_result(ProbeResult("ping", Outcome.FAILURE, reason="no reply"), CONFIG),
            "Ping 10.0.0.5: FAIL",
        )

    def test_port_lines(self):
        self.assertEqual(format_probe_result(ProbeResult("port", Outcome.SUCCESS), CONFIG), "Port 44818 open: OK")
        self.assertEqual(
            format_probe_result(ProbeResult("port", Outcome.TIMEOUT, reason="no answer"), CONFIG),
            "Port 44818 open: FAIL",
        )

    def test_tag_lines(self):
        cases = [
            (ProbeResult("tag", Outcome.SUCCESS, value="42"), "Watchdog Tag 'Heartbeat' Value: 42"),
            (
                ProbeResult("tag", Outcome.TIMEOUT, reason="read timed out after 10000 ms"),
                "Timeout reading watchdog tag: read timed out after 10000 ms",
            ),
            (
                ProbeResult("tag", Outcome.FAILURE, reason="unknown tag type 'Int64'"),
                "Watchdog Tag 'Heartbeat': unknown tag type 'Int64'",
            ),
            (
                ProbeResult("tag", Outcome.ERROR, reason="Path destination unknown"),
                "Error reading watchdog tag: Path destination unknown",
            ),
        ]
        for result, expected in cases:
            with self.subTest(outcome=result.outcome):
                self.assertEqual(format_probe_result(result, CONFIG), expected)

    def test_unknown_probe_name(self):
        line = format_probe_result(ProbeResult("arp", Outcome.ERROR, reason="boom"), CONFIG)
        self.assertEqual(line, "Error in arp probe: boom")

    def test_color_wraps_status_word(self):
        result = ProbeResult("ping", Outcome.FAILURE, reason="no reply")
        colored = format_probe_result(result, CONFIG, use_color=True)
        self.assertEqual(colored, "Ping 10.0.0.5: \x1b[31mFAIL\x1b[0m")


class TestRenderHeader(unittest.TestCase):
    NOW = datetime(2025, 3, 1, 12, 30, 5)

    def test_header_lines(self):
        lines = render_header(CONFIG, ControlState(view=View.SCANNING, cycles=4), now=self.NOW)
        self.assertEqual(lines[0], "=== PlcPing ===")
        self.assertIn("10.0.0.5:44818", lines[1])
        self.assertIn("path 1,0", lines[1])
        self.assertIn("'Heartbeat' (Integer32", lines[1])
        self.assertEqual(lines[2], "Cycle 5  2025-03-01 12:30:05")
        self.assertEqual(lines[-1], "")

    def test_paused_banner(self):
        lines = render_header(CONFIG, ControlState(view=View.PAUSED), now=self.NOW)
        self.assertIn("PAUSED - press ENTER to resume", lines)

    def test_status_message(self):
        state = ControlState(view=View.SCANNING, status_message="Configuration saved")
        self.assertIn("Configuration saved", render_header(CONFIG, state, now=self.NOW))

    def test_unknown_tag_type_label(self):
        config = PlcConfig(tag_type="Int64")
        self.assertIn("(Int64,", render_header(config, ControlState(), now=self.NOW)[1])
        self.assertIn(TagType.FLOAT32.value, render_header(PlcConfig(tag_type=TagType.FLOAT32), ControlState())[1])


class TestRenderMenu(unittest.TestCase):
    def test_highlight(self):
        lines = render_menu("Menu", ["One", "Two"], 1)
        self.assertEqual(lines[:4], ["Menu", "-" * 20, "  One", "> Two"])

    def test_highlight_with_color(self):
        lines = render_menu("Menu", ["One", "Two"], 0, use_color=True)
        self.assertEqual(lines[2], "> \x1b[7mOne\x1b[0m")

    def test_notices_follow_the_key_help(self):
        lines = render_menu("Menu", ["One"], 0, notices=["Loaded config from: /tmp/config.json"])
        self.assertEqual(lines[-3:], ["up / down: move   ENTER: select", "", "Loaded config from: /tmp/config.json"])

    def test_no_notices_by_default(self):
        self.assertEqual(render_menu("Menu", ["One"], 0)[-1], "up / down: move   ENTER: select")


class TestTerminalHelpers(unittest.TestCase):
    def test_colorize_without_color(self):
        self.assertEqual(colorize_text("x", "ok", False), "x")
        self.assertEqual(colorize_text("x", "missing", True), "x")

    def test_clear_screen_skips_non_tty(self):
        stream = io.StringIO()
        clear_screen(stream)
        self.assertEqual(stream.getvalue(), "")


if __name__ == "__main__":
    unittest.main()
