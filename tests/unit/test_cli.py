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
Unit tests for the command-line driver and scanning session.
"""

import asyncio
import io
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import textwrap
import time
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from plcping.cli import ScanSession, _configure_logging, run  # noqa: E402
from plcping.config import PlcConfig  # noqa: E402
from plcping.control import ControlState, MenuChoice, View  # noqa: E402
from plcping.menu import MenuResult  # noqa: E402
from plcping.probes import Outcome, ProbeResult, TagReadPool  # noqa: E402
from plcping.tag_access import TagBuffer  # noqa: E402


async def fake_ping(_host, _timeout):
    return ProbeResult("ping", Outcome.SUCCESS, value="1.0 ms")


async def fake_port(_host, _port, _timeout):
    return ProbeResult("port", Outcome.SUCCESS)


class StaticReader:
    def read(self, _request):
        return TagBuffer(7)


def scripted_keys(*sequence):
    """Return a non-blocking key reader that replays ``sequence`` and then reports no input."""
    iterator = iter(sequence)
    return lambda: next(iterator, None)


# Scans once with a tag read that hangs for 30 s, then leaves through Exit.
HUNG_READ_SCRIPT = textwrap.dedent(
    """
    import asyncio
    import contextlib
    import time
    from unittest.mock import patch

    from plcping import cli
    from plcping.config import PlcConfig
    from plcping.control import MenuChoice
    from plcping.menu import MenuResult
    from plcping.probes import Outcome, ProbeResult


    class HungReader:
        def __init__(self, socket_timeout):
            self.socket_timeout = socket_timeout

        def read(self, request):
            time.sleep(30)


    async def ping_ok(host, timeout):
        return ProbeResult("ping", Outcome.SUCCESS)


    async def port_ok(host, port, timeout):
        return ProbeResult("port", Outcome.SUCCESS)


    keys = iter([None, None, "escape"])
    menu = [
        MenuResult(MenuChoice.USE_SAVED, PlcConfig(timeout_ms=100), None),
        MenuResult(MenuChoice.EXIT, None, None),
    ]
    with contextlib.ExitStack() as stack:
        stack.enter_context(patch("plcping.monitor.ping_probe", ping_ok))
        stack.enter_context(patch("plcping.monitor.port_probe", port_ok))
        stack.enter_context(patch("plcping.probes.PylogixTagReader", HungReader))
        stack.enter_context(patch("plcping.cli.read_key", lambda: next(keys, None)))
        stack.enter_context(patch("plcping.cli.run_main_menu", side_effect=menu))
        asyncio.run(cli.run())
    print("menu exited", flush=True)
    """
)


@patch("plcping.monitor.port_probe", new=fake_port)
@patch("plcping.monitor.ping_probe", new=fake_ping)
class TestScanSession(unittest.TestCase):
    """Tests for ScanSession key handling between probes."""

    def setUp(self):
        self.pool = TagReadPool()
        self.stream = io.StringIO()
        self.config = PlcConfig(plc_ip_address="10.0.0.5", watchdog_tag="Heartbeat")

    def _session(self, read):
        return ScanSession(
            self.config,
            ControlState(view=View.SCANNING),
            pool=self.pool,
            reader=StaticReader(),
            read=read,
            stream=self.stream,
            cycle_delay=0,
        )

    def test_full_cycle_then_escape(self):
        session = self._session(scripted_keys(None, None, "escape"))
        state = asyncio.run(session.run())
        output = self.stream.getvalue()
        self.assertIs(state.view, View.MENU)
        self.assertEqual(state.cycles, 1)
        self.assertIn("=== PlcPing ===", output)
        self.assertIn("Ping 10.0.0.5: OK (1.0 ms)", output)
        self.assertIn("Port 44818 open: OK", output)
        self.assertIn("Watchdog Tag 'Heartbeat' Value: 7", output)

    def test_escape_skips_remaining_probes(self):
        state = asyncio.run(self._session(scripted_keys("escape")).run())
        output = self.stream.getvalue()
        self.assertIs(state.view, View.MENU)
        self.assertEqual(state.cycles, 0)
        self.assertIn("Ping 10.0.0.5", output)
        self.assertNotIn("Port 44818", output)
        self.assertNotIn("Watchdog Tag", output)

    def test_pause_stops_probes_until_menu(self):
        state = asyncio.run(self._session(scripted_keys("enter", None, "escape")).run())
        output = self.stream.getvalue()
        self.assertIs(state.view, View.MENU)
        self.assertIn("PAUSED - press ENTER to resume", output)
        self.assertEqual(output.count("Ping 10.0.0.5"), 1)
        self.assertNotIn("Port 44818", output)

    def test_resume_runs_next_cycle(self):
        keys = scripted_keys("enter", None, "enter", None, None, None, "escape")
        state = asyncio.run(self._session(keys).run())
        output = self.stream.getvalue()
        self.assertIs(state.view, View.MENU)
        self.assertEqual(output.count("Ping 10.0.0.5"), 2)
        self.assertIn("Resumed", output)

    def test_poll_ignores_other_keys(self):
        session = self._session(scripted_keys("a", "arrow_up"))
        self.assertTrue(session.poll())
        self.assertIs(session.state.view, View.SCANNING)


class TestRun(unittest.TestCase):
    """Tests for the menu/scan loop."""

    @patch("plcping.cli.run_main_menu", return_value=MenuResult(MenuChoice.EXIT, None, None))
    def test_exit_from_menu(self, mock_menu):
        asyncio.run(run())
        mock_menu.assert_called_once()

    @patch("plcping.cli.terminal_cbreak_mode", return_value=MagicMock())
    @patch("plcping.cli.ScanSession")
    @patch("plcping.cli.run_main_menu")
    def test_scan_then_exit(self, mock_menu, mock_session, _mock_mode):
        config = PlcConfig(plc_ip_address="10.0.0.5")
        mock_menu.side_effect = [
            MenuResult(MenuChoice.USE_SAVED, config, "No config found at x; using defaults."),
            MenuResult(MenuChoice.EXIT, None, None),
        ]
        mock_session.return_value.run = AsyncMock(return_value=ControlState(view=View.MENU))

        asyncio.run(run())

        self.assertEqual(mock_menu.call_count, 2)
        args, _kwargs = mock_session.call_args
        self.assertEqual(args[0], config)
        self.assertIs(args[1].view, View.SCANNING)
        self.assertEqual(args[1].status_message, "No config found at x; using defaults.")


    @patch("plcping.cli.run_main_menu", return_value=MenuResult(MenuChoice.EXIT, None, None))
    def test_notices_go_to_first_menu(self, mock_menu):
        asyncio.run(run(notices=["Loaded config from: /tmp/config.json"]))
        self.assertEqual(mock_menu.call_args.kwargs["notices"], ["Loaded config from: /tmp/config.json"])

    def test_exit_is_prompt_while_tag_read_hangs(self):
        root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
        env = dict(os.environ, PYTHONPATH=os.pathsep.join(filter(None, [root, os.environ.get("PYTHONPATH")])))
        start = time.monotonic()
        completed = subprocess.run(
            [sys.executable, "-c", HUNG_READ_SCRIPT],
            env=env,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
        elapsed = time.monotonic() - start
        self.assertEqual(completed.returncode, 0, completed.stderr)
        self.assertIn("Timeout reading watchdog tag", completed.stdout)
        self.assertIn("menu exited", completed.stdout)
        self.assertLess(elapsed, 8.0)



class TestConfigureLogging(unittest.TestCase):
    """Tests for _configure_logging."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        root = logging.getLogger()
        self.saved_handlers = root.handlers[:]
        self.saved_level = root.level

    def tearDown(self):
        root = logging.getLogger()
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            root.addHandler(handler)
        root.setLevel(self.saved_level)
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_writes_to_log_file(self):
        log_file = os.path.join(self.tmpdir, "logs", "plcping.log")
        _configure_logging(log_file)
        logging.getLogger("plcping.test").info("cycle done")
        for handler in logging.getLogger().handlers:
            handler.flush()
        with open(log_file, encoding="utf-8") as handle:
            content = handle.read()
        self.assertIn("INFO plcping.test: cycle done", content)

    def test_unwritable_log_file_warns(self):
        blocker = os.path.join(self.tmpdir, "file")
        with open(blocker, "w", encoding="utf-8"):
            pass
        with patch("sys.stderr", new_callable=io.StringIO) as stderr:
            _configure_logging(os.path.join(blocker, "plcping.log"))
        self.assertIn("Could not open log file", stderr.getvalue())
        self.assertTrue(all(isinstance(h, logging.NullHandler) for h in logging.getLogger().handlers))


if __name__ == "__main__":
    unittest.main()
