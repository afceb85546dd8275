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
Command-line entry point for PlcPing.

Drives the control state machine: the main menu is modal and blocking, the
scanning and paused views poll the keyboard without blocking so the probe
cycle keeps running until ENTER or ESC is pressed.
"""

import asyncio
import logging
import os
import sys
from dataclasses import replace
from typing import Callable, List, Optional, TextIO

from plcping.config import APP_FOLDER, PlcConfig, load_or_prompt
from plcping.control import (
    ControlState,
    View,
    handle_key,
    handle_menu_choice,
    record_cycle,
    should_probe,
)
from plcping.input_keys import read_key, terminal_cbreak_mode
from plcping.menu import run_main_menu, select_tag_type
from plcping.monitor import CYCLE_DELAY_SECONDS, KEY_POLL_INTERVAL, ProbeCycle, wait_with_polling
from plcping.probes import ProbeResult, TagReadPool
from plcping.tag_access import TagReader
from plcping.ui_render import (
    clear_screen,
    colorize_text,
    format_probe_result,
    prepare_terminal_for_exit,
    render_header,
    write_line,
    write_lines,
)

logger = logging.getLogger(__name__)

LOG_FILE_PATH = os.path.join(APP_FOLDER, "plcping.log")


def _configure_logging(log_file: Optional[str] = LOG_FILE_PATH, level: int = logging.INFO) -> None:
    """Configure logging to a file; the terminal belongs to the scanning view."""
    handlers: List[logging.Handler] = []
    if log_file:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"Warning: Could not open log file {log_file}: {e}", file=sys.stderr)
    if not handlers:
        handlers.append(logging.NullHandler())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


class ScanSession:
    """Scanning and paused views for one configuration."""

    def __init__(
        self,
        config: PlcConfig,
        state: ControlState,
        pool: Optional[TagReadPool] = None,
        reader: Optional[TagReader] = None,
        read: Callable[[], Optional[str]] = read_key,
        stream: Optional[TextIO] = None,
        use_color: bool = False,
        cycle_delay: float = CYCLE_DELAY_SECONDS,
    ):
        self.config = config
        self.state = state
        self.read = read
        self.stream = stream or sys.stdout
        self.use_color = use_color
        self.cycle_delay = cycle_delay
        self.cycle = ProbeCycle(config, reader=reader, pool=pool, render=self._render_result)

    def poll(self) -> bool:
        """Apply all pending key presses; return True while probes should keep running."""
        key = self.read()
        while key is not None:
            previous = self.state
            self.state = handle_key(self.state, key)
            if self.state.view is not previous.view:
                logger.debug("View changed: %s -> %s", previous.view.value, self.state.view.value)
                if self.state.paused:
                    write_line(colorize_text("PAUSED - press ENTER to resume", "warn", self.use_color), self.stream)
            if self.state.view is View.MENU:
                break
            key = self.read()
        return should_probe(self.state)

    def _active(self) -> bool:
        return self.state.view in (View.SCANNING, View.PAUSED)

    def _render_result(self, result: ProbeResult) -> None:
        write_line(format_probe_result(result, self.config, self.use_color), self.stream)

    def _render_header(self) -> None:
        clear_screen(self.stream)
        write_lines(render_header(self.config, self.state, self.use_color), self.stream)

    async def run(self) -> ControlState:
        """Cycle probes until the user leaves for the menu; return the final state."""
        while self._active():
            if not should_probe(self.state):
                self.poll()
                await asyncio.sleep(KEY_POLL_INTERVAL)
                continue
            self._render_header()
            await self.cycle.run_once(keep_going=self.poll)
            if not should_probe(self.state):
                continue
            self.state = replace(record_cycle(self.state), status_message=None)
            await wait_with_polling(self.cycle_delay, self.poll)
        return self.state


async def run(
    config_path: Optional[str] = None,
    use_color: bool = False,
    notices: Optional[List[str]] = None,
) -> None:
    """
    Alternate between the main menu and the scanning view until Exit is chosen.

    ``notices`` are shown under the first main menu, since opening the menu
    clears whatever start-up printed. Tag reads abandoned after a timeout run
    on daemon threads and do not delay the exit.
    """
    state = ControlState(view=View.MENU)
    pool = TagReadPool()
    while True:
        result = run_main_menu(config_path, use_color=use_color, notices=notices)
        notices = None
        state = handle_menu_choice(state, result.choice)
        if state.view is View.EXIT or result.config is None:
            logger.info("Exit selected from menu")
            break
        logger.info(
            "Scanning %s:%d path %s tag '%s'",
            result.config.plc_ip_address,
            result.config.port,
            result.config.routing_path,
            result.config.watchdog_tag,
        )
        state = replace(state, cycles=0, status_message=result.message)
        with terminal_cbreak_mode():
            session = ScanSession(result.config, state, pool=pool, read=read_key, use_color=use_color)
            state = await session.run()


def main() -> None:
    """Main entrypoint for the CLI."""
    _configure_logging()
    use_color = sys.stdout.isatty()
    print("=== PlcPing ===")
    notices: List[str] = []

    def report(line: str) -> None:
        print(line)
        notices.append(line)

    try:
        load_or_prompt(output=report, choose_tag_type=lambda current: select_tag_type(current, use_color=use_color))
        asyncio.run(run(use_color=use_color, notices=notices))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        prepare_terminal_for_exit()
