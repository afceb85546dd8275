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
Menu and configuration editor for PlcPing.

Both the main menu and the tag type selector are a highlighted index into a
fixed list: up/down move with wraparound at both ends, ENTER confirms.
Menus are modal and read keys with blocking reads.
"""

import dataclasses
import logging
from typing import Callable, List, NamedTuple, Optional, Sequence

from plcping.config import PlcConfig, TagType, load_config, prompt_fields, save_config
from plcping.control import MenuChoice
from plcping.input_keys import ENTER, read_key_blocking
from plcping.ui_render import clear_screen, render_menu, write_lines

logger = logging.getLogger(__name__)

MAIN_MENU_OPTIONS: List[MenuChoice] = list(MenuChoice)
TAG_TYPE_OPTIONS: List[TagType] = list(TagType)


class Selector:
    """Highlighted index into a fixed, ordered list of options."""

    def __init__(self, options: Sequence[str], index: int = 0):
        if not options:
            raise ValueError("Selector needs at least one option")
        self.options = list(options)
        self.index = index % len(self.options)

    def move_up(self) -> None:
        self.index = (self.index - 1) % len(self.options)

    def move_down(self) -> None:
        self.index = (self.index + 1) % len(self.options)

    @property
    def selected(self) -> str:
        return self.options[self.index]


def handle_selector_key(selector: Selector, key: Optional[str]) -> Optional[int]:
    """Apply one key to ``selector``; return the chosen index on ENTER, else None."""
    if key == "arrow_up":
        selector.move_up()
    elif key == "arrow_down":
        selector.move_down()
    elif key == ENTER:
        return selector.index
    return None


def _render_to_screen(lines: List[str]) -> None:
    clear_screen()
    write_lines(lines)


def run_selector(
    title: str,
    options: Sequence[str],
    index: int = 0,
    read: Callable[[], str] = read_key_blocking,
    render: Callable[[List[str]], None] = _render_to_screen,
    use_color: bool = False,
    notices: Optional[Sequence[str]] = None,
) -> int:
    """Show a selector until ENTER is pressed and return the chosen index."""
    selector = Selector(options, index)
    while True:
        render(render_menu(title, selector.options, selector.index, use_color, notices))
        chosen = handle_selector_key(selector, read())
        if chosen is not None:
            return chosen


def choose_main_menu(
    read: Callable[[], str] = read_key_blocking,
    render: Callable[[List[str]], None] = _render_to_screen,
    use_color: bool = False,
    notices: Optional[Sequence[str]] = None,
) -> MenuChoice:
    """Show the main menu, with ``notices`` under it, and return the confirmed choice."""
    labels = [choice.value for choice in MAIN_MENU_OPTIONS]
    return MAIN_MENU_OPTIONS[run_selector("PlcPing - Main Menu", labels, 0, read, render, use_color, notices)]


def select_tag_type(
    current: object = TagType.INT32,
    read: Callable[[], str] = read_key_blocking,
    render: Callable[[List[str]], None] = _render_to_screen,
    use_color: bool = False,
) -> TagType:
    """Show the tag type selector starting at ``current`` and return the choice."""
    index = TAG_TYPE_OPTIONS.index(current) if current in TAG_TYPE_OPTIONS else 0
    labels = [tag_type.value for tag_type in TAG_TYPE_OPTIONS]
    return TAG_TYPE_OPTIONS[run_selector("Select watchdog tag type", labels, index, read, render, use_color)]


def edit_config(
    config: PlcConfig,
    input_func: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
    read: Callable[[], str] = read_key_blocking,
    render: Callable[[List[str]], None] = _render_to_screen,
    use_color: bool = False,
) -> PlcConfig:
    """Walk every field of ``config`` and return the edited copy."""
    render(["Edit configuration", "-" * 20])
    output("Press ENTER on a field to keep its current value.")
    config = prompt_fields(config, input_func)
    tag_type = select_tag_type(config.tag_type, read, render, use_color)
    return dataclasses.replace(config, tag_type=tag_type)


class MenuResult(NamedTuple):
    """Outcome of one visit to the main menu."""

    choice: MenuChoice
    config: Optional[PlcConfig]
    message: Optional[str]


def run_main_menu(
    path: Optional[str] = None,
    read: Callable[[], str] = read_key_blocking,
    render: Callable[[List[str]], None] = _render_to_screen,
    input_func: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
    use_color: bool = False,
    notices: Optional[Sequence[str]] = None,
) -> MenuResult:
    """
    Run the main menu once.

    - "Use saved configuration" reloads the config file (defaults plus a
      warning when it is missing or invalid).
    - "Edit configuration" edits the saved config and persists it right away;
      a failed save is reported and the edited config is still used.
    - "Exit" returns no config.
    """
    choice = choose_main_menu(read, render, use_color, notices)
    if choice is MenuChoice.EXIT:
        return MenuResult(choice, None, None)

    config, warning = load_config(path)
    if choice is MenuChoice.USE_SAVED:
        return MenuResult(choice, config, warning)

    edited = edit_config(config, input_func, output, read, render, use_color)
    error = save_config(edited, path)
    if error:
        logger.warning("Continuing with unsaved configuration")
    return MenuResult(choice, edited, error or "Configuration saved")
