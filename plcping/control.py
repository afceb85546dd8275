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
Interactive control state machine for PlcPing.

Pure transitions only: key events and menu choices go in, the next
ControlState comes out. The driver in plcping.cli performs the I/O.

    SCANNING --enter--> PAUSED --enter--> SCANNING
    SCANNING | PAUSED --escape--> MENU
    MENU --use saved / edit--> SCANNING
    MENU --exit--> EXIT
"""

import enum
from dataclasses import dataclass, replace
from typing import Optional

from plcping.input_keys import ENTER, ESCAPE


class View(enum.Enum):
    """Active top-level view."""

    SCANNING = "scanning"
    PAUSED = "paused"
    MENU = "menu"
    EXIT = "exit"


class MenuChoice(enum.Enum):
    """Main menu entries, in display order."""

    USE_SAVED = "Use saved configuration"
    EDIT = "Edit configuration"
    EXIT = "Exit"


@dataclass(frozen=True)
class ControlState:
    """Transient run-time state of the control loop."""

    view: View = View.MENU
    cycles: int = 0
    status_message: Optional[str] = None

    @property
    def paused(self) -> bool:
        return self.view is View.PAUSED


def handle_key(state: ControlState, key: Optional[str]) -> ControlState:
    """Return the state after ``key`` was pressed in the scanning or paused view."""
    if key is None or state.view not in (View.SCANNING, View.PAUSED):
        return state
    if key == ENTER:
        if state.view is View.SCANNING:
            return replace(state, view=View.PAUSED, status_message="Paused - press ENTER to resume")
        return replace(state, view=View.SCANNING, status_message="Resumed")
    if key == ESCAPE:
        return replace(state, view=View.MENU, status_message=None)
    return state


def handle_menu_choice(state: ControlState, choice: MenuChoice) -> ControlState:
    """Return the state after a main menu selection was confirmed."""
    if state.view is not View.MENU:
        return state
    if choice is MenuChoice.EXIT:
        return replace(state, view=View.EXIT, status_message=None)
    return replace(state, view=View.SCANNING, status_message=None)


def record_cycle(state: ControlState) -> ControlState:
    """Count one completed probe cycle."""
    return replace(state, cycles=state.cycles + 1)


def should_probe(state: ControlState) -> bool:
    """Probes run only while scanning."""
    return state.view is View.SCANNING
