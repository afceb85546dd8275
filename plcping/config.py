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
Config file support for PlcPing.

This module handles loading and saving the monitoring profile stored in
~/Documents/PlcPing/config.json. The file is a flat JSON object:

    {
      "PlcIpAddress": "192.168.1.10",
      "Port": 44818,
      "Channel": 1,
      "Slot": 0,
      "WatchdogTag": "MyWatchdog",
      "Timeout": 10000,
      "TagType": "Integer32"
    }

Missing keys fall back to their defaults. A file that cannot be read, parsed
or validated is reported and replaced by the default profile; it is never
fatal to the caller.
"""

import dataclasses
import enum
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

APP_FOLDER = os.path.join(os.path.expanduser("~"), "Documents", "PlcPing")
DEFAULT_CONFIG_PATH = os.path.join(APP_FOLDER, "config.json")


class ConfigError(ValueError):
    """Raised when a config value is missing its expected type or range."""


class TagType(enum.Enum):
    """Scalar type of the watchdog tag."""

    INT32 = "Integer32"
    FLOAT32 = "Float32"
    STRING = "String"

    @classmethod
    def parse(cls, value: Any) -> "TagType":
        """Return the member whose persisted name is ``value``."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        names = ", ".join(member.value for member in cls)
        raise ConfigError(f"Unknown tag type {value!r}; expected one of {names}.")


@dataclass(frozen=True)
class PlcConfig:
    """Monitoring profile for a single PLC."""

    plc_ip_address: str = "192.168.1.10"
    port: int = 44818
    channel: int = 1
    slot: int = 0
    watchdog_tag: str = "MyWatchdog"
    timeout_ms: int = 10000
    tag_type: TagType = TagType.INT32

    @property
    def routing_path(self) -> str:
        """Backplane routing path in ``channel,slot`` form."""
        return f"{self.channel},{self.slot}"


DEFAULT_CONFIG = PlcConfig()

# JSON key -> (attribute name, expected Python type)
_CONFIG_FIELDS: Dict[str, Tuple[str, type]] = {
    "PlcIpAddress": ("plc_ip_address", str),
    "Port": ("port", int),
    "Channel": ("channel", int),
    "Slot": ("slot", int),
    "WatchdogTag": ("watchdog_tag", str),
    "Timeout": ("timeout_ms", int),
    "TagType": ("tag_type", TagType),
}

# Prompt labels in the order fields are walked by prompt_fields()
_PROMPT_FIELDS = (
    ("plc_ip_address", "PLC IP Address", str),
    ("port", "PLC EtherNet/IP port", int),
    ("channel", "PLC backplane channel", int),
    ("slot", "PLC CPU slot", int),
    ("watchdog_tag", "PLC watchdog tag name", str),
    ("timeout_ms", "Tag read timeout in ms", int),
)


def default_config_path() -> str:
    """Return the per-user location of the config file."""
    return DEFAULT_CONFIG_PATH


def _coerce_field(key: str, raw_value: Any) -> Any:
    """Coerce a raw JSON value to the expected type for the given key."""
    _, field_type = _CONFIG_FIELDS[key]
    if field_type is TagType:
        return TagType.parse(raw_value)
    if field_type is int:
        # bool is an int subclass; "Port": true is a typo, not port 1
        if isinstance(raw_value, bool):
            raise ConfigError(f"Invalid value for config field '{key}': expected int, got {raw_value!r}")
        if isinstance(raw_value, float) and not raw_value.is_integer():
            raise ConfigError(f"Invalid value for config field '{key}': expected int, got {raw_value!r}")
    if raw_value is None:
        raise ConfigError(f"Invalid value for config field '{key}': expected {field_type.__name__}, got null")
    try:
        return field_type(raw_value)
    except (ValueError, TypeError) as exc:
        raise ConfigError(
            f"Invalid value for config field '{key}': expected {field_type.__name__}, got {raw_value!r}"
        ) from exc


def validate_field(attr: str, value: Any) -> None:
    """Check a single attribute value against its allowed range."""
    if attr == "plc_ip_address":
        if not isinstance(value, str) or not value.strip():
            raise ConfigError("PLC address must not be empty.")
    elif attr == "port":
        if not 1 <= value <= 65535:
            raise ConfigError(f"Port must be between 1 and 65535, got {value}.")
    elif attr in ("channel", "slot"):
        if value < 0:
            raise ConfigError(f"{attr.capitalize()} must not be negative, got {value}.")
    elif attr == "watchdog_tag":
        if not isinstance(value, str) or not value.strip():
            raise ConfigError("Watchdog tag name must not be empty.")
    elif attr == "timeout_ms":
        if value <= 0:
            raise ConfigError(f"Timeout must be a positive number of milliseconds, got {value}.")
    elif attr == "tag_type":
        TagType.parse(value)


def validate_config(config: PlcConfig) -> None:
    """Raise ConfigError describing the first invalid field of ``config``."""
    for field in dataclasses.fields(config):
        validate_field(field.name, getattr(config, field.name))


def config_from_dict(data: Dict[str, Any]) -> PlcConfig:
    """
    Build a validated PlcConfig from a decoded JSON object.

    Keys absent from ``data`` keep their defaults; unknown keys are ignored.

    Raises:
        ConfigError: If a value has the wrong type or is out of range.
    """
    values: Dict[str, Any] = {}
    for key, raw_value in data.items():
        if key not in _CONFIG_FIELDS:
            logger.warning("Unknown config key '%s'; ignoring.", key)
            continue
        attr, _ = _CONFIG_FIELDS[key]
        values[attr] = _coerce_field(key, raw_value)
    config = dataclasses.replace(DEFAULT_CONFIG, **values)
    validate_config(config)
    return config


def config_to_dict(config: PlcConfig) -> Dict[str, Any]:
    """Serialize a PlcConfig to the persisted JSON layout."""
    result: Dict[str, Any] = {}
    for key, (attr, _) in _CONFIG_FIELDS.items():
        value = getattr(config, attr)
        result[key] = value.value if isinstance(value, TagType) else value
    return result


def load_config(path: Optional[str] = None) -> Tuple[PlcConfig, Optional[str]]:
    """
    Load the persisted config, falling back to defaults.

    Args:
        path: Path to the config file.  Defaults to ``~/Documents/PlcPing/config.json``.

    Returns:
        Tuple of (config, warning). ``warning`` is None when the file was
        loaded cleanly, otherwise a message explaining why defaults are used.
    """
    if path is None:
        path = default_config_path()

    if not os.path.exists(path):
        message = f"No config found at {path}; using defaults."
        logger.info(message)
        return DEFAULT_CONFIG, message

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ConfigError(f"expected a JSON object at the top level, got {type(data).__name__}")
        config = config_from_dict(data)
    except (OSError, ValueError) as exc:
        # json.JSONDecodeError and ConfigError are both ValueError subclasses
        message = f"Warning: Failed to load existing config: {exc}"
        logger.warning("Failed to load config from '%s': %s", path, exc)
        return DEFAULT_CONFIG, message

    logger.debug("Loaded config from '%s'.", path)
    return config, None


def load(path: Optional[str] = None) -> PlcConfig:
    """Return the persisted config, or the defaults if it is missing or invalid."""
    config, _ = load_config(path)
    return config


def save_config(config: PlcConfig, path: Optional[str] = None) -> Optional[str]:
    """
    Write ``config`` to disk as indented JSON.

    Returns:
        None on success, otherwise an error message. Write failures are
        reported, never raised; the in-memory config stays usable.
    """
    if path is None:
        path = default_config_path()

    folder = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(folder, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=folder)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(config_to_dict(config), fh, indent=2)
            fh.write("\n")
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as exc:
        logger.error("Error saving config to '%s': %s", path, exc)
        return f"Error saving config: {exc}"
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    logger.info("Config saved to '%s'.", path)
    return None


def _parse_prompt_value(raw: str, field_type: type) -> Any:
    """Convert typed input; returns None when the input should be ignored."""
    text = raw.strip()
    if not text:
        return None
    if field_type is int:
        try:
            return int(text)
        except ValueError:
            return None
    return text


def prompt_fields(
    config: PlcConfig,
    input_func: Callable[[str], str] = input,
) -> PlcConfig:
    """
    Walk each editable field, showing its current value.

    Blank input keeps the current value. Numeric fields silently keep the
    current value on non-numeric or out-of-range input.
    """
    for attr, label, field_type in _PROMPT_FIELDS:
        current = getattr(config, attr)
        value = _parse_prompt_value(input_func(f"{label} [{current}]: "), field_type)
        if value is None:
            continue
        try:
            validate_field(attr, value)
        except ConfigError as exc:
            logger.debug("Ignoring input for %s: %s", attr, exc)
            continue
        config = dataclasses.replace(config, **{attr: value})
    return config


def load_or_prompt(
    path: Optional[str] = None,
    input_func: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
    choose_tag_type: Optional[Callable[[TagType], TagType]] = None,
) -> PlcConfig:
    """
    Return the persisted config, prompting for a new one if none is valid.

    Args:
        path: Path to the config file.
        input_func: Line reader used for each prompt.
        output: Line writer for status messages.
        choose_tag_type: Optional selector for the tag type; when omitted the
            default type is kept.

    Returns:
        The loaded config, or the freshly prompted one after it was saved.
    """
    if path is None:
        path = default_config_path()

    config, warning = load_config(path)
    if warning is None:
        output(f"Loaded config from: {path}")
        return config
    if os.path.exists(path):
        output(warning)

    config = prompt_fields(DEFAULT_CONFIG, input_func)
    if choose_tag_type is not None:
        config = dataclasses.replace(config, tag_type=choose_tag_type(config.tag_type))

    error = save_config(config, path)
    output(error if error else f"Config saved to: {path}")
    return config
