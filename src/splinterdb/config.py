"""
SplinterDB Python Bindings - database configuration

Copyright (C) SplinterDB Python Bindings Authors

Licensed under the Mozilla Public License, v. 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    https://www.mozilla.org/en-US/MPL/2.0/

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

from __future__ import annotations

import configparser
from dataclasses import dataclass, fields

from ._ffi import MAX_KEY_SIZE, MAX_MESSAGE_SIZE
from .errors import ConfigurationError

INI_SECTION = "splinterdb"


@dataclass
class DBConfig:
    """Configuration for creating or opening a SplinterDB instance."""

    cache_size_bytes: int = 1024 * 1024 * 1024
    disk_size_bytes: int = 30 * 1024 * 1024 * 1024
    max_key_size: int = MAX_KEY_SIZE
    max_value_size: int = MAX_MESSAGE_SIZE

    def validate(self) -> None:
        """Reject sizes the engine cannot work with."""
        for field in fields(self):
            value = getattr(self, field.name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{field.name} must be a positive integer, got {value!r}")


def default_config() -> DBConfig:
    """Get default database configuration."""
    return DBConfig()


def save_config_to_ini(config: DBConfig, path: str) -> None:
    """Write a database configuration to an INI file."""
    parser = configparser.ConfigParser()
    parser[INI_SECTION] = {field.name: str(getattr(config, field.name)) for field in fields(config)}
    with open(path, "w", encoding="utf-8") as f:
        parser.write(f)


def load_config_from_ini(path: str) -> DBConfig:
    """Read a database configuration from an INI file.

    Missing keys keep their defaults; unknown keys are rejected.
    """
    parser = configparser.ConfigParser()
    if not parser.read(path, encoding="utf-8"):
        raise ConfigurationError(f"could not read config file: {path}")
    if not parser.has_section(INI_SECTION):
        raise ConfigurationError(f"config file {path} has no [{INI_SECTION}] section")

    known = {field.name for field in fields(DBConfig)}
    values = {}
    for name, raw in parser.items(INI_SECTION):
        if name not in known:
            raise ConfigurationError(f"unknown config option: {name}")
        try:
            values[name] = int(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None

    config = DBConfig(**values)
    config.validate()
    return config
