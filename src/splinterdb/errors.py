"""
SplinterDB Python Bindings - exceptions

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

import errno
import os


class SplinterDBError(Exception):
    """Base exception for SplinterDB errors."""

    def __init__(self, message: str, code: int = errno.EINVAL):
        super().__init__(message)
        self.code = code

    @classmethod
    def from_code(cls, code: int, context: str = "") -> SplinterDBError:
        """Create exception from a native status code.

        The engine reports errno-style statuses; the code is kept verbatim
        on the exception and only used here to render a readable message.
        """
        try:
            reason = os.strerror(code)
        except ValueError:
            reason = "unknown error"

        if context:
            msg = f"{context}: {reason} (code: {code})"
        else:
            msg = f"{reason} (code: {code})"

        return cls(msg, code)


class ConfigurationError(SplinterDBError):
    """Invalid database or column family configuration."""


class KeyTooLargeError(SplinterDBError):
    """Key is longer than the column family's maximum key size."""

    def __init__(self, key_len: int, max_key_size: int):
        super().__init__(
            f"key of {key_len} bytes exceeds max key size of {max_key_size} bytes",
            errno.EINVAL,
        )
        self.key_len = key_len
        self.max_key_size = max_key_size


class DatabaseExistsError(SplinterDBError):
    """A database already exists at the requested path."""


class DatabaseNotFoundError(SplinterDBError):
    """No database exists at the requested path."""


class IteratorStateError(SplinterDBError):
    """Iterator was stepped after it was closed or after it failed."""


class StaleResultError(SplinterDBError):
    """An iterator result was read after the iterator moved past it."""
