"""
SplinterDB Python Bindings - per-column-family data functions

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

Every column family carries its own key ordering and merge semantics,
supplied from Python as a ``DataFuncs`` subclass. The engine only knows
C function pointers plus an opaque context pointer, so this module keeps
one trampoline per callback slot for the whole process. Each trampoline
turns the context pointer back into the registered ``DataFuncs`` and
dispatches to it.

Callbacks run inside engine code. An exception raised by a ``DataFuncs``
method is logged and converted to a fallback ordering (comparator) or a
non-zero status (merge); it is never propagated into the engine.
"""

from __future__ import annotations

import abc
import ctypes
import errno
import logging
from ctypes import POINTER

from ._ffi import (
    KEY_COMPARE_FUNC,
    MAX_TYPE_NAME,
    MERGE_TUPLES_FINAL_FUNC,
    MERGE_TUPLES_FUNC,
    SDB_SUCCESS,
    TO_STRING_FUNC,
    _CDataConfig,
)
from .errors import ConfigurationError
from .slice import bytes_at

logger = logging.getLogger(__name__)

_UINT64_MASK = (1 << 64) - 1


class DataFuncs(abc.ABC):
    """Key ordering and merge semantics for one kind of column family.

    Subclasses must implement ``compare`` and ``merge``. All methods must
    be deterministic: the engine may call them from any registered thread
    and may replay merges during its own maintenance.
    """

    #: Type name used in diagnostics. Defaults to the class name.
    name: str | None = None

    @property
    def type_name(self) -> str:
        return self.name or type(self).__name__

    @abc.abstractmethod
    def compare(self, key1: bytes, key2: bytes) -> int:
        """Three-way comparison: negative, zero or positive."""

    @abc.abstractmethod
    def merge(self, key: bytes, old_value: bytes | None, delta: bytes) -> bytes:
        """Combine the existing value (``None`` if absent) with a delta."""

    def merge_final(self, key: bytes, delta: bytes) -> bytes:
        """Resolve an update that has no older value to merge into."""
        return self.merge(key, None, delta)

    def key_to_string(self, key: bytes) -> str:
        return key.hex()

    def message_to_string(self, message: bytes) -> str:
        return message.hex()


class DefaultDataFuncs(DataFuncs):
    """Bytewise key order; an update replaces the stored value."""

    name = "default"

    def compare(self, key1: bytes, key2: bytes) -> int:
        return (key1 > key2) - (key1 < key2)

    def merge(self, key: bytes, old_value: bytes | None, delta: bytes) -> bytes:
        return bytes(delta)


class ReverseDataFuncs(DefaultDataFuncs):
    """Descending bytewise key order."""

    name = "reverse"

    def compare(self, key1: bytes, key2: bytes) -> int:
        return (key2 > key1) - (key2 < key1)


class Uint64AddDataFuncs(DefaultDataFuncs):
    """Values are little-endian uint64 counters; deltas are added."""

    name = "uint64_add"

    @staticmethod
    def encode(value: int) -> bytes:
        return (value & _UINT64_MASK).to_bytes(8, "little")

    @staticmethod
    def decode(data: bytes) -> int:
        if len(data) != 8:
            raise ValueError(f"uint64 counter must be 8 bytes, got {len(data)}")
        return int.from_bytes(data, "little")

    def merge(self, key: bytes, old_value: bytes | None, delta: bytes) -> bytes:
        base = 0 if old_value is None else self.decode(old_value)
        return self.encode(base + self.decode(delta))

    def message_to_string(self, message: bytes) -> str:
        if len(message) == 8:
            return str(self.decode(message))
        return message.hex()


def resolve_data_funcs(data_funcs: DataFuncs | type[DataFuncs]) -> DataFuncs:
    """Accept either a DataFuncs instance or a DataFuncs subclass."""
    if isinstance(data_funcs, type) and issubclass(data_funcs, DataFuncs):
        return data_funcs()
    if isinstance(data_funcs, DataFuncs):
        return data_funcs
    raise TypeError(f"expected a DataFuncs instance or subclass, got {data_funcs!r}")


class _CallbackTarget:
    __slots__ = ("data_funcs", "lib")

    def __init__(self, data_funcs: DataFuncs, lib) -> None:
        self.data_funcs = data_funcs
        self.lib = lib


def _target(ctx: int) -> _CallbackTarget:
    return ctypes.cast(ctx, POINTER(ctypes.py_object)).contents.value


def _read_accumulator(lib, acc: int) -> bytes:
    return bytes_at(lib.merge_accumulator_data(acc), lib.merge_accumulator_length(acc))


def _write_accumulator(lib, acc: int, value: bytes) -> int:
    data = bytes(value)
    if not lib.merge_accumulator_resize(acc, len(data)):
        logger.error("could not resize merge accumulator to %d bytes", len(data))
        return errno.ENOMEM
    if data:
        ctypes.memmove(lib.merge_accumulator_data(acc), data, len(data))
    return SDB_SUCCESS


def _key_compare(ctx, key1, key1_len, key2, key2_len):
    k1 = bytes_at(key1, key1_len)
    k2 = bytes_at(key2, key2_len)
    try:
        result = _target(ctx).data_funcs.compare(k1, k2)
        return (result > 0) - (result < 0)
    except Exception:
        logger.exception("key comparator failed, falling back to bytewise order")
        return (k1 > k2) - (k1 < k2)


def _merge_tuples(ctx, key, key_len, old_value, old_len, acc):
    try:
        target = _target(ctx)
        delta = _read_accumulator(target.lib, acc)
        # NULL old value means the key has nothing to merge into
        old = None if old_value is None else bytes_at(old_value, old_len)
        merged = target.data_funcs.merge(bytes_at(key, key_len), old, delta)
        return _write_accumulator(target.lib, acc, merged)
    except Exception:
        logger.exception("merge callback failed")
        return errno.EINVAL


def _merge_tuples_final(ctx, key, key_len, acc):
    try:
        target = _target(ctx)
        delta = _read_accumulator(target.lib, acc)
        merged = target.data_funcs.merge_final(bytes_at(key, key_len), delta)
        return _write_accumulator(target.lib, acc, merged)
    except Exception:
        logger.exception("final merge callback failed")
        return errno.EINVAL


def _render(method: str, ctx, data, length, out, max_len) -> None:
    if not out or max_len == 0:
        return
    try:
        text = getattr(_target(ctx).data_funcs, method)(bytes_at(data, length))
        encoded = text.encode("utf-8", "replace")[: max_len - 1]
    except Exception:
        logger.exception("%s callback failed", method)
        encoded = b""
    ctypes.memmove(out, encoded + b"\x00", len(encoded) + 1)


def _key_to_string(ctx, data, length, out, max_len):
    _render("key_to_string", ctx, data, length, out, max_len)


def _message_to_string(ctx, data, length, out, max_len):
    _render("message_to_string", ctx, data, length, out, max_len)


_key_compare_trampoline = KEY_COMPARE_FUNC(_key_compare)
_merge_tuples_trampoline = MERGE_TUPLES_FUNC(_merge_tuples)
_merge_tuples_final_trampoline = MERGE_TUPLES_FINAL_FUNC(_merge_tuples_final)
_key_to_string_trampoline = TO_STRING_FUNC(_key_to_string)
_message_to_string_trampoline = TO_STRING_FUNC(_message_to_string)


class DataConfig:
    """The C data config record of one column family.

    Built once when the family is created and owned by the family handle.
    The context pointer stored in the record points at ``self._context``,
    so the record and its context live and die together.
    """

    def __init__(
        self,
        data_funcs: DataFuncs,
        max_key_size: int,
        key_size_ceiling: int,
        lib,
    ) -> None:
        if not isinstance(max_key_size, int) or isinstance(max_key_size, bool) or max_key_size <= 0:
            raise ConfigurationError(f"max key size must be a positive integer, got {max_key_size!r}")
        if max_key_size > key_size_ceiling:
            raise ConfigurationError(
                f"max key size {max_key_size} exceeds the database limit of {key_size_ceiling}"
            )

        self.data_funcs = data_funcs
        self.max_key_size = max_key_size
        self._context = ctypes.py_object(_CallbackTarget(data_funcs, lib))

        name_bytes = data_funcs.type_name.encode("utf-8")[: MAX_TYPE_NAME - 1]

        self.c = _CDataConfig()
        self.c.max_key_size = max_key_size
        self.c.type_name = name_bytes
        self.c.key_compare = _key_compare_trampoline
        self.c.merge_tuples = _merge_tuples_trampoline
        self.c.merge_tuples_final = _merge_tuples_final_trampoline
        self.c.key_to_string = _key_to_string_trampoline
        self.c.message_to_string = _message_to_string_trampoline
        self.c.context = ctypes.addressof(self._context)

    @property
    def type_name(self) -> str:
        return self.data_funcs.type_name

    def __repr__(self) -> str:
        return f"DataConfig(type={self.type_name!r}, max_key_size={self.max_key_size})"
