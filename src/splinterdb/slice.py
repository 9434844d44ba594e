"""
SplinterDB Python Bindings - slice conversion

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

import ctypes
from ctypes import c_char, c_char_p, c_int, c_ssize_t, c_void_p
from typing import Union

from ._ffi import _CSlice

BytesLike = Union[bytes, bytearray, memoryview]

_PyBUF_READ = 0x100

_memoryview_from_memory = ctypes.pythonapi.PyMemoryView_FromMemory
_memoryview_from_memory.argtypes = [c_void_p, c_ssize_t, c_int]
_memoryview_from_memory.restype = ctypes.py_object


class Slice:
    """Non-owning (length, pointer) view handed to the engine.

    ``bytes`` and writable buffers are passed without copying; any other
    read-only buffer is copied once. The Slice keeps its source alive, so
    it must outlive the native call it is passed to.
    """

    __slots__ = ("length", "_owner", "_buf", "c")

    def __init__(self, data: BytesLike | None) -> None:
        self._owner = data
        self._buf = None

        if data is None:
            self.length = 0
            self.c = _CSlice(0, None)
            return

        if isinstance(data, bytes):
            self.length = len(data)
            self._buf = c_char_p(data)
            address = ctypes.cast(self._buf, c_void_p).value
        else:
            view = memoryview(data)
            self.length = view.nbytes
            if self.length == 0:
                address = None
            elif view.readonly:
                self._buf = (c_char * self.length).from_buffer_copy(view)
                address = ctypes.addressof(self._buf)
            else:
                self._buf = (c_char * self.length).from_buffer(view)
                address = ctypes.addressof(self._buf)

        self.c = _CSlice(self.length, address)

    def __len__(self) -> int:
        return self.length

    def __repr__(self) -> str:
        return f"Slice(length={self.length})"


def bytes_at(address: int | None, length: int) -> bytes:
    """Copy ``length`` bytes from a raw address. NULL reads as empty."""
    if not address or length == 0:
        return b""
    return ctypes.string_at(address, length)


def slice_to_bytes(c_slice: _CSlice) -> bytes:
    """Copy an engine-owned slice into an owned ``bytes`` object."""
    return bytes_at(c_slice.data, c_slice.length)


def slice_view(c_slice: _CSlice) -> memoryview:
    """Borrow an engine-owned slice as a read-only memoryview (no copy).

    The view does not keep the memory alive. It is only valid while the
    engine keeps the buffer, so callers copy out what they retain.
    """
    if not c_slice.data or c_slice.length == 0:
        return memoryview(b"")
    return _memoryview_from_memory(c_slice.data, c_slice.length, _PyBUF_READ)
