"""
SplinterDB Python Bindings - native library declarations

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
import sys
import threading
from ctypes import (
    CFUNCTYPE,
    POINTER,
    Structure,
    c_bool,
    c_char,
    c_char_p,
    c_int,
    c_size_t,
    c_uint32,
    c_uint64,
    c_void_p,
)

MAX_KEY_SIZE = 24
MAX_MESSAGE_SIZE = 128
MAX_TYPE_NAME = 64
LOOKUP_RESULT_BUFSIZE = 6 * ctypes.sizeof(c_void_p)

SDB_SUCCESS = 0


class _CSlice(Structure):
    """C structure for slice."""

    _fields_ = [
        ("length", c_uint64),
        ("data", c_void_p),
    ]


class _CSplinterDBConfig(Structure):
    """C structure for splinterdb_config."""

    _fields_ = [
        ("filename", c_char_p),
        ("cache_size", c_uint64),
        ("disk_size", c_uint64),
        ("data_cfg", c_void_p),
        ("heap_handle", c_void_p),
        ("heap_id", c_void_p),
    ]


class _CColumnFamily(Structure):
    """C structure for splinterdb_column_family."""

    _fields_ = [
        ("id", c_uint32),
        ("kvs", c_void_p),
    ]


class _CLookupResult(Structure):
    """C structure for splinterdb_lookup_result (opaque to callers)."""

    _fields_ = [
        ("opaque", c_char * LOOKUP_RESULT_BUFSIZE),
    ]


# int key_compare(void *ctx, const void *key1, size_t key1_len,
#                 const void *key2, size_t key2_len)
KEY_COMPARE_FUNC = CFUNCTYPE(c_int, c_void_p, c_void_p, c_size_t, c_void_p, c_size_t)

# int merge_tuples(void *ctx, const void *key, size_t key_len,
#                  const void *old_value, size_t old_len, merge_accumulator *acc)
MERGE_TUPLES_FUNC = CFUNCTYPE(
    c_int, c_void_p, c_void_p, c_size_t, c_void_p, c_size_t, c_void_p
)

# int merge_tuples_final(void *ctx, const void *key, size_t key_len,
#                        merge_accumulator *oldest)
MERGE_TUPLES_FINAL_FUNC = CFUNCTYPE(c_int, c_void_p, c_void_p, c_size_t, c_void_p)

# void to_string(void *ctx, const void *data, size_t len, char *out, size_t max_len)
TO_STRING_FUNC = CFUNCTYPE(None, c_void_p, c_void_p, c_size_t, c_void_p, c_size_t)


class _CDataConfig(Structure):
    """C structure for the per-column-family data config record."""

    _fields_ = [
        ("max_key_size", c_uint64),
        ("type_name", c_char * MAX_TYPE_NAME),
        ("key_compare", KEY_COMPARE_FUNC),
        ("merge_tuples", MERGE_TUPLES_FUNC),
        ("merge_tuples_final", MERGE_TUPLES_FINAL_FUNC),
        ("key_to_string", TO_STRING_FUNC),
        ("message_to_string", TO_STRING_FUNC),
        ("context", c_void_p),
    ]


def _load_library() -> ctypes.CDLL:
    """Load the SplinterDB shared library."""
    if sys.platform == "win32":
        lib_names = ["splinterdb.dll", "libsplinterdb.dll"]
    elif sys.platform == "darwin":
        lib_names = ["libsplinterdb.dylib", "libsplinterdb.so"]
    else:
        lib_names = ["libsplinterdb.so", "libsplinterdb.so.1"]

    search_paths = [
        "",
        "/usr/local/lib/",
        "/usr/lib/",
        "/opt/homebrew/lib/",
    ]

    for path in search_paths:
        for lib_name in lib_names:
            try:
                return ctypes.CDLL(path + lib_name)
            except OSError:
                continue

    raise RuntimeError(
        "Could not load SplinterDB library. "
        "Please ensure libsplinterdb is installed and in your library path. "
        "On Linux: /usr/local/lib or set LD_LIBRARY_PATH. "
        "On macOS: /usr/local/lib or /opt/homebrew/lib or set DYLD_LIBRARY_PATH."
    )


def _declare(lib: ctypes.CDLL) -> ctypes.CDLL:
    """Attach argument and return types to the library entry points."""
    lib.splinterdb_create.argtypes = [POINTER(_CSplinterDBConfig), POINTER(c_void_p)]
    lib.splinterdb_create.restype = c_int

    lib.splinterdb_open.argtypes = [POINTER(_CSplinterDBConfig), POINTER(c_void_p)]
    lib.splinterdb_open.restype = c_int

    lib.splinterdb_close.argtypes = [POINTER(c_void_p)]
    lib.splinterdb_close.restype = None

    lib.splinterdb_register_thread.argtypes = [c_void_p]
    lib.splinterdb_register_thread.restype = None

    lib.splinterdb_deregister_thread.argtypes = [c_void_p]
    lib.splinterdb_deregister_thread.restype = None

    lib.column_family_config_init.argtypes = [c_uint64, POINTER(c_void_p)]
    lib.column_family_config_init.restype = None

    lib.column_family_config_deinit.argtypes = [c_void_p]
    lib.column_family_config_deinit.restype = None

    lib.column_family_create.argtypes = [c_void_p, c_uint64, POINTER(_CDataConfig)]
    lib.column_family_create.restype = _CColumnFamily

    lib.column_family_delete.argtypes = [_CColumnFamily]
    lib.column_family_delete.restype = None

    lib.splinterdb_cf_insert.argtypes = [_CColumnFamily, _CSlice, _CSlice]
    lib.splinterdb_cf_insert.restype = c_int

    lib.splinterdb_cf_update.argtypes = [_CColumnFamily, _CSlice, _CSlice]
    lib.splinterdb_cf_update.restype = c_int

    lib.splinterdb_cf_delete.argtypes = [_CColumnFamily, _CSlice]
    lib.splinterdb_cf_delete.restype = c_int

    lib.splinterdb_cf_lookup_result_init.argtypes = [
        _CColumnFamily,
        POINTER(_CLookupResult),
        c_uint64,
        c_char_p,
    ]
    lib.splinterdb_cf_lookup_result_init.restype = None

    lib.splinterdb_cf_lookup.argtypes = [_CColumnFamily, _CSlice, POINTER(_CLookupResult)]
    lib.splinterdb_cf_lookup.restype = c_int

    lib.splinterdb_cf_lookup_found.argtypes = [POINTER(_CLookupResult)]
    lib.splinterdb_cf_lookup_found.restype = c_bool

    lib.splinterdb_cf_lookup_result_value.argtypes = [POINTER(_CLookupResult), POINTER(_CSlice)]
    lib.splinterdb_cf_lookup_result_value.restype = c_int

    lib.splinterdb_cf_lookup_result_deinit.argtypes = [POINTER(_CLookupResult)]
    lib.splinterdb_cf_lookup_result_deinit.restype = None

    lib.splinterdb_cf_iterator_init.argtypes = [_CColumnFamily, POINTER(c_void_p), _CSlice]
    lib.splinterdb_cf_iterator_init.restype = c_int

    lib.splinterdb_cf_iterator_valid.argtypes = [c_void_p]
    lib.splinterdb_cf_iterator_valid.restype = c_bool

    lib.splinterdb_cf_iterator_next.argtypes = [c_void_p]
    lib.splinterdb_cf_iterator_next.restype = None

    lib.splinterdb_cf_iterator_get_current.argtypes = [c_void_p, POINTER(_CSlice), POINTER(_CSlice)]
    lib.splinterdb_cf_iterator_get_current.restype = None

    lib.splinterdb_cf_iterator_status.argtypes = [c_void_p]
    lib.splinterdb_cf_iterator_status.restype = c_int

    lib.splinterdb_cf_iterator_deinit.argtypes = [c_void_p]
    lib.splinterdb_cf_iterator_deinit.restype = None

    lib.merge_accumulator_data.argtypes = [c_void_p]
    lib.merge_accumulator_data.restype = c_void_p

    lib.merge_accumulator_length.argtypes = [c_void_p]
    lib.merge_accumulator_length.restype = c_uint64

    lib.merge_accumulator_resize.argtypes = [c_void_p, c_uint64]
    lib.merge_accumulator_resize.restype = c_bool

    return lib


_lib: ctypes.CDLL | None = None
_lib_lock = threading.Lock()


def get_library() -> ctypes.CDLL:
    """Return the process-wide SplinterDB library, loading it on first use."""
    global _lib
    with _lib_lock:
        if _lib is None:
            _lib = _declare(_load_library())
        return _lib
