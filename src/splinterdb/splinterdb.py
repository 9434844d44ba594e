"""
SplinterDB Python Bindings - database, column family and iterator handles

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

Threading: every thread other than the one that created or opened the
database must call ``SplinterDB.register_thread()`` before its first
operation and ``SplinterDB.deregister_thread()`` after its last. The
engine keeps per-thread scratch state; skipping registration is undefined
behaviour and is not detected here. Database and column family handles
may be shared between registered threads. Range iterators may not.

Teardown order is iterators, then column families, then the database.
"""

from __future__ import annotations

import contextlib
import ctypes
import errno
import logging
import os
import weakref
from ctypes import c_void_p
from dataclasses import dataclass
from typing import Iterator as TypingIterator

from ._ffi import SDB_SUCCESS, _CLookupResult, _CSlice, _CSplinterDBConfig, get_library
from .config import DBConfig, default_config
from .data import DataConfig, DataFuncs, resolve_data_funcs
from .errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    IteratorStateError,
    KeyTooLargeError,
    SplinterDBError,
    StaleResultError,
)
from .slice import BytesLike, Slice, slice_to_bytes, slice_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a point lookup. ``value`` is an owned copy."""

    found: bool
    value: bytes | None = None

    def __bool__(self) -> bool:
        return self.found


NOT_FOUND = LookupResult(found=False)


class _LookupBuffer:
    """Native lookup result buffer, released on every exit path."""

    def __init__(self, lib, cf) -> None:
        self._lib = lib
        self._cf = cf
        self._result = _CLookupResult()

    def __enter__(self) -> _CLookupResult:
        self._lib.splinterdb_cf_lookup_result_init(self._cf, ctypes.byref(self._result), 0, None)
        return self._result

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> bool:
        self._lib.splinterdb_cf_lookup_result_deinit(ctypes.byref(self._result))
        return False


class IteratorResult:
    """The record a RangeIterator is positioned on.

    ``key`` and ``value`` are zero-copy views of engine memory. They are
    only readable until the iterator advances or closes; after that every
    access raises StaleResultError, and views already handed out are
    released, so reading them raises ValueError. Slices taken from a view
    share its memory and must not outlive it. Use ``copy()`` to keep a
    record.
    """

    __slots__ = ("_iterator", "_generation", "_key", "_value")

    def __init__(
        self, iterator: RangeIterator, generation: int, key: _CSlice, value: _CSlice
    ) -> None:
        self._iterator = iterator
        self._generation = generation
        self._key = key
        self._value = value

    @property
    def valid(self) -> bool:
        return self._iterator._generation == self._generation

    def _check(self) -> None:
        if not self.valid:
            raise StaleResultError("iterator result used after the iterator moved")

    @property
    def key(self) -> memoryview:
        self._check()
        return self._iterator._track(slice_view(self._key))

    @property
    def value(self) -> memoryview:
        self._check()
        return self._iterator._track(slice_view(self._value))

    def copy(self) -> tuple[bytes, bytes]:
        """Copy the current key and value into owned bytes."""
        self._check()
        return slice_to_bytes(self._key), slice_to_bytes(self._value)

    def __repr__(self) -> str:
        if not self.valid:
            return "IteratorResult(<stale>)"
        return f"IteratorResult(key_len={self._key.length}, value_len={self._value.length})"


class RangeIterator:
    """Ascending cursor over a column family, from an optional start key.

    The engine positions a fresh cursor on the first record, so the first
    ``advance()`` reads without stepping and every later call steps first.
    """

    def __init__(self, family: ColumnFamily, iter_ptr: c_void_p) -> None:
        self._family = family
        self._lib = family._lib
        self._iter = iter_ptr
        self._current: IteratorResult | None = None
        self._generation = 0
        self._exhausted = False
        self._error_code: int | None = None
        self._closed = False
        self._views: list[memoryview] = []

    def advance(self) -> IteratorResult | None:
        """Move to the next record.

        Returns the record, or None once the range is exhausted. Raises
        SplinterDBError if the engine reports a failure; the iterator is
        unusable afterwards.
        """
        if self._closed:
            raise IteratorStateError("Iterator is closed")
        if self._family.closed:
            raise IteratorStateError("Column family is closed")
        if self._error_code is not None:
            raise IteratorStateError(
                f"Iterator stopped after an error (code: {self._error_code})", self._error_code
            )
        if self._exhausted:
            return None

        if self._current is not None:
            self._release_views()
            self._generation += 1
            self._current = None
            self._lib.splinterdb_cf_iterator_next(self._iter)

        if not self._lib.splinterdb_cf_iterator_valid(self._iter):
            result = self._lib.splinterdb_cf_iterator_status(self._iter)
            if result != SDB_SUCCESS:
                self._error_code = result
                raise SplinterDBError.from_code(result, "iteration failed")
            self._exhausted = True
            return None

        key_slice = _CSlice()
        value_slice = _CSlice()
        self._lib.splinterdb_cf_iterator_get_current(
            self._iter, ctypes.byref(key_slice), ctypes.byref(value_slice)
        )
        self._current = IteratorResult(self, self._generation, key_slice, value_slice)
        return self._current

    def _track(self, view: memoryview) -> memoryview:
        self._views.append(view)
        return view

    def _release_views(self) -> None:
        """Release every view of the current record before the engine frees it."""
        while self._views:
            view = self._views[-1]
            try:
                view.release()
            except BufferError:
                raise IteratorStateError(
                    "a view of the current record is still exported; "
                    "drop it before advancing or closing the iterator"
                ) from None
            self._views.pop()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Free iterator resources."""
        if self._closed:
            return
        self._release_views()
        iter_ptr = self._iter
        self._iter = None
        self._closed = True
        self._generation += 1
        self._current = None
        if iter_ptr:
            self._lib.splinterdb_cf_iterator_deinit(iter_ptr)

    def __enter__(self) -> RangeIterator:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> bool:
        self.close()
        return False

    def __iter__(self) -> TypingIterator[tuple[bytes, bytes]]:
        return self

    def __next__(self) -> tuple[bytes, bytes]:
        record = self.advance()
        if record is None:
            raise StopIteration
        return record.copy()

    def __del__(self) -> None:
        if getattr(self, "_closed", True):
            return
        # the database may already be gone during interpreter teardown
        if self._family.db.closed:
            return
        self.close()


class ColumnFamily:
    """Column family handle.

    Created by ``SplinterDB.create_column_family``. Must be closed before
    the database it belongs to.
    """

    def __init__(self, db: SplinterDB, cf, data_config: DataConfig) -> None:
        self._db = db
        self._lib = db._lib
        self._cf = cf
        self._data_config = data_config
        self._closed = False
        self._iterators: weakref.WeakSet[RangeIterator] = weakref.WeakSet()

    @property
    def max_key_size(self) -> int:
        return self._data_config.max_key_size

    @property
    def data_funcs(self) -> DataFuncs:
        return self._data_config.data_funcs

    @property
    def name(self) -> str:
        return self._data_config.type_name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def db(self) -> SplinterDB:
        return self._db

    def _check_open(self) -> None:
        if self._closed:
            raise SplinterDBError("Column family is closed")
        if self._db.closed:
            raise SplinterDBError("Database is closed")

    def _key_slice(self, key: BytesLike) -> Slice:
        if key is None:
            raise TypeError("key must be bytes-like, not None")
        key_slice = Slice(key)
        if key_slice.length > self.max_key_size:
            raise KeyTooLargeError(key_slice.length, self.max_key_size)
        return key_slice

    def insert(self, key: BytesLike, value: BytesLike) -> None:
        """Insert a key-value pair, overwriting any existing value."""
        self._check_open()
        key_slice = self._key_slice(key)
        value_slice = Slice(value)

        result = self._lib.splinterdb_cf_insert(self._cf, key_slice.c, value_slice.c)
        if result != SDB_SUCCESS:
            raise SplinterDBError.from_code(result, "failed to insert key-value pair")

    def update(self, key: BytesLike, delta: BytesLike) -> None:
        """Merge a delta into the value stored under ``key``.

        How the delta combines with the old value is decided by the
        family's DataFuncs.merge / merge_final.
        """
        self._check_open()
        key_slice = self._key_slice(key)
        delta_slice = Slice(delta)

        result = self._lib.splinterdb_cf_update(self._cf, key_slice.c, delta_slice.c)
        if result != SDB_SUCCESS:
            raise SplinterDBError.from_code(result, "failed to update key")

    def delete(self, key: BytesLike) -> None:
        """Delete a key. Deleting a missing key is not an error."""
        self._check_open()
        key_slice = self._key_slice(key)

        result = self._lib.splinterdb_cf_delete(self._cf, key_slice.c)
        if result != SDB_SUCCESS:
            raise SplinterDBError.from_code(result, "failed to delete key")

    def lookup(self, key: BytesLike) -> LookupResult:
        """
        Look up a key.

        Args:
            key: Key as bytes

        Returns:
            LookupResult with ``found`` set and an owned copy of the value,
            or NOT_FOUND

        Raises:
            SplinterDBError: If the engine reports an error
        """
        self._check_open()
        key_slice = self._key_slice(key)

        with _LookupBuffer(self._lib, self._cf) as lookup_result:
            result = self._lib.splinterdb_cf_lookup(
                self._cf, key_slice.c, ctypes.byref(lookup_result)
            )
            if result != SDB_SUCCESS:
                raise SplinterDBError.from_code(result, "failed to look up key")

            if not self._lib.splinterdb_cf_lookup_found(ctypes.byref(lookup_result)):
                return NOT_FOUND

            value_slice = _CSlice()
            result = self._lib.splinterdb_cf_lookup_result_value(
                ctypes.byref(lookup_result), ctypes.byref(value_slice)
            )
            if result != SDB_SUCCESS:
                raise SplinterDBError.from_code(result, "failed to read lookup result")

            # the buffer is released on exit, so the value must be copied now
            return LookupResult(found=True, value=slice_to_bytes(value_slice))

    def get(self, key: BytesLike, default: bytes | None = None) -> bytes | None:
        """Return the value for ``key``, or ``default`` if it is missing."""
        found = self.lookup(key)
        return found.value if found else default

    def __contains__(self, key: BytesLike) -> bool:
        # a key the family could never store is simply absent
        if key is not None and memoryview(key).nbytes > self.max_key_size:
            return False
        return self.lookup(key).found

    def range(self, start_key: BytesLike | None = None) -> RangeIterator:
        """
        Iterate over the family in key order.

        Args:
            start_key: First key to visit (inclusive), or None for the first key

        Returns:
            RangeIterator instance
        """
        self._check_open()
        start_slice = Slice(None) if start_key is None else self._key_slice(start_key)

        iter_ptr = c_void_p()
        result = self._lib.splinterdb_cf_iterator_init(
            self._cf, ctypes.byref(iter_ptr), start_slice.c
        )
        if result != SDB_SUCCESS:
            raise SplinterDBError.from_code(result, "failed to create iterator")

        iterator = RangeIterator(self, iter_ptr)
        self._iterators.add(iterator)
        return iterator

    def close(self) -> None:
        """Delete the engine's handle for this column family.

        Iterators still open on the family are closed first.
        """
        if self._closed:
            return
        for iterator in list(self._iterators):
            iterator.close()
        cf = self._cf
        self._cf = None
        self._closed = True
        self._lib.column_family_delete(cf)
        logger.debug("closed column family %r", self.name)

    def __enter__(self) -> ColumnFamily:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ColumnFamily(type={self.name!r}, max_key_size={self.max_key_size}, {state})"

    def __del__(self) -> None:
        if getattr(self, "_closed", True):
            return
        if self._db.closed:
            return
        self.close()


class SplinterDB:
    """SplinterDB database instance with column families.

    Use ``SplinterDB.create`` or ``SplinterDB.open``; the handle moves from
    uninitialized to open to closed and is never reopened.
    """

    def __init__(self, lib=None) -> None:
        self._lib = lib if lib is not None else get_library()
        self._db: c_void_p | None = None
        self._cf_cfg: c_void_p | None = None
        self._config: DBConfig | None = None
        self._path: str | None = None
        self._closed = False

    @classmethod
    def create(cls, path: str | os.PathLike, config: DBConfig | None = None, lib=None) -> SplinterDB:
        """
        Create a new database.

        Args:
            path: Path of the database file
            config: Database configuration, or None for defaults
            lib: Engine library to use, or None for the system libsplinterdb

        Returns:
            SplinterDB instance

        Raises:
            DatabaseExistsError: If a non-empty file already exists at ``path``
        """
        db = cls(lib)
        db._create_or_open(path, config, open_existing=False)
        return db

    @classmethod
    def open(cls, path: str | os.PathLike, config: DBConfig | None = None, lib=None) -> SplinterDB:
        """
        Open an existing database.

        Raises:
            DatabaseNotFoundError: If nothing exists at ``path``
            SplinterDBError: If the engine cannot open the database
        """
        db = cls(lib)
        db._create_or_open(path, config, open_existing=True)
        return db

    def _create_or_open(
        self, path: str | os.PathLike, config: DBConfig | None, open_existing: bool
    ) -> None:
        if self._db is not None or self._closed:
            raise SplinterDBError("Database handle was already used")

        if config is None:
            config = default_config()
        config.validate()

        abs_path = os.path.abspath(os.fspath(path))
        if open_existing:
            if not os.path.exists(abs_path):
                raise DatabaseNotFoundError(f"no database at {abs_path}", errno.ENOENT)
        elif os.path.exists(abs_path) and os.path.getsize(abs_path) > 0:
            raise DatabaseExistsError(f"database already exists at {abs_path}", errno.EEXIST)

        self._path_bytes = abs_path.encode("utf-8")

        cf_cfg = c_void_p()
        self._lib.column_family_config_init(config.max_key_size, ctypes.byref(cf_cfg))

        c_config = _CSplinterDBConfig(
            filename=self._path_bytes,
            cache_size=config.cache_size_bytes,
            disk_size=config.disk_size_bytes,
            data_cfg=cf_cfg.value,
        )

        db_ptr = c_void_p()
        if open_existing:
            result = self._lib.splinterdb_open(ctypes.byref(c_config), ctypes.byref(db_ptr))
        else:
            result = self._lib.splinterdb_create(ctypes.byref(c_config), ctypes.byref(db_ptr))

        if result != SDB_SUCCESS:
            self._lib.column_family_config_deinit(cf_cfg)
            action = "open" if open_existing else "create"
            raise SplinterDBError.from_code(result, f"failed to {action} database")

        self._db = db_ptr
        self._cf_cfg = cf_cfg
        self._config = config
        self._path = abs_path
        logger.debug("%s database at %s", "opened" if open_existing else "created", abs_path)

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def config(self) -> DBConfig | None:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed or self._db is None

    def _check_open(self) -> None:
        if self.closed:
            raise SplinterDBError("Database is closed")

    def register_thread(self) -> None:
        """Register the calling thread with the engine.

        Required once per worker thread before its first operation.
        """
        self._check_open()
        self._lib.splinterdb_register_thread(self._db)

    def deregister_thread(self) -> None:
        """Release the calling thread's engine state after its last operation."""
        self._check_open()
        self._lib.splinterdb_deregister_thread(self._db)

    @contextlib.contextmanager
    def registered_thread(self) -> TypingIterator[SplinterDB]:
        """Register the calling thread for the duration of a ``with`` block."""
        self.register_thread()
        try:
            yield self
        finally:
            self.deregister_thread()

    def create_column_family(
        self, data_funcs: DataFuncs | type[DataFuncs], max_key_size: int | None = None
    ) -> ColumnFamily:
        """
        Create a new column family.

        Args:
            data_funcs: Key ordering and merge semantics, as an instance or class
            max_key_size: Largest key accepted, or None for the database limit

        Returns:
            ColumnFamily instance

        Raises:
            ConfigurationError: If max_key_size exceeds the database limit
        """
        self._check_open()

        funcs = resolve_data_funcs(data_funcs)
        ceiling = self._config.max_key_size
        if max_key_size is None:
            max_key_size = ceiling

        data_config = DataConfig(funcs, max_key_size, ceiling, self._lib)
        cf = self._lib.column_family_create(self._db, max_key_size, ctypes.byref(data_config.c))

        logger.debug(
            "created column family %r with max key size %d", data_config.type_name, max_key_size
        )
        return ColumnFamily(self, cf, data_config)

    def close(self) -> None:
        """Close the database."""
        if self._closed:
            return
        db_ptr = self._db
        cf_cfg = self._cf_cfg
        self._db = None
        self._cf_cfg = None
        self._closed = True
        if db_ptr is None:
            return
        self._lib.splinterdb_close(ctypes.byref(db_ptr))
        self._lib.column_family_config_deinit(cf_cfg)
        logger.debug("closed database at %s", self._path)

    def __enter__(self) -> SplinterDB:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"SplinterDB(path={self._path!r}, {state})"

    def __del__(self) -> None:
        if getattr(self, "_closed", True):
            return
        self.close()
