"""
SplinterDB Python Bindings

Python bindings for SplinterDB column families - an embedded key-value
storage engine where each column family brings its own key ordering and
merge semantics.

Copyright (C) SplinterDB Python Bindings Authors
Licensed under the Mozilla Public License, v. 2.0
"""

from .config import DBConfig, default_config, load_config_from_ini, save_config_to_ini
from .data import (
    DataConfig,
    DataFuncs,
    DefaultDataFuncs,
    ReverseDataFuncs,
    Uint64AddDataFuncs,
)
from .errors import (
    ConfigurationError,
    DatabaseExistsError,
    DatabaseNotFoundError,
    IteratorStateError,
    KeyTooLargeError,
    SplinterDBError,
    StaleResultError,
)
from .slice import Slice
from .splinterdb import (
    NOT_FOUND,
    ColumnFamily,
    IteratorResult,
    LookupResult,
    RangeIterator,
    SplinterDB,
)

__version__ = "0.1.0"
__all__ = [
    "SplinterDB",
    "ColumnFamily",
    "RangeIterator",
    "IteratorResult",
    "LookupResult",
    "NOT_FOUND",
    "DBConfig",
    "default_config",
    "load_config_from_ini",
    "save_config_to_ini",
    "DataFuncs",
    "DataConfig",
    "DefaultDataFuncs",
    "ReverseDataFuncs",
    "Uint64AddDataFuncs",
    "Slice",
    "SplinterDBError",
    "ConfigurationError",
    "KeyTooLargeError",
    "DatabaseExistsError",
    "DatabaseNotFoundError",
    "IteratorStateError",
    "StaleResultError",
]
