#!/usr/bin/env python3
"""
SplinterDB Basic Operations Sample

This sample demonstrates the fundamental operations of SplinterDB column
families:
- Database creation
- Column families with their own data functions
- Basic key-value operations (insert/lookup/delete)
- Merge updates on a counter family

Requires libsplinterdb to be installed where the dynamic loader can find it.
"""
import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

import logging
from pathlib import Path
from typing import Optional

from splinterdb import (
    ColumnFamily,
    DBConfig,
    DefaultDataFuncs,
    SplinterDB,
    SplinterDBError,
    Uint64AddDataFuncs,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class BasicOperationsDemo:
    """Demonstrates basic SplinterDB operations with proper error handling."""

    def __init__(self, db_path: str):
        """
        Initialize the demo with a database path.

        Args:
            db_path: Path where the database will be created
        """
        self.db_path = db_path
        self.db: Optional[SplinterDB] = None
        self.users: Optional[ColumnFamily] = None
        self.counters: Optional[ColumnFamily] = None

    def setup_database(self) -> None:
        """Create the database and its column families."""
        try:
            if os.path.exists(self.db_path):
                os.remove(self.db_path)

            config = DBConfig(
                cache_size_bytes=64 * 1024 * 1024,  # 64MB
                disk_size_bytes=1024 * 1024 * 1024,  # 1GB
            )
            logger.info("Creating database at: %s", self.db_path)
            self.db = SplinterDB.create(self.db_path, config)

            logger.info("Creating column families")
            self.users = self.db.create_column_family(DefaultDataFuncs)
            self.counters = self.db.create_column_family(Uint64AddDataFuncs)

        except SplinterDBError as e:
            logger.error("Failed to setup database: %s", str(e))
            self.cleanup()
            raise

    def demonstrate_basic_operations(self) -> None:
        """Insert, look up and delete records."""
        test_data = {
            b"user:1": b"alice",
            b"user:2": b"bob",
            b"user:3": b"carol",
        }

        for key, value in test_data.items():
            logger.info("Inserting: %s -> %s", key, value)
            self.users.insert(key, value)

        for key in test_data:
            result = self.users.lookup(key)
            logger.info("Lookup %s: found=%s value=%s", key, result.found, result.value)

        logger.info("Deleting user:2")
        self.users.delete(b"user:2")
        logger.info("user:2 still present: %s", b"user:2" in self.users)

    def demonstrate_counters(self) -> None:
        """Merge deltas into a counter without reading it first."""
        for _ in range(3):
            self.counters.update(b"page:home", Uint64AddDataFuncs.encode(1))
        self.counters.update(b"page:about", Uint64AddDataFuncs.encode(5))

        for key in (b"page:home", b"page:about"):
            value = self.counters.get(key)
            logger.info("Counter %s = %d", key, Uint64AddDataFuncs.decode(value))

    def cleanup(self) -> None:
        """Close column families before the database."""
        for family in (self.users, self.counters):
            if family is not None:
                family.close()
        if self.db:
            try:
                logger.info("Closing database")
                self.db.close()
            except SplinterDBError as e:
                logger.error("Error closing database: %s", str(e))


def main():
    """Main entry point for the basic operations demo."""
    db_path = str(Path.cwd() / "basic_output.db")

    demo = BasicOperationsDemo(db_path)
    try:
        demo.setup_database()
        demo.demonstrate_basic_operations()
        demo.demonstrate_counters()
    except Exception as e:
        logger.error("Demo failed: %s", str(e))
        sys.exit(1)
    finally:
        demo.cleanup()


if __name__ == "__main__":
    main()
