#!/usr/bin/env python3
"""
SplinterDB Range Iterator Sample

This sample demonstrates range iteration over column families:
- Full scans and scans from a start key
- Borrowed record views and copying them out
- A column family with a custom key order
"""
import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

import logging
from pathlib import Path
from typing import Optional

from splinterdb import DefaultDataFuncs, ReverseDataFuncs, SplinterDB

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class CursorOperationsDemo:
    """Demonstrates SplinterDB range iterators."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.db: Optional[SplinterDB] = None

    def setup_database(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        logger.info("Creating database at: %s", self.db_path)
        self.db = SplinterDB.create(self.db_path)

    def demonstrate_cursor(self) -> None:
        """Walk a family forwards, then walk a reverse-ordered family."""
        with self.db.create_column_family(DefaultDataFuncs) as cf:
            for i in range(10):
                cf.insert(f"key:{i:02d}".encode(), f"value {i}".encode())

            logger.info("Scanning from key:05")
            with cf.range(b"key:05") as it:
                while True:
                    record = it.advance()
                    if record is None:
                        break
                    # key and value are views, valid until the next advance
                    logger.info("Key: %s, Value: %s", bytes(record.key), bytes(record.value))

            with cf.range() as it:
                kept = list(it)
            logger.info("Copied %d records out of a full scan", len(kept))

        with self.db.create_column_family(ReverseDataFuncs) as cf:
            for name in (b"apple", b"cherry", b"banana"):
                cf.insert(name, b"fruit")
            with cf.range() as it:
                logger.info("Reverse order: %s", [key for key, _ in it])

        logger.info("Cursor operations completed successfully!")

    def cleanup(self) -> None:
        """Clean up resources."""
        if self.db:
            try:
                logger.info("Closing database")
                self.db.close()
            except Exception as e:
                logger.error("Error closing database: %s", str(e))


def main():
    """Main entry point for the cursor operations demo."""
    db_path = str(Path.cwd() / "cursor_output.db")

    demo = CursorOperationsDemo(db_path)
    try:
        demo.setup_database()
        demo.demonstrate_cursor()
    except Exception as e:
        logger.error("Demo failed: %s", str(e))
        sys.exit(1)
    finally:
        demo.cleanup()


if __name__ == "__main__":
    main()
