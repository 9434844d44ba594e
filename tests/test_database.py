#!/usr/bin/env python3
"""
Test suite for SplinterDB database lifecycle.
"""
import errno
import logging
import os
import shutil
import sys
import tempfile
import threading
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from fake_splinterdb import FakeSplinterLib

from splinterdb import (
    ConfigurationError,
    DatabaseExistsError,
    DatabaseNotFoundError,
    DBConfig,
    DefaultDataFuncs,
    SplinterDB,
    SplinterDBError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class TestDatabaseLifecycle(unittest.TestCase):
    def setUp(self):
        """Set up a scratch directory and a fake engine."""
        self.test_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.test_dir, "splinter.db")
        self.lib = FakeSplinterLib()
        logger.info("Created temporary directory: %s", self.test_dir)

    def tearDown(self):
        """Clean up test resources."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_create_and_close(self):
        """Test creating a database and closing it."""
        db = SplinterDB.create(self.db_path, lib=self.lib)
        self.assertFalse(db.closed)
        self.assertEqual(db.path, os.path.abspath(self.db_path))
        self.assertEqual(self.lib.live_databases, 1)
        self.assertEqual(self.lib.live_cf_configs, 1)

        db.close()
        self.assertTrue(db.closed)
        self.assertEqual(self.lib.live_databases, 0)
        self.assertEqual(self.lib.live_cf_configs, 0)

    def test_double_close_releases_once(self):
        """Test that closing twice releases the engine handle once."""
        db = SplinterDB.create(self.db_path, lib=self.lib)
        db.close()
        db.close()
        self.assertEqual(self.lib.calls["splinterdb_close"], 1)
        self.assertEqual(self.lib.calls["column_family_config_deinit"], 1)

    def test_context_manager(self):
        """Test database as context manager."""
        with SplinterDB.create(self.db_path, lib=self.lib) as db:
            self.assertFalse(db.closed)
        self.assertTrue(db.closed)
        self.assertEqual(self.lib.calls["splinterdb_close"], 1)

    def test_create_on_existing_database(self):
        """Test that create refuses a path that already holds data."""
        SplinterDB.create(self.db_path, lib=self.lib).close()

        with self.assertRaises(DatabaseExistsError) as ctx:
            SplinterDB.create(self.db_path, lib=self.lib)
        self.assertEqual(ctx.exception.code, errno.EEXIST)
        self.assertEqual(self.lib.calls["splinterdb_create"], 1)

    def test_create_on_empty_file(self):
        """Test that an empty file at the path is not treated as a database."""
        open(self.db_path, "wb").close()
        with SplinterDB.create(self.db_path, lib=self.lib) as db:
            self.assertFalse(db.closed)

    def test_open_missing_database(self):
        """Test that open fails when nothing exists at the path."""
        with self.assertRaises(DatabaseNotFoundError) as ctx:
            SplinterDB.open(self.db_path, lib=self.lib)
        self.assertEqual(ctx.exception.code, errno.ENOENT)
        self.assertEqual(self.lib.calls["column_family_config_init"], 0)

    def test_open_corrupt_database(self):
        """Test that an engine failure on open is surfaced with its code."""
        with open(self.db_path, "wb") as f:
            f.write(b"not a database")

        with self.assertRaises(SplinterDBError) as ctx:
            SplinterDB.open(self.db_path, lib=self.lib)
        self.assertEqual(ctx.exception.code, errno.EINVAL)
        self.assertIn("failed to open database", str(ctx.exception))
        # the config block is released on the failure path
        self.assertEqual(self.lib.live_cf_configs, 0)

    def test_create_engine_failure_releases_config(self):
        """Test that a failed create releases the config block."""
        self.lib.fail_next["splinterdb_create"] = errno.ENOSPC
        with self.assertRaises(SplinterDBError) as ctx:
            SplinterDB.create(self.db_path, lib=self.lib)
        self.assertEqual(ctx.exception.code, errno.ENOSPC)
        self.assertEqual(self.lib.live_cf_configs, 0)

    def test_reopen_keeps_data(self):
        """Test that data written before close is visible after open."""
        with SplinterDB.create(self.db_path, lib=self.lib) as db:
            with db.create_column_family(DefaultDataFuncs) as cf:
                cf.insert(b"key", b"value")

        with SplinterDB.open(self.db_path, lib=self.lib) as db:
            with db.create_column_family(DefaultDataFuncs) as cf:
                self.assertEqual(cf.get(b"key"), b"value")

    def test_invalid_config(self):
        """Test that a bad config is rejected before touching the engine."""
        with self.assertRaises(ConfigurationError):
            SplinterDB.create(self.db_path, DBConfig(cache_size_bytes=0), lib=self.lib)
        self.assertEqual(self.lib.calls["splinterdb_create"], 0)

    def test_operations_after_close(self):
        """Test that a closed handle rejects operations."""
        db = SplinterDB.create(self.db_path, lib=self.lib)
        db.close()
        with self.assertRaises(SplinterDBError):
            db.create_column_family(DefaultDataFuncs)
        with self.assertRaises(SplinterDBError):
            db.register_thread()

    def test_register_thread_bracket(self):
        """Test explicit thread registration and the context manager."""
        with SplinterDB.create(self.db_path, lib=self.lib) as db:
            def worker():
                with db.registered_thread():
                    self.assertEqual(self.lib.registered_threads[threading.get_ident()], 1)

            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

            self.assertEqual(self.lib.calls["splinterdb_register_thread"], 1)
            self.assertEqual(self.lib.calls["splinterdb_deregister_thread"], 1)
            self.assertEqual(sum(self.lib.registered_threads.values()), 0)

    def test_column_family_max_key_size_ceiling(self):
        """Test that a family cannot exceed the database key size limit."""
        config = DBConfig(max_key_size=16)
        with SplinterDB.create(self.db_path, config, lib=self.lib) as db:
            with self.assertRaises(ConfigurationError):
                db.create_column_family(DefaultDataFuncs, max_key_size=17)
            self.assertEqual(self.lib.calls["column_family_create"], 0)

            with db.create_column_family(DefaultDataFuncs, max_key_size=16) as cf:
                self.assertEqual(cf.max_key_size, 16)
            with db.create_column_family(DefaultDataFuncs) as cf:
                self.assertEqual(cf.max_key_size, 16)

    def test_column_family_close_once(self):
        """Test that closing a family deletes the engine handle once."""
        with SplinterDB.create(self.db_path, lib=self.lib) as db:
            cf = db.create_column_family(DefaultDataFuncs())
            self.assertEqual(self.lib.live_column_families, 1)
            cf.close()
            cf.close()
            self.assertEqual(self.lib.calls["column_family_delete"], 1)
            self.assertEqual(self.lib.live_column_families, 0)
            with self.assertRaises(SplinterDBError):
                cf.insert(b"k", b"v")

    def test_rejects_non_data_funcs(self):
        """Test that create_column_family wants a DataFuncs."""
        with SplinterDB.create(self.db_path, lib=self.lib) as db:
            with self.assertRaises(TypeError):
                db.create_column_family(object())


if __name__ == '__main__':
    unittest.main()
