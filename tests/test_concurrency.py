#!/usr/bin/env python3
"""
Test suite for sharing one database between registered threads.
"""
import logging
import os
import shutil
import sys
import tempfile
import threading
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from fake_splinterdb import FakeSplinterLib

from splinterdb import DefaultDataFuncs, SplinterDB, Uint64AddDataFuncs

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

NUM_THREADS = 4
KEYS_PER_THREAD = 50


class TestConcurrency(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.lib = FakeSplinterLib()
        self.db = SplinterDB.create(os.path.join(self.test_dir, "splinter.db"), lib=self.lib)

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _run_workers(self, target):
        errors = []

        def worker(thread_id):
            try:
                with self.db.registered_thread():
                    target(thread_id)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(NUM_THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return errors

    def test_shared_family_inserts(self):
        """Test that registered threads can write to one family."""
        with self.db.create_column_family(DefaultDataFuncs) as cf:
            def insert_keys(thread_id):
                for i in range(KEYS_PER_THREAD):
                    cf.insert(f"t{thread_id}:{i:03d}".encode(), str(i).encode())

            self.assertEqual(self._run_workers(insert_keys), [])
            logger.info("Threads finished, checking %d keys", NUM_THREADS * KEYS_PER_THREAD)

            with cf.range() as it:
                keys = [k for k, _ in it]
            self.assertEqual(len(keys), NUM_THREADS * KEYS_PER_THREAD)
            self.assertEqual(keys, sorted(keys))
            self.assertEqual(cf.get(b"t2:007"), b"7")

        self.assertEqual(self.lib.calls["splinterdb_register_thread"], NUM_THREADS)
        self.assertEqual(self.lib.calls["splinterdb_deregister_thread"], NUM_THREADS)

    def test_concurrent_counter_updates(self):
        """Test that merges from many threads all land."""
        with self.db.create_column_family(Uint64AddDataFuncs) as cf:
            def bump(thread_id):
                for _ in range(KEYS_PER_THREAD):
                    cf.update(b"hits", Uint64AddDataFuncs.encode(1))

            self.assertEqual(self._run_workers(bump), [])
            self.assertEqual(
                Uint64AddDataFuncs.decode(cf.get(b"hits")), NUM_THREADS * KEYS_PER_THREAD
            )

    def test_iterator_per_thread(self):
        """Test that each thread can walk the family with its own iterator."""
        with self.db.create_column_family(DefaultDataFuncs) as cf:
            for i in range(10):
                cf.insert(b"key%02d" % i, b"v")
            counts = {}

            def walk(thread_id):
                with cf.range() as it:
                    counts[thread_id] = sum(1 for _ in it)

            self.assertEqual(self._run_workers(walk), [])
            self.assertEqual(counts, {i: 10 for i in range(NUM_THREADS)})
            self.assertEqual(self.lib.live_iterators, 0)


if __name__ == '__main__':
    unittest.main()
