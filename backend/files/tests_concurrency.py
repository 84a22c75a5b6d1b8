"""
Concurrency and Failure-Path Tests
==================================
Exercises the blob lifecycle under threads, with an in-memory metadata
store so the database is not part of the race.

Tests cover:
- Concurrent identical uploads share one blob
- Delete of the last reference racing a re-upload of the same content
- Commit races inside the blob store
- Upload, delete and reconciliation running in separate processes
- Count, insert and reclaim failures
- Digest lock timeouts
"""

import hashlib
import os
import shutil
import tempfile
import threading
import time
from contextlib import contextmanager
from io import BytesIO
from types import SimpleNamespace

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase

from files.exceptions import (
    AuthenticationRequired,
    FileRecordNotFound,
    LockTimeoutError,
    MetadataStoreError,
    StorageIOError,
)
from files.services import BlobStore, DigestLocks, FileService, ReconciliationService


class InMemoryMetadataStore:
    """
    Thread-safe stand-in for MetadataStore.

    `lock_digest` uses locks owned by the store, so services built with
    separate DigestLocks (one per simulated process) still exclude each
    other through it, the way they do through the BlobLock row.
    """

    def __init__(self, count_delay: float = 0.0):
        self.count_delay = count_delay
        self.before_insert = None
        self._records = {}
        self._mutex = threading.Lock()
        self._digest_locks = {}

    @contextmanager
    def lock_digest(self, digest):
        with self._mutex:
            lock = self._digest_locks.setdefault(digest, threading.RLock())
        with lock:
            yield

    def insert(self, record):
        if self.before_insert is not None:
            self.before_insert(record)
        with self._mutex:
            self._records[record.pk] = record
        return record

    def find_by_id(self, record_id):
        with self._mutex:
            return self._records.get(record_id)

    def delete_by_id(self, record_id):
        with self._mutex:
            try:
                return self._records.pop(record_id)
            except KeyError:
                raise FileRecordNotFound(record_id)

    def count_by_digest(self, digest):
        if self.count_delay:
            time.sleep(self.count_delay)
        with self._mutex:
            return sum(1 for r in self._records.values() if r.digest == digest)

    def query(self, criteria):
        with self._mutex:
            return sorted(self._records.values(), key=lambda r: r.uploaded_at, reverse=True)

    def digests(self):
        with self._mutex:
            return {r.digest for r in self._records.values()}

    def all(self):
        with self._mutex:
            return list(self._records.values())


class FailingCountStore(InMemoryMetadataStore):
    def count_by_digest(self, digest):
        raise MetadataStoreError('count failed')


class FailingInsertStore(InMemoryMetadataStore):
    def insert(self, record):
        raise MetadataStoreError('insert failed')


class FailingReclaimBlobStore(BlobStore):
    def reclaim(self, digest):
        raise StorageIOError('reclaim failed')


def run_concurrently(*targets):
    """Start every target behind a shared barrier and re-raise the first error."""
    barrier = threading.Barrier(len(targets))
    errors = []

    def wrap(target):
        def runner():
            barrier.wait()
            try:
                target()
            except Exception as e:
                errors.append(e)
        return runner

    threads = [threading.Thread(target=wrap(t)) for t in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    if errors:
        raise errors[0]


class ConcurrencyTestCase(SimpleTestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.identity = SimpleNamespace(is_authenticated=True)
        self.blob_store = BlobStore(self.root)
        self.locks = DigestLocks(timeout=10)
        self.metadata = InMemoryMetadataStore()
        self.service = self._service()

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def _service(self, metadata=None, blob_store=None):
        return FileService(
            blob_store=blob_store or self.blob_store,
            metadata_store=metadata or self.metadata,
            locks=self.locks,
            max_upload_size=1024 * 1024,
        )

    def _upload(self, content: bytes, filename: str = 'test.txt', service=None):
        file_obj = SimpleUploadedFile(filename, content, content_type='text/plain')
        return (service or self.service).upload_file(
            file_obj, filename, 'text/plain', len(content), identity=self.identity
        )

    def _blob_files(self):
        return [
            name for name in os.listdir(self.root)
            if not name.startswith('.') and os.path.isfile(os.path.join(self.root, name))
        ]

    def _incoming_files(self):
        incoming = os.path.join(self.root, '.incoming')
        return os.listdir(incoming) if os.path.isdir(incoming) else []


class ConcurrentUploadTests(ConcurrencyTestCase):

    def test_identical_uploads_share_one_blob(self):
        """N simultaneous uploads of the same bytes store exactly one blob."""
        content = b"same bytes from everyone" * 100
        results = []

        def upload():
            results.append(self._upload(content))

        run_concurrently(*[upload] * 8)

        self.assertEqual(len(results), 8)
        self.assertEqual(len(self.metadata.all()), 8)
        self.assertEqual(len({record.file.name for record, _ in results}), 1)
        self.assertEqual(sum(1 for _, dup in results if not dup), 1)
        self.assertEqual(len(self._blob_files()), 1)
        self.assertEqual(self._incoming_files(), [])

    def test_distinct_uploads_are_independent(self):
        results = []

        def upload(i):
            return lambda: results.append(self._upload(f"content {i}".encode(), f'f{i}.txt'))

        run_concurrently(*[upload(i) for i in range(6)])

        self.assertEqual(len(self._blob_files()), 6)
        self.assertTrue(all(not dup for _, dup in results))

    def test_blob_store_commit_race_has_one_winner(self):
        """Without locks, racing puts still commit one blob per digest."""
        content = os.urandom(4096)
        digest = hashlib.sha256(content).hexdigest()
        results = []

        def put():
            results.append(self.blob_store.put(digest, BytesIO(content), size=len(content), extension='.bin'))

        run_concurrently(*[put] * 8)

        self.assertEqual(sum(1 for r in results if r.created), 1)
        self.assertEqual(len({r.location for r in results}), 1)
        self.assertEqual(self._blob_files(), [results[0].location])
        self.assertEqual(self._incoming_files(), [])
        with self.blob_store.open(results[0].location) as f:
            self.assertEqual(f.read(), content)


class DeleteRaceTests(ConcurrencyTestCase):

    def test_delete_racing_reupload_never_strands_a_record(self):
        """
        Deleting the last reference while the same content is uploaded
        again must leave every surviving record pointing at a readable blob.
        """
        self.metadata.count_delay = 0.01
        content = b"contested content"

        for _ in range(15):
            record, _ = self._upload(content)
            uploaded = []

            run_concurrently(
                lambda: self.service.delete_file(record.pk, identity=self.identity),
                lambda: uploaded.append(self._upload(content, 'again.txt')[0]),
            )

            survivors = self.metadata.all()
            self.assertEqual([r.pk for r in survivors], [uploaded[0].pk])
            for survivor in survivors:
                self.assertTrue(self.blob_store.exists(survivor.digest))
                with self.blob_store.open(survivor.file.name) as f:
                    self.assertEqual(f.read(), content)

            self.service.delete_file(uploaded[0].pk, identity=self.identity)
            self.assertFalse(self.blob_store.exists(record.digest))
            self.assertEqual(self._blob_files(), [])

    def test_concurrent_deletes_of_shared_blob_reclaim_once(self):
        self.metadata.count_delay = 0.005
        records = [self._upload(b"shared", f'f{i}.txt')[0] for i in range(4)]
        results = []

        def delete(record):
            return lambda: results.append(self.service.delete_file(record.pk, identity=self.identity))

        run_concurrently(*[delete(r) for r in records])

        self.assertEqual(sum(1 for r in results if r['physical_deleted']), 1)
        self.assertEqual(self._blob_files(), [])
        self.assertEqual(self.metadata.all(), [])

    def test_digest_lock_released_after_operations(self):
        record, _ = self._upload(b"lock bookkeeping")
        self.service.delete_file(record.pk, identity=self.identity)

        self.assertEqual(len(self.locks), 0)


class CrossProcessTests(ConcurrencyTestCase):
    """
    Each service gets its own DigestLocks, as a web worker and the Celery
    worker would. Only the metadata store's digest lock is shared.
    """

    def _backdate_index(self, digest, seconds=3600):
        past = time.time() - seconds
        os.utime(self.blob_store._index_path(digest), (past, past))

    def test_reconciliation_waits_for_upload_reusing_orphan(self):
        """An old orphan reused by an in-flight upload is not reclaimed."""
        content = b"orphan about to be reused"
        digest = hashlib.sha256(content).hexdigest()
        self.blob_store.put(digest, BytesIO(content), size=len(content), extension='.txt')
        self._backdate_index(digest)

        web = self._service()
        web.locks = DigestLocks(timeout=10)
        worker = ReconciliationService(self.blob_store, self.metadata, DigestLocks(timeout=10), min_age=0)

        inserting = threading.Event()
        release = threading.Event()

        def pause_insert(record):
            inserting.set()
            release.wait(5)

        self.metadata.before_insert = pause_insert
        uploaded, reconciled = [], []
        upload_thread = threading.Thread(target=lambda: uploaded.append(self._upload(content, service=web)))
        reconcile_thread = threading.Thread(target=lambda: reconciled.append(worker.run()))

        upload_thread.start()
        self.assertTrue(inserting.wait(5))
        reconcile_thread.start()
        # Give reconciliation time to reach the digest lock
        time.sleep(0.2)
        release.set()
        upload_thread.join(10)
        reconcile_thread.join(10)

        record, is_duplicate = uploaded[0]
        self.assertTrue(is_duplicate)
        self.assertEqual(reconciled[0]['orphaned_blobs'], [])
        self.assertTrue(self.blob_store.exists(digest))
        self.assertTrue(os.path.exists(self.blob_store.path(record.file.name)))

    def test_delete_and_reupload_from_separate_workers(self):
        self.metadata.count_delay = 0.01
        content = b"shared between workers"
        deleter = self._service()
        deleter.locks = DigestLocks(timeout=10)
        uploader = self._service()
        uploader.locks = DigestLocks(timeout=10)

        for _ in range(10):
            record, _ = self._upload(content, service=deleter)
            uploaded = []

            run_concurrently(
                lambda: deleter.delete_file(record.pk, identity=self.identity),
                lambda: uploaded.append(self._upload(content, 'again.txt', service=uploader)[0]),
            )

            survivor = uploaded[0]
            self.assertEqual([r.pk for r in self.metadata.all()], [survivor.pk])
            with self.blob_store.open(survivor.file.name) as f:
                self.assertEqual(f.read(), content)

            uploader.delete_file(survivor.pk, identity=self.identity)

    def test_dedup_put_refreshes_grace_period(self):
        """Reusing a blob restarts its reconciliation grace period."""
        content = b"old but reused"
        digest = hashlib.sha256(content).hexdigest()
        self.blob_store.put(digest, BytesIO(content))
        self._backdate_index(digest)

        result = self.blob_store.put(digest, BytesIO(content))

        self.assertFalse(result.created)
        self.assertLess(time.time() - self.blob_store.lookup(digest).committed_at, 60)
        run = ReconciliationService(self.blob_store, self.metadata, DigestLocks(), min_age=300).run()
        self.assertEqual(run['orphaned_blobs'], [])
        self.assertTrue(self.blob_store.exists(digest))


class FailurePathTests(ConcurrencyTestCase):

    def test_count_failure_keeps_blob(self):
        """If the remaining references cannot be counted the blob stays."""
        metadata = FailingCountStore()
        service = self._service(metadata=metadata)
        record, _ = self._upload(b"keep me", service=service)

        with self.assertLogs('files.services.file_service', level='ERROR'):
            result = service.delete_file(record.pk, identity=self.identity)

        self.assertFalse(result['physical_deleted'])
        self.assertEqual(metadata.all(), [])
        self.assertTrue(self.blob_store.exists(record.digest))

    def test_reclaim_failure_is_not_an_error(self):
        blob_store = FailingReclaimBlobStore(self.root)
        service = self._service(blob_store=blob_store)
        record, _ = self._upload(b"sticky", service=service)

        with self.assertLogs('files.services.file_service', level='ERROR'):
            result = service.delete_file(record.pk, identity=self.identity)

        self.assertFalse(result['physical_deleted'])
        self.assertEqual(self.metadata.all(), [])

    def test_insert_failure_leaves_orphan_for_reconciliation(self):
        content = b"orphan in waiting"
        service = self._service(metadata=FailingInsertStore())

        with self.assertLogs('files.services.file_service', level='ERROR') as logs:
            with self.assertRaises(StorageIOError):
                self._upload(content, service=service)

        digest = hashlib.sha256(content).hexdigest()
        self.assertIn('Orphaned blob', logs.output[0])
        self.assertTrue(self.blob_store.exists(digest))

        result = ReconciliationService(self.blob_store, self.metadata, self.locks, min_age=0).run()

        self.assertEqual(result['orphaned_blobs'], [digest])
        self.assertFalse(self.blob_store.exists(digest))
        self.assertEqual(self._blob_files(), [])

    def test_insert_failure_on_duplicate_keeps_shared_blob(self):
        content = b"already stored"
        record, _ = self._upload(content)
        service = self._service(metadata=FailingInsertStore())

        with self.assertRaises(StorageIOError):
            self._upload(content, service=service)

        self.assertTrue(self.blob_store.exists(record.digest))

    def test_short_read_leaves_nothing_visible(self):
        """A source shorter than its declared size is not committed."""
        content = b"truncated"
        digest = hashlib.sha256(content).hexdigest()

        with self.assertRaises(StorageIOError):
            self.blob_store.put(digest, BytesIO(content), size=len(content) + 10)

        self.assertFalse(self.blob_store.exists(digest))
        self.assertEqual(self._blob_files(), [])
        self.assertEqual(self._incoming_files(), [])

    def test_unauthenticated_calls_touch_nothing(self):
        record, _ = self._upload(b"guarded")
        anonymous = SimpleNamespace(is_authenticated=False)

        with self.assertRaises(AuthenticationRequired):
            self.service.upload_file(
                SimpleUploadedFile('x.txt', b"intruder"), 'x.txt', 'text/plain', 8, identity=anonymous
            )
        with self.assertRaises(AuthenticationRequired):
            self.service.delete_file(record.pk, identity=None)
        with self.assertRaises(AuthenticationRequired):
            self.service.list_files(None, identity=None)

        self.assertEqual(len(self.metadata.all()), 1)
        self.assertEqual(len(self._blob_files()), 1)


class DigestLockTests(SimpleTestCase):

    def test_hold_times_out_when_contended(self):
        locks = DigestLocks(timeout=0.05)
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold('a' * 64):
                holding.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            holding.wait(5)
            with self.assertRaises(LockTimeoutError):
                with locks.hold('a' * 64):
                    pass
        finally:
            release.set()
            thread.join()

        self.assertEqual(len(locks), 0)

    def test_distinct_digests_do_not_contend(self):
        locks = DigestLocks(timeout=0.05)

        with locks.hold('a' * 64):
            with locks.hold('b' * 64):
                self.assertEqual(len(locks), 2)

    def test_hold_is_reentrant(self):
        locks = DigestLocks(timeout=0.05)

        with locks.hold('c' * 64):
            with locks.hold('c' * 64):
                self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)
