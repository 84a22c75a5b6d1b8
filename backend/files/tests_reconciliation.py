"""
Unit Tests for Storage Reconciliation
=====================================
Tests cover:
- Reclaiming orphaned blobs (no file record references them)
- Grace period for young blobs
- Reporting dangling file records
- Sweeping stray temp and blob files
- Dry runs
- The Celery task and the management command
"""

import hashlib
import os
import shutil
import tempfile
import time
from io import BytesIO, StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings

from contracts.models import FileRecord
from files.services import BlobStore, get_reconciliation_service
from files.tasks import reconcile_storage


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()


def backdate(path, seconds=3600):
    past = time.time() - seconds
    os.utime(path, (past, past))


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT, RECONCILE_MIN_AGE=300)
class ReconciliationTests(TestCase):

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        self.blob_store = BlobStore(TEST_MEDIA_ROOT)

    def tearDown(self):
        FileRecord.objects.all().delete()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _put(self, content: bytes, age: int = 3600):
        """Store a blob directly, bypassing the metadata store."""
        digest = hashlib.sha256(content).hexdigest()
        result = self.blob_store.put(digest, BytesIO(content), size=len(content), extension='.txt')
        if age:
            backdate(self.blob_store._index_path(digest), age)
            backdate(self.blob_store.path(result.location), age)
        return digest, result.location

    def _reference(self, digest: str, location: str, size: int = 1):
        return FileRecord.objects.create(
            file=location,
            original_filename='ref.txt',
            file_type='text/plain',
            size=size,
            digest=digest,
        )

    def test_orphaned_blob_is_reclaimed(self):
        digest, location = self._put(b"nobody loves me")

        result = reconcile_storage()

        self.assertTrue(result['success'])
        self.assertEqual(result['orphaned_blobs'], [digest])
        self.assertFalse(self.blob_store.exists(digest))
        self.assertFalse(os.path.exists(self.blob_store.path(location)))

    def test_referenced_blob_is_kept(self):
        digest, location = self._put(b"in use")
        self._reference(digest, location)

        result = reconcile_storage()

        self.assertEqual(result['orphaned_blobs'], [])
        self.assertTrue(self.blob_store.exists(digest))

    def test_young_orphan_is_left_alone(self):
        """Blobs inside the grace period may belong to an upload in flight."""
        digest, _ = self._put(b"just arrived", age=0)

        result = reconcile_storage()

        self.assertEqual(result['orphaned_blobs'], [])
        self.assertTrue(self.blob_store.exists(digest))

    def test_min_age_override(self):
        digest, _ = self._put(b"just arrived", age=0)

        result = reconcile_storage(min_age=0)

        self.assertEqual(result['orphaned_blobs'], [digest])

    def test_dangling_record_is_reported_not_deleted(self):
        record = self._reference('f' * 64, 'missing.txt')

        with self.assertLogs('files.services.reconciliation', level='WARNING'):
            result = reconcile_storage()

        self.assertEqual(result['dangling_records'], ['f' * 64])
        self.assertTrue(FileRecord.objects.filter(pk=record.pk).exists())

    def test_stray_files_are_swept(self):
        os.makedirs(os.path.join(TEST_MEDIA_ROOT, '.incoming'), exist_ok=True)
        temp_path = os.path.join(TEST_MEDIA_ROOT, '.incoming', 'blob-abandoned')
        unindexed = os.path.join(TEST_MEDIA_ROOT, 'deadbeef.txt')
        for path in (temp_path, unindexed):
            with open(path, 'wb') as f:
                f.write(b"leftover")
            backdate(path)
        digest, location = self._put(b"indexed")
        self._reference(digest, location)

        result = reconcile_storage()

        self.assertEqual(result['stray_files'], sorted([os.path.join('.incoming', 'blob-abandoned'), 'deadbeef.txt']))
        self.assertFalse(os.path.exists(temp_path))
        self.assertFalse(os.path.exists(unindexed))
        self.assertTrue(os.path.exists(self.blob_store.path(location)))

    def test_dry_run_changes_nothing(self):
        digest, location = self._put(b"orphan")

        result = reconcile_storage(dry_run=True)

        self.assertTrue(result['dry_run'])
        self.assertEqual(result['orphaned_blobs'], [digest])
        self.assertTrue(self.blob_store.exists(digest))
        self.assertTrue(os.path.exists(self.blob_store.path(location)))

    def test_service_reads_min_age_from_settings(self):
        with self.settings(RECONCILE_MIN_AGE=42):
            self.assertEqual(get_reconciliation_service().min_age, 42)
        self.assertEqual(get_reconciliation_service(min_age=7).min_age, 7)

    def test_empty_storage(self):
        result = reconcile_storage()

        self.assertEqual(result['orphaned_blobs'], [])
        self.assertEqual(result['dangling_records'], [])
        self.assertEqual(result['stray_files'], [])


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT, RECONCILE_MIN_AGE=300)
class ReconcileStorageCommandTests(TestCase):

    def tearDown(self):
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _put_orphan(self):
        content = b"orphaned by a failed insert"
        digest = hashlib.sha256(content).hexdigest()
        BlobStore(TEST_MEDIA_ROOT).put(digest, BytesIO(content))
        return digest

    def test_command_reclaims_with_min_age_zero(self):
        digest = self._put_orphan()
        out = StringIO()

        call_command('reconcile_storage', '--min-age', '0', stdout=out)

        self.assertIn('Reclaimed 1 orphaned blob(s)', out.getvalue())
        self.assertIn('Reconciliation complete', out.getvalue())
        self.assertFalse(BlobStore(TEST_MEDIA_ROOT).exists(digest))

    def test_command_dry_run(self):
        digest = self._put_orphan()
        out = StringIO()

        call_command('reconcile_storage', '--dry-run', '--min-age', '0', stdout=out)

        self.assertIn('Would reclaim 1 orphaned blob(s)', out.getvalue())
        self.assertTrue(BlobStore(TEST_MEDIA_ROOT).exists(digest))

    def test_command_respects_grace_period(self):
        digest = self._put_orphan()
        out = StringIO()

        call_command('reconcile_storage', stdout=out)

        self.assertIn('Reclaimed 0 orphaned blob(s)', out.getvalue())
        self.assertTrue(BlobStore(TEST_MEDIA_ROOT).exists(digest))
