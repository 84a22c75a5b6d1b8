"""
Unit Tests for Deduplication Functionality
==========================================
Tests cover:
- Hash computation
- File upload with deduplication
- Reference counting on delete
- Storage metrics
- File size validation
- Round trip through the blob download endpoint
- Digest row lock
"""

import hashlib
import os
import shutil
import tempfile
from io import BytesIO
from urllib.parse import urlparse

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from contracts.models import BlobLock, FileRecord
from files.exceptions import (
    AuthenticationRequired,
    FileRecordNotFound,
    FileTooLargeError,
    StorageIOError,
    UploadRejected,
)
from files.services import BlobStore, ContentHasher, MetadataStore, get_file_service


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()

User = get_user_model()


def blob_files(root):
    """Committed and uncommitted blob files directly under the storage root."""
    if not os.path.isdir(root):
        return []
    return [
        name for name in os.listdir(root)
        if not name.startswith('.') and os.path.isfile(os.path.join(root, name))
    ]


class ContentHasherTests(TestCase):
    """Tests for the ContentHasher class."""

    def setUp(self):
        self.hasher = ContentHasher()

    def _create_test_file(self, content: bytes, filename: str = 'test.txt') -> SimpleUploadedFile:
        return SimpleUploadedFile(filename, content, content_type='text/plain')

    def test_compute_hash_returns_sha256(self):
        """Hash computation should return a valid SHA-256 hex string."""
        computed_hash = self.hasher.compute(self._create_test_file(b"Hello, World!"))

        self.assertEqual(len(computed_hash), 64)
        self.assertTrue(all(c in '0123456789abcdef' for c in computed_hash))

    def test_compute_hash_matches_expected(self):
        """Hash should match independently computed SHA-256."""
        content = b"Test content for hashing"

        computed_hash = self.hasher.compute(self._create_test_file(content))

        self.assertEqual(computed_hash, hashlib.sha256(content).hexdigest())

    def test_compute_hash_resets_file_pointer(self):
        """File pointer should be reset to beginning after hashing."""
        content = b"Test content"
        file_obj = self._create_test_file(content)

        self.hasher.compute(file_obj)

        self.assertEqual(file_obj.read(), content)

    def test_compute_hash_reads_from_start(self):
        """A partially consumed source is still hashed in full."""
        content = b"0123456789"
        file_obj = BytesIO(content)
        file_obj.read(4)

        computed_hash = self.hasher.compute(file_obj)

        self.assertEqual(computed_hash, hashlib.sha256(content).hexdigest())
        self.assertEqual(file_obj.tell(), 0)

    def test_compute_hash_small_chunks(self):
        """Chunk size must not affect the digest."""
        content = os.urandom(1000)

        computed_hash = ContentHasher(chunk_size=7).compute(BytesIO(content))

        self.assertEqual(computed_hash, hashlib.sha256(content).hexdigest())

    def test_compute_hash_empty_file(self):
        """Empty files should produce the known SHA-256 empty hash."""
        computed_hash = self.hasher.compute(self._create_test_file(b""))

        self.assertEqual(computed_hash, hashlib.sha256(b"").hexdigest())

    def test_compute_hash_identical_content_same_hash(self):
        """Identical content should produce identical hashes."""
        hash1 = self.hasher.compute(self._create_test_file(b"Identical", 'file1.txt'))
        hash2 = self.hasher.compute(self._create_test_file(b"Identical", 'file2.txt'))

        self.assertEqual(hash1, hash2)

    def test_compute_hash_different_content_different_hash(self):
        """Different content should produce different hashes."""
        hash1 = self.hasher.compute(self._create_test_file(b"Content A"))
        hash2 = self.hasher.compute(self._create_test_file(b"Content B"))

        self.assertNotEqual(hash1, hash2)

    def test_compute_hash_unseekable_source_fails(self):
        """A source that cannot be rewound is an IO failure."""

        class Unseekable(BytesIO):
            def seekable(self):
                return False

        with self.assertRaises(StorageIOError):
            self.hasher.compute(Unseekable(b"stream"))


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class FileServiceTests(TestCase):
    """Tests for FileService against the ORM and the filesystem blob store."""

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory after all tests."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        self.user = User.objects.create_user(username='uploader', password='password123')
        self.service = get_file_service()
        self.blob_store = BlobStore(TEST_MEDIA_ROOT)

    def tearDown(self):
        """Clean up after each test."""
        FileRecord.objects.all().delete()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _create_test_file(self, content: bytes, filename: str = 'test.txt') -> SimpleUploadedFile:
        """Helper to create a test file."""
        content_type = 'text/plain'
        if filename.endswith('.pdf'):
            content_type = 'application/pdf'
        elif filename.endswith('.csv'):
            content_type = 'text/csv'
        return SimpleUploadedFile(filename, content, content_type=content_type)

    def _upload(self, content: bytes, filename: str = 'test.txt', file_type: str = 'text/plain'):
        file_obj = self._create_test_file(content, filename)
        return self.service.upload_file(
            file_obj, filename, file_type, file_obj.size, identity=self.user
        )

    # ===================
    # Upload Tests
    # ===================

    def test_upload_new_file_creates_blob_and_record(self):
        """Uploading new content should commit one blob and one record."""
        content = b"New unique content"

        record, is_duplicate = self._upload(content)

        self.assertFalse(is_duplicate)
        self.assertEqual(FileRecord.objects.count(), 1)
        self.assertTrue(self.blob_store.exists(record.digest))
        self.assertEqual(len(blob_files(TEST_MEDIA_ROOT)), 1)

    def test_upload_new_file_stores_correct_metadata(self):
        """File metadata should be stored correctly."""
        content = b"Test content"

        record, _ = self._upload(content, 'document.txt')

        stored = FileRecord.objects.get(pk=record.pk)
        self.assertEqual(stored.original_filename, 'document.txt')
        self.assertEqual(stored.file_type, 'text/plain')
        self.assertEqual(stored.size, len(content))
        self.assertEqual(stored.digest, hashlib.sha256(content).hexdigest())

    def test_upload_location_is_random_with_original_extension(self):
        """Blob locations come from a random id plus the original extension."""
        record1, _ = self._upload(b"one", 'report.pdf', 'application/pdf')
        record2, _ = self._upload(b"two", 'report.pdf', 'application/pdf')

        self.assertTrue(record1.file.name.endswith('.pdf'))
        self.assertNotIn('report', record1.file.name)
        self.assertNotEqual(record1.file.name, record2.file.name)

    def test_upload_duplicate_does_not_create_new_blob(self):
        """Uploading duplicate content should not write a second blob."""
        content = b"Duplicate content"

        record1, _ = self._upload(content, 'first.txt')
        record2, is_duplicate = self._upload(content, 'second.txt')

        self.assertTrue(is_duplicate)
        self.assertEqual(FileRecord.objects.count(), 2)
        self.assertEqual(len(blob_files(TEST_MEDIA_ROOT)), 1)
        self.assertEqual(record1.file.name, record2.file.name)
        self.assertNotEqual(record1.pk, record2.pk)

    def test_upload_same_filename_different_content_creates_both(self):
        """Same filename with different content should create separate blobs."""
        record1, _ = self._upload(b"Version 1", 'data.txt')
        record2, _ = self._upload(b"Version 2", 'data.txt')

        self.assertNotEqual(record1.digest, record2.digest)
        self.assertEqual(len(blob_files(TEST_MEDIA_ROOT)), 2)

    def test_upload_empty_files_deduplicate(self):
        """All empty files should share the same blob."""
        self._upload(b"", 'empty1.txt')
        record, is_dup = self._upload(b"", 'empty2.txt')

        self.assertTrue(is_dup)
        self.assertEqual(record.size, 0)
        self.assertEqual(len(blob_files(TEST_MEDIA_ROOT)), 1)

    def test_upload_round_trip_sizes(self):
        """Stored bytes equal the uploaded bytes at 0, 1 and max size."""
        self.service.max_upload_size = 4096
        for content in (b"", b"x", os.urandom(self.service.max_upload_size)):
            record, _ = self._upload(content, 'payload.bin', 'application/octet-stream')
            with self.blob_store.open(record.file.name) as f:
                self.assertEqual(f.read(), content)

    def test_upload_exceeding_max_size_is_rejected(self):
        """Declared size over the limit is rejected before anything is stored."""
        self.service.max_upload_size = 8

        with self.assertRaises(FileTooLargeError) as ctx:
            self._upload(b"123456789")

        self.assertEqual(ctx.exception.file_size, 9)
        self.assertEqual(FileRecord.objects.count(), 0)
        self.assertEqual(blob_files(TEST_MEDIA_ROOT), [])

    def test_upload_without_identity_is_rejected(self):
        """No identity means no blob write and no metadata mutation."""
        file_obj = self._create_test_file(b"anonymous")

        with self.assertRaises(AuthenticationRequired):
            self.service.upload_file(file_obj, 'a.txt', 'text/plain', file_obj.size, identity=None)

        self.assertEqual(FileRecord.objects.count(), 0)
        self.assertEqual(blob_files(TEST_MEDIA_ROOT), [])

    def test_upload_without_filename_is_rejected(self):
        file_obj = self._create_test_file(b"nameless")

        with self.assertRaises(UploadRejected):
            self.service.upload_file(file_obj, '', 'text/plain', file_obj.size, identity=self.user)

    # ===================
    # Delete Tests
    # ===================

    def test_delete_single_reference_removes_physical_file(self):
        """Deleting last reference should remove physical file."""
        record, _ = self._upload(b"To be deleted", 'delete_me.txt')
        file_path = self.blob_store.path(record.file.name)

        result = self.service.delete_file(record.pk, identity=self.user)

        self.assertTrue(result['physical_deleted'])
        self.assertEqual(FileRecord.objects.count(), 0)
        self.assertFalse(os.path.exists(file_path))
        self.assertFalse(self.blob_store.exists(record.digest))

    def test_delete_cleans_up_empty_index_directories(self):
        """Deleting last reference should remove empty index shard directories."""
        record, _ = self._upload(b"Directory cleanup test", 'cleanup.txt')
        shard = os.path.join(TEST_MEDIA_ROOT, '.index', record.digest[:2])

        self.assertTrue(os.path.isdir(shard))
        self.service.delete_file(record.pk, identity=self.user)

        self.assertFalse(os.path.exists(shard))

    def test_delete_with_multiple_references_keeps_physical_file(self):
        """Deleting one reference should keep physical file if others exist."""
        record1, _ = self._upload(b"Shared file", 'file1.txt')
        self._upload(b"Shared file", 'file2.txt')
        file_path = self.blob_store.path(record1.file.name)

        result = self.service.delete_file(record1.pk, identity=self.user)

        self.assertFalse(result['physical_deleted'])
        self.assertEqual(FileRecord.objects.count(), 1)
        self.assertTrue(os.path.exists(file_path))

    def test_only_last_of_many_references_reclaims(self):
        """Blob survives until the last of N records is deleted."""
        records = [self._upload(b"Track me", f'file{i}.txt')[0] for i in range(5)]
        digest = records[0].digest

        for record in records[:-1]:
            self.assertFalse(self.service.delete_file(record.pk, identity=self.user)['physical_deleted'])
            self.assertTrue(self.blob_store.exists(digest))

        self.assertTrue(self.service.delete_file(records[-1].pk, identity=self.user)['physical_deleted'])
        self.assertFalse(self.blob_store.exists(digest))
        self.assertEqual(blob_files(TEST_MEDIA_ROOT), [])

    def test_delete_nonexistent_raises_not_found(self):
        with self.assertRaises(FileRecordNotFound):
            self.service.delete_file('00000000-0000-0000-0000-000000000000', identity=self.user)

    def test_delete_invalid_id_raises_not_found(self):
        with self.assertRaises(FileRecordNotFound):
            self.service.delete_file('not-a-uuid', identity=self.user)

    def test_delete_is_terminal(self):
        """A deleted record cannot be deleted again."""
        record, _ = self._upload(b"once")
        self.service.delete_file(record.pk, identity=self.user)

        with self.assertRaises(FileRecordNotFound):
            self.service.delete_file(record.pk, identity=self.user)

    def test_reupload_after_reclaim_stores_fresh_blob(self):
        """Content can be uploaded again after its blob was reclaimed."""
        record, _ = self._upload(b"phoenix")
        self.service.delete_file(record.pk, identity=self.user)

        again, is_duplicate = self._upload(b"phoenix")

        self.assertFalse(is_duplicate)
        with self.blob_store.open(again.file.name) as f:
            self.assertEqual(f.read(), b"phoenix")

    def test_blobs_match_referenced_digests(self):
        """Committed blobs equal the digests referenced by records."""
        a, _ = self._upload(b"A", 'a1.txt')
        self._upload(b"A", 'a2.txt')
        b, _ = self._upload(b"B", 'b1.txt')
        c, _ = self._upload(b"C", 'c1.txt')
        self.service.delete_file(b.pk, identity=self.user)
        self.service.delete_file(a.pk, identity=self.user)

        committed = {blob.digest for blob in self.blob_store.iter_blobs()}
        referenced = set(FileRecord.objects.values_list('digest', flat=True))
        self.assertEqual(committed, referenced)
        self.assertEqual(committed, {a.digest, c.digest})

    # ===================
    # Storage Metrics Tests
    # ===================

    def test_storage_metrics_empty_storage(self):
        """Metrics for empty storage should return zeros."""
        metrics = self.service.get_storage_metrics()

        self.assertEqual(metrics['total_files'], 0)
        self.assertEqual(metrics['unique_contents'], 0)
        self.assertEqual(metrics['logical_size'], 0)
        self.assertEqual(metrics['physical_size'], 0)
        self.assertEqual(metrics['storage_saved'], 0)
        self.assertEqual(metrics['deduplication_ratio'], 1.0)

    def test_storage_metrics_with_duplicates(self):
        """Metrics should reflect storage savings from deduplication."""
        content = b"Duplicated content here"
        for i in range(3):
            self._upload(content, f'file{i}.txt')

        metrics = self.service.get_storage_metrics()

        self.assertEqual(metrics['total_files'], 3)
        self.assertEqual(metrics['unique_contents'], 1)
        self.assertEqual(metrics['logical_size'], len(content) * 3)
        self.assertEqual(metrics['physical_size'], len(content))
        self.assertEqual(metrics['storage_saved'], len(content) * 2)

    def test_storage_metrics_deduplication_ratio(self):
        """Deduplication ratio should be unique_contents / total_files."""
        for name, content in [('a1.txt', b"A"), ('a2.txt', b"A"), ('b1.txt', b"B"), ('b2.txt', b"B")]:
            self._upload(content, name)

        metrics = self.service.get_storage_metrics()

        self.assertEqual(metrics['total_files'], 4)
        self.assertEqual(metrics['unique_contents'], 2)
        self.assertEqual(metrics['deduplication_ratio'], 0.5)


class DigestRowLockTests(TestCase):
    """Tests for the cross-process digest lock held in the BlobLock table."""

    def setUp(self):
        self.store = MetadataStore()
        self.digest = hashlib.sha256(b"locked").hexdigest()

    def _record(self):
        return FileRecord(
            file='abc.txt',
            original_filename='locked.txt',
            file_type='text/plain',
            size=6,
            digest=self.digest,
        )

    def test_lock_creates_row_and_stamps_it(self):
        with self.store.lock_digest(self.digest):
            pass

        lock = BlobLock.objects.get(digest=self.digest)
        self.assertIsNotNone(lock.locked_at)

    def test_lock_row_is_reused(self):
        with self.store.lock_digest(self.digest):
            pass
        with self.store.lock_digest(self.digest):
            pass

        self.assertEqual(BlobLock.objects.filter(digest=self.digest).count(), 1)

    def test_work_inside_lock_commits_with_it(self):
        with self.store.lock_digest(self.digest):
            self.store.insert(self._record())

        self.assertEqual(self.store.count_by_digest(self.digest), 1)

    def test_error_inside_lock_rolls_back_its_writes(self):
        with self.assertRaises(RuntimeError):
            with self.store.lock_digest(self.digest):
                self.store.insert(self._record())
                raise RuntimeError('interrupted')

        self.assertEqual(FileRecord.objects.filter(digest=self.digest).count(), 0)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT, FILE_UPLOAD_MAX_SIZE=1024)  # 1KB limit for tests
class FileUploadAPITests(APITestCase):
    """API integration tests for file upload endpoints."""

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        self.user = User.objects.create_user(username='apiuser', password='password123')
        self.client.force_authenticate(user=self.user)

    def tearDown(self):
        """Clean up after each test."""
        FileRecord.objects.all().delete()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _create_test_file(self, content: bytes, filename: str = 'test.txt') -> SimpleUploadedFile:
        """Helper to create a test file."""
        return SimpleUploadedFile(filename, content, content_type='text/plain')

    def _download(self, file_url):
        response = self.client.get(urlparse(file_url).path)
        return response, b''.join(response.streaming_content)

    # ===================
    # Upload API Tests
    # ===================

    def test_upload_file_success(self):
        """POST /api/files/ should upload file successfully."""
        response = self.client.post('/api/files/', {'file': self._create_test_file(b"API test content")}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('id', response.data)
        self.assertEqual(response.data['original_filename'], 'test.txt')
        self.assertEqual(response.data['file_type'], 'text/plain')
        self.assertEqual(response.data['size'], 16)
        self.assertFalse(response.data['is_duplicate'])

    def test_upload_duplicate_returns_is_duplicate_true(self):
        """Uploading duplicate should return is_duplicate=true."""
        content = b"Duplicate test"

        first = self.client.post('/api/files/', {'file': self._create_test_file(content)}, format='multipart')
        response = self.client.post(
            '/api/files/',
            {'file': self._create_test_file(content, 'another.txt')},
            format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_duplicate'])
        self.assertEqual(response.data['file'], first.data['file'])
        self.assertNotEqual(response.data['id'], first.data['id'])

    def test_upload_no_file_returns_400(self):
        """POST without file should return 400."""
        response = self.client.post('/api/files/', {}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_upload_file_exceeds_max_size(self):
        """File exceeding max size should return 400."""
        large_content = b"x" * 2048  # 2KB
        response = self.client.post('/api/files/', {'file': self._create_test_file(large_content, 'large.txt')}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('exceeds', response.data['error'].lower())
        self.assertEqual(response.data['details']['max_size'], 1024)
        self.assertGreater(response.data['details']['received_size'], 1024)
        self.assertNotIn('file_size', response.data['details'])
        self.assertEqual(FileRecord.objects.count(), 0)
        self.assertEqual(blob_files(TEST_MEDIA_ROOT), [])

    def test_upload_exactly_max_size_succeeds(self):
        """A file of exactly FILE_UPLOAD_MAX_SIZE bytes is accepted intact."""
        content = os.urandom(1024)
        response = self.client.post('/api/files/', {'file': self._create_test_file(content, 'limit.bin')}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['size'], 1024)
        _, body = self._download(response.data['file'])
        self.assertEqual(body, content)

    def test_upload_one_byte_over_limit_is_rejected(self):
        response = self.client.post('/api/files/', {'file': self._create_test_file(b"x" * 1025)}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upload_returns_content_hash(self):
        """Upload response should include content_hash."""
        content = b"Hash test"
        response = self.client.post('/api/files/', {'file': self._create_test_file(content)}, format='multipart')

        self.assertEqual(response.data['content_hash'], hashlib.sha256(content).hexdigest())

    def test_round_trip_through_download(self):
        """Bytes served at the returned location equal the uploaded bytes."""
        for content in (b"x", b"y" * 1024):
            response = self.client.post('/api/files/', {'file': self._create_test_file(content, 'data.txt')}, format='multipart')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)

            download, body = self._download(response.data['file'])

            self.assertEqual(download.status_code, status.HTTP_200_OK)
            self.assertEqual(body, content)
            self.assertTrue(download['Content-Type'].startswith('text/plain'))

    def test_download_rejects_internal_paths(self):
        response = self.client.get('/uploads/.index')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    # ===================
    # List API Tests
    # ===================

    def test_list_files_empty(self):
        """GET /api/files/ should return an empty array when no files."""
        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_list_files_returns_all_files_newest_first(self):
        """GET /api/files/ should return all uploaded files."""
        self.client.post('/api/files/', {'file': self._create_test_file(b"A", 'a.txt')}, format='multipart')
        self.client.post('/api/files/', {'file': self._create_test_file(b"B", 'b.txt')}, format='multipart')

        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([f['original_filename'] for f in response.data], ['b.txt', 'a.txt'])

    def test_retrieve_file(self):
        upload = self.client.post('/api/files/', {'file': self._create_test_file(b"get me")}, format='multipart')

        response = self.client.get(f"/api/files/{upload.data['id']}/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], upload.data['id'])

    # ===================
    # Delete API Tests
    # ===================

    def test_delete_file_success(self):
        """DELETE /api/files/{id}/ should delete file."""
        upload_response = self.client.post(
            '/api/files/',
            {'file': self._create_test_file(b"Delete me")},
            format='multipart'
        )

        response = self.client.delete(f"/api/files/{upload_response.data['id']}/")

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(FileRecord.objects.count(), 0)
        self.assertEqual(blob_files(TEST_MEDIA_ROOT), [])

    def test_delete_duplicate_keeps_content(self):
        """Deleting one duplicate should keep content for others."""
        content = b"Shared"
        first = self.client.post('/api/files/', {'file': self._create_test_file(content, 'a.txt')}, format='multipart')
        second = self.client.post('/api/files/', {'file': self._create_test_file(content, 'b.txt')}, format='multipart')

        self.client.delete(f"/api/files/{second.data['id']}/")

        self.assertEqual(FileRecord.objects.count(), 1)
        _, body = self._download(first.data['file'])
        self.assertEqual(body, content)

    def test_delete_nonexistent_returns_404(self):
        """DELETE with invalid ID should return 404."""
        response = self.client.delete('/api/files/00000000-0000-0000-0000-000000000000/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    # ===================
    # Storage Metrics / Upload Limits API Tests
    # ===================

    def test_storage_metrics_reflects_uploads(self):
        """Storage metrics should reflect uploaded files."""
        content = b"Metrics test content"
        self.client.post('/api/files/', {'file': self._create_test_file(content, 'a.txt')}, format='multipart')
        self.client.post('/api/files/', {'file': self._create_test_file(content, 'b.txt')}, format='multipart')

        response = self.client.get('/api/files/storage-metrics/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_files'], 2)
        self.assertEqual(response.data['unique_contents'], 1)
        self.assertEqual(response.data['storage_saved'], len(content))

    def test_upload_limits_returns_configured_size(self):
        """Upload limits should return configured max size."""
        response = self.client.get('/api/files/upload-limits/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['max_file_size'], 1024)
        self.assertEqual(response.data['max_file_size_formatted'], '1.0 KB')
