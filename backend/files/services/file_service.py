"""
File Service
============
Orchestrates upload, listing and delete over the blob store and the
metadata store.

Upload Algorithm:
1. Gate: identity present, filename present, declared size within limit
2. Hash computation: SHA-256 over the full upload, source rewound
3. Under the digest lock: put the blob (no-op if the digest is stored),
   then insert a new FileRecord pointing at the blob location

Delete Algorithm:
1. Look up the record
2. Under the digest lock: remove the record, count remaining records for
   the digest, reclaim the blob only when the count is zero

The digest lock is what keeps a delete, or the reconciliation pass, from
reclaiming a blob that a concurrent upload has just started to reference.
It has two layers: `DigestLocks` orders threads in this process, and the
metadata store's BlobLock row (`MetadataStore.lock_digest`) orders
processes sharing the database.
"""

import logging
import uuid
from contextlib import contextmanager

from django.apps import apps
from django.conf import settings
from django.utils import timezone

from contracts.models import FileRecord
from ..exceptions import (
    AuthenticationRequired,
    FileRecordNotFound,
    FileTooLargeError,
    StorageIOError,
    UploadRejected,
)
from .blob_store import BlobStore, safe_extension
from .hashing import ContentHasher
from .locks import DigestLocks
from .metadata_store import FilterCriteria, MetadataStore

logger = logging.getLogger(__name__)


DEFAULT_MAX_UPLOAD_SIZE = 10 * 1024 * 1024


def get_max_upload_size():
    """Get max upload size from settings, default 10MB."""
    return getattr(settings, 'FILE_UPLOAD_MAX_SIZE', DEFAULT_MAX_UPLOAD_SIZE)


class FileService:
    """
    Content-addressed file store with reference-counted blob lifecycle.

    All collaborators are passed in; `get_file_service()` wires the
    production ones from settings.
    """

    def __init__(self, blob_store: BlobStore, metadata_store: MetadataStore,
                 locks: DigestLocks, max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
                 hasher: ContentHasher = None):
        self.blob_store = blob_store
        self.metadata_store = metadata_store
        self.locks = locks
        self.max_upload_size = max_upload_size
        self.hasher = hasher or ContentHasher()

    @staticmethod
    def _authorize(identity) -> None:
        if identity is None or not getattr(identity, 'is_authenticated', False):
            raise AuthenticationRequired('Authentication credentials were not provided')

    @contextmanager
    def _hold(self, digest: str):
        """Thread lock first, then the cross-process row lock."""
        with self.locks.hold(digest), self.metadata_store.lock_digest(digest):
            yield

    def upload_file(self, file_obj, original_filename: str, file_type: str,
                    declared_size: int, identity) -> tuple[FileRecord, bool]:
        """
        Upload a file with deduplication.

        Args:
            file_obj: Seekable binary source (Django UploadedFile)
            original_filename: Original filename from user
            file_type: Declared MIME type of the file
            declared_size: Size reported by the client, checked against
                the configured maximum before any bytes are hashed
            identity: Authenticated user

        Returns:
            tuple: (FileRecord instance, is_duplicate boolean)

        Raises:
            AuthenticationRequired: No authenticated identity
            UploadRejected: Missing filename, or FileTooLargeError
            StorageIOError: Hashing, blob write or metadata insert failed
        """
        self._authorize(identity)
        if not original_filename:
            raise UploadRejected('No file provided')
        if declared_size is not None and declared_size > self.max_upload_size:
            raise FileTooLargeError(declared_size, self.max_upload_size)

        digest = self.hasher.compute(file_obj)

        with self._hold(digest):
            stored = self.blob_store.put(
                digest,
                file_obj,
                size=declared_size,
                extension=safe_extension(original_filename),
            )
            record = FileRecord(
                id=uuid.uuid4(),
                file=stored.location,
                original_filename=original_filename,
                file_type=file_type or 'application/octet-stream',
                size=stored.size,
                digest=digest,
                uploaded_at=timezone.now(),
            )
            try:
                self.metadata_store.insert(record)
            except StorageIOError:
                if stored.created:
                    logger.error(
                        f"Orphaned blob {digest[:12]} at {stored.location}: metadata insert "
                        f"failed, left for reconciliation"
                    )
                raise

        logger.info(
            f"Uploaded {original_filename!r} as {record.id} "
            f"({'duplicate of ' if not stored.created else 'new blob '}{digest[:12]})"
        )
        return record, not stored.created

    def list_files(self, criteria: FilterCriteria, identity) -> list:
        """Records matching `criteria`, newest first. Never None."""
        self._authorize(identity)
        return list(self.metadata_store.query(criteria or FilterCriteria()))

    def get_file(self, record_id, identity) -> FileRecord:
        self._authorize(identity)
        record = self.metadata_store.find_by_id(record_id)
        if record is None:
            raise FileRecordNotFound(record_id)
        return record

    def delete_file(self, record_id, identity) -> dict:
        """
        Delete a file record, reclaiming its blob when it was the last
        reference.

        A failure to count the remaining references, or to reclaim the
        blob, is logged and leaves the blob on disk; the record deletion
        still stands.

        Args:
            record_id: FileRecord primary key
            identity: Authenticated user

        Returns:
            dict: Deletion result with physical_deleted flag

        Raises:
            AuthenticationRequired: No authenticated identity
            FileRecordNotFound: No such record
            StorageIOError: The record itself could not be removed
        """
        self._authorize(identity)
        record = self.metadata_store.find_by_id(record_id)
        if record is None:
            raise FileRecordNotFound(record_id)
        digest = record.digest

        with self._hold(digest):
            self.metadata_store.delete_by_id(record.pk)

            try:
                remaining = self.metadata_store.count_by_digest(digest)
            except StorageIOError:
                logger.exception(
                    f"Reference count failed for {digest[:12]} after deleting {record.pk}; "
                    f"blob kept"
                )
                return {'physical_deleted': False}

            if remaining:
                logger.info(f"Deleted {record.pk}; {remaining} reference(s) to {digest[:12]} remain")
                return {'physical_deleted': False}

            try:
                reclaimed = self.blob_store.reclaim(digest)
            except StorageIOError:
                logger.exception(f"Failed to reclaim blob {digest[:12]}; storage leaked")
                return {'physical_deleted': False}

        if not reclaimed:
            logger.warning(f"Deleted {record.pk} but no blob was committed for {digest[:12]}")
        else:
            logger.info(f"Deleted {record.pk} and reclaimed blob {digest[:12]}")
        return {'physical_deleted': reclaimed}

    def get_storage_metrics(self) -> dict:
        """
        Calculate storage metrics for deduplication.

        Returns:
            dict: Contains:
                - total_files: Count of all FileRecords
                - unique_contents: Count of distinct digests
                - logical_size: Total size if all files stored separately
                - physical_size: Actual storage used
                - storage_saved: Bytes saved via deduplication
                - deduplication_ratio: unique_contents / total_files
        """
        totals = self.metadata_store.storage_totals()
        total_files = totals['total_files']
        unique_contents = totals['unique_contents']
        deduplication_ratio = unique_contents / total_files if total_files > 0 else 1.0

        return {
            'total_files': total_files,
            'unique_contents': unique_contents,
            'logical_size': totals['logical_size'],
            'physical_size': totals['physical_size'],
            'storage_saved': totals['logical_size'] - totals['physical_size'],
            'deduplication_ratio': deduplication_ratio,
        }


def get_file_service() -> FileService:
    """Build a FileService from settings, sharing the process-wide digest locks."""
    return FileService(
        blob_store=BlobStore(settings.MEDIA_ROOT),
        metadata_store=MetadataStore(),
        locks=apps.get_app_config('files').digest_locks,
        max_upload_size=get_max_upload_size(),
    )
