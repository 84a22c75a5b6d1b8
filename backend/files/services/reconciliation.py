"""
Storage reconciliation.

Cleans up what the upload and delete paths deliberately leave behind:
blobs whose metadata insert failed, blob files whose index entry was
removed but whose bytes could not be, and stale temp files.
"""

import logging
import time

from django.apps import apps
from django.conf import settings

from .blob_store import BlobStore
from .locks import DigestLocks
from .metadata_store import MetadataStore

logger = logging.getLogger(__name__)


DEFAULT_MIN_AGE = 300


class ReconciliationService:
    """
    Periodic scan comparing committed blobs with referenced digests.

    Only blobs older than `min_age` seconds are touched, so writes in
    flight in other processes are left alone.
    """

    def __init__(self, blob_store: BlobStore, metadata_store: MetadataStore,
                 locks: DigestLocks, min_age: float = DEFAULT_MIN_AGE):
        self.blob_store = blob_store
        self.metadata_store = metadata_store
        self.locks = locks
        self.min_age = min_age

    def run(self, dry_run: bool = False) -> dict:
        """
        Reconcile blob storage against file records.

        Args:
            dry_run: Report what would change without deleting anything

        Returns:
            dict: orphaned_blobs, dangling_records, stray_files and dry_run
        """
        started = time.time()
        referenced = self.metadata_store.digests()
        committed = set()
        orphaned = []

        for blob in self.blob_store.iter_blobs():
            committed.add(blob.digest)
            if blob.digest in referenced:
                continue
            if started - blob.committed_at < self.min_age:
                continue

            with self.locks.hold(blob.digest), self.metadata_store.lock_digest(blob.digest):
                # Re-check under the lock; an upload may have just inserted
                # or refreshed the blob on its dedup path
                if self.metadata_store.count_by_digest(blob.digest):
                    continue
                current = self.blob_store.lookup(blob.digest)
                if current is None or time.time() - current.committed_at < self.min_age:
                    continue
                if dry_run:
                    orphaned.append(blob.digest)
                elif self.blob_store.reclaim(blob.digest):
                    orphaned.append(blob.digest)

        dangling = sorted(referenced - committed)
        for digest in dangling:
            logger.warning(f"File records reference missing blob {digest[:12]}")

        stray = self.blob_store.sweep_stray_files(older_than=self.min_age, dry_run=dry_run)

        result = {
            'dry_run': dry_run,
            'orphaned_blobs': sorted(orphaned),
            'dangling_records': dangling,
            'stray_files': sorted(stray),
        }
        logger.info(
            f"Reconciliation {'preview' if dry_run else 'complete'}: "
            f"{len(orphaned)} orphaned blob(s), {len(dangling)} dangling digest(s), "
            f"{len(stray)} stray file(s) in {time.time() - started:.2f}s"
        )
        return result


def get_reconciliation_service(min_age: float = None) -> ReconciliationService:
    """Build a ReconciliationService from settings."""
    if min_age is None:
        min_age = getattr(settings, 'RECONCILE_MIN_AGE', DEFAULT_MIN_AGE)
    return ReconciliationService(
        blob_store=BlobStore(settings.MEDIA_ROOT),
        metadata_store=MetadataStore(),
        locks=apps.get_app_config('files').digest_locks,
        min_age=min_age,
    )
