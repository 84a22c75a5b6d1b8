"""
Metadata Store
==============
One FileRecord per logical upload, backed by the Django ORM.
"""

import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Max, Sum
from django.utils import timezone

from contracts.models import BlobLock, FileRecord
from ..exceptions import FileRecordNotFound, InvalidFilterError, MetadataStoreError
from ..filters import FileFilter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterCriteria:
    """Listing constraints. None means no constraint on that field."""
    search: Optional[str] = None
    file_type: Optional[str] = None
    size_min: Optional[int] = None
    size_max: Optional[int] = None
    uploaded_after: Optional[date] = None
    uploaded_before: Optional[date] = None

    @classmethod
    def from_query_params(cls, params) -> 'FilterCriteria':
        """
        Parse request query parameters.

        Raises:
            InvalidFilterError: If a parameter is malformed
        """
        filterset = FileFilter(data=params, queryset=FileRecord.objects.none())
        if not filterset.is_valid():
            raise InvalidFilterError(
                {field: list(messages) for field, messages in filterset.errors.items()}
            )
        cleaned = filterset.form.cleaned_data

        def size(name):
            value = cleaned.get(name)
            return int(value) if value is not None else None

        return cls(
            search=cleaned.get('search') or None,
            file_type=cleaned.get('file_type') or None,
            size_min=size('size_min'),
            size_max=size('size_max'),
            uploaded_after=cleaned.get('uploaded_after'),
            uploaded_before=cleaned.get('uploaded_before'),
        )

    def as_filter_data(self) -> dict:
        """Render the criteria back into FileFilter input."""
        data = {}
        for name, value in asdict(self).items():
            if value is None:
                continue
            data[name] = value.isoformat() if isinstance(value, date) else str(value)
        return data


@contextmanager
def _database_errors(operation: str):
    # Savepoint per operation: a failed statement inside a digest lock
    # transaction rolls back only itself
    try:
        with transaction.atomic():
            yield
    except DatabaseError as e:
        logger.error(f"Metadata store {operation} failed: {e}")
        raise MetadataStoreError(f'Metadata store {operation} failed') from e


class MetadataStore:
    """
    FileRecord persistence used by FileService.

    All database failures surface as MetadataStoreError.
    """

    @contextmanager
    def lock_digest(self, digest: str):
        """
        Hold the BlobLock row for `digest` until the block exits.

        The lock lives in a database transaction, so it excludes other
        processes (web workers, the Celery worker, management commands)
        as well as other threads. Metadata changes made inside the block
        commit together when it exits and roll back if it raises.

        Raises:
            MetadataStoreError: If the lock cannot be taken, or the
                transaction cannot commit
        """
        try:
            BlobLock.objects.get_or_create(digest=digest)
            with transaction.atomic():
                # The UPDATE takes the row lock before anything is read.
                # On SQLite it takes the database write lock instead.
                BlobLock.objects.filter(digest=digest).update(locked_at=timezone.now())
                yield
        except DatabaseError as e:
            logger.error(f"Digest lock for {digest[:12]} failed: {e}")
            raise MetadataStoreError(f'Could not lock digest {digest[:12]}') from e

    def insert(self, record: FileRecord) -> FileRecord:
        with _database_errors('insert'):
            record.save(force_insert=True)
        return record

    def find_by_id(self, record_id) -> Optional[FileRecord]:
        with _database_errors('lookup'):
            try:
                return FileRecord.objects.get(pk=record_id)
            except (FileRecord.DoesNotExist, ValidationError, ValueError):
                return None

    def delete_by_id(self, record_id) -> FileRecord:
        """
        Remove a record and return it.

        Raises:
            FileRecordNotFound: If no record has this id
        """
        record = self.find_by_id(record_id)
        if record is None:
            raise FileRecordNotFound(record_id)
        with _database_errors('delete'):
            deleted, _ = FileRecord.objects.filter(pk=record.pk).delete()
        if not deleted:
            # Removed by a concurrent request after the lookup
            raise FileRecordNotFound(record_id)
        return record

    def count_by_digest(self, digest: str) -> int:
        with _database_errors('count'):
            return FileRecord.objects.filter(digest=digest).count()

    def query(self, criteria: FilterCriteria) -> list:
        """Records matching `criteria`, newest first."""
        filterset = FileFilter(
            data=criteria.as_filter_data(),
            queryset=FileRecord.objects.all(),
        )
        with _database_errors('query'):
            return list(filterset.qs.order_by('-uploaded_at'))

    def digests(self) -> set:
        """Every digest referenced by at least one record."""
        with _database_errors('digest scan'):
            return set(FileRecord.objects.order_by().values_list('digest', flat=True).distinct())

    def storage_totals(self) -> dict:
        """
        Aggregate sizes for storage metrics.

        Returns:
            dict: total_files, unique_contents, logical_size, physical_size
        """
        with _database_errors('aggregate'):
            totals = FileRecord.objects.aggregate(logical_size=Sum('size'))
            per_digest = list(
                FileRecord.objects.order_by()
                .values('digest')
                .annotate(blob_size=Max('size'))
                .values_list('blob_size', flat=True)
            )
            total_files = FileRecord.objects.count()
        return {
            'total_files': total_files,
            'unique_contents': len(per_digest),
            'logical_size': totals['logical_size'] or 0,
            'physical_size': sum(per_digest),
        }
