"""
Shared Data Contract Models
===========================
Models:
    - FileRecord: one logical upload. Several records may share a digest;
      the physical bytes behind a digest are owned by the blob store.
    - BlobLock: database row lock serializing blob lifecycle changes for
      a digest across processes.
"""

from django.db import models
from django.utils import timezone
import uuid


class FileRecord(models.Model):
    """
    Represents user-uploaded file metadata.
    `file` holds the blob store location, `digest` is the content hash
    used to count references to that blob.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    file = models.FileField(
        max_length=255,
        help_text="Blob store location of the physical content"
    )
    original_filename = models.CharField(
        max_length=255,
        help_text="Original filename as uploaded by user"
    )
    file_type = models.CharField(
        max_length=100,
        help_text="Declared MIME type of the file"
    )
    size = models.BigIntegerField(
        help_text="File size in bytes"
    )
    digest = models.CharField(
        max_length=64,
        help_text="SHA-256 hash of file content"
    )
    uploaded_at = models.DateTimeField(
        default=timezone.now,
        help_text="When this file was uploaded"
    )

    class Meta:
        ordering = ['-uploaded_at']
        verbose_name = "File Record"
        verbose_name_plural = "File Records"
        indexes = [
            models.Index(fields=['digest'], name='filerecord_digest_idx'),
            models.Index(fields=['original_filename'], name='filerecord_filename_idx'),
            models.Index(fields=['file_type'], name='filerecord_type_idx'),
            models.Index(fields=['uploaded_at'], name='filerecord_uploaded_idx'),
            models.Index(fields=['size'], name='filerecord_size_idx'),
        ]

    def __str__(self):
        return self.original_filename


class BlobLock(models.Model):
    """
    One row per content digest, locked for the duration of any sequence
    that writes, references or reclaims the blob for that digest.
    Rows are never deleted.
    """
    digest = models.CharField(
        max_length=64,
        primary_key=True,
        help_text="SHA-256 hash of the guarded content"
    )
    locked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the lock was last taken"
    )

    class Meta:
        verbose_name = "Blob Lock"
        verbose_name_plural = "Blob Locks"

    def __str__(self):
        return self.digest
