"""
Blob Store
==========
Content-addressed physical storage. One blob per digest, written once,
removed only when the caller has established that nothing references it.

On-disk layout under the storage root:

    <uuid hex><ext>                   committed blob bytes
    .index/ab/cd/<digest>             digest -> "<location>\\n<size>\\n"
    .incoming/                        in-flight temp files

A blob is visible to `exists`/`lookup` only once its index entry has been
linked into place. The index entry is created with `os.link`, which fails
if the entry already exists, so exactly one writer wins for a digest.
"""

import logging
import os
import re
import tempfile
import time
import uuid
from dataclasses import dataclass
from typing import Iterator, Optional

from ..exceptions import StorageIOError

logger = logging.getLogger(__name__)


CHUNK_SIZE = 65536
INDEX_DIR = '.index'
INCOMING_DIR = '.incoming'

DIGEST_RE = re.compile(r'^[0-9a-f]{8,128}$')
EXTENSION_RE = re.compile(r'^\.[A-Za-z0-9]{1,16}$')


@dataclass(frozen=True)
class BlobInfo:
    digest: str
    location: str
    size: int
    committed_at: float


@dataclass(frozen=True)
class PutResult:
    """Outcome of `BlobStore.put`. `created` is False on the dedup path."""
    location: str
    size: int
    created: bool


def safe_extension(filename: str) -> str:
    """Extension of `filename` if it is short and alphanumeric, else ''."""
    ext = os.path.splitext(filename or '')[1]
    return ext if EXTENSION_RE.match(ext) else ''


class BlobStore:
    """
    Filesystem blob store keyed by content digest.

    The store performs no reference counting. Callers serialize
    `put`/`reclaim` for a digest against their own metadata (see
    `FileService`).
    """

    def __init__(self, root, chunk_size: int = CHUNK_SIZE):
        self.root = os.fspath(root)
        self.chunk_size = chunk_size
        self.index_root = os.path.join(self.root, INDEX_DIR)
        self.incoming_root = os.path.join(self.root, INCOMING_DIR)

    # ===================
    # Paths
    # ===================

    def _index_path(self, digest: str) -> str:
        if not DIGEST_RE.match(digest or ''):
            raise ValueError(f'Invalid digest: {digest!r}')
        return os.path.join(self.index_root, digest[:2], digest[2:4], digest)

    def path(self, location: str) -> str:
        """Absolute path of a blob location."""
        if not location or os.path.basename(location) != location or location.startswith('.'):
            raise ValueError(f'Invalid blob location: {location!r}')
        return os.path.join(self.root, location)

    # ===================
    # Reads
    # ===================

    def exists(self, digest: str) -> bool:
        """True iff a blob for `digest` is committed."""
        return os.path.isfile(self._index_path(digest))

    def lookup(self, digest: str) -> Optional[BlobInfo]:
        """Return the committed blob for `digest`, or None."""
        index_path = self._index_path(digest)
        try:
            with open(index_path, 'r', encoding='ascii') as f:
                location, size = f.read().split()
            committed_at = os.stat(index_path).st_mtime
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StorageIOError(f'Unreadable index entry for {digest[:12]}') from e
        return BlobInfo(digest, location, int(size), committed_at)

    def open(self, location: str):
        """Open a blob for binary reading."""
        return open(self.path(location), 'rb')

    def iter_blobs(self) -> Iterator[BlobInfo]:
        """Yield every committed blob."""
        if not os.path.isdir(self.index_root):
            return
        for dirpath, _dirnames, filenames in os.walk(self.index_root):
            for name in filenames:
                if not DIGEST_RE.match(name):
                    continue
                info = self.lookup(name)
                if info is not None:
                    yield info

    # ===================
    # Writes
    # ===================

    def put(self, digest: str, file_obj, size: Optional[int] = None,
            extension: str = '') -> PutResult:
        """
        Materialize the blob for `digest` unless one is already committed.

        The content is read from the current position of `file_obj`.

        Args:
            digest: Content hash of the bytes in `file_obj`
            file_obj: Binary file-like object
            size: Expected byte count; a mismatch aborts the write
            extension: Suffix for the new location, e.g. '.pdf'

        Returns:
            PutResult: Location of the committed blob. `created` is False
                when the digest was already stored (no bytes rewritten, the
                index entry mtime refreshed).

        Raises:
            StorageIOError: If the write or commit fails. No partial blob
                is left visible.
        """
        existing = self.lookup(digest)
        if existing is not None and self._touch(digest):
            return PutResult(existing.location, existing.size, created=False)

        blob_path = None
        committed = False
        tmp_path = None
        try:
            os.makedirs(self.incoming_root, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.incoming_root, prefix='blob-')
            with os.fdopen(fd, 'wb') as dst:
                written = self._copy(file_obj, dst)
                dst.flush()
                os.fsync(dst.fileno())

            if size is not None and written != size:
                raise StorageIOError(
                    f'Expected {size} bytes for {digest[:12]}, read {written}'
                )

            location = f'{uuid.uuid4().hex}{extension}'
            blob_path = self.path(location)
            os.replace(tmp_path, blob_path)
            tmp_path = None

            committed = self._commit_index(digest, location, written)
            if not committed:
                # Another writer committed this digest first
                logger.info(f"Lost commit race for {digest[:12]}, discarding {location}")
                self._remove_quietly(blob_path)
                blob_path = None
                winner = self.lookup(digest)
                if winner is None:
                    raise StorageIOError(f'Index entry for {digest[:12]} vanished during commit')
                return PutResult(winner.location, winner.size, created=False)

            logger.info(f"Stored blob {digest[:12]} at {location} ({written} bytes)")
            return PutResult(location, written, created=True)

        except OSError as e:
            logger.error(f"Failed to store blob {digest[:12]}: {e}")
            raise StorageIOError(f'Could not store blob {digest[:12]}') from e
        finally:
            if tmp_path is not None:
                self._remove_quietly(tmp_path)
            if blob_path is not None and not committed:
                self._remove_quietly(blob_path)

    def _touch(self, digest: str) -> bool:
        """
        Refresh the index entry's mtime so a blob that was just reused is
        inside the reconciliation grace period again. False if the entry
        vanished.
        """
        try:
            os.utime(self._index_path(digest))
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f'Could not refresh index entry for {digest[:12]}') from e
        return True

    def _copy(self, src, dst) -> int:
        written = 0
        for chunk in iter(lambda: src.read(self.chunk_size), b''):
            dst.write(chunk)
            written += len(chunk)
        return written

    def _commit_index(self, digest: str, location: str, size: int) -> bool:
        """
        Atomically create the index entry. Returns False if one exists.
        """
        index_path = self._index_path(digest)
        fd, tmp_index = tempfile.mkstemp(dir=self.incoming_root, prefix='index-')
        try:
            with os.fdopen(fd, 'w', encoding='ascii') as f:
                f.write(f'{location}\n{size}\n')
                f.flush()
                os.fsync(f.fileno())
            # A concurrent reclaim of a neighbouring digest may prune the
            # shard directories between makedirs and link.
            for attempt in range(3):
                os.makedirs(os.path.dirname(index_path), exist_ok=True)
                try:
                    os.link(tmp_index, index_path)
                    return True
                except FileExistsError:
                    return False
                except FileNotFoundError:
                    if attempt == 2:
                        raise
        finally:
            self._remove_quietly(tmp_index)
        return False

    def reclaim(self, digest: str) -> bool:
        """
        Delete the physical blob for `digest`.

        The caller must have established that no file record references
        the digest.

        Returns:
            bool: True if a blob was removed, False if none was committed

        Raises:
            StorageIOError: If the underlying delete fails
        """
        info = self.lookup(digest)
        if info is None:
            return False

        index_path = self._index_path(digest)
        try:
            # Uncommit first so readers stop seeing the blob
            os.remove(index_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f'Could not reclaim blob {digest[:12]}') from e

        try:
            os.remove(self.path(info.location))
        except FileNotFoundError:
            logger.warning(f"Blob file for {digest[:12]} was already missing: {info.location}")
        except OSError as e:
            # Index is gone; the unindexed file is swept by reconciliation
            raise StorageIOError(f'Could not remove blob file for {digest[:12]}') from e

        self._cleanup_empty_directories(index_path)
        logger.info(f"Reclaimed blob {digest[:12]} ({info.size} bytes)")
        return True

    # ===================
    # Maintenance
    # ===================

    def sweep_stray_files(self, older_than: float, dry_run: bool = False) -> list:
        """
        Remove stale temp files and blob files that no index entry names.

        Args:
            older_than: Minimum age in seconds; younger files may belong to
                a write in progress
            dry_run: Report without deleting

        Returns:
            list: Paths relative to the storage root that were (or would be)
                removed
        """
        cutoff = time.time() - older_than
        indexed = {info.location for info in self.iter_blobs()}
        candidates = []

        if os.path.isdir(self.incoming_root):
            for name in os.listdir(self.incoming_root):
                candidates.append(os.path.join(INCOMING_DIR, name))
        if os.path.isdir(self.root):
            for name in os.listdir(self.root):
                if name.startswith('.') or name in indexed:
                    continue
                if os.path.isfile(os.path.join(self.root, name)):
                    candidates.append(name)

        swept = []
        for relative in candidates:
            full_path = os.path.join(self.root, relative)
            try:
                if os.stat(full_path).st_mtime > cutoff:
                    continue
                if not dry_run:
                    os.remove(full_path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Failed to sweep stray file {relative}: {e}")
                continue
            swept.append(relative)
        return swept

    def _cleanup_empty_directories(self, file_path: str) -> None:
        """
        Remove empty parent directories up to the index root.

        For path like: .index/ab/cd/abcd1234...
        Will try to remove: .index/ab/cd/, then .index/ab/
        """
        parent_dir = os.path.dirname(file_path)

        while parent_dir and parent_dir != self.index_root and parent_dir.startswith(self.index_root):
            try:
                if os.path.isdir(parent_dir) and not os.listdir(parent_dir):
                    os.rmdir(parent_dir)
                else:
                    break
            except OSError:
                # Repopulated by a concurrent commit, stop
                break
            parent_dir = os.path.dirname(parent_dir)

    @staticmethod
    def _remove_quietly(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
