"""
Content Hasher
==============
Computes the digest that identifies a blob.
"""

import hashlib
import logging

from ..exceptions import StorageIOError

logger = logging.getLogger(__name__)


CHUNK_SIZE = 65536  # 64KB for memory-efficient hashing


class ContentHasher:
    """
    SHA-256 digest over the full content of a seekable byte source.

    The source is read from the beginning and rewound afterwards so the
    same bytes can be persisted by the blob store.
    """

    algorithm = 'sha256'

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    def compute(self, file_obj) -> str:
        """
        Compute the hex digest of `file_obj`.

        Args:
            file_obj: Django UploadedFile or binary file-like object

        Returns:
            str: Hexadecimal SHA-256 hash

        Raises:
            StorageIOError: If the source cannot be rewound or read fully
        """
        seekable = getattr(file_obj, 'seekable', None)
        if seekable is not None and not seekable():
            raise StorageIOError('Upload source is not seekable')

        hasher = hashlib.new(self.algorithm)
        try:
            file_obj.seek(0)
            for chunk in iter(lambda: file_obj.read(self.chunk_size), b''):
                hasher.update(chunk)
            file_obj.seek(0)  # Reset for subsequent operations
        except (OSError, ValueError) as e:
            logger.error(f"Failed to hash upload source: {e}")
            raise StorageIOError('Could not read upload source') from e
        return hasher.hexdigest()
