"""
Upload handler that stops buffering a file once it passes the limit.
"""

import logging

from django.core.files.uploadhandler import FileUploadHandler, SkipFile

from .services.file_service import get_max_upload_size

logger = logging.getLogger(__name__)


class MaxSizeUploadHandler(FileUploadHandler):
    """
    Must be listed first in FILE_UPLOAD_HANDLERS.

    Passes chunks through to the next handler until the running total
    exceeds FILE_UPLOAD_MAX_SIZE, then skips the rest of the file and
    records the size seen on `request.upload_rejected_size`.
    """

    def __init__(self, request=None):
        super().__init__(request)
        self.max_size = get_max_upload_size()

    def receive_data_chunk(self, raw_data, start):
        received = start + len(raw_data)
        if received > self.max_size:
            if self.request is not None:
                self.request.upload_rejected_size = received
            logger.info(f"Upload of {self.file_name!r} cut off at {received} bytes (limit {self.max_size})")
            raise SkipFile()
        return raw_data

    def file_complete(self, file_size):
        return None
