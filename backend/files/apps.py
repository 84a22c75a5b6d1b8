"""
Files app configuration.

Creates the process-wide digest lock registry shared by every
FileService built for a request.
"""

import logging
from django.apps import AppConfig

logger = logging.getLogger(__name__)


class FilesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'files'

    def ready(self):
        """
        Build the digest locks once the app registry is ready.
        """
        from django.conf import settings
        from files.services.locks import DigestLocks, DEFAULT_LOCK_TIMEOUT

        timeout = getattr(settings, 'FILE_HUB_LOCK_TIMEOUT', DEFAULT_LOCK_TIMEOUT)
        self.digest_locks = DigestLocks(timeout=timeout)
        logger.debug(f"Digest locks ready (timeout {timeout}s)")
