"""
Request logging middleware for the file API.
"""
import time
import logging

logger = logging.getLogger(__name__)


SLOW_REQUEST_MS = 2000


class RequestLoggingMiddleware:
    """
    Logs one line per API request.

    Captures:
    - HTTP method and endpoint
    - Response status code
    - Duration in milliseconds
    - Client IP address

    Excludes:
    - /uploads/ blob downloads
    - /static/ files
    """

    EXCLUDED_PATHS = ['/uploads/', '/static/']

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not self.should_log(request.path):
            return self.get_response(request)

        start_time = time.monotonic()
        response = self.get_response(request)
        duration_ms = int((time.monotonic() - start_time) * 1000)

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.path} {response.status_code} "
            f"{duration_ms}ms ip={self._get_client_ip(request)}"
        )

        if duration_ms > SLOW_REQUEST_MS:
            logger.warning(
                f"Very slow request detected: {request.method} {request.path} "
                f"took {duration_ms}ms"
            )

        return response

    def should_log(self, path):
        """
        Determine if the request should be logged.

        Args:
            path: The request path

        Returns:
            bool: True if the request should be logged
        """
        return not any(path.startswith(p) for p in self.EXCLUDED_PATHS)

    def _get_client_ip(self, request):
        """
        Get client IP address from request.

        Handles proxy headers (X-Forwarded-For) appropriately.
        """
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            # Take the first IP in the chain
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR') or None
