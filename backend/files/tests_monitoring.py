"""
Unit Tests for Monitoring Functionality
=======================================
Tests cover:
- Request logging middleware (paths, status, duration, client IP)
- Slow request warnings
- Server errors logged at warning level
"""

from unittest.mock import MagicMock, patch

from django.test import RequestFactory, SimpleTestCase
from rest_framework.response import Response

from files.middleware import RequestLoggingMiddleware


class RequestLoggingMiddlewareTests(SimpleTestCase):
    """Tests for the RequestLoggingMiddleware."""

    def setUp(self):
        self.factory = RequestFactory()
        self.get_response = MagicMock(return_value=Response(status=200))
        self.middleware = RequestLoggingMiddleware(self.get_response)

    def _respond_with(self, status_code):
        mock_response = MagicMock()
        mock_response.status_code = status_code
        self.middleware.get_response = MagicMock(return_value=mock_response)

    def test_should_log_api_files_endpoint(self):
        """Should log requests to /api/files/."""
        self.assertTrue(self.middleware.should_log('/api/files/'))
        self.assertTrue(self.middleware.should_log('/api/auth/login/'))

    def test_should_not_log_blob_downloads(self):
        self.assertFalse(self.middleware.should_log('/uploads/3f2a9c.txt'))

    def test_should_not_log_static_files(self):
        """Should not log static file requests."""
        self.assertFalse(self.middleware.should_log('/static/js/app.js'))

    def test_middleware_logs_request_line(self):
        request = self.factory.get('/api/files/', REMOTE_ADDR='127.0.0.1')
        self._respond_with(200)

        with self.assertLogs('files.middleware', level='INFO') as logs:
            response = self.middleware(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(logs.records), 1)
        self.assertEqual(logs.records[0].levelname, 'INFO')
        self.assertRegex(logs.output[0], r'GET /api/files/ 200 \d+ms ip=127\.0\.0\.1')

    def test_middleware_does_not_log_excluded_paths(self):
        """Middleware should pass excluded paths straight through."""
        request = self.factory.get('/uploads/abc.txt')

        with self.assertNoLogs('files.middleware', level='INFO'):
            self.middleware(request)

        self.get_response.assert_called_once_with(request)

    def test_middleware_logs_server_errors_as_warning(self):
        request = self.factory.delete('/api/files/abc/')
        self._respond_with(500)

        with self.assertLogs('files.middleware', level='INFO') as logs:
            self.middleware(request)

        self.assertEqual(logs.records[0].levelname, 'WARNING')
        self.assertIn('DELETE /api/files/abc/ 500', logs.output[0])

    def test_middleware_warns_on_slow_request(self):
        request = self.factory.get('/api/files/')
        self._respond_with(200)

        with patch('files.middleware.time') as mock_time:
            mock_time.monotonic.side_effect = [0.0, 2.5]
            with self.assertLogs('files.middleware', level='INFO') as logs:
                self.middleware(request)

        self.assertEqual(len(logs.records), 2)
        self.assertIn('Very slow request detected', logs.output[1])
        self.assertIn('2500ms', logs.output[1])

    def test_middleware_extracts_client_ip_from_remote_addr(self):
        """Middleware should extract client IP from REMOTE_ADDR."""
        request = self.factory.get('/api/files/')
        request.META['REMOTE_ADDR'] = '192.168.1.100'

        self.assertEqual(self.middleware._get_client_ip(request), '192.168.1.100')

    def test_middleware_extracts_client_ip_from_x_forwarded_for(self):
        """Middleware should extract client IP from X-Forwarded-For header."""
        request = self.factory.get('/api/files/')
        request.META['HTTP_X_FORWARDED_FOR'] = '10.0.0.1, 192.168.1.1'
        request.META['REMOTE_ADDR'] = '127.0.0.1'

        # Should use the first IP in X-Forwarded-For
        self.assertEqual(self.middleware._get_client_ip(request), '10.0.0.1')
