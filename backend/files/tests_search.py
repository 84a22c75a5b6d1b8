"""
Unit Tests for Search & Filtering Functionality
================================================
Tests cover:
- Filename search (case-insensitive substring)
- File type substring match
- Size range filters
- Date range filters (whole days)
- Combined filters (AND logic)
- Ordering
- Edge cases and validation
"""

import shutil
import tempfile
from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from contracts.models import FileRecord
from files.exceptions import InvalidFilterError
from files.services import FilterCriteria, MetadataStore


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()

User = get_user_model()


def noon(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=dt_timezone.utc)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class FileSearchFilterTests(APITestCase):
    """
    Tests for search and filtering through GET /api/files/.

    - search: Case-insensitive substring match on filename
    - file_type: Case-insensitive substring match on MIME type
    - size_min/size_max: Inclusive file size range
    - uploaded_after/uploaded_before: Inclusive upload date range
    - All filters use AND logic
    """

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        self.user = User.objects.create_user(username='searcher', password='password123')
        self.client.force_authenticate(user=self.user)

    def tearDown(self):
        FileRecord.objects.all().delete()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _upload_file(self, content: bytes, filename: str, content_type: str = 'text/plain'):
        """Helper to upload a file and return the response."""
        file_obj = SimpleUploadedFile(filename, content, content_type=content_type)
        return self.client.post('/api/files/', {'file': file_obj}, format='multipart')

    def _setup_test_files(self):
        """Create a set of test files for filtering tests."""
        # Text files
        self._upload_file(b"Report content", 'annual_report.txt', 'text/plain')
        self._upload_file(b"Notes content here", 'meeting_notes.txt', 'text/plain')

        # PDF files
        self._upload_file(b"PDF content" * 100, 'document.pdf', 'application/pdf')
        self._upload_file(b"Big PDF" * 500, 'large_report.pdf', 'application/pdf')

        # Image files
        self._upload_file(b"PNG data", 'photo.png', 'image/png')
        self._upload_file(b"JPEG data here", 'image.jpeg', 'image/jpeg')

    def _set_uploaded_at(self, record_id, day: date):
        FileRecord.objects.filter(pk=record_id).update(uploaded_at=noon(day))

    def _names(self, response):
        return sorted(f['original_filename'] for f in response.data)

    # ===================
    # Filename Search Tests
    # ===================

    def test_search_by_filename_substring(self):
        """Search should match files containing substring in filename."""
        self._setup_test_files()

        response = self.client.get('/api/files/', {'search': 'report'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._names(response), ['annual_report.txt', 'large_report.pdf'])

    def test_search_is_case_insensitive(self):
        """Search should be case-insensitive."""
        self._setup_test_files()

        response = self.client.get('/api/files/', {'search': 'REPORT'})

        self.assertEqual(len(response.data), 2)

    def test_search_no_matches_returns_empty_array(self):
        self._setup_test_files()

        response = self.client.get('/api/files/', {'search': 'nonexistent'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_search_matches_literal_characters(self):
        """Pattern characters in the search term match literally."""
        self._upload_file(b"a", 'data.csv')
        self._upload_file(b"b", 'dataXcsv')

        response = self.client.get('/api/files/', {'search': '.csv'})

        self.assertEqual(self._names(response), ['data.csv'])

    def test_empty_search_is_no_constraint(self):
        self._setup_test_files()

        response = self.client.get('/api/files/', {'search': ''})

        self.assertEqual(len(response.data), 6)

    # ===================
    # File Type Filter Tests
    # ===================

    def test_filter_by_file_type(self):
        """file_type should match the MIME type."""
        self._setup_test_files()

        response = self.client.get('/api/files/', {'file_type': 'application/pdf'})

        self.assertEqual(self._names(response), ['document.pdf', 'large_report.pdf'])

    def test_filter_by_file_type_substring(self):
        """file_type matches any part of the MIME type, case-insensitively."""
        self._setup_test_files()

        self.assertEqual(len(self.client.get('/api/files/', {'file_type': 'IMAGE'}).data), 2)
        self.assertEqual(len(self.client.get('/api/files/', {'file_type': 'pdf'}).data), 2)

    # ===================
    # Size Range Filter Tests
    # ===================

    def test_filter_size_min(self):
        """size_min should filter files >= specified size."""
        self._setup_test_files()

        response = self.client.get('/api/files/', {'size_min': 1000})

        for f in response.data:
            self.assertGreaterEqual(f['size'], 1000)
        self.assertEqual(self._names(response), ['document.pdf', 'large_report.pdf'])

    def test_filter_size_max(self):
        """size_max should filter files <= specified size."""
        self._setup_test_files()

        response = self.client.get('/api/files/', {'size_max': 20})

        for f in response.data:
            self.assertLessEqual(f['size'], 20)
        self.assertEqual(len(response.data), 4)

    def test_filter_size_bounds_are_inclusive(self):
        self._upload_file(b"x" * 100, 'hundred.bin')

        self.assertEqual(len(self.client.get('/api/files/', {'size_min': 100}).data), 1)
        self.assertEqual(len(self.client.get('/api/files/', {'size_max': 100}).data), 1)
        self.assertEqual(len(self.client.get('/api/files/', {'size_min': 101}).data), 0)

    def test_filter_size_range(self):
        self._setup_test_files()

        response = self.client.get('/api/files/', {'size_min': 10, 'size_max': 2000})

        self.assertEqual(
            self._names(response),
            ['annual_report.txt', 'document.pdf', 'image.jpeg', 'meeting_notes.txt']
        )

    def test_invalid_size_returns_400(self):
        response = self.client.get('/api/files/', {'size_min': 'abc'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('size_min', response.data['details'])

    def test_negative_size_returns_400(self):
        response = self.client.get('/api/files/', {'size_max': -1})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    # ===================
    # Date Range Filter Tests
    # ===================

    def test_date_filters_are_whole_day_inclusive(self):
        """Sizes 100/500/2000 uploaded on three consecutive days."""
        days = [date(2024, 3, 10), date(2024, 3, 11), date(2024, 3, 12)]
        for size, day in zip((100, 500, 2000), days):
            response = self._upload_file(b"x" * size, f'file_{size}.bin', 'application/octet-stream')
            self._set_uploaded_at(response.data['id'], day)

        response = self.client.get('/api/files/', {'size_min': 200, 'size_max': 1000})
        self.assertEqual([f['size'] for f in response.data], [500])

        response = self.client.get('/api/files/', {'uploaded_after': '2024-03-11'})
        self.assertEqual([f['size'] for f in response.data], [2000, 500])

        response = self.client.get('/api/files/', {'uploaded_before': '2024-03-11'})
        self.assertEqual([f['size'] for f in response.data], [500, 100])

        response = self.client.get('/api/files/', {'uploaded_before': '2024-03-12'})
        self.assertIn(2000, [f['size'] for f in response.data])

        response = self.client.get('/api/files/', {'uploaded_before': '2024-03-13'})
        self.assertEqual(len(response.data), 3)

    def test_date_range_single_day(self):
        response = self._upload_file(b"only", 'only.txt')
        self._set_uploaded_at(response.data['id'], date(2024, 1, 5))
        self._upload_file(b"today", 'today.txt')

        response = self.client.get('/api/files/', {
            'uploaded_after': '2024-01-05',
            'uploaded_before': '2024-01-05',
        })

        self.assertEqual(self._names(response), ['only.txt'])

    def test_invalid_date_returns_400(self):
        response = self.client.get('/api/files/', {'uploaded_after': 'not-a-date'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('uploaded_after', response.data['details'])

    # ===================
    # Combined Filter Tests
    # ===================

    def test_combined_filters_use_and_logic(self):
        """All filters should be combined with AND."""
        self._setup_test_files()

        response = self.client.get('/api/files/', {
            'search': 'report',
            'file_type': 'application/pdf',
        })

        self.assertEqual(self._names(response), ['large_report.pdf'])

    def test_combined_search_and_size(self):
        self._setup_test_files()

        response = self.client.get('/api/files/', {'search': 'report', 'size_max': 100})

        self.assertEqual(self._names(response), ['annual_report.txt'])

    # ===================
    # Ordering Tests
    # ===================

    def test_results_are_newest_first(self):
        for i, day in enumerate([date(2024, 2, 1), date(2024, 2, 3), date(2024, 2, 2)]):
            response = self._upload_file(f"file {i}".encode(), f'file{i}.txt')
            self._set_uploaded_at(response.data['id'], day)

        response = self.client.get('/api/files/')

        self.assertEqual(
            [f['original_filename'] for f in response.data],
            ['file1.txt', 'file2.txt', 'file0.txt']
        )

    def test_unknown_parameters_are_ignored(self):
        self._setup_test_files()

        response = self.client.get('/api/files/', {'colour': 'blue'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 6)


class FilterCriteriaTests(TestCase):
    """Tests for parsing query parameters into FilterCriteria."""

    def test_empty_params_mean_no_constraints(self):
        self.assertEqual(FilterCriteria.from_query_params({}), FilterCriteria())

    def test_parses_typed_values(self):
        criteria = FilterCriteria.from_query_params({
            'search': 'notes',
            'size_min': '10',
            'uploaded_before': '2024-05-01',
        })

        self.assertEqual(criteria.search, 'notes')
        self.assertEqual(criteria.size_min, 10)
        self.assertIsNone(criteria.size_max)
        self.assertEqual(criteria.uploaded_before, date(2024, 5, 1))

    def test_malformed_params_raise(self):
        with self.assertRaises(InvalidFilterError) as ctx:
            FilterCriteria.from_query_params({'size_min': '1.5x', 'uploaded_after': '2024-13-01'})

        self.assertIn('size_min', ctx.exception.errors)
        self.assertIn('uploaded_after', ctx.exception.errors)

    def test_as_filter_data_round_trips(self):
        criteria = FilterCriteria(search='a', size_max=5, uploaded_after=date(2024, 1, 2))

        self.assertEqual(
            criteria.as_filter_data(),
            {'search': 'a', 'size_max': '5', 'uploaded_after': '2024-01-02'}
        )

    def test_store_query_with_no_records_returns_empty_list(self):
        self.assertEqual(MetadataStore().query(FilterCriteria()), [])

    def test_store_query_filters_records(self):
        today = date.today()
        for name, size in [('a.txt', 1), ('b.txt', 50)]:
            FileRecord.objects.create(
                file=f'{name}.blob', original_filename=name, file_type='text/plain',
                size=size, digest=name[0] * 64, uploaded_at=noon(today) - timedelta(days=1),
            )

        records = MetadataStore().query(FilterCriteria(size_min=10))

        self.assertEqual([r.original_filename for r in records], ['b.txt'])
