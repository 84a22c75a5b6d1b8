"""
Unit Tests for Authentication
=============================
Tests cover:
- Registration (validation, duplicate usernames)
- Login (token issue, uniform failure response)
- Bearer token access to the file endpoints, including expiry
- Unauthenticated requests cause no side effects
"""

import os
import shutil
import tempfile
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from contracts.models import FileRecord


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()

User = get_user_model()


class RegistrationTests(APITestCase):

    def test_register_creates_user(self):
        response = self.client.post(
            '/api/auth/register/',
            {'username': 'alice', 'password': 'correct-horse'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['username'], 'alice')
        self.assertNotIn('password', response.data)
        self.assertTrue(User.objects.get(username='alice').check_password('correct-horse'))

    def test_register_duplicate_username_returns_409(self):
        User.objects.create_user(username='alice', password='password123')

        response = self.client.post(
            '/api/auth/register/',
            {'username': 'alice', 'password': 'another-pass'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Username already exists')

    def test_register_short_password_returns_400(self):
        response = self.client.post(
            '/api/auth/register/',
            {'username': 'bob', 'password': 'short'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data['details'])
        self.assertFalse(User.objects.filter(username='bob').exists())

    def test_register_missing_username_returns_400(self):
        response = self.client.post('/api/auth/register/', {'password': 'password123'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LoginTests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='password123')

    def test_login_returns_token(self):
        response = self.client.post(
            '/api/auth/login/',
            {'username': 'alice', 'password': 'password123'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['token'], Token.objects.get(user=self.user).key)
        self.assertEqual(response.data['expires_in'], 24 * 3600)

    def test_login_failures_are_indistinguishable(self):
        """Wrong password and unknown user get the same response."""
        wrong_password = self.client.post(
            '/api/auth/login/',
            {'username': 'alice', 'password': 'wrong-password'},
            format='json'
        )
        unknown_user = self.client.post(
            '/api/auth/login/',
            {'username': 'nobody', 'password': 'password123'},
            format='json'
        )

        self.assertEqual(wrong_password.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(unknown_user.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(wrong_password.data, unknown_user.data)
        self.assertEqual(wrong_password.data['error'], 'Invalid username or password')

    def test_login_reuses_live_token(self):
        first = self.client.post('/api/auth/login/', {'username': 'alice', 'password': 'password123'}, format='json')
        second = self.client.post('/api/auth/login/', {'username': 'alice', 'password': 'password123'}, format='json')

        self.assertEqual(first.data['token'], second.data['token'])

    def test_login_replaces_expired_token(self):
        first = self.client.post('/api/auth/login/', {'username': 'alice', 'password': 'password123'}, format='json')
        Token.objects.filter(key=first.data['token']).update(created=timezone.now() - timedelta(hours=25))

        second = self.client.post('/api/auth/login/', {'username': 'alice', 'password': 'password123'}, format='json')

        self.assertNotEqual(first.data['token'], second.data['token'])
        self.assertFalse(Token.objects.filter(key=first.data['token']).exists())


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class BearerTokenAccessTests(APITestCase):

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='password123')
        self.token = Token.objects.create(user=self.user)

    def tearDown(self):
        FileRecord.objects.all().delete()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _authorize(self, key=None):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {key or self.token.key}')

    def _upload(self, content=b"secret"):
        return self.client.post(
            '/api/files/',
            {'file': SimpleUploadedFile('secret.txt', content, content_type='text/plain')},
            format='multipart'
        )

    def test_bearer_token_grants_access(self):
        self._authorize()

        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_missing_token_returns_401(self):
        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unknown_token_returns_401(self):
        self._authorize('0' * 40)

        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_wrong_scheme_returns_401(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {self.token.key}')

        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_expired_token_returns_401(self):
        Token.objects.filter(pk=self.token.pk).update(created=timezone.now() - timedelta(hours=25))
        self._authorize()

        response = self.client.get('/api/files/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @override_settings(AUTH_TOKEN_TTL_HOURS=1)
    def test_token_ttl_is_configurable(self):
        Token.objects.filter(pk=self.token.pk).update(created=timezone.now() - timedelta(hours=2))
        self._authorize()

        self.assertEqual(self.client.get('/api/files/').status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unauthenticated_upload_has_no_side_effects(self):
        response = self._upload()

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(FileRecord.objects.count(), 0)
        self.assertFalse(
            os.path.isdir(TEST_MEDIA_ROOT) and
            [name for name in os.listdir(TEST_MEDIA_ROOT) if not name.startswith('.')]
        )

    def test_unauthenticated_delete_has_no_side_effects(self):
        self._authorize()
        upload = self._upload()
        self.client.credentials()

        response = self.client.delete(f"/api/files/{upload.data['id']}/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertTrue(FileRecord.objects.filter(pk=upload.data['id']).exists())

    def test_unauthenticated_metrics_and_limits_return_401(self):
        self.assertEqual(self.client.get('/api/files/storage-metrics/').status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(self.client.get('/api/files/upload-limits/').status_code, status.HTTP_401_UNAUTHORIZED)
