"""
Bearer token authentication with expiry.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from rest_framework import exceptions
from rest_framework.authentication import TokenAuthentication

logger = logging.getLogger(__name__)


DEFAULT_TOKEN_TTL_HOURS = 24


def get_token_ttl() -> timedelta:
    return timedelta(hours=getattr(settings, 'AUTH_TOKEN_TTL_HOURS', DEFAULT_TOKEN_TTL_HOURS))


def is_token_expired(token) -> bool:
    return token.created < timezone.now() - get_token_ttl()


class BearerTokenAuthentication(TokenAuthentication):
    """
    Accepts `Authorization: Bearer <key>`.

    Expired tokens are rejected with the same message as unknown ones.
    """
    keyword = 'Bearer'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if is_token_expired(token):
            logger.info(f"Rejected expired token for user {user.pk}")
            raise exceptions.AuthenticationFailed('Invalid token.')
        return user, token
