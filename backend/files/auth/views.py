"""
Registration and login endpoints.

POST /api/auth/register/ - Create an account
POST /api/auth/login/    - Exchange credentials for a bearer token
"""

import logging

from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .authentication import get_token_ttl, is_token_expired
from .serializers import CredentialsSerializer, RegisterSerializer, UserSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def register(request):
    """
    Create a user account.

    Request body:
    - username: Unique username
    - password: At least 8 characters
    """
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {'error': 'Invalid registration data', 'details': serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    username = serializer.validated_data['username']
    try:
        with transaction.atomic():
            if User.objects.filter(username=username).exists():
                raise IntegrityError(username)
            user = User.objects.create_user(
                username=username,
                password=serializer.validated_data['password'],
            )
    except IntegrityError:
        return Response(
            {'error': 'Username already exists'},
            status=status.HTTP_409_CONFLICT
        )

    logger.info(f"Registered user {user.pk}")
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """
    Issue a bearer token.

    Unknown usernames and wrong passwords get the same response.

    Returns:
        - token: Bearer credential for the Authorization header
        - expires_in: Token lifetime in seconds
    """
    serializer = CredentialsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {'error': 'Invalid request body', 'details': serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    user = authenticate(
        request,
        username=serializer.validated_data['username'],
        password=serializer.validated_data['password'],
    )
    if user is None:
        return Response(
            {'error': 'Invalid username or password'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    token, created = Token.objects.get_or_create(user=user)
    if not created and is_token_expired(token):
        token.delete()
        token = Token.objects.create(user=user)

    return Response({
        'token': token.key,
        'expires_in': int(get_token_ttl().total_seconds()),
    })
