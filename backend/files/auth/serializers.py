"""
Serializers for registration and login.
"""
from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class CredentialsSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class RegisterSerializer(CredentialsSerializer):
    password = serializers.CharField(write_only=True, min_length=8, trim_whitespace=False)


class UserSerializer(serializers.ModelSerializer):
    """Public view of a user; the password verifier is never included."""

    class Meta:
        model = User
        fields = ['id', 'username', 'date_joined']
        read_only_fields = fields
