"""
Serializers for the authentication endpoints.
"""
from rest_framework import serializers
from apps.rbac.models import User


class RegistrationSerializer(serializers.Serializer):
    """Serializer for user registration."""

    username = serializers.CharField(required=True, max_length=150)
    password = serializers.CharField(
        required=True,
        write_only=True,
        trim_whitespace=False,
        style={'input_type': 'password'}
    )
    organization = serializers.CharField(required=True, max_length=255)


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    username = serializers.CharField(required=True, max_length=150)
    password = serializers.CharField(
        required=True,
        write_only=True,
        trim_whitespace=False,
        style={'input_type': 'password'}
    )


class UserSerializer(serializers.ModelSerializer):
    """Public view of a user. Never includes the credential."""

    class Meta:
        model = User
        fields = ['id', 'username', 'organization', 'role', 'created_at']
        read_only_fields = fields


class LoginResponseSerializer(serializers.Serializer):
    """Shape of a successful login response."""

    user = UserSerializer()
    token = serializers.CharField()


class RegistrationResponseSerializer(serializers.Serializer):
    """Shape of a successful registration response."""

    user = UserSerializer()
    message = serializers.CharField()
