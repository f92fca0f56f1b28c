"""
Bearer token (JWT) authentication for the REST API.

Tokens are HS256-signed with settings.JWT_SECRET and carry the user id and
an expiry. Every request re-reads the user so blocked accounts lose access
immediately, even with a token issued before the block.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from django.conf import settings
from jose import JWTError, jwt
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.permissions import BasePermission

from energy.models import User


def create_access_token(user, minutes: Optional[int] = None) -> str:
    """Create a signed JWT identifying user."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes or settings.JWT_EXP_MINUTES)
    claims = {"user_id": user.pk, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode & verify a JWT, return payload or raise JWTError."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


class BearerTokenAuthentication(BaseAuthentication):
    keyword = "Bearer"

    def authenticate(self, request):
        header = get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None
        if len(header) != 2:
            raise exceptions.AuthenticationFailed("Invalid token")

        try:
            payload = decode_token(header[1].decode())
        except (JWTError, UnicodeError):
            raise exceptions.AuthenticationFailed("Invalid or expired token")

        try:
            user = User.objects.get(pk=payload.get("user_id"))
        except (User.DoesNotExist, ValueError, TypeError):
            raise exceptions.AuthenticationFailed("Unauthorized")

        if user.is_blocked:
            raise exceptions.AuthenticationFailed("User is blocked")

        return user, payload

    def authenticate_header(self, request):
        return self.keyword


class IsAdmin(BasePermission):
    message = "Admin only"

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin)
