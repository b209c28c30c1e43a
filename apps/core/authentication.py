"""
Custom DRF authentication classes.
"""
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from apps.core.logging import SecurityLogger


class JWTAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying ``Authorization: Bearer <session token>``.

    On success DRF sees ``request.user`` as the User and ``request.auth`` as
    the resolved ClientIdentity or AdminIdentity. Requests without a bearer
    header are left anonymous so permission classes can answer 401.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        header = get_authorization_header(request).split()

        if not header or header[0].lower() != self.keyword.lower().encode():
            return None

        if len(header) != 2:
            self._reject(request, 'malformed_header')
            raise exceptions.AuthenticationFailed('Invalid authorization header')

        try:
            token = header[1].decode()
        except UnicodeError:
            self._reject(request, 'malformed_header')
            raise exceptions.AuthenticationFailed('Invalid authorization header')

        # rest_framework.views loads this class, and apps.core.exceptions imports rest_framework.views
        from apps.core.exceptions import Unauthenticated
        from apps.rbac.identity import identity_for_user
        from apps.rbac.services import AuthService

        try:
            user, _ = AuthService.resolve_session(token, ip_address=request.META.get('REMOTE_ADDR'))
        except Unauthenticated as e:
            self._reject(request, e.message)
            raise exceptions.AuthenticationFailed(e.message)

        request._request.session_token = token
        return user, identity_for_user(user)

    def authenticate_header(self, request):
        return self.keyword

    @staticmethod
    def _reject(request, reason):
        SecurityLogger.log_invalid_session(
            ip_address=request.META.get('REMOTE_ADDR'),
            reason=reason,
            path=request.path,
        )
