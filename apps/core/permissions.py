"""
DRF permission classes and decorators for operation-level authorization.

This module provides:
- HasOperationRole: DRF permission class that runs the authorization gate
- @requires_operation: Decorator to declare the operation a view performs
"""
import logging
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


class HasOperationRole(BasePermission):
    """
    DRF permission class that enforces role rules on API endpoints.

    This permission class:
    1. Looks up the operation declared for the request method
    2. Answers 401 when the request carries no identity
    3. Passes the identity and operation to the AuthorizationGate, which
       raises Forbidden for a disallowed role
    4. Re-runs the gate with the object in has_object_permission so clients
       stay inside their own requests

    Usage in views:
        class RequestListView(APIView):
            permission_classes = [HasOperationRole]

            @requires_operation('list_requests')
            def get(self, request):
                pass

    Or for the whole view:
        @requires_operation('list_all_requests')
        class AdminQueueView(APIView):
            pass
    """

    def has_permission(self, request, view):
        identity = getattr(request, 'auth', None)
        if identity is None:
            # DRF turns this into NotAuthenticated (401)
            return False

        operation = get_required_operation(request, view)
        if not operation:
            return True

        from apps.rbac.services import AuthorizationGate

        AuthorizationGate.authorize(identity, operation, request=request)

        logger.debug(
            f"Permission granted: {identity.role} may {operation}",
            extra={
                'operation': operation,
                'role': identity.role,
                'view': view.__class__.__name__,
            }
        )
        return True

    def has_object_permission(self, request, view, obj):
        operation = get_required_operation(request, view)
        if not operation:
            return True

        from apps.rbac.services import AuthorizationGate

        AuthorizationGate.authorize(request.auth, operation, resource=obj, request=request)
        return True


def get_required_operation(request, view):
    """Return the operation declared on the handler method, else on the view."""
    handler = getattr(view, request.method.lower(), None)
    return getattr(handler, 'required_operation', None) or getattr(view, 'required_operation', None)


def requires_operation(operation):
    """
    Decorator to declare the operation performed by a view class or method.

    The HasOperationRole permission class reads the declaration before the
    handler runs.

    Args:
        operation: Operation code from ``apps.rbac.identity``

    Returns:
        Decorator function that sets the required_operation attribute
    """
    def decorator(view_or_method):
        view_or_method.required_operation = operation
        return view_or_method

    return decorator
