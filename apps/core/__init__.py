# Export permission classes and decorators for easy importing
from apps.core.permissions import HasOperationRole, requires_operation

__all__ = ['HasOperationRole', 'requires_operation']
