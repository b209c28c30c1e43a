"""
Authenticated identities and the operation rules that apply to them.

An identity is built once, when a session token is resolved, and is either
a ``ClientIdentity`` or an ``AdminIdentity``. Views and services dispatch on
its type instead of comparing role strings.
"""
from dataclasses import dataclass
from typing import Union
from uuid import UUID

from apps.rbac.models import User


@dataclass(frozen=True)
class ClientIdentity:
    """A client acting for their organization."""
    user_id: UUID
    username: str
    organization: str

    role = User.ROLE_CLIENT

    def owns(self, flight_request) -> bool:
        """True if the flight request was submitted by this client."""
        return (
            flight_request.organization == self.organization
            and flight_request.client_username == self.username
        )


@dataclass(frozen=True)
class AdminIdentity:
    """An admin deciding flight requests."""
    user_id: UUID
    username: str
    organization: str

    role = User.ROLE_ADMIN


Identity = Union[ClientIdentity, AdminIdentity]


# Operation codes checked by the authorization gate
CREATE_REQUEST = 'create_request'
LIST_OWN_REQUESTS = 'list_own_requests'
LIST_ALL_REQUESTS = 'list_all_requests'
DECIDE_REQUEST = 'decide_request'
LIST_REQUESTS = 'list_requests'
VIEW_REQUEST = 'view_request'

OPERATION_ROLES = {
    CREATE_REQUEST: (ClientIdentity,),
    LIST_OWN_REQUESTS: (ClientIdentity,),
    LIST_ALL_REQUESTS: (AdminIdentity,),
    DECIDE_REQUEST: (AdminIdentity,),
    LIST_REQUESTS: (ClientIdentity, AdminIdentity),
    VIEW_REQUEST: (ClientIdentity, AdminIdentity),
}


def identity_for_user(user: User) -> Identity:
    """Build the identity matching a user's role."""
    identity_class = AdminIdentity if user.role == User.ROLE_ADMIN else ClientIdentity
    return identity_class(
        user_id=user.id,
        username=user.username,
        organization=user.organization,
    )
