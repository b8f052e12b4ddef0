"""Credential scoping for the hosting ops toolkit.

Exchanges account identities and role names for temporary credentials
and gates production mutations behind a change ticket.
"""

from .roles import (
    DEFAULT_ALLOWED_ROLES,
    DEFAULT_ROLE,
    RiskLevel,
    RoleDefinition,
    RoleName,
    get_role_definition,
    get_roles_for_stage,
)
from .provider import (
    AuthorizationError,
    CredentialBroker,
    CredentialBrokerError,
    CredentialError,
    CredentialProvider,
    CredentialSet,
    StsCredentialBroker,
)
from .contingent_auth import (
    AuthorizationContext,
    ContingentAuthorizationError,
    ContingentAuthorizationGate,
)

__all__ = [
    "AuthorizationContext",
    "AuthorizationError",
    "ContingentAuthorizationError",
    "ContingentAuthorizationGate",
    "CredentialBroker",
    "CredentialBrokerError",
    "CredentialError",
    "CredentialProvider",
    "CredentialSet",
    "DEFAULT_ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "RiskLevel",
    "RoleDefinition",
    "RoleName",
    "StsCredentialBroker",
    "get_role_definition",
    "get_roles_for_stage",
]
