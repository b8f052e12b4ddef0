"""Contingent authorization gate for production mutations.

Before a script assumes a mutating role in a production account, the
operator must bind a change ticket to the process and confirm it. The
gate fails closed: a missing or malformed ticket, or a declined
confirmation, raises instead of letting the script continue.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from ..core.safety import SafetyManager
from .roles import RiskLevel, get_risk_level


logger = logging.getLogger(__name__)

DEFAULT_TICKET_ENV_VAR = "OPS_CHANGE_TICKET"
DEFAULT_TICKET_PATTERN = r"^[A-Za-z][A-Za-z0-9]*-?[0-9]+$"


class ContingentAuthorizationError(Exception):
    """Raised when production access lacks an authorization context."""

    pass


@dataclass(frozen=True)
class AuthorizationContext:
    """Change ticket bound to the current process."""

    ticket: str
    resources: Tuple[str, ...]
    granted_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def covers(self, account_id: str, role_name: str) -> bool:
        """Whether this authorization covers a role in an account."""
        return role_arn(account_id, role_name) in self.resources


def role_arn(account_id: str, role_name: str) -> str:
    """Resource entry for a role in an account."""
    return f"arn:aws:iam::{account_id}:role/{role_name}"


def _as_list(value: Union[Any, Iterable[Any]]) -> List[Any]:
    """Accept a single value or an iterable of values."""
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def is_production(account: Any) -> bool:
    """Default production classifier: the account's stage is prod."""
    return getattr(account, "stage", None) == "prod"


class ContingentAuthorizationGate:
    """Requires a confirmed change ticket before production mutations."""

    def __init__(
        self,
        safety_manager: SafetyManager,
        ticket: Optional[str] = None,
        ticket_env_var: str = DEFAULT_TICKET_ENV_VAR,
        ticket_pattern: str = DEFAULT_TICKET_PATTERN,
        is_production_account: Callable[[Any], bool] = is_production,
    ) -> None:
        """Initialize contingent authorization gate.

        Args:
            safety_manager: Confirms the authorization with the operator
            ticket: Change ticket given explicitly, e.g. on the command line
            ticket_env_var: Environment variable holding the ticket otherwise
            ticket_pattern: Regex a ticket identifier must match
            is_production_account: Classifies accounts as production
        """
        self.safety_manager = safety_manager
        self.ticket = ticket
        self.ticket_env_var = ticket_env_var
        self.ticket_pattern = re.compile(ticket_pattern)
        self.is_production_account = is_production_account
        self.context: Optional[AuthorizationContext] = None

    def is_required(self, account: Any, role_name: str) -> bool:
        """Check whether assuming a role in an account needs authorization."""
        if not self.is_production_account(account):
            return False
        role_name = str(getattr(role_name, "value", role_name))
        return get_risk_level(role_name, account.stage) != RiskLevel.LOW

    def _resolve_ticket(self) -> str:
        """Find the change ticket bound to this process.

        Raises:
            ContingentAuthorizationError: When no valid ticket is available
        """
        ticket = self.ticket or os.environ.get(self.ticket_env_var)
        if not ticket or not ticket.strip():
            raise ContingentAuthorizationError(
                "A change ticket is required to continue. Pass --ticket or set "
                f"{self.ticket_env_var} and try again."
            )

        ticket = ticket.strip()
        if not self.ticket_pattern.match(ticket):
            raise ContingentAuthorizationError(
                f"Change ticket {ticket!r} does not look like a ticket identifier"
            )
        return ticket

    def preflight(
        self,
        accounts: Union[Any, Iterable[Any]],
        roles: Union[str, Iterable[str]],
    ) -> Optional[AuthorizationContext]:
        """Authorize every (account, role) pair that needs it.

        Args:
            accounts: One AccountDescriptor or several
            roles: One role name or several

        Returns:
            AuthorizationContext, or None when no pair needs authorization

        Raises:
            ContingentAuthorizationError: When authorization is missing or declined
        """
        resources = []
        for account in _as_list(accounts):
            for role in _as_list(roles):
                role_name = str(getattr(role, "value", role))
                if self.is_required(account, role_name):
                    resources.append(role_arn(account.account_id, role_name))

        if not resources:
            logger.debug("No accounts need contingent authorization")
            return None

        if self.context and all(r in self.context.resources for r in resources):
            return self.context

        ticket = self._resolve_ticket()
        logger.info(
            f"Requesting contingent authorization for roles: {', '.join(resources)}"
        )

        request = self.safety_manager.create_contingent_auth_confirmation(
            ticket, resources
        )
        if not self.safety_manager.request_confirmation(request):
            raise ContingentAuthorizationError(
                "Contingent authorization was not confirmed. Provide justification "
                "and try again."
            )

        self.context = AuthorizationContext(ticket=ticket, resources=tuple(resources))
        return self.context
