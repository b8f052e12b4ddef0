"""Per-invocation wiring of the account resolution facade.

A script builds one OpsContext from configuration, then resolves
accounts, obtains account-scoped clients and runs the contingent
authorization preflight through it. Nothing here is a module-level
singleton; collaborators are created once and passed down.
"""

import logging
from typing import Any, Callable, Collection, Iterable, List, Optional

from .accounts.directory import AccountDescriptor, AccountDirectory
from .accounts.sources import build_account_source
from .core.aws_client import AccountClientManager, AWSClientManager
from .core.config import Configuration
from .core.errors import ErrorKind
from .core.safety import SafetyManager
from .credentials.contingent_auth import (
    DEFAULT_TICKET_ENV_VAR,
    DEFAULT_TICKET_PATTERN,
    AuthorizationContext,
    ContingentAuthorizationGate,
)
from .credentials.provider import CredentialProvider, StsCredentialBroker
from .utils.concurrency import BatchOutcome, run_best_effort, run_concurrently


logger = logging.getLogger(__name__)


class OpsContext:
    """Collaborators shared by one script invocation."""

    def __init__(
        self,
        config: Configuration,
        safety_manager: SafetyManager,
        ticket: Optional[str] = None,
        base_client: Optional[AWSClientManager] = None,
        directory: Optional[AccountDirectory] = None,
        credential_provider: Optional[CredentialProvider] = None,
    ) -> None:
        """Initialize ops context.

        Args:
            config: Loaded configuration
            safety_manager: Confirmation manager for mutating operations
            ticket: Change ticket supplied on the command line
            base_client: Operator client manager, created on first use otherwise
            directory: Account directory, built from configuration otherwise
            credential_provider: Credential provider, built from configuration otherwise
        """
        self.config = config
        self.safety_manager = safety_manager
        self._base_client = base_client
        self._directory = directory
        self._credential_provider = credential_provider
        self.gate = ContingentAuthorizationGate(
            safety_manager,
            ticket=ticket,
            ticket_env_var=config.get(
                "contingent_auth.ticket_env_var", DEFAULT_TICKET_ENV_VAR
            ),
            ticket_pattern=config.get(
                "contingent_auth.ticket_pattern", DEFAULT_TICKET_PATTERN
            ),
        )

    @classmethod
    def from_config(
        cls,
        config: Configuration,
        ticket: Optional[str] = None,
        interactive: bool = True,
    ) -> "OpsContext":
        """Build a context from configuration."""
        safety_manager = SafetyManager(
            enable_confirmations=interactive,
            countdown_seconds=config.get("safety.countdown_seconds", 5),
        )
        return cls(config, safety_manager, ticket=ticket)

    @property
    def base_client(self) -> AWSClientManager:
        """Operator client manager, validated on first use."""
        if self._base_client is None:
            self._base_client = AWSClientManager(
                profile_name=self.config.get_profile_name()
            )
        return self._base_client

    @property
    def directory(self) -> AccountDirectory:
        """Account directory built from the 'directory' section."""
        if self._directory is None:
            directory_config = self.config.get_directory_config()
            base_client = (
                self.base_client
                if directory_config.get("source") == "organizations"
                else None
            )
            source = build_account_source(directory_config, base_client)
            self._directory = AccountDirectory.from_config(directory_config, source)
        return self._directory

    @property
    def credential_provider(self) -> CredentialProvider:
        """Credential provider brokering through STS."""
        if self._credential_provider is None:
            broker = StsCredentialBroker(
                base_session=self.base_client.get_session(),
                role_arn_template=self.config.get(
                    "credentials.role_arn_template",
                    "arn:{partition}:iam::{account_id}:role/{role_name}",
                ),
                session_name=self.config.get("credentials.session_name", "hosting-ops"),
                duration_seconds=self.config.get("credentials.duration_seconds", 3600),
                region_name=self.config.get("credentials.sts_region"),
            )
            self._credential_provider = CredentialProvider(
                broker,
                allowed_roles=self.config.get_allowed_roles(),
                low_risk_account_ids=self.config.get_low_risk_account_ids(),
            )
        return self._credential_provider

    def resolve_account(
        self,
        account_type: Any,
        stage: Optional[str] = None,
        region: Optional[str] = None,
        cell_number: Optional[int] = None,
    ) -> AccountDescriptor:
        """Resolve an account, falling back to configured stage and region."""
        stage = stage or self.config.get_default_stage()
        region = region or self.config.get_default_region()
        if not stage or not region:
            raise ValueError(
                "Stage and region are required (pass them or set defaults.stage "
                "and defaults.region)"
            )

        if cell_number is not None:
            return self.directory.find_cell_account(
                account_type, stage, region, cell_number
            )
        return self.directory.find_account(account_type, stage, region)

    def clients_for(
        self, account: AccountDescriptor, role_name: Optional[str] = None
    ) -> AccountClientManager:
        """Build an account-scoped client manager."""
        role_name = role_name or self.config.get_default_role()
        role_name = str(getattr(role_name, "value", role_name))
        self.credential_provider.check_role_allowed(account.account_id, role_name)
        return AccountClientManager(account, self.credential_provider, role_name)

    def preflight(
        self, accounts: Iterable[AccountDescriptor], roles: Any
    ) -> Optional[AuthorizationContext]:
        """Run the contingent authorization preflight."""
        return self.gate.preflight(list(accounts), roles)

    @property
    def max_workers(self) -> int:
        """Fan-out limit from 'concurrency.max_workers'."""
        return self.config.get_max_workers()

    def run_concurrently(self, fn: Callable[[Any], Any], items: Iterable[Any]) -> List[Any]:
        """Apply ``fn`` to every item within the configured fan-out limit."""
        return run_concurrently(fn, items, max_workers=self.max_workers)

    def run_best_effort(
        self,
        fn: Callable[[Any], Any],
        items: Iterable[Any],
        skip_kinds: Optional[Collection[ErrorKind]] = None,
    ) -> BatchOutcome:
        """Best-effort fan-out within the configured fan-out limit."""
        return run_best_effort(
            fn, items, max_workers=self.max_workers, skip_kinds=skip_kinds
        )
