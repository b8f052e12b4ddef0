"""Scoped temporary credentials for hosting accounts.

The provider exchanges an account id and role name for short-lived
credentials through a federation broker and hands SDK sessions a
callable they invoke lazily whenever a request needs signing.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import boto3
from botocore.credentials import DeferredRefreshableCredentials
from botocore.exceptions import ClientError, NoCredentialsError
from botocore.session import get_session

from ..accounts.regions import get_partition
from ..core.errors import ExpiredTokenError
from .roles import DEFAULT_ALLOWED_ROLES, DEFAULT_ROLE


logger = logging.getLogger(__name__)


class CredentialError(Exception):
    """Base exception for credential operations."""

    pass


class AuthorizationError(CredentialError):
    """Raised when the caller may not assume the requested role."""

    pass


class CredentialBrokerError(CredentialError):
    """Raised when the federation broker cannot be reached."""

    pass


BROKER_FAILURE_HINT = (
    "Failed to get credentials from the federation broker. Make sure your "
    "operator credentials are valid and refreshed before running scripts."
)


@dataclass(frozen=True)
class CredentialSet:
    """Time-limited AWS credentials."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime

    def is_expired(self, now: Optional[datetime] = None, margin_seconds: int = 0) -> bool:
        """Check whether the credentials are (about to be) expired."""
        now = now or datetime.now(timezone.utc)
        return self.expiration - timedelta(seconds=margin_seconds) <= now

    def to_metadata(self) -> Dict[str, str]:
        """Convert to the metadata format botocore refreshers return."""
        return {
            "access_key": self.access_key_id,
            "secret_key": self.secret_access_key,
            "token": self.session_token,
            "expiry_time": self.expiration.isoformat(),
        }


class CredentialBroker(ABC):
    """Federation broker minting credentials for (account, role)."""

    @abstractmethod
    def fetch(self, account_id: str, role_name: str) -> CredentialSet:
        """Mint credentials for a role in an account."""
        pass


class StsCredentialBroker(CredentialBroker):
    """Broker assuming roles through STS from the operator's base session."""

    def __init__(
        self,
        base_session: Any = None,
        role_arn_template: str = "arn:{partition}:iam::{account_id}:role/{role_name}",
        session_name: str = "hosting-ops",
        duration_seconds: int = 3600,
        region_name: Optional[str] = None,
    ) -> None:
        """Initialize STS broker.

        Args:
            base_session: boto3 session holding the operator's credentials
            role_arn_template: Format string for the role ARN
            session_name: RoleSessionName recorded in CloudTrail
            duration_seconds: Requested credential lifetime
            region_name: Region of the STS endpoint
        """
        self._base_session = base_session
        self.role_arn_template = role_arn_template
        self.session_name = session_name
        self.duration_seconds = duration_seconds
        self.region_name = region_name
        self._sts_client = None

    def _get_client(self):
        """Get STS client with caching."""
        if self._sts_client is None:
            session = self._base_session or boto3.Session()
            self._sts_client = session.client("sts", region_name=self.region_name)
        return self._sts_client

    def role_arn(self, account_id: str, role_name: str) -> str:
        """Build the ARN of a role in an account."""
        partition = get_partition(self.region_name) if self.region_name else "aws"
        return self.role_arn_template.format(
            partition=partition, account_id=account_id, role_name=role_name
        )

    def fetch(self, account_id: str, role_name: str) -> CredentialSet:
        """Assume the role and return its temporary credentials.

        Raises:
            AuthorizationError: When the operator may not assume the role
            ExpiredTokenError: When the operator's own credentials expired
            CredentialBrokerError: When no operator credentials exist
        """
        try:
            response = self._get_client().assume_role(
                RoleArn=self.role_arn(account_id, role_name),
                RoleSessionName=self.session_name,
                DurationSeconds=self.duration_seconds,
            )
        except NoCredentialsError as e:
            logger.error(BROKER_FAILURE_HINT)
            raise CredentialBrokerError(f"{BROKER_FAILURE_HINT} ({e})")
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("AccessDenied", "AccessDeniedException"):
                raise AuthorizationError(
                    f"Not authorized to assume {role_name} in {account_id}: {e}"
                )
            if error_code in ("ExpiredToken", "ExpiredTokenException"):
                raise ExpiredTokenError(
                    f"Operator credentials expired, refresh them and retry: {e}",
                    code=error_code,
                    operation="AssumeRole",
                )
            raise

        credentials = response["Credentials"]
        expiration = credentials["Expiration"]
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        return CredentialSet(
            access_key_id=credentials["AccessKeyId"],
            secret_access_key=credentials["SecretAccessKey"],
            session_token=credentials["SessionToken"],
            expiration=expiration,
        )


class CredentialProvider:
    """Hands out scoped credentials for hosting accounts.

    Credentials are kept in memory per (account, role) and returned only
    while unexpired; nothing outlives the process.
    """

    def __init__(
        self,
        broker: CredentialBroker,
        allowed_roles: Optional[Iterable[str]] = None,
        low_risk_account_ids: Iterable[str] = (),
        refresh_margin_seconds: int = 300,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """Initialize credential provider.

        Args:
            broker: Federation broker minting credentials
            allowed_roles: Roles available for every account
            low_risk_account_ids: Accounts where any role may be assumed
            refresh_margin_seconds: Refresh credentials this long before expiry
            clock: Time source returning aware datetimes
        """
        self.broker = broker
        self.allowed_roles = set(
            allowed_roles if allowed_roles is not None else DEFAULT_ALLOWED_ROLES
        )
        self.low_risk_account_ids = {str(a) for a in low_risk_account_ids}
        self.refresh_margin_seconds = refresh_margin_seconds
        self._clock = clock
        self._cache: Dict[Tuple[str, str], CredentialSet] = {}
        self._lock = threading.Lock()

    def check_role_allowed(self, account_id: str, role_name: str) -> None:
        """Refuse high-risk roles outside low-risk accounts.

        Raises:
            AuthorizationError: When the role may not be handed out
        """
        if account_id in self.low_risk_account_ids:
            return
        if role_name not in self.allowed_roles:
            raise AuthorizationError(
                f"Refusing to provide credentials for role {role_name}. "
                f"Consider using one of {sorted(self.allowed_roles)} instead"
            )

    def get_credentials(
        self, account_id: str, role_name: str = DEFAULT_ROLE
    ) -> CredentialSet:
        """Get unexpired credentials for a role in an account.

        Args:
            account_id: Target AWS account id
            role_name: Role to assume, ReadOnly by default

        Returns:
            CredentialSet valid for at least the refresh margin

        Raises:
            AuthorizationError: When the role is refused or denied
            ExpiredTokenError: When the broker returns expired credentials
        """
        account_id = str(account_id)
        role_name = str(getattr(role_name, "value", role_name))
        self.check_role_allowed(account_id, role_name)

        key = (account_id, role_name)
        now = self._clock()
        with self._lock:
            cached = self._cache.get(key)
            if cached and not cached.is_expired(now, self.refresh_margin_seconds):
                return cached

        logger.debug(f"Requesting {role_name} credentials for {account_id}")
        credentials = self.broker.fetch(account_id, role_name)
        if credentials.is_expired(self._clock()):
            raise ExpiredTokenError(
                f"Broker returned expired credentials for {role_name} in {account_id}",
                code="ExpiredToken",
            )

        with self._lock:
            self._cache[key] = credentials
        return credentials

    def provider_for(
        self, account_id: str, role_name: str = DEFAULT_ROLE
    ) -> Callable[[], CredentialSet]:
        """Build a zero-argument credentials callable for SDK clients.

        The role is checked up front so a refused role fails before any
        client is built.
        """
        account_id = str(account_id)
        role_name = str(getattr(role_name, "value", role_name))
        self.check_role_allowed(account_id, role_name)

        def provide() -> CredentialSet:
            return self.get_credentials(account_id, role_name)

        return provide

    def create_session(
        self, account: Any, role_name: str = DEFAULT_ROLE, region_name: Optional[str] = None
    ) -> boto3.Session:
        """Create a boto3 session scoped to an account and role.

        Credentials are fetched on first use and refreshed by botocore
        whenever they approach expiration.

        Args:
            account: AccountDescriptor of the target account
            role_name: Role to assume
            region_name: Region override, the account's region by default

        Returns:
            boto3 Session using deferred refreshable credentials
        """
        provide = self.provider_for(account.account_id, role_name)
        botocore_session = get_session()
        credentials = DeferredRefreshableCredentials(
            refresh_using=lambda: provide().to_metadata(),
            method="hosting-ops-broker",
        )
        setattr(botocore_session, "_credentials", credentials)
        return boto3.Session(
            botocore_session=botocore_session,
            region_name=region_name or account.region,
        )

    def clear_cache(self) -> None:
        """Forget every cached credential set."""
        with self._lock:
            self._cache.clear()
