"""Centralized AWS client management with session handling.

This module provides the operator's base session, used to reach the
credential broker and the organization, and account-scoped client
managers built once per script invocation and passed down explicitly.
"""

import logging
from typing import Any, Dict, Optional
import boto3
from botocore.config import Config
from botocore.exceptions import (
    NoCredentialsError,
    ClientError,
    ProfileNotFound,
)

from .errors import translate_client_error


logger = logging.getLogger(__name__)

DEFAULT_RETRY_CONFIG = Config(retries={"max_attempts": 10, "mode": "standard"})


class AWSClientManager:
    """Centralized AWS client management for the operator's own identity.

    This class provides a centralized way to manage AWS clients across
    different regions while maintaining session consistency and proper
    error handling.
    """

    def __init__(
        self, profile_name: Optional[str] = None, validate: bool = True
    ) -> None:
        """Initialize AWS client manager.

        Args:
            profile_name: Optional AWS profile name for credentials
            validate: Whether to verify credentials with GetCallerIdentity

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._profile_name = profile_name
        if validate:
            self._validate_credentials()

    def _validate_credentials(self) -> None:
        """Validate AWS credentials are available and working.

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        try:
            session = self.get_session()
            sts_client = session.client("sts")
            sts_client.get_caller_identity()
        except NoCredentialsError:
            raise NoCredentialsError()
        except ProfileNotFound:
            raise ProfileNotFound(profile=self._profile_name)
        except ClientError as e:
            if e.response["Error"]["Code"] == "InvalidUserID.NotFound":
                raise NoCredentialsError(
                    "AWS credentials are invalid or expired. "
                    "Please update your credentials."
                )
            raise

    def get_session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(profile_name=self._profile_name)
            else:
                self._session = boto3.Session()
        return self._session

    def get_client(self, service_name: str, region_name: str) -> Any:
        """Get AWS service client for specified region.

        Args:
            service_name: AWS service name (e.g., 'organizations', 'sts')
            region_name: AWS region name (e.g., 'us-east-1')

        Returns:
            Configured boto3 client for the service and region
        """
        client_key = f"{service_name}_{region_name}"

        if client_key not in self._clients:
            session = self.get_session()
            self._clients[client_key] = session.client(
                service_name, region_name=region_name
            )

        return self._clients[client_key]

    def get_current_region(self) -> str:
        """Get current AWS region from session.

        Returns:
            Current AWS region name
        """
        session = self.get_session()
        return session.region_name or "us-east-1"

    def clear_cache(self) -> None:
        """Clear cached clients to force recreation."""
        self._clients.clear()


class AccountClientManager:
    """AWS clients scoped to one resolved account and role.

    Construct once per script invocation and pass it to whatever needs
    clients for that account; clients are cached per service and region.
    """

    def __init__(
        self,
        account: Any,
        credential_provider: Any,
        role_name: str = "ReadOnly",
        client_config: Optional[Config] = None,
    ) -> None:
        """Initialize account client manager.

        Args:
            account: AccountDescriptor of the target account
            credential_provider: CredentialProvider minting scoped credentials
            role_name: Role to assume in the account
            client_config: botocore Config, standard retries by default
        """
        self.account = account
        self.role_name = str(getattr(role_name, "value", role_name))
        self._credential_provider = credential_provider
        self._client_config = client_config or DEFAULT_RETRY_CONFIG
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}

    def get_session(self) -> boto3.Session:
        """Get or create the account-scoped boto3 session."""
        if self._session is None:
            self._session = self._credential_provider.create_session(
                self.account, self.role_name
            )
        return self._session

    def get_client(self, service_name: str, region_name: Optional[str] = None) -> Any:
        """Get a client for a service in the account.

        Args:
            service_name: AWS service name (e.g., 'dynamodb', 'cloudfront')
            region_name: Region override, the account's region by default

        Returns:
            Configured boto3 client
        """
        region_name = region_name or self.account.region
        client_key = f"{service_name}_{region_name}"

        if client_key not in self._clients:
            self._clients[client_key] = self.get_session().client(
                service_name, region_name=region_name, config=self._client_config
            )

        return self._clients[client_key]

    def call(
        self,
        service_name: str,
        operation: str,
        region_name: Optional[str] = None,
        **params: Any,
    ) -> Dict[str, Any]:
        """Invoke an API operation, raising typed errors on failure.

        Args:
            service_name: AWS service name
            operation: Client method name (e.g., 'describe_table')
            region_name: Region override
            **params: Operation parameters

        Returns:
            Operation response

        Raises:
            AwsServiceError: Typed translation of the botocore ClientError
        """
        client = self.get_client(service_name, region_name)
        try:
            return getattr(client, operation)(**params)
        except ClientError as e:
            translated = translate_client_error(e)
            logger.debug(
                f"{service_name}.{operation} failed in {self.account.account_id}: "
                f"{translated.kind.value} ({translated.code})"
            )
            raise translated from e

    def get_caller_identity(self) -> Dict[str, Any]:
        """Get the identity the scoped credentials resolve to."""
        return self.call("sts", "get_caller_identity")

    def clear_cache(self) -> None:
        """Clear cached clients to force recreation."""
        self._clients.clear()
