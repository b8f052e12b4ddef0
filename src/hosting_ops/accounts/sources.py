"""Account record sources for the account directory.

A source returns the raw ``(account_id, email)`` listing the directory
classifies. Records can come from a YAML file bundled with the checkout,
from AWS Organizations, or from a JSON file cache in front of either.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from botocore.exceptions import ClientError


logger = logging.getLogger(__name__)


class AccountSourceError(Exception):
    """Raised when account records cannot be loaded."""

    pass


@dataclass(frozen=True)
class AccountRecord:
    """Raw account entry as listed by the account directory service."""

    account_id: str
    email: str


def _to_record(entry: Any, origin: str) -> AccountRecord:
    """Build an AccountRecord from a mapping, validating required keys."""
    if not isinstance(entry, dict):
        raise AccountSourceError(f"Invalid account entry in {origin}: {entry!r}")

    account_id = entry.get("account_id") or entry.get("accountId")
    email = entry.get("email")
    if not account_id or not email:
        raise AccountSourceError(
            f"Account entry in {origin} needs 'account_id' and 'email': {entry!r}"
        )

    # YAML turns unquoted account ids into integers and drops leading zeros
    account_id = str(account_id).zfill(12)
    return AccountRecord(account_id=account_id, email=str(email).strip())


class AccountSource(ABC):
    """Base class for account record sources."""

    @abstractmethod
    def list_accounts(self) -> List[AccountRecord]:
        """List every known account record."""
        pass


class StaticAccountSource(AccountSource):
    """Account records read from a YAML file."""

    def __init__(self, path: str) -> None:
        """Initialize static source.

        Args:
            path: Path to a YAML file with an 'accounts' list
        """
        self.path = Path(path)

    def list_accounts(self) -> List[AccountRecord]:
        """Load account records from the YAML file.

        Raises:
            AccountSourceError: When the file is missing or malformed
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise AccountSourceError(f"Invalid YAML in accounts file {self.path}: {e}")
        except IOError as e:
            raise AccountSourceError(f"Unable to read accounts file {self.path}: {e}")

        entries = data.get("accounts") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise AccountSourceError(
                f"Accounts file {self.path} must contain an 'accounts' list"
            )

        return [_to_record(entry, str(self.path)) for entry in entries]


class OrganizationsAccountSource(AccountSource):
    """Account records listed from AWS Organizations.

    Only ACTIVE accounts are returned; suspended and pending-closure
    accounts never resolve.
    """

    def __init__(self, aws_client: Any) -> None:
        """Initialize Organizations source.

        Args:
            aws_client: AWSClientManager for the organization management account
        """
        self.aws_client = aws_client
        self._org_client = None

    def _get_client(self):
        """Get Organizations client with caching.

        Returns:
            Configured Organizations client
        """
        if self._org_client is None:
            self._org_client = self.aws_client.get_client(
                "organizations", self.aws_client.get_current_region()
            )
        return self._org_client

    def list_accounts(self) -> List[AccountRecord]:
        """List active accounts across every page of ListAccounts.

        Raises:
            AccountSourceError: When the organization cannot be listed
        """
        records = []
        try:
            paginator = self._get_client().get_paginator("list_accounts")
            for page in paginator.paginate():
                for account in page.get("Accounts", []):
                    if account.get("Status", "ACTIVE") != "ACTIVE":
                        continue
                    records.append(
                        AccountRecord(account_id=account["Id"], email=account["Email"])
                    )
        except ClientError as e:
            raise AccountSourceError(f"Failed to list organization accounts: {e}")

        logger.info(f"Listed {len(records)} active accounts from Organizations")
        return records


class FileCachedAccountSource(AccountSource):
    """JSON file cache in front of another account source."""

    def __init__(
        self,
        source: AccountSource,
        cache_path: str,
        ttl_seconds: int = 86400,
    ) -> None:
        """Initialize cached source.

        Args:
            source: Source to refresh from when the cache is stale
            cache_path: JSON cache file location
            ttl_seconds: Maximum cache age before refreshing
        """
        self.source = source
        self.cache_path = Path(cache_path).expanduser()
        self.ttl_seconds = ttl_seconds

    def _read_cache(self) -> Optional[List[AccountRecord]]:
        """Read the cache file if it exists and is fresh."""
        if not self.cache_path.exists():
            return None

        age = time.time() - self.cache_path.stat().st_mtime
        if age > self.ttl_seconds:
            logger.debug(f"Account cache {self.cache_path} is stale ({age:.0f}s)")
            return None

        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable account cache {self.cache_path}: {e}")
            return None

        if not isinstance(entries, list):
            logger.warning(f"Ignoring malformed account cache {self.cache_path}")
            return None

        try:
            return [_to_record(entry, str(self.cache_path)) for entry in entries]
        except AccountSourceError as e:
            logger.warning(f"Ignoring malformed account cache {self.cache_path}: {e}")
            return None

    def _write_cache(self, records: List[AccountRecord]) -> None:
        """Persist records to the cache file."""
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.cache_path, "w", encoding="utf-8") as f:
            json.dump([asdict(r) for r in records], f, indent=2)

    def list_accounts(self) -> List[AccountRecord]:
        """Return cached records, refreshing from the wrapped source when stale."""
        cached = self._read_cache()
        if cached is not None:
            return cached

        records = self.source.list_accounts()
        self._write_cache(records)
        return records


def build_account_source(
    directory_config: Dict[str, Any], aws_client: Any = None
) -> AccountSource:
    """Create the account source described by the 'directory' config section.

    Args:
        directory_config: Directory configuration mapping
        aws_client: AWSClientManager, required for the organizations source

    Returns:
        Configured AccountSource

    Raises:
        AccountSourceError: When the source cannot be built
    """
    source_type = directory_config.get("source")
    if source_type == "static":
        source: AccountSource = StaticAccountSource(directory_config["accounts_file"])
    elif source_type == "organizations":
        if aws_client is None:
            raise AccountSourceError(
                "The organizations account source needs AWS credentials"
            )
        source = OrganizationsAccountSource(aws_client)
    else:
        raise AccountSourceError(f"Unknown account source: {source_type}")

    cache_file = directory_config.get("cache_file")
    if cache_file:
        source = FileCachedAccountSource(
            source,
            cache_file,
            ttl_seconds=directory_config.get("cache_ttl_seconds", 86400),
        )
    return source
