"""Account directory for stage, region and cell lookups.

This module classifies the raw account listing returned by an account
source into typed account families by email naming convention and
resolves ``(account type, stage, region[, cell])`` tuples into concrete
account descriptors.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Pattern

from .regions import UnknownRegionError, to_airport_code, to_region_name
from .sources import AccountRecord, AccountSource


logger = logging.getLogger(__name__)


class AccountDirectoryError(Exception):
    """Base exception for account directory operations."""

    pass


class AccountNotFoundError(AccountDirectoryError):
    """Raised when no account is registered for a lookup tuple."""

    pass


class InvalidStageError(AccountDirectoryError, ValueError):
    """Raised when a stage name is not one of the deployment stages."""

    pass


class Stage(Enum):
    """Deployment environment tier."""

    BETA = "beta"
    GAMMA = "gamma"
    PREPROD = "preprod"
    PROD = "prod"

    @classmethod
    def parse(cls, value: Any) -> "Stage":
        """Parse a stage name case-insensitively.

        Raises:
            InvalidStageError: When the value is not a known stage
        """
        if isinstance(value, Stage):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidStageError(
                f"Invalid stage {value!r}. Expected one of "
                f"{', '.join(s.value for s in cls)}"
            )


class AccountType(Enum):
    """Families of accounts operated by the hosting team."""

    CONTROL_PLANE = "control-plane"
    INTEG_TEST = "integ-test"
    CONSOLE = "console"
    COMPUTE_CONTROL_PLANE = "compute-control-plane"
    COMPUTE_DATA_PLANE = "compute-data-plane"
    DATA_PLANE = "data-plane"
    KINESIS_CONSUMER = "kinesis-consumer"
    METERING = "metering"
    DOMAIN = "domain"
    CLOUDFORMATION = "cloudformation"

    @classmethod
    def parse(cls, value: Any) -> "AccountType":
        """Parse an account type from its value or member name."""
        if isinstance(value, AccountType):
            return value
        text = str(value).strip().lower().replace("_", "-")
        for member in cls:
            if member.value == text:
                return member
        raise AccountDirectoryError(
            f"Unknown account type {value!r}. Expected one of "
            f"{', '.join(t.value for t in cls)}"
        )


_STAGES = "beta|gamma|preprod|prod"

# {domain} is replaced with the escaped email domain from configuration
DEFAULT_PATTERNS: Dict[AccountType, str] = {
    AccountType.CONTROL_PLANE: (
        rf"^hosting-control-plane-(?P<stage>{_STAGES})(-(?P<airport>[a-z]{{3}}))?@{{domain}}$"
    ),
    AccountType.INTEG_TEST: (
        rf"^hosting-integration-test-(?P<airport>[a-z]{{3}})-(?P<stage>{_STAGES})@{{domain}}$"
    ),
    AccountType.CONSOLE: (
        rf"^hosting-(?P<stage>{_STAGES})-(?P<airport>[a-z]{{3}})-console@{{domain}}$"
    ),
    AccountType.COMPUTE_CONTROL_PLANE: (
        rf"^hosting-compute-service-(?P<stage>{_STAGES})-(?P<airport>[a-z]{{3}})@{{domain}}$"
    ),
    AccountType.COMPUTE_DATA_PLANE: (
        rf"^hosting-compute-service-(?P<stage>{_STAGES})-(?P<airport>[a-z]{{3}})"
        rf"-cell(?P<cell>\d+)@{{domain}}$"
    ),
    AccountType.DATA_PLANE: (
        rf"^hosting-dataplane-(?P<stage>{_STAGES})-(?P<airport>[a-z]{{3}})@{{domain}}$"
    ),
    AccountType.KINESIS_CONSUMER: (
        rf"^hosting-kinesis-(consumer|cnsmr)-(?P<stage>{_STAGES})-(?P<airport>[a-z]{{3}})@{{domain}}$"
    ),
    AccountType.METERING: (
        rf"^hosting-metering-(?P<stage>{_STAGES})-(?P<airport>[a-z]{{3}})@{{domain}}$"
    ),
    AccountType.DOMAIN: r"^hosting-prod-(?P<airport>[a-z]{3})-domain@{domain}$",
    AccountType.CLOUDFORMATION: (
        r"^hosting\+cfn\+(?P<stage>beta|gamma|prod)-(?P<airport>[a-z0-9]+)@{domain}$"
    ),
}

# Account types whose pattern carries no stage group
_IMPLICIT_STAGES = {AccountType.DOMAIN: Stage.PROD}

_SQUASHED_REGION = re.compile(r"^([a-z]{2})([a-z]+)(\d)$")


@dataclass(frozen=True)
class AccountDescriptor:
    """Immutable identity of one resolved AWS account."""

    account_id: str
    region: str
    stage: str
    airport_code: str
    email: str
    account_type: AccountType
    cell_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the descriptor for JSON output."""
        data = {
            "accountId": self.account_id,
            "region": self.region,
            "stage": self.stage,
            "airportCode": self.airport_code,
            "email": self.email,
            "accountType": self.account_type.value,
        }
        if self.cell_number is not None:
            data["cellNumber"] = self.cell_number
        return data


def repair_squashed_region(code: str) -> str:
    """Turn a hyphen-less region name such as 'useast1' into 'us-east-1'."""
    return _SQUASHED_REGION.sub(r"\1-\2-\3", code)


class AccountDirectory:
    """Resolves account descriptors from an account source.

    The raw listing is fetched once per directory instance and classified
    per account type on first use, so repeated lookups within one script
    run are deterministic and do not hit the source again.
    """

    def __init__(
        self,
        source: AccountSource,
        email_domain: str = "example.com",
        patterns: Optional[Dict[Any, str]] = None,
        excluded_airport_codes: Iterable[str] = ("kix",),
        beta_airport_code: str = "pdx",
        shared_domain_account: Optional[Dict[str, str]] = None,
        root_domain_account: Optional[Dict[str, str]] = None,
    ) -> None:
        """Initialize account directory.

        Args:
            source: Where raw account records come from
            email_domain: Domain every account email belongs to
            patterns: Optional per-type regex overrides, keyed by type value
            excluded_airport_codes: Airport codes not launched yet
            beta_airport_code: Home airport of control-plane beta accounts
            shared_domain_account: Account used by every non-prod domain stage
            root_domain_account: Account holding apex domains
        """
        self.source = source
        self.email_domain = email_domain
        self.excluded_airport_codes = {c.lower() for c in excluded_airport_codes}
        self.beta_airport_code = beta_airport_code.lower()
        self.shared_domain_account = shared_domain_account
        self._root_domain_account = root_domain_account
        self._patterns = self._compile_patterns(patterns or {})
        self._records: Optional[List[AccountRecord]] = None
        self._accounts: Dict[AccountType, List[AccountDescriptor]] = {}

    @classmethod
    def from_config(
        cls, directory_config: Dict[str, Any], source: AccountSource
    ) -> "AccountDirectory":
        """Build a directory from the 'directory' configuration section."""
        return cls(
            source,
            email_domain=directory_config.get("email_domain", "example.com"),
            patterns=directory_config.get("patterns"),
            excluded_airport_codes=directory_config.get(
                "excluded_airport_codes", ["kix"]
            ),
            beta_airport_code=directory_config.get("beta_airport_code", "pdx"),
            shared_domain_account=directory_config.get("shared_domain_account"),
            root_domain_account=directory_config.get("root_domain_account"),
        )

    def _compile_patterns(
        self, overrides: Dict[Any, str]
    ) -> Dict[AccountType, Pattern]:
        """Compile per-type email patterns with the configured domain."""
        templates = dict(DEFAULT_PATTERNS)
        for key, template in overrides.items():
            templates[AccountType.parse(key)] = template

        compiled = {}
        for account_type, template in templates.items():
            pattern = template.replace("{domain}", re.escape(self.email_domain))
            try:
                compiled[account_type] = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise AccountDirectoryError(
                    f"Invalid email pattern for {account_type.value}: {e}"
                )
        return compiled

    def _get_records(self) -> List[AccountRecord]:
        """Fetch raw account records once."""
        if self._records is None:
            self._records = list(self.source.list_accounts())
            logger.debug(f"Loaded {len(self._records)} account records")
        return self._records

    def _get_accounts(self, account_type: AccountType) -> List[AccountDescriptor]:
        """Classify raw records into descriptors of one account type."""
        if account_type not in self._accounts:
            accounts = [
                descriptor
                for record in self._get_records()
                for descriptor in self._classify(account_type, record)
            ]
            if account_type == AccountType.DOMAIN:
                accounts.extend(self._shared_domain_accounts(accounts))
            accounts.sort(
                key=lambda a: (a.stage, a.region, int(a.cell_number or 0), a.email)
            )
            self._accounts[account_type] = accounts
        return self._accounts[account_type]

    def _classify(
        self, account_type: AccountType, record: AccountRecord
    ) -> List[AccountDescriptor]:
        """Match one record against an account type's naming convention."""
        match = self._patterns[account_type].match(record.email)
        if match is None:
            return []

        groups = match.groupdict()
        stage_value = groups.get("stage")
        if stage_value:
            stage = Stage.parse(stage_value)
        else:
            stage = _IMPLICIT_STAGES.get(account_type, Stage.PROD)

        airport = (groups.get("airport") or "").lower()
        if not airport:
            if stage != Stage.BETA:
                logger.warning(
                    f"Skipping {record.email}: no airport code for stage {stage.value}"
                )
                return []
            airport = self.beta_airport_code

        if account_type == AccountType.CLOUDFORMATION:
            airport = repair_squashed_region(airport)

        try:
            region = to_region_name(airport)
            airport_code = to_airport_code(airport).lower()
        except UnknownRegionError:
            logger.warning(f"Skipping {record.email}: unknown region code {airport}")
            return []

        if airport_code in self.excluded_airport_codes:
            return []

        return [
            AccountDescriptor(
                account_id=record.account_id,
                region=region,
                stage=stage.value,
                airport_code=airport_code,
                email=record.email,
                account_type=account_type,
                cell_number=groups.get("cell"),
            )
        ]

    def _shared_domain_accounts(
        self, prod_accounts: List[AccountDescriptor]
    ) -> List[AccountDescriptor]:
        """Expand the shared non-prod domain account over every prod region."""
        if not self.shared_domain_account:
            return []

        shared = []
        for stage in (Stage.BETA, Stage.GAMMA, Stage.PREPROD):
            for prod_account in prod_accounts:
                shared.append(
                    AccountDescriptor(
                        account_id=str(self.shared_domain_account["account_id"]),
                        region=prod_account.region,
                        stage=stage.value,
                        airport_code=prod_account.airport_code,
                        email=self.shared_domain_account.get("email", ""),
                        account_type=AccountType.DOMAIN,
                    )
                )
        return shared

    def list_accounts(
        self,
        account_type: Any,
        stage: Optional[Any] = None,
        region: Optional[str] = None,
    ) -> List[AccountDescriptor]:
        """List registered accounts of a type, optionally filtered.

        Args:
            account_type: AccountType or its value
            stage: Optional stage filter
            region: Optional region name or airport code filter

        Returns:
            Matching account descriptors

        Raises:
            InvalidStageError: When the stage is unknown
            UnknownRegionError: When the region code is unknown
        """
        account_type = AccountType.parse(account_type)
        stage_value = Stage.parse(stage).value if stage is not None else None
        region_name = to_region_name(region) if region is not None else None

        return [
            account
            for account in self._get_accounts(account_type)
            if (stage_value is None or account.stage == stage_value)
            and (region_name is None or account.region == region_name)
        ]

    def find_account(
        self, account_type: Any, stage: Any, region: str
    ) -> AccountDescriptor:
        """Find the account registered for a stage and region.

        Args:
            account_type: AccountType or its value
            stage: Deployment stage
            region: Region name or airport code

        Returns:
            The registered account descriptor

        Raises:
            AccountNotFoundError: When no account is registered for the tuple
        """
        account_type = AccountType.parse(account_type)
        candidates = self.list_accounts(account_type, stage=stage, region=region)
        if not candidates:
            known = [a.email for a in self._get_accounts(account_type)]
            raise AccountNotFoundError(
                f"Could not find {account_type.value} account for "
                f"stage,region = {stage},{region}. Account set was {known}"
            )
        return candidates[0]

    def find_cell_account(
        self, account_type: Any, stage: Any, region: str, cell_number: Any
    ) -> AccountDescriptor:
        """Find the account of one cell in a multi-account pool.

        Raises:
            AccountNotFoundError: When no account is registered for the cell
        """
        account_type = AccountType.parse(account_type)
        try:
            cell = str(int(cell_number))
        except (TypeError, ValueError):
            raise AccountNotFoundError(
                f"Invalid cell number {cell_number!r} for {account_type.value}"
            )
        for account in self.list_accounts(account_type, stage=stage, region=region):
            if account.cell_number is not None and str(int(account.cell_number)) == cell:
                return account
        raise AccountNotFoundError(
            f"Could not find {account_type.value} account for "
            f"stage,region,cell = {stage},{region},{cell}"
        )

    def root_domain_account(self) -> AccountDescriptor:
        """Get the account holding apex domains.

        Raises:
            AccountNotFoundError: When no root domain account is configured
        """
        if not self._root_domain_account:
            raise AccountNotFoundError("No root domain account is configured")

        region = self._root_domain_account.get("region", "us-east-1")
        return AccountDescriptor(
            account_id=str(self._root_domain_account["account_id"]),
            region=to_region_name(region),
            stage=Stage.PROD.value,
            airport_code=to_airport_code(region).lower(),
            email=self._root_domain_account.get("email", ""),
            account_type=AccountType.DOMAIN,
        )
