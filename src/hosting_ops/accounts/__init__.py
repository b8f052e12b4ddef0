"""Account resolution for the hosting ops toolkit.

Maps deployment stage, region and cell to concrete AWS accounts.
"""

from .regions import (
    UnknownRegionError,
    get_partition,
    is_opt_in_region,
    to_airport_code,
    to_region_name,
)
from .sources import (
    AccountRecord,
    AccountSource,
    AccountSourceError,
    FileCachedAccountSource,
    OrganizationsAccountSource,
    StaticAccountSource,
    build_account_source,
)
from .directory import (
    AccountDescriptor,
    AccountDirectory,
    AccountDirectoryError,
    AccountNotFoundError,
    AccountType,
    InvalidStageError,
    Stage,
)

__all__ = [
    "AccountDescriptor",
    "AccountDirectory",
    "AccountDirectoryError",
    "AccountNotFoundError",
    "AccountRecord",
    "AccountSource",
    "AccountSourceError",
    "AccountType",
    "FileCachedAccountSource",
    "InvalidStageError",
    "OrganizationsAccountSource",
    "Stage",
    "StaticAccountSource",
    "UnknownRegionError",
    "build_account_source",
    "get_partition",
    "is_opt_in_region",
    "to_airport_code",
    "to_region_name",
]
