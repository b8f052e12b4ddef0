"""Region code normalization.

Operators refer to regions either by canonical name (``us-west-2``) or by
three-letter airport code (``PDX``). Every lookup normalizes through this
module first so an unrecognised code fails fast instead of matching
nothing.
"""

from dataclasses import dataclass
from typing import Dict, List


class UnknownRegionError(ValueError):
    """Raised when a region name or airport code is not supported."""

    pass


@dataclass(frozen=True)
class RegionInfo:
    """Static metadata for a supported region."""

    region: str
    airport_code: str
    partition: str


_REGIONS: Dict[str, RegionInfo] = {
    info.region: info
    for info in (
        RegionInfo("us-isof-south-1", "ALE", "aws-iso-f"),
        RegionInfo("us-iso-west-1", "APA", "aws-iso"),
        RegionInfo("eu-north-1", "ARN", "aws"),
        RegionInfo("me-south-1", "BAH", "aws"),
        RegionInfo("cn-north-1", "BJS", "aws-cn"),
        RegionInfo("ap-south-1", "BOM", "aws"),
        RegionInfo("eu-west-3", "CDG", "aws"),
        RegionInfo("ap-southeast-3", "CGK", "aws"),
        RegionInfo("us-east-2", "CMH", "aws"),
        RegionInfo("af-south-1", "CPT", "aws"),
        RegionInfo("us-iso-east-1", "DCA", "aws-iso"),
        RegionInfo("eu-west-1", "DUB", "aws"),
        RegionInfo("me-central-1", "DXB", "aws"),
        RegionInfo("eu-central-1", "FRA", "aws"),
        RegionInfo("sa-east-1", "GRU", "aws"),
        RegionInfo("ap-east-1", "HKG", "aws"),
        RegionInfo("ap-south-2", "HYD", "aws"),
        RegionInfo("us-east-1", "IAD", "aws"),
        RegionInfo("ap-northeast-2", "ICN", "aws"),
        RegionInfo("ap-northeast-3", "KIX", "aws"),
        RegionInfo("us-isob-east-1", "LCK", "aws-iso-b"),
        RegionInfo("eu-west-2", "LHR", "aws"),
        RegionInfo("us-isof-east-1", "LTW", "aws-iso-f"),
        RegionInfo("ap-southeast-4", "MEL", "aws"),
        RegionInfo("eu-south-1", "MXP", "aws"),
        RegionInfo("ap-northeast-1", "NRT", "aws"),
        RegionInfo("us-gov-east-1", "OSU", "aws-us-gov"),
        RegionInfo("us-gov-west-1", "PDT", "aws-us-gov"),
        RegionInfo("us-west-2", "PDX", "aws"),
        RegionInfo("us-west-1", "SFO", "aws"),
        RegionInfo("ap-southeast-1", "SIN", "aws"),
        RegionInfo("ap-southeast-2", "SYD", "aws"),
        RegionInfo("me-west-1", "TLV", "aws"),
        RegionInfo("ca-central-1", "YUL", "aws"),
        RegionInfo("eu-south-2", "ZAZ", "aws"),
        RegionInfo("cn-northwest-1", "ZHY", "aws-cn"),
        RegionInfo("eu-central-2", "ZRH", "aws"),
    )
}

_BY_AIRPORT_CODE: Dict[str, RegionInfo] = {
    info.airport_code: info for info in _REGIONS.values()
}

OPT_IN_REGIONS = frozenset(
    [
        "ap-south-2",
        "af-south-1",
        "eu-south-1",
        "eu-south-2",
        "me-south-1",
        "me-central-1",
        "il-central-1",
        "ap-east-1",
        "ca-west-1",
        "mx-central-1",
        "ap-southeast-3",
        "ap-southeast-4",
        "eu-central-2",
        "ap-southeast-5",
    ]
)


def get_region_info(code: str) -> RegionInfo:
    """Look up region metadata by canonical name or airport code.

    Args:
        code: Region name (e.g. 'us-west-2') or airport code (e.g. 'pdx')

    Returns:
        RegionInfo for the region

    Raises:
        UnknownRegionError: When the code is not a supported region
    """
    if not isinstance(code, str) or not code.strip():
        raise UnknownRegionError(f"Not a valid region: {code!r}")

    normalized = code.strip()
    info = _REGIONS.get(normalized.lower()) or _BY_AIRPORT_CODE.get(
        normalized.upper()
    )
    if info is None:
        raise UnknownRegionError(f"Not a valid region or airport code: {code}")
    return info


def to_region_name(code: str) -> str:
    """Normalize a region code to its canonical region name.

    >>> to_region_name("pdx")
    'us-west-2'
    """
    return get_region_info(code).region


def to_airport_code(code: str) -> str:
    """Normalize a region code to its upper-case airport code.

    >>> to_airport_code("us-west-2")
    'PDX'
    """
    return get_region_info(code).airport_code


def get_partition(code: str) -> str:
    """Get the AWS partition a region belongs to."""
    return get_region_info(code).partition


def is_opt_in_region(code: str) -> bool:
    """Check whether a region must be explicitly enabled on an account."""
    return to_region_name(code) in OPT_IN_REGIONS


def all_region_names() -> List[str]:
    """List every supported canonical region name, sorted."""
    return sorted(_REGIONS)
