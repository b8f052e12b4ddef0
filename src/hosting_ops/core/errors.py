"""Typed classification of AWS service errors.

Scripts used to discriminate AWS failures by matching exception names
inline. This module maps botocore ``ClientError`` codes to a small set of
error kinds once, at the client-wrapper boundary, so callers can branch
on ``ErrorKind`` or catch a specific exception class instead.
"""

from enum import Enum
from typing import Dict, Optional, Type

from botocore.exceptions import ClientError


class ErrorKind(Enum):
    """Coarse classification of an AWS service failure."""

    THROTTLING = "THROTTLING"
    NOT_FOUND = "NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    SERVICE = "SERVICE"


_THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestThrottled",
    "RequestThrottledException",
    "TooManyRequestsException",
    "ProvisionedThroughputExceededException",
    "RequestLimitExceeded",
    "SlowDown",
    "PriorRequestNotComplete",
}

_NOT_FOUND_CODES = {
    "ResourceNotFoundException",
    "NoSuchEntity",
    "NoSuchBucket",
    "NoSuchKey",
    "NoSuchDistribution",
    "NoSuchHostedZone",
    "RepositoryNotFoundException",
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
    "NotFoundException",
}

_ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "UnauthorizedException",
    "AuthorizationError",
}

_EXPIRED_TOKEN_CODES = {
    "ExpiredToken",
    "ExpiredTokenException",
    "RequestExpired",
}

_VALIDATION_CODES = {
    "ValidationException",
    "ValidationError",
    "InvalidParameterValue",
    "InvalidParameterException",
    "InvalidArgument",
    "InvalidInput",
}

_CONFLICT_CODES = {
    "ConditionalCheckFailedException",
    "TransactionConflictException",
    "PreconditionFailed",
    "ConflictException",
    "ResourceInUseException",
    "DistributionNotDisabled",
}


class AwsServiceError(Exception):
    """An AWS API call failed.

    Attributes:
        kind: Classified error kind
        code: Raw AWS error code
        operation: Name of the failed operation
    """

    kind = ErrorKind.SERVICE

    def __init__(self, message: str, code: str = "", operation: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.operation = operation


class ThrottlingError(AwsServiceError):
    """The request was throttled by the service."""

    kind = ErrorKind.THROTTLING


class ResourceNotFoundError(AwsServiceError):
    """The requested resource does not exist."""

    kind = ErrorKind.NOT_FOUND


class AccessDeniedError(AwsServiceError):
    """The scoped credentials lack permission for the call."""

    kind = ErrorKind.ACCESS_DENIED


class ExpiredTokenError(AwsServiceError):
    """Credentials were used past their expiration."""

    kind = ErrorKind.EXPIRED_TOKEN


class InvalidRequestError(AwsServiceError):
    """The service rejected the request parameters."""

    kind = ErrorKind.VALIDATION


class ConflictError(AwsServiceError):
    """A precondition or concurrent modification check failed."""

    kind = ErrorKind.CONFLICT


_ERROR_CLASSES: Dict[ErrorKind, Type[AwsServiceError]] = {
    ErrorKind.THROTTLING: ThrottlingError,
    ErrorKind.NOT_FOUND: ResourceNotFoundError,
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.EXPIRED_TOKEN: ExpiredTokenError,
    ErrorKind.VALIDATION: InvalidRequestError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.SERVICE: AwsServiceError,
}


def classify_code(code: str) -> ErrorKind:
    """Classify a raw AWS error code.

    Args:
        code: Error code from ``response['Error']['Code']``

    Returns:
        Matching ErrorKind, SERVICE when the code is not recognised
    """
    if code in _THROTTLING_CODES:
        return ErrorKind.THROTTLING
    if code in _NOT_FOUND_CODES or code.startswith("NoSuch") or code.endswith(
        "NotFoundException"
    ):
        return ErrorKind.NOT_FOUND
    if code in _ACCESS_DENIED_CODES:
        return ErrorKind.ACCESS_DENIED
    if code in _EXPIRED_TOKEN_CODES:
        return ErrorKind.EXPIRED_TOKEN
    if code in _VALIDATION_CODES:
        return ErrorKind.VALIDATION
    if code in _CONFLICT_CODES:
        return ErrorKind.CONFLICT
    return ErrorKind.SERVICE


def classify_error(error: BaseException) -> Optional[ErrorKind]:
    """Classify an exception raised by an AWS call.

    Args:
        error: Exception to classify

    Returns:
        ErrorKind for AWS errors, None for anything else
    """
    if isinstance(error, AwsServiceError):
        return error.kind
    if isinstance(error, ClientError):
        return classify_code(error.response.get("Error", {}).get("Code", ""))
    return None


def translate_client_error(error: ClientError) -> AwsServiceError:
    """Convert a botocore ClientError into a typed AwsServiceError.

    Args:
        error: Error raised by a boto3 client

    Returns:
        AwsServiceError subclass matching the error code
    """
    details = error.response.get("Error", {})
    code = details.get("Code", "")
    kind = classify_code(code)
    translated = _ERROR_CLASSES[kind](
        str(error), code=code, operation=error.operation_name or ""
    )
    translated.__cause__ = error
    return translated
