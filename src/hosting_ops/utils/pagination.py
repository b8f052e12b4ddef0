"""Pagination and batching helpers for AWS list/scan operations.

DynamoDB scans and queries go through the boto3 paginators. ``iter_pages``
covers calls that have no paginator, following continuation tokens until
the API stops returning one.
"""

import logging
from itertools import islice
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence


logger = logging.getLogger(__name__)


class PaginationError(Exception):
    """Raised when an API returns a continuation token it already returned."""

    pass


def _token_key(token: Any) -> Any:
    """Hashable form of a continuation token for repeat detection."""
    if isinstance(token, dict):
        return tuple(sorted((k, repr(v)) for k, v in token.items()))
    return repr(token)


def iter_pages(
    fetch: Callable[..., Dict[str, Any]],
    request: Optional[Dict[str, Any]] = None,
    input_token: str = "NextToken",
    output_token: str = "NextToken",
    max_pages: Optional[int] = None,
) -> Iterator[Dict[str, Any]]:
    """Yield every response page of a paginated API call.

    Args:
        fetch: Client method to call, e.g. ``client.list_queues``
        request: Parameters for the first request
        input_token: Request parameter carrying the continuation token
        output_token: Response field holding the continuation token
        max_pages: Optional cap on the number of pages fetched

    Yields:
        Raw response pages in order

    Raises:
        PaginationError: When the API repeats a continuation token
    """
    params = dict(request or {})
    seen_tokens = set()
    pages = 0

    while True:
        page = fetch(**params)
        pages += 1
        yield page

        token = page.get(output_token)
        if not token:
            return
        if max_pages is not None and pages >= max_pages:
            logger.debug(f"Stopping pagination after {pages} pages")
            return

        key = _token_key(token)
        if key in seen_tokens:
            raise PaginationError(
                f"Continuation token repeated after {pages} pages: {token!r}"
            )
        seen_tokens.add(key)
        params[input_token] = token


def iter_items(
    fetch: Callable[..., Dict[str, Any]],
    items_key: str,
    request: Optional[Dict[str, Any]] = None,
    input_token: str = "NextToken",
    output_token: str = "NextToken",
) -> Iterator[Any]:
    """Yield every item across all pages of a paginated API call.

    Args:
        fetch: Client method to call
        items_key: Response field holding the page's items
        request: Parameters for the first request
        input_token: Request parameter carrying the continuation token
        output_token: Response field holding the continuation token
    """
    for page in iter_pages(fetch, request, input_token, output_token):
        yield from page.get(items_key, [])


def _projection(attributes: Optional[Sequence[str]]) -> Dict[str, Any]:
    """Build a ProjectionExpression with placeholder names.

    Placeholders avoid clashes with DynamoDB reserved words such as
    'name' or 'status'.
    """
    if not attributes:
        return {}
    names = {f"#a{i}": attr for i, attr in enumerate(attributes)}
    return {
        "ProjectionExpression": ", ".join(names),
        "ExpressionAttributeNames": names,
    }


def scan_table(
    client: Any,
    table_name: str,
    attributes: Optional[Sequence[str]] = None,
    page_size: int = 1000,
    **scan_params: Any,
) -> Iterator[List[Dict[str, Any]]]:
    """Scan a DynamoDB table lazily, one page of items at a time.

    Args:
        client: DynamoDB client
        table_name: Table to scan, e.g. 'prod-us-west-2-App'
        attributes: Optional attributes to project
        page_size: Items evaluated per request
        **scan_params: Extra Scan parameters (FilterExpression, ...)

    Yields:
        Lists of items, one per page
    """
    request = {"TableName": table_name, **scan_params}
    request.update(_projection(attributes))

    paginator = client.get_paginator("scan")
    for page in paginator.paginate(**request, PaginationConfig={"PageSize": page_size}):
        yield page.get("Items", [])


def query_table(
    client: Any,
    table_name: str,
    key_condition: str,
    values: Dict[str, Any],
    index_name: Optional[str] = None,
    attributes: Optional[Sequence[str]] = None,
    page_size: int = 1000,
    **query_params: Any,
) -> Iterator[Dict[str, Any]]:
    """Query a DynamoDB table or index and yield every matching item.

    Args:
        client: DynamoDB client
        table_name: Table to query
        key_condition: KeyConditionExpression, e.g. 'domainId = :domainId'
        values: ExpressionAttributeValues
        index_name: Optional secondary index
        attributes: Optional attributes to project
        page_size: Items evaluated per request
    """
    request: Dict[str, Any] = {
        "TableName": table_name,
        "KeyConditionExpression": key_condition,
        "ExpressionAttributeValues": values,
        **query_params,
    }
    if index_name:
        request["IndexName"] = index_name
    request.update(_projection(attributes))

    paginator = client.get_paginator("query")
    for page in paginator.paginate(**request, PaginationConfig={"PageSize": page_size}):
        yield from page.get("Items", [])


def chunked(items: Iterable[Any], size: int) -> Iterator[List[Any]]:
    """Split an iterable into lists of at most ``size`` items.

    >>> list(chunked([1, 2, 3, 4, 5], 2))
    [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError("Chunk size must be at least 1")

    iterator = iter(items)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk
