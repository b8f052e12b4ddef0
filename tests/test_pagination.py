"""Unit tests for pagination helpers."""

import pytest
from unittest.mock import Mock

from hosting_ops.utils.pagination import (
    PaginationError,
    chunked,
    iter_items,
    iter_pages,
    query_table,
    scan_table,
)


class TestIterPages:
    """Test cases for iter_pages and iter_items."""

    def test_follows_tokens(self):
        """Test every page is fetched until the token disappears."""
        fetch = Mock(
            side_effect=[
                {"QueueUrls": ["a", "b"], "NextToken": "t1"},
                {"QueueUrls": ["c"], "NextToken": "t2"},
                {"QueueUrls": ["d"]},
            ]
        )

        items = list(iter_items(fetch, "QueueUrls", {"QueueNamePrefix": "prod"}))

        assert items == ["a", "b", "c", "d"]
        assert fetch.call_count == 3
        fetch.assert_called_with(QueueNamePrefix="prod", NextToken="t2")

    def test_single_page(self):
        """Test a response without a token ends pagination."""
        fetch = Mock(return_value={"Items": [1]})

        pages = list(iter_pages(fetch))

        assert pages == [{"Items": [1]}]

    def test_empty_token_ends(self):
        """Test empty string tokens end pagination."""
        fetch = Mock(return_value={"Items": [], "NextToken": ""})

        assert len(list(iter_pages(fetch))) == 1

    def test_custom_token_names(self):
        """Test APIs with differently named markers."""
        fetch = Mock(
            side_effect=[
                {"DistributionList": {}, "NextMarker": "m1"},
                {"DistributionList": {}},
            ]
        )

        list(iter_pages(fetch, input_token="Marker", output_token="NextMarker"))

        fetch.assert_called_with(Marker="m1")

    def test_repeated_token(self):
        """Test a repeated continuation token is an error, not a loop."""
        fetch = Mock(return_value={"Items": [], "NextToken": "same"})

        with pytest.raises(PaginationError):
            list(iter_pages(fetch))

        assert fetch.call_count == 2

    def test_max_pages(self):
        """Test the page cap."""
        fetch = Mock(
            side_effect=[{"NextToken": "a"}, {"NextToken": "b"}, {"NextToken": "c"}]
        )

        assert len(list(iter_pages(fetch, max_pages=2))) == 2

    def test_lazy(self):
        """Test pages are fetched only as they are consumed."""
        fetch = Mock(side_effect=[{"NextToken": "a"}, {}])

        pages = iter_pages(fetch)
        next(pages)

        assert fetch.call_count == 1


class TestDynamoDbHelpers:
    """Test cases for scan_table and query_table."""

    def test_scan_table(self):
        """Test scans go through the scan paginator with a projection."""
        client = Mock()
        paginator = client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Items": [{"appId": {"S": "a"}}], "LastEvaluatedKey": {"appId": {"S": "a"}}},
            {"Items": [{"appId": {"S": "b"}}]},
        ]

        pages = list(
            scan_table(client, "prod-us-west-2-App", attributes=["appId", "status"], page_size=1)
        )

        assert pages == [[{"appId": {"S": "a"}}], [{"appId": {"S": "b"}}]]
        client.get_paginator.assert_called_once_with("scan")
        paginator.paginate.assert_called_once_with(
            TableName="prod-us-west-2-App",
            ProjectionExpression="#a0, #a1",
            ExpressionAttributeNames={"#a0": "appId", "#a1": "status"},
            PaginationConfig={"PageSize": 1},
        )

    def test_scan_table_is_lazy(self):
        """Test no request is made until the first page is consumed."""
        client = Mock()

        pages = scan_table(client, "prod-us-west-2-App")

        client.get_paginator.assert_not_called()
        client.get_paginator.return_value.paginate.return_value = [{"Items": []}]
        assert list(pages) == [[]]

    def test_query_table(self):
        """Test queries on an index yield items across pages."""
        client = Mock()
        paginator = client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Items": [1, 2], "LastEvaluatedKey": {"k": 1}},
            {"Items": [3]},
        ]

        items = list(
            query_table(
                client,
                "prod-us-west-2-Domain",
                "domainName = :domainName",
                {":domainName": {"S": "example.com"}},
                index_name="domainName-index",
            )
        )

        assert items == [1, 2, 3]
        client.get_paginator.assert_called_once_with("query")
        kwargs = paginator.paginate.call_args.kwargs
        assert kwargs["IndexName"] == "domainName-index"
        assert kwargs["PaginationConfig"] == {"PageSize": 1000}
        assert "ProjectionExpression" not in kwargs


class TestChunked:
    """Test cases for chunked."""

    def test_chunked(self):
        """Test splitting into batches."""
        assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]

    def test_chunked_empty(self):
        """Test empty input."""
        assert list(chunked([], 25)) == []

    def test_chunked_invalid_size(self):
        """Test the batch size must be positive."""
        with pytest.raises(ValueError):
            list(chunked([1], 0))
