"""Unit tests for account record sources."""

import json
import os
import time

import pytest
import yaml
from unittest.mock import Mock
from botocore.exceptions import ClientError

from hosting_ops.accounts.sources import (
    AccountRecord,
    AccountSourceError,
    FileCachedAccountSource,
    OrganizationsAccountSource,
    StaticAccountSource,
    build_account_source,
)


class TestStaticAccountSource:
    """Test cases for StaticAccountSource class."""

    def test_list_accounts(self, tmp_path):
        """Test loading accounts from YAML."""
        path = tmp_path / "accounts.yaml"
        path.write_text(
            yaml.dump(
                {
                    "accounts": [
                        {"account_id": "111111111111", "email": "a@example.com"},
                        {"accountId": "222222222222", "email": " b@example.com "},
                    ]
                }
            )
        )

        records = StaticAccountSource(str(path)).list_accounts()

        assert records == [
            AccountRecord("111111111111", "a@example.com"),
            AccountRecord("222222222222", "b@example.com"),
        ]

    def test_integer_account_ids_padded(self, tmp_path):
        """Test unquoted YAML account ids keep their leading zeros."""
        path = tmp_path / "accounts.yaml"
        path.write_text("accounts:\n  - account_id: 70000000001\n    email: a@example.com\n")

        records = StaticAccountSource(str(path)).list_accounts()

        assert records[0].account_id == "070000000001"

    def test_missing_file(self, tmp_path):
        """Test a missing accounts file."""
        with pytest.raises(AccountSourceError) as exc_info:
            StaticAccountSource(str(tmp_path / "missing.yaml")).list_accounts()

        assert "Unable to read" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML."""
        path = tmp_path / "accounts.yaml"
        path.write_text("accounts: [")

        with pytest.raises(AccountSourceError) as exc_info:
            StaticAccountSource(str(path)).list_accounts()

        assert "Invalid YAML" in str(exc_info.value)

    def test_missing_accounts_list(self, tmp_path):
        """Test files without an accounts list."""
        path = tmp_path / "accounts.yaml"
        path.write_text(yaml.dump({"other": []}))

        with pytest.raises(AccountSourceError):
            StaticAccountSource(str(path)).list_accounts()

    def test_entry_missing_email(self, tmp_path):
        """Test entries must carry both fields."""
        path = tmp_path / "accounts.yaml"
        path.write_text(yaml.dump({"accounts": [{"account_id": "111111111111"}]}))

        with pytest.raises(AccountSourceError) as exc_info:
            StaticAccountSource(str(path)).list_accounts()

        assert "'account_id' and 'email'" in str(exc_info.value)


class TestOrganizationsAccountSource:
    """Test cases for OrganizationsAccountSource class."""

    @pytest.fixture
    def mock_aws_client(self):
        """Mock AWS client manager with an Organizations client."""
        aws_client = Mock()
        aws_client.get_current_region.return_value = "us-east-1"
        self.org_client = Mock()
        aws_client.get_client.return_value = self.org_client
        return aws_client

    def test_list_active_accounts(self, mock_aws_client):
        """Test only active accounts are returned across pages."""
        paginator = Mock()
        paginator.paginate.return_value = [
            {
                "Accounts": [
                    {"Id": "111111111111", "Email": "a@example.com", "Status": "ACTIVE"},
                    {"Id": "222222222222", "Email": "b@example.com", "Status": "SUSPENDED"},
                ]
            },
            {"Accounts": [{"Id": "333333333333", "Email": "c@example.com", "Status": "ACTIVE"}]},
        ]
        self.org_client.get_paginator.return_value = paginator

        records = OrganizationsAccountSource(mock_aws_client).list_accounts()

        assert [r.account_id for r in records] == ["111111111111", "333333333333"]
        self.org_client.get_paginator.assert_called_once_with("list_accounts")
        mock_aws_client.get_client.assert_called_once_with("organizations", "us-east-1")

    def test_client_error(self, mock_aws_client):
        """Test Organizations failures surface as AccountSourceError."""
        self.org_client.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}},
            "ListAccounts",
        )

        with pytest.raises(AccountSourceError) as exc_info:
            OrganizationsAccountSource(mock_aws_client).list_accounts()

        assert "Failed to list organization accounts" in str(exc_info.value)


class TestFileCachedAccountSource:
    """Test cases for FileCachedAccountSource class."""

    def test_cache_miss_then_hit(self, tmp_path, make_source):
        """Test the wrapped source is listed once while the cache is fresh."""
        inner = make_source([AccountRecord("111111111111", "a@example.com")])
        cache_path = tmp_path / "cache" / "accounts.json"
        cached = FileCachedAccountSource(inner, str(cache_path))

        first = cached.list_accounts()
        second = cached.list_accounts()

        assert first == second
        assert inner.calls == 1
        assert json.loads(cache_path.read_text()) == [
            {"account_id": "111111111111", "email": "a@example.com"}
        ]

    def test_stale_cache_refreshed(self, tmp_path, make_source):
        """Test caches older than the TTL are ignored."""
        inner = make_source([AccountRecord("111111111111", "new@example.com")])
        cache_path = tmp_path / "accounts.json"
        cache_path.write_text(
            json.dumps([{"account_id": "111111111111", "email": "old@example.com"}])
        )
        old = time.time() - 7200
        os.utime(cache_path, (old, old))

        records = FileCachedAccountSource(
            inner, str(cache_path), ttl_seconds=3600
        ).list_accounts()

        assert records[0].email == "new@example.com"
        assert inner.calls == 1

    def test_unreadable_cache_ignored(self, tmp_path, make_source):
        """Test corrupt caches fall back to the wrapped source."""
        inner = make_source([AccountRecord("111111111111", "a@example.com")])
        cache_path = tmp_path / "accounts.json"
        cache_path.write_text("{not json")

        records = FileCachedAccountSource(inner, str(cache_path)).list_accounts()

        assert len(records) == 1
        assert inner.calls == 1

    def test_malformed_entry_refreshed(self, tmp_path, make_source):
        """Test a cache entry missing required fields triggers a refresh."""
        inner = make_source([AccountRecord("111111111111", "a@example.com")])
        cache_path = tmp_path / "accounts.json"
        cache_path.write_text(json.dumps([{"account_id": "1"}]))

        records = FileCachedAccountSource(inner, str(cache_path)).list_accounts()

        assert records == [AccountRecord("111111111111", "a@example.com")]
        assert inner.calls == 1
        assert json.loads(cache_path.read_text())[0]["email"] == "a@example.com"


class TestBuildAccountSource:
    """Test cases for build_account_source."""

    def test_static(self, tmp_path):
        """Test the static source."""
        source = build_account_source(
            {"source": "static", "accounts_file": str(tmp_path / "accounts.yaml")}
        )

        assert isinstance(source, StaticAccountSource)

    def test_organizations_requires_client(self):
        """Test the organizations source needs a client manager."""
        with pytest.raises(AccountSourceError):
            build_account_source({"source": "organizations"})

    def test_organizations(self):
        """Test the organizations source."""
        source = build_account_source({"source": "organizations"}, Mock())

        assert isinstance(source, OrganizationsAccountSource)

    def test_cache_wrapping(self, tmp_path):
        """Test cache_file wraps the source."""
        source = build_account_source(
            {
                "source": "organizations",
                "cache_file": str(tmp_path / "accounts.json"),
                "cache_ttl_seconds": 60,
            },
            Mock(),
        )

        assert isinstance(source, FileCachedAccountSource)
        assert isinstance(source.source, OrganizationsAccountSource)
        assert source.ttl_seconds == 60

    def test_unknown_source(self):
        """Test unknown source types."""
        with pytest.raises(AccountSourceError):
            build_account_source({"source": "ldap"})
