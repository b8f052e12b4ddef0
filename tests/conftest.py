"""Shared fixtures for hosting ops tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import yaml

from hosting_ops.accounts.directory import AccountDirectory
from hosting_ops.accounts.sources import AccountRecord, AccountSource
from hosting_ops.credentials.provider import CredentialBroker, CredentialSet


ACCOUNT_RECORDS = [
    AccountRecord("111111111111", "hosting-control-plane-prod-pdx@example.com"),
    AccountRecord("111111111112", "hosting-control-plane-prod-iad@example.com"),
    AccountRecord("111111111113", "hosting-control-plane-gamma-pdx@example.com"),
    AccountRecord("111111111114", "hosting-control-plane-beta@example.com"),
    AccountRecord("111111111115", "hosting-control-plane-prod-kix@example.com"),
    AccountRecord("222222222221", "hosting-compute-service-prod-pdx@example.com"),
    AccountRecord("222222222222", "hosting-compute-service-prod-pdx-cell1@example.com"),
    AccountRecord("222222222223", "hosting-compute-service-prod-pdx-cell2@example.com"),
    AccountRecord("333333333331", "hosting-prod-pdx-domain@example.com"),
    AccountRecord("333333333332", "hosting-prod-dub-domain@example.com"),
    AccountRecord("444444444441", "hosting+cfn+prod-useast1@example.com"),
    AccountRecord("555555555551", "hosting-integration-test-pdx-beta@example.com"),
    AccountRecord("999999999999", "someone-else@example.com"),
]


class ListAccountSource(AccountSource):
    """In-memory account source counting how often it is listed."""

    def __init__(self, records):
        self.records = list(records)
        self.calls = 0

    def list_accounts(self):
        self.calls += 1
        return list(self.records)


class FakeBroker(CredentialBroker):
    """Broker minting predictable credentials."""

    def __init__(self, lifetime=timedelta(hours=1)):
        self.lifetime = lifetime
        self.calls = []

    def fetch(self, account_id, role_name):
        self.calls.append((account_id, role_name))
        return CredentialSet(
            access_key_id=f"AKIA{account_id}",
            secret_access_key="secret",
            session_token=f"token-{role_name}-{len(self.calls)}",
            expiration=datetime.now(timezone.utc) + self.lifetime,
        )


@pytest.fixture
def account_source():
    """Account source with every account family represented."""
    return ListAccountSource(ACCOUNT_RECORDS)


@pytest.fixture
def directory(account_source):
    """Account directory over the fixture records."""
    return AccountDirectory(
        account_source,
        email_domain="example.com",
        shared_domain_account={
            "account_id": "070000000001",
            "email": "hosting-team-domains@example.com",
        },
        root_domain_account={
            "account_id": "080000000001",
            "email": "hosting-domain@example.com",
        },
    )


@pytest.fixture
def fake_broker():
    """Credential broker returning one-hour credentials."""
    return FakeBroker()


@pytest.fixture
def safety_manager():
    """Mock safety manager that confirms everything."""
    manager = Mock()
    manager.request_confirmation.return_value = True
    return manager


@pytest.fixture
def config_file(tmp_path):
    """Write a configuration file and its accounts file, return the path."""
    accounts_path = tmp_path / "accounts.yaml"
    accounts_path.write_text(
        yaml.dump(
            {
                "accounts": [
                    {"account_id": r.account_id, "email": r.email}
                    for r in ACCOUNT_RECORDS
                ]
            }
        )
    )

    config_path = tmp_path / "hosting-ops.yaml"
    config_path.write_text(
        yaml.dump(
            {
                "defaults": {"stage": "prod", "region": "pdx", "role": "ReadOnly"},
                "directory": {
                    "source": "static",
                    "accounts_file": "accounts.yaml",
                    "email_domain": "example.com",
                },
                "concurrency": {"max_workers": 4},
            }
        )
    )
    return config_path


@pytest.fixture
def make_source():
    """Factory for in-memory account sources."""
    return ListAccountSource
