"""Unit tests for the account directory."""

import pytest

from hosting_ops.accounts.directory import (
    AccountDirectory,
    AccountDirectoryError,
    AccountNotFoundError,
    AccountType,
    InvalidStageError,
    Stage,
    repair_squashed_region,
)
from hosting_ops.accounts.regions import UnknownRegionError
from hosting_ops.accounts.sources import AccountRecord


class TestStageAndType:
    """Test cases for Stage and AccountType parsing."""

    def test_stage_parse(self):
        """Test stage parsing is case-insensitive."""
        assert Stage.parse("PROD") is Stage.PROD
        assert Stage.parse(Stage.BETA) is Stage.BETA

    def test_stage_parse_invalid(self):
        """Test unknown stages are rejected."""
        with pytest.raises(InvalidStageError) as exc_info:
            Stage.parse("staging")

        assert "beta, gamma, preprod, prod" in str(exc_info.value)

    def test_account_type_parse(self):
        """Test account types parse from values and underscored names."""
        assert AccountType.parse("control-plane") is AccountType.CONTROL_PLANE
        assert AccountType.parse("compute_data_plane") is AccountType.COMPUTE_DATA_PLANE

    def test_account_type_parse_invalid(self):
        """Test unknown account types are rejected."""
        with pytest.raises(AccountDirectoryError):
            AccountType.parse("billing")

    def test_repair_squashed_region(self):
        """Test hyphen-less region names are repaired."""
        assert repair_squashed_region("useast1") == "us-east-1"
        assert repair_squashed_region("pdx") == "pdx"


class TestFindAccount:
    """Test cases for resolving one account."""

    def test_find_prod_pdx(self, directory):
        """Test prod/pdx resolves to the us-west-2 account."""
        account = directory.find_account("control-plane", "prod", "pdx")

        assert account.account_id == "111111111111"
        assert account.region == "us-west-2"
        assert account.airport_code == "pdx"
        assert account.stage == "prod"
        assert account.account_type is AccountType.CONTROL_PLANE

    def test_find_by_region_name(self, directory):
        """Test canonical region names resolve the same account."""
        by_airport = directory.find_account(AccountType.CONTROL_PLANE, Stage.PROD, "IAD")
        by_region = directory.find_account("control-plane", "prod", "us-east-1")

        assert by_airport == by_region
        assert by_region.account_id == "111111111112"

    def test_beta_without_airport_defaults_to_pdx(self, directory):
        """Test beta control-plane accounts carry the beta home region."""
        account = directory.find_account("control-plane", "beta", "pdx")

        assert account.account_id == "111111111114"
        assert account.region == "us-west-2"

    def test_excluded_airport_code(self, directory):
        """Test accounts in excluded regions never resolve."""
        with pytest.raises(AccountNotFoundError):
            directory.find_account("control-plane", "prod", "kix")

    def test_not_registered(self, directory):
        """Test an unregistered tuple raises with the known account set."""
        with pytest.raises(AccountNotFoundError) as exc_info:
            directory.find_account("control-plane", "gamma", "iad")

        message = str(exc_info.value)
        assert "stage,region = gamma,iad" in message
        assert "hosting-control-plane-prod-pdx@example.com" in message

    def test_unknown_region_fails_fast(self, directory):
        """Test an unknown region is rejected rather than matching nothing."""
        with pytest.raises(UnknownRegionError):
            directory.find_account("control-plane", "prod", "xyz")

    def test_invalid_stage_fails_fast(self, directory):
        """Test an unknown stage is rejected."""
        with pytest.raises(InvalidStageError):
            directory.find_account("control-plane", "qa", "pdx")

    def test_cloudformation_squashed_region(self, directory):
        """Test CloudFormation account emails with squashed region names."""
        account = directory.find_account("cloudformation", "prod", "iad")

        assert account.account_id == "444444444441"
        assert account.region == "us-east-1"
        assert account.airport_code == "iad"

    def test_integ_test_account(self, directory):
        """Test integration test accounts place the stage last."""
        account = directory.find_account("integ-test", "beta", "pdx")

        assert account.account_id == "555555555551"

    def test_results_are_deterministic(self, directory, account_source):
        """Test repeated lookups return equal descriptors from one listing."""
        first = directory.find_account("control-plane", "prod", "pdx")
        second = directory.find_account("control-plane", "prod", "pdx")
        directory.find_account("domain", "prod", "dub")

        assert first == second
        assert account_source.calls == 1


class TestCellAccounts:
    """Test cases for cell account pools."""

    def test_find_cell_account(self, directory):
        """Test cell accounts resolve by number."""
        account = directory.find_cell_account("compute-data-plane", "prod", "pdx", 2)

        assert account.account_id == "222222222223"
        assert account.cell_number == "2"

    def test_cell_accounts_sorted(self, directory):
        """Test cell pools list in cell order."""
        accounts = directory.list_accounts("compute-data-plane", stage="prod")

        assert [a.cell_number for a in accounts] == ["1", "2"]

    def test_cell_not_found(self, directory):
        """Test a missing cell raises."""
        with pytest.raises(AccountNotFoundError) as exc_info:
            directory.find_cell_account("compute-data-plane", "prod", "pdx", 7)

        assert "7" in str(exc_info.value)

    def test_non_numeric_cell(self, directory):
        """Test a cell number that is not a number raises the directory error."""
        with pytest.raises(AccountNotFoundError) as exc_info:
            directory.find_cell_account("compute-data-plane", "prod", "pdx", "two")

        assert "Invalid cell number 'two'" in str(exc_info.value)

    def test_cell_and_service_accounts_kept_apart(self, directory):
        """Test the cell suffix keeps accounts out of the service family."""
        accounts = directory.list_accounts("compute-control-plane")

        assert [a.account_id for a in accounts] == ["222222222221"]


class TestDomainAccounts:
    """Test cases for domain accounts."""

    def test_prod_domain_account(self, directory):
        """Test prod domain accounts resolve per region."""
        account = directory.find_account("domain", "prod", "dub")

        assert account.account_id == "333333333332"
        assert account.region == "eu-west-1"

    @pytest.mark.parametrize("stage", ["beta", "gamma", "preprod"])
    def test_non_prod_uses_shared_account(self, directory, stage):
        """Test non-prod stages resolve to the shared domain account."""
        account = directory.find_account("domain", stage, "pdx")

        assert account.account_id == "070000000001"
        assert account.stage == stage
        assert account.region == "us-west-2"

    def test_shared_account_only_in_prod_regions(self, directory):
        """Test the shared account covers only regions with a prod account."""
        with pytest.raises(AccountNotFoundError):
            directory.find_account("domain", "gamma", "iad")

    def test_without_shared_account(self, account_source):
        """Test non-prod domain lookups fail when nothing is shared."""
        directory = AccountDirectory(account_source)

        with pytest.raises(AccountNotFoundError):
            directory.find_account("domain", "beta", "pdx")

    def test_root_domain_account(self, directory):
        """Test the apex domain account."""
        account = directory.root_domain_account()

        assert account.account_id == "080000000001"
        assert account.region == "us-east-1"
        assert account.stage == "prod"

    def test_root_domain_account_not_configured(self, account_source):
        """Test missing root domain configuration."""
        with pytest.raises(AccountNotFoundError):
            AccountDirectory(account_source).root_domain_account()


class TestListAccounts:
    """Test cases for listing accounts."""

    def test_list_filters(self, directory):
        """Test stage filtering."""
        accounts = directory.list_accounts("control-plane", stage="prod")

        assert {a.account_id for a in accounts} == {"111111111111", "111111111112"}

    def test_unrelated_emails_ignored(self, directory):
        """Test accounts outside every naming convention are never listed."""
        every_id = {
            account.account_id
            for account_type in AccountType
            for account in directory.list_accounts(account_type)
        }

        assert "999999999999" not in every_id

    def test_other_domain_ignored(self, make_source):
        """Test emails outside the configured domain do not match."""
        source = make_source(
            [AccountRecord("111111111111", "hosting-control-plane-prod-pdx@other.org")]
        )
        directory = AccountDirectory(source, email_domain="example.com")

        assert directory.list_accounts("control-plane") == []

    def test_unknown_airport_skipped(self, make_source):
        """Test records naming an unknown airport code are skipped."""
        source = make_source(
            [AccountRecord("111111111111", "hosting-control-plane-prod-zzz@example.com")]
        )
        directory = AccountDirectory(source)

        assert directory.list_accounts("control-plane") == []

    def test_to_dict(self, directory):
        """Test JSON serialization of descriptors."""
        data = directory.find_cell_account("compute-data-plane", "prod", "pdx", 1).to_dict()

        assert data == {
            "accountId": "222222222222",
            "region": "us-west-2",
            "stage": "prod",
            "airportCode": "pdx",
            "email": "hosting-compute-service-prod-pdx-cell1@example.com",
            "accountType": "compute-data-plane",
            "cellNumber": "1",
        }


class TestPatternOverrides:
    """Test cases for configured naming conventions."""

    def test_from_config_with_override(self, make_source):
        """Test pattern overrides replace the default convention."""
        source = make_source(
            [AccountRecord("123456789012", "ops-cp-prod-pdx@corp.example")]
        )
        directory = AccountDirectory.from_config(
            {
                "email_domain": "corp.example",
                "patterns": {
                    "control-plane": (
                        r"^ops-cp-(?P<stage>beta|gamma|prod)-(?P<airport>[a-z]{3})@{domain}$"
                    )
                },
            },
            source,
        )

        account = directory.find_account("control-plane", "prod", "pdx")

        assert account.account_id == "123456789012"

    def test_invalid_pattern(self, account_source):
        """Test broken regex overrides are rejected."""
        with pytest.raises(AccountDirectoryError):
            AccountDirectory(account_source, patterns={"console": "^(unclosed"})
