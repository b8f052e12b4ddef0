#!/usr/bin/env python3
"""Hosting Ops Toolkit - Command Line Entry Point.

Resolves hosting accounts by stage, region and cell, checks scoped
credentials and runs the contingent authorization preflight.
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .accounts.directory import AccountDirectoryError, AccountType
from .accounts.regions import (
    UnknownRegionError,
    all_region_names,
    get_region_info,
    is_opt_in_region,
)
from .accounts.sources import AccountSourceError
from .core.config import Configuration, ConfigurationError
from .core.errors import AwsServiceError
from .context import OpsContext
from .credentials.contingent_auth import ContingentAuthorizationError
from .credentials.provider import CredentialError
from .utils.batch_files import write_json_lines


logger = logging.getLogger(__name__)

HANDLED_ERRORS = (
    ConfigurationError,
    AccountDirectoryError,
    AccountSourceError,
    UnknownRegionError,
    CredentialError,
    ContingentAuthorizationError,
    AwsServiceError,
    ValueError,
)


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for command line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments selecting one account."""
    parser.add_argument(
        "--type",
        dest="account_type",
        default=AccountType.CONTROL_PLANE.value,
        choices=[t.value for t in AccountType],
        help="Account family (default: control-plane)",
    )
    parser.add_argument("--stage", help="Deployment stage (beta, gamma, preprod, prod)")
    parser.add_argument("--region", help="Region name or airport code, e.g. pdx")
    parser.add_argument("--cell", type=int, help="Cell number for cell account pools")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hosting-ops",
        description="Hosting account resolution and credential scoping",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s resolve --stage prod --region pdx
  %(prog)s accounts --type data-plane --stage prod --output accounts.jsonl
  %(prog)s whoami --stage prod --region iad --role ReadOnly
  %(prog)s preflight --stage prod --region pdx --role OncallOperator --ticket CHG-1234
        """,
    )
    parser.add_argument(
        "--config", help="Path to configuration file (default: auto-detect hosting-ops.yaml)"
    )
    parser.add_argument("--profile", help="AWS profile used to reach the broker")
    parser.add_argument("--ticket", help="Change ticket for contingent authorization")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not prompt for confirmations (automation only)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--version", action="version", version=f"Hosting Ops Toolkit v{__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("regions", help="List supported regions and airport codes")

    accounts = subparsers.add_parser("accounts", help="List accounts of a type")
    accounts.add_argument(
        "--type",
        dest="account_type",
        default=AccountType.CONTROL_PLANE.value,
        choices=[t.value for t in AccountType],
    )
    accounts.add_argument("--stage")
    accounts.add_argument("--region")
    accounts.add_argument("--output", help="Write JSON lines to this file")

    resolve = subparsers.add_parser("resolve", help="Resolve one account")
    _add_target_arguments(resolve)

    whoami = subparsers.add_parser(
        "whoami", help="Show the identity scoped credentials resolve to"
    )
    _add_target_arguments(whoami)
    whoami.add_argument("--role", help="Role to assume (default: configured role)")

    preflight = subparsers.add_parser(
        "preflight", help="Run contingent authorization for an account and roles"
    )
    _add_target_arguments(preflight)
    preflight.add_argument(
        "--role", action="append", required=True, help="Role to authorize (repeatable)"
    )

    return parser


def cmd_regions(args: argparse.Namespace) -> int:
    """Print the region table."""
    for region in all_region_names():
        info = get_region_info(region)
        opt_in = " (opt-in)" if is_opt_in_region(region) else ""
        print(f"{info.airport_code}  {info.region:<16} {info.partition}{opt_in}")
    return 0


def cmd_accounts(args: argparse.Namespace, context: OpsContext) -> int:
    """List accounts of a type."""
    accounts = context.directory.list_accounts(
        args.account_type, stage=args.stage, region=args.region
    )
    records = [account.to_dict() for account in accounts]

    if args.output:
        count = write_json_lines(args.output, records)
        print(f"✅ Wrote {count} accounts to {args.output}")
        return 0

    for record in records:
        print(json.dumps(record, sort_keys=True))
    return 0


def cmd_resolve(args: argparse.Namespace, context: OpsContext) -> int:
    """Resolve and print one account."""
    account = context.resolve_account(
        args.account_type, args.stage, args.region, args.cell
    )
    print(json.dumps(account.to_dict(), indent=2, sort_keys=True))
    return 0


def cmd_whoami(args: argparse.Namespace, context: OpsContext) -> int:
    """Assume a role and print the caller identity."""
    account = context.resolve_account(
        args.account_type, args.stage, args.region, args.cell
    )
    role = args.role or context.config.get_default_role()
    context.preflight([account], role)

    clients = context.clients_for(account, role)
    identity = clients.get_caller_identity()
    print(f"✅ {identity['Arn']} ({account.email})")
    return 0


def cmd_preflight(args: argparse.Namespace, context: OpsContext) -> int:
    """Run contingent authorization without touching the account."""
    account = context.resolve_account(
        args.account_type, args.stage, args.region, args.cell
    )
    authorization = context.preflight([account], args.role)
    if authorization is None:
        print(f"✅ No contingent authorization needed for {account.account_id}")
    else:
        print(
            f"✅ Authorized {len(authorization.resources)} role(s) "
            f"under ticket {authorization.ticket}"
        )
    return 0


COMMANDS = {
    "accounts": cmd_accounts,
    "resolve": cmd_resolve,
    "whoami": cmd_whoami,
    "preflight": cmd_preflight,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.command == "regions":
            return cmd_regions(args)

        if args.profile:
            os.environ["AWS_PROFILE"] = args.profile

        config = Configuration(args.config)
        context = OpsContext.from_config(
            config, ticket=args.ticket, interactive=not args.yes
        )
        return COMMANDS[args.command](args, context)

    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.")
        return 130

    except HANDLED_ERRORS as e:
        logger.debug("Command failed", exc_info=True)
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        logger.exception("Unexpected error")
        print(f"\n❌ Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
