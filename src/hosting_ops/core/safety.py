"""Safety and confirmation system for hosting operations.

This module provides confirmation layers for mutating operations,
countdown mechanisms, and audit logging to prevent accidental changes
to production accounts.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Sequence
from dataclasses import dataclass


logger = logging.getLogger(__name__)

IMPACT_LEVELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


@dataclass
class ConfirmationRequest:
    """Request for user confirmation."""

    operation: str
    description: str
    impact_level: str  # LOW, MEDIUM, HIGH, CRITICAL
    configuration_summary: Optional[Dict[str, Any]] = None
    warnings: Optional[List[str]] = None


class SafetyManager:
    """Safety and confirmation manager for mutating operations.

    This class provides layers of confirmation for operations that could
    have significant impact on hosting accounts.
    """

    def __init__(
        self, enable_confirmations: bool = True, countdown_seconds: int = 5
    ) -> None:
        """Initialize safety manager.

        Args:
            enable_confirmations: Whether to enable confirmation prompts
                                 (can be disabled for automated runs)
            countdown_seconds: Countdown before HIGH impact operations proceed
        """
        self.enable_confirmations = enable_confirmations
        self.countdown_seconds = countdown_seconds
        self.audit_log: List[Dict[str, Any]] = []

    def request_confirmation(self, request: ConfirmationRequest) -> bool:
        """Request user confirmation for an operation.

        Args:
            request: ConfirmationRequest with operation details

        Returns:
            True if user confirms, False otherwise
        """
        if request.impact_level not in IMPACT_LEVELS:
            raise ValueError(f"Unknown impact level: {request.impact_level}")

        if not self.enable_confirmations:
            self._log_confirmation(
                request, True, "Auto-confirmed (non-interactive mode)"
            )
            return True

        print("\n" + "=" * 60)
        print("CONFIRMATION REQUIRED")
        print("=" * 60)
        print(f"Operation: {request.operation}")
        print(f"Impact Level: {request.impact_level}")
        print(f"Description: {request.description}")

        if request.warnings:
            print("\n⚠️  WARNINGS:")
            for warning in request.warnings:
                print(f"   • {warning}")

        if request.configuration_summary:
            print("\nSummary:")
            self._display_configuration(request.configuration_summary)

        confirmed = self._get_user_confirmation(request.impact_level)

        self._log_confirmation(
            request,
            confirmed,
            "User confirmed" if confirmed else "User declined",
        )

        return confirmed

    def _display_configuration(
        self, config: Dict[str, Any], indent: int = 0
    ) -> None:
        """Display configuration in a readable format.

        Args:
            config: Configuration dictionary to display
            indent: Indentation level for nested items
        """
        prefix = "  " * indent

        for key, value in config.items():
            if isinstance(value, dict):
                print(f"{prefix}{key}:")
                self._display_configuration(value, indent + 1)
            elif isinstance(value, (list, tuple)):
                print(f"{prefix}{key}: {', '.join(map(str, value))}")
            else:
                print(f"{prefix}{key}: {value}")

    def _get_user_confirmation(self, impact_level: str) -> bool:
        """Get confirmation from user with appropriate safeguards.

        Args:
            impact_level: Impact level of the operation

        Returns:
            True if user confirms, False otherwise
        """
        if impact_level == "CRITICAL":
            return self._get_critical_confirmation()
        elif impact_level == "HIGH":
            return self._get_high_confirmation()
        else:
            return self._get_standard_confirmation()

    def _get_standard_confirmation(self) -> bool:
        """Get standard confirmation (y/n).

        Returns:
            True if user confirms, False otherwise
        """
        print("\nDo you want to proceed? (y/n): ", end="")
        response = input().strip().lower()
        return response in ["y", "yes"]

    def _get_high_confirmation(self) -> bool:
        """Get high-impact confirmation with countdown.

        Returns:
            True if user confirms, False otherwise
        """
        print("\n⚠️  HIGH IMPACT OPERATION")
        print("This operation will mutate production resources.")

        print("\nType 'CONFIRM' to proceed: ", end="")
        response = input().strip()

        if response != "CONFIRM":
            print("Operation cancelled.")
            return False

        return self._countdown_confirmation(self.countdown_seconds)

    def _get_critical_confirmation(self) -> bool:
        """Get critical confirmation with multiple steps.

        Returns:
            True if user confirms, False otherwise
        """
        print("\n🚨 CRITICAL OPERATION")
        print("This operation will make irreversible changes to production.")
        print("Please review all details carefully before proceeding.")

        print(
            "\nDo you understand the impact of this operation? (yes/no): ",
            end="",
        )
        response = input().strip().lower()

        if response not in ["yes"]:
            print("Operation cancelled. Please review the operation details.")
            return False

        print("\nType 'I UNDERSTAND THE RISKS' to continue: ", end="")
        response = input().strip()

        if response != "I UNDERSTAND THE RISKS":
            print("Operation cancelled.")
            return False

        return self._countdown_confirmation(self.countdown_seconds * 2)

    def _countdown_confirmation(self, seconds: int) -> bool:
        """Display countdown with cancel option.

        Args:
            seconds: Number of seconds to count down

        Returns:
            True if countdown completes, False if cancelled
        """
        if seconds <= 0:
            return True

        print(f"\nStarting in {seconds} seconds... (Press Ctrl+C to cancel)")

        try:
            for i in range(seconds, 0, -1):
                print(f"\rProceeding in {i} seconds...", end="", flush=True)
                time.sleep(1)

            print("\rProceeding now...                    ")
            return True

        except KeyboardInterrupt:
            print("\n\nOperation cancelled by user.")
            return False

    def _log_confirmation(
        self, request: ConfirmationRequest, confirmed: bool, reason: str
    ) -> None:
        """Log confirmation request and result.

        Args:
            request: The confirmation request
            confirmed: Whether the operation was confirmed
            reason: Reason for the confirmation result
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "operation": request.operation,
            "impact_level": request.impact_level,
            "confirmed": confirmed,
            "reason": reason,
            "description": request.description,
        }

        if request.configuration_summary:
            log_entry["configuration"] = request.configuration_summary

        self.audit_log.append(log_entry)
        logger.info(
            f"Confirmation for '{request.operation}': "
            f"{'confirmed' if confirmed else 'declined'} ({reason})"
        )

    def get_audit_log(self) -> List[Dict[str, Any]]:
        """Get complete audit log of confirmations.

        Returns:
            List of audit log entries
        """
        return self.audit_log.copy()

    def create_contingent_auth_confirmation(
        self, ticket: str, resources: Sequence[str]
    ) -> ConfirmationRequest:
        """Create confirmation request for a contingent authorization.

        Args:
            ticket: Change ticket justifying the access
            resources: Role ARNs the authorization covers

        Returns:
            ConfirmationRequest for the authorization
        """
        warnings = []
        impact_level = "HIGH"
        if any(resource.endswith("/Admin") for resource in resources):
            warnings.append("Admin role requested in a production account")
            impact_level = "CRITICAL"

        return ConfirmationRequest(
            operation="Contingent Authorization",
            description=(
                "Mutating roles are about to be assumed in production accounts "
                f"under change ticket {ticket}."
            ),
            impact_level=impact_level,
            configuration_summary={"ticket": ticket, "roles": list(resources)},
            warnings=warnings or None,
        )

