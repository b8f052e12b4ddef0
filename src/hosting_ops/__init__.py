"""Hosting Ops Toolkit - Main Package.

This package provides the account-resolution and credential-scoping
facade shared by the hosting team's operational scripts, together with
the pagination, batching and fan-out helpers those scripts rely on.
"""

__version__ = "1.0.0"
__author__ = "Hosting Operations Team"
