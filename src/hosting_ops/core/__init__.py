"""Core components for the hosting ops toolkit.

This module contains the foundational components including AWS client
management, configuration handling, error classification and safety
mechanisms.
"""
