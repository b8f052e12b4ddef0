"""Helpers shared by operational scripts."""
