"""Test doubles and helpers shared across the test packages."""
