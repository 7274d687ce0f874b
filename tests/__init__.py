"""Test suite for the terra-lint package.

This package contains unit and integration tests validating YAML
composition, meta-reference resolution, inheritance, pack checks
and the command-line interface.
"""
